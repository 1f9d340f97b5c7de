"""Scope stack for nested loops.

Each ``${#each}`` iteration pushes a frame holding the current element and
its loop metadata; paths are resolved against that stack:

- ``$index``, ``$first``, ``$last``, ``$count`` read the innermost frame's metadata
- ``this`` / ``this.prop`` read the innermost frame only
- ``../prop`` climbs one frame per ``../``
- anything else tries the innermost frame, then the enclosing frames, then the root
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from wordtemplate.engine.values import UNDEFINED

_SEGMENT_RE = re.compile(r"^([^\[\]]*)((?:\[\d+\])+)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")


@dataclass(frozen=True)
class LoopMeta:
    index: int
    is_first: bool
    is_last: bool
    count: int


@dataclass
class ScopeFrame:
    data: Any
    loop_meta: Optional[LoopMeta] = None


class ScopeManager:
    """Stack of scope frames; the bottom frame always holds the root data."""

    def __init__(self) -> None:
        self._root: Any = {}
        self._stack: List[ScopeFrame] = [ScopeFrame(data=self._root)]

    def initialize(self, root: Any) -> None:
        self._root = root
        self._stack = [ScopeFrame(data=root)]

    def push_scope(self, data: Any, loop_meta: Optional[LoopMeta] = None) -> None:
        self._stack.append(ScopeFrame(data=data, loop_meta=loop_meta))

    def pop_scope(self) -> None:
        # The root frame is never popped.
        if len(self._stack) > 1:
            self._stack.pop()

    @property
    def current(self) -> ScopeFrame:
        return self._stack[-1]

    @property
    def depth(self) -> int:
        return len(self._stack)

    def candidate_frames(self) -> List[Any]:
        """Data objects tried, in order, for a plain path."""
        candidates = [frame.data for frame in reversed(self._stack)]
        candidates.append(self._root)
        return candidates

    def resolve(self, path: str) -> Any:
        path = path.strip()

        if path.startswith("$"):
            return self._resolve_loop_meta(path)

        if path == "this":
            return self.current.data

        if path.startswith("this."):
            return get_value_by_path(self.current.data, path[5:])

        if path.startswith("../"):
            return self._resolve_parent_path(path)

        for data in self.candidate_frames():
            value = get_value_by_path(data, path)
            if value is not UNDEFINED:
                return value
        return UNDEFINED

    def _resolve_loop_meta(self, name: str) -> Any:
        meta = self.current.loop_meta
        if meta is None:
            return UNDEFINED
        if name == "$index":
            return meta.index
        if name == "$first":
            return meta.is_first
        if name == "$last":
            return meta.is_last
        if name == "$count":
            return meta.count
        return UNDEFINED

    def _resolve_parent_path(self, path: str) -> Any:
        position = len(self._stack) - 1
        while path.startswith("../"):
            position -= 1
            path = path[3:]

        if position < 0:
            return get_value_by_path(self._root, path)
        return get_value_by_path(self._stack[position].data, path)


def parse_path(path: str) -> List[Tuple[str, Tuple[int, ...]]]:
    """Split ``a.b[0][1].c`` into ``[("a", ()), ("b", (0, 1)), ("c", ())]``."""
    parts: List[Tuple[str, Tuple[int, ...]]] = []
    for segment in path.split("."):
        match = _SEGMENT_RE.match(segment)
        if match:
            indices = tuple(int(i) for i in _INDEX_RE.findall(match.group(2)))
            parts.append((match.group(1), indices))
        else:
            parts.append((segment, ()))
    return parts


def get_value_by_path(obj: Any, path: str) -> Any:
    """Walk ``path`` through nested dicts and lists.

    Never raises: a missing key, a non-container or an out-of-range index
    all give ``UNDEFINED``.
    """
    if not path:
        return obj
    if obj is None or obj is UNDEFINED:
        return UNDEFINED

    current = obj
    for name, indices in parse_path(path):
        if name:
            current = _get_member(current, name)
        for index in indices:
            if not isinstance(current, (list, tuple)) or index >= len(current):
                return UNDEFINED
            current = current[index]
        if current is UNDEFINED:
            return UNDEFINED
    return current


def _get_member(container: Any, name: str) -> Any:
    if isinstance(container, dict):
        return container.get(name, UNDEFINED)
    if isinstance(container, (list, tuple)):
        if name == "length":
            return len(container)
        if name.isdigit() and int(name) < len(container):
            return container[int(name)]
    return UNDEFINED
