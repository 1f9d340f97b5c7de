"""Batched text edits applied in a single forward pass."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Edit:
    start: int
    end: int
    text: str


class EditList:
    """Collects replacements against one source string.

    All offsets refer to the original source, so callers never need to
    track how earlier edits shift later positions.
    """

    def __init__(self) -> None:
        self._edits: List[Edit] = []

    def __len__(self) -> int:
        return len(self._edits)

    def __bool__(self) -> bool:
        return bool(self._edits)

    def replace(self, start: int, end: int, text: str) -> None:
        if start < 0 or end < start:
            raise ValueError(f"Invalid edit range [{start}, {end})")
        self._edits.append(Edit(start, end, text))

    def insert(self, position: int, text: str) -> None:
        self.replace(position, position, text)

    def delete(self, start: int, end: int) -> None:
        self.replace(start, end, "")

    def apply(self, source: str) -> str:
        # Stable sort keeps insertions at the same offset in the order they were added.
        edits = sorted(self._edits, key=lambda edit: edit.start)
        pieces: List[str] = []
        cursor = 0
        for edit in edits:
            if edit.start < cursor:
                raise ValueError(f"Overlapping edit at offset {edit.start}")
            if edit.end > len(source):
                raise ValueError(f"Edit past end of text at offset {edit.end}")
            pieces.append(source[cursor:edit.start])
            pieces.append(edit.text)
            cursor = edit.end
        pieces.append(source[cursor:])
        return "".join(pieces)
