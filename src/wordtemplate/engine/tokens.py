"""Placeholder tokenizer and block matcher.

``tokenize`` turns markup into a flat list of ``${...}`` tokens;
``match_blocks`` pairs ``#each``/``/each`` and ``#if``/``/if`` with a stack,
keyed by type, and attaches ``#elseif``/``#else`` markers to the ``#if``
they belong to. Closers that do not match the innermost open block are
reported instead of silently closing something else.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from wordtemplate.engine.expressions import ExpressionEvaluator, ParsedExpression
from wordtemplate.utils import unescape_xml

PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")

_OPENERS = {"loop_start": "loop", "condition_start": "condition"}
_CLOSERS = {"loop_end": "loop", "condition_end": "condition"}
_BRANCHES = ("condition_else_if", "condition_else")


@dataclass
class Token:
    start: int
    end: int
    raw: str
    expression: ParsedExpression

    @property
    def kind(self) -> str:
        return self.expression.kind

    @property
    def source(self) -> str:
        return "${" + self.raw + "}"


@dataclass
class BlockSpan:
    """A matched block from its opening token through its closing token."""

    opener: Token
    closer: Token
    branches: List[Token] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return _OPENERS[self.opener.kind]

    @property
    def start(self) -> int:
        return self.opener.start

    @property
    def end(self) -> int:
        return self.closer.end

    def contains(self, other: "BlockSpan") -> bool:
        return self.start <= other.start and other.end <= self.end and self is not other

    def sections(self) -> List[Tuple[Optional[Token], int, int]]:
        """``(marker, body_start, body_end)`` for the opener and each branch marker."""
        markers = [self.opener] + self.branches
        bounds = [token.start for token in self.branches] + [self.closer.start]
        return [(marker, marker.end, bound) for marker, bound in zip(markers, bounds)]


@dataclass
class MatchResult:
    blocks: List[BlockSpan] = field(default_factory=list)
    unclosed: List[Token] = field(default_factory=list)
    problems: List[str] = field(default_factory=list)

    def outermost(self) -> List[BlockSpan]:
        """Matched blocks not nested inside another matched block, in document order."""
        ordered = sorted(self.blocks, key=lambda block: block.start)
        result: List[BlockSpan] = []
        for block in ordered:
            if result and result[-1].contains(block):
                continue
            result.append(block)
        return result


def tokenize(markup: str, evaluator: ExpressionEvaluator) -> List[Token]:
    tokens = []
    for match in PLACEHOLDER_RE.finditer(markup):
        raw = match.group(1)
        expression = evaluator.parse(unescape_xml(raw))
        tokens.append(Token(start=match.start(), end=match.end(), raw=raw, expression=expression))
    return tokens


def match_blocks(tokens: List[Token]) -> MatchResult:
    result = MatchResult()
    stack: List[Tuple[Token, List[Token]]] = []

    for token in tokens:
        kind = token.kind

        if kind in _OPENERS:
            stack.append((token, []))

        elif kind in _CLOSERS:
            if not stack:
                result.problems.append(f"Unexpected {token.source} without an opening block")
                continue
            opener, branches = stack[-1]
            if _OPENERS[opener.kind] != _CLOSERS[kind]:
                result.problems.append(f"Mismatched {token.source}: {opener.source} is still open")
                continue
            stack.pop()
            result.blocks.append(BlockSpan(opener=opener, closer=token, branches=branches))

        elif kind in _BRANCHES:
            if not stack or stack[-1][0].kind != "condition_start":
                result.problems.append(f"Unexpected {token.source} outside of an #if block")
                continue
            branches = stack[-1][1]
            if branches and branches[-1].kind == "condition_else":
                result.problems.append(f"Unexpected {token.source} after ${{#else}}")
                continue
            branches.append(token)

    for opener, _branches in stack:
        result.unclosed.append(opener)
    return result


def unclosed_message(token: Token) -> str:
    label = "loop" if token.kind == "loop_start" else "condition"
    return f"Unclosed {label}: {token.source}"
