"""Heading extraction and outline folding for markdown buffers.

The parser is total: any text yields a (possibly empty) list of headings and
never raises. Heading ids come from :func:`heading_id` with a counter local to
each call, which is what keeps the outline in step with the preview renderer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List

from markdown.util import BLOCK_LEVEL_ELEMENTS

from writeup.app.ui.heading_utils import heading_id

# Shared with the preview renderer so both recognise the same heading lines.
HEADING_PATTERN = re.compile(
    r"^(?P<level>#{1,6})[ \t]+(?P<title>\S[^\n]*?)[ \t\r]*$", re.MULTILINE
)
FENCE_OPEN_PATTERN = re.compile(
    r"^(?P<fence>~{3,}|`{3,})[ ]*"
    r"(?:\{[^\n]*\}"
    r"|(?:\.?[\w#.+-]*[ ]*)?(?:hl_lines=(?P<quot>\"|')[^\n]*?(?P=quot)[ ]*)?)$"
)
_HTML_TAG = re.compile(
    r"<(?P<close>/)?(?P<name>[A-Za-z][A-Za-z0-9-]*)(?:\s[^>]*?)?(?P<selfclose>/)?>"
)

_VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "param", "source", "track", "wbr"}
)

_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC = re.compile(r"\*([^*]+)\*")
_CODE = re.compile(r"`([^`]+)`")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")


@dataclass(frozen=True)
class HeadingRecord:
    line_index: int
    level: int
    raw_text: str
    clean_text: str
    id: str


@dataclass
class OutlineNode:
    heading: HeadingRecord
    children: List["OutlineNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.heading.id

    @property
    def level(self) -> int:
        return self.heading.level

    @property
    def text(self) -> str:
        return self.heading.clean_text


def clean_heading_text(text: str) -> str:
    """Strip bold, italic, inline code and link syntax, one pass each."""
    cleaned = _BOLD.sub(r"\1", text)
    cleaned = _ITALIC.sub(r"\1", cleaned)
    cleaned = _CODE.sub(r"\1", cleaned)
    cleaned = _LINK.sub(r"\1", cleaned)
    return cleaned


def match_heading(line: str):
    """Return ``(level, title)`` when *line* is an ATX heading, else ``None``."""
    match = HEADING_PATTERN.match(line)
    if not match:
        return None
    return len(match.group("level")), match.group("title")


def _fenced_lines(lines: list[str]) -> set[int]:
    """Indexes of lines that sit inside a closed fenced code block."""
    hidden: set[int] = set()
    idx = 0
    total = len(lines)
    while idx < total:
        opener = FENCE_OPEN_PATTERN.match(lines[idx])
        if not opener:
            idx += 1
            continue
        fence = opener.group("fence")
        close = None
        for candidate in range(idx + 1, total):
            if lines[candidate].rstrip(" ") == fence:
                close = candidate
                break
        if close is None:
            # Unclosed fences render as plain markdown.
            idx += 1
            continue
        hidden.update(range(idx, close + 1))
        idx = close + 1
    return hidden


def _raw_block_end(lines: list[str], start: int, column: int) -> int:
    """Last line of the raw HTML block whose opening tag is at *start*."""
    stack: list[str] = []
    for line_no in range(start, len(lines)):
        pos = column if line_no == start else 0
        for tag in _HTML_TAG.finditer(lines[line_no], pos):
            name = tag.group("name").lower()
            if tag.group("close"):
                if name in stack:
                    while stack.pop() != name:
                        pass
            elif not tag.group("selfclose") and name not in _VOID_ELEMENTS:
                stack.append(name)
        if not stack:
            return line_no
    # An unclosed block swallows the rest of the document.
    return len(lines) - 1


def _raw_html_lines(lines: list[str], skip: set[int]) -> set[int]:
    """Indexes of lines that belong to raw block-level HTML.

    A block starts at a block-level opening tag (or ``<!--``) indented by at
    most three spaces and runs to the line that closes it.
    """
    hidden: set[int] = set()
    idx = 0
    total = len(lines)
    while idx < total:
        line = lines[idx]
        stripped = line.lstrip(" ")
        column = len(line) - len(stripped)
        if idx in skip or column > 3 or not stripped.startswith("<"):
            idx += 1
            continue
        if stripped.startswith("<!--"):
            end = idx
            while end < total - 1 and "-->" not in lines[end][column + 4 if end == idx else 0 :]:
                end += 1
        else:
            tag = _HTML_TAG.match(stripped)
            if not tag or tag.group("close") or tag.group("name").lower() not in BLOCK_LEVEL_ELEMENTS:
                idx += 1
                continue
            end = _raw_block_end(lines, idx, column)
        hidden.update(range(idx, end + 1))
        idx = end + 1
    return hidden


def parse_headings(text: str) -> list[HeadingRecord]:
    lines = (text or "").split("\n")
    fenced = _fenced_lines(lines)
    fenced |= _raw_html_lines(lines, fenced)
    records: list[HeadingRecord] = []
    counter = 0
    for line_index, line in enumerate(lines):
        if line_index in fenced:
            continue
        found = match_heading(line)
        if not found:
            continue
        level, raw = found
        clean = clean_heading_text(raw)
        records.append(
            HeadingRecord(
                line_index=line_index,
                level=level,
                raw_text=raw,
                clean_text=clean,
                id=heading_id(counter, clean),
            )
        )
        counter += 1
    return records


def build_outline(headings: Iterable[HeadingRecord]) -> list[OutlineNode]:
    """Fold headings into a forest using the usual heading-stack rule."""
    roots: list[OutlineNode] = []
    stack: list[OutlineNode] = []
    for heading in headings:
        node = OutlineNode(heading)
        while stack and stack[-1].level >= node.level:
            stack.pop()
        if stack:
            stack[-1].children.append(node)
        else:
            roots.append(node)
        stack.append(node)
    return roots


def parse_outline(text: str) -> list[OutlineNode]:
    return build_outline(parse_headings(text))


def iter_nodes(forest: Iterable[OutlineNode]) -> Iterator[OutlineNode]:
    """Depth-first, document-order walk over an outline forest."""
    for node in forest:
        yield node
        yield from iter_nodes(node.children)
