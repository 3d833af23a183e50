"""Markdown to HTML for the live preview.

Headings get the same ids the outline parser assigns: the heading block
processor is driven by the parser's ``HEADING_PATTERN`` and the ids come from
``heading_id(counter, clean_heading_text(title))`` with a counter that starts
at 0 for every render.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as etree

import markdown
from markdown.blockprocessors import BlockProcessor
from markdown.extensions import Extension
from markdown.extensions.codehilite import CodeHiliteExtension
from markdown.treeprocessors import Treeprocessor
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from writeup.app import config
from writeup.app.outline import HEADING_PATTERN, clean_heading_text
from writeup.app.ui.heading_utils import heading_id

logger = logging.getLogger(__name__)


class HeadingBlockProcessor(BlockProcessor):
    """ATX headings, recognised exactly the way the outline parser does."""

    def __init__(self, parser, found: list) -> None:
        super().__init__(parser)
        self.found = found

    def test(self, parent, block):  # type: ignore[override]
        return bool(HEADING_PATTERN.search(block))

    def run(self, parent, blocks):  # type: ignore[override]
        block = blocks.pop(0)
        match = HEADING_PATTERN.search(block)
        if not match:
            logger.debug("Heading block no longer matches: %r", block)
            blocks.insert(0, block)
            return False
        before = block[: match.start()].rstrip("\n")
        after = block[match.end() :].lstrip("\n")
        if before:
            self.parser.parseBlocks(parent, [before])
        title = match.group("title")
        heading = etree.SubElement(parent, f"h{len(match.group('level'))}")
        heading.text = title
        # Headings inside quotes or list items are not part of the outline.
        if not self.parser.state:
            self.found.append((heading, title))
        if after:
            blocks.insert(0, after)
        return None


class HeadingIdTreeprocessor(Treeprocessor):
    def __init__(self, md, found: list, named_anchors: bool = False) -> None:
        super().__init__(md)
        self.found = found
        self.named_anchors = named_anchors

    def run(self, root):  # type: ignore[override]
        self.md.heading_ids = []
        for counter, (element, title) in enumerate(self.found):
            anchor = heading_id(counter, clean_heading_text(title))
            element.set("id", anchor)
            self.md.heading_ids.append(anchor)
            if self.named_anchors:
                marker = etree.Element("a", {"name": anchor})
                marker.tail = element.text
                element.text = None
                element.insert(0, marker)
        self.found.clear()
        return None


class HeadingAnchorExtension(Extension):
    def __init__(self, **kwargs) -> None:
        self.config = {
            "named_anchors": [False, "Also emit <a name> anchors inside headings (Qt rich text)"],
        }
        self.found: list = []
        super().__init__(**kwargs)

    def extendMarkdown(self, md) -> None:  # type: ignore[override]
        md.registerExtension(self)
        # Must run before the tables processor (75), which would swallow a heading row.
        md.parser.blockprocessors.register(HeadingBlockProcessor(md.parser, self.found), "hashheader", 76)
        if "setextheader" in md.parser.blockprocessors:
            md.parser.blockprocessors.deregister("setextheader")
        md.treeprocessors.register(
            HeadingIdTreeprocessor(md, self.found, named_anchors=bool(self.getConfig("named_anchors"))),
            "heading_ids",
            5,
        )

    def reset(self) -> None:
        self.found.clear()


def resolve_pygments_style(style_name: str | None = None) -> str:
    """Return *style_name* if Pygments knows it, else the monokai fallback."""
    chosen = style_name or config.load_pygments_style("monokai")
    try:
        get_style_by_name(chosen)
    except ClassNotFound:
        logger.warning("Unknown Pygments style %r; using monokai", chosen)
        return "monokai"
    return chosen


def create_renderer(named_anchors: bool = False, pygments_style: str | None = None) -> markdown.Markdown:
    return markdown.Markdown(
        extensions=[
            "fenced_code",
            "tables",
            CodeHiliteExtension(
                noclasses=True,
                guess_lang=False,
                pygments_style=resolve_pygments_style(pygments_style),
            ),
            HeadingAnchorExtension(named_anchors=named_anchors),
        ]
    )


def render_document(text: str, *, named_anchors: bool = False, pygments_style: str | None = None) -> tuple[str, list[str]]:
    """Render *text* to an HTML fragment plus its heading ids in document order."""
    renderer = create_renderer(named_anchors=named_anchors, pygments_style=pygments_style)
    html = renderer.convert(text or "")
    return html, list(getattr(renderer, "heading_ids", []))
