from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from PySide6.QtCore import QUrl, Signal
from PySide6.QtGui import QImage, QTextCursor, QTextDocument
from PySide6.QtWidgets import QTextBrowser

from writeup.app.preview import render_document
from .viewport_tracker import ViewportTracker

logger = logging.getLogger(__name__)


def decode_data_url(url: str) -> Optional[tuple[str, bytes]]:
    """Split a ``data:<type>;base64,<payload>`` URL into (type, bytes)."""
    if not url.startswith("data:") or "," not in url:
        return None
    header, payload = url[5:].split(",", 1)
    media_type, _, encoding = header.partition(";")
    if encoding.lower() != "base64":
        return None
    try:
        return media_type, base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        return None


class PreviewPanel(QTextBrowser):
    """Rendered markdown with addressable heading anchors.

    After every render the panel re-subscribes its :class:`ViewportTracker` to
    the new heading ids and feeds it anchor geometry on scroll and resize.
    """

    headingsRendered = Signal(list)

    def __init__(self, tracker: Optional[ViewportTracker] = None, parent=None) -> None:
        super().__init__(parent)
        self.setOpenExternalLinks(True)
        self.setPlaceholderText("Preview will appear here…")
        self.tracker = tracker or ViewportTracker(parent=self)
        self._heading_ids: list[str] = []
        self._markdown = ""
        self._rendered = False
        self.verticalScrollBar().valueChanged.connect(lambda _value: self.evaluate_viewport())

    # --- Rendering ------------------------------------------------------
    def set_markdown(self, text: str) -> None:
        if self._rendered and (text or "") == self._markdown:
            return
        self._rendered = True
        self._markdown = text or ""
        scroll = self.verticalScrollBar().value()
        if not self._markdown.strip():
            self.clear()
            self._heading_ids = []
        else:
            html, ids = render_document(self._markdown, named_anchors=True)
            self.setHtml(html)
            self._heading_ids = ids
        self.verticalScrollBar().setValue(scroll)
        self.tracker.observe(self._heading_ids)
        self.headingsRendered.emit(list(self._heading_ids))
        self.evaluate_viewport()

    def heading_ids(self) -> list[str]:
        return list(self._heading_ids)

    def loadResource(self, type_, name: QUrl):  # type: ignore[override]
        if type_ == QTextDocument.ResourceType.ImageResource and name.scheme() == "data":
            decoded = decode_data_url(name.toString())
            if decoded:
                image = QImage.fromData(decoded[1])
                if not image.isNull():
                    return image
            logger.debug("Could not decode inline image (%d chars)", len(name.toString()))
            return QImage()
        return super().loadResource(type_, name)

    # --- Navigation -----------------------------------------------------
    def scroll_to_heading(self, heading_id: str) -> bool:
        if heading_id not in self._heading_ids:
            return False
        self.scrollToAnchor(heading_id)
        return True

    def heading_rects(self) -> dict[str, tuple[float, float]]:
        """Document-space (top, bottom) of every rendered heading anchor."""
        wanted = set(self._heading_ids)
        rects: dict[str, tuple[float, float]] = {}
        doc = self.document()
        layout = doc.documentLayout()
        block = doc.begin()
        while block.isValid() and len(rects) < len(wanted):
            if block.length() > 1:
                cursor = QTextCursor(block)
                cursor.setPosition(block.position() + 1)
                for name in cursor.charFormat().anchorNames():
                    if name in wanted:
                        rect = layout.blockBoundingRect(block)
                        rects[name] = (rect.top(), rect.bottom())
            block = block.next()
        return rects

    def evaluate_viewport(self) -> Optional[str]:
        if not self._heading_ids:
            return None
        return self.tracker.evaluate(
            self.heading_rects(),
            float(self.verticalScrollBar().value()),
            float(self.viewport().height()),
        )

    def resizeEvent(self, event):  # type: ignore[override]
        super().resizeEvent(event)
        self.evaluate_viewport()

    def teardown(self) -> None:
        self.tracker.unobserve_all()
