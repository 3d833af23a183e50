from __future__ import annotations

import logging
from typing import Iterable, Optional

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QMimeData, QRegularExpression, Qt, Signal
from PySide6.QtGui import (
    QColor,
    QFont,
    QFontDatabase,
    QImage,
    QKeyEvent,
    QSyntaxHighlighter,
    QTextCharFormat,
    QTextCursor,
)
from PySide6.QtWidgets import QPlainTextEdit

from writeup.app.edit_commands import EditState, apply_command, command_for_shortcut
from writeup.app.errors import ValidationError
from writeup.app.image_paste import ImagePayload, image_markdown, insert_image, is_image_type
from .image_paste_manager import ImagePasteManager

logger = logging.getLogger(__name__)

_SHORTCUT_KEY_NAMES = {
    int(Qt.Key.Key_B): "b",
    int(Qt.Key.Key_I): "i",
    int(Qt.Key.Key_K): "k",
    int(Qt.Key.Key_Tab): "tab",
}


def _utf16_units(ch: str) -> int:
    return 2 if ord(ch) > 0xFFFF else 1


def _is_bmp_only(text: str) -> bool:
    return len(text.encode("utf-16-le")) // 2 == len(text)


def offset_to_qt(text: str, offset: int) -> int:
    """Convert a code-point offset into a Qt (UTF-16) document position."""
    offset = max(0, min(offset, len(text)))
    if _is_bmp_only(text):
        return offset
    return len(text[:offset].encode("utf-16-le")) // 2


def qt_to_offset(text: str, position: int) -> int:
    """Convert a Qt (UTF-16) position into a code-point offset."""
    if position <= 0:
        return 0
    if _is_bmp_only(text):
        return min(position, len(text))
    units = 0
    for idx, ch in enumerate(text):
        if units >= position:
            return idx
        units += _utf16_units(ch)
    return len(text)


def _common_affixes(old: str, new: str) -> tuple[int, int]:
    """Length of the shared prefix and (non-overlapping) shared suffix."""
    limit = min(len(old), len(new))
    prefix = 0
    while prefix < limit and old[prefix] == new[prefix]:
        prefix += 1
    suffix = 0
    while suffix < limit - prefix and old[-1 - suffix] == new[-1 - suffix]:
        suffix += 1
    return prefix, suffix


class MarkdownHighlighter(QSyntaxHighlighter):
    CODE_BLOCK_STATE = 1

    def __init__(self, parent) -> None:  # type: ignore[override]
        super().__init__(parent)
        self._heading_pattern = QRegularExpression(r"^(#{1,6})[ \t]+\S.*$")
        self._code_pattern = QRegularExpression(r"`[^`]+`")
        self._bold_pattern = QRegularExpression(r"\*\*([^*]+)\*\*")
        self._italic_pattern = QRegularExpression(r"(?<!\*)\*([^*]+)\*(?!\*)")
        self._link_pattern = QRegularExpression(r"!?\[[^\]]*\]\([^)]*\)")

        self.heading_styles = []
        for size_delta in (8, 6, 4, 2, 1, 0):
            fmt = QTextCharFormat()
            fmt.setForeground(QColor("#6cb4ff"))
            fmt.setFontWeight(QFont.Weight.DemiBold)
            fmt.setProperty(QTextCharFormat.Property.FontSizeAdjustment, min(size_delta // 2, 3))
            self.heading_styles.append(fmt)

        self.bold_format = QTextCharFormat()
        self.bold_format.setForeground(QColor("#ffd479"))
        self.bold_format.setFontWeight(QFont.Weight.Bold)

        self.italic_format = QTextCharFormat()
        self.italic_format.setForeground(QColor("#ffa7c4"))
        self.italic_format.setFontItalic(True)

        mono_font = QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)
        mono_family = mono_font.family() or "Courier New"
        self.code_format = QTextCharFormat()
        self.code_format.setForeground(QColor("#a3ffab"))
        self.code_format.setFontFamily(mono_family)
        self.code_format.setFontFixedPitch(True)

        self.code_fence_format = QTextCharFormat()
        self.code_fence_format.setForeground(QColor("#777777"))

        self.link_format = QTextCharFormat()
        self.link_format.setForeground(QColor("#7fdbff"))

        self.quote_format = QTextCharFormat()
        self.quote_format.setForeground(QColor("#7fdbff"))
        self.quote_format.setFontItalic(True)

        self.hr_format = QTextCharFormat()
        self.hr_format.setForeground(QColor("#777777"))

    def highlightBlock(self, text: str) -> None:  # type: ignore[override]
        in_code_block = self.previousBlockState() == self.CODE_BLOCK_STATE
        if text.startswith(("```", "~~~")):
            self.setCurrentBlockState(0 if in_code_block else self.CODE_BLOCK_STATE)
            self.setFormat(0, len(text), self.code_fence_format)
            return
        if in_code_block:
            self.setCurrentBlockState(self.CODE_BLOCK_STATE)
            self.setFormat(0, len(text), self.code_format)
            return
        self.setCurrentBlockState(0)

        heading = self._heading_pattern.match(text)
        if heading.hasMatch():
            level = heading.capturedLength(1)
            self.setFormat(0, len(text), self.heading_styles[level - 1])
            return

        stripped = text.strip()
        if stripped in ("---", "***", "___"):
            self.setFormat(0, len(text), self.hr_format)
            return
        if stripped.startswith(">"):
            self.setFormat(0, len(text), self.quote_format)

        for pattern, fmt in (
            (self._link_pattern, self.link_format),
            (self._italic_pattern, self.italic_format),
            (self._bold_pattern, self.bold_format),
            (self._code_pattern, self.code_format),
        ):
            iterator = pattern.globalMatch(text)
            while iterator.hasNext():
                match = iterator.next()
                self.setFormat(match.capturedStart(), match.capturedLength(), fmt)


class MarkdownEditor(QPlainTextEdit):
    """Plain-text markdown buffer driven by :mod:`writeup.app.edit_commands`.

    Toolbar actions and shortcuts go through :meth:`run_command`; pasted images
    are encoded in the background and spliced in as data-URI image literals.
    """

    statusMessage = Signal(str, int)
    imagePasteFailed = Signal(str)
    imageInserted = Signal(str)

    def __init__(self, image_manager: Optional[ImagePasteManager] = None, parent=None) -> None:
        super().__init__(parent)
        self.setPlaceholderText("Write your Markdown here…")
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)
        self.setTabChangesFocus(False)
        self.highlighter = MarkdownHighlighter(self.document())
        self._image_manager = image_manager or ImagePasteManager(parent=self)
        self._image_manager.imageEncoded.connect(self._on_image_encoded)
        self._image_manager.encodeFailed.connect(self._on_image_failed)
        self._pending_image_jobs: set[int] = set()

    # --- Content --------------------------------------------------------
    def set_markdown(self, content: str) -> None:
        self.setPlainText(content or "")
        self.document().setModified(False)

    def to_markdown(self) -> str:
        return self.toPlainText()

    def set_font_point_size(self, size: int) -> None:
        # Clamp to a sensible, positive point size to avoid Qt warnings
        try:
            safe_size = max(6, int(size))
        except (TypeError, ValueError):
            safe_size = 13
        font = self.font()
        font.setPointSize(safe_size)
        self.setFont(font)

    def _status_message(self, msg: str, duration: int = 2000) -> None:
        self.statusMessage.emit(msg, duration)

    # --- Edit state -----------------------------------------------------
    def edit_state(self) -> EditState:
        text = self.toPlainText()
        cursor = self.textCursor()
        return EditState(
            text,
            qt_to_offset(text, cursor.selectionStart()),
            qt_to_offset(text, cursor.selectionEnd()),
        )

    def apply_edit_state(self, state: EditState) -> None:
        """Make the widget match *state*, replacing only the changed span.

        Going through one cursor edit block keeps the change a single step in
        the widget's native undo stack.
        """
        old = self.toPlainText()
        new = state.text
        cursor = self.textCursor()
        if old != new:
            prefix, suffix = _common_affixes(old, new)
            cursor.beginEditBlock()
            cursor.setPosition(offset_to_qt(old, prefix))
            cursor.setPosition(offset_to_qt(old, len(old) - suffix), QTextCursor.MoveMode.KeepAnchor)
            cursor.insertText(new[prefix : len(new) - suffix])
            cursor.endEditBlock()
        cursor.setPosition(offset_to_qt(new, state.selection_start))
        cursor.setPosition(offset_to_qt(new, state.selection_end), QTextCursor.MoveMode.KeepAnchor)
        self.setTextCursor(cursor)

    def run_command(self, name: str) -> EditState:
        state = apply_command(name, self.edit_state())
        self.apply_edit_state(state)
        self.setFocus()
        return state

    # --- Keyboard -------------------------------------------------------
    def _shortcut_command(self, event: QKeyEvent) -> Optional[str]:
        key_name = _SHORTCUT_KEY_NAMES.get(int(event.key()))
        if not key_name:
            return None
        mods = event.modifiers()
        return command_for_shortcut(
            key_name,
            ctrl=bool(mods & Qt.KeyboardModifier.ControlModifier),
            meta=bool(mods & Qt.KeyboardModifier.MetaModifier),
            alt=bool(mods & Qt.KeyboardModifier.AltModifier),
        )

    def keyPressEvent(self, event):  # type: ignore[override]
        name = self._shortcut_command(event)
        if name:
            # Swallow the native behaviour (focus change on Tab, etc.) first.
            event.accept()
            self.run_command(name)
            return
        super().keyPressEvent(event)

    # --- Image paste ----------------------------------------------------
    def _image_payloads(self, source: QMimeData) -> list[ImagePayload]:
        payloads: list[ImagePayload] = []
        for fmt in source.formats():
            if is_image_type(fmt):
                data = source.data(fmt)
                if not data.isEmpty():
                    payloads.append(ImagePayload(fmt, bytes(data.data())))
        if not payloads and source.hasImage():
            image = source.imageData()
            if isinstance(image, QImage) and not image.isNull():
                payloads.append(ImagePayload("image/png", self._png_bytes(image)))
        return payloads

    @staticmethod
    def _png_bytes(image: QImage) -> bytes:
        array = QByteArray()
        buffer = QBuffer(array)
        buffer.open(QIODevice.OpenModeFlag.WriteOnly)
        image.save(buffer, "PNG")
        buffer.close()
        return bytes(array.data())

    def canInsertFromMimeData(self, source: QMimeData) -> bool:  # type: ignore[override]
        if any(is_image_type(fmt) for fmt in source.formats()) or source.hasImage():
            return True
        return super().canInsertFromMimeData(source)

    def insertFromMimeData(self, source: QMimeData) -> None:  # type: ignore[override]
        payloads = self._image_payloads(source)
        if payloads and self.paste_images(payloads):
            return
        super().insertFromMimeData(source)

    def paste_images(self, payloads: Iterable[ImagePayload]) -> bool:
        """Queue the first image payload for embedding; True if one was taken."""
        try:
            job_id = self._image_manager.submit(payloads)
        except ValidationError as exc:
            logger.info("Rejected pasted image: %s", exc)
            self.imagePasteFailed.emit(str(exc))
            return True
        if job_id is None:
            return False
        self._pending_image_jobs.add(job_id)
        self._status_message("Processing image…")
        return True

    def _on_image_encoded(self, job_id: int, uri: str) -> None:
        if job_id not in self._pending_image_jobs:
            return
        self._pending_image_jobs.discard(job_id)
        literal = image_markdown(uri)
        self.apply_edit_state(insert_image(self.edit_state(), literal))
        self.imageInserted.emit(literal)
        self._status_message("Image inserted")

    def _on_image_failed(self, job_id: int, message: str) -> None:
        if job_id not in self._pending_image_jobs:
            return
        self._pending_image_jobs.discard(job_id)
        self.imagePasteFailed.emit(message)

    def has_pending_images(self) -> bool:
        return bool(self._pending_image_jobs)

    def teardown(self) -> None:
        """Detach from in-flight image encodes before the widget goes away."""
        self._pending_image_jobs.clear()
        self._image_manager.shutdown()
