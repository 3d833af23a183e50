import pytest
from PySide6.QtCore import QByteArray, QMimeData, Qt
from PySide6.QtGui import QTextCursor

from writeup.app.image_paste import ImagePayload
from writeup.app.ui.image_paste_manager import ImagePasteManager
from writeup.app.ui.markdown_editor import MarkdownEditor, offset_to_qt, qt_to_offset


@pytest.fixture
def editor(qtbot):
    ed = MarkdownEditor()
    qtbot.addWidget(ed)
    return ed


def _place_cursor(editor: MarkdownEditor, start: int, end: int | None = None) -> None:
    cursor = editor.textCursor()
    cursor.setPosition(start)
    if end is not None:
        cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
    editor.setTextCursor(cursor)


def _image_mime(data: bytes, fmt: str = "image/png") -> QMimeData:
    mime = QMimeData()
    mime.setData(fmt, QByteArray(data))
    return mime


def test_utf16_offset_conversion() -> None:
    text = "a\U0001F600b"
    assert offset_to_qt(text, 2) == 3
    assert qt_to_offset(text, 3) == 2
    assert qt_to_offset(text, 4) == 3
    assert offset_to_qt("plain", 3) == qt_to_offset("plain", 3) == 3


def test_bold_command_selects_placeholder(editor) -> None:
    editor.set_markdown("Hello world")
    _place_cursor(editor, 5)
    editor.run_command("bold")
    assert editor.to_markdown() == "Hello**bold text** world"
    assert editor.textCursor().selectedText() == "bold text"


def test_command_is_one_undo_step(editor) -> None:
    editor.set_markdown("Hello world")
    _place_cursor(editor, 6, 11)
    editor.run_command("italic")
    assert editor.to_markdown() == "Hello *world*"
    editor.undo()
    assert editor.to_markdown() == "Hello world"


def test_ctrl_b_shortcut(qtbot, editor) -> None:
    editor.set_markdown("x")
    _place_cursor(editor, 1)
    qtbot.keyClick(editor, Qt.Key.Key_B, Qt.KeyboardModifier.ControlModifier)
    assert editor.to_markdown() == "x**bold text**"


def test_ctrl_k_wraps_selection_as_link(qtbot, editor) -> None:
    editor.set_markdown("see docs")
    _place_cursor(editor, 4, 8)
    qtbot.keyClick(editor, Qt.Key.Key_K, Qt.KeyboardModifier.ControlModifier)
    assert editor.to_markdown() == "see [docs](url)"


def test_tab_indents_instead_of_moving_focus(qtbot, editor) -> None:
    editor.set_markdown("item")
    _place_cursor(editor, 0)
    qtbot.keyClick(editor, Qt.Key.Key_Tab)
    assert editor.to_markdown() == "  item"


def test_plain_keys_still_type(qtbot, editor) -> None:
    editor.set_markdown("")
    qtbot.keyClicks(editor, "bik")
    assert editor.to_markdown() == "bik"


def test_offsets_survive_astral_characters(editor) -> None:
    editor.set_markdown("\U0001F600 Hello")
    _place_cursor(editor, 3)
    state = editor.edit_state()
    assert state.selection_start == 2
    editor.run_command("bold")
    assert editor.to_markdown() == "\U0001F600 **bold text**Hello"
    assert editor.textCursor().selectedText() == "bold text"


def test_pasted_image_is_embedded(qtbot, editor) -> None:
    editor.set_markdown("ab")
    _place_cursor(editor, 1)
    assert editor.canInsertFromMimeData(_image_mime(b"\x89PNG"))
    with qtbot.waitSignal(editor.imageInserted, timeout=3000) as blocker:
        editor.insertFromMimeData(_image_mime(b"\x89PNG"))
    literal = blocker.args[0]
    assert literal.endswith("(data:image/png;base64,iVBORw==)")
    assert editor.to_markdown() == "a" + literal + "b"
    assert not editor.has_pending_images()


def test_teardown_stops_image_embedding(qtbot, editor) -> None:
    editor.set_markdown("ab")
    editor.teardown()
    with qtbot.assertNotEmitted(editor.imageInserted, wait=200):
        assert not editor.paste_images([ImagePayload("image/png", b"\x89PNG")])
    assert editor.to_markdown() == "ab"
    assert not editor.has_pending_images()


def test_oversized_paste_leaves_buffer_untouched(qtbot) -> None:
    editor = MarkdownEditor(image_manager=ImagePasteManager(max_bytes=8))
    qtbot.addWidget(editor)
    editor.set_markdown("unchanged")
    with qtbot.waitSignal(editor.imagePasteFailed) as blocker:
        editor.insertFromMimeData(_image_mime(b"0123456789"))
    assert "too large" in blocker.args[0]
    assert editor.to_markdown() == "unchanged"


def test_text_paste_falls_through(editor) -> None:
    editor.set_markdown("")
    mime = QMimeData()
    mime.setText("plain text")
    editor.insertFromMimeData(mime)
    assert editor.to_markdown() == "plain text"


def test_font_size_is_clamped(editor) -> None:
    editor.set_font_point_size(2)
    assert editor.font().pointSize() == 6
