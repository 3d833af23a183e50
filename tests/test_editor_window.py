import pytest

from writeup.app.documents import Document, DocumentStore
from writeup.app.errors import PersistenceError
from writeup.app.image_paste import ImagePayload
from writeup.app.ui import editor_window
from writeup.app.ui.editor_window import EditorWindow


class MemoryStore(DocumentStore):
    def __init__(self, document=None, fail=False):
        self.document = document
        self.fail = fail
        self.saved = []
        self.closed = False

    def load(self, document_id):
        return self.document or Document(id=document_id)

    def save(self, document_id, fields):
        if self.fail:
            raise PersistenceError("store offline")
        self.saved.append((document_id, fields))

    def close(self):
        self.closed = True


class FakeMessageBox:
    shown = []

    @classmethod
    def warning(cls, parent, title, text):
        cls.shown.append(("warning", title, text))

    @classmethod
    def critical(cls, parent, title, text):
        cls.shown.append(("critical", title, text))


@pytest.fixture(autouse=True)
def message_boxes(monkeypatch):
    FakeMessageBox.shown = []
    monkeypatch.setattr(editor_window, "QMessageBox", FakeMessageBox)
    return FakeMessageBox.shown


def _window(qtbot, store, **kwargs) -> EditorWindow:
    window = EditorWindow(store, "post-1", **kwargs)
    qtbot.addWidget(window)
    return window


DOC = Document(id="post-1", title="Post", content="# A\n## B\n# C", tags=["notes"])


def test_load_populates_editor_outline_and_preview(qtbot) -> None:
    window = _window(qtbot, MemoryStore(DOC))
    assert window.title_edit.text() == "Post"
    assert window.tags_edit.text() == "notes"
    assert window.editor.to_markdown() == DOC.content
    assert [n.id for n in window.toc.outline()] == ["heading-0-a", "heading-2-c"]
    assert window.preview.heading_ids() == ["heading-0-a", "heading-1-b", "heading-2-c"]
    assert not window.autosave.is_pending()


def test_edits_refresh_outline(qtbot) -> None:
    window = _window(qtbot, MemoryStore(DOC))
    window.editor.set_markdown("# Only")
    qtbot.waitUntil(lambda: [n.id for n in window.toc.outline()] == ["heading-0-only"], timeout=2000)


def test_toolbar_action_runs_command(qtbot) -> None:
    window = _window(qtbot, MemoryStore(DOC))
    window.command_actions["bold"].trigger()
    assert window.editor.to_markdown().startswith("**bold text**")


def test_explicit_save_and_publish(qtbot) -> None:
    store = MemoryStore(DOC)
    window = _window(qtbot, store)
    assert window.save()
    assert window.save("published")
    assert [fields["status"] for _id, fields in store.saved] == ["draft", "published"]
    assert store.saved[0][1]["slug"] == "post"


def test_save_validation_error_is_reported(qtbot, message_boxes) -> None:
    store = MemoryStore(Document(id="post-1", title="", content="body"))
    window = _window(qtbot, store)
    assert not window.save()
    assert store.saved == []
    assert message_boxes[0][0] == "warning"


def test_save_persistence_error_is_reported(qtbot, message_boxes) -> None:
    window = _window(qtbot, MemoryStore(DOC, fail=True))
    assert not window.save()
    assert message_boxes == [("critical", "Save Failed", "store offline")]


def test_autosave_after_edit(qtbot) -> None:
    store = MemoryStore(DOC)
    window = _window(qtbot, store, autosave_delay_ms=50)
    window.editor.set_markdown("# Changed\n\nbody")
    qtbot.waitUntil(lambda: len(store.saved) == 1, timeout=2000)
    assert store.saved[0][1]["status"] == "draft"
    assert store.saved[0][1]["content"] == "# Changed\n\nbody"


def test_autosave_skips_invalid_document(qtbot) -> None:
    store = MemoryStore(Document(id="post-1", title="", content=""))
    window = _window(qtbot, store, autosave_delay_ms=30)
    window.editor.set_markdown("untitled draft")
    qtbot.wait(150)
    assert store.saved == []


def test_outline_click_scrolls_preview(qtbot) -> None:
    window = _window(qtbot, MemoryStore(DOC))
    window.toc.activate_heading("heading-2-c")
    assert window.tracker.active_heading() == "heading-2-c"
    assert window.toc.active_heading() == "heading-2-c"


def test_tracker_highlights_outline(qtbot) -> None:
    window = _window(qtbot, MemoryStore(DOC))
    window.tracker.activeHeadingChanged.emit("heading-1-b")
    assert window.toc.active_heading() == "heading-1-b"


def test_close_tears_down(qtbot) -> None:
    store = MemoryStore(DOC)
    window = _window(qtbot, store, autosave_delay_ms=10_000)
    window.show()
    window.editor.set_markdown("# Pending")
    assert window.autosave.is_pending()
    window.close()
    assert not window.autosave.is_pending()
    assert window.tracker.observed() == []
    assert store.closed
    assert store.saved == []
    assert window.editor.paste_images([ImagePayload("image/png", b"\x89PNG")]) is False
