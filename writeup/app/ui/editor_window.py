from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QByteArray, Qt, QTimer
from PySide6.QtGui import QAction, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QSplitter,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from writeup.app import config
from writeup.app.autosave import AutosaveScheduler
from writeup.app.documents import (
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    DocumentStore,
    build_save_fields,
)
from writeup.app.edit_commands import EDIT_COMMANDS
from writeup.app.errors import PersistenceError, ValidationError
from writeup.app.outline import parse_outline
from .markdown_editor import MarkdownEditor
from .preview_panel import PreviewPanel
from .toc_widget import TableOfContentsWidget
from .viewport_tracker import ViewportTracker

logger = logging.getLogger(__name__)


class EditorWindow(QMainWindow):
    """Single-document authoring window: editor, live preview and outline."""

    def __init__(
        self,
        store: DocumentStore,
        document_id: str,
        autosave_delay_ms: Optional[int] = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.store = store
        self.document_id = document_id
        self._status = STATUS_DRAFT
        self._last_saved_content: Optional[str] = None
        self._badge_base_style = "border: 1px solid #666; padding: 2px 6px; border-radius: 3px;"
        self._font_size = config.load_editor_font_size(14)

        self.title_edit = QLineEdit()
        self.title_edit.setPlaceholderText("Title")
        self.tags_edit = QLineEdit()
        self.tags_edit.setPlaceholderText("Tags (comma separated, max 5)")

        self.editor = MarkdownEditor()
        self.editor.set_font_point_size(self._font_size)
        self.editor.statusMessage.connect(lambda msg, ms: self.statusBar().showMessage(msg, ms))
        self.editor.imagePasteFailed.connect(self._on_image_paste_failed)

        self.tracker = ViewportTracker(band=config.load_viewport_band(), parent=self)
        self.preview = PreviewPanel(tracker=self.tracker)
        self.toc = TableOfContentsWidget()
        self.toc.linkCopied.connect(lambda link: self.statusBar().showMessage(f"Copied {link}", 2000))

        # Tracker drives the highlight; clicks go the other way.
        self.tracker.activeHeadingChanged.connect(self.toc.set_active_heading)
        self.toc.headingActivated.connect(self._on_heading_activated)

        self.autosave = AutosaveScheduler(self._autosave, delay_ms=autosave_delay_ms, parent=self)
        self.autosave.autosaved.connect(lambda: self.statusBar().showMessage("Draft autosaved", 2000))

        self._refresh_timer = QTimer(self)
        self._refresh_timer.setSingleShot(True)
        self._refresh_timer.setInterval(150)
        self._refresh_timer.timeout.connect(self.refresh_views)
        self.editor.textChanged.connect(self._on_text_changed)
        self.editor.document().modificationChanged.connect(lambda _: self._update_dirty_indicator())
        self.title_edit.textChanged.connect(lambda _: self._update_title())

        self._build_layout()
        self._build_toolbar()

        self._dirty_status_label = QLabel("")
        self._dirty_status_label.setObjectName("dirtyStatusLabel")
        self.statusBar().addPermanentWidget(self._dirty_status_label, 0)

        zoom_in = QShortcut(QKeySequence.StandardKey.ZoomIn, self)
        zoom_out = QShortcut(QKeySequence.StandardKey.ZoomOut, self)
        zoom_in.activated.connect(lambda: self._adjust_font_size(1))
        zoom_out.activated.connect(lambda: self._adjust_font_size(-1))

        self._load_content()
        self._restore_geometry()
        self._update_title()

    # --- Layout ---------------------------------------------------------
    def _build_layout(self) -> None:
        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(4)

        meta_row = QHBoxLayout()
        meta_row.addWidget(self.title_edit, 3)
        meta_row.addWidget(self.tags_edit, 2)
        layout.addLayout(meta_row)

        self.splitter = QSplitter(Qt.Orientation.Horizontal)
        self.splitter.addWidget(self.toc)
        self.splitter.addWidget(self.editor)
        self.splitter.addWidget(self.preview)
        self.splitter.setStretchFactor(0, 0)
        self.splitter.setStretchFactor(1, 3)
        self.splitter.setStretchFactor(2, 3)
        layout.addWidget(self.splitter, 1)
        self.preview.setVisible(config.load_preview_visible())
        self.setCentralWidget(central)

    def _build_toolbar(self) -> None:
        toolbar = QToolBar("Format")
        toolbar.setMovable(False)
        self.command_actions: dict[str, QAction] = {}
        for command in EDIT_COMMANDS:
            action = QAction(command.label, self)
            tip = command.label
            if command.shortcut:
                tip = f"{tip} ({command.shortcut})"
            action.setToolTip(tip)
            action.triggered.connect(lambda _checked=False, name=command.name: self.editor.run_command(name))
            toolbar.addAction(action)
            self.command_actions[command.name] = action
        self.addToolBar(Qt.ToolBarArea.TopToolBarArea, toolbar)

        doc_bar = QToolBar("Document")
        doc_bar.setMovable(False)
        save_action = QAction("Save", self)
        save_action.setShortcut(QKeySequence("Ctrl+S"))
        save_action.setShortcutContext(Qt.ShortcutContext.WidgetWithChildrenShortcut)
        save_action.triggered.connect(lambda: self.save(STATUS_DRAFT))
        publish_action = QAction("Publish", self)
        publish_action.triggered.connect(lambda: self.save(STATUS_PUBLISHED))
        self.preview_action = QAction("Preview", self)
        self.preview_action.setCheckable(True)
        self.preview_action.setChecked(config.load_preview_visible())
        self.preview_action.toggled.connect(self.set_preview_visible)
        doc_bar.addAction(save_action)
        doc_bar.addAction(publish_action)
        doc_bar.addSeparator()
        doc_bar.addAction(self.preview_action)
        self.addToolBar(Qt.ToolBarArea.TopToolBarArea, doc_bar)

    # --- Content --------------------------------------------------------
    def _load_content(self) -> None:
        try:
            document = self.store.load(self.document_id)
        except PersistenceError as exc:
            logger.warning("Load failed for %s: %s", self.document_id, exc)
            QMessageBox.critical(self, "Error", f"Failed to load document: {exc}")
            return
        self.title_edit.setText(document.title)
        self.tags_edit.setText(", ".join(document.tags))
        self._status = document.status
        self.editor.set_markdown(document.content)
        self._last_saved_content = document.content
        # set_markdown fires textChanged; a fresh load is not an edit.
        self.autosave.teardown()
        self.refresh_views()
        self.statusBar().showMessage("Ready")

    def _on_text_changed(self) -> None:
        self.autosave.notify_change(self.editor.to_markdown())
        self._refresh_timer.start()
        self._update_dirty_indicator()

    def refresh_views(self) -> None:
        """Rebuild the outline and re-render the preview from the buffer."""
        self._refresh_timer.stop()
        text = self.editor.to_markdown()
        self.toc.set_outline(parse_outline(text))
        self.preview.set_markdown(text)

    def _tags(self) -> list[str]:
        return [part for part in self.tags_edit.text().split(",") if part.strip()]

    def save(self, status: str = STATUS_DRAFT) -> bool:
        """Explicit save; validation and store errors are reported to the user."""
        try:
            fields = build_save_fields(
                self.title_edit.text(), self.editor.to_markdown(), self._tags(), status
            )
        except ValidationError as exc:
            QMessageBox.warning(self, "Cannot Save", str(exc))
            return False
        try:
            self.store.save(self.document_id, fields)
        except PersistenceError as exc:
            QMessageBox.critical(self, "Save Failed", str(exc))
            return False
        self.autosave.teardown()
        self._mark_saved(fields["content"])
        self._status = status
        self._update_title()
        self.statusBar().showMessage("Published" if status == STATUS_PUBLISHED else "Saved", 2000)
        return True

    def _autosave(self) -> None:
        try:
            fields = build_save_fields(
                self.title_edit.text(), self.editor.to_markdown(), self._tags(), STATUS_DRAFT
            )
        except ValidationError as exc:
            logger.info("Skipping autosave for %s: %s", self.document_id, exc)
            return
        self.store.save(self.document_id, fields)
        self._mark_saved(fields["content"])

    def _mark_saved(self, content: str) -> None:
        self._last_saved_content = content
        self.editor.document().setModified(False)
        self._update_dirty_indicator()

    def _on_heading_activated(self, heading_id: str) -> None:
        if self.preview.scroll_to_heading(heading_id):
            self.tracker.set_active_heading(heading_id)

    def _on_image_paste_failed(self, message: str) -> None:
        QMessageBox.warning(self, "Image Paste", message)

    def set_preview_visible(self, visible: bool) -> None:
        self.preview.setVisible(bool(visible))
        config.save_preview_visible(bool(visible))
        if visible:
            self.refresh_views()

    # --- Window chrome --------------------------------------------------
    def _is_dirty(self) -> bool:
        return self.editor.to_markdown() != (self._last_saved_content or "")

    def _update_title(self) -> None:
        label = self.title_edit.text().strip() or self.document_id
        if self._status == STATUS_PUBLISHED:
            self.setWindowTitle(f"{label} | Published | Writeup")
        else:
            self.setWindowTitle(f"{label} | Writeup")

    def _update_dirty_indicator(self) -> None:
        if not hasattr(self, "_dirty_status_label"):
            return
        if self._is_dirty():
            color, tip = "#e57373", "Unsaved changes"
        else:
            color, tip = "#81c784", "All changes saved"
        self._dirty_status_label.setText("●")
        self._dirty_status_label.setStyleSheet(
            self._badge_base_style + f" background-color: {color}; color: #000; margin-right: 6px;"
        )
        self._dirty_status_label.setToolTip(tip)

    def _adjust_font_size(self, delta: int) -> None:
        new_size = max(6, min(32, self._font_size + delta))
        if new_size == self._font_size:
            return
        self._font_size = new_size
        self.editor.set_font_point_size(self._font_size)
        config.save_editor_font_size(self._font_size)

    def _restore_geometry(self) -> None:
        geom = config.load_window_geometry()
        if geom:
            self.restoreGeometry(QByteArray.fromBase64(geom.encode("ascii")))
        else:
            self.resize(1200, 800)

    def _save_geometry(self) -> None:
        geom = self.saveGeometry().toBase64().data().decode("ascii")
        try:
            config.save_window_geometry(geom)
        except OSError as exc:
            logger.debug("Could not persist window geometry: %s", exc)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        # A pending autosave is dropped, not flushed.
        self.autosave.teardown()
        self._refresh_timer.stop()
        self.editor.teardown()
        self.preview.teardown()
        self._save_geometry()
        self.store.close()
        super().closeEvent(event)
