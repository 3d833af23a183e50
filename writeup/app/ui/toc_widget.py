from __future__ import annotations

from typing import Iterable, Optional

from PySide6.QtCore import QPoint, Qt, Signal
from PySide6.QtGui import QAction, QBrush, QColor, QFont
from PySide6.QtWidgets import (
    QApplication,
    QFrame,
    QLabel,
    QMenu,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
)

from writeup.app.outline import OutlineNode, iter_nodes

ID_ROLE = int(Qt.ItemDataRole.UserRole)
LEVEL_ROLE = ID_ROLE + 1


class TableOfContentsWidget(QFrame):
    """Collapsible outline of the document's headings.

    Rebuilding resets expansion to the default (roots open, the rest closed).
    Clicking a label activates the heading; the branch arrow only toggles it.
    """

    headingActivated = Signal(str)  # heading id to scroll the preview to
    linkCopied = Signal(str)

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.setObjectName("tocWidget")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        self.setStyleSheet(
            """
            QFrame#tocWidget {
                border: 1px solid #aaa;
                border-radius: 6px;
            }
            QTreeWidget {
                background: transparent;
            }
            QTreeWidget#tocTree::item {
                padding: 0px 2px;
            }
            """
        )
        self._forest: list[OutlineNode] = []
        self._items: dict[str, QTreeWidgetItem] = {}
        self._active_id = ""
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(2)

        self.header = QLabel("Contents")
        self.header.setStyleSheet("font-weight: 600; padding: 2px 4px;")
        layout.addWidget(self.header)

        self.tree = QTreeWidget()
        self.tree.setObjectName("tocTree")
        self.tree.setHeaderHidden(True)
        self.tree.setIndentation(12)
        self.tree.setUniformRowHeights(True)
        self.tree.setExpandsOnDoubleClick(False)
        self.tree.itemClicked.connect(self._on_item_clicked)
        self.tree.itemActivated.connect(self._on_item_clicked)
        self.tree.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._show_context_menu)
        layout.addWidget(self.tree, 1)

        self.setMinimumWidth(160)

    # --- Public API -----------------------------------------------------
    def set_outline(self, forest: Iterable[OutlineNode]) -> None:
        """Rebuild the tree from a freshly parsed outline forest."""
        self._forest = list(forest or [])
        self._items = {}
        self.tree.clear()
        for node in self._forest:
            self.tree.addTopLevelItem(self._build_item(node))
        # Default expansion: top-level entries open, deeper ones closed.
        for item in self._items.values():
            item.setExpanded(item.parent() is None)
        self._update_placeholder()
        if self._active_id not in {node.id for node in iter_nodes(self._forest)}:
            self._active_id = ""
        self._apply_active_style()

    def outline(self) -> list[OutlineNode]:
        return list(self._forest)

    def active_heading(self) -> str:
        return self._active_id

    def set_active_heading(self, heading_id: str) -> None:
        heading_id = heading_id or ""
        if heading_id == self._active_id:
            return
        self._active_id = heading_id
        self._apply_active_style()
        item = self._items.get(heading_id)
        if item is not None and self._is_visible(item):
            # scrollToItem expands collapsed ancestors; tracking must not.
            self.tree.scrollToItem(item)

    @staticmethod
    def _is_visible(item: QTreeWidgetItem) -> bool:
        parent = item.parent()
        while parent is not None:
            if not parent.isExpanded():
                return False
            parent = parent.parent()
        return True

    def is_expanded(self, heading_id: str) -> bool:
        item = self._items.get(heading_id)
        return bool(item and item.isExpanded())

    def expanded_ids(self) -> set[str]:
        return {hid for hid, item in self._items.items() if item.isExpanded()}

    def toggle_expanded(self, heading_id: str) -> None:
        """Flip one node's disclosure state; the active heading is untouched."""
        item = self._items.get(heading_id)
        if item is not None:
            item.setExpanded(not item.isExpanded())

    def activate_heading(self, heading_id: str) -> None:
        """Label click: mark active optimistically and ask for a scroll."""
        if heading_id not in self._items:
            return
        self.set_active_heading(heading_id)
        self.headingActivated.emit(heading_id)

    # --- Internal helpers -----------------------------------------------
    def _build_item(self, node: OutlineNode) -> QTreeWidgetItem:
        text = node.text or "(untitled heading)"
        item = QTreeWidgetItem([text])
        item.setToolTip(0, text)
        item.setData(0, ID_ROLE, node.id)
        item.setData(0, LEVEL_ROLE, node.level)
        if node.level <= 2:
            font = QFont(item.font(0))
            font.setWeight(QFont.Weight.DemiBold if node.level == 1 else QFont.Weight.Medium)
            item.setFont(0, font)
        self._items[node.id] = item
        for child in node.children:
            item.addChild(self._build_item(child))
        return item

    def _apply_active_style(self) -> None:
        highlight = QBrush(QColor(108, 180, 255, 60))
        clear = QBrush()
        for heading_id, item in self._items.items():
            item.setBackground(0, highlight if heading_id == self._active_id else clear)

    def _on_item_clicked(self, item: QTreeWidgetItem, column: int = 0) -> None:
        if not item:
            return
        heading_id = item.data(0, ID_ROLE)
        if heading_id:
            self.activate_heading(str(heading_id))

    def _show_context_menu(self, pos: QPoint) -> None:
        item = self.tree.itemAt(pos)
        if not item:
            return
        heading_id = item.data(0, ID_ROLE)
        if not heading_id:
            return
        menu = QMenu(self)
        copy_action = QAction("Copy Link Location", self)
        copy_action.triggered.connect(lambda: self.copy_link(str(heading_id)))
        menu.addAction(copy_action)
        menu.exec(self.tree.viewport().mapToGlobal(pos))

    def copy_link(self, heading_id: str) -> Optional[str]:
        if not heading_id:
            return None
        link = f"#{heading_id}"
        QApplication.clipboard().setText(link)
        self.linkCopied.emit(link)
        return link

    def _update_placeholder(self) -> None:
        if self._forest:
            return
        item = QTreeWidgetItem(["(No headings)"])
        item.setFlags(Qt.ItemFlag.NoItemFlags)
        self.tree.addTopLevelItem(item)
