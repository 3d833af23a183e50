from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from writeup.app import config
from writeup.app.errors import PersistenceError

logger = logging.getLogger(__name__)


class AutosaveScheduler(QObject):
    """Debounce buffer changes into one background save.

    Idle until a non-empty change arrives, then Pending until the single-shot
    timer fires (one save, back to Idle) or :meth:`teardown` drops it.
    """

    autosaved = Signal()

    def __init__(self, save_callback: Callable[[], None], delay_ms: Optional[int] = None, parent=None) -> None:
        super().__init__(parent)
        self._save_callback = save_callback
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(delay_ms if delay_ms is not None else config.load_autosave_delay_ms())
        self._timer.timeout.connect(self._fire)

    @property
    def delay_ms(self) -> int:
        return self._timer.interval()

    def is_pending(self) -> bool:
        return self._timer.isActive()

    def notify_change(self, content: str) -> None:
        if not content:
            return
        # QTimer.start() restarts an active timer, superseding the old deadline.
        self._timer.start()

    def teardown(self) -> None:
        """Cancel a pending save without running it."""
        if self._timer.isActive():
            logger.debug("Dropping pending autosave on teardown")
        self._timer.stop()

    def _fire(self) -> None:
        try:
            self._save_callback()
        except PersistenceError as exc:
            logger.warning("Autosave failed: %s", exc)
            return
        self.autosaved.emit()
