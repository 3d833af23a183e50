from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from PySide6.QtCore import QObject, Signal

from writeup.app import config

logger = logging.getLogger(__name__)


class ViewportTracker(QObject):
    """Report which rendered heading is currently "in view".

    An observation band sits ``band_top`` of the viewport height below the top
    edge and ends ``band_bottom`` of the height above the bottom edge (with the
    defaults 0.2/0.8 it is a line one fifth of the way down). A heading whose
    rectangle touches the band is intersecting; headings that start
    intersecting in one evaluation are the batch's transitions, and the topmost
    of them becomes the active heading.
    """

    activeHeadingChanged = Signal(str)

    def __init__(self, band: Optional[tuple[float, float]] = None, parent=None) -> None:
        super().__init__(parent)
        self._band_top, self._band_bottom = band or config.load_viewport_band()
        self._observed: list[str] = []
        self._intersecting: set[str] = set()
        self._active_id = ""

    # --- Subscription ---------------------------------------------------
    def observe(self, heading_ids: Iterable[str]) -> None:
        """Replace the observed anchors; intersections are re-reported fresh."""
        self._observed = [hid for hid in heading_ids if hid]
        self._intersecting = set()

    def unobserve_all(self) -> None:
        self._observed = []
        self._intersecting = set()

    def observed(self) -> list[str]:
        return list(self._observed)

    def active_heading(self) -> str:
        return self._active_id

    def set_active_heading(self, heading_id: str) -> None:
        """Record an activation that did not come from scrolling (outline click)."""
        self._active_id = heading_id or ""

    # --- Evaluation -----------------------------------------------------
    def band(self, viewport_top: float, viewport_height: float) -> tuple[float, float]:
        start = viewport_top + viewport_height * self._band_top
        end = viewport_top + viewport_height * (1.0 - self._band_bottom)
        return start, max(start, end)

    def evaluate(
        self,
        rects: Mapping[str, tuple[float, float]],
        viewport_top: float,
        viewport_height: float,
    ) -> Optional[str]:
        """Process one batch of heading geometry.

        *rects* maps heading ids to ``(top, bottom)`` in the same coordinates
        as *viewport_top*. Returns the newly activated id, if any.
        """
        if not self._observed:
            return None
        band_start, band_end = self.band(viewport_top, viewport_height)
        now: set[str] = set()
        for heading_id in self._observed:
            rect = rects.get(heading_id)
            if rect is None:
                continue
            top, bottom = rect
            if top <= band_end and bottom >= band_start:
                now.add(heading_id)
        entered = now - self._intersecting
        self._intersecting = now
        if not entered:
            return None
        winner = min(entered, key=lambda hid: (rects[hid][0], self._observed.index(hid)))
        if winner != self._active_id:
            self._active_id = winner
            logger.debug("Active heading -> %s", winner)
            self.activeHeadingChanged.emit(winner)
        return winner
