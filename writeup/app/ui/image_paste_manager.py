"""Background encoding of pasted images.

Validation happens on the GUI thread; base64 encoding runs in a worker thread
and the result comes back through a queued signal, so the editor inserts it at
whatever the caret is when the encode finishes.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Iterable, Optional

from PySide6.QtCore import QObject, Signal

from writeup.app import config
from writeup.app.errors import EncodingError
from writeup.app.image_paste import ImagePayload, encode_data_uri, first_image_payload, validate_image

logger = logging.getLogger(__name__)


class ImagePasteManager(QObject):
    imageEncoded = Signal(int, str)  # job id, data uri
    encodeFailed = Signal(int, str)  # job id, error message

    def __init__(self, max_bytes: Optional[int] = None, parent=None) -> None:
        super().__init__(parent)
        self.max_bytes = max_bytes if max_bytes is not None else config.load_max_image_bytes()
        self._job_ids = itertools.count(1)
        self._closed = False

    def shutdown(self) -> None:
        """Stop taking pastes and drop results of encodes still in flight."""
        self._closed = True

    def submit(self, payloads: Iterable[ImagePayload]) -> Optional[int]:
        """Start encoding the first image payload.

        Returns the job id, or ``None`` when nothing image-like was pasted or
        the manager has been shut down.
        Raises :class:`ValidationError` for oversized images before any work.
        """
        if self._closed:
            return None
        payload = first_image_payload(payloads)
        if payload is None:
            return None
        validate_image(payload, self.max_bytes)
        job_id = next(self._job_ids)
        thread = threading.Thread(target=self._encode_threadsafe, args=(job_id, payload), daemon=True)
        thread.start()
        return job_id

    def _encode_threadsafe(self, job_id: int, payload: ImagePayload) -> None:
        try:
            uri = encode_data_uri(payload)
        except EncodingError as exc:
            logger.warning("Image encode failed: %s", exc)
            self._deliver("encodeFailed", job_id, str(exc))
            return
        self._deliver("imageEncoded", job_id, uri)

    def _deliver(self, signal_name: str, job_id: int, value: str) -> None:
        if self._closed:
            logger.debug("Dropping image job %s after shutdown", job_id)
            return
        try:
            getattr(self, signal_name).emit(job_id, value)
        except RuntimeError as exc:
            # The owning editor was deleted while the worker was encoding.
            logger.debug("Dropping image job %s: %s", job_id, exc)
