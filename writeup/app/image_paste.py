from __future__ import annotations

import base64
import binascii
import re
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from writeup.app.config import DEFAULT_MAX_IMAGE_BYTES
from writeup.app.edit_commands import EditState, replace_selection
from writeup.app.errors import EncodingError, ValidationError

_MEDIA_TYPE = re.compile(r"^image/[A-Za-z0-9.+-]+$")


@dataclass(frozen=True)
class ImagePayload:
    media_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def is_image_type(media_type: str) -> bool:
    return (media_type or "").lower().startswith("image/")


def first_image_payload(payloads: Iterable[ImagePayload]) -> Optional[ImagePayload]:
    """Return the first image-typed payload; later ones are ignored for this paste."""
    for payload in payloads:
        if is_image_type(payload.media_type):
            return payload
    return None


def validate_image(payload: ImagePayload, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> None:
    if payload.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ValidationError(f"Image is too large ({payload.size} bytes). Maximum is {limit_mb:g} MB.")


def encode_data_uri(payload: ImagePayload) -> str:
    """Encode *payload* as ``data:<type>;base64,...``."""
    media_type = (payload.media_type or "").strip().lower()
    if not _MEDIA_TYPE.match(media_type):
        raise EncodingError(f"Unsupported media type: {payload.media_type!r}")
    try:
        encoded = base64.b64encode(bytes(payload.data)).decode("ascii")
    except (TypeError, ValueError, binascii.Error) as exc:
        raise EncodingError(f"Failed to encode image: {exc}") from exc
    return f"data:{media_type};base64,{encoded}"


def image_markdown(uri: str, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"![image-{timestamp_ms}]({uri})"


def insert_image(state: EditState, literal: str) -> EditState:
    """Place an image literal at the caret; the caret ends right after it."""
    return replace_selection(state, literal)


def ingest_paste(
    state: EditState,
    payloads: Iterable[ImagePayload],
    *,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    now_ms: Optional[int] = None,
) -> Optional[EditState]:
    """Run the whole paste pipeline synchronously.

    Returns ``None`` when the paste carries no image. Raises
    :class:`ValidationError` or :class:`EncodingError` without touching *state*.
    """
    payload = first_image_payload(payloads)
    if payload is None:
        return None
    validate_image(payload, max_bytes)
    uri = encode_data_uri(payload)
    return insert_image(state, image_markdown(uri, now_ms))
