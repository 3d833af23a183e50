from __future__ import annotations

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def heading_slug(text: str) -> str:
    """Return the lower-case, hyphen-joined slug for a heading title."""
    return _NON_ALNUM.sub("-", (text or "").lower()).strip("-")


def heading_id(occurrence_index: int, text: str) -> str:
    """Return the anchor id for the Nth heading of a document.

    Both the preview renderer and the outline parser call this with a counter
    that starts at 0 for each pass, so the same buffer always produces the same
    ids in both places. The numeric prefix keeps ids unique even when the slug
    is empty or repeated.
    """
    return f"heading-{occurrence_index}-{heading_slug(text)}"
