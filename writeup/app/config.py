from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

GLOBAL_CONFIG = Path(os.getenv("WRITEUP_CONFIG") or Path.home() / ".writeup_config.json")

DEFAULT_AUTOSAVE_DELAY_MS = 30_000
DEFAULT_MAX_IMAGE_BYTES = 2 * 1024 * 1024
DEFAULT_VIEWPORT_BAND = (0.2, 0.8)


def init_settings() -> None:
    GLOBAL_CONFIG.parent.mkdir(parents=True, exist_ok=True)


def _read_global_config() -> dict:
    """Return the parsed global config, or an empty dict on error/missing."""
    if not GLOBAL_CONFIG.exists():
        return {}
    try:
        payload = json.loads(GLOBAL_CONFIG.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _update_global_config(updates: dict) -> None:
    """Merge updates into global config file."""
    existing = _read_global_config()
    existing.update(updates)
    GLOBAL_CONFIG.parent.mkdir(parents=True, exist_ok=True)
    GLOBAL_CONFIG.write_text(json.dumps(existing, indent=2), encoding="utf-8")


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def load_autosave_delay_ms(default: int = DEFAULT_AUTOSAVE_DELAY_MS) -> int:
    """Delay between the last edit and the background save (default: 30s)."""
    return _positive_int(_read_global_config().get("autosave_delay_ms"), default)


def save_autosave_delay_ms(ms: int) -> None:
    _update_global_config({"autosave_delay_ms": _positive_int(ms, DEFAULT_AUTOSAVE_DELAY_MS)})


def load_max_image_bytes(default: int = DEFAULT_MAX_IMAGE_BYTES) -> int:
    """Largest pasted image accepted for inline embedding (default: 2 MiB)."""
    return _positive_int(_read_global_config().get("max_image_bytes"), default)


def load_viewport_band() -> tuple[float, float]:
    """Return (top, bottom) margins of the heading observation band as viewport fractions."""
    raw = _read_global_config().get("viewport_band")
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        try:
            top, bottom = float(raw[0]), float(raw[1])
        except (TypeError, ValueError):
            return DEFAULT_VIEWPORT_BAND
        if 0.0 <= top <= 1.0 and 0.0 <= bottom <= 1.0 and top + bottom <= 1.0:
            return top, bottom
    return DEFAULT_VIEWPORT_BAND


def load_editor_font_size(default: int = 14) -> int:
    value = _read_global_config().get("editor_font_size")
    try:
        return max(6, min(32, int(value)))
    except (TypeError, ValueError):
        return default


def save_editor_font_size(size: int) -> None:
    _update_global_config({"editor_font_size": int(size)})


def load_preview_visible() -> bool:
    """Return whether the preview pane starts visible (default: True)."""
    val = _read_global_config().get("preview_visible")
    if val is None:
        return True
    return bool(val)


def save_preview_visible(visible: bool) -> None:
    _update_global_config({"preview_visible": bool(visible)})


def load_pygments_style(default: str = "monokai") -> str:
    """Load preferred Pygments style for code fences in the preview."""
    payload = _read_global_config()
    style = payload.get("pygments_style")
    if isinstance(style, str) and style.strip():
        return style.strip()
    return default


def load_documents_root() -> Optional[str]:
    root = _read_global_config().get("documents_root")
    return root if isinstance(root, str) and root.strip() else None


def save_documents_root(path: str) -> None:
    _update_global_config({"documents_root": str(Path(path))})


def load_api_base() -> Optional[str]:
    base = _read_global_config().get("api_base")
    return base.rstrip("/") if isinstance(base, str) and base.strip() else None


def load_window_geometry() -> Optional[str]:
    geom = _read_global_config().get("window_geometry")
    return geom if isinstance(geom, str) else None


def save_window_geometry(geometry: str) -> None:
    _update_global_config({"window_geometry": geometry})
