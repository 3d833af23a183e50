import json

from writeup.app import config


def test_defaults_without_file(isolated_config) -> None:
    assert not isolated_config.exists()
    assert config.load_autosave_delay_ms() == 30_000
    assert config.load_max_image_bytes() == 2 * 1024 * 1024
    assert config.load_viewport_band() == (0.2, 0.8)
    assert config.load_preview_visible() is True
    assert config.load_documents_root() is None


def test_corrupt_file_falls_back_to_defaults(isolated_config) -> None:
    isolated_config.write_text("not json", encoding="utf-8")
    assert config.load_autosave_delay_ms() == 30_000
    assert config.load_editor_font_size() == 14


def test_updates_are_merged(isolated_config) -> None:
    config.save_preview_visible(False)
    config.save_documents_root("/tmp/docs")
    payload = json.loads(isolated_config.read_text(encoding="utf-8"))
    assert payload["preview_visible"] is False
    assert config.load_documents_root() == "/tmp/docs"


def test_invalid_values_are_ignored(isolated_config) -> None:
    isolated_config.write_text(
        json.dumps({"autosave_delay_ms": -5, "viewport_band": [0.9, 0.5], "max_image_bytes": "lots"}),
        encoding="utf-8",
    )
    assert config.load_autosave_delay_ms() == 30_000
    assert config.load_viewport_band() == (0.2, 0.8)
    assert config.load_max_image_bytes() == 2 * 1024 * 1024


def test_font_size_is_clamped() -> None:
    config.save_editor_font_size(100)
    assert config.load_editor_font_size() == 32


def test_api_base_trailing_slash(isolated_config) -> None:
    isolated_config.write_text(json.dumps({"api_base": "http://host/"}), encoding="utf-8")
    assert config.load_api_base() == "http://host"
