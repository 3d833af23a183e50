from writeup.app.ui.heading_utils import heading_id, heading_slug


def test_heading_id_format() -> None:
    assert heading_id(0, "Hello World") == "heading-0-hello-world"


def test_heading_id_is_deterministic() -> None:
    assert heading_id(4, "Getting Started!") == heading_id(4, "Getting Started!")


def test_punctuation_runs_collapse_to_one_hyphen() -> None:
    assert heading_id(3, "  C++ & Rust!  ") == "heading-3-c-rust"


def test_empty_slug_keeps_counter_prefix() -> None:
    assert heading_id(2, "") == "heading-2-"
    assert heading_id(1, "!!!") == "heading-1-"


def test_non_ascii_letters_are_dropped() -> None:
    assert heading_slug("Café") == "caf"
    assert heading_slug("日本語") == ""


def test_repeated_titles_differ_by_counter() -> None:
    assert heading_id(0, "Intro") != heading_id(1, "Intro")
