import pytest

from writeup.app.edit_commands import (
    COMMANDS_BY_NAME,
    EDIT_COMMANDS,
    EditState,
    apply_command,
    command_for_shortcut,
    insert_at_line_start,
    wrap_selection,
)


def test_bold_with_empty_selection_selects_placeholder() -> None:
    state = apply_command("bold", EditState("Hello world", 5, 5))
    assert state.text == "Hello**bold text** world"
    assert (state.selection_start, state.selection_end) == (7, 16)
    assert state.selected_text == "bold text"


def test_repeating_a_wrap_double_wraps() -> None:
    once = apply_command("bold", EditState("Hello world", 5, 5))
    twice = apply_command("bold", once)
    assert twice.text == "Hello****bold text**** world"
    assert twice.selected_text == "bold text"


def test_wrap_existing_selection() -> None:
    state = apply_command("italic", EditState("Hello world", 6, 11))
    assert state.text == "Hello *world*"
    assert state.selected_text == "world"


def test_link_uses_selection_as_label() -> None:
    state = apply_command("link", EditState("see docs", 4, 8))
    assert state.text == "see [docs](url)"
    assert state.selected_text == "docs"


def test_heading_inserted_at_line_start_keeps_line() -> None:
    state = apply_command("heading2", EditState("intro\nbody", 8, 8))
    assert state.text == "intro\n## Heading 2\nbody"
    assert (state.selection_start, state.selection_end) == (19, 19)


def test_line_commands_on_first_line() -> None:
    state = apply_command("quote", EditState("text", 2, 2))
    assert state.text == "> Quote\ntext"


def test_insert_at_line_start_uses_selection_start() -> None:
    state = insert_at_line_start(EditState("a\nbc\nd", 3, 6), "- ")
    assert state.text == "a\n- bc\nd"


def test_horizontal_rule_block() -> None:
    state = apply_command("horizontal_rule", EditState("ab", 1, 1))
    assert state.text == "a\n---\nb"
    assert (state.selection_start, state.selection_end) == (6, 6)


def test_code_block_selects_placeholder() -> None:
    state = apply_command("code_block", EditState("", 0, 0))
    assert state.text == "\n```javascript\n// code here\n```\n"
    assert state.selected_text == "// code here"


def test_indent_inserts_two_spaces() -> None:
    state = apply_command("indent", EditState("line", 0, 0))
    assert state.text == "  line"
    assert (state.selection_start, state.selection_end) == (2, 2)


def test_edit_state_clamps_and_orders_offsets() -> None:
    state = EditState("abc", 10, -3)
    assert (state.selection_start, state.selection_end) == (0, 3)
    assert state.has_selection


def test_wrap_selection_leaves_input_untouched() -> None:
    original = EditState("abc", 1, 2)
    wrap_selection(original, "[", "]")
    assert original == EditState("abc", 1, 2)


def test_unknown_command() -> None:
    with pytest.raises(KeyError):
        apply_command("strikethrough", EditState(""))


def test_command_table_names_are_unique() -> None:
    assert len(COMMANDS_BY_NAME) == len(EDIT_COMMANDS)
    for command in EDIT_COMMANDS:
        result = command.apply(EditState("sample", 3, 3))
        assert 0 <= result.selection_start <= result.selection_end <= len(result.text)


@pytest.mark.parametrize(
    ("key", "modifiers", "expected"),
    [
        ("b", {"ctrl": True}, "bold"),
        ("I", {"ctrl": True}, "italic"),
        ("k", {"meta": True}, "link"),
        ("tab", {}, "indent"),
        ("b", {}, None),
        ("x", {"ctrl": True}, None),
        ("tab", {"ctrl": True}, None),
        ("b", {"ctrl": True, "alt": True}, None),
    ],
)
def test_command_for_shortcut(key, modifiers, expected) -> None:
    assert command_for_shortcut(key, **modifiers) == expected
