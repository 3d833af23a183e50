"""Pure authoring commands over a ``(text, selection)`` value.

Every command takes an :class:`EditState` and returns a new one; nothing here
touches a widget, so the editor can apply the result however it likes (the Qt
editor splices only the changed span to keep native undo working).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

INDENT_TEXT = "  "


@dataclass(frozen=True)
class EditState:
    text: str
    selection_start: int = 0
    selection_end: int = 0

    def __post_init__(self) -> None:
        length = len(self.text)
        start = max(0, min(int(self.selection_start), length))
        end = max(0, min(int(self.selection_end), length))
        if end < start:
            start, end = end, start
        object.__setattr__(self, "selection_start", start)
        object.__setattr__(self, "selection_end", end)

    @property
    def selected_text(self) -> str:
        return self.text[self.selection_start : self.selection_end]

    @property
    def has_selection(self) -> bool:
        return self.selection_end > self.selection_start


def wrap_selection(state: EditState, before: str, after: str = "", placeholder: str = "") -> EditState:
    """Surround the selection (or *placeholder*) with *before*/*after*.

    The returned selection covers the operand only, so invoking the same
    command again wraps it a second time rather than toggling it off.
    """
    start, end = state.selection_start, state.selection_end
    operand = state.text[start:end] or placeholder
    text = state.text[:start] + before + operand + after + state.text[end:]
    new_start = start + len(before)
    return EditState(text, new_start, new_start + len(operand))


def insert_block(state: EditState, before: str, after: str = "", placeholder: str = "") -> EditState:
    """Multi-line literals (code fences, rules) share the wrap primitive."""
    return wrap_selection(state, before, after, placeholder)


def line_start(text: str, offset: int) -> int:
    return text.rfind("\n", 0, offset) + 1


def insert_at_line_start(state: EditState, text: str) -> EditState:
    """Insert *text* before the content of the line holding the caret."""
    start = line_start(state.text, state.selection_start)
    new_text = state.text[:start] + text + state.text[start:]
    caret = start + len(text)
    return EditState(new_text, caret, caret)


def replace_selection(state: EditState, text: str) -> EditState:
    start, end = state.selection_start, state.selection_end
    new_text = state.text[:start] + text + state.text[end:]
    caret = start + len(text)
    return EditState(new_text, caret, caret)


@dataclass(frozen=True)
class EditCommand:
    name: str
    label: str
    kind: str  # "wrap", "line" or "block"
    before: str
    after: str = ""
    placeholder: str = ""
    shortcut: Optional[str] = None

    def apply(self, state: EditState) -> EditState:
        if self.kind == "line":
            return insert_at_line_start(state, self.before)
        if self.kind == "block":
            return insert_block(state, self.before, self.after, self.placeholder)
        return wrap_selection(state, self.before, self.after, self.placeholder)


EDIT_COMMANDS: list[EditCommand] = [
    EditCommand("bold", "Bold", "wrap", "**", "**", "bold text", shortcut="Ctrl+B"),
    EditCommand("italic", "Italic", "wrap", "*", "*", "italic text", shortcut="Ctrl+I"),
    EditCommand("code", "Inline Code", "wrap", "`", "`", "code"),
    EditCommand("heading1", "Heading 1", "line", "# Heading 1\n"),
    EditCommand("heading2", "Heading 2", "line", "## Heading 2\n"),
    EditCommand("heading3", "Heading 3", "line", "### Heading 3\n"),
    EditCommand("link", "Link", "wrap", "[", "](url)", "link text", shortcut="Ctrl+K"),
    EditCommand("image", "Image", "wrap", "![", "](image-url)", "alt text"),
    EditCommand("bullet_list", "Bullet List", "line", "- List item\n"),
    EditCommand("numbered_list", "Numbered List", "line", "1. List item\n"),
    EditCommand("quote", "Quote", "line", "> Quote\n"),
    EditCommand("horizontal_rule", "Horizontal Rule", "block", "\n---\n"),
    EditCommand("code_block", "Code Block", "block", "\n```javascript\n", "\n```\n", "// code here"),
    EditCommand("indent", "Indent", "wrap", INDENT_TEXT, shortcut="Tab"),
]

COMMANDS_BY_NAME: dict[str, EditCommand] = {cmd.name: cmd for cmd in EDIT_COMMANDS}

_SHORTCUT_KEYS = {"b": "bold", "i": "italic", "k": "link"}


def apply_command(name: str, state: EditState) -> EditState:
    try:
        command = COMMANDS_BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown edit command: {name}") from None
    return command.apply(state)


def command_for_shortcut(key: str, *, ctrl: bool = False, meta: bool = False, alt: bool = False) -> Optional[str]:
    """Map a key press to a command name.

    Ctrl or Meta (Cmd on macOS) plus B/I/K pick bold/italic/link; a bare Tab
    indents. Anything else is left to the host widget.
    """
    key = (key or "").lower()
    if alt:
        return None
    if ctrl or meta:
        return _SHORTCUT_KEYS.get(key)
    if key == "tab":
        return "indent"
    return None
