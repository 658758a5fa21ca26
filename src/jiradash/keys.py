from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Key(Enum):
    CHAR = "char"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    ENTER = "enter"
    ESCAPE = "escape"
    BACKSPACE = "backspace"
    TAB = "tab"
    SHIFT_TAB = "shift+tab"
    SPACE = "space"
    CTRL_C = "ctrl+c"
    CTRL_S = "ctrl+s"
    OTHER = "other"


_NAMED = {
    "up": Key.UP,
    "down": Key.DOWN,
    "left": Key.LEFT,
    "right": Key.RIGHT,
    "enter": Key.ENTER,
    "escape": Key.ESCAPE,
    "backspace": Key.BACKSPACE,
    "tab": Key.TAB,
    "shift+tab": Key.SHIFT_TAB,
    "space": Key.SPACE,
    "ctrl+c": Key.CTRL_C,
    "ctrl+s": Key.CTRL_S,
}


@dataclass(frozen=True)
class KeyPress:
    key: Key
    char: str = ""

    @classmethod
    def of(cls, char: str) -> "KeyPress":
        if char == " ":
            return cls(Key.SPACE, " ")
        return cls(Key.CHAR, char)

    def is_char(self, char: str) -> bool:
        return self.key is Key.CHAR and self.char == char

    @property
    def text(self) -> str:
        """What this key inserts into a text buffer, if anything."""
        if self.key is Key.SPACE:
            return " "
        if self.key is Key.CHAR:
            return self.char
        return ""


def decode_key(event: Any) -> KeyPress:
    """Turn a Textual key event into a KeyPress."""
    name = getattr(event, "key", "") or ""
    if name in _NAMED:
        return KeyPress(_NAMED[name], " " if name == "space" else "")
    character = getattr(event, "character", None)
    if character and len(character) == 1 and character.isprintable():
        return KeyPress(Key.CHAR, character)
    return KeyPress(Key.OTHER)
