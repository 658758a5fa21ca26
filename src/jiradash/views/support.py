from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

from rich.text import Text

from jiradash.keys import Key, KeyPress

SELECTED_STYLE = "bold reverse"
MUTED_STYLE = "dim"
CURSOR = "█"


@dataclass
class ScrollWindow:
    """Cursor over a list with a visible band ``[offset, offset + max_visible)``."""

    cursor: int = 0
    offset: int = 0
    max_visible: int = 10

    def move_down(self, total: int) -> None:
        if self.cursor >= total - 1:
            return
        self.cursor += 1
        if self.max_visible > 0 and self.cursor - self.offset >= self.max_visible:
            self.offset += 1

    def move_up(self) -> None:
        if self.cursor <= 0:
            return
        self.cursor -= 1
        if self.cursor < self.offset:
            self.offset -= 1

    def reset(self) -> None:
        self.cursor = 0
        self.offset = 0

    def clamp(self, total: int) -> None:
        if total <= 0:
            self.reset()
            return
        self.cursor = min(self.cursor, total - 1)
        self.offset = max(0, min(self.offset, self.cursor))
        if self.max_visible > 0 and self.cursor - self.offset >= self.max_visible:
            self.offset = self.cursor - self.max_visible + 1

    def resize(self, max_visible: int, total: int) -> None:
        self.max_visible = max(1, max_visible)
        self.clamp(total)

    def visible_range(self, total: int) -> range:
        return range(self.offset, min(self.offset + self.max_visible, total))


class SelectionSet:
    def __init__(self, keys: Iterable[str] = ()):
        self._keys: dict[str, None] = dict.fromkeys(keys)

    def toggle(self, key: str) -> bool:
        """Flip membership of ``key``; returns True when it is now selected."""
        if key in self._keys:
            del self._keys[key]
            return False
        self._keys[key] = None
        return True

    def clear(self) -> None:
        self._keys.clear()

    def keys(self) -> tuple[str, ...]:
        return tuple(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._keys))

    def __bool__(self) -> bool:
        return bool(self._keys)


class ModalStack:
    """Overlay pickers; at most one is open at a time."""

    def __init__(self) -> None:
        self._stack: list[Any] = []

    def push(self, modal: Any) -> bool:
        if self._stack:
            return False
        self._stack.append(modal)
        return True

    def pop(self) -> Optional[Any]:
        if not self._stack:
            return None
        return self._stack.pop()

    @property
    def top(self) -> Optional[Any]:
        return self._stack[-1] if self._stack else None

    def __bool__(self) -> bool:
        return bool(self._stack)

    def __len__(self) -> int:
        return len(self._stack)


def edit_buffer(buffer: str, press: KeyPress) -> str:
    """Apply a typing key to a single-line buffer."""
    if press.key is Key.BACKSPACE:
        return buffer[:-1]
    return buffer + press.text


def truncate(value: str, width: int) -> str:
    if width <= 3:
        return value[: max(0, width)]
    if len(value) <= width:
        return value
    return value[: width - 3] + "..."


def render_lines(lines: list[Text | str]) -> Text:
    return Text("\n").join(line if isinstance(line, Text) else Text(line) for line in lines)


def selectable_line(text: str, selected: bool) -> Text:
    return Text(text, style=SELECTED_STYLE) if selected else Text(text)
