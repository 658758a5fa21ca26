from __future__ import annotations

from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.views.support import CURSOR, MUTED_STYLE, edit_buffer, render_lines, selectable_line, truncate


class FilterForm:
    """JQL entry with recall of recently used filters."""

    def __init__(self) -> None:
        self.query = ""
        self.history: list[str] = []
        # -1 means the input line has focus rather than a history entry.
        self.history_cursor = -1

    @property
    def browsing(self) -> bool:
        return self.history_cursor >= 0

    def reset(self) -> None:
        self.query = ""
        self.history_cursor = -1

    def set_history(self, history: list[str]) -> None:
        self.history = list(history)
        self.history_cursor = min(self.history_cursor, len(self.history) - 1)

    def current_jql(self) -> str:
        if self.browsing and self.history_cursor < len(self.history):
            return self.history[self.history_cursor]
        return self.query.strip()

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        if press.key is Key.ESCAPE:
            self.reset()
            return state.clear_filter()
        if press.key is Key.ENTER:
            jql = self.current_jql()
            if not jql:
                return None
            self.reset()
            state.back()
            state.flash = "Filtering..."
            return actions.apply_filter(state.services, jql)
        if press.key is Key.UP:
            if self.history_cursor < len(self.history) - 1:
                self.history_cursor += 1
            return None
        if press.key is Key.DOWN:
            if self.browsing:
                self.history_cursor -= 1
            return None
        if press.key is Key.BACKSPACE:
            if not self.browsing:
                self.query = self.query[:-1]
            return None
        if press.text:
            self.history_cursor = -1
            self.query = edit_buffer(self.query, press)
        return None

    def render(self, state, width: int, height: int) -> Text:
        prompt = Text("JQL: ", style="bold") + Text(self.query + ("" if self.browsing else CURSOR))
        lines: list[Text | str] = [Text("JQL Filter", style="bold underline"), "", prompt, ""]
        if self.history:
            lines.append(Text("  Recent filters (Up/Down to browse):", style=MUTED_STYLE))
            for index, jql in enumerate(self.history):
                lines.append(selectable_line(truncate(f"    {jql}", width - 2), index == self.history_cursor))
        lines.extend(["", Text("  Enter: apply  Up/Down: history  Esc: clear filter", style=MUTED_STYLE)])
        return render_lines(lines[: max(1, height)])
