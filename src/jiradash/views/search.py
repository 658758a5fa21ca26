from __future__ import annotations

from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.models import Issue
from jiradash.views.support import (
    CURSOR,
    MUTED_STYLE,
    ScrollWindow,
    edit_buffer,
    render_lines,
    selectable_line,
    truncate,
)


class SearchView:
    """Incremental lookup over the local cache by key or summary."""

    def __init__(self) -> None:
        self.query = ""
        self.results: list[Issue] = []
        self.window = ScrollWindow()

    def reset(self) -> None:
        self.query = ""
        self.results = []
        self.window.reset()

    def set_results(self, query: str, issues: list[Issue]) -> bool:
        # Late answers for an older query are dropped.
        if query != self.query:
            return False
        self.results = issues
        self.window.reset()
        return True

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        if press.key is Key.ESCAPE:
            self.reset()
            state.back()
            return None
        if press.key is Key.DOWN:
            self.window.move_down(len(self.results))
            return None
        if press.key is Key.UP:
            self.window.move_up()
            return None
        if press.key is Key.ENTER:
            if not self.results:
                return None
            self.window.clamp(len(self.results))
            issue = self.results[self.window.cursor]
            self.reset()
            return state.open_detail(issue)

        query = edit_buffer(self.query, press)
        if query == self.query:
            return None
        self.query = query
        if not query:
            self.results = []
            self.window.reset()
            return None
        return actions.search_cache(state.services, query)

    def render(self, state, width: int, height: int) -> Text:
        lines: list[Text | str] = [Text("Search: ", style="bold") + Text(self.query + CURSOR), ""]
        self.window.resize(height - 4, len(self.results))
        if self.query and not self.results:
            lines.append(Text("No results", style=MUTED_STYLE))
        for index in self.window.visible_range(len(self.results)):
            issue = self.results[index]
            line = truncate(f"  {issue.key}  {issue.summary}  [{issue.status}]", width - 2)
            lines.append(selectable_line(line, index == self.window.cursor))
        hidden = len(self.results) - len(self.window.visible_range(len(self.results))) - self.window.offset
        if hidden > 0:
            lines.append(Text(f"  +{hidden} more", style=MUTED_STYLE))
        lines.append("")
        lines.append(Text("Enter: open  Esc: cancel", style=MUTED_STYLE))
        return render_lines(lines)
