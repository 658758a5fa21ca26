from __future__ import annotations

from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.models import Issue
from jiradash.views.support import MUTED_STYLE, ScrollWindow, render_lines, selectable_line, truncate


class IssueListView:
    def __init__(self) -> None:
        self.window = ScrollWindow()

    def selected_issue(self, issues: list[Issue]) -> Optional[Issue]:
        if not issues:
            return None
        self.window.clamp(len(issues))
        return issues[self.window.cursor]

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        issues = state.issues
        if press.key is Key.DOWN or press.is_char("j"):
            self.window.move_down(len(issues))
        elif press.key is Key.UP or press.is_char("k"):
            self.window.move_up()
        elif press.key is Key.ENTER:
            issue = self.selected_issue(issues)
            if issue is not None:
                return state.open_detail(issue)
        elif press.is_char("m"):
            return state.open_transitions(self.selected_issue(issues))
        elif press.is_char("c"):
            issue = self.selected_issue(issues)
            if issue is not None:
                return state.open_detail(issue, compose="comment")
        elif press.is_char("t"):
            issue = self.selected_issue(issues)
            if issue is not None:
                return state.open_detail(issue, compose="time")
        elif press.is_char("n"):
            state.open_create()
        return None

    def render(self, state, width: int, height: int, active: bool = True) -> Text:
        issues = state.issues
        self.window.resize(height - 1, len(issues))
        title = "My Issues" if not state.filter_jql else f"Filter: {state.filter_jql}"
        lines: list[Text | str] = [Text(truncate(f"{title} ({len(issues)})", width), style="bold underline")]
        if not issues:
            lines.append(Text("No issues found", style=MUTED_STYLE))
            return render_lines(lines)

        status_width = 14
        summary_width = max(8, width - status_width - 16)
        for index in self.window.visible_range(len(issues)):
            issue = issues[index]
            marker = "*" if issue.key in state.selection else " "
            line = (
                f"{marker} {issue.key:<12} "
                f"{truncate(issue.summary, summary_width):<{summary_width}} "
                f"{truncate(issue.status, status_width):>{status_width}}"
            )
            lines.append(selectable_line(line, active and index == self.window.cursor))
        return render_lines(lines)
