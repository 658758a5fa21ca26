from __future__ import annotations

import textwrap
from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.models import Issue
from jiradash.views.support import CURSOR, MUTED_STYLE, edit_buffer, render_lines

COMMENT = "comment"
TIME = "time"

PROMPTS = {
    COMMENT: "Add comment: ",
    TIME: "Log time (e.g. 2h, 30m): ",
}


class DetailView:
    def __init__(self) -> None:
        self.issue: Optional[Issue] = None
        self.scroll = 0
        self.compose: Optional[str] = None
        self.buffer = ""
        self.stale = False

    @property
    def composing(self) -> bool:
        return self.compose is not None

    def show(self, issue: Issue, compose: Optional[str] = None) -> None:
        self.issue = issue
        self.scroll = 0
        self.stale = False
        self.compose = compose
        self.buffer = ""

    def refresh(self, issue: Issue, stale: bool = False) -> None:
        self.issue = issue
        self.stale = stale

    def start_compose(self, kind: str) -> None:
        self.compose = kind
        self.buffer = ""

    def cancel_compose(self) -> None:
        self.compose = None
        self.buffer = ""

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        if self.composing:
            return self._update_compose(press, state)
        if press.key is Key.ESCAPE:
            state.back()
        elif press.key is Key.DOWN or press.is_char("j"):
            self.scroll += 1
        elif press.key is Key.UP or press.is_char("k"):
            self.scroll = max(0, self.scroll - 1)
        elif press.is_char("c"):
            self.start_compose(COMMENT)
        elif press.is_char("t"):
            self.start_compose(TIME)
        elif press.is_char("m"):
            return state.open_transitions(self.issue, allow_bulk=False)
        return None

    def _update_compose(self, press: KeyPress, state) -> Optional[actions.Task]:
        if press.key is Key.ESCAPE:
            self.cancel_compose()
            return None
        if press.key is Key.ENTER:
            text = self.buffer.strip()
            kind = self.compose
            self.cancel_compose()
            if not text or self.issue is None:
                return None
            key = self.issue.key
            if kind == COMMENT:
                state.flash = f"Posting comment on {key}..."
                return actions.add_comment(state.services, key, text)
            state.flash = f"Logging {text} on {key}..."
            return actions.log_work(state.services, key, text)
        self.buffer = edit_buffer(self.buffer, press)
        return None

    def render(self, state, width: int, height: int) -> Text:
        if self.issue is None:
            return Text("No issue selected", style=MUTED_STYLE)
        issue = self.issue
        wrap = max(20, width - 4)
        lines: list[Text | str] = [Text(f"{issue.key}: {issue.summary}", style="bold")]
        if self.stale:
            lines.append(Text("(cached copy, refresh failed)", style=MUTED_STYLE))
        lines.append("")
        fields = [
            ("Status", issue.status),
            ("Priority", issue.priority),
            ("Type", issue.issue_type),
            ("Assignee", issue.assignee_name),
            ("Reporter", issue.reporter_name()),
            ("Project", issue.project_name()),
            ("Updated", issue.updated),
        ]
        for label, value in fields:
            if value:
                lines.append(Text.assemble((f"{label + ':':<10} ", "bold"), value))
        tracking = issue.time_tracking()
        if tracking:
            logged = "  |  ".join(f"{name}: {value}" for name, value in tracking.items())
            lines.append(Text.assemble(("Time:      ", "bold"), logged))
        lines.append("")

        description = issue.description_text()
        if description:
            lines.append(Text("Description:", style="bold"))
            for paragraph in description.split("\n"):
                lines.extend("  " + chunk for chunk in textwrap.wrap(paragraph, wrap) or [""])
            lines.append("")

        comments = issue.comments()
        if comments:
            lines.append(Text(f"Comments ({len(comments)}):", style="bold"))
            for comment in comments:
                lines.append(Text(f"  {comment.author}  {comment.created}", style=MUTED_STYLE))
                for paragraph in comment.body.split("\n"):
                    lines.extend("    " + chunk for chunk in textwrap.wrap(paragraph, wrap) or [""])

        body = lines[min(self.scroll, max(0, len(lines) - 1)) :]
        footer: list[Text | str] = []
        if self.compose is not None:
            footer = ["", Text(PROMPTS[self.compose], style="bold") + Text(self.buffer + CURSOR)]
        visible = max(1, height - len(footer))
        return render_lines(body[:visible] + footer)
