from __future__ import annotations

from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.models import Issue
from jiradash.views.support import (
    MUTED_STYLE,
    ScrollWindow,
    render_lines,
    selectable_line,
    truncate,
)

TODO = "To Do"
IN_PROGRESS = "In Progress"
DONE = "Done"
COLUMNS = (TODO, IN_PROGRESS, DONE)


def classify_status(status: str) -> str:
    """Map a free-form status name onto one of the three board columns."""
    lowered = status.lower()
    if "done" in lowered or "closed" in lowered or "resolved" in lowered:
        return DONE
    if "progress" in lowered or "review" in lowered:
        return IN_PROGRESS
    return TODO


def group_by_column(issues: list[Issue]) -> dict[str, list[Issue]]:
    columns: dict[str, list[Issue]] = {name: [] for name in COLUMNS}
    for issue in issues:
        columns[classify_status(issue.status)].append(issue)
    return columns


class BoardView:
    def __init__(self) -> None:
        self.column = 0
        self.window = ScrollWindow()

    def _column_issues(self, issues: list[Issue]) -> list[Issue]:
        return group_by_column(issues)[COLUMNS[self.column]]

    def selected_issue(self, issues: list[Issue]) -> Optional[Issue]:
        column = self._column_issues(issues)
        if not column:
            return None
        self.window.clamp(len(column))
        return column[self.window.cursor]

    def move_column(self, delta: int) -> bool:
        """Step to a neighbouring column; False when already at that edge."""
        target = self.column + delta
        if target < 0 or target >= len(COLUMNS):
            return False
        self.column = target
        self.window.reset()
        return True

    def cycle_column(self, delta: int) -> None:
        self.column = (self.column + delta) % len(COLUMNS)
        self.window.reset()

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        issues = state.issues
        if press.key is Key.DOWN or press.is_char("j"):
            self.window.move_down(len(self._column_issues(issues)))
        elif press.key is Key.UP or press.is_char("k"):
            self.window.move_up()
        elif press.key is Key.TAB:
            self.cycle_column(1)
        elif press.key is Key.SHIFT_TAB:
            self.cycle_column(-1)
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
        columns = group_by_column(state.issues)
        col_width = max(12, (width - 2) // len(COLUMNS))
        # header, rule, and two scroll indicator lines
        self.window.resize(height - 4, len(columns[COLUMNS[self.column]]))

        rendered: list[list[Text]] = []
        for index, name in enumerate(COLUMNS):
            column = columns[name]
            lines = [Text(f"{name} ({len(column)})".center(col_width), style="bold"), Text("─" * col_width)]
            offset = self.window.offset if index == self.column else 0
            if offset:
                lines.append(Text(f"  ↑ {offset} above", style=MUTED_STYLE))
            shown = column[offset : offset + self.window.max_visible]
            for row, issue in enumerate(shown, start=offset):
                marker = "*" if issue.key in state.selection else " "
                label = truncate(f"{marker} {issue.key} {issue.summary}", col_width - 1)
                selected = active and index == self.column and row == self.window.cursor
                lines.append(selectable_line(label.ljust(col_width - 1), selected))
            remaining = len(column) - offset - len(shown)
            if remaining > 0:
                lines.append(Text(f"  +{remaining} more ↓", style=MUTED_STYLE))
            rendered.append(lines)

        depth = max(len(lines) for lines in rendered)
        rows: list[Text] = [Text("Sprint Board", style="bold underline")]
        for row in range(depth):
            line = Text()
            for lines in rendered:
                cell = lines[row] if row < len(lines) else Text("")
                cell = cell.copy()
                cell.truncate(col_width, pad=True)
                line.append_text(cell)
            rows.append(line)
        return render_lines(rows)
