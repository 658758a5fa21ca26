from __future__ import annotations

from enum import IntEnum
from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.models import PRIORITY_ORDER
from jiradash.views.support import CURSOR, MUTED_STYLE, SELECTED_STYLE, edit_buffer, render_lines

ISSUE_TYPES = ("Task", "Bug", "Story")
DEFAULT_PRIORITY = PRIORITY_ORDER.index("Medium")


class Field(IntEnum):
    SUMMARY = 0
    TYPE = 1
    PRIORITY = 2
    DESCRIPTION = 3


class CreateForm:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.field = Field.SUMMARY
        self.summary = ""
        self.type_index = 0
        self.priority_index = DEFAULT_PRIORITY
        self.description = ""
        self.error = ""

    @property
    def issue_type(self) -> str:
        return ISSUE_TYPES[self.type_index]

    @property
    def priority(self) -> str:
        return PRIORITY_ORDER[self.priority_index]

    def _step_field(self, delta: int) -> None:
        self.field = Field((self.field + delta) % len(Field))

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        if press.key is Key.ESCAPE:
            self.reset()
            state.back()
            return None
        if press.key is Key.CTRL_S:
            return self._submit(state)
        if press.key is Key.TAB:
            self._step_field(1)
        elif press.key is Key.SHIFT_TAB:
            self._step_field(-1)
        elif press.key is Key.ENTER:
            if self.field is Field.DESCRIPTION:
                self.description += "\n"
            else:
                self._step_field(1)
        elif press.key in (Key.LEFT, Key.RIGHT):
            delta = 1 if press.key is Key.RIGHT else -1
            if self.field is Field.TYPE:
                self.type_index = min(max(self.type_index + delta, 0), len(ISSUE_TYPES) - 1)
            elif self.field is Field.PRIORITY:
                self.priority_index = min(max(self.priority_index + delta, 0), len(PRIORITY_ORDER) - 1)
        elif self.field is Field.SUMMARY:
            self.summary = edit_buffer(self.summary, press)
        elif self.field is Field.DESCRIPTION:
            self.description = edit_buffer(self.description, press)
        return None

    def _submit(self, state) -> Optional[actions.Task]:
        summary = self.summary.strip()
        if not summary:
            self.error = "Summary is required"
            return None
        project_key = state.project_key
        if not project_key:
            self.error = "No project selected (press Esc, then p)"
            return None
        task = actions.create_issue(
            state.services,
            project_key,
            summary,
            self.issue_type,
            self.priority,
            self.description,
        )
        self.reset()
        state.back()
        state.flash = "Creating issue..."
        return task

    def render(self, state, width: int, height: int) -> Text:
        def label(field: Field, name: str) -> Text:
            prefix = "> " if self.field is field else "  "
            return Text(f"{prefix}{name + ':':<13}", style="bold" if self.field is field else "")

        def options(values: tuple[str, ...], chosen: int) -> Text:
            text = Text()
            for index, value in enumerate(values):
                text.append(f" {value} ", style=SELECTED_STYLE if index == chosen else MUTED_STYLE)
                text.append(" ")
            return text

        summary = self.summary + (CURSOR if self.field is Field.SUMMARY else "")
        lines: list[Text | str] = [
            Text(f"Create issue in {state.project_key or '?'}", style="bold underline"),
            "",
            label(Field.SUMMARY, "Summary") + Text(summary),
            "",
            label(Field.TYPE, "Type") + options(ISSUE_TYPES, self.type_index),
            "",
            label(Field.PRIORITY, "Priority") + options(PRIORITY_ORDER, self.priority_index),
            "",
            label(Field.DESCRIPTION, "Description"),
        ]
        description = self.description + (CURSOR if self.field is Field.DESCRIPTION else "")
        if description:
            lines.extend("    " + line for line in description.split("\n"))
        else:
            lines.append(Text("    (optional)", style=MUTED_STYLE))
        if self.error:
            lines.extend(["", Text(f"  {self.error}", style="bold red")])
        lines.extend(
            [
                "",
                Text("  Tab/Shift+Tab: fields  Left/Right: choose  Ctrl+S: create  Esc: cancel", style=MUTED_STYLE),
            ]
        )
        return render_lines(lines[: max(1, height)])
