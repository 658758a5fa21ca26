from __future__ import annotations

from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.models import Transition
from jiradash.views.support import MUTED_STYLE, ScrollWindow, render_lines, selectable_line


class TransitionPicker:
    def __init__(self, issue_key: str, transitions: list[Transition], bulk_keys: tuple[str, ...] = ()):
        self.issue_key = issue_key
        self.transitions = list(transitions)
        self.bulk_keys = tuple(bulk_keys)
        self.window = ScrollWindow()

    @property
    def bulk(self) -> bool:
        return bool(self.bulk_keys)

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        if press.key is Key.ESCAPE or press.is_char("q"):
            state.modals.pop()
        elif press.key is Key.DOWN or press.is_char("j"):
            self.window.move_down(len(self.transitions))
        elif press.key is Key.UP or press.is_char("k"):
            self.window.move_up()
        elif press.key is Key.ENTER:
            state.modals.pop()
            if not self.transitions:
                return None
            transition = self.transitions[self.window.cursor]
            target = transition.to_status or transition.name
            if self.bulk:
                state.flash = f"Moving {len(self.bulk_keys)} issue(s) to {target}..."
                return actions.bulk_transition(state.services, self.bulk_keys, transition)
            state.flash = f"Moving {self.issue_key} to {target}..."
            return actions.apply_transition(state.services, self.issue_key, transition)
        return None

    def render(self, state, width: int, height: int) -> Text:
        title = f"Move {len(self.bulk_keys)} selected issue(s) to:" if self.bulk else f"Move {self.issue_key} to:"
        lines: list[Text | str] = [Text(title, style="bold"), ""]
        if not self.transitions:
            lines.append(Text("  No transitions available", style=MUTED_STYLE))
        self.window.resize(height - 4, len(self.transitions))
        for index in self.window.visible_range(len(self.transitions)):
            transition = self.transitions[index]
            label = f"  {transition.name} → {transition.to_status}" if transition.to_status else f"  {transition.name}"
            lines.append(selectable_line(label, index == self.window.cursor))
        lines.extend(["", Text("Enter: select  Esc: cancel", style=MUTED_STYLE)])
        return render_lines(lines)
