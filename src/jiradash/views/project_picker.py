from __future__ import annotations

from typing import Optional

from rich.text import Text

from jiradash import actions
from jiradash.keys import Key, KeyPress
from jiradash.models import Project
from jiradash.views.support import MUTED_STYLE, ScrollWindow, render_lines, selectable_line, truncate


class ProjectPicker:
    def __init__(self) -> None:
        self.projects: list[Project] = []
        self.loading = True
        self.window = ScrollWindow()

    def set_projects(self, projects: list[Project]) -> None:
        self.projects = list(projects)
        self.loading = False
        self.window.reset()

    def update(self, press: KeyPress, state) -> Optional[actions.Task]:
        if press.key is Key.ESCAPE or press.is_char("q"):
            state.modals.pop()
        elif press.key is Key.DOWN or press.is_char("j"):
            self.window.move_down(len(self.projects))
        elif press.key is Key.UP or press.is_char("k"):
            self.window.move_up()
        elif press.key is Key.ENTER:
            if not self.projects:
                return None
            project = self.projects[self.window.cursor]
            state.modals.pop()
            if project.key == state.project_key:
                state.flash = f"Already on {project.key}"
                return None
            state.flash = f"Switching to {project.key}..."
            return actions.switch_project(state.services, project.key)
        return None

    def render(self, state, width: int, height: int) -> Text:
        lines: list[Text | str] = [Text("Switch Project", style="bold"), ""]
        if self.loading:
            lines.append(Text("  Loading projects...", style=MUTED_STYLE))
        elif not self.projects:
            lines.append(Text("  No projects found", style=MUTED_STYLE))
        self.window.resize(height - 4, len(self.projects))
        for index in self.window.visible_range(len(self.projects)):
            project = self.projects[index]
            current = "•" if project.key == state.project_key else " "
            line = truncate(f"{current} {project.key:<10} {project.name}", width - 2)
            lines.append(selectable_line(line, index == self.window.cursor))
        lines.extend(["", Text("Enter: switch  Esc: cancel", style=MUTED_STYLE)])
        return render_lines(lines)
