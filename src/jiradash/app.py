from __future__ import annotations

import logging

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.widgets import Static

from jiradash.actions import Services, Task, run_task
from jiradash.config import AppConfig
from jiradash.keys import decode_key
from jiradash.messages import Event, Started, Tick
from jiradash.router import AppState, View, update

logger = logging.getLogger(__name__)

HELP_TEXT = """KEYBOARD SHORTCUTS

Up/Down j/k   Navigate
Left/Right    Switch panel and board column
Tab           Next board column
Enter         Open issue detail
o             Open issue in browser
a             Assign issue to yourself
m             Move issue (bulk when issues are selected)
c             Add comment
t             Log time (e.g. 2h, 30m)
n             Create issue
Space         Select / deselect issue
Esc           Clear selection / back
/             Search cached issues
f             JQL filter
p             Switch project
r             Sync now
?             Toggle this help
q             Back / quit

Press any key to close"""


class JiraDash(App):
    CSS_PATH = "jiradash.tcss"
    TITLE = "jiradash"

    def __init__(self, config: AppConfig, services: Services | None = None, **kwargs):
        super().__init__(**kwargs)
        self.config = config
        self.services = services or Services.from_config(config)
        self.app_state = AppState(self.services)

    def compose(self) -> ComposeResult:
        yield Static("", id="app-header")
        yield Static("", id="app-status")
        with Horizontal(id="panels"):
            yield Static("", id="issues-panel", classes="panel")
            yield Static("", id="board-panel", classes="panel")
        yield Static("", id="main-panel", classes="panel")
        yield Static("", id="overlay")

    async def on_mount(self) -> None:
        logger.info("Starting (project=%s, sync every %ss)", self.app_state.project_key or "all", self.config.sync_interval)
        self.set_interval(self.config.sync_interval, self._on_tick)
        self.handle_event(Started())

    def _on_tick(self) -> None:
        self.handle_event(Tick())

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.handle_event(decode_key(event))

    def on_resize(self, event: events.Resize) -> None:
        self.render_state()

    def handle_event(self, event: Event) -> None:
        _, task = update(self.app_state, event)
        if self.app_state.quit:
            self.exit()
            return
        self.render_state()
        if task is not None:
            self.run_worker(self._complete(task), exclusive=False, group="tasks")

    async def _complete(self, task: Task) -> None:
        self.handle_event(await run_task(task))

    def render_state(self) -> None:
        state = self.app_state
        width = max(20, self.size.width)
        height = max(6, self.size.height - 3)
        try:
            self.query_one("#app-header", Static).update(self._header_text())
            self.query_one("#app-status", Static).update(Text(state.status_text(), style="italic"))

            panels = self.query_one("#panels", Horizontal)
            main = self.query_one("#main-panel", Static)
            overlay = self.query_one("#overlay", Static)
        except NoMatches:
            return

        split = state.view in (View.LIST, View.BOARD)
        panels.display = split
        main.display = not split
        if split:
            half = width // 2 - 2
            self.query_one("#issues-panel", Static).update(
                state.issue_list.render(state, half, height, active=state.view is View.LIST)
            )
            self.query_one("#board-panel", Static).update(
                state.board.render(state, half, height, active=state.view is View.BOARD)
            )
        else:
            main.update(state.active_view().render(state, width - 2, height))

        modal = state.modals.top
        if modal is not None:
            overlay.update(modal.render(state, min(width - 4, 70), height - 2))
        elif state.show_help:
            overlay.update(HELP_TEXT)
        overlay.display = modal is not None or state.show_help

    def _header_text(self) -> Text:
        state = self.app_state
        header = Text("JIRADASH", style="bold")
        header.append(f"  [{state.project_key or 'all projects'}]")
        if state.selection:
            header.append(f"  [{len(state.selection)} selected]", style="bold")
            header.append("  m:move all  space:toggle  esc:clear", style="dim")
        else:
            header.append("  enter:open  o:browser  a:assign  m:move  t:log  ?:help", style="dim")
        return header


def run(config: AppConfig) -> None:
    JiraDash(config).run()
