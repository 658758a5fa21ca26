"""Top-level view-state machine.

``update(state, event)`` is the single entry point: it mutates ``state`` and
returns an optional :class:`~jiradash.actions.Task` for the loop to run. It
never awaits, so the loop never blocks on I/O.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from jiradash import actions
from jiradash.actions import Services, Task
from jiradash.keys import Key, KeyPress
from jiradash.messages import (
    ActionDone,
    BulkMoveDone,
    CacheLoaded,
    DetailLoaded,
    Event,
    FilterApplied,
    FiltersLoaded,
    ProjectsLoaded,
    ProjectSwitched,
    SearchResults,
    Started,
    StatusMessage,
    SyncFinished,
    TaskFailed,
    Tick,
    TransitionsLoaded,
)
from jiradash.models import Issue
from jiradash.sync import SyncResult
from jiradash.views.board import BoardView
from jiradash.views.create import CreateForm
from jiradash.views.detail import DetailView
from jiradash.views.filter import FilterForm
from jiradash.views.issue_list import IssueListView
from jiradash.views.project_picker import ProjectPicker
from jiradash.views.search import SearchView
from jiradash.views.support import ModalStack, SelectionSet
from jiradash.views.transition_picker import TransitionPicker

logger = logging.getLogger(__name__)


class View(Enum):
    LIST = "list"
    BOARD = "board"
    DETAIL = "detail"
    SEARCH = "search"
    CREATE = "create"
    FILTER = "filter"


TEXT_ENTRY_VIEWS = {View.SEARCH, View.CREATE, View.FILTER}


class AppState:
    def __init__(self, services: Services, project_key: Optional[str] = None):
        self.services = services
        self.project_key = project_key if project_key is not None else services.config.default_project
        self.view = View.LIST
        self.panel = View.LIST
        self.modals = ModalStack()
        self.selection = SelectionSet()
        self.show_help = False
        self.quit = False

        self.issues: list[Issue] = []
        self.filter_jql: Optional[str] = None
        self.flash = ""
        self.sync_status = "Loading..."
        self.syncs_in_flight = 0
        self.last_sync_at: Optional[datetime] = None

        self.issue_list = IssueListView()
        self.board = BoardView()
        self.detail = DetailView()
        self.search = SearchView()
        self.create = CreateForm()
        self.filter = FilterForm()

    # Shared helpers the views go through instead of touching each other.

    def in_text_entry(self) -> bool:
        if self.view in TEXT_ENTRY_VIEWS:
            return True
        return self.view is View.DETAIL and self.detail.composing

    def active_view(self):
        return {
            View.LIST: self.issue_list,
            View.BOARD: self.board,
            View.DETAIL: self.detail,
            View.SEARCH: self.search,
            View.CREATE: self.create,
            View.FILTER: self.filter,
        }[self.view]

    def current_issue(self) -> Optional[Issue]:
        if self.view is View.LIST:
            return self.issue_list.selected_issue(self.issues)
        if self.view is View.BOARD:
            return self.board.selected_issue(self.issues)
        if self.view is View.DETAIL:
            return self.detail.issue
        return None

    def back(self) -> None:
        self.view = self.panel

    def open_detail(self, issue: Issue, compose: Optional[str] = None) -> Task:
        self.detail.show(issue, compose=compose)
        self.view = View.DETAIL
        return actions.load_detail(self.services, issue.key)

    def open_transitions(self, issue: Optional[Issue], allow_bulk: bool = True) -> Optional[Task]:
        if allow_bulk and self.selection:
            keys = self.selection.keys()
            self.flash = f"Loading transitions for {len(keys)} selected issue(s)..."
            return actions.fetch_transitions(self.services, keys[0], bulk_keys=keys)
        if issue is None:
            return None
        self.flash = f"Loading transitions for {issue.key}..."
        return actions.fetch_transitions(self.services, issue.key)

    def open_create(self) -> None:
        self.create.reset()
        self.view = View.CREATE

    def open_search(self) -> None:
        self.search.reset()
        self.view = View.SEARCH

    def open_filter(self) -> Task:
        self.filter.reset()
        self.view = View.FILTER
        return actions.load_filters(self.services)

    def clear_filter(self) -> Task:
        self.filter_jql = None
        self.view = self.panel
        self.flash = "Filter cleared"
        return actions.load_cache(self.services, self.project_key)

    def start_sync(self) -> Task:
        self.syncs_in_flight += 1
        self.sync_status = "Syncing..."
        return actions.sync(self.services, self.project_key)

    def set_issues(self, issues: list[Issue]) -> None:
        if self.filter_jql is not None:
            # Keep the filtered set, refreshed from the newer snapshot.
            latest = {issue.key: issue for issue in issues}
            self.issues = [latest.get(issue.key, issue) for issue in self.issues]
        else:
            self.issues = list(issues)
        if self.detail.issue is not None:
            for issue in issues:
                if issue.key == self.detail.issue.key:
                    self.detail.refresh(issue)
                    break

    def status_text(self) -> str:
        return self.flash or self.sync_status


def update(state: AppState, event: Event) -> tuple[AppState, Optional[Task]]:
    if isinstance(event, KeyPress):
        return state, _handle_key(state, event)
    return state, _handle_completion(state, event)


def _handle_key(state: AppState, press: KeyPress) -> Optional[Task]:
    modal = state.modals.top
    if modal is not None:
        return modal.update(press, state)

    if state.in_text_entry():
        if press.key is Key.CTRL_C:
            state.quit = True
            return None
        return state.active_view().update(press, state)

    if state.show_help:
        if press.key is Key.CTRL_C:
            state.quit = True
        state.show_help = False
        return None

    handled, task = _handle_global(state, press)
    if handled:
        return task
    return state.active_view().update(press, state)


def _handle_global(state: AppState, press: KeyPress) -> tuple[bool, Optional[Task]]:
    if press.key is Key.CTRL_C:
        state.quit = True
        return True, None
    if press.is_char("q"):
        if state.view is View.DETAIL:
            state.back()
        else:
            state.quit = True
        return True, None
    if press.is_char("?"):
        state.show_help = True
        return True, None
    if press.is_char("r"):
        return True, state.start_sync()
    if press.is_char("/") and state.view is not View.DETAIL:
        state.open_search()
        return True, None
    if press.is_char("f") and state.view is not View.DETAIL:
        return True, state.open_filter()
    if press.is_char("p"):
        if state.modals.push(ProjectPicker()):
            return True, actions.load_projects(state.services)
        return True, None
    if press.is_char("o"):
        issue = state.current_issue()
        if issue is None:
            return True, None
        state.flash = f"Opening {issue.key}..."
        return True, actions.open_in_browser(state.services.config.browse_url(issue.key))
    if press.is_char("a"):
        return True, _assign_to_self(state)
    if press.key is Key.SPACE and state.view in (View.LIST, View.BOARD):
        issue = state.current_issue()
        if issue is not None:
            state.selection.toggle(issue.key)
        return True, None
    if press.key is Key.ESCAPE and state.selection:
        state.selection.clear()
        state.flash = "Selection cleared"
        return True, None
    if press.key is Key.LEFT and state.view in (View.LIST, View.BOARD):
        if state.view is View.BOARD and not state.board.move_column(-1):
            state.view = state.panel = View.LIST
        return True, None
    if press.key is Key.RIGHT and state.view in (View.LIST, View.BOARD):
        if state.view is View.LIST:
            state.view = state.panel = View.BOARD
        else:
            state.board.move_column(1)
        return True, None
    return False, None


def _assign_to_self(state: AppState) -> Optional[Task]:
    if not state.services.config.account_id:
        state.flash = "Set account_id in the config to enable assign"
        return None
    issue = state.current_issue()
    if issue is None:
        return None
    state.flash = f"Assigning {issue.key}..."
    return actions.assign_to_self(state.services, issue.key)


def _sync_summary(result: SyncResult) -> str:
    if result.error is not None:
        return f"Sync failed: {result.error} (showing cached data)"
    millis = int(result.duration.total_seconds() * 1000)
    text = f"Synced {result.items_synced} issues in {millis}ms"
    if result.partial:
        text += f" ({result.partial})"
    return text


def _handle_completion(state: AppState, event: Event) -> Optional[Task]:
    if isinstance(event, Started):
        return actions.load_cache(state.services, state.project_key, initial=True)

    if isinstance(event, Tick):
        state.flash = ""
        return state.start_sync()

    if isinstance(event, CacheLoaded):
        state.set_issues(event.issues)
        if event.initial:
            return state.start_sync()
        return None

    if isinstance(event, SyncFinished):
        state.syncs_in_flight = max(0, state.syncs_in_flight - 1)
        state.sync_status = _sync_summary(event.result)
        if event.result.ok:
            state.last_sync_at = datetime.now()
        state.set_issues(event.issues)
        return None

    if isinstance(event, TransitionsLoaded):
        picker = TransitionPicker(event.issue_key, event.transitions, event.bulk_keys)
        if not state.modals.push(picker):
            logger.debug("Dropped transitions for %s: another picker is open", event.issue_key)
            return None
        state.flash = ""
        return None

    if isinstance(event, ProjectsLoaded):
        picker = state.modals.top
        if isinstance(picker, ProjectPicker):
            picker.set_projects(event.projects)
        return None

    if isinstance(event, ProjectSwitched):
        if event.result.error is not None:
            state.flash = f"Switch failed: {event.result.error}"
            return None
        state.project_key = event.project_key
        state.filter_jql = None
        state.selection.clear()
        state.issue_list.window.reset()
        state.board.window.reset()
        state.sync_status = _sync_summary(event.result)
        state.flash = f"Switched to {event.project_key}"
        state.set_issues(event.issues)
        return None

    if isinstance(event, ActionDone):
        state.flash = event.message
        if event.resync:
            return state.start_sync()
        return None

    if isinstance(event, BulkMoveDone):
        state.selection.clear()
        if event.failed:
            state.flash = f"Moved {len(event.moved)} issue(s), {len(event.failed)} failed"
        else:
            state.flash = f"Moved {len(event.moved)} issue(s)"
        return state.start_sync()

    if isinstance(event, DetailLoaded):
        if state.detail.issue is not None and state.detail.issue.key == event.issue.key:
            state.detail.refresh(event.issue, stale=event.stale)
        return None

    if isinstance(event, SearchResults):
        state.search.set_results(event.query, event.issues)
        return None

    if isinstance(event, FiltersLoaded):
        state.filter.set_history(event.history)
        return None

    if isinstance(event, FilterApplied):
        state.filter_jql = event.jql
        state.issues = list(event.issues)
        state.issue_list.window.reset()
        state.board.window.reset()
        state.flash = f"Filter matched {len(event.issues)} issue(s)"
        return None

    if isinstance(event, StatusMessage):
        state.flash = event.text
        return None

    if isinstance(event, TaskFailed):
        state.flash = event.text
        if event.label == "Sync":
            state.syncs_in_flight = max(0, state.syncs_in_flight - 1)
            state.sync_status = "Sync failed (showing cached data)"
        return None

    logger.debug("Unhandled event %r", event)
    return None
