from __future__ import annotations

from types import SimpleNamespace

import pytest

from jiradash.actions import Services
from jiradash.config import AppConfig
from jiradash.errors import RemoteError
from jiradash.keys import Key, KeyPress
from jiradash.messages import (
    BulkMoveDone,
    CacheLoaded,
    FilterApplied,
    ProjectsLoaded,
    SearchResults,
    Started,
    StatusMessage,
    SyncFinished,
    TaskFailed,
    Tick,
    TransitionsLoaded,
)
from jiradash.models import Issue, Project, Transition
from jiradash.router import AppState, View, update
from jiradash.sync import SyncResult
from jiradash.views.project_picker import ProjectPicker
from jiradash.views.transition_picker import TransitionPicker


def _issue(key: str, status: str = "To Do") -> Issue:
    return Issue.from_payload({"key": key, "fields": {"summary": f"Summary {key}", "status": {"name": status}}})


class FakeClient:
    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.transitioned: list[tuple[str, str]] = []

    async def transition_issue(self, key: str, transition_id: str) -> None:
        self.transitioned.append((key, transition_id))
        if key in self.failing:
            raise RemoteError("workflow rejected the move", 400)


def _state(issues: list[Issue] | None = None, client=None, **config) -> AppState:
    values = {"jira_url": "https://example.atlassian.net", "default_project": "ABC", "account_id": "acc-1"}
    values.update(config)
    services = Services(
        config=AppConfig(**values),
        db=SimpleNamespace(),
        client=client or FakeClient(),
        engine=SimpleNamespace(),
    )
    state = AppState(services)
    state.issues = issues or [_issue("ABC-1"), _issue("ABC-2", "In Progress"), _issue("ABC-3", "Done")]
    return state


def press(char: str) -> KeyPress:
    return KeyPress.of(char)


def key(k: Key) -> KeyPress:
    return KeyPress(k)


def type_text(state: AppState, text: str) -> list:
    tasks = []
    for char in text:
        _, task = update(state, press(char))
        tasks.append(task)
    return tasks


def test_startup_loads_cache_before_syncing() -> None:
    state = _state()

    _, first = update(state, Started())
    assert first is not None and first.label == "Cache load"
    assert state.syncs_in_flight == 0

    _, second = update(state, CacheLoaded([_issue("ABC-9")], initial=True))
    assert second is not None and second.label == "Sync"
    assert [i.key for i in state.issues] == ["ABC-9"]


def test_manual_sync_key_starts_sync_in_list_view() -> None:
    state = _state()

    _, task = update(state, press("r"))

    assert task is not None and task.label == "Sync"
    assert state.syncs_in_flight == 1
    assert state.sync_status == "Syncing..."


def test_sync_key_in_search_is_typed_not_run() -> None:
    state = _state()
    update(state, press("/"))
    assert state.view is View.SEARCH

    _, task = update(state, press("r"))

    assert state.search.query == "r"
    assert task is not None and task.label == "Search"
    assert state.syncs_in_flight == 0


def test_global_keys_are_text_in_create_form() -> None:
    state = _state()
    update(state, press("n"))
    assert state.view is View.CREATE

    tasks = type_text(state, "rq/fpoa ?")

    assert tasks == [None] * 9
    assert state.create.summary == "rq/fpoa ?"
    assert state.view is View.CREATE
    assert state.quit is False
    assert not state.modals
    assert state.syncs_in_flight == 0


def test_sync_key_while_composing_comment_goes_to_buffer() -> None:
    state = _state()
    update(state, press("c"))
    assert state.view is View.DETAIL
    assert state.detail.composing

    _, task = update(state, press("r"))

    assert task is None
    assert state.detail.buffer == "r"
    assert state.syncs_in_flight == 0


def test_ctrl_c_quits_even_in_text_entry() -> None:
    state = _state()
    update(state, press("/"))

    update(state, key(Key.CTRL_C))

    assert state.quit is True


def test_open_modal_consumes_every_key() -> None:
    state = _state()
    state.modals.push(TransitionPicker("ABC-1", [Transition("11", "Start", "In Progress")]))

    _, task = update(state, press("/"))
    assert task is None
    assert state.view is View.LIST

    update(state, press("q"))
    assert state.quit is False
    assert not state.modals


def test_second_modal_is_never_opened() -> None:
    state = _state()
    _, task = update(state, press("p"))
    assert task is not None and task.label == "Loading projects"
    assert isinstance(state.modals.top, ProjectPicker)

    update(state, TransitionsLoaded("ABC-1", [Transition("11", "Start", "In Progress")]))

    assert len(state.modals) == 1
    assert isinstance(state.modals.top, ProjectPicker)


def test_project_picker_fills_in_and_switches() -> None:
    state = _state()
    update(state, press("p"))
    update(state, ProjectsLoaded([Project("1", "ABC", "Alpha"), Project("2", "XYZ", "Zeta")]))

    update(state, key(Key.DOWN))
    _, task = update(state, key(Key.ENTER))

    assert task is not None and task.label == "Project switch"
    assert not state.modals
    assert state.flash == "Switching to XYZ..."


def test_help_closes_on_next_key_without_acting() -> None:
    state = _state()
    update(state, press("?"))
    assert state.show_help

    _, task = update(state, press("r"))

    assert task is None
    assert not state.show_help
    assert state.syncs_in_flight == 0


def test_space_toggles_selection_of_cursor_issue() -> None:
    state = _state()

    update(state, key(Key.SPACE))
    update(state, press("j"))
    update(state, key(Key.SPACE))
    assert state.selection.keys() == ("ABC-1", "ABC-2")

    update(state, key(Key.SPACE))
    assert state.selection.keys() == ("ABC-1",)

    update(state, key(Key.ESCAPE))
    assert not state.selection


@pytest.mark.asyncio
async def test_bulk_move_attempts_every_key_and_clears_selection() -> None:
    client = FakeClient(failing={"ABC-2"})
    state = _state(client=client)
    for _ in range(3):
        update(state, key(Key.SPACE))
        update(state, key(Key.DOWN))
    assert len(state.selection) == 3

    _, fetch = update(state, press("m"))
    assert fetch is not None and fetch.label == "Loading transitions"

    update(state, TransitionsLoaded("ABC-1", [Transition("31", "Close", "Done")], bulk_keys=state.selection.keys()))
    picker = state.modals.top
    assert isinstance(picker, TransitionPicker) and picker.bulk

    _, move = update(state, key(Key.ENTER))
    assert move is not None and move.label == "Bulk move"
    done = await move()

    assert isinstance(done, BulkMoveDone)
    assert client.transitioned == [("ABC-1", "31"), ("ABC-2", "31"), ("ABC-3", "31")]
    assert done.moved == ["ABC-1", "ABC-3"]
    assert done.failed == ["ABC-2"]

    _, follow_up = update(state, done)
    assert not state.selection
    assert state.flash == "Moved 2 issue(s), 1 failed"
    assert follow_up is not None and follow_up.label == "Sync"


def test_single_move_without_selection_uses_cursor_issue() -> None:
    state = _state()
    update(state, press("j"))

    _, task = update(state, press("m"))

    assert task is not None
    assert state.flash == "Loading transitions for ABC-2..."


def test_left_right_switch_panels_and_columns() -> None:
    state = _state()

    update(state, key(Key.RIGHT))
    assert state.view is View.BOARD
    assert state.board.column == 0

    update(state, key(Key.RIGHT))
    update(state, key(Key.RIGHT))
    update(state, key(Key.RIGHT))
    assert state.board.column == 2

    update(state, key(Key.LEFT))
    update(state, key(Key.LEFT))
    assert state.board.column == 0
    update(state, key(Key.LEFT))
    assert state.view is View.LIST


def test_q_leaves_detail_before_quitting() -> None:
    state = _state()
    update(state, key(Key.RIGHT))
    _, task = update(state, key(Key.ENTER))
    assert task is not None and task.label == "Loading issue"
    assert state.view is View.DETAIL

    update(state, press("q"))
    assert state.view is View.BOARD
    assert state.quit is False

    update(state, press("q"))
    assert state.quit is True


def test_assign_needs_account_id() -> None:
    state = _state(account_id="")

    _, task = update(state, press("a"))

    assert task is None
    assert "account_id" in state.flash


def test_assign_returns_task_with_optimistic_flash() -> None:
    state = _state()

    _, task = update(state, press("a"))

    assert task is not None and task.label == "Assign"
    assert state.flash == "Assigning ABC-1..."


def test_failed_sync_keeps_serving_cached_issues() -> None:
    state = _state()
    update(state, press("r"))
    cached = [_issue("ABC-1"), _issue("ABC-7")]

    update(state, SyncFinished(SyncResult(error=RemoteError("boom")), cached))

    assert state.syncs_in_flight == 0
    assert state.sync_status.startswith("Sync failed: boom")
    assert [i.key for i in state.issues] == ["ABC-1", "ABC-7"]
    assert state.last_sync_at is None


def test_tick_triggers_sync_even_while_one_is_running() -> None:
    state = _state()
    update(state, press("r"))

    _, task = update(state, Tick())

    assert task is not None and task.label == "Sync"
    assert state.syncs_in_flight == 2


def test_crashed_sync_task_resets_counter() -> None:
    state = _state()
    update(state, press("r"))

    update(state, TaskFailed("Sync", RuntimeError("disk full")))

    assert state.syncs_in_flight == 0
    assert state.flash == "Sync failed: disk full"


def test_filter_form_applies_and_clears() -> None:
    state = _state()
    _, history = update(state, press("f"))
    assert history is not None and history.label == "Filter history"
    assert state.view is View.FILTER

    type_text(state, "assignee = currentUser()")
    _, task = update(state, key(Key.ENTER))
    assert task is not None and task.label == "Filter"
    assert state.view is View.LIST
    assert state.flash == "Filtering..."

    update(state, FilterApplied("assignee = currentUser()", [_issue("ABC-2")]))
    assert state.filter_jql == "assignee = currentUser()"
    assert [i.key for i in state.issues] == ["ABC-2"]

    # A background sync refreshes filtered rows without widening the filter.
    update(state, SyncFinished(SyncResult(items_synced=2), [_issue("ABC-1"), _issue("ABC-2", "Done")]))
    assert [(i.key, i.status) for i in state.issues] == [("ABC-2", "Done")]

    update(state, press("f"))
    _, reload = update(state, key(Key.ESCAPE))
    assert reload is not None and reload.label == "Cache load"
    assert state.filter_jql is None
    assert state.view is View.LIST


def test_filter_history_browse_selects_previous_query() -> None:
    state = _state()
    update(state, press("f"))
    state.filter.set_history(["project = ABC", "priority = High"])

    update(state, key(Key.UP))
    update(state, key(Key.UP))
    assert state.filter.current_jql() == "priority = High"
    update(state, key(Key.DOWN))
    assert state.filter.current_jql() == "project = ABC"


def test_create_form_validates_then_submits() -> None:
    state = _state()
    update(state, press("n"))

    _, task = update(state, key(Key.CTRL_S))
    assert task is None
    assert state.create.error == "Summary is required"

    type_text(state, "Crash on save")
    update(state, key(Key.TAB))
    update(state, key(Key.RIGHT))
    update(state, key(Key.TAB))
    update(state, key(Key.LEFT))
    assert state.create.issue_type == "Bug"
    assert state.create.priority == "High"

    _, task = update(state, key(Key.CTRL_S))
    assert task is not None and task.label == "Create"
    assert state.view is View.LIST
    assert state.flash == "Creating issue..."


def test_create_form_enter_adds_newline_in_description() -> None:
    state = _state()
    update(state, press("n"))
    update(state, key(Key.SHIFT_TAB))

    type_text(state, "one")
    update(state, key(Key.ENTER))
    type_text(state, "two")

    assert state.create.description == "one\ntwo"


def test_create_without_project_is_rejected() -> None:
    state = _state(default_project="")
    update(state, press("n"))
    type_text(state, "Something")

    _, task = update(state, key(Key.CTRL_S))

    assert task is None
    assert "No project" in state.create.error


def test_stale_search_results_are_dropped() -> None:
    state = _state()
    update(state, press("/"))
    type_text(state, "ab")

    update(state, SearchResults("a", [_issue("ABC-1")]))
    assert state.search.results == []

    update(state, SearchResults("ab", [_issue("ABC-2")]))
    assert [i.key for i in state.search.results] == ["ABC-2"]

    _, task = update(state, key(Key.ENTER))
    assert task is not None and task.label == "Loading issue"
    assert state.view is View.DETAIL
    assert state.detail.issue.key == "ABC-2"


def test_comment_submit_returns_task_and_leaves_compose_mode() -> None:
    state = _state()
    update(state, key(Key.ENTER))
    update(state, press("c"))
    type_text(state, "LGTM")

    _, task = update(state, key(Key.ENTER))

    assert task is not None and task.label == "Comment"
    assert not state.detail.composing
    assert state.flash == "Posting comment on ABC-1..."


def test_list_window_follows_cursor_one_row_at_a_time() -> None:
    state = _state([_issue(f"ABC-{n}") for n in range(10)])
    state.issue_list.render(state, 80, 4)
    assert state.issue_list.window.max_visible == 3

    for _ in range(5):
        update(state, key(Key.DOWN))
    assert state.issue_list.window.cursor == 5
    assert state.issue_list.window.offset == 3

    update(state, key(Key.UP))
    update(state, key(Key.UP))
    assert state.issue_list.window.offset == 3
    update(state, key(Key.UP))
    assert state.issue_list.window.cursor == 2
    assert state.issue_list.window.offset == 2


def test_status_message_becomes_the_flash() -> None:
    state = _state()

    _, task = update(state, StatusMessage("No browser available for https://example.atlassian.net/browse/ABC-1"))

    assert task is None
    assert state.status_text() == "No browser available for https://example.atlassian.net/browse/ABC-1"
