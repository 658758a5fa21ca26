from datetime import datetime, timedelta, timezone

import pytest

from jiradash.database import Database
from jiradash.errors import FatalStartupError
from jiradash.models import Issue, Transition


def _issue(key: str, status: str = "To Do", priority: str = "Medium", updated: str = "2026-01-01T10:00:00.000+0000", **fields) -> Issue:
    payload_fields = {
        "summary": fields.pop("summary", f"Summary of {key}"),
        "status": {"name": status},
        "priority": {"name": priority},
        "issuetype": {"name": "Task"},
        "project": {"key": fields.pop("project", key.split("-")[0]), "name": "Project"},
        "updated": updated,
    }
    payload_fields.update(fields)
    return Issue.from_payload({"key": key, "fields": payload_fields})


@pytest.mark.asyncio
async def test_upsert_same_issue_twice_keeps_one_row(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    issue = _issue("ABC-1", status="In Progress")

    await db.upsert_issue(issue)
    first = await db.get_all_issues()
    await db.upsert_issue(issue)
    second = await db.get_all_issues()

    assert len(second) == 1
    assert first == second
    assert second[0].status == "In Progress"


@pytest.mark.asyncio
async def test_upsert_replaces_columns_and_payload_together(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    await db.upsert_issue(_issue("ABC-1", status="To Do", summary="Old"))
    await db.upsert_issue(_issue("ABC-1", status="Done", summary="New"))

    done = await db.get_issues("Done")
    todo = await db.get_issues("To Do")

    assert [i.key for i in done] == ["ABC-1"]
    assert done[0].summary == "New"
    assert todo == []


@pytest.mark.asyncio
async def test_get_issues_orders_by_priority_rank_then_recency(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    await db.upsert_issue(_issue("ABC-1", priority="Low", updated="2026-01-05T00:00:00.000+0000"))
    await db.upsert_issue(_issue("ABC-2", priority="Highest", updated="2026-01-01T00:00:00.000+0000"))
    await db.upsert_issue(_issue("ABC-3", priority="High", updated="2026-01-02T00:00:00.000+0000"))
    await db.upsert_issue(_issue("ABC-4", priority="High", updated="2026-01-03T00:00:00.000+0000"))
    await db.upsert_issue(_issue("ABC-5", priority="Blocker", updated="2026-01-09T00:00:00.000+0000"))

    keys = [issue.key for issue in await db.get_all_issues()]

    assert keys == ["ABC-2", "ABC-4", "ABC-3", "ABC-1", "ABC-5"]


@pytest.mark.asyncio
async def test_get_issues_filters_by_project(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    await db.upsert_issue(_issue("ABC-1"))
    await db.upsert_issue(_issue("XYZ-1"))

    assert [i.key for i in await db.get_issues(project_key="XYZ")] == ["XYZ-1"]
    assert len(await db.get_issues(project_key=None)) == 2


@pytest.mark.asyncio
async def test_search_matches_key_or_summary_case_insensitively(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    await db.upsert_issue(_issue("ABC-1", summary="Fix login redirect"))
    await db.upsert_issue(_issue("ABC-2", summary="Update docs"))
    await db.upsert_issue(_issue("ABC-12", summary="Unrelated"))

    by_summary = await db.search_issues("LOGIN")
    by_key = await db.search_issues("abc-1")
    capped = await db.search_issues("ABC", limit=2)

    assert [i.key for i in by_summary] == ["ABC-1"]
    assert {i.key for i in by_key} == {"ABC-1", "ABC-12"}
    assert len(capped) == 2


@pytest.mark.asyncio
async def test_get_issues_by_keys_preserves_requested_order(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    for key in ("ABC-1", "ABC-2", "ABC-3"):
        await db.upsert_issue(_issue(key))

    issues = await db.get_issues_by_keys(["ABC-3", "MISSING-1", "ABC-1"])

    assert [i.key for i in issues] == ["ABC-3", "ABC-1"]
    assert await db.get_issues_by_keys([]) == []


@pytest.mark.asyncio
async def test_upsert_transitions_replaces_previous_set(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    await db.upsert_transitions("ABC-1", [Transition("11", "Start", "In Progress"), Transition("21", "Finish", "Done")])
    await db.upsert_transitions("ABC-1", [Transition("31", "Reopen", "To Do")])
    await db.upsert_transitions("ABC-2", [Transition("11", "Start", "In Progress")])

    assert await db.get_transitions("ABC-1") == [Transition("31", "Reopen", "To Do")]
    assert [t.id for t in await db.get_transitions("ABC-2")] == ["11"]

    await db.upsert_transitions("ABC-1", [])
    assert await db.get_transitions("ABC-1") == []


@pytest.mark.asyncio
async def test_last_sync_is_none_until_recorded(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()

    assert await db.last_sync() is None

    stamp = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
    await db.record_sync(3, timedelta(milliseconds=1250), synced_at=stamp, scope="ABC")

    assert await db.last_sync() == stamp
    assert await db.last_sync("ABC") == stamp
    assert await db.last_sync("XYZ") is None

    log = await db.get_sync_log()
    assert len(log) == 1
    assert log[0].items_synced == 3
    assert log[0].duration_ms == 1250
    assert log[0].scope == "ABC"


@pytest.mark.asyncio
async def test_sync_log_returns_newest_first(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    first = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    second = first + timedelta(minutes=5)
    await db.record_sync(1, timedelta(seconds=1), synced_at=first)
    await db.record_sync(2, timedelta(seconds=1), synced_at=second)

    log = await db.get_sync_log(limit=1)

    assert [entry.items_synced for entry in log] == [2]
    assert await db.last_sync() == second


@pytest.mark.asyncio
async def test_filter_history_is_bounded_and_deduplicated(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    for n in range(4):
        await db.save_filter(f"project = ABC AND priority = P{n}", max_entries=3)
    await db.save_filter("project = ABC AND priority = P1", max_entries=3)

    filters = await db.get_filters()

    assert filters == [
        "project = ABC AND priority = P1",
        "project = ABC AND priority = P3",
        "project = ABC AND priority = P2",
    ]


@pytest.mark.asyncio
async def test_init_db_raises_fatal_error_when_path_unusable(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    db = Database(blocker / "cache.db")

    with pytest.raises(FatalStartupError):
        await db.init_db()


@pytest.mark.asyncio
async def test_search_treats_like_wildcards_literally(tmp_path) -> None:
    db = Database(tmp_path / "cache.db")
    await db.init_db()
    await db.upsert_issue(_issue("ABC-1", summary="Rename snake_case fields"))
    await db.upsert_issue(_issue("ABC-2", summary="Cut latency by 50%"))
    await db.upsert_issue(_issue("ABC-3", summary="Escape C:\\temp paths"))
    await db.upsert_issue(_issue("ABC-4", summary="Plain summary"))

    assert [i.key for i in await db.search_issues("_")] == ["ABC-1"]
    assert [i.key for i in await db.search_issues("%")] == ["ABC-2"]
    assert [i.key for i in await db.search_issues("C:\\t")] == ["ABC-3"]
