"""Deferred work handed back to the event loop.

Every factory captures its inputs up front and returns a :class:`Task`, a
zero-argument coroutine function whose result is the completion event the
router consumes next. Tasks never touch UI state.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import webbrowser
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

from jiradash.config import AppConfig
from jiradash.database import Database
from jiradash.errors import JiraDashError, RemoteError
from jiradash.jira import JiraClient
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
    StatusMessage,
    SyncFinished,
    TaskFailed,
    TransitionsLoaded,
)
from jiradash.models import Transition
from jiradash.sync import SyncEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    db: Database
    client: JiraClient
    engine: SyncEngine

    @classmethod
    def from_config(cls, config: AppConfig) -> "Services":
        db = Database(config.cache_path)
        client = JiraClient(config)
        return cls(
            config=config,
            db=db,
            client=client,
            engine=SyncEngine(client, db, done_window_days=config.done_window_days),
        )


@dataclass(frozen=True)
class Task:
    label: str
    run: Callable[[], Awaitable[Event]]

    def __call__(self) -> Awaitable[Event]:
        return self.run()


async def run_task(task: Task) -> Event:
    """Await a task, turning any failure into a completion event."""
    try:
        return await task()
    except JiraDashError as e:
        logger.warning("%s failed: %s", task.label, e)
        return TaskFailed(task.label, e)
    except Exception as e:
        logger.exception("%s crashed", task.label)
        return TaskFailed(task.label, e)


def load_cache(services: Services, project_key: Optional[str], initial: bool = False) -> Task:
    async def run() -> Event:
        issues = await services.db.get_issues(project_key=project_key)
        return CacheLoaded(issues, initial=initial)

    return Task("Cache load", run)


def sync(services: Services, project_key: Optional[str]) -> Task:
    async def run() -> Event:
        result = await services.engine.sync(project_key)
        issues = await services.db.get_issues(project_key=project_key)
        return SyncFinished(result=result, issues=issues)

    return Task("Sync", run)


def fetch_transitions(services: Services, issue_key: str, bulk_keys: Iterable[str] = ()) -> Task:
    bulk = tuple(bulk_keys)

    async def run() -> Event:
        transitions = await services.client.get_transitions(issue_key)
        await services.db.upsert_transitions(issue_key, transitions)
        stored = await services.db.get_transitions(issue_key)
        return TransitionsLoaded(issue_key=issue_key, transitions=stored, bulk_keys=bulk)

    return Task("Loading transitions", run)


def apply_transition(services: Services, issue_key: str, transition: Transition) -> Task:
    async def run() -> Event:
        await services.client.transition_issue(issue_key, transition.id)
        target = transition.to_status or transition.name
        return ActionDone(f"Moved {issue_key} to {target}")

    return Task("Move", run)


def bulk_transition(services: Services, issue_keys: Iterable[str], transition: Transition) -> Task:
    keys = tuple(issue_keys)

    async def run() -> Event:
        moved: list[str] = []
        failed: list[str] = []
        for key in keys:
            try:
                await services.client.transition_issue(key, transition.id)
            except RemoteError as e:
                logger.warning("Bulk move of %s failed: %s", key, e)
                failed.append(key)
                continue
            moved.append(key)
        return BulkMoveDone(moved=moved, failed=failed)

    return Task("Bulk move", run)


def assign_to_self(services: Services, issue_key: str) -> Task:
    account_id = services.config.account_id

    async def run() -> Event:
        await services.client.assign_issue(issue_key, account_id)
        return ActionDone(f"Assigned {issue_key} to you")

    return Task("Assign", run)


def add_comment(services: Services, issue_key: str, body: str) -> Task:
    async def run() -> Event:
        await services.client.add_comment(issue_key, body)
        try:
            issue = await services.client.get_issue(issue_key)
        except RemoteError as e:
            logger.warning("Could not refresh %s after commenting: %s", issue_key, e)
        else:
            await services.db.upsert_issue(issue)
        return ActionDone(f"Comment added to {issue_key}")

    return Task("Comment", run)


def log_work(services: Services, issue_key: str, time_spent: str) -> Task:
    async def run() -> Event:
        await services.client.log_work(issue_key, time_spent)
        return ActionDone(f"Logged {time_spent} on {issue_key}", resync=False)

    return Task("Log time", run)


def create_issue(
    services: Services,
    project_key: str,
    summary: str,
    issue_type: str,
    priority: str,
    description: str,
) -> Task:
    board_id = services.config.default_board

    async def run() -> Event:
        key = await services.client.create_issue(project_key, summary, issue_type, priority, description)
        if board_id > 0:
            try:
                sprints = await services.client.get_sprints(board_id)
                active = next((s for s in sprints if s.state == "active"), None)
                if active is not None:
                    await services.client.move_to_sprint(active.id, key)
            except RemoteError as e:
                logger.warning("Created %s but could not place it in a sprint: %s", key, e)
                return ActionDone(f"Created {key} (not added to sprint)")
        return ActionDone(f"Created {key}")

    return Task("Create", run)


def load_detail(services: Services, issue_key: str) -> Task:
    async def run() -> Event:
        try:
            issue = await services.client.get_issue(issue_key)
        except RemoteError:
            cached = await services.db.get_issue(issue_key)
            if cached is None:
                raise
            return DetailLoaded(cached, stale=True)
        await services.db.upsert_issue(issue)
        stored = await services.db.get_issue(issue_key)
        return DetailLoaded(stored or issue)

    return Task("Loading issue", run)


def search_cache(services: Services, query: str) -> Task:
    async def run() -> Event:
        return SearchResults(query=query, issues=await services.db.search_issues(query))

    return Task("Search", run)


def load_filters(services: Services) -> Task:
    async def run() -> Event:
        return FiltersLoaded(await services.db.get_filters())

    return Task("Filter history", run)


def apply_filter(services: Services, jql: str) -> Task:
    limit = services.config.filter_history_limit

    async def run() -> Event:
        await services.db.save_filter(jql, max_entries=limit)
        found = await services.client.search_all(jql)
        for issue in found:
            try:
                await services.db.upsert_issue(issue)
            except sqlite3.Error as e:
                logger.warning("Could not cache %s: %s", issue.key, e)
        issues = await services.db.get_issues_by_keys(issue.key for issue in found)
        return FilterApplied(jql=jql, issues=issues)

    return Task("Filter", run)


def load_projects(services: Services) -> Task:
    async def run() -> Event:
        return ProjectsLoaded(await services.client.get_projects())

    return Task("Loading projects", run)


def switch_project(services: Services, project_key: str) -> Task:
    async def run() -> Event:
        result = await services.engine.sync(project_key)
        issues = await services.db.get_issues(project_key=project_key)
        return ProjectSwitched(project_key=project_key, result=result, issues=issues)

    return Task("Project switch", run)


def open_in_browser(url: str) -> Task:
    async def run() -> Event:
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            return StatusMessage(f"No browser available for {url}")
        return StatusMessage(f"Opened {url}")

    return Task("Open browser", run)
