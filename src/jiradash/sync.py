from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from jiradash.database import Database
from jiradash.errors import PartialSyncError, RemoteError
from jiradash.jira import JiraClient
from jiradash.models import Issue

logger = logging.getLogger(__name__)

MAX_PAGES = 200


def build_query(project_key: str | None, since: datetime | None, done_window_days: int = 14) -> str:
    """Build the sync JQL.

    Unresolved issues plus anything resolved inside the done window, newest
    first. A watermark narrows it to issues updated at or after that minute,
    expressed in local time as Jira reads unqualified JQL dates.
    """
    base = f"(resolution = Unresolved OR resolutiondate >= -{done_window_days}d)"
    if project_key:
        base = f"project = {project_key} AND {base}"
    if since is not None:
        local = since.astimezone() if since.tzinfo else since
        base = f"{base} AND updated >= '{local.strftime('%Y-%m-%d %H:%M')}'"
    return f"{base} ORDER BY updated DESC"


@dataclass
class SyncResult:
    items_synced: int = 0
    duration: timedelta = field(default_factory=timedelta)
    error: Optional[Exception] = None
    partial: Optional[PartialSyncError] = None
    scope: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        if self.error is not None:
            return f"Sync failed: {self.error}"
        text = f"Synced {self.items_synced} issue(s) in {self.duration.total_seconds():.1f}s"
        if self.partial:
            text += f" ({self.partial})"
        return text


class SyncEngine:
    def __init__(self, client: JiraClient, db: Database, done_window_days: int = 14):
        self.client = client
        self.db = db
        self.done_window_days = done_window_days

    async def fetch_all(self, jql: str) -> list[Issue]:
        issues: list[Issue] = []
        token: str | None = None
        retried = False
        for page_number in range(MAX_PAGES):
            page = await self.client.search(jql, token)
            if not page.issues and page.next_page_token:
                if retried:
                    logger.warning("Search returned two empty pages in a row at page %d; stopping", page_number)
                    break
                retried = True
                continue
            retried = False
            issues.extend(page.issues)
            if not page.next_page_token:
                break
            token = page.next_page_token
        else:
            logger.warning("Search stopped at the %d page cap", MAX_PAGES)
        return issues

    async def sync(self, project_key: str | None = None) -> SyncResult:
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()
        scope = project_key or None

        since = await self.db.last_sync(scope)
        jql = build_query(scope, since, self.done_window_days)
        logger.debug("Sync query: %s", jql)

        try:
            issues = await self.fetch_all(jql)
        except RemoteError as e:
            logger.warning("Sync search failed: %s", e)
            return SyncResult(
                error=e,
                duration=timedelta(seconds=time.monotonic() - started),
                scope=scope,
            )

        failures = PartialSyncError()
        synced = 0
        for issue in issues:
            try:
                await self.db.upsert_issue(issue)
            except sqlite3.Error as e:
                logger.warning("Could not cache %s: %s", issue.key, e)
                failures.failed_upserts.append(issue.key)
                continue
            synced += 1
            try:
                transitions = await self.client.get_transitions(issue.key)
                await self.db.upsert_transitions(issue.key, transitions)
            except (RemoteError, sqlite3.Error) as e:
                logger.warning("Could not refresh transitions for %s: %s", issue.key, e)
                failures.failed_transitions.append(issue.key)

        duration = timedelta(seconds=time.monotonic() - started)
        await self.db.record_sync(synced, duration, synced_at=started_at, scope=scope)
        logger.info("Synced %d issue(s) in %.2fs (scope=%s)", synced, duration.total_seconds(), scope or "all")
        return SyncResult(
            items_synced=synced,
            duration=duration,
            partial=failures if failures else None,
            scope=scope,
        )
