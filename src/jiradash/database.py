from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional

import aiosqlite

from jiradash.errors import FatalStartupError
from jiradash.models import Issue, PRIORITY_ORDER, SyncLogEntry, Transition, priority_rank

# Unknown priorities sort after every named one.
_PRIORITY_RANK_SQL = (
    "CASE priority "
    + " ".join(f"WHEN '{name}' THEN {priority_rank(name)}" for name in PRIORITY_ORDER)
    + f" ELSE {priority_rank('')} END"
)


class Database:
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path).expanduser()
        self._write_lock = asyncio.Lock()

    async def init_db(self):
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("PRAGMA journal_mode=WAL")
                await db.execute("PRAGMA synchronous=NORMAL")
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS issues (
                        key TEXT PRIMARY KEY,
                        summary TEXT,
                        status TEXT,
                        assignee TEXT,
                        priority TEXT,
                        issue_type TEXT,
                        project_key TEXT,
                        sprint_id INTEGER,
                        updated_at TEXT,
                        raw_json TEXT NOT NULL
                    )
                """)
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS transitions (
                        issue_key TEXT NOT NULL,
                        transition_id TEXT NOT NULL,
                        name TEXT,
                        to_status TEXT,
                        PRIMARY KEY (issue_key, transition_id)
                    )
                """)
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS sync_log (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        last_sync TEXT NOT NULL,
                        items_synced INTEGER NOT NULL,
                        duration_ms INTEGER NOT NULL,
                        scope TEXT
                    )
                """)
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS filter_history (
                        jql TEXT PRIMARY KEY,
                        used_at TEXT NOT NULL
                    )
                """)
                await db.execute("CREATE INDEX IF NOT EXISTS idx_issues_status ON issues(status)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_issues_project ON issues(project_key)")
                await db.execute("CREATE INDEX IF NOT EXISTS idx_issues_assignee ON issues(assignee)")
                await db.commit()
        except (OSError, sqlite3.Error) as e:
            raise FatalStartupError(f"cannot open cache at {self.db_path}: {e}") from e

    async def upsert_issue(self, issue: Issue) -> None:
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO issues (key, summary, status, assignee, priority, issue_type,
                                        project_key, sprint_id, updated_at, raw_json)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        summary=excluded.summary, status=excluded.status, assignee=excluded.assignee,
                        priority=excluded.priority, issue_type=excluded.issue_type,
                        project_key=excluded.project_key, sprint_id=excluded.sprint_id,
                        updated_at=excluded.updated_at, raw_json=excluded.raw_json
                    """,
                    (
                        issue.key,
                        issue.summary,
                        issue.status,
                        issue.assignee,
                        issue.priority,
                        issue.issue_type,
                        issue.project_key,
                        issue.sprint_id,
                        issue.updated,
                        json.dumps(issue.raw, sort_keys=True),
                    ),
                )
                await db.commit()

    async def get_issues(self, status: str = "", project_key: Optional[str] = None) -> List[Issue]:
        clauses: list[str] = []
        params: list[str] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if project_key:
            clauses.append("project_key = ?")
            params.append(project_key)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"SELECT raw_json FROM issues {where} ORDER BY {_PRIORITY_RANK_SQL}, updated_at DESC"
        return await self._fetch_issues(query, params)

    async def get_all_issues(self) -> List[Issue]:
        return await self.get_issues("")

    async def get_issue(self, key: str) -> Issue | None:
        issues = await self._fetch_issues("SELECT raw_json FROM issues WHERE key = ?", [key])
        return issues[0] if issues else None

    async def get_issues_by_keys(self, keys: Iterable[str]) -> List[Issue]:
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return []
        placeholders = ", ".join("?" for _ in wanted)
        found = await self._fetch_issues(
            f"SELECT raw_json FROM issues WHERE key IN ({placeholders})", wanted
        )
        by_key = {issue.key: issue for issue in found}
        return [by_key[key] for key in wanted if key in by_key]

    async def search_issues(self, text: str, limit: int = 50) -> List[Issue]:
        escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        like = f"%{escaped}%"
        return await self._fetch_issues(
            """
            SELECT raw_json FROM issues
            WHERE key LIKE ? ESCAPE '\\' OR summary LIKE ? ESCAPE '\\'
            ORDER BY updated_at DESC
            LIMIT ?
            """,
            [like, like, limit],
        )

    async def upsert_transitions(self, issue_key: str, transitions: List[Transition]) -> None:
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("DELETE FROM transitions WHERE issue_key = ?", (issue_key,))
                if transitions:
                    await db.executemany(
                        "INSERT OR REPLACE INTO transitions (issue_key, transition_id, name, to_status) VALUES (?, ?, ?, ?)",
                        [(issue_key, t.id, t.name, t.to_status) for t in transitions],
                    )
                await db.commit()

    async def get_transitions(self, issue_key: str) -> List[Transition]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT transition_id, name, to_status FROM transitions WHERE issue_key = ? ORDER BY rowid",
                (issue_key,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [
                    Transition(id=row["transition_id"], name=row["name"] or "", to_status=row["to_status"] or "")
                    for row in rows
                ]

    async def record_sync(
        self,
        items_synced: int,
        duration: timedelta,
        *,
        synced_at: datetime | None = None,
        scope: str | None = None,
    ) -> None:
        stamp = (synced_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    "INSERT INTO sync_log (last_sync, items_synced, duration_ms, scope) VALUES (?, ?, ?, ?)",
                    (
                        stamp.isoformat(timespec="seconds"),
                        items_synced,
                        duration // timedelta(milliseconds=1),
                        scope or None,
                    ),
                )
                await db.commit()

    async def last_sync(self, scope: str | None = None) -> datetime | None:
        """Most recent sync time, or ``None`` when the log is empty ("never").

        With a scope, only syncs recorded for that project count.
        """
        if scope:
            query = "SELECT last_sync FROM sync_log WHERE scope = ? ORDER BY id DESC LIMIT 1"
            params: tuple = (scope,)
        else:
            query = "SELECT last_sync FROM sync_log ORDER BY id DESC LIMIT 1"
            params = ()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(query, params) as cursor:
                row = await cursor.fetchone()
        if row is None:
            return None
        return datetime.fromisoformat(row[0])

    async def get_sync_log(self, limit: int = 20) -> List[SyncLogEntry]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT last_sync, items_synced, duration_ms, scope
                FROM sync_log
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [
                    SyncLogEntry(
                        synced_at=row["last_sync"],
                        items_synced=row["items_synced"],
                        duration_ms=row["duration_ms"],
                        scope=row["scope"],
                    )
                    for row in rows
                ]

    async def save_filter(self, jql: str, max_entries: int = 10) -> None:
        used_at = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    "INSERT OR REPLACE INTO filter_history (jql, used_at) VALUES (?, ?)",
                    (jql, used_at),
                )
                if max_entries > 0:
                    await db.execute(
                        """
                        DELETE FROM filter_history
                        WHERE jql NOT IN (
                            SELECT jql FROM filter_history
                            ORDER BY used_at DESC
                            LIMIT ?
                        )
                        """,
                        (max_entries,),
                    )
                await db.commit()

    async def get_filters(self) -> List[str]:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT jql FROM filter_history ORDER BY used_at DESC") as cursor:
                rows = await cursor.fetchall()
                return [row[0] for row in rows]

    async def _fetch_issues(self, query: str, params: list) -> List[Issue]:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        issues = []
        for (raw,) in rows:
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                continue
            issues.append(Issue.from_payload(payload))
        return issues
