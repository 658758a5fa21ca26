"""Events consumed by the router: input, timer ticks and task completions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from jiradash.keys import KeyPress
from jiradash.models import Issue, Project, Transition
from jiradash.sync import SyncResult


@dataclass(frozen=True)
class Started:
    pass


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class CacheLoaded:
    issues: list[Issue]
    initial: bool = False


@dataclass(frozen=True)
class SyncFinished:
    result: SyncResult
    issues: list[Issue]


@dataclass(frozen=True)
class TransitionsLoaded:
    issue_key: str
    transitions: list[Transition]
    bulk_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class ActionDone:
    message: str
    resync: bool = True


@dataclass(frozen=True)
class BulkMoveDone:
    moved: list[str]
    failed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DetailLoaded:
    issue: Issue
    stale: bool = False


@dataclass(frozen=True)
class SearchResults:
    query: str
    issues: list[Issue]


@dataclass(frozen=True)
class FiltersLoaded:
    history: list[str]


@dataclass(frozen=True)
class FilterApplied:
    jql: str
    issues: list[Issue]


@dataclass(frozen=True)
class ProjectsLoaded:
    projects: list[Project]


@dataclass(frozen=True)
class ProjectSwitched:
    project_key: str
    result: SyncResult
    issues: list[Issue]


@dataclass(frozen=True)
class StatusMessage:
    text: str


@dataclass(frozen=True)
class TaskFailed:
    label: str
    error: Exception

    @property
    def text(self) -> str:
        return f"{self.label} failed: {self.error}"


Event = Union[
    KeyPress,
    Started,
    Tick,
    CacheLoaded,
    SyncFinished,
    TransitionsLoaded,
    ActionDone,
    BulkMoveDone,
    DetailLoaded,
    SearchResults,
    FiltersLoaded,
    FilterApplied,
    ProjectsLoaded,
    ProjectSwitched,
    StatusMessage,
    TaskFailed,
]
