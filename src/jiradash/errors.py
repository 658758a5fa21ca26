from __future__ import annotations

from dataclasses import dataclass, field


class JiraDashError(Exception):
    """Root of every error raised by jiradash itself."""


@dataclass(eq=False)
class RemoteError(JiraDashError):
    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class TransientRemoteError(RemoteError):
    """Network failure, timeout, rate limit or server error.

    Never retried on the spot: the next scheduled sync or user action retries
    naturally.
    """


class AuthError(RemoteError):
    """Credential rejected after one refresh-and-retry."""


class QueryError(RemoteError):
    """The remote rejected a JQL query as malformed."""


@dataclass(eq=False)
class PartialSyncError(JiraDashError):
    failed_upserts: list[str] = field(default_factory=list)
    failed_transitions: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.failed_upserts or self.failed_transitions)

    def __str__(self) -> str:
        parts = []
        if self.failed_upserts:
            parts.append(f"{len(self.failed_upserts)} issue(s) not cached")
        if self.failed_transitions:
            parts.append(f"{len(self.failed_transitions)} transition fetch(es) failed")
        return ", ".join(parts) or "no failures"


class FatalStartupError(JiraDashError):
    """Raised before the event loop starts; the CLI exits on it."""
