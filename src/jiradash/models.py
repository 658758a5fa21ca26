from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

PRIORITY_ORDER = ("Highest", "High", "Medium", "Low", "Lowest")


@dataclass(frozen=True)
class Project:
    id: str
    key: str
    name: str


@dataclass(frozen=True)
class Sprint:
    id: int
    name: str
    state: str
    board_id: Optional[int] = None


@dataclass(frozen=True)
class Transition:
    id: str
    name: str
    to_status: str = ""

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "Transition":
        target = raw.get("to") or {}
        return cls(id=str(raw["id"]), name=raw.get("name") or "", to_status=target.get("name") or "")


@dataclass(frozen=True)
class SyncLogEntry:
    synced_at: str
    items_synced: int
    duration_ms: int
    scope: Optional[str] = None


@dataclass(frozen=True)
class Comment:
    author: str
    created: str
    body: str


@dataclass
class Issue:
    key: str
    summary: str
    status: str
    priority: str = ""
    issue_type: str = ""
    project_key: str = ""
    assignee: Optional[str] = None
    sprint_id: Optional[int] = None
    updated: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "Issue":
        fields = raw.get("fields") or {}
        assignee = fields.get("assignee") or {}
        sprint = _current_sprint(fields)
        return cls(
            key=raw["key"],
            summary=fields.get("summary") or "",
            status=(fields.get("status") or {}).get("name") or "",
            priority=(fields.get("priority") or {}).get("name") or "",
            issue_type=(fields.get("issuetype") or {}).get("name") or "",
            project_key=(fields.get("project") or {}).get("key") or "",
            assignee=assignee.get("displayName") or None,
            sprint_id=sprint.get("id") if sprint else None,
            updated=fields.get("updated") or "",
            raw=raw,
        )

    @property
    def assignee_name(self) -> str:
        return self.assignee or "Unassigned"

    @property
    def fields(self) -> dict[str, Any]:
        return self.raw.get("fields") or {}

    def description_text(self) -> str:
        return adf_to_text(self.fields.get("description"))

    def reporter_name(self) -> str | None:
        reporter = self.fields.get("reporter") or {}
        return reporter.get("displayName")

    def project_name(self) -> str:
        project = self.fields.get("project") or {}
        return project.get("name") or self.project_key

    def comments(self) -> list[Comment]:
        container = self.fields.get("comment") or {}
        return [
            Comment(
                author=(raw.get("author") or {}).get("displayName") or "Unknown",
                created=raw.get("created") or "",
                body=adf_to_text(raw.get("body")),
            )
            for raw in container.get("comments") or []
        ]

    def time_tracking(self) -> dict[str, str]:
        tracking = self.fields.get("timetracking") or {}
        labels = {
            "timeSpent": "Spent",
            "originalEstimate": "Estimate",
            "remainingEstimate": "Remaining",
        }
        return {label: tracking[name] for name, label in labels.items() if tracking.get(name)}


def _current_sprint(fields: dict[str, Any]) -> dict[str, Any] | None:
    sprint = fields.get("sprint")
    if isinstance(sprint, dict):
        return sprint
    # Jira Cloud reports sprints through a custom field holding a list.
    for name, value in fields.items():
        if not name.startswith("customfield_") or not isinstance(value, list):
            continue
        for entry in value:
            if isinstance(entry, dict) and "id" in entry and entry.get("state") == "active":
                return entry
    return None


def priority_rank(name: str) -> int:
    try:
        return PRIORITY_ORDER.index(name)
    except ValueError:
        return len(PRIORITY_ORDER)


def adf_to_text(node: Any) -> str:
    """Flatten an Atlassian Document Format node into plain text.

    Plain strings (API v2 payloads, or anything already flattened) are
    returned unchanged.
    """
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(adf_to_text(child) for child in node)
    if not isinstance(node, dict):
        return ""
    node_type = node.get("type")
    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"
    if node_type == "mention":
        return (node.get("attrs") or {}).get("text", "")
    inner = adf_to_text(node.get("content") or [])
    if node_type in {"paragraph", "heading", "codeBlock", "blockquote"}:
        return inner.rstrip("\n") + "\n"
    if node_type == "listItem":
        return "- " + inner
    if node_type == "doc":
        return inner.strip("\n")
    return inner


def text_to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text as an ADF document, one paragraph per line."""
    content = []
    for line in text.split("\n"):
        if line.strip():
            content.append({"type": "paragraph", "content": [{"type": "text", "text": line}]})
        else:
            content.append({"type": "paragraph", "content": []})
    return {"type": "doc", "version": 1, "content": content}
