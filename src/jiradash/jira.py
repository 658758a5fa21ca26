from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from jiradash.config import AppConfig
from jiradash.errors import AuthError, QueryError, RemoteError, TransientRemoteError
from jiradash.models import Issue, Project, Sprint, Transition, text_to_adf

OAUTH_TOKEN_URL = "https://auth.atlassian.com/oauth/token"

logger = logging.getLogger(__name__)

SEARCH_FIELDS = [
    "summary",
    "status",
    "assignee",
    "reporter",
    "priority",
    "issuetype",
    "project",
    "updated",
    "created",
    "sprint",
    "description",
    "comment",
    "timetracking",
]


@dataclass(frozen=True)
class SearchPage:
    issues: list[Issue] = field(default_factory=list)
    next_page_token: Optional[str] = None


class JiraClient:
    PAGE_SIZE = 50

    def __init__(self, config: AppConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self.transport = transport
        self.page_size = config.page_size or self.PAGE_SIZE

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": self.config.auth_header(),
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=float(self.config.request_timeout),
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        query_call: bool = False,
    ) -> Any:
        if not self.config.has_credentials():
            raise AuthError("Jira credentials are not configured.")
        if self.config.is_oauth() and self.config.refresh_token and self.config.token_expired():
            await self.refresh_token()

        response = await self._send(method, path, json=json, params=params)
        if response.status_code == 401 and self.config.is_oauth() and self.config.refresh_token:
            await self.refresh_token()
            response = await self._send(method, path, json=json, params=params)
        if response.status_code == 401:
            raise AuthError("Jira rejected the credentials", 401)
        if response.status_code == 400 and query_call:
            raise QueryError(_error_message(response, "Invalid JQL query"), 400)
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientRemoteError(_error_message(response, "Jira is unavailable"), response.status_code)
        if response.status_code >= 400:
            raise RemoteError(_error_message(response, f"{method} {path} failed"), response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"{method} {path} returned a non-JSON body", response.status_code) from e

    async def _request_object(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        data = await self._request(method, path, **kwargs)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise RemoteError(f"{method} {path} returned an unexpected body")
        return data

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self.config.base_url()}{path}"
        try:
            async with self._client() as client:
                return await client.request(method, url, json=json, params=params, headers=self._headers())
        except httpx.TimeoutException as e:
            raise TransientRemoteError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise TransientRemoteError(f"{method} {path} failed: {e}") from e
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e

    async def refresh_token(self) -> None:
        payload = {
            "grant_type": "refresh_token",
            "client_id": self.config.oauth_client_id,
            "client_secret": self.config.oauth_secret,
            "refresh_token": self.config.refresh_token,
        }
        try:
            async with self._client() as client:
                response = await client.post(OAUTH_TOKEN_URL, json=payload)
        except httpx.TransportError as e:
            raise TransientRemoteError(f"token refresh failed: {e}") from e
        except httpx.HTTPError as e:
            raise RemoteError(f"token refresh failed: {e}") from e
        if response.status_code != 200:
            raise AuthError("token refresh rejected", response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise AuthError("token refresh returned a non-JSON body", response.status_code) from e
        if not isinstance(data, dict) or "access_token" not in data:
            raise AuthError("token refresh returned no access token", response.status_code)
        expiry = datetime.now(timezone.utc) + timedelta(seconds=int(data.get("expires_in") or 3600))
        self.config = self.config.with_tokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or self.config.refresh_token,
            token_expiry=expiry.isoformat(timespec="seconds"),
        )
        logger.info("OAuth access token refreshed")

    async def get_myself(self) -> dict[str, Any]:
        return await self._request("GET", "/rest/api/3/myself")

    async def get_projects(self) -> list[Project]:
        projects: list[Project] = []
        start_at = 0
        while True:
            data = await self._request_object(
                "GET",
                "/rest/api/3/project/search",
                params={"startAt": start_at, "maxResults": self.page_size},
            )
            values = data.get("values") or []
            projects.extend(
                Project(id=str(raw.get("id") or ""), key=raw["key"], name=raw.get("name") or raw["key"])
                for raw in values
            )
            if data.get("isLast", True) or not values:
                break
            start_at += len(values)
        return projects

    async def search(self, jql: str, page_token: str | None = None) -> SearchPage:
        body: dict[str, Any] = {
            "jql": jql,
            "maxResults": self.page_size,
            "fields": SEARCH_FIELDS,
        }
        if page_token:
            body["nextPageToken"] = page_token
        data = await self._request_object("POST", "/rest/api/3/search/jql", json=body, query_call=True)
        issues = [Issue.from_payload(raw) for raw in data.get("issues") or []]
        next_token = data.get("nextPageToken")
        if data.get("isLast"):
            next_token = None
        return SearchPage(issues=issues, next_page_token=next_token or None)

    async def search_all(self, jql: str, max_pages: int = 20) -> list[Issue]:
        issues: list[Issue] = []
        token: str | None = None
        for _ in range(max_pages):
            page = await self.search(jql, token)
            issues.extend(page.issues)
            token = page.next_page_token
            if not token or not page.issues:
                break
        return issues

    async def get_issue(self, key: str) -> Issue:
        data = await self._request_object(
            "GET",
            f"/rest/api/3/issue/{key}",
            params={"fields": "*all"},
        )
        if "key" not in data:
            raise RemoteError(f"GET /rest/api/3/issue/{key} returned no issue")
        return Issue.from_payload(data)

    async def get_transitions(self, key: str) -> list[Transition]:
        data = await self._request_object("GET", f"/rest/api/3/issue/{key}/transitions")
        return [Transition.from_payload(raw) for raw in data.get("transitions") or []]

    async def transition_issue(self, key: str, transition_id: str) -> None:
        await self._request(
            "POST",
            f"/rest/api/3/issue/{key}/transitions",
            json={"transition": {"id": transition_id}},
        )

    async def assign_issue(self, key: str, account_id: str | None) -> None:
        await self._request("PUT", f"/rest/api/3/issue/{key}/assignee", json={"accountId": account_id})

    async def add_comment(self, key: str, body: str) -> None:
        await self._request("POST", f"/rest/api/3/issue/{key}/comment", json={"body": text_to_adf(body)})

    async def log_work(self, key: str, time_spent: str) -> None:
        await self._request("POST", f"/rest/api/3/issue/{key}/worklog", json={"timeSpent": time_spent})

    async def create_issue(
        self,
        project_key: str,
        summary: str,
        issue_type: str,
        priority: str = "",
        description: str = "",
    ) -> str:
        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "issuetype": {"name": issue_type},
        }
        if priority:
            fields["priority"] = {"name": priority}
        if description.strip():
            fields["description"] = text_to_adf(description)
        data = await self._request_object("POST", "/rest/api/3/issue", json={"fields": fields})
        if "key" not in data:
            raise RemoteError("POST /rest/api/3/issue returned no key")
        return data["key"]

    async def get_sprints(self, board_id: int) -> list[Sprint]:
        data = await self._request_object(
            "GET",
            f"/rest/agile/1.0/board/{board_id}/sprint",
            params={"state": "active,future"},
        )
        return [
            Sprint(id=int(raw["id"]), name=raw.get("name") or "", state=raw.get("state") or "", board_id=board_id)
            for raw in data.get("values") or []
        ]

    async def move_to_sprint(self, sprint_id: int, *keys: str) -> None:
        if not keys:
            return
        await self._request("POST", f"/rest/agile/1.0/sprint/{sprint_id}/issue", json={"issues": list(keys)})


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if not isinstance(data, dict):
        return fallback
    messages = list(data.get("errorMessages") or [])
    errors = data.get("errors") or {}
    if isinstance(errors, dict):
        messages.extend(f"{name}: {value}" for name, value in errors.items())
    return "; ".join(str(m) for m in messages) or fallback
