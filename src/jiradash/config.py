from __future__ import annotations

import base64
import json
import os
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR = Path.home() / ".config" / "jiradash"


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _to_int(value: Any, default: int, minimum: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    return max(minimum, parsed)


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class AppConfig:
    jira_url: str = ""
    email: str = ""
    api_token: str = ""
    account_id: str = ""
    default_project: str = ""
    default_board: int = 0
    sync_interval: int = 60
    auth_method: str = "api-token"
    oauth_client_id: str = ""
    oauth_secret: str = ""
    access_token: str = ""
    refresh_token: str = ""
    cloud_id: str = ""
    token_expiry: str = ""
    cache_path: str = str(CONFIG_DIR / "cache.db")
    request_timeout: int = 30
    done_window_days: int = 14
    page_size: int = 50
    filter_history_limit: int = 10
    log_path: str = str(CONFIG_DIR / "jiradash.log")
    log_level: str = "INFO"
    config_source: str = "defaults/env"

    @classmethod
    def from_env(cls) -> "AppConfig":
        config = cls(
            jira_url=_to_str(os.getenv("JIRADASH_URL")).rstrip("/"),
            email=_to_str(os.getenv("JIRADASH_EMAIL")),
            api_token=_to_str(os.getenv("JIRADASH_API_TOKEN")),
            account_id=_to_str(os.getenv("JIRADASH_ACCOUNT_ID")),
            default_project=_to_str(os.getenv("JIRADASH_PROJECT")),
            default_board=max(0, _get_int_env("JIRADASH_BOARD", 0)),
            sync_interval=max(5, _get_int_env("JIRADASH_SYNC_INTERVAL", 60)),
            request_timeout=max(1, _get_int_env("JIRADASH_REQUEST_TIMEOUT", 30)),
            cache_path=os.getenv("JIRADASH_CACHE_PATH") or cls.cache_path,
            log_path=os.getenv("JIRADASH_LOG_PATH") or cls.log_path,
            log_level=_to_str(os.getenv("JIRADASH_LOG_LEVEL")) or "INFO",
        )
        config_path = os.getenv("JIRADASH_CONFIG_PATH", str(CONFIG_DIR / "config.json"))
        return config.merge_file(Path(config_path).expanduser())

    def merge_file(self, path: Path) -> "AppConfig":
        if not path.exists():
            return self
        loaded = self._load_config_file(path)
        if not loaded:
            return self
        merged = dict(self.__dict__)
        for key in merged:
            if key in loaded and loaded[key] is not None:
                merged[key] = loaded[key]
        for name in (
            "jira_url",
            "email",
            "api_token",
            "account_id",
            "default_project",
            "auth_method",
            "oauth_client_id",
            "oauth_secret",
            "access_token",
            "refresh_token",
            "cloud_id",
            "token_expiry",
            "cache_path",
            "log_path",
            "log_level",
        ):
            merged[name] = _to_str(merged[name])
        merged["jira_url"] = merged["jira_url"].rstrip("/")
        merged["auth_method"] = merged["auth_method"] or "api-token"
        merged["default_board"] = _to_int(merged["default_board"], self.default_board, 0)
        merged["sync_interval"] = _to_int(merged["sync_interval"], self.sync_interval, 5)
        merged["request_timeout"] = _to_int(merged["request_timeout"], self.request_timeout, 1)
        merged["done_window_days"] = _to_int(merged["done_window_days"], self.done_window_days, 1)
        merged["page_size"] = min(100, _to_int(merged["page_size"], self.page_size, 1))
        merged["filter_history_limit"] = _to_int(
            merged["filter_history_limit"], self.filter_history_limit, 1
        )
        merged["config_source"] = str(path)
        return AppConfig(**merged)

    def _load_config_file(self, path: Path) -> dict[str, Any]:
        suffix = path.suffix.lower()
        text = path.read_text(encoding="utf-8")
        if suffix == ".json":
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                return {}
            return parsed if isinstance(parsed, dict) else {}
        if suffix in {".yml", ".yaml"}:
            try:
                parsed = yaml.safe_load(text)
            except yaml.YAMLError:
                return {}
            return parsed if isinstance(parsed, dict) else {}
        return {}

    def with_tokens(self, access_token: str, refresh_token: str, token_expiry: str) -> "AppConfig":
        return replace(self, access_token=access_token, refresh_token=refresh_token, token_expiry=token_expiry)

    def has_credentials(self) -> bool:
        if not self.jira_url:
            return False
        if self.is_oauth():
            return True
        return bool(self.email and self.api_token)

    def is_oauth(self) -> bool:
        return self.auth_method == "oauth" and bool(self.access_token)

    def base_url(self) -> str:
        if self.is_oauth() and self.cloud_id:
            return f"https://api.atlassian.com/ex/jira/{self.cloud_id}"
        return self.jira_url

    def browse_url(self, issue_key: str) -> str:
        return f"{self.jira_url}/browse/{issue_key}"

    def auth_header(self) -> str:
        if self.is_oauth():
            return f"Bearer {self.access_token}"
        credentials = f"{self.email}:{self.api_token}".encode("utf-8")
        return "Basic " + base64.b64encode(credentials).decode("ascii")

    def token_expired(self, now: datetime | None = None) -> bool:
        if not self.token_expiry:
            return True
        try:
            expiry = datetime.fromisoformat(self.token_expiry.replace("Z", "+00:00"))
        except ValueError:
            return True
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        current = now or datetime.now(timezone.utc)
        return current >= expiry - timedelta(seconds=60)
