import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from jiradash.actions import Services
from jiradash.config import AppConfig
from jiradash.errors import FatalStartupError, RemoteError
from jiradash.logs import setup_logging
from jiradash.views.board import COLUMNS, classify_status


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser(prog="jd", description="Terminal client for Jira Cloud")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("sync", help="Run one sync against Jira and exit")
    history = subparsers.add_parser("sync-history", help="Show recent sync history")
    history.add_argument("--limit", type=int, default=20)
    subparsers.add_parser("doctor", help="Check configuration, credentials and cache")
    subparsers.add_parser("stats", help="Show cached issue counts")

    args = parser.parse_args(argv)
    config = AppConfig.from_env()

    try:
        setup_logging(config)
        if args.command == "sync":
            ok = asyncio.run(sync(config))
            if not ok:
                sys.exit(1)
        elif args.command == "sync-history":
            asyncio.run(sync_history(config, limit=args.limit))
        elif args.command == "doctor":
            asyncio.run(doctor(config))
        elif args.command == "stats":
            asyncio.run(stats(config))
        else:
            start_tui(config)
    except FatalStartupError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)


def require_credentials(config: AppConfig) -> None:
    if not config.has_credentials():
        raise FatalStartupError(
            "No Jira credentials configured. Set JIRADASH_URL, JIRADASH_EMAIL and "
            f"JIRADASH_API_TOKEN, or add them to {config.config_source}."
        )


async def open_services(config: AppConfig) -> Services:
    services = Services.from_config(config)
    await services.db.init_db()
    return services


def start_tui(config: AppConfig) -> None:
    require_credentials(config)
    # Fail before the event loop starts if the cache is unusable.
    asyncio.run(open_services(config))
    from jiradash.app import run

    run(config)


async def sync(config: AppConfig) -> bool:
    """Run one headless sync."""
    require_credentials(config)
    services = await open_services(config)
    scope = config.default_project or "all projects"
    print(f"🔄 Syncing {scope} with Jira...")
    result = await services.engine.sync(config.default_project or None)
    if not result.ok:
        print(f"❌ Sync failed. {result.error}")
        return False
    print(f"✅ Sync complete. {result.summary()}")
    if result.partial:
        for key in result.partial.failed_upserts:
            print(f"   - not cached: {key}")
        for key in result.partial.failed_transitions:
            print(f"   - transitions not refreshed: {key}")
    return True


async def sync_history(config: AppConfig, limit: int = 20) -> None:
    services = await open_services(config)
    entries = await services.db.get_sync_log(limit=limit)
    if not entries:
        print("No sync history found.")
        return
    print("🕘 Recent Sync History")
    for entry in entries:
        scope = entry.scope or "all"
        print(f"- {entry.synced_at} | {scope} | {entry.items_synced} issue(s) | {entry.duration_ms}ms")


async def doctor(config: AppConfig) -> None:
    print("🩺 Running jiradash doctor...")

    env_exists = Path(".env").exists()
    print(f"[{'✓' if env_exists else '✕'}] .env file")
    print(f"[✓] config source: {config.config_source}")
    print(f"[{'✓' if config.jira_url else '✕'}] Jira URL")
    credentials = config.has_credentials()
    method = "OAuth" if config.is_oauth() else "API token"
    print(f"[{'✓' if credentials else '✕'}] credentials ({method})")
    print(f"[{'✓' if config.account_id else '✕'}] account id (needed for assign)")
    print(f"[{'✓' if config.default_project else '✕'}] default project")

    try:
        services = await open_services(config)
    except FatalStartupError as e:
        print(f"[✕] cache: {e}")
        return
    print(f"[✓] cache at {services.db.db_path}")
    last = await services.db.last_sync(config.default_project or None)
    print(f"    last sync: {last.isoformat() if last else 'never'}")

    if credentials:
        print("   - Testing Jira API connection...")
        try:
            me = await services.client.get_myself()
        except RemoteError as e:
            print(f"[✕] Jira API: {e}")
        else:
            print(f"[✓] Jira API as {me.get('displayName') or me.get('emailAddress') or 'unknown'}")

    print("\nDoctor check complete.")


async def stats(config: AppConfig) -> None:
    print("📊 jiradash Stats")
    services = await open_services(config)
    issues = await services.db.get_issues(project_key=config.default_project or None)
    print(f"Issues:   {len(issues)}")

    columns = {name: 0 for name in COLUMNS}
    statuses: dict[str, int] = {}
    for issue in issues:
        columns[classify_status(issue.status)] += 1
        statuses[issue.status] = statuses.get(issue.status, 0) + 1

    print("\nBoard:")
    for name, count in columns.items():
        print(f"  {name:12}: {count}")
    print("\nIssue Status:")
    for status, count in sorted(statuses.items()):
        print(f"  {status:12}: {count}")


if __name__ == "__main__":
    main()
