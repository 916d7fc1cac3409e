#!/usr/bin/env python3
"""CyberPress: content dashboard core for AI, startup and crypto news.

This CLI tool aggregates news feeds, crypto prices and AI tool rankings,
grades them, and keeps the results fresh on a schedule.

Commands:
    refresh      Refresh all sections (or one) and print a summary
    run          Initial refresh, then keep refreshing on the default schedule
    status       Show configuration, storage statistics and next runs
    saved        List saved items
    prefs        Show or change user preferences
    clear-cache  Drop expired cache entries (or all stored data)

Examples:
    python main.py refresh                       # All enabled sections
    python main.py refresh --section crypto-data # One section
    python main.py run                           # Scheduled mode
    python main.py prefs --frequency hourly --block "Cointelegraph"
    python main.py saved --unread

Environment:
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from clients.creative import CreativeClient
from clients.http import ApiClient
from clients.news import NewsClient
from clients.prices import COINGECKO_BASE_URL, PriceClient
from clients.repos import GITHUB_BASE_URL, RepositoryClient
from config import Config
from observability.logging import setup_logging
from observability.tracing import setup_tracing
from scheduler import (
    CACHE_CLEANUP_JOB,
    Scheduler,
    install_default_schedules,
    next_daily_run,
    next_weekly_run,
)
from storage import Storage
from store import CONTENT_SECTIONS, DashboardStore, Section, section_enabled

CATEGORY_CHOICES = ["ai_news", "startup_news", "crypto", "creative"]


@asynccontextmanager
async def open_store(config: Config) -> AsyncIterator[DashboardStore]:
    """Build the clients, storage and store; close them on exit."""
    api_options = {
        "timeout": config.request_timeout,
        "cache_ttl": config.http_cache_ttl,
        "max_connections": config.max_workers,
    }
    feeds_api = ApiClient(**api_options)
    prices_api = ApiClient(COINGECKO_BASE_URL, **api_options)
    repos_api = ApiClient(GITHUB_BASE_URL, **api_options)
    news = NewsClient(feeds_api, search_api_key=config.perplexity_api_key)
    storage = Storage(config.storage_path)

    store = DashboardStore(
        news=news,
        prices=PriceClient(prices_api, api_key=config.coingecko_api_key),
        repos=RepositoryClient(repos_api, token=config.github_token),
        creative=CreativeClient(),
        storage=storage,
        config=config,
    )
    try:
        store.load()
        yield store
    finally:
        await asyncio.gather(feeds_api.close(), prices_api.close(), repos_api.close(), news.close())
        storage.close()


def cmd_refresh(args: argparse.Namespace, config: Config) -> int:
    """Refresh content once and print the state summary.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success, 1 when the requested section failed)
    """
    logger = logging.getLogger(__name__)

    async def refresh() -> tuple[bool, dict]:
        async with open_store(config) as store:
            if args.section:
                ok = await store.refresh_section(args.section)
            else:
                await store.refresh_all()
                ok = True
            return ok, store.snapshot()

    try:
        ok, snapshot = asyncio.run(refresh())
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130
    except Exception as e:
        logger.error("Refresh failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
        return 1

    print(json.dumps(snapshot, indent=2, ensure_ascii=False))
    return 0 if ok else 1


async def run_dashboard(config: Config) -> None:
    """Refresh everything once, then follow the default schedules until cancelled."""
    logger = logging.getLogger(__name__)
    scheduler = Scheduler()
    async with open_store(config) as store:
        await store.refresh_all()
        install_default_schedules(scheduler, store, store.state.preferences, config)
        logger.info("Dashboard running | jobs=%d", len(scheduler.job_names()))
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.clear_all()
            await scheduler.wait_idle()
            logger.info("Dashboard stopped | status=%s", json.dumps(scheduler.status()))


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Run in scheduled mode until interrupted."""
    logger = logging.getLogger(__name__)
    try:
        asyncio.run(run_dashboard(config))
        return 0
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130
    except Exception as e:
        logger.error("Dashboard failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
        return 1


def _schedule_preview(config: Config, storage: Storage) -> dict[str, str]:
    """Next run time of each default job, computed without starting them."""
    now = datetime.now()
    preferences = storage.get_user_preferences()
    hour, minute = config.daily_refresh_hour, config.daily_refresh_minute
    weekday = config.weekly_refresh_weekday

    preview = {}
    for section in CONTENT_SECTIONS:
        if not section_enabled(preferences, section):
            continue
        if preferences.refresh_frequency == "hourly":
            preview[section.value] = "every 60 min"
        elif preferences.refresh_frequency == "weekly":
            preview[section.value] = next_weekly_run(now, weekday, hour, minute).isoformat()
        else:
            preview[section.value] = next_daily_run(now, hour, minute).isoformat()
    preview[Section.AI_TOOLS.value] = next_weekly_run(now, weekday, hour, minute).isoformat()
    if section_enabled(preferences, Section.CRYPTO_DATA):
        preview[Section.CRYPTO_DATA.value] = f"every {config.crypto_refresh_minutes} min"
    preview[CACHE_CLEANUP_JOB] = f"every {config.cache_cleanup_minutes} min"
    return preview


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration, storage statistics and the schedule preview."""
    with Storage(config.storage_path) as storage:
        status = {
            "config": {
                "storage_path": str(config.storage_path),
                "search_enabled": bool(config.perplexity_api_key),
                "github_token": bool(config.github_token),
                "coingecko_api_key": bool(config.coingecko_api_key),
                "crypto_limit": config.crypto_limit,
                "tools_limit": config.tools_limit,
                "section_timeout": config.section_timeout,
                "content_cache_hours": config.content_cache_hours,
                "enable_logfire": config.enable_logfire,
            },
            "storage": storage.stats(),
            "schedule": _schedule_preview(config, storage),
        }

    print(json.dumps(status, indent=2))
    return 0


def cmd_saved(args: argparse.Namespace, config: Config) -> int:
    """List saved items, newest first."""
    with Storage(config.storage_path) as storage:
        items = storage.get_saved_articles()

    if args.unread:
        items = [item for item in items if item.read_status == "unread"]

    if not items:
        print("No saved items")
        return 0

    for item in items:
        marker = "*" if item.read_status == "unread" else " "
        saved = item.date_saved.strftime("%Y-%m-%d %H:%M")
        print(f"{marker} [{saved}] ({item.type}) {item.title}")
        if item.url:
            print(f"    {item.url}")
    return 0


def cmd_prefs(args: argparse.Namespace, config: Config) -> int:
    """Show preferences, applying any requested changes first."""
    with Storage(config.storage_path) as storage:
        prefs = storage.get_user_preferences()
        updates = {}
        if args.theme:
            updates["theme"] = args.theme
        if args.frequency:
            updates["refresh_frequency"] = args.frequency

        sources = prefs.sources.model_copy(update={
            "blocked": sorted(set(prefs.sources.blocked) | set(args.block or [])),
            "trusted": sorted(set(prefs.sources.trusted) | set(args.trust or [])),
        })
        toggles = prefs.categories.model_dump()
        toggles.update({name: False for name in args.disable or []})
        toggles.update({name: True for name in args.enable or []})

        changed = bool(updates or args.block or args.trust or args.disable or args.enable)
        if changed:
            prefs = prefs.model_copy(update={
                **updates,
                "sources": sources,
                "categories": prefs.categories.model_validate(toggles),
            })
            if not storage.set_user_preferences(prefs):
                print("Failed to save preferences", file=sys.stderr)
                return 1

    print(json.dumps(prefs.model_dump(mode="json"), indent=2))
    return 0


def cmd_clear_cache(args: argparse.Namespace, config: Config) -> int:
    """Drop expired cache entries, or every stored key with --all."""
    with Storage(config.storage_path) as storage:
        if args.all:
            removed = storage.clear_all_data()
            print(f"Removed {removed} stored keys")
        else:
            removed = storage.clear_expired_cache()
            print(f"Removed {removed} expired cache entries")
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="CyberPress: content dashboard core",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # refresh command
    refresh_parser = subparsers.add_parser("refresh", help="Refresh content once")
    refresh_parser.add_argument(
        "--section",
        choices=[section.value for section in Section],
        help="Refresh only this section (default: all enabled sections)",
    )

    # run command
    subparsers.add_parser("run", help="Refresh on the default schedule until Ctrl+C")

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # saved command
    saved_parser = subparsers.add_parser("saved", help="List saved items")
    saved_parser.add_argument(
        "--unread",
        action="store_true",
        help="Only show unread items",
    )

    # prefs command
    prefs_parser = subparsers.add_parser("prefs", help="Show or change preferences")
    prefs_parser.add_argument("--theme", choices=["light", "dark"], help="Color theme")
    prefs_parser.add_argument(
        "--frequency",
        choices=["hourly", "daily", "weekly"],
        help="Refresh frequency for news and creative sections",
    )
    prefs_parser.add_argument("--block", action="append", metavar="SOURCE", help="Block a news source")
    prefs_parser.add_argument("--trust", action="append", metavar="SOURCE", help="Trust a news source")
    prefs_parser.add_argument("--disable", action="append", choices=CATEGORY_CHOICES, help="Disable a category")
    prefs_parser.add_argument("--enable", action="append", choices=CATEGORY_CHOICES, help="Enable a category")

    # clear-cache command
    clear_parser = subparsers.add_parser("clear-cache", help="Drop expired cache entries")
    clear_parser.add_argument(
        "--all",
        action="store_true",
        help="Delete all stored data (preferences, saved items, cache)",
    )

    args = parser.parse_args()

    # Load configuration
    config = Config.load()

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    error = config.validate()
    if error:
        print(f"Configuration error: {error}", file=sys.stderr)
        return 1

    if config.enable_logfire and args.command in ("refresh", "run"):
        setup_tracing(enabled=True, service_name="cyberpress", token=config.logfire_token)

    # Route to command handler
    commands = {
        "refresh": cmd_refresh,
        "run": cmd_run,
        "status": cmd_status,
        "saved": cmd_saved,
        "prefs": cmd_prefs,
        "clear-cache": cmd_clear_cache,
    }

    if args.command in commands:
        return commands[args.command](args, config)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
