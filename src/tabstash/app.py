"""Command line entry point driving the action handlers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any, Sequence, TextIO

from . import actions
from .browser import DevToolsBrowser, TabBrowser
from .events import EventBus
from .models import ActionStatus
from .reconcile import summarize
from .services.settings import Settings, SettingsStore
from .services.store import GroupStore, JsonFileBackend
from .utils import logging as logging_utils
from .validation import display_hostname

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Path | None = None,
    *,
    store: SettingsStore | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_context(settings: Settings, browser: TabBrowser) -> actions.ActionContext:
    """Wire a file-backed store and ``browser`` into an action context.

    Every action outcome is also recorded in the log file.
    """

    store = GroupStore(JsonFileBackend(settings.store_path), key=settings.storage_key)
    return actions.ActionContext(
        store=store,
        browser=browser,
        open_grace_period=settings.open_grace_period,
        events=logging_utils.attach_status_log(EventBus()),
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``tabstash`` console script."""

    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("TABSTASH_DEBUG")
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("TABSTASH_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    overrides = {"store_path": args.store_path, "devtools_url": args.devtools_url}
    settings_store = SettingsStore(resolved_path)
    settings = load_settings(store=settings_store, overrides=overrides)

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.command == "config":
        return show_config(settings, settings_store, write=args.write, out=sys.stdout)
    return asyncio.run(_run(args, settings, out=sys.stdout))


async def _run(args: argparse.Namespace, settings: Settings, *, out: TextIO) -> int:
    browser = DevToolsBrowser(
        settings.devtools_url,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        retry_min_seconds=settings.retry_min_seconds,
        retry_max_seconds=settings.retry_max_seconds,
    )
    async with browser:
        context = build_context(settings, browser)
        try:
            return await run_command(args, context, out=out)
        finally:
            late = await actions.drain_pending(context)
            if late:
                _LOGGER.info("%d tab(s) opened after the status was reported", late)


async def run_command(args: argparse.Namespace, context: actions.ActionContext, *, out: TextIO) -> int:
    """Execute the parsed subcommand against ``context`` and print the outcome."""

    command = args.command
    if command == "list":
        groups = await actions.load_groups(context)
        _print_groups(groups, out)
        return 0

    if command == "save":
        status = await actions.save_current(context)
    elif command == "add":
        status = await actions.add_current_to_group(context, args.group_id)
    elif command == "rename":
        status = await actions.rename_group(context, args.group_id, args.name)
    elif command == "open":
        status = await actions.open_group(context, args.group_id)
    elif command == "remove":
        status = await actions.remove_url_from_group(context, args.group_id, args.position)
    elif command == "delete":
        status = await actions.delete_group(context, args.group_id)
    else:  # pragma: no cover - argparse rejects unknown commands
        raise ValueError(f"Unknown command {command!r}")
    return _report(status, out)


def show_config(settings: Settings, store: SettingsStore, *, write: bool = False, out: TextIO) -> int:
    """Print the effective settings and optionally persist them to ``store``."""

    for item in fields(Settings):
        print(f"{item.name} = {getattr(settings, item.name)!r}", file=out)
    if write:
        try:
            path = store.save(settings)
        except OSError as exc:
            _LOGGER.warning("Failed to save settings to %s: %s", store.path, exc)
            print(f"[error] Unable to write settings to {store.path}.", file=out)
            return 1
        print(f"[success] Settings written to {path}.", file=out)
    return 0


def _report(status: ActionStatus, out: TextIO) -> int:
    print(f"[{status.level.value}] {status.message}", file=out)
    return 0 if status.ok else 1


def _print_groups(groups: Sequence[Any], out: TextIO) -> None:
    if not groups:
        print("No saved groups yet.", file=out)
        return
    for group in groups:
        print(f"{group.id}  {group.name}", file=out)
        for position, url in enumerate(group.urls):
            print(f"    {position}: {display_hostname(url)}  {url}", file=out)
    summary = summarize(groups)
    print(
        f"{summary.group_count} group{'' if summary.group_count == 1 else 's'}, "
        f"{summary.tab_count} tab{'' if summary.tab_count == 1 else 's'}",
        file=out,
    )


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tabstash",
        description="Save the open browser tabs as named groups and reopen them later.",
    )
    parser.add_argument("--settings-path", metavar="PATH", help="Override ~/.tabstash/settings.json.")
    parser.add_argument("--store-path", metavar="PATH", help="JSON file holding the saved groups.")
    parser.add_argument(
        "--devtools-url",
        metavar="URL",
        help="Remote debugging endpoint of the browser (default http://127.0.0.1:9222).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("list", help="Show saved groups.")
    commands.add_parser("save", help="Save the tabs of the current window as a new group.")

    add = commands.add_parser("add", help="Add the active tab to a group.")
    add.add_argument("group_id", type=int)

    rename = commands.add_parser("rename", help="Rename a group.")
    rename.add_argument("group_id", type=int)
    rename.add_argument("name")

    open_ = commands.add_parser("open", help="Open the tabs of a group that are not already open.")
    open_.add_argument("group_id", type=int)

    remove = commands.add_parser("remove", help="Remove the url at POSITION from a group.")
    remove.add_argument("group_id", type=int)
    remove.add_argument("position", type=int)

    delete = commands.add_parser("delete", help="Delete a group.")
    delete.add_argument("group_id", type=int)

    config = commands.add_parser("config", help="Show the effective settings.")
    config.add_argument(
        "--write",
        action="store_true",
        help="Save the effective settings to the settings file.",
    )

    return parser.parse_args(argv)
