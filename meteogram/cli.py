"""CLI entry point for the meteogram refresher."""

import argparse
import logging
import sqlite3
from pathlib import Path

from meteogram.config.defaults import DEFAULT_SCHEMES
from meteogram.config.loader import (
    config_hash,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)
from meteogram.config.schema import LocationConfig, MeteogramConfig
from meteogram.ingest import staleness
from meteogram.models.chart import Color
from meteogram.models.common import utc_now
from meteogram.models.refresh import RefreshOutcome, Trigger
from meteogram.refresh.coordinator import build_coordinator
from meteogram.refresh.timers import StoreTimerFacility
from meteogram.storage import theme_repo
from meteogram.storage.database import open_database
from meteogram.storage.refresh_store import RefreshStateStore, SqliteKeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "config/meteogram.yaml"
DEFAULT_DB = "data/meteogram.db"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="meteogram",
        description="Meteogram chart refresher",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Config YAML path")
    parser.add_argument("--db", default=DEFAULT_DB, help="SQLite DB path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    # refresh
    refresh_p = sub.add_parser("refresh", help="Handle one trigger")
    refresh_p.add_argument(
        "--trigger",
        default=Trigger.PERIODIC_TASK.value,
        choices=[t.value for t in Trigger],
    )
    refresh_p.add_argument("--instance", help="Instance id (default: all known)")
    refresh_p.add_argument("--size", help="Reported size as WIDTHxHEIGHT")

    # render
    render_p = sub.add_parser("render", help="Re-render from cached weather")
    render_p.add_argument("--instance", help="Instance id (default: all known)")
    render_p.add_argument("--size", help="Reported size as WIDTHxHEIGHT")

    # fetch
    fetch_p = sub.add_parser("fetch", help="Fetch weather if stale")
    fetch_p.add_argument("--force", action="store_true", help="Fetch even if fresh")

    # status
    sub.add_parser("status", help="Show refresh state")

    # theme
    theme_p = sub.add_parser("theme", help="Accent color operations")
    theme_sub = theme_p.add_subparsers(dest="theme_command")
    theme_set_p = theme_sub.add_parser("set", help="Set accent colors for a theme")
    theme_set_p.add_argument("theme", choices=sorted(DEFAULT_SCHEMES))
    theme_set_p.add_argument("line", help="Temperature line color (#rrggbb or #aarrggbb)")
    theme_set_p.add_argument("label", help="Time label color (#rrggbb or #aarrggbb)")
    theme_clear_p = theme_sub.add_parser("clear", help="Restore preset colors")
    theme_clear_p.add_argument("theme", choices=sorted(DEFAULT_SCHEMES))

    # remove
    remove_p = sub.add_parser("remove", help="Forget an instance and delete its charts")
    remove_p.add_argument("instance")

    # location
    location_p = sub.add_parser("location", help="Set the forecast location")
    location_p.add_argument("latitude", type=float)
    location_p.add_argument("longitude", type=float)
    location_p.add_argument("--name", default="")

    # config show / config set
    config_p = sub.add_parser("config", help="Config operations")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Display current config")
    set_p = config_sub.add_parser("set", help="Set a config value")
    set_p.add_argument("keyvalue", help="key=value to set")

    # daemon
    daemon_p = sub.add_parser("daemon", help="Run the refresh loop")
    daemon_p.add_argument("--interval", type=int, help="Periodic interval in seconds")
    daemon_p.add_argument("--stop", action="store_true", help="Stop a running daemon")
    daemon_p.add_argument("--status", action="store_true", help="Show daemon status")

    # serve
    serve_p = sub.add_parser("serve", help="Run the dashboard")
    serve_p.add_argument("--host", default="127.0.0.1")
    serve_p.add_argument("--port", type=int, default=8777)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _load_or_default(args.config)
    except ValueError as e:
        print(f"Error: invalid config {args.config}: {e}")
        return 1

    if args.command == "refresh":
        return _cmd_refresh(config, args)
    elif args.command == "render":
        return _cmd_render(config, args)
    elif args.command == "fetch":
        return _cmd_fetch(config, args)
    elif args.command == "status":
        return _cmd_status(config, args)
    elif args.command == "theme":
        return _cmd_theme(config, args)
    elif args.command == "remove":
        return _cmd_remove(config, args)
    elif args.command == "location":
        return _cmd_location(config, args)
    elif args.command == "config":
        return _cmd_config(config, args)
    elif args.command == "daemon":
        return _cmd_daemon(config, args)
    elif args.command == "serve":
        return _cmd_serve(config, args)
    else:
        parser.print_help()
        return 1


def _load_or_default(path: str) -> MeteogramConfig:
    if not Path(path).exists():
        logger.info("No config at %s, using defaults", path)
        return MeteogramConfig()
    return load_config(path)


def _parse_size(value: str | None) -> tuple[int, int] | None:
    if not value:
        return None
    width, sep, height = value.lower().partition("x")
    if not sep:
        raise ValueError(f"Size must be WIDTHxHEIGHT, got {value!r}")
    return int(width), int(height)


def _open_store(args) -> tuple[sqlite3.Connection, RefreshStateStore]:
    conn = open_database(args.db)
    return conn, RefreshStateStore(SqliteKeyValueStore(conn))


def _print_outcome(outcome: RefreshOutcome) -> int:
    print(f"Trigger: {outcome.trigger}")
    print(f"Fetched: {outcome.fetched}")
    print(f"Rendered: {', '.join(outcome.rendered) or '-'}")
    if outcome.skipped:
        print(f"Skipped: {', '.join(outcome.skipped)}")
    for err in outcome.errors:
        print(f"Error: {err}")
    return 0 if not outcome.errors else 1


def _handle(config, args, trigger: Trigger, size: str | None = None) -> int:
    try:
        reported = _parse_size(size)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    conn, store = _open_store(args)
    try:
        coordinator = build_coordinator(config, store)
        outcome = coordinator.handle(trigger, getattr(args, "instance", None), reported)
    finally:
        conn.close()
    return _print_outcome(outcome)


def _cmd_refresh(config, args) -> int:
    return _handle(config, args, Trigger(args.trigger), args.size)


def _cmd_render(config, args) -> int:
    # display-resized forces a render and never fetches
    return _handle(config, args, Trigger.DISPLAY_RESIZED, args.size)


def _cmd_fetch(config, args) -> int:
    if not args.force:
        return _handle(config, args, Trigger.CONNECTIVITY_AVAILABLE)
    conn, store = _open_store(args)
    try:
        coordinator = build_coordinator(config, store)
        outcome = RefreshOutcome(trigger=Trigger.CONNECTIVITY_AVAILABLE)
        outcome.fetched = coordinator.fetch(utc_now(), outcome)
    finally:
        conn.close()
    return _print_outcome(outcome)


def _cmd_status(config, args) -> int:
    conn, store = _open_store(args)
    now = utc_now()
    last_fetch = store.last_fetch_at()
    location = store.load_location()

    print(f"Config: {args.config} ({config_hash(config)})")
    if last_fetch is None:
        print("Last fetch: never")
    else:
        print(
            f"Last fetch: {last_fetch.isoformat()} "
            f"({staleness.age_minutes(last_fetch, now):.0f} min ago)"
        )
    if location is not None:
        print(f"Cached location: {location[0]:.4f}, {location[1]:.4f}")

    instance_ids = store.instance_ids()
    print(f"Instances: {len(instance_ids)}")
    for instance_id in instance_ids:
        state = store.get(instance_id)
        rendered = state.last_render_at.isoformat() if state.last_render_at else "never"
        print(f"  {instance_id}: {state.width_px}x{state.height_px}, last render {rendered}")

    for name, when in StoreTimerFacility(store.kv).pending().items():
        print(f"Timer {name}: {when.isoformat()}")
    conn.close()
    return 0


def _cmd_theme(config, args) -> int:
    conn, store = _open_store(args)
    try:
        if args.theme_command == "set":
            try:
                line = Color.from_hex(args.line)
                label = Color.from_hex(args.label)
            except ValueError as e:
                print(f"Error: {e}")
                return 1
            changed = theme_repo.save_accent_colors(store.kv, args.theme, line, label)
        elif args.theme_command == "clear":
            theme_repo.clear_accent_colors(store.kv, args.theme)
            changed = True
        else:
            print("Use: theme set THEME LINE LABEL | theme clear THEME")
            return 1
    finally:
        conn.close()

    if not changed:
        print(f"{args.theme} colors unchanged")
        return 0
    print(f"{args.theme} colors updated, re-rendering")
    return _handle(config, args, Trigger.THEME_CHANGED)


def _cmd_remove(config, args) -> int:
    return _handle(config, args, Trigger.INSTANCE_REMOVED)


def _cmd_location(config, args) -> int:
    try:
        location = LocationConfig(
            name=args.name, latitude=args.latitude, longitude=args.longitude
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    new_config = config.model_copy(update={"location": location})
    Path(args.config).parent.mkdir(parents=True, exist_ok=True)
    save_config(new_config, args.config)
    print(f"Location set to {location.latitude}, {location.longitude}")
    return 0


def _cmd_config(config, args) -> int:
    if args.config_command == "show":
        print(config.model_dump_json(indent=2))
        return 0
    elif args.config_command == "set":
        kv = args.keyvalue
        if "=" not in kv:
            print("Error: use key=value format")
            return 1
        key, value = kv.split("=", 1)
        try:
            new_config = set_config_value(config, key.strip(), value.strip())
        except (KeyError, ValueError) as e:
            print(f"Error: {e}")
            return 1
        Path(args.config).parent.mkdir(parents=True, exist_ok=True)
        save_config(new_config, args.config)
        print(f"Set {key} = {get_config_value(new_config, key.strip())}")
        return 0
    else:
        print("Use: config show | config set key=value")
        return 1


def _cmd_daemon(config, args) -> int:
    from meteogram.daemon import RefreshDaemon, daemon_status, stop_daemon

    if args.stop:
        return stop_daemon()
    if args.status:
        return daemon_status()
    RefreshDaemon(config, args.db, interval=args.interval).start()
    return 0


def _cmd_serve(config, args) -> int:
    from meteogram.dashboard import serve

    serve(config, args.db, host=args.host, port=args.port)
    return 0
