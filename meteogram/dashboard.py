"""Meteogram dashboard: FastAPI backend for host triggers, chart previews and status."""

import sqlite3
from datetime import UTC, datetime
from html import escape
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse
from pydantic import BaseModel

from meteogram.config.defaults import DEFAULT_SCHEMES
from meteogram.config.schema import MeteogramConfig
from meteogram.models.chart import Color
from meteogram.models.refresh import RefreshOutcome, Trigger
from meteogram.refresh.coordinator import RefreshCoordinator, build_coordinator
from meteogram.refresh.timers import StoreTimerFacility
from meteogram.render.sink import FileChartSink
from meteogram.storage import theme_repo
from meteogram.storage.database import open_database
from meteogram.storage.refresh_store import RefreshStateStore, SqliteKeyValueStore


class AccentColors(BaseModel):
    model_config = {"extra": "forbid"}

    line: str
    label: str


def _outcome_json(outcome: RefreshOutcome) -> dict:
    return {
        "trigger": outcome.trigger.value,
        "fetched": outcome.fetched,
        "rendered": outcome.rendered,
        "skipped": outcome.skipped,
        "errors": outcome.errors,
    }


def create_app(
    config: MeteogramConfig,
    db_path: str | Path = "data/meteogram.db",
    coordinator_factory=build_coordinator,
) -> FastAPI:
    """Build the app. Each request opens its own connection."""
    app = FastAPI(title="Meteogram Dashboard", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    sink = FileChartSink(config.output.chart_dir)

    def _conn() -> sqlite3.Connection:
        return open_database(db_path)

    def _coordinator(conn: sqlite3.Connection) -> RefreshCoordinator:
        return coordinator_factory(config, RefreshStateStore(SqliteKeyValueStore(conn)))

    # ── Data endpoints ──────────────────────────────────────────────

    @app.get("/api/status")
    def get_status():
        """Last fetch, known instances and pending timers."""
        conn = _conn()
        try:
            store = RefreshStateStore(SqliteKeyValueStore(conn))
            last_fetch = store.last_fetch_at()
            instances = []
            for instance_id in store.instance_ids():
                state = store.get(instance_id)
                instances.append({
                    "id": instance_id,
                    "width_px": state.width_px,
                    "height_px": state.height_px,
                    "last_render_at": state.last_render_at.isoformat() if state.last_render_at else None,
                })
            timers = StoreTimerFacility(store.kv).pending()
            return {
                "last_fetch_at": last_fetch.isoformat() if last_fetch else None,
                "location": store.load_location(),
                "instances": instances,
                "timers": {name: when.isoformat() for name, when in timers.items()},
                "themes": config.display.themes,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        finally:
            conn.close()

    @app.get("/api/charts/{instance_id}/{theme}.svg")
    def get_chart(instance_id: str, theme: str):
        if theme not in config.display.themes:
            raise HTTPException(404, f"Unknown theme: {theme}")
        path = sink.path_for(instance_id, theme)
        if not path.exists():
            raise HTTPException(404, f"No chart for {instance_id}/{theme}")
        return FileResponse(path, media_type="image/svg+xml")

    # ── Host controls ───────────────────────────────────────────────

    @app.post("/api/triggers/{trigger}")
    def post_trigger(
        trigger: Trigger,
        instance: str | None = None,
        width: int | None = None,
        height: int | None = None,
    ):
        """Deliver a host trigger, optionally with the instance's reported size."""
        reported = (width, height) if width is not None and height is not None else None
        conn = _conn()
        try:
            outcome = _coordinator(conn).handle(trigger, instance, reported)
        finally:
            conn.close()
        return _outcome_json(outcome)

    @app.post("/api/theme/{theme}")
    def post_theme(theme: str, colors: AccentColors):
        if theme not in DEFAULT_SCHEMES:
            raise HTTPException(404, f"Unknown theme: {theme}")
        try:
            line = Color.from_hex(colors.line)
            label = Color.from_hex(colors.label)
        except ValueError as e:
            raise HTTPException(400, str(e)) from e

        conn = _conn()
        try:
            changed = theme_repo.save_accent_colors(
                SqliteKeyValueStore(conn), theme, line, label
            )
            outcome = None
            if changed:
                outcome = _outcome_json(_coordinator(conn).handle(Trigger.THEME_CHANGED))
        finally:
            conn.close()
        return {"changed": changed, "outcome": outcome}

    # ── Preview page ────────────────────────────────────────────────

    @app.get("/")
    def serve_dashboard():
        conn = _conn()
        try:
            instance_ids = RefreshStateStore(SqliteKeyValueStore(conn)).instance_ids()
        finally:
            conn.close()
        rows = []
        for instance_id in instance_ids:
            safe_id = escape(instance_id)
            for theme in config.display.themes:
                rows.append(
                    f"<figure><img src=\"/api/charts/{safe_id}/{theme}.svg\" "
                    f"alt=\"{safe_id} {theme}\"><figcaption>{safe_id} / {theme}"
                    "</figcaption></figure>"
                )
        body = "".join(rows) or "<p>No charts rendered yet.</p>"
        return HTMLResponse(
            "<!doctype html><html><head><title>Meteogram</title></head>"
            f"<body><h1>Meteogram</h1>{body}</body></html>"
        )

    return app


def serve(config: MeteogramConfig, db_path: str, host: str = "127.0.0.1", port: int = 8777) -> None:
    import uvicorn

    uvicorn.run(create_app(config, db_path), host=host, port=port)
