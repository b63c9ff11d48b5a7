"""Refresh coordinator: turns a trigger into fetch, render and publish steps."""

import logging
from datetime import datetime, timedelta

import httpx

from meteogram.config.schema import MeteogramConfig
from meteogram.ingest.openmeteo_client import OpenMeteoClient
from meteogram.ingest.series_parser import ParseError, parse_series
from meteogram.ingest.weather_fetcher import WeatherFetcher
from meteogram.models.chart import RenderRequest
from meteogram.models.common import DEFAULT_INSTANCE, InstanceId, utc_now
from meteogram.models.refresh import Dimensions, RefreshOutcome, Trigger
from meteogram.models.weather import WeatherSeries
from meteogram.refresh.decision import RefreshDecisionEngine
from meteogram.render.formatters import locale_uses_fahrenheit
from meteogram.render.sink import ChartSink, FileChartSink
from meteogram.render.svg_chart import ChartGeometryEngine
from meteogram.storage import theme_repo
from meteogram.storage.refresh_store import RefreshStateStore

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    def __init__(
        self,
        config: MeteogramConfig,
        store: RefreshStateStore,
        fetcher: WeatherFetcher,
        sink: ChartSink,
        engine: RefreshDecisionEngine | None = None,
        chart_engine: ChartGeometryEngine | None = None,
    ):
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.sink = sink
        self.engine = engine or RefreshDecisionEngine(
            store,
            stale_threshold=timedelta(minutes=config.refresh.stale_threshold_minutes),
            slot_width=timedelta(minutes=config.refresh.slot_minutes),
            fallback_width_px=config.display.fallback_width_px,
            fallback_height_px=config.display.fallback_height_px,
        )
        self.chart_engine = chart_engine or ChartGeometryEngine()

    def handle(
        self,
        trigger: Trigger,
        instance_id: InstanceId | None = None,
        reported_size: tuple[int, int] | None = None,
        now: datetime | None = None,
    ) -> RefreshOutcome:
        """Process one trigger. Failures are logged and recorded in the outcome.

        Without an instance id every known instance is considered, or the
        default instance if none is known yet.
        """
        if now is None:
            now = utc_now()
        outcome = RefreshOutcome(trigger=trigger)

        if instance_id is not None and not instance_id:
            logger.warning("Rejecting %s trigger with an empty instance id", trigger)
            outcome.errors.append("empty instance id")
            return outcome

        if trigger == Trigger.INSTANCE_REMOVED:
            if instance_id is None:
                outcome.errors.append("instance-removed requires an instance id")
                return outcome
            self.engine.remove_instance(instance_id)
            self.sink.remove(instance_id)
            return outcome

        if instance_id is not None:
            targets = [instance_id]
        else:
            targets = self.store.instance_ids() or [DEFAULT_INSTANCE]
        decisions = {
            target: self.engine.decide(
                trigger, target, now, reported_size if target == instance_id else None
            )
            for target in targets
        }

        if any(d.fetch_needed for d in decisions.values()):
            outcome.fetched = self.fetch(now, outcome)

        series: WeatherSeries | None = None
        for target, decision in decisions.items():
            if not (decision.render_needed or outcome.fetched):
                logger.debug("Render not needed for %s", target)
                outcome.skipped.append(target)
                continue
            if series is None:
                series = self._load_series(outcome)
                if series is None:
                    outcome.skipped.extend(t for t in decisions if t not in outcome.skipped)
                    break
            if self._render(target, series, decision.dimensions, outcome):
                self.engine.record_render(target, now)
                outcome.rendered.append(target)

        logger.info(
            "Trigger %s: fetched=%s rendered=%s skipped=%s errors=%d",
            trigger, outcome.fetched, outcome.rendered, outcome.skipped, len(outcome.errors),
        )
        return outcome

    def resolve_location(self) -> tuple[float, float] | None:
        if self.config.location is not None:
            return self.config.location.latitude, self.config.location.longitude
        return self.store.load_location()

    def build_request(self, dimensions: Dimensions) -> RenderRequest:
        display = self.config.display
        use_fahrenheit = display.use_fahrenheit
        if use_fahrenheit is None:
            use_fahrenheit = locale_uses_fahrenheit(display.locale)
        return RenderRequest(
            width_px=dimensions.width_px,
            height_px=dimensions.height_px,
            locale=display.locale,
            use_fahrenheit=use_fahrenheit,
            use_24_hour_clock=display.use_24_hour_clock,
            past_fade_enabled=display.past_fade,
            timezone=display.timezone,
        )

    def fetch(self, now: datetime, outcome: RefreshOutcome) -> bool:
        """Fetch and cache weather unconditionally. Returns True on success."""
        location = self.resolve_location()
        if location is None:
            logger.warning("No location configured or cached, skipping fetch")
            outcome.errors.append("no location")
            return False
        latitude, longitude = location
        try:
            series, payload = self.fetcher.fetch(latitude, longitude, now)
        except (httpx.HTTPError, ParseError) as e:
            logger.error("Weather fetch failed: %s", e)
            outcome.errors.append(f"fetch: {e}")
            return False

        self.store.save_payload(payload)
        self.store.save_location(latitude, longitude)
        self.engine.record_fetch(now)
        logger.info("Fetched %d points for %.4f, %.4f", len(series.points), latitude, longitude)
        return True

    def _load_series(self, outcome: RefreshOutcome) -> WeatherSeries | None:
        payload = self.store.load_payload()
        if payload is None:
            logger.warning("No cached weather, nothing to render")
            outcome.errors.append("no cached weather")
            return None
        try:
            return parse_series(payload)
        except ParseError as e:
            logger.error("Cached weather is invalid: %s", e)
            outcome.errors.append(f"parse: {e}")
            return None

    def _render(
        self,
        instance_id: InstanceId,
        series: WeatherSeries,
        dimensions: Dimensions,
        outcome: RefreshOutcome,
    ) -> bool:
        display = self.config.display
        window = series.display_window(display.past_hours, display.forecast_hours)
        request = self.build_request(dimensions)
        for theme in display.themes:
            colors = theme_repo.load_color_scheme(self.store.kv, theme)
            chart = self.chart_engine.render(window, window.now_index, colors, request)
            try:
                self.sink.publish(instance_id, theme, chart)
            except OSError as e:
                logger.error("Failed to publish %s chart for %s: %s", theme, instance_id, e)
                outcome.errors.append(f"publish {instance_id}/{theme}: {e}")
                return False
        logger.debug(
            "Rendered %s at %dx%d (%s)",
            instance_id, dimensions.width_px, dimensions.height_px, dimensions.source,
        )
        return True


def build_coordinator(config: MeteogramConfig, store: RefreshStateStore) -> RefreshCoordinator:
    """Wire a coordinator with the Open-Meteo fetcher and file sink from config."""
    client = OpenMeteoClient(
        base_url=config.fetch.base_url,
        timeout=config.fetch.timeout_seconds,
        max_retries=config.fetch.max_retries,
        retry_base_delay=config.fetch.retry_base_delay,
        past_hours=config.display.past_hours,
        forecast_days=config.fetch.forecast_days,
    )
    return RefreshCoordinator(
        config=config,
        store=store,
        fetcher=WeatherFetcher(client),
        sink=FileChartSink(config.output.chart_dir),
    )
