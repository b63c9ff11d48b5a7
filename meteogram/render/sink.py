"""Chart sinks: where rendered charts are published for the host to display."""

import logging
import os
from pathlib import Path
from typing import Protocol

from meteogram.models.chart import VectorChart
from meteogram.models.common import InstanceId

logger = logging.getLogger(__name__)


class ChartSink(Protocol):
    def publish(self, instance_id: InstanceId, theme: str, chart: VectorChart) -> None: ...
    def remove(self, instance_id: InstanceId) -> None: ...


class FileChartSink:
    """Writes <instance>_<theme>.svg files into a directory.

    Each file is written to a temporary sibling and renamed into place, so a
    reader never sees a half-written chart.
    """

    def __init__(self, chart_dir: str | Path):
        self.chart_dir = Path(chart_dir)

    def path_for(self, instance_id: InstanceId, theme: str) -> Path:
        return self.chart_dir / f"{instance_id}_{theme}.svg"

    def publish(self, instance_id: InstanceId, theme: str, chart: VectorChart) -> None:
        self.chart_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(instance_id, theme)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(chart.svg, encoding="utf-8")
        os.replace(tmp, path)
        logger.debug("Wrote %s (%dx%d)", path, chart.width, chart.height)

    def remove(self, instance_id: InstanceId) -> None:
        for path in self.chart_dir.glob("*.svg"):
            if path.stem.rpartition("_")[0] != instance_id:
                continue
            path.unlink(missing_ok=True)
            logger.debug("Removed %s", path)
