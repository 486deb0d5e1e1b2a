"""
histogram.py -- Distance filtering, finish-time bucketing and the chart payload.
"""

import bisect
import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from config import DEFAULT_BIN_MINUTES
from timecodec import parse_duration, format_duration

logger = logging.getLogger("ultraviz.histogram")


# ---------------------------------------------------------------------------
# Distance filter
# ---------------------------------------------------------------------------

def filter_by_distance(records, active_distance: Optional[str]) -> list:
    """
    Keep records whose race label contains active_distance (case-sensitive).
    If nothing matches, the full set comes back rather than an empty chart.
    """
    records = list(records)
    if not active_distance:
        return records

    filtered = [r for r in records if r.race and active_distance in r.race]
    logger.info(f"Filtered to {len(filtered)} results for distance: {active_distance}")
    if not filtered:
        logger.warning(f"No results match '{active_distance}', showing all {len(records)}")
        return records
    return filtered


# ---------------------------------------------------------------------------
# Histogram
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Histogram:
    labels: tuple = ()
    counts: tuple = ()

    @property
    def total(self) -> int:
        return sum(self.counts)

    def to_dict(self):
        return {"labels": list(self.labels), "data": list(self.counts)}


def create_histogram_data(records, bin_minutes: int = DEFAULT_BIN_MINUTES) -> Histogram:
    """
    Bucket finish times into bin_minutes-wide bins.

    The first bin starts at the fastest time (not a round boundary) and bins
    are half-open [start, start + width). Unparseable times are dropped.
    """
    if isinstance(bin_minutes, bool) or not isinstance(bin_minutes, int) or bin_minutes <= 0:
        raise ValueError(f"bin_minutes must be a positive integer, got {bin_minutes!r}")

    times = sorted(
        t for t in (parse_duration(r.time) for r in records) if t is not None
    )
    if not times:
        return Histogram()

    min_time, max_time = times[0], times[-1]
    width = bin_minutes * 60

    labels = []
    counts = []
    start = min_time
    while start <= max_time:
        end = start + width
        count = bisect.bisect_left(times, end) - bisect.bisect_left(times, start)
        labels.append(f"{format_duration(start)}-{format_duration(end)}")
        counts.append(count)
        start = end

    logger.debug(f"Histogram: {len(labels)} bins of {bin_minutes} min over {len(times)} times")
    return Histogram(labels=tuple(labels), counts=tuple(counts))


# ---------------------------------------------------------------------------
# Chart payload
# ---------------------------------------------------------------------------

NO_DATA_NOTICE = "No valid finish times to display"


def build_web_payload(result) -> dict:
    """Transform a PipelineResult into a bar-chart-ready dict."""
    distance = result.active_distance
    title = "Finish Time Distribution"
    if distance:
        title = f"{title} - {distance}"

    hist = result.histogram
    source = result.source_result
    return {
        "race_id": result.race_id,
        "distance": distance,
        "source": source.source,
        "source_url": source.url,
        "total_results": len(source.records),
        "filtered_results": len(result.filtered),
        "chart": {
            "type": "bar",
            "labels": list(hist.labels),
            "datasets": [{
                "label": "Number of Finishers",
                "data": list(hist.counts),
            }],
            "title": title,
            "x_axis": "Finish Time (HH:MM)",
            "y_axis": "Number of Finishers",
        },
        "notice": None if hist.counts else NO_DATA_NOTICE,
    }


def save_web(web_data: dict, outdir: str = "data/web") -> str:
    os.makedirs(outdir, exist_ok=True)
    race_id = web_data.get("race_id") or "unknown"
    path = os.path.join(outdir, f"{race_id}.json")
    with open(path, "w") as f:
        json.dump(web_data, f, indent=2)
    logger.info(f"Saved web data: {path}")
    return path
