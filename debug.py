"""
debug.py -- Debug mode: persisted on/off flag plus the per-run diagnostics snapshot.

The flag is plain state handed to the pipeline; where it is stored is up to
the getter/setter pair given to DebugFlag.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Callable, Optional

from config import DEBUG_FLAG_PATH, DEBUG_EXPORT_DIR, DEBUG_SAMPLE_SIZE

logger = logging.getLogger("ultraviz.debug")


# ---------------------------------------------------------------------------
# Flag
# ---------------------------------------------------------------------------

class JsonFileFlagStore:
    """Persists the flag as {"debug": true|false}. Unreadable file == off."""

    def __init__(self, path: str = DEBUG_FLAG_PATH):
        self.path = path

    def get(self) -> bool:
        try:
            with open(self.path) as f:
                return json.load(f).get("debug") is True
        except FileNotFoundError:
            return False
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Could not read debug flag from {self.path}: {e}")
            return False

    def set(self, value: bool) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump({"debug": bool(value)}, f)


class DebugFlag:
    def __init__(self, getter: Callable[[], bool], setter: Callable[[bool], None]):
        self._get = getter
        self._set = setter

    @classmethod
    def from_store(cls, store) -> "DebugFlag":
        return cls(store.get, store.set)

    def is_enabled(self) -> bool:
        return bool(self._get())

    def enable(self) -> None:
        self._set(True)

    def disable(self) -> None:
        self._set(False)

    def toggle(self) -> bool:
        new_state = not self.is_enabled()
        self._set(new_state)
        return new_state

    def status(self) -> str:
        return "enabled" if self.is_enabled() else "disabled"


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass
class DebugInfo:
    source: str = "unknown"
    url: Optional[str] = None
    data_count: int = 0
    filtered_count: int = 0
    active_distance: Optional[str] = None
    bin_count: int = 0
    sample_data: list = field(default_factory=list)
    timings: dict = field(default_factory=dict)  # stage -> ms
    errors: list = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


def build_debug_info(source_result, filtered, histogram, active_distance,
                     timings: dict, errors: list) -> DebugInfo:
    records = source_result.records if source_result is not None else ()
    return DebugInfo(
        source=source_result.source if source_result is not None else "unknown",
        url=source_result.url if source_result is not None else None,
        data_count=len(records),
        filtered_count=len(filtered),
        active_distance=active_distance,
        bin_count=len(histogram.labels) if histogram is not None else 0,
        sample_data=[r.to_dict() for r in records[:DEBUG_SAMPLE_SIZE]],
        timings=dict(timings),
        errors=list(errors),
    )


def log_debug_info(info: DebugInfo) -> None:
    logger.info(f"Source:   {info.source.upper()} {info.url or ''}".rstrip())
    logger.info(f"Results:  {info.data_count} total, {info.filtered_count} after filter")
    logger.info(f"Distance: {info.active_distance or 'All'}")
    logger.info(f"Bins:     {info.bin_count}")
    for stage, ms in info.timings.items():
        logger.info(f"  {stage}: {ms}ms")
    for err in info.errors:
        logger.warning(f"  error: {err}")


def export_debug_data(info: DebugInfo, outdir: str = DEBUG_EXPORT_DIR,
                      race_id: Optional[str] = None) -> str:
    os.makedirs(outdir, exist_ok=True)
    export = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "race_id": race_id,
        **info.to_dict(),
    }
    path = os.path.join(outdir, f"ultraviz-debug-{int(time.time() * 1000)}.json")
    with open(path, "w") as f:
        json.dump(export, f, indent=2)
    logger.info(f"Saved debug data: {path}")
    return path
