"""
pipeline.py -- One run: resolve source -> filter by distance -> histogram.
"""

import logging
import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

import requests

from config import (
    API_ENDPOINT_TEMPLATES, RESULTS_PAGE_TEMPLATE, DEFAULT_BIN_MINUTES, COOKIE_ENV_VAR,
)
from debug import DebugInfo, build_debug_info
from extractor import TableScrapeAdapter, get_active_distance
from fetcher import (
    ApiEndpointAdapter, ResultsPage, SourceResult, get_http_session, resolve_source,
)
from histogram import Histogram, filter_by_distance, create_histogram_data

logger = logging.getLogger("ultraviz.pipeline")

_run_lock = threading.Lock()


class PipelineBusyError(RuntimeError):
    """A run is already in progress."""


@dataclass
class PipelineConfig:
    bin_minutes: int = DEFAULT_BIN_MINUTES
    distance: Optional[str] = None  # None: read the active tab off the results page
    debug: bool = False
    endpoint_templates: Optional[list] = None
    cookie: Optional[str] = None
    html: Optional[str] = None  # local copy of the results page
    page_url: Optional[str] = None


@dataclass
class PipelineResult:
    race_id: str
    source_result: SourceResult
    active_distance: Optional[str]
    filtered: tuple
    histogram: Histogram
    timings: dict = field(default_factory=dict)
    debug_info: Optional[DebugInfo] = None

    @property
    def has_data(self) -> bool:
        return bool(self.histogram.counts)


def default_adapters(race_id: str, page: ResultsPage, session: requests.Session,
                     endpoint_templates: Optional[list] = None,
                     active_distance: Optional[str] = None) -> list:
    templates = API_ENDPOINT_TEMPLATES if endpoint_templates is None else endpoint_templates
    adapters = [ApiEndpointAdapter(t, session) for t in templates]
    adapters.append(TableScrapeAdapter(page, active_distance))
    return adapters


@contextmanager
def _timed(timings: dict, stage: str):
    t0 = time.perf_counter()
    try:
        yield
    finally:
        timings[stage] = round((time.perf_counter() - t0) * 1000, 1)


def run_pipeline(race_id: str, config: Optional[PipelineConfig] = None,
                 session: Optional[requests.Session] = None) -> PipelineResult:
    """
    Raises SourceUnavailableError if neither the endpoints nor the page
    yield results, PipelineBusyError if another run is in flight.
    """
    if not _run_lock.acquire(blocking=False):
        raise PipelineBusyError("pipeline already running")
    try:
        return _run(race_id, config or PipelineConfig(), session)
    finally:
        _run_lock.release()


def _run(race_id: str, config: PipelineConfig,
         session: Optional[requests.Session]) -> PipelineResult:
    session = session or get_http_session(config.cookie or os.environ.get(COOKIE_ENV_VAR))
    page_url = config.page_url
    if page_url is None and config.html is None:
        page_url = RESULTS_PAGE_TEMPLATE.format(race_id=race_id)
    page = ResultsPage(url=page_url, html=config.html, session=session)

    timings = {}
    adapters = default_adapters(
        race_id, page, session, config.endpoint_templates, config.distance,
    )
    with _timed(timings, "fetch"):
        source_result = resolve_source(race_id, adapters)
    logger.info(
        f"Got {len(source_result.records)} results via {source_result.source.upper()}"
        + (f" ({source_result.url})" if source_result.url else "")
    )

    active_distance = config.distance
    if active_distance is None and page.soup is not None:
        active_distance = get_active_distance(page.soup)

    with _timed(timings, "filter"):
        filtered = tuple(filter_by_distance(source_result.records, active_distance))
    with _timed(timings, "histogram"):
        hist = create_histogram_data(filtered, config.bin_minutes)

    if not hist.counts:
        logger.warning("No valid finish times to display")

    debug_info = None
    if config.debug:
        debug_info = build_debug_info(
            source_result, filtered, hist, active_distance,
            timings, list(source_result.errors),
        )

    return PipelineResult(
        race_id=race_id,
        source_result=source_result,
        active_distance=active_distance,
        filtered=filtered,
        histogram=hist,
        timings=timings,
        debug_info=debug_info,
    )
