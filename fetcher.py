"""
fetcher.py -- Data acquisition layer with pluggable source adapters.

Implements:
  - Rate-limited HTTP with jitter, credentialed session
  - Playwright headless fallback for the results page
  - Normalized ResultRecord / SourceResult model
  - JSON endpoint adapter and the ordered resolver that walks the adapter chain
"""

import abc
import logging
import random
import time
from dataclasses import dataclass, field, asdict
from typing import Optional

import requests
from bs4 import BeautifulSoup

from config import (
    BASE_DELAY, JITTER_MAX, REQUEST_TIMEOUT, USER_AGENT,
)

logger = logging.getLogger("ultraviz.fetcher")

# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

_last_request_ts: float = 0.0


def _rate_limit():
    """Enforce minimum delay between outbound requests."""
    global _last_request_ts
    now = time.time()
    elapsed = now - _last_request_ts
    required = BASE_DELAY + random.uniform(0, JITTER_MAX)
    if elapsed < required:
        wait = required - elapsed
        logger.debug(f"Rate-limiting: sleeping {wait:.2f}s")
        time.sleep(wait)
    _last_request_ts = time.time()


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

def get_http_session(cookie_header: Optional[str] = None) -> requests.Session:
    """Session carrying the browser-like headers and, optionally, the user's cookies."""
    s = requests.Session()
    s.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/json, text/html;q=0.9, */*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    })
    if cookie_header:
        s.headers["Cookie"] = cookie_header
    return s


def fetch_html(url: str, session: Optional[requests.Session] = None,
               timeout: int = REQUEST_TIMEOUT) -> Optional[str]:
    """Try requests first, fall back to Playwright if blocked."""
    html = _fetch_requests(url, session, timeout)
    if html is not None:
        return html
    logger.warning("requests fetch failed/blocked, trying Playwright fallback")
    return _fetch_playwright(url, timeout)


def _fetch_requests(url: str, session: Optional[requests.Session], timeout: int) -> Optional[str]:
    _rate_limit()
    s = session or get_http_session()
    try:
        resp = s.get(url, timeout=timeout)
        if resp.status_code == 200 and len(resp.text) > 500:
            logger.info(f"Fetched {url} via requests ({len(resp.text)} bytes)")
            return resp.text
        logger.warning(f"requests: status={resp.status_code}, len={len(resp.text)}")
        return None
    except requests.RequestException as exc:
        logger.warning(f"requests error: {exc}")
        return None


def _fetch_playwright(url: str, timeout: int) -> Optional[str]:
    try:
        from playwright.sync_api import sync_playwright
    except ImportError:
        logger.error("Playwright not installed. pip install playwright && playwright install chromium")
        return None
    try:
        _rate_limit()
        with sync_playwright() as pw:
            browser = pw.chromium.launch(headless=True)
            page = browser.new_page(user_agent=USER_AGENT)
            page.goto(url, timeout=timeout * 1000, wait_until="domcontentloaded")
            # results grid is filled in client-side
            page.wait_for_timeout(3000)
            html = page.content()
            browser.close()
            if len(html) > 500:
                logger.info(f"Fetched {url} via Playwright ({len(html)} bytes)")
                return html
            logger.warning(f"Playwright: page too small ({len(html)} bytes)")
            return None
    except Exception as exc:
        logger.error(f"Playwright error: {exc}")
        return None


class ResultsPage:
    """
    The event's human results page. Fetched lazily and at most once, so the
    scrape adapter and distance-tab detection share one download.
    """

    def __init__(self, url: Optional[str] = None, html: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.url = url
        self._html = html
        self._session = session
        self._fetched = html is not None
        self._soup = None

    @property
    def html(self) -> Optional[str]:
        if not self._fetched:
            self._fetched = True
            if self.url:
                self._html = fetch_html(self.url, self._session)
        return self._html

    @property
    def soup(self) -> Optional[BeautifulSoup]:
        if self._soup is None and self.html:
            self._soup = BeautifulSoup(self.html, "lxml")
        return self._soup


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

RECORD_FIELDS = ("place", "name", "time", "gender", "age", "city", "state", "race")

# API objects are loosely typed; keys matched case-insensitively, first hit wins
API_FIELD_ALIASES = {
    "place":  ["place", "rank", "overall_place"],
    "name":   ["name", "runner", "participant"],
    "time":   ["formattime", "time", "finish_time"],
    "gender": ["gender", "sex"],
    "age":    ["age"],
    "city":   ["city"],
    "state":  ["state"],
    "race":   ["race", "distance", "event"],
}


@dataclass(frozen=True)
class ResultRecord:
    place: str = ""
    name: str = ""
    time: str = ""
    gender: str = ""
    age: str = ""
    city: str = ""
    state: str = ""
    race: str = ""

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_api(cls, obj: dict) -> "ResultRecord":
        lowered = {str(k).lower(): v for k, v in obj.items()}
        values = {}
        for fname in RECORD_FIELDS:
            values[fname] = _first_value(lowered, API_FIELD_ALIASES[fname])
        if not values["name"]:
            first = _first_value(lowered, ["firstname", "first_name"])
            last = _first_value(lowered, ["lastname", "last_name"])
            values["name"] = " ".join(p for p in (first, last) if p)
        return cls(**values)


def _first_value(lowered: dict, keys: list) -> str:
    for key in keys:
        val = lowered.get(key)
        if val is not None:
            return str(val).strip()
    return ""


@dataclass(frozen=True)
class SourceResult:
    records: tuple
    source: str  # "api" | "scrape"
    url: Optional[str] = None
    errors: tuple = field(default_factory=tuple)

    def summary(self) -> dict:
        return {
            "source": self.source,
            "url": self.url,
            "count": len(self.records),
            "errors": list(self.errors),
        }


class SourceAttemptError(Exception):
    """One acquisition strategy failed; the resolver moves on to the next."""


class SourceUnavailableError(Exception):
    """Every endpoint and the table scrape came back empty."""

    def __init__(self, race_id: str, errors: list):
        self.race_id = race_id
        self.errors = list(errors)
        super().__init__(
            f"No results available for race {race_id} "
            f"({len(self.errors)} source(s) tried)"
        )


# ---------------------------------------------------------------------------
# Adapter interface
# ---------------------------------------------------------------------------

class SourceAdapter(abc.ABC):
    """Base class for result sources. Raise SourceAttemptError to defer to the next one."""

    name: str = "BaseAdapter"
    source: str = ""

    @abc.abstractmethod
    def fetch(self, race_id: str) -> list:
        ...

    def describe(self, race_id: str) -> Optional[str]:
        """URL (or other locator) reported back in the SourceResult."""
        return None


class ApiEndpointAdapter(SourceAdapter):
    """One candidate JSON endpoint. Expects a JSON array of result objects."""

    name = "ApiEndpoint"
    source = "api"

    def __init__(self, url_template: str, session: Optional[requests.Session] = None,
                 timeout: int = REQUEST_TIMEOUT):
        self.url_template = url_template
        self.session = session or get_http_session()
        self.timeout = timeout

    def describe(self, race_id: str) -> str:
        return self.url_template.format(race_id=race_id)

    def fetch(self, race_id: str) -> list:
        url = self.describe(race_id)
        _rate_limit()
        logger.info(f"GET {url}")
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SourceAttemptError(f"{url}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise SourceAttemptError(f"{url}: HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise SourceAttemptError(f"{url}: response is not JSON") from exc

        if not isinstance(payload, list):
            raise SourceAttemptError(
                f"{url}: unexpected payload shape ({type(payload).__name__})"
            )

        records = [ResultRecord.from_api(obj) for obj in payload if isinstance(obj, dict)]
        skipped = len(payload) - len(records)
        if skipped:
            logger.debug(f"{url}: skipped {skipped} non-object entries")
        logger.info(f"Fetched {len(records)} results from {url}")
        return records


# ---------------------------------------------------------------------------
# Main entry: resolve a race's results
# ---------------------------------------------------------------------------

def resolve_source(race_id: str, adapters: list) -> SourceResult:
    """
    Walk the adapters strictly in order and return the first non-empty
    result. Raises SourceUnavailableError when all of them come back empty.
    """
    errors = []
    for adapter in adapters:
        logger.info(f"Trying source: {adapter.name} ({adapter.describe(race_id) or 'page'})")
        try:
            records = adapter.fetch(race_id)
        except SourceAttemptError as exc:
            msg = f"[{adapter.name}] {exc}"
            logger.warning(msg)
            errors.append(msg)
            continue

        if records:
            return SourceResult(
                records=tuple(records),
                source=adapter.source,
                url=adapter.describe(race_id),
                errors=tuple(errors),
            )

        msg = f"[{adapter.name}] returned no results"
        logger.warning(f"{msg}, trying next")
        errors.append(msg)

    logger.error(f"All sources failed for race {race_id}")
    raise SourceUnavailableError(race_id, errors)
