"""
extractor.py -- Results-table scraper used when no JSON endpoint answers.

Column order and header wording differ from event to event, so columns are
found by matching header text against the synonym lists in config.py.
"""

import logging
from typing import Optional, Union

from bs4 import BeautifulSoup

from config import (
    TABLE_SELECTORS, HEADER_ROW_SELECTOR, ACTIVE_TAB_SELECTOR, TITLE_SELECTOR,
    DISTANCE_TITLE_RE, COLUMN_SYNONYMS, LOOSE_TIME_RE,
)
from fetcher import ResultRecord, ResultsPage, SourceAdapter, SourceAttemptError

logger = logging.getLogger("ultraviz.extractor")


def _text(node) -> str:
    if node is None:
        return ""
    return " ".join(node.get_text().split())


def _as_soup(html_or_soup: Union[str, BeautifulSoup]) -> BeautifulSoup:
    if isinstance(html_or_soup, BeautifulSoup):
        return html_or_soup
    return BeautifulSoup(html_or_soup or "", "lxml")


# ---------------------------------------------------------------------------
# Column detection
# ---------------------------------------------------------------------------

def find_column_index(headers: list, possible_names: list) -> int:
    """Index of the first header containing any of possible_names, or -1."""
    for i, header in enumerate(headers):
        for name in possible_names:
            if name in header:
                return i
    return -1


def map_columns(headers: list) -> dict:
    """
    Map each record field to a column index (-1 when not found).

    headers are expected lowercased. Matching is substring-based, so a
    loose synonym can claim an unrelated column (e.g. "st" inside "first").
    """
    return {
        fname: find_column_index(headers, synonyms)
        for fname, synonyms in COLUMN_SYNONYMS.items()
    }


# ---------------------------------------------------------------------------
# Page structure
# ---------------------------------------------------------------------------

def find_results_table(soup: BeautifulSoup):
    for sel in TABLE_SELECTORS:
        table = soup.select_one(sel)
        if table is not None:
            logger.debug(f"Found results table via selector '{sel}'")
            return table
    return None


def find_header_row(table):
    # lxml adds no tbody, so a caption or colgroup keeps the first tr from
    # being a first child
    return table.select_one(HEADER_ROW_SELECTOR) or table.find("tr")


def read_headers(header_row) -> list:
    return [_text(cell).lower() for cell in header_row.find_all(["th", "td"])]


def get_active_distance(html_or_soup: Union[str, BeautifulSoup]) -> Optional[str]:
    """
    Distance label of the selected tab (e.g. "100 Mile"), falling back to a
    distance-looking phrase in the page heading.
    """
    soup = _as_soup(html_or_soup)

    tab = soup.select_one(ACTIVE_TAB_SELECTOR)
    if tab is not None:
        label = _text(tab)
        if label:
            logger.info(f"Active distance tab: {label}")
            return label

    title = soup.select_one(TITLE_SELECTOR)
    if title is not None:
        m = DISTANCE_TITLE_RE.search(title.get_text())
        if m:
            return m.group(0)

    return None


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _cell(cells: list, index: int) -> str:
    if 0 <= index < len(cells):
        return _text(cells[index])
    return ""


def scrape_table_data(html_or_soup: Union[str, BeautifulSoup],
                      active_distance: Optional[str] = None) -> list:
    """
    Scrape ResultRecords from the page's results table.

    active_distance is used as the race label when the table has no
    distance column; None means detect it from the page. Missing table or
    header yields an empty list.
    """
    soup = _as_soup(html_or_soup)

    table = find_results_table(soup)
    if table is None:
        logger.error("Could not find results table")
        return []

    header_row = find_header_row(table)
    if header_row is None:
        logger.error("Could not find table header")
        return []

    headers = read_headers(header_row)
    logger.debug(f"Table headers: {headers}")
    columns = map_columns(headers)
    logger.debug(f"Column indices: {columns}")

    if active_distance is None:
        active_distance = get_active_distance(soup)
    race_fallback = active_distance or ""

    rows = [tr for tr in table.find_all("tr") if tr is not header_row]
    logger.info(f"Found {len(rows)} data rows")

    results = []
    for row in rows:
        cells = row.find_all(["td", "th"])
        # th mid-table marks a repeated/sub header
        if not cells or row.find("th") is not None:
            continue

        values = {fname: _cell(cells, idx) for fname, idx in columns.items()}
        if columns["race"] < 0:
            values["race"] = race_fallback
        record = ResultRecord(**values)

        if record.time and LOOSE_TIME_RE.search(record.time):
            results.append(record)

    logger.info(f"Scraped {len(results)} valid results")
    return results


class TableScrapeAdapter(SourceAdapter):
    """Last link of the chain: scrape the human results page."""

    name = "TableScrape"
    source = "scrape"

    def __init__(self, page: ResultsPage, active_distance: Optional[str] = None):
        self.page = page
        self.active_distance = active_distance

    def describe(self, race_id: str) -> Optional[str]:
        return self.page.url

    def fetch(self, race_id: str) -> list:
        soup = self.page.soup
        if soup is None:
            raise SourceAttemptError("results page unavailable")
        return scrape_table_data(soup, self.active_distance)
