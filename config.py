"""
config.py -- Single source of truth for endpoints, scraping heuristics and pipeline defaults.
"""

import os
import re

# Candidate JSON endpoints, tried in this order. {race_id} is the event "did".
API_ENDPOINT_TEMPLATES = [
    "https://ultrasignup.com/service/events.svc/results/{race_id}/json",
    "https://ultrasignup.com/service/events.svc/results/{race_id}/1/json",
    "https://ultrasignup.com/service/events.svc/results/{race_id}/0/json",
]

# Human results page, scraped when every endpoint fails
RESULTS_PAGE_TEMPLATE = "https://ultrasignup.com/results_event.aspx?did={race_id}"

# Results table lookup, first match wins
TABLE_SELECTORS = [
    "table.ultra-table",
    'table[id*="result"]',
    'table[class*="result"]',
    "div.container table",
]

HEADER_ROW_SELECTOR = "thead tr, tr:first-child"

# Distance tabs (100M / 100K / 50K ...) and page-title fallback
ACTIVE_TAB_SELECTOR = ".nav-tabs .active a, .nav-tabs li.active a"
TITLE_SELECTOR = "h1, h2, .page-title"
DISTANCE_TITLE_RE = re.compile(r"\d+\s*(mile|miler|k|km|marathon)", re.IGNORECASE)

# Header synonyms per record field. Order matters: first header containing
# any synonym wins the column.
COLUMN_SYNONYMS = {
    "place":  ["place", "rank", "pos", "#"],
    "name":   ["name", "runner", "participant"],
    "time":   ["time", "finish", "finish time", "gun time", "chip time"],
    "gender": ["gender", "sex", "m/f"],
    "age":    ["age", "ag"],
    "city":   ["city", "location"],
    "state":  ["state", "st"],
    "race":   ["distance", "race", "event"],
}

# Syntactic pre-filter for scraped rows (full parse happens later)
LOOSE_TIME_RE = re.compile(r"\d+:\d+:\d+")

# Histogram
DEFAULT_BIN_MINUTES = 30

# Debug snapshot
DEBUG_SAMPLE_SIZE = 5
DEBUG_FLAG_PATH = os.path.join("data", "debug_flag.json")
DEBUG_EXPORT_DIR = os.path.join("data", "debug")

# HTTP
REQUEST_TIMEOUT = 20  # seconds
BASE_DELAY = 1.2      # seconds between outbound requests
JITTER_MAX = 0.6      # seconds
COOKIE_ENV_VAR = "ULTRAVIZ_COOKIE"

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36 "
    "UltraViz/0.1 (personal-use results visualizer)"
)
