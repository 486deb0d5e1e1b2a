"""
Pytest configuration and fixtures.

No test touches the network: HTTP goes through MagicMock sessions and the
outbound rate limiter is disabled.
"""
import os
import sys

import pytest
from unittest.mock import MagicMock

import requests

# Flat layout: make the top-level modules importable without installing
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import fetcher  # noqa: E402
from fetcher import ResultRecord  # noqa: E402


@pytest.fixture(autouse=True)
def _no_rate_limit(monkeypatch):
    monkeypatch.setattr(fetcher, "_rate_limit", lambda: None)


def make_response(status_code=200, payload=None, json_error=False):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    if json_error:
        resp.json.side_effect = ValueError("Expecting value")
    else:
        resp.json.return_value = payload
    return resp


def failing_session():
    """Session whose every GET fails at the network level."""
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("connection refused")
    return session


RESULTS_PAGE_HTML = """
<html><body>
<h1>Mountain Mist 100 Mile Endurance Run</h1>
<ul class="nav-tabs">
  <li><a href="#">50K</a></li>
  <li class="active"><a href="#">100 Mile</a></li>
</ul>
<div class="container">
<table class="ultra-table">
  <thead>
    <tr><th>Place</th><th>Name</th><th>Time</th><th>Gender</th><th>Age</th><th>City</th></tr>
  </thead>
  <tbody>
    <tr><td>1</td><td>Ann Trail</td><td>16:45:30</td><td>F</td><td>34</td><td>Boulder</td></tr>
    <tr><td>2</td><td>Bo Ridge</td><td>26:02:11</td><td>M</td><td>41</td><td>Ouray</td></tr>
    <tr><td>3</td><td>Cy Pass</td><td>DNF</td><td>M</td><td>29</td><td>Leadville</td></tr>
  </tbody>
</table>
</div>
</body></html>
"""


@pytest.fixture
def results_page_html():
    return RESULTS_PAGE_HTML


@pytest.fixture
def sample_results():
    """Mixed-distance results, two of them without a usable time."""
    rows = [
        ("1", "Ann Trail", "16:45:30", "100 Mile"),
        ("2", "Bo Ridge", "18:10:05", "100 Mile"),
        ("3", "Cy Pass", "23:59:59", "100 Mile"),
        ("4", "Di Scree", "26:45:12", "100 Mile"),
        ("5", "Ed Cairn", "29:01:00", "100 Mile"),
        ("6", "Fi Talus", "", "100 Mile"),
        ("1", "Gus Col", "4:05:00", "50K"),
        ("2", "Hal Tarn", "4:47:30", "50K"),
        ("3", "Ida Fell", "5:30:00", "50K"),
        ("4", "Jo Moraine", "DNF", "50K"),
    ]
    return [ResultRecord(place=p, name=n, time=t, race=r) for p, n, t, r in rows]
