"""
Tests for the source adapters and the ordered resolver.
"""

from unittest.mock import MagicMock

import pytest
import requests

from extractor import TableScrapeAdapter
from fetcher import (
    ApiEndpointAdapter, ResultRecord, ResultsPage, SourceAttemptError,
    SourceUnavailableError, resolve_source,
)
from tests.conftest import make_response, failing_session

TEMPLATES = [
    "https://example.test/a/{race_id}/json",
    "https://example.test/b/{race_id}/json",
    "https://example.test/c/{race_id}/json",
]

TWO_ROW_TABLE = """
<html><body><table class="ultra-table">
<tr><th>Place</th><th>Name</th><th>Time</th><th>Distance</th></tr>
<tr><td>1</td><td>Ann</td><td>10:00:00</td><td>50K</td></tr>
<tr><td>2</td><td>Bo</td><td>11:30:00</td><td>50K</td></tr>
</table></body></html>
"""


class TestResultRecordFromApi:
    """Tests for API object normalization."""

    def test_capitalized_keys(self):
        record = ResultRecord.from_api({
            "Place": 3, "Name": "Ann Trail", "Time": "16:45:30", "Gender": "F",
            "Age": 34, "City": "Boulder", "State": "CO", "Race": "100 Mile",
        })
        assert record == ResultRecord(
            place="3", name="Ann Trail", time="16:45:30", gender="F",
            age="34", city="Boulder", state="CO", race="100 Mile",
        )

    def test_first_and_last_name_joined(self):
        record = ResultRecord.from_api({"firstname": "Ann", "lastname": "Trail", "formattime": "5:00:00"})
        assert record.name == "Ann Trail"
        assert record.time == "5:00:00"

    def test_formattime_preferred_over_raw_time(self):
        record = ResultRecord.from_api({"time": 60330000, "formattime": "16:45:30"})
        assert record.time == "16:45:30"

    def test_missing_and_null_fields_are_empty(self):
        record = ResultRecord.from_api({"Name": "Ann", "Race": None})
        assert record.race == ""
        assert record.time == ""


class TestApiEndpointAdapter:
    """Tests for a single JSON endpoint attempt."""

    def _adapter(self, response=None, side_effect=None):
        session = MagicMock()
        if side_effect is not None:
            session.get.side_effect = side_effect
        else:
            session.get.return_value = response
        return ApiEndpointAdapter(TEMPLATES[0], session), session

    def test_success(self):
        adapter, session = self._adapter(make_response(200, [
            {"Name": "Ann", "Time": "10:00:00", "Race": "50K"},
            "garbage",
        ]))
        records = adapter.fetch("42")
        assert [r.name for r in records] == ["Ann"]
        assert session.get.call_args[0][0] == "https://example.test/a/42/json"

    @pytest.mark.parametrize("status", [404, 500, 403, 304])
    def test_http_error(self, status):
        adapter, _ = self._adapter(make_response(status, None))
        with pytest.raises(SourceAttemptError, match=str(status)):
            adapter.fetch("42")

    def test_not_json(self):
        adapter, _ = self._adapter(make_response(200, json_error=True))
        with pytest.raises(SourceAttemptError, match="not JSON"):
            adapter.fetch("42")

    def test_unexpected_shape(self):
        adapter, _ = self._adapter(make_response(200, {"error": "no such event"}))
        with pytest.raises(SourceAttemptError, match="unexpected payload"):
            adapter.fetch("42")

    def test_timeout_is_an_ordinary_failure(self):
        adapter, _ = self._adapter(side_effect=requests.Timeout("read timed out"))
        with pytest.raises(SourceAttemptError, match="timed out"):
            adapter.fetch("42")


class TestResolveSource:
    """Tests for the ordered fallback chain."""

    def test_first_success_short_circuits(self):
        session = MagicMock()
        session.get.side_effect = [
            make_response(404),
            make_response(200, [{"Name": "Ann", "Time": "10:00:00"}]),
            make_response(200, [{"Name": "Never", "Time": "1:00:00"}]),
        ]
        adapters = [ApiEndpointAdapter(t, session) for t in TEMPLATES]
        result = resolve_source("7", adapters)

        assert result.source == "api"
        assert result.url == "https://example.test/b/7/json"
        assert [r.name for r in result.records] == ["Ann"]
        assert session.get.call_count == 2
        assert len(result.errors) == 1

    def test_falls_back_to_scrape(self):
        """Three dead endpoints, a table with two valid rows."""
        session = failing_session()
        adapters = [ApiEndpointAdapter(t, session) for t in TEMPLATES]
        adapters.append(TableScrapeAdapter(ResultsPage(html=TWO_ROW_TABLE)))

        result = resolve_source("7", adapters)

        assert result.source == "scrape"
        assert len(result.records) == 2
        assert session.get.call_count == 3
        assert len(result.errors) == 3

    def test_empty_api_array_tries_next(self):
        session = MagicMock()
        session.get.return_value = make_response(200, [])
        adapters = [ApiEndpointAdapter(TEMPLATES[0], session),
                    TableScrapeAdapter(ResultsPage(html=TWO_ROW_TABLE))]
        assert resolve_source("7", adapters).source == "scrape"

    def test_everything_fails(self):
        session = failing_session()
        adapters = [ApiEndpointAdapter(t, session) for t in TEMPLATES]
        adapters.append(TableScrapeAdapter(ResultsPage(html="<html><body></body></html>")))

        with pytest.raises(SourceUnavailableError) as excinfo:
            resolve_source("7", adapters)
        assert excinfo.value.race_id == "7"
        assert len(excinfo.value.errors) == 4

    def test_result_is_immutable(self):
        session = MagicMock()
        session.get.return_value = make_response(200, [{"Name": "Ann", "Time": "10:00:00"}])
        result = resolve_source("7", [ApiEndpointAdapter(TEMPLATES[0], session)])
        assert isinstance(result.records, tuple)
        with pytest.raises(Exception):
            result.source = "scrape"
