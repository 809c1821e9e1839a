# tests/test_unwrap.py

import json

import pytest

from tests.helpers import load_fixture
from tracker_ingest.errors import InvalidUpstreamPayload
from tracker_ingest.scraper.unwrap import extract_pre_json, unwrap_response

MINIMAL = {"segments": [], "availableSegments": []}


def test_content_envelope_with_data():
    doc = load_fixture("profile_steam.json")
    result = unwrap_response({"content": json.dumps(doc), "status_code": 200, "task_id": "abc"})

    assert result["metadata"]["currentSeason"] == 29
    assert result["platformInfo"]["platformSlug"] == "steam"
    assert len(result["segments"]) == 6
    assert len(result["availableSegments"]) == 5


def test_direct_data_body():
    doc = load_fixture("profile_steam.json")
    result = unwrap_response(doc)

    assert result["userInfo"]["userId"] == 4821
    assert result["segments"] == doc["data"]["segments"]


def test_solution_response_with_pre_block():
    payload = json.dumps({"data": {"segments": [{"type": "overview"}], "availableSegments": []}})
    markup = "<html><head></head><body><pre>" + payload.replace("&", "&amp;") + "</pre></body></html>"
    result = unwrap_response({"solution": {"response": markup, "status": 200}})

    assert result["segments"] == [{"type": "overview"}]


def test_pre_block_entities_are_unescaped():
    markup = '<pre>{"data": {"segments": [{"metadata": {"name": "A &amp; B"}}], "availableSegments": []}}</pre>'
    assert extract_pre_json(markup)["data"]["segments"][0]["metadata"]["name"] == "A & B"


def test_raw_html_body():
    markup = "<html><body><pre>" + json.dumps(MINIMAL) + "</pre></body></html>"
    result = unwrap_response(markup)

    assert result["segments"] == []
    assert result["availableSegments"] == []


def test_bytes_json_body():
    result = unwrap_response(json.dumps({"data": MINIMAL}).encode("utf-8"))
    assert result["segments"] == []


def test_defaults_are_filled():
    result = unwrap_response({"data": {"segments": [], "availableSegments": [], "metadata": {"playerId": 5}}})

    assert result["platformInfo"] == {"platformSlug": "", "platformUserId": "", "platformUserHandle": ""}
    assert result["userInfo"] == {"userId": 0, "isPremium": False}
    assert result["metadata"] == {"lastUpdated": "", "playerId": 5, "currentSeason": 0}


@pytest.mark.parametrize(
    "body",
    [
        {"content": "{not json"},
        {"solution": {"status": 200}},
        {"solution": {"response": "<html><body>blocked</body></html>"}},
        "<html><body>Just a moment...</body></html>",
        "plain text",
        {"data": {"segments": []}},
        {"data": {"segments": {}, "availableSegments": []}},
        {"data": {"segments": [], "availableSegments": None}},
        [],
    ],
)
def test_invalid_payloads_raise(body):
    with pytest.raises(InvalidUpstreamPayload):
        unwrap_response(body)
