"""
Shared fixtures and fakes for the sync pipeline tests.
"""

import json
from typing import Any, Optional

import pytest

from at2felt.config.settings import Config
from at2felt.domain.models import Record

ENV_VARS = [
    "ENVIRONMENT",
    "AIRTABLE_API_KEY", "AIRTABLE_BASE_ID", "AIRTABLE_TABLE", "AIRTABLE_API_URL",
    "NGROK_AUTH_TOKEN", "NGROK_SUBDOMAIN", "NGROK_DOMAIN",
    "FELT_API_KEY", "FELT_MAP_ID", "FELT_API_URL",
    "HTTP_TIMEOUT_S",
]


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class FakeAirtableSession:
    """Replays queued Airtable pages and records every GET."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeFeltPlatform:
    """
    In-memory Felt map: tracks layers by id and records every request.

    Implements the four endpoints the layer manager uses.
    """

    def __init__(self, map_id: str = "map123", layers=None):
        self.map_id = map_id
        self.layers: dict[str, dict] = {}
        self.created: list[dict] = []
        self.refreshed: list[tuple[str, dict]] = []
        self.calls: list[tuple[str, str, Any]] = []
        self._next_id = 1
        for layer in layers or []:
            self.layers[layer["id"]] = dict(layer)

    def layers_named(self, name: str) -> list[dict]:
        return [layer for layer in self.layers.values() if layer["name"] == name]

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append((method, url, json))
        prefix = f"/maps/{self.map_id}"
        if prefix not in url:
            return FakeResponse(404, {"message": "map not found"})
        path = url.split(prefix, 1)[1]

        if method == "GET" and path == "/layers":
            return FakeResponse(200, list(self.layers.values()))

        if method == "GET" and path.startswith("/layers/"):
            layer = self.layers.get(path.split("/")[2])
            if layer is None:
                return FakeResponse(404, {"message": "layer not found"})
            return FakeResponse(200, layer)

        if method == "POST" and path == "/upload":
            layer_id = f"layer{self._next_id}"
            self._next_id += 1
            self.layers[layer_id] = {"id": layer_id, "name": json["name"], "status": "processing"}
            self.created.append(json)
            return FakeResponse(200, {"layer_id": layer_id, "layer_group_id": "group1", "type": "upload_response"})

        if method == "POST" and path.startswith("/layers/") and path.endswith("/refresh"):
            layer_id = path.split("/")[2]
            if layer_id not in self.layers:
                return FakeResponse(404, {"message": "layer not found"})
            self.layers[layer_id]["status"] = "processing"
            self.refreshed.append((layer_id, json))
            return FakeResponse(200, {"layer_id": layer_id, "layer_group_id": "group1", "type": "upload_response"})

        return FakeResponse(404, {"message": "not found"})


def make_record(record_id: str = "rec1", **fields) -> Record:
    return Record(id=record_id, fields=fields)


def airtable_page(records, offset=None) -> FakeResponse:
    payload = {"records": records}
    if offset:
        payload["offset"] = offset
    return FakeResponse(200, payload)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from real credentials and project .env files."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(Config, "_find_project_root", lambda self: tmp_path)


@pytest.fixture
def full_env(monkeypatch):
    monkeypatch.setenv("AIRTABLE_API_KEY", "patTEST")
    monkeypatch.setenv("AIRTABLE_BASE_ID", "appBASE")
    monkeypatch.setenv("NGROK_AUTH_TOKEN", "ngrok-token")
    monkeypatch.setenv("FELT_API_KEY", "felt-key")
    monkeypatch.setenv("FELT_MAP_ID", "map123")


@pytest.fixture
def felt_platform():
    return FakeFeltPlatform()
