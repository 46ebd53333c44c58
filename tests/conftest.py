"""Shared pytest fixtures for the lvt-diagnostic test suite."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
import respx
import structlog

from lvt_diagnostic.config import Settings

SITE_URL = "https://contoso.sharepoint.com/sites/records"
ENDPOINT = f"{SITE_URL}/_vti_bin/client.svc/ProcessQuery"

LVT_ERROR_BODY = {
    "error": {
        "type": "Microsoft.SharePoint.SPQueryThrottledException",
        "code": -2147024860,
        "message": (
            "The attempted operation is prohibited because it exceeds the "
            "list view threshold."
        ),
    }
}


# ---------------------------------------------------------------------------
# Fake batch endpoint
# ---------------------------------------------------------------------------


class FakeListService:
    """respx side effect emulating the batch ProcessQuery endpoint.

    ``values`` maps a query action to its result value, or to a callable
    taking the query params. ``responses`` maps a 1-based call number to
    a canned response returned instead of the normal answer.
    """

    def __init__(self) -> None:
        self.values: dict[str, Any] = {}
        self.responses: dict[int, httpx.Response] = {}
        self.payloads: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.payloads)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        self.requests.append(request)

        canned = self.responses.get(self.calls)
        if canned is not None:
            return canned

        results = []
        for query in payload["queries"]:
            value = self.values.get(query["action"])
            if callable(value):
                value = value(query["params"])
            results.append({"id": query["id"], "value": value})
        return httpx.Response(200, json={"results": results})


@pytest.fixture()
def list_service() -> Iterator[FakeListService]:
    """Mock the batch endpoint with a scriptable fake service."""
    service = FakeListService()
    with respx.mock(assert_all_called=False) as router:
        router.post(ENDPOINT).mock(side_effect=service)
        yield service


@pytest.fixture()
def site_values() -> dict[str, Any]:
    """Result values for a small, healthy document library."""
    return {
        "load_web": {
            "Title": "Records",
            "Url": SITE_URL,
            "ServerRelativeUrl": "/sites/records",
            "Id": "6f1b5c1e-0000-0000-0000-000000000001",
        },
        "load_list": {
            "Title": "Documents",
            "ItemCount": 12,
            "RootFolder": {
                "Name": "Shared Documents",
                "ItemCount": 12,
                "ServerRelativeUrl": "/sites/records/Shared Documents",
                "Folders": [
                    {"Name": "2024", "ServerRelativeUrl": "/sites/records/Shared Documents/2024"},
                ],
            },
        },
        "load_list_items": {
            "Items": [{"DisplayName": f"doc-{n}.pdf"} for n in range(12)],
            "ListItemCollectionPosition": None,
        },
        "load_list_item": {"DisplayName": "doc-1.pdf", "FileSystemObjectType": 0},
    }


@pytest.fixture()
def lvt_error_response() -> httpx.Response:
    """A batch rejected for exceeding the list view threshold."""
    return httpx.Response(200, json=LVT_ERROR_BODY)


# ---------------------------------------------------------------------------
# Settings and timing
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> Settings:
    """Settings pointing at the fake site, isolated from local config files."""
    monkeypatch.chdir(tmp_path)
    return Settings(
        site={
            "url": SITE_URL,
            "username": "svc-lvt@contoso.com",
            "password": "not-a-secret",
            "list_title": "Documents",
            "list_item_id": 1,
        },
    )


@pytest.fixture()
def sleeps() -> list[float]:
    """Collects the waits requested by the executor."""
    return []


@pytest.fixture()
def fake_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Reset structlog state between tests."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)
