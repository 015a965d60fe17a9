"""Pytest fixtures for Swimlane integration tests."""

import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from polarity_swimlane.client import SwimlaneClient
from polarity_swimlane.config import IntegrationOptions, Settings
from polarity_swimlane.layout import FIELD_TYPE, SECTION_TYPE, TAB_GROUP_TYPE, TAB_TYPE

SWIMLANE_URL = "https://swimlane.test"


# =========================
# Sample Payloads
# =========================


def section(id, name, children):
    return {"$type": SECTION_TYPE, "id": id, "name": name, "layoutType": "section", "children": children}


def tab_group(tabs):
    return {"$type": TAB_GROUP_TYPE, "id": "tabs", "layoutType": "tabs", "tabs": tabs}


def tab(id, name, children):
    return {"$type": TAB_TYPE, "id": id, "name": name, "layoutType": "tab", "children": children}


def field(field_id):
    return {"$type": FIELD_TYPE, "fieldId": field_id, "layoutType": "field"}


@pytest.fixture
def sample_layout() -> list[dict]:
    """Section > tab group > two tabs, plus a top-level field and an unknown node."""
    return [
        section(
            "s1",
            "Details",
            [
                tab_group(
                    [
                        tab("t1", "Overview", [field("f1")]),
                        tab("t2", "Analysis", [field("f2")]),
                    ]
                ),
            ],
        ),
        field("f3"),
        {"$type": "Core.Models.Layouts.HtmlLayout, Core", "id": "h1"},
    ]


@pytest.fixture
def sample_apps(sample_layout) -> list[dict]:
    """Raw /api/app payload with two applications."""
    return [
        {
            "id": "a1",
            "name": "Incidents",
            "acronym": "INC",
            "fields": [
                {"id": "f1", "name": "Notes"},
                {"id": "f2", "name": "Summary"},
                {"id": "f3", "name": "Source IP"},
            ],
            "layout": sample_layout,
        },
        {
            "id": "a2",
            "name": "Phishing Triage",
            "acronym": "PHI",
            "fields": [{"id": "g1", "name": "Sender"}],
            "layout": [field("g1")],
        },
    ]


def make_record(record_id: str, tracking_id: str, values: dict) -> dict:
    return {
        "id": record_id,
        "trackingId": tracking_id,
        "createdDate": "2024-03-01T10:00:00Z",
        "modifiedDate": "2024-03-02T10:00:00Z",
        "totalTimeSpent": 120,
        "values": values,
    }


# =========================
# Fake Swimlane Server
# =========================


class FakeSwimlane:
    """In-process Swimlane API served through httpx.MockTransport."""

    def __init__(self, apps: list[dict]):
        self.apps = apps
        self.search_body: dict = {"count": 0, "results": {}}
        self.requests: list[httpx.Request] = []
        self.valid_tokens: set[str] = set()
        self.tokens_issued = 0
        self.login_status = 200
        self.app_status = 200
        self.reject_all_tokens = False
        self.app_list_gate: asyncio.Event | None = None
        self.failing_keywords: set[str] = set()
        self.search_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.es_hits: list[dict] = []
        self.es_search_body: dict = {"hits": {"hits": []}}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        # Elasticsearch mirror routes share the transport in CLI runs
        if path.endswith("/_msearch"):
            entity_count = len(request.content.decode().splitlines()) // 2
            hits = {"hits": {"hits": self.es_hits}}
            return httpx.Response(200, json={"responses": [hits] * entity_count})
        if path.endswith("/_search"):
            return httpx.Response(200, json=self.es_search_body)

        if path == "/api/user/login":
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"message": "Invalid credentials"})
            self.tokens_issued += 1
            token = f"token-{self.tokens_issued}"
            self.valid_tokens.add(token)
            return httpx.Response(200, json={"token": token})

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if self.reject_all_tokens or token not in self.valid_tokens:
            return httpx.Response(401, json={"message": "Unauthorized"})

        if path == "/api/app":
            if self.app_list_gate is not None:
                await self.app_list_gate.wait()
            if self.app_status != 200:
                return httpx.Response(self.app_status, text="Internal Server Error")
            return httpx.Response(200, json=self.apps)

        if path == "/api/search":
            keywords = json.loads(request.content)["keywords"]
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                if self.search_delay:
                    await asyncio.sleep(self.search_delay)
            finally:
                self.in_flight -= 1
            if keywords in self.failing_keywords:
                return httpx.Response(500, json={"message": "Search failed"})
            return httpx.Response(200, json=self.search_body)

        return httpx.Response(404, json={"message": "Not Found"})

    def calls(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]


@pytest.fixture
def fake_swimlane(sample_apps) -> FakeSwimlane:
    return FakeSwimlane(sample_apps)


@pytest_asyncio.fixture
async def http_client(fake_swimlane):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_swimlane.handler))
    yield client
    await client.aclose()


@pytest.fixture
def swimlane_client(http_client) -> SwimlaneClient:
    return SwimlaneClient(http_client=http_client)


@pytest.fixture
def options() -> IntegrationOptions:
    return IntegrationOptions(
        url=SWIMLANE_URL,
        username="analyst",
        password="hunter2",
        applications="Incidents",
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        log_format="text",
        max_concurrent_groups=5,
        entity_group_size=10,
    )
