import json
from pathlib import Path

import httpx
import pytest

from restgraph import HttpTransport, load_document

FIXTURES = Path(__file__).parent / "fixtures"

USERS = {
    "alice": {
        "name": "Alice",
        "employer_id": "c1",
        "status": "active",
        "followers": 12,
        "address": {"street": "Main St", "city": "Springfield"},
        "hobbies": ["chess"],
    },
    "bob": {"name": "Bob", "employer_id": "c2", "status": "on-leave"},
    "carol": {"name": "Carol", "status": "inactive"},
}

CARS = {"alice": [{"model": "Mini", "color": "red"}]}

COMPANIES = {"c1": {"id": "c1", "name": "Acme"}, "c2": {"id": "c2", "name": "Initech"}}


class RecordingApi:
    """Fake REST API behind an httpx.MockTransport; records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")

        if parts[:2] == ["api", "users"] and len(parts) == 2:
            if request.method == "POST":
                return httpx.Response(201, json=json.loads(request.content))
            return httpx.Response(200, json=list(USERS.values()))
        if parts[:2] == ["api", "users"] and len(parts) == 3:
            user = USERS.get(parts[2])
            if user is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json=user)
        if parts[:2] == ["api", "users"] and parts[3:] == ["cars"]:
            return httpx.Response(200, json=CARS.get(parts[2], []))
        if parts[:2] == ["api", "companies"]:
            return httpx.Response(200, json=COMPANIES[parts[2]])
        if parts[:2] == ["api", "projects"]:
            if request.method == "POST":
                return httpx.Response(201, json=json.loads(request.content))
            return httpx.Response(200, json={"id": parts[2], "project_name": "Apollo"})
        if parts == ["api", "status"]:
            return httpx.Response(200, text="all good", headers={"content-type": "text/plain"})

        return httpx.Response(404, json={"message": "unknown path"})

    def transport(self) -> HttpTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return HttpTransport(client=client)


class FakeEventTransport:
    """Event transport yielding a fixed list of messages."""

    def __init__(self, events):
        self.events = events
        self.topics: list[str] = []

    async def subscribe(self, topic):
        self.topics.append(topic)
        for event in self.events:
            yield event


@pytest.fixture
def example_doc():
    return load_document(FIXTURES / "example_api.yaml")


@pytest.fixture
def secured_doc():
    return load_document(FIXTURES / "secured.yaml")


@pytest.fixture
def callbacks_doc():
    return load_document(FIXTURES / "callbacks.yaml")


@pytest.fixture
def api():
    return RecordingApi()


def make_document(paths, schemas=None, title="Inline API", **extra):
    """Minimal OpenAPI 3 document around a paths object."""
    document = {
        "openapi": "3.0.3",
        "info": {"title": title, "version": "1.0.0"},
        "servers": [{"url": "http://inline.example.com"}],
        "paths": paths,
        "components": {"schemas": schemas or {}},
    }
    document.update(extra)
    return document


def json_response(schema, code="200"):
    """Responses object with one application/json response."""
    return {code: {"description": "ok", "content": {"application/json": {"schema": schema}}}}
