"""Tests for the HTTP API."""
import asyncio
import shutil

import pytest
from fastapi.testclient import TestClient

from docharbor.web import create_web_app

from conftest import write


@pytest.fixture
def client(manager, health):
    return TestClient(create_web_app(manager, health))


class TestHealth:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["initialized"] is True
        assert data["corpora"] == 2
        assert data["documents"] == 7


class TestCorpora:
    def test_list(self, client):
        corpora = client.get("/api/corpora").json()["corpora"]
        assert [c["id"] for c in corpora] == ["webawesome", "routerkit"]

    def test_filter(self, client):
        corpora = client.get("/api/corpora", params={"q": "router"}).json()["corpora"]
        assert [c["id"] for c in corpora] == ["routerkit"]

    def test_get_one(self, client):
        data = client.get("/api/corpora/webawesome").json()
        assert data["name"] == "Web Awesome"
        assert data["version"] == "3.0.0"

    def test_unknown_is_404(self, client):
        resp = client.get("/api/corpora/nope")
        assert resp.status_code == 404
        assert "nope" in resp.json()["detail"]

    def test_structure(self, client):
        data = client.get("/api/corpora/routerkit/structure").json()
        assert [c["title"] for c in data["structure"]["categories"]] == ["Api", "Guides"]

    def test_structure_of_unvalidated_corpus(self, client, manager):
        asyncio.run(manager.register({"id": "fresh", "url": "local://sources/webawesome"}))
        assert client.get("/api/corpora/fresh/structure").status_code == 409


class TestSearch:
    def test_search(self, client, health):
        data = client.post("/api/search", json={"query": "router", "corpus_id": "routerkit"}).json()
        assert data["strategy"]["type"] == "scoped"
        assert data["results"][0]["corpusId"] == "routerkit"
        assert health.status["searches_by_tool"]["api_search"] == 1

    def test_limit(self, client):
        data = client.post("/api/search", json={"query": "the", "limit": 1, "auto_detect": False}).json()
        assert len(data["results"]) <= 1

    def test_empty_query_rejected(self, client):
        assert client.post("/api/search", json={"query": ""}).status_code == 422

    def test_unknown_corpus(self, client):
        resp = client.post("/api/search", json={"query": "x", "corpus_id": "nope"})
        assert resp.status_code == 404


class TestDocuments:
    def test_get_document(self, client):
        resp = client.get("/api/documents/routerkit/guides/routing.md")
        assert resp.status_code == 200
        assert resp.text.startswith("# Routing")

    def test_missing_document(self, client):
        assert client.get("/api/documents/routerkit/nope.md").status_code == 404


class TestDiscoverAndRefresh:
    def test_discover(self, client):
        data = client.post("/api/discover", json={"url": "local://sources/routerkit"}).json()
        assert data["found"] is True
        assert data["path"] == "docs"

    def test_discover_bad_url(self, client):
        data = client.post("/api/discover", json={"url": "nonsense"}).json()
        assert data["found"] is False

    def test_refresh(self, client, sources):
        write(sources / "routerkit" / "docs" / "guides" / "guards.md", "# Guards\n")
        data = client.post("/api/corpora/routerkit/refresh").json()
        assert data["success"] is True
        assert data["documents"] == 3

    def test_refresh_missing_source_is_404(self, client, sources):
        shutil.rmtree(sources / "routerkit")
        assert client.post("/api/corpora/routerkit/refresh").status_code == 404

    def test_refresh_all(self, client):
        data = client.post("/api/refresh").json()
        assert (data["refreshed"], data["total"]) == (2, 2)


class TestStats:
    def test_stats(self, client):
        data = client.get("/api/stats").json()
        assert data["initialized"] is True
        assert data["cache"]["documents"] == 7
        assert data["cache_load"]["success"] is False
        assert "health" in data
