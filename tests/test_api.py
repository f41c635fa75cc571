"""Tests for the HTTP API.

The browser tab is replaced by :class:`fakes.FakeSurface`, robots.txt fetches
and the answering model are mocked, and every test gets a fresh store.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from fakes import BASE, FakeSession, FakeSurface, tree_site
from siteqa.config import Settings
from siteqa.errors import UpstreamModelFailure
from siteqa.main import app
from siteqa.models.document import Document
from siteqa.services.answering import AnthropicClient
from siteqa.services.store import DocumentStore

client = TestClient(app)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Clear the slowapi in-memory counter before every test."""
    app.state.limiter._storage.reset()
    yield


@pytest.fixture
def store(monkeypatch):
    fresh = DocumentStore()
    monkeypatch.setattr(app.state, "store", fresh)
    return fresh


@pytest.fixture
def session(monkeypatch):
    fake = FakeSession(tree_site())
    monkeypatch.setattr(app.state, "surface", FakeSurface(fake))
    return fake


@pytest.fixture
def indexed(store):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    store.put_documents(
        [
            Document(
                url="https://a.com/ml",
                title="ML basics",
                text_content="machine learning intro",
                domain="a.com",
                fetched_at=now,
            ),
            Document(
                url="https://b.com/cook",
                title="Cooking",
                text_content="pasta recipes",
                domain="b.com",
                fetched_at=now - timedelta(days=1),
            ),
        ]
    )
    return store


def _settings(**kwargs) -> Settings:
    return Settings(**{"anthropic_api_key": "test-key", **kwargs})


def _crawl(path: str = "/crawl", **kwargs):
    payload = {"url": f"{BASE}/", "crawl_delay_ms": 0, "respect_robots": False, **kwargs}
    return client.post(path, json=payload)


# ---------------------------------------------------------------------------
# /crawl
# ---------------------------------------------------------------------------

class TestCrawl:
    def test_crawl_indexes_pages(self, store, session):
        resp = _crawl(max_pages=3)

        assert resp.status_code == 200
        data = resp.json()
        assert data["domain"] == "x.com"
        assert data["pages_requested"] == 3
        assert data["pages_crawled"] == 3
        assert [p["url"] for p in data["pages"]] == [f"{BASE}/", f"{BASE}/p0", f"{BASE}/p1"]
        assert len(store.get_documents("x.com")) == 3
        assert store.get_domains()[0].page_count == 3

    def test_max_pages_capped_by_stored_setting(self, store, session):
        client.put("/settings", json={"max_pages_per_crawl": 2})
        data = _crawl(max_pages=10).json()
        assert data["pages_requested"] == 2
        assert data["pages_crawled"] == 2

    def test_partial_success_reports_counts(self, store, session):
        session.site = {f"{BASE}/": session.site[f"{BASE}/p0/c0"]}
        data = _crawl(max_pages=10).json()
        assert data["pages_requested"] == 10
        assert data["pages_crawled"] == 1

    def test_blocked_by_robots_returns_403(self, store, session):
        robots = AsyncMock(return_value="User-agent: *\nDisallow: /\n")
        with patch("siteqa.services.robots.fetch_robots_txt", new=robots):
            resp = _crawl(respect_robots=True)

        assert resp.status_code == 403
        assert session.navigations == []
        assert store.get_documents() == []

    def test_robots_setting_used_when_not_in_request(self, store, session):
        robots = AsyncMock(return_value="User-agent: *\nDisallow: /\n")
        with patch("siteqa.services.robots.fetch_robots_txt", new=robots):
            resp = client.post("/crawl", json={"url": f"{BASE}/", "crawl_delay_ms": 0})
        assert resp.status_code == 403

    def test_busy_surface_returns_409(self, store, session):
        app.state.surface.busy = True
        assert _crawl().status_code == 409

    def test_invalid_url_returns_422(self, store, session):
        assert client.post("/crawl", json={"url": "not-a-url"}).status_code == 422

    def test_max_pages_must_be_positive(self, store, session):
        assert _crawl(max_pages=0).status_code == 422


class TestCrawlStream:
    def test_streams_progress_then_result(self, store, session):
        resp = _crawl("/crawl/stream", max_pages=2)

        assert resp.status_code == 200
        lines = [json.loads(line) for line in resp.text.splitlines() if line]
        assert [line["type"] for line in lines] == ["progress", "progress", "result"]
        assert lines[0] == {"type": "progress", "current": 1, "total": 1, "current_url": f"{BASE}/"}
        assert lines[-1]["pages_crawled"] == 2
        assert len(store.get_documents()) == 2

    def test_policy_block_is_streamed_as_error(self, store, session):
        robots = AsyncMock(return_value="User-agent: *\nDisallow: /\n")
        with patch("siteqa.services.robots.fetch_robots_txt", new=robots):
            resp = _crawl("/crawl/stream", respect_robots=True)

        lines = [json.loads(line) for line in resp.text.splitlines() if line]
        assert lines == [
            {"type": "error", "status_code": 403, "detail": lines[0]["detail"]}
        ]
        assert "robots.txt" in lines[0]["detail"]

    def test_busy_surface_returns_409(self, store, session):
        app.state.surface.busy = True
        assert _crawl("/crawl/stream").status_code == 409


# ---------------------------------------------------------------------------
# /index
# ---------------------------------------------------------------------------

class TestIndex:
    def test_indexes_single_page(self, store, session):
        resp = client.post("/index", json={"url": f"{BASE}/p1"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["domain"] == "x.com"
        assert data["page"]["title"] == "P1"
        assert session.navigations == [f"{BASE}/p1"]
        assert [d.url for d in store.get_documents()] == [f"{BASE}/p1"]

    def test_timeout_returns_504(self, store, session):
        session.timeouts.add(f"{BASE}/p1")
        resp = client.post("/index", json={"url": f"{BASE}/p1"})
        assert resp.status_code == 504
        assert store.get_documents() == []

    def test_extraction_failure_returns_502(self, store, session):
        session.broken.add(f"{BASE}/p1")
        assert client.post("/index", json={"url": f"{BASE}/p1"}).status_code == 502


# ---------------------------------------------------------------------------
# /ask and /search
# ---------------------------------------------------------------------------

class TestAsk:
    def test_answer_with_sources_and_history(self, indexed):
        with (
            patch("siteqa.routers.ask.get_settings", return_value=_settings()),
            patch.object(AnthropicClient, "complete", new=AsyncMock(return_value="Because.")),
        ):
            resp = client.post("/ask", json={"question": "what is machine learning"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["answer"] == "Because."
        assert data["sources"] == [{"url": "https://a.com/ml", "title": "ML basics", "domain": "a.com"}]
        assert data["context_used"] == 1

        history = client.get("/chat").json()
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[1]["sources"][0]["url"] == "https://a.com/ml"

    def test_stop_word_question_uses_recent_pages(self, indexed):
        with (
            patch("siteqa.routers.ask.get_settings", return_value=_settings()),
            patch.object(AnthropicClient, "complete", new=AsyncMock(return_value="ok")),
        ):
            data = client.post("/ask", json={"question": "what is it"}).json()
        assert [s["url"] for s in data["sources"]] == ["https://a.com/ml", "https://b.com/cook"]

    def test_missing_api_key_returns_400(self, indexed):
        with patch("siteqa.routers.ask.get_settings", return_value=_settings(anthropic_api_key=None)):
            resp = client.post("/ask", json={"question": "machine learning"})
        assert resp.status_code == 400

    def test_empty_corpus_returns_404(self, store):
        with patch("siteqa.routers.ask.get_settings", return_value=_settings()):
            resp = client.post("/ask", json={"question": "machine learning"})
        assert resp.status_code == 404
        assert "No pages indexed" in resp.json()["detail"]

    def test_no_relevant_pages_returns_404(self, indexed):
        with patch("siteqa.routers.ask.get_settings", return_value=_settings()):
            resp = client.post("/ask", json={"question": "quantum chromodynamics"})
        assert resp.status_code == 404
        assert "No relevant pages" in resp.json()["detail"]

    def test_domain_filter(self, indexed):
        with (
            patch("siteqa.routers.ask.get_settings", return_value=_settings()),
            patch.object(AnthropicClient, "complete", new=AsyncMock(return_value="ok")),
        ):
            resp = client.post("/ask", json={"question": "machine learning", "domain": "b.com"})
        assert resp.status_code == 404

    def test_upstream_failure_returns_502(self, indexed):
        failure = UpstreamModelFailure(529, "overloaded")
        with (
            patch("siteqa.routers.ask.get_settings", return_value=_settings()),
            patch.object(AnthropicClient, "complete", new=AsyncMock(side_effect=failure)),
        ):
            resp = client.post("/ask", json={"question": "machine learning"})
        assert resp.status_code == 502
        assert "529" in resp.json()["detail"]
        assert client.get("/chat").json() == []

    def test_empty_question_returns_422(self, indexed):
        assert client.post("/ask", json={"question": ""}).status_code == 422


class TestSearch:
    def test_ranked_results(self, indexed):
        resp = client.post("/search", json={"query": "machine learning"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["keywords"] == ["machine", "learning"]
        assert [d["url"] for d in data["results"]] == ["https://a.com/ml"]

    def test_no_match_is_empty_not_error(self, indexed):
        assert client.post("/search", json={"query": "quantum"}).json()["results"] == []


# ---------------------------------------------------------------------------
# Domains, stats, settings, chat
# ---------------------------------------------------------------------------

class TestManagement:
    def test_list_and_remove_domain(self, indexed):
        domains = [d["domain"] for d in client.get("/domains").json()]
        assert sorted(domains) == ["a.com", "b.com"]

        assert client.delete("/domains/a.com").status_code == 200
        assert [d.domain for d in indexed.get_documents()] == ["b.com"]
        assert client.delete("/domains/a.com").status_code == 404

    def test_stats(self, indexed):
        with patch("siteqa.routers.domains.get_settings", return_value=_settings()):
            data = client.get("/stats").json()
        assert data["total_pages"] == 2
        assert data["total_domains"] == 2
        assert data["has_api_key"] is True

    def test_clear_all(self, indexed):
        assert client.delete("/pages").status_code == 200
        assert indexed.get_documents() == []
        assert client.get("/domains").json() == []

    def test_settings_round_trip(self, store):
        assert client.get("/settings").json()["crawl_delay_ms"] == 2000
        resp = client.put("/settings", json={"crawl_delay_ms": 250, "respect_robots_txt": False})
        assert resp.json() == {
            "max_pages_per_crawl": 50,
            "crawl_delay_ms": 250,
            "respect_robots_txt": False,
        }

    def test_settings_validation(self, store):
        assert client.put("/settings", json={"max_pages_per_crawl": 0}).status_code == 422

    def test_clear_chat(self, store):
        assert client.delete("/chat").status_code == 200
        assert client.get("/chat").json() == []


def test_health_check():
    assert client.get("/").json() == {"message": "Hello from SiteQA"}
