"""Tests for siteqa.services.store.DocumentStore."""

from siteqa.models.document import Document, Source
from siteqa.models.records import ChatMessage, CrawlSettings, CrawlSettingsUpdate
from siteqa.services.store import DocumentStore


def _doc(url: str, domain: str = "a.com", title: str = "") -> Document:
    return Document(url=url, domain=domain, title=title, text_content="text")


class TestPages:
    def test_put_and_get(self):
        store = DocumentStore()
        store.put_document(_doc("https://a.com/1"))
        assert [d.url for d in store.get_documents()] == ["https://a.com/1"]

    def test_reindex_replaces_and_moves_to_end(self):
        store = DocumentStore()
        store.put_documents([_doc("https://a.com/1", title="old"), _doc("https://a.com/2")])
        store.put_document(_doc("https://a.com/1", title="new"))
        docs = store.get_documents()
        assert [d.url for d in docs] == ["https://a.com/2", "https://a.com/1"]
        assert docs[1].title == "new"

    def test_domain_filter(self):
        store = DocumentStore()
        store.put_documents([_doc("https://a.com/1"), _doc("https://b.com/1", domain="b.com")])
        assert [d.url for d in store.get_documents("b.com")] == ["https://b.com/1"]


class TestDomains:
    def test_domain_registered_with_page_count(self):
        store = DocumentStore()
        store.put_documents([_doc("https://a.com/1"), _doc("https://a.com/2")])
        store.put_document(_doc("https://a.com/1"))
        [record] = store.get_domains()
        assert record.domain == "a.com"
        assert record.page_count == 2
        assert record.last_crawled >= record.added_at

    def test_remove_domain_drops_its_pages(self):
        store = DocumentStore()
        store.put_documents([_doc("https://a.com/1"), _doc("https://b.com/1", domain="b.com")])
        assert store.remove_domain("a.com") is True
        assert [d.domain for d in store.get_documents()] == ["b.com"]
        assert [r.domain for r in store.get_domains()] == ["b.com"]

    def test_remove_unknown_domain(self):
        assert DocumentStore().remove_domain("nope.com") is False

    def test_clear_all(self):
        store = DocumentStore()
        store.put_document(_doc("https://a.com/1"))
        store.clear_all()
        assert store.get_documents() == []
        assert store.get_domains() == []


class TestChatHistory:
    def test_messages_are_timestamped_in_order(self):
        store = DocumentStore()
        store.add_chat_message(ChatMessage(role="user", content="Q?"))
        store.add_chat_message(
            ChatMessage(
                role="assistant",
                content="A.",
                sources=[Source(url="https://a.com/1", title="", domain="a.com")],
            )
        )
        history = store.get_chat_history()
        assert [m.role for m in history] == ["user", "assistant"]
        assert all(m.timestamp is not None for m in history)
        assert history[1].sources[0].url == "https://a.com/1"

    def test_clear(self):
        store = DocumentStore()
        store.add_chat_message(ChatMessage(role="user", content="Q?"))
        store.clear_chat_history()
        assert store.get_chat_history() == []


class TestSettingsAndStats:
    def test_defaults(self):
        settings = DocumentStore().get_settings()
        assert settings == CrawlSettings(
            max_pages_per_crawl=50, crawl_delay_ms=2000, respect_robots_txt=True
        )

    def test_partial_update(self):
        store = DocumentStore()
        updated = store.update_settings(CrawlSettingsUpdate(crawl_delay_ms=500))
        assert updated.crawl_delay_ms == 500
        assert updated.max_pages_per_crawl == 50
        assert store.get_settings().crawl_delay_ms == 500

    def test_stats(self):
        store = DocumentStore()
        store.put_documents([_doc("https://a.com/1"), _doc("https://b.com/1", domain="b.com")])
        stats = store.stats(has_api_key=False)
        assert stats.total_pages == 2
        assert stats.total_domains == 2
        assert stats.has_api_key is False
        assert {d.domain: d.page_count for d in stats.domains} == {"a.com": 1, "b.com": 1}
