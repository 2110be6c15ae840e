"""Tests for the HealthTracker."""
import threading


class TestRecordSearch:
    def test_hit_increments(self, health):
        health.record_search("search_docs", True)
        s = health.status
        assert s["searches_total"] == 1
        assert s["searches_hits"] == 1
        assert s["searches_misses"] == 0
        assert s["searches_by_tool"]["search_docs"] == 1

    def test_miss_increments(self, health):
        health.record_search("search_docs", False)
        s = health.status
        assert s["searches_total"] == 1
        assert s["searches_hits"] == 0
        assert s["searches_misses"] == 1

    def test_multiple_tools(self, health):
        health.record_search("search_docs", True)
        health.record_search("search_all", False)
        health.record_search("api_search", True)
        s = health.status
        assert s["searches_total"] == 3
        assert s["searches_hits"] == 2
        assert s["searches_by_tool"] == {"search_docs": 1, "search_all": 1, "api_search": 1}

    def test_unknown_tool_not_tracked_per_tool(self, health):
        health.record_search("search_tests", True)
        s = health.status
        assert s["searches_total"] == 1
        assert "search_tests" not in s["searches_by_tool"]

    def test_last_search_at_set(self, health):
        assert health.status["last_search_at"] is None
        health.record_search("search_docs", True)
        assert health.status["last_search_at"] is not None


class TestRecordIndex:
    def test_success(self, health):
        health.record_index("webawesome", ok=True, documents=42)
        s = health.status
        assert s["last_index_ok"] is True
        assert s["corpora"]["webawesome"]["documents"] == 42
        assert s["last_index_at"] is not None

    def test_failure(self, health):
        health.record_index("webawesome", ok=False, error="not found")
        s = health.status
        assert s["last_index_ok"] is False
        assert s["corpora"]["webawesome"]["error"] == "not found"

    def test_one_good_corpus_is_enough(self, health):
        health.record_index("a", ok=False, error="x")
        health.record_index("b", ok=True, documents=1)
        assert health.status["last_index_ok"] is True

    def test_forget_corpus(self, health):
        health.record_index("a", ok=True, documents=1)
        health.forget_corpus("a")
        s = health.status
        assert s["corpora"] == {}
        assert s["last_index_ok"] is False

    def test_status_is_a_copy(self, health):
        health.record_index("a", ok=True, documents=1)
        health.status["corpora"]["a"]["ok"] = False
        assert health.status["corpora"]["a"]["ok"] is True


class TestRecordRefresh:
    def test_stores_outcome(self, health):
        health.record_refresh("routerkit", ok=False, error="boom")
        s = health.status
        assert s["last_refresh_corpus"] == "routerkit"
        assert s["last_refresh_ok"] is False
        assert s["last_refresh_error"] == "boom"
        assert s["last_refresh_at"] is not None


class TestIsHealthy:
    def test_initially_unhealthy(self, health):
        assert health.is_healthy is False

    def test_healthy_when_initialized_without_corpora(self, health):
        health.record_initialized(cache_loaded=False, reason="No cache manifest found")
        assert health.is_healthy is True
        assert health.status["cache_load_reason"] == "No cache manifest found"

    def test_healthy_after_good_index(self, health):
        health.record_initialized(cache_loaded=True)
        health.record_index("a", ok=True, documents=10)
        assert health.is_healthy is True

    def test_unhealthy_when_every_corpus_failed(self, health):
        health.record_initialized(cache_loaded=True)
        health.record_index("a", ok=True, documents=10)
        health.record_index("a", ok=False, error="fail")
        assert health.is_healthy is False


class TestThreadSafety:
    def test_concurrent_search_recording(self, health):
        """Verify no data corruption under concurrent writes."""
        def record_many():
            for _ in range(100):
                health.record_search("search_docs", True)

        threads = [threading.Thread(target=record_many) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert health.status["searches_total"] == 1000
        assert health.status["searches_hits"] == 1000
