"""Tests for the document cache and its disk persistence."""
import gzip
import json
from datetime import datetime, timedelta, timezone

import pytest

from docharbor.cache import CACHE_VERSION, DocumentCache, cache_file_name


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def cache(cache_dir):
    c = DocumentCache(cache_dir)
    c.set("alpha", "docs/a.md", "# A\n\nüñïcödé content")
    c.set("alpha", "docs/b.md", "# B\n")
    c.set("beta", "guide.md", "# Guide\n")
    return c


def _rewrite_index(cache_dir, **changes):
    index_path = cache_dir / "index.json"
    index = json.loads(index_path.read_text())
    index.update(changes)
    index_path.write_text(json.dumps(index))


class TestInMemory:
    def test_get_counts_hits_and_misses(self, cache):
        assert cache.get("alpha", "docs/a.md").startswith("# A")
        assert cache.get("alpha", "missing.md") is None
        assert cache.get("gamma", "x.md") is None
        stats = cache.stats()
        assert (stats["hits"], stats["misses"]) == (1, 2)
        assert stats["documents"] == 3
        assert stats["corpora"] == 2

    def test_metadata(self, cache):
        meta = cache.get_metadata("beta", "guide.md")
        assert meta["size"] == len("# Guide\n")
        raw = "# A\n\nüñïcödé content"
        assert cache.get_metadata("alpha", "docs/a.md")["size"] == len(raw.encode("utf-8"))
        assert "cachedAt" in meta

    def test_replace_corpus_swaps_everything(self, cache):
        cache.replace_corpus("alpha", {"docs/c.md": "# C\n"})
        assert cache.list_files("alpha") == ["docs/c.md"]
        assert cache.get("beta", "guide.md") == "# Guide\n"

    def test_clear_corpus(self, cache):
        assert cache.clear_corpus("alpha") is True
        assert cache.clear_corpus("alpha") is False
        assert not cache.has_corpus("alpha")
        assert cache.corpus_ids() == ["beta"]

    def test_batch_set_merges(self, cache):
        cache.batch_set("alpha", {"docs/b.md": "# B v2\n", "docs/c.md": "# C\n"})
        cache.batch_set("gamma", {"x.md": "# X\n"})
        assert cache.list_files("alpha") == ["docs/a.md", "docs/b.md", "docs/c.md"]
        assert cache.get("alpha", "docs/b.md") == "# B v2\n"
        assert cache.get("gamma", "x.md") == "# X\n"

    def test_clear_all_resets_counters(self, cache):
        cache.get("alpha", "docs/a.md")
        cache.get("alpha", "missing.md")
        cache.clear_all()
        stats = cache.stats()
        assert (stats["hits"], stats["misses"], stats["documents"]) == (0, 0, 0)
        assert cache.corpus_ids() == []


class TestPersistence:
    def test_round_trip(self, cache, cache_dir):
        assert cache.save_to_disk() == 3

        fresh = DocumentCache(cache_dir)
        result = fresh.load_from_disk()
        assert result.success
        assert result.document_count == 3
        assert sorted(result.corpora) == ["alpha", "beta"]
        for corpus_id in ("alpha", "beta"):
            assert fresh.get_corpus(corpus_id) == cache.get_corpus(corpus_id)

    def test_blob_layout(self, cache, cache_dir):
        cache.save_to_disk()
        index = json.loads((cache_dir / "index.json").read_text())
        assert index["version"] == CACHE_VERSION
        entry = next(r for r in index["repositories"] if r["id"] == "alpha")
        assert entry["file"] == "alpha.cache"
        assert entry["documentCount"] == 2
        blob = json.loads(gzip.decompress((cache_dir / "alpha.cache").read_bytes()))
        assert blob["docs/b.md"]["content"] == "# B\n"

    def test_missing_manifest(self, cache_dir):
        result = DocumentCache(cache_dir).load_from_disk()
        assert not result.success
        assert "No cache manifest" in result.reason

    def test_version_mismatch(self, cache, cache_dir):
        cache.save_to_disk()
        _rewrite_index(cache_dir, version="0.9.0")
        result = DocumentCache(cache_dir).load_from_disk()
        assert not result.success
        assert "0.9.0" in result.reason

    def test_stale_cache(self, cache, cache_dir):
        cache.save_to_disk()
        old = (datetime.now(timezone.utc) - timedelta(days=8)).isoformat()
        _rewrite_index(cache_dir, savedAt=old)
        fresh = DocumentCache(cache_dir, max_age_hours=7 * 24)
        result = fresh.load_from_disk()
        assert not result.success
        assert fresh.corpus_ids() == []

    def test_corrupt_manifest(self, cache_dir):
        cache_dir.mkdir()
        (cache_dir / "index.json").write_text("{broken")
        assert not DocumentCache(cache_dir).load_from_disk().success

    def test_unreadable_blob_is_skipped(self, cache, cache_dir):
        cache.save_to_disk()
        (cache_dir / "beta.cache").write_bytes(b"not gzip")
        fresh = DocumentCache(cache_dir)
        result = fresh.load_from_disk()
        assert result.success
        assert result.corpora == ["alpha"]

    def test_orphans_removed(self, cache, cache_dir):
        cache.save_to_disk()
        (cache_dir / "ghost.cache").write_bytes(b"")
        result = DocumentCache(cache_dir).load_from_disk()
        assert result.orphans_removed == 1
        assert not (cache_dir / "ghost.cache").exists()

    def test_save_corpus_updates_one_entry(self, cache, cache_dir):
        cache.save_to_disk()
        cache.replace_corpus("beta", {"guide.md": "# Guide v2\n"})
        cache.save_corpus("beta")

        fresh = DocumentCache(cache_dir)
        assert fresh.load_from_disk().success
        assert fresh.get("beta", "guide.md") == "# Guide v2\n"
        assert fresh.get("alpha", "docs/b.md") == "# B\n"

    def test_save_corpus_after_clear_removes_blob(self, cache, cache_dir):
        cache.save_to_disk()
        cache.clear_corpus("beta")
        cache.save_corpus("beta")
        assert not (cache_dir / "beta.cache").exists()
        fresh = DocumentCache(cache_dir)
        fresh.load_from_disk()
        assert fresh.corpus_ids() == ["alpha"]

    def test_mixed_case_ids_round_trip(self, cache_dir):
        cache = DocumentCache(cache_dir)
        cache.set("Alpha", "a.md", "alpha content")
        cache.set("Blpha", "b.md", "blpha content")
        cache.set("alpha", "c.md", "lower alpha content")
        cache.save_to_disk()

        index = json.loads((cache_dir / "index.json").read_text())
        files = [r["file"] for r in index["repositories"]]
        assert len(set(files)) == 3

        fresh = DocumentCache(cache_dir)
        assert fresh.load_from_disk().success
        assert fresh.get_corpus("Alpha") == {"a.md": "alpha content"}
        assert fresh.get_corpus("Blpha") == {"b.md": "blpha content"}
        assert fresh.get_corpus("alpha") == {"c.md": "lower alpha content"}

    def test_save_corpus_keeps_colliding_ids_apart(self, cache_dir):
        cache = DocumentCache(cache_dir)
        cache.set("Alpha", "a.md", "alpha content")
        cache.save_to_disk()
        cache.set("alpha", "c.md", "lower alpha content")
        cache.save_corpus("alpha")

        fresh = DocumentCache(cache_dir)
        assert fresh.load_from_disk().success
        assert fresh.get_corpus("Alpha") == {"a.md": "alpha content"}
        assert fresh.get_corpus("alpha") == {"c.md": "lower alpha content"}


class TestFileNames:
    def test_sanitized(self):
        assert cache_file_name("web-awesome_2") == "web-awesome_2.cache"
        assert cache_file_name("org/repo.v1") == "org_repo_v1.cache"

    def test_lower_cased(self):
        assert cache_file_name("WebAwesome") == "webawesome.cache"

    def test_taken_name_gets_hash_suffix(self):
        name = cache_file_name("Alpha", {"alpha.cache"})
        assert name.startswith("alpha-") and name.endswith(".cache")
        assert name != cache_file_name("ALPHA", {"alpha.cache"})
