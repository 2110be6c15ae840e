# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Document cache – raw file content per (corpus, path), persisted as one
gzip-compressed JSON blob per corpus plus an index.json manifest.

Layout of cache_dir:
    index.json          {version, savedAt, repositories: [{id, file, documentCount, savedAt}]}
    <sanitized-id>.cache  gzip(JSON {path: {content, metadata: {cachedAt, size}}})

Thread-safe; disk I/O is synchronous (callers on the event loop wrap it
in asyncio.to_thread).
"""
from __future__ import annotations

import gzip
import hashlib
import json
import os
import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import AbstractSet, Optional

from .errors import CacheError, CacheStale, CacheVersionMismatch
from .logging import get_logger

logger = get_logger(__name__)

CACHE_VERSION = "1.0.0"
INDEX_FILE = "index.json"
BLOB_SUFFIX = ".cache"
DEFAULT_MAX_AGE_HOURS = 7 * 24


def cache_file_name(corpus_id: str, taken: AbstractSet[str] = frozenset()) -> str:
    """Filesystem-safe blob name; a hash suffix keeps colliding ids apart."""
    name = re.sub(r"[^a-z0-9_-]", "_", corpus_id.lower())
    if name + BLOB_SUFFIX in taken:
        digest = hashlib.sha1(corpus_id.encode("utf-8")).hexdigest()[:8]
        name = f"{name}-{digest}"
    return name + BLOB_SUFFIX


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _atomic_write(path: Path, data: bytes):
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


@dataclass
class CacheLoadResult:
    success: bool
    reason: str = ""
    document_count: int = 0
    corpora: list[str] = field(default_factory=list)
    cache_age_hours: Optional[float] = None
    orphans_removed: int = 0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "reason": self.reason,
            "documents": self.document_count,
            "corpora": list(self.corpora),
            "cache_age_hours": (
                round(self.cache_age_hours, 2) if self.cache_age_hours is not None else None
            ),
            "orphans_removed": self.orphans_removed,
        }


def _make_entry(content: str) -> dict:
    size = len(content.encode("utf-8"))
    return {"content": content, "metadata": {"cachedAt": time.time(), "size": size}}


class DocumentCache:
    def __init__(self, cache_dir: str | Path, max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
                 version: str = CACHE_VERSION):
        self.cache_dir = Path(cache_dir)
        self.max_age_hours = max_age_hours
        self.version = version
        self._lock = threading.Lock()
        self._store: dict[str, dict[str, dict]] = {}
        self._hits = 0
        self._misses = 0

    # ── In-memory store ──────────────────────────────

    def set(self, corpus_id: str, path: str, content: str):
        with self._lock:
            self._store.setdefault(corpus_id, {})[path] = _make_entry(content)

    def batch_set(self, corpus_id: str, documents: dict[str, str]):
        """Merge {path: content} into a corpus, keeping paths not listed."""
        entries = {p: _make_entry(c) for p, c in documents.items()}
        with self._lock:
            self._store.setdefault(corpus_id, {}).update(entries)

    def get(self, corpus_id: str, path: str) -> Optional[str]:
        with self._lock:
            entry = self._store.get(corpus_id, {}).get(path)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry["content"]

    def has(self, corpus_id: str, path: str) -> bool:
        with self._lock:
            return path in self._store.get(corpus_id, {})

    def has_corpus(self, corpus_id: str) -> bool:
        with self._lock:
            return corpus_id in self._store

    def get_metadata(self, corpus_id: str, path: str) -> Optional[dict]:
        with self._lock:
            entry = self._store.get(corpus_id, {}).get(path)
            return dict(entry["metadata"]) if entry else None

    def get_corpus(self, corpus_id: str) -> dict[str, str]:
        """Snapshot of {path: content} for one corpus."""
        with self._lock:
            return {p: e["content"] for p, e in self._store.get(corpus_id, {}).items()}

    def replace_corpus(self, corpus_id: str, files: dict[str, str]):
        """Swap in a complete new file set for a corpus in one step."""
        entries = {p: _make_entry(c) for p, c in files.items()}
        with self._lock:
            self._store[corpus_id] = entries

    def clear_corpus(self, corpus_id: str) -> bool:
        with self._lock:
            return self._store.pop(corpus_id, None) is not None

    def clear_all(self):
        """Drop every corpus and reset the hit/miss counters. Disk is untouched."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Cleared all cached documents")

    def list_files(self, corpus_id: str) -> list[str]:
        with self._lock:
            return sorted(self._store.get(corpus_id, {}))

    def corpus_ids(self) -> list[str]:
        with self._lock:
            return list(self._store)

    def stats(self) -> dict:
        with self._lock:
            corpora = []
            total_docs = 0
            total_size = 0
            for corpus_id, files in self._store.items():
                size = sum(e["metadata"]["size"] for e in files.values())
                corpora.append({"id": corpus_id, "documents": len(files), "size": size})
                total_docs += len(files)
                total_size += size
            lookups = self._hits + self._misses
            return {
                "corpora": len(self._store),
                "documents": total_docs,
                "total_size": total_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
                "repositories": corpora,
                "cache_dir": str(self.cache_dir),
            }

    # ── Persistence ──────────────────────────────────

    @property
    def index_path(self) -> Path:
        return self.cache_dir / INDEX_FILE

    def _write_blob(self, corpus_id: str, entries: dict[str, dict], name: str) -> dict:
        payload = json.dumps(entries, ensure_ascii=False).encode("utf-8")
        _atomic_write(self.cache_dir / name, gzip.compress(payload))
        return {"id": corpus_id, "file": name, "documentCount": len(entries), "savedAt": _now_iso()}

    def _write_index(self, repositories: list[dict]):
        index = {"version": self.version, "savedAt": _now_iso(), "repositories": repositories}
        _atomic_write(self.index_path, json.dumps(index, indent=2).encode("utf-8"))

    def save_to_disk(self) -> int:
        """Write every corpus blob plus index.json. Returns documents written."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            snapshot = {cid: dict(files) for cid, files in self._store.items()}

        repositories = []
        taken: set[str] = set()
        for cid, files in snapshot.items():
            name = cache_file_name(cid, taken)
            taken.add(name)
            repositories.append(self._write_blob(cid, files, name))
        self._write_index(repositories)
        self._remove_orphans({r["file"] for r in repositories})
        total = sum(r["documentCount"] for r in repositories)
        logger.info("Saved cache: %d corpora, %d documents", len(repositories), total)
        return total

    def save_corpus(self, corpus_id: str):
        """Persist one corpus's blob and refresh its manifest entry."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            files = dict(self._store[corpus_id]) if corpus_id in self._store else None

        entries = self._read_index_entries()
        previous = next((r.get("file") for r in entries if r.get("id") == corpus_id), None)
        repositories = [r for r in entries if r.get("id") != corpus_id]
        taken = {r.get("file") for r in repositories}
        if files is not None:
            name = previous if previous and previous not in taken else cache_file_name(corpus_id, taken)
            repositories.append(self._write_blob(corpus_id, files, name))
        elif previous and previous not in taken:
            blob = self.cache_dir / previous
            if blob.exists():
                blob.unlink()
        self._write_index(repositories)

    def _read_index_entries(self) -> list[dict]:
        """Existing manifest entries, or [] when the manifest is absent or foreign."""
        try:
            index = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        if not isinstance(index, dict) or index.get("version") != self.version:
            return []
        return [r for r in index.get("repositories", []) if isinstance(r, dict)]

    def _check_index(self, index: dict) -> float:
        """Raise if the manifest can't be trusted; return its age in hours."""
        found = str(index.get("version"))
        if found != self.version:
            raise CacheVersionMismatch(found, self.version)
        try:
            saved_at = _parse_iso(index["savedAt"])
        except (KeyError, TypeError, ValueError) as e:
            raise CacheError(f"Cache manifest has no valid savedAt: {e}") from e
        age_hours = (datetime.now(timezone.utc) - saved_at).total_seconds() / 3600
        if age_hours > self.max_age_hours:
            raise CacheStale(age_hours, self.max_age_hours)
        return age_hours

    def load_from_disk(self) -> CacheLoadResult:
        """Restore the cache from disk. Never raises; a failed result means rebuild."""
        if not self.index_path.exists():
            return CacheLoadResult(False, "No cache manifest found")
        try:
            index = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Cache manifest unreadable: %s", e)
            return CacheLoadResult(False, f"Cache manifest unreadable: {e}")
        if not isinstance(index, dict):
            return CacheLoadResult(False, "Cache manifest is not an object")

        try:
            age_hours = self._check_index(index)
        except CacheError as e:
            logger.info("Not using disk cache: %s", e)
            return CacheLoadResult(False, str(e))

        loaded: dict[str, dict[str, dict]] = {}
        referenced: set[str] = set()
        for entry in index.get("repositories", []):
            if not isinstance(entry, dict) or "id" not in entry or "file" not in entry:
                continue
            referenced.add(entry["file"])
            blob = self.cache_dir / entry["file"]
            try:
                files = json.loads(gzip.decompress(blob.read_bytes()).decode("utf-8"))
            except (OSError, EOFError, ValueError) as e:
                logger.warning("Skipping unreadable cache blob %s: %s", blob.name, e)
                continue
            if isinstance(files, dict):
                loaded[entry["id"]] = files

        with self._lock:
            self._store.update(loaded)

        removed = self._remove_orphans(referenced)
        total = sum(len(f) for f in loaded.values())
        logger.info(
            "Loaded cache: %d corpora, %d documents (%.1fh old)",
            len(loaded), total, age_hours,
        )
        return CacheLoadResult(
            True,
            document_count=total,
            corpora=list(loaded),
            cache_age_hours=age_hours,
            orphans_removed=removed,
        )

    def _remove_orphans(self, referenced: set[str]) -> int:
        removed = 0
        if not self.cache_dir.exists():
            return removed
        for blob in self.cache_dir.glob(f"*{BLOB_SUFFIX}"):
            if blob.name not in referenced:
                try:
                    blob.unlink()
                    removed += 1
                    logger.info("Removed orphaned cache blob %s", blob.name)
                except OSError as e:
                    logger.warning("Could not remove orphan %s: %s", blob.name, e)
        return removed
