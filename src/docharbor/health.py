# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Centralized health/status tracker – shared by the corpus manager,
MCP server and HTTP API. Thread-safe, no external dependencies.
"""
import threading
from datetime import datetime, timezone
from typing import Optional

SEARCH_TOOLS = ("search_docs", "search_all", "api_search")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthTracker:
    def __init__(self):
        self._lock = threading.Lock()
        self._data = {
            "started_at": _now(),
            "initialized_at": None,
            "initialized": False,

            "cache_loaded": False,
            "cache_load_reason": None,

            "last_index_at": None,
            "last_index_ok": False,
            "corpora": {},

            "last_refresh_at": None,
            "last_refresh_ok": None,
            "last_refresh_corpus": None,
            "last_refresh_error": None,

            "searches_total": 0,
            "searches_hits": 0,
            "searches_misses": 0,
            "searches_by_tool": {tool: 0 for tool in SEARCH_TOOLS},
            "last_search_at": None,
        }

    def record_initialized(self, cache_loaded: bool, reason: Optional[str] = None):
        with self._lock:
            self._data["initialized"] = True
            self._data["initialized_at"] = _now()
            self._data["cache_loaded"] = cache_loaded
            self._data["cache_load_reason"] = reason

    def record_index(self, corpus_id: str, ok: bool, documents: int = 0,
                     error: Optional[str] = None):
        with self._lock:
            now = _now()
            self._data["corpora"][corpus_id] = {
                "ok": ok,
                "documents": documents,
                "error": error,
                "indexed_at": now,
            }
            self._data["last_index_at"] = now
            self._data["last_index_ok"] = any(c["ok"] for c in self._data["corpora"].values())

    def forget_corpus(self, corpus_id: str):
        with self._lock:
            self._data["corpora"].pop(corpus_id, None)
            self._data["last_index_ok"] = any(c["ok"] for c in self._data["corpora"].values())

    def record_refresh(self, corpus_id: str, ok: bool, error: Optional[str] = None):
        with self._lock:
            self._data["last_refresh_at"] = _now()
            self._data["last_refresh_ok"] = ok
            self._data["last_refresh_corpus"] = corpus_id
            self._data["last_refresh_error"] = error

    def record_search(self, tool: str, hit: bool):
        with self._lock:
            self._data["searches_total"] += 1
            if hit:
                self._data["searches_hits"] += 1
            else:
                self._data["searches_misses"] += 1
            by_tool = self._data["searches_by_tool"]
            if tool in by_tool:
                by_tool[tool] += 1
            self._data["last_search_at"] = _now()

    @property
    def status(self) -> dict:
        with self._lock:
            data = dict(self._data)
            data["corpora"] = {k: dict(v) for k, v in self._data["corpora"].items()}
            data["searches_by_tool"] = dict(self._data["searches_by_tool"])
            return data

    @property
    def is_healthy(self) -> bool:
        with self._lock:
            if not self._data["initialized"]:
                return False
            return not self._data["corpora"] or self._data["last_index_ok"]
