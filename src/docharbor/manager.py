# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Corpus manager – one instance owns every registered corpus together
with the loader, document cache and search pipeline they share.

Lifecycle:
  initialize(): repositories.json -> disk cache -> validate all ->
                index from cache (or fetch) -> persist
  refresh(id):  re-discover, re-fetch, re-index and persist one corpus;
                replacements are built first and swapped in, so searches
                keep seeing the old content until the new one is ready.
"""
import asyncio
import json
import os
from pathlib import Path
from typing import Optional, Union

from .cache import CacheLoadResult, DocumentCache
from .config import Config, CorpusConfig
from .discovery import DiscoveryEngine
from .errors import (
    AuthRequired,
    CorpusNotFound,
    DocHarborError,
    PartialCacheFailure,
    SourceError,
)
from .health import HealthTracker
from .loaders import ContentLoader, parse_source_url
from .logging import get_logger
from .models import (
    Corpus,
    DiscoveryResult,
    GitHubLocator,
    IndexedDocument,
    SearchResponse,
    ValidationResult,
)
from .pipeline import SearchPipeline
from .ranker import HybridRanker
from .readers import extract_text

logger = get_logger(__name__)

CONFIG_VERSION = "1.0.0"


class CorpusManager:
    def __init__(
        self,
        config: Config,
        loader: Optional[ContentLoader] = None,
        cache: Optional[DocumentCache] = None,
        pipeline: Optional[SearchPipeline] = None,
        health: Optional[HealthTracker] = None,
    ):
        self.config = config
        self.loader = loader or ContentLoader.from_config(config)
        self.discovery = DiscoveryEngine(self.loader, max_depth=config.discovery_max_depth)
        self.cache = cache or DocumentCache(config.cache_dir, config.cache_max_age_hours)
        self.pipeline = pipeline or SearchPipeline(
            ranker=HybridRanker(config.bm25_weight, config.semantic_weight, config.mmr_lambda),
            per_corpus_limit=config.per_corpus_limit,
        )
        self.health = health or HealthTracker()
        self.config_path = Path(config.repositories_config)
        self._corpora: dict[str, Corpus] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.initialized = False
        self.cache_load: Optional[CacheLoadResult] = None

    # ── Registry ─────────────────────────────────────

    def get_corpus(self, corpus_id: str) -> Optional[Corpus]:
        """Find a corpus by id, including nested children."""
        if corpus_id in self._corpora:
            return self._corpora[corpus_id]
        for root in self._corpora.values():
            for corpus in root.walk():
                if corpus.id == corpus_id:
                    return corpus
        return None

    def require_corpus(self, corpus_id: str) -> Corpus:
        corpus = self.get_corpus(corpus_id)
        if corpus is None:
            raise CorpusNotFound(corpus_id)
        return corpus

    def all_corpora(self) -> list[Corpus]:
        return [c for root in self._corpora.values() for c in root.walk()]

    def __len__(self) -> int:
        return len(self.all_corpora())

    def _lock_for(self, corpus_id: str) -> asyncio.Lock:
        lock = self._locks.get(corpus_id)
        if lock is None:
            lock = self._locks[corpus_id] = asyncio.Lock()
        return lock

    async def register(self, corpus_config: Union[CorpusConfig, dict]) -> Corpus:
        """Add a corpus to the registry (does not discover or fetch it).

        Raises ValueError for missing id/url, a duplicate id or an unknown
        parent, and InvalidSourceUrl for an unsupported URL.
        """
        if isinstance(corpus_config, dict):
            corpus_config = CorpusConfig.model_validate(corpus_config)
        corpus_config.ensure_defaults()

        if self.get_corpus(corpus_config.id) is not None:
            raise ValueError(f"Corpus '{corpus_config.id}' already exists")
        parent = None
        if corpus_config.parent:
            parent = self.get_corpus(corpus_config.parent)
            if parent is None:
                raise ValueError(f"Parent corpus '{corpus_config.parent}' not found")

        locator = parse_source_url(corpus_config.url)
        token = corpus_config.token or None
        if isinstance(locator, GitHubLocator) and not locator.branch_pinned:
            try:
                branch = await self.loader.resolve_default_branch(locator, token)
                locator = locator.with_branch(branch)
                logger.info("Default branch for %s/%s: %s", locator.owner, locator.repo, branch)
            except SourceError as e:
                logger.warning(
                    "Could not fetch default branch for %s, using '%s': %s",
                    corpus_config.id, locator.branch, e,
                )

        corpus = Corpus(
            id=corpus_config.id,
            name=corpus_config.name,
            locator=locator,
            config=corpus_config,
            description=corpus_config.description,
            token=token,
            enabled=corpus_config.enabled,
            parent=corpus_config.parent,
            keywords=list(corpus_config.keywords),
            aliases=list(corpus_config.aliases),
        )
        if corpus.keywords or corpus.aliases:
            self.pipeline.detector.register_patterns(corpus.id, corpus.keywords, corpus.aliases)

        if parent is not None:
            parent.children.append(corpus)
        else:
            self._corpora[corpus.id] = corpus
        return corpus

    async def deregister(self, corpus_id: str, persist: bool = True) -> list[str]:
        """Remove a corpus and its children. Returns the removed ids."""
        corpus = self.require_corpus(corpus_id)
        if corpus.parent:
            parent = self.get_corpus(corpus.parent)
            if parent is not None:
                parent.children = [c for c in parent.children if c.id != corpus_id]
        else:
            self._corpora.pop(corpus_id, None)

        removed = [c.id for c in corpus.walk()]
        for cid in removed:
            self.cache.clear_corpus(cid)
            self.pipeline.remove_corpus(cid)
            self.health.forget_corpus(cid)
            self._locks.pop(cid, None)
            if persist:
                await asyncio.to_thread(self.cache.save_corpus, cid)
        if persist:
            await self.save_configuration()
        logger.info("Deregistered %s", ", ".join(removed))
        return removed

    # ── Configuration ────────────────────────────────

    async def load_configuration(self) -> int:
        """Register every corpus in repositories.json. Returns the number registered."""
        if not self.config_path.exists():
            logger.info("No corpus configuration at %s, creating an empty one", self.config_path)
            await self.save_configuration()
            return 0

        raw = await asyncio.to_thread(self.config_path.read_text, encoding="utf-8")
        data = json.loads(raw)
        if not isinstance(data, dict) or not isinstance(data.get("repositories"), list):
            raise ValueError(f"{self.config_path}: missing 'repositories' list")

        pending = []
        for entry in data["repositories"]:
            if not isinstance(entry, dict):
                logger.error("Ignoring malformed corpus entry: %r", entry)
                continue
            entry = dict(entry)
            if "encryptedToken" in entry:
                logger.warning(
                    "Corpus '%s': encryptedToken is not supported, set 'token' instead",
                    entry.get("id"),
                )
                entry.pop("encryptedToken")
            pending.append(entry)

        registered = 0
        # children may be listed before their parents
        while pending:
            deferred = []
            for entry in pending:
                parent = entry.get("parent")
                if parent and self.get_corpus(parent) is None and any(
                    e.get("id") == parent for e in pending
                ):
                    deferred.append(entry)
                    continue
                try:
                    await self.register(entry)
                    registered += 1
                except ValueError as e:
                    logger.error("Skipping corpus %r: %s", entry.get("id"), e)
            if len(deferred) == len(pending):
                for entry in deferred:
                    logger.error("Skipping corpus %r: parent cycle", entry.get("id"))
                break
            pending = deferred

        logger.info("Loaded %d corpora from %s", registered, self.config_path)
        return registered

    def export_configuration(self) -> dict:
        return {
            "version": CONFIG_VERSION,
            "repositories": [c.config.to_file_dict() for c in self.all_corpora()],
        }

    async def save_configuration(self):
        payload = json.dumps(self.export_configuration(), indent=2)

        def _write():
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.config_path.with_name(self.config_path.name + ".tmp")
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.config_path)

        await asyncio.to_thread(_write)

    # ── Validation ───────────────────────────────────

    async def _discover(self, corpus: Corpus) -> DiscoveryResult:
        return await self.discovery.discover(corpus.locator, name=corpus.name, token=corpus.token)

    def _apply_discovery(self, corpus: Corpus, result: DiscoveryResult):
        corpus.structure = result.structure
        corpus.metadata = result.metadata
        corpus.validated = True
        corpus.validation_error = None
        corpus.auth_required = False
        if not corpus.description and result.metadata.description:
            corpus.description = result.metadata.description

    def _record_failure(self, corpus: Corpus, error: DocHarborError):
        corpus.validation_error = str(error)
        corpus.auth_required = isinstance(error, AuthRequired)
        if corpus.auth_required:
            logger.warning("Corpus %s needs a token: %s", corpus.id, error)
        else:
            logger.warning("Validation of %s failed: %s", corpus.id, error)

    async def validate(self, corpus: Corpus) -> ValidationResult:
        """Run discovery for one corpus; failures are recorded, not raised."""
        try:
            result = await self._discover(corpus)
        except DocHarborError as e:
            corpus.validated = False
            self._record_failure(corpus, e)
            return ValidationResult(corpus.id, ok=False, error=str(e))
        self._apply_discovery(corpus, result)
        return ValidationResult(
            corpus.id, ok=True, document_count=len(result.structure.file_paths()),
        )

    async def validate_all(self) -> list[ValidationResult]:
        corpora = [c for c in self.all_corpora() if c.enabled]
        return list(await asyncio.gather(*(self.validate(c) for c in corpora)))

    # ── Caching / Indexing ───────────────────────────

    async def _fetch(self, corpus: Corpus, path: str) -> tuple[str, Optional[str], Optional[str]]:
        try:
            return path, await self.loader.load_file(corpus.locator, path, corpus.token), None
        except SourceError as e:
            logger.warning("Failed to load %s from %s: %s", path, corpus.id, e)
            return path, None, str(e)

    async def _fetch_all(self, corpus: Corpus, paths: list[str]) -> tuple[dict[str, str], dict[str, str]]:
        results = await asyncio.gather(*(self._fetch(corpus, p) for p in paths))
        files = {p: content for p, content, _ in results if content is not None}
        failures = {p: err for p, content, err in results if content is None}
        return files, failures

    def _build_documents(self, corpus: Corpus, files: dict[str, str]) -> list[IndexedDocument]:
        documents = []
        seen: set[str] = set()
        for category, item in corpus.structure.iter_items():
            raw = files.get(item.path)
            if raw is None or item.path in seen:
                continue
            seen.add(item.path)
            documents.append(IndexedDocument(
                corpus_id=corpus.id,
                corpus_name=corpus.name,
                category=category.title,
                title=item.title,
                path=item.path,
                kind=item.kind,
                content=extract_text(item.path, raw),
                description=item.description or "",
            ))
        return documents

    def _install(self, corpus: Corpus, files: dict[str, str], failures: dict[str, str]):
        """Swap a complete file set into the cache and the search indexes."""
        documents = self._build_documents(corpus, files)
        self.cache.replace_corpus(corpus.id, files)
        self.pipeline.index_corpus(corpus.id, documents)
        corpus.cache_failures = failures
        if failures:
            logger.warning("%s", PartialCacheFailure(corpus.id, failures, len(files)))
        self.health.record_index(
            corpus.id, ok=True, documents=len(documents),
            error=f"{len(failures)} file(s) failed" if failures else None,
        )

    async def cache_all_documents(self, corpus: Corpus) -> int:
        """Fetch every file in the corpus structure, cache and index it."""
        if corpus.structure is None:
            raise ValueError(f"Corpus '{corpus.id}' has not been validated")
        files, failures = await self._fetch_all(corpus, corpus.structure.file_paths())
        self._install(corpus, files, failures)
        logger.info("Cached %d documents for %s", len(files), corpus.id)
        return len(files)

    async def _index_from_cache(self, corpus: Corpus) -> bool:
        """Index a corpus from the restored cache. Returns True if anything was fetched."""
        cached = self.cache.get_corpus(corpus.id)
        missing = [p for p in corpus.structure.file_paths() if p not in cached]
        failures: dict[str, str] = {}
        if missing:
            fetched, failures = await self._fetch_all(corpus, missing)
            cached.update(fetched)
        wanted = set(corpus.structure.file_paths())
        files = {p: c for p, c in cached.items() if p in wanted}
        self._install(corpus, files, failures)
        return bool(missing)

    # ── Lifecycle ────────────────────────────────────

    async def initialize(self):
        if self.initialized:
            return
        await self.load_configuration()
        loaded = self.cache_load = await asyncio.to_thread(self.cache.load_from_disk)
        if loaded.success:
            known = {c.id for c in self.all_corpora()}
            for cid in self.cache.corpus_ids():
                if cid not in known:
                    self.cache.clear_corpus(cid)
        else:
            logger.info("Building cache from sources (%s)", loaded.reason)

        await self.validate_all()

        async def _populate(corpus: Corpus) -> bool:
            if loaded.success and self.cache.has_corpus(corpus.id):
                return await self._index_from_cache(corpus)
            await self.cache_all_documents(corpus)
            return True

        ready = [c for c in self.all_corpora() if c.enabled and c.validated]
        fetched = await asyncio.gather(*(_populate(c) for c in ready))
        for corpus in self.all_corpora():
            if corpus.enabled and not corpus.validated:
                self.health.record_index(corpus.id, ok=False, error=corpus.validation_error)

        if any(fetched) or not loaded.success:
            await asyncio.to_thread(self.cache.save_to_disk)

        self.health.record_initialized(loaded.success, loaded.reason or None)
        self.initialized = True
        logger.info(
            "Initialized %d corpora (%d ready)", len(self.all_corpora()), len(ready),
        )

    async def refresh(self, corpus_id: str) -> dict:
        """Re-discover, re-fetch and re-index one corpus, then persist its blob.

        On a discovery failure the previous content and index stay in place
        and the error is raised.
        """
        corpus = self.require_corpus(corpus_id)
        async with self._lock_for(corpus_id):
            logger.info("Refreshing %s", corpus_id)
            self.loader.github.clear_cache()
            try:
                result = await self._discover(corpus)
            except DocHarborError as e:
                self._record_failure(corpus, e)
                self.health.record_refresh(corpus_id, ok=False, error=str(e))
                raise

            self._apply_discovery(corpus, result)
            count = await self.cache_all_documents(corpus)
            await asyncio.to_thread(self.cache.save_corpus, corpus_id)
            self.health.record_refresh(corpus_id, ok=True)
            return {
                "success": True,
                "corpus_id": corpus_id,
                "documents": count,
                "failed": len(corpus.cache_failures),
            }

    async def refresh_all(self) -> list[dict]:
        results = []
        for corpus in self.all_corpora():
            if not corpus.enabled:
                continue
            try:
                results.append(await self.refresh(corpus.id))
            except DocHarborError as e:
                results.append({"success": False, "corpus_id": corpus.id, "error": str(e)})
        ok = sum(1 for r in results if r["success"])
        logger.info("Refreshed %d/%d corpora", ok, len(results))
        return results

    async def aclose(self):
        await self.loader.aclose()

    # ── Documents / Hierarchy ────────────────────────

    async def load_document(self, corpus_id: str, path: str) -> str:
        """Cache-first document read; falls through to the source and back-fills."""
        corpus = self.require_corpus(corpus_id)
        path = path.strip("/")
        content = self.cache.get(corpus_id, path)
        if content is not None:
            return content
        logger.info("%s not cached for %s, loading from source", path, corpus_id)
        content = await self.loader.load_file(corpus.locator, path, corpus.token)
        self.cache.set(corpus_id, path, content)
        return content

    def _node(self, corpus: Corpus) -> dict:
        node = {
            "id": corpus.id,
            "name": corpus.name,
            "description": corpus.description,
            "url": corpus.config.url,
            "validated": corpus.validated,
            "enabled": corpus.enabled,
            "documents": len(self.cache.list_files(corpus.id)),
        }
        if corpus.validation_error:
            node["error"] = corpus.validation_error
        if corpus.auth_required:
            node["auth_required"] = True
        if corpus.metadata.version:
            node["version"] = corpus.metadata.version
        if corpus.children:
            node["children"] = [self._node(c) for c in corpus.children]
        return node

    def get_hierarchy(self, corpus_id: Optional[str] = None) -> Union[list[dict], dict]:
        if corpus_id:
            return self._node(self.require_corpus(corpus_id))
        return [self._node(c) for c in self._corpora.values()]

    def search_corpora(self, query: str) -> list[dict]:
        q = query.lower().strip()
        matches = []
        for corpus in self.all_corpora():
            haystack = f"{corpus.id} {corpus.name} {corpus.description}".lower()
            if not q or q in haystack:
                node = self._node(corpus)
                node.pop("children", None)
                matches.append(node)
        return matches

    # ── Search / Stats ───────────────────────────────

    def search(self, query: str, corpus_id: Optional[str] = None,
               limit: Optional[int] = None, auto_detect: bool = True) -> SearchResponse:
        if corpus_id:
            self.require_corpus(corpus_id)
        top_k = limit if limit is not None else self.config.default_top_k
        return self.pipeline.search(query, corpus_id=corpus_id, top_k=top_k, auto_detect=auto_detect)

    async def discover(self, url: str, custom_path: Optional[str] = None) -> dict:
        return await self.discovery.discover_source(
            url, custom_path, token=self.config.github_token or None,
        )

    def cache_stats(self) -> dict:
        return {
            "document_cache": self.cache.stats(),
            "search": self.pipeline.stats(),
        }

    def index_stats(self) -> dict:
        return {
            "initialized": self.initialized,
            "corpora": [
                {
                    "id": c.id,
                    "validated": c.validated,
                    "enabled": c.enabled,
                    "documents": len(self.cache.list_files(c.id)),
                    "failed_files": len(c.cache_failures),
                    "error": c.validation_error,
                }
                for c in self.all_corpora()
            ],
            "bm25": self.pipeline.bm25.stats(),
            "semantic": self.pipeline.semantic.stats(),
            "cache": self.cache.stats(),
            "cache_load": self.cache_load.to_dict() if self.cache_load else None,
        }
