# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Search pipeline – BM25 + semantic retrieval, hybrid ranking and
corpus auto-detection behind one search() call.

Strategies:
  - scoped: one corpus (explicit, or detected with confidence > 0.6)
  - hybrid: detected scoped search returned < 3 hits, topped up from global
  - global: every indexed corpus, at most per_corpus_limit hits per corpus
"""
from typing import Optional

from .bm25_index import BM25Index
from .detector import CorpusDetector
from .logging import get_logger
from .models import (
    DetectionStrategy,
    IndexedDocument,
    RankedDocument,
    SearchResponse,
    SearchResult,
)
from .ranker import HybridRanker
from .semantic_index import SemanticIndex

logger = get_logger(__name__)

SCOPED_POOL = 100
GLOBAL_POOL = 200
MIN_SCOPED_RESULTS = 3
EXCERPT_CONTEXT = 60
EXCERPT_FALLBACK_LENGTH = 150


def extract_excerpt(doc: IndexedDocument, query: str = "",
                    max_length: int = EXCERPT_FALLBACK_LENGTH) -> str:
    """Window around the first query match, else description, else content head."""
    if query and doc.content:
        index = doc.content.lower().find(query.lower())
        if index != -1:
            start = max(0, index - EXCERPT_CONTEXT)
            end = min(len(doc.content), index + len(query) + EXCERPT_CONTEXT)
            return "..." + doc.content[start:end].replace("\n", " ") + "..."
    if doc.description:
        return doc.description
    if doc.content:
        return doc.content[:max_length] + "..."
    return ""


def cap_per_corpus(ranked: list[RankedDocument], limit: int) -> list[RankedDocument]:
    counts: dict[str, int] = {}
    kept = []
    for r in ranked:
        cid = r.document.corpus_id
        if counts.get(cid, 0) < limit:
            kept.append(r)
            counts[cid] = counts.get(cid, 0) + 1
    return kept


class SearchPipeline:
    def __init__(
        self,
        bm25: Optional[BM25Index] = None,
        semantic: Optional[SemanticIndex] = None,
        ranker: Optional[HybridRanker] = None,
        detector: Optional[CorpusDetector] = None,
        per_corpus_limit: int = 5,
    ):
        self.bm25 = bm25 or BM25Index()
        self.semantic = semantic or SemanticIndex()
        self.ranker = ranker or HybridRanker()
        self.detector = detector or CorpusDetector()
        self.per_corpus_limit = per_corpus_limit

    # ── Indexing ─────────────────────────────────────

    def index_corpus(self, corpus_id: str, documents: list[IndexedDocument]):
        self.bm25.build_index(corpus_id, documents)
        self.semantic.build_index(corpus_id, documents)

    def remove_corpus(self, corpus_id: str):
        self.bm25.remove_corpus(corpus_id)
        self.semantic.remove_corpus(corpus_id)
        logger.info("Removed %s from search indexes", corpus_id)

    def indexed_corpora(self) -> list[str]:
        return self.bm25.corpus_ids()

    # ── Search ───────────────────────────────────────

    def _format(self, ranked: list[RankedDocument], query: str) -> list[SearchResult]:
        return [
            SearchResult(
                corpus_id=r.document.corpus_id,
                corpus_name=r.document.corpus_name,
                section=r.document.category,
                title=r.document.title,
                excerpt=extract_excerpt(r.document, query),
                file=r.document.path,
                score=r.score,
                source=r.source,
            )
            for r in ranked
        ]

    def search_scoped(self, corpus_id: str, query: str, top_k: int = 10) -> SearchResponse:
        bm25_hits = self.bm25.search_scoped(corpus_id, query, SCOPED_POOL)
        semantic_hits = self.semantic.search_scoped(corpus_id, query, SCOPED_POOL)
        ranked = self.ranker.rank(bm25_hits, semantic_hits, top_k)
        return SearchResponse(
            strategy=DetectionStrategy(
                mode="scoped", corpus_id=corpus_id, fallback_to_global=False,
                confidence=1.0, reasoning="Explicit corpus",
            ),
            results=self._format(ranked, query),
            metadata={
                "bm25_count": len(bm25_hits),
                "semantic_count": len(semantic_hits),
                "final_count": len(ranked),
            },
        )

    def search_global(self, query: str, top_k: int = 10,
                      per_corpus_limit: Optional[int] = None) -> SearchResponse:
        limit = per_corpus_limit if per_corpus_limit is not None else self.per_corpus_limit
        bm25_hits = self.bm25.search_global(query, GLOBAL_POOL)
        semantic_hits = self.semantic.search_global(query, GLOBAL_POOL)
        ranked = self.ranker.rank(bm25_hits, semantic_hits, GLOBAL_POOL)
        capped = cap_per_corpus(ranked, limit)[:top_k]
        return SearchResponse(
            strategy=DetectionStrategy(
                mode="global", fallback_to_global=False,
                reasoning="Global search across all corpora",
            ),
            results=self._format(capped, query),
            metadata={
                "bm25_count": len(bm25_hits),
                "semantic_count": len(semantic_hits),
                "final_count": len(capped),
                "corpora_searched": len(self.indexed_corpora()),
            },
        )

    def search(self, query: str, corpus_id: Optional[str] = None, top_k: int = 10,
               auto_detect: bool = True) -> SearchResponse:
        if corpus_id:
            return self.search_scoped(corpus_id, query, top_k)

        if auto_detect:
            strategy = self.detector.get_search_strategy(query, self.indexed_corpora())
            if strategy.mode == "scoped" and strategy.corpus_id:
                scoped = self.search_scoped(strategy.corpus_id, query, top_k)
                if strategy.fallback_to_global and len(scoped.results) < MIN_SCOPED_RESULTS:
                    logger.debug(
                        "Scoped search in %s found %d results, adding global results",
                        strategy.corpus_id, len(scoped.results),
                    )
                    global_resp = self.search_global(query, top_k)
                    seen = {r.file for r in scoped.results}
                    merged = list(scoped.results) + [
                        r for r in global_resp.results if r.file not in seen
                    ]
                    strategy.mode = "hybrid"
                    return SearchResponse(
                        strategy=strategy,
                        results=merged[:top_k],
                        metadata={
                            "detection_confidence": strategy.confidence,
                            "scoped_count": len(scoped.results),
                            "global_count": len(global_resp.results),
                            "reasoning": strategy.reasoning,
                        },
                    )
                scoped.strategy = strategy
                scoped.metadata["detection_confidence"] = strategy.confidence
                scoped.metadata["reasoning"] = strategy.reasoning
                return scoped

            response = self.search_global(query, top_k)
            response.strategy = strategy
            return response

        return self.search_global(query, top_k)

    def stats(self) -> dict:
        return {
            "indexed_corpora": self.indexed_corpora(),
            "bm25": self.bm25.stats(),
            "semantic": self.semantic.stats(),
        }
