# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Hybrid ranker – fuses BM25 and semantic hits into one diversified list.

  1. min-max normalise each list independently
  2. merge per document, weighted sum, provenance bm25/semantic/both
  3. Maximal Marginal Relevance over the top candidates (Jaccard of title+description)
  4. deduplicate, truncate to top_k

Documents are keyed by file path, so a path appears at most once.
"""
from .bm25_index import tokenize
from .models import IndexedDocument, RankedDocument, ScoredDocument

MMR_POOL_SIZE = 60


def doc_key(doc: IndexedDocument) -> str:
    return doc.path


def normalize_scores(hits: list[ScoredDocument]) -> list[float]:
    """Min-max normalise into [0, 1]. A list of equal scores maps to 1.0."""
    if not hits:
        return []
    scores = [h.score for h in hits]
    lo, hi = min(scores), max(scores)
    if hi == lo:
        # a single hit, or a tie, keeps full weight; 0.0 would erase its
        # lexical or semantic contribution from the fused score
        return [1.0] * len(scores)
    return [(s - lo) / (hi - lo) for s in scores]


def jaccard(a: set[str], b: set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


class HybridRanker:
    def __init__(self, bm25_weight: float = 0.5, semantic_weight: float = 0.5,
                 mmr_lambda: float = 0.7, mmr_pool_size: int = MMR_POOL_SIZE):
        self.bm25_weight = bm25_weight
        self.semantic_weight = semantic_weight
        self.mmr_lambda = mmr_lambda
        self.mmr_pool_size = mmr_pool_size

    def merge(self, bm25_hits: list[ScoredDocument],
              semantic_hits: list[ScoredDocument]) -> list[RankedDocument]:
        merged: dict[str, RankedDocument] = {}

        for hit, norm in zip(bm25_hits, normalize_scores(bm25_hits)):
            key = doc_key(hit.document)
            if key not in merged:
                merged[key] = RankedDocument(hit.document, 0.0, bm25_score=norm, source="bm25")

        for hit, norm in zip(semantic_hits, normalize_scores(semantic_hits)):
            key = doc_key(hit.document)
            existing = merged.get(key)
            if existing is None:
                merged[key] = RankedDocument(hit.document, 0.0, semantic_score=norm, source="semantic")
            elif existing.source == "bm25":
                existing.semantic_score = norm
                existing.source = "both"

        for item in merged.values():
            item.score = (
                item.bm25_score * self.bm25_weight
                + item.semantic_score * self.semantic_weight
            )
        return sorted(merged.values(), key=lambda r: r.score, reverse=True)

    def _similarity_terms(self, doc: IndexedDocument) -> set[str]:
        return set(tokenize(f"{doc.title} {doc.description or ''}"))

    def apply_mmr(self, candidates: list[RankedDocument]) -> list[RankedDocument]:
        """Greedy MMR re-ordering of the top candidates."""
        remaining = list(candidates[: self.mmr_pool_size])
        if len(remaining) <= 1:
            return remaining
        terms = {id(c): self._similarity_terms(c.document) for c in remaining}

        selected = [remaining.pop(0)]
        while remaining:
            best_index = 0
            best_score = float("-inf")
            for i, candidate in enumerate(remaining):
                max_sim = max(jaccard(terms[id(candidate)], terms[id(s)]) for s in selected)
                mmr = self.mmr_lambda * candidate.score - (1 - self.mmr_lambda) * max_sim
                if mmr > best_score:
                    best_score = mmr
                    best_index = i
            selected.append(remaining.pop(best_index))
        return selected

    @staticmethod
    def deduplicate(results: list[RankedDocument]) -> list[RankedDocument]:
        seen: set[str] = set()
        unique = []
        for r in results:
            key = doc_key(r.document)
            if key not in seen:
                seen.add(key)
                unique.append(r)
        return unique

    def rank(self, bm25_hits: list[ScoredDocument], semantic_hits: list[ScoredDocument],
             top_k: int = 10) -> list[RankedDocument]:
        if top_k <= 0:
            return []
        merged = self.merge(bm25_hits, semantic_hits)
        diverse = self.apply_mmr(merged)
        return self.deduplicate(diverse)[:top_k]
