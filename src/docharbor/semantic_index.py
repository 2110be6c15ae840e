# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Heuristic "semantic" index – substring and position scoring over
lower-cased title, description and content. No embeddings.

The scorer is pluggable: anything implementing SemanticScorer can
replace HeuristicScorer without touching the pipeline.
"""
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

from .logging import get_logger
from .models import IndexedDocument, ScoredDocument

logger = get_logger(__name__)

EXACT_TITLE_SCORE = 10.0
TITLE_MATCH_WEIGHT = 5.0
DESCRIPTION_MATCH_SCORE = 2.0
CONTENT_OCCURRENCE_SCORE = 0.5
MAX_CONTENT_OCCURRENCES = 5
ALL_WORDS_BONUS = 3.0


@dataclass
class PreparedDocument:
    document: IndexedDocument
    title: str
    description: str
    content: str
    search_text: str

    @classmethod
    def from_document(cls, doc: IndexedDocument) -> "PreparedDocument":
        return cls(
            document=doc,
            title=doc.title.lower(),
            description=(doc.description or "").lower(),
            content=doc.content.lower(),
            search_text=f"{doc.title} {doc.description or ''} {doc.content}".lower(),
        )


class SemanticScorer(Protocol):
    def prepare(self, documents: list[IndexedDocument]) -> list: ...

    def score(self, query: str, prepared) -> float: ...


class HeuristicScorer:
    def prepare(self, documents: list[IndexedDocument]) -> list[PreparedDocument]:
        return [PreparedDocument.from_document(d) for d in documents]

    def score(self, query: str, doc: PreparedDocument) -> float:
        q = query.lower().strip()
        if not q:
            return 0.0
        score = 0.0

        if doc.title == q:
            score += EXACT_TITLE_SCORE
        else:
            position = doc.title.find(q)
            if position >= 0:
                score += TITLE_MATCH_WEIGHT * (1 - position / len(doc.title))

        if q in doc.description:
            score += DESCRIPTION_MATCH_SCORE

        occurrences = doc.content.count(q)
        if occurrences:
            score += min(occurrences, MAX_CONTENT_OCCURRENCES) * CONTENT_OCCURRENCE_SCORE

        words = [w for w in q.split() if len(w) > 2]
        if len(words) > 1 and all(w in doc.search_text for w in words):
            score += ALL_WORDS_BONUS

        return score


class SemanticIndex:
    def __init__(self, scorer: Optional[SemanticScorer] = None):
        self.scorer = scorer or HeuristicScorer()
        self._indexes: dict[str, list] = {}
        self._lock = threading.Lock()

    def build_index(self, corpus_id: str, documents: list[IndexedDocument]):
        prepared = self.scorer.prepare(documents)
        with self._lock:
            self._indexes[corpus_id] = prepared
        logger.info("Semantic: indexed %d documents for %s", len(prepared), corpus_id)

    def remove_corpus(self, corpus_id: str) -> bool:
        with self._lock:
            return self._indexes.pop(corpus_id, None) is not None

    def corpus_ids(self) -> list[str]:
        with self._lock:
            return list(self._indexes)

    def search_scoped(self, corpus_id: str, query: str, limit: int = 100) -> list[ScoredDocument]:
        with self._lock:
            prepared = self._indexes.get(corpus_id)
        if not prepared or not query.strip():
            return []
        hits = []
        for doc in prepared:
            score = self.scorer.score(query, doc)
            if score > 0:
                hits.append(ScoredDocument(doc.document, score))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    def search_global(self, query: str, limit: int = 200) -> list[ScoredDocument]:
        hits: list[ScoredDocument] = []
        for corpus_id in self.corpus_ids():
            hits.extend(self.search_scoped(corpus_id, query, limit))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    def stats(self) -> dict:
        with self._lock:
            items = list(self._indexes.items())
        return {
            "corpus_count": len(items),
            "corpora": [{"id": cid, "documents": len(docs)} for cid, docs in items],
        }
