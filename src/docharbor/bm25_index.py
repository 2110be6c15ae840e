# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
BM25 keyword index – one bm25s retriever per corpus.

Scoring (Lucene idf, k1=1.5, b=0.75):
    idf(t)   = ln((N - df + 0.5) / (df + 0.5) + 1)
    score(d) = sum idf(t) * tf * (k1 + 1) / (tf + k1 * (1 - b + b * |d| / avgdl))

bm25s's Lucene variant leaves out the (k1 + 1) factor; it's applied here.
"""
import math
import re
import threading
from dataclasses import dataclass, field
from typing import Optional

import bm25s
from bm25s.tokenization import Tokenized

from .logging import get_logger
from .models import IndexedDocument, ScoredDocument

logger = get_logger(__name__)

K1 = 1.5
B = 0.75
MIN_TOKEN_LENGTH = 3

_NON_WORD_RE = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case, strip punctuation, drop tokens shorter than 3 characters."""
    return [t for t in _NON_WORD_RE.sub(" ", text.lower()).split() if len(t) >= MIN_TOKEN_LENGTH]


def document_text(doc: IndexedDocument) -> str:
    return f"{doc.title} {doc.description} {doc.content}"


@dataclass
class _CorpusIndex:
    documents: list[IndexedDocument]
    doc_freq: dict[str, int] = field(default_factory=dict)
    idf: dict[str, float] = field(default_factory=dict)
    avg_doc_length: float = 0.0
    retriever: Optional[bm25s.BM25] = None


def _build(documents: list[IndexedDocument], k1: float, b: float) -> _CorpusIndex:
    token_lists = [tokenize(document_text(d)) for d in documents]
    doc_freq: dict[str, int] = {}
    for tokens in token_lists:
        for term in set(tokens):
            doc_freq[term] = doc_freq.get(term, 0) + 1

    n = len(documents)
    avg = sum(len(t) for t in token_lists) / n if n else 0.0
    idf = {t: math.log((n - df + 0.5) / (df + 0.5) + 1) for t, df in doc_freq.items()}
    index = _CorpusIndex(documents=list(documents), doc_freq=doc_freq, idf=idf, avg_doc_length=avg)

    if not doc_freq:
        return index

    vocab = {term: i for i, term in enumerate(sorted(doc_freq))}
    ids = [[vocab[t] for t in tokens] for tokens in token_lists]
    retriever = bm25s.BM25(k1=k1, b=b, method="lucene")
    retriever.index(Tokenized(ids=ids, vocab=vocab), show_progress=False)
    index.retriever = retriever
    return index


class BM25Index:
    def __init__(self, k1: float = K1, b: float = B):
        self.k1 = k1
        self.b = b
        self._indexes: dict[str, _CorpusIndex] = {}
        self._lock = threading.Lock()

    def build_index(self, corpus_id: str, documents: list[IndexedDocument]):
        """Rebuild the corpus index from scratch and swap it in."""
        index = _build(documents, self.k1, self.b)
        with self._lock:
            self._indexes[corpus_id] = index
        logger.info("BM25: indexed %d documents for %s", len(documents), corpus_id)

    def remove_corpus(self, corpus_id: str) -> bool:
        with self._lock:
            return self._indexes.pop(corpus_id, None) is not None

    def has_corpus(self, corpus_id: str) -> bool:
        with self._lock:
            return corpus_id in self._indexes

    def corpus_ids(self) -> list[str]:
        with self._lock:
            return list(self._indexes)

    def idf(self, corpus_id: str, term: str) -> float:
        with self._lock:
            index = self._indexes.get(corpus_id)
        return index.idf.get(term, 0.0) if index else 0.0

    def search_scoped(self, corpus_id: str, query: str, limit: int = 100) -> list[ScoredDocument]:
        with self._lock:
            index = self._indexes.get(corpus_id)
        if index is None or index.retriever is None or limit <= 0:
            return []

        query_tokens = [t for t in tokenize(query) if t in index.doc_freq]
        if not query_tokens:
            return []

        # bm25s orders ties arbitrarily; score every document and break
        # ties by index order so equal scores keep insertion order
        doc_ids, scores = index.retriever.retrieve(
            [query_tokens], k=len(index.documents), show_progress=False,
        )
        ranked = []
        for i in range(doc_ids.shape[1]):
            idx = int(doc_ids[0, i])
            score = float(scores[0, i]) * (self.k1 + 1)
            if idx < 0 or idx >= len(index.documents) or score <= 0:
                continue
            ranked.append((score, idx))
        ranked.sort(key=lambda pair: (-pair[0], pair[1]))
        return [ScoredDocument(index.documents[idx], score) for score, idx in ranked[:limit]]

    def search_global(self, query: str, limit: int = 200) -> list[ScoredDocument]:
        hits: list[ScoredDocument] = []
        for corpus_id in self.corpus_ids():
            hits.extend(self.search_scoped(corpus_id, query, limit))
        hits.sort(key=lambda h: h.score, reverse=True)  # stable: ties keep corpus order
        return hits[:limit]

    def stats(self) -> dict:
        with self._lock:
            items = list(self._indexes.items())
        return {
            "corpus_count": len(items),
            "corpora": [
                {
                    "id": corpus_id,
                    "documents": len(index.documents),
                    "avg_doc_length": round(index.avg_doc_length),
                    "vocabulary_size": len(index.idf),
                }
                for corpus_id, index in items
            ],
        }
