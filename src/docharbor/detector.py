# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Corpus detector – guesses which corpus a query is about, so the
pipeline can run a scoped search instead of searching everything.

Two keyword tables:
  - corpus patterns: corpus id -> keywords/aliases/confidence
    (seeded below, extended at runtime from corpus configuration)
  - ecosystems: well-known framework names matched against corpus ids
"""
import re
from dataclasses import dataclass, field
from typing import Optional

from .logging import get_logger
from .models import Detection, DetectionCandidate, DetectionStrategy

logger = get_logger(__name__)

SCOPED_THRESHOLD = 0.6
ECOSYSTEM_CONFIDENCE_CAP = 0.8
MAX_SYNONYM_VARIANTS = 4


@dataclass
class CorpusPattern:
    keywords: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    confidence: float = 0.9


DEFAULT_PATTERNS: dict[str, CorpusPattern] = {
    "webawesome": CorpusPattern(
        keywords=["webawesome", "web awesome", "shoelace", "components"],
        aliases=["webawesome", "web-awesome"],
    ),
    "sample-framework": CorpusPattern(
        keywords=["sample", "example", "demo"],
        aliases=["sample"],
    ),
}

ECOSYSTEM_KEYWORDS: dict[str, list[str]] = {
    "react": ["react", "jsx", "hooks", "usestate", "useeffect"],
    "vue": ["vue", "vuejs", "composition", "ref", "reactive"],
    "angular": ["angular", "ng", "directive", "component", "service"],
    "svelte": ["svelte", "sveltekit", "reactive", "stores"],
    "next": ["nextjs", "next.js", "server component", "app router"],
    "nuxt": ["nuxt", "nuxtjs", "nuxt.js"],
    "tailwind": ["tailwind", "tailwindcss", "utility class"],
    "bootstrap": ["bootstrap", "bs5", "container", "row"],
    "vite": ["vite", "vitejs"],
    "webpack": ["webpack", "bundle"],
    "typescript": ["typescript", "ts", "type", "interface"],
}

TOPIC_KEYWORDS: dict[str, list[str]] = {
    "installation": ["install", "setup", "getting started", "quick start"],
    "configuration": ["config", "configure", "settings", "options"],
    "components": ["component", "button", "input", "form", "modal", "card"],
    "api": ["api", "method", "function", "parameter", "props"],
    "styling": ["style", "css", "theme", "design", "color", "class"],
    "routing": ["route", "router", "navigation", "link"],
    "state": ["state", "store", "context", "redux", "vuex"],
    "hooks": ["hook", "lifecycle", "effect", "memo"],
    "examples": ["example", "demo", "sample", "tutorial"],
    "troubleshooting": ["error", "issue", "problem", "debug", "fix"],
}

SYNONYMS: dict[str, list[str]] = {
    "button": ["btn", "button component"],
    "config": ["configuration", "settings", "options"],
    "install": ["installation", "setup", "getting started"],
    "style": ["styling", "css", "theme", "design"],
    "use": ["using", "usage", "how to use"],
}


class CorpusDetector:
    def __init__(self, patterns: Optional[dict[str, CorpusPattern]] = None):
        source = DEFAULT_PATTERNS if patterns is None else patterns
        self.patterns: dict[str, CorpusPattern] = {
            cid: CorpusPattern(list(p.keywords), list(p.aliases), p.confidence)
            for cid, p in source.items()
        }

    def register_patterns(self, corpus_id: str, keywords: list[str] = (),
                          aliases: list[str] = (), confidence: Optional[float] = None):
        """Add keywords/aliases for a corpus (merged into any existing entry)."""
        pattern = self.patterns.setdefault(corpus_id, CorpusPattern())
        for kw in keywords:
            kw = kw.lower().strip()
            if kw and kw not in pattern.keywords:
                pattern.keywords.append(kw)
        for alias in aliases:
            alias = alias.lower().strip()
            if alias and alias not in pattern.aliases:
                pattern.aliases.append(alias)
        if confidence is not None:
            pattern.confidence = confidence

    def detect(self, query: str, available: list[str]) -> Detection:
        q = query.lower()
        candidates: list[DetectionCandidate] = []

        for corpus_id in available:
            pattern = self.patterns.get(corpus_id)
            if pattern is None:
                continue
            matches = [kw for kw in pattern.keywords if kw in q]
            alias_matches = [a for a in pattern.aliases if a in q]
            score = len(matches) + 2 * len(alias_matches)
            if score > 0:
                candidates.append(DetectionCandidate(
                    corpus_id=corpus_id,
                    confidence=min(score / 3, 1.0) * pattern.confidence,
                    score=score,
                    reason=f"Matched keywords: {', '.join(matches + alias_matches)}",
                ))

        for ecosystem, keywords in ECOSYSTEM_KEYWORDS.items():
            matches = [kw for kw in keywords if kw in q]
            if not matches:
                continue
            corpus_id = next((c for c in available if ecosystem in c.lower()), None)
            if corpus_id is None:
                continue
            candidates.append(DetectionCandidate(
                corpus_id=corpus_id,
                confidence=min(len(matches) / 3, ECOSYSTEM_CONFIDENCE_CAP),
                score=len(matches),
                reason=f"Matched framework keywords: {', '.join(matches)}",
            ))

        candidates.sort(key=lambda c: c.confidence, reverse=True)
        top = candidates[0] if candidates else None
        return Detection(
            candidates=candidates,
            top_candidate=top,
            should_use_scoped=top is not None and top.confidence > SCOPED_THRESHOLD,
        )

    @staticmethod
    def extract_topics(query: str) -> list[str]:
        q = query.lower()
        return [
            topic for topic, keywords in TOPIC_KEYWORDS.items()
            if any(kw in q for kw in keywords)
        ]

    def extract_topic(self, query: str) -> str:
        topics = self.extract_topics(query)
        return topics[0] if topics else "general"

    def expand_query(self, query: str, corpus_id: Optional[str] = None) -> list[str]:
        q = query.lower()
        variants: list[str] = []
        for term, synonyms in SYNONYMS.items():
            if term not in q:
                continue
            pattern = re.compile(re.escape(term), re.IGNORECASE)
            for syn in synonyms:
                if syn not in q:
                    variants.append(pattern.sub(syn, query))
        expansions = [query] + variants[:MAX_SYNONYM_VARIANTS]

        pattern = self.patterns.get(corpus_id) if corpus_id else None
        if pattern and pattern.aliases:
            alias = pattern.aliases[0]
            if alias not in q:
                expansions.append(f"{alias} {query}")
        return expansions

    def get_search_strategy(self, query: str, available: list[str]) -> DetectionStrategy:
        detection = self.detect(query, available)
        top = detection.top_candidate
        strategy = DetectionStrategy(
            mode="scoped" if detection.should_use_scoped else "global",
            corpus_id=top.corpus_id if top else None,
            fallback_to_global=detection.should_use_scoped,
            confidence=top.confidence if top else 0.0,
            topic=self.extract_topic(query),
            expanded_queries=self.expand_query(query, top.corpus_id if top else None),
            reasoning=top.reason if top else "No corpus detected, using global search",
        )
        logger.debug(
            "Detection for %r: %s (confidence %.2f)", query, strategy.mode, strategy.confidence,
        )
        return strategy
