# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Runtime data model – source locators, discovered structure, indexed
documents and search results. Persisted configuration lives in config.py.
"""
from dataclasses import dataclass, field, replace
from typing import ClassVar, Literal, Optional, Union

from .config import CorpusConfig

ItemKind = Literal["document", "schema"]
ResultSource = Literal["bm25", "semantic", "both"]


# ── Source locators ──────────────────────────────────


@dataclass(frozen=True)
class GitHubLocator:
    owner: str
    repo: str
    branch: str = "main"
    path: str = ""
    branch_pinned: bool = False

    kind: ClassVar[str] = "github"

    @property
    def url(self) -> str:
        base = f"https://github.com/{self.owner}/{self.repo}"
        if self.branch_pinned or self.path:
            base += f"/tree/{self.branch}"
            if self.path:
                base += f"/{self.path}"
        return base

    @property
    def docs_path(self) -> str:
        return self.path

    def with_branch(self, branch: str) -> "GitHubLocator":
        return replace(self, branch=branch)


@dataclass(frozen=True)
class LocalLocator:
    path: str

    kind: ClassVar[str] = "local"

    @property
    def url(self) -> str:
        return f"local://{self.path}"

    @property
    def docs_path(self) -> str:
        return ""


SourceLocator = Union[GitHubLocator, LocalLocator]


@dataclass
class DirectoryEntry:
    name: str
    path: str
    kind: Literal["file", "dir"]
    size: int = 0


# ── Structure ────────────────────────────────────────


@dataclass
class DocItem:
    title: str
    path: str
    kind: ItemKind = "document"
    description: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"title": self.title, "path": self.path, "type": self.kind}
        if self.description:
            d["description"] = self.description
        return d


@dataclass
class DocItems:
    """Category backed by an explicit list of documents."""
    items: list[DocItem] = field(default_factory=list)


@dataclass
class GeneratedFromSchemas:
    """Category whose entries are generated from component schema files."""
    path: str
    schemas: list[DocItem] = field(default_factory=list)


CategoryContent = Union[DocItems, GeneratedFromSchemas]


@dataclass
class Category:
    id: str
    title: str
    order: int
    content: CategoryContent

    @property
    def items(self) -> list[DocItem]:
        if isinstance(self.content, GeneratedFromSchemas):
            return self.content.schemas
        return self.content.items

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "order": self.order,
            "items": [i.to_dict() for i in self.items],
        }
        if isinstance(self.content, GeneratedFromSchemas):
            d["type"] = "schemas"
            d["path"] = self.content.path
        return d


@dataclass
class Structure:
    title: str
    description: str = ""
    categories: list[Category] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return any(c.items for c in self.categories)

    def iter_items(self):
        """Yield (category, item) for every item, in display order."""
        for category in self.categories:
            for item in category.items:
                yield category, item

    def file_paths(self) -> list[str]:
        seen: dict[str, None] = {}
        for _, item in self.iter_items():
            seen.setdefault(item.path, None)
        return list(seen)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "categories": [c.to_dict() for c in self.categories],
        }


@dataclass
class Metadata:
    title: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in (
            ("title", self.title),
            ("description", self.description),
            ("version", self.version),
        ) if v}


@dataclass
class DiscoveryResult:
    structure: Structure
    metadata: Metadata
    path: str = ""


@dataclass
class ValidationResult:
    corpus_id: str
    ok: bool
    error: Optional[str] = None
    document_count: int = 0


# ── Corpus ───────────────────────────────────────────


@dataclass
class Corpus:
    """Runtime state for a single registered documentation source."""
    id: str
    name: str
    locator: SourceLocator
    config: CorpusConfig
    description: str = ""
    token: Optional[str] = None
    enabled: bool = True
    parent: Optional[str] = None
    keywords: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    validated: bool = False
    validation_error: Optional[str] = None
    auth_required: bool = False
    structure: Optional[Structure] = None
    metadata: Metadata = field(default_factory=Metadata)
    children: list["Corpus"] = field(default_factory=list)
    cache_failures: dict[str, str] = field(default_factory=dict)

    def walk(self):
        """Yield this corpus and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


# ── Search ───────────────────────────────────────────


@dataclass
class IndexedDocument:
    corpus_id: str
    corpus_name: str
    category: str
    title: str
    path: str
    kind: ItemKind
    content: str
    description: str = ""


@dataclass
class ScoredDocument:
    document: IndexedDocument
    score: float


@dataclass
class RankedDocument:
    document: IndexedDocument
    score: float
    bm25_score: float = 0.0
    semantic_score: float = 0.0
    source: ResultSource = "bm25"


@dataclass
class SearchResult:
    corpus_id: str
    corpus_name: str
    section: str
    title: str
    excerpt: str
    file: str
    score: float
    source: ResultSource

    def to_dict(self) -> dict:
        return {
            "corpusId": self.corpus_id,
            "corpusName": self.corpus_name,
            "section": self.section,
            "title": self.title,
            "excerpt": self.excerpt,
            "file": self.file,
            "score": round(self.score, 4),
            "source": self.source,
        }


@dataclass
class DetectionCandidate:
    corpus_id: str
    confidence: float
    score: int
    reason: str


@dataclass
class Detection:
    candidates: list[DetectionCandidate]
    top_candidate: Optional[DetectionCandidate]
    should_use_scoped: bool


@dataclass
class DetectionStrategy:
    mode: Literal["scoped", "global", "hybrid"]
    corpus_id: Optional[str] = None
    fallback_to_global: bool = True
    confidence: float = 0.0
    topic: str = "general"
    expanded_queries: list[str] = field(default_factory=list)
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.mode,
            "corpusId": self.corpus_id,
            "fallbackToGlobal": self.fallback_to_global,
            "confidence": round(self.confidence, 3),
            "topic": self.topic,
            "expandedQueries": list(self.expanded_queries),
            "reasoning": self.reasoning,
        }


@dataclass
class SearchResponse:
    strategy: DetectionStrategy
    results: list[SearchResult]
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "metadata": dict(self.metadata),
        }
