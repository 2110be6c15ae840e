# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Error taxonomy.

Source errors come from the content loaders, structure errors from
discovery, cache errors from persistence. Per-file failures during
caching are collected into PartialCacheFailure instead of aborting.
"""


class DocHarborError(Exception):
    """Base class for all docharbor errors."""


# ── Source access ────────────────────────────────────


class SourceError(DocHarborError):
    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class SourceUnreachable(SourceError):
    """Network/transport failure or an unexpected response from the source."""


class AuthRequired(SourceError):
    """The source rejected an unauthenticated request (401/403)."""


class NotFound(SourceError):
    """The requested path does not exist in the source."""


class InvalidSourceUrl(DocHarborError, ValueError):
    """A corpus URL that is neither a GitHub URL nor ``local://``."""


# ── Structure ────────────────────────────────────────


class InvalidStructure(DocHarborError):
    """Discovery produced no usable categories, or the manifest is broken."""

    def __init__(self, message: str, issues: list[dict] | None = None):
        super().__init__(message)
        self.issues = issues or []


# ── Cache ────────────────────────────────────────────


class CacheError(DocHarborError):
    pass


class CacheVersionMismatch(CacheError):
    def __init__(self, found: str, expected: str):
        super().__init__(f"Cache version {found!r} does not match {expected!r}")
        self.found = found
        self.expected = expected


class CacheStale(CacheError):
    def __init__(self, age_hours: float, max_age_hours: float):
        super().__init__(
            f"Cache is {age_hours:.1f}h old (max {max_age_hours:.0f}h)"
        )
        self.age_hours = age_hours
        self.max_age_hours = max_age_hours


class PartialCacheFailure(DocHarborError):
    """Some files of a corpus could not be fetched; the rest were cached."""

    def __init__(self, corpus_id: str, failures: dict[str, str], cached: int):
        super().__init__(
            f"{len(failures)} file(s) of '{corpus_id}' could not be cached "
            f"({cached} cached)"
        )
        self.corpus_id = corpus_id
        self.failures = failures
        self.cached = cached


# ── Registry ─────────────────────────────────────────


class CorpusNotFound(DocHarborError, LookupError):
    def __init__(self, corpus_id: str):
        super().__init__(f"Corpus '{corpus_id}' not found")
        self.corpus_id = corpus_id
