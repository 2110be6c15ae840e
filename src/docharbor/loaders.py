# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Content loaders – the only code that talks to a documentation source.

  - GitHubLoader: GitHub REST contents API over httpx.AsyncClient
  - LocalLoader: files below a configured root directory
  - ContentLoader: dispatches by locator type

Paths passed to list_directory/load_file are relative to the source root
(repository root for GitHub, the local:// directory for local sources).
"""
import asyncio
import base64
import binascii
import re
import time
from pathlib import Path
from typing import Any, Optional

import httpx

from . import __version__
from .errors import AuthRequired, InvalidSourceUrl, NotFound, SourceUnreachable
from .logging import get_logger
from .models import DirectoryEntry, GitHubLocator, LocalLocator, SourceLocator

logger = get_logger(__name__)

LOCAL_SCHEME = "local://"

_GITHUB_URL_RE = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/"
    r"(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?"
    r"(?:/tree/(?P<branch>[^/\s]+)(?:/(?P<path>.*?))?)?/?$"
)


def parse_source_url(url: str) -> SourceLocator:
    """Parse a corpus URL into a locator.

    Accepted forms:
      https://github.com/<owner>/<repo>
      https://github.com/<owner>/<repo>.git
      https://github.com/<owner>/<repo>/tree/<branch>[/<path>]
      local://<relative-path>
    """
    url = (url or "").strip()
    if url.startswith(LOCAL_SCHEME):
        rel = url[len(LOCAL_SCHEME):].strip("/")
        return LocalLocator(path=rel or ".")

    m = _GITHUB_URL_RE.match(url)
    if not m:
        raise InvalidSourceUrl(f"Unsupported source URL: {url!r}")
    branch = m.group("branch")
    return GitHubLocator(
        owner=m.group("owner"),
        repo=m.group("repo"),
        branch=branch or "main",
        path=(m.group("path") or "").strip("/"),
        branch_pinned=bool(branch),
    )


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


# ── GitHub ───────────────────────────────────────────


class GitHubLoader:
    """Reads directories and files through the GitHub contents API.

    Responses are kept in a short-lived in-memory cache so that a
    discovery pass never asks for the same listing twice.
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: str = "",
        timeout: float = 30.0,
        max_concurrency: int = 8,
        cache_ttl: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_concurrency = max(1, max_concurrency)
        self.cache_ttl = cache_ttl
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop = None
        self._cache: dict[str, tuple[float, Any]] = {}
        self.requests_made = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Accept": "application/vnd.github.v3+json",
                    "User-Agent": f"docharbor/{__version__}",
                },
            )
        return self._client

    def _get_semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            self._semaphore_loop = loop
        return self._semaphore

    async def aclose(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def clear_cache(self):
        self._cache.clear()

    def _cache_get(self, key: str) -> Any:
        hit = self._cache.get(key)
        if hit is None:
            return None
        stored_at, value = hit
        if time.monotonic() - stored_at > self.cache_ttl:
            self._cache.pop(key, None)
            return None
        return value

    async def _get_json(self, url: str, token: Optional[str], cache_key: str,
                        params: Optional[dict] = None) -> Any:
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        token = token or self.token
        headers = {"Authorization": f"token {token}"} if token else {}
        async with self._get_semaphore():
            self.requests_made += 1
            try:
                resp = await self._get_client().get(
                    url, params=params, headers=headers, timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                raise SourceUnreachable(f"GitHub request failed: {e}", url) from e

        if resp.status_code == 404:
            raise NotFound(f"Not found on GitHub: {url}", url)
        if resp.status_code in (401, 403) and not token:
            raise AuthRequired(
                f"GitHub refused {url} ({resp.status_code}); a token is required", url,
            )
        if resp.status_code != 200:
            raise SourceUnreachable(
                f"GitHub returned {resp.status_code} for {url}", url,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise SourceUnreachable(f"Invalid JSON from GitHub for {url}", url) from e

        self._cache[cache_key] = (time.monotonic(), data)
        return data

    async def _contents(self, locator: GitHubLocator, path: str,
                        token: Optional[str]) -> Any:
        path = path.strip("/")
        url = f"/repos/{locator.owner}/{locator.repo}/contents/{path}"
        key = f"{locator.owner}/{locator.repo}/{locator.branch}/{path}"
        return await self._get_json(url, token, key, params={"ref": locator.branch})

    async def resolve_default_branch(self, locator: GitHubLocator,
                                     token: Optional[str] = None) -> str:
        url = f"/repos/{locator.owner}/{locator.repo}"
        data = await self._get_json(url, token, f"repo:{locator.owner}/{locator.repo}")
        branch = data.get("default_branch") if isinstance(data, dict) else None
        if not branch:
            raise SourceUnreachable(f"No default branch reported for {url}", url)
        return branch

    async def list_directory(self, locator: GitHubLocator, path: str,
                             token: Optional[str] = None) -> list[DirectoryEntry]:
        data = await self._contents(locator, path, token)
        if not isinstance(data, list):
            raise NotFound(f"Not a directory: {path or '/'}", path)
        entries = []
        for entry in data:
            kind = entry.get("type")
            if kind not in ("file", "dir"):
                continue
            entries.append(DirectoryEntry(
                name=entry.get("name", ""),
                path=entry.get("path", join_path(path, entry.get("name", ""))),
                kind=kind,
                size=int(entry.get("size") or 0),
            ))
        return entries

    async def load_file(self, locator: GitHubLocator, path: str,
                        token: Optional[str] = None) -> str:
        data = await self._contents(locator, path, token)
        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotFound(f"Not a file: {path}", path)

        if data.get("encoding") == "base64" and data.get("content") is not None:
            try:
                raw = base64.b64decode(data["content"])
            except (binascii.Error, ValueError) as e:
                raise SourceUnreachable(f"Undecodable content for {path}", path) from e
            return raw.decode("utf-8", errors="replace")

        # Files above the contents API size limit only carry a download URL
        download_url = data.get("download_url")
        if not download_url:
            raise SourceUnreachable(f"No content returned for {path}", path)
        return await self._download(download_url, token, path)

    async def _download(self, url: str, token: Optional[str], path: str) -> str:
        token = token or self.token
        headers = {"Authorization": f"token {token}"} if token else {}
        async with self._get_semaphore():
            self.requests_made += 1
            try:
                resp = await self._get_client().get(url, headers=headers, timeout=self.timeout)
            except httpx.HTTPError as e:
                raise SourceUnreachable(f"Download failed for {path}: {e}", path) from e
        if resp.status_code == 404:
            raise NotFound(f"Not found: {path}", path)
        if resp.status_code != 200:
            raise SourceUnreachable(f"Download of {path} returned {resp.status_code}", path)
        return resp.text


# ── Local ────────────────────────────────────────────


class LocalLoader:
    """Reads local:// sources, resolved below a fixed root directory."""

    def __init__(self, root: str | Path = "."):
        self.root = Path(root).resolve()

    def _resolve(self, locator: LocalLocator, path: str) -> Path:
        base = (self.root / locator.path).resolve()
        target = (base / path.strip("/")).resolve() if path.strip("/") else base
        if not target.is_relative_to(self.root):
            raise NotFound(f"Path escapes local root: {path}", path)
        return target

    async def resolve_default_branch(self, locator: LocalLocator,
                                     token: Optional[str] = None) -> str:
        return ""

    async def list_directory(self, locator: LocalLocator, path: str,
                             token: Optional[str] = None) -> list[DirectoryEntry]:
        base = self._resolve(locator, "")
        target = self._resolve(locator, path)

        def _list() -> list[DirectoryEntry]:
            if not target.is_dir():
                raise NotFound(f"Not a directory: {path or '/'}", path)
            entries = []
            for child in sorted(target.iterdir()):
                rel = child.relative_to(base).as_posix()
                if child.is_dir():
                    entries.append(DirectoryEntry(child.name, rel, "dir"))
                elif child.is_file():
                    entries.append(DirectoryEntry(child.name, rel, "file", child.stat().st_size))
            return entries

        return await asyncio.to_thread(_list)

    async def load_file(self, locator: LocalLocator, path: str,
                        token: Optional[str] = None) -> str:
        target = self._resolve(locator, path)

        def _read() -> str:
            if not target.is_file():
                raise NotFound(f"Not a file: {path}", path)
            return target.read_text(encoding="utf-8", errors="replace")

        return await asyncio.to_thread(_read)


# ── Facade ───────────────────────────────────────────


class ContentLoader:
    """Single entry point used by discovery and the corpus manager."""

    def __init__(self, github: GitHubLoader, local: LocalLoader):
        self.github = github
        self.local = local

    @classmethod
    def from_config(cls, config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ContentLoader":
        return cls(
            GitHubLoader(
                api_url=config.github_api_url,
                token=config.github_token,
                timeout=config.request_timeout,
                max_concurrency=config.max_concurrent_fetches,
                cache_ttl=config.api_cache_ttl,
                transport=transport,
            ),
            LocalLoader(config.local_root),
        )

    def _backend(self, locator: SourceLocator):
        if isinstance(locator, GitHubLocator):
            return self.github
        if isinstance(locator, LocalLocator):
            return self.local
        raise TypeError(f"Unsupported locator: {locator!r}")

    async def list_directory(self, locator: SourceLocator, path: str = "",
                             token: Optional[str] = None) -> list[DirectoryEntry]:
        return await self._backend(locator).list_directory(locator, path, token)

    async def load_file(self, locator: SourceLocator, path: str,
                        token: Optional[str] = None) -> str:
        return await self._backend(locator).load_file(locator, path, token)

    async def resolve_default_branch(self, locator: SourceLocator,
                                     token: Optional[str] = None) -> str:
        return await self._backend(locator).resolve_default_branch(locator, token)

    async def aclose(self):
        await self.github.aclose()
