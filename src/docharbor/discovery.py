# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Structure discovery – walks a documentation tree and turns it into
a navigable Structure without any manual configuration.

  - Bounded-depth walk (root listing is depth 0)
  - Files grouped by their nearest containing folder
  - Optional docharbor.json manifest overrides titles and order
  - Metadata back-filled from README.md and package.json
"""
import asyncio
import json
import re
from dataclasses import replace
from typing import Optional

from .errors import AuthRequired, InvalidSourceUrl, InvalidStructure, NotFound, SourceError
from .loaders import ContentLoader, join_path, parse_source_url
from .logging import get_logger
from .manifest import MANIFEST_FILE, Manifest, parse_manifest
from .models import (
    Category,
    DirectoryEntry,
    DiscoveryResult,
    DocItem,
    DocItems,
    GeneratedFromSchemas,
    GitHubLocator,
    Metadata,
    SourceLocator,
    Structure,
)
from .readers import is_supported, item_kind, strip_extension

logger = get_logger(__name__)

IGNORED_DIRS = {
    "node_modules", ".git", ".github", "dist", "build", "vendor", "__pycache__",
}
README_NAMES = ("README.md", "readme.md", "Readme.md")
PACKAGE_FILE = "package.json"

COMMON_DOC_PATHS = [
    "docs", "documentation", "doc", "website/docs",
    "packages/docs", "src/docs", "content", "pages",
]

GENERAL_CATEGORY = "general"
DEFAULT_CATEGORY_ORDER = {
    "getting-started": 1,
    "introduction": 1,
    "quickstart": 2,
    "installation": 2,
    "components": 10,
    "api": 20,
    "guides": 30,
    "reference": 40,
    "advanced": 50,
    GENERAL_CATEGORY: 100,
}
UNKNOWN_CATEGORY_ORDER = 99
MANIFEST_CATEGORY_ORDER = 999


def format_title(text: str) -> str:
    """'getting_started-guide' -> 'Getting Started Guide'."""
    words = re.sub(r"[-_]+", " ", text).split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


def normalize_category(name: str) -> str:
    return name.strip().lower().replace("_", "-")


def category_for(path: str, root: str) -> str:
    """Nearest containing folder of *path* relative to *root*."""
    rel = path[len(root):].strip("/") if root and path.startswith(root + "/") else path.strip("/")
    parts = rel.split("/")
    if len(parts) < 2:
        return GENERAL_CATEGORY
    return normalize_category(parts[-2])


def default_order(category_id: str) -> int:
    return DEFAULT_CATEGORY_ORDER.get(category_id, UNKNOWN_CATEGORY_ORDER)


def parse_readme(text: str) -> Metadata:
    title = None
    description = None
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if title is None and stripped.startswith("# "):
            title = stripped[2:].strip()
            continue
        if description is None and not stripped.startswith(("#", "!", "[")):
            description = stripped
        if title is not None and description is not None:
            break
    return Metadata(title=title, description=description)


def _item_sort_key(item: DocItem):
    return (0 if item.kind == "document" else 1, item.title.lower(), item.path)


class DiscoveryEngine:
    def __init__(self, loader: ContentLoader, max_depth: int = 3):
        self.loader = loader
        self.max_depth = max_depth

    # ── Walk ─────────────────────────────────────────

    async def _walk(
        self, locator: SourceLocator, entries: list[DirectoryEntry],
        depth: int, token: Optional[str],
    ) -> list[DirectoryEntry]:
        files = [e for e in entries if e.kind == "file" and not e.name.startswith(".") and is_supported(e.name)]
        subdirs = [
            e for e in entries
            if e.kind == "dir" and e.name not in IGNORED_DIRS and not e.name.startswith(".")
        ]
        if depth + 1 > self.max_depth or not subdirs:
            return files

        listings = await asyncio.gather(
            *(self._list_subdir(locator, d.path, token) for d in subdirs)
        )
        nested = await asyncio.gather(
            *(self._walk(locator, listing, depth + 1, token) for listing in listings)
        )
        for sub_files in nested:
            files.extend(sub_files)
        return files

    async def _list_subdir(self, locator: SourceLocator, path: str,
                           token: Optional[str]) -> list[DirectoryEntry]:
        try:
            return sorted(await self.loader.list_directory(locator, path, token), key=lambda e: e.name)
        except AuthRequired:
            raise
        except SourceError as e:
            logger.warning("Skipping %s: %s", path, e)
            return []

    # ── Manifest / Metadata ──────────────────────────

    async def _load_manifest(self, locator: SourceLocator, root: str,
                             entries: list[DirectoryEntry],
                             token: Optional[str]) -> Optional[Manifest]:
        entry = next((e for e in entries if e.kind == "file" and e.name == MANIFEST_FILE), None)
        if entry is None:
            return None
        raw = await self.loader.load_file(locator, entry.path, token)
        return parse_manifest(raw, source=join_path(root, MANIFEST_FILE))

    async def _try_load(self, locator: SourceLocator, path: str,
                        token: Optional[str]) -> Optional[str]:
        try:
            return await self.loader.load_file(locator, path, token)
        except AuthRequired:
            raise
        except SourceError as e:
            logger.debug("Could not load %s: %s", path, e)
            return None

    async def _backfill_metadata(
        self, locator: SourceLocator, root: str, entries: list[DirectoryEntry],
        metadata: Metadata, token: Optional[str],
    ) -> Metadata:
        if metadata.title and metadata.description and metadata.version:
            return metadata

        scopes = [(root, {e.name for e in entries if e.kind == "file"})]
        if root:
            try:
                source_entries = await self.loader.list_directory(locator, "", token)
            except AuthRequired:
                raise
            except SourceError as e:
                logger.debug("Could not list source root: %s", e)
                source_entries = []
            scopes.append(("", {e.name for e in source_entries if e.kind == "file"}))

        readme_paths = [join_path(base, n) for base, names in scopes for n in README_NAMES if n in names]
        package_paths = [join_path(base, PACKAGE_FILE) for base, names in scopes if PACKAGE_FILE in names]

        for path in readme_paths:
            if metadata.title and metadata.description:
                break
            text = await self._try_load(locator, path, token)
            if text is None:
                continue
            parsed = parse_readme(text)
            metadata = Metadata(
                title=metadata.title or parsed.title,
                description=metadata.description or parsed.description,
                version=metadata.version,
            )
            break

        for path in package_paths:
            if metadata.title and metadata.description and metadata.version:
                break
            text = await self._try_load(locator, path, token)
            if text is None:
                continue
            try:
                pkg = json.loads(text)
            except ValueError:
                logger.debug("Ignoring malformed %s", path)
                continue
            if isinstance(pkg, dict):
                metadata = Metadata(
                    title=metadata.title or _str_or_none(pkg.get("name")),
                    description=metadata.description or _str_or_none(pkg.get("description")),
                    version=metadata.version or _str_or_none(pkg.get("version")),
                )
            break
        return metadata

    # ── Categories ───────────────────────────────────

    def _build_categories(self, files: list[DirectoryEntry], root: str,
                          manifest: Optional[Manifest]) -> list[Category]:
        manifest_cats = manifest.categories if manifest else {}
        groups: dict[str, list[DocItem]] = {}
        claimed: set[str] = set()
        schema_groups: dict[str, GeneratedFromSchemas] = {}

        for cat_id, entry in manifest_cats.items():
            if entry.type != "schemas":
                continue
            base = join_path(root, entry.path or cat_id)
            schemas = [
                self._make_item(f) for f in files
                if item_kind(f.name) == "schema" and f.path.startswith(base + "/")
            ]
            schemas.sort(key=_item_sort_key)
            claimed.update(s.path for s in schemas)
            schema_groups[normalize_category(cat_id)] = GeneratedFromSchemas(
                path=entry.path or cat_id, schemas=schemas,
            )

        for f in files:
            if f.path in claimed:
                continue
            groups.setdefault(category_for(f.path, root), []).append(self._make_item(f))

        normalized = {normalize_category(k): v for k, v in manifest_cats.items()}
        categories = []
        for cat_id in sorted(set(groups) | set(schema_groups)):
            if cat_id in schema_groups:
                content = schema_groups[cat_id]
                if cat_id in groups:
                    # documents that share the folder stay with the schemas
                    content.schemas = sorted(groups[cat_id] + content.schemas, key=_item_sort_key)
            else:
                content = DocItems(sorted(groups[cat_id], key=_item_sort_key))
            m = normalized.get(cat_id)
            if m is not None:
                order = m.order if m.order is not None else MANIFEST_CATEGORY_ORDER
                title = m.title or format_title(cat_id)
            else:
                order = default_order(cat_id)
                title = format_title(cat_id)
            category = Category(id=cat_id, title=title, order=order, content=content)
            if category.items:
                categories.append(category)

        categories.sort(key=lambda c: (c.order, c.id))
        return categories

    @staticmethod
    def _make_item(entry: DirectoryEntry) -> DocItem:
        return DocItem(
            title=format_title(strip_extension(entry.name)),
            path=entry.path,
            kind=item_kind(entry.name),
        )

    # ── Public API ───────────────────────────────────

    async def discover(
        self, locator: SourceLocator, root_path: Optional[str] = None,
        name: Optional[str] = None, token: Optional[str] = None,
    ) -> DiscoveryResult:
        """Discover the documentation structure below *root_path*.

        Raises NotFound if the root cannot be listed and InvalidStructure
        if no non-empty category results.
        """
        root = (locator.docs_path if root_path is None else root_path).strip("/")
        entries = sorted(await self.loader.list_directory(locator, root, token), key=lambda e: e.name)

        manifest = await self._load_manifest(locator, root, entries, token)
        files = await self._walk(locator, entries, 0, token)
        categories = self._build_categories(files, root, manifest)

        display = name or _source_name(locator)
        structure = Structure(
            title=(manifest.title if manifest and manifest.title else format_title(display)),
            description=(
                manifest.description if manifest and manifest.description
                else f"Documentation for {display}"
            ),
            categories=categories,
        )
        if not structure.is_valid:
            raise InvalidStructure(f"No documentation found under '{root or '/'}'")

        metadata = Metadata(
            title=manifest.title if manifest else None,
            description=manifest.description if manifest else None,
            version=manifest.version if manifest else None,
        )
        metadata = await self._backfill_metadata(locator, root, entries, metadata, token)

        logger.info(
            "Discovered %d categories, %d documents in %s",
            len(categories), sum(len(c.items) for c in categories),
            join_path(locator.url, root) if isinstance(locator, GitHubLocator) else locator.url,
        )
        return DiscoveryResult(structure=structure, metadata=metadata, path=root)

    async def discover_source(self, url: str, custom_path: Optional[str] = None,
                              token: Optional[str] = None) -> dict:
        """Locate the documentation inside a source and describe it.

        Tries *custom_path*, the path in the URL, the common documentation
        folders and finally the source root.
        """
        try:
            locator = parse_source_url(url)
        except InvalidSourceUrl as e:
            return {"found": False, "error": str(e)}

        try:
            if isinstance(locator, GitHubLocator) and not locator.branch_pinned:
                locator = locator.with_branch(
                    await self.loader.resolve_default_branch(locator, token)
                )
        except SourceError as e:
            return {"found": False, "error": str(e)}

        candidates: list[str] = []
        for path in [custom_path, locator.docs_path or None, *COMMON_DOC_PATHS, ""]:
            if path is None:
                continue
            path = path.strip("/")
            if path not in candidates:
                candidates.append(path)

        for path in candidates:
            try:
                result = await self.discover(locator, path, token=token)
            except (NotFound, InvalidStructure):
                continue
            except SourceError as e:
                return {"found": False, "error": str(e)}

            found_url = (
                replace(locator, path=path, branch_pinned=True).url
                if isinstance(locator, GitHubLocator) else locator.url
            )
            return {
                "found": True,
                "path": path,
                "url": found_url,
                "branch": getattr(locator, "branch", None),
                "metadata": result.metadata.to_dict(),
                "structure": result.structure.to_dict(),
            }

        return {
            "found": False,
            "error": f"No documentation found in {url}",
        }


def _source_name(locator: SourceLocator) -> str:
    if isinstance(locator, GitHubLocator):
        return locator.repo
    name = locator.path.rstrip("/").rsplit("/", 1)[-1]
    return name if name not in ("", ".", "..") else "docs"


def _str_or_none(value) -> Optional[str]:
    return value if isinstance(value, str) and value else None
