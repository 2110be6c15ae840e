# DocHarbor – Auto-discovering documentation search for AI coding agents
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
MCP Server factory – creates a FastMCP instance with tools
that share the corpus manager with the HTTP API.

Tools:
  - ping: Liveness + corpus count
  - list_corpora / search_corpora: Browse the corpus hierarchy
  - search_docs: Search (auto-detects the corpus unless one is given)
  - search_all: Search every corpus, no auto-detection
  - get_doc: Full content of one document
  - discover_docs: Inspect an arbitrary source without registering it
  - refresh_corpus: Re-fetch and re-index one corpus (or all)
  - get_index_stats: Index + cache statistics
"""
import json
from typing import Optional

from mcp.server.fastmcp import FastMCP

from . import __version__
from .errors import DocHarborError
from .health import HealthTracker
from .manager import CorpusManager
from .models import SearchResponse


def _format_tree(nodes: list[dict], depth: int = 0) -> list[str]:
    lines = []
    for node in nodes:
        state = "ok" if node["validated"] else ("disabled" if not node["enabled"] else "not validated")
        line = f"{'  ' * depth}- **{node['name']}** (`{node['id']}`, {node['documents']} docs, {state})"
        if node.get("description"):
            line += f": {node['description']}"
        lines.append(line)
        if node.get("error"):
            lines.append(f"{'  ' * depth}  ! {node['error']}")
        lines.extend(_format_tree(node.get("children", []), depth + 1))
    return lines


def _format_results(response: SearchResponse) -> str:
    if not response.results:
        return (
            "No relevant documents found. "
            "Try a different or more specific query."
        )
    strategy = response.strategy
    header = f"Found {len(response.results)} results ({strategy.mode} search"
    if strategy.corpus_id:
        header += f", corpus: {strategy.corpus_id}"
    header += ")\n"

    output = [header]
    for r in response.results:
        output.append(
            f"### {r.title}\n"
            f"**{r.corpus_name}** > _{r.section}_ · `{r.file}` "
            f"(Score: {r.score:.3f}, Source: {r.source})\n\n"
            f"{r.excerpt}\n\n---"
        )
    return "\n".join(output)


def create_mcp_server(
    manager: CorpusManager,
    health: HealthTracker | None = None,
) -> FastMCP:
    """Factory: returns a configured FastMCP server that shares state with web.py."""

    mcp = FastMCP(
        "docharbor",
        instructions=(
            "Search over framework and library documentation.\n\n"
            "WORKFLOW for the agent:\n"
            "1. list_corpora() to see which documentation is available\n"
            "2. search_docs() before using an unfamiliar component or API\n"
            "3. Pass corpus_id when you know which framework the question is about\n"
            "4. get_doc() to read a full document from a search result\n"
            "5. discover_docs() to inspect a repository before adding it"
        ),
    )

    @mcp.tool()
    async def ping() -> str:
        """Check that the documentation server is up."""
        ready = sum(1 for c in manager.all_corpora() if c.validated)
        return (
            f"pong (docharbor v{__version__}, "
            f"{ready}/{len(manager)} corpora ready, "
            f"initialized: {manager.initialized})"
        )

    @mcp.tool()
    async def list_corpora() -> str:
        """List all documentation corpora as a tree (parents and child corpora)."""
        nodes = manager.get_hierarchy()
        if not nodes:
            return "No documentation corpora are configured."
        return "**Documentation corpora**\n\n" + "\n".join(_format_tree(nodes))

    @mcp.tool()
    async def search_corpora(query: str) -> str:
        """Find corpora whose id, name or description contains the query.

        Args:
            query: Part of a framework or library name, e.g. "react"
        """
        matches = manager.search_corpora(query)
        if not matches:
            return f"No corpora match '{query}'."
        return "\n".join(_format_tree(matches))

    @mcp.tool()
    async def search_docs(query: str, corpus_id: Optional[str] = None,
                          top_k: int = 10) -> str:
        """Search the documentation. Without corpus_id the server guesses the
        framework from the query and falls back to a global search.

        Args:
            query: What you want to know (natural language, be specific)
            corpus_id: Restrict the search to one corpus (see list_corpora)
            top_k: Number of results (default: 10)

        Returns:
            Ranked documents with corpus, section, file and an excerpt
        """
        try:
            response = manager.search(query, corpus_id=corpus_id, limit=top_k)
        except DocHarborError as e:
            return f"Error: {e}"
        if health:
            health.record_search("search_docs", bool(response.results))
        return _format_results(response)

    @mcp.tool()
    async def search_all(query: str, top_k: int = 10) -> str:
        """Search every corpus at once (no framework auto-detection).

        Args:
            query: Search query
            top_k: Number of results (default: 10)
        """
        response = manager.search(query, limit=top_k, auto_detect=False)
        if health:
            health.record_search("search_all", bool(response.results))
        return _format_results(response)

    @mcp.tool()
    async def get_doc(corpus_id: str, path: str) -> str:
        """Return the full content of one document.

        Args:
            corpus_id: Corpus the document belongs to
            path: File path as shown in search results
        """
        try:
            return await manager.load_document(corpus_id, path)
        except DocHarborError as e:
            return f"Error: {e}"

    @mcp.tool()
    async def discover_docs(url: str, path: Optional[str] = None) -> str:
        """Inspect a repository's documentation layout without registering it.

        Args:
            url: https://github.com/<owner>/<repo>[/tree/<branch>/<path>] or local://<path>
            path: Optional docs directory inside the repository
        """
        result = await manager.discover(url, path)
        if not result.get("found"):
            return f"No documentation found: {result.get('error', 'unknown error')}"
        structure = result["structure"]
        lines = [
            f"**{structure['title']}** ({result['url']})",
            f"Docs path: `{result['path'] or '/'}`",
            "",
        ]
        for category in structure["categories"]:
            lines.append(f"- {category['title']}: {len(category['items'])} documents")
        lines.append("")
        lines.append("```json\n" + json.dumps(result["metadata"], indent=2) + "\n```")
        return "\n".join(lines)

    @mcp.tool()
    async def refresh_corpus(corpus_id: Optional[str] = None) -> str:
        """Re-fetch and re-index one corpus, or all corpora when no id is given.

        Args:
            corpus_id: Corpus to refresh (default: all)
        """
        if corpus_id is None:
            results = await manager.refresh_all()
            ok = [r for r in results if r["success"]]
            lines = [f"Refreshed {len(ok)}/{len(results)} corpora"]
            for r in results:
                if r["success"]:
                    lines.append(f"  - {r['corpus_id']}: {r['documents']} documents")
                else:
                    lines.append(f"  - {r['corpus_id']}: FAILED ({r['error']})")
            return "\n".join(lines)
        try:
            result = await manager.refresh(corpus_id)
        except DocHarborError as e:
            return f"Refresh of {corpus_id} failed: {e}"
        text = f"Refresh complete!\n  Corpus: {corpus_id}\n  Documents: {result['documents']}"
        if result["failed"]:
            text += f"\n  Failed files: {result['failed']}"
        return text

    @mcp.tool()
    async def get_index_stats() -> str:
        """Show statistics about the search indexes and the document cache."""
        stats = manager.index_stats()
        cache = stats["cache"]
        corpora = "\n".join(
            f"  - {c['id']}: {c['documents']} docs"
            + (f", {c['failed_files']} failed" if c["failed_files"] else "")
            + ("" if c["validated"] else f" (not validated: {c['error']})")
            for c in stats["corpora"]
        ) or "  (none)"
        indexed = sum(c["documents"] for c in stats["bm25"]["corpora"])
        text = (
            f"**Index Statistics**\n\n"
            f"- **Corpora:** {len(stats['corpora'])}\n"
            f"- **BM25 documents:** {indexed}\n"
            f"- **Cached documents:** {cache['documents']}\n"
            f"- **Cache hit rate:** {cache['hit_rate']:.1%}\n\n"
            f"**Corpora:**\n{corpora}"
        )
        if health:
            status = health.status
            text += (
                f"\n\n**Searches:** {status['searches_total']} "
                f"({status['searches_hits']} hits, {status['searches_misses']} misses)"
            )
        return text

    return mcp
