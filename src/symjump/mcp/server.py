"""
SymJump MCP Server

Exposes ranked symbol search, recency tracking and plain word search as
tools that AI agents and editors can invoke via the Model Context Protocol.

A single :class:`~symjump.client.SymJump` client is shared by every tool
call, so the symbol cache survives between calls: the first search of a
root waits for a full scan, later searches answer from the cache while a
background rescan refreshes it.

Start with::

    symjump mcp                              # stdio transport
    symjump mcp --transport streamable-http  # HTTP (Streamable)
    symjump mcp --transport sse              # SSE transport (legacy)

Or programmatically::

    from symjump.mcp.server import create_server
    server = create_server()
    server.run()
"""

from __future__ import annotations

import json
import logging
import os
from typing import Annotated

# FastMCP validates tool arguments with pydantic.
from pydantic import Field  # type: ignore[import-untyped]

from symjump.client import SymJump
from symjump.core.config import SymJumpConfig
from symjump.core.search import ResultFormatter

logger = logging.getLogger(__name__)


def create_server(config: SymJumpConfig | None = None, client: SymJump | None = None):
    """
    Build and return a configured FastMCP server instance.

    Args:
        config: Instance-based configuration.  Defaults to
            ``SymJumpConfig.from_env()`` so that the server respects
            the same environment variables as the CLI.
        client: Pre-built client (tests pass one with an in-memory store
            and a fake ripgrep runner).

    Raises ``ImportError`` if ``fastmcp`` is not installed (install
    via ``pip install 'symjump[mcp]'``).
    """
    from fastmcp import FastMCP  # type: ignore[import-untyped]

    cfg = config or (client.config if client is not None else SymJumpConfig.from_env())
    shared = client or SymJump(config=cfg)

    mcp = FastMCP("SymJump")

    # ==================================================================
    # Helpers: root resolution (SYMJUMP_DEFAULT_ROOT for container mounts)
    # ==================================================================

    def _resolve_root(root: str) -> str:
        """When root is '.', use SYMJUMP_DEFAULT_ROOT if set."""
        if root == ".":
            default = os.environ.get("SYMJUMP_DEFAULT_ROOT", "").strip()
            if default:
                return default
        return root

    def _error(exc: Exception) -> str:
        return json.dumps({"error": str(exc), "results": []}, allow_nan=False)

    # ==================================================================
    # Tool: search_symbols
    # ==================================================================

    @mcp.tool()
    async def search_symbols(
        query: Annotated[
            str,
            Field(default="", description="Fuzzy filter matched against symbol names (smart case: case-sensitive only if it contains an uppercase letter). Empty returns symbols ordered by how recently they were opened.")
        ] = "",
        root: Annotated[
            str,
            Field(default=".", description="Directory to search. Defaults to the current working directory ('.').")
        ] = ".",
        kind: Annotated[
            str,
            Field(default="all", description="'all', a symbol kind (class, function, method, variable, type, interface, schema, component) or a rule name such as 'go_func'. See the symjump://catalog resource.")
        ] = "all",
        max_results: Annotated[
            int | None,
            Field(default=None, description="Maximum number of results. Defaults to the picker size from config (20).")
        ] = None,
        wait_fresh: Annotated[
            bool,
            Field(default=False, description="If True, wait for the background rescan instead of answering from the cached symbol list.")
        ] = False,
    ) -> str:
        """Find symbol declarations (classes, functions, types, components, …)
        under a directory, ranked by fuzzy match quality and by how recently
        each symbol was opened.

        **When to use this tool:**
        - You know (part of) a symbol name and want its definition site
        - You want the symbols you or the user touched most recently

        **When NOT to use:**
        - You are looking for arbitrary text (use grep_text instead)

        Returns:
            JSON array of symbols with symbol, kind, path, line,
            start_column, end_column and score.
        """
        try:
            n = max_results if max_results is not None else cfg.max_visible_items
            results = await shared.asearch(
                str(query or "").strip(),
                kind=kind,
                root=_resolve_root(root),
                max_results=n,
                wait_fresh=wait_fresh,
            )
            return ResultFormatter.format_json(results)
        except Exception as e:
            return _error(e)

    # ==================================================================
    # Tool: record_symbol_access
    # ==================================================================

    @mcp.tool()
    def record_symbol_access(
        file_path: Annotated[
            str,
            Field(description="Path of the file that was opened (absolute, or relative to the server's working directory).")
        ],
        symbol: Annotated[
            str | None,
            Field(default=None, description="Name of the symbol navigated to. Omit to record the file alone.")
        ] = None,
    ) -> str:
        """Record that a symbol was opened so it ranks higher in later searches.

        Call this after navigating to a result of search_symbols.

        Returns:
            JSON with the updated entry (path, last_accessed, access_count)
            and the new recency score.
        """
        try:
            entry = shared.record_access(file_path, symbol)
            score = shared.recency_score(file_path, symbol)
            return json.dumps({**entry.to_dict(), "score": score.score})
        except Exception as e:
            return json.dumps({"error": str(e)})

    # ==================================================================
    # Tool: grep_text
    # ==================================================================

    @mcp.tool()
    async def grep_text(
        term: Annotated[
            str,
            Field(description="Word or regex to search for with ripgrep (smart case).")
        ],
        root: Annotated[
            str,
            Field(default=".", description="Directory to search. Defaults to the current working directory ('.').")
        ] = ".",
        query: Annotated[
            str,
            Field(default="", description="Optional fuzzy filter over file name, line text and path (smart case). Best matches first.")
        ] = "",
        max_results: Annotated[
            int | None,
            Field(default=None, description="Maximum number of matches to return. Default: all.")
        ] = None,
    ) -> str:
        """Plain text search (no symbol extraction), sorted by path then line.

        Returns:
            JSON array of matches with absolute file_path, 0-based line and
            column, and the matching line text.
        """
        try:
            term = str(term or "").strip()
            if not term:
                return _error(ValueError("Missing required argument: term"))
            matches = await shared.asearch_text(term, _resolve_root(root), query=str(query or "").strip())
            if max_results:
                matches = matches[:max_results]
            return ResultFormatter.format_text_matches(matches, "json")
        except Exception as e:
            return _error(e)

    # ==================================================================
    # Tool: recent_symbols / clear_recency
    # ==================================================================

    @mcp.tool()
    def recent_symbols(
        limit: Annotated[
            int,
            Field(default=10, description="How many entries to return, newest first.")
        ] = 10,
    ) -> str:
        """List the most recently opened symbols with their recency scores."""
        rows = shared.recent(limit)
        return json.dumps([{"key": key, **score.to_dict()} for key, score in rows])

    @mcp.tool()
    def clear_recency() -> str:
        """Forget every recorded navigation."""
        shared.clear_recency()
        return json.dumps({"status": "cleared"})

    # ==================================================================
    # Tool: health (readiness check)
    # ==================================================================

    @mcp.tool()
    def health() -> str:
        """Check that the SymJump MCP server is running and ripgrep is available.

        Returns:
            JSON with status, version, ripgrep availability and cache size.
        """
        return json.dumps({"status": "ok", **shared.health()})

    # ==================================================================
    # Resource: pattern catalog
    # ==================================================================

    @mcp.resource("symjump://catalog")
    def catalog() -> str:
        """Return the pattern catalog: rules, kinds, precedence and reserved words."""
        return json.dumps({
            "selectors": shared.catalog.selectors(),
            **shared.catalog.describe(),
        }, indent=2)

    # ==================================================================
    # Prompt templates
    # ==================================================================

    @mcp.prompt()
    def find_symbol(name: str, root: str = ".") -> str:
        """Pre-built prompt: locate a symbol and remember the navigation."""
        return (
            f"Call search_symbols with query '{name}' and root '{root}'. Open the "
            "best match at its path and line, then call record_symbol_access "
            "with that path and symbol so it ranks higher next time."
        )

    return mcp
