"""
SymJump CLI

Command-line interface for ranked symbol search.

Usage::

    symjump symbols usrsvc               # Fuzzy + recency ranked symbols
    symjump symbols --kind class -i      # Interactive picker
    symjump open src/user.ts UserService # Record a navigation
    symjump grep "TODO"                  # Plain word search
    symjump sibling src/user.ts          # Jump between source and test file
    symjump resume                       # Re-run the last symbol search
    symjump mcp                          # Start the MCP server
"""

import asyncio
import json
import logging
from pathlib import Path

import click

from symjump.client import SymJump
from symjump.core.config import SymJumpConfig
from symjump.core.engine import first_identifier
from symjump.core.search import ResultFormatter, SessionState
from symjump.exceptions import ConfigError, NoWorkspaceError


# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool, config: SymJumpConfig | None = None) -> None:
    """Set up logging for the CLI session."""
    cfg = config or SymJumpConfig.from_env()
    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level, logging.INFO)
    logging.basicConfig(level=level, format=cfg.log_format)


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------

def _make_client() -> SymJump:
    """Build a client from the environment; invalid settings end the command."""
    try:
        return SymJump(config=SymJumpConfig.from_env(), validate_on_init=True)
    except (ConfigError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)


def _fail_no_workspace(exc: NoWorkspaceError) -> None:
    click.echo(f"{exc}", err=True)
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# Top-level group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(package_name="symjump")
@click.pass_context
def cli(ctx: click.Context):
    """SymJump — jump to symbols, ranked by fuzzy match and recency."""
    ctx.ensure_object(dict)


# ---------------------------------------------------------------------------
# symjump symbols
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("query", default="")
@click.option("-k", "--kind", default="all", show_default=True,
              help="Symbol kind or rule name (see 'symjump kinds').")
@click.option("-r", "--root", default=".", type=click.Path(file_okay=False),
              help="Directory to search (default: current directory).")
@click.option("-n", "--max-results", type=int, default=None,
              help="Maximum number of results.")
@click.option("-f", "--format", "fmt",
              type=click.Choice(["console", "json", "compact", "ide"]),
              default="console", help="Output format.")
@click.option("-i", "--interactive", is_flag=True,
              help="Pick interactively: cached list first, refreshed when the scan lands.")
@click.option("--progress", is_flag=True, help="Show a progress bar while scanning.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def symbols(query: str, kind: str, root: str, max_results: int | None, fmt: str,
            interactive: bool, progress: bool, verbose: bool):
    """List symbols under ROOT ranked against QUERY.

    With no QUERY the list is ordered by recency alone.
    """
    _configure_logging(verbose)
    client = _make_client()
    root_path = str(Path(root).expanduser().resolve())
    client.remember_command("symbols", {
        "query": query, "kind": kind, "root": root_path,
        "max_results": max_results, "fmt": fmt,
    })

    try:
        if interactive:
            asyncio.run(_interactive_session(client, kind, root_path, query))
            return
        results = client.search(query, kind=kind, root=root_path,
                                max_results=max_results, show_progress=progress)
    except NoWorkspaceError as exc:
        _fail_no_workspace(exc)
    finally:
        client.close()

    formatter = ResultFormatter()
    if fmt == "json":
        click.echo(formatter.format_json(results))
    elif fmt == "compact":
        click.echo(formatter.format_compact(results))
    elif fmt == "ide":
        click.echo(formatter.format_ide(results))
    else:
        click.echo(formatter.format_console(results))


# ---------------------------------------------------------------------------
# Interactive picker
# ---------------------------------------------------------------------------

async def _interactive_session(client: SymJump, kind: str, root: str, query: str = "") -> None:
    """
    Drive a :class:`SearchSession` from the terminal.

    Commands at the prompt:
      <text>  — filter (empty input shows the unfiltered list)
      :N      — open item N (records the access, prints path:line:col)
      :q      — quit
    """
    formatter = ResultFormatter()

    def _render(session) -> None:
        click.echo(formatter.format_console(
            session.visible_items,
            total_count=len(session.items),
            busy=session.busy,
        ))

    def _on_update(session) -> None:
        click.echo("\n  Scan finished, list refreshed.")
        _render(session)

    session = client.open_session(kind, root, on_update=_on_update)
    await session.open()
    waited = session.state is SessionState.LOADING
    if waited:
        click.echo("  Scanning…")
        await session.wait_fresh()
    if query:
        session.filter(query)
    if query or not waited:
        _render(session)

    try:
        while True:
            try:
                answer = await asyncio.to_thread(
                    click.prompt, "  filter, :N to open, :q to quit",
                    default="", show_default=False,
                )
            except (KeyboardInterrupt, EOFError, click.Abort):
                click.echo("\n  Stopped.")
                return

            cmd = answer.strip()
            if cmd in (":q", ":quit"):
                click.echo("  Stopped.")
                return
            if cmd.startswith(":") and cmd[1:].isdigit():
                visible = session.visible_items
                index = int(cmd[1:]) - 1
                if 0 <= index < len(visible):
                    item = session.accept(visible[index])
                    click.echo(item.location)
                    return
                click.echo(f"  No item {cmd[1:]}.")
                continue

            session.filter(cmd)
            _render(session)
    finally:
        session.close()


# ---------------------------------------------------------------------------
# symjump resume
# ---------------------------------------------------------------------------

@cli.command()
@click.pass_context
def resume(ctx: click.Context):
    """Re-run the last 'symbols' search with the same arguments."""
    client = _make_client()
    try:
        record = client.last_command()
    finally:
        client.close()
    if record is None or record.command != "symbols":
        click.echo("No previous search to resume.", err=True)
        raise SystemExit(1)

    args = record.args
    ctx.invoke(
        symbols,
        query=args.get("query", ""),
        kind=args.get("kind", "all"),
        root=args.get("root", "."),
        max_results=args.get("max_results"),
        fmt=args.get("fmt", "console"),
        interactive=False,
        progress=False,
        verbose=False,
    )


# ---------------------------------------------------------------------------
# symjump open
# ---------------------------------------------------------------------------

@cli.command(name="open")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("symbol", required=False)
@click.option("-l", "--line", type=int, default=1, show_default=True,
              help="1-based line the symbol is on.")
def open_symbol(file_path: str, symbol: str | None, line: int):
    """Record a navigation to SYMBOL in FILE_PATH and print its location.

    Without SYMBOL, the first identifier on LINE is used.
    """
    text = ResultFormatter.source_line(file_path, line)
    name = symbol or first_identifier(text)
    column = text.find(name) + 1 if name and name in text else 1

    client = _make_client()
    try:
        entry = client.record_access(file_path, name)
    finally:
        client.close()
    click.echo(f"{Path(file_path).resolve()}:{line}:{column}")
    click.echo(f"  {name or '(file)'} opened {entry.access_count} time{'s' if entry.access_count != 1 else ''}", err=True)


# ---------------------------------------------------------------------------
# symjump grep
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("term")
@click.option("-r", "--root", default=".", type=click.Path(file_okay=False),
              help="Directory to search (default: current directory).")
@click.option("-f", "--format", "fmt",
              type=click.Choice(["console", "json", "ide"]),
              default="console", help="Output format.")
@click.option("-q", "--filter", "query", default="",
              help="Fuzzy-filter hits by file name, line text and path.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def grep(term: str, root: str, fmt: str, query: str, verbose: bool):
    """Plain word search for TERM, sorted by path and line (no symbol extraction)."""
    _configure_logging(verbose)
    client = _make_client()
    try:
        matches = client.search_text(term, root, query=query)
    except NoWorkspaceError as exc:
        _fail_no_workspace(exc)
    finally:
        client.close()
    click.echo(ResultFormatter.format_text_matches(matches, fmt))


# ---------------------------------------------------------------------------
# symjump sibling
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
def sibling(file_path: str):
    """Print the test file for FILE_PATH, or its source file if it is a test.

    Recognised pairs: foo.ts with foo.test.ts, foo-spec.ts, foo_test.ts, ...
    """
    client = _make_client()
    try:
        found = client.sibling(file_path)
    finally:
        client.close()
    if found is None:
        click.echo("No sibling file found.", err=True)
        raise SystemExit(1)
    click.echo(str(found))


# ---------------------------------------------------------------------------
# symjump recent / clear-recency
# ---------------------------------------------------------------------------

@cli.command()
@click.option("-n", "--limit", type=int, default=10, show_default=True)
@click.option("-f", "--format", "fmt", type=click.Choice(["console", "json"]),
              default="console", help="Output format.")
def recent(limit: int, fmt: str):
    """Show the most recently opened symbols with their recency scores."""
    client = _make_client()
    try:
        rows = client.recent(limit)
    finally:
        client.close()

    if fmt == "json":
        click.echo(json.dumps([{"key": key, **score.to_dict()} for key, score in rows], indent=2))
        return
    if not rows:
        click.echo("No recent symbols.")
        return
    click.echo("─" * 50)
    click.echo("  SYMJUMP — Recent symbols")
    click.echo("─" * 50)
    for key, score in rows:
        click.echo(f"  {score.score:>6.1f}  x{score.access_count:<4} {key}")
    click.echo("─" * 50)


@cli.command(name="clear-recency")
def clear_recency():
    """Forget every recorded navigation."""
    client = _make_client()
    try:
        client.clear_recency()
    finally:
        client.close()
    click.echo("Recency history cleared.")


# ---------------------------------------------------------------------------
# symjump kinds
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Dump the full pattern catalog as JSON.")
def kinds(as_json: bool):
    """List the selectors accepted by --kind and the rules behind them."""
    from symjump.core.catalog import PatternCatalog

    catalog = PatternCatalog()
    if as_json:
        click.echo(json.dumps(catalog.describe(), indent=2))
        return
    click.echo(f"  Selectors: {', '.join(catalog.selectors())}")
    click.echo()
    for rule in catalog.rules:
        click.echo(
            f"  {rule.name:<12} {rule.kind.value:<10} {rule.language:<11} "
            f"{len(rule.patterns)} pattern{'s' if len(rule.patterns) != 1 else ''}  "
            f"{' '.join(rule.globs)}"
        )


# ---------------------------------------------------------------------------
# symjump mcp
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--transport", type=click.Choice(["stdio", "sse", "streamable-http"]),
              default="stdio", help="MCP transport (default: stdio).")
@click.option("-v", "--verbose", is_flag=True)
def mcp(transport: str, verbose: bool):
    """Start the SymJump MCP server for editor / agent integration."""
    _configure_logging(verbose)
    try:
        from symjump.mcp.server import create_server  # noqa: E402
    except ImportError:
        click.echo(
            "Error: MCP dependencies not installed.\n"
            "Install with:  pip install 'symjump[mcp]'",
            err=True,
        )
        raise SystemExit(1)

    server = create_server()
    server.run(transport=transport)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
