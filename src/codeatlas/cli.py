"""Typer CLI entry point for CodeAtlas.

Bridges the synchronous Typer world to the async indexing internals via asyncio.run().
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, NoReturn, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codeatlas import __version__
from codeatlas.exceptions import AtlasError
from codeatlas.indexer.symbols import SymbolKind
from codeatlas.workspace import Workspace

app = typer.Typer(
    name="codeatlas",
    help="CodeAtlas: symbol index and class hierarchy for TypeScript workspaces.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

T = TypeVar("T")

WorkspaceOption = Annotated[
    Path,
    typer.Option("--path", "-p", help="Workspace root", file_okay=False),
]


def _error_exit(message: str, hint: str | None = None) -> NoReturn:
    """Print a styled error and exit."""
    console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
    raise typer.Exit(code=1)


def _run(path: Path, action: Callable[[Workspace], Awaitable[T]]) -> T:
    """Open the workspace, run an async action against it and flush the cache."""

    async def runner() -> T:
        workspace = await Workspace.open(path)
        try:
            return await action(workspace)
        finally:
            workspace.close()

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(code=130)
    except AtlasError as exc:
        _error_exit(str(exc))


@app.command()
def scan(
    path: WorkspaceOption = Path("."),
    pattern: Annotated[str, typer.Option("--pattern", help="Glob filter, e.g. 'src/**/*.ts'")] = "",
) -> None:
    """List workspace files and their classification."""

    async def action(workspace: Workspace):
        return await workspace.scanner.find(pattern)

    files = _run(path, action)

    table = Table(title="Workspace Files", border_style="cyan", header_style="bold cyan")
    table.add_column("Path", style="bold")
    table.add_column("Kind")
    table.add_column("Size", justify="right")
    for wf in files:
        table.add_row(wf.relative_path, wf.kind.value, str(wf.size))
    console.print(table)


@app.command()
def index(path: WorkspaceOption = Path(".")) -> None:
    """Index symbols for every source file in the workspace."""

    async def action(workspace: Workspace):
        count = await workspace.index()
        return count, workspace.symbols.symbol_count

    files, symbols = _run(path, action)
    console.print(f"[green]Indexed[/green] {files} files, {symbols} symbols")


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Case-insensitive text to look for")],
    kind: Annotated[SymbolKind | None, typer.Option("--kind", "-k", help="Restrict to a symbol kind")] = None,
    path: WorkspaceOption = Path("."),
) -> None:
    """Search symbol names and documentation."""

    async def action(workspace: Workspace):
        await workspace.index()
        return workspace.symbols.search(query, kind), workspace.root

    results, root = _run(path, action)
    if not results:
        console.print("[dim]No matching symbols.[/dim]")
        return

    table = Table(title=f"Symbols matching '{query}'", border_style="cyan", header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Kind")
    table.add_column("Location")
    table.add_column("Export")
    for symbol in results:
        location = Path(symbol.location.file_path)
        shown = location.relative_to(root) if location.is_relative_to(root) else location
        table.add_row(
            symbol.name,
            symbol.kind.value,
            f"{shown.as_posix()}:{symbol.location.line}:{symbol.location.column}",
            symbol.export_status.value,
        )
    console.print(table)


@app.command()
def hierarchy(
    name: Annotated[str, typer.Argument(help="Class or interface name")],
    path: WorkspaceOption = Path("."),
) -> None:
    """Show ancestors, descendants and implementations for a class or interface."""

    async def action(workspace: Workspace):
        await workspace.build_hierarchy()
        builder = workspace.hierarchy
        node = builder.get(name)
        if node is None:
            return None
        return (
            node,
            builder.inheritance_chain(name),
            builder.derived_classes_of(name),
            builder.implementations_of(name),
        )

    found = _run(path, action)
    if found is None:
        _error_exit(f"Unknown class or interface: {name}")
        return

    node, chain, derived, implementations = found
    kind = "interface" if node.is_interface else ("abstract class" if node.is_abstract else "class")
    lines = [f"[bold]{kind}[/bold] {node.name}", f"[dim]{node.file_path}[/dim]"]
    if chain.chain:
        lines.append(f"Extends: {' → '.join(chain.chain)} (depth {chain.depth})")
    if node.interfaces:
        lines.append(f"{'Extends' if node.is_interface else 'Implements'}: {', '.join(node.interfaces)}")
    if derived:
        lines.append(f"Derived: {', '.join(d.name for d in derived)}")
    if implementations:
        lines.append(f"Implemented by: {', '.join(c.name for c in implementations)}")
    lines.append(f"Methods: {', '.join(m.name for m in node.methods) or '-'}")
    console.print(Panel("\n".join(lines), title=f"[bold cyan]{node.name}[/bold cyan]", border_style="cyan"))


@app.command()
def overrides(
    class_name: Annotated[str, typer.Argument(help="Class declaring the method")],
    method: Annotated[str, typer.Argument(help="Method name")],
    path: WorkspaceOption = Path("."),
) -> None:
    """List overrides of a method across the class and its descendants."""

    async def action(workspace: Workspace):
        await workspace.build_hierarchy()
        return workspace.hierarchy.overrides_of(class_name, method)

    records = _run(path, action)
    if not records:
        console.print("[dim]No overrides found.[/dim]")
        return

    table = Table(title=f"Overrides of {class_name}.{method}", border_style="cyan", header_style="bold cyan")
    table.add_column("Class", style="bold")
    table.add_column("Overrides")
    table.add_column("Signature")
    for record in records:
        table.add_row(record.class_name, record.overridden_from, record.signature)
    console.print(table)


@app.command()
def stats(path: WorkspaceOption = Path(".")) -> None:
    """Show file, symbol and class counts for the workspace."""

    async def action(workspace: Workspace):
        await workspace.index()
        await workspace.build_hierarchy()
        return await workspace.stats(), workspace.root

    summary, root = _run(path, action)

    table = Table(title=f"CodeAtlas v{__version__}", border_style="cyan", header_style="bold cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Workspace", str(root))
    table.add_row("Files", str(summary.files.total))
    table.add_row("  Source", str(summary.files.source))
    table.add_row("  Test", str(summary.files.test))
    table.add_row("  Config", str(summary.files.config))
    table.add_row("  Documentation", str(summary.files.documentation))
    table.add_row("  Other", str(summary.files.other))
    table.add_row("Indexed files", str(summary.indexed_files))
    table.add_row("Symbols", str(summary.symbols))
    table.add_row("Classes", str(summary.classes))
    table.add_row("Interfaces", str(summary.interfaces))
    console.print(table)


@app.command(name="clear-cache")
def clear_cache(path: WorkspaceOption = Path(".")) -> None:
    """Delete every cached index entry for the workspace."""

    async def action(workspace: Workspace):
        workspace.clear_cache()

    _run(path, action)
    console.print("[green]Cache cleared.[/green]")
