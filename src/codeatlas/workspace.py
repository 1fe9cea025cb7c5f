"""Workspace bootstrap: one scanner, cache, symbol indexer and hierarchy builder per root."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from codeatlas.config import AtlasConfig, load_config
from codeatlas.indexer.cache import PersistenceCache
from codeatlas.indexer.hierarchy import ClassHierarchy, ClassHierarchyBuilder
from codeatlas.indexer.parser import SourceParser, is_supported
from codeatlas.indexer.scanner import FileKind, WorkspaceScanner, WorkspaceStats
from codeatlas.indexer.symbols import SymbolIndexer

console = Console(stderr=True)


@dataclass(frozen=True, slots=True)
class WorkspaceSummary:
    """Workspace-level statistics.

    Attributes:
        files: File counts per classification.
        indexed_files: Files currently held by the symbol indexer.
        symbols: Top-level symbols across indexed files.
        classes: Classes in the current hierarchy.
        interfaces: Interfaces in the current hierarchy.
    """

    files: WorkspaceStats
    indexed_files: int
    symbols: int
    classes: int
    interfaces: int


class Workspace:
    """Wires the indexing components for a single workspace root.

    Usage::

        workspace = await Workspace.open(Path("/my/project"))
        await workspace.index()
        await workspace.build_hierarchy()
        workspace.symbols.search("user")
        workspace.close()
    """

    def __init__(self, config: AtlasConfig) -> None:
        self.config = config
        self.scanner = WorkspaceScanner(
            max_depth=config.max_depth,
            extra_excludes=config.exclude,
            ignore_file=config.ignore_file,
        )
        self.cache = PersistenceCache(flush_delay=config.flush_delay)
        parser = SourceParser()
        self.symbols = SymbolIndexer(self.scanner, self.cache, parser)
        self.hierarchy = ClassHierarchyBuilder(self.scanner, self.cache, parser)

    @property
    def root(self) -> Path:
        return self.config.workspace_dir

    @classmethod
    async def open(cls, root: Path | str, config: AtlasConfig | None = None) -> Workspace:
        """Load configuration, bind the cache and run an initial scan.

        Raises:
            ConfigError: If configuration values are invalid.
            CacheError: If an explicitly configured cache directory is unusable.
            ScanError: If root is not a directory.
        """
        resolved = config or load_config(Path(root).expanduser())
        workspace = cls(resolved)
        await workspace.scanner.scan(resolved.workspace_dir)
        workspace.cache.initialize(resolved.workspace_dir, resolved.cache_dir)
        return workspace

    async def source_files(self) -> list[Path]:
        """Source files of the latest scan that the parser understands."""
        files = await self.scanner.find("**/*")
        return [wf.path for wf in files if wf.kind is FileKind.SOURCE and is_supported(wf.path)]

    async def index(self) -> int:
        """Index symbols for every supported source file."""
        return await self.symbols.index(await self.source_files())

    async def build_hierarchy(self) -> ClassHierarchy:
        return await self.hierarchy.build(self.root)

    async def refresh(self, paths: list[Path] | list[str]) -> None:
        """Re-index the named files in both the symbol index and the hierarchy."""
        await self.symbols.index(list(paths))
        await self.hierarchy.refresh(list(paths))

    async def stats(self) -> WorkspaceSummary:
        files = await self.scanner.stats()
        hierarchy = self.hierarchy.hierarchy
        return WorkspaceSummary(
            files=files,
            indexed_files=self.symbols.file_count,
            symbols=self.symbols.symbol_count,
            classes=len(hierarchy.classes),
            interfaces=len(hierarchy.interfaces),
        )

    def clear_cache(self) -> None:
        """Wipe the persistence cache and the in-memory symbol index."""
        self.cache.clear()
        self.symbols.clear()
        console.print("[green]Workspace[/green] cache cleared")

    def close(self) -> None:
        """Flush pending cache writes."""
        self.cache.close()
