"""Symbol extraction and search over TypeScript/JavaScript sources."""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, assert_never

from rich.console import Console

from codeatlas.exceptions import IndexerError, normalize_error
from codeatlas.indexer.cache import PersistenceCache
from codeatlas.indexer.parser import (
    ClassDecl,
    Declaration,
    EnumDecl,
    ExportStatus,
    FunctionDecl,
    InterfaceDecl,
    Member,
    MethodDecl,
    ModuleDecl,
    NamespaceDecl,
    Position,
    SourceParser,
    TypeAliasDecl,
    VariableDecl,
    is_supported,
)
from codeatlas.indexer.scanner import WorkspaceScanner

console = Console(stderr=True)


class SymbolKind(StrEnum):
    CLASS = "class"
    INTERFACE = "interface"
    FUNCTION = "function"
    METHOD = "method"
    PROPERTY = "property"
    VARIABLE = "variable"
    ENUM = "enum"
    TYPE_ALIAS = "type-alias"
    NAMESPACE = "namespace"
    MODULE = "module"


@dataclass(frozen=True, slots=True)
class SymbolLocation:
    file_path: str
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class Symbol:
    """A named declaration extracted from a source file.

    Attributes:
        name: Declared name.
        kind: Declaration kind.
        location: File and 1-indexed line/column of the name.
        documentation: Cleaned doc-comment text, empty if none.
        export_status: Export status; always ``none`` for members.
        parent_name: Enclosing class, interface or namespace.
        children: Methods and properties of a class or interface.
    """

    name: str
    kind: SymbolKind
    location: SymbolLocation
    documentation: str = ""
    export_status: ExportStatus = ExportStatus.NONE
    parent_name: str | None = None
    children: tuple[Symbol, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "location": {
                "file_path": self.location.file_path,
                "line": self.location.line,
                "column": self.location.column,
            },
            "documentation": self.documentation,
            "export_status": self.export_status.value,
            "parent_name": self.parent_name,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Symbol:
        """Rebuild a Symbol from :meth:`to_dict` output.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If kind or export status is unknown.
        """
        loc = data["location"]
        return cls(
            name=data["name"],
            kind=SymbolKind(data["kind"]),
            location=SymbolLocation(
                file_path=loc["file_path"], line=int(loc["line"]), column=int(loc["column"])
            ),
            documentation=data.get("documentation", ""),
            export_status=ExportStatus(data.get("export_status", ExportStatus.NONE)),
            parent_name=data.get("parent_name"),
            children=tuple(cls.from_dict(c) for c in data.get("children", [])),
        )


def content_hash(text: str) -> str:
    """Digest used to detect whether a file needs re-indexing."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class SymbolIndexer:
    """Builds and queries a per-file symbol forest.

    Usage::

        indexer = SymbolIndexer(scanner, cache)
        await indexer.index([Path("src/user.ts")])
        hits = indexer.search("user", kind=SymbolKind.CLASS)
    """

    CACHE_PREFIX = "symbols:"

    def __init__(
        self,
        scanner: WorkspaceScanner,
        cache: PersistenceCache,
        parser: SourceParser | None = None,
    ) -> None:
        self._scanner = scanner
        self._cache = cache
        self._parser = parser or SourceParser()
        self._by_file: dict[str, list[Symbol]] = {}

    @property
    def file_count(self) -> int:
        return len(self._by_file)

    @property
    def symbol_count(self) -> int:
        """Number of top-level symbols across all indexed files."""
        return sum(len(symbols) for symbols in self._by_file.values())

    async def index(self, paths: list[Path] | list[str]) -> int:
        """Index the given files, skipping unsupported extensions.

        Per-file failures are logged and skipped.

        Returns:
            Number of files indexed successfully.
        """
        targets = [self._key(p) for p in paths if is_supported(p)]
        results = await asyncio.gather(
            *(self._index_file(target) for target in targets), return_exceptions=True
        )

        indexed = 0
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                self._by_file.pop(target, None)
                console.print(f"[red]Error[/red]: {target}: {normalize_error(result)}")
            else:
                indexed += 1
        console.print(f"[green]Indexer[/green] indexed [bold]{indexed}[/bold] files")
        return indexed

    def search(self, query: str, kind: SymbolKind | None = None) -> list[Symbol]:
        """Case-insensitive substring search over names and documentation.

        A match on a member returns its enclosing top-level symbol.
        """
        needle = query.lower()

        def hit(symbol: Symbol) -> bool:
            if kind is not None and symbol.kind != kind:
                return False
            return needle in symbol.name.lower() or needle in symbol.documentation.lower()

        results: list[Symbol] = []
        for symbols in self._by_file.values():
            for symbol in symbols:
                if hit(symbol) or any(hit(child) for child in symbol.children):
                    results.append(symbol)
        return results

    async def symbols_of(self, path: Path | str) -> list[Symbol]:
        """Return a file's symbols, indexing it first if needed."""
        key = self._key(path)
        if key not in self._by_file:
            await self.index([key])
        return list(self._by_file.get(key, []))

    def clear(self) -> None:
        """Forget every indexed file; the persistence cache is left untouched."""
        self._by_file.clear()

    async def _index_file(self, path: str) -> None:
        try:
            text = await self._scanner.read(path)
        except Exception as exc:
            raise IndexerError(f"Cannot read {path}", cause_type=type(exc).__name__) from exc

        digest = content_hash(text)
        cache_key = f"{self.CACHE_PREFIX}{path}"
        if self._cache.is_unchanged(path, digest):
            cached = self._adopt(self._cache.load(cache_key), path, digest)
            if cached is not None:
                self._by_file[path] = cached
                return

        try:
            declarations = self._parser.parse(text, path)
        except Exception as exc:
            raise IndexerError(f"Cannot parse {path}", cause_type=type(exc).__name__) from exc

        symbols = _symbols_from(declarations, path, parent=None)
        self._cache.save(
            cache_key, {"path": path, "hash": digest, "symbols": [s.to_dict() for s in symbols]}
        )
        self._cache.update_hash(path, digest)
        self._by_file[path] = symbols

    @staticmethod
    def _adopt(entry: Any, path: str, digest: str) -> list[Symbol] | None:
        """Decode a cached entry if it was derived from the same file and content."""
        if not isinstance(entry, dict):
            return None
        if entry.get("path") != path or entry.get("hash") != digest:
            return None
        try:
            return [Symbol.from_dict(item) for item in entry["symbols"]]
        except (KeyError, TypeError, ValueError) as exc:
            console.print(
                f"[yellow]Warning[/yellow]: Ignoring corrupt symbol cache entry: "
                f"{normalize_error(exc)}"
            )
            return None

    def _key(self, path: Path | str) -> str:
        target = Path(path)
        if not target.is_absolute() and self._scanner.root is not None:
            target = self._scanner.root / target
        return str(target.resolve())


def _symbols_from(
    declarations: list[Declaration] | tuple[Declaration, ...], path: str, parent: str | None
) -> list[Symbol]:
    """Flatten declarations into top-level symbols; namespace bodies become siblings."""
    symbols: list[Symbol] = []
    for decl in declarations:
        match decl:
            case ClassDecl() | InterfaceDecl():
                kind = SymbolKind.CLASS if isinstance(decl, ClassDecl) else SymbolKind.INTERFACE
                symbols.append(
                    Symbol(
                        name=decl.name,
                        kind=kind,
                        location=_location(path, decl.position),
                        documentation=decl.doc,
                        export_status=decl.export,
                        parent_name=parent,
                        children=tuple(_member_symbol(m, path, decl.name) for m in decl.members),
                    )
                )
            case VariableDecl():
                symbols.extend(
                    Symbol(
                        name=name,
                        kind=SymbolKind.VARIABLE,
                        location=_location(path, position),
                        documentation=decl.doc,
                        export_status=decl.export,
                        parent_name=parent,
                    )
                    for name, position in decl.bindings
                )
            case NamespaceDecl() | ModuleDecl():
                kind = (
                    SymbolKind.NAMESPACE if isinstance(decl, NamespaceDecl) else SymbolKind.MODULE
                )
                symbols.append(
                    Symbol(
                        name=decl.name,
                        kind=kind,
                        location=_location(path, decl.position),
                        documentation=decl.doc,
                        export_status=decl.export,
                        parent_name=parent,
                    )
                )
                symbols.extend(_symbols_from(decl.body, path, parent=decl.name))
            case FunctionDecl() | EnumDecl() | TypeAliasDecl():
                symbols.append(
                    Symbol(
                        name=decl.name,
                        kind=_SIMPLE_KINDS[type(decl)],
                        location=_location(path, decl.position),
                        documentation=decl.doc,
                        export_status=decl.export,
                        parent_name=parent,
                    )
                )
            case _:
                assert_never(decl)
    return symbols


_SIMPLE_KINDS: dict[type, SymbolKind] = {
    FunctionDecl: SymbolKind.FUNCTION,
    EnumDecl: SymbolKind.ENUM,
    TypeAliasDecl: SymbolKind.TYPE_ALIAS,
}


def _member_symbol(member: Member, path: str, owner: str) -> Symbol:
    return Symbol(
        name=member.name,
        kind=SymbolKind.METHOD if isinstance(member, MethodDecl) else SymbolKind.PROPERTY,
        location=_location(path, member.position),
        documentation=member.doc,
        parent_name=owner,
    )


def _location(path: str, position: Position) -> SymbolLocation:
    return SymbolLocation(file_path=path, line=position.line, column=position.column)
