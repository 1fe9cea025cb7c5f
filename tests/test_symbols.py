"""Tests for the symbol indexer."""

from __future__ import annotations

import typing
from pathlib import Path

import pytest

from codeatlas.indexer.cache import PersistenceCache
from codeatlas.indexer.parser import (
    ClassDecl,
    Declaration,
    EnumDecl,
    ExportStatus,
    FunctionDecl,
    InterfaceDecl,
    ModuleDecl,
    NamespaceDecl,
    Position,
    TypeAliasDecl,
    VariableDecl,
)
from codeatlas.indexer.scanner import WorkspaceScanner
from codeatlas.indexer.symbols import (
    Symbol,
    SymbolIndexer,
    SymbolKind,
    _symbols_from,
    content_hash,
)

from conftest import SERVICES_TS, CountingParser, write_files


async def _indexer(root: Path, cache: PersistenceCache | None = None, parser=None) -> SymbolIndexer:  # type: ignore[no-untyped-def]
    scanner = WorkspaceScanner()
    await scanner.scan(root)
    if cache is None:
        cache = PersistenceCache()
        cache.initialize(root)
    return SymbolIndexer(scanner, cache, parser)


class TestExtraction:
    @pytest.mark.asyncio
    async def test_classes_with_members(self, sample_workspace: Path) -> None:
        indexer = await _indexer(sample_workspace)
        symbols = await indexer.symbols_of("src/services.ts")

        assert [s.name for s in symbols] == ["UserService", "ProductService"]
        user = symbols[0]
        assert user.kind is SymbolKind.CLASS
        assert user.documentation == "Handles user ops"
        assert user.export_status is ExportStatus.EXPORTED
        assert user.location.line == 2
        assert user.location.column == 14
        assert user.location.file_path == str(sample_workspace.resolve() / "src" / "services.ts")

        (find,) = user.children
        assert find.kind is SymbolKind.METHOD
        assert find.parent_name == "UserService"
        assert find.documentation == "Look up a user by id"
        assert find.export_status is ExportStatus.NONE

    @pytest.mark.asyncio
    async def test_declaration_groups_and_namespaces(self, tmp_path: Path) -> None:
        write_files(
            tmp_path,
            {
                "misc.ts": (
                    "/** Limits */\n"
                    "export const MAX = 10, MIN = 1;\n"
                    "export default class App {}\n"
                    "namespace Utils {\n"
                    "  export function format(x: string): string { return x; }\n"
                    "}\n"
                    "export type Id = string;\n"
                )
            },
        )
        indexer = await _indexer(tmp_path)
        symbols = {s.name: s for s in await indexer.symbols_of("misc.ts")}

        assert symbols["MAX"].documentation == symbols["MIN"].documentation == "Limits"
        assert symbols["MAX"].export_status is ExportStatus.EXPORTED
        assert symbols["MIN"].kind is SymbolKind.VARIABLE
        assert symbols["App"].export_status is ExportStatus.DEFAULT
        assert symbols["Utils"].kind is SymbolKind.NAMESPACE
        assert symbols["format"].parent_name == "Utils"
        assert symbols["format"].kind is SymbolKind.FUNCTION
        assert symbols["Id"].kind is SymbolKind.TYPE_ALIAS

    def test_every_declaration_variant_produces_symbols(self) -> None:
        pos = Position(1, 1)
        samples: dict[type, Declaration] = {
            ClassDecl: ClassDecl("C", pos),
            InterfaceDecl: InterfaceDecl("I", pos),
            FunctionDecl: FunctionDecl("f", pos),
            VariableDecl: VariableDecl((("v", pos),)),
            EnumDecl: EnumDecl("E", pos),
            TypeAliasDecl: TypeAliasDecl("T", pos),
            NamespaceDecl: NamespaceDecl("N", pos),
            ModuleDecl: ModuleDecl("M", pos),
        }
        assert set(samples) == set(typing.get_args(Declaration))

        symbols = _symbols_from(list(samples.values()), "x.ts", parent=None)
        assert [s.kind for s in symbols] == [
            SymbolKind.CLASS,
            SymbolKind.INTERFACE,
            SymbolKind.FUNCTION,
            SymbolKind.VARIABLE,
            SymbolKind.ENUM,
            SymbolKind.TYPE_ALIAS,
            SymbolKind.NAMESPACE,
            SymbolKind.MODULE,
        ]

    def test_symbol_dict_round_trip(self) -> None:
        data = {
            "name": "A",
            "kind": "class",
            "location": {"file_path": "a.ts", "line": 1, "column": 7},
            "documentation": "",
            "export_status": "default",
            "parent_name": None,
            "children": [
                {
                    "name": "m",
                    "kind": "method",
                    "location": {"file_path": "a.ts", "line": 2, "column": 3},
                    "parent_name": "A",
                }
            ],
        }
        symbol = Symbol.from_dict(data)
        assert symbol.export_status is ExportStatus.DEFAULT
        assert symbol.children[0].kind is SymbolKind.METHOD
        assert Symbol.from_dict(symbol.to_dict()) == symbol


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_names_and_docs(self, tmp_path: Path) -> None:
        write_files(tmp_path, {"services.ts": SERVICES_TS})
        indexer = await _indexer(tmp_path)
        await indexer.index(["services.ts"])

        assert [s.name for s in indexer.search("user")] == ["UserService"]
        assert {s.name for s in indexer.search("SERVICE")} == {"UserService", "ProductService"}
        assert indexer.search("service", kind=SymbolKind.FUNCTION) == []
        assert len(indexer.search("service", kind=SymbolKind.CLASS)) == 2

    @pytest.mark.asyncio
    async def test_member_match_returns_enclosing_symbol(self, tmp_path: Path) -> None:
        write_files(tmp_path, {"services.ts": SERVICES_TS})
        indexer = await _indexer(tmp_path)
        await indexer.index(["services.ts"])

        hits = indexer.search("look up", kind=SymbolKind.METHOD)
        assert [s.name for s in hits] == ["UserService"]

    @pytest.mark.asyncio
    async def test_clear(self, tmp_path: Path) -> None:
        write_files(tmp_path, {"services.ts": SERVICES_TS})
        indexer = await _indexer(tmp_path)
        await indexer.index(["services.ts"])
        indexer.clear()
        assert indexer.search("") == []
        assert indexer.file_count == 0


class TestCaching:
    @pytest.mark.asyncio
    async def test_unchanged_file_is_not_reparsed(
        self, sample_workspace: Path, cache: PersistenceCache
    ) -> None:
        parser = CountingParser()
        indexer = await _indexer(sample_workspace, cache, parser)

        first = await indexer.symbols_of("src/services.ts")
        indexer.clear()
        second = await indexer.symbols_of("src/services.ts")

        assert len(parser.parsed) == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_cache_survives_new_instances(self, sample_workspace: Path) -> None:
        cache = PersistenceCache()
        cache.initialize(sample_workspace)
        first = await (await _indexer(sample_workspace, cache)).symbols_of("src/animals.ts")
        cache.close()

        reopened = PersistenceCache()
        reopened.initialize(sample_workspace)
        parser = CountingParser()
        second = await (await _indexer(sample_workspace, reopened, parser)).symbols_of(
            "src/animals.ts"
        )

        assert parser.parsed == []
        assert first == second

    @pytest.mark.asyncio
    async def test_changed_file_is_reparsed(
        self, sample_workspace: Path, cache: PersistenceCache
    ) -> None:
        parser = CountingParser()
        indexer = await _indexer(sample_workspace, cache, parser)
        await indexer.index(["src/services.ts"])

        (sample_workspace / "src" / "services.ts").write_text(
            "export class OrderService {}\n", encoding="utf-8"
        )
        await indexer.index(["src/services.ts"])

        assert len(parser.parsed) == 2
        assert [s.name for s in indexer.search("service")] == ["OrderService"]

    @pytest.mark.asyncio
    async def test_entry_from_other_content_is_not_adopted(
        self, sample_workspace: Path, cache: PersistenceCache
    ) -> None:
        path = str(sample_workspace.resolve() / "src" / "services.ts")
        cache.save(f"symbols:{path}", {"hash": "stale", "symbols": []})
        cache.update_hash(path, content_hash(SERVICES_TS))
        indexer = await _indexer(sample_workspace, cache)

        symbols = await indexer.symbols_of(path)
        assert [s.name for s in symbols] == ["UserService", "ProductService"]

    @pytest.mark.asyncio
    async def test_entries_sharing_a_cache_file_stay_apart(self, tmp_path: Path) -> None:
        source = "export class Twin {}\n"
        write_files(tmp_path, {"a.b.ts": source, "a_b.ts": source})
        cache = PersistenceCache()
        cache.initialize(tmp_path)
        await (await _indexer(tmp_path, cache)).index(["a.b.ts", "a_b.ts"])
        cache.close()

        reopened = PersistenceCache()
        reopened.initialize(tmp_path)
        indexer = await _indexer(tmp_path, reopened)
        for name in ("a.b.ts", "a_b.ts"):
            symbols = await indexer.symbols_of(name)
            assert [s.location.file_path for s in symbols] == [str(tmp_path.resolve() / name)]


class TestFailures:
    @pytest.mark.asyncio
    async def test_unsupported_and_missing_files_are_skipped(self, sample_workspace: Path) -> None:
        indexer = await _indexer(sample_workspace)
        count = await indexer.index(["README.md", "src/missing.ts", "src/services.ts"])

        assert count == 1
        assert indexer.file_count == 1

    @pytest.mark.asyncio
    async def test_parse_failure_does_not_abort_batch(self, sample_workspace: Path) -> None:
        class FailingParser(CountingParser):
            def parse(self, source: str, path: Path | str) -> list[Declaration]:
                if str(path).endswith("animals.ts"):
                    raise RuntimeError("boom")
                return super().parse(source, path)

        indexer = await _indexer(sample_workspace, parser=FailingParser())
        count = await indexer.index(["src/animals.ts", "src/contracts.ts"])

        assert count == 1
        assert await indexer.symbols_of("src/animals.ts") == []
        assert {s.name for s in indexer.search("")} == {"Named", "Pet"}

    @pytest.mark.asyncio
    async def test_unreadable_file_drops_previous_symbols(self, sample_workspace: Path) -> None:
        indexer = await _indexer(sample_workspace)
        await indexer.index(["src/services.ts", "src/contracts.ts"])

        (sample_workspace / "src" / "services.ts").unlink()
        count = await indexer.index(["src/services.ts"])

        assert count == 0
        assert indexer.search("UserService") == []
        assert indexer.file_count == 1
