"""Workspace indexer: file discovery, caching, parsing, symbols and class hierarchy."""

from __future__ import annotations

from codeatlas.indexer.cache import DebouncedFlush, PersistenceCache
from codeatlas.indexer.hierarchy import (
    ClassHierarchy,
    ClassHierarchyBuilder,
    ClassNode,
    InheritanceChain,
    MethodInfo,
    MethodOverride,
)
from codeatlas.indexer.parser import ExportStatus, SourceParser
from codeatlas.indexer.patterns import PatternMatcher
from codeatlas.indexer.scanner import FileKind, WorkspaceFile, WorkspaceScanner, WorkspaceStats
from codeatlas.indexer.symbols import Symbol, SymbolIndexer, SymbolKind

__all__ = [
    "ClassHierarchy",
    "ClassHierarchyBuilder",
    "ClassNode",
    "DebouncedFlush",
    "ExportStatus",
    "FileKind",
    "InheritanceChain",
    "MethodInfo",
    "MethodOverride",
    "PatternMatcher",
    "PersistenceCache",
    "SourceParser",
    "Symbol",
    "SymbolIndexer",
    "SymbolKind",
    "WorkspaceFile",
    "WorkspaceScanner",
    "WorkspaceStats",
]
