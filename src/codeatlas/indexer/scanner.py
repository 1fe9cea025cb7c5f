"""File discovery engine that walks a workspace tree respecting ignore patterns."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import ClassVar

from rich.console import Console

from codeatlas.exceptions import ScanError, normalize_error
from codeatlas.indexer.patterns import DEFAULT_EXCLUDES, PatternMatcher

console = Console(stderr=True)


class FileKind(StrEnum):
    """Classification of a workspace file."""

    SOURCE = "source"
    TEST = "test"
    CONFIG = "config"
    DOCUMENTATION = "documentation"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class WorkspaceFile:
    """Metadata for a single discovered file.

    Attributes:
        path: Absolute path to the file.
        relative_path: Path relative to the workspace root, with ``/`` separators.
        kind: Classification of the file.
        size: File size in bytes.
        modified: Last-modified timestamp (UTC).
    """

    path: Path
    relative_path: str
    kind: FileKind
    size: int
    modified: datetime


@dataclass(frozen=True, slots=True)
class WorkspaceStats:
    """File counts per classification for the most recent scan."""

    total: int
    source: int
    test: int
    config: int
    documentation: int
    other: int


class WorkspaceScanner:
    """Discovers and classifies files in a workspace.

    Usage::

        scanner = WorkspaceScanner()
        files = await scanner.scan(Path("/my/project"))
        ts_files = await scanner.find("src/**/*.ts")
    """

    SOURCE_EXTENSIONS: ClassVar[frozenset[str]] = frozenset(
        {
            ".ts", ".tsx", ".js", ".jsx", ".mts", ".cts", ".mjs", ".cjs",
            ".py", ".java", ".cpp", ".c", ".h", ".go", ".rs", ".php", ".rb",
        }
    )
    CONFIG_EXTENSIONS: ClassVar[frozenset[str]] = frozenset(
        {".json", ".yml", ".yaml", ".toml", ".ini", ".config", ".conf"}
    )
    CONFIG_NAMES: ClassVar[frozenset[str]] = frozenset(
        {".gitignore", ".env", ".editorconfig", ".npmrc", "dockerfile"}
    )
    CONFIG_PREFIXES: ClassVar[tuple[str, ...]] = ("tsconfig.", "package.", ".eslintrc", ".prettierrc")
    DOC_EXTENSIONS: ClassVar[frozenset[str]] = frozenset(
        {".md", ".markdown", ".txt", ".rst", ".doc", ".docx"}
    )
    TEST_DIRS: ClassVar[frozenset[str]] = frozenset({"test", "tests", "__tests__"})
    TEST_INFIXES: ClassVar[tuple[str, ...]] = (".test.", ".spec.")

    def __init__(
        self,
        max_depth: int = 20,
        extra_excludes: list[str] | None = None,
        ignore_file: str = ".gitignore",
        use_glob: bool = True,
    ) -> None:
        """Initialize the scanner.

        Args:
            max_depth: Deepest directory level traversed; deeper branches are dropped.
            extra_excludes: Patterns appended to the built-in exclusion set.
            ignore_file: Name of the root-level ignore file to honour.
            use_glob: If False, pattern matching uses the simplified fallback.
        """
        self._max_depth = max_depth
        self._extra_excludes = list(extra_excludes or [])
        self._ignore_file = ignore_file
        self._use_glob = use_glob
        self._root: Path | None = None
        self._files: list[WorkspaceFile] = []
        self._scanned = False

    @property
    def root(self) -> Path | None:
        """Root of the most recent scan."""
        return self._root

    async def scan(self, root: Path | str) -> list[WorkspaceFile]:
        """Walk the workspace tree and return discovered files.

        Args:
            root: Workspace root directory.

        Returns:
            WorkspaceFile instances sorted by relative path.

        Raises:
            ScanError: If root is not a directory.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.is_dir():
            raise ScanError(f"Workspace path is not a directory: {root_path}")

        self._root = root_path
        patterns = [*DEFAULT_EXCLUDES, *self._extra_excludes, *self._load_ignore_file(root_path)]
        matcher = PatternMatcher(patterns, use_glob=self._use_glob)

        files: list[WorkspaceFile] = []
        self._walk(root_path, root_path, 0, matcher, files)
        files.sort(key=lambda wf: wf.relative_path)

        self._files = files
        self._scanned = True
        console.print(f"[green]Scanner[/green] found [bold]{len(files)}[/bold] files")
        return list(files)

    async def find(self, pattern: str) -> list[WorkspaceFile]:
        """Return files from the latest scan whose relative path matches a glob.

        Scans first if the workspace has a root but has not been scanned yet.
        """
        if not self._scanned and self._root is not None:
            await self.scan(self._root)

        if not pattern or pattern in ("*", "**", "**/*"):
            return list(self._files)

        matcher = PatternMatcher([pattern], use_glob=self._use_glob)
        return [wf for wf in self._files if matcher.matches(wf.relative_path)]

    async def read(self, path: Path | str) -> str:
        """Read a workspace file as text.

        Args:
            path: Absolute path, or path relative to the workspace root.

        Raises:
            ScanError: If the file cannot be read.
        """
        target = Path(path)
        if not target.is_absolute() and self._root is not None:
            target = self._root / target
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ScanError(f"Failed to read file: {path}") from exc

    async def stats(self) -> WorkspaceStats:
        """Count files per classification, scanning first if needed."""
        if not self._scanned and self._root is not None:
            await self.scan(self._root)

        counts = {kind: 0 for kind in FileKind}
        for wf in self._files:
            counts[wf.kind] += 1
        return WorkspaceStats(
            total=len(self._files),
            source=counts[FileKind.SOURCE],
            test=counts[FileKind.TEST],
            config=counts[FileKind.CONFIG],
            documentation=counts[FileKind.DOCUMENTATION],
            other=counts[FileKind.OTHER],
        )

    def _walk(
        self,
        root: Path,
        current: Path,
        depth: int,
        matcher: PatternMatcher,
        files: list[WorkspaceFile],
    ) -> None:
        """Depth-first traversal collecting non-excluded regular files."""
        if depth > self._max_depth:
            return

        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            console.print(
                f"[yellow]Warning[/yellow]: Cannot read directory {current}: {normalize_error(exc)}"
            )
            return

        for entry in entries:
            full = Path(entry.path)
            rel = full.relative_to(root).as_posix()
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError:
                continue

            if matcher.matches(rel, is_dir=is_dir):
                continue

            if is_dir:
                self._walk(root, full, depth + 1, matcher, files)
            elif is_file:
                wf = self._make_file(full, rel)
                if wf is not None:
                    files.append(wf)

    def _make_file(self, full: Path, rel: str) -> WorkspaceFile | None:
        """Stat a file and build its WorkspaceFile record."""
        try:
            st = full.stat()
        except OSError as exc:
            console.print(f"[yellow]Warning[/yellow]: Skipping {rel}: {normalize_error(exc)}")
            return None
        return WorkspaceFile(
            path=full,
            relative_path=rel,
            kind=self.classify(rel),
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def _load_ignore_file(self, root: Path) -> list[str]:
        """Load ignore-file patterns, returning an empty list if missing."""
        ignore_path = root / self._ignore_file
        if not ignore_path.is_file():
            return []

        try:
            text = ignore_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            console.print(
                f"[yellow]Warning[/yellow]: Cannot read {ignore_path}: {normalize_error(exc)}"
            )
            return []

        lines: list[str] = []
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if line and not line.startswith("#"):
                lines.append(line)
        return lines

    @classmethod
    def classify(cls, relative_path: str) -> FileKind:
        """Assign exactly one FileKind to a workspace-relative path."""
        normalized = relative_path.replace("\\", "/")
        parts = normalized.split("/")
        basename = parts[-1].lower()
        ext = os.path.splitext(basename)[1]

        if cls.TEST_DIRS.intersection(parts[:-1]) or any(
            infix in basename for infix in cls.TEST_INFIXES
        ):
            return FileKind.TEST
        if ext in cls.SOURCE_EXTENSIONS:
            return FileKind.SOURCE
        if (
            ext in cls.CONFIG_EXTENSIONS
            or basename in cls.CONFIG_NAMES
            or basename.startswith(cls.CONFIG_PREFIXES)
        ):
            return FileKind.CONFIG
        if ext in cls.DOC_EXTENSIONS:
            return FileKind.DOCUMENTATION
        return FileKind.OTHER
