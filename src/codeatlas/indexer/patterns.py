"""Gitignore-style exclusion matching for workspace traversal."""

from __future__ import annotations

from typing import Final

import pathspec
from rich.console import Console

console = Console(stderr=True)

DEFAULT_EXCLUDES: Final[tuple[str, ...]] = (
    # Version control
    "**/.git/**",
    "**/.hg/**",
    "**/.svn/**",
    # Dependencies and build output
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/coverage/**",
    "**/.next/**",
    "**/__pycache__/**",
    # Editors and our own state
    "**/.vscode/**",
    "**/.idea/**",
    "**/.codeatlas/**",
    # Common binary and non-text files
    "**/*.exe",
    "**/*.dll",
    "**/*.so",
    "**/*.dylib",
    "**/*.jar",
    "**/*.zip",
    "**/*.tar",
    "**/*.gz",
    "**/*.png",
    "**/*.jpg",
    "**/*.jpeg",
    "**/*.gif",
    "**/*.bmp",
    "**/*.ico",
    "**/*.svg",
    "**/*.ttf",
    "**/*.woff",
    "**/*.woff2",
    "**/*.eot",
    "**/*.mp3",
    "**/*.mp4",
    "**/*.mov",
    "**/*.avi",
    "**/*.pdf",
)


def simple_match(path: str, pattern: str) -> bool:
    """Degraded wildcard matching used when no glob matcher is available.

    Supports exact matches, a single leading or trailing ``*``, and
    patterns split on ``**`` into a prefix and a suffix.
    """
    if pattern == path:
        return True

    if "**" in pattern:
        prefix, _, suffix = pattern.partition("**")
        if prefix and not path.startswith(prefix):
            return False
        suffix = suffix.lstrip("/")
        if not suffix:
            return True
        if suffix.startswith("*") and "*" not in suffix[1:]:
            return path.endswith(suffix[1:])
        core = suffix.rstrip("*").strip("/")
        return f"/{core}/" in f"/{path}/" or path.endswith(f"/{core}") or path == core

    if pattern.startswith("*") and "*" not in pattern[1:]:
        return path.endswith(pattern[1:])

    if pattern.endswith("*") and "*" not in pattern[:-1]:
        return path.startswith(pattern[:-1])

    return False


class PatternMatcher:
    """Tests workspace-relative paths against a list of exclusion patterns.

    Patterns use gitignore semantics (``*``, ``**``, trailing ``/`` for
    directories) through ``pathspec``. With ``use_glob=False``, or for any
    single pattern pathspec refuses to compile, matching degrades to
    :func:`simple_match`.

    Usage::

        matcher = PatternMatcher(["**/node_modules/**", "*.log"])
        matcher.matches("src/node_modules", is_dir=True)  # True
    """

    def __init__(self, patterns: list[str] | tuple[str, ...], use_glob: bool = True) -> None:
        """Compile the pattern list.

        Args:
            patterns: Exclusion patterns, in order.
            use_glob: If False, every pattern uses the simplified matcher.
        """
        self._specs: list[pathspec.GitIgnoreSpec] = []
        self._simple: list[str] = []

        for raw in patterns:
            pattern = raw.strip()
            if not pattern or pattern.startswith("#"):
                continue
            if not use_glob:
                self._simple.append(self._directory_pattern(pattern))
                continue
            try:
                self._specs.append(pathspec.GitIgnoreSpec.from_lines([pattern]))
            except ValueError as exc:
                console.print(
                    f"[yellow]Warning[/yellow]: Pattern {pattern!r} not understood ({exc}); "
                    "using simple matching"
                )
                self._simple.append(self._directory_pattern(pattern))

    @property
    def degraded(self) -> bool:
        """True when at least one pattern is matched with the simple fallback."""
        return bool(self._simple)

    def __len__(self) -> int:
        return len(self._specs) + len(self._simple)

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """Return True if path, or one of its directory variants, matches a pattern.

        Args:
            path: Path relative to the workspace root (any separator style).
            is_dir: Whether path names a directory.
        """
        normalized = path.replace("\\", "/")
        candidates = [normalized]
        if is_dir:
            if not normalized.endswith("/"):
                candidates.append(f"{normalized}/")
            candidates.append(f"{normalized.rstrip('/')}/**")

        for candidate in candidates:
            if any(spec.match_file(candidate) for spec in self._specs):
                return True
            if any(simple_match(candidate, pattern) for pattern in self._simple):
                return True
        return False

    @staticmethod
    def _directory_pattern(pattern: str) -> str:
        """Expand a directory-only pattern so it also covers its contents."""
        if pattern.endswith("/") and not pattern.endswith("*/"):
            return f"{pattern}**"
        return pattern
