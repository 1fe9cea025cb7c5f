"""Two-tier (memory + disk) cache shared by the symbol and hierarchy indexers.

The cache lives in a directory bound to one workspace and holds:

- ``file-hashes.json``: a file path -> content hash map, written through a
  debounced flush so that indexing many files produces a single write.
- one ``<sanitized-key>.json`` file per saved key.

Every disk operation here is an optimisation. Failures are logged and the
cache silently degrades to memory-only behaviour or a cache miss.
"""

from __future__ import annotations

import json
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Protocol

from rich.console import Console

from codeatlas.exceptions import CacheError, normalize_error

console: Final[Console] = Console(stderr=True)

HASHES_FILE: Final[str] = "file-hashes.json"
_UNSAFE_KEY_CHARS: Final[re.Pattern[str]] = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class IOResult:
    """Outcome of a best-effort disk operation.

    Attributes:
        success: Whether the operation completed.
        value: Payload read from disk, if any.
        error: Description of the failure, if any.
    """

    success: bool
    value: Any = None
    error: str | None = None


class Timer(Protocol):
    """The subset of ``threading.Timer`` used by DebouncedFlush."""

    def start(self) -> None: ...

    def cancel(self) -> None: ...


class DebouncedFlush:
    """Coalesces bursts of triggers into one action after a quiet period.

    Each :meth:`trigger` cancels the pending timer and schedules a new one,
    so the delay restarts rather than accumulates. The timer factory and
    clock are injectable so tests can fire timers by hand.
    """

    def __init__(
        self,
        action: Callable[[], None],
        delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[[float, Callable[[], None]], Timer] | None = None,
    ) -> None:
        self._action = action
        self._delay = delay
        self._clock = clock
        self._timer_factory = timer_factory or self._daemon_timer
        self._lock = threading.Lock()
        self._timer: Timer | None = None
        self._deadline: float | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        """True while a flush is scheduled but has not run."""
        return self._deadline is not None

    @property
    def deadline(self) -> float | None:
        """Clock time at which the pending flush becomes due."""
        return self._deadline

    def trigger(self) -> None:
        """Schedule the action, restarting the quiet period."""
        with self._lock:
            self._deadline = self._clock() + self._delay
            self._schedule_locked(self._delay)

    def _schedule_locked(self, delay: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        generation = self._generation
        self._timer = self._timer_factory(delay, lambda: self._fire(generation))
        self._timer.start()

    def flush(self) -> None:
        """Run a pending action immediately."""
        with self._lock:
            if self._deadline is None:
                return
            self._cancel_locked()
        self._action()

    def cancel(self) -> None:
        """Drop a pending action without running it."""
        with self._lock:
            self._cancel_locked()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._deadline is None:
                return
            remaining = self._deadline - self._clock()
            if remaining > 0:
                self._schedule_locked(remaining)
                return
            self._timer = None
            self._deadline = None
        self._action()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._deadline = None

    @staticmethod
    def _daemon_timer(delay: float, fn: Callable[[], None]) -> Timer:
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        return timer


class PersistenceCache:
    """Per-workspace key/value store with a file-hash map.

    Usage::

        cache = PersistenceCache()
        cache.initialize(Path("/my/project"))
        if not cache.is_unchanged("src/a.ts", digest):
            cache.save("symbols:src/a.ts", payload)
            cache.update_hash("src/a.ts", digest)
    """

    def __init__(
        self,
        flush_delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[[float, Callable[[], None]], Timer] | None = None,
    ) -> None:
        """Create an uninitialised, memory-only cache.

        Args:
            flush_delay: Quiet period before the hash map is written to disk.
            clock: Monotonic clock used by the debounce policy.
            timer_factory: Factory for cancellable timers (``threading.Timer`` by default).
        """
        self._cache_dir: Path | None = None
        self._hashes: dict[str, str] = {}
        self._memory: dict[str, Any] = {}
        self._hashes_lock = threading.Lock()
        self._flusher = DebouncedFlush(
            self._write_hashes, delay=flush_delay, clock=clock, timer_factory=timer_factory
        )

    @property
    def cache_dir(self) -> Path | None:
        """Directory backing the disk tier, or None when memory-only."""
        return self._cache_dir

    @property
    def flush_pending(self) -> bool:
        """True while a hash-map write is scheduled."""
        return self._flusher.pending

    def initialize(self, workspace: Path | str, cache_dir: Path | str | None = None) -> None:
        """Bind the cache to a workspace and load any persisted hash map.

        Args:
            workspace: Workspace root.
            cache_dir: Explicit cache location. Defaults to ``<workspace>/.codeatlas/cache``.

        Raises:
            CacheError: If an explicitly requested cache_dir cannot be created.
        """
        explicit = cache_dir is not None
        target = (
            Path(cache_dir).expanduser()
            if cache_dir is not None
            else Path(workspace) / ".codeatlas" / "cache"
        )
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            if explicit:
                raise CacheError(f"Cannot create cache directory {target}: {exc}") from exc
            console.print(
                f"[yellow]Warning[/yellow]: Cache disabled, cannot create {target}: "
                f"{normalize_error(exc)}"
            )
            self._cache_dir = None
            return

        self._cache_dir = target
        loaded = self._read_json(target / HASHES_FILE)
        if loaded.success and isinstance(loaded.value, dict):
            with self._hashes_lock:
                self._hashes = {str(k): str(v) for k, v in loaded.value.items()}
            console.print(
                f"[green]Cache[/green] loaded [bold]{len(self._hashes)}[/bold] file hashes"
            )
        else:
            with self._hashes_lock:
                self._hashes = {}

    def is_unchanged(self, path: str, digest: str) -> bool:
        """Return True if the recorded hash for path equals digest."""
        with self._hashes_lock:
            return self._hashes.get(path) == digest

    def update_hash(self, path: str, digest: str) -> None:
        """Record a new hash and schedule a debounced write of the hash map."""
        with self._hashes_lock:
            self._hashes[path] = digest
        if self._cache_dir is not None:
            self._flusher.trigger()

    def flush(self) -> None:
        """Write a pending hash map immediately."""
        self._flusher.flush()

    def close(self) -> None:
        """Flush pending writes; the cache remains usable afterwards."""
        self.flush()

    def save(self, key: str, value: Any) -> None:
        """Store a value in memory and, best-effort, on disk."""
        self._memory[key] = value
        if self._cache_dir is None:
            return
        result = self._write_json(self._key_path(key), value)
        if not result.success:
            console.print(f"[red]Error[/red]: Failed to save cache key {key}: {result.error}")

    def load(self, key: str) -> Any | None:
        """Return a stored value, falling back to disk on a memory miss.

        Returns:
            The value, or None on a miss or an unreadable entry.
        """
        if key in self._memory:
            return self._memory[key]
        if self._cache_dir is None:
            return None

        path = self._key_path(key)
        if not path.is_file():
            return None
        result = self._read_json(path)
        if not result.success:
            console.print(f"[red]Error[/red]: Failed to load cache key {key}: {result.error}")
            return None
        self._memory[key] = result.value
        return result.value

    def clear(self) -> None:
        """Wipe both tiers, tolerating missing directories and stuck files."""
        self._flusher.cancel()
        with self._hashes_lock:
            self._hashes.clear()
        self._memory.clear()

        if self._cache_dir is None or not self._cache_dir.is_dir():
            return

        removed = 0
        try:
            entries = list(self._cache_dir.iterdir())
        except OSError as exc:
            console.print(
                f"[red]Error[/red]: Failed to list cache directory: {normalize_error(exc)}"
            )
            return
        for entry in entries:
            try:
                entry.unlink()
                removed += 1
            except OSError as exc:
                console.print(
                    f"[yellow]Warning[/yellow]: Could not remove {entry.name}: "
                    f"{normalize_error(exc)}"
                )
        console.print(f"[green]Cache[/green] removed [bold]{removed}[/bold] cache files")

    def _key_path(self, key: str) -> Path:
        assert self._cache_dir is not None
        return self._cache_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def _write_hashes(self) -> None:
        if self._cache_dir is None:
            return
        with self._hashes_lock:
            snapshot = dict(self._hashes)
        result = self._write_json(self._cache_dir / HASHES_FILE, snapshot)
        if not result.success:
            console.print(f"[red]Error[/red]: Failed to save file hashes: {result.error}")

    @staticmethod
    def _write_json(path: Path, data: Any) -> IOResult:
        try:
            path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            return IOResult(success=False, error=str(normalize_error(exc)))
        return IOResult(success=True)

    @staticmethod
    def _read_json(path: Path) -> IOResult:
        try:
            return IOResult(success=True, value=json.loads(path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            return IOResult(success=False, error=str(normalize_error(exc)))
