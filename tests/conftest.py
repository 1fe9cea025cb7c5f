"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import pytest_asyncio

from codeatlas.indexer.cache import PersistenceCache
from codeatlas.indexer.parser import Declaration, SourceParser
from codeatlas.indexer.scanner import WorkspaceScanner

ANIMALS_TS = """\
import { Named, Pet } from "./contracts";

/**
 * Base class for every animal.
 */
export abstract class Animal implements Named {
  name: string = "";

  abstract speak(volume: number): string;

  move(distance?: number): void {}
}

export class Dog extends Animal implements Pet<Dog> {
  speak(volume: number): string {
    return "woof";
  }

  fetch(): void {}
}

export class Puppy extends Dog {
  speak(volume: number): string {
    return "yip";
  }
}
"""

CONTRACTS_TS = """\
export interface Named {
  name: string;
}

export interface Pet<T> extends Named {
  owner?: string;
  play(partner: T): void;
}
"""

SERVICES_TS = """\
/** Handles user ops */
export class UserService {
  /** Look up a user by id */
  find(id: string): string | undefined {
    return undefined;
  }
}

/** Handles product ops */
export class ProductService {}
"""


class ManualTimer:
    """Timer stand-in that only fires when a test calls it."""

    def __init__(self, delay: float, fn: Callable[[], None]) -> None:
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class TimerRecorder:
    """Timer factory that records every timer it creates."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, delay: float, fn: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, fn)
        self.timers.append(timer)
        return timer

    @property
    def latest(self) -> ManualTimer:
        return self.timers[-1]


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingParser(SourceParser):
    """SourceParser that records which files it parsed."""

    def __init__(self) -> None:
        super().__init__()
        self.parsed: list[str] = []

    def parse(self, source: str, path: Path | str) -> list[Declaration]:
        self.parsed.append(str(path))
        return super().parse(source, path)


def write_files(root: Path, files: dict[str, str]) -> None:
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")


@pytest.fixture
def sample_workspace(tmp_path: Path) -> Path:
    """A small TypeScript project with a few non-source files and excluded dirs."""
    root = tmp_path / "project"
    write_files(
        root,
        {
            "src/animals.ts": ANIMALS_TS,
            "src/contracts.ts": CONTRACTS_TS,
            "src/services.ts": SERVICES_TS,
            "src/types.d.ts": "declare class Hidden {}\n",
            "src/__tests__/dog.test.ts": "class DogFixture extends Dog {}\n",
            "node_modules/lib/index.js": "module.exports = {};\n",
            "generated/out.ts": "export class Generated {}\n",
            "README.md": "# Project\n",
            "package.json": "{}\n",
            ".gitignore": "# build output\ngenerated/\n*.log\n",
            "debug.log": "noise\n",
        },
    )
    (root / "logo.png").write_bytes(b"\x89PNG")
    return root


@pytest.fixture
def timers() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(sample_workspace: Path, timers: TimerRecorder, clock: FakeClock) -> PersistenceCache:
    """A disk-backed cache bound to sample_workspace, driven by manual timers."""
    c = PersistenceCache(flush_delay=1.0, clock=clock, timer_factory=timers)
    c.initialize(sample_workspace)
    return c


@pytest_asyncio.fixture
async def scanner(sample_workspace: Path) -> WorkspaceScanner:
    s = WorkspaceScanner()
    await s.scan(sample_workspace)
    return s


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the global config at an empty location and drop CODEATLAS_* overrides."""
    global_path = tmp_path / "global-config" / "config.toml"
    monkeypatch.setattr("codeatlas.config._GLOBAL_CONFIG_PATH", global_path)
    for name in ("CODEATLAS_CACHE_DIR", "CODEATLAS_MAX_DEPTH", "CODEATLAS_FLUSH_DELAY", "CODEATLAS_IGNORE_FILE"):
        monkeypatch.delenv(name, raising=False)
    return global_path
