"""Configuration management for CodeAtlas.

Settings are loaded from three sources in order of priority:
1. Environment variables (highest priority)
2. Workspace-level config: .codeatlas/config.toml
3. Global config: ~/.config/codeatlas/config.toml (lowest priority)
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console

from codeatlas.exceptions import ConfigError

console = Console(stderr=True)

_GLOBAL_CONFIG_DIR = Path.home() / ".config" / "codeatlas"
_GLOBAL_CONFIG_PATH = _GLOBAL_CONFIG_DIR / "config.toml"

ATLAS_DIR_NAME = ".codeatlas"


@dataclass
class AtlasConfig:
    """CodeAtlas configuration.

    Attributes:
        workspace_dir: Root directory of the indexed workspace.
        cache_dir: Explicit cache location. None means the default
            ``<workspace>/.codeatlas/cache``; an explicit location that
            cannot be created is a fatal error.
        max_depth: Maximum directory depth traversed by the scanner.
        flush_delay: Quiet period in seconds before the file-hash map is written.
        ignore_file: Name of the root-level ignore file.
        exclude: Extra exclusion patterns appended to the built-in set.
    """

    workspace_dir: Path = field(default_factory=Path.cwd)
    cache_dir: Path | None = None
    max_depth: int = 20
    flush_delay: float = 1.0
    ignore_file: str = ".gitignore"
    exclude: list[str] = field(default_factory=list)


def load_config(workspace_dir: Path) -> AtlasConfig:
    """Load configuration from env vars, workspace config, and global config.

    Priority: env vars > .codeatlas/config.toml > ~/.config/codeatlas/config.toml

    Args:
        workspace_dir: Root directory of the workspace.

    Returns:
        A fully resolved AtlasConfig instance.

    Raises:
        ConfigError: If a setting has a value of the wrong type.
    """
    config = AtlasConfig(workspace_dir=workspace_dir.resolve())

    # Layer 1: Global config (lowest priority)
    _apply_toml(config, _load_toml(_GLOBAL_CONFIG_PATH))

    # Layer 2: Workspace config
    _apply_toml(config, _load_toml(config.workspace_dir / ATLAS_DIR_NAME / "config.toml"))

    # Layer 3: Environment variables (highest priority)
    _apply_env(config)

    return config


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file, returning an empty dict if missing or invalid."""
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as exc:
        console.print(f"[yellow]Warning:[/yellow] Could not parse {path}: {exc}")
        return {}


def _apply_toml(config: AtlasConfig, settings: dict[str, Any]) -> None:
    """Merge TOML settings into an AtlasConfig."""
    try:
        if "cache_dir" in settings:
            config.cache_dir = _resolve_dir(config.workspace_dir, str(settings["cache_dir"]))
        if "max_depth" in settings:
            config.max_depth = int(settings["max_depth"])
        if "flush_delay" in settings:
            config.flush_delay = float(settings["flush_delay"])
        if "ignore_file" in settings:
            config.ignore_file = str(settings["ignore_file"])
        if "exclude" in settings:
            config.exclude = [str(p) for p in settings["exclude"]]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc


def _apply_env(config: AtlasConfig) -> None:
    """Override config with environment variables where set."""
    try:
        if cache_dir := os.environ.get("CODEATLAS_CACHE_DIR"):
            config.cache_dir = _resolve_dir(config.workspace_dir, cache_dir)
        if max_depth := os.environ.get("CODEATLAS_MAX_DEPTH"):
            config.max_depth = int(max_depth)
        if flush_delay := os.environ.get("CODEATLAS_FLUSH_DELAY"):
            config.flush_delay = float(flush_delay)
        if ignore_file := os.environ.get("CODEATLAS_IGNORE_FILE"):
            config.ignore_file = ignore_file
    except ValueError as exc:
        raise ConfigError(f"Invalid environment override: {exc}") from exc


def _resolve_dir(workspace_dir: Path, value: str) -> Path:
    """Resolve a configured directory relative to the workspace root."""
    path = Path(value).expanduser()
    return path if path.is_absolute() else workspace_dir / path
