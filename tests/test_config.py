"""Tests for layered configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from codeatlas.config import AtlasConfig, load_config
from codeatlas.exceptions import ConfigError


def _write_workspace_config(root: Path, body: str) -> None:
    config_dir = root / ".codeatlas"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.toml").write_text(body, encoding="utf-8")


class TestLoadConfig:
    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.workspace_dir == tmp_path.resolve()
        assert config.cache_dir is None
        assert config.max_depth == 20
        assert config.flush_delay == 1.0
        assert config.ignore_file == ".gitignore"
        assert config.exclude == []

    def test_workspace_file(self, tmp_path: Path) -> None:
        _write_workspace_config(
            tmp_path,
            'max_depth = 5\nflush_delay = 0.25\ncache_dir = "var/cache"\nexclude = ["**/*.gen.ts"]\n',
        )
        config = load_config(tmp_path)
        assert config.max_depth == 5
        assert config.flush_delay == 0.25
        assert config.cache_dir == tmp_path.resolve() / "var" / "cache"
        assert config.exclude == ["**/*.gen.ts"]

    def test_workspace_overrides_global(self, tmp_path: Path, isolated_config: Path) -> None:
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text('max_depth = 3\nignore_file = ".globalignore"\n', encoding="utf-8")
        workspace = tmp_path / "ws"
        _write_workspace_config(workspace, "max_depth = 7\n")

        config = load_config(workspace)
        assert config.max_depth == 7
        assert config.ignore_file == ".globalignore"

    def test_env_overrides_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_workspace_config(tmp_path, "max_depth = 7\n")
        monkeypatch.setenv("CODEATLAS_MAX_DEPTH", "2")
        monkeypatch.setenv("CODEATLAS_CACHE_DIR", str(tmp_path / "envcache"))
        monkeypatch.setenv("CODEATLAS_IGNORE_FILE", ".atlasignore")

        config = load_config(tmp_path)
        assert config.max_depth == 2
        assert config.cache_dir == tmp_path / "envcache"
        assert config.ignore_file == ".atlasignore"

    def test_invalid_env_value(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEATLAS_FLUSH_DELAY", "soon")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_invalid_file_value(self, tmp_path: Path) -> None:
        _write_workspace_config(tmp_path, 'max_depth = "deep"\n')
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_malformed_file_is_ignored(self, tmp_path: Path) -> None:
        _write_workspace_config(tmp_path, "max_depth = [\n")
        assert load_config(tmp_path).max_depth == AtlasConfig().max_depth
