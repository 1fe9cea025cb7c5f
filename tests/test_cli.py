"""Tests for the CLI commands."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from codeatlas.cli import app

runner = CliRunner()


class TestScan:
    def test_lists_files(self, sample_workspace: Path) -> None:
        result = runner.invoke(app, ["scan", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert "README.md" in result.output
        assert "node_modules" not in result.output

    def test_missing_workspace(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["scan", "--path", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestSearch:
    def test_finds_symbol(self, sample_workspace: Path) -> None:
        result = runner.invoke(app, ["search", "user", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert "UserService" in result.output
        assert "ProductService" not in result.output

    def test_kind_filter(self, sample_workspace: Path) -> None:
        result = runner.invoke(
            app, ["search", "service", "--kind", "function", "--path", str(sample_workspace)]
        )
        assert result.exit_code == 0
        assert "No matching symbols" in result.output


class TestHierarchy:
    def test_shows_chain(self, sample_workspace: Path) -> None:
        result = runner.invoke(app, ["hierarchy", "Puppy", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert "Dog" in result.output
        assert "Animal" in result.output

    def test_unknown_class(self, sample_workspace: Path) -> None:
        result = runner.invoke(app, ["hierarchy", "Nope", "--path", str(sample_workspace)])
        assert result.exit_code == 1

    def test_overrides(self, sample_workspace: Path) -> None:
        result = runner.invoke(app, ["overrides", "Animal", "speak", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert "Puppy" in result.output


class TestMaintenance:
    def test_stats(self, sample_workspace: Path) -> None:
        result = runner.invoke(app, ["stats", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert "Classes" in result.output
        assert "Interfaces" in result.output

    def test_index_then_clear_cache(self, sample_workspace: Path) -> None:
        assert runner.invoke(app, ["index", "--path", str(sample_workspace)]).exit_code == 0
        cache_dir = sample_workspace / ".codeatlas" / "cache"
        assert any(cache_dir.iterdir())

        result = runner.invoke(app, ["clear-cache", "--path", str(sample_workspace)])
        assert result.exit_code == 0
        assert list(cache_dir.iterdir()) == []
