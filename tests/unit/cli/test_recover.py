"""Unit tests for the recover command."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from sfhelper.cli.main import app
from sfhelper.core.config import HelperConfig
from sfhelper.core.neutralizer import neutralize_line
from sfhelper.core.recovery import RecoveryResult
from sfhelper.utils.shell import CommandResult

runner = CliRunner()


@pytest.fixture(autouse=True)
def default_config() -> Iterator[None]:
    """recover reads the default configuration."""
    with patch("sfhelper.cli.commands.recover.load_config", return_value=HelperConfig()):
        yield


@pytest.fixture
def no_stash() -> Iterator[MagicMock]:
    """git reports an empty stash list."""
    with patch("sfhelper.core.recovery.run_command") as mock_run:
        mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)
        yield mock_run


def _break(path: Path) -> bytes:
    original = path.read_bytes()
    lines = original.splitlines(keepends=True)
    lines[1] = neutralize_line(lines[1], path)
    path.write_bytes(b"".join(lines))
    return original


class TestRecoverCommand:
    """Tests for sfhelper recover."""

    def test_nothing_to_recover(self, source_root: Path, no_stash: MagicMock) -> None:
        """A clean tree reports nothing to do."""
        result = runner.invoke(app, ["recover", "-s", str(source_root)])

        assert result.exit_code == 0
        assert "Nothing to recover" in result.output

    def test_restores_with_yes(self, source_root: Path, no_stash: MagicMock) -> None:
        """--yes restores leftover lines without prompting."""
        path = source_root / "main" / "default" / "classes" / "A.cls"
        original = _break(path)

        result = runner.invoke(app, ["recover", "-s", str(source_root), "--yes"])

        assert result.exit_code == 0
        assert path.read_bytes() == original
        assert "Restored 1 line(s) in 1 file(s)" in result.output

    def test_prompt_declined(self, source_root: Path, no_stash: MagicMock) -> None:
        """Declining the prompt leaves files untouched."""
        path = source_root / "main" / "default" / "classes" / "A.cls"
        _break(path)
        broken = path.read_bytes()

        result = runner.invoke(app, ["recover", "-s", str(source_root)], input="n\n")

        assert result.exit_code == 0
        assert "Aborted" in result.output
        assert path.read_bytes() == broken

    def test_stash_pop_conflict_exits_1(self, source_root: Path) -> None:
        """A failed stash pop is reported with exit code 1."""
        with (
            patch(
                "sfhelper.cli.commands.recover.find_helper_stash", return_value="stash@{0}"
            ),
            patch(
                "sfhelper.cli.commands.recover.recover",
                return_value=RecoveryResult(stash_ref="stash@{0}", stash_error="CONFLICT"),
            ),
        ):
            result = runner.invoke(app, ["recover", "-s", str(source_root), "--yes"])

        assert result.exit_code == 1
        assert "git stash pop failed" in result.output

    def test_missing_source_dir(self, tmp_path: Path) -> None:
        """A missing source directory exits 1."""
        result = runner.invoke(app, ["recover", "-s", str(tmp_path / "missing")])

        assert result.exit_code == 1
