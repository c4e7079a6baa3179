"""Unit tests for the snapshot guard.

git is never invoked: run_command is replaced by a small fake that
answers the handful of git subcommands the guard uses.
"""

import os
import signal
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from sfhelper.core.errors import ErrorKind
from sfhelper.core.neutralizer import NeutralizationError, SourceNeutralizer
from sfhelper.core.snapshot import (
    DEFAULT_STASH_MESSAGE,
    SnapshotError,
    SnapshotGuard,
    TerminationRequested,
)
from sfhelper.models.component import DeletedComponent, DeletionManifest, DependencyMatch
from sfhelper.utils.shell import CommandResult

STASH_SHA = "1111111111111111111111111111111111111111"
OTHER_SHA = "2222222222222222222222222222222222222222"


class FakeGit:
    """Scripted stand-in for git; records every call."""

    def __init__(
        self,
        *,
        inside: bool = True,
        dirty: bool = True,
        push_ok: bool = True,
        pop_ok: bool = True,
        stash_list: list[str] | None = None,
    ) -> None:
        self.inside = inside
        self.dirty = dirty
        self.push_ok = push_ok
        self.pop_ok = pop_ok
        self.stash_list = stash_list if stash_list is not None else [STASH_SHA]
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], **kwargs: object) -> CommandResult:
        assert args[0] == "git"
        git_args = args[1:]
        self.calls.append(git_args)
        match git_args:
            case ["rev-parse", "--is-inside-work-tree"]:
                if self.inside:
                    return CommandResult("true\n", "", 0)
                return CommandResult("", "fatal: not a git repository", 128)
            case ["status", *_]:
                return CommandResult(" M force-app/A.cls\n" if self.dirty else "", "", 0)
            case ["stash", "push", *_]:
                if self.push_ok:
                    return CommandResult("Saved working directory", "", 0)
                return CommandResult("", "error: could not stash", 1)
            case ["rev-parse", "-q", "--verify", "refs/stash"]:
                return CommandResult(f"{STASH_SHA}\n", "", 0)
            case ["stash", "list", *_]:
                return CommandResult("\n".join(self.stash_list) + "\n", "", 0)
            case ["stash", "pop", *_]:
                if self.pop_ok:
                    return CommandResult("", "", 0)
                return CommandResult("", "CONFLICT (content): Merge conflict in A.cls", 1)
        raise AssertionError(f"unexpected git call: {git_args}")

    def called(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == list(prefix) for call in self.calls)


def _neutralizer(*names: str) -> SourceNeutralizer:
    return SourceNeutralizer(
        DeletionManifest(components=tuple(DeletedComponent(n) for n in names))
    )


class TestAcquire:
    """Tests for SnapshotGuard.acquire."""

    def test_stashes_local_changes(self, tmp_path: Path) -> None:
        """Dirty work trees are stashed with the helper message."""
        git = FakeGit()
        guard = SnapshotGuard(tmp_path, _neutralizer("X"))

        with patch("sfhelper.core.snapshot.run_command", side_effect=git):
            handle = guard.acquire()

        assert handle.stashed is True
        assert handle.stash_commit == STASH_SHA
        assert ["stash", "push", "-m", DEFAULT_STASH_MESSAGE] in git.calls

    def test_clean_tree_is_not_stashed(self, tmp_path: Path) -> None:
        """Nothing is stashed when there are no local changes."""
        git = FakeGit(dirty=False)

        with patch("sfhelper.core.snapshot.run_command", side_effect=git):
            handle = SnapshotGuard(tmp_path, _neutralizer("X")).acquire()

        assert handle.stashed is False
        assert not git.called("stash", "push")

    def test_outside_git_repository(self, tmp_path: Path) -> None:
        """Outside a git repository the guard only tracks neutralization."""
        git = FakeGit(inside=False)

        with patch("sfhelper.core.snapshot.run_command", side_effect=git):
            handle = SnapshotGuard(tmp_path, _neutralizer("X")).acquire()

        assert handle.is_git_repo is False
        assert handle.stashed is False

    def test_git_missing_behaves_like_no_repository(self, tmp_path: Path) -> None:
        """A missing git executable is treated like a non-repository."""
        with patch("sfhelper.core.snapshot.run_command", side_effect=FileNotFoundError("git")):
            handle = SnapshotGuard(tmp_path, _neutralizer("X")).acquire()

        assert handle.is_git_repo is False

    def test_stash_failure_raises(self, tmp_path: Path) -> None:
        """A failing git stash is fatal."""
        git = FakeGit(push_ok=False)

        with (
            patch("sfhelper.core.snapshot.run_command", side_effect=git),
            pytest.raises(SnapshotError, match="git stash failed"),
        ):
            SnapshotGuard(tmp_path, _neutralizer("X")).acquire()

    def test_acquire_twice_raises(self, tmp_path: Path) -> None:
        """A guard can only be acquired once."""
        guard = SnapshotGuard(tmp_path, _neutralizer("X"))
        with patch("sfhelper.core.snapshot.run_command", side_effect=FakeGit(dirty=False)):
            guard.acquire()
            with pytest.raises(RuntimeError, match="already acquired"):
                guard.acquire()


class TestRelease:
    """Tests for SnapshotGuard.release."""

    def test_restores_files_before_popping(self, tmp_path: Path) -> None:
        """Neutralized files are restored before the stash is reapplied."""
        path = tmp_path / "A.cls"
        path.write_bytes(b"OldHelper h;\n")
        neutralizer = _neutralizer("OldHelper")
        seen_at_pop: list[bytes] = []
        git = FakeGit()

        def fake_run(args: list[str], **kwargs: object) -> CommandResult:
            if args[1:3] == ["stash", "pop"]:
                seen_at_pop.append(path.read_bytes())
            return git(args, **kwargs)

        with patch("sfhelper.core.snapshot.run_command", side_effect=fake_run):
            with SnapshotGuard(tmp_path, neutralizer) as guard:
                neutralizer.apply([DependencyMatch(path, frozenset({"OldHelper"}))])
                assert path.read_bytes() != b"OldHelper h;\n"

        assert seen_at_pop == [b"OldHelper h;\n"]
        assert path.read_bytes() == b"OldHelper h;\n"
        assert guard.warnings == []

    def test_pops_only_own_stash_entry(self, tmp_path: Path) -> None:
        """An unrelated stash pushed on top is not popped."""
        git = FakeGit(stash_list=[OTHER_SHA, STASH_SHA])

        with patch("sfhelper.core.snapshot.run_command", side_effect=git):
            with SnapshotGuard(tmp_path, _neutralizer("X")):
                pass

        assert ["stash", "pop", "--index", "stash@{1}"] in git.calls

    def test_index_conflict_falls_back_to_plain_pop(self, tmp_path: Path) -> None:
        """When the index cannot be restored the stash is popped without it."""
        git = FakeGit()

        def fake_run(args: list[str], **kwargs: object) -> CommandResult:
            if args[1:4] == ["stash", "pop", "--index"]:
                return CommandResult("", "Conflicts in index. Try without --index.", 1)
            return git(args, **kwargs)

        with patch("sfhelper.core.snapshot.run_command", side_effect=fake_run):
            with SnapshotGuard(tmp_path, _neutralizer("X")) as guard:
                pass

        assert ["stash", "pop", "stash@{0}"] in git.calls
        assert guard.warnings == []

    def test_pop_conflict_is_a_warning(self, tmp_path: Path) -> None:
        """A failed stash pop is reported as a RestoreConflict warning."""
        git = FakeGit(pop_ok=False)

        with patch("sfhelper.core.snapshot.run_command", side_effect=git):
            with SnapshotGuard(tmp_path, _neutralizer("X")) as guard:
                pass

        assert len(guard.warnings) == 1
        assert guard.warnings[0].startswith(ErrorKind.RESTORE_CONFLICT.value)
        assert "Merge conflict" in guard.warnings[0]

    def test_missing_stash_entry_is_a_warning(self, tmp_path: Path) -> None:
        """A stash entry that disappeared is reported, not popped."""
        git = FakeGit(stash_list=[OTHER_SHA])

        with patch("sfhelper.core.snapshot.run_command", side_effect=git):
            with SnapshotGuard(tmp_path, _neutralizer("X")) as guard:
                pass

        assert not git.called("stash", "pop")
        assert "not found" in guard.warnings[0]

    def test_clean_tree_release_skips_git(self, tmp_path: Path) -> None:
        """Nothing is popped when nothing was stashed."""
        git = FakeGit(dirty=False)

        with patch("sfhelper.core.snapshot.run_command", side_effect=git):
            with SnapshotGuard(tmp_path, _neutralizer("X")):
                pass

        assert not git.called("stash")

    def test_releases_on_exception(self, tmp_path: Path) -> None:
        """The body raising still restores files and reapplies the stash."""
        path = tmp_path / "A.cls"
        path.write_bytes(b"OldHelper h;\n")
        neutralizer = _neutralizer("OldHelper")
        git = FakeGit()

        with (
            patch("sfhelper.core.snapshot.run_command", side_effect=git),
            pytest.raises(ValueError, match="boom"),
        ):
            with SnapshotGuard(tmp_path, neutralizer):
                neutralizer.apply([DependencyMatch(path, frozenset({"OldHelper"}))])
                raise ValueError("boom")

        assert path.read_bytes() == b"OldHelper h;\n"
        assert git.called("stash", "pop")

    def test_restore_failure_keeps_stash(self, tmp_path: Path) -> None:
        """If files cannot be restored the stash is left in place."""
        neutralizer = _neutralizer("X")
        git = FakeGit()
        guard = SnapshotGuard(tmp_path, neutralizer)

        with (
            patch("sfhelper.core.snapshot.run_command", side_effect=git),
            patch.object(neutralizer, "restore", side_effect=NeutralizationError("disk full")),
        ):
            guard.acquire()
            with pytest.raises(NeutralizationError):
                guard.release()

        assert not git.called("stash", "pop")
        assert "left in place" in guard.warnings[0]

    def test_release_without_acquire_raises(self, tmp_path: Path) -> None:
        """release before acquire is a programming error."""
        with pytest.raises(RuntimeError, match="never acquired"):
            SnapshotGuard(tmp_path, _neutralizer("X")).release()

    def test_release_twice_raises(self, tmp_path: Path) -> None:
        """release runs exactly once."""
        guard = SnapshotGuard(tmp_path, _neutralizer("X"))
        with patch("sfhelper.core.snapshot.run_command", side_effect=FakeGit(dirty=False)):
            guard.acquire()
            guard.release()
            with pytest.raises(RuntimeError, match="already released"):
                guard.release()


class TestInterruptions:
    """Tests for signals and git failures while the guard is held."""

    @pytest.mark.skipif(not hasattr(signal, "SIGTERM"), reason="SIGTERM not available")
    def test_sigterm_restores_and_raises(self, tmp_path: Path) -> None:
        """SIGTERM inside the guard restores the tree and surfaces as TerminationRequested."""
        path = tmp_path / "A.cls"
        path.write_bytes(b"OldHelper h;\n")
        neutralizer = _neutralizer("OldHelper")
        previous = signal.getsignal(signal.SIGTERM)

        with (
            patch("sfhelper.core.snapshot.run_command", side_effect=FakeGit(dirty=False)),
            pytest.raises(TerminationRequested) as exc_info,
        ):
            with SnapshotGuard(tmp_path, neutralizer):
                neutralizer.apply([DependencyMatch(path, frozenset({"OldHelper"}))])
                os.kill(os.getpid(), signal.SIGTERM)

        assert exc_info.value.signum == signal.SIGTERM
        assert path.read_bytes() == b"OldHelper h;\n"
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_timeout_is_reported_as_failed_command(self, tmp_path: Path) -> None:
        """A git timeout during release becomes a warning rather than a crash."""
        git = FakeGit()

        def fake_run(args: list[str], **kwargs: object) -> CommandResult:
            if args[1:3] == ["stash", "pop"]:
                raise subprocess.TimeoutExpired(args, 120)
            return git(args, **kwargs)

        with patch("sfhelper.core.snapshot.run_command", side_effect=fake_run):
            with SnapshotGuard(tmp_path, _neutralizer("X")) as guard:
                pass

        assert "git stash pop failed" in guard.warnings[0]

    @pytest.mark.skipif(not hasattr(signal, "SIGTERM"), reason="SIGTERM not available")
    def test_sigterm_during_release_is_deferred(self, tmp_path: Path) -> None:
        """A signal arriving while files are restored does not cut release short."""
        path = tmp_path / "A.cls"
        path.write_bytes(b"x Account_Trigger_Helper y\n")
        git = FakeGit()

        class SignalledNeutralizer(SourceNeutralizer):
            def restore(self) -> list[Path]:
                os.kill(os.getpid(), signal.SIGTERM)
                return super().restore()

        neutralizer = SignalledNeutralizer(
            DeletionManifest(components=(DeletedComponent("Account_Trigger_Helper"),))
        )

        with (
            patch("sfhelper.core.snapshot.run_command", side_effect=git),
            pytest.raises(TerminationRequested) as exc_info,
        ):
            with SnapshotGuard(tmp_path, neutralizer):
                neutralizer.apply([DependencyMatch(path, frozenset({"Account_Trigger_Helper"}))])

        assert exc_info.value.signum == signal.SIGTERM
        assert path.read_bytes() == b"x Account_Trigger_Helper y\n"
        assert git.called("stash", "pop")

    @pytest.mark.skipif(not hasattr(signal, "SIGTERM"), reason="SIGTERM not available")
    def test_sigterm_during_stash_reapplies_changes(self, tmp_path: Path) -> None:
        """A signal arriving right after stashing pops the stash before raising."""
        git = FakeGit()
        body_ran = False

        def fake_run(args: list[str], **kwargs: object) -> CommandResult:
            result = git(args, **kwargs)
            if args[1:3] == ["stash", "push"]:
                os.kill(os.getpid(), signal.SIGTERM)
            return result

        with (
            patch("sfhelper.core.snapshot.run_command", side_effect=fake_run),
            pytest.raises(TerminationRequested),
        ):
            with SnapshotGuard(tmp_path, _neutralizer("X")):
                body_ran = True

        assert body_ran is False
        assert ["stash", "pop", "--index", "stash@{0}"] in git.calls

    def test_unlocatable_stash_points_to_recovery(self, tmp_path: Path) -> None:
        """If the new stash entry cannot be found the error says where to look."""
        git = FakeGit()

        def fake_run(args: list[str], **kwargs: object) -> CommandResult:
            if args[1:] == ["rev-parse", "-q", "--verify", "refs/stash"]:
                return CommandResult("", "", 1)
            return git(args, **kwargs)

        with (
            patch("sfhelper.core.snapshot.run_command", side_effect=fake_run),
            pytest.raises(SnapshotError, match="sfhelper recover"),
        ):
            SnapshotGuard(tmp_path, _neutralizer("X")).acquire()
