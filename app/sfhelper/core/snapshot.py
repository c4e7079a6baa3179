"""Snapshot guard around source neutralization.

Before any file is neutralized, uncommitted local modifications are set
aside with ``git stash`` so that neutralization edits land on a clean
baseline. Releasing the guard first restores every neutralized file from
its NeutralizationRecord and then reapplies the stash.

All uncommitted tracked changes are stashed, not only the ones touching
matched files. Untracked files are left in place.

The guard is a context manager; while it is held, SIGTERM and SIGHUP
are converted into a TerminationRequested exception so that release
still runs when the process is asked to stop. Signals received while
stashing or releasing are held back and re-raised once the tree is back
in its original state.
"""

import logging
import signal
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from types import FrameType, TracebackType
from typing import Any

from rich.markup import escape

from sfhelper.core.errors import ErrorKind, HelperError
from sfhelper.core.neutralizer import NeutralizationError, SourceNeutralizer
from sfhelper.utils.formatting import print_warning
from sfhelper.utils.shell import CommandResult, run_command

logger = logging.getLogger(__name__)

DEFAULT_STASH_MESSAGE = "sfhelper-temp-stash"

_GIT_TIMEOUT: float = 120.0

_TRAPPED_SIGNALS: tuple[signal.Signals, ...] = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig
)


class SnapshotError(HelperError):
    """Raised when local modifications cannot be set aside."""


class TerminationRequested(BaseException):
    """Raised inside a held guard when the process receives SIGTERM or SIGHUP."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"Received signal {signal.Signals(signum).name}")


@dataclass(frozen=True, slots=True)
class SnapshotHandle:
    """Token for one acquired checkpoint of the working tree.

    Attributes:
        stashed: Whether local modifications were captured.
        stash_commit: Commit id of the created stash entry, None if nothing was stashed.
        is_git_repo: Whether the work tree is under git at all.
    """

    stashed: bool
    stash_commit: str | None = None
    is_git_repo: bool = True


def _git(args: list[str], cwd: Path) -> CommandResult:
    """Run a git subcommand in the given work tree."""
    return run_command(["git", *args], cwd=str(cwd), timeout=_GIT_TIMEOUT)


class SnapshotGuard:
    """Scoped checkpoint around a neutralization episode.

    Release runs exactly once per acquire. Using the guard as a context
    manager makes release part of the control flow:

    Example:
        >>> neutralizer = SourceNeutralizer(manifest)
        >>> with SnapshotGuard(Path("."), neutralizer) as guard:
        ...     neutralizer.apply(matches)
        ...     deploy()
        >>> guard.warnings
        []
    """

    def __init__(
        self,
        work_tree: Path,
        neutralizer: SourceNeutralizer,
        stash_message: str = DEFAULT_STASH_MESSAGE,
    ) -> None:
        self._work_tree = work_tree
        self._neutralizer = neutralizer
        self._stash_message = stash_message
        self._handle: SnapshotHandle | None = None
        self._released = False
        self._warnings: list[str] = []
        self._previous_handlers: dict[signal.Signals, Any] = {}
        self._deferring = False
        self._pending_signal: int | None = None

    @property
    def handle(self) -> SnapshotHandle | None:
        """Handle of the current checkpoint, None before acquire."""
        return self._handle

    @property
    def warnings(self) -> list[str]:
        """Non-fatal problems reported during release."""
        return list(self._warnings)

    def acquire(self) -> SnapshotHandle:
        """Set aside uncommitted local modifications.

        Returns:
            SnapshotHandle describing what was captured.

        Raises:
            RuntimeError: If the guard was already acquired.
            SnapshotError: If git fails to stash the modifications.
        """
        if self._handle is not None:
            msg = "Snapshot guard already acquired"
            raise RuntimeError(msg)

        if not self._is_git_work_tree():
            logger.warning(
                "%s is not a git work tree; local changes are not stashed", self._work_tree
            )
            self._handle = SnapshotHandle(stashed=False, is_git_repo=False)
            return self._handle

        if not self._has_local_changes():
            logger.info("Working tree is clean; nothing to stash")
            self._handle = SnapshotHandle(stashed=False)
            return self._handle

        result = self._run_git(["stash", "push", "-m", self._stash_message])
        if not result.success:
            msg = f"git stash failed: {result.output or 'unknown error'}"
            raise SnapshotError(msg)

        stash_commit = self._stash_top()
        if stash_commit is None:
            msg = (
                "git stash reported success but the new entry could not be located; "
                f"your changes may be stashed as '{self._stash_message}'. "
                "Check 'git stash list' or run 'sfhelper recover'."
            )
            raise SnapshotError(msg)

        logger.info("Stashed local changes as %s", stash_commit)
        self._handle = SnapshotHandle(stashed=True, stash_commit=stash_commit)
        return self._handle

    def release(self) -> list[str]:
        """Restore neutralized files, then reapply stashed modifications.

        A failure to reapply the stash is a RestoreConflict: it is reported
        as a warning and the stash entry is kept for manual recovery.

        Returns:
            Warnings raised during release.

        Raises:
            RuntimeError: If the guard was not acquired or was already released.
            NeutralizationError: If neutralized files could not be restored.
        """
        if self._handle is None:
            msg = "Snapshot guard was never acquired"
            raise RuntimeError(msg)
        if self._released:
            msg = "Snapshot guard already released"
            raise RuntimeError(msg)
        self._released = True

        try:
            restored = self._neutralizer.restore()
        except NeutralizationError:
            if self._handle.stashed:
                self._warn(
                    f"Stash '{self._stash_message}' was left in place; "
                    "run 'git stash pop' after fixing the files."
                )
            raise

        if restored:
            logger.info("Restored %d neutralized file(s)", len(restored))

        if self._handle.stashed:
            self._reapply_stash(self._handle.stash_commit)

        return self.warnings

    def _reapply_stash(self, stash_commit: str | None) -> None:
        ref = self._find_stash_ref(stash_commit)
        if ref is None:
            self._warn(
                f"{ErrorKind.RESTORE_CONFLICT.value}: stash '{self._stash_message}' not found; "
                "your local changes may need to be restored manually."
            )
            return

        # --index brings staged changes back staged
        result = self._run_git(["stash", "pop", "--index", ref])
        if not result.success and "without --index" in result.output:
            logger.warning("Staged changes could not be restored as staged; popping without index")
            result = self._run_git(["stash", "pop", ref])
        if not result.success:
            self._warn(
                f"{ErrorKind.RESTORE_CONFLICT.value}: git stash pop failed: "
                f"{result.output or 'unknown error'}. Manual cleanup may be required "
                f"(see 'git stash list')."
            )
            return

        logger.info("Reapplied stashed local changes")

    def _warn(self, message: str) -> None:
        logger.warning(message)
        print_warning(escape(message))
        self._warnings.append(message)

    def _run_git(self, args: list[str]) -> CommandResult:
        try:
            return _git(args, self._work_tree)
        except (FileNotFoundError, OSError, subprocess.TimeoutExpired) as e:
            return CommandResult(stdout="", stderr=str(e), returncode=-1)

    def _is_git_work_tree(self) -> bool:
        result = self._run_git(["rev-parse", "--is-inside-work-tree"])
        return result.success and result.stdout.strip() == "true"

    def _has_local_changes(self) -> bool:
        result = self._run_git(["status", "--porcelain", "--untracked-files=no"])
        if not result.success:
            msg = f"git status failed: {result.output or 'unknown error'}"
            raise SnapshotError(msg)
        return bool(result.stdout.strip())

    def _stash_top(self) -> str | None:
        result = self._run_git(["rev-parse", "-q", "--verify", "refs/stash"])
        commit = result.stdout.strip()
        return commit if result.success and commit else None

    def _find_stash_ref(self, stash_commit: str | None) -> str | None:
        """Locate the stash entry created by acquire (it may no longer be on top)."""
        if stash_commit is None:
            return None
        result = self._run_git(["stash", "list", "--format=%H"])
        if not result.success:
            return None
        for index, commit in enumerate(result.stdout.split()):
            if commit == stash_commit:
                return f"stash@{{{index}}}"
        return None

    # -- context manager ------------------------------------------------------

    def __enter__(self) -> "SnapshotGuard":
        self._install_signal_handlers()
        self._deferring = True
        try:
            self.acquire()
        except BaseException:
            self._restore_signal_handlers()
            raise
        if self._pending_signal is not None:
            # asked to stop while stashing: put the changes back before leaving
            self.__exit__(None, None, None)
        self._deferring = False
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        # a signal arriving during release is held until release completes
        self._deferring = True
        try:
            self.release()
        finally:
            self._restore_signal_handlers()
        pending, self._pending_signal = self._pending_signal, None
        if pending is not None and not isinstance(exc, TerminationRequested):
            raise TerminationRequested(pending)

    def _install_signal_handlers(self) -> None:
        # signal.signal only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in _TRAPPED_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()
        self._deferring = False

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        if self._deferring:
            logger.warning(
                "Received %s; stopping once the source tree is restored",
                signal.Signals(signum).name,
            )
            self._pending_signal = signum
            return
        raise TerminationRequested(signum)
