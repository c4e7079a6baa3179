"""Crash recovery for interrupted runs.

If the process is killed in a way that cannot be trapped (SIGKILL,
power loss), neutralized lines and the temporary stash entry stay
behind. Neutralized lines embed their original text, so they can be
restored textually; the stash entry is found by its message.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from sfhelper.core.neutralizer import is_neutralized, restore_file_lines
from sfhelper.core.snapshot import DEFAULT_STASH_MESSAGE
from sfhelper.utils.shell import CommandResult, run_command

logger = logging.getLogger(__name__)


@dataclass
class RecoveryResult:
    """Outcome of a recovery pass.

    Attributes:
        restored_files: Files whose neutralized lines were restored.
        restored_lines: Total number of lines restored.
        stash_ref: Stash entry that was popped, None if none was found.
        stash_error: Error output if popping the stash failed.
    """

    restored_files: list[Path] = field(default_factory=list)
    restored_lines: int = 0
    stash_ref: str | None = None
    stash_error: str | None = None

    @property
    def success(self) -> bool:
        """Check if recovery completed without errors."""
        return self.stash_error is None


def find_neutralized_files(source_root: Path) -> list[Path]:
    """Find files that still contain neutralized lines.

    Args:
        source_root: Directory to search.

    Returns:
        Sorted list of files containing at least one neutralized line.
    """
    found: list[Path] = []
    for path in sorted(source_root.rglob("*")):
        if path.is_symlink() or not path.is_file():
            continue
        try:
            lines = path.read_bytes().splitlines(keepends=True)
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            continue
        if any(is_neutralized(line) for line in lines):
            found.append(path)
    return found


def _git(args: list[str], work_tree: Path) -> CommandResult:
    try:
        return run_command(["git", *args], cwd=str(work_tree), timeout=120.0)
    except (FileNotFoundError, OSError, subprocess.TimeoutExpired) as e:
        return CommandResult(stdout="", stderr=str(e), returncode=-1)


def find_helper_stash(work_tree: Path, stash_message: str = DEFAULT_STASH_MESSAGE) -> str | None:
    """Find the newest stash entry created by sfhelper.

    Args:
        work_tree: Git work tree.
        stash_message: Message the entry was created with.

    Returns:
        Stash reference (e.g., 'stash@{0}'), or None if there is none.
    """
    result = _git(["stash", "list", "--format=%gd%x09%gs"], work_tree)
    if not result.success:
        return None
    for line in result.stdout.splitlines():
        ref, _, subject = line.partition("\t")
        # git prefixes the message with "On <branch>: "
        if subject == stash_message or subject.endswith(f": {stash_message}"):
            return ref
    return None


def recover(
    source_root: Path,
    work_tree: Path,
    stash_message: str = DEFAULT_STASH_MESSAGE,
) -> RecoveryResult:
    """Undo the leftovers of an interrupted run.

    Neutralized lines are restored first, then the helper stash entry is
    popped on top of the restored tree.

    Args:
        source_root: Source directory that was neutralized.
        work_tree: Git work tree holding the stash.
        stash_message: Message of the helper stash entry.

    Returns:
        RecoveryResult describing what was restored.
    """
    result = RecoveryResult()

    for path in find_neutralized_files(source_root):
        count = restore_file_lines(path)
        if count:
            logger.info("Restored %d line(s) in %s", count, path)
            result.restored_files.append(path)
            result.restored_lines += count

    ref = find_helper_stash(work_tree, stash_message)
    if ref is None:
        return result

    result.stash_ref = ref
    pop = _git(["stash", "pop", ref], work_tree)
    if not pop.success:
        result.stash_error = pop.output or "git stash pop failed"
    return result
