"""Reversible neutralization of references to deleted components.

Every line that mentions a deleted component is commented out with a
marker that embeds the original line verbatim:

    // SF-HELPER: Auto-commented for deploy. Original line: <original>

Markup files wrap the same text in <!-- -->; since XML comments cannot
contain "--", the embedded line has "-" written as %2D and "%" as %25.

The full pre-mutation content of each file is kept as a
NeutralizationRecord, so restoring a run never depends on parsing the
marker. The marker still allows a textual restore after a crash (see
restore_file_lines).

Lines are handled as bytes split on \\n, \\r\\n and \\r, so encodings and
line endings survive untouched.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from sfhelper.core.errors import HelperError
from sfhelper.models.component import DeletionManifest, DependencyMatch, NeutralizationRecord

logger = logging.getLogger(__name__)

MARKER = b"SF-HELPER: Auto-commented for deploy. Original line: "

# (prefix, suffix) wrapping the marker; markup files need block comments
_LINE_COMMENT: tuple[bytes, bytes] = (b"// ", b"")
_MARKUP_COMMENT: tuple[bytes, bytes] = (b"<!-- ", b" -->")

_MARKUP_SUFFIXES: frozenset[str] = frozenset(
    {".xml", ".html", ".page", ".component", ".cmp", ".app", ".evt", ".intf"}
)

_COMMENT_STYLES: tuple[tuple[bytes, bytes], ...] = (_LINE_COMMENT, _MARKUP_COMMENT)

# XML comments may not contain "--" nor end in "-"; markup payloads escape
# every "-" (and the escape character itself) percent-style.
_MARKUP_ESCAPES: tuple[tuple[bytes, bytes], ...] = ((b"%", b"%25"), (b"-", b"%2D"))

_LINE_ENDINGS: tuple[bytes, ...] = (b"\r\n", b"\n", b"\r")


class NeutralizationError(HelperError):
    """Raised when a file cannot be neutralized or restored."""


def comment_style(path: Path) -> tuple[bytes, bytes]:
    """Pick the comment prefix and suffix for a file.

    Args:
        path: File being neutralized.

    Returns:
        Tuple of (prefix, suffix) bytes.
    """
    if path.suffix.lower() in _MARKUP_SUFFIXES:
        return _MARKUP_COMMENT
    return _LINE_COMMENT


def _split_eol(line: bytes) -> tuple[bytes, bytes]:
    for eol in _LINE_ENDINGS:
        if line.endswith(eol):
            return line[: -len(eol)], eol
    return line, b""


def _escape_markup(body: bytes) -> bytes:
    for raw, escaped in _MARKUP_ESCAPES:
        body = body.replace(raw, escaped)
    return body


def _unescape_markup(body: bytes) -> bytes:
    for raw, escaped in reversed(_MARKUP_ESCAPES):
        body = body.replace(escaped, raw)
    return body


def is_neutralized(line: bytes) -> bool:
    """Check if a line already carries the neutralization marker."""
    return any(line.startswith(prefix + MARKER) for prefix, _ in _COMMENT_STYLES)


def neutralize_line(line: bytes, path: Path) -> bytes:
    """Return the disabled form of a line, keeping its line ending.

    Args:
        line: Original line including its line ending.
        path: File the line belongs to (selects the comment style).

    Returns:
        Commented-out line embedding the original text.
    """
    body, eol = _split_eol(line)
    style = comment_style(path)
    if style is _MARKUP_COMMENT:
        body = _escape_markup(body)
    prefix, suffix = style
    return prefix + MARKER + body + suffix + eol


def restore_line(line: bytes) -> bytes | None:
    """Recover the original line from its disabled form.

    This is the textual inverse of neutralize_line().

    Args:
        line: A line including its line ending.

    Returns:
        The original line, or None if the line is not neutralized.
    """
    body, eol = _split_eol(line)
    for prefix, suffix in _COMMENT_STYLES:
        head = prefix + MARKER
        if body.startswith(head) and body.endswith(suffix):
            end = len(body) - len(suffix)
            if end < len(head):
                continue
            payload = body[len(head) : end]
            if (prefix, suffix) == _MARKUP_COMMENT:
                payload = _unescape_markup(payload)
            return payload + eol
    return None


def restore_file_lines(path: Path) -> int:
    """Textually restore every neutralized line of a file in place.

    Used for crash recovery when no NeutralizationRecord survived.

    Args:
        path: File to restore.

    Returns:
        Number of lines restored (0 leaves the file untouched).
    """
    lines = path.read_bytes().splitlines(keepends=True)
    restored = 0
    for index, line in enumerate(lines):
        original = restore_line(line)
        if original is not None:
            lines[index] = original
            restored += 1
    if restored:
        path.write_bytes(b"".join(lines))
    return restored


class SourceNeutralizer:
    """Comments out references to deleted components and undoes it.

    One instance covers one pipeline run. Records are created at most once
    per file and are discarded by restore().

    Attributes:
        manifest: Components whose references are neutralized.
    """

    def __init__(self, manifest: DeletionManifest) -> None:
        self._manifest = manifest
        self._needles = [name.encode("utf-8") for name in manifest.names]
        self._records: dict[Path, NeutralizationRecord] = {}
        self._processed: set[Path] = set()

    @property
    def manifest(self) -> DeletionManifest:
        """Components whose references are neutralized."""
        return self._manifest

    @property
    def records(self) -> tuple[NeutralizationRecord, ...]:
        """Records of files mutated and not yet restored."""
        return tuple(self._records.values())

    @property
    def has_mutations(self) -> bool:
        """Check if any file is currently neutralized."""
        return bool(self._records)

    def apply(self, matches: Iterable[DependencyMatch]) -> list[NeutralizationRecord]:
        """Neutralize every matching line of the given files.

        Files are processed in path order. A file whose content no longer
        contains any deleted name (e.g. after local changes were stashed)
        or that no longer exists is left alone and gets no record.

        Args:
            matches: Files found by the dependency scanner.

        Returns:
            Records created by this call.

        Raises:
            NeutralizationError: If a file cannot be read or written.
        """
        created: list[NeutralizationRecord] = []
        for match in sorted(matches, key=lambda m: m.file):
            record = self._neutralize_file(match.file)
            if record is not None:
                created.append(record)
        return created

    def _neutralize_file(self, path: Path) -> NeutralizationRecord | None:
        if path in self._processed:
            return None
        self._processed.add(path)

        try:
            content = path.read_bytes()
        except FileNotFoundError:
            logger.info("Skipping %s: file no longer exists", path)
            return None
        except OSError as e:
            msg = f"Cannot read {path}: {e}"
            raise NeutralizationError(msg) from e

        lines = content.splitlines(keepends=True)
        changed = 0
        for index, line in enumerate(lines):
            if is_neutralized(line):
                continue
            if any(needle in line for needle in self._needles):
                lines[index] = neutralize_line(line, path)
                changed += 1

        if not changed:
            logger.debug("No matching lines left in %s", path)
            return None

        record = NeutralizationRecord(file=path, original_content=content)
        self._records[path] = record

        try:
            path.write_bytes(b"".join(lines))
        except OSError as e:
            msg = f"Cannot write {path}: {e}"
            raise NeutralizationError(msg) from e

        logger.info("Neutralized %d line(s) in %s", changed, path)
        return record

    def restore(self) -> list[Path]:
        """Write back the original content of every neutralized file.

        All files are attempted even if one fails. Restored records are
        discarded; records of files that could not be written are kept.

        Returns:
            Paths restored, in the order they were neutralized.

        Raises:
            NeutralizationError: If any file could not be restored.
        """
        restored: list[Path] = []
        failed: list[str] = []

        for path, record in list(self._records.items()):
            try:
                path.write_bytes(record.original_content)
            except OSError as e:
                logger.error("Failed to restore %s: %s", path, e)
                failed.append(f"{path} ({e})")
                continue
            del self._records[path]
            restored.append(path)

        if failed:
            msg = f"Could not restore {len(failed)} file(s): {', '.join(failed)}"
            raise NeutralizationError(msg)

        return restored
