"""Dependency scanner for deleted components.

Finds source files that mention a deleted component by name. Matching
is a plain case-sensitive substring search over the raw file bytes: it
does not understand Apex, LWC or XML, so a name embedded in a longer
identifier, a comment or a string literal also counts as a reference.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

from sfhelper.core.errors import HelperError
from sfhelper.models.component import DeletionManifest, DependencyMatch

logger = logging.getLogger(__name__)


class ScanError(HelperError):
    """Raised when the source root cannot be scanned."""


class DependencyScanner:
    """Scans a source tree for references to deleted components.

    Attributes:
        source_root: Directory whose files are searched.

    Example:
        >>> scanner = DependencyScanner(Path("force-app"))
        >>> for match in scanner.scan(manifest):
        ...     print(match.file, match.sorted_members)
    """

    def __init__(self, source_root: Path) -> None:
        self._source_root = source_root

    @property
    def source_root(self) -> Path:
        """Directory whose files are searched."""
        return self._source_root

    def scan(self, manifest: DeletionManifest) -> tuple[DependencyMatch, ...]:
        """Find every file referencing at least one deleted component.

        An empty manifest returns immediately without touching the filesystem.

        Args:
            manifest: Components marked for deletion.

        Returns:
            One DependencyMatch per referencing file, sorted by path.

        Raises:
            ScanError: If the source root does not exist or is not a directory.
        """
        if manifest.is_empty:
            return ()

        if not self._source_root.is_dir():
            msg = f"Source directory not found: {self._source_root}"
            raise ScanError(msg)

        needles = [(name, name.encode("utf-8")) for name in manifest.names]
        matches: list[DependencyMatch] = []

        for path in self._iter_files():
            try:
                content = path.read_bytes()
            except OSError as e:
                logger.warning("Cannot read %s: %s", path, e)
                continue

            members = frozenset(name for name, needle in needles if needle in content)
            if members:
                logger.debug("%s references %s", path, ", ".join(sorted(members)))
                matches.append(DependencyMatch(file=path, members=members))

        return tuple(matches)

    def _iter_files(self) -> Iterator[Path]:
        """Yield regular files under the source root in sorted order.

        Symlinks are not followed so files outside the tree are never touched.
        """
        for path in sorted(self._source_root.rglob("*")):
            if path.is_symlink() or not path.is_file():
                continue
            yield path
