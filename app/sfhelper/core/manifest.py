"""Deletion manifest parsing.

This module reads Salesforce package manifests (package.xml and
destructiveChanges.xml) into typed records. Only the <types> blocks
matter here: every <members> entry names one component and the
sibling <name> element gives its metadata type.
"""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from pathlib import Path

from sfhelper.core.errors import ErrorKind, HelperError
from sfhelper.models.component import DeletedComponent, DeletionManifest

logger = logging.getLogger(__name__)

# Members matching everything of a type cannot be searched for textually
WILDCARD_MEMBER = "*"


class ManifestParseError(HelperError):
    """Raised when a manifest file is malformed or unreadable."""

    kind = ErrorKind.MANIFEST_PARSE

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse manifest {path}: {reason}")


def _local_name(tag: str) -> str:
    """Strip an XML namespace from a tag ('{ns}members' -> 'members')."""
    return tag.rsplit("}", 1)[-1]


def _parse_root(path: Path) -> ET.Element:
    try:
        return ET.parse(path).getroot()
    except ET.ParseError as e:
        raise ManifestParseError(path, str(e)) from e
    except OSError as e:
        raise ManifestParseError(path, f"cannot read file: {e}") from e


def _iter_components(
    root: ET.Element,
    *,
    warn_wildcards: bool = True,
) -> Iterator[DeletedComponent]:
    """Yield components from every <types> block in document order."""
    for types in root.iter():
        if _local_name(types.tag) != "types":
            continue

        kind: str | None = None
        members: list[str] = []
        for child in types:
            text = (child.text or "").strip()
            tag = _local_name(child.tag)
            if tag == "name" and text:
                kind = text
            elif tag == "members" and text:
                members.append(text)

        for member in members:
            if member == WILDCARD_MEMBER:
                if warn_wildcards:
                    logger.warning("Skipping wildcard member for type %s", kind or "<unknown>")
                continue
            yield DeletedComponent(name=member, kind=kind)


def read_deletion_manifest(path: Path | None) -> DeletionManifest:
    """Read a destructive changes manifest.

    A missing manifest means there is nothing to delete and yields an
    empty DeletionManifest rather than an error.

    Args:
        path: Path to destructiveChanges.xml, or None.

    Returns:
        DeletionManifest with components in declaration order.

    Raises:
        ManifestParseError: If the file exists but cannot be parsed.
    """
    if path is None or not path.exists():
        logger.debug("No destructive manifest at %s", path)
        return DeletionManifest()

    root = _parse_root(path)
    if _local_name(root.tag) != "Package":
        raise ManifestParseError(path, f"unexpected root element <{_local_name(root.tag)}>")

    components = tuple(_iter_components(root))
    logger.info("Read %d component(s) from %s", len(components), path)
    return DeletionManifest(components=components, path=path)


def count_manifest_members(path: Path) -> int:
    """Count the components declared in a package manifest.

    Args:
        path: Path to a package.xml.

    Returns:
        Number of non-wildcard members declared.

    Raises:
        ManifestParseError: If the file cannot be parsed.
    """
    return sum(1 for _ in _iter_components(_parse_root(path), warn_wildcards=False))
