"""Component models for destructive changes.

This module defines the data structures describing components marked
for deletion, the source files that reference them, and the records
needed to undo a neutralization.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class DeletedComponent:
    """A single metadata component marked for removal.

    Attributes:
        name: Component API name as declared in the manifest (e.g., 'Account_Trigger_Helper').
        kind: Metadata type from the enclosing <types> block (e.g., 'ApexClass').
    """

    name: str
    kind: str | None = None

    def __post_init__(self) -> None:
        """Validate component data after initialization."""
        if not self.name:
            msg = "Component name cannot be empty"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class DeletionManifest:
    """Ordered collection of components parsed from a destructive manifest.

    An empty manifest means there are no destructive changes, which is a
    valid and common state.

    Attributes:
        components: Components in declaration order (may contain duplicates).
        path: File the manifest was read from, None if it was absent.
    """

    components: tuple[DeletedComponent, ...] = ()
    path: Path | None = None

    @property
    def names(self) -> tuple[str, ...]:
        """Unique component names in first-seen order."""
        return tuple(dict.fromkeys(c.name for c in self.components))

    @property
    def is_empty(self) -> bool:
        """Check if the manifest declares no components."""
        return not self.components

    def __len__(self) -> int:
        return len(self.names)


@dataclass(frozen=True, slots=True)
class DependencyMatch:
    """A source file and the deleted components textually found in it.

    Attributes:
        file: Path of the referencing source file.
        members: Names of deleted components occurring in the file.
    """

    file: Path
    members: frozenset[str] = field(default_factory=frozenset)

    @property
    def sorted_members(self) -> list[str]:
        """Members in alphabetical order for display."""
        return sorted(self.members)


@dataclass(frozen=True, slots=True)
class NeutralizationRecord:
    """Pre-mutation snapshot of one neutralized file.

    Attributes:
        file: Path of the mutated file.
        original_content: Exact bytes of the file before mutation.
    """

    file: Path
    original_content: bytes
