"""Unit tests for component models.

Tests for DeletedComponent, DeletionManifest, DependencyMatch and
NeutralizationRecord.
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from sfhelper.models.component import (
    DeletedComponent,
    DeletionManifest,
    DependencyMatch,
    NeutralizationRecord,
)


class TestDeletedComponent:
    """Tests for DeletedComponent dataclass."""

    def test_create_with_kind(self) -> None:
        """DeletedComponent keeps name and metadata type."""
        component = DeletedComponent(name="OldHelper", kind="ApexClass")
        assert component.name == "OldHelper"
        assert component.kind == "ApexClass"

    def test_kind_is_optional(self) -> None:
        """DeletedComponent kind defaults to None."""
        assert DeletedComponent(name="OldHelper").kind is None

    def test_empty_name_raises(self) -> None:
        """DeletedComponent rejects an empty name."""
        with pytest.raises(ValueError, match="cannot be empty"):
            DeletedComponent(name="")

    def test_is_immutable(self) -> None:
        """DeletedComponent cannot be modified."""
        component = DeletedComponent(name="OldHelper")
        with pytest.raises(FrozenInstanceError):
            component.name = "Other"  # type: ignore[misc]


class TestDeletionManifest:
    """Tests for DeletionManifest dataclass."""

    def test_default_is_empty(self) -> None:
        """A default manifest has no components and no path."""
        manifest = DeletionManifest()
        assert manifest.is_empty
        assert manifest.path is None
        assert len(manifest) == 0
        assert manifest.names == ()

    def test_names_are_unique_in_declaration_order(self) -> None:
        """names drops duplicates but keeps first-seen order."""
        manifest = DeletionManifest(
            components=(
                DeletedComponent("Zeta", "ApexClass"),
                DeletedComponent("Alpha", "ApexClass"),
                DeletedComponent("Zeta", "ApexTrigger"),
            )
        )
        assert manifest.names == ("Zeta", "Alpha")
        assert len(manifest) == 2
        assert not manifest.is_empty


class TestDependencyMatch:
    """Tests for DependencyMatch dataclass."""

    def test_sorted_members(self) -> None:
        """sorted_members returns members alphabetically."""
        match = DependencyMatch(file=Path("a.cls"), members=frozenset({"b", "a", "c"}))
        assert match.sorted_members == ["a", "b", "c"]

    def test_equal_matches(self) -> None:
        """Matches with the same file and members compare equal."""
        first = DependencyMatch(Path("a.cls"), frozenset({"X"}))
        second = DependencyMatch(Path("a.cls"), frozenset({"X"}))
        assert first == second


class TestNeutralizationRecord:
    """Tests for NeutralizationRecord dataclass."""

    def test_keeps_exact_bytes(self) -> None:
        """The record stores the original content byte for byte."""
        content = b"line one\r\nline two\xff\n"
        record = NeutralizationRecord(file=Path("a.cls"), original_content=content)
        assert record.original_content == content
