"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

PACKAGE_NS = "http://soap.sforce.com/2006/04/metadata"


def manifest_xml(types: dict[str, list[str]], namespace: str | None = PACKAGE_NS) -> str:
    """Render a package manifest with the given <types> blocks."""
    xmlns = f' xmlns="{namespace}"' if namespace else ""
    blocks = []
    for name, members in types.items():
        lines = [f"        <members>{m}</members>" for m in members]
        blocks.append(
            "    <types>\n" + "\n".join(lines) + f"\n        <name>{name}</name>\n    </types>"
        )
    body = "\n".join(blocks)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f"<Package{xmlns}>\n{body}\n    <version>60.0</version>\n</Package>\n"
    )


@pytest.fixture
def write_manifest(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a manifest file under tmp_path."""

    def _write(
        types: dict[str, list[str]],
        name: str = "destructiveChanges.xml",
        namespace: str | None = PACKAGE_NS,
    ) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(manifest_xml(types, namespace), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    """A small force-app tree; OldHelper is referenced by two files."""
    root = tmp_path / "force-app" / "main" / "default"
    classes = root / "classes"
    classes.mkdir(parents=True)
    (classes / "A.cls").write_bytes(
        b"public class A {\n    void run() {\n        OldHelper.go();\n    }\n}\n"
    )
    (classes / "B.cls").write_bytes(b"public class B {\n    Integer x = 1;\n}\n")
    (classes / "C.cls").write_bytes(
        b"public class C {\n    OldHelper h;\n    Other o = OldHelper.make();\n}\n"
    )
    return tmp_path / "force-app"
