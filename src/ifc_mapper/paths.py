"""Centralized path discovery for the ifc-mapper package."""

from __future__ import annotations

from pathlib import Path


def find_project_root(start_dir: Path | None = None) -> Path | None:
    """Find the project root by searching upwards for pyproject.toml."""
    if start_dir is None:
        start_dir = Path.cwd()
    for base in (start_dir, *start_dir.parents):
        if (base / "pyproject.toml").is_file():
            return base
    return None


def _output_dir(start_dir: Path | None = None) -> Path:
    root = find_project_root(start_dir)
    if root is None:
        root = Path.cwd()
    return root / "output"


def find_base_schema_path(start_dir: Path | None = None) -> Path:
    """
    Returns the default path of the base IFC class/property dictionary.

    It sits in output/metadata/ifc_base_schema.json, the file written by
    `ifc-mapper-generate-base-schema`.  The file may not exist yet; the
    schema loader falls back to ifcopenshell's bundled schema in that case.
    """
    return _output_dir(start_dir) / "metadata" / "ifc_base_schema.json"


def find_state_dir(start_dir: Path | None = None) -> Path:
    """Directory holding the persisted mapping store and schema overlay."""
    return _output_dir(start_dir) / "mapper_state"
