"""
PredefinedType handling for dictionary class codes.

Enumerated subtypes are encoded in the dictionary as their own classes whose
code is the parent code plus an upper-case suffix, e.g. `IfcWallSHEAR` under
`IfcWall`.  A class only counts as such a subtype when it has a parent code
and its definition mentions "predefined type"; ordinary subclasses such as
`IfcWallStandardCase` never match the suffix pattern anyway.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ifc_mapper.schema.models import SchemaClass
    from ifc_mapper.schema.registry import SchemaRepository

_SUFFIX_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")


@dataclass(frozen=True)
class ClassCodeParts:
    base_class: str
    predefined_type: str | None = None


def _predefined_suffix(cls: SchemaClass) -> str | None:
    parent = cls.parent_code
    if not parent or "predefined type" not in cls.definition.lower():
        return None
    if not cls.code.startswith(parent):
        return None
    suffix = cls.code[len(parent):]
    return suffix if _SUFFIX_RE.match(suffix) else None


def parse_class_code(repository: SchemaRepository, code: str) -> ClassCodeParts:
    """Split a class code into its base class and PredefinedType, if any."""
    code = code.strip()

    def _parse() -> ClassCodeParts:
        cls = repository.get_class(code)
        suffix = _predefined_suffix(cls) if cls is not None else None
        if cls is None or not suffix:
            return ClassCodeParts(base_class=code)
        return ClassCodeParts(
            base_class=cls.parent_code or code, predefined_type=suffix
        )

    return repository.cached(("class-code", code), _parse)


def predefined_types_for(repository: SchemaRepository, base_class: str) -> list[str]:
    """Sorted PredefinedType values declared as subclasses of `base_class`."""

    def _collect() -> list[str]:
        found: set[str] = set()
        for cls in repository.merged_classes():
            if cls.parent_code != base_class:
                continue
            suffix = _predefined_suffix(cls)
            if suffix:
                found.add(suffix)
        return sorted(found)

    return list(repository.cached(("predefined-types", base_class), _collect))


def compose_class_code(base_class: str, predefined_type: str | None) -> str:
    if not predefined_type:
        return base_class
    return f"{base_class}{predefined_type}"
