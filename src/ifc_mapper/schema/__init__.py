"""Base IFC dictionary, custom overlay and PredefinedType handling."""

from __future__ import annotations

from .models import (
    CUSTOM_PROPERTY_SET,
    DEFAULT_PROPERTY_SET,
    SchemaClass,
    SchemaDictionary,
    SchemaProperty,
)
from .predefined_types import (
    ClassCodeParts,
    compose_class_code,
    parse_class_code,
    predefined_types_for,
)
from .registry import (
    HierarchyEdges,
    SchemaChange,
    SchemaError,
    SchemaLoadError,
    SchemaRepository,
)

__all__ = [
    "CUSTOM_PROPERTY_SET",
    "DEFAULT_PROPERTY_SET",
    "ClassCodeParts",
    "HierarchyEdges",
    "SchemaChange",
    "SchemaClass",
    "SchemaDictionary",
    "SchemaError",
    "SchemaLoadError",
    "SchemaProperty",
    "SchemaRepository",
    "compose_class_code",
    "parse_class_code",
    "predefined_types_for",
]
