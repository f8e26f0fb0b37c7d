"""Ontology-to-IFC mapping sessions and the verified-mapping history."""

from __future__ import annotations

from .engine import MappingEngine, MappingError, MappingSession
from .models import (
    MAPPING_KINDS,
    MappingEntry,
    MappingKind,
    MappingStoreData,
    PersistedMappingRecord,
)
from .store import MappingStore

__all__ = [
    "MAPPING_KINDS",
    "MappingEngine",
    "MappingEntry",
    "MappingError",
    "MappingKind",
    "MappingSession",
    "MappingStore",
    "MappingStoreData",
    "PersistedMappingRecord",
]
