"""Tests for the verified-mapping history."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from ifc_mapper.mapping import MappingEntry, MappingStore
from ifc_mapper.state import MAPPINGS_KEY, MemoryStore


def test_record_verification_counts_usage(backend):
    store = MappingStore(backend)
    entry = MappingEntry(
        source="Wall", kind="class", target="IfcWall", predefined_type="SHEAR"
    )
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    store.record_verification(entry, now=now)
    record = store.record_verification(entry, now=now)

    assert record.usage_count == 2
    assert record.last_used == "2024-05-01T12:00:00+00:00"
    assert store.data.last_updated == record.last_used
    assert len(store) == 1

    persisted = json.loads(backend.get(MAPPINGS_KEY))
    assert persisted["classMappings"]["Wall"] == {
        "target": "IfcWall",
        "propertySet": None,
        "predefinedType": "SHEAR",
        "usageCount": 2,
        "lastUsed": "2024-05-01T12:00:00+00:00",
    }


def test_record_without_target_raises():
    store = MappingStore()

    with pytest.raises(ValueError):
        store.record_verification(MappingEntry(source="Wall", kind="class"))


def test_tables_are_kept_apart():
    store = MappingStore()
    store.record_verification(
        MappingEntry(source="hasHeight", kind="attribute", target="OverallHeight")
    )
    store.record_verification(
        MappingEntry(source="xsd:decimal", kind="datatype", target="Real")
    )

    assert store.record_for("attribute", "hasHeight").target == "OverallHeight"
    assert store.record_for("datatype", "xsd:decimal").target == "Real"
    assert store.record_for("class", "hasHeight") is None
    assert len(store) == 2


def test_restored_from_backend(backend):
    MappingStore(backend).record_verification(
        MappingEntry(
            source="hasHeight",
            kind="attribute",
            target="OverallHeight",
            property_set="Qto_WallBaseQuantities",
        )
    )

    restored = MappingStore(backend)
    record = restored.record_for("attribute", "hasHeight")

    assert record.property_set == "Qto_WallBaseQuantities"
    assert record.usage_count == 1


def test_forget_writes_through(backend):
    store = MappingStore(backend)
    for source in ("hasHeight", "isExternal"):
        store.record_verification(
            MappingEntry(source=source, kind="attribute", target=source.upper())
        )

    assert store.forget("attribute", "hasHeight", "missing") == ["hasHeight"]
    assert store.forget("class", "hasHeight") == []

    restored = MappingStore(backend)
    assert restored.record_for("attribute", "hasHeight") is None
    assert list(restored.records("attribute")) == ["isExternal"]


def test_json_round_trip():
    store = MappingStore()
    store.record_verification(
        MappingEntry(source="Wall", kind="class", target="IfcWall")
    )

    copy = MappingStore.from_json(store.to_json())

    assert copy.record_for("class", "Wall").target == "IfcWall"


def test_unreadable_history_is_ignored():
    store = MappingStore(MemoryStore({MAPPINGS_KEY: "not json"}))

    assert len(store) == 0


def test_clear(backend):
    store = MappingStore(backend)
    store.record_verification(
        MappingEntry(source="Wall", kind="class", target="IfcWall")
    )

    store.clear()

    assert len(store) == 0
    assert len(MappingStore(backend)) == 0
