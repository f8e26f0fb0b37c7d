"""Tests for mapping sessions: seeding, edits, verification and schema updates."""

from __future__ import annotations

import json

import pytest

from ifc_mapper.audit import AuditWriter, read_audit_events
from ifc_mapper.mapping import MappingEngine, MappingEntry, MappingError, MappingStore
from ifc_mapper.mapping.heuristics import (
    classify_datatype,
    default_attribute_target,
    default_class_target,
)
from ifc_mapper.schema import CUSTOM_PROPERTY_SET, SchemaRepository


def _targets(session, kind):
    return {e.source: e.target for e in session.entries(kind)}


# ── Heuristics ──────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("range_value", "expected"),
    [
        ("xsd:boolean", "Boolean"),
        ("xsd:dateTime", "DateTime"),
        ("xsd:date", "Date"),
        ("xsd:time", "Time"),
        ("xsd:integer", "Integer"),
        ("xsd:nonNegativeInteger", "Integer"),
        ("xsd:decimal", "Real"),
        ("http://www.w3.org/2001/XMLSchema#double", "Real"),
        ("xsd:string", "String"),
        ("xsd:anyURI", "String"),
    ],
)
def test_classify_datatype(range_value, expected):
    assert classify_datatype(range_value) == expected


def test_default_class_target():
    assert default_class_target("Room") == "IfcSpace"
    assert default_class_target("Thing", "Wall") == "IfcWall"
    assert default_class_target("ifcwallstandardcase") == "IfcWallStandardCase"
    assert default_class_target("IfcSlab") == "IfcSlab"
    assert default_class_target("Pump") == "IfcProduct"


def test_default_attribute_target():
    assert default_attribute_target("hasHeight") == "OverallHeight"
    assert default_attribute_target("is_external") == "IsExternal"
    assert default_attribute_target("thermalMass") == "THERMALMASS"


# ── Seeding ─────────────────────────────────────────────────────────────


def test_one_entry_per_class(session):
    classes = session.entries("class")

    assert [e.source for e in classes] == [
        "Building",
        "BuildingElement",
        "Wall",
        "Door",
        "Material",
    ]
    assert _targets(session, "class") == {
        "Building": "IfcBuilding",
        "BuildingElement": "IfcBuildingElement",
        "Wall": "IfcWall",
        "Door": "IfcDoor",
        "Material": "IfcProduct",
    }
    assert not any(e.verified for e in session.entries())


def test_attribute_defaults(session):
    height = session.entry("attribute", "hasHeight")
    external = session.entry("attribute", "isExternal")

    assert height.target == "OverallHeight"
    assert height.property_set == "Qto_WallBaseQuantities"
    assert height.domain == "Wall"
    assert external.target == "IsExternal"
    assert external.property_set == "Pset_WallCommon"


def test_association_falls_back_to_first_property(session, repository):
    material = session.entry("association", "hasMaterial")

    assert material.target == repository.all_properties()[0]
    assert material.property_set is not None


def test_association_substring_match(engine):
    from ifc_mapper.parser import parse

    model = parse(
        """\
@prefix : <http://example.org/o#> .
@prefix owl: <http://www.w3.org/2002/07/owl#> .
@prefix rdfs: <http://www.w3.org/2000/01/rdf-schema#> .
:Wall a owl:Class .
:hasFireRatingClass a owl:ObjectProperty ; rdfs:domain :Wall .
"""
    )
    session = engine.build_session(model)

    assert session.entry("association", "hasFireRatingClass").target == "FireRating"


def test_datatype_entries(session):
    assert _targets(session, "datatype") == {
        "xsd:decimal": "Real",
        "xsd:boolean": "Boolean",
    }


def test_summary_and_domains(session):
    assert session.summary() == {
        "class": 5,
        "attribute": 2,
        "association": 1,
        "datatype": 2,
        "verified": 0,
        "unmapped": 0,
    }
    assert session.domains() == ["Wall"]
    assert {e.source for e in session.entries_for_domain("Wall")} == {
        "hasHeight",
        "isExternal",
        "hasMaterial",
    }


def test_to_dict_is_json_serializable(session):
    data = json.loads(json.dumps(session.to_dict()))

    assert data["format"] == "turtle"
    assert len(data["entries"]) == 10


def test_suggest_targets(session):
    wall = session.entry("class", "Wall")
    suggestions = session.suggest_targets(wall, limit=3)

    assert suggestions[0][0] == "IfcWall"
    assert len(suggestions) == 3

    decimal = session.entry("datatype", "xsd:decimal")
    assert "Real" in [c for c, _ in session.suggest_targets(decimal, limit=7)]


# ── Edits ───────────────────────────────────────────────────────────────


def test_set_target_splits_predefined_type(session):
    wall = session.entry("class", "Wall")

    session.set_target(wall, "IfcWallSHEAR")

    assert wall.target == "IfcWall"
    assert wall.predefined_type == "SHEAR"


def test_changing_base_class_drops_foreign_predefined_type(session):
    wall = session.entry("class", "Wall")
    session.set_target(wall, "IfcWallSHEAR")

    session.set_target(wall, "IfcDoor")

    assert wall.target == "IfcDoor"
    assert wall.predefined_type is None


def test_set_predefined_type(session):
    wall = session.entry("class", "Wall")

    session.set_predefined_type(wall, "partitioning")
    assert wall.predefined_type == "PARTITIONING"

    with pytest.raises(MappingError):
        session.set_predefined_type(wall, "CURTAIN")
    with pytest.raises(MappingError):
        session.set_predefined_type(session.entry("attribute", "hasHeight"), "X")


def test_any_change_revokes_verification(session):
    wall = session.entry("class", "Wall")
    session.verify(wall)
    assert wall.verified

    session.set_target(wall, "IfcWall")
    assert wall.verified

    session.set_target(wall, "IfcWindow")
    assert not wall.verified


def test_set_property_set_clears_foreign_target(session, repository):
    height = session.entry("attribute", "hasHeight")
    repository.add_custom_property_set("Pset_Acoustics")

    session.set_property_set(height, "Pset_Acoustics")

    assert height.property_set == "Pset_Acoustics"
    assert height.target is None
    assert not height.verified


def test_set_property_set_keeps_member_target(session, repository):
    height = session.entry("attribute", "hasHeight")
    repository.add_custom_property_set("Pset_Dimensions")
    repository.add_property_to_custom_set("Pset_Dimensions", "OverallHeight")

    session.set_property_set(height, "Pset_Dimensions")

    assert height.target == "OverallHeight"
    assert height.property_set == "Pset_Dimensions"


def test_set_property_set_on_class_raises(session):
    with pytest.raises(MappingError):
        session.set_property_set(session.entry("class", "Wall"), "Pset_WallCommon")


def test_foreign_entry_is_rejected(session):
    stranger = MappingEntry(source="Wall", kind="class", target="IfcWall")

    with pytest.raises(MappingError):
        session.set_target(stranger, "IfcDoor")
    with pytest.raises(MappingError):
        session.entry("class", "Nope")


# ── Verification ────────────────────────────────────────────────────────


def test_verify_requires_target(session):
    wall = session.entry("class", "Wall")
    session.set_target(wall, None)

    with pytest.raises(MappingError):
        session.verify(wall)


def test_verified_mappings_are_restored(engine, example_model, backend, repository):
    session = engine.build_session(example_model)
    session.set_target(session.entry("class", "Wall"), "IfcWallSHEAR")
    session.verify(session.entry("class", "Wall"))
    session.verify(session.entry("attribute", "hasHeight"))

    restored_engine = MappingEngine(repository, MappingStore(backend))
    restored = restored_engine.build_session(example_model)

    wall = restored.entry("class", "Wall")
    assert (wall.target, wall.predefined_type, wall.verified) == (
        "IfcWall",
        "SHEAR",
        True,
    )
    height = restored.entry("attribute", "hasHeight")
    assert (height.target, height.property_set, height.verified) == (
        "OverallHeight",
        "Qto_WallBaseQuantities",
        True,
    )
    assert not restored.entry("class", "Door").verified


def test_verify_all(session, store):
    count = session.verify_all(["class"])

    assert count == 5
    assert len(session.verified_entries()) == 5
    assert session.verify_all(["class"]) == 0
    assert len(store) == 5


def test_verifying_unknown_class_adopts_it(session, repository):
    material = session.entry("class", "Material")
    session.set_target(material, "IfcMaterialLayer")

    session.verify(material)

    assert repository.has_class("IfcMaterialLayer")
    assert repository.get_class("IfcMaterialLayer").name == "Material"


def test_verifying_unknown_property_adopts_it(session, repository):
    height = session.entry("attribute", "hasHeight")
    session.set_property_set(height, None)
    session.set_target(height, "WallHeight")

    session.verify(height)

    assert height.property_set == CUSTOM_PROPERTY_SET
    assert "WallHeight" in repository.properties_of_class("IfcWall")
    assert repository.custom_property_sets()[CUSTOM_PROPERTY_SET] == ["WallHeight"]


def test_known_targets_are_not_adopted(session, repository):
    generation = repository.generation
    known = [
        session.entry("class", "Wall"),
        session.entry("attribute", "hasHeight"),
        session.entry("datatype", "xsd:decimal"),
    ]

    assert [session.adopt_missing_target(e) for e in known] == [False] * 3
    assert repository.generation == generation


# ── Schema notifications ────────────────────────────────────────────────


def test_removing_property_set_clears_mappings(session, repository):
    height = session.entry("attribute", "hasHeight")
    repository.add_custom_property_set("Pset_Acoustics")
    session.set_property_set(height, "Pset_Acoustics")
    session.set_target(height, "ReverberationTime")
    session.verify(height)
    assert "ReverberationTime" in repository.properties_of_class("IfcWall")

    repository.remove_custom_property_set("Pset_Acoustics")

    assert height.target is None
    assert height.property_set is None
    assert not height.verified
    assert "ReverberationTime" not in repository.properties_of_class("IfcWall")


def test_removing_property_from_set_clears_mapping(session, repository):
    height = session.entry("attribute", "hasHeight")
    external = session.entry("attribute", "isExternal")
    repository.add_custom_property_set("Pset_Acoustics")
    repository.add_property_to_custom_set("Pset_Acoustics", "NRC")
    session.set_property_set(height, "Pset_Acoustics")
    session.set_target(height, "NRC")

    repository.remove_property_from_custom_set("Pset_Acoustics", "NRC")

    assert height.target is None
    assert height.property_set == "Pset_Acoustics"
    assert external.target == "IsExternal"


def test_clear_overlay_clears_custom_mappings(session, repository):
    height = session.entry("attribute", "hasHeight")
    session.set_property_set(height, None)
    session.set_target(height, "WallHeight")
    session.verify(height)

    repository.clear_overlay()

    assert height.target is None
    assert height.property_set is None
    assert session.entry("attribute", "isExternal").target == "IsExternal"


def test_removed_property_set_is_not_restored(
    engine, session, example_model, repository, store
):
    height = session.entry("attribute", "hasHeight")
    repository.add_custom_property_set("Pset_Acoustics")
    session.set_property_set(height, "Pset_Acoustics")
    session.set_target(height, "ReverberationTime")
    session.verify(height)
    assert store.record_for("attribute", "hasHeight") is not None

    repository.remove_custom_property_set("Pset_Acoustics")

    assert store.record_for("attribute", "hasHeight") is None
    rebuilt = engine.build_session(example_model).entry("attribute", "hasHeight")
    assert (rebuilt.target, rebuilt.property_set, rebuilt.verified) == (
        "OverallHeight",
        "Qto_WallBaseQuantities",
        False,
    )


def test_removed_member_record_is_forgotten(session, repository, store):
    height = session.entry("attribute", "hasHeight")
    external = session.entry("attribute", "isExternal")
    repository.add_custom_property_set("Pset_Acoustics")
    session.set_property_set(height, "Pset_Acoustics")
    session.set_target(height, "NRC")
    session.verify(height)
    session.verify(external)

    repository.remove_property_from_custom_set("Pset_Acoustics", "NRC")

    assert store.record_for("attribute", "hasHeight") is None
    assert store.record_for("attribute", "isExternal").target == "IsExternal"


def test_clear_overlay_forgets_custom_records(
    engine, session, example_model, repository, store
):
    height = session.entry("attribute", "hasHeight")
    session.set_property_set(height, None)
    session.set_target(height, "WallHeight")
    session.verify(height)
    session.verify(session.entry("class", "Wall"))

    repository.clear_overlay()

    assert store.record_for("attribute", "hasHeight") is None
    assert store.record_for("class", "Wall") is not None
    rebuilt = engine.build_session(example_model)
    assert not rebuilt.entry("attribute", "hasHeight").verified
    assert rebuilt.entry("class", "Wall").verified


def test_record_with_vanished_property_set_is_not_verified(
    repository, example_model
):
    store = MappingStore()
    store.record_verification(
        MappingEntry(
            source="hasHeight",
            kind="attribute",
            target="ReverberationTime",
            property_set="Pset_Gone",
        )
    )

    height = (
        MappingEngine(repository, store)
        .build_session(example_model)
        .entry("attribute", "hasHeight")
    )

    assert (height.target, height.property_set, height.verified) == (
        None,
        None,
        False,
    )


def test_record_with_target_missing_from_class_is_pending(
    repository, example_model
):
    store = MappingStore()
    store.record_verification(
        MappingEntry(source="isExternal", kind="attribute", target="Colour")
    )

    session = MappingEngine(repository, store).build_session(example_model)
    external = session.entry("attribute", "isExternal")

    assert (external.target, external.verified) == ("Colour", False)
    session.verify(external)
    assert "Colour" in repository.properties_of_class("IfcWall")


def test_new_session_detaches_previous(engine, example_model, repository):
    first = engine.build_session(example_model)
    second = engine.build_session(example_model)
    assert engine.current_session is second

    height = first.entry("attribute", "hasHeight")
    repository.add_custom_property_set("Pset_Acoustics")
    first.set_property_set(height, "Pset_Acoustics")
    first.set_target(height, "NRC")
    repository.add_property_to_custom_set("Pset_Acoustics", "NRC")

    repository.remove_custom_property_set("Pset_Acoustics")

    assert height.target == "NRC"


def test_audit_trail(tmp_path, base_schema, example_model):
    path = tmp_path / "audit" / "events.jsonl"
    audit = AuditWriter(path)
    engine = MappingEngine(SchemaRepository(base_schema), audit=audit)
    session = engine.build_session(example_model)

    material = session.entry("class", "Material")
    session.set_target(material, "IfcMaterialLayer")
    session.verify(material)
    audit.close()

    events = [json.loads(line) for line in path.read_text().splitlines()]
    assert [e["event"] for e in events] == ["adopt_class", "verify"]
    assert events[1]["payload"]["target"] == "IfcMaterialLayer"
    assert events[1]["session_id"] == session.session_id


def test_audit_trail_records_removals(tmp_path, base_schema, example_model):
    path = tmp_path / "events.jsonl"
    repository = SchemaRepository(base_schema)
    with AuditWriter(path) as audit:
        session = MappingEngine(repository, audit=audit).build_session(example_model)
        height = session.entry("attribute", "hasHeight")
        repository.add_custom_property_set("Pset_Acoustics")
        session.set_property_set(height, "Pset_Acoustics")
        session.set_target(height, "NRC")
        session.verify(height)
        repository.remove_custom_property_set("Pset_Acoustics")

    events = {e.event: e for e in read_audit_events(path)}
    assert events["property_set_changed"].payload["property_set"] == "Pset_Acoustics"
    assert events["mappings_forgotten"].payload == {
        "kind": "attribute",
        "action": "remove-property-set",
        "sources": ["hasHeight"],
    }
    assert events["mappings_cleared"].payload["sources"] == ["hasHeight"]
    assert events["mappings_forgotten"].session_id == session.session_id
