"""Pytest fixtures for all tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from ifc_mapper.mapping import MappingEngine, MappingSession, MappingStore
from ifc_mapper.parser import EXAMPLE_TURTLE, OntologyModel, parse
from ifc_mapper.schema import SchemaRepository
from ifc_mapper.state import MemoryStore


def _cls(
    code: str,
    parent: str | None = None,
    definition: str = "",
    properties: list[tuple[str, str | None]] | None = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "Code": code,
        "Name": code,
        "Definition": definition or f"{code} entity.",
        "ParentClassCode": parent,
    }
    if properties:
        data["ClassProperties"] = [
            {"PropertyCode": prop, "PropertySet": pset} for prop, pset in properties
        ]
    return data


BASE_SCHEMA: dict[str, Any] = {
    "ModelVersion": "IFC4",
    "DictionaryVersion": "test",
    "Classes": [
        _cls("IfcRoot"),
        _cls("IfcObjectDefinition", "IfcRoot"),
        _cls("IfcObject", "IfcObjectDefinition"),
        _cls("IfcProduct", "IfcObject"),
        _cls("IfcElement", "IfcProduct"),
        _cls("IfcBuildingElement", "IfcElement"),
        _cls(
            "IfcWall",
            "IfcBuildingElement",
            properties=[
                ("IsExternal", "Pset_WallCommon"),
                ("FireRating", "Pset_WallCommon"),
                ("LoadBearing", "Pset_WallCommon"),
                ("OverallHeight", "Qto_WallBaseQuantities"),
                ("Reference", None),
            ],
        ),
        _cls(
            "IfcWallSHEAR",
            "IfcWall",
            definition="IfcWall with predefined type SHEAR.",
        ),
        _cls(
            "IfcWallPARTITIONING",
            "IfcWall",
            definition="IfcWall with predefined type PARTITIONING.",
        ),
        _cls(
            "IfcDoor",
            "IfcBuildingElement",
            properties=[("IsExternal", "Pset_DoorCommon")],
        ),
        _cls("IfcWindow", "IfcBuildingElement"),
        _cls("IfcSpatialElement", "IfcProduct"),
        _cls("IfcSpace", "IfcSpatialElement"),
        _cls(
            "IfcBuilding",
            "IfcSpatialElement",
            properties=[("NumberOfStoreys", "Pset_BuildingCommon")],
        ),
    ],
}

HIERARCHY_TURTLE = """\
@prefix : <http://example.org/h#> .
@prefix owl: <http://www.w3.org/2002/07/owl#> .
@prefix rdfs: <http://www.w3.org/2000/01/rdf-schema#> .

:A a owl:Class .
:B a owl:Class ;
    rdfs:subClassOf :A .
"""


@pytest.fixture
def base_schema() -> dict[str, Any]:
    """A fresh copy of the small IFC dictionary used throughout the tests."""
    return copy.deepcopy(BASE_SCHEMA)


@pytest.fixture
def base_schema_file(tmp_path: Path, base_schema: dict[str, Any]) -> Path:
    path = tmp_path / "ifc_base_schema.json"
    path.write_text(json.dumps(base_schema), encoding="utf-8")
    return path


@pytest.fixture
def backend() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def repository(base_schema: dict[str, Any], backend: MemoryStore) -> SchemaRepository:
    return SchemaRepository(base_schema, backend=backend)


@pytest.fixture
def store(backend: MemoryStore) -> MappingStore:
    return MappingStore(backend)


@pytest.fixture
def engine(repository: SchemaRepository, store: MappingStore) -> MappingEngine:
    return MappingEngine(repository, store)


@pytest.fixture
def example_model() -> OntologyModel:
    return parse(EXAMPLE_TURTLE)


@pytest.fixture
def session(engine: MappingEngine, example_model: OntologyModel) -> MappingSession:
    return engine.build_session(example_model)


@pytest.fixture
def hierarchy_model() -> OntologyModel:
    """Two classes, B subClassOf A."""
    return parse(HIERARCHY_TURTLE)
