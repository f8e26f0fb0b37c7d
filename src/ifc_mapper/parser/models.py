"""Ontology model produced by the Turtle and RDF/XML parsers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

OntologyFormat = Literal["turtle", "rdfxml"]
PropertyKind = Literal["Datatype", "Object"]


@dataclass(frozen=True)
class OntologyClass:
    name: str
    label: str


@dataclass(frozen=True)
class OntologyProperty:
    name: str
    kind: PropertyKind
    label: str
    domain: str | None = None
    # datatype short form for Datatype kind, class name for Object kind
    range: str | None = None
    cardinality: str | None = None


@dataclass(frozen=True)
class SubclassEdge:
    child: str
    parent: str


@dataclass
class OntologyModel:
    format: OntologyFormat
    classes: list[OntologyClass] = field(default_factory=list)
    properties: list[OntologyProperty] = field(default_factory=list)
    subclass_edges: list[SubclassEdge] = field(default_factory=list)

    @property
    def datatype_properties(self) -> list[OntologyProperty]:
        return [p for p in self.properties if p.kind == "Datatype"]

    @property
    def object_properties(self) -> list[OntologyProperty]:
        return [p for p in self.properties if p.kind == "Object"]

    def class_names(self) -> list[str]:
        return [c.name for c in self.classes]

    def get_class(self, name: str) -> OntologyClass | None:
        for cls in self.classes:
            if cls.name == name:
                return cls
        return None

    def summary(self) -> dict[str, int]:
        return {
            "classes": len(self.classes),
            "datatype_properties": len(self.datatype_properties),
            "object_properties": len(self.object_properties),
            "subclass_edges": len(self.subclass_edges),
        }


class ParseError(ValueError):
    """Raised when the input is not recognizable as the requested format."""
