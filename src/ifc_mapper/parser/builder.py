"""Accumulates per-subject facts from either syntax into an OntologyModel."""

from __future__ import annotations

from dataclasses import dataclass, field

from ifc_mapper.parser.labels import derive_label
from ifc_mapper.parser.models import (
    OntologyClass,
    OntologyFormat,
    OntologyModel,
    OntologyProperty,
    PropertyKind,
    SubclassEdge,
)

CLASS_TYPES = frozenset({"owl:Class", "rdfs:Class"})
PROPERTY_TYPES: dict[str, PropertyKind] = {
    "owl:ObjectProperty": "Object",
    "owl:DatatypeProperty": "Datatype",
}


@dataclass
class _Facts:
    types: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)
    # (datatype short form, class local name); the property kind, which may
    # be declared later, picks one
    ranges: list[tuple[str, str]] = field(default_factory=list)
    cardinalities: list[str] = field(default_factory=list)


class OntologyBuilder:
    def __init__(self, fmt: OntologyFormat) -> None:
        self._format = fmt
        self._facts: dict[str, _Facts] = {}
        self._edges: list[SubclassEdge] = []

    def _subject(self, name: str) -> _Facts:
        return self._facts.setdefault(name, _Facts())

    def add_type(self, name: str, type_key: str) -> None:
        self._subject(name).types.append(type_key)

    def add_label(self, name: str, label: str) -> None:
        label = label.strip()
        if label:
            self._subject(name).labels.append(label)

    def add_domain(self, name: str, domain: str) -> None:
        if domain:
            self._subject(name).domains.append(domain)

    def add_range(self, name: str, datatype: str, class_name: str) -> None:
        self._subject(name).ranges.append((datatype, class_name))

    def add_cardinality(self, name: str, constraint: str) -> None:
        facts = self._subject(name)
        if constraint not in facts.cardinalities:
            facts.cardinalities.append(constraint)

    def add_subclass(self, child: str, parent: str) -> None:
        if not child or not parent:
            return
        edge = SubclassEdge(child=child, parent=parent)
        if edge not in self._edges:
            self._edges.append(edge)

    def build(self) -> OntologyModel:
        classes: list[OntologyClass] = []
        properties: list[OntologyProperty] = []
        for name, facts in self._facts.items():
            label = facts.labels[0] if facts.labels else derive_label(name)
            if any(t in CLASS_TYPES for t in facts.types):
                classes.append(OntologyClass(name=name, label=label))
            kind = next(
                (PROPERTY_TYPES[t] for t in facts.types if t in PROPERTY_TYPES), None
            )
            if kind is None:
                continue
            range_value: str | None = None
            if facts.ranges:
                datatype, class_name = facts.ranges[0]
                range_value = datatype if kind == "Datatype" else class_name
            properties.append(
                OntologyProperty(
                    name=name,
                    kind=kind,
                    label=label,
                    domain=facts.domains[0] if facts.domains else None,
                    range=range_value or None,
                    cardinality=", ".join(facts.cardinalities) or None,
                )
            )
        return OntologyModel(
            format=self._format,
            classes=classes,
            properties=properties,
            subclass_edges=list(self._edges),
        )
