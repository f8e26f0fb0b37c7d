"""Mapping entries and the persisted mapping-history shapes."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MappingKind = Literal["class", "attribute", "association", "datatype"]
MAPPING_KINDS: tuple[MappingKind, ...] = (
    "class",
    "attribute",
    "association",
    "datatype",
)


@dataclass
class MappingEntry:
    """
    One ontology entity and the IFC target chosen for it.

    `source` is the ontology name (for datatype entries, the range value),
    `domain` the declaring ontology class of an attribute or association.
    """

    source: str
    kind: MappingKind
    target: str | None = None
    property_set: str | None = None
    predefined_type: str | None = None
    verified: bool = False
    domain: str | None = None
    label: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind, self.source)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PersistedMappingRecord(BaseModel):
    target: str
    property_set: str | None = Field(default=None, alias="propertySet")
    predefined_type: str | None = Field(default=None, alias="predefinedType")
    usage_count: int = Field(default=0, alias="usageCount")
    last_used: str | None = Field(default=None, alias="lastUsed")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MappingStoreData(BaseModel):
    """Verified mappings per kind, keyed by source name."""

    class_mappings: dict[str, PersistedMappingRecord] = Field(
        default_factory=dict, alias="classMappings"
    )
    attribute_mappings: dict[str, PersistedMappingRecord] = Field(
        default_factory=dict, alias="attributeMappings"
    )
    association_mappings: dict[str, PersistedMappingRecord] = Field(
        default_factory=dict, alias="associationMappings"
    )
    type_mappings: dict[str, PersistedMappingRecord] = Field(
        default_factory=dict, alias="typeMappings"
    )
    last_updated: str | None = Field(default=None, alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def table(self, kind: MappingKind) -> dict[str, PersistedMappingRecord]:
        if kind == "class":
            return self.class_mappings
        if kind == "attribute":
            return self.attribute_mappings
        if kind == "association":
            return self.association_mappings
        if kind == "datatype":
            return self.type_mappings
        raise ValueError(f"Unknown mapping kind: {kind}")
