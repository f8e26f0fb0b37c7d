"""Pydantic models for the IFC class/property dictionary file."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# bucket for properties that carry no PropertySet in the dictionary
DEFAULT_PROPERTY_SET = "General"
# custom set used when a property is adopted without a chosen PropertySet
CUSTOM_PROPERTY_SET = "CustomProperties"


class SchemaProperty(BaseModel):
    """A property attached to a class, grouped under a PropertySet."""

    property_code: str = Field(alias="PropertyCode")
    code: str | None = Field(default=None, alias="Code")
    property_set: str | None = Field(default=None, alias="PropertySet")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _fill_property_code(cls, value: Any) -> Any:
        """Some dictionary exports only carry `Code`; use it as the property code."""
        if isinstance(value, dict):
            if not value.get("PropertyCode") and not value.get("property_code"):
                code = value.get("Code") or value.get("code")
                if code:
                    value = {**value, "PropertyCode": code}
        return value

    @property
    def effective_property_set(self) -> str:
        return (self.property_set or "").strip() or DEFAULT_PROPERTY_SET


class SchemaClass(BaseModel):
    code: str = Field(alias="Code")
    name: str = Field(default="", alias="Name")
    definition: str = Field(default="", alias="Definition")
    parent_code: str | None = Field(default=None, alias="ParentClassCode")
    properties: list[SchemaProperty] = Field(
        default_factory=list, alias="ClassProperties"
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _normalize_nulls(cls, value: Any) -> Any:
        if isinstance(value, dict):
            value = dict(value)
            for key in ("Name", "Definition"):
                if value.get(key) is None:
                    value.pop(key, None)
            if value.get("ClassProperties") is None:
                value.pop("ClassProperties", None)
            parent = value.get("ParentClassCode")
            if isinstance(parent, str) and not parent.strip():
                value["ParentClassCode"] = None
        return value


class SchemaDictionary(BaseModel):
    """Base dictionary or overlay, in the file shape `{Classes: [...], ...}`."""

    classes: list[SchemaClass] = Field(default_factory=list, alias="Classes")
    model_version: str | None = Field(default=None, alias="ModelVersion")
    dictionary_version: str | None = Field(default=None, alias="DictionaryVersion")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
