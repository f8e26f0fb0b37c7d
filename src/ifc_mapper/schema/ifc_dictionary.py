"""
ifc_dictionary.py

Builds the base class/property dictionary the mapper maps onto.

Where the dictionary comes from
-------------------------------
Normally from a JSON file in the bSDD-like shape
`{Classes: [{Code, Name, Definition, ParentClassCode, ClassProperties}], ...}`
(output/metadata/ifc_base_schema.json by default, or IFC_MAPPER_BASE_SCHEMA).

If that file isn't there we build the same structure on the fly:
  - the class hierarchy comes from ifcopenshell's built-in schema, so no
    network call is needed
  - PropertySets come from STANDARD_PSETS below, hand-curated from the
    IFC 4.3 ADD2 documentation (https://ifc43-docs.buildingsmart.org/)
  - every PredefinedType enumeration value becomes its own subclass code
    (IfcWall + SHEAR -> IfcWallSHEAR), which is how bSDD encodes them and
    what predefined_types.py expects

`ifc-mapper-generate-base-schema` writes the generated dictionary to disk so
it can be inspected or hand edited.
"""

from __future__ import annotations

import logging
from pathlib import Path

import ifcopenshell

from ifc_mapper.config import MapperSettings
from ifc_mapper.schema.models import SchemaClass, SchemaDictionary, SchemaProperty
from ifc_mapper.schema.registry import SchemaRepository

logger = logging.getLogger(__name__)

# only classes under this root are mapping targets
PRODUCT_ROOT = "IfcProduct"

# ---------------------------------------------------------------------------
# Standard property set definitions
#
# Format: { IFC class -> { pset/qto name -> [property names] } }
#
# Pset_* = property sets (text / boolean / enum values)
# Qto_*  = quantity sets (numeric measurements)
# ---------------------------------------------------------------------------

STANDARD_PSETS: dict[str, dict[str, list[str]]] = {
    "IfcWall": {
        "Pset_WallCommon": [
            "Reference",
            "AcousticRating",
            "FireRating",
            "Combustible",
            "SurfaceSpreadOfFlame",
            "ThermalTransmittance",
            "IsExternal",
            "ExtendToStructure",
            "LoadBearing",
            "Compartmentation",
        ],
        "Qto_WallBaseQuantities": [
            "Length",
            "Width",
            "Height",
            "GrossFootprintArea",
            "NetFootprintArea",
            "GrossSideArea",
            "NetSideArea",
            "GrossVolume",
            "NetVolume",
        ],
    },
    "IfcSlab": {
        "Pset_SlabCommon": [
            "Reference",
            "AcousticRating",
            "FireRating",
            "Combustible",
            "ThermalTransmittance",
            "IsExternal",
            "LoadBearing",
            "PitchAngle",
        ],
        "Qto_SlabBaseQuantities": [
            "Depth",
            "Perimeter",
            "GrossArea",
            "NetArea",
            "GrossVolume",
            "NetVolume",
        ],
    },
    "IfcDoor": {
        "Pset_DoorCommon": [
            "Reference",
            "FireRating",
            "AcousticRating",
            "SecurityRating",
            "IsExternal",
            "HandicapAccessible",
            "ThermalTransmittance",
        ],
        "Qto_DoorBaseQuantities": ["Width", "Height", "Perimeter", "Area"],
    },
    "IfcWindow": {
        "Pset_WindowCommon": [
            "Reference",
            "FireRating",
            "AcousticRating",
            "ThermalTransmittance",
            "IsExternal",
            "GlazingAreaFraction",
        ],
        "Qto_WindowBaseQuantities": ["Width", "Height", "Perimeter", "Area"],
    },
    "IfcColumn": {
        "Pset_ColumnCommon": ["Reference", "LoadBearing", "FireRating", "IsExternal"],
        "Qto_ColumnBaseQuantities": ["Length", "CrossSectionArea", "GrossVolume"],
    },
    "IfcBeam": {
        "Pset_BeamCommon": [
            "Reference",
            "LoadBearing",
            "FireRating",
            "IsExternal",
            "Span",
        ],
        "Qto_BeamBaseQuantities": ["Length", "CrossSectionArea", "GrossVolume"],
    },
    "IfcRoof": {
        "Pset_RoofCommon": [
            "Reference",
            "FireRating",
            "IsExternal",
            "ThermalTransmittance",
        ],
        "Qto_RoofBaseQuantities": ["GrossArea", "NetArea"],
    },
    "IfcStair": {
        "Pset_StairCommon": [
            "Reference",
            "FireRating",
            "IsExternal",
            "NumberOfRiser",
            "NumberOfTreads",
            "RiserHeight",
            "TreadLength",
        ],
    },
    "IfcCovering": {
        "Pset_CoveringCommon": [
            "Reference",
            "AcousticRating",
            "FireRating",
            "FlammabilityRating",
            "IsExternal",
        ],
    },
    "IfcRailing": {"Pset_RailingCommon": ["Reference", "IsExternal", "Height"]},
    "IfcFurniture": {
        "Pset_FurnitureTypeCommon": [
            "Reference",
            "NominalLength",
            "NominalWidth",
            "NominalHeight",
            "Style",
        ],
    },
    "IfcBuildingStorey": {
        "Pset_BuildingStoreyCommon": [
            "Reference",
            "EntranceLevel",
            "AboveGround",
            "SprinklerProtection",
        ],
        "Qto_BuildingStoreyBaseQuantities": ["GrossFloorArea", "NetFloorArea"],
    },
    "IfcSpace": {
        "Pset_SpaceCommon": [
            "Reference",
            "IsExternal",
            "GrossPlannedArea",
            "NetPlannedArea",
            "PubliclyAccessible",
            "HandicapAccessible",
        ],
        "Qto_SpaceBaseQuantities": ["Height", "NetFloorArea", "GrossFloorArea"],
    },
    "IfcBuilding": {
        "Pset_BuildingCommon": [
            "Reference",
            "NumberOfStoreys",
            "OccupancyType",
            "IsLandmarked",
            "YearOfConstruction",
        ],
        "Qto_BuildingBaseQuantities": ["GrossFloorArea", "NetFloorArea"],
    },
    "IfcSite": {
        "Pset_SiteCommon": ["Reference", "BuildableArea", "TotalArea"],
    },
}


def _normalize_schema_name(name: str) -> str:
    """
    ifcopenshell wants the major version only: "IFC4x3_ADD2" -> "IFC4X3".
    """
    n = name.upper().replace(" ", "")
    if n.startswith("IFC4X3"):
        return "IFC4X3"
    if n.startswith("IFC4"):
        return "IFC4"
    if n.startswith("IFC2X3"):
        return "IFC2X3"
    return name


def _ancestor_chain(entity) -> list[str]:
    """Walk up the supertype chain and collect ancestor names, nearest first."""
    ancestors: list[str] = []
    try:
        current = entity.supertype()
        while current is not None:
            ancestors.append(current.name())
            current = current.supertype()
    except AttributeError:
        pass  # type and enumeration declarations have no supertype
    return ancestors


def _predefined_type_values(entity) -> list[str]:
    """Enumeration items of the entity's own PredefinedType attribute."""
    try:
        attributes = entity.attributes()
    except AttributeError:
        return []
    for attribute in attributes:
        if attribute.name() != "PredefinedType":
            continue
        try:
            declared = attribute.type_of_attribute().declared_type()
            items = list(declared.enumeration_items())
        except Exception as exc:
            logger.debug("No enumeration for %s.PredefinedType: %s", entity.name(), exc)
            return []
        return [item for item in items if item != "NOTDEFINED"]
    return []


def _class_properties(code: str) -> list[SchemaProperty]:
    return [
        SchemaProperty(property_code=prop, code=prop, property_set=pset)
        for pset, props in STANDARD_PSETS.get(code, {}).items()
        for prop in props
    ]


def build_base_dictionary(schema_name: str = "IFC4") -> SchemaDictionary:
    """
    Build the dictionary of IfcProduct and its subtypes from ifcopenshell.

    Returns an empty dictionary (and logs a warning) if the schema can't be
    loaded, matching how a missing base file is handled.
    """
    normalized = _normalize_schema_name(schema_name)
    try:
        schema = ifcopenshell.schema_by_name(normalized)
    except Exception as exc:
        logger.warning(
            "Could not load IFC schema '%s': %s. The base dictionary will be empty.",
            normalized,
            exc,
        )
        return SchemaDictionary()

    try:
        root = schema.declaration_by_name(PRODUCT_ROOT)
    except Exception as exc:
        logger.warning("Schema '%s' has no %s: %s", normalized, PRODUCT_ROOT, exc)
        return SchemaDictionary()

    classes: list[SchemaClass] = []
    # the ancestors of IfcProduct are kept so the hierarchy stays rooted
    upper = list(reversed([PRODUCT_ROOT, *_ancestor_chain(root)]))
    for i, name in enumerate(upper):
        if name == PRODUCT_ROOT:
            continue
        classes.append(
            SchemaClass(
                code=name,
                name=name,
                definition=f"{name} entity of the {normalized} schema.",
                parent_code=upper[i - 1] if i else None,
            )
        )

    predefined: list[SchemaClass] = []
    for decl in schema.declarations():
        chain = _ancestor_chain(decl)
        if decl.name() != PRODUCT_ROOT and PRODUCT_ROOT not in chain:
            continue
        name = decl.name()
        classes.append(
            SchemaClass(
                code=name,
                name=name,
                definition=f"{name} entity of the {normalized} schema.",
                parent_code=chain[0] if chain else None,
                properties=_class_properties(name),
            )
        )
        for value in _predefined_type_values(decl):
            predefined.append(
                SchemaClass(
                    code=f"{name}{value}",
                    name=f"{name} {value}",
                    definition=f"{name} with predefined type {value}.",
                    parent_code=name,
                )
            )

    classes.extend(predefined)
    logger.info(
        "Built base dictionary from schema '%s': %d classes (%d predefined types)",
        normalized,
        len(classes),
        len(predefined),
    )
    return SchemaDictionary(
        classes=classes, model_version=normalized, dictionary_version="generated"
    )


def load_base_schema(
    settings: MapperSettings, repository: SchemaRepository
) -> SchemaRepository:
    """Load the base file into the repository, or build it when the file is absent."""
    path = settings.base_schema_path
    if path.is_file():
        repository.load_base(path)
    else:
        logger.info("Base schema %s not found, building it from ifcopenshell", path)
        repository.load_base(build_base_dictionary())
    return repository


def write_base_schema(dictionary: SchemaDictionary, out_path: Path) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        dictionary.model_dump_json(by_alias=True, exclude_none=True, indent=2),
        encoding="utf-8",
    )
    return out_path
