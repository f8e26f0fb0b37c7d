"""Default targets proposed for ontology entities before anything is verified."""

from __future__ import annotations

from ifc_mapper.parser.labels import local_name

GENERIC_PRODUCT_CLASS = "IfcProduct"

_CANONICAL_CLASS_BY_LOWER: dict[str, str] = {
    "ifcproduct": "IfcProduct",
    "ifcelement": "IfcElement",
    "ifcbuildingelement": "IfcBuildingElement",
    "ifcspatialelement": "IfcSpatialElement",
    "ifcwall": "IfcWall",
    "ifcwallstandardcase": "IfcWallStandardCase",
    "ifcslab": "IfcSlab",
    "ifcdoor": "IfcDoor",
    "ifcwindow": "IfcWindow",
    "ifcbeam": "IfcBeam",
    "ifccolumn": "IfcColumn",
    "ifcstair": "IfcStair",
    "ifcstairflight": "IfcStairFlight",
    "ifcroof": "IfcRoof",
    "ifcspace": "IfcSpace",
    "ifcbuildingstorey": "IfcBuildingStorey",
    "ifcpipesegment": "IfcPipeSegment",
    "ifcductsegment": "IfcDuctSegment",
    "ifcflowterminal": "IfcFlowTerminal",
    "ifcrailing": "IfcRailing",
    "ifcramp": "IfcRamp",
    "ifcchimney": "IfcChimney",
    "ifcsite": "IfcSite",
    "ifcbuilding": "IfcBuilding",
    "ifccovering": "IfcCovering",
    "ifcmember": "IfcMember",
    "ifcplate": "IfcPlate",
    "ifcfooting": "IfcFooting",
    "ifcfurniture": "IfcFurniture",
    "ifcopeningelement": "IfcOpeningElement",
}


def normalize_ifc_class(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        return cleaned
    canonical = _CANONICAL_CLASS_BY_LOWER.get(cleaned.lower())
    if canonical:
        return canonical
    if not cleaned.lower().startswith("ifc"):
        cleaned = f"Ifc{cleaned}"
    canonical = _CANONICAL_CLASS_BY_LOWER.get(cleaned.lower())
    if canonical:
        return canonical
    core = cleaned[3:]
    if not core:
        return "Ifc"
    return "Ifc" + core[0].upper() + core[1:]


_RAW_CLASS_ALIASES: dict[str, str] = {
    "building": "IfcBuilding",
    "buildings": "IfcBuilding",
    "wall": "IfcWall",
    "walls": "IfcWall",
    "door": "IfcDoor",
    "doors": "IfcDoor",
    "window": "IfcWindow",
    "windows": "IfcWindow",
    "space": "IfcSpace",
    "spaces": "IfcSpace",
    "room": "IfcSpace",
    "rooms": "IfcSpace",
    "slab": "IfcSlab",
    "floor": "IfcSlab",
    "column": "IfcColumn",
    "pillar": "IfcColumn",
    "beam": "IfcBeam",
    "stair": "IfcStair",
    "stairs": "IfcStair",
    "staircase": "IfcStair",
    "roof": "IfcRoof",
    "storey": "IfcBuildingStorey",
    "story": "IfcBuildingStorey",
    "level": "IfcBuildingStorey",
    "site": "IfcSite",
    "railing": "IfcRailing",
    "ramp": "IfcRamp",
    "chimney": "IfcChimney",
    "covering": "IfcCovering",
    "ceiling": "IfcCovering",
    "member": "IfcMember",
    "plate": "IfcPlate",
    "footing": "IfcFooting",
    "foundation": "IfcFooting",
    "furniture": "IfcFurniture",
    "pipe": "IfcPipeSegment",
    "duct": "IfcDuctSegment",
    "opening": "IfcOpeningElement",
    "element": "IfcElement",
    "buildingelement": "IfcBuildingElement",
    "product": "IfcProduct",
}

CLASS_ALIASES: dict[str, str] = {
    term: normalize_ifc_class(ifc_class)
    for term, ifc_class in _RAW_CLASS_ALIASES.items()
}

ATTRIBUTE_ALIASES: dict[str, str] = {
    "hasheight": "OverallHeight",
    "height": "OverallHeight",
    "haswidth": "OverallWidth",
    "width": "OverallWidth",
    "haslength": "Length",
    "length": "Length",
    "hasdepth": "Depth",
    "hasarea": "GrossArea",
    "area": "GrossArea",
    "hasvolume": "GrossVolume",
    "volume": "GrossVolume",
    "hasname": "Name",
    "name": "Name",
    "hasdescription": "Description",
    "description": "Description",
    "isexternal": "IsExternal",
    "isloadbearing": "LoadBearing",
    "loadbearing": "LoadBearing",
    "hasfirerating": "FireRating",
    "firerating": "FireRating",
    "hasacousticrating": "AcousticRating",
    "hasthermaltransmittance": "ThermalTransmittance",
    "uvalue": "ThermalTransmittance",
    "hasreference": "Reference",
    "hasstoreys": "NumberOfStoreys",
    "hasnumberofstoreys": "NumberOfStoreys",
}

DATATYPE_TARGETS: tuple[str, ...] = (
    "Boolean",
    "Integer",
    "Real",
    "String",
    "Date",
    "Time",
    "DateTime",
)

_INTEGER_MARKERS = ("int", "long", "short", "byte")
_REAL_MARKERS = ("decimal", "float", "double", "real")


def _alias_key(value: str) -> str:
    return "".join(ch for ch in value.lower() if ch.isalnum())


def default_class_target(name: str, label: str | None = None) -> str:
    """Heuristic IFC class for an ontology class, falling back to IfcProduct."""
    for candidate in (name, label or ""):
        key = _alias_key(candidate)
        if not key:
            continue
        if key in CLASS_ALIASES:
            return CLASS_ALIASES[key]
        if key in _CANONICAL_CLASS_BY_LOWER:
            return _CANONICAL_CLASS_BY_LOWER[key]
    if name.lower().startswith("ifc") and len(name) > 3:
        return normalize_ifc_class(name)
    return GENERIC_PRODUCT_CLASS


def default_attribute_target(name: str) -> str:
    """Heuristic property code for a datatype property (upper-cased fallback)."""
    return ATTRIBUTE_ALIASES.get(_alias_key(name), name.upper())


def classify_datatype(range_value: str) -> str:
    """
    Lexical guess of the IFC value type for a datatype range.

    xsd:boolean -> Boolean, xsd:dateTime -> DateTime, xsd:decimal -> Real,
    anything unrecognized -> String.
    """
    value = local_name(range_value).lower()
    if "bool" in value:
        return "Boolean"
    if "date" in value and "time" in value:
        return "DateTime"
    if "date" in value:
        return "Date"
    if "time" in value:
        return "Time"
    if any(marker in value for marker in _INTEGER_MARKERS):
        return "Integer"
    if any(marker in value for marker in _REAL_MARKERS):
        return "Real"
    return "String"
