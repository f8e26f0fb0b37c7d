"""
Text renderings of a mapping session: correspondence report, a STEP-like
stub with one entity per verified class mapping, and a node-link diagram.

The STEP stub is a preview, not a conformant IFC file; entity attribute
lists are only filled up to the name.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import ifcopenshell.guid
import networkx as nx
from networkx.readwrite import json_graph

from ifc_mapper.mapping.models import MappingEntry

if TYPE_CHECKING:
    from ifc_mapper.mapping.engine import MappingSession
    from ifc_mapper.parser.models import OntologyModel

REPORT_TITLE = "OWL → IFC correspondences"
STEP_SCHEMA = "IFC4X3"

_SECTIONS = (
    ("class", "Classes"),
    ("attribute", "Attributes"),
    ("association", "Associations"),
    ("datatype", "Datatypes"),
)

_GUID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "urn:ifc-mapper")


def _report_line(entry: MappingEntry) -> str:
    target = entry.target or "(unmapped)"
    if entry.predefined_type:
        target = f"{target} [{entry.predefined_type}]"
    line = f"{entry.source} → {target}"
    if entry.property_set:
        line += f" ({entry.property_set})"
    if entry.domain:
        line += f" on {entry.domain}"
    if entry.verified:
        line += " ✓"
    return line


def render_mapping_report(session: MappingSession, verified_only: bool = False) -> str:
    lines = [REPORT_TITLE, "=" * len(REPORT_TITLE), ""]
    for kind, heading in _SECTIONS:
        entries = [
            e for e in session.entries(kind) if e.verified or not verified_only
        ]
        if not entries:
            continue
        lines.append(f"{heading}:")
        lines.extend(f"  {_report_line(e)}" for e in entries)
        lines.append("")
    summary = session.summary()
    lines.append(
        f"{summary['verified']} of {sum(summary[k] for k, _ in _SECTIONS)} "
        "mappings verified"
    )
    return "\n".join(lines) + "\n"


def ifc_guid(*parts: str) -> str:
    """Deterministic 22-character IFC GlobalId derived from the given names."""
    return ifcopenshell.guid.compress(uuid.uuid5(_GUID_NAMESPACE, "/".join(parts)).hex)


def _step_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def render_step_stub(
    session: MappingSession,
    model_name: str = "ontology",
    timestamp: str | None = None,
) -> str:
    """ISO-10303-21 text with one entity per verified class mapping."""
    if timestamp is None:
        timestamp = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
    name = _step_string(model_name)
    lines = [
        "ISO-10303-21;",
        "HEADER;",
        f"FILE_DESCRIPTION(({_step_string(f'Model from {model_name}')}),'2;1');",
        (
            f"FILE_NAME({_step_string(f'{model_name}_converted.ifc')},"
            f"{_step_string(timestamp)},('ifc-mapper'),('IFC Model Mapper'),'');"
        ),
        f"FILE_SCHEMA(('{STEP_SCHEMA}'));",
        "ENDSEC;",
        "",
        "DATA;",
        (
            f"#1=IFCPROJECT('{ifc_guid(model_name, 'project')}',#2,{name},"
            "$,$,$,$,$,$);"
        ),
        "#2=IFCOWNERHISTORY(#3,#6,$,.NOCHANGE.,$,$,$,0);",
        "#3=IFCPERSONANDORGANIZATION(#4,#5,$);",
        "#4=IFCPERSON($,'Mapper','Generated',$,$,$,$,$);",
        "#5=IFCORGANIZATION($,'IFC Model Mapper','Generated automatically',$,$);",
        "#6=IFCAPPLICATION(#5,'1.0','ifc-mapper','ifc-mapper');",
    ]
    verified = [e for e in session.entries("class") if e.verified and e.target]
    for index, entry in enumerate(verified, start=10):
        entity = (
            f"#{index}={entry.target.upper()}('{ifc_guid(model_name, entry.source)}',"
            f"#2,{_step_string(entry.source)},$,$);"
        )
        if entry.predefined_type:
            entity += f" /* PredefinedType: .{entry.predefined_type}. */"
        lines.append(entity)
    lines += ["ENDSEC;", "END-ISO-10303-21;"]
    return "\n".join(lines) + "\n"


def validate_step_text(text: str) -> list[str]:
    """Structural problems of a STEP text; empty when it looks complete."""
    problems: list[str] = []
    stripped = text.strip()
    if not stripped.startswith("ISO-10303-21;"):
        problems.append("missing ISO-10303-21; header line")
    if "HEADER;" not in stripped:
        problems.append("missing HEADER section")
    if "DATA;" not in stripped:
        problems.append("missing DATA section")
    if "ENDSEC;" not in stripped:
        problems.append("missing ENDSEC;")
    if not stripped.endswith("END-ISO-10303-21;"):
        problems.append("missing END-ISO-10303-21; trailer")
    return problems


def hierarchy_diagram(session: MappingSession, model: OntologyModel) -> dict[str, Any]:
    """
    Node-link data of ontology classes, their IFC targets and subclass edges.

    Ontology nodes use the class name as id, IFC nodes are prefixed "ifc:".
    """
    graph = nx.DiGraph()
    for cls in model.classes:
        graph.add_node(cls.name, kind="ontology-class", label=cls.label)
    for edge in model.subclass_edges:
        graph.add_edge(edge.child, edge.parent, kind="subClassOf")
    for entry in session.entries("class"):
        if not entry.target:
            continue
        node = f"ifc:{entry.target}"
        graph.add_node(node, kind="ifc-class", label=entry.target)
        graph.add_edge(
            entry.source,
            node,
            kind="mapsTo",
            verified=entry.verified,
            predefined_type=entry.predefined_type,
        )
    return json_graph.node_link_data(graph, edges="links")
