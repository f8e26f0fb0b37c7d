"""Entry points for turning ontology text into an OntologyModel."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from ifc_mapper.parser.models import OntologyFormat, OntologyModel, ParseError
from ifc_mapper.parser.rdfxml import parse_rdfxml
from ifc_mapper.parser.turtle import parse_turtle

logger = logging.getLogger(__name__)

_FORMAT_ALIASES: dict[str, OntologyFormat] = {
    "turtle": "turtle",
    "ttl": "turtle",
    "owl": "turtle",
    "n3": "turtle",
    "rdfxml": "rdfxml",
    "rdf/xml": "rdfxml",
    "rdf": "rdfxml",
    "xml": "rdfxml",
    "owl-xml": "rdfxml",
}

_EXTENSION_FORMATS: dict[str, OntologyFormat] = {
    ".ttl": "turtle",
    ".owl": "turtle",
    ".n3": "turtle",
    ".rdf": "rdfxml",
    ".xml": "rdfxml",
    ".owx": "rdfxml",
}

_RDF_ROOT_RE = re.compile(r"<\s*rdf:RDF\b")
_SPARQL_PREFIX_RE = re.compile(r"^\s*PREFIX\s", re.MULTILINE | re.IGNORECASE)
_TRIPLE_HINT_RE = re.compile(r"\S+\s+(?:a|rdf:type|rdfs:subClassOf)\s+\S+")

EXAMPLE_TURTLE = """\
@prefix : <http://example.org/ontology#> .
@prefix owl: <http://www.w3.org/2002/07/owl#> .
@prefix rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#> .
@prefix rdfs: <http://www.w3.org/2000/01/rdf-schema#> .
@prefix xsd: <http://www.w3.org/2001/XMLSchema#> .

:Building a owl:Class .
:BuildingElement a owl:Class .
:Wall a owl:Class ;
    rdfs:subClassOf :BuildingElement .
:Door a owl:Class ;
    rdfs:subClassOf :BuildingElement .
:Material a owl:Class .

:hasHeight a owl:DatatypeProperty ;
    rdfs:domain :Wall ;
    rdfs:range xsd:decimal .
:isExternal a owl:DatatypeProperty ;
    rdfs:domain :Wall ;
    rdfs:range xsd:boolean .
:hasMaterial a owl:ObjectProperty ;
    rdfs:domain :Wall ;
    rdfs:range :Material .
"""


def detect_format(text: str) -> OntologyFormat | None:
    """Guess the syntax from the content, or None when it is not recognizable."""
    stripped = text.lstrip()
    if stripped.startswith("<?xml") or _RDF_ROOT_RE.search(text):
        return "rdfxml"
    if "@prefix" in text or _SPARQL_PREFIX_RE.search(text):
        return "turtle"
    if _TRIPLE_HINT_RE.search(text):
        return "turtle"
    return None


def format_from_filename(filename: str) -> OntologyFormat | None:
    return _EXTENSION_FORMATS.get(Path(filename).suffix.lower())


def resolve_format(fmt: str, text: str = "") -> OntologyFormat:
    key = fmt.strip().lower()
    if key == "auto":
        detected = detect_format(text)
        if detected is None:
            raise ParseError("Could not detect the ontology format from the content")
        return detected
    resolved = _FORMAT_ALIASES.get(key)
    if resolved is None:
        raise ParseError(f"Unsupported ontology format: {fmt}")
    return resolved


def parse(text: str, fmt: str = "turtle") -> OntologyModel:
    """
    Parse ontology text into classes, properties and subclass edges.

    Raises ParseError only when the text is not recognizable as the requested
    format at all; constructs that are missing simply come back empty.
    """
    resolved = resolve_format(fmt, text)
    if resolved == "turtle":
        model = parse_turtle(text)
    else:
        model = parse_rdfxml(text)
    logger.info(
        "Parsed %s ontology: %d classes, %d properties, %d subclass edges",
        resolved,
        len(model.classes),
        len(model.properties),
        len(model.subclass_edges),
    )
    return model


def load_ontology_file(path: Path, fmt: str = "auto") -> OntologyModel:
    """Read and parse a file; with "auto" the content decides, then the extension."""
    text = path.read_text(encoding="utf-8")
    if fmt.strip().lower() == "auto":
        fmt = detect_format(text) or format_from_filename(path.name) or "turtle"
    return parse(text, fmt)


def validate_source(text: str, fmt: str = "auto") -> dict[str, Any]:
    """Parse only to check the text; returns counts or raises ParseError."""
    model = parse(text, fmt)
    return {
        "format": model.format,
        "properties": len(model.properties),
        **model.summary(),
    }


def format_turtle(text: str) -> str:
    """
    Tidy Turtle layout: trimmed lines, no blank lines, statement-opening
    lines flush left and continuation lines indented by four spaces.
    """
    out: list[str] = []
    continuation = False
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        out.append(("    " + line) if continuation else line)
        if line.startswith("#"):
            continue
        if line.upper().startswith(("PREFIX ", "BASE ")):
            continuation = False
        else:
            continuation = not line.endswith(".")
    return "\n".join(out) + ("\n" if out else "")
