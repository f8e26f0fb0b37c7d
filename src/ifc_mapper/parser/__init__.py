"""Ontology parsing (Turtle and RDF/XML subsets of OWL)."""

from __future__ import annotations

from .models import (
    OntologyClass,
    OntologyModel,
    OntologyProperty,
    ParseError,
    SubclassEdge,
)
from .ontology_parser import (
    EXAMPLE_TURTLE,
    detect_format,
    format_from_filename,
    format_turtle,
    load_ontology_file,
    parse,
    validate_source,
)

__all__ = [
    "EXAMPLE_TURTLE",
    "OntologyClass",
    "OntologyModel",
    "OntologyProperty",
    "ParseError",
    "SubclassEdge",
    "detect_format",
    "format_from_filename",
    "format_turtle",
    "load_ontology_file",
    "parse",
    "validate_source",
]
