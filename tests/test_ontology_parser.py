"""Tests for format detection and the parser entry points."""

from __future__ import annotations

import pytest

from ifc_mapper.parser import (
    EXAMPLE_TURTLE,
    ParseError,
    detect_format,
    format_from_filename,
    format_turtle,
    load_ontology_file,
    parse,
    validate_source,
)
from ifc_mapper.parser.ontology_parser import resolve_format

RDFXML = """\
<?xml version="1.0"?>
<rdf:RDF xmlns:owl="http://www.w3.org/2002/07/owl#"
         xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
  <owl:Class rdf:about="http://example.org/onto#Wall"/>
</rdf:RDF>
"""


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        (EXAMPLE_TURTLE, "turtle"),
        ("PREFIX ex: <http://example.org/>\nex:A a ex:B .", "turtle"),
        (":Wall a owl:Class .", "turtle"),
        (RDFXML, "rdfxml"),
        ('<rdf:RDF xmlns:rdf="x"></rdf:RDF>', "rdfxml"),
        ("just some words", None),
    ],
)
def test_detect_format(text, expected):
    assert detect_format(text) == expected


def test_format_from_filename():
    assert format_from_filename("building.ttl") == "turtle"
    assert format_from_filename("building.OWL") == "turtle"
    assert format_from_filename("building.rdf") == "rdfxml"
    assert format_from_filename("building.txt") is None


def test_resolve_format_aliases():
    assert resolve_format("TTL") == "turtle"
    assert resolve_format("rdf/xml") == "rdfxml"
    assert resolve_format("auto", RDFXML) == "rdfxml"

    with pytest.raises(ParseError):
        resolve_format("json-ld")
    with pytest.raises(ParseError):
        resolve_format("auto", "just some words")


def test_parse_dispatches_on_format():
    assert parse(EXAMPLE_TURTLE).format == "turtle"
    assert parse(RDFXML, "rdfxml").class_names() == ["Wall"]
    assert parse(RDFXML, "auto").format == "rdfxml"


def test_wrong_explicit_format_raises():
    with pytest.raises(ParseError):
        parse(RDFXML, "turtle")
    with pytest.raises(ParseError):
        parse(EXAMPLE_TURTLE, "rdfxml")


def test_load_ontology_file_prefers_content(tmp_path):
    # .owl files are often RDF/XML despite the extension mapping to Turtle
    path = tmp_path / "building.owl"
    path.write_text(RDFXML, encoding="utf-8")

    assert load_ontology_file(path).format == "rdfxml"


def test_validate_source_counts():
    assert validate_source(EXAMPLE_TURTLE) == {
        "format": "turtle",
        "properties": 3,
        "classes": 5,
        "datatype_properties": 2,
        "object_properties": 1,
        "subclass_edges": 2,
    }


def test_format_turtle():
    text = """\
  @prefix : <http://example.org/#> .

:Wall a owl:Class ;
        rdfs:label "Wall" .
# trailing comment
:Door a owl:Class .
"""
    assert format_turtle(text) == (
        "@prefix : <http://example.org/#> .\n"
        ":Wall a owl:Class ;\n"
        '    rdfs:label "Wall" .\n'
        "# trailing comment\n"
        ":Door a owl:Class .\n"
    )


def test_format_turtle_empty():
    assert format_turtle("\n\n") == ""
