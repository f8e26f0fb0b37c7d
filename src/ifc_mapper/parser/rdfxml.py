"""
Tag-matching reader for the OWL subset of RDF/XML.

This is deliberately not an XML parser: exported ontologies are often hand
edited and not always well formed, so blocks are located by their opening
tag and the matching closing tag of the same name, and everything inside a
block is read with small local patterns.
"""

from __future__ import annotations

import html
import logging
import re

from ifc_mapper.parser.builder import OntologyBuilder
from ifc_mapper.parser.labels import local_name, normalize_datatype
from ifc_mapper.parser.models import OntologyModel, ParseError

logger = logging.getLogger(__name__)

_RDF_ROOT_RE = re.compile(r"<\s*rdf:RDF\b")
_ENTITY_RE = re.compile(r"<!ENTITY\s+([\w.-]+)\s+[\"']([^\"']*)[\"']\s*>")
_ENTITY_REF_RE = re.compile(r"&([\w.-]+);")
_ATTR_RE = re.compile(r"([\w:.-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")
_COMMENT_RE = re.compile(r"<!--.*?-->", re.S)

_BLOCK_TAGS = (
    "owl:Class",
    "owl:ObjectProperty",
    "owl:DatatypeProperty",
    "rdf:Description",
)
_BLOCK_OPEN_RE = re.compile(
    r"<(" + "|".join(re.escape(t) for t in _BLOCK_TAGS) + r")\b([^>]*?)(/?)>",
    re.S,
)
_TAG_TYPES = {
    "owl:Class": "owl:Class",
    "owl:ObjectProperty": "owl:ObjectProperty",
    "owl:DatatypeProperty": "owl:DatatypeProperty",
}

_LABEL_RE = re.compile(r"<rdfs:label\b[^>]*>(.*?)</rdfs:label>", re.S)
_CARDINALITY_RE = re.compile(
    r"<owl:(cardinality|qualifiedCardinality|minCardinality|minQualifiedCardinality"
    r"|maxCardinality|maxQualifiedCardinality)\b[^>]*>\s*([^<\s]+)\s*</owl:\1>",
    re.S,
)
_RESTRICTION_RE = re.compile(r"<owl:Restriction\b[^>]*>(.*?)</owl:Restriction>", re.S)
_NAMED_RE = re.compile(r"\brdf:(?:about|resource|ID)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")

_CARDINALITY_PREFIX = {
    "cardinality": "",
    "qualifiedCardinality": "",
    "minCardinality": "min ",
    "minQualifiedCardinality": "min ",
    "maxCardinality": "max ",
    "maxQualifiedCardinality": "max ",
}


def _entities(text: str) -> dict[str, str]:
    return {name: value for name, value in _ENTITY_RE.findall(text)}


def _expand(value: str, entities: dict[str, str]) -> str:
    return _ENTITY_REF_RE.sub(lambda m: entities.get(m.group(1), m.group(0)), value)


def _attributes(raw: str, entities: dict[str, str]) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for name, dq, sq in _ATTR_RE.findall(raw):
        attrs[name] = html.unescape(_expand(dq or sq, entities))
    return attrs


def _block_end(text: str, tag: str, start: int) -> tuple[int, int]:
    """(body end, block end) of the element opened just before `start`."""
    pattern = re.compile(r"<(/?)" + re.escape(tag) + r"\b[^>]*?(/?)>", re.S)
    depth = 1
    for m in pattern.finditer(text, start):
        if m.group(1):
            depth -= 1
            if depth == 0:
                return m.start(), m.end()
        elif not m.group(2):
            depth += 1
    # unclosed: the block runs up to the next top-level declaration
    nxt = _BLOCK_OPEN_RE.search(text, start)
    end = nxt.start() if nxt else len(text)
    logger.debug("Unclosed <%s> block, reading up to offset %d", tag, end)
    return end, end


def _elements(body: str, tag: str) -> list[tuple[str, str]]:
    """Occurrences of `tag` in a block body as (raw attributes, inner text)."""
    found: list[tuple[str, str]] = []
    pattern = re.compile(r"<" + re.escape(tag) + r"\b([^>]*?)(/?)>", re.S)
    pos = 0
    while True:
        m = pattern.search(body, pos)
        if not m:
            return found
        if m.group(2):
            found.append((m.group(1), ""))
            pos = m.end()
            continue
        close = body.find(f"</{tag}>", m.end())
        inner_end = len(body) if close == -1 else close
        found.append((m.group(1), body[m.end():inner_end]))
        pos = len(body) if close == -1 else close + len(tag) + 3


def _reference(
    attrs_raw: str, inner: str, entities: dict[str, str]
) -> str | None:
    """rdf:resource on the element itself, else the first named nested node."""
    attrs = _attributes(attrs_raw, entities)
    if attrs.get("rdf:resource"):
        return attrs["rdf:resource"]
    if "<owl:Restriction" in inner:
        return None
    m = _NAMED_RE.search(inner)
    if m:
        return html.unescape(_expand(m.group(1) or m.group(2), entities))
    return None


def _short_form(reference: str) -> str:
    """xsd:/rdf:/rdfs:/owl: short form of a resource reference."""
    if "://" in reference:
        return normalize_datatype(reference)
    if reference.startswith("#"):
        return reference[1:]
    return normalize_datatype(None, reference)


def _cardinalities(fragment: str) -> list[str]:
    return [
        f"{_CARDINALITY_PREFIX[kind]}{value.strip()}"
        for kind, value in _CARDINALITY_RE.findall(fragment)
    ]


def parse_rdfxml(text: str) -> OntologyModel:
    if not text.strip():
        raise ParseError("Empty RDF/XML input")
    if not _RDF_ROOT_RE.search(text):
        raise ParseError("No <rdf:RDF> root element found")

    text = _COMMENT_RE.sub("", text)
    entities = _entities(text)
    builder = OntologyBuilder("rdfxml")
    blocks = 0

    pos = 0
    while True:
        m = _BLOCK_OPEN_RE.search(text, pos)
        if not m:
            break
        tag, raw_attrs, self_closing = m.group(1), m.group(2), m.group(3)
        if self_closing:
            body = ""
            pos = m.end()
        else:
            body_end, pos = _block_end(text, tag, m.end())
            body = text[m.end():body_end]

        attrs = _attributes(raw_attrs, entities)
        identifier = attrs.get("rdf:ID") or attrs.get("rdf:about")
        if not identifier:
            continue
        name = local_name(identifier)
        if not name:
            continue
        blocks += 1

        if tag in _TAG_TYPES:
            builder.add_type(name, _TAG_TYPES[tag])
        for type_attrs, type_inner in _elements(body, "rdf:type"):
            type_ref = _reference(type_attrs, type_inner, entities)
            if type_ref:
                builder.add_type(name, _short_form(type_ref))

        for label in _LABEL_RE.findall(body):
            builder.add_label(name, html.unescape(label))

        for dom_attrs, dom_inner in _elements(body, "rdfs:domain"):
            ref = _reference(dom_attrs, dom_inner, entities)
            if ref:
                builder.add_domain(name, local_name(ref))

        for rng_attrs, rng_inner in _elements(body, "rdfs:range"):
            ref = _reference(rng_attrs, rng_inner, entities)
            if ref:
                builder.add_range(name, _short_form(ref), local_name(ref))

        for sub_attrs, sub_inner in _elements(body, "rdfs:subClassOf"):
            ref = _reference(sub_attrs, sub_inner, entities)
            if ref:
                builder.add_subclass(name, local_name(ref))

        # property-level cardinalities, ignoring those nested in restrictions
        for constraint in _cardinalities(_RESTRICTION_RE.sub("", body)):
            builder.add_cardinality(name, constraint)

    for restriction in _RESTRICTION_RE.findall(text):
        on_property = next(
            (
                _reference(attrs, inner, entities)
                for attrs, inner in _elements(restriction, "owl:onProperty")
            ),
            None,
        )
        if not on_property:
            continue
        for constraint in _cardinalities(restriction):
            builder.add_cardinality(local_name(on_property), constraint)

    model = builder.build()
    logger.debug("Parsed RDF/XML: %d named blocks, %s", blocks, model.summary())
    return model
