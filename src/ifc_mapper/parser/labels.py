"""Name reduction, label derivation and datatype normalization helpers."""

from __future__ import annotations

import re

# namespace IRI -> short prefix, for datatype range normalization
WELL_KNOWN_NAMESPACES: dict[str, str] = {
    "http://www.w3.org/2001/XMLSchema#": "xsd",
    "http://www.w3.org/1999/02/22-rdf-syntax-ns#": "rdf",
    "http://www.w3.org/2000/01/rdf-schema#": "rdfs",
    "http://www.w3.org/2002/07/owl#": "owl",
}

_ACRONYM_BOUNDARY_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_SPACES_RE = re.compile(r"\s+")


def local_name(term: str) -> str:
    """
    Reduce an IRI or prefixed name to its local part.

    "<http://example.org/onto#Wall>" -> "Wall"
    "http://example.org/onto/Wall"   -> "Wall"
    "ex:Wall" / ":Wall"              -> "Wall"
    """
    value = term.strip()
    if value.startswith("<") and value.endswith(">"):
        value = value[1:-1]
    if "#" in value:
        return value.rsplit("#", 1)[-1]
    if "/" in value:
        return value.rstrip("/").rsplit("/", 1)[-1]
    if ":" in value:
        return value.split(":", 1)[1]
    return value


def derive_label(name: str) -> str:
    """Human-readable label from a local name: "hasHeight" -> "Has Height"."""
    text = name.replace("_", " ").replace("-", " ")
    text = _ACRONYM_BOUNDARY_RE.sub(r"\1 \2", text)
    text = _CAMEL_BOUNDARY_RE.sub(r"\1 \2", text)
    text = _SPACES_RE.sub(" ", text).strip()
    if not text:
        return name
    return text[0].upper() + text[1:]


def normalize_datatype(iri: str | None, prefix: str | None = None) -> str:
    """
    Short form of a datatype reference.

    `iri` is the expanded namespace IRI when known; `prefix`/local form is
    used otherwise.  Well-known namespaces map to xsd:/rdf:/rdfs:/owl:,
    anything else reduces to its local name.
    """
    if iri:
        for namespace, short in WELL_KNOWN_NAMESPACES.items():
            if iri.startswith(namespace):
                return f"{short}:{iri[len(namespace):]}"
        return local_name(iri)
    if prefix and ":" in prefix:
        head, tail = prefix.split(":", 1)
        if head in WELL_KNOWN_NAMESPACES.values():
            return f"{head}:{tail}"
        return tail
    return prefix or ""
