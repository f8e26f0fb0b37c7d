"""
Turtle reader for the small OWL subset the mapper consumes.

The reader is a tokenizer plus a limited statement grammar:

    statement  := directive | subject predicateObjectList "."
    predicateObjectList := verb objectList (";" verb objectList)* [";"]
    objectList := object ("," object)*

Ontology authors are not consistent about punctuation, so the grammar is
lenient in four documented ways:

  1. a missing "." is recovered when a new subject starts where ";", ","
     or "." was expected;
  2. a missing final "." at the end of the input still yields the statement;
  3. a malformed statement is skipped up to the next "." (logged at DEBUG);
  4. statements about the same subject are merged, so rdfs:domain,
     rdfs:range, owl:cardinality and rdfs:subClassOf may appear inline, at
     the end of the declaring block, or as separate statements anywhere.

Blank nodes ("[ ... ]") are parsed so the reader stays in sync, and
owl:Restriction blank nodes contribute cardinalities, but they never produce
classes or subclass edges.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import NamedTuple

from ifc_mapper.parser.builder import OntologyBuilder
from ifc_mapper.parser.labels import (
    WELL_KNOWN_NAMESPACES,
    local_name,
    normalize_datatype,
)
from ifc_mapper.parser.models import OntologyModel, ParseError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class Token(NamedTuple):
    kind: str  # IRI, WORD, LITERAL, LANG, PUNCT, DIRECTIVE
    value: str
    line: int


_IRI_RE = re.compile(r"<[^<>\s\"{}|^`\\]*>")
_LANG_RE = re.compile(r"@[A-Za-z]+(?:-[A-Za-z0-9]+)*")
_DIRECTIVE_RE = re.compile(r"@[A-Za-z]+")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_PUNCT = ".;,[]()"
_WORD_STOP = frozenset(" \t\r\n<>\"';,()[]{}")


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0
    n = len(text)
    line = 1
    while i < n:
        ch = text[i]
        if ch == "\n":
            line += 1
            i += 1
            continue
        if ch.isspace():
            i += 1
            continue
        if ch == "#":
            end = text.find("\n", i)
            i = n if end == -1 else end
            continue
        if ch == "<":
            m = _IRI_RE.match(text, i)
            if m:
                tokens.append(Token("IRI", m.group(0), line))
                i = m.end()
            else:
                tokens.append(Token("WORD", ch, line))
                i += 1
            continue
        if ch in "\"'":
            value, i, newlines = _read_literal(text, i)
            tokens.append(Token("LITERAL", value, line))
            line += newlines
            continue
        if ch == "^" and text.startswith("^^", i):
            tokens.append(Token("PUNCT", "^^", line))
            i += 2
            continue
        if ch == "@":
            if tokens and tokens[-1].kind == "LITERAL":
                m = _LANG_RE.match(text, i)
                if m:
                    tokens.append(Token("LANG", m.group(0)[1:], line))
                    i = m.end()
                    continue
            m = _DIRECTIVE_RE.match(text, i)
            if m:
                tokens.append(Token("DIRECTIVE", m.group(0).lower(), line))
                i = m.end()
                continue
        if ch in _PUNCT:
            tokens.append(Token("PUNCT", ch, line))
            i += 1
            continue

        j = i
        while j < n and text[j] not in _WORD_STOP:
            j += 1
        if j == i:
            j = i + 1
        word = text[i:j]
        i = j
        # a "." glued to the end of a word terminates the statement
        trailing = 0
        while len(word) > 1 and word.endswith("."):
            word = word[:-1]
            trailing += 1
        tokens.append(Token("WORD", word, line))
        tokens.extend(Token("PUNCT", ".", line) for _ in range(trailing))
    return tokens


def _read_literal(text: str, start: int) -> tuple[str, int, int]:
    """Read a quoted literal; returns (value, end index, newlines consumed)."""
    quote = text[start]
    triple = quote * 3
    if text.startswith(triple, start):
        end = text.find(triple, start + 3)
        if end == -1:
            end = len(text)
        value = text[start + 3:end]
        return value, min(end + 3, len(text)), value.count("\n")
    j = start + 1
    chars: list[str] = []
    while j < len(text):
        c = text[j]
        if c == "\\" and j + 1 < len(text):
            chars.append(text[j + 1])
            j += 2
            continue
        if c == quote or c == "\n":
            break
        chars.append(c)
        j += 1
    if j < len(text) and text[j] == quote:
        j += 1
    return "".join(chars), j, 0


# ---------------------------------------------------------------------------
# Statement grammar
# ---------------------------------------------------------------------------

@dataclass
class Term:
    kind: str  # iri, pname, literal, bnode, collection
    value: str = ""
    datatype: str | None = None
    pairs: list[tuple[Term, list[Term]]] = field(default_factory=list)

    @property
    def is_named(self) -> bool:
        return self.kind in ("iri", "pname")


@dataclass
class Statement:
    subject: Term
    pairs: list[tuple[Term, list[Term]]]
    line: int


class _GrammarError(Exception):
    pass


class TurtleReader:
    """Turns a token list into prefixes and statements."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self.prefixes: dict[str, str] = {}
        self.base: str | None = None
        self.statements: list[Statement] = []
        self.skipped = 0

    # -- token helpers -----------------------------------------------------

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _at_punct(self, value: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == "PUNCT" and tok.value == value

    def _at_term_start(self) -> bool:
        tok = self._peek()
        if tok is None:
            return False
        return tok.kind in ("IRI", "WORD") or (tok.kind == "PUNCT" and tok.value == "[")

    # -- top level ---------------------------------------------------------

    def read(self) -> TurtleReader:
        while self._peek() is not None:
            tok = self._peek()
            assert tok is not None
            if tok.kind == "PUNCT" and tok.value == ".":
                self._advance()
                continue
            start = self._pos
            try:
                if tok.kind == "DIRECTIVE" or (
                    tok.kind == "WORD" and tok.value.upper() in ("PREFIX", "BASE")
                ):
                    self._directive()
                else:
                    self.statements.append(self._statement())
            except _GrammarError as exc:
                self.skipped += 1
                logger.debug(
                    "Skipping malformed statement at line %d: %s", tok.line, exc
                )
                self._skip_statement(start)
        return self

    def _skip_statement(self, start: int) -> None:
        if self._pos <= start:
            self._pos = start + 1
        while self._peek() is not None:
            tok = self._advance()
            if tok.kind == "PUNCT" and tok.value == ".":
                return

    def _directive(self) -> None:
        tok = self._advance()
        sparql_style = tok.kind == "WORD"
        keyword = tok.value.lower().lstrip("@")
        if keyword == "prefix":
            name = self._peek()
            if name is None or name.kind != "WORD" or not name.value.endswith(":"):
                raise _GrammarError("expected prefix name")
            self._advance()
            iri = self._peek()
            if iri is None or iri.kind != "IRI":
                raise _GrammarError("expected namespace IRI")
            self._advance()
            self.prefixes[name.value[:-1]] = iri.value[1:-1]
        elif keyword == "base":
            iri = self._peek()
            if iri is None or iri.kind != "IRI":
                raise _GrammarError("expected base IRI")
            self._advance()
            self.base = iri.value[1:-1]
        else:
            raise _GrammarError(f"unknown directive {tok.value}")
        if not sparql_style and self._at_punct("."):
            self._advance()

    def _statement(self) -> Statement:
        first = self._peek()
        assert first is not None
        subject = self._term(allow_literal=False)
        pairs: list[tuple[Term, list[Term]]] = []
        if not (subject.kind == "bnode" and self._at_punct(".")):
            pairs = self._predicate_object_list(closing=None)
        if self._at_punct("."):
            self._advance()
        elif self._peek() is not None and not self._at_term_start():
            tok = self._peek()
            assert tok is not None
            raise _GrammarError(f"unexpected {tok.value!r}")
        # end of input or a new subject: the "." was left out
        return Statement(subject=subject, pairs=pairs, line=first.line)

    def _predicate_object_list(
        self, closing: str | None
    ) -> list[tuple[Term, list[Term]]]:
        pairs: list[tuple[Term, list[Term]]] = []
        while True:
            verb = self._verb()
            objects = [self._term(allow_literal=True)]
            while self._at_punct(","):
                self._advance()
                objects.append(self._term(allow_literal=True))
            pairs.append((verb, objects))
            if not self._at_punct(";"):
                return pairs
            while self._at_punct(";"):
                self._advance()
            if (
                self._peek() is None
                or self._at_punct(".")
                or (closing is not None and self._at_punct(closing))
            ):
                return pairs

    def _verb(self) -> Term:
        tok = self._peek()
        if tok is None:
            raise _GrammarError("unexpected end of input, expected a predicate")
        if tok.kind == "IRI":
            self._advance()
            return Term("iri", tok.value)
        if tok.kind == "WORD":
            self._advance()
            return Term("pname", tok.value)
        raise _GrammarError(f"expected a predicate, got {tok.value!r}")

    def _term(self, allow_literal: bool) -> Term:
        tok = self._peek()
        if tok is None:
            raise _GrammarError("unexpected end of input")
        if tok.kind == "IRI":
            self._advance()
            return Term("iri", tok.value)
        if tok.kind == "WORD":
            self._advance()
            if _NUMBER_RE.match(tok.value) or tok.value in ("true", "false"):
                return Term("literal", tok.value)
            return Term("pname", tok.value)
        if tok.kind == "LITERAL" and allow_literal:
            self._advance()
            term = Term("literal", tok.value)
            nxt = self._peek()
            if nxt is not None and nxt.kind == "LANG":
                self._advance()
            elif self._at_punct("^^"):
                self._advance()
                dtype = self._peek()
                if dtype is None or dtype.kind not in ("IRI", "WORD"):
                    raise _GrammarError("expected datatype after ^^")
                self._advance()
                term.datatype = dtype.value
            return term
        if tok.kind == "PUNCT" and tok.value == "[":
            self._advance()
            node = Term("bnode")
            if not self._at_punct("]"):
                node.pairs = self._predicate_object_list(closing="]")
            if not self._at_punct("]"):
                raise _GrammarError("unclosed blank node")
            self._advance()
            return node
        if tok.kind == "PUNCT" and tok.value == "(":
            self._advance()
            depth = 1
            while self._peek() is not None and depth:
                inner = self._advance()
                if inner.kind == "PUNCT" and inner.value == "(":
                    depth += 1
                elif inner.kind == "PUNCT" and inner.value == ")":
                    depth -= 1
            return Term("collection")
        raise _GrammarError(f"unexpected {tok.value!r}")


# ---------------------------------------------------------------------------
# OWL extraction
# ---------------------------------------------------------------------------

_CARDINALITY_FORMATS = {
    "owl:cardinality": "{}",
    "owl:qualifiedCardinality": "{}",
    "owl:minCardinality": "min {}",
    "owl:minQualifiedCardinality": "min {}",
    "owl:maxCardinality": "max {}",
    "owl:maxQualifiedCardinality": "max {}",
}


class _Resolver:
    def __init__(self, prefixes: dict[str, str], base: str | None) -> None:
        self._prefixes = prefixes
        self._base = base

    def expand(self, term: Term) -> str | None:
        """Full IRI of a named term, or None for an undeclared prefix."""
        if term.kind == "iri":
            iri = term.value[1:-1]
            if self._base and not re.match(r"^[A-Za-z][A-Za-z0-9+.-]*:", iri):
                return self._base + iri
            return iri
        if term.kind == "pname" and ":" in term.value:
            head, tail = term.value.split(":", 1)
            namespace = self._prefixes.get(head)
            if namespace is not None:
                return namespace + tail
        return None

    def qualify(self, term: Term) -> str:
        """Predicate/type key such as "rdfs:subClassOf" or a full IRI."""
        if term.kind == "pname" and term.value == "a":
            return "rdf:type"
        iri = self.expand(term)
        if iri is None:
            return term.value
        for namespace, short in WELL_KNOWN_NAMESPACES.items():
            if iri.startswith(namespace):
                return f"{short}:{iri[len(namespace):]}"
        return iri


def _cardinality(key: str, term: Term) -> str | None:
    if key not in _CARDINALITY_FORMATS or term.kind != "literal":
        return None
    value = term.value.strip()
    if not value:
        return None
    return _CARDINALITY_FORMATS[key].format(value)


def _collect_restrictions(
    term: Term, resolver: _Resolver, builder: OntologyBuilder
) -> None:
    """Attach owl:onProperty + cardinality pairs found in nested blank nodes."""
    if term.kind != "bnode":
        return
    on_property: str | None = None
    found: list[str] = []
    for verb, objects in term.pairs:
        key = resolver.qualify(verb)
        for obj in objects:
            if key == "owl:onProperty" and obj.is_named:
                on_property = local_name(obj.value)
            constraint = _cardinality(key, obj)
            if constraint is not None:
                found.append(constraint)
            _collect_restrictions(obj, resolver, builder)
    if on_property:
        for constraint in found:
            builder.add_cardinality(on_property, constraint)


def build_model(reader: TurtleReader) -> OntologyModel:
    resolver = _Resolver(reader.prefixes, reader.base)
    builder = OntologyBuilder("turtle")

    for stmt in reader.statements:
        name = local_name(stmt.subject.value) if stmt.subject.is_named else ""
        for verb, objects in stmt.pairs:
            key = resolver.qualify(verb)
            for obj in objects:
                if obj.kind == "bnode":
                    _collect_restrictions(obj, resolver, builder)
                    continue
                if not name:
                    continue
                if key == "rdf:type" and obj.is_named:
                    builder.add_type(name, resolver.qualify(obj))
                elif key == "rdfs:label" and obj.kind == "literal":
                    builder.add_label(name, obj.value)
                elif key == "rdfs:domain" and obj.is_named:
                    builder.add_domain(name, local_name(obj.value))
                elif key == "rdfs:range" and obj.is_named:
                    builder.add_range(
                        name,
                        normalize_datatype(resolver.expand(obj), obj.value),
                        local_name(obj.value),
                    )
                elif key == "rdfs:subClassOf" and obj.is_named:
                    builder.add_subclass(name, local_name(obj.value))
                else:
                    constraint = _cardinality(key, obj)
                    if constraint is not None:
                        builder.add_cardinality(name, constraint)
        if stmt.subject.kind == "bnode":
            _collect_restrictions(stmt.subject, resolver, builder)

    return builder.build()


_XML_MARKUP_RE = re.compile(r"^\s*<(?:\?xml|rdf:RDF|!DOCTYPE)", re.IGNORECASE)


def parse_turtle(text: str) -> OntologyModel:
    if not text.strip():
        raise ParseError("Empty Turtle input")
    if _XML_MARKUP_RE.match(text):
        raise ParseError("Input is XML markup, not Turtle")

    reader = TurtleReader(tokenize(text)).read()
    if not reader.prefixes and not any(stmt.pairs for stmt in reader.statements):
        raise ParseError("No Turtle prefix directive or triple statement found")

    model = build_model(reader)
    logger.debug(
        "Parsed Turtle: %d statements (%d skipped), %s",
        len(reader.statements),
        reader.skipped,
        model.summary(),
    )
    return model
