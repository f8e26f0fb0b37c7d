"""
engine.py

Builds a MappingSession from a parsed ontology and keeps it consistent with
the schema repository while the user edits it.

Where default targets come from
-------------------------------
For every entity, in order of preference:
  1. a previously verified mapping from the MappingStore (restored verified
     while the schema still holds its target)
  2. the heuristics in heuristics.py (class aliases, attribute aliases,
     association substring matching, the datatype classifier)
  3. nothing / IfcProduct, depending on the kind

Verification and the overlay
----------------------------
verify() first calls adopt_missing_target(), which writes a target the schema
doesn't know yet into the repository overlay (a custom class, or a property
appended to the domain class), and then records the mapping in the store.
Adoption is a separate public method so it can be called and audited on its
own.

Removals
--------
When a custom PropertySet (or one of its members, or the whole overlay) is
removed, the attached session clears the affected entries and the engine
drops the matching records from the MappingStore, so a later session can't
bring the removed target back as verified.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from rapidfuzz import fuzz, process

from ifc_mapper.audit import AuditEventName, AuditWriter, entry_payload
from ifc_mapper.mapping.heuristics import (
    DATATYPE_TARGETS,
    classify_datatype,
    default_attribute_target,
    default_class_target,
)
from ifc_mapper.mapping.models import (
    MAPPING_KINDS,
    MappingEntry,
    MappingKind,
    PersistedMappingRecord,
)
from ifc_mapper.mapping.store import MappingStore
from ifc_mapper.parser.models import OntologyModel, OntologyProperty
from ifc_mapper.schema.models import CUSTOM_PROPERTY_SET
from ifc_mapper.schema.predefined_types import parse_class_code, predefined_types_for
from ifc_mapper.schema.registry import SchemaChange, SchemaError, SchemaRepository

logger = logging.getLogger(__name__)


class MappingError(ValueError):
    """Invalid edit of a mapping entry."""


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def removal_hits(
    change: SchemaChange,
    repository: SchemaRepository,
    property_set: str | None,
    target: str | None,
) -> bool:
    """Whether a property mapping filed under `property_set` lost its target."""
    if not property_set:
        return False
    if change.action == "remove-property-set":
        return property_set == change.property_set
    if change.action == "remove-property":
        return property_set == change.property_set and target == change.property_code
    return not repository.is_builtin_property_set(property_set)


class MappingSession:
    """
    One entry per ontology entity with its proposed or verified IFC target.

    Sessions are built by MappingEngine.build_session() and subscribe to
    removal notifications of the repository until detach() is called.
    """

    def __init__(
        self,
        model: OntologyModel,
        repository: SchemaRepository,
        store: MappingStore,
        audit: AuditWriter | None = None,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.model = model
        self._repository = repository
        self._store = store
        self._audit = audit
        self._entries: dict[tuple[str, str], MappingEntry] = {}
        self._domain_index: dict[str | None, list[MappingEntry]] | None = None

        self._seed_classes()
        self._seed_properties()
        self._seed_datatypes()
        repository.subscribe(self._on_schema_change)
        logger.debug("Mapping session %s built: %s", self.session_id, self.summary())

    @property
    def repository(self) -> SchemaRepository:
        return self._repository

    @property
    def store(self) -> MappingStore:
        return self._store

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------

    def _add(self, entry: MappingEntry) -> None:
        self._entries.setdefault(entry.key, entry)

    def _seed_classes(self) -> None:
        for cls in self.model.classes:
            record = self._store.record_for("class", cls.name)
            if record is not None:
                target, predefined, verified = (
                    record.target,
                    record.predefined_type,
                    True,
                )
            else:
                target = default_class_target(cls.name, cls.label)
                predefined, verified = None, False
            parts = parse_class_code(self._repository, target)
            self._add(
                MappingEntry(
                    source=cls.name,
                    kind="class",
                    target=parts.base_class,
                    predefined_type=predefined or parts.predefined_type,
                    verified=verified,
                    label=cls.label,
                )
            )

    def _seed_properties(self) -> None:
        for prop in self.model.properties:
            kind: MappingKind = (
                "attribute" if prop.kind == "Datatype" else "association"
            )
            record = self._store.record_for(kind, prop.name)
            if record is not None:
                entry = self._restore_property(kind, prop, record)
            else:
                domain_target = self.domain_target(prop.domain)
                if kind == "attribute":
                    target: str | None = default_attribute_target(prop.name)
                else:
                    target = self._default_association_target(prop, domain_target)
                property_set = (
                    self._repository.find_property_set_of(target, domain_target)
                    if target
                    else None
                )
                entry = MappingEntry(
                    source=prop.name,
                    kind=kind,
                    target=target,
                    property_set=property_set,
                    domain=prop.domain,
                    label=prop.label,
                )
            self._add(entry)

    def _restore_property(
        self,
        kind: MappingKind,
        prop: OntologyProperty,
        record: PersistedMappingRecord,
    ) -> MappingEntry:
        """
        Entry for a remembered attribute/association mapping.

        It is only restored as verified while the schema still has its target:
        a record filed under a PropertySet that no longer exists comes back
        empty, and a target missing from the domain's class comes back
        unverified, pending adoption.
        """
        entry = MappingEntry(
            source=prop.name,
            kind=kind,
            target=record.target,
            property_set=record.property_set,
            verified=True,
            domain=prop.domain,
            label=prop.label,
        )
        repo = self._repository
        if record.property_set and not (
            repo.is_builtin_property_set(record.property_set)
            or repo.is_custom_property_set(record.property_set)
        ):
            logger.info(
                "PropertySet %s of %s %s no longer exists, mapping not restored",
                record.property_set,
                kind,
                prop.name,
            )
            self._clear(entry)
            entry.property_set = None
            return entry
        domain_target = self.domain_target(prop.domain)
        if domain_target and record.target not in repo.properties_of_class(
            domain_target
        ):
            entry.verified = False
        return entry

    def _default_association_target(
        self, prop: OntologyProperty, domain_target: str | None
    ) -> str | None:
        if not domain_target:
            return None
        codes = self._repository.properties_of_class(domain_target)
        if not codes:
            return None
        name = prop.name.lower()
        for code in codes:
            lowered = code.lower()
            if lowered in name or name in lowered:
                return code
        all_codes = self._repository.all_properties()
        return all_codes[0] if all_codes else None

    def _seed_datatypes(self) -> None:
        for prop in self.model.datatype_properties:
            if not prop.range or ("datatype", prop.range) in self._entries:
                continue
            record = self._store.record_for("datatype", prop.range)
            self._add(
                MappingEntry(
                    source=prop.range,
                    kind="datatype",
                    target=record.target if record else classify_datatype(prop.range),
                    verified=record is not None,
                    label=prop.range,
                )
            )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def entries(self, kind: MappingKind | None = None) -> list[MappingEntry]:
        if kind is None:
            return list(self._entries.values())
        return [e for e in self._entries.values() if e.kind == kind]

    def find_entry(self, kind: MappingKind, source: str) -> MappingEntry | None:
        return self._entries.get((kind, source))

    def entry(self, kind: MappingKind, source: str) -> MappingEntry:
        found = self.find_entry(kind, source)
        if found is None:
            raise MappingError(f"No {kind} mapping for {source!r}")
        return found

    def domain_target(self, domain: str | None) -> str | None:
        """IFC class currently chosen for an ontology domain class."""
        if not domain:
            return None
        cls_entry = self._entries.get(("class", domain))
        return cls_entry.target if cls_entry else None

    def _index(self) -> dict[str | None, list[MappingEntry]]:
        if self._domain_index is None:
            index: dict[str | None, list[MappingEntry]] = {}
            for entry in self._entries.values():
                if entry.kind in ("attribute", "association"):
                    index.setdefault(entry.domain, []).append(entry)
            self._domain_index = index
        return self._domain_index

    def domains(self) -> list[str]:
        return [d for d in self._index() if d is not None]

    def entries_for_domain(self, domain: str | None) -> list[MappingEntry]:
        """Attributes and associations declared on one ontology class."""
        return list(self._index().get(domain, []))

    def verified_entries(self) -> list[MappingEntry]:
        return [e for e in self._entries.values() if e.verified]

    def summary(self) -> dict[str, int]:
        counts = {kind: 0 for kind in MAPPING_KINDS}
        for entry in self._entries.values():
            counts[entry.kind] += 1
        counts["verified"] = sum(1 for e in self._entries.values() if e.verified)
        counts["unmapped"] = sum(1 for e in self._entries.values() if not e.target)
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "format": self.model.format,
            "summary": self.summary(),
            "entries": [e.to_dict() for e in self._entries.values()],
        }

    def suggest_targets(
        self, entry: MappingEntry, limit: int = 5
    ) -> list[tuple[str, float]]:
        """Candidate target codes ranked by fuzzy similarity to the entry."""
        entry = self._own(entry)
        if entry.kind == "class":
            candidates = self._repository.class_base_names()
        elif entry.kind == "datatype":
            candidates = list(DATATYPE_TARGETS)
        else:
            domain_target = self.domain_target(entry.domain)
            candidates = (
                self._repository.properties_of_class(domain_target)
                if domain_target
                else []
            ) or self._repository.all_properties()
        if not candidates:
            return []
        query = entry.label or entry.source
        matches = process.extract(query, candidates, scorer=fuzz.WRatio, limit=limit)
        return [(choice, float(score)) for choice, score, _ in matches]

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def _own(self, entry: MappingEntry) -> MappingEntry:
        found = self._entries.get(entry.key)
        if found is not entry:
            raise MappingError(
                f"{entry.kind} mapping {entry.source!r} does not belong to this session"
            )
        return found

    def set_target(self, entry: MappingEntry, value: str | None) -> MappingEntry:
        """
        Change the target; any change revokes verification.

        Class targets are split into base class and PredefinedType, and a
        PredefinedType the new base class doesn't offer is dropped.
        """
        entry = self._own(entry)
        value = _clean(value)
        before = (entry.target, entry.predefined_type)
        if entry.kind == "class" and value is not None:
            parts = parse_class_code(self._repository, value)
            entry.target = parts.base_class
            if parts.predefined_type:
                entry.predefined_type = parts.predefined_type
            elif entry.predefined_type and entry.predefined_type not in (
                predefined_types_for(self._repository, parts.base_class)
            ):
                entry.predefined_type = None
        else:
            entry.target = value
            if entry.kind == "class":
                entry.predefined_type = None
        if (entry.target, entry.predefined_type) != before:
            entry.verified = False
        return entry

    def set_property_set(self, entry: MappingEntry, value: str | None) -> MappingEntry:
        """
        Move an attribute/association to another PropertySet.

        The target is cleared when it isn't a member of the new set for the
        domain's class.
        """
        entry = self._own(entry)
        if entry.kind not in ("attribute", "association"):
            raise MappingError(f"{entry.kind} mappings have no PropertySet")
        value = _clean(value)
        if value == entry.property_set:
            return entry
        entry.property_set = value
        entry.verified = False
        if value and entry.target:
            members = self._repository.property_set_members(
                value, self.domain_target(entry.domain)
            )
            if entry.target not in members:
                entry.target = None
        self._audit_event("property_set_changed", entry_payload(entry))
        return entry

    def set_predefined_type(
        self, entry: MappingEntry, value: str | None
    ) -> MappingEntry:
        entry = self._own(entry)
        if entry.kind != "class":
            raise MappingError("Only class mappings have a PredefinedType")
        value = _clean(value)
        if value is not None:
            value = value.upper()
            allowed = (
                predefined_types_for(self._repository, entry.target)
                if entry.target
                else []
            )
            if value not in allowed:
                raise MappingError(
                    f"{value!r} is not a PredefinedType of {entry.target!r}"
                )
        if value != entry.predefined_type:
            entry.predefined_type = value
            entry.verified = False
        return entry

    def verify(self, entry: MappingEntry) -> MappingEntry:
        """Confirm the mapping, remember it, and adopt a target the schema lacks."""
        entry = self._own(entry)
        if not entry.target:
            raise MappingError(
                f"Cannot verify {entry.kind} {entry.source!r} without a target"
            )
        self.adopt_missing_target(entry)
        entry.verified = True
        record = self._store.record_verification(entry)
        self._audit_event(
            "verify", entry_payload(entry, usage_count=record.usage_count)
        )
        return entry

    def verify_all(self, kinds: Iterable[MappingKind] | None = None) -> int:
        """Verify every entry that has a target; returns how many were verified."""
        wanted = set(kinds or MAPPING_KINDS)
        count = 0
        for entry in list(self._entries.values()):
            if entry.kind in wanted and entry.target and not entry.verified:
                self.verify(entry)
                count += 1
        return count

    def adopt_missing_target(self, entry: MappingEntry) -> bool:
        """
        Write the entry's target into the schema overlay if it is unknown.

        Returns True when the overlay changed.  Datatype targets are never
        adopted.
        """
        entry = self._own(entry)
        if not entry.target or entry.kind == "datatype":
            return False
        try:
            if entry.kind == "class":
                if self._repository.has_class(entry.target):
                    return False
                self._repository.add_custom_class(entry.target, name=entry.label)
                self._audit_event(
                    "adopt_class", {"source": entry.source, "target": entry.target}
                )
                return True

            domain_target = self.domain_target(entry.domain)
            if not domain_target:
                logger.info(
                    "%s %s has no mapped domain class, nothing to adopt",
                    entry.kind,
                    entry.source,
                )
                return False
            if entry.target in self._repository.properties_of_class(domain_target):
                return False
            if not entry.property_set:
                entry.property_set = CUSTOM_PROPERTY_SET
            prop = self._repository.add_custom_property(
                domain_target, entry.target, entry.property_set
            )
        except SchemaError as exc:
            raise MappingError(str(exc)) from exc
        entry.property_set = prop.property_set
        self._audit_event(
            "adopt_property",
            {
                "source": entry.source,
                "class": domain_target,
                "target": entry.target,
                "property_set": entry.property_set,
            },
        )
        return True

    # -------------------------------------------------------------------------
    # Repository notifications
    # -------------------------------------------------------------------------

    def _clear(self, entry: MappingEntry) -> None:
        entry.target = None
        entry.verified = False

    def _on_schema_change(self, change: SchemaChange) -> None:
        cleared: list[MappingEntry] = []
        for entry in self._entries.values():
            if entry.kind not in ("attribute", "association"):
                continue
            if not removal_hits(
                change, self._repository, entry.property_set, entry.target
            ):
                continue
            self._clear(entry)
            if change.action != "remove-property":
                entry.property_set = None
            cleared.append(entry)
        if cleared:
            logger.info(
                "%d mapping(s) cleared after %s", len(cleared), change.action
            )
            self._audit_event(
                "mappings_cleared",
                {
                    "action": change.action,
                    "property_set": change.property_set,
                    "property_code": change.property_code,
                    "sources": [e.source for e in cleared],
                },
            )

    def detach(self) -> None:
        self._repository.unsubscribe(self._on_schema_change)

    def _audit_event(self, event: AuditEventName, payload: dict[str, Any]) -> None:
        if self._audit is not None:
            self._audit.record(event, self.session_id, payload)


class MappingEngine:
    """Builds mapping sessions against one repository and mapping store."""

    def __init__(
        self,
        repository: SchemaRepository,
        store: MappingStore | None = None,
        audit: AuditWriter | None = None,
    ) -> None:
        self.repository = repository
        self.store = store if store is not None else MappingStore()
        self.audit = audit
        self._session: MappingSession | None = None
        repository.subscribe(self._forget_removed)

    @property
    def current_session(self) -> MappingSession | None:
        return self._session

    def _forget_removed(self, change: SchemaChange) -> None:
        """Drop remembered property mappings whose target a removal took away."""
        kinds: tuple[MappingKind, ...] = ("attribute", "association")
        for kind in kinds:
            stale = [
                source
                for source, record in self.store.records(kind).items()
                if removal_hits(
                    change, self.repository, record.property_set, record.target
                )
            ]
            dropped = self.store.forget(kind, *stale)
            if not dropped:
                continue
            logger.info(
                "%d %s mapping(s) forgotten after %s",
                len(dropped),
                kind,
                change.action,
            )
            if self.audit is not None:
                session_id = self._session.session_id if self._session else ""
                self.audit.record(
                    "mappings_forgotten",
                    session_id,
                    {"kind": kind, "action": change.action, "sources": dropped},
                )

    def build_session(self, model: OntologyModel) -> MappingSession:
        """New session for a freshly parsed model; the previous one is detached."""
        if self._session is not None:
            self._session.detach()
        self._session = MappingSession(
            model, self.repository, self.store, audit=self.audit
        )
        return self._session
