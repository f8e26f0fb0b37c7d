"""
registry.py

The schema repository: the base IFC class/property dictionary with a
user-extensible overlay on top.

Base and overlay
----------------
The base dictionary is loaded once (from the JSON file or from ifcopenshell,
see ifc_dictionary.py) and never changes afterwards.  Everything the user adds
while mapping goes into the overlay instead: adopted classes, properties
appended to a class, and custom PropertySets.  The overlay never deletes base
entries; for a class code present in both, the property lists are unioned
and the overlay wins on a property-code collision.

PropertySets
------------
Built-in PropertySets are the groupings found in the base dictionary and are
read-only.  Custom PropertySets are named bags of property codes created by
the user; they can gain and lose members and be removed, but not renamed.

Derived structures
------------------
Merged classes, the hierarchy graph and the PropertySet maps are memoized in
one table keyed by name.  Every overlay mutation goes through invalidate(),
which bumps a generation counter and drops the whole table; everything is
rebuilt lazily on the next read.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TypeVar

import networkx as nx
from pydantic import ValidationError

from ifc_mapper.schema.models import (
    CUSTOM_PROPERTY_SET,
    DEFAULT_PROPERTY_SET,
    SchemaClass,
    SchemaDictionary,
    SchemaProperty,
)
from ifc_mapper.schema.predefined_types import parse_class_code
from ifc_mapper.state import CUSTOM_PSETS_KEY, CUSTOM_SCHEMA_KEY, KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChangeAction = Literal["remove-property-set", "remove-property", "clear-overlay"]


class SchemaError(ValueError):
    """Invalid overlay mutation; the repository is left unchanged."""


class SchemaLoadError(Exception):
    """The base dictionary or a persisted overlay could not be read."""


@dataclass(frozen=True)
class HierarchyEdges:
    parents: dict[str, list[str]] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class SchemaChange:
    """Published to subscribers after a removal from the overlay."""

    action: ChangeAction
    property_set: str | None = None
    property_code: str | None = None


SchemaListener = Callable[[SchemaChange], None]


def _coerce_dictionary(source: Any) -> SchemaDictionary:
    try:
        if isinstance(source, SchemaDictionary):
            return source
        if isinstance(source, Path):
            source = source.read_text(encoding="utf-8")
        if isinstance(source, (str, bytes)):
            return SchemaDictionary.model_validate_json(source)
        return SchemaDictionary.model_validate(source)
    except (OSError, ValidationError, ValueError) as exc:
        raise SchemaLoadError(str(exc)) from exc


class SchemaRepository:
    """
    Merged view over the base dictionary and the custom overlay.

    Usage:
        repo = SchemaRepository(Path("output/metadata/ifc_base_schema.json"))
        repo.properties_of_class("IfcWall")
        # -> ["Reference", "FireRating", ...]
        repo.add_custom_property_set("Pset_Acoustics")
        repo.add_property_to_custom_set("Pset_Acoustics", "ReverberationTime")

    Lists returned by the query methods are shared memoized values; copy them
    before modifying.
    """

    def __init__(
        self,
        base: Any = None,
        *,
        backend: KeyValueStore | None = None,
    ) -> None:
        self._base: dict[str, SchemaClass] = {}
        self._overlay: dict[str, SchemaClass] = {}
        self._custom_sets: dict[str, list[str]] = {}
        self._model_version: str | None = None
        self._dictionary_version: str | None = None
        self._generation = 0
        self._memo: dict[Hashable, Any] = {}
        self._listeners: list[SchemaListener] = []
        self._backend = backend
        self.last_load_error: SchemaLoadError | None = None

        if base is not None:
            self.load_base(base)
        if backend is not None:
            self._restore(backend)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load_base(self, source: Any) -> bool:
        """
        Install the base dictionary from a dict, SchemaDictionary, JSON string
        or file path.

        A source that cannot be read is logged and replaced by an empty
        dictionary so the rest of the mapper keeps working.  Returns False in
        that case; the error is kept on `last_load_error`.
        """
        try:
            dictionary = _coerce_dictionary(source)
        except SchemaLoadError as exc:
            logger.warning(
                "Could not load the base schema (%s). Continuing with an empty "
                "dictionary.",
                exc,
            )
            self.last_load_error = exc
            dictionary = SchemaDictionary()
        else:
            self.last_load_error = None

        self._base = {}
        for cls in dictionary.classes:
            if cls.code in self._base:
                logger.debug("Duplicate class code %s in base schema", cls.code)
            self._base[cls.code] = cls
        self._model_version = dictionary.model_version
        self._dictionary_version = dictionary.dictionary_version
        self.invalidate()
        logger.info("Base schema loaded: %d classes", len(self._base))
        return self.last_load_error is None

    def _restore(self, backend: KeyValueStore) -> None:
        raw_overlay = backend.get(CUSTOM_SCHEMA_KEY)
        raw_sets = backend.get(CUSTOM_PSETS_KEY)
        try:
            if raw_overlay:
                self.load_overlay(json.loads(raw_overlay))
            if raw_sets:
                self.load_custom_property_sets(json.loads(raw_sets))
        except (json.JSONDecodeError, SchemaLoadError) as exc:
            logger.warning("Ignoring unreadable persisted schema overlay: %s", exc)

    @property
    def model_version(self) -> str | None:
        return self._model_version

    @property
    def dictionary_version(self) -> str | None:
        return self._dictionary_version

    # -------------------------------------------------------------------------
    # Memo table
    # -------------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> None:
        """Drop every memoized structure; they are rebuilt on next read."""
        self._generation += 1
        self._memo.clear()
        logger.debug("Schema caches invalidated (generation %d)", self._generation)

    def cached(self, key: Hashable, factory: Callable[[], T]) -> T:
        """Memoize `factory()` under `key` until the next invalidate()."""
        try:
            return self._memo[key]
        except KeyError:
            value = factory()
            self._memo[key] = value
            return value

    # -------------------------------------------------------------------------
    # Change notification
    # -------------------------------------------------------------------------

    def subscribe(self, listener: SchemaListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SchemaListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, change: SchemaChange) -> None:
        for listener in list(self._listeners):
            listener(change)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def merged_classes(self) -> list[SchemaClass]:
        return self.cached("merged-classes", self._merge)

    def _merge(self) -> list[SchemaClass]:
        merged: list[SchemaClass] = []
        for code, base_cls in self._base.items():
            overlay_cls = self._overlay.get(code)
            if overlay_cls is None:
                merged.append(base_cls)
                continue
            props = {p.property_code: p for p in base_cls.properties}
            for prop in overlay_cls.properties:
                props[prop.property_code] = prop
            merged.append(
                base_cls.model_copy(update={"properties": list(props.values())})
            )
        for code, overlay_cls in self._overlay.items():
            if code not in self._base:
                merged.append(overlay_cls)
        return merged

    def _class_index(self) -> dict[str, SchemaClass]:
        return self.cached(
            "class-index", lambda: {c.code: c for c in self.merged_classes()}
        )

    def get_class(self, code: str) -> SchemaClass | None:
        return self._class_index().get(code)

    def has_class(self, code: str) -> bool:
        return code in self._class_index()

    def class_base_names(self) -> list[str]:
        """Distinct class codes with PredefinedType suffixes folded away."""

        def _names() -> list[str]:
            return sorted(
                {
                    parse_class_code(self, c.code).base_class
                    for c in self.merged_classes()
                }
            )

        return self.cached("class-base-names", _names)

    def properties_of_class(self, code: str) -> list[str]:
        cls = self.get_class(code)
        if cls is None:
            return []
        return [p.property_code for p in cls.properties]

    def all_properties(self) -> list[str]:
        def _collect() -> list[str]:
            codes = {
                p.property_code for c in self.merged_classes() for p in c.properties
            }
            for members in self._custom_sets.values():
                codes.update(members)
            return sorted(codes)

        return self.cached("all-properties", _collect)

    def hierarchy_graph(self) -> nx.DiGraph:
        """Directed child -> parent graph over every merged class code."""
        return self.cached("hierarchy-graph", self._build_graph)

    def _build_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        index = self._class_index()
        for code, cls in index.items():
            graph.add_node(code, name=cls.name)
        for code, cls in index.items():
            parent = cls.parent_code
            if not parent:
                continue
            if parent not in index:
                logger.warning(
                    "Class %s references unknown parent %s, edge dropped", code, parent
                )
                continue
            graph.add_edge(code, parent)
        return graph

    def hierarchy_edges(self) -> HierarchyEdges:
        def _edges() -> HierarchyEdges:
            graph = self.hierarchy_graph()
            parents: dict[str, list[str]] = {}
            children: dict[str, list[str]] = {}
            for child, parent in graph.edges():
                parents.setdefault(child, []).append(parent)
                children.setdefault(parent, []).append(child)
            return HierarchyEdges(parents=parents, children=children)

        return self.cached("hierarchy-edges", _edges)

    def builtin_property_set_names(self) -> list[str]:
        def _names() -> list[str]:
            names = {
                p.effective_property_set
                for c in self._base.values()
                for p in c.properties
            }
            names.add(DEFAULT_PROPERTY_SET)
            return sorted(names)

        return self.cached("builtin-psets", _names)

    def _builtin_lower(self) -> set[str]:
        return self.cached(
            "builtin-psets-lower",
            lambda: {n.lower() for n in self.builtin_property_set_names()},
        )

    def custom_property_sets(self) -> dict[str, list[str]]:
        return {name: list(members) for name, members in self._custom_sets.items()}

    def _custom_name(self, name: str) -> str | None:
        lowered = name.strip().lower()
        for existing in self._custom_sets:
            if existing.lower() == lowered:
                return existing
        return None

    def is_custom_property_set(self, name: str) -> bool:
        return self._custom_name(name) is not None

    def is_builtin_property_set(self, name: str) -> bool:
        return name.strip().lower() in self._builtin_lower()

    def property_sets_of_class(self, code: str) -> dict[str, list[str]]:
        """
        PropertySet -> property codes for a class: the groupings of the class's
        own (merged) properties first, then every custom set.
        """

        def _groups() -> dict[str, list[str]]:
            groups: dict[str, list[str]] = {}
            cls = self.get_class(code)
            if cls is not None:
                for prop in cls.properties:
                    groups.setdefault(prop.effective_property_set, []).append(
                        prop.property_code
                    )
            for name, members in self._custom_sets.items():
                bucket = groups.setdefault(name, [])
                for member in members:
                    if member not in bucket:
                        bucket.append(member)
            return groups

        return self.cached(("psets-of-class", code), _groups)

    def find_property_set_of(
        self, property_code: str, class_code: str | None = None
    ) -> str | None:
        """PropertySet holding `property_code`, scoped to the class when given."""
        if class_code:
            for name, members in self.property_sets_of_class(class_code).items():
                if property_code in members:
                    return name
        for cls in self.merged_classes():
            for prop in cls.properties:
                if prop.property_code == property_code:
                    return prop.effective_property_set
        for name, members in self._custom_sets.items():
            if property_code in members:
                return name
        return None

    def property_set_members(
        self, name: str, class_code: str | None = None
    ) -> list[str]:
        if class_code:
            return list(self.property_sets_of_class(class_code).get(name, []))
        members: list[str] = []
        for cls in self.merged_classes():
            for prop in cls.properties:
                if prop.effective_property_set != name:
                    continue
                if prop.property_code not in members:
                    members.append(prop.property_code)
        custom = self._custom_name(name)
        if custom is not None:
            for member in self._custom_sets[custom]:
                if member not in members:
                    members.append(member)
        return members

    # -------------------------------------------------------------------------
    # Overlay mutation
    # -------------------------------------------------------------------------

    def add_custom_class(
        self,
        code: str,
        name: str | None = None,
        definition: str = "",
        parent_code: str | None = None,
    ) -> SchemaClass:
        """Adopt a class code into the overlay; known codes are returned as-is."""
        code = code.strip()
        if not code:
            raise SchemaError("Class code must not be empty.")
        existing = self.get_class(code)
        if existing is not None:
            return existing
        if parent_code and not self.has_class(parent_code):
            raise SchemaError(f"Unknown parent class code: {parent_code}")
        cls = SchemaClass(
            code=code,
            name=name or code,
            definition=definition,
            parent_code=parent_code or None,
        )
        self._overlay[code] = cls
        self._changed()
        logger.info("Custom class %s added to the schema overlay", code)
        return cls

    def add_custom_property(
        self,
        class_code: str,
        property_code: str,
        property_set: str | None = None,
    ) -> SchemaProperty:
        """
        Append a property to a class in the overlay.

        Without a PropertySet the property is filed under "CustomProperties".
        A set name that is neither built-in nor custom yet becomes a new custom
        set holding the property.
        """
        class_code = class_code.strip()
        property_code = property_code.strip()
        if not class_code or not property_code:
            raise SchemaError("Class code and property code must not be empty.")
        set_name = (property_set or "").strip() or CUSTOM_PROPERTY_SET
        if not self.is_builtin_property_set(set_name):
            set_name = self._custom_name(set_name) or set_name
            members = self._custom_sets.setdefault(set_name, [])
            if property_code not in members:
                members.append(property_code)

        overlay_cls = self._overlay.get(class_code)
        if overlay_cls is None:
            base_cls = self.get_class(class_code)
            overlay_cls = SchemaClass(
                code=class_code,
                name=base_cls.name if base_cls else class_code,
            )
            self._overlay[class_code] = overlay_cls
        prop = SchemaProperty(
            property_code=property_code, code=property_code, property_set=set_name
        )
        overlay_cls.properties = [
            p for p in overlay_cls.properties if p.property_code != property_code
        ] + [prop]
        self._changed()
        logger.info(
            "Custom property %s added to %s under %s",
            property_code,
            class_code,
            set_name,
        )
        return prop

    def add_custom_property_set(self, name: str) -> str:
        name = name.strip()
        if not name:
            raise SchemaError("PropertySet name must not be empty.")
        if self.is_builtin_property_set(name) or self.is_custom_property_set(name):
            raise SchemaError(f"A PropertySet named {name!r} already exists.")
        self._custom_sets[name] = []
        self._changed()
        return name

    def _require_custom(self, name: str) -> str:
        if self.is_builtin_property_set(name) and not self.is_custom_property_set(name):
            raise SchemaError(f"Built-in PropertySet {name!r} cannot be modified.")
        custom = self._custom_name(name)
        if custom is None:
            raise SchemaError(f"Unknown custom PropertySet: {name!r}")
        return custom

    def add_property_to_custom_set(self, set_name: str, property_code: str) -> bool:
        """Returns False when the property already was a member."""
        property_code = property_code.strip()
        if not property_code:
            raise SchemaError("Property code must not be empty.")
        name = self._require_custom(set_name)
        members = self._custom_sets[name]
        if property_code in members:
            return False
        members.append(property_code)
        self._changed()
        return True

    def remove_custom_property_set(self, name: str) -> None:
        """Remove a custom set, along with overlay properties filed under it."""
        name = self._require_custom(name)
        del self._custom_sets[name]
        for cls in self._overlay.values():
            cls.properties = [p for p in cls.properties if p.property_set != name]
        self._changed()
        logger.info("Custom PropertySet %s removed", name)
        self._publish(SchemaChange(action="remove-property-set", property_set=name))

    def remove_property_from_custom_set(self, name: str, property_code: str) -> None:
        name = self._require_custom(name)
        members = self._custom_sets[name]
        filed = any(
            p.property_code == property_code and p.property_set == name
            for cls in self._overlay.values()
            for p in cls.properties
        )
        if property_code not in members and not filed:
            raise SchemaError(f"{property_code!r} is not a member of {name!r}.")
        self._custom_sets[name] = [m for m in members if m != property_code]
        for cls in self._overlay.values():
            cls.properties = [
                p
                for p in cls.properties
                if not (p.property_code == property_code and p.property_set == name)
            ]
        self._changed()
        self._publish(
            SchemaChange(
                action="remove-property", property_set=name, property_code=property_code
            )
        )

    def clear_overlay(self) -> None:
        self._overlay = {}
        self._custom_sets = {}
        self._changed()
        logger.info("Schema overlay cleared")
        self._publish(SchemaChange(action="clear-overlay"))

    def _changed(self) -> None:
        self.invalidate()
        self._persist()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def overlay_to_dict(self) -> dict[str, Any]:
        """Overlay in the base-schema file shape."""
        return SchemaDictionary(classes=list(self._overlay.values())).to_json_dict()

    def load_overlay(self, data: Any) -> None:
        overlay = _coerce_dictionary(data)
        self._overlay = {cls.code: cls for cls in overlay.classes}
        self.invalidate()

    def custom_property_sets_to_dict(self) -> dict[str, list[str]]:
        return self.custom_property_sets()

    def load_custom_property_sets(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise SchemaLoadError("Custom PropertySets must be a JSON object.")
        sets: dict[str, list[str]] = {}
        for name, members in data.items():
            if not isinstance(members, list) or not all(
                isinstance(m, str) for m in members
            ):
                raise SchemaLoadError(f"Members of {name!r} must be a list of strings.")
            sets[str(name)] = list(dict.fromkeys(members))
        self._custom_sets = sets
        self.invalidate()

    def _persist(self) -> None:
        if self._backend is None:
            return
        self._backend.set(CUSTOM_SCHEMA_KEY, json.dumps(self.overlay_to_dict()))
        self._backend.set(
            CUSTOM_PSETS_KEY, json.dumps(self.custom_property_sets_to_dict())
        )


__all__ = [
    "CUSTOM_PROPERTY_SET",
    "DEFAULT_PROPERTY_SET",
    "HierarchyEdges",
    "SchemaChange",
    "SchemaError",
    "SchemaLoadError",
    "SchemaRepository",
]
