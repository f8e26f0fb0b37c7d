"""
Checks that the ontology's subclass edges survive the chosen class mappings.

For an ontology edge `child subClassOf parent`, the mapping is consistent when
the parent's IFC target is an ancestor of (or equal to) the child's target.
Targets in unrelated branches of the IFC hierarchy are accepted; two
independent modeling choices are not reported as an error.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from ifc_mapper.parser.models import SubclassEdge

if TYPE_CHECKING:
    from ifc_mapper.mapping.engine import MappingSession
    from ifc_mapper.schema.registry import SchemaRepository

IssueKind = Literal["unknown-target-class", "reverse-hierarchy", "child-generalization"]


@dataclass(frozen=True)
class HierarchyIssue:
    kind: IssueKind
    child: str
    parent: str
    child_target: str
    parent_target: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "child": self.child,
            "parent": self.parent,
            "child_target": self.child_target,
            "parent_target": self.parent_target,
            "message": self.message,
        }


def is_ancestor(a: str, b: str, parents: Mapping[str, Sequence[str]]) -> bool:
    """True if `a == b` or `a` is reachable from `b` by following parent edges."""
    if a == b:
        return True
    visited = {b}
    q = deque([b])
    while q:
        node = q.popleft()
        for parent in parents.get(node, ()):
            if parent == a:
                return True
            if parent in visited:
                continue
            visited.add(parent)
            q.append(parent)
    return False


def _same_level(a: str, b: str, parents: Mapping[str, Sequence[str]]) -> bool:
    return bool(set(parents.get(a, ())) & set(parents.get(b, ())))


def validate_hierarchy(
    session: MappingSession,
    subclass_edges: Iterable[SubclassEdge | tuple[str, str]],
    repository: SchemaRepository | None = None,
) -> list[HierarchyIssue]:
    """Return one issue per ontology edge whose mapped targets contradict it."""
    repository = repository or session.repository
    parents = repository.hierarchy_edges().parents
    issues: list[HierarchyIssue] = []

    for edge in subclass_edges:
        if isinstance(edge, SubclassEdge):
            child, parent = edge.child, edge.parent
        else:
            child, parent = edge
        child_entry = session.find_entry("class", child)
        parent_entry = session.find_entry("class", parent)
        if child_entry is None or parent_entry is None:
            continue
        child_target, parent_target = child_entry.target, parent_entry.target
        if not child_target or not parent_target:
            continue

        unknown = [
            t for t in (child_target, parent_target) if not repository.has_class(t)
        ]
        if unknown:
            issues.append(
                HierarchyIssue(
                    kind="unknown-target-class",
                    child=child,
                    parent=parent,
                    child_target=child_target,
                    parent_target=parent_target,
                    message=(
                        f"{child} -> {parent}: {', '.join(unknown)} "
                        "is not a class of the schema"
                    ),
                )
            )
            continue

        if is_ancestor(parent_target, child_target, parents):
            continue
        if is_ancestor(child_target, parent_target, parents):
            kind: IssueKind = "reverse-hierarchy"
            message = (
                f"{child} is a subclass of {parent}, but {child_target} is a "
                f"supertype of {parent_target}"
            )
        elif _same_level(child_target, parent_target, parents):
            kind = "child-generalization"
            message = (
                f"{child} is a subclass of {parent}, but {child_target} is on the "
                f"same level as {parent_target}"
            )
        else:
            continue
        issues.append(
            HierarchyIssue(
                kind=kind,
                child=child,
                parent=parent,
                child_target=child_target,
                parent_target=parent_target,
                message=message,
            )
        )
    return issues
