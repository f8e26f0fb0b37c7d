"""Terminal output formatting for the ifc-mapper CLI."""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ifc_mapper.mapping.engine import MappingSession
    from ifc_mapper.mapping.models import MappingKind
    from ifc_mapper.validation.hierarchy import HierarchyIssue

# ANSI escape codes for terminal styling.
_BOLD = "\033[1m"
_DIM = "\033[2m"
_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RED = "\033[31m"
_RESET = "\033[0m"


def _supports_color() -> bool:
    """Return True if stdout likely supports ANSI colours."""
    if not hasattr(sys.stdout, "isatty"):
        return False
    return sys.stdout.isatty()


# Disable colour codes when piped.
if not _supports_color():
    _BOLD = _DIM = _CYAN = _GREEN = _YELLOW = _RED = _RESET = ""

_KIND_HEADINGS: tuple[tuple[MappingKind, str], ...] = (
    ("class", "Classes"),
    ("attribute", "Attributes"),
    ("association", "Associations"),
    ("datatype", "Datatypes"),
)

# Column definitions: (header, key, max_width)
_COLUMNS: list[tuple[str, str, int]] = [
    ("Source", "source", 28),
    ("Target", "target", 28),
    ("PropertySet", "property_set", 26),
    ("Type", "predefined_type", 14),
    ("Domain", "domain", 20),
]


# ── Public API ──────────────────────────────────────────────────────────


def print_welcome(source: str, schema_classes: int, schema_error: str | None) -> None:
    """Print the startup banner."""
    print(f"{_BOLD}IFC Model Mapper{_RESET}")
    print(f"  ontology: {_DIM}{source}{_RESET}")
    if schema_error:
        print(f"  schema:   {_YELLOW}empty ({schema_error}){_RESET}")
    else:
        print(f"  schema:   {_DIM}{schema_classes} classes{_RESET}")


def print_session(session: MappingSession) -> None:
    """Print one table per mapping kind."""
    for kind, heading in _KIND_HEADINGS:
        entries = session.entries(kind)
        if not entries:
            continue
        print(f"\n{_BOLD}{_CYAN}{heading}{_RESET}")
        _print_entry_table([e.to_dict() for e in entries])
    summary = session.summary()
    print(
        f"\n   {_DIM}{summary['verified']} verified, "
        f"{summary['unmapped']} without target{_RESET}"
    )


def print_issues(issues: list[HierarchyIssue]) -> None:
    if not issues:
        print(f"\n{_BOLD}{_GREEN}Hierarchy:{_RESET} no issues")
        return
    print(f"\n{_BOLD}{_YELLOW}Hierarchy issues ({len(issues)}):{_RESET}")
    for issue in issues:
        print(f"   - [{issue.kind}] {issue.message}")


def print_property_sets(class_code: str, groups: dict[str, list[str]]) -> None:
    print(f"\n{_BOLD}{_CYAN}PropertySets of {class_code}{_RESET}")
    if not groups:
        print(f"   {_DIM}(none){_RESET}")
        return
    for name, members in groups.items():
        print(f"   {_BOLD}{name}{_RESET}")
        for member in members:
            print(f"     - {member}")


def print_success(message: str) -> None:
    print(f"{_GREEN}{message}{_RESET}")


def print_error(error: str) -> None:
    """Print an error message to stderr."""
    print(f"{_BOLD}{_RED}Error:{_RESET} {error}", file=sys.stderr)


def print_details(data: dict[str, Any]) -> None:
    """Print JSON details under a separator."""
    print(f"\n   {_DIM}--- Details ---{_RESET}")
    for line in json.dumps(data, indent=2, ensure_ascii=False).splitlines():
        print(f"   {_DIM}{line}{_RESET}")


# ── Helpers ─────────────────────────────────────────────────────────────


def _print_entry_table(rows: list[dict[str, Any]]) -> None:
    # Filter to columns that actually have data.
    active_cols = [
        (header, key, width)
        for header, key, width in _COLUMNS
        if any(row.get(key) for row in rows)
    ]
    if not active_cols:
        return

    header_parts = [f"{'':>2}"]
    for header, _key, width in active_cols:
        header_parts.append(f"{header:<{width}}")
    separator = "  ".join(["-" * 2] + ["-" * width for _, _, width in active_cols])
    print(f"   {_DIM}{'  '.join(header_parts)}{_RESET}")
    print(f"   {_DIM}{separator}{_RESET}")

    for row in rows:
        mark = f"{_GREEN}✓{_RESET} " if row.get("verified") else "  "
        row_parts = [mark]
        for _header, key, width in active_cols:
            val = str(row.get(key) or "")
            if len(val) > width:
                val = val[: width - 1] + "…"
            row_parts.append(f"{val:<{width}}")
        print(f"   {'  '.join(row_parts)}")
