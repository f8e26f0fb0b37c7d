from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, cast

from ifc_mapper.audit import AuditWriter
from ifc_mapper.config import load_settings
from ifc_mapper.export import hierarchy_diagram, render_mapping_report, render_step_stub
from ifc_mapper.mapping import (
    MAPPING_KINDS,
    MappingEngine,
    MappingError,
    MappingKind,
    MappingStore,
)
from ifc_mapper.parser import (
    EXAMPLE_TURTLE,
    ParseError,
    detect_format,
    format_from_filename,
    parse,
    validate_source,
)
from ifc_mapper.schema import SchemaError, SchemaRepository
from ifc_mapper.schema.ifc_dictionary import load_base_schema
from ifc_mapper.state import JsonFileStore
from ifc_mapper.tui import (
    print_details,
    print_error,
    print_issues,
    print_property_sets,
    print_session,
    print_success,
    print_welcome,
)
from ifc_mapper.validation import validate_hierarchy

logger = logging.getLogger(__name__)


def _parse_assignment(value: str) -> tuple[MappingKind, str, str | None]:
    """KIND:SOURCE=TARGET -> (kind, source, target); an empty target clears it."""
    left, sep, target = value.partition("=")
    kind, colon, source = left.partition(":")
    kind = kind.strip().lower()
    if not sep or not colon or not source.strip():
        raise argparse.ArgumentTypeError(
            f"Expected KIND:SOURCE=TARGET, got {value!r}"
        )
    if kind not in MAPPING_KINDS:
        raise argparse.ArgumentTypeError(
            f"Unknown mapping kind {kind!r}, expected one of "
            + ", ".join(MAPPING_KINDS)
        )
    return cast(MappingKind, kind), source.strip(), target.strip() or None


def _read_source(path: Path | None, fmt: str) -> tuple[str, str, str]:
    """(text, label, format) for the input file or the built-in example."""
    if path is None:
        return EXAMPLE_TURTLE, "built-in example", "turtle" if fmt == "auto" else fmt
    text = path.expanduser().read_text(encoding="utf-8")
    if fmt == "auto":
        fmt = detect_format(text) or format_from_filename(path.name) or "auto"
    return text, str(path), fmt


def _write_output(target: str, content: str) -> None:
    if target == "-":
        sys.stdout.write(content)
        return
    out_path = Path(target).expanduser()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(content, encoding="utf-8")
    logger.info("Wrote %s", out_path)


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Map an OWL ontology (Turtle or RDF/XML) onto IFC classes."
    )
    ap.add_argument(
        "source",
        nargs="?",
        type=Path,
        default=None,
        help="Ontology file (defaults to a small built-in Turtle example).",
    )
    ap.add_argument(
        "--format",
        default="auto",
        help="turtle, rdfxml (or ttl, owl, rdf, xml) or auto (default).",
    )
    ap.add_argument(
        "--schema",
        type=Path,
        default=None,
        help="Base schema JSON (defaults to IFC_MAPPER_BASE_SCHEMA or "
        "output/metadata/ifc_base_schema.json).",
    )
    ap.add_argument(
        "--state-dir",
        type=Path,
        default=None,
        help="Directory for mapping history and schema overlay.",
    )
    ap.add_argument(
        "--set",
        dest="assignments",
        action="append",
        default=[],
        type=_parse_assignment,
        metavar="KIND:SOURCE=TARGET",
        help="Override a target, e.g. class:Wall=IfcWallSHEAR (repeatable).",
    )
    ap.add_argument(
        "--verify-all",
        action="store_true",
        default=False,
        help="Verify every mapping that has a target and remember it.",
    )
    ap.add_argument(
        "--add-pset",
        action="append",
        default=[],
        metavar="NAME",
        help="Create a custom PropertySet (repeatable).",
    )
    ap.add_argument(
        "--remove-pset",
        action="append",
        default=[],
        metavar="NAME",
        help="Remove a custom PropertySet (repeatable).",
    )
    ap.add_argument(
        "--list-psets",
        metavar="CLASS",
        default=None,
        help="Show the PropertySets available for an IFC class.",
    )
    ap.add_argument(
        "--report", metavar="PATH", help="Write the text report ('-' = stdout)."
    )
    ap.add_argument(
        "--step", metavar="PATH", help="Write the STEP stub ('-' = stdout)."
    )
    ap.add_argument(
        "--diagram", metavar="PATH", help="Write the hierarchy diagram as JSON."
    )
    ap.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the session and issues as JSON instead of tables.",
    )
    ap.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only check that the ontology parses and print its counts.",
    )
    ap.add_argument(
        "--audit-log",
        type=Path,
        default=None,
        help="Append audit events to this JSONL file.",
    )
    ap.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Debug logging and full JSON details.",
    )
    return ap


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    level = logging.DEBUG if args.verbose else settings.log_level
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        text, label, fmt = _read_source(args.source, args.format)
    except OSError as exc:
        print_error(f"Cannot read {args.source}: {exc}")
        return 2

    if args.validate_only:
        try:
            summary = validate_source(text, fmt)
        except ParseError as exc:
            print_error(str(exc))
            return 1
        print_success(f"{label}: ontology is valid")
        print(json.dumps(summary, indent=2))
        return 0

    try:
        model = parse(text, fmt)
    except ParseError as exc:
        print_error(str(exc))
        return 1

    state_file = (
        args.state_dir.expanduser() / "state.json"
        if args.state_dir is not None
        else settings.state_file
    )
    backend = JsonFileStore(state_file)
    repository = SchemaRepository(backend=backend)
    if args.schema is not None:
        repository.load_base(args.schema.expanduser())
    else:
        load_base_schema(settings, repository)

    audit_path = args.audit_log or settings.audit_log_path
    audit = AuditWriter(audit_path.expanduser()) if audit_path else None
    engine = MappingEngine(repository, MappingStore(backend), audit=audit)

    try:
        session = engine.build_session(model)
        for name in args.add_pset:
            repository.add_custom_property_set(name)
        for name in args.remove_pset:
            repository.remove_custom_property_set(name)
        for kind, source, target in args.assignments:
            session.set_target(session.entry(kind, source), target)
        verified = session.verify_all() if args.verify_all else 0
        issues = validate_hierarchy(session, model.subclass_edges)
    except (SchemaError, MappingError) as exc:
        print_error(str(exc))
        return 1
    finally:
        if audit is not None:
            audit.close()

    if args.json:
        payload: dict[str, Any] = {
            "source": label,
            "model": model.summary(),
            "session": session.to_dict(),
            "issues": [issue.to_dict() for issue in issues],
        }
        if args.list_psets:
            payload["property_sets"] = repository.property_sets_of_class(
                args.list_psets
            )
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        error = repository.last_load_error
        print_welcome(
            label, len(repository.merged_classes()), str(error) if error else None
        )
        print_session(session)
        print_issues(issues)
        if verified:
            print_success(f"{verified} mapping(s) verified")
        if args.list_psets:
            print_property_sets(
                args.list_psets, repository.property_sets_of_class(args.list_psets)
            )
        if args.verbose:
            print_details(session.to_dict())

    model_name = args.source.stem if args.source is not None else "example"
    if args.report:
        _write_output(args.report, render_mapping_report(session))
    if args.step:
        _write_output(args.step, render_step_stub(session, model_name=model_name))
    if args.diagram:
        _write_output(
            args.diagram,
            json.dumps(hierarchy_diagram(session, model), indent=2, ensure_ascii=False)
            + "\n",
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
