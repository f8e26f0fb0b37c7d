"""
generate_base_schema.py

Export the base IFC class/property dictionary built from ifcopenshell into the
JSON file the mapper loads at startup.

The JSON is written to output/metadata/ifc_base_schema.json by default and
can be inspected or hand edited; the mapper builds the same dictionary in
memory whenever the file is missing.

Usage:
  ifc-mapper-generate-base-schema [--schema IFC4X3] [--out path.json]
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from ifc_mapper.paths import find_base_schema_path
from ifc_mapper.schema.ifc_dictionary import build_base_dictionary, write_base_schema

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    default_out = find_base_schema_path()
    ap = argparse.ArgumentParser(
        description="Export the ifcopenshell-derived base schema to JSON."
    )
    ap.add_argument(
        "--schema",
        default="IFC4",
        help="IFC schema version known to ifcopenshell (default: IFC4).",
    )
    ap.add_argument(
        "--out",
        type=Path,
        default=default_out,
        help=f"Output path (default: {default_out})",
    )
    args = ap.parse_args(argv)

    out_path = args.out.expanduser().resolve()
    logger.info("Building base schema from ifcopenshell (%s)...", args.schema)
    dictionary = build_base_dictionary(args.schema)
    if not dictionary.classes:
        logger.error("No classes were produced; nothing written.")
        return 1

    write_base_schema(dictionary, out_path)
    logger.info(
        "Base schema written to %s (%d classes)", out_path, len(dictionary.classes)
    )
    print(f"\nBase schema ready at: {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
