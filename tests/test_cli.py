"""End-to-end tests for the ifc-mapper command line."""

from __future__ import annotations

import json

import pytest

from ifc_mapper.config import AUDIT_LOG_ENV, LOG_LEVEL_ENV
from ifc_mapper.export import REPORT_TITLE
from ifc_mapper.parser import EXAMPLE_TURTLE
from ifc_mapper.run_mapper import main


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.setenv(AUDIT_LOG_ENV, "")
    monkeypatch.setenv(LOG_LEVEL_ENV, "WARNING")


@pytest.fixture
def ontology_file(tmp_path):
    path = tmp_path / "building.ttl"
    path.write_text(EXAMPLE_TURTLE, encoding="utf-8")
    return path


@pytest.fixture
def run(tmp_path, base_schema_file, capsys):
    """Run the CLI against the test dictionary and a private state dir."""

    def _run(*args: str) -> tuple[int, str]:
        code = main(
            [
                *args,
                "--schema",
                str(base_schema_file),
                "--state-dir",
                str(tmp_path / "state"),
            ]
        )
        return code, capsys.readouterr().out

    return _run


def test_json_output(run, ontology_file):
    code, out = run(str(ontology_file), "--json")
    payload = json.loads(out)

    assert code == 0
    assert payload["source"] == str(ontology_file)
    assert payload["model"]["classes"] == 5
    assert payload["session"]["summary"]["verified"] == 0
    assert payload["issues"] == []


def test_builtin_example_without_source(run):
    code, out = run("--json")

    assert code == 0
    assert json.loads(out)["source"] == "built-in example"


def test_table_output(run, ontology_file):
    code, out = run(str(ontology_file))

    assert code == 0
    assert "IFC Model Mapper" in out
    assert "Classes" in out
    assert "IfcWall" in out


def test_verified_mappings_persist_between_runs(run, ontology_file, tmp_path):
    code, _ = run(
        str(ontology_file), "--set", "class:Wall=IfcWallSHEAR", "--verify-all"
    )
    assert code == 0
    assert (tmp_path / "state" / "state.json").is_file()

    _, out = run(str(ontology_file), "--json")
    entries = {
        (e["kind"], e["source"]): e for e in json.loads(out)["session"]["entries"]
    }
    wall = entries[("class", "Wall")]
    assert (wall["target"], wall["predefined_type"], wall["verified"]) == (
        "IfcWall",
        "SHEAR",
        True,
    )


def test_reverse_hierarchy_is_reported(run, ontology_file):
    code, out = run(
        str(ontology_file),
        "--set",
        "class:Wall=IfcBuildingElement",
        "--set",
        "class:BuildingElement=IfcWall",
        "--json",
    )

    assert code == 0
    kinds = {i["child"]: i["kind"] for i in json.loads(out)["issues"]}
    assert kinds == {"Wall": "reverse-hierarchy", "Door": "child-generalization"}


def test_property_sets(run, ontology_file):
    code, _ = run(str(ontology_file), "--add-pset", "Pset_Acoustics")
    assert code == 0

    _, out = run(str(ontology_file), "--list-psets", "IfcWall", "--json")
    psets = json.loads(out)["property_sets"]
    assert psets["Pset_Acoustics"] == []
    assert "FireRating" in psets["Pset_WallCommon"]

    code, _ = run(str(ontology_file), "--remove-pset", "Pset_Acoustics")
    assert code == 0
    _, out = run(str(ontology_file), "--list-psets", "IfcWall", "--json")
    assert "Pset_Acoustics" not in json.loads(out)["property_sets"]


def test_invalid_pset_operation_fails(run, ontology_file):
    code, _ = run(str(ontology_file), "--remove-pset", "Pset_WallCommon")

    assert code == 1


def test_unknown_mapping_source_fails(run, ontology_file):
    code, _ = run(str(ontology_file), "--set", "class:Nope=IfcWall")

    assert code == 1


def test_bad_assignment_syntax_exits(run):
    with pytest.raises(SystemExit):
        run("--set", "Wall=IfcWall")
    with pytest.raises(SystemExit):
        run("--set", "shape:Wall=IfcWall")


def test_exports(run, ontology_file, tmp_path):
    step = tmp_path / "out" / "model.ifc"
    diagram = tmp_path / "out" / "graph.json"

    code, out = run(
        str(ontology_file),
        "--verify-all",
        "--report",
        "-",
        "--step",
        str(step),
        "--diagram",
        str(diagram),
    )

    assert code == 0
    assert REPORT_TITLE in out
    assert step.read_text(encoding="utf-8").startswith("ISO-10303-21;")
    assert "#10=IFCBUILDING(" in step.read_text(encoding="utf-8")
    assert json.loads(diagram.read_text(encoding="utf-8"))["links"]


def test_validate_only(run, ontology_file):
    code, out = run(str(ontology_file), "--validate-only")

    assert code == 0
    assert "ontology is valid" in out
    assert '"classes": 5' in out


def test_validate_only_rejects_garbage(run, tmp_path):
    path = tmp_path / "garbage.txt"
    path.write_text("just some words", encoding="utf-8")

    code, _ = run(str(path), "--validate-only")

    assert code == 1


def test_missing_source_file(run, tmp_path):
    code, _ = run(str(tmp_path / "missing.ttl"))

    assert code == 2


def test_audit_log(run, ontology_file, tmp_path):
    audit = tmp_path / "audit.jsonl"

    run(str(ontology_file), "--verify-all", "--audit-log", str(audit))

    events = [json.loads(line) for line in audit.read_text().splitlines()]
    assert {e["event"] for e in events} == {"verify"}
    assert len(events) == 10
