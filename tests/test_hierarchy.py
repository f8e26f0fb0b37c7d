"""Tests for the subclass-consistency check of class mappings."""

from __future__ import annotations

from ifc_mapper.validation import is_ancestor, validate_hierarchy

PARENTS = {
    "IfcWall": ["IfcBuildingElement"],
    "IfcDoor": ["IfcBuildingElement"],
    "IfcBuildingElement": ["IfcElement"],
    "IfcElement": ["IfcProduct"],
}


def _map(session, **targets):
    for source, target in targets.items():
        session.set_target(session.entry("class", source), target)


def test_is_ancestor():
    assert is_ancestor("IfcWall", "IfcWall", PARENTS)
    assert is_ancestor("IfcProduct", "IfcWall", PARENTS)
    assert not is_ancestor("IfcWall", "IfcProduct", PARENTS)
    assert not is_ancestor("IfcDoor", "IfcWall", PARENTS)
    assert not is_ancestor("IfcSpace", "IfcUnknown", PARENTS)


def test_is_ancestor_terminates_on_cycles():
    cyclic = {"A": ["B"], "B": ["A"]}

    assert not is_ancestor("C", "A", cyclic)
    assert is_ancestor("B", "A", cyclic)


def test_consistent_mapping_has_no_issues(engine, hierarchy_model):
    session = engine.build_session(hierarchy_model)
    _map(session, A="IfcBuildingElement", B="IfcWall")

    assert validate_hierarchy(session, hierarchy_model.subclass_edges) == []


def test_same_target_has_no_issue(engine, hierarchy_model):
    session = engine.build_session(hierarchy_model)
    _map(session, A="IfcWall", B="IfcWall")

    assert validate_hierarchy(session, hierarchy_model.subclass_edges) == []


def test_reverse_hierarchy(engine, hierarchy_model):
    session = engine.build_session(hierarchy_model)
    _map(session, A="IfcBuildingElement", B="IfcWall")

    issues = validate_hierarchy(session, [("A", "B")])

    assert len(issues) == 1
    issue = issues[0]
    assert issue.kind == "reverse-hierarchy"
    assert (issue.child_target, issue.parent_target) == (
        "IfcBuildingElement",
        "IfcWall",
    )
    assert issue.message == (
        "A is a subclass of B, but IfcBuildingElement is a supertype of IfcWall"
    )


def test_siblings_are_child_generalization(engine, hierarchy_model):
    session = engine.build_session(hierarchy_model)
    _map(session, A="IfcWall", B="IfcDoor")

    issues = validate_hierarchy(session, hierarchy_model.subclass_edges)

    assert [i.kind for i in issues] == ["child-generalization"]
    assert "on the same level as" in issues[0].message


def test_unrelated_branches_are_accepted(engine, hierarchy_model):
    session = engine.build_session(hierarchy_model)
    _map(session, A="IfcWall", B="IfcSpace")

    assert validate_hierarchy(session, hierarchy_model.subclass_edges) == []


def test_unknown_target_class(engine, hierarchy_model):
    session = engine.build_session(hierarchy_model)
    _map(session, A="IfcBuildingElement", B="IfcMadeUp")

    issues = validate_hierarchy(session, hierarchy_model.subclass_edges)

    assert [i.kind for i in issues] == ["unknown-target-class"]
    assert "IfcMadeUp" in issues[0].message
    assert issues[0].to_dict()["child"] == "B"


def test_unmapped_or_missing_classes_are_skipped(engine, hierarchy_model):
    session = engine.build_session(hierarchy_model)
    _map(session, A=None)

    assert validate_hierarchy(session, hierarchy_model.subclass_edges) == []
    assert validate_hierarchy(session, [("B", "Missing")]) == []


def test_example_ontology_is_consistent(session, example_model):
    assert validate_hierarchy(session, example_model.subclass_edges) == []
