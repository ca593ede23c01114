from __future__ import annotations

from diagram_core import IssueSeverity, validate_model, validation_summary


def test_empty_diagram_is_info_only(session):
    issues = validate_model(session.model)

    assert [i.severity for i in issues] == [IssueSeverity.INFO]
    assert validation_summary(issues)["valid"] is True


def test_self_loop_and_duplicate_are_warnings(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    session.model.create_connector(a.id, a.id)
    session.model.create_connector(a.id, b.id)
    session.model.create_connector(a.id, b.id)

    issues = validate_model(session.model)
    summary = validation_summary(issues)

    assert summary == {"total": 2, "errors": 0, "warnings": 2, "info": 0, "valid": True}
    messages = " ".join(i.message for i in issues)
    assert "Self-referencing" in messages
    assert "Duplicate" in messages


def test_group_with_missing_member_is_reported(session, add_shape):
    a = add_shape()
    session.model.groups["g1"] = {a.id, "ghost"}

    issues = validate_model(session.model)

    assert len(issues) == 1
    assert "ghost" in issues[0].message


def test_dangling_connector_is_an_error(session):
    session.model.deserialize({
        "shapes": [],
        "connectors": [{"id": "c1", "from": "x", "to": "y"}],
    })

    summary = validation_summary(validate_model(session.model))

    # Both ends dangle, and there are no shapes at all
    assert summary["errors"] == 2
    assert summary["info"] == 1
    assert summary["valid"] is False


def test_issue_to_dict():
    from diagram_core import ValidationIssue

    issue = ValidationIssue(IssueSeverity.WARNING, "odd", connector_id="c1")

    assert issue.to_dict() == {"type": "warning", "message": "odd", "connector_id": "c1"}
