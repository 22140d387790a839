from __future__ import annotations

import json

import pytest

from workflow_builder.compiler.parse import (
    build_publish_payload,
    dump_workflow,
    parse_workflow,
    publish_endpoint,
)
from workflow_builder.errors import ValidationPhaseError
from workflow_builder.schema.models import StepKind

WIRE_DOCUMENT = {
    "workflowName": "Order alerts",
    "steps": [
        {
            "id": "1",
            "type": "trigger",
            "appName": "gmail",
            "title": "New Email Received",
            "triggerId": "new_email",
            "config": {},
        },
        {
            "id": "2",
            "type": "condition",
            "conditions": [
                {"if": "{{trigger.subject}} contains 'Order'", "then": "3"},
                {"else": "4"},
            ],
        },
        {
            "id": "3",
            "type": "action",
            "appName": "slack",
            "title": "Send Direct Message",
            "actionId": "send_dm",
            "config": {"userId": "U1", "text": "hi"},
        },
        {"id": "4", "type": "action"},
    ],
}


def test_parse_workflow_reads_camel_case_document() -> None:
    workflow = parse_workflow(WIRE_DOCUMENT)

    assert workflow.workflow_name == "Order alerts"
    assert workflow.step_ids() == [1, 2, 3, 4]
    assert workflow.trigger.trigger_id == "new_email"
    assert workflow.get_step(2).type == StepKind.condition
    assert workflow.get_step(3).operation_id == "send_dm"


def test_dump_workflow_reproduces_wire_document() -> None:
    assert dump_workflow(parse_workflow(json.dumps(WIRE_DOCUMENT))) == WIRE_DOCUMENT


def test_parse_workflow_reads_stored_record() -> None:
    record = {
        "id": "wf1",
        "name": "Orders",
        "userId": "u-1",
        "createdAt": "2024-05-01T12:00:00Z",
        "steps": [{"id": "1", "type": "trigger"}],
    }

    workflow = parse_workflow(record)

    assert workflow.workflow_name == "Orders"
    assert workflow.step_ids() == [1]
    assert dump_workflow(workflow) == {"workflowName": "Orders", "steps": [{"id": "1", "type": "trigger"}]}


def test_parse_workflow_record_without_name_or_steps() -> None:
    workflow = parse_workflow({"id": "wf2"})

    assert workflow.workflow_name == ""
    assert workflow.steps == []


def test_parse_workflow_unwraps_publish_payload() -> None:
    payload = build_publish_payload(parse_workflow(WIRE_DOCUMENT), user_id="u-1")

    assert parse_workflow(payload).step_ids() == [1, 2, 3, 4]


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        42,
        {"workflowName": "x", "steps": [{"id": "1", "type": "trigger"}, {"id": "3", "type": "action"}]},
        {"workflowName": "x", "steps": [{"id": "1", "type": "action"}]},
        {"workflowName": "x", "steps": [{"id": "1", "type": "trigger", "colour": "red"}]},
        {"workflowName": "x", "steps": [{"id": "1", "type": "loop"}]},
        {
            "workflowName": "x",
            "steps": [
                {"id": "1", "type": "trigger"},
                {"id": "2", "type": "condition", "conditions": [{"if": "a", "then": "3", "else": "3"}]},
            ],
        },
    ],
)
def test_parse_workflow_rejects_malformed_payloads(payload) -> None:
    with pytest.raises(ValidationPhaseError):
        parse_workflow(payload)


def test_build_publish_payload_shapes() -> None:
    workflow = parse_workflow(WIRE_DOCUMENT)

    with_user = build_publish_payload(workflow, user_id="u-1")
    without_user = build_publish_payload(workflow)

    assert list(with_user) == ["userId", "workflow"]
    assert with_user["userId"] == "u-1"
    assert with_user["workflow"] == {"workflowName": "Order alerts", "steps": WIRE_DOCUMENT["steps"]}
    assert without_user == {"workflow": with_user["workflow"]}


@pytest.mark.parametrize(
    ("workflow_id", "test", "expected"),
    [
        (None, False, ("POST", "/workflows/create")),
        ("wf-9", False, ("PATCH", "/workflows/wf-9")),
        ("wf-9", True, ("POST", "/workflows/test")),
        (None, True, ("POST", "/workflows/test")),
    ],
)
def test_publish_endpoint(workflow_id, test, expected) -> None:
    assert publish_endpoint(workflow_id, test=test) == expected
