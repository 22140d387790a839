from __future__ import annotations

import random

import pytest

from workflow_builder.errors import GraphError
from workflow_builder.graph.step_graph import (
    add_step,
    configure_step,
    forward_targets,
    new_workflow,
    parse_step_id,
    remap_step_keys,
    remove_step,
)
from workflow_builder.schema.models import ConditionClause, StepKind, Workflow, WorkflowStep


def _workflow(*kinds: str) -> Workflow:
    # Step 1 is always the trigger; kinds describe steps 2..N.
    steps = [WorkflowStep(id=1, type=StepKind.trigger, app_name="gmail")]
    for index, kind in enumerate(kinds, start=2):
        steps.append(
            WorkflowStep(
                id=index,
                type=StepKind(kind),
                conditions=[] if kind == "condition" else None,
            )
        )
    return Workflow(workflow_name="Orders", steps=steps)


def _with_conditions(workflow: Workflow, step_id: int, clauses: list[dict]) -> Workflow:
    steps = [
        step.model_copy(update={"conditions": [ConditionClause.model_validate(c) for c in clauses]})
        if step.id == step_id
        else step
        for step in workflow.steps
    ]
    return Workflow(workflow_name=workflow.workflow_name, steps=steps)


def test_add_step_appends_next_id() -> None:
    workflow = _workflow("action")

    mutation = add_step(workflow, "action")

    assert mutation.changed
    assert mutation.workflow.step_ids() == [1, 2, 3]
    assert mutation.workflow.steps[-1].type == StepKind.action
    assert workflow.step_ids() == [1, 2]


def test_add_condition_step_starts_with_empty_conditions() -> None:
    mutation = add_step(new_workflow("Orders"), StepKind.condition)

    step = mutation.workflow.get_step(2)
    assert step is not None
    assert step.conditions == []


def test_add_trigger_rejected_when_trigger_exists() -> None:
    workflow = new_workflow()

    mutation = add_step(workflow, "trigger")

    assert not mutation.changed
    assert mutation.workflow is workflow
    with pytest.raises(GraphError):
        mutation.raise_for_rejection()


def test_add_action_to_empty_workflow_rejected() -> None:
    mutation = add_step(Workflow(workflow_name="empty"), "action")

    assert mutation.rejection == "cannot add a action step before the trigger"


def test_remove_step_preserves_order_and_compacts_ids() -> None:
    workflow = _workflow("action", "action", "condition", "action")
    titles = {2: "a", 3: "b", 4: "c", 5: "d"}
    workflow = Workflow(
        workflow_name="Orders",
        steps=[step.model_copy(update={"title": titles.get(step.id)}) for step in workflow.steps],
    )

    mutation = remove_step(workflow, "3")

    assert mutation.workflow.step_ids() == [1, 2, 3, 4]
    assert [step.title for step in mutation.workflow.steps] == [None, "a", "c", "d"]
    assert mutation.id_mapping == {1: 1, 2: 2, 4: 3, 5: 4}
    assert mutation.removed_step_id == 3


def test_remove_step_remaps_condition_targets() -> None:
    workflow = _with_conditions(
        _workflow("condition", "action", "action", "action"),
        2,
        [{"if": "{{trigger.subject}} contains 'Order'", "then": "5"}, {"else": "4"}],
    )

    mutation = remove_step(workflow, 3)

    clauses = mutation.workflow.get_step(2).conditions
    assert clauses[0].then == "4"
    assert clauses[1].else_ == "3"
    assert mutation.cleared_references == []
    assert mutation.needs_attention == []


def test_remove_branch_target_clears_reference_and_flags_step() -> None:
    workflow = _with_conditions(
        _workflow("action", "condition", "action", "action"),
        3,
        [{"if": "{{trigger.subject}} contains 'Order'", "then": "5"}, {"else": "4"}],
    )

    mutation = remove_step(workflow, "5")

    clauses = mutation.workflow.get_step(3).conditions
    assert clauses[0].then == ""
    assert clauses[0].if_ == "{{trigger.subject}} contains 'Order'"
    assert clauses[1].else_ == "4"
    assert mutation.needs_attention == [3]
    [ref] = mutation.cleared_references
    assert (ref.step_id, ref.clause_index, ref.branch, ref.previous_target) == (3, 0, "then", "5")


def test_remove_step_shifts_flagged_condition_id() -> None:
    workflow = _with_conditions(
        _workflow("action", "condition", "action"),
        3,
        [{"if": "{{trigger.subject}} equals 'x'", "then": "4"}, {"else": "2"}],
    )

    mutation = remove_step(workflow, 2)

    clauses = mutation.workflow.get_step(2).conditions
    assert clauses[0].then == "3"
    assert clauses[1].else_ == ""
    assert mutation.needs_attention == [2]


def test_remove_step_leaves_blank_targets_blank() -> None:
    workflow = _with_conditions(
        _workflow("condition", "action"),
        2,
        [{"if": "{{trigger.subject}} equals 'x'", "then": ""}],
    )

    mutation = remove_step(workflow, 3)

    assert mutation.workflow.get_step(2).conditions[0].then == ""
    assert mutation.cleared_references == []


def test_remove_last_remaining_step_is_noop() -> None:
    workflow = new_workflow("solo")

    mutation = remove_step(workflow, "1")

    assert not mutation.changed
    assert mutation.workflow.step_ids() == [1]
    assert mutation.rejection == "a workflow must keep at least one step"


@pytest.mark.parametrize("step_id", ["9", "abc", 0, "\u00b2", "\u0663"])
def test_remove_unknown_step_is_noop(step_id) -> None:
    workflow = _workflow("action")

    mutation = remove_step(workflow, step_id)

    assert not mutation.changed
    assert mutation.workflow is workflow


def test_remove_trigger_rejected() -> None:
    mutation = remove_step(_workflow("action", "action"), 1)

    assert mutation.rejection == "the trigger step cannot be removed"
    assert mutation.workflow.step_ids() == [1, 2, 3]


def test_remove_selected_step_signals_selection_cleared() -> None:
    workflow = _workflow("action", "action")

    assert remove_step(workflow, 2, selected_step_id="2").selection_cleared
    assert not remove_step(workflow, 2, selected_step_id="3").selection_cleared
    assert not remove_step(workflow, 2).selection_cleared


def test_remove_does_not_mutate_input() -> None:
    workflow = _with_conditions(
        _workflow("condition", "action", "action"),
        2,
        [{"if": "{{trigger.subject}} equals 'x'", "then": "4"}],
    )

    remove_step(workflow, 3)

    assert workflow.step_ids() == [1, 2, 3, 4]
    assert workflow.get_step(2).conditions[0].then == "4"


def test_ids_stay_contiguous_across_random_mutations() -> None:
    rng = random.Random(7)
    workflow = new_workflow("fuzz")
    for _ in range(200):
        if rng.random() < 0.55 or len(workflow.steps) == 1:
            workflow = add_step(workflow, rng.choice(["action", "condition"])).workflow
        else:
            workflow = remove_step(workflow, rng.randint(2, len(workflow.steps))).workflow
        assert workflow.step_ids() == list(range(1, len(workflow.steps) + 1))
        assert [step.type for step in workflow.steps].count(StepKind.trigger) == 1


def test_ids_compare_numerically_past_nine() -> None:
    workflow = _workflow("condition", *["action"] * 9)
    workflow = _with_conditions(workflow, 2, [{"if": "{{trigger.id}} equals '1'", "then": "11"}])

    mutation = remove_step(workflow, "10")

    assert mutation.workflow.step_ids() == list(range(1, 11))
    assert mutation.workflow.get_step(2).conditions[0].then == "10"


def test_configure_step_sets_operation_by_kind() -> None:
    workflow = _workflow("action")

    trigger = configure_step(workflow, 1, title="New Email Received", operation_id="new_email").workflow
    action = configure_step(
        trigger, 2, app_name="slack", title="Send Direct Message", operation_id="send_dm", config={"text": "hi"}
    ).workflow

    assert action.get_step(1).trigger_id == "new_email"
    assert action.get_step(2).action_id == "send_dm"
    assert action.get_step(2).config == {"text": "hi"}


def test_configure_step_with_new_app_resets_event() -> None:
    workflow = configure_step(_workflow("action"), 2, app_name="slack", title="Add Reaction", operation_id="add_reaction").workflow

    switched = configure_step(workflow, 2, app_name="github").workflow

    step = switched.get_step(2)
    assert step.app_name == "github"
    assert step.title is None
    assert step.action_id is None


def test_configure_condition_step_rejected() -> None:
    mutation = configure_step(_workflow("condition"), 2, app_name="slack")

    assert mutation.rejection == "step 2 is a condition and has no integration"


def test_forward_targets_lists_later_steps_only() -> None:
    workflow = _workflow("action", "condition", "action", "action")

    assert forward_targets(workflow, "3") == [4, 5]
    assert forward_targets(workflow, 5) == []


def test_remap_step_keys_follows_removal() -> None:
    mutation = remove_step(_workflow("action", "action", "action"), 2)

    remapped = remap_step_keys({1: "gmail", 2: "slack", 3: "github", 4: "webhook"}, mutation.id_mapping)

    assert remapped == {1: "gmail", 2: "github", 3: "webhook"}


def test_parse_step_id() -> None:
    assert parse_step_id("12") == 12
    assert parse_step_id(3) == 3
    assert parse_step_id("") is None
    assert parse_step_id("0") is None
    assert parse_step_id(True) is None
    assert parse_step_id("\u00b2") is None
    assert parse_step_id("\u0663") is None


def test_remove_step_clears_non_ascii_digit_target() -> None:
    workflow = _with_conditions(
        _workflow("condition", "action", "action"),
        2,
        [{"if": "{{trigger.subject}} equals 'x'", "then": "\u0663"}, {"else": "4"}],
    )

    mutation = remove_step(workflow, 3)

    clauses = mutation.workflow.get_step(2).conditions
    assert clauses[0].then == ""
    assert clauses[1].else_ == "3"
    assert mutation.needs_attention == [2]
