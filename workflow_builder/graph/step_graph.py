"""
Mutations of the ordered step sequence.

Every operation takes a Workflow document and returns a GraphMutation that
holds the resulting document; the input document is never modified. After
any mutation the step ids are exactly 1..N in their original relative order,
step 1 is the trigger, and condition branch targets follow the renumbering.

Targets that would point at a step that no longer exists are cleared to ""
and the owning condition step is reported in ``needs_attention``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, TypeVar

from shared.logger import get_logger
from workflow_builder.errors import GraphError
from workflow_builder.schema.models import ConditionClause, StepKind, Workflow, WorkflowStep

logger = get_logger(__name__)

T = TypeVar("T")

_STEP_ID = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ClearedReference:
    step_id: int
    clause_index: int
    branch: str
    previous_target: str


@dataclass
class GraphMutation:
    workflow: Workflow
    changed: bool = True
    rejection: Optional[str] = None
    id_mapping: Dict[int, int] = field(default_factory=dict)
    removed_step_id: Optional[int] = None
    cleared_references: List[ClearedReference] = field(default_factory=list)
    selection_cleared: bool = False

    @property
    def needs_attention(self) -> List[int]:
        return sorted({ref.step_id for ref in self.cleared_references})

    def raise_for_rejection(self) -> Workflow:
        if self.rejection is not None:
            raise GraphError(self.rejection)
        return self.workflow


def parse_step_id(value: Any) -> Optional[int]:
    """Return the integer id for "3" / 3, or None when it is not a step id."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, str) and _STEP_ID.fullmatch(value.strip()):
        number = int(value.strip())
        return number if number >= 1 else None
    return None


def _reject(workflow: Workflow, reason: str) -> GraphMutation:
    logger.info(f"Rejected step graph mutation: {reason}")
    return GraphMutation(workflow=workflow, changed=False, rejection=reason)


def _with_steps(workflow: Workflow, steps: List[WorkflowStep]) -> Workflow:
    return Workflow(workflow_name=workflow.workflow_name, steps=steps)


def _identity_mapping(workflow: Workflow) -> Dict[int, int]:
    return {step_id: step_id for step_id in workflow.step_ids()}


def new_workflow(name: str = "") -> Workflow:
    """A document holding a single, not yet configured trigger."""
    return Workflow(workflow_name=name, steps=[WorkflowStep(id=1, type=StepKind.trigger)])


def add_step(workflow: Workflow, kind: StepKind | str) -> GraphMutation:
    kind = StepKind(kind)
    if kind == StepKind.trigger:
        if workflow.steps:
            return _reject(workflow, "workflow already has a trigger step")
    elif workflow.trigger is None:
        return _reject(workflow, f"cannot add a {kind.value} step before the trigger")

    new_step = WorkflowStep(
        id=len(workflow.steps) + 1,
        type=kind,
        conditions=[] if kind == StepKind.condition else None,
    )
    steps = [step.model_copy(deep=True) for step in workflow.steps]
    steps.append(new_step)
    return GraphMutation(
        workflow=_with_steps(workflow, steps),
        id_mapping=_identity_mapping(workflow),
    )


def _remap_target(target: Optional[str], id_mapping: Mapping[int, int]) -> Tuple[Optional[str], bool]:
    if not target:
        return target, False
    old_id = parse_step_id(target)
    if old_id is not None and old_id in id_mapping:
        return str(id_mapping[old_id]), False
    return "", True


def _remap_conditions(
    step_id: int,
    clauses: List[ConditionClause],
    id_mapping: Mapping[int, int],
    cleared: List[ClearedReference],
) -> List[ConditionClause]:
    remapped: List[ConditionClause] = []
    for index, clause in enumerate(clauses):
        branch = "else" if clause.is_else else "then"
        previous = clause.target
        target, was_cleared = _remap_target(previous, id_mapping)
        if was_cleared:
            cleared.append(
                ClearedReference(
                    step_id=step_id,
                    clause_index=index,
                    branch=branch,
                    previous_target=previous or "",
                )
            )
        update = {"else_": target} if clause.is_else else {"then": target}
        remapped.append(clause.model_copy(update=update))
    return remapped


def remove_step(
    workflow: Workflow,
    step_id: int | str,
    *,
    selected_step_id: int | str | None = None,
) -> GraphMutation:
    """
    Remove a step, compact the remaining ids and relink condition targets.

    Rejected (no-op) when the removal would leave no steps, when the id does
    not exist, or when it names the trigger.
    """

    target_id = parse_step_id(step_id)
    if len(workflow.steps) <= 1:
        return _reject(workflow, "a workflow must keep at least one step")
    removed = workflow.get_step(target_id) if target_id is not None else None
    if removed is None:
        return _reject(workflow, f"step {step_id} does not exist")
    if removed.type == StepKind.trigger:
        return _reject(workflow, "the trigger step cannot be removed")

    survivors = sorted((step for step in workflow.steps if step.id != target_id), key=lambda step: step.id)
    id_mapping = {step.id: position + 1 for position, step in enumerate(survivors)}

    cleared: List[ClearedReference] = []
    steps: List[WorkflowStep] = []
    for step in survivors:
        new_id = id_mapping[step.id]
        update: Dict[str, Any] = {"id": new_id}
        if step.type == StepKind.condition and step.conditions:
            update["conditions"] = _remap_conditions(new_id, step.conditions, id_mapping, cleared)
        steps.append(step.model_copy(update=update, deep=True))

    for ref in cleared:
        logger.warning(
            f"Cleared {ref.branch} target of step {ref.step_id} clause {ref.clause_index}: "
            f"step {ref.previous_target} no longer exists"
        )

    selection_cleared = selected_step_id is not None and parse_step_id(selected_step_id) == target_id
    if selection_cleared:
        logger.info(f"Selected step {target_id} was removed; clearing editor selection")

    return GraphMutation(
        workflow=_with_steps(workflow, steps),
        id_mapping=id_mapping,
        removed_step_id=target_id,
        cleared_references=cleared,
        selection_cleared=selection_cleared,
    )


def configure_step(
    workflow: Workflow,
    step_id: int | str,
    *,
    app_name: Optional[str] = None,
    title: Optional[str] = None,
    operation_id: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
) -> GraphMutation:
    """
    Set the integration and operation of a trigger or action step.

    Picking a different app discards the previous event and config, which
    belonged to the old app.
    """

    target_id = parse_step_id(step_id)
    step = workflow.get_step(target_id) if target_id is not None else None
    if step is None:
        return _reject(workflow, f"step {step_id} does not exist")
    if step.type == StepKind.condition:
        return _reject(workflow, f"step {target_id} is a condition and has no integration")

    update: Dict[str, Any] = {}
    if app_name is not None and app_name != step.app_name:
        update.update(app_name=app_name, title=None, trigger_id=None, action_id=None, config=None)
    if title is not None:
        update["title"] = title
    if operation_id is not None:
        update["trigger_id" if step.type == StepKind.trigger else "action_id"] = operation_id
    if config is not None:
        update["config"] = dict(config)

    steps = [
        existing.model_copy(update=update, deep=True) if existing.id == target_id else existing.model_copy(deep=True)
        for existing in workflow.steps
    ]
    return GraphMutation(
        workflow=_with_steps(workflow, steps),
        changed=bool(update),
        id_mapping=_identity_mapping(workflow),
    )


def replace_conditions(
    workflow: Workflow,
    step_id: int | str,
    conditions: List[ConditionClause],
) -> GraphMutation:
    target_id = parse_step_id(step_id)
    step = workflow.get_step(target_id) if target_id is not None else None
    if step is None:
        return _reject(workflow, f"step {step_id} does not exist")
    if step.type != StepKind.condition:
        return _reject(workflow, f"step {target_id} is not a condition step")

    steps = [
        existing.model_copy(update={"conditions": list(conditions)}, deep=True)
        if existing.id == target_id
        else existing.model_copy(deep=True)
        for existing in workflow.steps
    ]
    return GraphMutation(
        workflow=_with_steps(workflow, steps),
        id_mapping=_identity_mapping(workflow),
    )


def forward_targets(workflow: Workflow, step_id: int | str) -> List[int]:
    """Steps a condition at ``step_id`` may branch to (strictly later ones)."""
    origin = parse_step_id(step_id)
    if origin is None:
        return []
    return [candidate for candidate in workflow.step_ids() if candidate > origin]


def remap_step_keys(table: Mapping[int, T], id_mapping: Mapping[int, int]) -> Dict[int, T]:
    """
    Rekey a per-step side table after a mutation. Entries of steps that did
    not survive are dropped.
    """

    return {id_mapping[old_id]: value for old_id, value in table.items() if old_id in id_mapping}
