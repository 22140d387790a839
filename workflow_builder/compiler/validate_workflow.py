"""
Pre-publish validation of a workflow document.

Checks run in the order the builder reports them; ``ensure_publishable``
surfaces only the first problem so the user fixes one thing at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from workflow_builder.errors import ValidationPhaseError
from workflow_builder.graph.step_graph import parse_step_id
from workflow_builder.schema.config_registry import DEFAULT_CONFIG_REGISTRY, ConfigSchemaRegistry
from workflow_builder.schema.models import StepKind, Workflow, WorkflowStep


@dataclass(frozen=True)
class ValidationIssue:
    step_id: Optional[int]
    message: str

    def __str__(self) -> str:
        return self.message


def validate_workflow(
    workflow: Workflow,
    registry: Optional[ConfigSchemaRegistry] = None,
) -> List[ValidationIssue]:
    registry = registry or DEFAULT_CONFIG_REGISTRY
    issues: List[ValidationIssue] = []

    if not workflow.workflow_name.strip():
        issues.append(ValidationIssue(None, "Please enter a workflow name before testing"))

    kinds = {step.type for step in workflow.steps}
    if StepKind.trigger not in kinds or StepKind.action not in kinds:
        issues.append(ValidationIssue(None, "Workflow must have at least one trigger and one action"))

    for step in workflow.steps:
        if step.type == StepKind.condition:
            issues.extend(_validate_condition_step(step, workflow))
        else:
            issues.extend(_validate_integration_step(step, registry))

    return issues


def ensure_publishable(workflow: Workflow, registry: Optional[ConfigSchemaRegistry] = None) -> None:
    issues = validate_workflow(workflow, registry)
    if issues:
        raise ValidationPhaseError(issues[0].message)


def _validate_integration_step(step: WorkflowStep, registry: ConfigSchemaRegistry) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    if not step.app_name:
        issues.append(ValidationIssue(step.id, f"Step {step.id} is missing an app selection"))
    if not step.title:
        issues.append(ValidationIssue(step.id, f"Step {step.id} is missing an event selection"))
    if step.type == StepKind.trigger and not step.trigger_id:
        issues.append(ValidationIssue(step.id, f"Step {step.id} is missing a trigger ID"))
    if step.type == StepKind.action and not step.action_id:
        issues.append(ValidationIssue(step.id, f"Step {step.id} is missing an action ID"))

    schema = registry.for_step(step)
    if schema is not None:
        for spec in schema.missing_required_fields(step.config):
            issues.append(
                ValidationIssue(step.id, f'Step {step.id}: Please select or enter a value for "{spec.label}"')
            )
    return issues


def _target_issue(step: WorkflowStep, workflow: Workflow, target: str, *, branch: str) -> Optional[ValidationIssue]:
    target_id = parse_step_id(target)
    label = "Condition" if branch == "then" else "Condition else clause"
    if target_id is None or workflow.get_step(target_id) is None:
        return ValidationIssue(step.id, f"Step {step.id}: {label} references non-existent step {target}")
    if target_id <= step.id:
        return ValidationIssue(
            step.id, f"Step {step.id}: {label} must point to a later step, not step {target_id}"
        )
    return None


def _validate_condition_step(step: WorkflowStep, workflow: Workflow) -> List[ValidationIssue]:
    clauses = step.conditions or []
    if not clauses:
        return [
            ValidationIssue(
                step.id,
                f"Step {step.id}: Condition has no rules defined. Please configure at least one condition.",
            )
        ]

    issues: List[ValidationIssue] = []
    has_if_then = False
    else_positions = [index for index, clause in enumerate(clauses) if clause.is_else]

    for clause in clauses:
        if clause.is_else:
            if clause.else_:
                issue = _target_issue(step, workflow, clause.else_, branch="else")
                if issue is not None:
                    issues.append(issue)
            continue
        if not clause.if_:
            continue
        if not clause.then:
            issues.append(ValidationIssue(step.id, f"Step {step.id}: Please select a target step for the condition"))
            continue
        has_if_then = True
        issue = _target_issue(step, workflow, clause.then, branch="then")
        if issue is not None:
            issues.append(issue)

    if len(else_positions) > 1:
        issues.append(ValidationIssue(step.id, f"Step {step.id}: Condition can have only one else clause"))
    elif else_positions and else_positions[0] != len(clauses) - 1:
        issues.append(ValidationIssue(step.id, f"Step {step.id}: The else clause must come after every IF-THEN rule"))

    if not has_if_then:
        issues.append(
            ValidationIssue(step.id, f"Step {step.id}: Condition must have at least one IF-THEN rule configured")
        )
    return issues
