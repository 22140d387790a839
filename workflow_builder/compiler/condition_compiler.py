"""
Conversion between the editable rule rows of a condition step and the
clauses persisted in ``WorkflowStep.conditions``.

The order of the compiled clauses is the branch priority at run time: the
first ``if`` whose expression matches wins and ``else`` is the fallback when
none match. Both directions preserve that order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from shared.logger import get_logger
from workflow_builder.compiler.condition_expr import format_condition_expression, parse_condition_expression
from workflow_builder.errors import ConditionParseError, GraphError
from workflow_builder.graph.step_graph import GraphMutation, forward_targets, parse_step_id, replace_conditions
from workflow_builder.schema.models import (
    ConditionClause,
    ConditionOperator,
    ConditionRule,
    StepKind,
    Workflow,
    WorkflowStep,
)
from workflow_builder.schema.variables import default_variable

logger = get_logger(__name__)


@dataclass(frozen=True)
class UnparsedClause:
    clause_index: int
    expression: str
    reason: str


@dataclass
class DecompiledConditions:
    rules: List[ConditionRule] = field(default_factory=list)
    else_target: str = ""
    unparsed: List[UnparsedClause] = field(default_factory=list)


def _as_clause(clause: ConditionClause | Mapping[str, Any]) -> ConditionClause:
    if isinstance(clause, ConditionClause):
        return clause
    return ConditionClause.model_validate(clause)


def compile_rules(rules: Sequence[ConditionRule], else_target: str = "") -> List[ConditionClause]:
    clauses: List[ConditionClause] = []
    for rule in rules:
        # The expression grammar ignores whitespace inside the braces.
        variable = rule.variable.strip()
        if variable != rule.variable:
            logger.warning(f"Condition variable {rule.variable!r} compiled as {variable!r}")
        if "\n" in rule.value or "\r" in rule.value:
            logger.warning(
                f"Condition value for {variable} spans multiple lines and will not load back into the editor"
            )
        clauses.append(
            ConditionClause(
                if_=format_condition_expression(variable, rule.operator, rule.value),
                then=rule.then_step,
            )
        )
    if else_target:
        clauses.append(ConditionClause(else_=else_target))
    return clauses


def decompile_clauses(clauses: Sequence[ConditionClause | Mapping[str, Any]]) -> DecompiledConditions:
    """
    Rebuild editor rows from persisted clauses. Clauses that do not match the
    expression grammar cannot be shown in the editor; they are dropped,
    logged and listed in ``unparsed``.
    """

    result = DecompiledConditions()
    seen_else = False
    for index, raw in enumerate(clauses):
        clause = _as_clause(raw)
        if clause.is_else:
            if seen_else:
                logger.warning(f"Ignoring extra else clause {index}; the first else already applies")
                result.unparsed.append(UnparsedClause(index, f"else {clause.else_}", "duplicate else clause"))
                continue
            seen_else = True
            result.else_target = clause.else_ or ""
            continue
        if clause.if_ is None:
            logger.warning(f"Condition rule could not be loaded (clause {index}): clause has no expression")
            result.unparsed.append(UnparsedClause(index, "", "clause has no expression"))
            continue
        try:
            parsed = parse_condition_expression(clause.if_)
        except ConditionParseError as exc:
            logger.warning(f"Condition rule could not be loaded (clause {index}): {exc}")
            result.unparsed.append(UnparsedClause(index, clause.if_, exc.reason))
            continue
        result.rules.append(
            ConditionRule(
                variable=parsed.variable,
                operator=parsed.operator,
                value=parsed.value,
                then_step=clause.then or "",
            )
        )
    return result


def default_rule(trigger_app: Optional[str]) -> ConditionRule:
    return ConditionRule(
        variable=default_variable(trigger_app),
        operator=ConditionOperator.contains,
        value="",
        then_step="",
    )


def _condition_step(workflow: Workflow, step_id: int | str) -> WorkflowStep:
    target_id = parse_step_id(step_id)
    step = workflow.get_step(target_id) if target_id is not None else None
    if step is None:
        raise GraphError(f"step {step_id} does not exist")
    if step.type != StepKind.condition:
        raise GraphError(f"step {target_id} is not a condition step")
    return step


def load_condition_rules(workflow: Workflow, step_id: int | str) -> DecompiledConditions:
    """
    Editor load path: the step's rules, or one default row when none could be
    recovered so there is always something to edit.
    """

    step = _condition_step(workflow, step_id)
    decompiled = decompile_clauses(step.conditions or [])
    if not decompiled.rules:
        trigger = workflow.trigger
        decompiled.rules.append(default_rule(trigger.app_name if trigger else None))
    return decompiled


def apply_condition_rules(
    workflow: Workflow,
    step_id: int | str,
    rules: Sequence[ConditionRule],
    else_target: str = "",
) -> GraphMutation:
    return replace_conditions(workflow, step_id, compile_rules(rules, else_target))


def invalid_targets(
    workflow: Workflow,
    step_id: int | str,
    rules: Sequence[ConditionRule],
    else_target: str = "",
) -> List[str]:
    """Non-empty targets that are not later steps of the workflow."""
    allowed = {str(candidate) for candidate in forward_targets(workflow, step_id)}
    targets = [rule.then_step for rule in rules] + [else_target]
    return [target for target in targets if target and target not in allowed]
