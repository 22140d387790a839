"""
Pydantic models describing the workflow document exchanged with the backend.

Step ids are integers inside the builder and decimal strings on the wire, so
ordering is always numeric ("10" sorts after "9").
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


JsonSchema = Dict[str, Any]


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        validate_assignment=True,
    )


class StepKind(str, Enum):
    trigger = "trigger"
    action = "action"
    condition = "condition"


class ConditionOperator(str, Enum):
    contains = "contains"
    equals = "equals"
    starts_with = "starts_with"
    ends_with = "ends_with"

    @property
    def keyword(self) -> str:
        """Operator as written inside a condition expression ("starts with")."""
        return self.value.replace("_", " ")


# -----------------------------
# Condition clauses
# -----------------------------
class ConditionClause(StrictModel):
    """
    One persisted entry of a condition step: either an if/then pair or a
    terminal else. Targets are kept as raw strings since the editor stores
    "" while the user has not picked a step yet.
    """

    if_: Optional[str] = Field(default=None, alias="if")
    then: Optional[str] = None
    else_: Optional[str] = Field(default=None, alias="else")

    @field_validator("then", "else_", mode="before")
    @classmethod
    def _stringify_target(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _check_branch_shape(self) -> "ConditionClause":
        if self.else_ is not None and (self.if_ is not None or self.then is not None):
            raise ValueError("ConditionClause: 'else' cannot be combined with 'if'/'then'")
        return self

    @property
    def is_else(self) -> bool:
        return self.else_ is not None

    @property
    def target(self) -> Optional[str]:
        return self.else_ if self.is_else else self.then

    def to_wire(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)


# -----------------------------
# Steps
# -----------------------------
class WorkflowStep(StrictModel):
    id: int = Field(ge=1)
    type: StepKind
    app_name: Optional[str] = Field(default=None, alias="appName")
    title: Optional[str] = None
    trigger_id: Optional[str] = Field(default=None, alias="triggerId")
    action_id: Optional[str] = Field(default=None, alias="actionId")
    config: Optional[Dict[str, Any]] = None
    conditions: Optional[List[ConditionClause]] = None

    @field_serializer("id")
    def _serialize_id(self, value: int) -> str:
        return str(value)

    @property
    def kind(self) -> StepKind:
        return self.type

    @property
    def operation_id(self) -> Optional[str]:
        if self.type == StepKind.trigger:
            return self.trigger_id
        if self.type == StepKind.action:
            return self.action_id
        return None


class Workflow(StrictModel):
    workflow_name: str = Field(default="", alias="workflowName")
    steps: List[WorkflowStep] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_step_sequence(self) -> "Workflow":
        actual = [step.id for step in self.steps]
        expected = list(range(1, len(self.steps) + 1))
        if actual != expected:
            raise ValueError(
                f"Workflow: step ids must be contiguous and ordered 1..{len(self.steps)}, got {actual}"
            )
        triggers = [step.id for step in self.steps if step.type == StepKind.trigger]
        if self.steps and triggers != [1]:
            raise ValueError("Workflow: exactly one trigger step is required and it must be step 1")
        return self

    def get_step(self, step_id: int) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    @property
    def trigger(self) -> Optional[WorkflowStep]:
        if self.steps and self.steps[0].type == StepKind.trigger:
            return self.steps[0]
        return None

    def step_ids(self) -> List[int]:
        return [step.id for step in self.steps]


# -----------------------------
# Editor working model
# -----------------------------
def _rule_key() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class ConditionRule:
    """
    Editable form of one if/then clause. ``id`` is a UI row key only and does
    not take part in equality.
    """

    variable: str
    operator: ConditionOperator = ConditionOperator.contains
    value: str = ""
    then_step: str = ""
    id: str = field(default_factory=_rule_key, compare=False)

    def __post_init__(self) -> None:
        self.operator = ConditionOperator(self.operator)
