"""
Public entrypoint for editing workflow documents: step graph mutations, the
condition rule compiler, wire serialization and pre-publish validation.
"""

from __future__ import annotations

from workflow_builder.compiler.condition_compiler import (
    DecompiledConditions,
    apply_condition_rules,
    compile_rules,
    decompile_clauses,
    load_condition_rules,
)
from workflow_builder.compiler.condition_expr import parse_condition_expression
from workflow_builder.compiler.parse import build_publish_payload, dump_workflow, parse_workflow
from workflow_builder.compiler.validate_workflow import ValidationIssue, ensure_publishable, validate_workflow
from workflow_builder.errors import (
    ConditionParseError,
    GraphError,
    ValidationPhaseError,
    WorkflowBuilderError,
)
from workflow_builder.graph.step_graph import (
    GraphMutation,
    add_step,
    configure_step,
    forward_targets,
    new_workflow,
    remove_step,
)
from workflow_builder.schema.models import (
    ConditionClause,
    ConditionOperator,
    ConditionRule,
    StepKind,
    Workflow,
    WorkflowStep,
)
from workflow_builder.schema.variables import available_variables

__all__ = [
    "ConditionClause",
    "ConditionOperator",
    "ConditionParseError",
    "ConditionRule",
    "DecompiledConditions",
    "GraphError",
    "GraphMutation",
    "StepKind",
    "ValidationIssue",
    "ValidationPhaseError",
    "Workflow",
    "WorkflowBuilderError",
    "WorkflowStep",
    "add_step",
    "apply_condition_rules",
    "available_variables",
    "build_publish_payload",
    "compile_rules",
    "configure_step",
    "decompile_clauses",
    "dump_workflow",
    "ensure_publishable",
    "forward_targets",
    "load_condition_rules",
    "new_workflow",
    "parse_condition_expression",
    "parse_workflow",
    "remove_step",
    "validate_workflow",
]
