"""
Trigger variables that condition rules can test, keyed by trigger app.

Order matters: the first entry of a list is the variable a freshly created
rule starts with.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class VariableDescriptor:
    value: str
    label: str


def format_variable_label(variable: str) -> str:
    """
    Turn "trigger.messageId" into "Message Id".
    """

    parts = variable.split(".")
    if len(parts) < 2:
        return variable
    field_name = parts[-1]
    spaced = re.sub(r"([A-Z])", r" \1", field_name)
    return spaced[:1].upper() + spaced[1:] if spaced else spaced


def _descriptors(*values: str) -> List[VariableDescriptor]:
    return [VariableDescriptor(value=value, label=format_variable_label(value)) for value in values]


_GMAIL_VARIABLES = _descriptors(
    "trigger.subject",
    "trigger.from",
    "trigger.to",
    "trigger.body",
    "trigger.snippet",
    "trigger.messageId",
    "trigger.threadId",
)

_SLACK_VARIABLES = _descriptors(
    "trigger.text",
    "trigger.channelId",
    "trigger.userId",
    "trigger.messageTs",
    "trigger.reactionName",
)

_GITHUB_VARIABLES = _descriptors(
    "trigger.title",
    "trigger.body",
    "trigger.repository",
    "trigger.author",
    "trigger.issueNumber",
    "trigger.branch",
)

GENERIC_VARIABLES = _descriptors(
    "trigger.data",
    "trigger.id",
    "trigger.timestamp",
)

TRIGGER_VARIABLES: Dict[str, List[VariableDescriptor]] = {
    "gmail": _GMAIL_VARIABLES,
    "google": _GMAIL_VARIABLES,
    "slack": _SLACK_VARIABLES,
    "github": _GITHUB_VARIABLES,
}


def available_variables(trigger_app: Optional[str]) -> List[VariableDescriptor]:
    if not trigger_app:
        return list(GENERIC_VARIABLES)
    return list(TRIGGER_VARIABLES.get(trigger_app.strip().lower(), GENERIC_VARIABLES))


def default_variable(trigger_app: Optional[str]) -> str:
    return available_variables(trigger_app)[0].value
