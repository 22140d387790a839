"""
In-memory registry describing the configuration fields of every trigger and
action the builder offers, keyed by (step kind, app, operation id).

Only pre-publish validation consults it: the step graph and the condition
compiler never look at config values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, MutableMapping, Optional, Tuple

from workflow_builder.schema.jsonschema_adapter import is_valid
from workflow_builder.schema.models import JsonSchema, StepKind, WorkflowStep

SchemaKey = Tuple[StepKind, str, str]

# A required field counts as filled when it is neither missing, null nor "".
REQUIRED_VALUE_SCHEMA: JsonSchema = {"not": {"enum": ["", None]}}


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    type: str = "text"  # text | textarea | dropdown | number
    required: bool = True
    placeholder: Optional[str] = None
    endpoint: Optional[str] = None
    display_key: Optional[str] = None
    value_key: Optional[str] = None
    options: Tuple[str, ...] = ()

    def json_schema(self) -> JsonSchema:
        if self.options:
            schema: JsonSchema = {"enum": list(self.options)}
        elif self.type == "number":
            schema = {"type": ["number", "string"]}
        else:
            schema = {"type": "string"}
        if self.required:
            schema = {"allOf": [schema, REQUIRED_VALUE_SCHEMA]}
        return schema


@dataclass
class StepConfigSchema:
    kind: StepKind
    app_name: str
    operation_id: str
    fields: List[FieldSpec] = field(default_factory=list)

    @property
    def key(self) -> SchemaKey:
        return (self.kind, self.app_name, self.operation_id)

    @property
    def schema_id(self) -> str:
        return f"{self.kind.value}.{self.app_name}.{self.operation_id}"

    def required_fields(self) -> List[FieldSpec]:
        return [spec for spec in self.fields if spec.required]

    def missing_required_fields(self, config: Optional[Dict[str, object]]) -> List[FieldSpec]:
        values = config or {}
        return [
            spec
            for spec in self.required_fields()
            if not is_valid(REQUIRED_VALUE_SCHEMA, values.get(spec.name), schema_id="config.required_value")
        ]

    def to_json_schema(self) -> JsonSchema:
        return {
            "$id": self.schema_id,
            "type": "object",
            "properties": {spec.name: spec.json_schema() for spec in self.fields},
            "required": [spec.name for spec in self.required_fields()],
        }


class ConfigSchemaNotFoundError(KeyError):
    """Raised when no config schema is registered for a step operation."""


# -----------------------------
# Human titles -> operation ids
# -----------------------------
ACTION_TITLES: Dict[str, str] = {
    # Slack
    "Send Direct Message": "send_dm",
    "Send a message to a channel": "send_channel_message",
    "Update Message": "update_message",
    "Add Reaction": "add_reaction",
    # Gmail
    "Send Email": "send_email",
    "Reply to Email": "reply_to_email",
    "Add Label to Email": "add_label_to_email",
    "Star Email": "star_email",
    # GitHub
    "Create Issue": "create_issue",
    "Add Comment to Issue": "add_comment_to_issue",
    "Close Issue": "close_issue",
    "Assign Issue": "assign_issue",
    # Webhook
    "Send Webhook": "send_webhook",
}

TRIGGER_TITLES: Dict[str, str] = {
    # Gmail
    "New Email Received": "new_email",
    "Email Labeled": "email_labeled",
    "Email Starred": "email_starred",
    "Email Replied To": "email_replied",
    # Slack
    "New Message in Channel": "new_channel_message",
    "New Reaction Added": "new_reaction",
    "User Joined Channel": "user_joined_channel",
    "Message Updated": "message_updated",
    # GitHub
    "New Issue Created": "new_issue",
    "PR Opened": "pull_request_opened",
    "Pull Request Opened": "pull_request_opened",
    "Commit Pushed": "commit_pushed",
    "Issue Commented": "issue_commented",
}


def _slugify_title(title: str) -> str:
    return re.sub(r"\s+", "_", title.strip().lower())


def convert_title_to_action_id(title: str) -> str:
    return ACTION_TITLES.get(title) or _slugify_title(title)


def convert_title_to_trigger_id(title: str) -> str:
    return TRIGGER_TITLES.get(title) or _slugify_title(title)


def convert_title_to_operation_id(kind: StepKind, title: str) -> str:
    if kind == StepKind.trigger:
        return convert_title_to_trigger_id(title)
    return convert_title_to_action_id(title)


class ConfigSchemaRegistry:
    """Stores config schemas for triggers and actions."""

    def __init__(self, initial: MutableMapping[SchemaKey, StepConfigSchema] | None = None) -> None:
        self._schemas: Dict[SchemaKey, StepConfigSchema] = dict(initial or {})

    def register(self, schema: StepConfigSchema) -> None:
        self._schemas[schema.key] = schema

    def get(self, kind: StepKind, app_name: str, operation_id: str) -> StepConfigSchema:
        key = (StepKind(kind), app_name.lower(), operation_id)
        try:
            return self._schemas[key]
        except KeyError as exc:
            raise ConfigSchemaNotFoundError(
                f"No config schema registered for {key[0].value} '{key[1]}.{key[2]}'"
            ) from exc

    def maybe_get(self, kind: StepKind, app_name: str, operation_id: str) -> Optional[StepConfigSchema]:
        return self._schemas.get((StepKind(kind), app_name.lower(), operation_id))

    def lookup(self, kind: StepKind, app_name: str, title: str) -> Optional[StepConfigSchema]:
        """Resolve a schema from the human title shown in the editor."""
        return self.maybe_get(kind, app_name, convert_title_to_operation_id(StepKind(kind), title))

    def for_step(self, step: WorkflowStep) -> Optional[StepConfigSchema]:
        if step.type == StepKind.condition or not step.app_name:
            return None
        if step.title:
            return self.lookup(step.type, step.app_name, step.title)
        if step.operation_id:
            return self.maybe_get(step.type, step.app_name, step.operation_id)
        return None

    def all(self) -> List[StepConfigSchema]:
        return list(self._schemas.values())


# -----------------------------
# Built-in schemas
# -----------------------------
def _channel(name: str = "channel", *, required: bool = True) -> FieldSpec:
    return FieldSpec(
        name=name,
        label="Channel",
        type="dropdown",
        required=required,
        endpoint="/integrations/slack/channels",
        display_key="name",
        value_key="id",
    )


def _repository() -> FieldSpec:
    return FieldSpec(
        name="repository",
        label="Repository",
        type="dropdown",
        endpoint="/integrations/github/repos",
        display_key="full_name",
        value_key="full_name",
    )


def _gmail_label() -> FieldSpec:
    return FieldSpec(
        name="labelId",
        label="Label",
        type="dropdown",
        endpoint="/integrations/gmail/labels",
        display_key="name",
        value_key="id",
    )


def _message_id() -> FieldSpec:
    return FieldSpec(name="messageId", label="Message ID", placeholder="{{trigger.messageId}}")


def _message_ts() -> FieldSpec:
    return FieldSpec(name="messageTs", label="Message Timestamp", placeholder="{{trigger.messageTs}}")


def _issue_number() -> FieldSpec:
    return FieldSpec(
        name="issue_number",
        label="Issue Number",
        type="number",
        placeholder="Enter issue number (e.g., 42)",
    )


def _action(app_name: str, operation_id: str, *fields: FieldSpec) -> StepConfigSchema:
    return StepConfigSchema(StepKind.action, app_name, operation_id, list(fields))


def _trigger(app_name: str, operation_id: str, *fields: FieldSpec) -> StepConfigSchema:
    return StepConfigSchema(StepKind.trigger, app_name, operation_id, list(fields))


def _register_builtin_actions(registry: ConfigSchemaRegistry) -> None:
    slack_text = FieldSpec(name="text", label="Message", type="textarea")
    for schema in (
        _action(
            "slack",
            "send_dm",
            FieldSpec(
                name="userId",
                label="User",
                type="dropdown",
                endpoint="/integrations/slack/users",
                display_key="realName",
                value_key="id",
            ),
            FieldSpec(
                name="text",
                label="Message",
                type="textarea",
                placeholder="You received an email: {{trigger.subject}}",
            ),
        ),
        _action("slack", "send_channel_message", _channel(), slack_text),
        _action(
            "slack",
            "update_message",
            _channel(),
            _message_ts(),
            FieldSpec(name="text", label="New Message Text", type="textarea"),
        ),
        _action(
            "slack",
            "add_reaction",
            _channel(),
            _message_ts(),
            FieldSpec(name="reactionName", label="Reaction", placeholder="thumbsup"),
        ),
        _action(
            "gmail",
            "send_email",
            FieldSpec(name="to", label="To", placeholder="recipient@example.com"),
            FieldSpec(name="subject", label="Subject", placeholder="Email subject"),
            FieldSpec(name="body", label="Body", type="textarea", placeholder="Email content"),
        ),
        _action(
            "gmail",
            "reply_to_email",
            _message_id(),
            FieldSpec(name="threadId", label="Thread ID", placeholder="{{trigger.threadId}}"),
            FieldSpec(name="body", label="Reply Body", type="textarea", placeholder="Your reply"),
        ),
        _action("gmail", "add_label_to_email", _message_id(), _gmail_label()),
        _action("gmail", "star_email", _message_id()),
        _action(
            "github",
            "create_issue",
            _repository(),
            FieldSpec(name="title", label="Issue Title"),
            FieldSpec(name="body", label="Description", type="textarea", required=False),
        ),
        _action(
            "github",
            "add_comment_to_issue",
            _repository(),
            _issue_number(),
            FieldSpec(name="comment", label="Comment", type="textarea"),
        ),
        _action("github", "close_issue", _repository(), _issue_number()),
        _action(
            "github",
            "assign_issue",
            _repository(),
            _issue_number(),
            FieldSpec(name="assignees", label="Assignees", placeholder="username1, username2 or use variable"),
        ),
        _action(
            "webhook",
            "send_webhook",
            FieldSpec(name="url", label="Webhook URL"),
            FieldSpec(name="method", label="HTTP Method", type="dropdown", required=False, options=("POST",)),
            FieldSpec(name="payload", label="Payload", type="textarea", required=False),
        ),
    ):
        registry.register(schema)


def _register_builtin_triggers(registry: ConfigSchemaRegistry) -> None:
    for schema in (
        _trigger("gmail", "new_email"),
        _trigger("gmail", "email_labeled", _gmail_label()),
        _trigger("gmail", "email_starred"),
        _trigger("gmail", "email_replied"),
        _trigger("slack", "new_channel_message", _channel()),
        _trigger(
            "slack",
            "new_reaction",
            _channel("channelId", required=False),
            FieldSpec(name="reactionName", label="Reaction Name", required=False, placeholder="thumbsup"),
        ),
        _trigger("slack", "user_joined_channel", _channel("channelId")),
        _trigger("slack", "message_updated", _channel("channelId")),
        _trigger("github", "new_issue", _repository()),
        _trigger("github", "pull_request_opened", _repository()),
        _trigger("github", "commit_pushed", _repository()),
        _trigger("github", "issue_commented", _repository()),
    ):
        registry.register(schema)


def build_default_registry() -> ConfigSchemaRegistry:
    registry = ConfigSchemaRegistry()
    _register_builtin_actions(registry)
    _register_builtin_triggers(registry)
    return registry


DEFAULT_CONFIG_REGISTRY = build_default_registry()
