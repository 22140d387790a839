"""
Wire boundary: JSON payloads from the backend into a Workflow document and
back into the camelCase shape the publish/test endpoints expect.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from workflow_builder.errors import ValidationPhaseError
from workflow_builder.schema.models import Workflow


def _document_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    document: Dict[str, Any] = {"workflowName": data.get("name") or data.get("workflowName") or ""}
    if "steps" in data:
        document["steps"] = data["steps"]
    return document


def parse_workflow(payload: Any) -> Workflow:
    """
    Accepts either a JSON string or a mapping shaped like
    ``{"workflowName": ..., "steps": [...]}`` and returns a validated Workflow.
    Records returned by ``GET /workflows/{id}`` may carry ``name`` instead of
    ``workflowName`` plus record metadata (``id``, timestamps), which is dropped.
    """

    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValidationPhaseError(f"Invalid workflow JSON payload: {exc}") from exc
    elif isinstance(payload, Mapping):
        data = payload
    else:
        raise ValidationPhaseError(
            f"Unsupported payload type {type(payload).__name__}; expected str or Mapping"
        )

    if isinstance(data, Mapping) and isinstance(data.get("workflow"), Mapping):
        # Publish payloads wrap the document: {"userId": ..., "workflow": {...}}
        data = data["workflow"]

    if isinstance(data, Mapping):
        data = _document_fields(data)

    try:
        return Workflow.model_validate(data)
    except ValidationError as exc:
        raise ValidationPhaseError(f"Workflow validation failed: {exc}") from exc


def dump_workflow(workflow: Workflow) -> Dict[str, Any]:
    return workflow.model_dump(mode="json", by_alias=True, exclude_none=True)


def build_publish_payload(workflow: Workflow, user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Body for ``POST /workflows/create`` and ``POST /workflows/test``; pass no
    ``user_id`` for ``PATCH /workflows/{id}``, which only takes the document.
    """

    document = dump_workflow(workflow)
    payload: Dict[str, Any] = {
        "workflow": {
            "workflowName": document.get("workflowName", ""),
            "steps": document.get("steps", []),
        }
    }
    if user_id is not None:
        payload = {"userId": user_id, **payload}
    return payload


def publish_endpoint(workflow_id: Optional[str] = None, *, test: bool = False) -> Tuple[str, str]:
    """HTTP method and backend path that accept ``build_publish_payload`` output."""
    if test:
        return "POST", "/workflows/test"
    if workflow_id:
        return "PATCH", f"/workflows/{workflow_id}"
    return "POST", "/workflows/create"
