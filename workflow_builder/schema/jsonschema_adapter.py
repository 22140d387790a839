from __future__ import annotations

import json
from threading import Lock
from typing import Any, Dict

from jsonschema.exceptions import SchemaError
from jsonschema.validators import Draft202012Validator, validator_for

from workflow_builder.schema.models import JsonSchema

ValidatorType = Draft202012Validator

_validator_cache: Dict[str, ValidatorType] = {}
_cache_lock = Lock()


def _cache_key(schema: JsonSchema, schema_id: str | None) -> str:
    if schema_id:
        return schema_id
    return json.dumps(schema, sort_keys=True, separators=(",", ":"))


def get_validator(schema: JsonSchema, *, schema_id: str | None = None) -> ValidatorType:
    """
    Compile (and cache) a jsonschema validator for a step config schema.
    """

    key = _cache_key(schema, schema_id)
    with _cache_lock:
        validator = _validator_cache.get(key)
        if validator is None:
            validator_cls = validator_for(schema, default=Draft202012Validator)
            validator = validator_cls(schema)
            _validator_cache[key] = validator
    return validator


def is_valid(schema: JsonSchema, instance: Any, *, schema_id: str | None = None) -> bool:
    return get_validator(schema, schema_id=schema_id).is_valid(instance)


def check_schema(schema: JsonSchema) -> None:
    """
    Ensure the provided schema is itself valid JSON Schema.
    """

    validator_cls = validator_for(schema, default=Draft202012Validator)
    validator_cls.check_schema(schema)


__all__ = [
    "SchemaError",
    "check_schema",
    "get_validator",
    "is_valid",
]
