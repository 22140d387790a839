"""
Parsing and formatting of condition expressions such as

    {{trigger.subject}} contains 'Order'

Grammar: ``"{{" VARNAME "}}" WS OPERATOR WS "'" VALUE "'"`` where OPERATOR is
one of ``contains``, ``equals``, ``starts with`` and ``ends with`` (any case,
``_`` accepted between words). There is no escaping: VALUE runs from the
opening quote to the final quote of the expression, so it may contain quotes
but never a line break.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from workflow_builder.errors import ConditionParseError
from workflow_builder.schema.models import ConditionOperator

# Longest keywords first so "starts with" is not mistaken for a prefix match.
OPERATOR_KEYWORDS: Tuple[Tuple[str, ConditionOperator], ...] = (
    ("starts with", ConditionOperator.starts_with),
    ("starts_with", ConditionOperator.starts_with),
    ("ends with", ConditionOperator.ends_with),
    ("ends_with", ConditionOperator.ends_with),
    ("contains", ConditionOperator.contains),
    ("equals", ConditionOperator.equals),
)

_INLINE_WHITESPACE = " \t"
_FORBIDDEN_IN_VARIABLE = set("{}'\"\r\n\t ")


@dataclass(frozen=True)
class ParsedCondition:
    variable: str
    operator: ConditionOperator
    value: str


def format_condition_expression(variable: str, operator: ConditionOperator | str, value: str) -> str:
    return "{{" + variable + "}} " + ConditionOperator(operator).keyword + " '" + value + "'"


def _skip_whitespace(text: str, idx: int) -> int:
    while idx < len(text) and text[idx] in _INLINE_WHITESPACE:
        idx += 1
    return idx


def _expect_whitespace(text: str, idx: int, what: str) -> int:
    after = _skip_whitespace(text, idx)
    if after == idx:
        raise ConditionParseError(text, idx, f"expected whitespace {what}")
    return after


def _read_variable(text: str, idx: int) -> Tuple[str, int]:
    if not text.startswith("{{", idx):
        raise ConditionParseError(text, idx, "expected '{{'")
    closing = text.find("}}", idx + 2)
    if closing == -1:
        raise ConditionParseError(text, idx, "unclosed '{{'")
    variable = text[idx + 2 : closing].strip(_INLINE_WHITESPACE)
    if not variable:
        raise ConditionParseError(text, idx + 2, "empty variable name")
    for offset, char in enumerate(variable):
        if char in _FORBIDDEN_IN_VARIABLE:
            raise ConditionParseError(text, text.index(variable, idx) + offset, f"invalid character {char!r} in variable name")
    return variable, closing + 2


def _read_operator(text: str, idx: int) -> Tuple[ConditionOperator, int]:
    remainder = text[idx:].lower()
    for keyword, operator in OPERATOR_KEYWORDS:
        if remainder.startswith(keyword):
            return operator, idx + len(keyword)
    raise ConditionParseError(text, idx, "unknown operator")


def _read_value(text: str, idx: int) -> str:
    if idx >= len(text) or text[idx] != "'":
        raise ConditionParseError(text, idx, "expected opening quote")
    end = len(text.rstrip(_INLINE_WHITESPACE))
    if end - 1 <= idx or text[end - 1] != "'":
        raise ConditionParseError(text, end, "expected closing quote at end of expression")
    value = text[idx + 1 : end - 1]
    for offset, char in enumerate(value):
        if char in "\r\n":
            raise ConditionParseError(text, idx + 1 + offset, "multi-line values are not supported")
    return value


def parse_condition_expression(expression: str) -> ParsedCondition:
    if not isinstance(expression, str):
        raise ConditionParseError(repr(expression), 0, "expression must be a string")

    idx = _skip_whitespace(expression, 0)
    variable, idx = _read_variable(expression, idx)
    idx = _expect_whitespace(expression, idx, "before operator")
    operator, idx = _read_operator(expression, idx)
    idx = _expect_whitespace(expression, idx, "after operator")
    value = _read_value(expression, idx)
    return ParsedCondition(variable=variable, operator=operator, value=value)
