"""Framework-agnostic validation rules derived from JSON Schema keywords.

:func:`analyze_validation_rules` turns the constraint keywords of one property
schema into a flat list of :class:`~specgraph.models.ValidationRule` objects
that form builders can map onto whatever validator library they target.
:func:`check_rule` evaluates a single rule against a value so the rule set can
be exercised without a target framework.

Only constraint-level keywords are covered. Type checking and composition
(``allOf`` / ``oneOf``) are left to a real JSON Schema validator.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Callable

from specgraph.exceptions import UnsupportedConstructError
from specgraph.models import RuleKind, ValidationRule

_BASE64_PATTERN = r"^(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?$"
_BASE64URL_PATTERN = r"^[A-Za-z0-9\-_]*$"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def analyze_validation_rules(schema: Any, required: bool = False) -> list[ValidationRule]:
    """Extract the validation rules of a property schema.

    Args:
        schema: The property's JSON Schema (``dict``; booleans yield no rules).
        required: Whether the parent object lists the property in its
            ``required`` array. A denormalized ``required: true`` on the
            schema itself counts too.

    Returns:
        The rules in keyword order. ``readOnly`` schemas yield none.

    Example::

        >>> [r.kind.value for r in analyze_validation_rules({"minLength": 2, "format": "email"})]
        ['minLength', 'email']
    """
    if not isinstance(schema, dict) or schema.get("readOnly") is True:
        return []

    rules: list[ValidationRule] = []
    if required or schema.get("required") is True:
        rules.append(ValidationRule(kind=RuleKind.REQUIRED))
    if "const" in schema:
        rules.append(ValidationRule(kind=RuleKind.CONST, value=schema["const"]))

    if schema.get("minLength"):
        rules.append(ValidationRule(kind=RuleKind.MIN_LENGTH, value=schema["minLength"]))
    if schema.get("maxLength"):
        rules.append(ValidationRule(kind=RuleKind.MAX_LENGTH, value=schema["maxLength"]))
    if isinstance(schema.get("pattern"), str) and schema["pattern"]:
        rules.append(
            ValidationRule(kind=RuleKind.PATTERN, value=schema["pattern"].replace("\\\\", "\\"))
        )
    if schema.get("format") == "email":
        rules.append(ValidationRule(kind=RuleKind.EMAIL))

    encoding = schema.get("contentEncoding")
    if encoding == "base64":
        rules.append(ValidationRule(kind=RuleKind.PATTERN, value=_BASE64_PATTERN))
    elif encoding == "base64url":
        rules.append(ValidationRule(kind=RuleKind.PATTERN, value=_BASE64URL_PATTERN))

    rules.extend(_bound_rules(schema, "minimum", "exclusiveMinimum", RuleKind.MIN, RuleKind.EXCLUSIVE_MINIMUM))
    rules.extend(_bound_rules(schema, "maximum", "exclusiveMaximum", RuleKind.MAX, RuleKind.EXCLUSIVE_MAXIMUM))

    if schema.get("multipleOf"):
        rules.append(ValidationRule(kind=RuleKind.MULTIPLE_OF, value=schema["multipleOf"]))
    if schema.get("uniqueItems") is True:
        rules.append(ValidationRule(kind=RuleKind.UNIQUE_ITEMS))
    if schema.get("minItems"):
        rules.append(ValidationRule(kind=RuleKind.MIN_ITEMS, value=schema["minItems"]))
    if schema.get("maxItems"):
        rules.append(ValidationRule(kind=RuleKind.MAX_ITEMS, value=schema["maxItems"]))
    if "minProperties" in schema:
        rules.append(ValidationRule(kind=RuleKind.MIN_PROPERTIES, value=schema["minProperties"]))
    if "maxProperties" in schema:
        rules.append(ValidationRule(kind=RuleKind.MAX_PROPERTIES, value=schema["maxProperties"]))

    if "contains" in schema:
        min_contains = schema.get("minContains")
        max_contains = schema.get("maxContains")
        rules.append(
            ValidationRule(
                kind=RuleKind.CONTAINS,
                schema=schema["contains"],
                min_count=min_contains if isinstance(min_contains, int) else 1,
                max_count=max_contains if isinstance(max_contains, int) else None,
            )
        )

    if isinstance(schema.get("not"), dict):
        inner = analyze_validation_rules(schema["not"])
        if inner:
            rules.append(ValidationRule(kind=RuleKind.NOT, rules=inner))
    return rules


def _bound_rules(
    schema: dict[str, Any],
    inclusive_key: str,
    exclusive_key: str,
    inclusive_kind: RuleKind,
    exclusive_kind: RuleKind,
) -> list[ValidationRule]:
    # 3.1 uses a numeric exclusive bound; 3.0 / Swagger 2 use a boolean flag.
    exclusive = schema.get(exclusive_key)
    if _is_number(exclusive):
        return [ValidationRule(kind=exclusive_kind, value=exclusive)]
    if inclusive_key in schema:
        kind = exclusive_kind if exclusive is True else inclusive_kind
        return [ValidationRule(kind=kind, value=schema[inclusive_key])]
    return []


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def check_rule(rule: ValidationRule, value: Any) -> bool:
    """Return whether *value* satisfies *rule*.

    ``None`` satisfies every rule except ``required``, and values of the
    wrong shape (a number checked against ``minLength``, say) pass, so rule
    sets compose the way form validators do.

    Raises:
        UnsupportedConstructError: If the rule's kind has no evaluator.
    """
    checker = _CHECKERS.get(rule.kind)
    if checker is None:
        raise UnsupportedConstructError(f"Unsupported validation rule kind: {rule.kind!r}")
    if value is None and rule.kind != RuleKind.REQUIRED:
        return True
    return checker(rule, value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _sized(value: Any) -> bool:
    return isinstance(value, (str, list, tuple))


def _check_required(rule: ValidationRule, value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    return True


def _check_const(rule: ValidationRule, value: Any) -> bool:
    return value == rule.value


def _check_min_length(rule: ValidationRule, value: Any) -> bool:
    return not _sized(value) or len(value) >= rule.value


def _check_max_length(rule: ValidationRule, value: Any) -> bool:
    return not _sized(value) or len(value) <= rule.value


def _check_pattern(rule: ValidationRule, value: Any) -> bool:
    return not isinstance(value, str) or re.search(rule.value, value) is not None


def _check_email(rule: ValidationRule, value: Any) -> bool:
    return not isinstance(value, str) or value == "" or _EMAIL_RE.match(value) is not None


def _check_exclusive_minimum(rule: ValidationRule, value: Any) -> bool:
    return not _is_number(value) or value > rule.value


def _check_exclusive_maximum(rule: ValidationRule, value: Any) -> bool:
    return not _is_number(value) or value < rule.value


def _check_min(rule: ValidationRule, value: Any) -> bool:
    return not _is_number(value) or value >= rule.value


def _check_max(rule: ValidationRule, value: Any) -> bool:
    return not _is_number(value) or value <= rule.value


def _check_multiple_of(rule: ValidationRule, value: Any) -> bool:
    if not _is_number(value):
        return True
    quotient = value / rule.value
    return math.isclose(quotient, round(quotient), abs_tol=1e-9)


def _check_unique_items(rule: ValidationRule, value: Any) -> bool:
    if not isinstance(value, (list, tuple)):
        return True
    seen = [json.dumps(item, sort_keys=True, default=str) for item in value]
    return len(seen) == len(set(seen))


def _check_min_items(rule: ValidationRule, value: Any) -> bool:
    return not isinstance(value, (list, tuple)) or len(value) >= rule.value


def _check_max_items(rule: ValidationRule, value: Any) -> bool:
    return not isinstance(value, (list, tuple)) or len(value) <= rule.value


def _check_min_properties(rule: ValidationRule, value: Any) -> bool:
    return not isinstance(value, dict) or len(value) >= rule.value


def _check_max_properties(rule: ValidationRule, value: Any) -> bool:
    return not isinstance(value, dict) or len(value) <= rule.value


def _check_contains(rule: ValidationRule, value: Any) -> bool:
    if not isinstance(value, (list, tuple)):
        return True
    inner = analyze_validation_rules(rule.schema_)
    count = sum(1 for item in value if all(check_rule(r, item) for r in inner))
    minimum = rule.min_count if rule.min_count is not None else 1
    if count < minimum:
        return False
    return rule.max_count is None or count <= rule.max_count


def _check_not(rule: ValidationRule, value: Any) -> bool:
    return not all(check_rule(inner, value) for inner in rule.rules)


_CHECKERS: dict[RuleKind, Callable[[ValidationRule, Any], bool]] = {
    RuleKind.REQUIRED: _check_required,
    RuleKind.CONST: _check_const,
    RuleKind.MIN_LENGTH: _check_min_length,
    RuleKind.MAX_LENGTH: _check_max_length,
    RuleKind.PATTERN: _check_pattern,
    RuleKind.EMAIL: _check_email,
    RuleKind.EXCLUSIVE_MINIMUM: _check_exclusive_minimum,
    RuleKind.EXCLUSIVE_MAXIMUM: _check_exclusive_maximum,
    RuleKind.MIN: _check_min,
    RuleKind.MAX: _check_max,
    RuleKind.MULTIPLE_OF: _check_multiple_of,
    RuleKind.UNIQUE_ITEMS: _check_unique_items,
    RuleKind.MIN_ITEMS: _check_min_items,
    RuleKind.MAX_ITEMS: _check_max_items,
    RuleKind.MIN_PROPERTIES: _check_min_properties,
    RuleKind.MAX_PROPERTIES: _check_max_properties,
    RuleKind.CONTAINS: _check_contains,
    RuleKind.NOT: _check_not,
}
