"""Evaluate OpenAPI runtime expressions used by Links and Callbacks.

A runtime expression pulls a value out of one HTTP exchange:

* ``$url``, ``$method``, ``$statusCode``
* ``$request.header.<name>``, ``$request.query.<name>``, ``$request.path.<name>``
* ``$request.body`` and ``$request.body#/json/pointer``
* ``$response.header.<name>``, ``$response.body`` and ``$response.body#/pointer``

A bare expression returns the referenced value with its type intact. A
string with ``{expression}`` placeholders is interpolated, missing values
becoming empty strings. Anything else is a constant and comes back as is.

Header names match case-insensitively. Query and path names are exact.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from specgraph.parser.resolver import evaluate_json_pointer

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")

HeaderValue = Union[str, list[str], None]


class RuntimeRequest(BaseModel):
    headers: dict[str, HeaderValue] = Field(default_factory=dict)
    query: dict[str, HeaderValue] = Field(default_factory=dict)
    path: dict[str, Optional[str]] = Field(default_factory=dict)
    body: Any = None


class RuntimeResponse(BaseModel):
    headers: dict[str, HeaderValue] = Field(default_factory=dict)
    body: Any = None


class RuntimeContext(BaseModel):
    """The HTTP exchange a runtime expression is evaluated against."""

    url: str = ""
    method: str = ""
    status_code: Optional[int] = None
    request: RuntimeRequest = Field(default_factory=RuntimeRequest)
    response: Optional[RuntimeResponse] = None


def _first(value: HeaderValue) -> Optional[str]:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _header(headers: dict[str, HeaderValue], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return _first(value)
    return None


def _body(body: Any, part: str) -> Any:
    if part == "body":
        return body
    if part.startswith("body#"):
        return evaluate_json_pointer(body, part[len("body#"):])
    return None


def resolve_expression(expression: str, context: RuntimeContext) -> Any:
    """Resolve one bare expression such as ``$request.body#/id``.

    Returns:
        The referenced value, or ``None`` when the source holds nothing there
        or the expression is not recognised.
    """
    if expression == "$url":
        return context.url
    if expression == "$method":
        return context.method
    if expression == "$statusCode":
        return context.status_code

    if expression.startswith("$request."):
        part = expression[len("$request."):]
        request = context.request
        if part.startswith("header."):
            return _header(request.headers, part[len("header."):])
        if part.startswith("query."):
            return _first(request.query.get(part[len("query."):]))
        if part.startswith("path."):
            return request.path.get(part[len("path."):])
        if part.startswith("body"):
            return _body(request.body, part)
        return None

    if expression.startswith("$response."):
        if context.response is None:
            return None
        part = expression[len("$response."):]
        if part.startswith("header."):
            return _header(context.response.headers, part[len("header."):])
        if part.startswith("body"):
            return _body(context.response.body, part)
    return None


def evaluate_runtime_expression(expression: str, context: RuntimeContext) -> Any:
    """Evaluate a Link / Callback expression against *context*.

    Example::

        >>> ctx = RuntimeContext(request=RuntimeRequest(path={"id": "42"}))
        >>> evaluate_runtime_expression("https://api.test/items/{$request.path.id}", ctx)
        'https://api.test/items/42'
    """
    has_braces = "{" in expression and "}" in expression
    if expression.startswith("$") and not has_braces:
        return resolve_expression(expression, context)
    if "{" not in expression:
        return expression

    def substitute(match: re.Match[str]) -> str:
        value = resolve_expression(match.group(1).strip(), context)
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(substitute, expression)
