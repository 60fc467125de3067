"""Identifier helpers shared by the extractor, normalizer and analyzers.

All case converters first normalise the input into space-separated lowercase
words (splitting on punctuation, underscores, hyphens and camel humps), then
re-join the words in the requested style.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_NON_WORD = re.compile(r"[^a-zA-Z0-9\s_-]")
_EDGE_SEPARATORS = re.compile(r"^[_-]+|[-_]+$")
_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")
_UPPER_UPPER_LOWER = re.compile(r"([A-Z])([A-Z][a-z])")
_SEPARATORS = re.compile(r"[_-]+")
_WHITESPACE = re.compile(r"\s+")


def _words(text: str) -> list[str]:
    if not text:
        return []
    text = _NON_WORD.sub(" ", text)
    text = _EDGE_SEPARATORS.sub("", text)
    text = _LOWER_UPPER.sub(r"\1 \2", text)
    text = _UPPER_UPPER_LOWER.sub(r"\1 \2", text)
    text = _SEPARATORS.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip().lower()
    return text.split(" ") if text else []


def camel_case(text: str) -> str:
    """Convert *text* to ``camelCase``.

    Example::

        >>> camel_case("get-user_by ID")
        'getUserById'
    """
    words = _words(text)
    if not words:
        return ""
    return words[0] + "".join(word[:1].upper() + word[1:] for word in words[1:])


def pascal_case(text: str) -> str:
    """Convert *text* to ``PascalCase``."""
    return "".join(word[:1].upper() + word[1:] for word in _words(text))


def kebab_case(text: str) -> str:
    """Convert *text* to ``kebab-case``."""
    if not text:
        return ""
    text = _LOWER_UPPER.sub(r"\1-\2", text).lower()
    text = re.sub(r"[\s_]+", "-", text)
    return text.strip("-")


def singular(text: str) -> str:
    """Naive English singularisation (``categories`` -> ``category``, ``pets`` -> ``pet``)."""
    if text.endswith("ies"):
        return text[:-3] + "y"
    if text.endswith("s"):
        return text[:-1]
    return text


def normalize_security_key(key: str) -> str:
    """Reduce a security requirement key to a bare scheme name.

    Keys are usually plain names already. Some documents use a JSON pointer
    or URI instead (``#/components/securitySchemes/ApiKey`` or
    ``common.yaml#/components/securitySchemes/ApiKey``); for those the last
    non-empty path segment of the fragment (or of the whole key when there
    is no fragment) is returned.

    Args:
        key: The key as written in the ``security`` requirement object.

    Returns:
        The scheme name, or *key* unchanged when nothing can be extracted.
    """
    without_query = key.split("?", 1)[0]
    _, sep, fragment = without_query.partition("#")
    target = fragment if sep else without_query
    parts = [part for part in target.split("/") if part]
    return parts[-1] if parts else key


def model_name_from_uri(uri: str) -> str:
    """Derive a model name from a reference target that is not a tracked schema.

    Strips the path, query, fragment and file extension, then PascalCases
    what is left. ``https://x.io/models/pet-food.schema.json?v=2#/`` becomes
    ``PetFood``.
    """
    fragment = ""
    if "#" in uri:
        uri, fragment = uri.split("#", 1)
    fragment_parts = [part for part in fragment.split("/") if part]
    if fragment_parts:
        return pascal_case(fragment_parts[-1])
    path = urlsplit(uri).path if "://" in uri else uri.split("?", 1)[0]
    last = path.rstrip("/").rsplit("/", 1)[-1]
    stem = last.split(".", 1)[0] if "." in last else last
    return pascal_case(stem)
