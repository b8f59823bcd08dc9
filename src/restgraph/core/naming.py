"""
Naming utilities for restgraph.

Includes:
- Case styles and sanitization of arbitrary API names into GraphQL names
- The sane-name -> original-name registry
- Resource name inference from URL paths
- Deep (de)sanitization of object keys
"""

from __future__ import annotations

import enum
import logging
import re
from typing import Any, Iterator, Optional

import inflect

logger = logging.getLogger(__name__)


# =============================================================================
# Case styles
# =============================================================================


class CaseStyle(enum.Enum):
    """Target style for sanitized names."""
    SIMPLE = "simple"  # only illegal characters are removed, case preserved
    PASCAL_CASE = "PascalCase"  # type names
    CAMEL_CASE = "camelCase"  # field and argument names
    ALL_CAPS = "ALL_CAPS"  # enum values


# Pre-compiled regex patterns for better performance
_SIMPLE_ILLEGAL_PATTERN = re.compile(r"[^a-zA-Z0-9_]")
_CAMEL_SPLIT_PATTERN = re.compile(r"[^a-zA-Z0-9]")
_ALL_CAPS_SPLIT_PATTERN = re.compile(r"[^a-zA-Z0-9_]")
_LEADING_DIGIT_PATTERN = re.compile(r"^[0-9]")
_ID_PARAM_PATTERN = re.compile(r"^{.*(id|name|key).*}$", re.IGNORECASE)

_inflector = inflect.engine()


def capitalize(value: str) -> str:
    """Uppercase the first character, keep the rest."""
    return value[:1].upper() + value[1:]


def uncapitalize(value: str) -> str:
    """Lowercase the first character, keep the rest."""
    return value[:1].lower() + value[1:]


def singularize(word: str) -> str:
    """
    Return the singular form of an English noun.

    Examples:
        users -> user
        categories -> category
        car -> car
    """
    if not word:
        return word
    singular = _inflector.singular_noun(word)
    return singular if singular else word


def _guard_leading(sanitized: str) -> str:
    # A GraphQL name cannot be empty or start with a digit
    if sanitized == "" or _LEADING_DIGIT_PATTERN.match(sanitized):
        return "_" + sanitized
    return sanitized


def sanitize(raw: str, style: CaseStyle) -> str:
    """
    Turn an arbitrary string into a legal GraphQL name in the given style.

    Examples:
        sanitize("user-name", CaseStyle.CAMEL_CASE) -> userName
        sanitize("user-name", CaseStyle.PASCAL_CASE) -> UserName
        sanitize("user-name", CaseStyle.ALL_CAPS) -> USER_NAME
        sanitize("user-name", CaseStyle.SIMPLE) -> username
        sanitize("2fa", CaseStyle.CAMEL_CASE) -> _2fa
    """
    raw = str(raw)

    if style is CaseStyle.SIMPLE:
        return _guard_leading(_SIMPLE_ILLEGAL_PATTERN.sub("", raw))

    if style is CaseStyle.ALL_CAPS:
        parts = _ALL_CAPS_SPLIT_PATTERN.split(raw)
        sanitized = "_".join(parts).upper()
    else:
        parts = _CAMEL_SPLIT_PATTERN.split(raw)
        sanitized = parts[0] + "".join(capitalize(part) for part in parts[1:])
        if style is CaseStyle.PASCAL_CASE:
            sanitized = capitalize(sanitized)
        else:
            sanitized = uncapitalize(sanitized)

    return _guard_leading(sanitized)


# =============================================================================
# Name registry
# =============================================================================


class NameRegistry:
    """
    Mapping from sanitized names to the original names they were derived from.

    Insertion is an observable side effect: storing the same pair twice is a
    no-op, storing a different original under an existing sane name logs the
    collision and overwrites it (last writer wins). Callers that need unique
    names must check membership before storing. Those call sites are:

    - type names (``create_data_def`` checks ``used_type_names``)
    - root field names (the assembler checks the namespace and falls back to
      the operation id)

    Object field, argument and enum value names are stored without a pre-check;
    a collision there only affects request desanitization.

    Usage:
        registry = NameRegistry()
        registry.store("userName", "user-name")
        registry.original("userName")  # "user-name"
    """

    def __init__(self):
        self._mapping: dict[str, str] = {}

    def store(self, sane: str, original: str) -> str:
        """Record that ``sane`` was derived from ``original`` and return ``sane``."""
        existing = self._mapping.get(sane)
        if existing is not None and existing != original:
            logger.warning(
                f"'{original}' and '{existing}' both sanitize to '{sane}' - "
                f"collision possible. Desanitize to '{original}'."
            )
        self._mapping[sane] = original
        return sane

    def original(self, sane: str, default: Optional[str] = None) -> Optional[str]:
        """Get the original name for a sanitized name."""
        return self._mapping.get(sane, default)

    def __contains__(self, sane: object) -> bool:
        return sane in self._mapping

    def __getitem__(self, sane: str) -> str:
        return self._mapping[sane]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def items(self):
        return self._mapping.items()


def store_sane_name(sane: str, original: str, registry: NameRegistry) -> str:
    """
    Store the sane -> original mapping in the registry and return the sane name.

    Does not raise on collisions; see ``NameRegistry.store``.
    """
    return registry.store(sane, original)


# =============================================================================
# Path utilities
# =============================================================================


def _is_id_param(part: str) -> bool:
    return bool(_ID_PARAM_PATTERN.match(part))


def _is_singular_param(part: str, next_part: str) -> bool:
    return f"{{{singularize(part)}}}" == next_part


def infer_resource_name_from_path(path: str) -> str:
    """
    Infer a resource name from a URL path template.

    The first fixed segment is treated as a routing prefix and dropped.
    Literal segments followed by an identifier-like parameter are singularized.

    Examples:
        /v1/users/{userId}/car -> userCar
        /v1/users/{userId}/cars/{carId} -> userCar
        /v1/users -> users
    """
    parts = path.split("/")
    # parts[0] is the empty string before the leading slash
    del parts[1:2]

    name = ""
    for i, part in enumerate(parts):
        if "{" in part:
            continue
        next_part = parts[i + 1] if i + 1 < len(parts) else ""
        if next_part and (_is_id_param(next_part) or _is_singular_param(part, next_part)):
            name += capitalize(singularize(part))
        else:
            name += capitalize(part)

    return uncapitalize(name)


def format_operation_string(method: str, path: str, title: Optional[str] = None) -> str:
    """
    Describe an operation as ``{title} {METHOD} {path}``.

    Examples:
        format_operation_string("get", "/users", "Users API") -> Users API GET /users
    """
    if title:
        return f"{title} {method.upper()} {path}"
    return f"{method.upper()} {path}"


def generate_operation_id(method: str, path: str) -> str:
    """Generate an operation id for operations that do not declare one."""
    return sanitize(f"{method} {path}", CaseStyle.CAMEL_CASE)


# =============================================================================
# Deep conversion utilities
# =============================================================================


def sanitize_object_keys(data: Any, style: CaseStyle = CaseStyle.CAMEL_CASE) -> Any:
    """
    Recursively sanitize all dict keys.

    Works with nested dicts and lists. Scalars are returned unchanged.

    Example:
        {"first-name": "John", "cars": [{"model_year": 2001}]}
        ->
        {"firstName": "John", "cars": [{"modelYear": 2001}]}
    """
    if data is None:
        return None
    if isinstance(data, dict):
        return {
            sanitize(key, style): sanitize_object_keys(value, style)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize_object_keys(item, style) for item in data]
    return data


def desanitize_object_keys(data: Any, registry: NameRegistry) -> Any:
    """
    Recursively replace sanitized dict keys with the originals in the registry.

    Keys unknown to the registry are kept as they are.
    """
    if data is None:
        return None
    if isinstance(data, dict):
        return {
            registry.original(key, key): desanitize_object_keys(value, registry)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [desanitize_object_keys(item, registry) for item in data]
    return data
