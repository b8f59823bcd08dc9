"""
Helpers around OpenAPI 3 documents.

Pure functions: they read documents and never record warnings. Callers in the
preprocessor decide what a missing or ambiguous piece means.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional

import jsonpointer
import yaml

from .defs import HTTP_METHODS, LinkDef, Parameter

logger = logging.getLogger(__name__)

SUCCESS_STATUS_PATTERN = re.compile(r"2[0-9]{2}|2XX")
JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def load_document(path: Path | str) -> dict[str, Any]:
    """Load an OpenAPI document from a YAML or JSON file."""
    path = Path(path)
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def is_http_method(method: str) -> bool:
    """Whether a path item key is an operation (and not e.g. ``parameters``)."""
    return method.lower() in HTTP_METHODS


def get_title(document: dict[str, Any]) -> str:
    return document.get("info", {}).get("title", "")


# =============================================================================
# References
# =============================================================================


def resolve_ref(ref: str, document: dict[str, Any]) -> Any:
    """
    Resolve a local JSON reference (``#/components/schemas/User``).

    Raises:
        jsonpointer.JsonPointerException: If the reference cannot be resolved
    """
    pointer = ref[1:] if ref.startswith("#") else ref
    return jsonpointer.resolve_pointer(document, pointer)


def ref_name(ref: str) -> str:
    """Last component of a reference, used as a type name candidate."""
    return ref.rsplit("/", 1)[-1]


def dereference(obj: Any, document: dict[str, Any]) -> Any:
    """Follow ``$ref`` chains until a concrete object is reached."""
    seen: set[str] = set()
    while isinstance(obj, dict) and isinstance(obj.get("$ref"), str):
        ref = obj["$ref"]
        if ref in seen:
            break
        seen.add(ref)
        obj = resolve_ref(ref, document)
    return obj


# =============================================================================
# Schema classification
# =============================================================================


def get_schema_target_type(schema: dict[str, Any], id_formats: list[str]) -> Optional[str]:
    """
    Return the kind of GraphQL type a schema should become.

    Does not consider allOf, anyOf, oneOf or not (merged beforehand).

    Returns one of: object, json, list, enum, string, integer, number,
    boolean, id, or None when nothing can be inferred.
    """
    if schema.get("type") == "object" or isinstance(schema.get("properties"), dict):
        if isinstance(schema.get("additionalProperties"), dict):
            return "json"
        return "object"

    if schema.get("type") == "array" or "items" in schema:
        return "list"

    if isinstance(schema.get("enum"), list):
        return "enum"

    schema_type = schema.get("type")
    if isinstance(schema_type, str):
        schema_format = schema.get("format")
        if isinstance(schema_format, str):
            # 64 bit integers do not fit a GraphQL Int
            if schema_type == "integer" and schema_format == "int64":
                return "number"
            if schema_type == "string" and (
                schema_format == "uuid" or schema_format in id_formats
            ):
                return "id"
        return schema_type

    return None


# =============================================================================
# Servers
# =============================================================================


def get_servers(
    operation: dict[str, Any],
    path_item: dict[str, Any],
) -> list[dict[str, Any]]:
    """
    Servers declared for an operation: operation level, else path item level.

    Document level servers are considered by the resolver, after these.
    """
    for servers in (operation.get("servers"), path_item.get("servers")):
        if isinstance(servers, list) and servers:
            return servers
    return []


def build_server_url(server: dict[str, Any]) -> str:
    """Server URL with variables replaced by their defaults, no trailing slash."""
    url = server.get("url", "")
    for name, variable in (server.get("variables") or {}).items():
        if isinstance(variable, dict) and "default" in variable:
            url = url.replace(f"{{{name}}}", str(variable["default"]))
    return url.rstrip("/")


# =============================================================================
# Parameters, bodies and responses
# =============================================================================


def get_parameters(
    path_item: dict[str, Any],
    operation: dict[str, Any],
    document: dict[str, Any],
) -> list[Parameter]:
    """
    Parameters of an operation, path item parameters first.

    An operation parameter overrides a path item parameter with the same name
    and location.
    """
    collected: dict[tuple[str, str], Parameter] = {}

    for raw_list in (path_item.get("parameters"), operation.get("parameters")):
        if not isinstance(raw_list, list):
            continue
        for raw in raw_list:
            param = dereference(raw, document)
            if not isinstance(param, dict) or not param.get("name"):
                continue
            location = param.get("in", "query")
            schema = param.get("schema")
            if schema is None and isinstance(param.get("content"), dict):
                media = next(iter(param["content"].values()), {}) or {}
                schema = media.get("schema")
            collected[(param["name"], location)] = Parameter(
                name=param["name"],
                location=location,
                required=bool(param.get("required", location == "path")),
                schema=schema or {"type": "string"},
                description=param.get("description"),
            )

    return list(collected.values())


def select_content_type(content: Any, allow_form: bool = False) -> Optional[str]:
    """Prefer JSON (then form data, if allowed), else the first declared type."""
    if not isinstance(content, dict) or not content:
        return None
    if JSON_CONTENT_TYPE in content:
        return JSON_CONTENT_TYPE
    if allow_form and FORM_CONTENT_TYPE in content:
        return FORM_CONTENT_TYPE
    return next(iter(content))


def get_request_body(
    operation: dict[str, Any],
    document: dict[str, Any],
) -> tuple[Optional[str], Optional[dict[str, Any]]]:
    """Content type and request body object of an operation."""
    body = dereference(operation.get("requestBody"), document)
    if not isinstance(body, dict):
        return None, None
    return select_content_type(body.get("content"), allow_form=True), body


def get_success_status_codes(operation: dict[str, Any]) -> list[str]:
    """Success status codes (200-299 or 2XX) in declaration order."""
    responses = operation.get("responses")
    if not isinstance(responses, dict):
        return []
    return [str(code) for code in responses if SUCCESS_STATUS_PATTERN.fullmatch(str(code))]


def get_response_object(
    operation: dict[str, Any],
    status_code: str,
    document: dict[str, Any],
) -> tuple[Optional[str], Optional[dict[str, Any]]]:
    """Content type and response object for a status code."""
    responses = operation.get("responses") or {}
    response = responses.get(status_code)
    if response is None and status_code.isdigit():
        response = responses.get(int(status_code))
    response = dereference(response, document)
    if not isinstance(response, dict):
        return None, None
    return select_content_type(response.get("content")), response


def get_links(response: Optional[dict[str, Any]], document: dict[str, Any]) -> dict[str, LinkDef]:
    """Links declared on a response object."""
    links: dict[str, LinkDef] = {}
    if not isinstance(response, dict) or not isinstance(response.get("links"), dict):
        return links

    for name, raw in response["links"].items():
        link = dereference(raw, document)
        if not isinstance(link, dict):
            continue
        links[name] = LinkDef(
            name=name,
            operation_id=link.get("operationId"),
            operation_ref=link.get("operationRef"),
            parameters=dict(link.get("parameters") or {}),
            request_body=link.get("requestBody"),
            description=link.get("description"),
        )
    return links


def parse_operation_ref(operation_ref: str) -> Optional[tuple[str, str]]:
    """
    Extract (path, method) from a local operationRef.

    Example:
        #/paths/~1users~1{userId}/get -> ("/users/{userId}", "get")
    """
    if "#/paths/" not in operation_ref:
        return None
    pointer = operation_ref.split("#", 1)[1]
    parts = jsonpointer.JsonPointer(pointer).parts
    if len(parts) != 3 or parts[0] != "paths":
        return None
    return parts[1], parts[2].lower()


# =============================================================================
# Security
# =============================================================================


def get_security_schemes(document: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Security scheme definitions of a document, references resolved."""
    schemes = (document.get("components") or {}).get("securitySchemes") or {}
    return {key: dereference(scheme, document) for key, scheme in schemes.items()}


# =============================================================================
# Counting
# =============================================================================


def iter_operations(document: dict[str, Any]):
    """Yield (path, method, path_item, operation) in declaration order."""
    for path, path_item in (document.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if is_http_method(method) and isinstance(operation, dict):
                yield path, method.lower(), path_item, operation


def count_callbacks(operation: dict[str, Any]) -> int:
    total = 0
    for callback in (operation.get("callbacks") or {}).values():
        if isinstance(callback, dict):
            total += len(callback)
    return total
