"""
Resolver builder - resolvers that call the REST API behind each field.

Query and mutation fields get an async resolver that:
1. Collects parameters from arguments (and link expressions)
2. Builds the URL, query, headers and request body
3. Calls the HTTP transport
4. Sanitizes the response keys and attaches a side channel

Subscription fields get a (subscribe, resolve) pair backed by the event
transport.

Usage:
    resolve = get_resolver(operation, data)
    result = await resolve(source, info, userId="alice")
"""

from __future__ import annotations

import base64
import dataclasses
import json
import logging
import re
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
import jsonpointer

from ..core import oas
from ..core.defs import LinkDef, Operation
from ..core.errors import (
    AuthenticationError,
    MissingServerError,
    PayloadValidationError,
    ResolverError,
    ServiceError,
    SubscriptionError,
)
from ..core.naming import CaseStyle, desanitize_object_keys, sanitize, sanitize_object_keys
from ..runtime.context import (
    SIDE_CHANNEL_KEY,
    CallData,
    SideChannel,
    attach_side_channel,
    context_value,
    get_side_channel,
)
from .preprocessor import PreprocessingData, callback_argument_name
from .schema_builder import (
    LIMIT_ARGUMENT,
    has_limit_argument,
    link_parameter_name,
    payload_argument_name,
)

logger = logging.getLogger(__name__)

_EMBEDDED_EXPRESSION_PATTERN = re.compile(r"{(\$[^}]*)}")
_CALLBACK_EXPRESSION_PATTERN = re.compile(r"{([^}]*)}")


# =============================================================================
# Base URL
# =============================================================================


def get_base_url(operation: Operation, data: PreprocessingData) -> str:
    """
    Base URL of an operation.

    Priority: operation / path item servers, document servers, ``base_url``.

    Raises:
        MissingServerError: If no URL can be derived
    """
    servers = operation.servers or operation.document.get("servers") or []
    if servers and isinstance(servers[0], dict) and servers[0].get("url"):
        return oas.build_server_url(servers[0])
    if data.options.base_url:
        return data.options.base_url.rstrip("/")
    raise MissingServerError(operation.operation_string)


# =============================================================================
# Link expressions
# =============================================================================


def _resolve_body_pointer(body: Any, expression: str, prefix: str) -> Any:
    pointer = expression[len(prefix):]
    if pointer.startswith("#"):
        pointer = pointer[1:]
    if not pointer:
        return body
    return jsonpointer.resolve_pointer(body, pointer, None)


def _lookup_header(headers: dict[str, Any], name: str) -> Any:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def evaluate_expression(expression: Any, call: Optional[CallData]) -> Any:
    """
    Evaluate a link runtime expression against the call that produced the parent.

    Supported:
        $url, $method, $statusCode
        $request.path.{name}, $request.query.{name}, $request.header.{name}
        $request.body#/pointer, $response.body#/pointer
        strings with embedded {$...} expressions
        anything else is a constant
    """
    if not isinstance(expression, str):
        return expression

    if not expression.startswith("$"):
        if "{$" in expression:
            return _EMBEDDED_EXPRESSION_PATTERN.sub(
                lambda match: str(evaluate_expression(match.group(1), call)),
                expression,
            )
        return expression

    if call is None:
        logger.debug(f"No call data to evaluate '{expression}'")
        return None

    if expression == "$url":
        return call.url
    if expression == "$method":
        return call.method.upper()
    if expression == "$statusCode":
        return call.status_code
    if expression.startswith("$response.body"):
        return _resolve_body_pointer(call.response_body, expression, "$response.body")
    if expression.startswith("$request.body"):
        return _resolve_body_pointer(call.request_body, expression, "$request.body")
    if expression.startswith("$request.path."):
        return call.path_params.get(expression[len("$request.path."):])
    if expression.startswith("$request.query."):
        return call.query_params.get(expression[len("$request.query."):])
    if expression.startswith("$request.header."):
        return _lookup_header(call.header_params, expression[len("$request.header."):])

    logger.warning(f"Unsupported link expression '{expression}'")
    return None


# =============================================================================
# Request building
# =============================================================================


def _collect_parameters(
    operation: Operation,
    args: dict[str, Any],
    link: Optional[LinkDef],
    side_channel: SideChannel,
    data: PreprocessingData,
) -> dict[str, dict[str, Any]]:
    """Parameter values by location, keyed by original parameter name."""
    from_link: dict[str, Any] = {}
    if link is not None:
        for name, expression in link.parameters.items():
            from_link[link_parameter_name(name)] = evaluate_expression(expression, side_channel.call)

    collected: dict[str, dict[str, Any]] = {"path": {}, "query": {}, "header": {}, "cookie": {}}
    for param in operation.parameters:
        sane = sanitize(param.name, data.field_style)
        if sane in args and args[sane] is not None:
            value = args[sane]
        elif from_link.get(param.name) is not None:
            value = from_link[param.name]
        elif isinstance(param.schema, dict) and "default" in param.schema:
            value = param.schema["default"]
        else:
            continue
        collected.setdefault(param.location, {})[param.name] = value
    return collected


def _build_url(operation: Operation, path_params: dict[str, Any], data: PreprocessingData) -> str:
    path = operation.path
    for name, value in path_params.items():
        path = path.replace(f"{{{name}}}", quote(str(value), safe=""))
    if "{" in path:
        raise ResolverError(
            f"Missing path parameter for operation '{operation.operation_string}': {path}"
        )
    return f"{get_base_url(operation, data)}{path}"


def _static_headers(operation: Operation, info: Any, data: PreprocessingData) -> dict[str, str]:
    headers = data.options.headers
    if callable(headers):
        headers = headers(operation.method, operation.path, operation.title, info.context)
    merged = dict(data.options.request_options.get("headers") or {})
    merged.update(headers or {})
    return merged


def _apply_credentials(
    operation: Operation,
    side_channel: SideChannel,
    headers: dict[str, str],
    query: dict[str, Any],
    cookies: dict[str, Any],
    data: PreprocessingData,
):
    """Add viewer credentials of the first satisfied security requirement."""
    for requirement in operation.security_requirements:
        if not all(key in side_channel.security for key in requirement.schemes):
            continue

        for key in requirement.schemes:
            scheme = data.security[key]
            credentials = side_channel.security[key]
            if scheme.kind == "basic":
                token = base64.b64encode(
                    f"{credentials['username']}:{credentials['password']}".encode()
                ).decode()
                headers["Authorization"] = f"Basic {token}"
            elif scheme.kind == "bearer":
                headers["Authorization"] = f"Bearer {credentials['token']}"
            elif scheme.kind == "apiKey":
                if scheme.location == "query":
                    query[scheme.name] = credentials["apiKey"]
                elif scheme.location == "cookie":
                    cookies[scheme.name] = credentials["apiKey"]
                else:
                    headers[scheme.name] = credentials["apiKey"]
        return

    raise AuthenticationError(
        operation.operation_string,
        [requirement.key for requirement in operation.security_requirements],
    )


def _apply_oauth_token(
    info: Any,
    headers: dict[str, str],
    query: dict[str, Any],
    data: PreprocessingData,
):
    pointer = data.options.token_json_path
    if not pointer or not isinstance(info.context, dict):
        return
    token = jsonpointer.resolve_pointer(info.context, pointer, None)
    if not token:
        logger.debug(f"No OAuth token at '{pointer}' in the request context")
        return
    if data.options.send_oauth_token_in_query:
        query["access_token"] = token
    else:
        headers["Authorization"] = f"Bearer {token}"


def _get_payload(
    operation: Operation,
    args: dict[str, Any],
    link: Optional[LinkDef],
    side_channel: SideChannel,
    data: PreprocessingData,
) -> Any:
    name = payload_argument_name(operation, data)
    if name is None:
        return None

    payload = args.get(name)
    if payload is None and link is not None and link.request_body is not None:
        payload = evaluate_expression(link.request_body, side_channel.call)
    if payload is None:
        if operation.payload_required:
            raise PayloadValidationError(operation.operation_string, name)
        return None

    if isinstance(payload, (dict, list)):
        return desanitize_object_keys(payload, data.sane_map)
    return payload


def _parse_body(text: str, content_type: Optional[str]) -> Any:
    if not text:
        return None
    if content_type and "json" in content_type:
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Response declared as JSON could not be decoded")
    return text


def _get_transport(info: Any, data: PreprocessingData) -> Any:
    transport = context_value(info.context, "transport") or data.transport
    if transport is None:
        raise ResolverError("No HTTP transport configured")
    return transport


# =============================================================================
# Resolvers
# =============================================================================


def _custom_override(
    overrides: dict[str, Any],
    operation: Operation,
) -> Any:
    methods = (overrides or {}).get(operation.title, {}).get(operation.path, {})
    for method, override in (methods or {}).items():
        if method.lower() == operation.method:
            return override
    return None


def get_resolver(
    operation: Operation,
    data: PreprocessingData,
    link: Optional[LinkDef] = None,
) -> Callable[..., Any]:
    """
    Create the resolver of a query or mutation field.

    A custom resolver registered for the operation is returned unchanged.

    Args:
        operation: Operation to call
        data: Preprocessing data
        link: Link whose expressions supply some parameters (link fields)

    Returns:
        async resolve(source, info, **args)
    """
    custom = _custom_override(data.options.custom_resolvers, operation)
    if custom is not None:
        logger.debug(f"Use custom resolver for '{operation.operation_string}'")
        return custom

    style = CaseStyle.SIMPLE if data.options.simple_names else CaseStyle.CAMEL_CASE
    limited = has_limit_argument(operation, data)

    async def resolve(source: Any, info: Any, **args: Any) -> Any:
        side_channel = get_side_channel(source)
        if limited and (args.get(LIMIT_ARGUMENT) or 0) < 0:
            raise ResolverError(f"The limit argument of '{operation.operation_string}' must not be negative")

        params = _collect_parameters(operation, args, link, side_channel, data)
        payload = _get_payload(operation, args, link, side_channel, data)
        url = _build_url(operation, params["path"], data)

        query = dict(data.options.qs)
        query.update(data.options.request_options.get("params") or {})
        query.update(params["query"])

        headers = _static_headers(operation, info, data)
        headers.update({name: str(value) for name, value in params["header"].items()})
        cookies = dict(params["cookie"])

        if operation.in_viewer:
            _apply_credentials(operation, side_channel, headers, query, cookies, data)
        _apply_oauth_token(info, headers, query, data)

        if cookies:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in cookies.items())

        body: dict[str, Any] = {}
        if payload is not None:
            if operation.payload_content_type == oas.JSON_CONTENT_TYPE:
                body["json"] = payload
            elif operation.payload_content_type == oas.FORM_CONTENT_TYPE:
                body["data"] = payload
            else:
                headers.setdefault("Content-Type", operation.payload_content_type)
                body["content"] = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)

        transport = _get_transport(info, data)
        try:
            response = await transport.request(
                operation.method,
                url,
                params=query,
                headers=headers,
                **body,
            )
        except httpx.RequestError as e:
            raise ServiceError(
                operation=operation.operation_string,
                status_code=0,
                message=str(e),
            ) from e

        response_body = _parse_body(response.text, response.content_type)
        if not response.ok:
            raise ServiceError(
                operation=operation.operation_string,
                status_code=response.status_code,
                message=response.text,
                body=response_body,
            )

        if operation.response_content_type != oas.JSON_CONTENT_TYPE:
            return response.text

        call = CallData(
            operation_id=operation.operation_id,
            url=url,
            method=operation.method,
            status_code=response.status_code,
            response_body=response_body,
            path_params=params["path"],
            query_params=query,
            header_params=headers,
            request_body=payload,
        )

        result = sanitize_object_keys(response_body, style)
        if isinstance(result, list):
            if limited and args.get(LIMIT_ARGUMENT) is not None:
                limit = args[LIMIT_ARGUMENT]
                result = result[:limit]
                response_body = response_body[:limit]
            for raw_item, item in zip(response_body, result):
                item_call = dataclasses.replace(call, response_body=raw_item)
                attach_side_channel(item, side_channel.derive(item_call))
        elif isinstance(result, dict):
            attach_side_channel(result, side_channel.derive(call))

        return result

    return resolve


# =============================================================================
# Subscriptions
# =============================================================================


def get_topic(operation: Operation, args: dict[str, Any]) -> str:
    """
    Event topic of a callback operation.

    Example:
        {$request.query.userName}/devices/{$method} + userName=alice, method=POST
        -> alice/devices/POST
    """
    def substitute(match: re.Match) -> str:
        name = callback_argument_name(match.group(1))
        if args.get(name) is None:
            raise SubscriptionError(
                f"Missing argument '{name}' for subscription '{operation.operation_string}'"
            )
        return str(args[name])

    return _CALLBACK_EXPRESSION_PATTERN.sub(substitute, operation.path).lstrip("/")


def get_subscribe(operation: Operation, data: PreprocessingData) -> Callable[..., Any]:
    """
    Create the subscribe function of a subscription field.

    Returns:
        async subscribe(source, info, **args) -> async iterator of messages
    """
    custom = _custom_override(data.options.custom_subscription_resolvers, operation)
    if isinstance(custom, dict) and custom.get("subscribe") is not None:
        return custom["subscribe"]

    async def subscribe(source: Any, info: Any, **args: Any):
        topic = get_topic(operation, args)
        transport = context_value(info.context, "pubsub") or data.options.event_transport
        if transport is None:
            raise SubscriptionError(
                f"No event transport for subscription '{operation.operation_string}'"
            )
        logger.debug(f"Subscribe '{operation.operation_string}' to topic '{topic}'")
        return transport.subscribe(topic)

    return subscribe


def get_publish_resolver(operation: Operation, data: PreprocessingData) -> Callable[..., Any]:
    """
    Create the resolve function of a subscription field.

    Returns:
        resolve(event, info, **args) -> sanitized message
    """
    custom = _custom_override(data.options.custom_subscription_resolvers, operation)
    if isinstance(custom, dict) and custom.get("resolve") is not None:
        return custom["resolve"]

    style = CaseStyle.SIMPLE if data.options.simple_names else CaseStyle.CAMEL_CASE

    def resolve(event: Any, info: Any, **args: Any) -> Any:
        message = event
        if isinstance(message, (str, bytes)):
            try:
                message = json.loads(message)
            except ValueError:
                return message

        result = sanitize_object_keys(message, style)
        if isinstance(result, dict):
            call = CallData(
                operation_id=operation.operation_id,
                url=operation.path,
                method=operation.method,
                status_code=200,
                response_body=message,
            )
            attach_side_channel(result, get_side_channel(event).derive(call))
        return result

    return resolve


def viewer_source(side_channel: SideChannel) -> dict[str, Any]:
    """Source object handed by viewer fields to the fields they wrap."""
    return {SIDE_CHANNEL_KEY: side_channel}
