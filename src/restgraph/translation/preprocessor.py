"""
Preprocessor - builds the normalized model the translation works on.

Walks the documents once, in declaration order, and produces:
- one Operation per path + method (and per callback, when enabled)
- the processed security schemes
- data definitions for every request and response schema
- the name registry shared by all later stages

Usage:
    data = preprocess_documents([document], TranslationOptions())
    for operation_id, operation in data.operations.items():
        ...
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import jsonpointer

from ..core import oas
from ..core.defs import (
    DataDefinition,
    DefinitionArena,
    OasExtension,
    Operation,
    OperationType,
    Parameter,
    ProcessedSecurityScheme,
    SchemaNames,
    SecurityRequirement,
    structural_key,
)
from ..core.naming import (
    CaseStyle,
    NameRegistry,
    capitalize,
    format_operation_string,
    generate_operation_id,
    infer_resource_name_from_path,
    sanitize,
    store_sane_name,
    uncapitalize,
)
from ..core.options import MitigationType, Report, TranslationOptions, handle_warning

logger = logging.getLogger(__name__)

_CALLBACK_EXPRESSION_PATTERN = re.compile(r"{([^}]*)}")
_COMPOSITION_KEYWORDS = ("allOf", "anyOf", "oneOf", "not")


@dataclass
class PreprocessingData:
    """Everything the translation stages share."""
    documents: list[dict[str, Any]]
    options: TranslationOptions
    report: Report
    operations: dict[str, Operation] = field(default_factory=dict)
    callback_operations: dict[str, Operation] = field(default_factory=dict)
    security: dict[str, ProcessedSecurityScheme] = field(default_factory=dict)
    sane_map: NameRegistry = field(default_factory=NameRegistry)
    defs: DefinitionArena = field(default_factory=DefinitionArena)
    used_type_names: set[str] = field(default_factory=set)
    # root field name -> operation id that registered it
    root_field_names: dict[str, str] = field(default_factory=dict)
    # HTTP transport shared by generated resolvers, set by the assembler
    transport: Any = None
    _target_types: dict[str, Optional[str]] = field(default_factory=dict)
    _merged_schemas: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def field_style(self) -> CaseStyle:
        """Case style for field and argument names."""
        return CaseStyle.SIMPLE if self.options.simple_names else CaseStyle.CAMEL_CASE

    @property
    def type_style(self) -> CaseStyle:
        """Case style for type names."""
        return CaseStyle.SIMPLE if self.options.simple_names else CaseStyle.PASCAL_CASE

    def target_type(self, schema: dict[str, Any]) -> Optional[str]:
        """Classify a schema fragment, once per distinct fragment."""
        key = json.dumps(schema, sort_keys=True, default=str)
        if key not in self._target_types:
            self._target_types[key] = oas.get_schema_target_type(
                schema, self.options.id_formats
            )
        return self._target_types[key]

    def all_operations(self) -> list[Operation]:
        return list(self.operations.values()) + list(self.callback_operations.values())


def preprocess_documents(
    documents: list[dict[str, Any]],
    options: TranslationOptions,
) -> PreprocessingData:
    """
    Build the preprocessing data for a set of documents.

    Args:
        documents: Validated OpenAPI 3 documents
        options: Translation options

    Returns:
        PreprocessingData with operations, security schemes and definitions
    """
    data = PreprocessingData(documents=documents, options=options, report=Report())

    for document in documents:
        title = oas.get_title(document)
        logger.debug(f"Preprocess document '{title}'")

        _process_security_schemes(document, data)

        for path, method, path_item, raw in oas.iter_operations(document):
            _count_operation(method, raw, data)

            if raw.get(OasExtension.EXCLUDE.value) is True:
                logger.debug(f"Skip excluded operation {format_operation_string(method, path, title)}")
                continue

            operation = _process_operation(path, method, path_item, raw, document, data)
            if operation is None:
                continue

            operation.operation_id = _unique_operation_id(operation, data.operations, data)
            data.operations[operation.operation_id] = operation

            if options.create_subscriptions_from_callbacks:
                for callback in _process_callbacks(operation, path_item, document, data):
                    callback.operation_id = _unique_operation_id(
                        callback, data.callback_operations, data
                    )
                    data.callback_operations[callback.operation_id] = callback

    _check_titles(data)
    check_custom_resolvers(options.custom_resolvers, data.operations, data)
    check_custom_resolvers(options.custom_subscription_resolvers, data.callback_operations, data)

    return data


# =============================================================================
# Operations
# =============================================================================


def _count_operation(method: str, raw: dict[str, Any], data: PreprocessingData):
    callbacks = oas.count_callbacks(raw)
    data.report.num_ops += 1 + callbacks
    if method == "get":
        data.report.num_ops_query += 1
    else:
        data.report.num_ops_mutation += 1
        data.report.num_ops_subscription += callbacks


def resource_name(path: str) -> str:
    """Resource name of a path, or the whole sanitized path when nothing is inferred."""
    return infer_resource_name_from_path(path) or sanitize(path, CaseStyle.CAMEL_CASE)


def _unique_operation_id(
    operation: Operation,
    existing: dict[str, Operation],
    data: PreprocessingData,
) -> str:
    operation_id = operation.operation_id
    if operation_id not in existing:
        return operation_id

    candidate = f"{sanitize(operation.title, CaseStyle.CAMEL_CASE)}_{operation_id}"
    counter = 2
    while candidate in existing:
        candidate = f"{sanitize(operation.title, CaseStyle.CAMEL_CASE)}_{operation_id}{counter}"
        counter += 1

    handle_warning(
        data,
        MitigationType.DUPLICATE_OPERATIONID,
        f"Multiple operations have the operationId '{operation_id}'.",
        f"Operation '{operation.operation_string}' will use the id '{candidate}'.",
    )
    return candidate


def _describe(raw: dict[str, Any], operation_string: str, options: TranslationOptions) -> str:
    description = raw.get("description") or raw.get("summary") or ""
    if options.equivalent_to_messages:
        equivalent = f"Equivalent to {operation_string}"
        description = f"{description}\n\n{equivalent}" if description else equivalent
    return description


def _classify(
    path: str,
    method: str,
    title: str,
    options: TranslationOptions,
) -> OperationType:
    selected = options.select_query_or_mutation_field.get(title, {}).get(path, {}).get(method)
    if isinstance(selected, str):
        return OperationType(selected.lower())
    return OperationType.QUERY if method == "get" else OperationType.MUTATION


def _process_operation(
    path: str,
    method: str,
    path_item: dict[str, Any],
    raw: dict[str, Any],
    document: dict[str, Any],
    data: PreprocessingData,
) -> Optional[Operation]:
    title = oas.get_title(document)
    operation_string = format_operation_string(method, path, title)

    operation = Operation(
        operation_id=raw.get("operationId") or generate_operation_id(method, path),
        operation_string=operation_string,
        method=method,
        path=path,
        title=title,
        document=document,
        raw=raw,
        operation_type=_classify(path, method, title, data.options),
        description=_describe(raw, operation_string, data.options),
        parameters=oas.get_parameters(path_item, raw, document),
        servers=oas.get_servers(raw, path_item),
        field_name_override=raw.get(OasExtension.FIELD_NAME.value),
    )

    _check_unnamed_parameters(operation, path_item, document, data)
    _process_payload(operation, raw, document, data)

    if not _process_response(operation, raw, document, data):
        return None

    operation.security_requirements = _get_security_requirements(raw, document, data)
    operation.in_viewer = data.options.viewer and bool(operation.security_requirements)

    return operation


def _location(operation: Operation) -> list[str]:
    return ["paths", operation.path, operation.method]


def _check_unnamed_parameters(
    operation: Operation,
    path_item: dict[str, Any],
    document: dict[str, Any],
    data: PreprocessingData,
):
    for raw_list in (path_item.get("parameters"), operation.raw.get("parameters")):
        if not isinstance(raw_list, list):
            continue
        for raw in raw_list:
            param = oas.dereference(raw, document)
            if isinstance(param, dict) and not param.get("name"):
                handle_warning(
                    data,
                    MitigationType.UNNAMED_PARAMETER,
                    f"Operation '{operation.operation_string}' has a parameter without a name.",
                    "The parameter will be ignored.",
                    path=_location(operation),
                )


def _process_payload(
    operation: Operation,
    raw: dict[str, Any],
    document: dict[str, Any],
    data: PreprocessingData,
):
    content_type, body = oas.get_request_body(raw, document)
    if body is None or content_type is None:
        return

    schema = (body.get("content", {}).get(content_type) or {}).get("schema")
    names = SchemaNames(from_path=resource_name(operation.path))

    if content_type not in (oas.JSON_CONTENT_TYPE, oas.FORM_CONTENT_TYPE):
        # Opaque payload, sent as a string with its content type
        sane_content_type = uncapitalize(
            "".join(capitalize(term) for term in content_type.split("/"))
        )
        names = SchemaNames(from_path=sane_content_type)
        description = f"String represents payload of content type '{content_type}'"
        if isinstance(schema, dict) and isinstance(schema.get("description"), str):
            description += f"\n\nOriginal top level description: '{schema['description']}'"
        schema = {"type": "string", "description": description}

    if not isinstance(schema, dict):
        handle_warning(
            data,
            MitigationType.MISSING_SCHEMA,
            f"Operation '{operation.operation_string}' has a request body without a schema.",
            "The request body will be ignored.",
            path=_location(operation),
        )
        return

    operation.payload_content_type = content_type
    operation.payload_required = bool(body.get("required", False))
    operation.payload_definition = create_data_def(names, schema, data, document)


def _process_response(
    operation: Operation,
    raw: dict[str, Any],
    document: dict[str, Any],
    data: PreprocessingData,
) -> bool:
    """Fill in the response of an operation. False if it cannot be translated."""
    codes = oas.get_success_status_codes(raw)
    if len(codes) > 1:
        handle_warning(
            data,
            MitigationType.MULTIPLE_RESPONSES,
            f"Operation '{operation.operation_string}' contains multiple possible "
            f"successful response objects (HTTP code 200-299 or 2XX). Only one can be chosen.",
            f"The response object with the HTTP code {codes[0]} will be selected.",
            path=_location(operation),
        )

    status_code = codes[0] if codes else None
    content_type, response = (None, None)
    if status_code is not None:
        content_type, response = oas.get_response_object(raw, status_code, document)

    path_name = resource_name(operation.path)
    schema = None
    names = SchemaNames(from_path=path_name)

    if content_type is not None and response is not None:
        schema = (response.get("content", {}).get(content_type) or {}).get("schema")
        if content_type != oas.JSON_CONTENT_TYPE:
            description = "Placeholder to access non-application/json response bodies"
            if isinstance(schema, dict) and isinstance(schema.get("description"), str):
                description += f"\n\nOriginal top level description: '{schema['description']}'"
            schema = {"type": "string", "description": description}

    if schema is None and data.options.fill_empty_responses:
        content_type = oas.JSON_CONTENT_TYPE
        schema = {
            "type": "object",
            "description": "Placeholder to support operations with no response schema",
        }

    if not isinstance(schema, dict):
        handle_warning(
            data,
            MitigationType.MISSING_RESPONSE_SCHEMA,
            f"Operation '{operation.operation_string}' has no (valid) response schema.",
            "Use the fill_empty_responses option to create a placeholder schema.",
            path=_location(operation),
        )
        return False

    operation.status_code = status_code
    operation.response_content_type = content_type
    operation.links = oas.get_links(response, document)
    operation.response_definition = create_data_def(names, schema, data, document)
    _attach_links(operation, data)
    return True


def _attach_links(operation: Operation, data: PreprocessingData):
    """Record an operation's links on its response (or list item) definition."""
    definition = operation.response_definition
    if not operation.links or definition is None:
        return
    if definition.target_type == "list" and isinstance(definition.sub_definitions, DataDefinition):
        definition = definition.sub_definitions
    if definition.target_type != "object":
        return

    for name, link in operation.links.items():
        existing = definition.links.get(name)
        if existing is not None and (
            existing.operation_id != link.operation_id
            or existing.operation_ref != link.operation_ref
        ):
            handle_warning(
                data,
                MitigationType.DUPLICATE_LINK_KEY,
                f"Multiple operations with the same response type "
                f"'{definition.graphql_type_name}' declare the link '{name}'.",
                f"The link of operation '{operation.operation_string}' will be ignored.",
            )
            continue
        definition.links.setdefault(name, link)


# =============================================================================
# Callbacks
# =============================================================================


def callback_argument_name(expression: str) -> str:
    """
    Argument name for a callback path expression.

    Examples:
        $request.query.userName -> userName
        $request.body#/method -> method
    """
    tail = re.split(r"[./#]", expression.strip())[-1]
    return sanitize(tail, CaseStyle.CAMEL_CASE)


def _process_callbacks(
    parent: Operation,
    path_item: dict[str, Any],
    document: dict[str, Any],
    data: PreprocessingData,
) -> list[Operation]:
    callbacks: list[Operation] = []

    for callback_name, raw_callback in (parent.raw.get("callbacks") or {}).items():
        callback = oas.dereference(raw_callback, document)
        if not isinstance(callback, dict):
            continue

        for callback_path, raw_path_item in callback.items():
            callback_path_item = oas.dereference(raw_path_item, document)
            if not isinstance(callback_path_item, dict):
                continue
            methods = [m for m in callback_path_item if oas.is_http_method(m)]
            if not methods:
                continue
            if len(methods) > 1:
                handle_warning(
                    data,
                    MitigationType.CALLBACKS_MULTIPLE_OPERATION_OBJECTS,
                    f"Callback '{callback_name}' of operation '{parent.operation_string}' "
                    f"has multiple operation objects for the path '{callback_path}'.",
                    f"Only the '{methods[0].upper()}' operation will be used.",
                )
            method = methods[0].lower()
            raw = callback_path_item[methods[0]]

            operation = _process_callback_operation(
                parent, callback_name, callback_path, method, raw, document, data
            )
            if operation is not None:
                callbacks.append(operation)

    return callbacks


def _process_callback_operation(
    parent: Operation,
    callback_name: str,
    callback_path: str,
    method: str,
    raw: dict[str, Any],
    document: dict[str, Any],
    data: PreprocessingData,
) -> Optional[Operation]:
    operation_string = format_operation_string(method, callback_path, parent.title)

    # The published message is the callback's request body
    content_type, body = oas.get_request_body(raw, document)
    schema = None
    if body is not None and content_type is not None:
        schema = (body.get("content", {}).get(content_type) or {}).get("schema")
    if not isinstance(schema, dict):
        if not data.options.fill_empty_responses:
            handle_warning(
                data,
                MitigationType.MISSING_RESPONSE_SCHEMA,
                f"Callback operation '{operation_string}' has no request body schema.",
                "The callback will not be turned into a subscription.",
            )
            return None
        schema = {"type": "object", "description": "Placeholder for callbacks without payload"}

    parameters = [
        Parameter(
            name=callback_argument_name(expression),
            location="path",
            required=True,
            schema={"type": "string"},
            description=f"Value of the expression '{expression}' in the callback path",
        )
        for expression in _CALLBACK_EXPRESSION_PATTERN.findall(callback_path)
    ]

    operation = Operation(
        operation_id=raw.get("operationId") or generate_operation_id(method, callback_path),
        operation_string=operation_string,
        method=method,
        path=callback_path,
        title=parent.title,
        document=document,
        raw=raw,
        operation_type=OperationType.SUBSCRIPTION,
        description=_describe(raw, operation_string, data.options),
        parameters=parameters,
        response_content_type=content_type,
        servers=oas.get_servers(raw, {}) or parent.servers,
        field_name_override=raw.get(OasExtension.FIELD_NAME.value),
        is_callback=True,
        callback_name=callback_name,
        parent_operation_id=parent.operation_id,
    )
    operation.response_definition = create_data_def(
        SchemaNames(from_path=sanitize(callback_name, CaseStyle.PASCAL_CASE)), schema, data, document
    )
    operation.security_requirements = _get_security_requirements(raw, document, data)
    operation.in_viewer = data.options.viewer and bool(operation.security_requirements)
    return operation


# =============================================================================
# Security
# =============================================================================


def _process_security_schemes(document: dict[str, Any], data: PreprocessingData):
    for key, raw in oas.get_security_schemes(document).items():
        if key in data.security:
            handle_warning(
                data,
                MitigationType.DUPLICATE_SECURITY_SCHEME,
                f"Multiple documents share the security scheme key '{key}'.",
                f"The security scheme from '{oas.get_title(document)}' will be ignored.",
            )
            continue
        scheme = _process_security_scheme(key, raw, data)
        if scheme is not None:
            data.security[key] = scheme


def _credential_parameters(key: str, names: list[str], data: PreprocessingData) -> dict[str, str]:
    parameters = {}
    for name in names:
        raw_name = f"{key}_{name}"
        parameters[name] = store_sane_name(
            sanitize(raw_name, CaseStyle.CAMEL_CASE), raw_name, data.sane_map
        )
    return parameters


def _process_security_scheme(
    key: str,
    raw: dict[str, Any],
    data: PreprocessingData,
) -> Optional[ProcessedSecurityScheme]:
    scheme_type = raw.get("type")

    if scheme_type == "http":
        http_scheme = str(raw.get("scheme", "")).lower()
        if http_scheme == "basic":
            return ProcessedSecurityScheme(
                key=key,
                kind="basic",
                raw=raw,
                parameters=_credential_parameters(key, ["username", "password"], data),
            )
        if http_scheme == "bearer":
            return ProcessedSecurityScheme(
                key=key,
                kind="bearer",
                raw=raw,
                parameters=_credential_parameters(key, ["token"], data),
            )
        handle_warning(
            data,
            MitigationType.UNSUPPORTED_HTTP_SECURITY_SCHEME,
            f"Security scheme '{key}' uses the unsupported HTTP scheme '{http_scheme}'.",
            "Operations requiring it will not be placed in a viewer for it.",
        )
        return None

    if scheme_type == "apiKey":
        return ProcessedSecurityScheme(
            key=key,
            kind="apiKey",
            raw=raw,
            location=raw.get("in", "header"),
            name=raw.get("name"),
            parameters=_credential_parameters(key, ["apiKey"], data),
        )

    if scheme_type == "oauth2":
        logger.debug(f"OAuth2 security scheme '{key}' is handled through the request context")
        return ProcessedSecurityScheme(key=key, kind="oauth2", raw=raw)

    return ProcessedSecurityScheme(key=key, kind="other", raw=raw)


def _get_security_requirements(
    raw: dict[str, Any],
    document: dict[str, Any],
    data: PreprocessingData,
) -> list[SecurityRequirement]:
    """
    Security requirements an operation can be called with through a viewer.

    Operation level requirements replace document level ones. Schemes that a
    viewer cannot supply (OAuth2, unknown kinds) are left out; a requirement
    with none left is dropped.
    """
    declared = raw["security"] if "security" in raw else document.get("security")
    requirements: list[SecurityRequirement] = []

    for requirement in declared or []:
        if not isinstance(requirement, dict):
            continue
        schemes = tuple(
            key
            for key in requirement
            if key in data.security and data.security[key].kind in ("basic", "bearer", "apiKey")
        )
        if not schemes:
            continue
        candidate = SecurityRequirement(schemes=schemes)
        if candidate not in requirements:
            requirements.append(candidate)

    return requirements


# =============================================================================
# Checks
# =============================================================================


def _check_titles(data: PreprocessingData):
    seen: set[str] = set()
    reported: set[str] = set()
    for document in data.documents:
        title = oas.get_title(document)
        if title in seen and title not in reported:
            reported.add(title)
            handle_warning(
                data,
                MitigationType.MULTIPLE_OAS_SAME_TITLE,
                f"Multiple OAS share the same title '{title}'",
            )
        seen.add(title)


def check_custom_resolvers(
    custom_resolvers: dict[str, Any],
    operations: dict[str, Operation],
    data: PreprocessingData,
):
    """Warn about custom resolvers that reference no existing operation."""
    titles = {oas.get_title(document) for document in data.documents}

    for title, paths in (custom_resolvers or {}).items():
        if title not in titles:
            handle_warning(
                data,
                MitigationType.CUSTOM_RESOLVER_UNKNOWN_OAS,
                f"Custom resolvers reference OAS '{title}' but no such OAS was provided",
            )
            continue

        known = {(op.path, op.method) for op in operations.values() if op.title == title}
        for path, methods in (paths or {}).items():
            for method in methods or {}:
                if (path, method.lower()) not in known:
                    handle_warning(
                        data,
                        MitigationType.CUSTOM_RESOLVER_UNKNOWN_PATH_METHOD,
                        f"A custom resolver references an operation with path '{path}' "
                        f"and method '{method}' but no such operation exists in OAS '{title}'",
                    )


# =============================================================================
# Data definitions
# =============================================================================


def _canonical(schema: Any) -> str:
    return json.dumps(schema, sort_keys=True, default=str)


def _deref_schema(
    schema: Any,
    document: Optional[dict[str, Any]],
    data: PreprocessingData,
) -> tuple[dict[str, Any], Optional[str]]:
    """Resolve a schema reference, returning the schema and the reference name."""
    if not isinstance(schema, dict):
        return {}, None
    ref = schema.get("$ref")
    if not isinstance(ref, str):
        return schema, None
    for candidate in ([document] if document is not None else []) + data.documents:
        try:
            resolved = oas.dereference(schema, candidate)
        except jsonpointer.JsonPointerException:
            continue
        if isinstance(resolved, dict):
            return resolved, oas.ref_name(ref)
    handle_warning(
        data,
        MitigationType.UNRESOLVABLE_SCHEMA,
        f"Could not resolve schema reference '{ref}'.",
        "The schema will be treated as arbitrary JSON.",
    )
    return {}, oas.ref_name(ref)


def merge_composite_schema(
    schema: dict[str, Any],
    data: PreprocessingData,
    document: Optional[dict[str, Any]] = None,
    _seen: Optional[set[str]] = None,
) -> dict[str, Any]:
    """
    Merge allOf / anyOf / oneOf members into one plain schema.

    - allOf: properties, required and type of all members are combined
    - anyOf / oneOf of objects: properties combined, none required
    - anyOf / oneOf of anything else: arbitrary JSON
    - not: ignored
    """
    if not any(keyword in schema for keyword in _COMPOSITION_KEYWORDS):
        return schema

    key = _canonical(schema)
    if key in data._merged_schemas:
        return data._merged_schemas[key]

    seen = set(_seen or ())
    seen.add(key)

    merged = {k: v for k, v in schema.items() if k not in _COMPOSITION_KEYWORDS}
    merged["properties"] = dict(merged.get("properties") or {})
    merged["required"] = list(merged.get("required") or [])

    if "not" in schema:
        handle_warning(
            data,
            MitigationType.UNSUPPORTED_JSON_SCHEMA_KEYWORD,
            f"Schema '{schema.get('title', '')}' uses the unsupported keyword 'not'.",
            "The keyword will be ignored.",
        )

    for member in schema.get("allOf") or []:
        resolved = _resolve_member(member, data, document, seen)
        _merge_into(merged, resolved, data, keep_required=True)

    for keyword in ("anyOf", "oneOf"):
        members = [
            _resolve_member(member, data, document, seen)
            for member in schema.get(keyword) or []
        ]
        if not members:
            continue
        kinds = {data.target_type(member) for member in members}
        if kinds == {"object"}:
            for member in members:
                _merge_into(merged, member, data, keep_required=False)
        elif len(kinds) == 1 and None not in kinds:
            _merge_into(merged, members[0], data, keep_required=False)
        else:
            handle_warning(
                data,
                MitigationType.AMBIGUOUS_UNION_MEMBERS,
                f"Schema '{schema.get('title', '')}' combines members of different "
                f"types ({sorted(str(kind) for kind in kinds)}) with '{keyword}'.",
                "The schema will be treated as arbitrary JSON.",
            )
            merged = {
                "type": "object",
                "additionalProperties": {},
                "description": schema.get("description", ""),
            }
            break

    if not merged.get("properties"):
        merged.pop("properties", None)
    if not merged.get("required"):
        merged.pop("required", None)

    data._merged_schemas[key] = merged
    return merged


def _resolve_member(
    member: Any,
    data: PreprocessingData,
    document: Optional[dict[str, Any]],
    seen: set[str],
) -> dict[str, Any]:
    resolved, _ = _deref_schema(member, document, data)
    if _canonical(resolved) in seen:
        return {}
    return merge_composite_schema(resolved, data, document, seen)


def _merge_into(
    target: dict[str, Any],
    member: dict[str, Any],
    data: PreprocessingData,
    keep_required: bool,
):
    member_type = member.get("type")
    if member_type is None and "properties" in member:
        member_type = "object"
    if member_type is not None:
        existing = target.get("type")
        if existing is None:
            target["type"] = member_type
        elif existing != member_type:
            handle_warning(
                data,
                MitigationType.COMBINE_SCHEMAS,
                f"Cannot combine schemas of types '{existing}' and '{member_type}'.",
                f"The type '{existing}' will be kept.",
            )

    for name, prop in (member.get("properties") or {}).items():
        target["properties"].setdefault(name, prop)

    if keep_required:
        for name in member.get("required") or []:
            if name not in target["required"]:
                target["required"].append(name)

    for keyword, value in member.items():
        if keyword not in ("type", "properties", "required"):
            target.setdefault(keyword, value)


def _choose_type_name(names: list[str], data: PreprocessingData) -> tuple[str, str]:
    """
    Pick the preferred name and a sanitized type name not used yet.

    Returns:
        (original name, sanitized type name)
    """
    for name in names:
        sane = sanitize(name, data.type_style)
        if sane not in data.used_type_names and f"{sane}Input" not in data.used_type_names:
            return name, sane

    base = names[0]
    sane_base = sanitize(base, data.type_style)
    counter = 2
    while (
        f"{sane_base}{counter}" in data.used_type_names
        or f"{sane_base}{counter}Input" in data.used_type_names
    ):
        counter += 1
    return f"{base}{counter}", f"{sane_base}{counter}"


def create_data_def(
    names: SchemaNames,
    schema: Any,
    data: PreprocessingData,
    document: Optional[dict[str, Any]] = None,
) -> DataDefinition:
    """
    Get or create the definition of a schema.

    Structurally identical schemas with the same preferred name share one
    definition. The definition is registered before its properties / items
    are processed, so self references resolve to it.

    Args:
        names: Candidate names for the schema
        schema: The schema (possibly a reference)
        data: Preprocessing data
        document: Document that local references are resolved against

    Returns:
        The (possibly shared) DataDefinition
    """
    schema, from_ref = _deref_schema(schema, document, data)
    if from_ref:
        names = SchemaNames(
            from_extension=names.from_extension,
            from_ref=from_ref,
            from_schema=names.from_schema,
            from_path=names.from_path,
            preferred=names.preferred,
        )
    if names.from_extension is None and isinstance(schema.get(OasExtension.TYPE_NAME.value), str):
        names.from_extension = schema[OasExtension.TYPE_NAME.value]
    if names.from_schema is None and isinstance(schema.get("title"), str):
        names.from_schema = schema["title"]

    schema = merge_composite_schema(schema, data, document)
    target_type = data.target_type(schema)

    candidates = names.candidates() or ["Unnamed"]
    key = structural_key(target_type, candidates[0], schema)
    existing = data.defs.find(key)
    if existing is not None:
        return existing

    preferred, type_name = _choose_type_name(candidates, data)
    data.used_type_names.update({type_name, f"{type_name}Input"})
    store_sane_name(type_name, preferred, data.sane_map)

    definition = data.defs.register(
        key,
        preferred_name=preferred,
        schema=schema,
        target_type=target_type,
        graphql_type_name=type_name,
        graphql_input_object_type_name=f"{type_name}Input",
        required=list(schema.get("required") or []),
    )
    logger.debug(f"Created definition '{type_name}' ({target_type})")

    if target_type == "object":
        sub_definitions: dict[str, DataDefinition] = {}
        for prop_name, prop_schema in (schema.get("properties") or {}).items():
            sub_definitions[prop_name] = create_data_def(
                SchemaNames(from_path=f"{type_name}{capitalize(str(prop_name))}"),
                prop_schema,
                data,
                document,
            )
        definition.sub_definitions = sub_definitions
    elif target_type == "list":
        definition.sub_definitions = create_data_def(
            SchemaNames(from_path=f"{type_name}ListItem"),
            schema.get("items") or {},
            data,
            document,
        )

    return definition
