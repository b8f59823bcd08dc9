"""
GraphQL type derivation.

Turns data definitions into graphql-core types. Every definition yields at
most one output type and one input type; object fields are thunks so
definitions that refer to each other (or to themselves) resolve lazily.

Usage:
    output_type = get_graphql_type(operation.response_definition, data)
    args = get_args(operation, data)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import jsonpointer
from graphql import (
    GraphQLArgument,
    GraphQLBoolean,
    GraphQLEnumType,
    GraphQLEnumValue,
    GraphQLField,
    GraphQLFloat,
    GraphQLID,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInt,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLString,
)
from graphql.utilities import value_from_ast_untyped

from ..core import oas
from ..core.defs import DataDefinition, LinkDef, OasExtension, Operation, SchemaNames
from ..core.naming import CaseStyle, capitalize, sanitize, store_sane_name, uncapitalize
from ..core.options import MitigationType, handle_warning
from .preprocessor import PreprocessingData, create_data_def

logger = logging.getLogger(__name__)

LIMIT_ARGUMENT = "limit"
GENERIC_PAYLOAD_ARGUMENT = "requestBody"

JSON = GraphQLScalarType(
    name="JSON",
    description="Arbitrary JSON value",
    serialize=lambda value: value,
    parse_value=lambda value: value,
    parse_literal=value_from_ast_untyped,
)

_SCALARS = {
    "string": GraphQLString,
    "integer": GraphQLInt,
    "number": GraphQLFloat,
    "boolean": GraphQLBoolean,
    "id": GraphQLID,
    "json": JSON,
}

_RESERVED_ENUM_NAMES = ("true", "false", "null")


def get_empty_object_type(name: str, description: Optional[str] = None) -> GraphQLObjectType:
    """Object type with one placeholder field, for types that have nothing to show."""
    return GraphQLObjectType(
        name=name,
        description=description,
        fields={
            "message": GraphQLField(
                GraphQLString,
                description="Placeholder field",
                resolve=lambda source, info: "This is a placeholder field.",
            )
        },
    )


# =============================================================================
# Types
# =============================================================================


def get_graphql_type(
    definition: DataDefinition,
    data: PreprocessingData,
    is_input: bool = False,
) -> Any:
    """
    Get (or create) the GraphQL type of a definition.

    Args:
        definition: Data definition
        data: Preprocessing data
        is_input: Build the input variant (arguments, request payloads)

    Returns:
        A graphql-core output or input type
    """
    cached = definition.graphql_input_object_type if is_input else definition.graphql_type
    if cached is not None:
        return cached

    target_type = definition.target_type

    if target_type == "object":
        if not (definition.sub_definitions or {}):
            graphql_type = JSON if is_input else get_empty_object_type(
                definition.graphql_type_name, definition.schema.get("description")
            )
        elif is_input:
            graphql_type = _create_input_object_type(definition, data)
        else:
            graphql_type = _create_object_type(definition, data)

    elif target_type == "list":
        item = definition.sub_definitions
        item_type = get_graphql_type(item, data, is_input) if isinstance(item, DataDefinition) else JSON
        graphql_type = GraphQLList(item_type)

    elif target_type == "enum":
        graphql_type = definition.graphql_type or definition.graphql_input_object_type
        if graphql_type is None:
            graphql_type = _create_enum_type(definition, data)
        definition.graphql_type = graphql_type
        definition.graphql_input_object_type = graphql_type

    elif target_type in _SCALARS:
        graphql_type = _SCALARS[target_type]

    else:
        handle_warning(
            data,
            MitigationType.UNKNOWN_TARGET_TYPE,
            f"No GraphQL target type could be identified for schema "
            f"'{definition.preferred_name}'.",
            "The schema will be represented with the JSON type.",
        )
        graphql_type = JSON

    if is_input:
        definition.graphql_input_object_type = graphql_type
    else:
        definition.graphql_type = graphql_type
    return graphql_type


def _field_name(name: str, data: PreprocessingData) -> str:
    return store_sane_name(sanitize(name, data.field_style), name, data.sane_map)


def _property_items(definition: DataDefinition):
    sub_definitions = definition.sub_definitions
    if isinstance(sub_definitions, dict):
        return sub_definitions.items()
    return ()


def _create_object_type(definition: DataDefinition, data: PreprocessingData) -> GraphQLObjectType:
    def fields() -> dict[str, GraphQLField]:
        result: dict[str, GraphQLField] = {}
        for prop_name, sub_definition in _property_items(definition):
            field_type = get_graphql_type(sub_definition, data)
            if prop_name in definition.required:
                field_type = GraphQLNonNull(field_type)
            result[_field_name(prop_name, data)] = GraphQLField(
                field_type,
                description=sub_definition.schema.get("description"),
            )
        result.update(_create_link_fields(definition, set(result), data))
        return result

    logger.debug(f"Create object type '{definition.graphql_type_name}'")
    return GraphQLObjectType(
        name=definition.graphql_type_name,
        description=definition.schema.get("description"),
        fields=fields,
    )


def _create_input_object_type(
    definition: DataDefinition,
    data: PreprocessingData,
) -> GraphQLInputObjectType:
    def fields() -> dict[str, GraphQLInputField]:
        result: dict[str, GraphQLInputField] = {}
        for prop_name, sub_definition in _property_items(definition):
            field_type = get_graphql_type(sub_definition, data, is_input=True)
            if prop_name in definition.required:
                field_type = GraphQLNonNull(field_type)
            result[_field_name(prop_name, data)] = GraphQLInputField(
                field_type,
                description=sub_definition.schema.get("description"),
            )
        return result

    logger.debug(f"Create input object type '{definition.graphql_input_object_type_name}'")
    return GraphQLInputObjectType(
        name=definition.graphql_input_object_type_name,
        description=definition.schema.get("description"),
        fields=fields,
    )


def _enum_value_name(value: Any, mapping: dict[str, Any], data: PreprocessingData) -> str:
    if str(value) in mapping:
        return str(mapping[str(value)])
    style = CaseStyle.SIMPLE if data.options.simple_enum_values else CaseStyle.ALL_CAPS
    name = sanitize(str(value), style)
    if name in _RESERVED_ENUM_NAMES:
        name = f"_{name}"
    return name


def _create_enum_type(definition: DataDefinition, data: PreprocessingData) -> GraphQLEnumType:
    mapping = definition.schema.get(OasExtension.ENUM_MAPPING.value) or {}
    values: dict[str, GraphQLEnumValue] = {}

    for value in definition.schema.get("enum") or []:
        if value is None:
            continue
        name = _enum_value_name(value, mapping, data)
        if name in values:
            logger.debug(f"Enum '{definition.graphql_type_name}' repeats value '{name}'")
            continue
        values[store_sane_name(name, str(value), data.sane_map)] = GraphQLEnumValue(value)

    return GraphQLEnumType(
        name=definition.graphql_type_name,
        values=values,
        description=definition.schema.get("description"),
    )


# =============================================================================
# Arguments
# =============================================================================


def payload_argument_name(operation: Operation, data: PreprocessingData) -> Optional[str]:
    """Name of the argument that carries the request payload, if any."""
    if operation.payload_definition is None:
        return None
    if data.options.generic_payload_arg_name:
        return GENERIC_PAYLOAD_ARGUMENT
    return sanitize(
        uncapitalize(operation.payload_definition.graphql_input_object_type_name),
        data.field_style,
    )


def _parameter_type(operation: Operation, param, data: PreprocessingData) -> Any:
    try:
        schema = oas.dereference(param.schema, operation.document)
    except jsonpointer.JsonPointerException:
        schema = None
    if not isinstance(schema, dict):
        return GraphQLString

    target_type = data.target_type(schema)
    if target_type in _SCALARS:
        return _SCALARS[target_type]

    definition = create_data_def(
        SchemaNames(from_path=f"{operation.operation_id}{capitalize(param.name)}"),
        param.schema,
        data,
        operation.document,
    )
    return get_graphql_type(definition, data, is_input=True)


def _wants_limit_argument(operation: Operation, data: PreprocessingData) -> bool:
    response = operation.response_definition
    return (
        data.options.add_limit_argument
        and response is not None
        and response.target_type == "list"
        and not operation.is_callback
    )


def has_limit_argument(operation: Operation, data: PreprocessingData) -> bool:
    """Whether the field of an operation carries the auxiliary 'limit' argument."""
    if not _wants_limit_argument(operation, data):
        return False
    taken = {sanitize(param.name, data.field_style) for param in operation.parameters}
    taken.add(payload_argument_name(operation, data))
    return LIMIT_ARGUMENT not in taken


def get_args(
    operation: Operation,
    data: PreprocessingData,
    exclude: tuple[str, ...] = (),
    include_payload: bool = True,
) -> dict[str, GraphQLArgument]:
    """
    GraphQL arguments of an operation field.

    Args:
        operation: The operation
        data: Preprocessing data
        exclude: Original parameter names supplied elsewhere (by a link)
        include_payload: Whether to add the request payload argument

    Returns:
        Sanitized argument name -> GraphQLArgument
    """
    args: dict[str, GraphQLArgument] = {}

    for param in operation.parameters:
        if param.name in exclude:
            continue
        arg_type = _parameter_type(operation, param, data)
        has_default = isinstance(param.schema, dict) and "default" in param.schema
        if param.required and not has_default:
            arg_type = GraphQLNonNull(arg_type)
        args[_field_name(param.name, data)] = GraphQLArgument(
            arg_type,
            description=param.description,
        )

    payload_name = payload_argument_name(operation, data) if include_payload else None
    if payload_name is not None:
        payload_type = get_graphql_type(operation.payload_definition, data, is_input=True)
        if operation.payload_required:
            payload_type = GraphQLNonNull(payload_type)
        args[payload_name] = GraphQLArgument(
            payload_type,
            description=operation.payload_definition.schema.get("description"),
        )

    if _wants_limit_argument(operation, data):
        if LIMIT_ARGUMENT in args:
            handle_warning(
                data,
                MitigationType.LIMIT_ARGUMENT_NAME_COLLISION,
                f"The 'limit' argument cannot be added to '{operation.operation_string}' "
                f"because of an existing argument with the same name.",
            )
        else:
            args[LIMIT_ARGUMENT] = GraphQLArgument(
                GraphQLInt,
                description="Auxiliary parameter that limits the number of results returned",
            )

    return args


# =============================================================================
# Links
# =============================================================================


def find_link_target(link: LinkDef, data: PreprocessingData) -> Optional[Operation]:
    """Operation a link points to, by operationId or operationRef."""
    if link.operation_id:
        target = data.operations.get(link.operation_id)
        if target is not None:
            return target
        for operation in data.operations.values():
            if operation.raw.get("operationId") == link.operation_id:
                return operation
        return None

    if link.operation_ref:
        parsed = oas.parse_operation_ref(link.operation_ref)
        if parsed is None:
            return None
        path, method = parsed
        for operation in data.operations.values():
            if operation.path == path and operation.method == method:
                return operation
    return None


def link_parameter_name(name: str) -> str:
    """Parameter name of a link parameter key, which may be prefixed with its location."""
    for location in ("path.", "query.", "header.", "cookie."):
        if name.startswith(location):
            return name[len(location):]
    return name


def _create_link_fields(
    definition: DataDefinition,
    taken: set[str],
    data: PreprocessingData,
) -> dict[str, GraphQLField]:
    from .resolver_builder import get_resolver

    fields: dict[str, GraphQLField] = {}

    for link_name, link in definition.links.items():
        target = find_link_target(link, data)
        if target is None:
            handle_warning(
                data,
                MitigationType.UNRESOLVABLE_LINK,
                f"The link '{link_name}' of type '{definition.graphql_type_name}' "
                f"references an unknown operation.",
                "The link will be ignored.",
            )
            continue

        field_name = _field_name(link_name, data)
        if field_name in taken or field_name in fields:
            handle_warning(
                data,
                MitigationType.LINK_NAME_COLLISION,
                f"Cannot create link field '{field_name}' on type "
                f"'{definition.graphql_type_name}' because a field with that name exists.",
                "The link will be ignored.",
            )
            continue

        supplied = tuple(link_parameter_name(name) for name in link.parameters)
        fields[field_name] = GraphQLField(
            get_graphql_type(target.response_definition, data),
            args=get_args(
                target,
                data,
                exclude=supplied,
                include_payload=link.request_body is None,
            ),
            resolve=get_resolver(target, data, link=link),
            description=link.description or target.description,
        )

    return fields
