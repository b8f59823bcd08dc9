"""
Viewer builder - groups authenticated fields by security requirement.

For each security requirement a viewer object type is created whose fields
are the authenticated operation fields. The viewer field itself takes the
credentials as arguments and hands them to the wrapped fields through the
side channel of its result:

    query {
      viewerBasicAuth(basicAuthUsername: "alice", basicAuthPassword: "secret") {
        user(userId: "alice") { name }
      }
    }
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

from graphql import (
    FieldNode,
    GraphQLArgument,
    GraphQLField,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLString,
)
from graphql.execution.values import get_argument_values

from ..core.defs import OperationType, SecurityRequirement
from ..core.errors import SubscriptionError
from ..core.naming import CaseStyle, sanitize
from ..runtime.context import get_side_channel
from .preprocessor import PreprocessingData
from .resolver_builder import viewer_source

logger = logging.getLogger(__name__)

EVENT_KEY = "_restgraph_event"

_PREFIXES = {
    OperationType.QUERY: ("viewer", "Viewer"),
    OperationType.MUTATION: ("mutationViewer", "MutationViewer"),
    OperationType.SUBSCRIPTION: ("subscriptionViewer", "SubscriptionViewer"),
}

AuthFields = dict[SecurityRequirement, dict[str, GraphQLField]]


def viewer_field_name(requirement: SecurityRequirement, operation_type: OperationType) -> str:
    field_prefix, _ = _PREFIXES[operation_type]
    return f"{field_prefix}{sanitize(requirement.key, CaseStyle.PASCAL_CASE)}"


def any_auth_field_name(operation_type: OperationType) -> str:
    field_prefix, _ = _PREFIXES[operation_type]
    return f"{field_prefix}AnyAuth"


def create_and_load_viewer(
    auth_fields: AuthFields,
    operation_type: OperationType,
    data: PreprocessingData,
) -> dict[str, GraphQLField]:
    """
    Create one viewer field per security requirement.

    Args:
        auth_fields: requirement -> field name -> authenticated field
        operation_type: Root the viewers are created for
        data: Preprocessing data

    Returns:
        Viewer field name -> viewer field, plus an "any auth" viewer when more
        than one requirement exists
    """
    _, type_prefix = _PREFIXES[operation_type]
    viewer_fields: dict[str, GraphQLField] = {}

    requirements = sorted(auth_fields, key=lambda requirement: requirement.key)
    for requirement in requirements:
        fields = dict(sorted(auth_fields[requirement].items()))
        if not fields:
            continue

        key_name = sanitize(requirement.key, CaseStyle.PASCAL_CASE)
        viewer_fields[viewer_field_name(requirement, operation_type)] = _create_viewer_field(
            type_name=f"{type_prefix}{key_name}",
            description=f"A viewer for security requirement '{requirement.key}'",
            fields=fields,
            schemes=requirement.schemes,
            required=True,
            operation_type=operation_type,
            data=data,
        )

    if len(viewer_fields) > 1:
        any_fields: dict[str, GraphQLField] = {}
        schemes: list[str] = []
        for requirement in requirements:
            for name, field in auth_fields[requirement].items():
                any_fields.setdefault(name, field)
            schemes.extend(key for key in requirement.schemes if key not in schemes)

        viewer_fields[any_auth_field_name(operation_type)] = _create_viewer_field(
            type_name=f"{type_prefix}AnyAuth",
            description="Warning: Not every request will work with this viewer type",
            fields=dict(sorted(any_fields.items())),
            schemes=tuple(schemes),
            required=False,
            operation_type=operation_type,
            data=data,
        )

    return viewer_fields


def _credential_args(
    schemes: tuple[str, ...],
    data: PreprocessingData,
    required: bool,
) -> dict[str, GraphQLArgument]:
    arg_type = GraphQLNonNull(GraphQLString) if required else GraphQLString
    args: dict[str, GraphQLArgument] = {}
    for key in schemes:
        for credential, argument in data.security[key].parameters.items():
            args[argument] = GraphQLArgument(
                arg_type,
                description=f"{credential} of security scheme '{key}'",
            )
    return args


def _viewer_resolver(schemes: tuple[str, ...], data: PreprocessingData) -> Callable[..., Any]:
    def resolve(source: Any, info: Any, **args: Any) -> dict[str, Any]:
        side_channel = get_side_channel(source).derive()
        for key in schemes:
            parameters = data.security[key].parameters
            credentials = {
                credential: args[argument]
                for credential, argument in parameters.items()
                if args.get(argument) is not None
            }
            # A scheme counts only when all of its credentials are given
            if len(credentials) == len(parameters):
                side_channel.security[key] = credentials
        return viewer_source(side_channel)

    return resolve


def _create_viewer_field(
    type_name: str,
    description: str,
    fields: dict[str, GraphQLField],
    schemes: tuple[str, ...],
    required: bool,
    operation_type: OperationType,
    data: PreprocessingData,
) -> GraphQLField:
    if type_name in data.used_type_names:
        logger.warning(f"Viewer type name '{type_name}' is also used by a schema type")
    data.used_type_names.add(type_name)

    args = _credential_args(schemes, data, required)
    resolve = _viewer_resolver(schemes, data)

    if operation_type is not OperationType.SUBSCRIPTION:
        viewer_type = GraphQLObjectType(name=type_name, fields=fields, description=description)
        return GraphQLField(viewer_type, args=args, resolve=resolve, description=description)

    viewer_type = GraphQLObjectType(
        name=type_name,
        fields={name: _event_field(field) for name, field in fields.items()},
        description=description,
    )
    return GraphQLField(
        viewer_type,
        args=args,
        subscribe=_viewer_subscribe(viewer_type, fields, resolve),
        resolve=_viewer_event_resolver(resolve),
        description=description,
    )


# =============================================================================
# Subscription viewers
# =============================================================================


def _event_field(field: GraphQLField) -> GraphQLField:
    """Field of a subscription viewer: resolves the event carried by the viewer result."""
    inner_resolve = field.resolve

    def resolve(source: Any, info: Any, **args: Any) -> Any:
        event = source.get(EVENT_KEY) if isinstance(source, dict) else None
        if inner_resolve is None:
            return event
        return inner_resolve(event, info, **args)

    return GraphQLField(field.type, args=field.args, resolve=resolve, description=field.description)


def _selected_field(info: Any) -> FieldNode:
    selections = info.field_nodes[0].selection_set.selections if info.field_nodes[0].selection_set else []
    nodes = [
        node
        for node in selections
        if isinstance(node, FieldNode) and node.name.value != "__typename"
    ]
    if len(nodes) != 1:
        raise SubscriptionError(
            f"Subscription viewer '{info.field_name}' must select exactly one field"
        )
    return nodes[0]


def _viewer_subscribe(
    viewer_type: GraphQLObjectType,
    fields: dict[str, GraphQLField],
    viewer_resolve: Callable[..., Any],
) -> Callable[..., Any]:
    """
    Subscribe function of a subscription viewer.

    GraphQL only runs the subscribe function of the root field, so the viewer
    forwards to the subscribe function of the one field selected inside it.
    """
    async def subscribe(source: Any, info: Any, **args: Any):
        node = _selected_field(info)
        inner = fields[node.name.value]
        inner_args = get_argument_values(viewer_type.fields[node.name.value], node, info.variable_values)

        stream = inner.subscribe(viewer_resolve(source, info, **args), info, **inner_args)
        if inspect.isawaitable(stream):
            stream = await stream
        return stream

    return subscribe


def _viewer_event_resolver(viewer_resolve: Callable[..., Any]) -> Callable[..., Any]:
    def resolve(event: Any, info: Any, **args: Any) -> dict[str, Any]:
        result = viewer_resolve(None, info, **args)
        result[EVENT_KEY] = event
        return result

    return resolve


