"""
Assembler - builds the GraphQL schema for a set of OpenAPI documents.

Pipeline:
1. Preprocess documents into operations and data definitions
2. Create one field per operation (type, arguments, resolver)
3. Name fields, resolving collisions
4. Group authenticated fields into viewers
5. Build the Query / Mutation / Subscription roots

Usage:
    from restgraph import create_graphql_schema

    result = create_graphql_schema(document, base_url="http://localhost:3000")
    print(result.report.num_queries_created)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from graphql import GraphQLField, GraphQLObjectType, GraphQLSchema

from ..core.defs import Operation, OperationType, SecurityRequirement
from ..core.errors import TranslationError
from ..core.naming import capitalize, sanitize, uncapitalize
from ..core.oas import get_title
from ..core.options import MitigationType, Report, TranslationOptions, handle_warning
from ..runtime.transport import HttpTransport
from .auth_builder import AuthFields, any_auth_field_name, create_and_load_viewer, viewer_field_name
from .preprocessor import PreprocessingData, preprocess_documents, resource_name
from .resolver_builder import get_publish_resolver, get_resolver, get_subscribe
from .schema_builder import get_args, get_empty_object_type, get_graphql_type

logger = logging.getLogger(__name__)


@dataclass
class TranslationResult:
    """Schema, report and the preprocessing data it was built from."""
    schema: GraphQLSchema
    report: Report
    data: PreprocessingData

    async def close(self):
        """Close the HTTP transport created for the generated resolvers."""
        close = getattr(self.data.transport, "close", None)
        if close is not None:
            await close()


def create_graphql_schema(
    spec_or_specs: Union[dict[str, Any], list[dict[str, Any]]],
    options: Optional[TranslationOptions] = None,
    **option_overrides: Any,
) -> TranslationResult:
    """
    Translate one or more OpenAPI 3 documents into a GraphQL schema.

    Args:
        spec_or_specs: A document or a list of documents
        options: Translation options
        option_overrides: Individual options (snake_case or camelCase)

    Returns:
        TranslationResult

    Raises:
        TranslationError: If a document cannot be translated
    """
    documents = spec_or_specs if isinstance(spec_or_specs, list) else [spec_or_specs]

    if options is None:
        options = TranslationOptions.model_validate(option_overrides)
    elif option_overrides:
        options = options.model_copy()
        for key, value in option_overrides.items():
            setattr(options, _option_name(key), value)

    return translate(documents, options)


def _option_name(key: str) -> str:
    """Field name for a snake_case or camelCase option name."""
    for name, info in TranslationOptions.model_fields.items():
        if key in (name, info.alias):
            return name
    raise TranslationError(f"Unknown translation option '{key}'")


def _check_documents(documents: list[dict[str, Any]]):
    if not documents:
        raise TranslationError("No OpenAPI document was provided")
    for document in documents:
        version = str(document.get("openapi", "")) if isinstance(document, dict) else ""
        if not version.startswith("3"):
            raise TranslationError(
                f"Document '{get_title(document) if isinstance(document, dict) else document}' "
                f"is not an OpenAPI 3 document",
                "Convert Swagger 2.0 documents to OpenAPI 3 before translating them.",
            )


def translate(documents: list[dict[str, Any]], options: TranslationOptions) -> TranslationResult:
    """
    Translate OpenAPI 3 documents into a GraphQL schema.

    Args:
        documents: OpenAPI 3 documents
        options: Translation options

    Returns:
        TranslationResult with a report that belongs to this translation only
    """
    _check_documents(documents)

    data = preprocess_documents(documents, options)
    data.transport = options.transport or HttpTransport(**options.connect_options)

    plain: dict[OperationType, dict[str, GraphQLField]] = {
        operation_type: {} for operation_type in OperationType
    }
    auth: dict[OperationType, AuthFields] = {operation_type: {} for operation_type in OperationType}
    # operation ids placed per namespace, None for the plain root
    placed: dict[OperationType, dict[Optional[SecurityRequirement], set[str]]] = {
        operation_type: {} for operation_type in OperationType
    }

    for operation in data.all_operations():
        field = get_field_for_operation(operation, data)
        namespaces = placed[operation.operation_type]

        if operation.in_viewer:
            for requirement in operation.security_requirements:
                fields = auth[operation.operation_type].setdefault(requirement, {})
                if _add_field(operation, field, fields, data):
                    namespaces.setdefault(requirement, set()).add(operation.operation_id)
        elif _add_field(operation, field, plain[operation.operation_type], data):
            namespaces.setdefault(None, set()).add(operation.operation_id)

    roots: dict[OperationType, dict[str, GraphQLField]] = {}
    for operation_type in OperationType:
        fields = dict(plain[operation_type])
        if auth[operation_type]:
            viewers = create_and_load_viewer(auth[operation_type], operation_type, data)
            for name, viewer in viewers.items():
                if name in fields:
                    handle_warning(
                        data,
                        MitigationType.DUPLICATE_FIELD_NAME,
                        f"The viewer field '{name}' collides with an operation field.",
                        "The viewer field will not be created.",
                    )
                    continue
                fields[name] = viewer
        roots[operation_type] = dict(sorted(fields.items()))

    report = data.report
    report.num_queries_created = _count_created(roots, placed, OperationType.QUERY)
    report.num_mutations_created = _count_created(roots, placed, OperationType.MUTATION)
    report.num_subscriptions_created = _count_created(roots, placed, OperationType.SUBSCRIPTION)

    # Every declared field needs a concrete type once the schema resolves its thunks
    for operation in data.all_operations():
        definition = operation.response_definition
        if definition is not None and definition.graphql_type is None:
            definition.graphql_type = get_empty_object_type(definition.graphql_type_name)

    schema = _build_schema(roots)

    logger.info(
        f"Translated {report.num_ops} operations: "
        f"{report.num_queries_created} queries, "
        f"{report.num_mutations_created} mutations, "
        f"{report.num_subscriptions_created} subscriptions, "
        f"{len(report.warnings)} warnings"
    )

    return TranslationResult(schema=schema, report=report, data=data)


def _count_created(
    roots: dict[OperationType, dict[str, GraphQLField]],
    placed: dict[OperationType, dict[Optional[SecurityRequirement], set[str]]],
    operation_type: OperationType,
) -> int:
    """Number of distinct operations reachable from the final root of a type."""
    root = roots[operation_type]
    any_auth = any_auth_field_name(operation_type) in root
    created: set[str] = set()
    for requirement, operation_ids in placed[operation_type].items():
        if (
            requirement is None
            or any_auth
            or viewer_field_name(requirement, operation_type) in root
        ):
            created.update(operation_ids)
    return len(created)


def _build_schema(roots: dict[OperationType, dict[str, GraphQLField]]) -> GraphQLSchema:
    query_fields = roots[OperationType.QUERY]
    mutation_fields = roots[OperationType.MUTATION]
    subscription_fields = roots[OperationType.SUBSCRIPTION]

    try:
        return GraphQLSchema(
            query=(
                GraphQLObjectType(name="Query", fields=query_fields)
                if query_fields
                else get_empty_object_type("Query")
            ),
            mutation=GraphQLObjectType(name="Mutation", fields=mutation_fields) if mutation_fields else None,
            subscription=(
                GraphQLObjectType(name="Subscription", fields=subscription_fields)
                if subscription_fields
                else None
            ),
        )
    except TypeError as error:
        # graphql-core wraps errors raised while resolving field thunks
        cause = error.__cause__
        while cause is not None and not isinstance(cause, TranslationError):
            cause = cause.__cause__
        if cause is None:
            raise
        raise cause from None


# =============================================================================
# Fields
# =============================================================================


def get_field_for_operation(operation: Operation, data: PreprocessingData) -> GraphQLField:
    """Create the GraphQL field of an operation."""
    output_type = get_graphql_type(operation.response_definition, data)
    args = get_args(operation, data)

    if operation.operation_type is OperationType.SUBSCRIPTION:
        return GraphQLField(
            output_type,
            args=args,
            subscribe=get_subscribe(operation, data),
            resolve=get_publish_resolver(operation, data),
            description=operation.description,
        )

    return GraphQLField(
        output_type,
        args=args,
        resolve=get_resolver(operation, data),
        description=operation.description,
    )


def default_field_name(operation: Operation, data: PreprocessingData) -> str:
    """
    Field name of an operation without an explicit name.

    - operation_id_field_names: the operation id
    - queries: the response type name (or the path resource with singular_names)
    - mutations: the operation id (or method + path resource with singular_names)
    - subscriptions: the operation id
    """
    style = data.field_style
    if data.options.operation_id_field_names:
        return sanitize(operation.operation_id, style)

    if operation.operation_type is OperationType.QUERY:
        if data.options.singular_names:
            return sanitize(resource_name(operation.path), style)
        return sanitize(uncapitalize(operation.response_definition.graphql_type_name), style)

    if operation.operation_type is OperationType.MUTATION and data.options.singular_names:
        resource = capitalize(resource_name(operation.path))
        return sanitize(f"{operation.method}{resource}", style)

    return sanitize(operation.operation_id, style)


def _add_field(
    operation: Operation,
    field: GraphQLField,
    fields: dict[str, GraphQLField],
    data: PreprocessingData,
) -> bool:
    """
    Add an operation field to a namespace under a collision free name.

    Returns:
        False if the operation had to be dropped from the namespace

    Raises:
        TranslationError: If an explicit name is taken in the namespace or
            was registered by another operation
    """
    explicit = operation.field_name_override
    if explicit:
        owner = data.root_field_names.get(explicit, operation.operation_id)
        if explicit in fields or owner != operation.operation_id:
            raise TranslationError(
                f"Cannot create field '{explicit}' for operation "
                f"'{operation.operation_string}': the name is already in use.",
                "Choose another name with the 'x-graphql-field-name' extension.",
            )
        _store_root_field(explicit, operation, fields, field, data)
        return True

    name = default_field_name(operation, data)
    if name in fields:
        fallback = sanitize(operation.operation_id, data.field_style)
        if fallback in fields:
            handle_warning(
                data,
                MitigationType.DUPLICATE_FIELD_NAME,
                f"Multiple operations have the same name '{name}' and the fallback "
                f"'{fallback}' is taken as well.",
                f"The operation '{operation.operation_string}' will not be part of the schema.",
            )
            return False
        logger.debug(f"Field name '{name}' is taken; use '{fallback}' for '{operation.operation_string}'")
        name = fallback

    _store_root_field(name, operation, fields, field, data)
    return True


def _store_root_field(
    name: str,
    operation: Operation,
    fields: dict[str, GraphQLField],
    field: GraphQLField,
    data: PreprocessingData,
):
    fields[name] = field
    data.root_field_names.setdefault(name, operation.operation_id)
    logger.debug(f"Field '{name}' -> {operation.operation_string}")
