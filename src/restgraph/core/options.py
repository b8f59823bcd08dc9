"""
Translation options and the translation report.

Options accept both snake_case names and the camelCase names used by
OpenAPI-to-GraphQL configurations:

    TranslationOptions(fill_empty_responses=True)
    TranslationOptions.model_validate({"fillEmptyResponses": True})
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import TranslationError

logger = logging.getLogger(__name__)


class MitigationType(str, enum.Enum):
    """Closed set of recoverable problems reported during translation."""

    # General
    UNNAMED_PARAMETER = "UNNAMED_PARAMETER"

    # Schema
    AMBIGUOUS_UNION_MEMBERS = "AMBIGUOUS_UNION_MEMBERS"
    COMBINE_SCHEMAS = "COMBINE_SCHEMAS"
    DUPLICATE_FIELD_NAME = "DUPLICATE_FIELD_NAME"
    DUPLICATE_LINK_KEY = "DUPLICATE_LINK_KEY"
    MISSING_RESPONSE_SCHEMA = "MISSING_RESPONSE_SCHEMA"
    MISSING_SCHEMA = "MISSING_SCHEMA"
    MULTIPLE_RESPONSES = "MULTIPLE_RESPONSES"
    UNKNOWN_TARGET_TYPE = "UNKNOWN_TARGET_TYPE"
    UNRESOLVABLE_SCHEMA = "UNRESOLVABLE_SCHEMA"
    UNSUPPORTED_HTTP_SECURITY_SCHEME = "UNSUPPORTED_HTTP_SECURITY_SCHEME"
    UNSUPPORTED_JSON_SCHEMA_KEYWORD = "UNSUPPORTED_JSON_SCHEMA_KEYWORD"
    CALLBACKS_MULTIPLE_OPERATION_OBJECTS = "CALLBACKS_MULTIPLE_OPERATION_OBJECTS"

    # Links
    LINK_NAME_COLLISION = "LINK_NAME_COLLISION"
    UNRESOLVABLE_LINK = "UNRESOLVABLE_LINK"

    # Multiple documents
    DUPLICATE_OPERATIONID = "DUPLICATE_OPERATIONID"
    DUPLICATE_SECURITY_SCHEME = "DUPLICATE_SECURITY_SCHEME"
    MULTIPLE_OAS_SAME_TITLE = "MULTIPLE_OAS_SAME_TITLE"

    # Options
    CUSTOM_RESOLVER_UNKNOWN_OAS = "CUSTOM_RESOLVER_UNKNOWN_OAS"
    CUSTOM_RESOLVER_UNKNOWN_PATH_METHOD = "CUSTOM_RESOLVER_UNKNOWN_PATH_METHOD"
    LIMIT_ARGUMENT_NAME_COLLISION = "LIMIT_ARGUMENT_NAME_COLLISION"


class TranslationWarning(BaseModel):
    """A recoverable problem and the fallback that was applied."""
    mitigation_type: MitigationType
    message: str
    mitigation_addendum: Optional[str] = None
    path: List[str] = Field(default_factory=list)


class Report(BaseModel):
    """Warnings and counters collected during one translation."""
    warnings: List[TranslationWarning] = Field(default_factory=list)
    num_ops: int = 0
    num_ops_query: int = 0
    num_ops_mutation: int = 0
    num_ops_subscription: int = 0
    num_queries_created: int = 0
    num_mutations_created: int = 0
    num_subscriptions_created: int = 0


# document title -> path -> method -> value
ResolverOverrides = Dict[str, Dict[str, Dict[str, Any]]]


class TranslationOptions(BaseModel):
    """Options controlling how documents are translated and called."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    strict: bool = False

    # Schema options
    operation_id_field_names: bool = False
    fill_empty_responses: bool = False
    add_limit_argument: bool = False
    id_formats: List[str] = Field(default_factory=list)
    select_query_or_mutation_field: Dict[str, Dict[str, Dict[str, str]]] = Field(default_factory=dict)
    generic_payload_arg_name: bool = False
    simple_names: bool = False
    simple_enum_values: bool = False
    singular_names: bool = False
    create_subscriptions_from_callbacks: bool = False

    # Resolver options
    headers: Union[Dict[str, str], Callable[..., Dict[str, str]], None] = None
    qs: Dict[str, Any] = Field(default_factory=dict)
    request_options: Dict[str, Any] = Field(default_factory=dict)
    connect_options: Dict[str, Any] = Field(default_factory=dict)
    base_url: Optional[str] = None
    custom_resolvers: ResolverOverrides = Field(default_factory=dict)
    custom_subscription_resolvers: ResolverOverrides = Field(default_factory=dict)
    transport: Any = None
    event_transport: Any = None

    # Authentication options
    viewer: bool = True
    token_json_path: Optional[str] = Field(default=None, alias="tokenJSONpath")
    send_oauth_token_in_query: bool = False

    # Logging options
    equivalent_to_messages: bool = True


def handle_warning(
    data: Any,
    mitigation_type: MitigationType,
    message: str,
    addendum: Optional[str] = None,
    path: Optional[List[str]] = None,
) -> None:
    """
    Record a recoverable problem on the report of ``data``.

    In strict mode the problem is raised as a ``TranslationError`` instead.
    """
    if data.options.strict:
        raise TranslationError(f"{mitigation_type.value}: {message}", addendum)

    warning = TranslationWarning(
        mitigation_type=mitigation_type,
        message=message,
        mitigation_addendum=addendum,
        path=path or [],
    )
    data.report.warnings.append(warning)
    logger.warning(f"{mitigation_type.value}: {message}{f' {addendum}' if addendum else ''}")
