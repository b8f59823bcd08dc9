"""
restgraph - GraphQL schemas for REST APIs described with OpenAPI 3.

Translates OpenAPI documents into a graphql-core schema:
- Operations become Query / Mutation / Subscription fields
- Schemas become object, input and enum types
- Links become nested fields resolved on demand
- Security requirements become viewer fields taking credentials

Usage:
    from graphql import graphql
    from restgraph import create_graphql_schema, load_document

    result = create_graphql_schema(load_document("openapi.yaml"))
    response = await graphql(result.schema, "{ users { name } }")
"""

from __future__ import annotations

from .core import (
    AuthenticationError,
    CaseStyle,
    MissingServerError,
    MitigationType,
    NameRegistry,
    OperationType,
    PayloadValidationError,
    Report,
    ResolverError,
    RestGraphError,
    ServiceError,
    SubscriptionError,
    TranslationError,
    TranslationOptions,
    TranslationWarning,
    load_document,
    sanitize,
)
from .runtime import HttpTransport, RedisEventTransport, SideChannel
from .translation import TranslationResult, create_graphql_schema, translate

__all__ = [
    # Translation
    "create_graphql_schema",
    "translate",
    "TranslationResult",
    "TranslationOptions",
    "Report",
    "TranslationWarning",
    "MitigationType",
    "load_document",
    # Naming
    "CaseStyle",
    "NameRegistry",
    "sanitize",
    "OperationType",
    # Runtime
    "HttpTransport",
    "RedisEventTransport",
    "SideChannel",
    # Errors
    "RestGraphError",
    "TranslationError",
    "ResolverError",
    "ServiceError",
    "MissingServerError",
    "AuthenticationError",
    "PayloadValidationError",
    "SubscriptionError",
]

__version__ = "0.1.0"
