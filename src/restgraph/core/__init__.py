"""
Core module - definitions, naming, options and OpenAPI helpers.
"""

from __future__ import annotations

from .defs import (
    DataDefinition,
    DefinitionArena,
    LinkDef,
    OasExtension,
    Operation,
    OperationType,
    Parameter,
    ProcessedSecurityScheme,
    SchemaNames,
    SecurityRequirement,
)
from .errors import (
    AuthenticationError,
    MissingServerError,
    PayloadValidationError,
    ResolverError,
    RestGraphError,
    ServiceError,
    SubscriptionError,
    TranslationError,
)
from .naming import (
    CaseStyle,
    NameRegistry,
    desanitize_object_keys,
    infer_resource_name_from_path,
    sanitize,
    sanitize_object_keys,
    store_sane_name,
)
from .oas import load_document
from .options import MitigationType, Report, TranslationOptions, TranslationWarning

__all__ = [
    # Definitions
    "DataDefinition",
    "DefinitionArena",
    "LinkDef",
    "OasExtension",
    "Operation",
    "OperationType",
    "Parameter",
    "ProcessedSecurityScheme",
    "SchemaNames",
    "SecurityRequirement",
    # Errors
    "RestGraphError",
    "TranslationError",
    "ResolverError",
    "ServiceError",
    "MissingServerError",
    "AuthenticationError",
    "PayloadValidationError",
    "SubscriptionError",
    # Naming
    "CaseStyle",
    "NameRegistry",
    "sanitize",
    "store_sane_name",
    "infer_resource_name_from_path",
    "sanitize_object_keys",
    "desanitize_object_keys",
    # Documents
    "load_document",
    # Options
    "MitigationType",
    "Report",
    "TranslationOptions",
    "TranslationWarning",
]
