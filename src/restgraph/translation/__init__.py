"""
Translation module - OpenAPI documents to a GraphQL schema.
"""

from __future__ import annotations

from .assembler import TranslationResult, create_graphql_schema, translate
from .preprocessor import PreprocessingData, preprocess_documents
from .schema_builder import JSON

__all__ = [
    "TranslationResult",
    "create_graphql_schema",
    "translate",
    "PreprocessingData",
    "preprocess_documents",
    "JSON",
]
