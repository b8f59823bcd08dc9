"""
Core dataclass definitions for the restgraph system.

These define the normalized view of an OpenAPI document: operations, their
parameters and links, security schemes, and the data definitions that are
turned into GraphQL types.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Literal, Optional


class OperationType(str, enum.Enum):
    """Root namespace an operation is translated into."""
    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


HTTP_METHODS = ("get", "put", "post", "patch", "delete", "options", "head")


class OasExtension(str, enum.Enum):
    """Vendor extensions understood by the translator."""
    TYPE_NAME = "x-graphql-type-name"
    FIELD_NAME = "x-graphql-field-name"
    ENUM_MAPPING = "x-graphql-enum-mapping"
    EXCLUDE = "x-graphql-exclude"


@dataclass
class SchemaNames:
    """
    Candidate names for a schema, in priority order.

    ``preferred`` is used when the name is already known.
    """
    from_extension: Optional[str] = None
    from_ref: Optional[str] = None
    from_schema: Optional[str] = None
    from_path: Optional[str] = None
    preferred: Optional[str] = None

    def candidates(self) -> list[str]:
        """Non-empty candidate names, highest priority first."""
        names = [
            self.preferred,
            self.from_extension,
            self.from_ref,
            self.from_schema,
            self.from_path,
        ]
        return [name for name in names if isinstance(name, str) and name]


@dataclass
class Parameter:
    """Definition of an operation parameter."""
    name: str
    location: Literal["path", "query", "header", "cookie"]
    required: bool = False
    schema: dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None


@dataclass
class LinkDef:
    """
    Declared relationship from an operation's response to another operation.

    ``parameters`` maps target parameter names to runtime expressions
    (``$response.body#/id``) or constants.
    """
    name: str
    operation_id: Optional[str] = None
    operation_ref: Optional[str] = None
    parameters: dict[str, Any] = field(default_factory=dict)
    request_body: Any = None
    description: Optional[str] = None


@dataclass
class ProcessedSecurityScheme:
    """
    Security scheme of a document, with the GraphQL arguments it needs.

    ``parameters`` maps credential names (username, password, apiKey, token)
    to the sanitized argument names used on viewer fields.
    """
    key: str
    kind: Literal["basic", "bearer", "apiKey", "oauth2", "other"]
    raw: dict[str, Any]
    location: Optional[Literal["header", "query", "cookie"]] = None
    name: Optional[str] = None
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SecurityRequirement:
    """A combination of security schemes that must all be satisfied."""
    schemes: tuple[str, ...]

    @property
    def key(self) -> str:
        return "_".join(self.schemes)


@dataclass(eq=False)
class DataDefinition:
    """
    Normalized view of a schema fragment.

    Created once per structural identity and shared by every operation that
    references the same schema under the same preferred name.
    """
    index: int
    preferred_name: str
    schema: dict[str, Any]
    target_type: Optional[str]
    graphql_type_name: str
    graphql_input_object_type_name: str
    required: list[str] = field(default_factory=list)
    # property name -> definition for objects, item definition for lists
    sub_definitions: dict[str, DataDefinition] | DataDefinition | None = None
    links: dict[str, LinkDef] = field(default_factory=dict)
    graphql_type: Any = None
    graphql_input_object_type: Any = None


def structural_key(target_type: Optional[str], preferred_name: str, schema: Any) -> str:
    """Composite key identifying a definition: kind + name + schema signature."""
    signature = json.dumps(schema, sort_keys=True, default=str)
    return f"{target_type}:{preferred_name}:{signature}"


class DefinitionArena:
    """
    Stores data definitions, addressed by stable index.

    A definition is registered (reserving its identity and index) before its
    sub-definitions are derived, so a schema that refers back to itself finds
    the in-progress definition instead of recursing.
    """

    def __init__(self):
        self._defs: list[DataDefinition] = []
        self._by_key: dict[str, int] = {}

    def find(self, key: str) -> Optional[DataDefinition]:
        """Get a definition by structural key."""
        index = self._by_key.get(key)
        return self._defs[index] if index is not None else None

    def register(self, key: str, **kwargs: Any) -> DataDefinition:
        """Create and register a new definition under the structural key."""
        definition = DataDefinition(index=len(self._defs), **kwargs)
        self._defs.append(definition)
        self._by_key[key] = definition.index
        return definition

    def __getitem__(self, index: int) -> DataDefinition:
        return self._defs[index]

    def __iter__(self):
        return iter(self._defs)

    def __len__(self) -> int:
        return len(self._defs)


@dataclass(eq=False)
class Operation:
    """
    One callable action derived from a path + method or a callback.

    Created once by the preprocessor and read-only afterwards.
    """
    operation_id: str
    operation_string: str
    method: str
    path: str
    title: str
    document: dict[str, Any]
    raw: dict[str, Any]
    operation_type: OperationType
    description: Optional[str] = None
    parameters: list[Parameter] = field(default_factory=list)
    payload_definition: Optional[DataDefinition] = None
    payload_content_type: Optional[str] = None
    payload_required: bool = False
    response_definition: Optional[DataDefinition] = None
    response_content_type: Optional[str] = None
    status_code: Optional[str] = None
    links: dict[str, LinkDef] = field(default_factory=dict)
    servers: list[dict[str, Any]] = field(default_factory=list)
    security_requirements: list[SecurityRequirement] = field(default_factory=list)
    in_viewer: bool = False
    field_name_override: Optional[str] = None

    # Callback operations only
    is_callback: bool = False
    callback_name: Optional[str] = None
    parent_operation_id: Optional[str] = None

    def identity(self) -> tuple[str, str, str]:
        return (self.method, self.path, self.title)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Operation):
            return NotImplemented
        return self.identity() == other.identity()

    def __hash__(self) -> int:
        return hash(self.identity())
