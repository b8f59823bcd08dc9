"""
Configuration loading for restgraph projects.

Example restgraph.yaml:

    version: 1
    project: petstore
    documents:
      - openapi/users.yaml
    options:
      baseUrl: http://localhost:3000
      singularNames: true
    gateway:
      host: 0.0.0.0
      port: 8000
      redis_url: redis://redis:6379
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from ..core.oas import load_document
from ..core.options import TranslationOptions


@dataclass
class GatewayConfig:
    """Configuration for the gateway."""
    host: str = "0.0.0.0"
    port: int = 8000
    redis_url: Optional[str] = None


@dataclass
class RestGraphConfig:
    """Main restgraph configuration."""
    version: int = 1
    project: str = "restgraph"
    documents: list[str] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    # Directory relative document paths are resolved against
    root: Path = field(default_factory=Path, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: Path | str = ".") -> "RestGraphConfig":
        """Create config from dictionary."""
        gateway_data = data.get("gateway") or {}
        gateway = GatewayConfig(
            host=gateway_data.get("host", "0.0.0.0"),
            port=gateway_data.get("port", 8000),
            redis_url=gateway_data.get("redis_url"),
        )

        return cls(
            version=data.get("version", 1),
            project=data.get("project", "restgraph"),
            documents=list(data.get("documents") or []),
            options=dict(data.get("options") or {}),
            gateway=gateway,
            root=Path(root),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for YAML serialization."""
        return {
            "version": self.version,
            "project": self.project,
            "documents": list(self.documents),
            "options": dict(self.options),
            "gateway": {
                "host": self.gateway.host,
                "port": self.gateway.port,
                "redis_url": self.gateway.redis_url,
            },
        }

    def translation_options(self) -> TranslationOptions:
        """Options section as TranslationOptions."""
        return TranslationOptions.model_validate(self.options)

    def load_documents(self) -> list[dict[str, Any]]:
        """Load the configured OpenAPI documents."""
        return [load_document(self.root / path) for path in self.documents]

    def save(self, path: Path | str = "restgraph.yaml") -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        content = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        path.write_text(content)


def load_config(path: Path | str = "restgraph.yaml") -> RestGraphConfig | None:
    """Load configuration from YAML file."""
    path = Path(path)
    if not path.exists():
        return None

    data = yaml.safe_load(path.read_text()) or {}
    return RestGraphConfig.from_dict(data, root=path.parent)
