"""
HTTP transport used by generated resolvers.

Retries and timeouts are the transport's concern; resolvers surface whatever
error the transport raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """Response returned to resolvers."""
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    text: str = ""
    content_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpTransport:
    """
    Async HTTP client for REST operations.

    Usage:
        transport = HttpTransport()
        response = await transport.request(
            "GET",
            "http://api.example.com/users/1",
            params={"expand": "cars"},
        )
        await transport.close()
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        **client_options: Any,
    ):
        """
        Initialize transport.

        Args:
            timeout: HTTP request timeout in seconds
            client: Pre-built client (e.g. with a mock transport for tests)
            client_options: Extra keyword arguments for ``httpx.AsyncClient``
        """
        self.timeout = timeout
        self.client_options = client_options
        self._client: httpx.AsyncClient | None = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, **self.client_options)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json: Any = None,
        data: Any = None,
        content: Optional[str | bytes] = None,
    ) -> TransportResponse:
        """
        Send a request.

        Args:
            method: HTTP method
            url: Full URL with path parameters substituted
            params: Query parameters
            headers: Request headers
            json: JSON body
            data: Form-encoded body
            content: Raw body

        Returns:
            TransportResponse

        Raises:
            httpx.RequestError: If the request could not be sent
        """
        client = await self._get_client()

        logger.debug(f"Call {method.upper()} {url} params={params}")
        response = await client.request(
            method.upper(),
            url,
            params=params or None,
            headers=headers or None,
            json=json,
            data=data,
            content=content,
        )
        logger.debug(f"{method.upper()} {url} -> {response.status_code}")

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
            content_type=response.headers.get("content-type"),
        )
