"""
restgraph Gateway - serves a translated schema over HTTP.

Usage:
    from restgraph import load_document
    from restgraph.gateway import Gateway

    gateway = Gateway(
        documents=[load_document("openapi/users.yaml")],
        options={"baseUrl": "http://users:8001"},
        redis_url="redis://redis:6379",
    )

    app = gateway.app
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import uuid
from typing import Any, List, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from graphql import ExecutionResult, GraphQLError, graphql, parse, print_schema, subscribe
from pydantic import BaseModel, Field

from .core.options import TranslationOptions
from .runtime.pubsub import RedisEventTransport
from .translation import TranslationResult, create_graphql_schema

logger = logging.getLogger(__name__)


class GraphQLRequest(BaseModel):
    """Body of a GraphQL request."""
    query: str
    variables: Optional[dict[str, Any]] = None
    operation_name: Optional[str] = Field(default=None, alias="operationName")


class Gateway:
    """
    GraphQL gateway in front of the REST APIs described by OpenAPI documents.

    Features:
    - Translates the documents once at startup
    - POST /graphql executes queries and mutations
    - WebSocket /subscribe streams subscriptions (requires redis_url)
    - Exposes the schema SDL and the translation report
    """

    def __init__(
        self,
        documents: list[dict[str, Any]],
        options: Optional[dict[str, Any] | TranslationOptions] = None,
        *,
        title: str = "restgraph Gateway",
        cors_origins: Optional[List[str]] = None,
        redis_url: Optional[str] = None,
    ):
        """
        Initialize gateway.

        Args:
            documents: OpenAPI 3 documents
            options: Translation options (model or dict with camelCase names)
            title: FastAPI app title
            cors_origins: CORS allowed origins (default: localhost:3000)
            redis_url: Redis URL for subscriptions (optional)
        """
        self.documents = documents
        self.title = title
        self.cors_origins = cors_origins or ["http://localhost:3000", "http://127.0.0.1:3000"]
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.event_transport = RedisEventTransport(self.redis_url) if self.redis_url else None

        if not isinstance(options, TranslationOptions):
            options = TranslationOptions.model_validate(options or {})
        if self.event_transport is not None and options.event_transport is None:
            options.event_transport = self.event_transport
        self.options = options

        self.result: TranslationResult = create_graphql_schema(self.documents, self.options)

        self.app = self._create_app()
        self.app.state.gateway = self

    def context(self, request: Request | WebSocket) -> dict[str, Any]:
        """Request context handed to resolvers."""
        return {
            "request": request,
            "headers": dict(request.headers),
            "pubsub": self.event_transport,
        }

    async def execute(self, body: GraphQLRequest, context: dict[str, Any]) -> ExecutionResult:
        return await graphql(
            self.result.schema,
            body.query,
            variable_values=body.variables,
            operation_name=body.operation_name,
            context_value=context,
        )

    async def shutdown(self):
        await self.result.close()
        if self.event_transport is not None:
            await self.event_transport.close()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        app = FastAPI(
            title=self.title,
            description="restgraph Gateway - GraphQL for OpenAPI described services",
            version="1.0.0",
        )

        # CORS
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @app.on_event("shutdown")
        async def gateway_shutdown():
            await self.shutdown()

        # Health check
        @app.get("/health")
        async def health():
            return {"status": "ok"}

        @app.post("/graphql")
        async def graphql_endpoint(body: GraphQLRequest, request: Request):
            result = await self.execute(body, self.context(request))
            status_code = 200 if result.data is not None or not result.errors else 400
            return JSONResponse(result.formatted, status_code=status_code)

        # Schema SDL
        @app.get("/__schema.graphql", response_class=PlainTextResponse)
        async def schema_sdl():
            return print_schema(self.result.schema)

        # Translation report
        @app.get("/__report")
        async def translation_report():
            return self.result.report.model_dump(mode="json")

        if self.event_transport is not None:
            @app.websocket("/subscribe")
            async def websocket_endpoint(websocket: WebSocket):
                await self.handle_connection(websocket)
        else:
            logger.info("No redis_url provided. WebSocket subscription endpoint not created.")

        return app

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def handle_connection(self, websocket: WebSocket):
        """
        Handle a WebSocket connection.

        Messages from the client:
        - {"type": "subscribe", "id": "...", "query": "...", "variables": {...}}
        - {"type": "unsubscribe", "id": "..."}
        - {"type": "ping"}
        """
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        tasks: dict[str, asyncio.Task] = {}

        try:
            await websocket.send_json({"type": "connection_ack", "connection_id": connection_id})

            while True:
                message = await websocket.receive_json()
                message_type = message.get("type")

                if message_type == "subscribe":
                    subscription_id = str(message.get("id") or uuid.uuid4())
                    body = GraphQLRequest.model_validate(message)
                    task = asyncio.create_task(self._stream(websocket, subscription_id, body))
                    self._track(tasks, subscription_id, task)
                elif message_type == "unsubscribe":
                    task = tasks.pop(str(message.get("id")), None)
                    if task is not None:
                        task.cancel()
                elif message_type == "ping":
                    await websocket.send_json({"type": "pong"})
                else:
                    logger.warning(f"Unknown message type: {message_type}")

        except WebSocketDisconnect:
            logger.info(f"Client {connection_id} disconnected")
        finally:
            for task in list(tasks.values()):
                task.cancel()

    @staticmethod
    def _track(tasks: dict[str, asyncio.Task], subscription_id: str, task: asyncio.Task):
        """Keep a subscription task until it finishes, then log its failure if any."""
        tasks[subscription_id] = task

        def done(finished: asyncio.Task):
            if tasks.get(subscription_id) is finished:
                del tasks[subscription_id]
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.error(f"Subscription {subscription_id} failed: {error}")

        task.add_done_callback(done)

    async def _stream(self, websocket: WebSocket, subscription_id: str, body: GraphQLRequest):
        try:
            document = parse(body.query)
        except GraphQLError as e:
            await websocket.send_json({"type": "error", "id": subscription_id, "payload": [e.formatted]})
            return

        stream = subscribe(
            self.result.schema,
            document,
            variable_values=body.variables,
            operation_name=body.operation_name,
            context_value=self.context(websocket),
        )
        if inspect.isawaitable(stream):
            stream = await stream

        if isinstance(stream, ExecutionResult):
            await websocket.send_json({"type": "error", "id": subscription_id, "payload": stream.formatted})
            return

        try:
            async for result in stream:
                await websocket.send_json({"type": "next", "id": subscription_id, "payload": result.formatted})
            await websocket.send_json({"type": "complete", "id": subscription_id})
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()


def run(gateway: Gateway, host: str = "0.0.0.0", port: int = 8000):
    """Serve a gateway with uvicorn."""
    import uvicorn

    uvicorn.run(gateway.app, host=host, port=port)
