import json

import pytest
from graphql import ExecutionResult, parse, subscribe

from restgraph import SubscriptionError, create_graphql_schema
from restgraph.translation.resolver_builder import get_topic

from conftest import FakeEventTransport


class TestSubscriptionSchema:
    def test_subscription_field(self, callbacks_doc):
        result = create_graphql_schema(callbacks_doc, create_subscriptions_from_callbacks=True)
        field = result.schema.subscription_type.fields["devicesEvent"]

        assert field.type is result.schema.get_type("Device")
        assert str(field.args["userName"].type) == "String!"
        assert str(field.args["method"].type) == "String!"
        assert result.report.num_subscriptions_created == 1

    def test_no_subscriptions_by_default(self, callbacks_doc):
        result = create_graphql_schema(callbacks_doc)

        assert result.schema.subscription_type is None
        assert list(result.schema.mutation_type.fields) == ["createDevice"]

    def test_topic(self, callbacks_doc):
        result = create_graphql_schema(callbacks_doc, create_subscriptions_from_callbacks=True)
        operation = result.data.callback_operations["devicesEvent"]

        assert get_topic(operation, {"userName": "alice", "method": "POST"}) == "alice/devices/POST"

    def test_topic_missing_argument(self, callbacks_doc):
        result = create_graphql_schema(callbacks_doc, create_subscriptions_from_callbacks=True)
        operation = result.data.callback_operations["devicesEvent"]

        with pytest.raises(SubscriptionError, match="userName"):
            get_topic(operation, {"method": "POST"})


class TestSubscriptionEvents:
    async def test_events(self, callbacks_doc):
        events = FakeEventTransport([
            json.dumps({"name": "Lamp", "status": "on"}),
            json.dumps({"name": "Lamp", "status": "off"}),
        ])
        result = create_graphql_schema(callbacks_doc, create_subscriptions_from_callbacks=True)

        stream = await subscribe(
            result.schema,
            parse('subscription { devicesEvent(userName: "alice", method: "POST") { name status } }'),
            context_value={"pubsub": events},
        )
        received = [item.data async for item in stream]

        assert events.topics == ["alice/devices/POST"]
        assert received == [
            {"devicesEvent": {"name": "Lamp", "status": "on"}},
            {"devicesEvent": {"name": "Lamp", "status": "off"}},
        ]

    async def test_event_transport_option(self, callbacks_doc):
        events = FakeEventTransport([{"name": "Fan"}])
        result = create_graphql_schema(
            callbacks_doc,
            create_subscriptions_from_callbacks=True,
            event_transport=events,
        )

        stream = await subscribe(
            result.schema,
            parse('subscription { devicesEvent(userName: "bob", method: "POST") { name } }'),
        )
        received = [item.data async for item in stream]

        assert received == [{"devicesEvent": {"name": "Fan"}}]

    async def test_no_event_transport(self, callbacks_doc):
        result = create_graphql_schema(callbacks_doc, create_subscriptions_from_callbacks=True)

        outcome = await subscribe(
            result.schema,
            parse('subscription { devicesEvent(userName: "bob", method: "POST") { name } }'),
        )

        assert isinstance(outcome, ExecutionResult)
        assert isinstance(outcome.errors[0].original_error, SubscriptionError)


class TestSubscriptionViewers:
    @pytest.fixture
    def secured_callbacks_doc(self, callbacks_doc):
        callbacks_doc["components"]["securitySchemes"] = {
            "apiKey": {"type": "apiKey", "in": "header", "name": "access_token"},
        }
        callback = callbacks_doc["paths"]["/api/devices"]["post"]["callbacks"]["devicesEvent"]
        callback["{$request.query.userName}/devices/{$method}"]["post"]["security"] = [{"apiKey": []}]
        return callbacks_doc

    def test_viewer_field(self, secured_callbacks_doc):
        result = create_graphql_schema(secured_callbacks_doc, create_subscriptions_from_callbacks=True)

        assert list(result.schema.subscription_type.fields) == ["subscriptionViewerApiKey"]
        assert result.report.num_subscriptions_created == 1

    async def test_viewer_events(self, secured_callbacks_doc):
        events = FakeEventTransport([json.dumps({"name": "Lamp"})])
        result = create_graphql_schema(secured_callbacks_doc, create_subscriptions_from_callbacks=True)

        stream = await subscribe(
            result.schema,
            parse(
                'subscription { subscriptionViewerApiKey(apiKeyApiKey: "k-1") '
                '{ devicesEvent(userName: "alice", method: "POST") { name } } }'
            ),
            context_value={"pubsub": events},
        )
        received = [item.data async for item in stream]

        assert events.topics == ["alice/devices/POST"]
        assert received == [{"subscriptionViewerApiKey": {"devicesEvent": {"name": "Lamp"}}}]
