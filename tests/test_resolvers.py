import base64
import json
from types import SimpleNamespace

import httpx
import pytest
from graphql import graphql

from restgraph import (
    AuthenticationError,
    HttpTransport,
    MissingServerError,
    MitigationType,
    PayloadValidationError,
    ServiceError,
    create_graphql_schema,
)
from restgraph.runtime.context import CallData
from restgraph.translation.resolver_builder import evaluate_expression

from conftest import json_response, make_document


class TestQueries:
    async def test_query(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(
            result.schema,
            '{ user(username: "alice") { name employerId status followers address { city } } }',
        )

        assert response.errors is None
        assert response.data == {
            "user": {
                "name": "Alice",
                "employerId": "c1",
                "status": "ACTIVE",
                "followers": 12.0,
                "address": {"city": "Springfield"},
            }
        }
        assert len(api.requests) == 1
        assert str(api.requests[0].url) == "http://api.example.com/api/users/alice"

    async def test_list(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(result.schema, "{ users { name status } }")

        assert response.errors is None
        assert [user["status"] for user in response.data["users"]] == ["ACTIVE", "ON_LEAVE", "INACTIVE"]

    async def test_limit(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport(), add_limit_argument=True)

        response = await graphql(result.schema, "{ users(limit: 2) { name } }")

        assert response.data == {"users": [{"name": "Alice"}, {"name": "Bob"}]}

    async def test_negative_limit_is_rejected(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport(), add_limit_argument=True)

        response = await graphql(result.schema, "{ users(limit: -1) { name } }")

        assert response.data == {"users": None}
        assert "must not be negative" in response.errors[0].message
        assert api.requests == []

    async def test_api_limit_parameter_is_not_sliced(self, example_doc, api):
        example_doc["paths"]["/api/users"]["get"]["parameters"] = [
            {"name": "limit", "in": "query", "schema": {"type": "integer"}},
        ]
        result = create_graphql_schema(example_doc, transport=api.transport(), add_limit_argument=True)

        response = await graphql(result.schema, "{ users(limit: 1) { name } }")

        assert len(response.data["users"]) == 3
        assert api.requests[0].url.params["limit"] == "1"
        assert [w.mitigation_type for w in result.report.warnings] == [
            MitigationType.LIMIT_ARGUMENT_NAME_COLLISION
        ]

    async def test_path_values_are_quoted(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        await graphql(result.schema, '{ user(username: "a/b") { name } }')

        assert api.requests[0].url.raw_path == b"/api/users/a%2Fb"

    async def test_service_error(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(result.schema, '{ user(username: "nobody") { name } }')

        assert response.data == {"user": None}
        error = response.errors[0].original_error
        assert isinstance(error, ServiceError)
        assert error.status_code == 404
        assert error.body == {"message": "not found"}

    async def test_connection_error(self, example_doc):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = HttpTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))
        result = create_graphql_schema(example_doc, transport=transport)

        response = await graphql(result.schema, '{ user(username: "alice") { name } }')

        error = response.errors[0].original_error
        assert isinstance(error, ServiceError)
        assert error.status_code == 0

    async def test_missing_server(self, example_doc, api):
        del example_doc["servers"]
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(result.schema, '{ user(username: "alice") { name } }')

        assert isinstance(response.errors[0].original_error, MissingServerError)
        assert api.requests == []

    async def test_base_url_option(self, example_doc, api):
        del example_doc["servers"]
        result = create_graphql_schema(
            example_doc, transport=api.transport(), base_url="http://other.example.com/"
        )

        await graphql(result.schema, '{ user(username: "alice") { name } }')

        assert str(api.requests[0].url) == "http://other.example.com/api/users/alice"

    async def test_static_headers_and_query(self, example_doc, api):
        result = create_graphql_schema(
            example_doc,
            transport=api.transport(),
            headers={"X-Origin": "restgraph"},
            qs={"lang": "en"},
        )

        await graphql(result.schema, '{ user(username: "alice") { name } }')

        request = api.requests[0]
        assert request.headers["X-Origin"] == "restgraph"
        assert request.url.params["lang"] == "en"

    async def test_header_callable(self, example_doc, api):
        seen = []

        def headers(method, path, title, context):
            seen.append((method, path, title, context["user"]))
            return {"X-User": context["user"]}

        result = create_graphql_schema(example_doc, transport=api.transport(), headers=headers)

        await graphql(result.schema, '{ user(username: "alice") { name } }', context_value={"user": "u1"})

        assert seen == [("get", "/api/users/{username}", "Example API", "u1")]
        assert api.requests[0].headers["X-User"] == "u1"


class TestMutations:
    async def test_payload_is_desanitized(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(
            result.schema,
            'mutation { postUser(userInput: {name: "Dave", employerId: "c2", status: ON_LEAVE}) '
            "{ name employerId status } }",
        )

        assert response.errors is None
        assert json.loads(api.requests[0].content) == {
            "name": "Dave",
            "employer_id": "c2",
            "status": "on-leave",
        }
        assert response.data == {"postUser": {"name": "Dave", "employerId": "c2", "status": "ON_LEAVE"}}

    async def test_missing_required_payload(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())
        field = result.schema.mutation_type.fields["postUser"]

        with pytest.raises(PayloadValidationError):
            await field.resolve(None, SimpleNamespace(context={}))

        assert api.requests == []


class TestLinks:
    async def test_links_are_lazy(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        await graphql(result.schema, '{ user(username: "alice") { name } }')

        assert len(api.requests) == 1

    async def test_response_body_link(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(
            result.schema,
            '{ user(username: "alice") { name employerCompany { name } } }',
        )

        assert response.errors is None
        assert response.data == {"user": {"name": "Alice", "employerCompany": {"name": "Acme"}}}
        assert [r.url.path for r in api.requests] == ["/api/users/alice", "/api/companies/c1"]

    async def test_request_path_link(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(
            result.schema,
            '{ user(username: "alice") { cars { model color } } }',
        )

        assert response.data == {"user": {"cars": [{"model": "Mini", "color": "red"}]}}
        assert api.requests[1].url.path == "/api/users/alice/cars"

    async def test_links_on_list_items(self, example_doc, api):
        result = create_graphql_schema(example_doc, transport=api.transport())

        response = await graphql(result.schema, "{ users { name employerCompany { name } } }")

        companies = [user["employerCompany"] for user in response.data["users"][:2]]
        assert companies == [{"name": "Acme"}, {"name": "Initech"}]


class TestCustomResolvers:
    async def test_custom_resolver(self, example_doc, api):
        def resolve(source, info, **args):
            return {"name": f"custom {args['username']}"}

        result = create_graphql_schema(
            example_doc,
            transport=api.transport(),
            custom_resolvers={"Example API": {"/api/users/{username}": {"GET": resolve}}},
        )

        response = await graphql(result.schema, '{ user(username: "alice") { name } }')

        assert response.data == {"user": {"name": "custom alice"}}
        assert api.requests == []

    def test_unknown_custom_resolver_target(self, example_doc):
        result = create_graphql_schema(
            example_doc,
            custom_resolvers={
                "Nope API": {},
                "Example API": {"/api/nothing": {"get": lambda source, info: None}},
            },
        )

        kinds = [w.mitigation_type.value for w in result.report.warnings]
        assert kinds == ["CUSTOM_RESOLVER_UNKNOWN_OAS", "CUSTOM_RESOLVER_UNKNOWN_PATH_METHOD"]


class TestViewers:
    def test_viewer_fields(self, secured_doc):
        schema = create_graphql_schema(secured_doc).schema

        assert list(schema.query_type.fields) == [
            "status",
            "viewerAnyAuth",
            "viewerApiKey",
            "viewerBasicAuth",
        ]
        assert list(schema.mutation_type.fields) == ["mutationViewerApiKey"]
        assert str(schema.query_type.fields["viewerBasicAuth"].args["basicAuthPassword"].type) == "String!"
        assert str(schema.query_type.fields["viewerAnyAuth"].args["apiKeyApiKey"].type) == "String"

    def test_operation_in_several_viewers_counted_once(self, secured_doc):
        report = create_graphql_schema(secured_doc).report

        assert report.num_queries_created == 2
        assert report.num_mutations_created == 1

    def test_dropped_viewer_is_not_counted(self):
        document = make_document(
            {
                "/api/viewer": {"get": {
                    "operationId": "getViewer",
                    "responses": json_response({"$ref": "#/components/schemas/ViewerBasicAuth"}),
                }},
                "/api/secrets": {"get": {
                    "operationId": "getSecret",
                    "security": [{"basicAuth": []}],
                    "responses": json_response(
                        {"type": "object", "title": "Secret", "properties": {"value": {"type": "string"}}}
                    ),
                }},
            },
            {"ViewerBasicAuth": {"type": "object", "properties": {"name": {"type": "string"}}}},
        )
        document["components"]["securitySchemes"] = {"basicAuth": {"type": "http", "scheme": "basic"}}
        result = create_graphql_schema(document)

        assert list(result.schema.query_type.fields) == ["viewerBasicAuth"]
        assert result.report.num_queries_created == 1
        assert [w.mitigation_type for w in result.report.warnings] == [MitigationType.DUPLICATE_FIELD_NAME]

    async def test_basic_auth(self, secured_doc, api):
        result = create_graphql_schema(secured_doc, transport=api.transport())

        response = await graphql(
            result.schema,
            '{ viewerBasicAuth(basicAuthUsername: "alice", basicAuthPassword: "secret") '
            '{ project(projectId: "p1") { projectName } } }',
        )

        assert response.errors is None
        assert response.data == {"viewerBasicAuth": {"project": {"projectName": "Apollo"}}}
        expected = base64.b64encode(b"alice:secret").decode()
        assert api.requests[0].headers["Authorization"] == f"Basic {expected}"

    async def test_api_key_mutation(self, secured_doc, api):
        result = create_graphql_schema(secured_doc, transport=api.transport())

        response = await graphql(
            result.schema,
            'mutation { mutationViewerApiKey(apiKeyApiKey: "k-123") '
            '{ postProject(projectInput: {projectName: "Gemini"}) { projectName } } }',
        )

        assert response.errors is None
        assert api.requests[0].headers["access_token"] == "k-123"
        assert json.loads(api.requests[0].content) == {"project_name": "Gemini"}

    async def test_any_auth_without_credentials(self, secured_doc, api):
        result = create_graphql_schema(secured_doc, transport=api.transport())

        response = await graphql(result.schema, '{ viewerAnyAuth { project(projectId: "p1") { id } } }')

        assert isinstance(response.errors[0].original_error, AuthenticationError)
        assert api.requests == []

    async def test_any_auth_with_api_key(self, secured_doc, api):
        result = create_graphql_schema(secured_doc, transport=api.transport())

        response = await graphql(
            result.schema,
            '{ viewerAnyAuth(apiKeyApiKey: "k-123") { project(projectId: "p1") { id } } }',
        )

        assert response.data == {"viewerAnyAuth": {"project": {"id": "p1"}}}
        assert api.requests[0].headers["access_token"] == "k-123"

    async def test_unsecured_operation_stays_at_root(self, secured_doc, api):
        result = create_graphql_schema(secured_doc, transport=api.transport())

        response = await graphql(result.schema, "{ status }")

        assert response.data == {"status": "all good"}
        assert "Authorization" not in api.requests[0].headers

    async def test_without_viewers(self, secured_doc, api):
        result = create_graphql_schema(secured_doc, transport=api.transport(), viewer=False)

        response = await graphql(result.schema, '{ project(projectId: "p1") { id } }')

        assert response.data == {"project": {"id": "p1"}}

    async def test_oauth_token_from_context(self, secured_doc, api):
        result = create_graphql_schema(
            secured_doc,
            transport=api.transport(),
            token_json_path="/user/token",
        )

        await graphql(result.schema, "{ status }", context_value={"user": {"token": "abc"}})

        assert api.requests[0].headers["Authorization"] == "Bearer abc"


class TestExpressions:
    def _call(self):
        return CallData(
            operation_id="getUserByUsername",
            url="http://api.example.com/api/users/alice",
            method="get",
            status_code=200,
            response_body={"employer_id": "c1", "tags": ["a", "b"]},
            path_params={"username": "alice"},
            query_params={"expand": "all"},
            header_params={"X-Trace": "t1"},
        )

    def test_runtime_expressions(self):
        call = self._call()

        assert evaluate_expression("$response.body#/employer_id", call) == "c1"
        assert evaluate_expression("$response.body#/tags/1", call) == "b"
        assert evaluate_expression("$request.path.username", call) == "alice"
        assert evaluate_expression("$request.query.expand", call) == "all"
        assert evaluate_expression("$request.header.x-trace", call) == "t1"
        assert evaluate_expression("$method", call) == "GET"
        assert evaluate_expression("$statusCode", call) == 200

    def test_constants_and_embedded_expressions(self):
        call = self._call()

        assert evaluate_expression("fixed", call) == "fixed"
        assert evaluate_expression(42, call) == 42
        assert evaluate_expression("user-{$request.path.username}", call) == "user-alice"

    def test_missing_pointer(self):
        assert evaluate_expression("$response.body#/nothing", self._call()) is None
