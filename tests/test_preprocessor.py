import pytest

from restgraph import MitigationType, TranslationError, TranslationOptions
from restgraph.core.defs import OperationType
from restgraph.translation.preprocessor import (
    callback_argument_name,
    merge_composite_schema,
    preprocess_documents,
)

from conftest import json_response, make_document


def _warnings(data, mitigation_type):
    return [w for w in data.report.warnings if w.mitigation_type is mitigation_type]


class TestOperations:
    def test_operations_in_declaration_order(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions())

        assert list(data.operations) == [
            "getUserByUsername",
            "getUserCars",
            "getUsers",
            "postUser",
            "getCompanyById",
            "getNode",
        ]
        assert data.operations["getUsers"].operation_type is OperationType.QUERY
        assert data.operations["postUser"].operation_type is OperationType.MUTATION

    def test_counts(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions())

        assert data.report.num_ops == 6
        assert data.report.num_ops_query == 5
        assert data.report.num_ops_mutation == 1

    def test_equivalent_to_message(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions())
        description = data.operations["getUserByUsername"].description

        assert description.startswith("Returns a user from the system.")
        assert description.endswith("Equivalent to Example API GET /api/users/{username}")

    def test_equivalent_to_message_disabled(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions(equivalent_to_messages=False))

        assert data.operations["getUserByUsername"].description == "Returns a user from the system."

    def test_excluded_operation(self):
        document = make_document({
            "/api/a": {"get": {"operationId": "getA", "responses": json_response({"type": "string"})}},
            "/api/b": {"get": {
                "operationId": "getB",
                "x-graphql-exclude": True,
                "responses": json_response({"type": "string"}),
            }},
        })
        data = preprocess_documents([document], TranslationOptions())

        assert list(data.operations) == ["getA"]
        assert data.report.num_ops == 2

    def test_select_query_or_mutation_field(self):
        document = make_document({
            "/api/search": {"post": {"operationId": "search", "responses": json_response({"type": "string"})}},
        })
        options = TranslationOptions(
            select_query_or_mutation_field={"Inline API": {"/api/search": {"post": "query"}}}
        )
        data = preprocess_documents([document], options)

        assert data.operations["search"].operation_type is OperationType.QUERY

    def test_duplicate_operation_ids_across_documents(self):
        paths = {"/api/a": {"get": {"operationId": "getA", "responses": json_response({"type": "string"})}}}
        first = make_document(paths, title="First")
        second = make_document(paths, title="Second")
        data = preprocess_documents([first, second], TranslationOptions())

        assert list(data.operations) == ["getA", "second_getA"]
        assert len(_warnings(data, MitigationType.DUPLICATE_OPERATIONID)) == 1

    def test_missing_response_schema_skips_operation(self):
        document = make_document({
            "/api/ping": {"post": {"operationId": "ping", "responses": {"204": {"description": "done"}}}},
        })
        data = preprocess_documents([document], TranslationOptions())
        warnings = _warnings(data, MitigationType.MISSING_RESPONSE_SCHEMA)

        assert data.operations == {}
        assert len(warnings) == 1
        assert warnings[0].path == ["paths", "/api/ping", "post"]

    def test_multiple_responses_picks_first(self):
        document = make_document({
            "/api/a": {"get": {
                "operationId": "getA",
                "responses": {
                    **json_response({"type": "string"}, "200"),
                    **json_response({"type": "integer"}, "201"),
                },
            }},
        })
        data = preprocess_documents([document], TranslationOptions())

        assert data.operations["getA"].status_code == "200"
        assert data.operations["getA"].response_definition.target_type == "string"
        assert len(_warnings(data, MitigationType.MULTIPLE_RESPONSES)) == 1

    def test_unnamed_parameter(self):
        document = make_document({
            "/api/a": {"get": {
                "operationId": "getA",
                "parameters": [{"in": "query", "schema": {"type": "string"}}],
                "responses": json_response({"type": "string"}),
            }},
        })
        data = preprocess_documents([document], TranslationOptions())
        warnings = _warnings(data, MitigationType.UNNAMED_PARAMETER)

        assert data.operations["getA"].parameters == []
        assert len(warnings) == 1
        assert warnings[0].path == ["paths", "/api/a", "get"]

    def test_strict_mode_raises(self):
        document = make_document({
            "/api/ping": {"post": {"operationId": "ping", "responses": {"204": {"description": "done"}}}},
        })

        with pytest.raises(TranslationError, match="MISSING_RESPONSE_SCHEMA"):
            preprocess_documents([document], TranslationOptions(strict=True))


class TestDataDefinitions:
    def test_shared_definition_for_same_schema(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions())
        user = data.operations["getUserByUsername"].response_definition
        users = data.operations["getUsers"].response_definition

        assert user.graphql_type_name == "User"
        assert users.target_type == "list"
        assert users.sub_definitions is user
        assert data.operations["postUser"].payload_definition is user

    def test_self_reference_terminates(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions())
        node = data.operations["getNode"].response_definition
        children = node.sub_definitions["children"]

        assert children.target_type == "list"
        assert children.sub_definitions is node

    def test_cycle_through_intermediate_object(self):
        document = make_document(
            {"/api/a": {"get": {
                "operationId": "getA",
                "responses": json_response({"$ref": "#/components/schemas/A"}),
            }}},
            {
                "A": {"type": "object", "properties": {"b": {"$ref": "#/components/schemas/B"}}},
                "B": {"type": "object", "properties": {"a": {"$ref": "#/components/schemas/A"}}},
            },
        )
        data = preprocess_documents([document], TranslationOptions())
        a = data.operations["getA"].response_definition
        b = a.sub_definitions["b"]

        assert b.graphql_type_name == "B"
        assert b.sub_definitions["a"] is a

    def test_target_types(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions())
        props = data.operations["getUserByUsername"].response_definition.sub_definitions

        assert props["name"].target_type == "string"
        assert props["followers"].target_type == "number"
        assert props["id"].target_type == "id"
        assert props["status"].target_type == "enum"
        assert props["hobbies"].target_type == "list"
        assert props["address"].graphql_type_name == "Address"

    def test_id_formats(self):
        schema = {"type": "object", "properties": {"ref": {"type": "string", "format": "ref"}}}
        document = make_document({"/api/a": {"get": {"operationId": "getA", "responses": json_response(schema)}}})
        data = preprocess_documents([document], TranslationOptions(id_formats=["ref"]))

        assert data.operations["getA"].response_definition.sub_definitions["ref"].target_type == "id"

    def test_child_names_follow_parent(self, example_doc):
        data = preprocess_documents([example_doc], TranslationOptions())
        cars = data.operations["getUserCars"].response_definition

        assert cars.graphql_type_name == "UserCars"
        assert cars.sub_definitions.graphql_type_name == "Car"

    def test_type_name_collision(self):
        def thing(prop):
            return {"type": "object", "title": "Thing", "properties": {prop: {"type": "string"}}}

        document = make_document({
            "/api/a": {
                "get": {"operationId": "getA", "responses": json_response(thing("a"))},
                "put": {"operationId": "putA", "responses": json_response(thing("b"))},
                "post": {"operationId": "postA", "responses": json_response(thing("c"))},
            },
        })
        data = preprocess_documents([document], TranslationOptions())

        # Next candidate first, numeric suffix once all candidates are taken
        assert data.operations["getA"].response_definition.graphql_type_name == "Thing"
        assert data.operations["putA"].response_definition.graphql_type_name == "A"
        assert data.operations["postA"].response_definition.graphql_type_name == "Thing2"

    def test_type_name_extension(self):
        schema = {
            "type": "object",
            "x-graphql-type-name": "Widget",
            "properties": {"a": {"type": "string"}},
        }
        document = make_document({"/api/a": {"get": {"operationId": "getA", "responses": json_response(schema)}}})
        data = preprocess_documents([document], TranslationOptions())

        assert data.operations["getA"].response_definition.graphql_type_name == "Widget"

    def test_non_json_response_is_string(self, secured_doc):
        data = preprocess_documents([secured_doc], TranslationOptions())
        status = data.operations["getStatus"]

        assert status.response_content_type == "text/plain"
        assert status.response_definition.target_type == "string"


class TestCompositeSchemas:
    def test_all_of_merges_properties_and_required(self):
        schemas = {
            "Base": {"type": "object", "required": ["id"], "properties": {"id": {"type": "string"}}},
        }
        schema = {
            "allOf": [
                {"$ref": "#/components/schemas/Base"},
                {"type": "object", "required": ["name"], "properties": {"name": {"type": "string"}}},
            ]
        }
        document = make_document({}, schemas)
        data = preprocess_documents([document], TranslationOptions())

        merged = merge_composite_schema(schema, data, document)

        assert merged["type"] == "object"
        assert set(merged["properties"]) == {"id", "name"}
        assert merged["required"] == ["id", "name"]

    def test_any_of_objects_merges_without_required(self):
        schema = {
            "anyOf": [
                {"type": "object", "required": ["a"], "properties": {"a": {"type": "string"}}},
                {"type": "object", "properties": {"b": {"type": "integer"}}},
            ]
        }
        document = make_document({})
        data = preprocess_documents([document], TranslationOptions())

        merged = merge_composite_schema(schema, data, document)

        assert set(merged["properties"]) == {"a", "b"}
        assert "required" not in merged

    def test_one_of_mixed_members_becomes_json(self):
        schema = {"oneOf": [{"type": "string"}, {"type": "object", "properties": {"a": {"type": "string"}}}]}
        document = make_document({"/api/a": {"get": {"operationId": "getA", "responses": json_response(schema)}}})
        data = preprocess_documents([document], TranslationOptions())

        assert data.operations["getA"].response_definition.target_type == "json"
        assert len(_warnings(data, MitigationType.AMBIGUOUS_UNION_MEMBERS)) == 1

    def test_conflicting_all_of_types(self):
        schema = {"allOf": [{"type": "string"}, {"type": "integer"}]}
        document = make_document({})
        data = preprocess_documents([document], TranslationOptions())

        merged = merge_composite_schema(schema, data, document)

        assert merged["type"] == "string"
        assert len(_warnings(data, MitigationType.COMBINE_SCHEMAS)) == 1


class TestSecurity:
    def test_security_schemes(self, secured_doc):
        data = preprocess_documents([secured_doc], TranslationOptions())

        assert data.security["basicAuth"].kind == "basic"
        assert data.security["basicAuth"].parameters == {
            "username": "basicAuthUsername",
            "password": "basicAuthPassword",
        }
        assert data.security["apiKey"].parameters == {"apiKey": "apiKeyApiKey"}
        assert data.security["apiKey"].location == "header"
        assert data.security["oauth"].kind == "oauth2"

    def test_operation_requirements_override_document(self, secured_doc):
        data = preprocess_documents([secured_doc], TranslationOptions())

        project = data.operations["getProject"]
        assert [r.schemes for r in project.security_requirements] == [("basicAuth",), ("apiKey",)]
        assert project.in_viewer
        assert not data.operations["getStatus"].in_viewer
        assert data.operations["getStatus"].security_requirements == []

    def test_viewer_disabled(self, secured_doc):
        data = preprocess_documents([secured_doc], TranslationOptions(viewer=False))

        assert not data.operations["getProject"].in_viewer

    def test_unsupported_http_scheme(self):
        document = make_document({})
        document["components"]["securitySchemes"] = {"digestAuth": {"type": "http", "scheme": "digest"}}
        data = preprocess_documents([document], TranslationOptions())

        assert "digestAuth" not in data.security
        assert len(_warnings(data, MitigationType.UNSUPPORTED_HTTP_SECURITY_SCHEME)) == 1


class TestCallbacks:
    def test_argument_names(self):
        assert callback_argument_name("$request.query.userName") == "userName"
        assert callback_argument_name("$method") == "method"
        assert callback_argument_name("$request.body#/id") == "id"

    def test_callbacks_only_when_enabled(self, callbacks_doc):
        data = preprocess_documents([callbacks_doc], TranslationOptions())

        assert data.callback_operations == {}
        assert data.report.num_ops == 2
        assert data.report.num_ops_subscription == 1

    def test_callback_operation(self, callbacks_doc):
        data = preprocess_documents(
            [callbacks_doc], TranslationOptions(create_subscriptions_from_callbacks=True)
        )
        callback = data.callback_operations["devicesEvent"]

        assert callback.operation_type is OperationType.SUBSCRIPTION
        assert callback.is_callback
        assert callback.parent_operation_id == "createDevice"
        assert [p.name for p in callback.parameters] == ["userName", "method"]
        assert callback.response_definition is data.operations["createDevice"].response_definition
