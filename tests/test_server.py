"""
HTTP boundary tests for the GraphQL execution mode.

Covers:
1. GraphQL queries, mutations and the subscription stub
2. Validation and provider faults reported inside a 200 response
3. Transport faults (content type, JSON body, missing query)
4. CORS preflight and CORS headers on every response
5. The API key check ahead of any body parsing
"""

from datetime import datetime, timezone

import pytest
from structlog.testing import capture_logs

from chat_gateway import create_app
from chat_gateway.core.exceptions import ResponseProcessingError, UpstreamError

from conftest import MODEL, TEST_API_KEY, StubProviderClient, completion, make_config

STATUS_QUERY = "query { status { healthy model version lastCheck } }"
CHAT_MUTATION = """
    mutation SendChat($input: ChatInput!) {
        chat(input: $input) {
            content
            model
            timestamp
            tokensUsed
        }
    }
"""


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestQueries:
    """Query operations."""

    def test_introspection(self, graphql):
        response = graphql("query IntrospectionQuery { __schema { types { name } } }")

        assert response.status_code == 200
        names = {t["name"] for t in response.get_json()["data"]["__schema"]["types"]}
        assert {"ChatInput", "ChatResponse", "ServiceStatus", "Error"} <= names

    def test_status(self, graphql):
        before = datetime.now(timezone.utc)
        response = graphql(STATUS_QUERY)

        assert response.status_code == 200
        status = response.get_json()["data"]["status"]
        assert status["healthy"] is True
        assert status["model"] == MODEL
        assert status["version"] == "1.0.0"
        assert parse_timestamp(status["lastCheck"]) >= before

    def test_supported_models(self, graphql):
        for _ in range(2):
            response = graphql("query GetSupportedModels { supportedModels }")
            assert response.status_code == 200
            assert response.get_json()["data"]["supportedModels"] == [MODEL]

    def test_graphql_endpoint_also_served_at_root(self, client):
        response = client.post("/", json={"query": "{ supportedModels }"})

        assert response.status_code == 200
        assert response.get_json()["data"]["supportedModels"] == [MODEL]

    def test_operation_name_selects_operation(self, graphql):
        query = "query A { supportedModels } query B { status { healthy } }"
        response = graphql(query, operationName="B")

        assert response.get_json()["data"] == {"status": {"healthy": True}}


class TestChatMutation:
    """The chat mutation and how its faults surface."""

    def test_chat_success(self, graphql, provider):
        response = graphql(CHAT_MUTATION, {"input": {"prompt": "Hello, how are you?"}})

        assert response.status_code == 200
        payload = response.get_json()
        assert "errors" not in payload
        chat = payload["data"]["chat"]
        assert chat["content"] == "Hello there!"
        assert chat["model"] == MODEL
        assert chat["tokensUsed"] == 42
        parse_timestamp(chat["timestamp"])

        call = provider.calls[0]
        assert call["prompt"] == "Hello, how are you?"
        assert call["api_key"] == TEST_API_KEY
        assert call["options"].max_tokens == 512
        assert call["options"].temperature == 0.7

    def test_chat_forwards_tunables(self, graphql, provider):
        graphql(CHAT_MUTATION, {"input": {
            "prompt": "hi", "temperature": 0.2, "maxTokens": 64, "topP": 0.9, "topK": 10,
            "frequencyPenalty": 0.1,
        }})

        options = provider.calls[0]["options"]
        assert (options.temperature, options.max_tokens, options.top_p, options.top_k,
                options.frequency_penalty) == (0.2, 64, 0.9, 10, 0.1)

    @pytest.mark.parametrize("prompt", ["", "   "])
    def test_blank_prompt_is_graphql_error(self, graphql, provider, prompt):
        response = graphql(CHAT_MUTATION, {"input": {"prompt": prompt, "maxTokens": 10}})

        assert response.status_code == 200
        payload = response.get_json()
        assert payload["data"] is None
        assert "non-empty string" in payload["errors"][0]["message"]
        assert payload["errors"][0]["extensions"]["code"] == "VALIDATION_ERROR"
        assert payload["errors"][0]["path"] == ["chat"]
        assert provider.calls == []

    def test_provider_http_error_keeps_status_200(self, client):
        provider = StubProviderClient(error=UpstreamError(
            "SiliconFlow API error: 429 Too Many Requests", status_code=429, status_text="Too Many Requests"
        ))
        client = create_app(make_config(), provider_client=provider).test_client()

        response = client.post("/graphql", json={"query": CHAT_MUTATION, "variables": {"input": {"prompt": "hi"}}})

        assert response.status_code == 200
        error = response.get_json()["errors"][0]
        assert "429" in error["message"]
        assert error["extensions"]["code"] == "UPSTREAM_ERROR"

    @pytest.mark.parametrize("provider_response, message", [
        (completion().model_copy(update={"choices": []}), "No response generated from AI model"),
        (completion(content=""), "Empty response from AI model"),
        (completion(content=None), "Empty response from AI model"),
    ])
    def test_unusable_completion(self, provider_response, message):
        client = create_app(make_config(), provider_client=StubProviderClient(provider_response)).test_client()

        response = client.post("/graphql", json={"query": CHAT_MUTATION, "variables": {"input": {"prompt": "hi"}}})

        assert response.status_code == 200
        assert response.get_json()["errors"][0]["message"] == message

    def test_unparseable_provider_body(self):
        provider = StubProviderClient(error=ResponseProcessingError("invalid JSON in provider response", "decode"))
        client = create_app(make_config(), provider_client=provider).test_client()

        response = client.post("/graphql", json={"query": CHAT_MUTATION, "variables": {"input": {"prompt": "hi"}}})

        assert response.status_code == 200
        assert response.get_json()["errors"][0]["extensions"]["code"] == "UPSTREAM_RESPONSE_ERROR"

    def test_missing_token_usage_is_null(self):
        client = create_app(
            make_config(), provider_client=StubProviderClient(completion(total_tokens=None))
        ).test_client()

        response = client.post("/graphql", json={"query": CHAT_MUTATION, "variables": {"input": {"prompt": "hi"}}})

        assert response.get_json()["data"]["chat"]["tokensUsed"] is None


class TestSubscription:
    def test_chat_stream_not_implemented(self, graphql, provider):
        query = "subscription { chatStream(input: {prompt: \"hi\"}) { content } }"
        response = graphql(query)

        assert response.status_code == 200
        error = response.get_json()["errors"][0]
        assert error["message"] == "Streaming not implemented yet"
        assert error["extensions"]["code"] == "NOT_IMPLEMENTED"
        assert provider.calls == []


class TestGraphQLErrors:
    """Errors produced by the engine itself."""

    def test_syntax_error(self, graphql):
        response = graphql("query { status { healthy ")

        assert response.status_code == 200
        payload = response.get_json()
        assert "data" not in payload
        assert payload["errors"][0]["extensions"]["code"] == "GRAPHQL_PARSE_FAILED"

    def test_unknown_field(self, graphql):
        response = graphql("query { doesNotExist }")

        assert response.status_code == 200
        assert response.get_json()["errors"][0]["extensions"]["code"] == "GRAPHQL_VALIDATION_FAILED"

    def test_missing_required_variable(self, graphql):
        response = graphql(CHAT_MUTATION, {})

        assert response.status_code == 200
        assert response.get_json()["errors"][0]["extensions"]["code"] == "BAD_USER_INPUT"

    def test_unexpected_resolver_exception_unmasked(self):
        provider = StubProviderClient(error=RuntimeError("socket exploded"))
        client = create_app(make_config(mask_errors=False), provider_client=provider).test_client()

        response = client.post("/graphql", json={"query": CHAT_MUTATION, "variables": {"input": {"prompt": "hi"}}})

        error = response.get_json()["errors"][0]
        assert response.status_code == 200
        assert error["message"] == "socket exploded"
        assert error["extensions"]["code"] == "INTERNAL_ERROR"

    def test_unexpected_resolver_exception_masked(self):
        provider = StubProviderClient(error=RuntimeError("socket exploded"))
        client = create_app(make_config(mask_errors=True), provider_client=provider).test_client()

        response = client.post("/graphql", json={"query": CHAT_MUTATION, "variables": {"input": {"prompt": "hi"}}})

        assert response.get_json()["errors"][0]["message"] == "Unexpected error."


class TestTransportFaults:
    """Faults detected before any resolver runs."""

    def test_wrong_content_type(self, client):
        response = client.post("/graphql", data="query { status { healthy } }", content_type="text/plain")

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["message"] == "Content-Type must be application/json"

    def test_malformed_json(self, client):
        response = client.post("/graphql", data="{not json", content_type="application/json")

        assert response.status_code == 400
        assert "Invalid JSON in request body" in response.get_data(as_text=True)
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_json_only_named_in_a_parameter_is_rejected(self, client):
        response = client.post("/graphql", data='{"query": "{ supportedModels }"}',
                               content_type="text/plain; profile=application/json")

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["message"] == "Content-Type must be application/json"

    def test_empty_json_body(self, client):
        response = client.post("/graphql", data="", content_type="application/json")

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["message"] == "Invalid JSON in request body"

    def test_charset_in_content_type_is_accepted(self, client):
        response = client.post("/graphql", data='{"query": "{ supportedModels }"}',
                               content_type="application/json; charset=utf-8")

        assert response.status_code == 200

    @pytest.mark.parametrize("body", [{}, {"variables": {}}, {"query": ""}, []])
    def test_missing_query(self, client, body):
        response = client.post("/graphql", json=body)

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["message"] == "Missing query in request body"

    def test_variables_must_be_object(self, client):
        response = client.post("/graphql", json={"query": STATUS_QUERY, "variables": [1, 2]})

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["message"] == "Variables must be a JSON object"

    def test_unsupported_method(self, client):
        response = client.put("/graphql", json={"query": STATUS_QUERY})

        assert response.status_code == 405
        assert response.get_json()["errors"][0]["extensions"]["code"] == "METHOD_NOT_ALLOWED"
        assert response.headers["Allow"] == "GET, POST"

    def test_unknown_path(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.get_json()["errors"][0]["extensions"]["code"] == "NOT_FOUND"
        assert response.headers["Access-Control-Allow-Origin"] == "*"


class TestGetRequests:
    """GET serves the playground or executes read-only operations."""

    def test_playground(self, client):
        response = client.get("/graphql", headers={"Accept": "text/html"})

        assert response.status_code == 200
        assert "text/html" in response.headers["Content-Type"]
        assert "graphiql" in response.get_data(as_text=True).lower()

    def test_playground_without_query(self, client):
        response = client.get("/graphql")

        assert response.status_code == 200
        assert "text/html" in response.headers["Content-Type"]

    def test_get_query_executes(self, client):
        response = client.get(
            "/graphql", query_string={"query": "{ supportedModels }"}, headers={"Accept": "application/json"}
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["supportedModels"] == [MODEL]

    def test_get_mutation_refused(self, client, provider):
        response = client.get(
            "/graphql",
            query_string={"query": CHAT_MUTATION, "variables": '{"input": {"prompt": "hi"}}'},
            headers={"Accept": "application/json"},
        )

        assert response.status_code == 405
        assert "POST" in response.get_json()["errors"][0]["message"]
        assert provider.calls == []

    def test_playground_disabled(self, provider):
        config = make_config()
        config = config.model_copy(update={"gateway": config.gateway.model_copy(update={"graphiql": False})})
        client = create_app(config, provider_client=provider).test_client()

        response = client.get("/graphql", headers={"Accept": "text/html"})

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["message"] == "Missing query in request body"


class TestCors:
    def test_preflight(self, client):
        response = client.options("/graphql", headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        })

        assert response.status_code == 204
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "POST" in response.headers["Access-Control-Allow-Methods"]
        assert response.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    def test_preflight_without_api_key(self, provider):
        client = create_app(make_config(api_key=""), provider_client=provider).test_client()

        response = client.options("/graphql")

        assert response.status_code == 204
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_headers_on_success(self, graphql):
        response = graphql(STATUS_QUERY)

        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert response.headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"


class TestApiKeyCheck:
    """A missing API key is a configuration fault reported before parsing."""

    @pytest.mark.parametrize("api_key", ["", "   "])
    @pytest.mark.parametrize("method", ["get", "post", "put", "delete"])
    def test_missing_key(self, provider, api_key, method):
        client = create_app(make_config(api_key=api_key), provider_client=provider).test_client()

        response = getattr(client, method)("/graphql", data="{not json", content_type="application/json")

        assert response.status_code == 500
        payload = response.get_json()
        assert payload == {"errors": [{"message": "Server configuration error: API key not found"}]}
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert provider.calls == []


class TestInternalErrors:
    def _break_strategy(self, app, monkeypatch):
        def explode(request, context):
            raise RuntimeError("strategy failure")

        monkeypatch.setattr(app.extensions["chat_gateway"].strategy, "handle", explode)

    def test_uncaught_exception_unmasked(self, provider, monkeypatch):
        app = create_app(make_config(mask_errors=False), provider_client=provider)
        self._break_strategy(app, monkeypatch)

        response = app.test_client().post("/graphql", json={"query": STATUS_QUERY})

        assert response.status_code == 500
        assert response.get_json() == {
            "errors": [{"message": "strategy failure", "extensions": {"code": "INTERNAL_ERROR"}}]
        }
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_uncaught_exception_masked(self, provider, monkeypatch):
        app = create_app(make_config(mask_errors=True), provider_client=provider)
        self._break_strategy(app, monkeypatch)

        response = app.test_client().post("/graphql", json={"query": STATUS_QUERY})

        assert response.status_code == 500
        assert response.get_json()["errors"][0]["message"] == "Internal server error"


class TestAmbientEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json() == {"status": "healthy", "service": "chat-gateway", "version": "1.0.0"}

    def test_health_without_api_key(self, provider):
        client = create_app(make_config(api_key=""), provider_client=provider).test_client()

        assert client.get("/health").status_code == 200

    def test_correlation_id_echoed(self, client):
        response = client.post("/graphql", json={"query": STATUS_QUERY}, headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_correlation_id_generated(self, client):
        response = client.post("/graphql", json={"query": STATUS_QUERY})

        assert response.headers["X-Correlation-ID"]

    def test_faults_are_logged_with_their_category(self, client):
        with capture_logs() as logs:
            client.post("/graphql", data="query { status { healthy } }", content_type="text/plain")

        fault = next(entry for entry in logs if entry["event"] == "gateway_error")
        assert fault["error_code"] == "BAD_REQUEST"
        assert fault["error_category"] == "transport"
