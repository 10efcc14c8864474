"""Shared fixtures: configuration builders, a stub provider and Flask clients."""

import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from chat_gateway import create_app
from chat_gateway.config import (
    ApplicationConfig,
    Environment,
    ExecutionMode,
    GatewayConfig,
    LogFormat,
    LoggingConfig,
    ProviderConfig,
)
from chat_gateway.models import ChatOptions, ProviderResponse

TEST_API_KEY = "sk-test-key-12345"
MODEL = "Qwen/Qwen2.5-7B-Instruct"


def make_config(api_key: str = TEST_API_KEY, mode: ExecutionMode = ExecutionMode.GRAPHQL,
                mask_errors: Optional[bool] = None, **provider_overrides) -> ApplicationConfig:
    return ApplicationConfig(
        environment=Environment.TESTING,
        provider=ProviderConfig(api_key=api_key, **provider_overrides),
        gateway=GatewayConfig(mode=mode, mask_errors=mask_errors),
        logging=LoggingConfig(format=LogFormat.TEXT, file_path=None),
    )


def completion(content: Optional[str] = "Hello there!", total_tokens: Optional[int] = 42) -> ProviderResponse:
    body: Dict[str, Any] = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if total_tokens is not None:
        body["usage"] = {"total_tokens": total_tokens}
    return ProviderResponse.model_validate(body)


def http_response(status_code: int = 200, body: Any = None, reason: str = "OK",
                  raw: Optional[bytes] = None) -> requests.Response:
    """Build a real ``requests.Response`` without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = raw if raw is not None else json.dumps(body).encode("utf-8")
    return response


class StubProviderClient:
    """Stands in for ProviderClient, recording every call."""

    def __init__(self, response: Optional[ProviderResponse] = None, error: Optional[Exception] = None):
        self.response = response if response is not None else completion()
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def call_model(self, prompt: str, api_key: str, options: Optional[ChatOptions] = None) -> ProviderResponse:
        self.calls.append({"prompt": prompt, "api_key": api_key, "options": options})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def provider():
    return StubProviderClient()


@pytest.fixture
def app(provider):
    return create_app(make_config(), provider_client=provider)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def graphql(client):
    """POST a GraphQL operation and return the response."""

    def send(query: str, variables: Optional[Dict[str, Any]] = None, **extra):
        body: Dict[str, Any] = {"query": query}
        if variables is not None:
            body["variables"] = variables
        body.update(extra)
        return client.post("/graphql", json=body)

    return send
