"""
HTTP boundary for the chat gateway

Every request to the gateway endpoint goes through the same steps: CORS
preflight, API key check, then the configured execution strategy. CORS headers
are added to every response, including error responses.

Run with ``chat-gateway`` or any WSGI server pointed at ``create_app()``.
"""

from dataclasses import dataclass
from typing import Optional

from flask import Flask, Response, current_app, jsonify, request

from .config.settings import ApplicationConfig
from .core.exceptions import ConfigurationError, register_error_handlers
from .core.logging import get_logger, initialize_logging, setup_request_logging
from .models import RequestEnvironment, ResolverContext
from .provider_client import ProviderClient
from .resolvers import ChatService
from .schema import build_gateway_schema
from .strategies import ExecutionStrategy, build_strategy

GATEWAY_ROUTES = ("/", "/graphql")
GATEWAY_METHODS = ["GET", "POST", "OPTIONS", "PUT", "PATCH", "DELETE"]
EXTENSION_KEY = "chat_gateway"


@dataclass(frozen=True)
class GatewayState:
    """Process-wide objects built once by ``create_app``."""

    config: ApplicationConfig
    strategy: ExecutionStrategy


def gateway_endpoint():
    """Single logical endpoint shared by all execution strategies."""
    state: GatewayState = current_app.extensions[EXTENSION_KEY]

    if request.method == "OPTIONS":
        return Response(status=204)

    env = RequestEnvironment(api_key=state.config.provider.api_key)
    if not env.has_api_key:
        raise ConfigurationError("API key not found", config_section="provider")

    return state.strategy.handle(request, ResolverContext(env=env))


def health_check():
    """Liveness probe, independent of the provider."""
    config: ApplicationConfig = current_app.extensions[EXTENSION_KEY].config
    return jsonify({
        "status": "healthy",
        "service": config.app_name,
        "version": config.app_version,
    })


def create_app(config: Optional[ApplicationConfig] = None,
               provider_client: Optional[ProviderClient] = None) -> Flask:
    """Build the Flask application.

    Args:
        config: Frozen application configuration (default: loaded from the environment)
        provider_client: Client for the upstream provider (default: built from ``config.provider``)
    """
    config = config or ApplicationConfig.load_from_env()
    initialize_logging(config.logging)
    logger = get_logger(__name__)

    client = provider_client or ProviderClient(config.provider)
    service = ChatService(client, config.provider.model, config.app_version)
    strategy = build_strategy(config, service, build_gateway_schema())

    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = GatewayState(config=config, strategy=strategy)

    setup_request_logging(app, config.logging)
    register_error_handlers(app, masked=config.errors_masked())

    cors_headers = config.cors.headers()

    @app.after_request
    def apply_cors_headers(response):
        response.headers.update(cors_headers)
        return response

    for rule in GATEWAY_ROUTES:
        app.add_url_rule(
            rule,
            endpoint="gateway",
            view_func=gateway_endpoint,
            methods=GATEWAY_METHODS,
            provide_automatic_options=False,
        )
    app.add_url_rule("/health", endpoint="health", view_func=health_check, methods=["GET"])

    if not config.provider.api_key.strip():
        logger.warning("provider_api_key_missing", env_var="SILICONFLOW_API_KEY")
    logger.info(
        "app_created",
        environment=config.environment.value,
        mode=config.gateway.mode.value,
        model=config.provider.model,
        masked_errors=config.errors_masked(),
    )
    return app


def main():
    config = ApplicationConfig.load_from_env()
    app = create_app(config)

    logger = get_logger(__name__)
    logger.info(
        "server_starting",
        host=config.api.host,
        port=config.api.port,
        endpoints=[f"{', '.join(GATEWAY_METHODS)} {rule}" for rule in GATEWAY_ROUTES] + ["GET /health"],
    )
    app.run(host=config.api.host, port=config.api.port, debug=config.api.debug)


if __name__ == "__main__":
    main()
