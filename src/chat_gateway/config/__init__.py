from .settings import (
    DEFAULT_MODEL,
    APIConfig,
    ApplicationConfig,
    CorsConfig,
    Environment,
    ExecutionMode,
    GatewayConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ProviderConfig,
)

__all__ = [
    "DEFAULT_MODEL",
    "APIConfig",
    "ApplicationConfig",
    "CorsConfig",
    "Environment",
    "ExecutionMode",
    "GatewayConfig",
    "LogFormat",
    "LoggingConfig",
    "LogLevel",
    "ProviderConfig",
]
