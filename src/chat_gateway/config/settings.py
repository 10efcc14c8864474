"""
Configuration Management for the Chat Gateway

This module provides the configuration tree for the gateway: server settings,
the upstream provider, the execution mode, CORS policy and logging. Every
section is a Pydantic settings model read from environment variables, and the
assembled tree is frozen once loaded.
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Any

from pydantic import ByteSize, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MODEL = "Qwen/Qwen2.5-7B-Instruct"


class LogLevel(str, Enum):
    """Log level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log format enumeration."""
    JSON = "json"
    TEXT = "text"


class ExecutionMode(str, Enum):
    """How the gateway endpoint interprets request bodies."""
    GRAPHQL = "graphql"
    RAW = "raw"


class Environment(str, Enum):
    """Environment enumeration."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class APIConfig(BaseSettings):
    """API server configuration."""

    host: str = Field(default="0.0.0.0", description="Server host address")
    port: int = Field(default=8787, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = SettingsConfigDict(env_prefix="API_", frozen=True)


class ProviderConfig(BaseSettings):
    """Upstream chat-completion provider configuration."""

    api_key: str = Field(default="", description="Provider API key (SILICONFLOW_API_KEY)")
    base_url: str = Field(
        default="https://api.siliconflow.cn/v1/chat/completions",
        description="Chat completions endpoint"
    )
    model: str = Field(default=DEFAULT_MODEL, description="Fixed model identifier")
    system_prompt: str = Field(
        default="You are a helpful assistant.",
        description="System message sent ahead of every prompt"
    )
    provider_name: str = Field(default="SiliconFlow", description="Provider name used in error messages")
    timeout: Optional[float] = Field(
        default=None, gt=0, description="Request timeout in seconds, unset means no explicit timeout"
    )

    @field_validator('model')
    @classmethod
    def validate_model(cls, v):
        if not v or not v.strip():
            raise ValueError("A model identifier is required")
        return v

    model_config = SettingsConfigDict(env_prefix="SILICONFLOW_", frozen=True)


class GatewayConfig(BaseSettings):
    """Endpoint behaviour configuration."""

    mode: ExecutionMode = Field(default=ExecutionMode.GRAPHQL, description="Execution strategy")
    graphiql: bool = Field(default=True, description="Serve the GraphiQL playground on GET")
    mask_errors: Optional[bool] = Field(
        default=None, description="Hide internal error details, unset follows the environment"
    )

    model_config = SettingsConfigDict(env_prefix="GATEWAY_", frozen=True)


class CorsConfig(BaseSettings):
    """CORS configuration."""

    allow_origin: str = Field(default="*", description="Allowed CORS origin")
    allow_methods: List[str] = Field(
        default=["GET", "POST", "OPTIONS"], description="Allowed CORS methods"
    )
    allow_headers: List[str] = Field(
        default=["Content-Type", "Authorization"], description="Allowed CORS request headers"
    )
    allow_credentials: bool = Field(default=True, description="Allow credentials")

    model_config = SettingsConfigDict(env_prefix="CORS_", frozen=True)

    def headers(self) -> Dict[str, str]:
        """Response headers implementing this policy."""
        headers = {
            "Access-Control-Allow-Origin": self.allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
        }
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    format: LogFormat = Field(default=LogFormat.JSON, description="Log format")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_size: ByteSize = Field(default=100 * 1024 * 1024, description="Maximum log file size, e.g. 100MiB")
    backup_count: int = Field(default=5, ge=1, description="Number of backup log files")

    # Structured logging
    enable_request_logging: bool = Field(default=True, description="Enable request logging")
    enable_response_logging: bool = Field(default=True, description="Enable response logging")

    # Performance logging
    log_slow_requests: bool = Field(default=True, description="Log slow requests")
    slow_request_threshold: float = Field(
        default=5.0, ge=0.1, description="Slow request threshold in seconds"
    )

    model_config = SettingsConfigDict(env_prefix="LOG_", frozen=True)


class ApplicationConfig(BaseSettings):
    """Main application configuration that combines all config sections."""

    # Environment
    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Application environment")
    app_name: str = Field(default="chat-gateway", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")

    # Configuration sections
    api: APIConfig = Field(default_factory=APIConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(env_prefix="APP_", case_sensitive=False, frozen=True)

    @model_validator(mode="after")
    def validate_environment_config(self):
        """Validate configuration based on environment."""
        if self.environment == Environment.PRODUCTION:
            if self.api.debug:
                raise ValueError("Debug mode should be disabled in production")
            if self.logging.level == LogLevel.DEBUG:
                raise ValueError("Debug logging should be disabled in production")
        return self

    @classmethod
    def load_from_env(cls) -> 'ApplicationConfig':
        """Load configuration from environment variables and .env file."""
        from dotenv import load_dotenv

        env_file = Path(".env")
        if env_file.exists():
            load_dotenv(env_file)

        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary, without secrets."""
        return self.model_dump(mode="json", exclude={"provider": {"api_key"}})

    def errors_masked(self) -> bool:
        """Whether internal error details are hidden from clients."""
        if self.gateway.mask_errors is not None:
            return self.gateway.mask_errors
        return self.is_production()

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION
