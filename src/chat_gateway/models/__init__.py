"""
Data Models Package

This package contains the Pydantic models for the gateway's request and
response entities and for the upstream provider's wire format.
"""

from .chat import (
    ChatInput,
    ChatOptions,
    ChatResponse,
    RequestEnvironment,
    ResolverContext,
    ServiceStatus,
    utc_timestamp,
)
from .provider import (
    ChatMessage,
    ProviderChoice,
    ProviderMessage,
    ProviderRequest,
    ProviderResponse,
    ProviderUsage,
)

__all__ = [
    # Gateway models
    "ChatInput",
    "ChatOptions",
    "ChatResponse",
    "RequestEnvironment",
    "ResolverContext",
    "ServiceStatus",
    "utc_timestamp",

    # Provider wire models
    "ChatMessage",
    "ProviderChoice",
    "ProviderMessage",
    "ProviderRequest",
    "ProviderResponse",
    "ProviderUsage",
]
