"""Request-scoped chat entities exposed through the gateway."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 512
DEFAULT_TOP_P = 0.7
DEFAULT_TOP_K = 50
DEFAULT_FREQUENCY_PENALTY = 0.5


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a ``Z`` suffix.

    Sub-millisecond time is rounded up, so a stamp never precedes the moment it was taken.
    """
    now = datetime.now(timezone.utc)
    remainder = now.microsecond % 1000
    if remainder:
        now += timedelta(microseconds=1000 - remainder)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ChatOptions(BaseModel):
    """Sampling tunables forwarded to the provider."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, alias="maxTokens")
    top_p: float = Field(default=DEFAULT_TOP_P, alias="topP")
    top_k: int = Field(default=DEFAULT_TOP_K, alias="topK")
    frequency_penalty: float = Field(default=DEFAULT_FREQUENCY_PENALTY, alias="frequencyPenalty")


class ChatInput(ChatOptions):
    """A chat prompt plus its tunables, as received from a client."""

    prompt: str

    def options(self) -> ChatOptions:
        return ChatOptions.model_validate(self.model_dump(exclude={"prompt"}))


class ChatResponse(BaseModel):
    """Completion returned to the client."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    model: str
    timestamp: str = Field(default_factory=utc_timestamp)
    tokens_used: Optional[int] = Field(default=None, alias="tokensUsed")


class ServiceStatus(BaseModel):
    """Computed service status, no upstream probe is performed."""

    model_config = ConfigDict(populate_by_name=True)

    healthy: bool
    model: str
    version: str
    last_check: str = Field(default_factory=utc_timestamp, alias="lastCheck")


@dataclass(frozen=True)
class RequestEnvironment:
    """Secrets injected by the hosting boundary for one request."""

    api_key: str

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


@dataclass(frozen=True)
class ResolverContext:
    """Per-request context handed to every resolver."""

    env: RequestEnvironment
