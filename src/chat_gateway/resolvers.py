"""
Resolvers for the chat gateway

``ChatService`` implements the operations and reports faults as ``Result``
values. ``RootResolvers`` adapts it to the flat root-value mapping that the
GraphQL executor's default field resolver calls.
"""

from typing import Any, Callable, Dict, List, Mapping

from graphql import GraphQLResolveInfo
from pydantic import ValidationError as PydanticValidationError

from .core.exceptions import (
    GatewayError,
    StreamingNotImplementedError,
    UpstreamError,
    ValidationError,
)
from .core.logging import get_logger
from .core.result import Result
from .models import ChatInput, ChatResponse, RequestEnvironment, ServiceStatus
from .provider_client import ProviderClient

PROMPT_REQUIRED_MESSAGE = "Prompt is required and must be a non-empty string"

logger = get_logger(__name__)


class ChatService:
    """Status, model listing and chat operations backed by one provider."""

    def __init__(self, client: ProviderClient, model: str, version: str):
        self.client = client
        self.model = model
        self.version = version

    def status(self) -> ServiceStatus:
        # No upstream probe: the service reports itself healthy whenever it answers.
        return ServiceStatus(healthy=True, model=self.model, version=self.version)

    def supported_models(self) -> List[str]:
        return [self.model]

    def parse_input(self, arguments: Any) -> Result[ChatInput]:
        """Validate raw chat arguments, dropping nulls so defaults apply."""
        prompt = arguments.get("prompt") if isinstance(arguments, Mapping) else None
        if not isinstance(prompt, str) or not prompt.strip():
            return Result.failure(ValidationError(
                PROMPT_REQUIRED_MESSAGE, field_errors={"prompt": [PROMPT_REQUIRED_MESSAGE]}
            ))

        try:
            chat_input = ChatInput.model_validate(
                {key: value for key, value in arguments.items() if value is not None}
            )
        except PydanticValidationError as e:
            field_errors: Dict[str, List[str]] = {}
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"])
                field_errors.setdefault(field, []).append(error["msg"])
            summary = "; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in field_errors.items())
            return Result.failure(ValidationError(f"Invalid chat input: {summary}", field_errors))
        return Result.success(chat_input)

    def chat(self, arguments: Any, env: RequestEnvironment) -> Result[ChatResponse]:
        """Validate the input, call the provider once and shape its first choice."""
        parsed = self.parse_input(arguments)
        if not parsed.ok:
            return Result.failure(parsed.fault)
        chat_input = parsed.value

        logger.info("chat_requested", prompt_length=len(chat_input.prompt), max_tokens=chat_input.max_tokens)
        try:
            completion = self.client.call_model(chat_input.prompt, env.api_key, chat_input.options())
        except GatewayError as e:
            return Result.failure(e)

        if not completion.choices:
            return Result.failure(UpstreamError("No response generated from AI model"))

        content = completion.first_content()
        if not content:
            return Result.failure(UpstreamError("Empty response from AI model"))

        tokens_used = completion.usage.total_tokens if completion.usage else None
        return Result.success(ChatResponse(
            content=content,
            model=self.model,
            tokens_used=tokens_used or None,
        ))

    def chat_stream(self, arguments: Any, env: RequestEnvironment) -> Result[ChatResponse]:
        return Result.failure(StreamingNotImplementedError())


class RootResolvers:
    """Root-level field resolvers shared by Query, Mutation and Subscription."""

    def __init__(self, service: ChatService):
        self.service = service

    def as_root_value(self) -> Dict[str, Callable]:
        return {
            "status": self.status,
            "supportedModels": self.supported_models,
            "chat": self.chat,
            "chatStream": self.chat_stream,
        }

    def status(self, info: GraphQLResolveInfo) -> Dict[str, Any]:
        return self.service.status().model_dump(by_alias=True)

    def supported_models(self, info: GraphQLResolveInfo) -> List[str]:
        return self.service.supported_models()

    def chat(self, info: GraphQLResolveInfo, input: Dict[str, Any]) -> Dict[str, Any]:
        result = self.service.chat(input, info.context.env)
        return result.unwrap().model_dump(by_alias=True)

    def chat_stream(self, info: GraphQLResolveInfo, input: Dict[str, Any]) -> Dict[str, Any]:
        result = self.service.chat_stream(input, info.context.env)
        return result.unwrap().model_dump(by_alias=True)
