import time
from typing import Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from .config.settings import ProviderConfig
from .core.exceptions import ResponseProcessingError, UpstreamError
from .core.logging import get_provider_api_logger
from .models import ChatMessage, ChatOptions, ProviderRequest, ProviderResponse


class ProviderClient:
    def __init__(self, config: ProviderConfig, session: Optional[requests.Session] = None):
        """Initialize the chat-completions client.

        Args:
            config: Provider endpoint, model and system prompt
            session: HTTP session to send requests with (default: a new one)
        """
        self.config = config
        self.session = session or requests.Session()
        self.api_logger = get_provider_api_logger()

    def build_request(self, prompt: str, options: ChatOptions) -> ProviderRequest:
        """Build the provider request body for a single-turn prompt."""
        return ProviderRequest(
            model=self.config.model,
            messages=[
                ChatMessage(role="system", content=self.config.system_prompt),
                ChatMessage(role="user", content=prompt),
            ],
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            top_p=options.top_p,
            top_k=options.top_k,
            frequency_penalty=options.frequency_penalty,
            stream=False,
        )

    def call_model(self, prompt: str, api_key: str, options: Optional[ChatOptions] = None) -> ProviderResponse:
        """Send one chat-completions request and decode the response.

        Makes exactly one outbound call. Failures are raised, never retried.

        Raises:
            UpstreamError: the call failed or the provider returned a non-2xx status
            ResponseProcessingError: the body is not JSON or not a completion
        """
        payload = self.build_request(prompt, options or ChatOptions()).model_dump()
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self.api_logger.log_api_request(self.config.base_url, headers, payload)

        started = time.time()
        try:
            response = self.session.post(
                self.config.base_url,
                json=payload,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            self.api_logger.log_api_error(e)
            raise UpstreamError(f"{self.config.provider_name} API request failed: {e}") from e

        if not response.ok:
            error = UpstreamError(
                f"{self.config.provider_name} API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
                status_text=response.reason,
            )
            self.api_logger.log_api_error(error, status_code=response.status_code)
            raise error

        try:
            body = response.json()
        except ValueError as e:
            self.api_logger.log_api_error(e, status_code=response.status_code)
            raise ResponseProcessingError("invalid JSON in provider response", "decode") from e

        try:
            result = ProviderResponse.model_validate(body)
        except PydanticValidationError as e:
            self.api_logger.log_api_error(e, status_code=response.status_code)
            raise ResponseProcessingError("unexpected provider response shape", "parse") from e

        self.api_logger.log_api_response(
            response.status_code,
            time.time() - started,
            len(response.content or b""),
            result.usage.model_dump() if result.usage else None,
        )
        return result
