"""Wire shapes of the upstream chat-completions API."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class ProviderMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    content: Optional[str] = None


class ProviderChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[ProviderMessage] = None


class ProviderUsage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class ProviderResponse(BaseModel):
    """Body of a successful chat-completions call. The first choice is authoritative."""

    model_config = ConfigDict(extra="ignore")

    choices: List[ProviderChoice] = []
    usage: Optional[ProviderUsage] = None

    def first_content(self) -> Optional[str]:
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ProviderRequest(BaseModel):
    """Body sent to the chat-completions endpoint."""

    model: str
    messages: List[ChatMessage]
    max_tokens: int
    temperature: float
    top_p: float
    top_k: int
    frequency_penalty: float
    stream: Literal[False] = False
