"""Pydantic data models for requests, responses and provider metadata."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from termsight.cancellation import CancellationToken

# ── Messages ─────────────────────────────────────────────────────────


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single role-tagged chat message."""

    role: MessageRole = MessageRole.USER
    content: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(role=MessageRole.ASSISTANT, content=content)

    def to_dict(self) -> dict[str, str]:
        """OpenAI-style message dict."""
        return {"role": self.role.value, "content": self.content}


# ── Requests / responses ─────────────────────────────────────────────


class CompletionRequest(BaseModel):
    """An assembled model call.

    The gateway never mutates a caller's request: context injection works on
    a copy returned by :meth:`with_context`.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    messages: list[Message] = Field(default_factory=list)
    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    stream: bool = False
    context: Optional[str] = None
    n: int = 1
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    stop: Optional[list[str]] = None
    cancel_token: Optional[CancellationToken] = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_prompt(cls, prompt: str, **kwargs: Any) -> CompletionRequest:
        return cls(messages=[Message.user(prompt)], **kwargs)

    def add_system_message(self, content: str) -> CompletionRequest:
        self.messages.insert(0, Message.system(content))
        return self

    def add_user_message(self, content: str) -> CompletionRequest:
        self.messages.append(Message.user(content))
        return self

    def add_assistant_message(self, content: str) -> CompletionRequest:
        self.messages.append(Message.assistant(content))
        return self

    def with_context(self, context: str, working_directory: Optional[str] = None) -> CompletionRequest:
        """Return a copy carrying *context* as a leading system message.

        Blank context leaves the messages untouched but still marks the copy
        as having had context resolved. A known *working_directory* heads
        the message.
        """
        messages = [m.model_copy() for m in self.messages]
        if context and context.strip():
            header = f"Working directory: {working_directory}\n" if working_directory else ""
            messages.insert(0, Message.system(f"{header}Terminal context:\n{context}\n\n"))
        return self.model_copy(update={"messages": messages, "context": context})

    def validation_error(self) -> Optional[str]:
        """Return the first validation failure, or None when the request is valid."""
        if not self.model or not self.model.strip():
            return "Model is required"
        if not self.messages:
            return "At least one message is required"
        if not 0.0 <= self.temperature <= 2.0:
            return "Temperature must be between 0.0 and 2.0"
        if not 0.0 <= self.top_p <= 1.0:
            return "TopP must be between 0.0 and 1.0"
        if self.max_tokens <= 0:
            return "MaxTokens must be positive"
        return None

    def estimated_tokens(self, chars_per_token: float = 4.0) -> int:
        total_chars = sum(len(m.content) for m in self.messages)
        if self.context and self.context.strip():
            total_chars += len(self.context)
        return int(total_chars / chars_per_token)

    def to_messages(self) -> list[dict[str, str]]:
        return [m.to_dict() for m in self.messages]


class CompletionResponse(BaseModel):
    """Single-shot completion result."""

    content: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    finish_reason: str = "unknown"
    provider: Optional[str] = None
    model: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def is_success(self) -> bool:
        return bool(self.content.strip())

    def estimated_cost(self, input_cost: float = 0.0015, output_cost: float = 0.002) -> float:
        """Cost in USD given per-million-token input/output prices."""
        return (self.prompt_tokens / 1_000_000) * input_cost + (
            self.completion_tokens / 1_000_000
        ) * output_cost


class StreamingChunk(BaseModel):
    """One incremental unit of a streamed completion.

    ``attempt`` identifies which stream attempt produced the chunk. When a
    stream is retried, a chunk with ``is_restart=True`` is delivered before
    the new attempt's chunks: consumers accumulating text must discard what
    they received so far, because the new attempt starts again from the
    beginning.
    """

    content: str = ""
    is_complete: bool = False
    finish_reason: Optional[str] = None
    cumulative_tokens: int = 0
    provider: Optional[str] = None
    model: Optional[str] = None
    chunk_index: int = 0
    attempt: int = 1
    is_restart: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def complete(cls, finish_reason: str = "stop", **kwargs: Any) -> StreamingChunk:
        return cls(is_complete=True, finish_reason=finish_reason, **kwargs)

    @classmethod
    def error(cls, message: str, **kwargs: Any) -> StreamingChunk:
        return cls(content=f"[Error: {message}]", is_complete=True, finish_reason="error", **kwargs)

    @classmethod
    def cancelled(cls, **kwargs: Any) -> StreamingChunk:
        return cls(is_complete=True, finish_reason="cancelled", **kwargs)

    @classmethod
    def restart(cls, attempt: int, **kwargs: Any) -> StreamingChunk:
        return cls(is_restart=True, attempt=attempt, finish_reason="restart", **kwargs)

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()

    @property
    def is_error(self) -> bool:
        return self.finish_reason == "error"

    @property
    def has_data(self) -> bool:
        return not self.is_complete and not self.is_empty


# ── Provider configuration / metadata ────────────────────────────────


class ProviderConfiguration(BaseModel):
    """Per-adapter settings. One active configuration per provider."""

    provider_id: str = ""
    model: str = ""
    api_key: Optional[str] = Field(default=None, repr=False)
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    endpoint: Optional[str] = None
    base_url: Optional[str] = None
    max_retries: int = 3
    timeout: float = 30.0
    headers: dict[str, str] = Field(default_factory=dict)
    enable_streaming: bool = True
    max_context: int = 4096
    organization_id: Optional[str] = None
    additional_params: dict[str, Any] = Field(default_factory=dict)

    def validation_error(self) -> Optional[str]:
        """Return the first validation failure, or None when the configuration is valid."""
        if not self.provider_id.strip():
            return "Provider ID is required"
        if not self.model.strip():
            return "Model is required"
        if not 0.0 <= self.temperature <= 2.0:
            return "Temperature must be between 0.0 and 2.0"
        if self.max_tokens <= 0:
            return "MaxTokens must be positive"
        if not 0.0 <= self.top_p <= 1.0:
            return "TopP must be between 0.0 and 1.0"
        if self.timeout <= 0:
            return "Timeout must be positive"
        if self.max_retries < 0:
            return "MaxRetries must be non-negative"
        if self.max_context <= 0:
            return "MaxContext must be positive"
        return None

    def __str__(self) -> str:
        return (
            f"{self.provider_id}/{self.model} temperature={self.temperature} "
            f"max_tokens={self.max_tokens} retries={self.max_retries}"
        )


class ProviderInfo(BaseModel):
    """Static provider metadata exposed through the gateway."""

    id: str
    name: str = ""
    description: str = ""
    supported_models: list[str] = Field(default_factory=list)
    default_model: str = ""
    endpoint: str = ""
    supports_streaming: bool = True
    max_context_tokens: int = 4096
    context_overrides: dict[str, int] = Field(default_factory=dict)
    requires_api_key: bool = True
    strict_models: bool = False  # reject models outside supported_models
    litellm_prefix: str = ""

    def supports_model(self, model: str) -> bool:
        wanted = model.lower()
        return any(m.lower() == wanted for m in self.supported_models)

    def max_context_for_model(self, model: str) -> int:
        return self.context_overrides.get(model, self.max_context_tokens)
