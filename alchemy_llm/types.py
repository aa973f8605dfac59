"""Core data types shared by models and providers."""

from __future__ import annotations

import asyncio
import base64
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Api(Enum):
    """Wire protocol a model speaks."""

    OPENAI_COMPLETIONS = "openai-completions"
    ZAI_COMPLETIONS = "zai-completions"
    MINIMAX_COMPLETIONS = "minimax-completions"


class KnownProvider(Enum):
    """Providers the library knows by name."""

    OPENAI = "openai"
    CEREBRAS = "cerebras"
    XAI = "xai"
    MISTRAL = "mistral"
    ZAI = "zai"
    MINIMAX = "minimax"
    MINIMAX_CN = "minimax-cn"


Provider = Union[KnownProvider, str]


def provider_name(provider: Provider) -> str:
    """Return the display name of a known or custom provider."""
    if isinstance(provider, KnownProvider):
        return provider.value
    return str(provider)


class InputType(Enum):
    TEXT = "text"
    IMAGE = "image"


class MaxTokensField(Enum):
    MAX_TOKENS = "max_tokens"
    MAX_COMPLETION_TOKENS = "max_completion_tokens"


class StopReason(Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "tool_use"
    ERROR = "error"
    ABORTED = "aborted"


class StopReasonSuccess(Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "tool_use"


class StopReasonError(Enum):
    ERROR = "error"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ModelCost:
    """Price per million tokens."""

    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0


@dataclass
class OpenAICompletionsCompat:
    """Explicit compatibility overrides; None means detect."""

    supports_store: Optional[bool] = None
    supports_developer_role: Optional[bool] = None
    supports_reasoning_effort: Optional[bool] = None
    supports_usage_in_streaming: Optional[bool] = None
    max_tokens_field: Optional[MaxTokensField] = None
    requires_tool_result_name: Optional[bool] = None
    requires_assistant_after_tool_result: Optional[bool] = None
    requires_thinking_as_text: Optional[bool] = None
    requires_mistral_tool_ids: Optional[bool] = None


@dataclass(kw_only=True)
class Model:
    """Description of a model and where to reach it."""

    id: str
    name: str
    api: Api
    provider: Provider
    base_url: str
    reasoning: bool = False
    input: list[InputType] = field(default_factory=lambda: [InputType.TEXT])
    cost: ModelCost = field(default_factory=ModelCost)
    context_window: int = 0
    max_tokens: int = 0
    headers: Optional[dict[str, str]] = None
    compat: Optional[OpenAICompletionsCompat] = None


@dataclass
class Cost:
    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0
    total: float = 0.0


@dataclass
class Usage:
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0
    total_tokens: int = 0
    cost: Cost = field(default_factory=Cost)


@dataclass
class TextContent:
    text: str


@dataclass
class ThinkingContent:
    thinking: str
    thinking_signature: Optional[str] = None


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Any = field(default_factory=dict)
    thought_signature: Optional[str] = None


@dataclass
class ImageContent:
    data: bytes
    mime_type: str

    def to_base64(self) -> str:
        """Return the image bytes encoded as standard base64."""
        return base64.b64encode(self.data).decode("ascii")


Content = Union[TextContent, ThinkingContent, ToolCall]
UserContentBlock = Union[TextContent, ImageContent]
ToolResultContent = Union[TextContent, ImageContent]


@dataclass(kw_only=True)
class UserMessage:
    content: Union[str, list[UserContentBlock]]
    timestamp: int = 0


@dataclass(kw_only=True)
class AssistantMessage:
    api: Api
    provider: Provider
    model: str
    content: list[Content] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    stop_reason: StopReason = StopReason.STOP
    error_message: Optional[str] = None
    timestamp: int = 0


@dataclass(kw_only=True)
class ToolResultMessage:
    tool_call_id: str
    tool_name: str
    content: list[ToolResultContent] = field(default_factory=list)
    is_error: bool = False
    timestamp: int = 0


Message = Union[UserMessage, AssistantMessage, ToolResultMessage]


@dataclass
class Tool:
    name: str
    description: str
    parameters: Any = field(default_factory=dict)


@dataclass
class Context:
    system_prompt: Optional[str] = None
    messages: list[Message] = field(default_factory=list)
    tools: Optional[list[Tool]] = None


@dataclass
class ZaiChatCompletionsOptions:
    """Request fields specific to the z.ai chat completions API."""

    max_tokens: Optional[int] = None
    do_sample: Optional[bool] = None
    top_p: Optional[float] = None
    stop: Optional[list[str]] = None
    tool_stream: Optional[bool] = None
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    response_format: Optional[Any] = None
    thinking: Optional[Any] = None


class EventType(Enum):
    START = "start"
    TEXT_START = "text_start"
    TEXT_DELTA = "text_delta"
    TEXT_END = "text_end"
    THINKING_START = "thinking_start"
    THINKING_DELTA = "thinking_delta"
    THINKING_END = "thinking_end"
    TOOL_CALL_START = "toolcall_start"
    TOOL_CALL_DELTA = "toolcall_delta"
    TOOL_CALL_END = "toolcall_end"
    DONE = "done"
    ERROR = "error"


_TERMINAL_EVENTS = frozenset({EventType.DONE, EventType.ERROR})


@dataclass(kw_only=True)
class AssistantMessageEvent:
    """One event of a streamed assistant reply; unused fields stay None."""

    type: EventType
    partial: Optional[AssistantMessage] = None
    content_index: Optional[int] = None
    delta: Optional[str] = None
    content: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    reason: Optional[Union[StopReasonSuccess, StopReasonError]] = None
    message: Optional[AssistantMessage] = None
    error: Optional[AssistantMessage] = None


class AssistantMessageEventStream:
    """Async iterable of events; a producer pushes, a consumer iterates.

    The stream ends once closed, or after a done or error event.
    """

    def __init__(self) -> None:
        self._events: deque[AssistantMessageEvent] = deque()
        self._closed = False
        self._wakeup: Optional[asyncio.Event] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: AssistantMessageEvent) -> None:
        """Queue an event; events pushed after the stream ended are dropped."""
        if self._closed:
            return
        self._events.append(event)
        if event.type in _TERMINAL_EVENTS:
            self._closed = True
        self._notify()

    def close(self) -> None:
        """End the stream once queued events are consumed."""
        self._closed = True
        self._notify()

    def _notify(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    def __aiter__(self) -> "AssistantMessageEventStream":
        return self

    async def __anext__(self) -> AssistantMessageEvent:
        while True:
            if self._events:
                return self._events.popleft()
            if self._closed:
                raise StopAsyncIteration
            if self._wakeup is None:
                self._wakeup = asyncio.Event()
            self._wakeup.clear()
            await self._wakeup.wait()