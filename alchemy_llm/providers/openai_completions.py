"""Streaming client for OpenAI-compatible chat completions endpoints."""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional

from alchemy_llm.providers.messages import (
    AssistantThinkingMode,
    SystemPromptRole,
    convert_messages,
    convert_tools,
    openai_like_options,
)
from alchemy_llm.providers.runtime import (
    OpenAiLikeRequest,
    initialize_output,
    push_stream_error,
    run_openai_like_stream,
)
from alchemy_llm.providers.stream_blocks import (
    StreamAssembler,
    StreamChunk,
    extract_reasoning,
    map_stop_reason,
    update_usage_from_chunk,
)
from alchemy_llm.types import (
    Api,
    AssistantMessageEventStream,
    Context,
    KnownProvider,
    MaxTokensField,
    Model,
    OpenAICompletionsCompat,
    ZaiChatCompletionsOptions,
)

_TOOL_CHOICE_MODES = ("auto", "none", "required", "function")


@dataclass(frozen=True)
class ToolChoice:
    """Which tool the model may or must call."""

    mode: str
    function_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.mode not in _TOOL_CHOICE_MODES:
            raise ValueError(f"unknown tool choice mode: {self.mode}")
        if (self.mode == "function") != (self.function_name is not None):
            raise ValueError("a function name is required exactly for the function mode")

    @classmethod
    def auto(cls) -> "ToolChoice":
        return cls("auto")

    @classmethod
    def none(cls) -> "ToolChoice":
        return cls("none")

    @classmethod
    def required(cls) -> "ToolChoice":
        return cls("required")

    @classmethod
    def function(cls, name: str) -> "ToolChoice":
        return cls("function", name)

    def to_json(self) -> Any:
        """Return the value sent in the request's tool_choice field."""
        if self.mode == "function":
            return {"function": {"name": self.function_name}}
        return self.mode


class ReasoningEffort(Enum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    XHIGH = "xhigh"


@dataclass
class OpenAICompletionsOptions:
    """Per-request options for an OpenAI-compatible stream."""

    api_key: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tool_choice: Optional[ToolChoice] = None
    reasoning_effort: Optional[ReasoningEffort] = None
    headers: Optional[dict[str, str]] = None
    zai: Optional[ZaiChatCompletionsOptions] = None


@dataclass(frozen=True)
class ResolvedCompat:
    """Compatibility settings with every field decided."""

    supports_store: bool
    supports_developer_role: bool
    supports_reasoning_effort: bool
    supports_usage_in_streaming: bool
    max_tokens_field: MaxTokensField
    requires_tool_result_name: bool
    requires_assistant_after_tool_result: bool
    requires_thinking_as_text: bool
    requires_mistral_tool_ids: bool

    def with_overrides(self, explicit: OpenAICompletionsCompat) -> "ResolvedCompat":
        """Return these settings with every explicitly set field taking precedence."""
        overrides = {
            f.name: getattr(explicit, f.name)
            for f in fields(self)
            if getattr(explicit, f.name, None) is not None
        }
        return replace(self, **overrides)


_NON_STANDARD_PROVIDERS = (KnownProvider.CEREBRAS, KnownProvider.XAI, KnownProvider.MISTRAL)
_NON_STANDARD_HOSTS = ("cerebras.ai", "api.x.ai", "mistral.ai", "chutes.ai")


def detect_compat(model: Model) -> ResolvedCompat:
    """Detect compatibility settings from the model's provider and base URL."""
    provider = model.provider
    base_url = model.base_url

    is_non_standard = provider in _NON_STANDARD_PROVIDERS or any(
        host in base_url for host in _NON_STANDARD_HOSTS
    )
    use_max_tokens = (
        provider == KnownProvider.MISTRAL or "mistral.ai" in base_url or "chutes.ai" in base_url
    )
    is_grok = provider == KnownProvider.XAI or "api.x.ai" in base_url
    is_mistral = provider == KnownProvider.MISTRAL or "mistral.ai" in base_url

    return ResolvedCompat(
        supports_store=not is_non_standard,
        supports_developer_role=not is_non_standard,
        supports_reasoning_effort=not is_grok,
        supports_usage_in_streaming=True,
        max_tokens_field=(
            MaxTokensField.MAX_TOKENS if use_max_tokens else MaxTokensField.MAX_COMPLETION_TOKENS
        ),
        requires_tool_result_name=is_mistral,
        requires_assistant_after_tool_result=False,
        requires_thinking_as_text=is_mistral,
        requires_mistral_tool_ids=is_mistral,
    )


def resolve_compat(model: Model) -> ResolvedCompat:
    """Detected compatibility settings, overridden by the model's explicit ones."""
    detected = detect_compat(model)
    if model.compat is None:
        return detected
    return detected.with_overrides(model.compat)


def build_params(
    model: Model,
    context: Context,
    options: OpenAICompletionsOptions,
    compat: ResolvedCompat,
) -> dict[str, Any]:
    """Build the JSON request body."""
    params: dict[str, Any] = {"model": model.id, "stream": True}

    system_role = (
        SystemPromptRole.DEVELOPER
        if model.reasoning and compat.supports_developer_role
        else SystemPromptRole.SYSTEM
    )
    thinking_mode = (
        AssistantThinkingMode.PLAIN_TEXT
        if compat.requires_thinking_as_text
        else AssistantThinkingMode.OMIT
    )
    message_options = openai_like_options(
        system_role, compat.requires_tool_result_name, thinking_mode
    )
    params["messages"] = convert_messages(model, context, message_options)

    if compat.supports_usage_in_streaming:
        params["stream_options"] = {"include_usage": True}
    if compat.supports_store:
        params["store"] = False
    if options.max_tokens is not None:
        params[compat.max_tokens_field.value] = options.max_tokens
    if options.temperature is not None:
        params["temperature"] = options.temperature
    if context.tools is not None:
        params["tools"] = convert_tools(context.tools)
    if options.tool_choice is not None:
        params["tool_choice"] = options.tool_choice.to_json()
    if model.reasoning and compat.supports_reasoning_effort and options.reasoning_effort is not None:
        params["reasoning_effort"] = options.reasoning_effort.value

    return params


def process_chunk(chunk: StreamChunk, assembler: StreamAssembler) -> None:
    """Apply one stream chunk to the message being assembled."""
    if chunk.usage is not None:
        update_usage_from_chunk(chunk.usage, assembler.output)

    if not chunk.choices:
        return
    choice = chunk.choices[0]

    if choice.finish_reason is not None:
        assembler.output.stop_reason = map_stop_reason(choice.finish_reason)

    delta = choice.delta
    if delta is None:
        return

    if delta.content is not None:
        assembler.handle_text_delta(delta.content)

    reasoning = extract_reasoning(delta)
    if reasoning is not None:
        assembler.handle_reasoning_delta(reasoning)

    if delta.tool_calls is not None:
        assembler.handle_tool_calls(delta.tool_calls)


_background_tasks: set[asyncio.Task[None]] = set()


def stream_openai_completions(
    model: Model,
    context: Context,
    options: Optional[OpenAICompletionsOptions] = None,
) -> AssistantMessageEventStream:
    """Start streaming a completion and return the stream of its events.

    Must be called while an event loop is running.
    """
    stream = AssistantMessageEventStream()
    task = asyncio.get_running_loop().create_task(
        _run_stream(
            copy.deepcopy(model),
            copy.deepcopy(context),
            options if options is not None else OpenAICompletionsOptions(),
            stream,
        )
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return stream


async def _run_stream(
    model: Model,
    context: Context,
    options: OpenAICompletionsOptions,
    sender: AssistantMessageEventStream,
) -> None:
    output = initialize_output(Api.OPENAI_COMPLETIONS, model.provider, model.id)
    try:
        compat = resolve_compat(model)
        request = OpenAiLikeRequest(
            provider=model.provider,
            base_url=model.base_url,
            api_key=options.api_key,
            model_headers=model.headers,
            request_headers=options.headers,
            params=build_params(model, context, options, compat),
        )
        await run_openai_like_stream(request, output, sender, process_chunk)
    except Exception as error:  # every failure is reported on the stream
        push_stream_error(output, sender, error)