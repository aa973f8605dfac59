"""Streaming client for the z.ai chat completions API."""

from __future__ import annotations

import asyncio
import copy
from dataclasses import replace
from typing import Any, Optional

from alchemy_llm.providers.messages import (
    AssistantThinkingMode,
    SystemPromptRole,
    convert_messages,
    convert_tools,
    openai_like_options,
)
from alchemy_llm.providers.openai_completions import OpenAICompletionsOptions
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
)
from alchemy_llm.types import (
    Api,
    AssistantMessageEventStream,
    Context,
    Model,
    StopReason,
)

STREAM_INCLUDE_USAGE_FIELD = "include_usage"

_MESSAGE_OPTIONS = replace(
    openai_like_options(SystemPromptRole.SYSTEM, False, AssistantThinkingMode.OMIT),
    assistant_content_as_string=True,
    emit_reasoning_content_field=True,
    tool_call_arguments_as_object=False,
)

_OPTIONAL_ZAI_FIELDS = (
    "do_sample",
    "top_p",
    "stop",
    "tool_stream",
    "request_id",
    "user_id",
    "response_format",
    "thinking",
)


def build_params(
    model: Model, context: Context, options: OpenAICompletionsOptions
) -> dict[str, Any]:
    """Build the JSON request body for a z.ai chat completion."""
    params: dict[str, Any] = {
        "model": model.id,
        "stream": True,
        "messages": convert_messages(model, context, _MESSAGE_OPTIONS),
        "stream_options": {STREAM_INCLUDE_USAGE_FIELD: True},
    }

    zai = options.zai
    max_tokens = zai.max_tokens if zai is not None and zai.max_tokens is not None else None
    if max_tokens is None:
        max_tokens = options.max_tokens
    if max_tokens is not None:
        params["max_tokens"] = max_tokens

    if options.temperature is not None:
        params["temperature"] = options.temperature
    if context.tools is not None:
        params["tools"] = convert_tools(context.tools)
    if options.tool_choice is not None:
        params["tool_choice"] = options.tool_choice.to_json()

    if zai is not None:
        for name in _OPTIONAL_ZAI_FIELDS:
            value = getattr(zai, name)
            if value is not None:
                params[name] = copy.deepcopy(value)

    has_explicit_thinking = zai is not None and zai.thinking is not None
    if model.reasoning and not has_explicit_thinking:
        params["thinking"] = {"type": "enabled"}

    return params


def map_zai_stop_reason(reason: str) -> StopReason:
    """Map a z.ai finish reason, treating its failure reasons as errors."""
    if reason in ("sensitive", "network_error"):
        return StopReason.ERROR
    return map_stop_reason(reason)


def process_chunk(chunk: StreamChunk, assembler: StreamAssembler) -> None:
    """Apply one stream chunk, letting tool-call continuations go first."""
    prelude = assembler.prepare_chunk(chunk, map_zai_stop_reason)
    if prelude is None:
        return

    delta = prelude.delta
    if delta.content is not None:
        assembler.handle_text_delta(delta.content)

    reasoning = extract_reasoning(delta)
    if reasoning is not None:
        assembler.handle_reasoning_delta(reasoning)

    assembler.apply_deferred_tool_calls(prelude)


_background_tasks: set[asyncio.Task[None]] = set()


def stream_zai_completions(
    model: Model,
    context: Context,
    options: Optional[OpenAICompletionsOptions] = None,
) -> AssistantMessageEventStream:
    """Start streaming a z.ai completion and return the stream of its events.

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
    output = initialize_output(Api.ZAI_COMPLETIONS, model.provider, model.id)
    try:
        request = OpenAiLikeRequest(
            provider=model.provider,
            base_url=model.base_url,
            api_key=options.api_key,
            model_headers=model.headers,
            request_headers=options.headers,
            params=build_params(model, context, options),
        )
        await run_openai_like_stream(request, output, sender, process_chunk)
    except Exception as error:  # every failure is reported on the stream
        push_stream_error(output, sender, error)