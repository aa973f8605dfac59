"""Assembly of streamed OpenAI-style chunks into assistant content blocks."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from alchemy_llm.errors import InvalidJsonError
from alchemy_llm.types import (
    AssistantMessage,
    AssistantMessageEvent,
    AssistantMessageEventStream,
    Cost,
    EventType,
    StopReason,
    TextContent,
    ThinkingContent,
    ToolCall,
    Usage,
)

REASONING_CONTENT_FIELD = "reasoning_content"
REASONING_FIELD = "reasoning"
REASONING_TEXT_FIELD = "reasoning_text"


@dataclass(frozen=True)
class ReasoningDelta:
    """A piece of reasoning text and the field it arrived in."""

    text: str
    signature: str


@dataclass(frozen=True)
class FunctionDelta:
    name: Optional[str] = None
    arguments: Optional[str] = None


@dataclass(frozen=True)
class ToolCallDelta:
    id: Optional[str] = None
    function: Optional[FunctionDelta] = None


@dataclass(frozen=True)
class StreamUsage:
    """Token usage and cost as reported in a stream chunk."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: Optional[int] = None
    cache_read_input_tokens: Optional[int] = None
    cache_creation_input_tokens: Optional[int] = None
    cost: Optional[float] = None
    upstream_inference_prompt_cost: Optional[float] = None
    upstream_inference_completions_cost: Optional[float] = None
    upstream_inference_cost: Optional[float] = None
    cached_tokens: Optional[int] = None
    cache_write_tokens: Optional[int] = None
    has_cost_details: bool = False


@dataclass(frozen=True)
class StreamDelta:
    content: Optional[str] = None
    reasoning_content: Optional[str] = None
    reasoning: Optional[str] = None
    reasoning_text: Optional[str] = None
    tool_calls: Optional[list[ToolCallDelta]] = None


@dataclass(frozen=True)
class StreamChoice:
    delta: Optional[StreamDelta] = None
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class StreamChunk:
    choices: list[StreamChoice] = field(default_factory=list)
    usage: Optional[StreamUsage] = None


@dataclass
class TextBlock:
    text: str


@dataclass
class ThinkingBlock:
    thinking: str
    signature: str


@dataclass
class ToolCallBlock:
    id: str
    name: str
    partial_args: str = ""


Block = Union[TextBlock, ThinkingBlock, ToolCallBlock]


@dataclass(frozen=True)
class ChunkPrelude:
    """Result of the common first pass over a chunk."""

    delta: StreamDelta
    tool_calls: Optional[list[ToolCallDelta]]
    prioritize_tool_calls: bool


# --- parsing -----------------------------------------------------------------


def _object(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise InvalidJsonError(f"{what}: expected an object")
    return value


def _optional_object(data: Mapping[str, Any], key: str) -> Optional[Mapping[str, Any]]:
    value = data.get(key)
    if value is None:
        return None
    return _object(value, key)


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidJsonError(f"{key}: expected a string")
    return value


def _optional_int(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidJsonError(f"{key}: expected a non-negative integer")
    return value


def _required_int(data: Mapping[str, Any], key: str) -> int:
    value = _optional_int(data, key)
    if value is None:
        raise InvalidJsonError(f"missing field `{key}`")
    return value


def _optional_float(data: Mapping[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidJsonError(f"{key}: expected a number")
    return float(value)


def parse_usage(data: Any) -> StreamUsage:
    """Parse a usage object; raises InvalidJsonError on a malformed one."""
    data = _object(data, "usage")
    cost_details = _optional_object(data, "cost_details")
    prompt_details = _optional_object(data, "prompt_tokens_details")
    completion_details = _optional_object(data, "completion_tokens_details")
    if completion_details is not None:
        _optional_int(completion_details, "reasoning_tokens")

    details: Mapping[str, Any] = cost_details or {}
    prompt: Mapping[str, Any] = prompt_details or {}
    return StreamUsage(
        prompt_tokens=_required_int(data, "prompt_tokens"),
        completion_tokens=_required_int(data, "completion_tokens"),
        total_tokens=_optional_int(data, "total_tokens"),
        cache_read_input_tokens=_optional_int(data, "cache_read_input_tokens"),
        cache_creation_input_tokens=_optional_int(data, "cache_creation_input_tokens"),
        cost=_optional_float(data, "cost"),
        upstream_inference_prompt_cost=_optional_float(details, "upstream_inference_prompt_cost"),
        upstream_inference_completions_cost=_optional_float(
            details, "upstream_inference_completions_cost"
        ),
        upstream_inference_cost=_optional_float(details, "upstream_inference_cost"),
        cached_tokens=_optional_int(prompt, "cached_tokens"),
        cache_write_tokens=_optional_int(prompt, "cache_write_tokens"),
        has_cost_details=cost_details is not None,
    )


def _parse_tool_call(data: Any) -> ToolCallDelta:
    data = _object(data, "tool_call")
    function = _optional_object(data, "function")
    return ToolCallDelta(
        id=_optional_str(data, "id"),
        function=None
        if function is None
        else FunctionDelta(
            name=_optional_str(function, "name"),
            arguments=_optional_str(function, "arguments"),
        ),
    )


def _parse_delta(data: Any) -> StreamDelta:
    data = _object(data, "delta")
    raw_calls = data.get("tool_calls")
    if raw_calls is not None and not isinstance(raw_calls, list):
        raise InvalidJsonError("tool_calls: expected an array")
    return StreamDelta(
        content=_optional_str(data, "content"),
        reasoning_content=_optional_str(data, "reasoning_content"),
        reasoning=_optional_str(data, "reasoning"),
        reasoning_text=_optional_str(data, "reasoning_text"),
        tool_calls=None if raw_calls is None else [_parse_tool_call(c) for c in raw_calls],
    )


def _parse_choice(data: Any) -> StreamChoice:
    data = _object(data, "choice")
    delta = data.get("delta")
    return StreamChoice(
        delta=None if delta is None else _parse_delta(delta),
        finish_reason=_optional_str(data, "finish_reason"),
    )


def parse_chunk(data: Any) -> StreamChunk:
    """Parse one decoded stream chunk; raises InvalidJsonError on a malformed one."""
    data = _object(data, "chunk")
    choices = data.get("choices", [])
    if not isinstance(choices, list):
        raise InvalidJsonError("choices: expected an array")
    usage = data.get("usage")
    return StreamChunk(
        choices=[_parse_choice(choice) for choice in choices],
        usage=None if usage is None else parse_usage(usage),
    )


# --- chunk interpretation ----------------------------------------------------


def extract_reasoning(delta: StreamDelta) -> Optional[ReasoningDelta]:
    """Return the reasoning text of a delta, checking its fields in priority order."""
    if delta.reasoning_content is not None:
        return ReasoningDelta(delta.reasoning_content, REASONING_CONTENT_FIELD)
    if delta.reasoning is not None:
        return ReasoningDelta(delta.reasoning, REASONING_FIELD)
    if delta.reasoning_text is not None:
        return ReasoningDelta(delta.reasoning_text, REASONING_TEXT_FIELD)
    return None


def update_usage_from_chunk(usage: StreamUsage, output: AssistantMessage) -> None:
    """Replace the output's usage with the figures reported in a chunk."""
    cache_read = usage.cache_read_input_tokens
    if cache_read is None:
        cache_read = usage.cached_tokens
    cache_write = usage.cache_creation_input_tokens
    if cache_write is None:
        cache_write = usage.cache_write_tokens

    input_tokens = usage.prompt_tokens
    output_tokens = usage.completion_tokens
    total_tokens = usage.total_tokens
    if total_tokens is None:
        total_tokens = input_tokens + output_tokens

    cost_input = usage.upstream_inference_prompt_cost or 0.0
    cost_output = usage.upstream_inference_completions_cost or 0.0
    cost_cache_read = 0.0
    cost_cache_write = 0.0

    has_component_cost = usage.has_cost_details and (
        usage.upstream_inference_prompt_cost is not None
        or usage.upstream_inference_completions_cost is not None
    )

    if usage.upstream_inference_cost is not None:
        cost_total = usage.upstream_inference_cost
    elif usage.cost is not None:
        cost_total = usage.cost
    elif has_component_cost:
        cost_total = cost_input + cost_output + cost_cache_read + cost_cache_write
    else:
        cost_total = 0.0

    output.usage = Usage(
        input=input_tokens,
        output=output_tokens,
        cache_read=cache_read or 0,
        cache_write=cache_write or 0,
        total_tokens=total_tokens,
        cost=Cost(
            input=cost_input,
            output=cost_output,
            cache_read=cost_cache_read,
            cache_write=cost_cache_write,
            total=cost_total,
        ),
    )


def map_stop_reason(reason: str) -> StopReason:
    """Map an OpenAI finish reason to a stop reason."""
    if reason == "length":
        return StopReason.LENGTH
    if reason in ("function_call", "tool_calls"):
        return StopReason.TOOL_USE
    if reason == "content_filter":
        return StopReason.ERROR
    return StopReason.STOP


def _has_tool_call_identity(tool_call: ToolCallDelta) -> bool:
    if tool_call.id:
        return True
    return tool_call.function is not None and bool(tool_call.function.name)


@dataclass
class StreamAssembler:
    """Builds the assistant message from deltas and pushes events for each change."""

    output: AssistantMessage
    sender: AssistantMessageEventStream
    current_block: Optional[Block] = None

    def _emit(self, event_type: EventType, **fields: Any) -> None:
        self.sender.push(
            AssistantMessageEvent(type=event_type, partial=copy.deepcopy(self.output), **fields)
        )

    def _last_index(self) -> int:
        return max(len(self.output.content) - 1, 0)

    def handle_text_delta(self, content: str) -> None:
        """Append text, starting a new text block when another block is open."""
        if not content:
            return
        if isinstance(self.current_block, TextBlock):
            self.current_block.text += content
            self._emit(EventType.TEXT_DELTA, content_index=self._last_index(), delta=content)
            return

        self.finish_current_block()
        self.current_block = TextBlock(text=content)
        self.output.content.append(TextContent(text=""))
        index = len(self.output.content) - 1
        self._emit(EventType.TEXT_START, content_index=index)
        self._emit(EventType.TEXT_DELTA, content_index=index, delta=content)

    def handle_reasoning_delta(self, reasoning: ReasoningDelta) -> None:
        """Append reasoning, starting a new thinking block when another block is open."""
        if not reasoning.text:
            return
        if isinstance(self.current_block, ThinkingBlock):
            self.current_block.thinking += reasoning.text
            self._emit(
                EventType.THINKING_DELTA, content_index=self._last_index(), delta=reasoning.text
            )
            return

        self.finish_current_block()
        self.current_block = ThinkingBlock(thinking=reasoning.text, signature=reasoning.signature)
        self.output.content.append(ThinkingContent(thinking=""))
        index = len(self.output.content) - 1
        self._emit(EventType.THINKING_START, content_index=index)
        self._emit(EventType.THINKING_DELTA, content_index=index, delta=reasoning.text)

    def handle_tool_calls(self, tool_calls: list[ToolCallDelta]) -> None:
        """Apply tool-call deltas, opening a new call when a new identity appears."""
        for tool_call in tool_calls:
            if self._should_start_new_tool_call(tool_call):
                self._start_tool_call_block(tool_call)
            self._apply_tool_call_delta(tool_call)

    def _should_start_new_tool_call(self, tool_call: ToolCallDelta) -> bool:
        block = self.current_block
        if isinstance(block, ToolCallBlock):
            return bool(tool_call.id) and bool(block.id) and tool_call.id != block.id
        return _has_tool_call_identity(tool_call)

    def _start_tool_call_block(self, tool_call: ToolCallDelta) -> None:
        self.finish_current_block()
        call_id = tool_call.id or ""
        name = (tool_call.function.name if tool_call.function else None) or ""
        self.current_block = ToolCallBlock(id=call_id, name=name)
        self.output.content.append(ToolCall(id=call_id, name=name, arguments={}))
        self._emit(EventType.TOOL_CALL_START, content_index=len(self.output.content) - 1)

    def _apply_tool_call_delta(self, tool_call: ToolCallDelta) -> None:
        block = self.current_block
        if not isinstance(block, ToolCallBlock):
            return
        if tool_call.id is not None:
            block.id = tool_call.id
        function = tool_call.function
        if function is None:
            return
        if function.name is not None:
            block.name = function.name
        if function.arguments is not None:
            block.partial_args += function.arguments
            self._emit(
                EventType.TOOL_CALL_DELTA,
                content_index=len(self.output.content) - 1,
                delta=function.arguments,
            )

    def finish_current_block(self) -> None:
        """Close the open block, writing its final state into the output."""
        block, self.current_block = self.current_block, None
        if block is None:
            return

        index = self._last_index()
        target = self.output.content[index] if index < len(self.output.content) else None

        if isinstance(block, TextBlock):
            if isinstance(target, TextContent):
                target.text = block.text
            self._emit(EventType.TEXT_END, content_index=index, content=block.text)
        elif isinstance(block, ThinkingBlock):
            if isinstance(target, ThinkingContent):
                target.thinking = block.thinking
                target.thinking_signature = block.signature
            self._emit(EventType.THINKING_END, content_index=index, content=block.thinking)
        else:
            try:
                arguments = json.loads(block.partial_args)
            except ValueError:
                arguments = {}
            if isinstance(target, ToolCall):
                target.id = block.id
                target.name = block.name
                target.arguments = copy.deepcopy(arguments)
            self._emit(
                EventType.TOOL_CALL_END,
                content_index=index,
                tool_call=ToolCall(id=block.id, name=block.name, arguments=arguments),
            )

    def prepare_chunk(
        self,
        chunk: StreamChunk,
        map_stop_reason: Callable[[str], StopReason] = map_stop_reason,
    ) -> Optional[ChunkPrelude]:
        """Apply usage and finish reason, and tool-call continuations that must come first.

        Returns None when the chunk carries no delta to process.
        """
        if chunk.usage is not None:
            update_usage_from_chunk(chunk.usage, self.output)

        if not chunk.choices:
            return None
        choice = chunk.choices[0]

        if choice.finish_reason is not None:
            self.output.stop_reason = map_stop_reason(choice.finish_reason)

        delta = choice.delta
        if delta is None:
            return None

        tool_calls = delta.tool_calls
        prioritize = isinstance(self.current_block, ToolCallBlock) and tool_calls is not None
        if prioritize and tool_calls is not None:
            self.handle_tool_calls(tool_calls)

        return ChunkPrelude(delta=delta, tool_calls=tool_calls, prioritize_tool_calls=prioritize)

    def apply_deferred_tool_calls(self, prelude: ChunkPrelude) -> None:
        """Apply tool calls that were not already handled by prepare_chunk."""
        if prelude.prioritize_tool_calls:
            return
        if prelude.tool_calls is not None:
            self.handle_tool_calls(prelude.tool_calls)