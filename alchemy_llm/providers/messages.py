"""Conversion of contexts and tools into OpenAI-style chat request payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from alchemy_llm.types import (
    AssistantMessage,
    Context,
    ImageContent,
    InputType,
    Model,
    TextContent,
    ThinkingContent,
    Tool,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)

OPEN_THINK_TAG = "<think>"
CLOSE_THINK_TAG = "</think>"
ASSISTANT_CONTENT_PART_SEPARATOR = "\n"


class SystemPromptRole(Enum):
    """Role under which the system prompt is sent."""

    SYSTEM = "system"
    DEVELOPER = "developer"


class AssistantThinkingMode(Enum):
    """How earlier assistant thinking is replayed as content."""

    OMIT = "omit"
    PLAIN_TEXT = "plain_text"
    THINK_TAGS = "think_tags"


@dataclass(frozen=True)
class MessageOptions:
    """Switches that shape the converted message list."""

    system_role: SystemPromptRole = SystemPromptRole.SYSTEM
    requires_tool_result_name: bool = False
    assistant_thinking_mode: AssistantThinkingMode = AssistantThinkingMode.OMIT
    assistant_content_as_string: bool = False
    emit_reasoning_content_field: bool = False
    tool_call_arguments_as_object: bool = False


def openai_like_options(
    system_role: SystemPromptRole,
    requires_tool_result_name: bool,
    assistant_thinking_mode: AssistantThinkingMode,
) -> MessageOptions:
    """Options for a plain OpenAI-compatible endpoint."""
    return MessageOptions(
        system_role=system_role,
        requires_tool_result_name=requires_tool_result_name,
        assistant_thinking_mode=assistant_thinking_mode,
    )


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def convert_messages(
    model: Model, context: Context, options: MessageOptions
) -> list[dict[str, Any]]:
    """Convert a context into the list of chat messages for a request."""
    messages: list[dict[str, Any]] = []

    if context.system_prompt is not None:
        messages.append({"role": options.system_role.value, "content": context.system_prompt})

    for message in context.messages:
        if isinstance(message, UserMessage):
            messages.append(_convert_user_message(model, message))
        elif isinstance(message, AssistantMessage):
            converted = _convert_assistant_message(message, options)
            if converted is not None:
                messages.append(converted)
        elif isinstance(message, ToolResultMessage):
            messages.append(_convert_tool_result(message, options.requires_tool_result_name))

    return messages


def _convert_user_message(model: Model, user: UserMessage) -> dict[str, Any]:
    return {"role": "user", "content": _user_content(model, user.content)}


def _user_content(model: Model, content: Any) -> Any:
    if isinstance(content, str):
        return content

    accepts_images = InputType.IMAGE in model.input
    parts: list[dict[str, Any]] = []
    for block in content:
        if isinstance(block, TextContent):
            parts.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageContent) and accepts_images:
            parts.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{block.mime_type};base64,{block.to_base64()}"},
                }
            )
    return parts


def _convert_assistant_message(
    assistant: AssistantMessage, options: MessageOptions
) -> Optional[dict[str, Any]]:
    message: dict[str, Any] = {"role": "assistant"}

    content = _assistant_content_value(assistant, options)
    if content is not None:
        message["content"] = content

    if options.emit_reasoning_content_field:
        reasoning = _assistant_reasoning_content(assistant)
        if reasoning is not None:
            message["reasoning_content"] = reasoning

    tool_calls = _assistant_tool_calls(assistant, options.tool_call_arguments_as_object)
    if tool_calls:
        message["tool_calls"] = tool_calls

    if not any(key in message for key in ("content", "reasoning_content", "tool_calls")):
        return None
    return message


def _assistant_content_value(
    assistant: AssistantMessage, options: MessageOptions
) -> Optional[Any]:
    parts = list(_assistant_text_parts(assistant.content, options.assistant_thinking_mode))
    if not parts:
        return None
    if options.assistant_content_as_string:
        return ASSISTANT_CONTENT_PART_SEPARATOR.join(parts)
    return [{"type": "text", "text": text} for text in parts]


def _assistant_text_parts(
    content: Iterable[Any], mode: AssistantThinkingMode
) -> Iterable[str]:
    for item in content:
        if isinstance(item, TextContent) and item.text:
            yield item.text
        elif isinstance(item, ThinkingContent) and item.thinking:
            mapped = _map_thinking_content(item.thinking, mode)
            if mapped is not None:
                yield mapped


def _map_thinking_content(thinking: str, mode: AssistantThinkingMode) -> Optional[str]:
    if mode is AssistantThinkingMode.PLAIN_TEXT:
        return thinking
    if mode is AssistantThinkingMode.THINK_TAGS:
        return f"{OPEN_THINK_TAG}{thinking}{CLOSE_THINK_TAG}"
    return None


def _assistant_reasoning_content(assistant: AssistantMessage) -> Optional[str]:
    parts = [
        item.thinking
        for item in assistant.content
        if isinstance(item, ThinkingContent) and item.thinking
    ]
    if not parts:
        return None
    return ASSISTANT_CONTENT_PART_SEPARATOR.join(parts)


def _assistant_tool_calls(
    assistant: AssistantMessage, arguments_as_object: bool
) -> list[dict[str, Any]]:
    return [
        {
            "id": item.id,
            "type": "function",
            "function": {
                "name": item.name,
                "arguments": item.arguments if arguments_as_object else _compact_json(item.arguments),
            },
        }
        for item in assistant.content
        if isinstance(item, ToolCall)
    ]


def _convert_tool_result(
    result: ToolResultMessage, requires_tool_result_name: bool
) -> dict[str, Any]:
    text = "\n".join(item.text for item in result.content if isinstance(item, TextContent))
    message: dict[str, Any] = {
        "role": "tool",
        "tool_call_id": result.tool_call_id,
        "content": text,
    }
    if requires_tool_result_name:
        message["name"] = result.tool_name
    return message


def convert_tools(tools: Iterable[Tool]) -> list[dict[str, Any]]:
    """Convert tool definitions into function-tool entries."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
                "strict": False,
            },
        }
        for tool in tools
    ]