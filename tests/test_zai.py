import json

import httpx
import pytest
import respx

from alchemy_llm.providers.openai_completions import OpenAICompletionsOptions, ToolChoice
from alchemy_llm.providers.stream_blocks import StreamAssembler, parse_chunk
from alchemy_llm.providers.zai import (
    build_params,
    map_zai_stop_reason,
    process_chunk,
    stream_zai_completions,
)
from alchemy_llm.types import (
    Api,
    AssistantMessage,
    AssistantMessageEventStream,
    Context,
    EventType,
    InputType,
    KnownProvider,
    Model,
    ModelCost,
    StopReason,
    StopReasonError,
    StopReasonSuccess,
    TextContent,
    ThinkingContent,
    ToolCall,
    UserMessage,
    ZaiChatCompletionsOptions,
)

TEST_BASE_URL = "https://api.z.ai/api/paas/v4/chat/completions"


def make_model(reasoning: bool) -> Model:
    return Model(
        id="glm-4.7",
        name="GLM 4.7",
        api=Api.ZAI_COMPLETIONS,
        provider=KnownProvider.ZAI,
        base_url=TEST_BASE_URL,
        reasoning=reasoning,
        input=[InputType.TEXT],
        cost=ModelCost(),
        context_window=200_000,
        max_tokens=128_000,
    )


def make_context() -> Context:
    return Context(
        system_prompt="You are concise",
        messages=[UserMessage(content="Hello", timestamp=0)],
    )


def make_output() -> AssistantMessage:
    return AssistantMessage(
        api=Api.ZAI_COMPLETIONS,
        provider=KnownProvider.ZAI,
        model="glm-4.7",
        timestamp=0,
    )


def populated_options() -> ZaiChatCompletionsOptions:
    return ZaiChatCompletionsOptions(
        do_sample=False,
        top_p=0.9,
        stop=["END"],
        tool_stream=True,
        request_id="req-1",
        user_id="user-1",
        response_format={"type": "json_object"},
        thinking={"type": "disabled"},
    )


def process_chunks(raw_chunks):
    assembler = StreamAssembler(output=make_output(), sender=AssistantMessageEventStream())
    for raw in raw_chunks:
        process_chunk(parse_chunk(raw), assembler)
    assembler.finish_current_block()
    return assembler.output


def tool_call_start_chunk(call_id):
    return {
        "choices": [
            {
                "delta": {
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {"name": "multiply", "arguments": '{"a": 15, "b": '},
                            "index": 0,
                        }
                    ]
                }
            }
        ]
    }


def tool_call_continuation(extra):
    delta = dict(extra)
    delta["tool_calls"] = [{"type": "function", "function": {"arguments": "3}"}, "index": 0}]
    return {"choices": [{"finish_reason": "tool_calls", "delta": delta}]}


def assert_multiply_tool_call(content, expected_id):
    assert isinstance(content, ToolCall)
    assert content.id == expected_id
    assert content.name == "multiply"
    assert content.arguments == {"a": 15, "b": 3}


def test_build_params_uses_zai_message_format_and_max_tokens_precedence():
    model = make_model(True)
    context = Context(
        messages=[
            AssistantMessage(
                api=Api.ZAI_COMPLETIONS,
                provider=KnownProvider.ZAI,
                model=model.id,
                content=[ThinkingContent("first reason"), TextContent("final answer")],
            )
        ]
    )
    options = OpenAICompletionsOptions(
        max_tokens=256, zai=ZaiChatCompletionsOptions(max_tokens=1024)
    )

    params = build_params(model, context, options)

    assert params["stream"] is True
    assert params["stream_options"]["include_usage"] is True
    assert params["max_tokens"] == 1024
    assert "max_completion_tokens" not in params
    assert params["messages"][0]["content"] == "final answer"
    assert params["messages"][0]["reasoning_content"] == "first reason"
    assert params["thinking"]["type"] == "enabled"


def test_build_params_serializes_optional_zai_fields_and_explicit_thinking():
    params = build_params(
        make_model(True), make_context(), OpenAICompletionsOptions(zai=populated_options())
    )

    assert params["do_sample"] is False
    assert params["top_p"] == 0.9
    assert params["stop"] == ["END"]
    assert params["tool_stream"] is True
    assert params["request_id"] == "req-1"
    assert params["user_id"] == "user-1"
    assert params["response_format"] == {"type": "json_object"}
    assert params["thinking"] == {"type": "disabled"}


def test_build_params_falls_back_to_option_max_tokens_and_skips_thinking_without_reasoning():
    params = build_params(
        make_model(False),
        make_context(),
        OpenAICompletionsOptions(max_tokens=256, temperature=0.5, tool_choice=ToolChoice.function("f")),
    )

    assert params["max_tokens"] == 256
    assert params["temperature"] == 0.5
    assert params["tool_choice"] == {"function": {"name": "f"}}
    assert "thinking" not in params
    assert params["messages"][0] == {"role": "system", "content": "You are concise"}
    assert params["messages"][1] == {"role": "user", "content": "Hello"}


def test_map_zai_stop_reason_overrides_sensitive_and_network_error():
    assert map_zai_stop_reason("sensitive") is StopReason.ERROR
    assert map_zai_stop_reason("network_error") is StopReason.ERROR
    assert map_zai_stop_reason("tool_calls") is StopReason.TOOL_USE
    assert map_zai_stop_reason("stop") is StopReason.STOP


def test_process_chunk_maps_usage_and_reasoning():
    output = process_chunks(
        [
            {
                "choices": [
                    {
                        "finish_reason": "stop",
                        "delta": {"reasoning_content": "step one", "content": "answer"},
                    }
                ],
                "usage": {"prompt_tokens": 9, "completion_tokens": 4, "total_tokens": 13},
            }
        ]
    )

    assert output.stop_reason is StopReason.STOP
    assert output.usage.total_tokens == 13
    assert len(output.content) == 2
    assert isinstance(output.content[0], TextContent)
    assert output.content[0].text == "answer"
    assert isinstance(output.content[1], ThinkingContent)
    assert output.content[1].thinking == "step one"
    assert output.content[1].thinking_signature == "reasoning_content"


def test_process_chunk_prioritizes_tool_call_continuations_before_content():
    output = process_chunks(
        [tool_call_start_chunk("call_function_1"), tool_call_continuation({"content": "tail"})]
    )

    assert output.stop_reason is StopReason.TOOL_USE
    assert len(output.content) == 2
    assert_multiply_tool_call(output.content[0], "call_function_1")
    assert isinstance(output.content[1], TextContent)
    assert output.content[1].text == "tail"


def test_process_chunk_prioritizes_tool_call_continuations_before_reasoning():
    output = process_chunks(
        [
            tool_call_start_chunk("call_function_2"),
            tool_call_continuation({"reasoning_content": "next step"}),
        ]
    )

    assert output.stop_reason is StopReason.TOOL_USE
    assert len(output.content) == 2
    assert_multiply_tool_call(output.content[0], "call_function_2")
    assert isinstance(output.content[1], ThinkingContent)
    assert output.content[1].thinking == "next step"
    assert output.content[1].thinking_signature == "reasoning_content"


def _sse(*payloads):
    lines = [f"data: {json.dumps(p)}\n\n" for p in payloads]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


@pytest.mark.asyncio
async def test_stream_zai_completions_final_message_shape():
    body = _sse(
        {"choices": [{"delta": {"reasoning_content": "reason"}}]},
        {"choices": [{"delta": {"content": "answer"}}]},
        {
            "choices": [{"finish_reason": "stop", "delta": {}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        },
    )

    with respx.mock:
        route = respx.post(TEST_BASE_URL).mock(return_value=httpx.Response(200, content=body))
        stream = stream_zai_completions(
            make_model(True), make_context(), OpenAICompletionsOptions(api_key="placeholder")
        )
        events = [event async for event in stream]

    assert events[0].type is EventType.START
    done = events[-1]
    assert done.type is EventType.DONE
    assert done.reason is StopReasonSuccess.STOP
    message = done.message
    assert message.api is Api.ZAI_COMPLETIONS
    assert message.provider is KnownProvider.ZAI
    assert message.model == "glm-4.7"
    assert message.stop_reason is StopReason.STOP
    assert message.usage.total_tokens == 15
    assert [type(c) for c in message.content] == [ThinkingContent, TextContent]
    assert message.content[1].text == "answer"

    request = route.calls.last.request
    assert request.url.path == "/api/paas/v4/chat/completions"
    assert request.headers["authorization"] == "Bearer placeholder"
    sent = json.loads(request.content)
    assert sent["thinking"] == {"type": "enabled"}
    assert sent["model"] == "glm-4.7"


@pytest.mark.asyncio
async def test_stream_zai_completions_reports_missing_api_key():
    stream = stream_zai_completions(make_model(True), make_context(), OpenAICompletionsOptions())
    events = [event async for event in stream]

    assert len(events) == 1
    assert events[0].type is EventType.ERROR
    assert events[0].reason is StopReasonError.ERROR
    assert events[0].error.stop_reason is StopReason.ERROR
    assert events[0].error.error_message == "No API key provided for provider: zai"