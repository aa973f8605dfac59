import json

import httpx
import pytest
import respx

from alchemy_llm.errors import ApiError, NoApiKeyError, RequestError
from alchemy_llm.providers.runtime import (
    OpenAiLikeRequest,
    done_reason_from_stop_reason,
    initialize_output,
    iter_sse_data,
    process_sse_stream,
    push_stream_done,
    push_stream_error,
    require_api_key,
    run_openai_like_stream,
    send_streaming_request,
)
from alchemy_llm.types import (
    Api,
    AssistantMessage,
    AssistantMessageEventStream,
    EventType,
    KnownProvider,
    StopReason,
    StopReasonError,
    StopReasonSuccess,
    TextContent,
)

URL = "https://api.example.com/v1/chat/completions"


def make_output() -> AssistantMessage:
    return AssistantMessage(
        api=Api.OPENAI_COMPLETIONS, provider=KnownProvider.OPENAI, model="test-model"
    )


async def _split_sse_body():
    yield b'data: {"choices":[{"delta":{"content":"a'
    yield b'b"}}]}\n: comment\ndata: not json\n'
    yield b"data: [DONE]\n"
    yield b'data: {"choices":[{"delta":{"content":"ignored"}}]}\n'


def test_stop_reason_maps_to_done_reason():
    assert done_reason_from_stop_reason(StopReason.STOP) is StopReasonSuccess.STOP
    assert done_reason_from_stop_reason(StopReason.LENGTH) is StopReasonSuccess.LENGTH
    assert done_reason_from_stop_reason(StopReason.TOOL_USE) is StopReasonSuccess.TOOL_USE
    assert done_reason_from_stop_reason(StopReason.ERROR) is StopReasonSuccess.STOP


def test_require_api_key_returns_key_when_present():
    assert require_api_key("placeholder", KnownProvider.OPENAI) == "placeholder"


def test_require_api_key_errors_when_missing():
    with pytest.raises(NoApiKeyError) as info:
        require_api_key(None, KnownProvider.OPENAI)
    assert str(info.value) == "No API key provided for provider: openai"


def test_initialize_output_is_empty_and_timestamped():
    output = initialize_output(Api.ZAI_COMPLETIONS, KnownProvider.ZAI, "glm-4.7")
    assert output.api is Api.ZAI_COMPLETIONS
    assert output.provider is KnownProvider.ZAI
    assert output.model == "glm-4.7"
    assert output.content == []
    assert output.stop_reason is StopReason.STOP
    assert output.timestamp > 1_577_836_800_000


def test_iter_sse_data_skips_comments_and_stops_at_done():
    lines = [
        ": keep-alive",
        "",
        "event: message",
        'data: {"a":1}',
        "  data: x  ",
        "data: [DONE]",
        "data: later",
    ]
    assert list(iter_sse_data(lines)) == ['{"a":1}', "x"]


@pytest.mark.asyncio
async def test_push_stream_error_marks_output_and_ends_stream():
    sender = AssistantMessageEventStream()
    output = make_output()
    push_stream_error(output, sender, ApiError(500, "boom"))

    assert output.stop_reason is StopReason.ERROR
    assert output.error_message == "API returned error: 500 - boom"
    events = [event async for event in sender]
    assert [event.type for event in events] == [EventType.ERROR]
    assert events[0].reason is StopReasonError.ERROR
    assert events[0].error.error_message == "API returned error: 500 - boom"


@pytest.mark.asyncio
async def test_push_stream_done_reports_tool_use():
    sender = AssistantMessageEventStream()
    output = make_output()
    output.stop_reason = StopReason.TOOL_USE
    push_stream_done(output, sender)

    events = [event async for event in sender]
    assert len(events) == 1
    assert events[0].type is EventType.DONE
    assert events[0].reason is StopReasonSuccess.TOOL_USE
    assert events[0].message.model == "test-model"


@pytest.mark.asyncio
async def test_process_sse_stream_joins_split_chunks_and_stops_at_done():
    response = httpx.Response(200, content=_split_sse_body())
    received = []
    await process_sse_stream(response, received.append)
    await response.aclose()

    assert [chunk.choices[0].delta.content for chunk in received] == ["ab"]


@pytest.mark.asyncio
async def test_send_streaming_request_raises_api_error_with_body():
    with respx.mock() as router:
        router.post(URL).mock(return_value=httpx.Response(401, text="unauthorized"))
        async with httpx.AsyncClient() as client:
            with pytest.raises(ApiError) as info:
                await send_streaming_request(client, URL, {"model": "m"})
    assert info.value.status_code == 401
    assert info.value.message == "unauthorized"


@pytest.mark.asyncio
async def test_send_streaming_request_wraps_transport_errors():
    with respx.mock() as router:
        router.post(URL).mock(side_effect=httpx.ConnectError("refused"))
        async with httpx.AsyncClient() as client:
            with pytest.raises(RequestError) as info:
                await send_streaming_request(client, URL, {"model": "m"})
    assert "refused" in str(info.value)


@pytest.mark.asyncio
async def test_run_requires_api_key():
    request = OpenAiLikeRequest(
        provider=KnownProvider.OPENAI, base_url=URL, api_key=None, params={"model": "m"}
    )
    with pytest.raises(NoApiKeyError):
        await run_openai_like_stream(
            request, make_output(), AssistantMessageEventStream(), lambda c, a: None
        )


@pytest.mark.asyncio
async def test_run_assembles_text_and_pushes_events():
    sse = (
        'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n'
        'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n'
        "data: [DONE]\n\n"
    )
    request = OpenAiLikeRequest(
        provider=KnownProvider.OPENAI,
        base_url=URL,
        api_key="placeholder",
        model_headers={"X-Model": "one"},
        request_headers={"X-Extra": "two"},
        params={"model": "test-model", "stream": True},
    )
    sender = AssistantMessageEventStream()
    output = make_output()
    seen_before_finish = []

    def on_chunk(chunk, assembler):
        assembler.handle_text_delta(chunk.choices[0].delta.content)

    with respx.mock() as router:
        route = router.post(URL).mock(return_value=httpx.Response(200, text=sse))
        await run_openai_like_stream(
            request,
            output,
            sender,
            on_chunk,
            lambda assembler: seen_before_finish.append(type(assembler.current_block).__name__),
        )
        sent = route.calls.last.request

    assert sent.headers["authorization"] == "Bearer placeholder"
    assert sent.headers["x-model"] == "one"
    assert sent.headers["x-extra"] == "two"
    assert json.loads(sent.content) == {"model": "test-model", "stream": True}

    assert seen_before_finish == ["TextBlock"]
    assert output.content == [TextContent(text="Hello")]
    events = [event async for event in sender]
    assert [event.type for event in events] == [
        EventType.START,
        EventType.TEXT_START,
        EventType.TEXT_DELTA,
        EventType.TEXT_DELTA,
        EventType.TEXT_END,
        EventType.DONE,
    ]
    assert events[-1].message.content == [TextContent(text="Hello")]