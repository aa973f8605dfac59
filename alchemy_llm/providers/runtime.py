"""Request and stream driver shared by OpenAI-compatible chat providers."""

from __future__ import annotations

import codecs
import copy
import json
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

import httpx

from alchemy_llm.errors import ApiError, InvalidJsonError, NoApiKeyError, RequestError
from alchemy_llm.providers.http import build_headers, unix_timestamp_millis
from alchemy_llm.providers.stream_blocks import StreamAssembler, StreamChunk, parse_chunk
from alchemy_llm.types import (
    Api,
    AssistantMessage,
    AssistantMessageEvent,
    AssistantMessageEventStream,
    EventType,
    Provider,
    StopReason,
    StopReasonError,
    StopReasonSuccess,
    Usage,
    provider_name,
)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"

_DONE = object()

ChunkHandler = Callable[[StreamChunk, StreamAssembler], None]
FinishHandler = Callable[[StreamAssembler], None]


@dataclass(frozen=True, kw_only=True)
class OpenAiLikeRequest:
    """Everything needed to send one streaming chat request."""

    provider: Provider
    base_url: str
    api_key: Optional[str]
    model_headers: Optional[Mapping[str, str]] = None
    request_headers: Optional[Mapping[str, str]] = None
    params: Mapping[str, Any]


def require_api_key(api_key: Optional[str], provider: Provider) -> str:
    """Return the API key, or raise NoApiKeyError naming the provider."""
    if api_key is None:
        raise NoApiKeyError(provider_name(provider))
    return api_key


def initialize_output(api: Api, provider: Provider, model: str) -> AssistantMessage:
    """Create the empty assistant message a stream builds into."""
    return AssistantMessage(
        api=api,
        provider=provider,
        model=model,
        content=[],
        usage=Usage(),
        stop_reason=StopReason.STOP,
        error_message=None,
        timestamp=unix_timestamp_millis(),
    )


def push_stream_error(
    output: AssistantMessage, sender: AssistantMessageEventStream, error: BaseException
) -> None:
    """Mark the output as failed and push the terminal error event."""
    output.stop_reason = StopReason.ERROR
    output.error_message = str(error)
    sender.push(
        AssistantMessageEvent(
            type=EventType.ERROR,
            reason=StopReasonError.ERROR,
            error=copy.deepcopy(output),
        )
    )


def push_stream_done(output: AssistantMessage, sender: AssistantMessageEventStream) -> None:
    """Push the terminal done event carrying the finished message."""
    sender.push(
        AssistantMessageEvent(
            type=EventType.DONE,
            reason=done_reason_from_stop_reason(output.stop_reason),
            message=copy.deepcopy(output),
        )
    )


def done_reason_from_stop_reason(stop_reason: StopReason) -> StopReasonSuccess:
    """Map a stop reason to the reason reported with a done event."""
    if stop_reason is StopReason.LENGTH:
        return StopReasonSuccess.LENGTH
    if stop_reason is StopReason.TOOL_USE:
        return StopReasonSuccess.TOOL_USE
    return StopReasonSuccess.STOP


def _sse_payload(line: str) -> Optional[object]:
    line = line.strip()
    if not line or line.startswith(":") or not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    return _DONE if data == DONE_MARKER else data


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield the data payloads of server-sent event lines up to the done marker."""
    for line in lines:
        payload = _sse_payload(line)
        if payload is _DONE:
            return
        if payload is not None:
            yield str(payload)


def _decode_chunk(payload: str) -> Optional[StreamChunk]:
    try:
        return parse_chunk(json.loads(payload))
    except (ValueError, InvalidJsonError):
        return None


async def send_streaming_request(
    client: httpx.AsyncClient, base_url: str, params: Mapping[str, Any]
) -> httpx.Response:
    """POST the params and return the open streaming response.

    Raises ApiError with the response body when the status is not a success.
    """
    try:
        response = await client.send(
            client.build_request("POST", base_url, json=dict(params)), stream=True
        )
    except httpx.HTTPError as exc:
        raise RequestError(str(exc)) from exc

    if response.is_success:
        return response

    try:
        body = (await response.aread()).decode("utf-8", errors="replace")
    except httpx.HTTPError:
        body = ""
    finally:
        await response.aclose()
    raise ApiError(response.status_code, body)


async def process_sse_stream(
    response: httpx.Response, on_chunk: Callable[[StreamChunk], None]
) -> None:
    """Feed each well-formed chunk of an event stream to on_chunk until done.

    Lines that are not valid chunks are skipped.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    try:
        async for raw in response.aiter_bytes():
            buffer += decoder.decode(raw)
            *lines, buffer = buffer.split("\n")
            for line in lines:
                payload = _sse_payload(line)
                if payload is _DONE:
                    return
                if payload is None:
                    continue
                chunk = _decode_chunk(str(payload))
                if chunk is not None:
                    on_chunk(chunk)
    except httpx.HTTPError as exc:
        raise RequestError(str(exc)) from exc


async def run_openai_like_stream(
    request: OpenAiLikeRequest,
    output: AssistantMessage,
    sender: AssistantMessageEventStream,
    process_chunk: ChunkHandler,
    before_finish: Optional[FinishHandler] = None,
) -> None:
    """Send the request and assemble the streamed reply into output, pushing events."""
    api_key = require_api_key(request.api_key, request.provider)
    headers = build_headers(api_key, request.model_headers, request.request_headers)
    assembler = StreamAssembler(output=output, sender=sender)

    async with httpx.AsyncClient(headers=headers, timeout=None) as client:
        response = await send_streaming_request(client, request.base_url, request.params)
        try:
            sender.push(AssistantMessageEvent(type=EventType.START, partial=copy.deepcopy(output)))
            await process_sse_stream(response, lambda chunk: process_chunk(chunk, assembler))
        finally:
            await response.aclose()

    if before_finish is not None:
        before_finish(assembler)
    assembler.finish_current_block()
    push_stream_done(output, sender)