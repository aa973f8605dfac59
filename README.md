# alchemy-llm

An asyncio streaming client for OpenAI-compatible chat completion APIs and
the z.ai chat completions API. Replies arrive as a stream of typed events
that build up one `AssistantMessage`. The package also ships a catalogue of
model descriptions for z.ai GLM and MiniMax models.

## Installation

```
pip install alchemy-llm
```

The only runtime dependency is `httpx`.

## Models

`alchemy_llm.models` holds functions that each return a ready-made `Model`:

```python
from alchemy_llm.models import glm_4_7

model = glm_4_7()
print(model.id, model.context_window, model.max_tokens)
```

z.ai models (`Api.ZAI_COMPLETIONS`, provider `KnownProvider.ZAI`):
`glm_5`, `glm_4_7`, `glm_4_7_flash`, `glm_4_7_flashx` and `glm_4_6` have a
200,000-token context window and 128,000 output tokens; `glm_4_5`,
`glm_4_5_air`, `glm_4_5_x`, `glm_4_5_airx` and `glm_4_5_flash` have 128,000
and 96,000; `glm_4_32b_0414_128k` has 128,000 and 16,000.

MiniMax models (`Api.MINIMAX_COMPLETIONS`): `minimax_m2_5`,
`minimax_m2_5_highspeed`, `minimax_m2_1`, `minimax_m2_1_highspeed` and
`minimax_m2` use provider `KnownProvider.MINIMAX`; the `minimax_cn_*`
variants use `KnownProvider.MINIMAX_CN` and the China-region URL. All have a
204,800-token context window and 16,384 output tokens.

Every catalogue model has `reasoning=True`, text-only input and zero cost.
You can also build a `Model` yourself from `alchemy_llm.types`.

## Streaming

```python
import asyncio

from alchemy_llm.models import glm_4_7
from alchemy_llm.providers.openai_completions import OpenAICompletionsOptions
from alchemy_llm.providers.zai import stream_zai_completions
from alchemy_llm.types import Context, UserMessage


async def main():
    context = Context(
        system_prompt="You are concise",
        messages=[UserMessage(content="Hello")],
    )
    options = OpenAICompletionsOptions(api_key="placeholder")

    async for event in stream_zai_completions(glm_4_7(), context, options):
        print(event.type.value, event.delta or "")


asyncio.run(main())
```

Both `stream_zai_completions` and
`alchemy_llm.providers.openai_completions.stream_openai_completions` must be
called while an event loop is running. They start the request in a
background task and return an `AssistantMessageEventStream` at once.

`OpenAICompletionsOptions` takes `api_key`, `temperature`, `max_tokens`,
`tool_choice` (a `ToolChoice`, e.g. `ToolChoice.auto()` or
`ToolChoice.function("name")`), `reasoning_effort` (a `ReasoningEffort`),
extra `headers`, and `zai`, a `ZaiChatCompletionsOptions` with the z.ai-only
fields (`max_tokens`, `do_sample`, `top_p`, `stop`, `tool_stream`,
`request_id`, `user_id`, `response_format`, `thinking`). For z.ai, its
`max_tokens` wins over the general one, and reasoning models get
`thinking: {"type": "enabled"}` unless `thinking` is given.

### Compatibility settings

For `stream_openai_completions` the provider and base URL decide the
compatibility settings (`detect_compat`): Cerebras, xAI, Mistral and
chutes.ai endpoints get no `store` field and no developer role; Mistral and
chutes.ai use `max_tokens` instead of `max_completion_tokens`; xAI gets no
`reasoning_effort`; Mistral gets tool-result names and earlier thinking
replayed as plain text. Set `Model.compat` to an `OpenAICompletionsCompat`
to override any field (`resolve_compat`).

## Events

A stream yields `AssistantMessageEvent` values; `event.type` is an
`EventType`:

1. `start`
2. For each content block, one of:
   - `text_start`, one or more `text_delta`, `text_end`
   - `thinking_start`, one or more `thinking_delta`, `thinking_end`
   - `toolcall_start`, `toolcall_delta` events, `toolcall_end` (with the
     parsed `tool_call`)
3. `done`, whose `message` is the final `AssistantMessage` and whose
   `reason` is a `StopReasonSuccess`.

Usage and cost figures sit on the final message's `usage`.

Failures are not raised to the caller. The stream instead ends with an
`error` event whose `error` holds the partial message with `stop_reason`
set to `StopReason.ERROR` and `error_message` filled in. Failures include a
missing API key, a non-success HTTP status and a transport error.

## Errors

Every error the package raises derives from `alchemy_llm.errors.AlchemyError`,
for example `NoApiKeyError`, `RequestError`, `InvalidHeaderError`,
`InvalidJsonError` and `ApiError` (which carries `status_code` and
`message`).

## What the package does not do

- There is no streaming client for the MiniMax API; the MiniMax models are
  descriptions only.
- API keys are not read from the environment; pass `api_key` in the options.
- There is no one-call helper that waits for the final message; iterate the
  stream until the `done` or `error` event.
- There is no command-line program.