"""Built-in model catalog for MiniMax and z.ai GLM models."""

from __future__ import annotations

from alchemy_llm.types import Api, InputType, KnownProvider, Model, ModelCost

MINIMAX_GLOBAL_BASE_URL = "https://api.minimax.io/v1/chat/completions"
MINIMAX_CN_BASE_URL = "https://api.minimax.chat/v1/chat/completions"
MINIMAX_CONTEXT_WINDOW = 204_800
MINIMAX_MAX_OUTPUT_TOKENS = 16_384

ZAI_BASE_URL = "https://api.z.ai/api/paas/v4/chat/completions"
LARGE_CONTEXT_WINDOW = 200_000
LARGE_MAX_OUTPUT_TOKENS = 128_000
STANDARD_CONTEXT_WINDOW = 128_000
STANDARD_MAX_OUTPUT_TOKENS = 96_000
GLM_4_32B_0414_128K_MAX_OUTPUT_TOKENS = 16_000

_ZERO_MODEL_COST = ModelCost()


def _minimax(model_id: str, name: str, provider: KnownProvider, base_url: str) -> Model:
    return Model(
        id=model_id,
        name=name,
        api=Api.MINIMAX_COMPLETIONS,
        provider=provider,
        base_url=base_url,
        reasoning=True,
        input=[InputType.TEXT],
        cost=_ZERO_MODEL_COST,
        context_window=MINIMAX_CONTEXT_WINDOW,
        max_tokens=MINIMAX_MAX_OUTPUT_TOKENS,
    )


def _glm(model_id: str, name: str, context_window: int, max_tokens: int) -> Model:
    return Model(
        id=model_id,
        name=name,
        api=Api.ZAI_COMPLETIONS,
        provider=KnownProvider.ZAI,
        base_url=ZAI_BASE_URL,
        reasoning=True,
        input=[InputType.TEXT],
        cost=_ZERO_MODEL_COST,
        context_window=context_window,
        max_tokens=max_tokens,
    )


def minimax_m2_5() -> Model:
    return _minimax("MiniMax-M2.5", "MiniMax M2.5", KnownProvider.MINIMAX, MINIMAX_GLOBAL_BASE_URL)


def minimax_m2_5_highspeed() -> Model:
    return _minimax(
        "MiniMax-M2.5-highspeed",
        "MiniMax M2.5 Highspeed",
        KnownProvider.MINIMAX,
        MINIMAX_GLOBAL_BASE_URL,
    )


def minimax_m2_1() -> Model:
    return _minimax("MiniMax-M2.1", "MiniMax M2.1", KnownProvider.MINIMAX, MINIMAX_GLOBAL_BASE_URL)


def minimax_m2_1_highspeed() -> Model:
    return _minimax(
        "MiniMax-M2.1-highspeed",
        "MiniMax M2.1 Highspeed",
        KnownProvider.MINIMAX,
        MINIMAX_GLOBAL_BASE_URL,
    )


def minimax_m2() -> Model:
    return _minimax("MiniMax-M2", "MiniMax M2", KnownProvider.MINIMAX, MINIMAX_GLOBAL_BASE_URL)


def minimax_cn_m2_5() -> Model:
    return _minimax("MiniMax-M2.5", "MiniMax M2.5 (CN)", KnownProvider.MINIMAX_CN, MINIMAX_CN_BASE_URL)


def minimax_cn_m2_5_highspeed() -> Model:
    return _minimax(
        "MiniMax-M2.5-highspeed",
        "MiniMax M2.5 Highspeed (CN)",
        KnownProvider.MINIMAX_CN,
        MINIMAX_CN_BASE_URL,
    )


def minimax_cn_m2_1() -> Model:
    return _minimax("MiniMax-M2.1", "MiniMax M2.1 (CN)", KnownProvider.MINIMAX_CN, MINIMAX_CN_BASE_URL)


def minimax_cn_m2_1_highspeed() -> Model:
    return _minimax(
        "MiniMax-M2.1-highspeed",
        "MiniMax M2.1 Highspeed (CN)",
        KnownProvider.MINIMAX_CN,
        MINIMAX_CN_BASE_URL,
    )


def minimax_cn_m2() -> Model:
    return _minimax("MiniMax-M2", "MiniMax M2 (CN)", KnownProvider.MINIMAX_CN, MINIMAX_CN_BASE_URL)


def glm_5() -> Model:
    return _glm("glm-5", "GLM 5", LARGE_CONTEXT_WINDOW, LARGE_MAX_OUTPUT_TOKENS)


def glm_4_7() -> Model:
    return _glm("glm-4.7", "GLM 4.7", LARGE_CONTEXT_WINDOW, LARGE_MAX_OUTPUT_TOKENS)


def glm_4_7_flash() -> Model:
    return _glm("glm-4.7-flash", "GLM 4.7 Flash", LARGE_CONTEXT_WINDOW, LARGE_MAX_OUTPUT_TOKENS)


def glm_4_7_flashx() -> Model:
    return _glm("glm-4.7-flashx", "GLM 4.7 FlashX", LARGE_CONTEXT_WINDOW, LARGE_MAX_OUTPUT_TOKENS)


def glm_4_6() -> Model:
    return _glm("glm-4.6", "GLM 4.6", LARGE_CONTEXT_WINDOW, LARGE_MAX_OUTPUT_TOKENS)


def glm_4_5() -> Model:
    return _glm("glm-4.5", "GLM 4.5", STANDARD_CONTEXT_WINDOW, STANDARD_MAX_OUTPUT_TOKENS)


def glm_4_5_air() -> Model:
    return _glm("glm-4.5-air", "GLM 4.5 Air", STANDARD_CONTEXT_WINDOW, STANDARD_MAX_OUTPUT_TOKENS)


def glm_4_5_x() -> Model:
    return _glm("glm-4.5-x", "GLM 4.5 X", STANDARD_CONTEXT_WINDOW, STANDARD_MAX_OUTPUT_TOKENS)


def glm_4_5_airx() -> Model:
    return _glm("glm-4.5-airx", "GLM 4.5 AirX", STANDARD_CONTEXT_WINDOW, STANDARD_MAX_OUTPUT_TOKENS)


def glm_4_5_flash() -> Model:
    return _glm("glm-4.5-flash", "GLM 4.5 Flash", STANDARD_CONTEXT_WINDOW, STANDARD_MAX_OUTPUT_TOKENS)


def glm_4_32b_0414_128k() -> Model:
    return _glm(
        "glm-4-32b-0414-128k",
        "GLM 4 32B 0414 128K",
        STANDARD_CONTEXT_WINDOW,
        GLM_4_32B_0414_128K_MAX_OUTPUT_TOKENS,
    )