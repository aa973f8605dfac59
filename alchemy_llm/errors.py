"""Exception hierarchy raised by the library."""

from __future__ import annotations


class AlchemyError(Exception):
    """Base class for every error the library raises."""


class NoApiKeyError(AlchemyError):
    """No API key was supplied for a provider."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"No API key provided for provider: {provider}")


class RequestError(AlchemyError):
    """The HTTP request itself failed."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"HTTP request failed: {detail}")


class ApiError(AlchemyError):
    """The API answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"API returned error: {status_code} - {message}")


class AbortedError(AlchemyError):
    """The stream was aborted."""

    def __init__(self) -> None:
        super().__init__("Stream aborted")


class InvalidResponseError(AlchemyError):
    """The response could not be understood."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid response: {detail}")


class InvalidHeaderError(AlchemyError):
    """A header name or value is not valid."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid header: {detail}")


class InvalidJsonError(AlchemyError):
    """A JSON document could not be parsed or produced."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid JSON: {detail}")


class ModelNotFoundError(AlchemyError):
    """No model with this id is known for the provider."""

    def __init__(self, provider: str, model_id: str) -> None:
        self.provider = provider
        self.model_id = model_id
        super().__init__(f"Model not found: provider={provider}, model_id={model_id}")


class UnknownProviderError(AlchemyError):
    """The provider is not known."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Unknown provider: {provider}")


class UnknownApiError(AlchemyError):
    """The API kind is not known."""

    def __init__(self, api: str) -> None:
        self.api = api
        super().__init__(f"Unknown API: {api}")


class ToolValidationFailedError(AlchemyError):
    """Tool call arguments did not pass validation."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Tool validation failed: {detail}")


class ToolNotFoundError(AlchemyError):
    """A tool call named a tool that does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool not found: {name}")


class ContextOverflowError(AlchemyError):
    """The model's context window was exceeded."""

    def __init__(self) -> None:
        super().__init__("Context overflow: model context window exceeded")