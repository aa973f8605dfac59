"""Streaming client for OpenAI-compatible and z.ai chat completion APIs, with a model catalogue."""

__version__ = "0.1.7"