"""HTTP header helpers and timestamps for providers."""

from __future__ import annotations

import re
import time
from typing import Mapping, MutableMapping, Optional

from alchemy_llm.errors import InvalidHeaderError

_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def _valid_header_value(value: str) -> bool:
    return all(ch == "\t" or (ord(ch) >= 32 and ord(ch) != 127) for ch in value)


def merge_headers(
    target: MutableMapping[str, str], source: Optional[Mapping[str, str]]
) -> None:
    """Merge headers into target under lower-case names, skipping invalid ones."""
    if not source:
        return
    for key, value in source.items():
        if _HEADER_NAME.match(key) and _valid_header_value(value):
            target[key.lower()] = value


def build_headers(
    api_key: str,
    model_headers: Optional[Mapping[str, str]] = None,
    extra_headers: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Build JSON request headers with bearer auth, then model and extra headers."""
    authorization = f"Bearer {api_key}"
    if not _valid_header_value(authorization):
        raise InvalidHeaderError("failed to parse header value")
    headers = {
        "content-type": "application/json",
        "authorization": authorization,
    }
    merge_headers(headers, model_headers)
    merge_headers(headers, extra_headers)
    return headers


def unix_timestamp_millis() -> int:
    """Return the current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000