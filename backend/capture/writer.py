"""History writer: serializes observed traffic into history entries."""

import json
from typing import Any, Mapping

# Never copied into saved request documentation
EXCLUDED_DOC_HEADERS = frozenset({"cookie", "authorization", "host", "connection", "content-length"})


def serialize_headers(headers: Mapping[str, str] | None) -> str:
    """Pretty JSON for a header mapping (``"{}"`` when there are none)."""
    return json.dumps(dict(headers or {}), indent=2)


def documentation_headers(headers: Mapping[str, str] | None) -> str:
    """Serialize live request headers for documentation, minus sensitive ones."""
    if headers is None:
        return "{}"
    return serialize_headers(
        {k: v for k, v in headers.items() if k.lower() not in EXCLUDED_DOC_HEADERS}
    )


def decode_body(data: bytes | None) -> str | None:
    """Raw body as text, or None when empty."""
    if not data:
        return None
    return data.decode("utf-8", errors="replace")


def documentation_body(body: str | None) -> str | None:
    """
    Pretty JSON for a live request body worth documenting.

    Returns None for empty, non-JSON, or trivial (``{}``/``null``) bodies.
    """
    if not body:
        return None
    try:
        parsed: Any = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return None
    if parsed is None or parsed == {}:
        return None
    return json.dumps(parsed, indent=2)


def build_history_entry(
    *,
    method: str,
    url: str,
    status: int,
    duration_ms: int,
    request_headers: Mapping[str, str] | None = None,
    request_body: str | None = None,
    response_headers: Mapping[str, str] | None = None,
    response_body: str | None = None,
) -> dict[str, Any]:
    """Assemble the payload passed to ``StorageProvider.add_to_history``."""
    return {
        "method": method,
        "url": url,
        "status": status,
        "duration": duration_ms,
        "request_headers": serialize_headers(request_headers),
        "request_body": request_body,
        "response_headers": serialize_headers(response_headers),
        "response_body": response_body,
    }
