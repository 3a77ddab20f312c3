"""Response error extraction for load test observability.

Parses Group Buying API error responses into human-readable messages.
Handles two response shapes:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}
- Domain errors (404/409/422/503): {"error": "msg", "code": "Name"} or
  {"error": {"field": ["msg"]}, "code": "ValidationError"}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a human-readable error message from an API error response.

    Returns a compact string suitable for Locust failure messages and log lines.
    """
    try:
        body = response.json()
    except ValueError:
        # Not JSON: return raw text, truncated
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if "detail" in body and isinstance(body["detail"], list):
        parts = []
        for err in body["detail"]:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            message = " | ".join(f"{k}: {v}" for k, v in error.items())
        else:
            message = str(error)
        code = body.get("code")
        return f"[{code}] {message}" if code else message

    return str(body)[:300]


def error_code(response: Response) -> str | None:
    """The ``code`` of a domain error response, if any."""
    try:
        return response.json().get("code")
    except (ValueError, AttributeError):
        return None
