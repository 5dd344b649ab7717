from __future__ import annotations

import base64
import time
from typing import Any, Optional

import requests


def safe_json(resp: requests.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


def req_id(resp: requests.Response) -> Optional[str]:
    return resp.headers.get("X-GitHub-Request-Id")


def error_message(resp: requests.Response, payload: Any) -> str:
    if isinstance(payload, dict) and "message" in payload:
        return str(payload.get("message", ""))
    return resp.text[:200]


def is_rate_limited(resp: requests.Response) -> bool:
    remaining = resp.headers.get("X-RateLimit-Remaining")
    if remaining is not None and remaining.isdigit() and int(remaining) == 0:
        return True

    payload = safe_json(resp)
    if isinstance(payload, dict):
        msg = str(payload.get("message", "")).lower()
        if "rate limit" in msg:
            return True
    return False


def try_get_rate_limit_reset(resp: requests.Response) -> Optional[int]:
    reset = resp.headers.get("X-RateLimit-Reset")
    if reset and reset.isdigit():
        return int(reset)
    return None


def sleep_backoff(attempt: int, base_s: float, max_s: float) -> None:
    sleep_s = min(max_s, base_s * (2 ** attempt))
    if sleep_s > 0:
        time.sleep(sleep_s)


def b64(content: str | bytes) -> str:
    """Base64 text for UTF-8 strings or raw bytes."""
    if isinstance(content, bytes):
        data = content
    else:
        data = content.encode("utf-8")
    return base64.b64encode(data).decode("ascii")
