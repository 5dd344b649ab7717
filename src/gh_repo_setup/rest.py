from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .exceptions import GitHubApiError, GitHubAuthError, GitHubNotFoundError, GitHubRateLimitError
from .models import RemoteResult
from .utils import (
    error_message,
    is_rate_limited,
    req_id,
    safe_json,
    sleep_backoff,
    try_get_rate_limit_reset,
)

@dataclass
class GitHubRestClient:
    token: str
    base_url: str = "https://api.github.com"
    api_version: str = "2022-11-28"
    timeout_s: float = 30

    # Retry controls
    max_retries: int = 4
    backoff_base_s: float = 0.8
    max_backoff_s: float = 10.0

    user_agent: str = "gh-repo-setup/1.0"

    def __post_init__(self) -> None:
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": self.api_version,
            "User-Agent": self.user_agent,
        })

    def _build_url(self, path: str) -> str:
        return self.base_url.rstrip("/") + path

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = self._build_url(path)
        last_err: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                resp = self.session.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    json=json_body,
                    timeout=self.timeout_s,
                )

                if resp.status_code == 429:
                    reset = try_get_rate_limit_reset(resp)
                    raise GitHubRateLimitError(
                        resp.status_code,
                        "Rate limit hit (429).",
                        reset_epoch=reset,
                        response_json=safe_json(resp),
                        request_id=req_id(resp),
                    )

                if resp.status_code == 403 and is_rate_limited(resp):
                    reset = try_get_rate_limit_reset(resp)
                    raise GitHubRateLimitError(
                        resp.status_code,
                        "Rate limit exceeded (403).",
                        reset_epoch=reset,
                        response_json=safe_json(resp),
                        request_id=req_id(resp),
                    )

                if resp.status_code >= 400:
                    self._raise_for_status(resp)

                return resp

            except GitHubRateLimitError as e:
                # Only wait out short resets
                if e.reset_epoch is not None and attempt < self.max_retries:
                    sleep_s = max(0, e.reset_epoch - int(time.time()))
                    if sleep_s <= 15:
                        time.sleep(sleep_s + 1)
                        continue
                raise

            except (requests.Timeout, requests.ConnectionError) as e:
                last_err = e
                if attempt >= self.max_retries:
                    raise
                sleep_backoff(attempt, self.backoff_base_s, self.max_backoff_s)
                continue

            except GitHubApiError as e:
                last_err = e
                if e.status in (500, 502, 503, 504) and attempt < self.max_retries:
                    sleep_backoff(attempt, self.backoff_base_s, self.max_backoff_s)
                    continue
                raise

        if last_err:
            raise last_err
        raise RuntimeError("Unexpected request() control flow.")

    def call(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> RemoteResult:
        """
        Like request(), but never raises for HTTP or transport failures.
        Transport failures (timeouts, refused connections) come back with status 0.
        """
        try:
            resp = self.request(method, path, params=params, json_body=json_body)
        except GitHubApiError as e:
            return RemoteResult(
                status=e.status,
                body=e.response_json,
                request_id=e.request_id,
                error=e.message,
            )
        except requests.RequestException as e:
            return RemoteResult(status=0, error=f"{type(e).__name__}: {e}")
        return RemoteResult(status=resp.status_code, body=safe_json(resp), request_id=req_id(resp))

    def close(self) -> None:
        self.session.close()

    def _raise_for_status(self, resp: requests.Response) -> None:
        payload = safe_json(resp)
        msg = error_message(resp, payload)
        request_id = req_id(resp)

        if resp.status_code == 401:
            raise GitHubAuthError(resp.status_code, msg or "Unauthorized", response_json=payload, request_id=request_id)
        if resp.status_code == 404:
            raise GitHubNotFoundError(resp.status_code, msg or "Not Found", response_json=payload, request_id=request_id)

        raise GitHubApiError(resp.status_code, msg or "Request failed", response_json=payload, request_id=request_id)
