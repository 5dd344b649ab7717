from __future__ import annotations
from typing import Any

class GitHubApiError(RuntimeError):
    def __init__(
        self,
        status: int,
        message: str,
        response_json: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(f"GitHub API error ({status}): {message}")
        self.status = status
        self.message = message
        self.response_json = response_json
        self.request_id = request_id


class GitHubAuthError(GitHubApiError):
    """401"""


class GitHubNotFoundError(GitHubApiError):
    """404"""


class GitHubRateLimitError(GitHubApiError):
    """429, or 403 with the rate limit exhausted"""

    def __init__(
        self,
        status: int,
        message: str,
        reset_epoch: int | None,
        response_json: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(status, message, response_json=response_json, request_id=request_id)
        self.reset_epoch = reset_epoch


class ProvisioningError(RuntimeError):
    """Base class for errors raised while provisioning a repository."""


class AccessDeniedError(ProvisioningError):
    """The repository could not be read with the given credential. Aborts the run."""

    def __init__(self, full_name: str, status: int, detail: str = ""):
        msg = f"Cannot access repository {full_name} (status {status})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.full_name = full_name
        self.status = status


class KeyFetchError(ProvisioningError):
    """The Actions public key was not returned. Ends the secrets phase only."""


class EncryptionUnavailableError(ProvisioningError):
    """No sealed-box implementation could be loaded."""
