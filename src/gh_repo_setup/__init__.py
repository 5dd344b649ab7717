from __future__ import annotations

from typing import Optional

from .auth import resolve_token
from .exceptions import (
    AccessDeniedError,
    EncryptionUnavailableError,
    GitHubApiError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    KeyFetchError,
    ProvisioningError,
)
from .models import (
    BranchPolicy,
    EncryptionKey,
    OperationResult,
    ProvisioningPlan,
    RepoSettings,
    RepositoryRef,
    RunReport,
    RunSummary,
    SecretSpec,
)
from .provisioner import Provisioner
from .rest import GitHubRestClient
from .summary import exit_code, summarize

def create_client(
    token: Optional[str] = None,
    *,
    base_url: str = "https://api.github.com",
    api_version: str = "2022-11-28",
    timeout_s: float = 30,
    hostname_for_gh: str = "github.com",
) -> GitHubRestClient:
    """
    Builds a client using:
      1) the given token
      2) env token (GITHUB_TOKEN or GH_TOKEN)
      3) gh auth token
    """
    resolved = resolve_token(token, hostname=hostname_for_gh)
    if not resolved:
        raise RuntimeError(
            "No GitHub token found. Pass one, set GITHUB_TOKEN/GH_TOKEN or authenticate with `gh auth login`."
        )
    return GitHubRestClient(token=resolved, base_url=base_url, api_version=api_version, timeout_s=timeout_s)

__all__ = [
    "AccessDeniedError",
    "BranchPolicy",
    "EncryptionKey",
    "EncryptionUnavailableError",
    "GitHubApiError",
    "GitHubAuthError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubRestClient",
    "KeyFetchError",
    "OperationResult",
    "ProvisioningError",
    "ProvisioningPlan",
    "Provisioner",
    "RepoSettings",
    "RepositoryRef",
    "RunReport",
    "RunSummary",
    "SecretSpec",
    "create_client",
    "exit_code",
    "summarize",
]
