from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from .exceptions import AccessDeniedError
from .models import OperationResult, RepoSettings, RepositoryRef
from .rest import GitHubRestClient

log = logging.getLogger(__name__)


@dataclass
class RepoSettingsClient:
    gh: GitHubRestClient

    def check_access(self, ref: RepositoryRef) -> Dict[str, Any]:
        """GET /repos/{owner}/{repo}; anything but 200 raises AccessDeniedError."""
        res = self.gh.call("GET", ref.path)
        if res.status != 200:
            raise AccessDeniedError(ref.full_name, res.status, res.error or "")
        return res.body if isinstance(res.body, dict) else {}

    def apply_settings(
        self,
        ref: RepositoryRef,
        settings: RepoSettings,
        *,
        dry_run: bool = False,
    ) -> OperationResult:
        """
        PATCH /repos/{owner}/{repo}

        Partial update: fields not in the payload keep their remote values.
        """
        payload = settings.to_payload()
        if dry_run:
            log.info("dry-run: would PATCH repo settings %s payload=%s", ref.full_name, payload)
            return OperationResult("repo_settings", ref.full_name, "skipped", "dry-run: would apply settings")

        res = self.gh.call("PATCH", ref.path, json_body=payload)
        if res.status == 200:
            log.info("Repo settings updated: %s", ref.full_name)
            return OperationResult("repo_settings", ref.full_name, "succeeded", "merge settings applied")

        log.warning("Could not update repo settings for %s: %s", ref.full_name, res.describe())
        return OperationResult("repo_settings", ref.full_name, "failed", res.describe())
