from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

from .models import BranchPolicy, OperationResult, RepositoryRef
from .rest import GitHubRestClient

log = logging.getLogger(__name__)

PROTECTION_OK = (200, 201)


def branch_path(ref: RepositoryRef, branch: str) -> str:
    # git allows "#" and "?" in branch names
    return f"{ref.path}/branches/{quote(branch, safe='/')}"


def build_protection_payload(policy: BranchPolicy) -> Dict[str, Any]:
    """
    Full-replace body for PUT .../branches/{branch}/protection.

    Status checks and push restrictions are always null: CI-check gating and
    push allow-lists are not managed here.
    """
    return {
        "required_status_checks": None,
        "enforce_admins": policy.enforce_admins,
        "required_pull_request_reviews": {
            "required_approving_review_count": policy.required_approvals,
            "dismiss_stale_reviews": policy.dismiss_stale_reviews,
            "require_code_owner_reviews": False,
            "require_last_push_approval": False,
        },
        "restrictions": None,
        "allow_force_pushes": policy.allow_force_pushes,
        "allow_deletions": policy.allow_deletions,
        "block_creations": False,
        "required_conversation_resolution": False,
    }


@dataclass
class BranchProtectionClient:
    gh: GitHubRestClient

    def branch_exists(self, ref: RepositoryRef, branch: str) -> bool:
        # Absent and "could not tell" are both treated as absent.
        res = self.gh.call("GET", branch_path(ref, branch))
        if res.status != 200:
            log.debug("Branch %s@%s not confirmed: %s", ref.full_name, branch, res.describe())
            return False
        return True

    def get_protection(self, ref: RepositoryRef, branch: str) -> Optional[Dict[str, Any]]:
        res = self.gh.call("GET", f"{branch_path(ref, branch)}/protection")
        if res.status != 200 or not isinstance(res.body, dict):
            return None
        return res.body

    def apply_protection(
        self,
        ref: RepositoryRef,
        policy: BranchPolicy,
        *,
        dry_run: bool = False,
    ) -> OperationResult:
        branch = policy.branch
        if not self.branch_exists(ref, branch):
            log.warning("Skipping %s@%s (branch not found)", ref.full_name, branch)
            return OperationResult("branch_protection", branch, "skipped", "branch not found")

        payload = build_protection_payload(policy)
        if dry_run:
            log.info("dry-run: would PUT branch protection %s@%s payload=%s", ref.full_name, branch, payload)
            return OperationResult("branch_protection", branch, "skipped", "dry-run: would apply protection")

        log.info(
            "Protecting %s@%s (requires %d approvals)",
            ref.full_name,
            branch,
            policy.required_approvals,
        )
        res = self.gh.call("PUT", f"{branch_path(ref, branch)}/protection", json_body=payload)
        if res.status in PROTECTION_OK:
            log.info("Branch protection set: %s@%s", ref.full_name, branch)
            return OperationResult(
                "branch_protection",
                branch,
                "succeeded",
                f"requires {policy.required_approvals} approvals",
            )

        log.warning("Could not protect %s@%s: %s", ref.full_name, branch, res.describe())
        return OperationResult("branch_protection", branch, "failed", res.describe())

    def verify_protection(self, ref: RepositoryRef, policy: BranchPolicy) -> OperationResult:
        """Read the protection back and compare the approval count with the policy."""
        branch = policy.branch
        current = self.get_protection(ref, branch)
        if current is None:
            log.warning("%s@%s has no readable protection", ref.full_name, branch)
            return OperationResult("protection_verify", branch, "failed", "protection not readable")

        reviews = current.get("required_pull_request_reviews") or {}
        count = reviews.get("required_approving_review_count")
        if count != policy.required_approvals:
            return OperationResult(
                "protection_verify",
                branch,
                "failed",
                f"expected {policy.required_approvals} approvals, found {count}",
            )
        log.info("%s@%s is protected (requires %s approvals)", ref.full_name, branch, count)
        return OperationResult("protection_verify", branch, "succeeded", f"requires {count} approvals")
