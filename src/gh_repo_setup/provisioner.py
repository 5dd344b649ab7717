from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from .actions_secrets import SecretProvisioner
from .branch_protection import BranchProtectionClient
from .exceptions import KeyFetchError
from .models import OperationResult, ProvisioningPlan, RepositoryRef, RunReport
from .repo_settings import RepoSettingsClient
from .rest import GitHubRestClient

log = logging.getLogger(__name__)

Mapper = Callable[..., Iterable[OperationResult]]


def _has_duplicates(names: Sequence[str]) -> bool:
    return len(set(names)) != len(names)


@dataclass
class Provisioner:
    """
    Applies a ProvisioningPlan to one repository:

      access check -> branch protection (declaration order) -> repo settings
      -> [verification] -> [public key -> secret upserts]

    Individual failures become OperationResults; only AccessDeniedError
    escapes run(). With max_workers > 1 branches and secrets fan out on a
    thread pool, results still come back in declaration order.
    """

    gh: GitHubRestClient
    plan: ProvisioningPlan
    max_workers: int = 1
    dry_run: bool = False
    verify: bool = False

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.branch_client = BranchProtectionClient(self.gh)
        self.settings_client = RepoSettingsClient(self.gh)

    def run(self, ref: RepositoryRef, *, setup_secrets: bool = True) -> RunReport:
        report = RunReport(ref=ref, dry_run=self.dry_run)

        log.info("Verifying repository access for %s", ref.full_name)
        self.settings_client.check_access(ref)
        log.info("Repository access verified")

        executor: Optional[ThreadPoolExecutor] = None
        if self.max_workers > 1:
            executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="provision")
        mapper: Mapper = executor.map if executor else map

        try:
            report.results.extend(self._protect_branches(ref, mapper))

            if self.plan.settings is not None:
                log.info("Configuring repository settings...")
                report.results.append(
                    self.settings_client.apply_settings(ref, self.plan.settings, dry_run=self.dry_run)
                )

            if self.verify and not self.dry_run:
                report.results.extend(self._verify_branches(ref, report.results))

            if setup_secrets:
                self._provision_secrets(ref, report, mapper)
            else:
                log.info("Skipping secrets setup (as requested)")
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        return report

    def _protect_branches(self, ref: RepositoryRef, mapper: Mapper) -> List[OperationResult]:
        if not self.plan.branches:
            log.info("No branch policies configured")
            return []
        if mapper is not map and _has_duplicates([p.branch for p in self.plan.branches]):
            # same-branch PUTs must land in declaration order
            log.warning("Duplicate branch policies; protecting sequentially")
            mapper = map
        log.info("Setting up branch protection for %d branches", len(self.plan.branches))
        results = list(
            mapper(
                lambda p: self.branch_client.apply_protection(ref, p, dry_run=self.dry_run),
                self.plan.branches,
            )
        )
        protected = sum(1 for r in results if r.succeeded)
        log.info("Protected %d/%d branches", protected, len(results))
        return results

    def _verify_branches(self, ref: RepositoryRef, results: Sequence[OperationResult]) -> List[OperationResult]:
        protected = {r.target for r in results if r.kind == "branch_protection" and r.succeeded}
        # last declared policy per branch is the one left on the remote
        latest = {p.branch: p for p in self.plan.branches}
        policies = [p for b, p in latest.items() if b in protected]
        if not policies:
            return []
        log.info("Testing branch protection...")
        return [self.branch_client.verify_protection(ref, p) for p in policies]

    def _provision_secrets(self, ref: RepositoryRef, report: RunReport, mapper: Mapper) -> None:
        specs = list(self.plan.secrets)
        if not specs:
            log.info("No secrets configured")
            return

        if mapper is not map and _has_duplicates([s.name for s in specs]):
            # same-name upserts must land in declaration order
            log.warning("Duplicate secret names; upserting sequentially")
            mapper = map

        log.info("Setting up %d repository secrets", len(specs))
        secrets = SecretProvisioner(self.gh, allow_placeholder=self.plan.allow_placeholder_secrets)
        try:
            results = secrets.run(ref, specs, dry_run=self.dry_run, map_fn=mapper)
        except KeyFetchError as e:
            log.error("%s", e)
            log.warning("Secrets must be set manually at: %s/settings/secrets/actions", ref.html_url)
            report.phase_errors["secrets"] = str(e)
            return

        report.results.extend(results)
        created = sum(1 for r in results if r.succeeded)
        log.info("Secrets creation summary: %d/%d created", created, len(results))
