from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .types import OperationKind, Outcome


@dataclass(frozen=True)
class RemoteResult:
    """Status code plus parsed body of one API call. status == 0 means no response."""

    status: int
    body: Any = None
    request_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def describe(self) -> str:
        if self.status == 0:
            return self.error or "no response"
        if self.error:
            return f"HTTP {self.status}: {self.error}"
        return f"HTTP {self.status}"


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def path(self) -> str:
        return f"/repos/{self.owner}/{self.name}"

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"


@dataclass(frozen=True)
class BranchPolicy:
    branch: str
    required_approvals: int = 1
    dismiss_stale_reviews: bool = True
    enforce_admins: bool = True
    allow_force_pushes: bool = False
    allow_deletions: bool = False

    def __post_init__(self) -> None:
        if not self.branch:
            raise ValueError("branch name must not be empty")
        if self.required_approvals < 0:
            raise ValueError(f"required_approvals must be >= 0 (got {self.required_approvals})")


@dataclass(frozen=True)
class RepoSettings:
    allow_squash_merge: bool = True
    allow_merge_commit: bool = False
    allow_rebase_merge: bool = False
    delete_branch_on_merge: bool = True
    allow_auto_merge: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "allow_squash_merge": self.allow_squash_merge,
            "allow_merge_commit": self.allow_merge_commit,
            "allow_rebase_merge": self.allow_rebase_merge,
            "delete_branch_on_merge": self.delete_branch_on_merge,
            "allow_auto_merge": self.allow_auto_merge,
        }


@dataclass(frozen=True)
class SecretSpec:
    name: str
    value: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("secret name must not be empty")


@dataclass(frozen=True)
class EncryptionKey:
    key_id: str
    key: str = field(repr=False)


@dataclass(frozen=True)
class OperationResult:
    kind: OperationKind
    target: str
    outcome: Outcome
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome == "succeeded"


@dataclass(frozen=True)
class ProvisioningPlan:
    branches: Tuple[BranchPolicy, ...] = ()
    settings: Optional[RepoSettings] = None
    secrets: Tuple[SecretSpec, ...] = ()
    allow_placeholder_secrets: bool = False


@dataclass
class RunSummary:
    succeeded: int
    skipped: int
    failed: int
    details: List[OperationResult]


@dataclass
class RunReport:
    ref: RepositoryRef
    results: List[OperationResult] = field(default_factory=list)
    # phase name -> reason, for phases that ended without per-operation results
    phase_errors: Dict[str, str] = field(default_factory=dict)
    dry_run: bool = False

    def of_kind(self, kind: OperationKind) -> List[OperationResult]:
        return [r for r in self.results if r.kind == kind]
