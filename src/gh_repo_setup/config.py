from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .models import BranchPolicy, ProvisioningPlan, RepoSettings, SecretSpec

DEFAULT_BRANCHES: Tuple[Tuple[str, int], ...] = (
    ("main", 2),
    ("develop", 1),
    ("staging", 1),
)

# Dummy values only. They must be replaced in the repository settings before use.
DEFAULT_SECRETS: Tuple[Tuple[str, str], ...] = (
    ("GITHUB_TOKEN", "ghp_REPLACE_WITH_YOUR_GITHUB_TOKEN_12345678901234567890"),
    ("OPENAI_API_KEY", "sk-REPLACE_WITH_YOUR_OPENAI_API_KEY_1234567890abcdef"),
    ("AARINI_API_KEY", "aarini_REPLACE_WITH_YOUR_AARINI_API_KEY_1234567890"),
    ("SNYK_TOKEN", "snyk_REPLACE_WITH_YOUR_SNYK_TOKEN_1234567890abcdef"),
    ("CODECOV_TOKEN", "codecov_REPLACE_WITH_YOUR_CODECOV_TOKEN_1234567890"),
    ("SEMGREP_APP_TOKEN", "semgrep_REPLACE_WITH_YOUR_SEMGREP_TOKEN_1234567890"),
    ("SLACK_WEBHOOK", "https://hooks.slack.com/services/REPLACE/WITH/YOUR/WEBHOOK"),
)

_POLICY_FIELDS = (
    "required_approvals",
    "dismiss_stale_reviews",
    "enforce_admins",
    "allow_force_pushes",
    "allow_deletions",
)
_SETTINGS_FIELDS = tuple(RepoSettings().to_payload().keys())


def default_plan() -> ProvisioningPlan:
    return ProvisioningPlan(
        branches=tuple(BranchPolicy(branch=b, required_approvals=n) for b, n in DEFAULT_BRANCHES),
        settings=RepoSettings(),
        secrets=tuple(SecretSpec(name=k, value=v) for k, v in DEFAULT_SECRETS),
    )


def _bool(obj: Dict[str, Any], key: str, default: bool) -> bool:
    v = obj.get(key, default)
    if not isinstance(v, bool):
        raise ValueError(f"{key} must be true or false (got {v!r})")
    return v


def _parse_branches(raw: Any) -> Tuple[BranchPolicy, ...]:
    if not isinstance(raw, list):
        raise ValueError("branches must be a list")
    out: List[BranchPolicy] = []
    for item in raw:
        if isinstance(item, str):
            out.append(BranchPolicy(branch=item))
            continue
        if not isinstance(item, dict) or not item.get("name"):
            raise ValueError(f"branch entry needs a name: {item!r}")
        kwargs: Dict[str, Any] = {k: item[k] for k in _POLICY_FIELDS if k in item}
        approvals = kwargs.get("required_approvals", 1)
        if isinstance(approvals, bool) or not isinstance(approvals, int):
            raise ValueError(f"required_approvals must be an integer (got {approvals!r})")
        for k in _POLICY_FIELDS[1:]:
            if k in kwargs:
                kwargs[k] = _bool(item, k, True)
        out.append(BranchPolicy(branch=str(item["name"]), **kwargs))
    return tuple(out)


def _parse_settings(raw: Any) -> RepoSettings:
    if not isinstance(raw, dict):
        raise ValueError("repo_settings must be an object or null")
    defaults = RepoSettings().to_payload()
    return RepoSettings(**{k: _bool(raw, k, defaults[k]) for k in _SETTINGS_FIELDS})


def _parse_secrets(raw: Any) -> Tuple[SecretSpec, ...]:
    if isinstance(raw, dict):
        return tuple(SecretSpec(name=str(k), value=str(v)) for k, v in raw.items())
    if isinstance(raw, list):
        out: List[SecretSpec] = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("name") or "value" not in item:
                raise ValueError(f"secret entry needs name and value: {item!r}")
            out.append(SecretSpec(name=str(item["name"]), value=str(item["value"])))
        return tuple(out)
    raise ValueError("secrets must be an object or a list")


def plan_from_dict(cfg: Dict[str, Any]) -> ProvisioningPlan:
    """
    Keys missing from cfg fall back to default_plan(). repo_settings: null
    disables the settings step; secrets: {} provisions no secrets.
    """
    base = default_plan()
    branches = _parse_branches(cfg["branches"]) if "branches" in cfg else base.branches
    if "repo_settings" in cfg:
        settings = None if cfg["repo_settings"] is None else _parse_settings(cfg["repo_settings"])
    else:
        settings = base.settings
    secrets = _parse_secrets(cfg["secrets"]) if "secrets" in cfg else base.secrets
    return ProvisioningPlan(
        branches=branches,
        settings=settings,
        secrets=secrets,
        allow_placeholder_secrets=_bool(cfg, "allow_placeholder_secrets", False),
    )


def load_plan(path: str | Path) -> ProvisioningPlan:
    cfg = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(cfg, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return plan_from_dict(cfg)
