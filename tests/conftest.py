"""Shared test fixtures for gh_repo_setup."""

from __future__ import annotations

import copy
import json
import re
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

import pytest
import requests
from nacl.encoding import Base64Encoder
from nacl.public import PrivateKey

from gh_repo_setup.models import BranchPolicy, ProvisioningPlan, RepoSettings, RepositoryRef, SecretSpec
from gh_repo_setup.rest import GitHubRestClient

BASE_URL = "https://api.github.com"
OWNER = "acme"
REPO = "webapp"

_BRANCH_RE = re.compile(rf"^/repos/{OWNER}/{REPO}/branches/(.+)$")
_PROTECTION_RE = re.compile(rf"^/repos/{OWNER}/{REPO}/branches/(.+)/protection$")
_SECRET_RE = re.compile(rf"^/repos/{OWNER}/{REPO}/actions/secrets/([^/]+)$")


def make_response(status: int, body: Any = None, url: str = "") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = b"" if body is None else json.dumps(body).encode("utf-8")
    resp.headers["Content-Type"] = "application/json; charset=utf-8"
    resp.headers["X-GitHub-Request-Id"] = "ABCD:1234"
    resp.encoding = "utf-8"
    resp.url = url
    return resp


class FakeGitHub:
    """In-memory stand-in for the GitHub REST API, installed as a client's session."""

    def __init__(self, branches: Iterable[str] = ("main", "develop", "staging"), public_key: Optional[str] = None):
        self.branches = set(branches)
        self.protections: Dict[str, Dict[str, Any]] = {}
        self.settings: Dict[str, Any] = {
            "allow_squash_merge": True,
            "allow_merge_commit": True,
            "allow_rebase_merge": True,
            "delete_branch_on_merge": False,
            "allow_auto_merge": False,
            "has_wiki": True,
        }
        self.secrets: Dict[str, Dict[str, Any]] = {}
        self.public_key: Dict[str, Any] = {"key_id": "568250167242549743", "key": public_key or ""}
        self.calls: List[Tuple[str, str, Any, Any]] = []
        # (method, path) -> list of queued outcomes: int status, exception, or None for normal routing
        self.queued: Dict[Tuple[str, str], List[Any]] = {}
        # (method, path) -> seconds to stall successive calls before answering
        self.delays: Dict[Tuple[str, str], List[float]] = {}
        self.closed = False
        self._lock = threading.Lock()

    def queue(self, method: str, path: str, *outcomes: Any) -> None:
        self.queued.setdefault((method, path), []).extend(outcomes)

    def delay(self, method: str, path: str, *seconds: float) -> None:
        self.delays.setdefault((method, path), []).extend(seconds)

    def calls_for(self, method: str, path_prefix: str = "") -> List[Tuple[str, str, Any, Any]]:
        return [c for c in self.calls if c[0] == method and c[1].startswith(path_prefix)]

    def close(self) -> None:
        self.closed = True

    def request(self, method: str, url: str, params: Any = None, json: Any = None, timeout: Any = None) -> requests.Response:
        path = url[len(BASE_URL):] if url.startswith(BASE_URL) else url
        with self._lock:
            self.calls.append((method, path, copy.deepcopy(json), timeout))
            pending = self.queued.get((method, path))
            outcome = pending.pop(0) if pending else None
            stalls = self.delays.get((method, path))
            stall = stalls.pop(0) if stalls else 0.0

        if stall:
            time.sleep(stall)

        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, int):
            return make_response(outcome, {"message": f"Forced {outcome}"}, url)

        with self._lock:
            status, body = self._route(method, path, json)
        return make_response(status, body, url)

    def _route(self, method: str, path: str, body: Any) -> Tuple[int, Any]:
        repo_path = f"/repos/{OWNER}/{REPO}"
        if path == repo_path:
            if method == "GET":
                return 200, {"full_name": f"{OWNER}/{REPO}", "default_branch": "main", **self.settings}
            if method == "PATCH":
                self.settings.update(body or {})
                return 200, {"full_name": f"{OWNER}/{REPO}", **self.settings}

        if path == f"{repo_path}/actions/secrets/public-key" and method == "GET":
            return 200, dict(self.public_key)

        m = _PROTECTION_RE.match(path)
        if m:
            branch = unquote(m.group(1))
            if branch not in self.branches:
                return 404, {"message": "Branch not found"}
            if method == "PUT":
                self.protections[branch] = copy.deepcopy(body)
                return 200, self._protection_view(branch)
            if method == "GET":
                if branch not in self.protections:
                    return 404, {"message": "Branch not protected"}
                return 200, self._protection_view(branch)

        m = _BRANCH_RE.match(path)
        if m and method == "GET":
            branch = unquote(m.group(1))
            if branch in self.branches:
                return 200, {"name": branch, "protected": branch in self.protections}
            return 404, {"message": "Branch not found"}

        m = _SECRET_RE.match(path)
        if m and method == "PUT":
            name = unquote(m.group(1))
            created = name not in self.secrets
            self.secrets[name] = copy.deepcopy(body)
            return (201, {}) if created else (204, None)

        return 404, {"message": "Not Found"}

    def _protection_view(self, branch: str) -> Dict[str, Any]:
        stored = self.protections[branch]
        return {
            "url": f"{BASE_URL}/repos/{OWNER}/{REPO}/branches/{branch}/protection",
            "required_pull_request_reviews": dict(stored.get("required_pull_request_reviews") or {}),
            "enforce_admins": {"enabled": bool(stored.get("enforce_admins"))},
            "allow_force_pushes": {"enabled": bool(stored.get("allow_force_pushes"))},
            "allow_deletions": {"enabled": bool(stored.get("allow_deletions"))},
        }


@pytest.fixture
def keypair() -> PrivateKey:
    return PrivateKey.generate()


@pytest.fixture
def public_key_b64(keypair: PrivateKey) -> str:
    return keypair.public_key.encode(Base64Encoder).decode("utf-8")


@pytest.fixture
def fake(public_key_b64: str) -> FakeGitHub:
    return FakeGitHub(public_key=public_key_b64)


@pytest.fixture
def rest(fake: FakeGitHub) -> GitHubRestClient:
    client = GitHubRestClient(token="ghp_test123", max_retries=0, backoff_base_s=0.0, timeout_s=5)
    client.session = fake
    return client


@pytest.fixture
def ref() -> RepositoryRef:
    return RepositoryRef(owner=OWNER, name=REPO)


@pytest.fixture
def plan() -> ProvisioningPlan:
    return ProvisioningPlan(
        branches=(
            BranchPolicy("main", required_approvals=2),
            BranchPolicy("develop", required_approvals=1),
            BranchPolicy("staging", required_approvals=1),
        ),
        settings=RepoSettings(),
        secrets=(
            SecretSpec("OPENAI_API_KEY", "sk-REPLACE_ME"),
            SecretSpec("SNYK_TOKEN", "snyk_REPLACE_ME"),
        ),
    )
