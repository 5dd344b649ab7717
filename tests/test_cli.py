"""Tests for gh_repo_setup.cli."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from gh_repo_setup import cli
from gh_repo_setup.rest import GitHubRestClient

from conftest import FakeGitHub, OWNER, REPO


@pytest.fixture
def patched_client(rest: GitHubRestClient):
    with patch("gh_repo_setup.cli.create_client", return_value=rest) as m:
        yield m


class TestParser:
    def test_positional_interface(self):
        args = cli.build_parser().parse_args(["acme", "webapp", "false", "ghp_x"])
        assert (args.owner, args.repo, args.setup_secrets, args.token) == ("acme", "webapp", False, "ghp_x")

    def test_defaults(self):
        args = cli.build_parser().parse_args(["acme", "webapp"])
        assert args.setup_secrets is True
        assert args.token is None
        assert args.timeout == 30.0
        assert args.workers == 1

    def test_missing_repo_is_usage_error(self):
        with pytest.raises(SystemExit) as exc:
            cli.build_parser().parse_args(["acme"])
        assert exc.value.code == 2

    @pytest.mark.parametrize("raw,expected", [("true", True), ("YES", True), ("0", False), ("false", False)])
    def test_str2bool(self, raw, expected):
        assert cli._str2bool(raw) is expected

    def test_str2bool_rejects_garbage(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli._str2bool("maybe")


class TestMain:
    def test_full_run(self, patched_client, fake: FakeGitHub, tmp_path: Path):
        report_path = tmp_path / "out" / "report.json"
        md_path = tmp_path / "out" / "report.md"
        code = cli.main([OWNER, REPO, "--report-json", str(report_path), "--report-md", str(md_path)])
        assert code == 0
        assert set(fake.protections) == {"main", "develop", "staging"}
        assert len(fake.secrets) == 7
        data = json.loads(report_path.read_text())
        assert data["summary"]["failed"] == 0
        assert md_path.read_text().startswith("# Repository Setup Report")
        assert fake.closed is True

    def test_token_passed_through(self, patched_client):
        cli.main([OWNER, REPO, "false", "ghp_positional", "--timeout", "12", "--api-url", "https://ghe.example.com/api/v3"])
        patched_client.assert_called_once_with(
            "ghp_positional", base_url="https://ghe.example.com/api/v3", timeout_s=12.0
        )

    def test_no_secrets_flag(self, patched_client, fake: FakeGitHub):
        assert cli.main([OWNER, REPO, "--no-secrets"]) == 0
        assert fake.secrets == {}

    def test_no_branch_protected(self, patched_client, fake: FakeGitHub):
        fake.branches = set()
        assert cli.main([OWNER, REPO, "false"]) == 1

    def test_access_denied(self, patched_client, fake: FakeGitHub):
        fake.queue("GET", f"/repos/{OWNER}/{REPO}", 404)
        assert cli.main([OWNER, REPO]) == 1
        assert fake.calls_for("PUT") == []

    def test_missing_token(self):
        with patch("gh_repo_setup.cli.create_client", side_effect=RuntimeError("No GitHub token found.")):
            assert cli.main([OWNER, REPO]) == 1

    def test_config_file(self, patched_client, fake: FakeGitHub, tmp_path: Path):
        cfg = tmp_path / "plan.json"
        cfg.write_text(json.dumps({"branches": [{"name": "main", "required_approvals": 4}], "repo_settings": None, "secrets": {}}))
        assert cli.main([OWNER, REPO, "--config", str(cfg)]) == 0
        assert list(fake.protections) == ["main"]
        assert fake.calls_for("PATCH") == []

    def test_bad_config_file(self, patched_client, tmp_path: Path):
        assert cli.main([OWNER, REPO, "--config", str(tmp_path / "missing.json")]) == 1

    def test_dry_run(self, patched_client, fake: FakeGitHub):
        assert cli.main([OWNER, REPO, "--dry-run"]) == 0
        assert fake.calls_for("PUT") == []
