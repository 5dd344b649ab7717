from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from . import create_client
from .config import default_plan, load_plan
from .exceptions import AccessDeniedError
from .models import RepositoryRef, RunReport
from .provisioner import Provisioner
from .summary import exit_code, manual_fallback_hints, render_json, render_markdown, summarize

log = logging.getLogger("gh_repo_setup")


def _str2bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("true", "1", "yes", "y"):
        return True
    if v in ("false", "0", "no", "n"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="gh-repo-setup",
        description="Configure branch protection, merge settings and Actions secrets for a GitHub repository.",
        epilog="Example: GITHUB_TOKEN=ghp_xxx gh-repo-setup my-org my-repo true",
    )
    ap.add_argument("owner", help="Repository owner (user or org)")
    ap.add_argument("repo", help="Repository name")
    ap.add_argument("setup_secrets", nargs="?", type=_str2bool, default=True, help="Also create secrets (default: true)")
    ap.add_argument("token", nargs="?", default=None, help="GitHub token (default: GITHUB_TOKEN/GH_TOKEN, then gh auth token)")
    ap.add_argument("--token", dest="token_opt", default=None, help="GitHub token (same as the positional form)")
    ap.add_argument("--config", default=None, help="JSON plan file (branches, repo_settings, secrets)")
    ap.add_argument("--no-secrets", action="store_true", help="Skip the secrets phase")
    ap.add_argument(
        "--allow-placeholder-secrets",
        action="store_true",
        help="Create NEEDS_REAL_VALUE_ placeholders when PyNaCl is unavailable instead of failing those secrets",
    )
    ap.add_argument("--timeout", type=float, default=30.0, help="Per-request timeout in seconds (default: 30)")
    ap.add_argument("--workers", type=int, default=1, help="Apply independent branches/secrets concurrently")
    ap.add_argument("--verify", action="store_true", help="Read protection back after applying it")
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--api-url", default="https://api.github.com", help="REST API base URL (GitHub Enterprise)")
    ap.add_argument("--report-json", default=None, help="Write a JSON report to this path")
    ap.add_argument("--report-md", default=None, help="Write a Markdown report to this path")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def next_steps(report: RunReport, setup_secrets: bool) -> List[str]:
    ref = report.ref
    steps: List[str] = []
    if setup_secrets:
        steps.append("Update repository secrets with real API keys")
    else:
        steps.append("Set up repository secrets manually if needed")
    steps.append("Test branch protection with a direct push (should be blocked):")
    steps.append("  git checkout main && echo 'test' > test.txt")
    steps.append("  git add test.txt && git commit -m 'test: direct commit' && git push origin main")
    steps.append(f"Create a test PR to verify the workflow: {ref.html_url}/pulls")
    return steps


def _write_reports(report: RunReport, json_path: Optional[str], md_path: Optional[str]) -> None:
    if json_path:
        Path(json_path).parent.mkdir(parents=True, exist_ok=True)
        Path(json_path).write_text(json.dumps(render_json(report), indent=2), encoding="utf-8")
        log.info("Wrote %s", json_path)
    if md_path:
        Path(md_path).parent.mkdir(parents=True, exist_ok=True)
        Path(md_path).write_text(render_markdown(report), encoding="utf-8")
        log.info("Wrote %s", md_path)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(message)s")

    try:
        plan = load_plan(args.config) if args.config else default_plan()
    except (OSError, ValueError) as e:
        log.error("Cannot load plan %s: %s", args.config, e)
        return 1
    if args.allow_placeholder_secrets:
        plan = dataclasses.replace(plan, allow_placeholder_secrets=True)

    try:
        rest = create_client(args.token_opt or args.token, base_url=args.api_url, timeout_s=args.timeout)
    except RuntimeError as e:
        log.error("%s", e)
        return 1

    ref = RepositoryRef(owner=args.owner, name=args.repo)
    setup_secrets = args.setup_secrets and not args.no_secrets
    log.info("Repository setup: %s (secrets=%s, dry_run=%s)", ref.full_name, setup_secrets, args.dry_run)

    provisioner = Provisioner(rest, plan, max_workers=max(1, args.workers), dry_run=args.dry_run, verify=args.verify)
    try:
        report = provisioner.run(ref, setup_secrets=setup_secrets)
    except AccessDeniedError as e:
        log.error("%s", e)
        return 1
    finally:
        rest.close()

    s = summarize(report.results)
    log.info("Done. succeeded=%d skipped=%d failed=%d", s.succeeded, s.skipped, s.failed)
    for r in report.results:
        log.info("  %-18s %-20s %-9s %s", r.kind, r.target, r.outcome, r.detail)
    for phase, reason in report.phase_errors.items():
        log.warning("Phase %s had issues: %s", phase, reason)
    for hint in manual_fallback_hints(report):
        log.warning("%s", hint)

    code = exit_code(report)
    if code == 0:
        log.info("Next steps:")
        for step in next_steps(report, setup_secrets):
            log.info("  %s", step)
    else:
        log.error("No branch could be protected on %s", ref.full_name)

    _write_reports(report, args.report_json, args.report_md)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
