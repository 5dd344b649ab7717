from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Sequence

from .models import OperationResult, RunReport, RunSummary


def utcnow_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def summarize(results: Sequence[OperationResult]) -> RunSummary:
    return RunSummary(
        succeeded=sum(1 for r in results if r.outcome == "succeeded"),
        skipped=sum(1 for r in results if r.outcome == "skipped"),
        failed=sum(1 for r in results if r.outcome == "failed"),
        details=list(results),
    )


def exit_code(report: RunReport) -> int:
    """0 when at least one branch was protected. Secret problems never fail the run."""
    if report.dry_run:
        return 0
    protected = [r for r in report.of_kind("branch_protection") if r.succeeded]
    return 0 if protected else 1


def manual_fallback_hints(report: RunReport) -> List[str]:
    """Web UI locations for phases that did not complete."""
    base = report.ref.html_url
    hints: List[str] = []

    branch_results = report.of_kind("branch_protection")
    if branch_results and not any(r.succeeded for r in branch_results):
        hints.append(f"Set up branch protection manually at: {base}/settings/branches")

    if any(r.outcome == "failed" for r in report.of_kind("repo_settings")):
        hints.append(f"Set merge settings manually at: {base}/settings")

    secret_results = report.of_kind("secret_upsert")
    if "secrets" in report.phase_errors or (
        secret_results and not any(r.succeeded for r in secret_results)
    ):
        hints.append(f"Set secrets manually at: {base}/settings/secrets/actions")

    if any(r.succeeded and "placeholder" in r.detail for r in secret_results):
        hints.append(f"Placeholder secrets were created; replace them at: {base}/settings/secrets/actions")

    return hints


def render_json(report: RunReport) -> Dict[str, Any]:
    s = summarize(report.results)
    return {
        "generated_at": utcnow_iso(),
        "repository": report.ref.full_name,
        "dry_run": report.dry_run,
        "summary": {"succeeded": s.succeeded, "skipped": s.skipped, "failed": s.failed},
        "phase_errors": dict(report.phase_errors),
        "results": [
            {"kind": r.kind, "target": r.target, "outcome": r.outcome, "detail": r.detail}
            for r in report.results
        ],
        "exit_code": exit_code(report),
    }


def render_markdown(report: RunReport) -> str:
    s = summarize(report.results)
    lines: List[str] = []
    lines.append(f"# Repository Setup Report ({report.ref.full_name})")
    lines.append("")
    lines.append(f"- Generated: `{utcnow_iso()}`")
    lines.append(f"- Dry run: `{report.dry_run}`")
    lines.append(f"- Succeeded: **{s.succeeded}**  Skipped: **{s.skipped}**  Failed: **{s.failed}**")
    for phase, reason in report.phase_errors.items():
        lines.append(f"- Phase `{phase}` did not run: {reason}")
    lines.append("")
    lines.append("| Operation | Target | Outcome | Details |")
    lines.append("|---|---|---|---|")
    for r in report.results:
        lines.append(f"| {r.kind} | `{r.target}` | {r.outcome} | {r.detail} |")
    hints = manual_fallback_hints(report)
    if hints:
        lines.append("")
        lines.append("## Manual follow-up")
        lines.append("")
        for h in hints:
            lines.append(f"- {h}")
    return "\n".join(lines)
