"""
DefragReportをJSON・Markdownレポート・クリーンアッププラン（Markdown）のテキストにするモジュール。
ファイルへの書き込みは呼び出し側（report_writerノード）が行う。
"""
import json
import os
from datetime import datetime
from defrag.analysis.reporter import DefragReport
from defrag.autofix.autofixer import CONCURRENCY_BLOCK
from defrag.models import AnalyzedWorkflow


def _iso(value: datetime | None) -> str | None:
    return value.isoformat().replace("+00:00", "Z") if value else None


def _day(value: datetime | None, default: str) -> str:
    return value.strftime("%Y-%m-%d") if value else default


def value_or(value: str | None, alt: str) -> str:
    if value is None or value.strip() == "":
        return alt
    return value


def workflow_to_dict(w: AnalyzedWorkflow) -> dict:
    data = {
        "file": w.source_path,
        "name": w.facts.name or "",
        "triggers": w.facts.triggers,
        "schedules": w.facts.schedules,
        "runners": w.facts.runners,
        "hasConcurrency": w.facts.has_concurrency,
        "usesUnpinnedAction": w.facts.uses_unpinned_action,
        "unpinnedDetails": w.facts.unpinned_details(),
        "deprecatedHints": w.deprecated_hints,
        "recommendations": w.recommendations,
        "parseMode": w.facts.parse_mode,
    }
    if w.last_modified is not None:
        data["lastModified"] = _iso(w.last_modified)
    return data


def report_to_dict(report: DefragReport) -> dict:
    data = {
        "generatedAt": _iso(report.generated_at),
        "rootPath": report.root_path,
        "workflowsPath": report.workflows_path,
        "staleDays": report.stale_days,
        "workflows": [workflow_to_dict(w) for w in report.workflows],
        "summary": {
            "workflowCount": report.summary.workflow_count,
            "workflowsStale": report.summary.workflows_stale,
            "workflowsWithUnpinned": report.summary.workflows_with_unpinned,
            "workflowsWithoutConcurrency": report.summary.workflows_without_concurrency,
        },
    }
    if report.github is not None:
        gh = report.github
        data["github"] = {
            "owner": gh.owner,
            "repo": gh.repo,
            "workflowFailureRates": [
                {
                    "name": f.name,
                    "workflowId": f.workflow_id,
                    "sampledRuns": f.sampled_runs,
                    "failureRate": f.failure_rate,
                    "recentFailure": f.recent_failure,
                }
                for f in gh.workflow_failures
            ],
            "pullRequests": [
                {
                    "number": pr.number,
                    "title": pr.title,
                    "author": pr.author,
                    "draft": pr.draft,
                    "updatedAt": _iso(pr.updated_at),
                    "stale": pr.stale,
                    "headSha": pr.head_sha,
                }
                for pr in gh.pull_requests
            ],
            "environments": [
                {"name": env.name, "lastDeployed": _iso(env.last_deployed), "isStale": env.is_stale}
                for env in gh.environments
            ],
        }
    return data


def render_json(report: DefragReport) -> str:
    return json.dumps(report_to_dict(report), indent=2, ensure_ascii=False) + "\n"


def _github_sections(report: DefragReport, out: list[str], with_failures: bool) -> None:
    gh = report.github
    if with_failures and gh.workflow_failures:
        out.append("### Workflow Failure Rates\n")
        for f in gh.workflow_failures:
            out.append(f"- {f.name}: failure rate {f.failure_rate * 100:.0f}% over {f.sampled_runs} runs")
        out.append("")
    if gh.pull_requests or not with_failures:
        heading = "###" if with_failures else "##"
        out.append(f"{heading} Stale Pull Requests (> {report.stale_days} days)\n")
        for pr in gh.pull_requests:
            if pr.stale:
                out.append(f"- #{pr.number} {pr.title} by {pr.author} (updated {_day(pr.updated_at, 'n/a')})")
        out.append("")
    if gh.environments or not with_failures:
        heading = "###" if with_failures else "##"
        out.append(f"{heading} Environments\n")
        for env in gh.environments:
            stale = " (stale)" if env.is_stale else ""
            out.append(f"- {env.name}: last deployment {_day(env.last_deployed, 'never')}{stale}")
        out.append("")


def render_markdown(report: DefragReport) -> str:
    s = report.summary
    out = [
        "# Repo Defragmentation Report\n",
        f"Generated: {report.generated_at.strftime('%Y-%m-%dT%H:%M:%SZ')} UTC\n",
        f"- Workflows scanned: {s.workflow_count}",
        f"- Stale workflows (> {report.stale_days} days): {s.workflows_stale}",
        f"- Workflows with unpinned actions: {s.workflows_with_unpinned}",
        f"- Workflows without concurrency: {s.workflows_without_concurrency}",
        "",
        "## Workflows\n",
    ]
    for w in report.workflows:
        f = w.facts
        out.append(f"### {w.source_path}\n")
        out.append(f"- Name: {value_or(f.name, '(none)')}")
        out.append(f"- Triggers: {', '.join(f.triggers)}")
        out.append(f"- Schedules: {', '.join(f.schedules)}")
        out.append(f"- Runners: {', '.join(f.runners)}")
        out.append(f"- Last Modified: {_day(w.last_modified, 'n/a')}")
        out.append(f"- Concurrency: {str(f.has_concurrency).lower()}")
        out.append(f"- Unpinned Actions: {str(f.uses_unpinned_action).lower()}")
        if f.parse_mode == "fallback":
            out.append("- Parsed with text fallback (YAML could not be fully decoded)")
        if f.unpinned_actions:
            out.append(f"  - Unpinned: {'; '.join(f.unpinned_details())}")
        if w.deprecated_hints:
            out.append(f"  - Deprecated: {'; '.join(w.deprecated_hints)}")
        if w.recommendations:
            out.append(f"  - Recommendations: {'; '.join(w.recommendations)}")
        out.append("")

    if report.github is not None:
        out.append(f"## GitHub Insights ({report.github.owner}/{report.github.repo})\n")
        _github_sections(report, out, with_failures=True)
    return "\n".join(out) + "\n"


def render_cleanup_plan(report: DefragReport) -> str:
    s = report.summary
    out = [
        "# CI Cleanup Plan\n",
        f"Generated: {report.generated_at.strftime('%Y-%m-%dT%H:%M:%SZ')} UTC\n",
        f"- Workflows scanned: {s.workflow_count}",
        f"- Stale threshold: {report.stale_days} days",
        "",
        "## High-level actions\n",
    ]
    if s.workflows_with_unpinned:
        out.append(f"- Pin actions to tags or SHAs (found {s.workflows_with_unpinned} workflows)")
    if s.workflows_without_concurrency:
        out.append(f"- Add concurrency to prevent duplicate runs (missing in {s.workflows_without_concurrency} workflows)")
    if s.workflows_stale:
        out.append(f"- Review or remove stale workflows (found {s.workflows_stale})")
    out.append("")

    out.append("## Recommended snippets\n")
    out.append("### Concurrency example\n")
    out.append("```yaml\n" + "\n".join(CONCURRENCY_BLOCK[1:]) + "\n```\n")
    out.append("### Actions pinning example\n")
    out.append("```yaml\n- uses: actions/checkout@v4\n- uses: actions/setup-python@v5\n  with:\n    python-version: '3.12'\n```\n")

    out.append("## Workflow-specific recommendations\n")
    for w in report.workflows:
        f = w.facts
        if not w.recommendations and not w.deprecated_hints and not f.uses_unpinned_action and f.has_concurrency:
            continue
        out.append(f"### {os.path.basename(w.source_path)}\n")
        if f.name:
            out.append(f"- Name: {f.name}")
        if w.recommendations:
            out.append(f"- Recommendations: {'; '.join(w.recommendations)}")
        if w.deprecated_hints:
            out.append(f"- Hints: {'; '.join(w.deprecated_hints)}")
        if f.uses_unpinned_action:
            out.append(f"- Unpinned steps: {'; '.join(f.unpinned_details())}")
        if not f.has_concurrency:
            out.append("- Add 'concurrency' block (see snippet above)")
        out.append("")

    if report.github is not None:
        _github_sections(report, out, with_failures=False)
    return "\n".join(out) + "\n"
