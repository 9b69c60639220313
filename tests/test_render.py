import json
from datetime import datetime, timedelta, timezone
from defrag.analysis.analyzer import analyze_workflow
from defrag.analysis.render import (
    render_cleanup_plan,
    render_json,
    render_markdown,
    value_or,
)
from defrag.analysis.reporter import build_report, fold_enrichment
from defrag.config import DefragConfig
from defrag.tools.github import EnvironmentDeployment, GitHubEnrichment, PullRequestSummary

NOW = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)

DIRTY = "on: [push]\njobs:\n  build:\n    runs-on: ubuntu-22.04\n    steps:\n      - uses: actions/checkout\n"
CLEAN = "name: Clean\non: push\nconcurrency: ci\njobs:\n  a:\n    runs-on: ubuntu-24.04\n"


def _report(with_github=False):
    config = DefragConfig(root_path="repo")
    workflows = [
        analyze_workflow("repo/.github/workflows/ci.yml", DIRTY, NOW - timedelta(days=5), config, NOW),
        analyze_workflow("repo/.github/workflows/clean.yml", CLEAN, None, config, NOW),
    ]
    github = None
    if with_github:
        github = fold_enrichment(GitHubEnrichment(
            owner="octo",
            repo="demo",
            pull_requests=[PullRequestSummary(number=3, title="Old PR", author="alice",
                                              updated_at=NOW - timedelta(days=120), head_sha="abc")],
            environments=[EnvironmentDeployment(name="staging")],
        ), 60, NOW)
    return build_report(workflows, config, NOW, github)


def test_value_or():
    assert value_or(None, "(none)") == "(none)"
    assert value_or("  ", "(none)") == "(none)"
    assert value_or("CI", "(none)") == "CI"


def test_render_json():
    data = json.loads(render_json(_report()))
    assert data["generatedAt"] == "2026-10-01T12:00:00Z"
    assert data["staleDays"] == 60
    assert data["summary"] == {
        "workflowCount": 2,
        "workflowsStale": 0,
        "workflowsWithUnpinned": 1,
        "workflowsWithoutConcurrency": 1,
    }
    ci = data["workflows"][0]
    assert ci["file"] == "repo/.github/workflows/ci.yml"
    assert ci["triggers"] == ["push"]
    assert ci["unpinnedDetails"] == ["job:build uses:actions/checkout"]
    assert ci["deprecatedHints"] == ["Consider ubuntu-24.04"]
    assert ci["lastModified"] == "2026-09-26T12:00:00Z"
    assert ci["parseMode"] == "structured"
    # 最終更新日時が分からないワークフローにはlastModifiedを出さない
    assert "lastModified" not in data["workflows"][1]
    assert "github" not in data


def test_render_json_with_github():
    data = json.loads(render_json(_report(with_github=True)))
    assert data["github"]["owner"] == "octo"
    assert data["github"]["pullRequests"][0]["stale"] is True
    assert data["github"]["environments"] == [{"name": "staging", "lastDeployed": None, "isStale": True}]


def test_render_markdown():
    md = render_markdown(_report(with_github=True))
    assert md.startswith("# Repo Defragmentation Report\n")
    assert "- Workflows scanned: 2" in md
    assert "### repo/.github/workflows/ci.yml" in md
    assert "- Name: (none)" in md
    assert "- Concurrency: false" in md
    assert "  - Recommendations: Pin actions to specific tags or SHAs; Add 'concurrency' to avoid duplicate runs on busy repos" in md
    assert "## GitHub Insights (octo/demo)" in md
    assert "- #3 Old PR by alice (updated 2026-06-03)" in md
    assert "- staging: last deployment never (stale)" in md


def test_render_cleanup_plan():
    plan = render_cleanup_plan(_report())
    assert plan.startswith("# CI Cleanup Plan\n")
    assert "- Pin actions to tags or SHAs (found 1 workflows)" in plan
    assert "- Add concurrency to prevent duplicate runs (missing in 1 workflows)" in plan
    assert "cancel-in-progress: true" in plan
    assert "### ci.yml" in plan
    # 指摘のないワークフローは載せない
    assert "### clean.yml" not in plan
    assert "## Environments" not in plan
