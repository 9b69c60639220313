"""
解析済みワークフローをリポジトリ単位で集計し、レポートのデータを組み立てるモジュール。
GitHub APIの追加情報はここでstale判定だけを付けてレポートに合流させる。
"""
from datetime import datetime, timezone
from typing import Iterable
from pydantic import BaseModel, Field
from defrag.analysis.analyzer import is_stale
from defrag.config import DEFAULT_DAYS_STALE, DefragConfig
from defrag.models import AnalyzedWorkflow, RepositorySummary
from defrag.tools.github import GitHubEnrichment, PullRequestSummary, WorkflowFailure


class PullRequestReport(PullRequestSummary):
    stale: bool = False


class EnvironmentReport(BaseModel):
    name: str
    last_deployed: datetime | None = None
    is_stale: bool = True


class GitHubReport(BaseModel):
    owner: str
    repo: str
    workflow_failures: list[WorkflowFailure] = Field(default_factory=list)
    pull_requests: list[PullRequestReport] = Field(default_factory=list)
    environments: list[EnvironmentReport] = Field(default_factory=list)

    def summary(self) -> str:
        return (
            f"GitHub PRs: {len(self.pull_requests)}, Environments: {len(self.environments)}, "
            f"Workflows with failure stats: {len(self.workflow_failures)}"
        )


class DefragReport(BaseModel):
    """repo-defragのレポート全体"""
    generated_at: datetime
    root_path: str
    workflows_path: str
    stale_days: int
    workflows: list[AnalyzedWorkflow] = Field(default_factory=list, description="source_path順のワークフロー")
    github: GitHubReport | None = None
    summary: RepositorySummary = Field(default_factory=RepositorySummary)


def summarize_one(workflow: AnalyzedWorkflow, days_stale: int = DEFAULT_DAYS_STALE,
                  now: datetime | None = None) -> RepositorySummary:
    return RepositorySummary(
        workflow_count=1,
        workflows_stale=int(is_stale(workflow.last_modified, days_stale, now)),
        workflows_with_unpinned=int(workflow.facts.uses_unpinned_action),
        workflows_without_concurrency=int(not workflow.facts.has_concurrency),
    )


def aggregate(workflows: Iterable[AnalyzedWorkflow], days_stale: int = DEFAULT_DAYS_STALE,
              now: datetime | None = None) -> RepositorySummary:
    """
    解析済みワークフローを数え上げる。空なら全て0。
    1件ずつの集計を+で合算するので、分割して並列に集計した結果を後から合算しても同じになる。
    """
    now = now or datetime.now(timezone.utc)
    total = RepositorySummary()
    for workflow in workflows:
        total = total + summarize_one(workflow, days_stale, now)
    return total


def fold_enrichment(enrichment: GitHubEnrichment, days_stale: int = DEFAULT_DAYS_STALE,
                    now: datetime | None = None) -> GitHubReport:
    """PRと環境にstale判定を付ける。デプロイ履歴のない環境はstale扱い"""
    now = now or datetime.now(timezone.utc)
    return GitHubReport(
        owner=enrichment.owner,
        repo=enrichment.repo,
        workflow_failures=enrichment.workflow_failures,
        pull_requests=[
            PullRequestReport(**pr.model_dump(), stale=is_stale(pr.updated_at, days_stale, now))
            for pr in enrichment.pull_requests
        ],
        environments=[
            EnvironmentReport(
                name=env.name,
                last_deployed=env.last_deployed,
                is_stale=env.last_deployed is None or is_stale(env.last_deployed, days_stale, now),
            )
            for env in enrichment.environments
        ],
    )


def build_report(workflows: Iterable[AnalyzedWorkflow], config: DefragConfig,
                 generated_at: datetime | None = None,
                 github: GitHubReport | None = None) -> DefragReport:
    generated_at = generated_at or datetime.now(timezone.utc)
    ordered = sorted(workflows, key=lambda w: w.source_path)
    return DefragReport(
        generated_at=generated_at,
        root_path=config.root_path,
        workflows_path=config.workflows_dir,
        stale_days=config.days_stale,
        workflows=ordered,
        github=github,
        summary=aggregate(ordered, config.days_stale, generated_at),
    )
