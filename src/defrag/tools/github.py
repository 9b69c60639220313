"""
GitHub REST APIから、ワークフローの失敗率・オープンなPR・環境へのデプロイ状況を取得するモジュール。
staleかどうかの判定はここでは行わず、analysis.reporterで行う。
"""
from datetime import datetime
from urllib.parse import quote
import requests
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from defrag.config import DEFAULT_GITHUB_RUNS, DEFAULT_GITHUB_TIMEOUT
from defrag.log_output.log import log

API_BASE_URL = "https://api.github.com"
FAILED_CONCLUSIONS = ("failure", "timed_out", "cancelled")


class GitHubAPIError(Exception):
    """GitHub APIが2xx以外を返したときの例外"""
    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class WorkflowFailure(BaseModel):
    name: str
    workflow_id: int
    sampled_runs: int = Field(..., description="集計に使った実行数")
    failure_rate: float = Field(..., description="失敗・タイムアウト・キャンセルの割合")
    recent_failure: bool = Field(False, description="直近の実行が失敗しているか")


class PullRequestSummary(BaseModel):
    number: int
    title: str
    author: str
    draft: bool = False
    updated_at: datetime
    head_sha: str


class EnvironmentDeployment(BaseModel):
    name: str
    last_deployed: datetime | None = Field(None, description="最新のデプロイ日時（デプロイがなければNone）")


class GitHubEnrichment(BaseModel):
    owner: str
    repo: str
    workflow_failures: list[WorkflowFailure] = Field(default_factory=list)
    pull_requests: list[PullRequestSummary] = Field(default_factory=list)
    environments: list[EnvironmentDeployment] = Field(default_factory=list)


# ---------- APIレスポンスの形 ----------
# 必要なフィールドだけを宣言し、それ以外は無視する。形が違えばValidationErrorになる

class _User(BaseModel):
    login: str = ""


class _Head(BaseModel):
    sha: str = ""


class PullRequestItem(BaseModel):
    number: int
    title: str = ""
    user: _User | None = None
    draft: bool | None = None
    updated_at: datetime
    head: _Head | None = None


class WorkflowItem(BaseModel):
    id: int
    name: str = ""


class WorkflowList(BaseModel):
    workflows: list[WorkflowItem] = Field(default_factory=list)


class WorkflowRun(BaseModel):
    conclusion: str | None = None


class WorkflowRunList(BaseModel):
    workflow_runs: list[WorkflowRun] = Field(default_factory=list)


class EnvironmentItem(BaseModel):
    name: str


class EnvironmentList(BaseModel):
    environments: list[EnvironmentItem] = Field(default_factory=list)


class DeploymentItem(BaseModel):
    updated_at: datetime | None = None


PULL_REQUESTS = TypeAdapter(list[PullRequestItem])
DEPLOYMENTS = TypeAdapter(list[DeploymentItem])


class GitHubClient:
    def __init__(self, owner: str, repo: str, token: str,
                 timeout: float = DEFAULT_GITHUB_TIMEOUT,
                 session: requests.Session | None = None,
                 base_url: str = API_BASE_URL):
        """
        GitHubClientのインスタンスを初期化する。

        Args:
            owner (str): リポジトリのowner/org
            repo (str): リポジトリ名
            token (str): GitHub APIトークン
            timeout (float): 1リクエストあたりのタイムアウト（秒）
            session (requests.Session|None): テスト用に差し替えるセッション
        """
        self.owner = owner
        self.repo = repo
        self.timeout = timeout
        self.base = f"{base_url}/repos/{owner}/{repo}"
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
        }

    def _get(self, url: str):
        resp = self.session.get(url, headers=self.headers, timeout=self.timeout)
        if resp.status_code == 404:
            raise GitHubAPIError(f"resource not found: {url}", 404, url)
        if resp.status_code == 401:
            raise GitHubAPIError("unauthorized: bad token or permissions", 401, url)
        if resp.status_code >= 300:
            raise GitHubAPIError(f"github {resp.status_code}: {resp.text}", resp.status_code, url)
        return resp.json()

    def workflow_failures(self, sample_runs: int = DEFAULT_GITHUB_RUNS) -> list[WorkflowFailure]:
        """
        各ワークフローの直近sample_runs件の実行から失敗率を求める。
        実行履歴の取得に失敗したワークフローはスキップする。
        """
        data = WorkflowList.model_validate(self._get(f"{self.base}/actions/workflows"))
        failures = []
        for workflow in data.workflows:
            url = f"{self.base}/actions/workflows/{workflow.id}/runs?per_page={sample_runs}"
            try:
                runs = WorkflowRunList.model_validate(self._get(url)).workflow_runs
            except (GitHubAPIError, requests.RequestException, ValidationError) as e:
                log("warning", f"{workflow.name}の実行履歴を取得できませんでした: {e}")
                continue
            if not runs:
                continue
            failed = [run.conclusion in FAILED_CONCLUSIONS for run in runs]
            failures.append(WorkflowFailure(
                name=workflow.name,
                workflow_id=workflow.id,
                sampled_runs=len(runs),
                failure_rate=sum(failed) / len(runs),
                recent_failure=failed[0],
            ))
        return failures

    def open_pull_requests(self) -> list[PullRequestSummary]:
        data = PULL_REQUESTS.validate_python(self._get(f"{self.base}/pulls?state=open&per_page=100"))
        return [
            PullRequestSummary(
                number=pr.number,
                title=pr.title,
                author=pr.user.login if pr.user else "",
                draft=bool(pr.draft),
                updated_at=pr.updated_at,
                head_sha=pr.head.sha if pr.head else "",
            )
            for pr in data
        ]

    def environment_deployments(self) -> list[EnvironmentDeployment]:
        """
        各環境の最新デプロイ日時を取得する。デプロイ一覧の取得に失敗した環境はスキップする。
        """
        data = EnvironmentList.model_validate(self._get(f"{self.base}/environments"))
        environments = []
        for env in data.environments:
            url = f"{self.base}/deployments?per_page=1&environment={quote(env.name)}"
            try:
                deployments = DEPLOYMENTS.validate_python(self._get(url))
            except (GitHubAPIError, requests.RequestException, ValidationError) as e:
                log("warning", f"環境{env.name}のデプロイ履歴を取得できませんでした: {e}")
                continue
            last = deployments[0].updated_at if deployments else None
            environments.append(EnvironmentDeployment(name=env.name, last_deployed=last))
        return environments

    def enrich(self, sample_runs: int = DEFAULT_GITHUB_RUNS) -> GitHubEnrichment:
        """
        失敗率・PR・環境をまとめて取得する。

        Raises:
            GitHubAPIError: ワークフロー一覧・PR一覧・環境一覧の取得に失敗した場合
            requests.RequestException: 通信に失敗した場合（JSONとして読めない応答を含む）
            ValidationError: 一覧の応答が想定した形でない場合
        """
        return GitHubEnrichment(
            owner=self.owner,
            repo=self.repo,
            workflow_failures=self.workflow_failures(sample_runs),
            pull_requests=self.open_pull_requests(),
            environments=self.environment_deployments(),
        )
