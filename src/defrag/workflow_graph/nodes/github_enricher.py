# github_enricher.py
from defrag.analysis.reporter import fold_enrichment
from defrag.config import DefragConfig
from defrag.tools.github import GitHubAPIError, GitHubClient
from defrag.workflow_graph.state import DefragState
from defrag.log_output.log import log
from pydantic import ValidationError
from typing import Any, Callable
import requests
import time


def default_client_factory(config: DefragConfig) -> GitHubClient:
    return GitHubClient(
        owner=config.github_owner,
        repo=config.github_repo,
        token=config.github_token,
        timeout=config.github_timeout,
    )


class GitHubEnricher:
    """
    GitHub APIからワークフローの失敗率・PR・環境を取得してレポートに追加するクラス。
    取得に失敗しても警告を出すだけで、ワークフローの解析結果はそのまま使う。
    """
    def __init__(self, client_factory: Callable[[DefragConfig], GitHubClient] = default_client_factory):
        self.client_factory = client_factory

    def __call__(self, state: DefragState) -> dict[str, Any]:
        start_time = time.time()
        config = state.config

        github = None
        if config.github_enabled:
            log("info", f"GitHub APIから{config.github_owner}/{config.github_repo}の情報を取得します")
            try:
                client = self.client_factory(config)
                enrichment = client.enrich(config.github_runs)
                github = fold_enrichment(enrichment, config.days_stale, state.generated_at)
                log("success", github.summary())
            except (GitHubAPIError, requests.RequestException, ValidationError) as e:
                log("warning", f"GitHub enrichment failed: {e}")
        else:
            log("info", "GitHubのowner/repo/tokenが揃っていないため、GitHub APIによる追加情報はスキップされました")

        elapsed = time.time() - start_time
        log("info", f"GitHubEnricher実行時間: {elapsed:.2f}秒")
        return {
            "github": github,
            "execution_time": state.execution_time + elapsed,
            "prev_node": "github_enricher",
            "node_history": ["github_enricher"],
        }
