# workflow_analyzer.py
from datetime import datetime
from defrag.analysis.analyzer import analyze_workflow
from defrag.analysis.reporter import aggregate
from defrag.tools.history import git_last_modified
from defrag.workflow_graph.state import DefragState
from defrag.log_output.log import log
from typing import Any, Callable
import time


class WorkflowAnalyzer:
    """読み込んだワークフローを抽出・解析し、リポジトリ全体を集計するクラス"""
    def __init__(self, history_lookup: Callable[[str], datetime | None] = git_last_modified):
        """
        Args:
            history_lookup: パスから最終更新日時を返す関数（既定はgitの履歴）
        """
        self.history_lookup = history_lookup

    def __call__(self, state: DefragState) -> dict[str, Any]:
        start_time = time.time()
        config = state.config

        analyzed = []
        for source in state.sources:
            last_modified = self.history_lookup(source.path)
            workflow = analyze_workflow(source.path, source.text, last_modified, config, state.generated_at)
            if workflow.facts.parse_mode == "fallback":
                log("warning", f"{source.path}はYAMLとして解釈できないため、テキスト走査で解析しました")
            analyzed.append(workflow)

        # レポートの順序はパス順で固定する
        analyzed.sort(key=lambda w: w.source_path)
        summary = aggregate(analyzed, config.days_stale, state.generated_at)
        log("info", summary.summary())

        elapsed = time.time() - start_time
        log("info", f"WorkflowAnalyzer実行時間: {elapsed:.2f}秒")
        return {
            "analyzed_workflows": analyzed,
            "summary": summary,
            "execution_time": state.execution_time + elapsed,
            "prev_node": "workflow_analyzer",
            "node_history": ["workflow_analyzer"],
        }
