from datetime import datetime, timezone
from langgraph.graph import END, StateGraph
from defrag.config import DefragConfig
from defrag.tools.history import git_last_modified
from defrag.workflow_graph.state import DefragState
from defrag.workflow_graph.nodes.workflow_scanner import WorkflowScanner
from defrag.workflow_graph.nodes.workflow_analyzer import WorkflowAnalyzer
from defrag.workflow_graph.nodes.github_enricher import GitHubEnricher, default_client_factory
from defrag.workflow_graph.nodes.report_writer import ReportWriter
from defrag.workflow_graph.nodes.workflow_autofixer import WorkflowAutofixer
from defrag.workflow_graph.nodes.patch_writer import PatchWriter
from defrag.log_output.log import log
import time

class DefragBuilder:
    def __init__(self,
        history_lookup=git_last_modified,
        client_factory=default_client_factory,
        ):
        # 各種ノードの初期化
        self.workflow_scanner = WorkflowScanner()
        self.workflow_analyzer = WorkflowAnalyzer(history_lookup=history_lookup)
        self.github_enricher = GitHubEnricher(client_factory=client_factory)
        self.report_writer = ReportWriter()
        self.workflow_autofixer = WorkflowAutofixer()
        self.patch_writer = PatchWriter()
        # グラフの作成
        self.graph = self._build()

    def _build(self) -> StateGraph:
        # グラフの初期化
        workflow = StateGraph(DefragState)
        # ノードの追加
        workflow.add_node("workflow_scanner", self.workflow_scanner)
        workflow.add_node("workflow_analyzer", self.workflow_analyzer)
        workflow.add_node("github_enricher", self.github_enricher)
        workflow.add_node("report_writer", self.report_writer)
        workflow.add_node("workflow_autofixer", self.workflow_autofixer)
        workflow.add_node("patch_writer", self.patch_writer)

        # エントリーポイントの設定
        workflow.set_entry_point("workflow_scanner")

        # 読み込みに失敗したら終了、それ以外はモードで分岐
        workflow.add_conditional_edges(
            "workflow_scanner",
            self._next_after_scan,
            {"end": END, "defrag": "workflow_analyzer", "autofix": "workflow_autofixer"},
        )
        # repo-defrag
        workflow.add_edge("workflow_analyzer", "github_enricher")
        workflow.add_edge("github_enricher", "report_writer")
        workflow.add_edge("report_writer", END)
        # repo-autofix
        workflow.add_edge("workflow_autofixer", "patch_writer")
        workflow.add_edge("patch_writer", END)

        # グラフのコンパイル
        return workflow.compile()

    def _next_after_scan(self, state: DefragState) -> str:
        if state.finish_is:
            log("warning", "グラフの分岐：ワークフローを読み込めなかったため終了します")
            return "end"
        return state.mode

    def run(self, config: DefragConfig, mode: str = "defrag",
            generated_at: datetime | None = None) -> DefragState:
        """グラフの実行を開始するメソッド
        Inputs:
            config (DefragConfig): 実行設定
            mode (str): "defrag"（レポート）か"autofix"（自動修正）
            generated_at (datetime | None): stale判定の基準時刻（省略時は現在時刻）
        Returns:
            DefragState: 最終的な状態
        """
        initial_state = DefragState(
            config=config,
            mode=mode,
            generated_at=generated_at or datetime.now(timezone.utc),
        )
        start_time = time.time()
        final_state = self.graph.invoke(initial_state)

        elapsed_time = time.time() - start_time
        log("info", f"{mode}の実行が完了しました。総実行時間: {elapsed_time:.2f}秒")

        return DefragState(**final_state)
