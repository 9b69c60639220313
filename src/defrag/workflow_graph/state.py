from datetime import datetime, timezone
import operator
from typing import Annotated, Literal, Optional
from pydantic import BaseModel, Field
from defrag.analysis.reporter import DefragReport, GitHubReport
from defrag.config import DefragConfig
from defrag.models import AnalyzedWorkflow, DiffPatch, FixResult, RepositorySummary
from defrag.tools.workflow_files import WorkflowSource

"""
repo-defrag / repo-autofix の状態（State）を管理するためのPydanticモデル。
LangGraphのグラフ構築時に各ノード間で受け渡すデータ構造として利用。
"""

class FileFix(BaseModel):
    """1ファイル分の自動修正結果"""
    path: str = Field(..., description="ワークフローファイルのパス")
    file_name: str = Field(..., description="パッチのヘッダーに使うファイル名")
    result: FixResult
    patch: DiffPatch | None = Field(None, description="変更があった場合の差分")
    written: bool = Field(False, description="ファイルに書き込んだか（dry_runならFalse）")

    def summary(self) -> str:
        return f"{self.file_name}: {', '.join(self.result.applied) or '変更なし'}"


class DefragState(BaseModel):
    """
    グラフの進行状況や各ノード間で共有する情報を保持するPydanticモデル。
    """
    config: DefragConfig = Field(..., description="実行設定")
    mode: Literal["defrag", "autofix"] = Field("defrag", description="repo-defrag（レポート）かrepo-autofix（自動修正）か")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="実行日時（stale判定の基準時刻）")
    final_status: str | None = Field(None, description="最終的な状態（success/error）")
    execution_time: float = Field(0, description="実行にかかった時間（秒）")
    finish_is: bool = Field(False, description="以降のノードを実行せずに終了するかどうかのフラグ")

    prev_node: Optional[str] = Field(None, description="前のノードの名前")
    node_history: Annotated[list[str], operator.add] = Field(
        default_factory=list, description="グラフ上の通った順番のノードのリスト"
    )

    # workflow_scannerで設定されるフィールド
    sources: list[WorkflowSource] = Field(default_factory=list, description="読み込んだワークフローファイル")
    skipped_paths: Annotated[list[str], operator.add] = Field(
        default_factory=list, description="読み込み・解析できずにスキップしたファイル"
    )

    # workflow_analyzerで設定されるフィールド
    analyzed_workflows: list[AnalyzedWorkflow] = Field(default_factory=list, description="解析済みワークフロー（パス順）")
    summary: RepositorySummary | None = Field(None, description="リポジトリ全体の集計")

    # github_enricherで設定されるフィールド
    github: GitHubReport | None = Field(None, description="GitHub APIによる追加情報")

    # report_writerで設定されるフィールド
    report: DefragReport | None = Field(None, description="レポート")

    # workflow_autofixerで設定されるフィールド
    file_fixes: list[FileFix] = Field(default_factory=list, description="変更があったファイルの修正結果")

    # report_writer / patch_writerで設定されるフィールド
    written_paths: Annotated[list[str], operator.add] = Field(
        default_factory=list, description="書き出したファイルのパス"
    )

    def summary_text(self) -> str:
        BLUE = "\033[34m"
        RESET = "\033[0m"
        result = (
            f"{BLUE}モード:{RESET} {self.mode}\n"
            f"{BLUE}ノード履歴:{RESET} {' -> '.join(self.node_history)}\n"
            f"{BLUE}ワークフローディレクトリ:{RESET} {self.config.workflows_dir}\n"
        )
        if self.summary is not None:
            result += f"{BLUE}集計:{RESET} {self.summary.summary()}\n"
        if self.github is not None:
            result += f"{BLUE}GitHub:{RESET} {self.github.summary()}\n"
        if self.file_fixes:
            result += f"{BLUE}自動修正:{RESET}\n"
            for fix in self.file_fixes:
                result += f"  {fix.summary()}\n"
        if self.skipped_paths:
            result += f"{BLUE}スキップ:{RESET} {', '.join(self.skipped_paths)}\n"
        return result

    def __str__(self):
        return self.summary_text()
