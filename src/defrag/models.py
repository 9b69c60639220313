from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field, field_validator

"""
ワークフロー解析・自動修正で受け渡すデータ構造をまとめたPydanticモデル。
どれも1回の実行ごとに入力テキストから作られ、永続化はしない。
"""

class UnpinnedAction(BaseModel):
    """固定されていないアクション参照（ジョブ名と参照文字列）"""
    job: str | None = Field(None, description="参照しているジョブ名（特定できない場合はNone）")
    reference: str = Field(..., description="usesに書かれた参照（例: actions/checkout@main）")

    def detail(self) -> str:
        if self.job is None:
            return f"uses:{self.reference}"
        return f"job:{self.job} uses:{self.reference}"

    def __str__(self):
        return self.detail()


class WorkflowFacts(BaseModel):
    """1つのワークフロー文書から抽出した正規化済みの情報"""
    name: str | None = Field(None, description="ワークフロー名")
    triggers: list[str] = Field(default_factory=list, description="トリガーイベント名（重複なし・ソート済み）")
    schedules: list[str] = Field(default_factory=list, description="cron式（宣言順）")
    runners: list[str] = Field(default_factory=list, description="runs-onで参照されるランナーラベル（重複なし・ソート済み）")
    has_concurrency: bool = Field(False, description="ワークフローまたはいずれかのジョブにconcurrencyがあるか")
    unpinned_actions: list[UnpinnedAction] = Field(default_factory=list, description="固定されていないアクション参照（初出順）")
    parse_mode: Literal["structured", "fallback"] = Field("structured", description="抽出に使った方式")

    @field_validator("triggers", "runners")
    @classmethod
    def _dedupe_sorted(cls, value: list[str]) -> list[str]:
        return sorted(set(value))

    @property
    def uses_unpinned_action(self) -> bool:
        return bool(self.unpinned_actions)

    def unpinned_details(self) -> list[str]:
        return [u.detail() for u in self.unpinned_actions]

    def summary(self) -> str:
        lines = [
            f"名前: {self.name or 'なし'}",
            f"トリガー: {', '.join(self.triggers) or 'なし'}",
            f"スケジュール: {', '.join(self.schedules) or 'なし'}",
            f"ランナー: {', '.join(self.runners) or 'なし'}",
            f"concurrency: {self.has_concurrency}",
            f"未固定アクション: {'; '.join(self.unpinned_details()) or 'なし'}",
            f"抽出方式: {self.parse_mode}",
        ]
        return "\n".join(lines)


class AnalyzedWorkflow(BaseModel):
    """抽出結果に解析結果（非推奨ヒント・推奨事項）を付けたもの"""
    source_path: str = Field(..., description="ワークフローファイルのパス")
    facts: WorkflowFacts
    deprecated_hints: list[str] = Field(default_factory=list, description="非推奨ランナーなどのヒント（ルール評価順）")
    recommendations: list[str] = Field(default_factory=list, description="推奨事項（ルール評価順）")
    last_modified: datetime | None = Field(None, description="gitの履歴から得た最終更新日時")

    def __repr__(self):
        return f"AnalyzedWorkflow={{source_path={self.source_path}, facts={self.facts!r}, deprecated_hints={self.deprecated_hints}, recommendations={self.recommendations}}}"


class RepositorySummary(BaseModel):
    """リポジトリ全体の集計値。並列に集計した部分結果は + で合算できる"""
    workflow_count: int = 0
    workflows_stale: int = 0
    workflows_with_unpinned: int = 0
    workflows_without_concurrency: int = 0

    def __add__(self, other: "RepositorySummary") -> "RepositorySummary":
        return RepositorySummary(
            workflow_count=self.workflow_count + other.workflow_count,
            workflows_stale=self.workflows_stale + other.workflows_stale,
            workflows_with_unpinned=self.workflows_with_unpinned + other.workflows_with_unpinned,
            workflows_without_concurrency=self.workflows_without_concurrency + other.workflows_without_concurrency,
        )

    def summary(self) -> str:
        return (
            f"Workflows: {self.workflow_count}, Stale: {self.workflows_stale}, "
            f"Unpinned: {self.workflows_with_unpinned}, NoConcurrency: {self.workflows_without_concurrency}"
        )


class FixResult(BaseModel):
    """自動修正の結果。元のテキストは書き換えない"""
    changed: bool = Field(False, description="修正が発生したか")
    fixed_text: str = Field(..., description="修正後のテキスト（変更なしなら元のテキスト）")
    applied: list[str] = Field(default_factory=list, description="適用した修正の名前（適用順）")


class DiffLine(BaseModel):
    kind: Literal["context", "removed", "added"]
    text: str

    @property
    def prefix(self) -> str:
        return {"context": " ", "removed": "-", "added": "+"}[self.kind]


class DiffHunk(BaseModel):
    original_line_count: int
    fixed_line_count: int
    lines: list[DiffLine] = Field(default_factory=list)


class DiffPatch(BaseModel):
    """修正前後のテキストの差分（行番号を揃えた単純比較）"""
    from_path: str
    to_path: str
    hunks: list[DiffHunk] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any(line.kind != "context" for hunk in self.hunks for line in hunk.lines)
