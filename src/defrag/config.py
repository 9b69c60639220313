"""
実行設定を保持するモジュール。
プロセス全体のグローバル変数ではなく、DefragConfigを各処理に明示的に渡す。
"""
import os
from pydantic import BaseModel, ConfigDict, Field
from dotenv import load_dotenv

DEFAULT_WORKFLOWS_PATH = ".github/workflows"
DEFAULT_DAYS_STALE = 60
DEFAULT_GITHUB_RUNS = 20
DEFAULT_GITHUB_TIMEOUT = 15.0


class DefragConfig(BaseModel):
    """repo-defrag / repo-autofix の実行設定（イミュータブル）"""
    model_config = ConfigDict(frozen=True)

    root_path: str = Field(".", description="リポジトリのルートパス")
    workflows_path: str = Field(DEFAULT_WORKFLOWS_PATH, description="ルートからのワークフローディレクトリの相対パス")
    days_stale: int = Field(DEFAULT_DAYS_STALE, ge=0, description="この日数を超えて更新がなければstaleとみなす")

    # GitHub APIによる追加情報（owner, repo, tokenが揃ったときのみ有効）
    github_owner: str | None = Field(None, description="GitHubのowner/org")
    github_repo: str | None = Field(None, description="GitHubのリポジトリ名")
    github_token: str | None = Field(None, description="GitHub APIトークン")
    github_runs: int = Field(DEFAULT_GITHUB_RUNS, ge=1, description="失敗率の算出に使う直近のワークフロー実行数")
    github_timeout: float = Field(DEFAULT_GITHUB_TIMEOUT, gt=0, description="GitHub APIリクエストのタイムアウト（秒）")

    # repo-defragの出力先
    json_out: str | None = Field(None, description="JSONレポートの出力先")
    md_out: str | None = Field(None, description="Markdownレポートの出力先")
    plan_out: str | None = Field(None, description="クリーンアッププラン（Markdown）の出力先")

    # repo-autofixの設定
    dry_run: bool = Field(True, description="Trueならファイルを書き換えない")
    patch_out: str | None = Field(None, description="unified diffパッチの出力先")
    json_output: bool = Field(False, description="autofixの結果をJSONで標準出力に出すか")

    @property
    def workflows_dir(self) -> str:
        return os.path.join(self.root_path, self.workflows_path)

    @property
    def github_enabled(self) -> bool:
        return bool(self.github_owner and self.github_repo and self.github_token)

    @classmethod
    def from_env(cls, **overrides) -> "DefragConfig":
        """
        .envと環境変数からGITHUB_TOKENを読み込み、overridesで上書きした設定を返す。
        値がNoneのoverrideは無視する（未指定のコマンドライン引数を既定値で埋めるため）。
        """
        load_dotenv()
        values = {"github_token": os.environ.get("GITHUB_TOKEN") or None}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
