from defrag.config import (
    DEFAULT_DAYS_STALE,
    DEFAULT_GITHUB_RUNS,
    DEFAULT_WORKFLOWS_PATH,
    DefragConfig,
)
from defrag.log_output.log import set_log_is
from defrag.workflow_graph.builder import DefragBuilder
import argparse
import sys

# コマンドライン引数のデフォルト値
ROOT_PATH = "."  # リポジトリのルートパス
WORKFLOWS_PATH = DEFAULT_WORKFLOWS_PATH  # ルートからのワークフローディレクトリ
DAYS_STALE = DEFAULT_DAYS_STALE  # この日数を超えて更新がなければstale
GITHUB_RUNS = DEFAULT_GITHUB_RUNS  # 失敗率の算出に使う直近の実行数
DRY_RUN = True  # repo-autofixでファイルを書き換えないか

# ログ出力の設定、TrueかFalseを指定できます
SET_LOG_IS = True


def str_to_bool(value: str) -> bool:
    """--dry-run=false のような真偽値の引数を解釈する"""
    if value.lower() in ("true", "t", "yes", "y", "1"):
        return True
    if value.lower() in ("false", "f", "no", "n", "0"):
        return False
    raise argparse.ArgumentTypeError(f"真偽値を指定してください: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="defrag",
        description="GitHub Actionsのワークフローを解析し、レポートと自動修正を行います",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="ログ出力を抑制します",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # repo-defrag
    defrag = subparsers.add_parser(
        "repo-defrag",
        help="ワークフローの衛生状態をレポートします",
    )
    defrag.add_argument("-p", "--path", type=str, default=ROOT_PATH,
                        help="リポジトリのルートパス（デフォルト:.）")
    defrag.add_argument("--workflows", type=str, default=WORKFLOWS_PATH,
                        help="ルートからのワークフローディレクトリ（デフォルト:.github/workflows）")
    defrag.add_argument("--days-stale", type=int, default=DAYS_STALE,
                        help="この日数を超えて更新がなければstaleとみなします（デフォルト:60）")
    defrag.add_argument("--github-owner", type=str, default=None,
                        help="GitHubのowner/org（任意）")
    defrag.add_argument("--github-repo", type=str, default=None,
                        help="GitHubのリポジトリ名（任意）")
    defrag.add_argument("--github-token", type=str, default=None,
                        help="GitHub APIトークン（環境変数GITHUB_TOKENも使えます）")
    defrag.add_argument("--github-runs", type=int, default=GITHUB_RUNS,
                        help="失敗率の算出に使う直近のワークフロー実行数（デフォルト:20）")
    defrag.add_argument("--json", dest="json_out", type=str, default=None,
                        help="JSONレポートの出力先（任意）")
    defrag.add_argument("--md", dest="md_out", type=str, default=None,
                        help="Markdownレポートの出力先（任意）")
    defrag.add_argument("--plan", dest="plan_out", type=str, default=None,
                        help="クリーンアッププラン（Markdown）の出力先（任意）")

    # repo-autofix
    autofix = subparsers.add_parser(
        "repo-autofix",
        help="concurrencyの追加とよく使うアクションのピン留めを自動で行います",
    )
    autofix.add_argument("-p", "--path", type=str, default=ROOT_PATH,
                         help="リポジトリのルートパス（デフォルト:.）")
    autofix.add_argument("--workflows", type=str, default=WORKFLOWS_PATH,
                         help="ルートからのワークフローディレクトリ（デフォルト:.github/workflows）")
    autofix.add_argument("--dry-run", type=str_to_bool, nargs="?", const=True, default=DRY_RUN,
                         help="Trueならファイルを書き換えません。--dry-run=falseで書き込みます（デフォルト:true）")
    autofix.add_argument("--patch", dest="patch_out", type=str, default=None,
                         help="unified diffパッチの出力先（任意）")
    autofix.add_argument("--json", dest="json_output", action="store_true",
                         help="結果をJSONで出力します")
    return parser


def config_from_args(args: argparse.Namespace) -> DefragConfig:
    if args.command == "repo-defrag":
        return DefragConfig.from_env(
            root_path=args.path,
            workflows_path=args.workflows,
            days_stale=args.days_stale,
            github_owner=args.github_owner,
            github_repo=args.github_repo,
            github_token=args.github_token,
            github_runs=args.github_runs,
            json_out=args.json_out,
            md_out=args.md_out,
            plan_out=args.plan_out,
        )
    return DefragConfig.from_env(
        root_path=args.path,
        workflows_path=args.workflows,
        dry_run=args.dry_run,
        patch_out=args.patch_out,
        json_output=args.json_output,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    set_log_is(SET_LOG_IS and not args.quiet)

    config = config_from_args(args)
    mode = "defrag" if args.command == "repo-defrag" else "autofix"

    builder = DefragBuilder()
    final_state = builder.run(config, mode=mode)

    # 最終的な出力を表示（autofixの--jsonでは標準出力をJSONだけにする）
    if not (mode == "autofix" and config.json_output):
        print(final_state)

    # ワークフローディレクトリを読めなかったときだけ失敗扱い
    return 1 if final_state.finish_is else 0


# 実行方法:
# poetry run defrag repo-defrag --path . --json report.json --md report.md --plan plan.md
# poetry run defrag repo-autofix --path . --dry-run=false --patch fixes.patch
if __name__ == "__main__":
    sys.exit(main())
