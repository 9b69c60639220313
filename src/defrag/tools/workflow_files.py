import os
from pydantic import BaseModel
from defrag.log_output.log import log

WORKFLOW_EXTENSIONS = (".yml", ".yaml")


class WorkflowSource(BaseModel):
    path: str
    text: str


def list_workflow_files(workflows_dir: str) -> list[str]:
    """
    ワークフローディレクトリ直下のYAMLファイルをパス順に返す（隠しファイル・サブディレクトリは対象外）。

    Raises:
        OSError: ディレクトリが読めない場合
    """
    paths = []
    for entry in sorted(os.listdir(workflows_dir)):
        full = os.path.join(workflows_dir, entry)
        if entry.startswith(".") or os.path.isdir(full):
            continue
        if entry.endswith(WORKFLOW_EXTENSIONS):
            paths.append(full)
    return paths


def read_workflow_sources(paths: list[str]) -> tuple[list[WorkflowSource], list[str]]:
    """
    ファイルを読み込む。読めないファイルは警告を出してスキップし、スキップしたパスとして返す。

    Returns:
        tuple[list[WorkflowSource], list[str]]: (読み込めたファイル, スキップしたパス)
    """
    sources, skipped = [], []
    for path in paths:
        try:
            with open(path, encoding="utf-8", newline="") as f:
                sources.append(WorkflowSource(path=path, text=f.read()))
        except (OSError, UnicodeDecodeError) as e:
            log("warning", f"{path}を読み込めないためスキップします: {e}")
            skipped.append(path)
    return sources, skipped
