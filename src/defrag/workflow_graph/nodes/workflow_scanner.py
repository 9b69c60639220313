# workflow_scanner.py
from defrag.tools.workflow_files import list_workflow_files, read_workflow_sources
from defrag.workflow_graph.state import DefragState
from defrag.log_output.log import log
from typing import Any
import time


class WorkflowScanner:
    """ワークフローディレクトリからYAMLファイルを集めて読み込むクラス"""

    def __call__(self, state: DefragState) -> dict[str, Any]:
        start_time = time.time()
        workflows_dir = state.config.workflows_dir

        try:
            paths = list_workflow_files(workflows_dir)
        except OSError as e:
            log("error", f"ワークフローディレクトリを読み込めません: {workflows_dir}: {e}")
            return {
                "final_status": "error",
                "finish_is": True,
                "execution_time": state.execution_time + time.time() - start_time,
                "prev_node": "workflow_scanner",
                "node_history": ["workflow_scanner"],
            }

        sources, skipped = read_workflow_sources(paths)
        log("info", f"{workflows_dir}から{len(sources)}件のワークフローを読み込みました")

        elapsed = time.time() - start_time
        log("info", f"WorkflowScanner実行時間: {elapsed:.2f}秒")
        return {
            "sources": sources,
            "skipped_paths": skipped,
            "execution_time": state.execution_time + elapsed,
            "prev_node": "workflow_scanner",
            "node_history": ["workflow_scanner"],
        }
