# patch_writer.py
from defrag.autofix.diff import render_patch
from defrag.workflow_graph.nodes.report_writer import write_text
from defrag.workflow_graph.state import DefragState
from defrag.log_output.log import log
from typing import Any
import json
import time


def autofix_result(state: DefragState) -> dict[str, Any]:
    """repo-autofix --json で出力する結果"""
    count = len(state.file_fixes)
    if state.config.dry_run:
        message = f"Dry run complete. {count} files would be modified."
    else:
        message = f"Applied fixes to {count} files."
    result = {
        "success": state.final_status != "error",
        "dry_run": state.config.dry_run,
        "files_modified": count,
        "message": message,
    }
    if state.config.patch_out:
        result["patch_file"] = state.config.patch_out
    return result


class PatchWriter:
    """変更があったファイルの差分を1つのパッチファイルにまとめて書き出すクラス"""

    def __call__(self, state: DefragState) -> dict[str, Any]:
        start_time = time.time()
        config = state.config

        patches = [render_patch(f.patch) for f in state.file_fixes if f.patch is not None]
        written = []
        status = "success"
        if config.patch_out and patches:
            if write_text(config.patch_out, "\n".join(patches)):
                written.append(config.patch_out)
                log("success", f"Wrote patch to {config.patch_out}")
            else:
                status = "error"

        state = state.model_copy(update={"final_status": status})
        if config.json_output:
            print(json.dumps(autofix_result(state), indent=2, ensure_ascii=False))
        else:
            log("info", autofix_result(state)["message"])
            if config.dry_run:
                log("info", "Run with --dry-run=false to apply changes.")

        elapsed = time.time() - start_time
        log("info", f"PatchWriter実行時間: {elapsed:.2f}秒")
        return {
            "final_status": status,
            "written_paths": written,
            "execution_time": state.execution_time + elapsed,
            "prev_node": "patch_writer",
            "node_history": ["patch_writer"],
        }
