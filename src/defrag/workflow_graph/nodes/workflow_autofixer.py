# workflow_autofixer.py
from defrag.autofix.autofixer import fix
from defrag.autofix.diff import diff
from defrag.workflow_graph.state import DefragState, FileFix
from defrag.log_output.log import log
from typing import Any
import os
import time


class WorkflowAutofixer:
    """
    各ワークフローに自動修正（concurrencyの追加・アクションのピン留め）を適用するクラス。
    dry_runでなければ修正後のテキストをファイルに書き戻す。
    """

    def __call__(self, state: DefragState) -> dict[str, Any]:
        start_time = time.time()
        config = state.config

        file_fixes = []
        skipped = []
        for source in state.sources:
            result = fix(source.text)
            if not result.changed:
                continue
            file_name = os.path.basename(source.path)
            written = False
            if config.dry_run:
                log("info", f"[DRY RUN] Would fix: {file_name} ({', '.join(result.applied)})")
            else:
                try:
                    with open(source.path, "w", encoding="utf-8", newline="") as f:
                        f.write(result.fixed_text)
                    written = True
                    log("success", f"Fixed: {file_name} ({', '.join(result.applied)})")
                except OSError as e:
                    log("warning", f"{source.path}に書き込めないためスキップします: {e}")
                    skipped.append(source.path)
                    continue
            file_fixes.append(FileFix(
                path=source.path,
                file_name=file_name,
                result=result,
                patch=diff(source.text, result.fixed_text, file_name),
                written=written,
            ))

        elapsed = time.time() - start_time
        log("info", f"WorkflowAutofixer実行時間: {elapsed:.2f}秒")
        return {
            "file_fixes": file_fixes,
            "skipped_paths": skipped,
            "execution_time": state.execution_time + elapsed,
            "prev_node": "workflow_autofixer",
            "node_history": ["workflow_autofixer"],
        }
