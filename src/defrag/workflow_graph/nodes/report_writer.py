# report_writer.py
from defrag.analysis.render import render_cleanup_plan, render_json, render_markdown
from defrag.analysis.reporter import build_report
from defrag.workflow_graph.state import DefragState
from defrag.log_output.log import log
from typing import Any
import time


def write_text(path: str, content: str) -> bool:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        log("error", f"{path}に書き込めませんでした: {e}")
        return False
    return True


class ReportWriter:
    """レポートを組み立て、指定された出力先にJSON・Markdown・クリーンアッププランを書き出すクラス"""

    def __call__(self, state: DefragState) -> dict[str, Any]:
        start_time = time.time()
        config = state.config

        report = build_report(state.analyzed_workflows, config, state.generated_at, state.github)

        outputs = [
            (config.json_out, render_json, "JSON report"),
            (config.md_out, render_markdown, "Markdown report"),
            (config.plan_out, render_cleanup_plan, "Cleanup Plan"),
        ]
        written = []
        status = "success"
        for path, render, label in outputs:
            if not path:
                continue
            if write_text(path, render(report)):
                log("success", f"Wrote {label} to {path}")
                written.append(path)
            else:
                status = "error"

        elapsed = time.time() - start_time
        log("info", f"ReportWriter実行時間: {elapsed:.2f}秒")
        return {
            "report": report,
            "final_status": status,
            "written_paths": written,
            "execution_time": state.execution_time + elapsed,
            "prev_node": "report_writer",
            "node_history": ["report_writer"],
        }
