"""
修正前後のテキストから差分を作るモジュール。

最小編集距離の差分ではなく、同じ行番号どうしを比較するだけの単純な差分:
- 同じ行番号で一致 -> コンテキスト行
- 同じ行番号で不一致 -> 削除行の直後に追加行
- 長さの差の部分 -> 末尾に削除行のみ、または追加行のみ
ファイル全体を1つのハンクとして出力する。
"""
from defrag.models import DiffHunk, DiffLine, DiffPatch


def diff(original: str, fixed: str, from_path: str, to_path: str | None = None) -> DiffPatch:
    """
    Args:
        original (str): 修正前のテキスト
        fixed (str): 修正後のテキスト
        from_path (str): 修正前のパスのラベル（--- a/<path>）
        to_path (str|None): 修正後のパスのラベル（+++ b/<path>）。省略時はfrom_pathと同じ

    Returns:
        DiffPatch: 1つのハンクを持つ差分
    """
    orig_lines = original.split("\n")
    fixed_lines = fixed.split("\n")
    lines = []
    for i in range(max(len(orig_lines), len(fixed_lines))):
        if i < len(orig_lines) and i < len(fixed_lines):
            if orig_lines[i] == fixed_lines[i]:
                lines.append(DiffLine(kind="context", text=orig_lines[i]))
            else:
                lines.append(DiffLine(kind="removed", text=orig_lines[i]))
                lines.append(DiffLine(kind="added", text=fixed_lines[i]))
        elif i < len(orig_lines):
            lines.append(DiffLine(kind="removed", text=orig_lines[i]))
        else:
            lines.append(DiffLine(kind="added", text=fixed_lines[i]))
    hunk = DiffHunk(
        original_line_count=len(orig_lines),
        fixed_line_count=len(fixed_lines),
        lines=lines,
    )
    return DiffPatch(from_path=from_path, to_path=to_path or from_path, hunks=[hunk])


def apply_patch(original: str, patch: DiffPatch) -> str:
    """
    差分を元のテキストに適用して修正後のテキストを返す。
    削除行・コンテキスト行が元のテキストと一致しない場合はValueError。
    """
    orig_lines = original.split("\n")
    result = []
    pos = 0
    for hunk in patch.hunks:
        for line in hunk.lines:
            if line.kind == "added":
                result.append(line.text)
                continue
            if pos >= len(orig_lines) or orig_lines[pos] != line.text:
                raise ValueError(f"patch does not apply at line {pos + 1} of {patch.from_path}")
            if line.kind == "context":
                result.append(line.text)
            pos += 1
    result.extend(orig_lines[pos:])
    return "\n".join(result)


def render_patch(patch: DiffPatch) -> str:
    """unified diff形式のテキストにする"""
    out = [f"--- a/{patch.from_path}", f"+++ b/{patch.to_path}"]
    for hunk in patch.hunks:
        out.append(f"@@ -1,{hunk.original_line_count} +1,{hunk.fixed_line_count} @@")
        out.extend(f"{line.prefix}{line.text}" for line in hunk.lines)
    return "\n".join(out) + "\n"
