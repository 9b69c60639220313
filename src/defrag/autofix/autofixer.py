"""
ワークフローのテキストに安全な自動修正を適用するモジュール。

- concurrencyブロックの挿入（concurrencyがない場合のみ）
- よく使うアクションの未固定参照を推奨バージョンに固定

どちらもテキストを行単位で書き換えるだけなので、YAMLとして読めない文書にも適用できる。
2回適用しても結果は変わらない（冪等）。
"""
from defrag.models import FixResult
from defrag.parsing.patterns import (
    MUTABLE_REFS,
    USES_RE,
    block_scalar_lines,
    is_comment_or_blank,
    is_top_level_key,
    indent_of,
    select_workflow_span,
)
from defrag.parsing.workflow_parser import extract

# アクション名 -> 推奨バージョン
RECOMMENDED_PINS = {
    "actions/checkout": "v4",
    "actions/setup-go": "v5",
    "actions/setup-node": "v4",
    "actions/setup-python": "v5",
    "actions/cache": "v4",
    "actions/upload-artifact": "v4",
    "actions/download-artifact": "v4",
    "docker/setup-buildx-action": "v3",
    "docker/login-action": "v3",
    "docker/build-push-action": "v5",
}

CONCURRENCY_BLOCK = [
    "",
    "concurrency:",
    "  group: ${{ github.workflow }}-${{ github.ref }}",
    "  cancel-in-progress: true",
]


def _concurrency_insert_index(lines: list[str]) -> int | None:
    """
    ワークフロー文書のトップレベルのname:の直後、なければon:の直前の行番号を返す。
    どちらもなければ挿入位置を推測せずNoneを返す。
    """
    start, end = select_workflow_span(lines)
    for i in range(start, end):
        if is_top_level_key(lines[i], "name"):
            # name: >- のような複数行の値は、インデントされた継続行の後ろに入れる
            last = i
            for j in range(i + 1, end):
                if is_comment_or_blank(lines[j]):
                    continue
                if indent_of(lines[j]) > 0:
                    last = j
                    continue
                break
            return last + 1
    for i in range(start, end):
        if is_top_level_key(lines[i], "on"):
            return i
    return None


def add_concurrency_block(text: str) -> tuple[str, bool]:
    lines = text.split("\n")
    index = _concurrency_insert_index(lines)
    if index is None:
        return text, False
    # CRLFの文書には同じ改行で挿入する
    eol = "\r" if lines[0].endswith("\r") else ""
    block = [line + eol for line in CONCURRENCY_BLOCK]
    if index == len(lines):
        # 末尾に改行がない文書の最終行がnameの場合は、最後の行に改行を移す
        lines[-1] += eol
        block[-1] = CONCURRENCY_BLOCK[-1]
    return "\n".join(lines[:index] + block + lines[index:]), True


def pin_common_actions(text: str) -> tuple[str, list[str]]:
    """
    RECOMMENDED_PINSのアクションで、@refがないか可変な参照のものを推奨バージョンに書き換える。
    それ以外のタグ・SHAで固定されている参照は変更しない。

    Returns:
        tuple[str, list[str]]: (書き換え後のテキスト, 適用したピン留めの一覧)
    """
    lines = text.split("\n")
    # run: | などのスクリプト本文は書き換えない
    scripts = block_scalar_lines(lines)
    applied = []
    for i, line in enumerate(lines):
        if i in scripts or is_comment_or_blank(line):
            continue
        m = USES_RE.match(line)
        if not m:
            continue
        action, ref = m.group("action"), m.group("ref")
        version = RECOMMENDED_PINS.get(action)
        if version is None or (ref is not None and ref not in MUTABLE_REFS):
            continue
        quote = m.group("quote")
        lines[i] = f"{m.group('lead')}{quote}{action}@{version}{quote}{m.group('tail')}"
        pin = f"pin:{action}@{version}"
        if pin not in applied:
            applied.append(pin)
    return "\n".join(lines), applied


def fix(raw_text: str) -> FixResult:
    """
    concurrencyの挿入とアクションのピン留めを適用する。例外は投げない。

    Args:
        raw_text (str): ワークフローファイルの内容

    Returns:
        FixResult: changed=Falseなら修正なし（fixed_textは元のテキスト）
    """
    result = raw_text
    applied = []

    # YAMLとして読めない場合もextractがテキスト走査で判定する
    if not extract(raw_text).has_concurrency:
        result, inserted = add_concurrency_block(result)
        if inserted:
            applied.append("concurrency")

    result, pins = pin_common_actions(result)
    applied.extend(pins)

    changed = result != raw_text
    return FixResult(changed=changed, fixed_text=result, applied=applied if changed else [])
