"""
構造化パースとフォールバック（テキスト走査）、自動修正で共通に使う判定と正規表現。
"""
import re

# 可変な参照（ブランチ名など）。これらに向いたusesは固定されていないとみなす
MUTABLE_REFS = ("main", "master", "HEAD", "latest")
MUTABLE_REF_RE = re.compile(r"^[^@]+@(main|master|HEAD|latest)$")

LOCAL_ACTION_PREFIXES = ("./", "../", "docker://")

# フォールバックでトリガーとして認識するGitHub Actionsのイベント名
KNOWN_TRIGGERS = (
    "branch_protection_rule",
    "check_run",
    "check_suite",
    "create",
    "delete",
    "deployment",
    "deployment_status",
    "discussion",
    "discussion_comment",
    "fork",
    "gollum",
    "issue_comment",
    "issues",
    "label",
    "merge_group",
    "milestone",
    "page_build",
    "project",
    "project_card",
    "project_column",
    "public",
    "pull_request",
    "pull_request_review",
    "pull_request_review_comment",
    "pull_request_target",
    "push",
    "registry_package",
    "release",
    "repository_dispatch",
    "schedule",
    "status",
    "watch",
    "workflow_call",
    "workflow_dispatch",
    "workflow_run",
)

# 行の先頭の「キー: 値」。キーはクォートされていてもよい
KEY_LINE_RE = re.compile(r"""^(?P<indent>[ \t]*)(?P<item>-[ \t]+)?(?P<key>"[^"]*"|'[^']*'|[^\s'"#:][^:#]*?)[ \t]*:(?:[ \t]+(?P<value>.*?))?[ \t]*\r?$""")
LIST_ITEM_RE = re.compile(r"^(?P<indent>[ \t]*)-[ \t]+(?P<value>.*?)[ \t]*\r?$")
NAME_RE = re.compile(r"^\s*name:\s*(.+?)\s*$")
CRON_RE = re.compile(r"""(?:^|[\s\-{,])cron:\s*['"]?([^'"\n]+)""")
USES_RE = re.compile(r"""^(?P<lead>[ \t]*(?:-[ \t]+)?(?:uses|"uses"|'uses'):[ \t]+)(?P<quote>['"]?)(?P<action>[^@\s'"#]+)(?:@(?P<ref>[^\s'"#]+))?(?P=quote)(?P<tail>[ \t]*(?:#.*)?\r?)$""")
DOC_SEPARATOR_RE = re.compile(r"^(---|\.\.\.)(\s.*)?\r?$")
# フローマッピングのステップ `- {name: x, uses: a/b@v1}` の中のuses
FLOW_USES_RE = re.compile(r"""[{,][ \t]*(?:uses|"uses"|'uses'):[ \t]*(?P<quote>['"]?)(?P<action>[^@\s'"#,{}]+)(?:@(?P<ref>[^\s'"#,{}]+))?(?P=quote)[ \t]*(?=[,}])""")
# ブロックスカラーのヘッダー（| や >- 、|2 など）
BLOCK_SCALAR_RE = re.compile(r"^[|>][-+1-9]{0,2}$")


def is_local_action(uses: str) -> bool:
    """ローカルのアクションやコンテナ参照はピン留めの判定対象外"""
    return uses.strip().startswith(LOCAL_ACTION_PREFIXES)


def is_unpinned(uses: str) -> bool:
    """
    @refがない、または可変な参照を指している場合にTrue。
    ローカル参照と、式（${{ }}）で決まる参照は判定できないので常にFalse
    """
    uses = uses.strip()
    if not uses or is_local_action(uses) or "${{" in uses:
        return False
    return "@" not in uses or bool(MUTABLE_REF_RE.match(uses))


def is_comment_or_blank(line: str) -> bool:
    trim = line.strip()
    return trim == "" or trim.startswith("#")


def indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def strip_comment(value: str) -> str:
    """クォートの外にある` #`以降のコメントを取り除く"""
    quote = None
    for i, ch in enumerate(value):
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "#" and (i == 0 or value[i - 1] in " \t"):
            return value[:i].rstrip()
    return value.strip()


def unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def split_flow_list(value: str) -> list[str] | None:
    """`[a, 'b']`形式なら要素のリストを、そうでなければNoneを返す"""
    value = value.strip()
    if not (value.startswith("[") and value.endswith("]")):
        return None
    items = []
    for token in value[1:-1].split(","):
        token = unquote(token)
        if token:
            items.append(token)
    return items


def match_key(line: str):
    """コメント・空行でなければ「キー: 値」の行をマッチさせる"""
    if is_comment_or_blank(line):
        return None
    return KEY_LINE_RE.match(line)


def key_of(match) -> str:
    return unquote(match.group("key"))


def is_top_level_key(line: str, *keys: str) -> bool:
    m = match_key(line)
    return bool(m and not m.group("indent") and not m.group("item") and key_of(m) in keys)


def is_block_scalar_header(value: str | None) -> bool:
    """`|`、`>-`、`|2` のようなブロックスカラーの開始ならTrue"""
    return bool(value) and bool(BLOCK_SCALAR_RE.match(strip_comment(value)))


def _block_header_value(line: str) -> str | None:
    m = match_key(line)
    if m:
        return m.group("value")
    item = LIST_ITEM_RE.match(line)
    if item and not is_comment_or_blank(line):
        return item.group("value")
    return None


def block_scalar_body(lines: list[str], index: int) -> list[int]:
    """
    index行目がブロックスカラー（`run: |` など）のヘッダーなら本文の行番号を返す。
    本文はヘッダー行よりインデントが深い行が続く間（途中の空行を含む）。
    """
    if not is_block_scalar_header(_block_header_value(lines[index])):
        return []
    parent = indent_of(lines[index])
    body = []
    for i in range(index + 1, len(lines)):
        if lines[i].strip() == "":
            body.append(i)
            continue
        if indent_of(lines[i]) <= parent:
            break
        body.append(i)
    while body and lines[body[-1]].strip() == "":
        body.pop()
    return body


def block_scalar_lines(lines: list[str]) -> set[int]:
    """全てのブロックスカラーの本文の行番号。行単位の走査ではこれらの行を読まない"""
    inside = set()
    for i in range(len(lines)):
        if i in inside:
            continue
        inside.update(block_scalar_body(lines, i))
    return inside


def mask_block_scalars(lines: list[str]) -> list[str]:
    """ブロックスカラーの本文を空行に置き換えたコピー（行番号は変わらない）"""
    inside = block_scalar_lines(lines)
    return ["" if i in inside else line for i, line in enumerate(lines)]


def block_scalar_text(lines: list[str], index: int) -> str:
    """ブロックスカラーの本文を値として読む（> は空白で、| は改行でつなぐ）"""
    body = [lines[i].strip() for i in block_scalar_body(lines, index) if lines[i].strip()]
    header = strip_comment(_block_header_value(lines[index]) or "")
    return (" " if header.startswith(">") else "\n").join(body)


def document_spans(lines: list[str]) -> list[tuple[int, int]]:
    """`---`で区切られた各YAML文書の行範囲 [start, end) を返す"""
    spans = []
    start = 0
    for i, line in enumerate(lines):
        if DOC_SEPARATOR_RE.match(line):
            if i > start:
                spans.append((start, i))
            start = i + 1
    if start < len(lines):
        spans.append((start, len(lines)))
    return spans or [(0, len(lines))]


def select_workflow_span(lines: list[str]) -> tuple[int, int]:
    """トップレベルにon/jobsを持つ最初の文書を選ぶ。なければ最初の文書"""
    spans = document_spans(lines)
    for start, end in spans:
        if any(is_top_level_key(line, "on", "jobs") for line in lines[start:end]):
            return start, end
    for start, end in spans:
        if any(not is_comment_or_blank(line) for line in lines[start:end]):
            return start, end
    return spans[0]
