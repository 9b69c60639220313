"""
ワークフローYAMLからWorkflowFactsを抽出するモジュール。

1. extract_structured: PyYAMLでデコードした文書をノードに変換してたどる
2. extract_fallback: YAMLとして読めない場合に、生のテキストを行単位・正規表現で走査する

extractは1を試し、パースエラーや使えるマッピングがない場合に2へ切り替える。
どちらも例外を投げず、整形式のYAMLでは同じ結果（トリガー・ランナー・concurrency・未固定アクション）になる。
"""
import yaml
from defrag.models import UnpinnedAction, WorkflowFacts
from defrag.parsing.document import (
    DocNode,
    MappingNode,
    as_list,
    as_mapping,
    as_text,
    to_node,
)
from defrag.parsing.patterns import (
    CRON_RE,
    DOC_SEPARATOR_RE,
    FLOW_USES_RE,
    KNOWN_TRIGGERS,
    LIST_ITEM_RE,
    NAME_RE,
    USES_RE,
    block_scalar_text,
    indent_of,
    is_block_scalar_header,
    is_comment_or_blank,
    is_local_action,
    is_unpinned,
    key_of,
    mask_block_scalars,
    match_key,
    split_flow_list,
    strip_comment,
    unquote,
)


def extract(raw_text: str) -> WorkflowFacts:
    """
    ワークフロー文書のテキストからWorkflowFactsを抽出する。

    Args:
        raw_text (str): ワークフローファイルの内容

    Returns:
        WorkflowFacts: 抽出結果（parse_modeにstructured/fallbackのどちらを使ったかが入る）
    """
    root = load_workflow_document(raw_text)
    if root is None:
        return extract_fallback(raw_text)
    return extract_structured(root)


# ---------- 構造化パース ----------

def _looks_like_workflow(doc: dict) -> bool:
    # YAML 1.1ではクォートなしの`on`はTrueとしてデコードされる
    return "on" in doc or True in doc or "jobs" in doc


def load_workflow_document(raw_text: str) -> MappingNode | None:
    """
    複数文書を順に読み、on/jobsを持つ最初のマッピングを返す。
    見つからなければ最初のマッピング、マッピングが1つもないかパースに失敗した場合はNone。
    """
    selected = None
    try:
        for doc in yaml.safe_load_all(raw_text):
            if not isinstance(doc, dict):
                continue
            if _looks_like_workflow(doc):
                return as_mapping(to_node(doc))
            if selected is None:
                selected = doc
        if selected is None:
            return None
        return as_mapping(to_node(selected))
    except (yaml.YAMLError, ValueError, RecursionError):
        # 構文エラー・不正なスカラー・再帰したアンカーはフォールバックで扱う
        return None


def extract_structured(root: MappingNode) -> WorkflowFacts:
    on = root.get("on")
    return WorkflowFacts(
        name=as_text(root.get("name")) or None,
        triggers=_triggers_from_node(on),
        schedules=_schedules_from_node(on),
        runners=_runners_from_jobs(root),
        has_concurrency=_has_concurrency(root),
        unpinned_actions=_unpinned_from_jobs(root),
        parse_mode="structured",
    )


def _triggers_from_node(on: DocNode | None) -> list[str]:
    if on is None:
        return []
    if on.kind == "scalar":
        candidates = [on.value] if on.value else []
    elif on.kind == "list":
        candidates = [item.value for item in on.items if item.kind == "scalar" and item.value]
    else:
        candidates = on.keys()
    # フォールバックと同じく、GitHub Actionsのイベント名だけをトリガーとする
    return [c.strip() for c in candidates if c.strip() in KNOWN_TRIGGERS]


def _schedules_from_node(on: DocNode | None) -> list[str]:
    on_map = as_mapping(on)
    if on_map is None:
        return []
    schedules = []
    for entry in as_list(on_map.get("schedule")):
        cron = as_text(as_mapping(entry).get("cron")) if as_mapping(entry) else None
        if cron:
            schedules.append(cron.strip())
    return schedules


def _jobs(root: MappingNode) -> list[tuple[str, MappingNode]]:
    jobs = as_mapping(root.get("jobs"))
    if jobs is None:
        return []
    return [(name, job) for name, job in jobs.entries if job.kind == "mapping"]


def _labels_from_node(node: DocNode | None) -> list[str]:
    if node is None:
        return []
    if node.kind == "scalar":
        return [node.value.strip()] if node.value and node.value.strip() else []
    if node.kind == "list":
        return [item.value.strip() for item in node.items if item.kind == "scalar" and item.value and item.value.strip()]
    # runs-on: {group: ..., labels: ...} の形式はlabelsだけを見る
    return _labels_from_node(node.get("labels"))


def _runners_from_jobs(root: MappingNode) -> list[str]:
    runners = []
    for _, job in _jobs(root):
        runners.extend(_labels_from_node(job.get("runs-on")))
    return runners


def _has_concurrency(root: MappingNode) -> bool:
    if root.has("concurrency"):
        return True
    return any(job.has("concurrency") for _, job in _jobs(root))


def _unpinned_from_jobs(root: MappingNode) -> list[UnpinnedAction]:
    found = []
    for job_name, job in _jobs(root):
        # 再利用ワークフローの呼び出し（jobs.<job>.uses）もステップと同じ基準で判定する
        uses = as_text(job.get("uses"))
        if uses and is_unpinned(uses):
            found.append(UnpinnedAction(job=job_name, reference=uses.strip()))
        for step in as_list(job.get("steps")):
            step_map = as_mapping(step)
            if step_map is None:
                continue
            uses = as_text(step_map.get("uses"))
            if uses and is_unpinned(uses):
                found.append(UnpinnedAction(job=job_name, reference=uses.strip()))
    return found


# ---------- フォールバック（テキスト走査） ----------

def extract_fallback(raw_text: str) -> WorkflowFacts:
    lines = raw_text.split("\n")
    # run: | などのスクリプト本文は、キーやusesの行として読まない
    masked = mask_block_scalars(lines)
    return WorkflowFacts(
        name=_fallback_name(lines, masked),
        triggers=_fallback_triggers(masked),
        schedules=_fallback_schedules(masked),
        runners=_fallback_runners(lines, masked),
        has_concurrency=detect_concurrency_fallback(raw_text),
        unpinned_actions=_fallback_unpinned(masked),
        parse_mode="fallback",
    )


def _fallback_name(lines: list[str], masked: list[str]) -> str | None:
    for i, line in enumerate(masked):
        if is_comment_or_blank(line):
            continue
        m = NAME_RE.match(line)
        if m:
            value = m.group(1)
            if is_block_scalar_header(value):
                name = block_scalar_text(lines, i).strip()
            else:
                name = unquote(strip_comment(value))
            if name:
                return name
    return None


def _flow_mapping_keys(value: str) -> list[str]:
    """`{push: {...}, pull_request}`のトップレベルのキーを返す"""
    inner = value.strip()[1:-1]
    parts, buf, depth = [], "", 0
    for ch in inner:
        if ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(buf)
            buf = ""
        else:
            buf += ch
    parts.append(buf)
    return [unquote(part.split(":", 1)[0]) for part in parts if part.strip()]


def _on_line_index(lines: list[str]) -> int | None:
    for i, line in enumerate(lines):
        m = match_key(line)
        if m and not m.group("indent") and not m.group("item") and key_of(m) == "on":
            return i
    return None


def _child_lines(lines: list[str], index: int, parent_indent: int) -> list[tuple[int, str]]:
    """index行目のキーにぶら下がる行を(行番号, 行)で返す（コメント・空行を除く）"""
    children = []
    for offset, line in enumerate(lines[index + 1:], start=index + 1):
        if is_comment_or_blank(line):
            continue
        if DOC_SEPARATOR_RE.match(line):
            break
        ind = indent_of(line)
        if ind > parent_indent or (ind == parent_indent and LIST_ITEM_RE.match(line)):
            children.append((offset, line))
        else:
            break
    return children


def _fallback_triggers(lines: list[str]) -> list[str]:
    candidates = []
    on_index = _on_line_index(lines)
    if on_index is not None:
        value = strip_comment(match_key(lines[on_index]).group("value") or "")
        flow = split_flow_list(value)
        if flow is not None:
            candidates = flow
        elif value.startswith("{"):
            candidates = _flow_mapping_keys(value)
        elif value:
            candidates = [unquote(value)]
        else:
            children = _child_lines(lines, on_index, 0)
            child_indent = indent_of(children[0][1]) if children else 0
            for _, line in children:
                if indent_of(line) != child_indent:
                    continue
                item = LIST_ITEM_RE.match(line)
                if item:
                    candidates.append(unquote(strip_comment(item.group("value"))))
                    continue
                m = match_key(line)
                if m:
                    candidates.append(key_of(m))
    else:
        # onの行が見つからない場合は、既知のイベント名がキーとして現れるかだけを見る
        for line in lines:
            m = match_key(line)
            if m:
                candidates.append(key_of(m))
    return [c for c in candidates if c in KNOWN_TRIGGERS]


def _fallback_schedules(lines: list[str]) -> list[str]:
    schedules = []
    for line in lines:
        if is_comment_or_blank(line):
            continue
        for m in CRON_RE.finditer(line):
            cron = strip_comment(m.group(1)).strip()
            if cron:
                schedules.append(cron)
    return schedules


def _runner_values(lines: list[str], index: int, value: str | None) -> list[str]:
    value = strip_comment(value or "")
    if is_block_scalar_header(value):
        # runs-on: >- の本文をそのままラベルとして読む
        label = block_scalar_text(lines, index).strip()
        return [label] if label else []
    if value:
        flow = split_flow_list(value)
        if flow is not None:
            return flow
        if value.startswith("{"):
            return []
        label = unquote(value)
        return [label] if label else []

    children = _child_lines(lines, index, indent_of(lines[index]))
    if not children:
        return []
    child_indent = indent_of(children[0][1])
    if LIST_ITEM_RE.match(children[0][1]):
        labels = []
        for _, line in children:
            item = LIST_ITEM_RE.match(line)
            if item and indent_of(line) == child_indent:
                label = unquote(strip_comment(item.group("value")))
                if label:
                    labels.append(label)
        return labels
    # group/labelsのマッピング形式
    for offset, line in children:
        if indent_of(line) != child_indent:
            continue
        m = match_key(line)
        if m and key_of(m) == "labels":
            return _runner_values(lines, offset, m.group("value"))
    return []


def _fallback_runners(lines: list[str], masked: list[str]) -> list[str]:
    runners = []
    for i, line in enumerate(masked):
        m = match_key(line)
        if m and key_of(m) == "runs-on":
            runners.extend(_runner_values(lines, i, m.group("value")))
    return runners


def detect_concurrency_fallback(raw_text: str) -> bool:
    """
    コメント以外の行で、最初のコロンより前（trim後、クォートを外したもの）がconcurrencyならTrue。
    ブロックスカラーの本文の行は見ない。
    """
    for line in mask_block_scalars(raw_text.split("\n")):
        trim = line.strip()
        if trim == "" or trim.startswith("#") or ":" not in trim:
            continue
        if unquote(trim.split(":", 1)[0]) == "concurrency":
            return True
    return False


def _fallback_unpinned(lines: list[str]) -> list[UnpinnedAction]:
    found = []
    in_jobs = False
    job_indent = None
    current_job = None
    for line in lines:
        if is_comment_or_blank(line):
            continue
        if DOC_SEPARATOR_RE.match(line):
            in_jobs, job_indent, current_job = False, None, None
            continue
        ind = indent_of(line)
        m = match_key(line)
        if ind == 0 and not LIST_ITEM_RE.match(line):
            in_jobs = bool(m and key_of(m) == "jobs")
            job_indent, current_job = None, None
        elif in_jobs and m and not m.group("item"):
            if job_indent is None:
                job_indent = ind
            if ind == job_indent:
                current_job = key_of(m)

        uses = USES_RE.match(line)
        # `- {name: x, uses: a/b}` や `steps: [{uses: a/b}]` のフロー形式
        matches = [uses] if uses else list(FLOW_USES_RE.finditer(line))
        for match in matches:
            action, ref = match.group("action"), match.group("ref")
            if is_local_action(action):
                continue
            reference = f"{action}@{ref}" if ref else action
            if is_unpinned(reference):
                found.append(UnpinnedAction(job=current_job, reference=reference))
    return found
