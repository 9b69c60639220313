"""
WorkflowFactsから非推奨ヒントと推奨事項を導くモジュール。I/Oは行わない。
ヒント・推奨事項はルールの評価順に並べ、後からソートしない。
"""
from datetime import datetime, timedelta, timezone
from defrag.config import DEFAULT_DAYS_STALE, DefragConfig
from defrag.models import AnalyzedWorkflow, WorkflowFacts
from defrag.parsing.workflow_parser import extract

# ランナーラベル -> ヒント
DEPRECATED_RUNNERS = {
    "ubuntu-20.04": "ubuntu-20.04 is retired; use ubuntu-24.04",
    "ubuntu-22.04": "Consider ubuntu-24.04",
    "macos-12": "macos-12 deprecated; use macos-13/14/15",
    "windows-2019": "windows-2019 is retired; use windows-2022 or windows-2025",
}
SELF_HOSTED_HINT = "Ensure self-hosted runner labels are specific; add timeouts/concurrency"
MANY_SCHEDULES_HINT = "Too many schedules; consider consolidation"
MANY_TRIGGERS_HINT = "Many triggers; check for overlap with other workflows"
MAX_SCHEDULES = 5
MAX_TRIGGERS = 5

STALE_RECOMMENDATION = "Stale: review necessity or update tooling pins"
PIN_RECOMMENDATION = "Pin actions to specific tags or SHAs"
CONCURRENCY_RECOMMENDATION = "Add 'concurrency' to avoid duplicate runs on busy repos"
RUNS_ON_RECOMMENDATION = "Specify runs-on for each job explicitly"


def is_stale(timestamp: datetime | None, days_stale: int, now: datetime | None = None) -> bool:
    """timestampから現在までの経過がdays_stale日を超えていればTrue。Noneは判定できないのでFalse"""
    if timestamp is None:
        return False
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return now - timestamp > timedelta(days=days_stale)


def detect_deprecated(facts: WorkflowFacts) -> list[str]:
    hints = []
    for runner in facts.runners:
        if runner in DEPRECATED_RUNNERS:
            hints.append(DEPRECATED_RUNNERS[runner])
        if runner == "self-hosted":
            hints.append(SELF_HOSTED_HINT)
    if len(set(facts.schedules)) > MAX_SCHEDULES:
        hints.append(MANY_SCHEDULES_HINT)
    if len(facts.triggers) > MAX_TRIGGERS:
        hints.append(MANY_TRIGGERS_HINT)
    return hints


def recommend(facts: WorkflowFacts, last_modified: datetime | None = None,
              days_stale: int = DEFAULT_DAYS_STALE, now: datetime | None = None) -> list[str]:
    recommendations = []
    if is_stale(last_modified, days_stale, now):
        recommendations.append(STALE_RECOMMENDATION)
    if facts.uses_unpinned_action:
        recommendations.append(PIN_RECOMMENDATION)
    if not facts.has_concurrency:
        recommendations.append(CONCURRENCY_RECOMMENDATION)
    if not facts.runners:
        recommendations.append(RUNS_ON_RECOMMENDATION)
    return recommendations


def analyze(facts: WorkflowFacts, last_modified: datetime | None = None,
            days_stale: int = DEFAULT_DAYS_STALE, now: datetime | None = None) -> tuple[list[str], list[str]]:
    """
    非推奨ヒントと推奨事項を返す。

    Args:
        facts (WorkflowFacts): 抽出結果
        last_modified (datetime|None): 最終更新日時。Noneならstaleの推奨事項は出さない
        days_stale (int): staleとみなす日数
        now (datetime|None): 基準時刻（省略時は現在時刻）

    Returns:
        tuple[list[str], list[str]]: (deprecated_hints, recommendations)
    """
    return detect_deprecated(facts), recommend(facts, last_modified, days_stale, now)


def analyze_workflow(source_path: str, raw_text: str, last_modified: datetime | None = None,
                     config: DefragConfig | None = None, now: datetime | None = None) -> AnalyzedWorkflow:
    """1つのワークフロー文書を抽出・解析してAnalyzedWorkflowを返す"""
    config = config or DefragConfig()
    facts = extract(raw_text)
    hints, recommendations = analyze(facts, last_modified, config.days_stale, now)
    return AnalyzedWorkflow(
        source_path=source_path,
        facts=facts,
        deprecated_hints=hints,
        recommendations=recommendations,
        last_modified=last_modified,
    )
