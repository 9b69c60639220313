from datetime import datetime, timedelta, timezone
from defrag.analysis.analyzer import (
    CONCURRENCY_RECOMMENDATION,
    MANY_SCHEDULES_HINT,
    MANY_TRIGGERS_HINT,
    PIN_RECOMMENDATION,
    RUNS_ON_RECOMMENDATION,
    SELF_HOSTED_HINT,
    STALE_RECOMMENDATION,
    analyze,
    analyze_workflow,
    detect_deprecated,
    is_stale,
    recommend,
)
from defrag.config import DefragConfig
from defrag.models import UnpinnedAction, WorkflowFacts

NOW = datetime(2026, 10, 1, tzinfo=timezone.utc)


def test_is_stale():
    assert is_stale(None, 60, NOW) is False
    assert is_stale(NOW - timedelta(days=61), 60, NOW) is True
    # ちょうどdays_stale日はまだstaleではない
    assert is_stale(NOW - timedelta(days=60), 60, NOW) is False
    # タイムゾーンなしの日時はUTCとして扱う
    assert is_stale(datetime(2026, 1, 1), 60, NOW) is True


def test_detect_deprecated_runners():
    facts = WorkflowFacts(runners=["ubuntu-22.04", "self-hosted", "ubuntu-latest"])
    # runnersはソート済みなのでヒントもその順
    assert detect_deprecated(facts) == [SELF_HOSTED_HINT, "Consider ubuntu-24.04"]
    assert detect_deprecated(WorkflowFacts(runners=["ubuntu-24.04"])) == []


def test_detect_deprecated_many_schedules_and_triggers():
    facts = WorkflowFacts(
        triggers=["push", "pull_request", "schedule", "workflow_dispatch", "release", "issues"],
        schedules=[f"{i} 0 * * *" for i in range(6)],
    )
    assert detect_deprecated(facts) == [MANY_SCHEDULES_HINT, MANY_TRIGGERS_HINT]

    # 同じcronが繰り返されているだけならまとめすぎとはみなさない
    facts = WorkflowFacts(schedules=["0 0 * * *"] * 6)
    assert detect_deprecated(facts) == []


def test_recommend_order():
    facts = WorkflowFacts(
        triggers=["push"],
        unpinned_actions=[UnpinnedAction(job="build", reference="actions/checkout")],
    )
    recs = recommend(facts, NOW - timedelta(days=90), 60, NOW)
    assert recs == [STALE_RECOMMENDATION, PIN_RECOMMENDATION, CONCURRENCY_RECOMMENDATION, RUNS_ON_RECOMMENDATION]


def test_recommend_clean_workflow():
    facts = WorkflowFacts(triggers=["push"], runners=["ubuntu-24.04"], has_concurrency=True)
    assert recommend(facts, NOW - timedelta(days=1), 60, NOW) == []
    # 最終更新日時が分からなければstaleの推奨は出さない
    assert recommend(facts, None, 60, NOW) == []


def test_analyze_returns_hints_and_recommendations():
    facts = WorkflowFacts(runners=["ubuntu-22.04"], has_concurrency=True)
    hints, recs = analyze(facts, now=NOW)
    assert hints == ["Consider ubuntu-24.04"]
    assert recs == []


def test_analyze_workflow_example():
    text = "on: [push]\njobs:\n  build:\n    runs-on: ubuntu-22.04\n    steps:\n      - uses: actions/checkout\n"
    workflow = analyze_workflow(".github/workflows/ci.yml", text, None, DefragConfig(), NOW)
    assert workflow.source_path == ".github/workflows/ci.yml"
    assert workflow.deprecated_hints == ["Consider ubuntu-24.04"]
    assert workflow.recommendations == [PIN_RECOMMENDATION, CONCURRENCY_RECOMMENDATION]
    assert workflow.last_modified is None


def test_analyze_workflow_uses_configured_days_stale():
    text = "on: push\nconcurrency: ci\njobs:\n  a:\n    runs-on: ubuntu-24.04\n"
    last = NOW - timedelta(days=10)
    assert analyze_workflow("a.yml", text, last, DefragConfig(days_stale=5), NOW).recommendations == [STALE_RECOMMENDATION]
    assert analyze_workflow("a.yml", text, last, DefragConfig(days_stale=30), NOW).recommendations == []
