import pytest
from defrag.autofix.autofixer import fix
from defrag.autofix.diff import apply_patch, diff, render_patch


def test_diff_replaced_and_added_lines():
    patch = diff("a\nb\nc", "a\nB\nc\nd", "ci.yml")
    assert patch.from_path == "ci.yml"
    assert patch.to_path == "ci.yml"
    assert patch.has_changes is True
    hunk = patch.hunks[0]
    assert (hunk.original_line_count, hunk.fixed_line_count) == (3, 4)
    assert [(line.kind, line.text) for line in hunk.lines] == [
        ("context", "a"),
        ("removed", "b"),
        ("added", "B"),
        ("context", "c"),
        ("added", "d"),
    ]
    assert render_patch(patch) == "--- a/ci.yml\n+++ b/ci.yml\n@@ -1,3 +1,4 @@\n a\n-b\n+B\n c\n+d\n"


def test_diff_removed_tail():
    patch = diff("a\nb\nc", "a", "ci.yml", "ci-fixed.yml")
    assert [(line.kind, line.text) for line in patch.hunks[0].lines] == [
        ("context", "a"),
        ("removed", "b"),
        ("removed", "c"),
    ]
    assert render_patch(patch).startswith("--- a/ci.yml\n+++ b/ci-fixed.yml\n@@ -1,3 +1,1 @@\n")
    assert apply_patch("a\nb\nc", patch) == "a"


def test_diff_identical_text():
    patch = diff("x\ny\n", "x\ny\n", "ci.yml")
    assert patch.has_changes is False
    assert apply_patch("x\ny\n", patch) == "x\ny\n"


def test_apply_patch_reproduces_autofix():
    texts = [
        "on: [push]\njobs:\n  build:\n    runs-on: ubuntu-22.04\n    steps:\n      - uses: actions/checkout\n",
        "name: CI\r\non: push\r\njobs:\r\n  a:\r\n    steps:\r\n      - uses: actions/cache@latest\r\n",
        "name: CI\non: push",
    ]
    for text in texts:
        result = fix(text)
        patch = diff(text, result.fixed_text, "ci.yml")
        assert apply_patch(text, patch) == result.fixed_text


def test_apply_patch_rejects_other_text():
    patch = diff("a\nb", "a\nc", "ci.yml")
    with pytest.raises(ValueError):
        apply_patch("a\nx", patch)
