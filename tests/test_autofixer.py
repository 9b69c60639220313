from defrag.autofix.autofixer import add_concurrency_block, fix, pin_common_actions
from defrag.parsing.workflow_parser import extract

CONCURRENCY_TEXT = (
    "\n"
    "concurrency:\n"
    "  group: ${{ github.workflow }}-${{ github.ref }}\n"
    "  cancel-in-progress: true\n"
)


def test_fix_example_workflow():
    text = "on: [push]\njobs:\n  build:\n    runs-on: ubuntu-22.04\n    steps:\n      - uses: actions/checkout\n"
    result = fix(text)
    assert result.changed is True
    assert result.applied == ["concurrency", "pin:actions/checkout@v4"]
    # nameがないのでon:の直前に入る
    assert result.fixed_text == (
        CONCURRENCY_TEXT
        + "on: [push]\njobs:\n  build:\n    runs-on: ubuntu-22.04\n    steps:\n      - uses: actions/checkout@v4\n"
    )
    facts = extract(result.fixed_text)
    assert facts.has_concurrency is True
    assert facts.uses_unpinned_action is False


def test_fix_is_idempotent():
    texts = [
        "name: CI\non: push\njobs:\n  a:\n    runs-on: ubuntu-latest\n    steps:\n      - uses: actions/setup-go@master\n",
        "on: push\njobs:\n  a:\n    runs-on: ubuntu-latest\n",
        "name: >-\n  long\n  name\non: push\njobs: {}\n",
    ]
    for text in texts:
        once = fix(text)
        assert once.changed is True
        twice = fix(once.fixed_text)
        assert twice.changed is False
        assert twice.fixed_text == once.fixed_text
        assert twice.applied == []


def test_concurrency_after_name():
    text = "name: CI\non: push\njobs: {}\n"
    fixed, inserted = add_concurrency_block(text)
    assert inserted is True
    assert fixed == "name: CI\n" + CONCURRENCY_TEXT + "on: push\njobs: {}\n"


def test_concurrency_after_multiline_name():
    text = "name: >-\n  long\n  name\non: push\njobs: {}\n"
    fixed, _ = add_concurrency_block(text)
    assert fixed == "name: >-\n  long\n  name\n" + CONCURRENCY_TEXT + "on: push\njobs: {}\n"


def test_concurrency_name_on_last_line_without_newline():
    fixed, inserted = add_concurrency_block("on: push\nname: CI")
    assert inserted is True
    assert fixed == "on: push\nname: CI\n" + CONCURRENCY_TEXT.rstrip("\n")


def test_no_insertion_point_is_left_alone():
    # nameもonもない文書には挿入しない
    text = "jobs:\n  a:\n    runs-on: ubuntu-latest\n"
    result = fix(text)
    assert result.changed is False
    assert result.fixed_text == text
    assert result.applied == []


def test_existing_concurrency_is_kept():
    text = "name: CI\non: push\njobs:\n  a:\n    concurrency: a\n    runs-on: ubuntu-latest\n"
    assert fix(text).changed is False


def test_pinned_refs_are_untouched():
    text = (
        "      - uses: actions/checkout@v3\n"
        "      - uses: actions/cache@main\n"
        "      - uses: \"docker/login-action@latest\"  # login\n"
        "      - uses: some/other-action@main\n"
        "      # - uses: actions/setup-node@main\n"
    )
    fixed, applied = pin_common_actions(text)
    assert fixed == (
        "      - uses: actions/checkout@v3\n"
        "      - uses: actions/cache@v4\n"
        "      - uses: \"docker/login-action@v3\"  # login\n"
        "      - uses: some/other-action@main\n"
        "      # - uses: actions/setup-node@main\n"
    )
    assert applied == ["pin:actions/cache@v4", "pin:docker/login-action@v3"]


def test_crlf_is_preserved():
    text = "name: CI\r\non: push\r\njobs:\r\n  a:\r\n    runs-on: ubuntu-latest\r\n    steps:\r\n      - uses: actions/checkout@main\r\n"
    result = fix(text)
    assert result.changed is True
    assert result.fixed_text.count("\n") == result.fixed_text.count("\r\n")
    assert "concurrency:\r\n" in result.fixed_text
    assert "      - uses: actions/checkout@v4\r\n" in result.fixed_text
    assert fix(result.fixed_text).changed is False


def test_fix_malformed_yaml():
    text = "name: Broken\non: [push]\njobs:\n  build:\n    runs-on: ubuntu-latest\n    steps:\n      - uses: actions/checkout@main\n    env: [unclosed\n"
    result = fix(text)
    assert result.applied == ["concurrency", "pin:actions/checkout@v4"]
    assert result.fixed_text.startswith("name: Broken\n" + CONCURRENCY_TEXT + "on: [push]\n")
    assert fix(result.fixed_text).changed is False


def test_multi_document_inserts_into_workflow_document():
    text = "name: defaults\nfoo: bar\n---\nname: CI\non: push\njobs: {}\n"
    result = fix(text)
    assert result.fixed_text == "name: defaults\nfoo: bar\n---\nname: CI\n" + CONCURRENCY_TEXT + "on: push\njobs: {}\n"


SCRIPT_WORKFLOW = """on: push
concurrency: ci
jobs:
  a:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout
      - run: |
          cat <<YAML > generated.yml
          - uses: actions/checkout
          - uses: actions/cache@main
          YAML
      - uses: actions/cache@main
"""


def test_block_scalar_script_is_untouched():
    text, applied = pin_common_actions(SCRIPT_WORKFLOW)
    assert applied == ["pin:actions/checkout@v4", "pin:actions/cache@v4"]
    lines = text.split("\n")
    assert lines[6] == "      - uses: actions/checkout@v4"
    # run: | の本文はスクリプトなので書き換えない
    assert lines[9:12] == [
        "          - uses: actions/checkout",
        "          - uses: actions/cache@main",
        "          YAML",
    ]
    assert lines[12] == "      - uses: actions/cache@v4"


def test_fix_keeps_script_lines():
    result = fix(SCRIPT_WORKFLOW)
    original = SCRIPT_WORKFLOW.split("\n")
    fixed = result.fixed_text.split("\n")
    assert fixed[7:12] == original[7:12]
    assert fix(result.fixed_text).changed is False
