import pytest
import requests
from datetime import datetime, timezone
from pydantic import ValidationError
from defrag.config import DefragConfig
from defrag.tools.github import GitHubAPIError, GitHubClient
from defrag.workflow_graph.nodes.github_enricher import GitHubEnricher
from defrag.workflow_graph.state import DefragState

BASE = "https://api.github.com/repos/octo/demo"


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    """URLごとに決めたレスポンスを返すrequests.Sessionの代わり"""
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers, timeout))
        response = self.responses.get(url)
        if isinstance(response, Exception):
            raise response
        return response or FakeResponse(404, text="Not Found")


def _client(responses):
    session = FakeSession(responses)
    return GitHubClient("octo", "demo", "secret", timeout=3.0, session=session), session


def test_enrich():
    client, session = _client({
        f"{BASE}/actions/workflows": FakeResponse(200, {"workflows": [
            {"id": 1, "name": "CI"},
            {"id": 2, "name": "Nightly"},
        ]}),
        f"{BASE}/actions/workflows/1/runs?per_page=4": FakeResponse(200, {"workflow_runs": [
            {"conclusion": "failure"},
            {"conclusion": "success"},
            {"conclusion": "cancelled"},
            {"conclusion": "success"},
        ]}),
        # Nightlyの実行履歴は取得できない（404）のでスキップされる
        f"{BASE}/pulls?state=open&per_page=100": FakeResponse(200, [{
            "number": 7,
            "title": "Bump deps",
            "user": {"login": "alice"},
            "draft": True,
            "updated_at": "2026-01-02T03:04:05Z",
            "head": {"sha": "abc123"},
        }]),
        f"{BASE}/environments": FakeResponse(200, {"environments": [{"name": "prod env"}, {"name": "staging"}]}),
        f"{BASE}/deployments?per_page=1&environment=prod%20env": FakeResponse(200, [{"updated_at": "2026-09-30T00:00:00Z"}]),
        f"{BASE}/deployments?per_page=1&environment=staging": FakeResponse(200, []),
    })
    enrichment = client.enrich(4)

    assert enrichment.owner == "octo"
    assert enrichment.repo == "demo"
    assert len(enrichment.workflow_failures) == 1
    failure = enrichment.workflow_failures[0]
    assert failure.name == "CI"
    assert failure.workflow_id == 1
    assert failure.sampled_runs == 4
    assert failure.failure_rate == 0.5
    assert failure.recent_failure is True

    pr = enrichment.pull_requests[0]
    assert pr.number == 7
    assert pr.author == "alice"
    assert pr.draft is True
    assert pr.head_sha == "abc123"
    assert pr.updated_at == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    assert [env.name for env in enrichment.environments] == ["prod env", "staging"]
    assert enrichment.environments[0].last_deployed == datetime(2026, 9, 30, tzinfo=timezone.utc)
    assert enrichment.environments[1].last_deployed is None

    # 認証ヘッダーとタイムアウトが全リクエストに付く
    for _, headers, timeout in session.calls:
        assert headers["Authorization"] == "token secret"
        assert headers["Accept"] == "application/vnd.github+json"
        assert timeout == 3.0


def test_unauthorized():
    client, _ = _client({f"{BASE}/actions/workflows": FakeResponse(401, text="Bad credentials")})
    with pytest.raises(GitHubAPIError) as e:
        client.enrich()
    assert e.value.status_code == 401
    assert e.value.url == f"{BASE}/actions/workflows"


def test_server_error():
    client, _ = _client({f"{BASE}/pulls?state=open&per_page=100": FakeResponse(502, text="Bad Gateway")})
    with pytest.raises(GitHubAPIError) as e:
        client.open_pull_requests()
    assert e.value.status_code == 502
    assert "Bad Gateway" in str(e.value)


def test_environment_skipped_on_network_error():
    client, _ = _client({
        f"{BASE}/environments": FakeResponse(200, {"environments": [{"name": "prod"}, {"name": "qa"}]}),
        f"{BASE}/deployments?per_page=1&environment=prod": requests.ConnectionError("connection reset"),
        f"{BASE}/deployments?per_page=1&environment=qa": FakeResponse(200, [{"updated_at": "2026-09-01T00:00:00Z"}]),
    })
    environments = client.environment_deployments()
    assert [env.name for env in environments] == ["qa"]


# updated_atがないPR（想定と違う形の応答）
BAD_PULLS = {
    f"{BASE}/actions/workflows": FakeResponse(200, {"workflows": []}),
    f"{BASE}/pulls?state=open&per_page=100": FakeResponse(200, [{"number": 1, "title": "x"}]),
}


def test_unexpected_pull_request_shape():
    client, _ = _client(BAD_PULLS)
    with pytest.raises(ValidationError):
        client.open_pull_requests()


def test_unexpected_shape_is_not_fatal_for_enricher():
    state = DefragState(config=DefragConfig(github_owner="octo", github_repo="demo", github_token="t"))
    enricher = GitHubEnricher(client_factory=lambda config: _client(BAD_PULLS)[0])
    result = enricher(state)
    assert result["github"] is None
    assert result["node_history"] == ["github_enricher"]


def test_workflow_with_unexpected_runs_is_skipped():
    client, _ = _client({
        f"{BASE}/actions/workflows": FakeResponse(200, {"workflows": [{"id": 1, "name": "CI"}, {"id": 2, "name": "Lint"}]}),
        f"{BASE}/actions/workflows/1/runs?per_page=20": FakeResponse(200, {"workflow_runs": "oops"}),
        f"{BASE}/actions/workflows/2/runs?per_page=20": FakeResponse(200, {"workflow_runs": [{"conclusion": None}]}),
    })
    failures = client.workflow_failures()
    assert [f.name for f in failures] == ["Lint"]
    assert failures[0].failure_rate == 0.0


def test_unexpected_workflow_list_raises():
    client, _ = _client({f"{BASE}/actions/workflows": FakeResponse(200, {"workflows": [{"name": "no id"}]})})
    with pytest.raises(ValidationError):
        client.workflow_failures()
