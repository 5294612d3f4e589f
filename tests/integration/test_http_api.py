import pytest
from fastapi.testclient import TestClient

from conftest import FakeAIModel, canned_response, prompt_of_tokens
from promptlens.infrastructure.resilience.rate_limiter import CallerRateLimiter
from promptlens.infrastructure.web.app import ANALYZE_PATH, CHUNK_PATH, create_app

AUTH = {"Authorization": "Bearer extension-token"}


@pytest.fixture
def client(dependencies):
    with TestClient(create_app(dependencies)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze_single_prompt(client, fake_ai_model):
    response = client.post(ANALYZE_PATH, json={"prompt": prompt_of_tokens(3000)}, headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["wasChunked"] is False
    assert body["tokenCount"] == 3000
    assert body["accuracy"] == 80.0
    assert len(fake_ai_model.calls) == 1


def test_analyze_chunked_prompt(client, fake_ai_model):
    response = client.post(ANALYZE_PATH, json={"prompt": prompt_of_tokens(20000)}, headers=AUTH)

    assert response.status_code == 200
    assert response.json()["chunkCount"] == 3
    assert len(fake_ai_model.calls) == 3


def test_no_optimization_needed(client, fake_ai_model):
    response = client.post(ANALYZE_PATH, json={"prompt": prompt_of_tokens(4820)}, headers=AUTH)
    assert response.status_code == 200
    assert response.json()["type"] == "no_optimization_needed"
    assert fake_ai_model.calls == []


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "}])
def test_missing_bearer_token_is_unauthorized(client, fake_ai_model, headers):
    response = client.post(ANALYZE_PATH, json={"prompt": "hello"}, headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert fake_ai_model.calls == []


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_other_methods_are_not_allowed(client, method):
    response = client.request(method.upper(), ANALYZE_PATH, headers=AUTH)
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


@pytest.mark.parametrize("path", [ANALYZE_PATH, CHUNK_PATH])
def test_preflight(client, path):
    response = client.options(path, headers={"Origin": "chrome-extension://abcdef"})
    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "chrome-extension://abcdef"
    assert response.headers["access-control-allow-methods"] == "POST"
    assert "Authorization" in response.headers["access-control-allow-headers"]


def test_allow_listed_origin_is_echoed(client):
    response = client.post(
        ANALYZE_PATH,
        json={"prompt": prompt_of_tokens(3000)},
        headers={**AUTH, "Origin": "https://app.example.com"},
    )
    assert response.headers["access-control-allow-origin"] == "https://app.example.com"


def test_unknown_origin_is_not_echoed(client):
    response = client.options(ANALYZE_PATH, headers={"Origin": "https://evil.example"})
    assert response.status_code == 204
    assert "access-control-allow-origin" not in response.headers


@pytest.mark.parametrize("body, status_code, error", [
    ({"prompt": ""}, 400, "Prompt cannot be empty"),
    ({}, 400, "Prompt cannot be empty"),
    ({"prompt": prompt_of_tokens(121000)}, 413, "Input exceeds 120000 token limit (has 121000 tokens)"),
])
def test_errors_map_to_status_codes(client, body, status_code, error):
    response = client.post(ANALYZE_PATH, json=body, headers=AUTH)
    assert response.status_code == status_code
    payload = response.json()
    assert payload["type"] == "analysis_error"
    assert payload["error"] == error


def test_malformed_body_is_bad_request(client):
    response = client.post(ANALYZE_PATH, content="not json", headers={**AUTH, "Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["type"] == "analysis_error"


def test_upstream_failure_is_bad_gateway(client, dependencies, upstream_failure):
    dependencies["analysis_client"].ai_model = FakeAIModel([upstream_failure])
    response = client.post(ANALYZE_PATH, json={"prompt": prompt_of_tokens(3000)}, headers=AUTH)

    assert response.status_code == 502
    payload = response.json()
    assert payload["error"] == "API Error: 503 - Service unavailable"
    assert payload["tokenCount"] == 3000


def test_rate_limited_caller(client, dependencies):
    dependencies["analysis_service"].rate_limiter = CallerRateLimiter(time_window=60.0)
    headers = {**AUTH, "Origin": "chrome-extension://abcdef"}

    first = client.post(ANALYZE_PATH, json={"prompt": prompt_of_tokens(3000)}, headers=headers)
    second = client.post(ANALYZE_PATH, json={"prompt": prompt_of_tokens(3000)}, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json()["error"] == "Rate limit exceeded (1 request per 60 seconds)"


def test_chunk_endpoint_returns_evaluation_shape(client, fake_ai_model):
    response = client.post(CHUNK_PATH, json={
        "content": "Second part of a long prompt",
        "isChunked": True, "isBegin": False, "isEnd": True,
        "chunkIndex": 1, "totalChunks": 2,
    }, headers=AUTH)

    assert response.status_code == 200
    assert response.headers["x-chunk-degraded"] == "false"
    assert response.json() == {
        "Evaluation": {"Accuracy": 80, "Suggestions": ["Be specific", "Add context", "Name the audience"]},
        "Optimization": {"Reword": "Reworded prompt."},
    }
    assert "So end it strong." in fake_ai_model.user_contents[0]


def test_chunk_endpoint_flags_degraded_output(client, dependencies):
    dependencies["analysis_client"].ai_model = FakeAIModel(["> not json"])
    response = client.post(CHUNK_PATH, json={"content": "A short prompt"}, headers=AUTH)

    assert response.status_code == 200
    assert response.headers["x-chunk-degraded"] == "true"
    assert response.json()["Evaluation"]["Accuracy"] == 0


def test_chunk_endpoint_rejects_impossible_flags(client, fake_ai_model):
    response = client.post(CHUNK_PATH, json={
        "content": "text", "isChunked": True, "isBegin": True, "isEnd": True, "chunkIndex": 0, "totalChunks": 3,
    }, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["type"] == "analysis_error"
    assert fake_ai_model.calls == []


def test_chunk_endpoint_uses_valid_reword(client, dependencies):
    dependencies["analysis_client"].ai_model = FakeAIModel([canned_response(accuracy=42, reword="Chunk reword")])
    response = client.post(CHUNK_PATH, json={"content": "Only chunk", "isChunked": True, "isBegin": True, "isEnd": True}, headers=AUTH)

    assert response.status_code == 200
    assert response.json()["Optimization"]["Reword"] == "Chunk reword"
    assert response.json()["Evaluation"]["Accuracy"] == 42
