"""Tests for the inference client and artifact stores."""

import json

import httpx
import pytest

from conftest import completion_body, make_inference_client
from roofdynamics.exceptions import ConfigurationError, ContractViolationError, UpstreamError
from roofdynamics.services.artifact_store import LocalArtifactStore, SupabaseArtifactStore


def test_chat_completion_request_shape():
    """Requests carry bearer auth, model and the JSON response format."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=completion_body('{"ok": true}', usage={"total_tokens": 3}))

    client = make_inference_client(handler)

    completion = client.chat_completion([{"role": "user", "content": "hi"}], json_mode=True)

    request = seen[0]
    body = json.loads(request.content)
    assert request.url == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert body["model"] == "gpt-4o-mini"
    assert body["max_tokens"] == 4000
    assert body["response_format"] == {"type": "json_object"}
    assert completion.content == '{"ok": true}'
    assert completion.usage == {"total_tokens": 3}


def test_chat_completion_without_key_makes_no_request():
    seen = []
    client = make_inference_client(lambda request: seen.append(request), api_key="")

    with pytest.raises(ConfigurationError):
        client.chat_completion([{"role": "user", "content": "hi"}])

    assert seen == []


def test_chat_completion_error_is_not_retried():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(500, text="internal error")

    client = make_inference_client(handler)

    with pytest.raises(UpstreamError) as exc_info:
        client.chat_completion([{"role": "user", "content": "hi"}])

    assert len(seen) == 1
    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "internal error"


def test_chat_completion_non_json_body():
    client = make_inference_client(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(ContractViolationError):
        client.chat_completion([{"role": "user", "content": "hi"}])


def test_local_artifact_store(tmp_path):
    store = LocalArtifactStore(str(tmp_path), "http://localhost:8000/artifacts/")

    url = store.put("roof-report-1.txt", b"hello", "text/plain")

    assert url == "http://localhost:8000/artifacts/roof-report-1.txt"
    assert (tmp_path / "roof-report-1.txt").read_bytes() == b"hello"


def test_local_artifact_store_rejects_paths(tmp_path):
    store = LocalArtifactStore(str(tmp_path), "http://localhost:8000/artifacts")

    with pytest.raises(ValueError):
        store.put("../escape.txt", b"x", "text/plain")


def test_supabase_artifact_store_upload():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"Key": "reports/roof-report-1.txt"})

    store = SupabaseArtifactStore(
        "https://project.supabase.co",
        "service-key",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    url = store.put("roof-report-1.txt", b"report", "text/plain")

    request = seen[0]
    assert request.url == "https://project.supabase.co/storage/v1/object/reports/roof-report-1.txt"
    assert request.headers["Authorization"] == "Bearer service-key"
    assert request.headers["x-upsert"] == "true"
    assert request.content == b"report"
    assert url == "https://project.supabase.co/storage/v1/object/public/reports/roof-report-1.txt"


def test_supabase_artifact_store_failure():
    store = SupabaseArtifactStore(
        "https://project.supabase.co",
        "service-key",
        http_client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(403, text="denied"))),
    )

    with pytest.raises(UpstreamError) as exc_info:
        store.put("roof-report-1.txt", b"report", "text/plain")

    assert str(exc_info.value) == "Storage upload failed: 403 denied"
