import json

import httpx
import pytest

from ollama_agent import capabilities
from ollama_agent.errors import EmbeddingError, HTTPError, InvalidJSONError, NotFoundError
from ollama_agent.management import suggest_models

TAGS = {
    "models": [
        {"name": "llama3.1:8b", "details": {"family": "llama", "families": ["llama"]}},
        {"name": "nomic-embed-text:latest", "details": {"family": "nomic-bert", "families": ["nomic-bert"]}},
        {"name": "llava:13b", "details": {"family": "llama", "families": ["llama", "clip"]}},
    ]
}


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


def test_suggest_substring_first():
    available = ["llama3.1:8b", "llama3.2:3b", "mistral:7b"]
    assert suggest_models("llama3", available) == ["llama3.1:8b", "llama3.2:3b"]


def test_suggest_falls_back_to_parts():
    assert suggest_models("qwen-coder", ["qwen2.5-coder:7b", "llama3.1:8b"]) == ["qwen2.5-coder:7b"]


def test_suggest_is_capped():
    available = [f"llama3.{i}:8b" for i in range(10)]
    assert len(suggest_models("llama3", available)) == 5


def test_suggest_with_nothing_installed():
    assert suggest_models("llama3", []) == []


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


def test_capabilities_from_family_and_name():
    assert capabilities.for_model(TAGS["models"][0]) == {
        "tools": True,
        "thinking": False,
        "vision": False,
        "embeddings": False,
    }
    assert capabilities.for_model(TAGS["models"][1])["embeddings"] is True
    assert capabilities.for_model(TAGS["models"][2])["vision"] is True
    assert capabilities.for_model({"name": "deepseek-r1:7b"})["thinking"] is True
    assert capabilities.for_model({"name": "codellama:7b", "details": {"family": "llama"}})["tools"] is False


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


def test_list_models_adds_capabilities(make_client):
    client = make_client(lambda request: httpx.Response(200, json=TAGS))
    models = client.list_models()
    assert [m["name"] for m in models] == ["llama3.1:8b", "nomic-embed-text:latest", "llava:13b"]
    assert models[0]["capabilities"]["tools"] is True
    assert client.list_model_names() == ["llama3.1:8b", "nomic-embed-text:latest", "llava:13b"]


def test_list_running(make_client):
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json={"models": [{"name": "llama3.1:8b", "size_vram": 1}]})

    client = make_client(handler)
    assert client.ps()[0]["name"] == "llama3.1:8b"
    assert seen == ["/api/ps"]


def test_show_delete_copy_bodies(make_client):
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"modelfile": "FROM llama3.1", "details": {"family": "llama"}})

    client = make_client(handler)
    info = client.show_model("llama3.1:8b", verbose=True)
    assert client.delete_model("old:latest") is True
    assert client.copy_model("llama3.1:8b", "mine:latest") is True

    assert info["capabilities"]["tools"] is True
    assert seen == [
        ("POST", "/api/show", {"model": "llama3.1:8b", "verbose": True}),
        ("DELETE", "/api/delete", {"model": "old:latest"}),
        ("POST", "/api/copy", {"source": "llama3.1:8b", "destination": "mine:latest"}),
    ]


def test_create_and_push(make_client):
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"status": "success"})

    client = make_client(handler)
    assert client.create_model("mine", from_="llama3.1:8b", system="Be terse") == {"status": "success"}
    assert client.push_model("me/mine", insecure=True) == {"status": "success"}
    assert seen[0] == {"model": "mine", "from": "llama3.1:8b", "stream": False, "system": "Be terse"}
    assert seen[1] == {"model": "me/mine", "stream": False, "insecure": True}


def test_version(make_client):
    client = make_client(lambda request: httpx.Response(200, json={"version": "0.12.3"}))
    assert client.version() == "0.12.3"


def test_health_reports_instead_of_raising(make_client):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler)
    assert client.health() is False
    result = client.health(return_meta=True)
    assert result["ok"] is False
    assert "Connection failed" in result["meta"]["error"]


def test_health_ok(make_client):
    client = make_client(lambda request: httpx.Response(200, json={"version": "0.12.3"}))
    assert client.health() is True
    assert client.health(return_meta=True)["meta"]["status_code"] == 200


def test_management_errors_propagate(make_client):
    client = make_client(lambda request: httpx.Response(500))
    with pytest.raises(HTTPError, match="HTTP 500"):
        client.version()


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


def test_embed_single_input(make_client):
    seen = []

    def handler(request):
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

    client = make_client(handler)
    assert client.embed("nomic-embed-text", "hello") == [0.1, 0.2, 0.3]
    assert seen == [("/api/embeddings", {"model": "nomic-embed-text", "input": "hello"})]


def test_embed_list_input_always_returns_vectors(make_client):
    replies = iter([{"embedding": [0.5, 0.5]}, {"embedding": [[1.0], [2.0]]}])
    client = make_client(lambda request: httpx.Response(200, json=next(replies)))

    assert client.embed("nomic-embed-text", ["one"]) == [[0.5, 0.5]]
    assert client.embed("nomic-embed-text", ["one", "two"]) == [[1.0], [2.0]]


def test_embed_missing_model_is_typed(make_client):
    client = make_client(lambda request: httpx.Response(404))
    with pytest.raises(NotFoundError) as exc_info:
        client.embed("nope", "hello")
    assert exc_info.value.requested_model == "nope"


def test_embed_bad_body(make_client):
    client = make_client(lambda request: httpx.Response(200, content=b"not json"))
    with pytest.raises(InvalidJSONError, match="Failed to parse embeddings response"):
        client.embed("nomic-embed-text", "hello")


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"model": "nomic-embed-text"}, "Embedding not found in response. Response keys: model"),
        ({"embedding": []}, "Empty embedding returned for nomic-embed-text"),
    ],
)
def test_embed_unusable_embedding(make_client, payload, message):
    client = make_client(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(EmbeddingError, match=message):
        client.embed("nomic-embed-text", "hello")
