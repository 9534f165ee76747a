"""
Tests for the shared HTTP client behaviour: retry with backoff, quota errors,
transport failures and engine selection. Uses the OpenAI embedding client as
the concrete client and httpx.MockTransport as the backend.
"""

import json

import httpx
import pytest

from shared.clients.ClientLoader import instantiate_client
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.models.errors import QuotaError, ServiceResponseError, TransientServiceError
from shared.models.request import BackendRequest
from tests.fakes import Backend


def embeddings(*vectors):
    return httpx.Response(200, json={"data": [{"index": i, "embedding": v} for i, v in enumerate(vectors)]})


@pytest.fixture
def make_client(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("EMBED_RETRY_ATTEMPTS", "3")
    monkeypatch.setenv("EMBED_RETRY_BACKOFF", "0")
    monkeypatch.delenv("EMBED_OPENAI_BASE_URL", raising=False)
    monkeypatch.delenv("EMBED_MODEL", raising=False)

    def factory(backend: Backend) -> EmbedClientOpenai:
        client = EmbedClientOpenai(helper_config=helper_config)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
        return client

    return factory


class TestRequests:
    @pytest.mark.asyncio
    async def test_success_orders_by_index(self, make_client):
        backend = Backend(httpx.Response(200, json={"data": [
            {"index": 1, "embedding": [2.0]},
            {"index": 0, "embedding": [1.0]},
        ]}))
        client = make_client(backend)

        vectors = await client.do_embed(["a", "b"])

        assert vectors == [[1.0], [2.0]]
        request = backend.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/embeddings"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(request.content) == {"model": "text-embedding-3-small", "input": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_vector_count_mismatch(self, make_client):
        client = make_client(Backend(embeddings([1.0])))
        with pytest.raises(ValueError):
            await client.do_embed(["a", "b"])

    @pytest.mark.asyncio
    async def test_batches(self, make_client, monkeypatch):
        monkeypatch.setenv("EMBED_BATCH_SIZE", "2")
        backend = Backend(embeddings([1.0], [2.0]), embeddings([3.0]))
        client = make_client(backend)
        assert await client.do_embed_batched(["a", "b", "c"]) == [[1.0], [2.0], [3.0]]
        assert len(backend.requests) == 2

    @pytest.mark.asyncio
    async def test_backend_request_body_is_sent_as_json(self, make_client):
        backend = Backend(httpx.Response(200, json={}))
        client = make_client(backend)

        await client.do_backend_request(BackendRequest(method="POST", endpoint="/echo", body={"a": [1, 2]}))

        assert json.loads(backend.requests[0].content) == {"a": [1, 2]}
        assert backend.requests[0].headers["content-type"] == "application/json"
        # the payload field must not shadow pydantic's own BaseModel.json
        assert "json" not in BackendRequest.model_fields


class TestRetry:
    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, make_client):
        backend = Backend(httpx.Response(502), embeddings([1.0]))
        client = make_client(backend)
        assert await client.do_embed("a") == [[1.0]]
        assert len(backend.requests) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried_until_attempts_run_out(self, make_client):
        backend = Backend(httpx.Response(429, json={"error": {"type": "requests", "message": "slow down"}}))
        client = make_client(backend)
        with pytest.raises(TransientServiceError) as excinfo:
            await client.do_embed("a")
        assert excinfo.value.status_code == 429
        assert len(backend.requests) == 3

    @pytest.mark.asyncio
    async def test_quota_error_is_not_retried(self, make_client):
        backend = Backend(httpx.Response(429, json={"error": {"type": "insufficient_quota", "message": "pay up"}}))
        client = make_client(backend)
        with pytest.raises(QuotaError):
            await client.do_embed("a")
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, make_client):
        backend = Backend(httpx.ConnectError("refused"), embeddings([1.0]))
        client = make_client(backend)
        assert await client.do_embed("a") == [[1.0]]
        assert len(backend.requests) == 2

    @pytest.mark.asyncio
    async def test_persistent_transport_error_surfaces(self, make_client):
        backend = Backend(httpx.ConnectError("refused"))
        client = make_client(backend)
        with pytest.raises(TransientServiceError):
            await client.do_embed("a")
        assert len(backend.requests) == 3

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, make_client):
        backend = Backend(httpx.Response(400, json={"error": {"message": "bad input"}}))
        client = make_client(backend)
        with pytest.raises(ServiceResponseError):
            await client.do_embed("a")
        assert len(backend.requests) == 1


class TestClientLoader:
    def test_instantiates_configured_engine(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
        client = instantiate_client(helper_config, "embed", "OpenAI")
        assert isinstance(client, EmbedClientOpenai)
        assert client.get_engine_name() == "openai"

    def test_unknown_engine(self, helper_config):
        with pytest.raises(ValueError):
            instantiate_client(helper_config, "embed", "nonexistent")

    def test_unknown_type(self, helper_config):
        with pytest.raises(ValueError):
            instantiate_client(helper_config, "ocr", "openai")

    def test_missing_required_config(self, helper_config, monkeypatch):
        monkeypatch.delenv("EMBED_OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            EmbedClientOpenai(helper_config=helper_config)
