"""
Tests for the chat-completion engines: forced structured output, reply
extraction and stream parsing.
"""

import json

import httpx
import pytest

from server.core.prompts import CITED_ANSWER_TOOL
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.models.errors import TransientServiceError
from tests.fakes import Backend, attach_backend, broken_stream_response

MESSAGES = [{"role": "user", "content": "hi"}]


@pytest.fixture
def openai_client(helper_config, monkeypatch) -> LLMClientOpenai:
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("LLM_CHAT_MODEL", raising=False)
    monkeypatch.setenv("LLM_TEMPERATURE", "0.5")
    monkeypatch.setenv("LLM_MAX_TOKENS", "300")
    return LLMClientOpenai(helper_config=helper_config)


@pytest.fixture
def ollama_client(helper_config, monkeypatch) -> LLMClientOllama:
    monkeypatch.delenv("LLM_CHAT_MODEL", raising=False)
    monkeypatch.delenv("LLM_OLLAMA_BASE_URL", raising=False)
    monkeypatch.delenv("LLM_TEMPERATURE", raising=False)
    return LLMClientOllama(helper_config=helper_config)


class TestOpenai:
    def test_payload_forces_tool(self, openai_client):
        payload = openai_client.get_chat_payload(MESSAGES, tool=CITED_ANSWER_TOOL)
        assert payload["model"] == "gpt-4o-mini"
        assert payload["temperature"] == 0.5
        assert payload["max_tokens"] == 300
        assert payload["tools"][0]["function"]["name"] == "cited_answer"
        assert payload["tool_choice"] == {"type": "function", "function": {"name": "cited_answer"}}
        assert "stream" not in payload

    def test_plain_payload(self, openai_client):
        payload = openai_client.get_chat_payload(MESSAGES, stream=True)
        assert "tools" not in payload
        assert payload["stream"] is True

    @pytest.mark.asyncio
    async def test_chat_with_tool(self, openai_client):
        arguments = json.dumps({"answer": "Yes [0].", "citations": [0]})
        backend = Backend(httpx.Response(200, json={"choices": [{"message": {
            "content": None,
            "tool_calls": [{"type": "function", "function": {"name": "cited_answer", "arguments": arguments}}],
        }}]}))
        attach_backend(openai_client, backend)

        assert await openai_client.do_chat_with_tool(MESSAGES, CITED_ANSWER_TOOL) == arguments
        assert backend.requests[0].url.path == "/v1/chat/completions"

    @pytest.mark.asyncio
    async def test_chat(self, openai_client):
        attach_backend(openai_client, Backend(httpx.Response(200, json={"choices": [{"message": {"content": "Standalone?"}}]})))
        assert await openai_client.do_chat(MESSAGES) == "Standalone?"

    def test_missing_reply(self, openai_client):
        with pytest.raises(ValueError):
            openai_client.extract_chat_response({"choices": []})

    @pytest.mark.asyncio
    async def test_stream_tool_arguments(self, openai_client):
        events = [
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {"name": "cited_answer", "arguments": ""}}]}}]},
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {"arguments": '{"answer": "A'}}]}}]},
            {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {"arguments": '", "citations": []}'}}]}}]},
        ]
        body = "".join(f"data: {json.dumps(event)}\n\n" for event in events) + "data: [DONE]\n\n"
        attach_backend(openai_client, Backend(httpx.Response(200, content=body.encode())))

        deltas = [delta async for delta in openai_client.do_chat_stream(MESSAGES, tool=CITED_ANSWER_TOOL)]

        assert "".join(deltas) == '{"answer": "A", "citations": []}'

    @pytest.mark.asyncio
    async def test_stream_cut_off_midway(self, openai_client):
        event = {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {"arguments": '{"answer": "A'}}]}}]}
        backend = Backend(lambda request: broken_stream_response(f"data: {json.dumps(event)}\n\n".encode()))
        attach_backend(openai_client, backend)

        deltas = []
        with pytest.raises(TransientServiceError):
            async for delta in openai_client.do_chat_stream(MESSAGES, tool=CITED_ANSWER_TOOL):
                deltas.append(delta)

        assert deltas == ['{"answer": "A']
        assert len(backend.requests) == 1

    def test_stream_ignores_noise(self, openai_client):
        assert openai_client.extract_stream_delta(": keep-alive") is None
        assert openai_client.extract_stream_delta("data: [DONE]") is None
        assert openai_client.extract_stream_delta("data: {broken") is None
        assert openai_client.extract_stream_delta('data: {"choices": [{"delta": {"content": "x"}}]}') == "x"


class TestOllama:
    def test_payload_uses_json_schema_format(self, ollama_client):
        payload = ollama_client.get_chat_payload(MESSAGES, tool=CITED_ANSWER_TOOL)
        assert payload["model"] == "llama3.1"
        assert payload["stream"] is False
        assert payload["format"] == CITED_ANSWER_TOOL.parameters
        assert payload["options"]["temperature"] == 0.2

    def test_tool_arguments_from_content(self, ollama_client):
        response = {"message": {"role": "assistant", "content": '{"answer": "x", "citations": [1]}'}}
        assert ollama_client.extract_tool_arguments(response) == '{"answer": "x", "citations": [1]}'

    def test_tool_arguments_from_tool_call(self, ollama_client):
        response = {"message": {"content": "", "tool_calls": [{"function": {"name": "cited_answer", "arguments": {"answer": "x"}}}]}}
        assert ollama_client.extract_tool_arguments(response) == {"answer": "x"}

    @pytest.mark.asyncio
    async def test_stream(self, ollama_client):
        lines = [
            {"message": {"content": "Hel"}, "done": False},
            {"message": {"content": "lo"}, "done": False},
            {"message": {"content": ""}, "done": True},
        ]
        body = "\n".join(json.dumps(line) for line in lines) + "\n"
        backend = Backend(httpx.Response(200, content=body.encode()))
        attach_backend(ollama_client, backend)

        deltas = [delta async for delta in ollama_client.do_chat_stream(MESSAGES)]

        assert deltas == ["Hel", "lo"]
        assert json.loads(backend.requests[0].content)["stream"] is True
