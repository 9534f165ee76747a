"""
Tests for RagChatChain: contextualization, context assembly, forced-citation
answers and the streaming variant.
"""

import pytest

from server.core.CitationParser import NO_CONTEXT_TEXT
from server.core.RagChatChain import RagChatChain, assemble_context
from server.core.ScopedRetriever import ScopedRetriever
from server.models.chat import ChatHistory
from shared.models.fragment import Fragment, RetrievedFragment


@pytest.fixture
def chain(helper_config, llm_client, embed_client, rag_client, monkeypatch) -> RagChatChain:
    monkeypatch.delenv("RETRIEVAL_TOP_K", raising=False)
    retriever = ScopedRetriever(helper_config=helper_config, embed_client=embed_client, rag_client=rag_client)
    return RagChatChain(helper_config=helper_config, llm_client=llm_client, retriever=retriever)


@pytest.fixture
def indexed(rag_client):
    rag_client.fragments["A"] = [
        Fragment(text="Alpha facts", document_id="A", block_id="a0", chunk_index=0),
        Fragment(text="More alpha", document_id="A", block_id="a1", chunk_index=1),
    ]
    return rag_client


class TestContextualize:
    @pytest.mark.asyncio
    async def test_skipped_without_history(self, chain, llm_client, indexed, embed_client):
        llm_client.tool_replies = [{"answer": "It is alpha [0].", "citations": [0]}]

        result = await chain.run("What is alpha?", ["A"], ChatHistory())

        assert llm_client.chat_calls == []
        assert result.query == "What is alpha?"
        assert embed_client.calls == [["What is alpha?"]]

    @pytest.mark.asyncio
    async def test_used_with_history(self, chain, llm_client, indexed, embed_client):
        history = ChatHistory()
        history.add_exchange("What is alpha?", "It is a page [0].")
        llm_client.chat_replies = ["  What else is on the alpha page?  "]
        llm_client.tool_replies = [{"answer": "More [1].", "citations": [1]}]

        result = await chain.run("What else?", ["A"], history)

        assert len(llm_client.chat_calls) == 1
        messages = llm_client.chat_calls[0]
        assert messages[0]["role"] == "system"
        assert messages[-1] == {"role": "user", "content": "What else?"}
        assert {"role": "assistant", "content": "It is a page [0]."} in messages
        assert result.query == "What else is on the alpha page?"
        assert result.question == "What else?"
        assert embed_client.calls == [["What else is on the alpha page?"]]

    @pytest.mark.asyncio
    async def test_empty_rewrite_falls_back(self, chain, llm_client, indexed):
        history = ChatHistory()
        history.add_exchange("q", "a")
        llm_client.chat_replies = ["   "]
        llm_client.tool_replies = [{"answer": "x", "citations": []}]
        result = await chain.run("What else?", ["A"], history)
        assert result.query == "What else?"


class TestAnswer:
    @pytest.mark.asyncio
    async def test_context_and_citations(self, chain, llm_client, indexed):
        llm_client.tool_replies = ['{"answer": "Alpha [0]. More [1].", "citations": [1, 0, 7, 1]}']

        result = await chain.run("Tell me about alpha", ["A"], ChatHistory())

        system_prompt = llm_client.tool_calls[0][0]["content"]
        assert "[0]\nAlpha facts\n\n[1]\nMore alpha" in system_prompt
        assert result.answer.citations == [1, 0]
        assert [fragment.block_id for fragment in result.fragments] == ["a0", "a1"]

    @pytest.mark.asyncio
    async def test_no_fragments_skips_generation(self, chain, llm_client):
        result = await chain.run("Anything?", ["EMPTY"], ChatHistory())
        assert llm_client.tool_calls == []
        assert result.answer.answer == NO_CONTEXT_TEXT
        assert result.fragments == []

    @pytest.mark.asyncio
    async def test_history_is_not_mutated(self, chain, llm_client, indexed):
        llm_client.tool_replies = [{"answer": "x", "citations": []}]
        history = ChatHistory()
        await chain.run("q", ["A"], history)
        assert history.is_empty()

    def test_assemble_context(self):
        fragments = [
            RetrievedFragment(text="one", document_id="A", block_id="1"),
            RetrievedFragment(text="two", document_id="A", block_id="2"),
        ]
        assert assemble_context(fragments) == "[0]\none\n\n[1]\ntwo"


class TestStream:
    @pytest.mark.asyncio
    async def test_tokens_then_result(self, chain, llm_client, indexed):
        llm_client.stream_deltas = ['{"answer": "Al', 'pha [0].", ', '"citations": [0, 0]}']

        events = [event async for event in chain.run_stream("q", ["A"], ChatHistory())]

        assert [event.kind for event in events] == ["token", "token", "token", "result"]
        assert "".join(event.token for event in events[:-1]) == '{"answer": "Alpha [0].", "citations": [0, 0]}'
        assert events[-1].result.answer.answer == "Alpha [0]."
        assert events[-1].result.answer.citations == [0]

    @pytest.mark.asyncio
    async def test_no_fragments_yields_only_result(self, chain, llm_client):
        events = [event async for event in chain.run_stream("q", ["EMPTY"], ChatHistory())]
        assert [event.kind for event in events] == ["result"]
        assert events[0].result.answer.answer == NO_CONTEXT_TEXT
        assert llm_client.stream_calls == []
