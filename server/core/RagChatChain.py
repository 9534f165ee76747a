"""Conversational RAG pipeline.

contextualize -> retrieve -> assemble context -> answer with citations -> validate

Each stage takes and returns a plain record, so a stage can be run, retried or
tested on its own.
"""

from typing import AsyncIterator

from pydantic import BaseModel

from server.core.CitationParser import NO_CONTEXT_TEXT, validate_cited_answer
from server.core.ScopedRetriever import ScopedRetriever
from server.core.prompts import ANSWER_SYSTEM_PROMPT, CITED_ANSWER_TOOL, CONTEXTUALIZE_SYSTEM_PROMPT
from server.models.chat import ChainEvent, ChainResult, ChatHistory, CitedAnswer
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.fragment import RetrievedFragment


class QueryStage(BaseModel):
    """Output of the contextualize stage."""

    question: str
    query: str
    rewritten: bool = False


class RetrievalStage(BaseModel):
    """Output of the retrieve and assemble stages."""

    question: str
    query: str
    fragments: list[RetrievedFragment] = []
    context: str = ""


def assemble_context(fragments: list[RetrievedFragment]) -> str:
    """Render fragments as "[index]\\n<text>" blocks, indexed by rank, separated by blank lines."""
    return "\n\n".join(f"[{index}]\n{fragment.text}" for index, fragment in enumerate(fragments))


class RagChatChain:
    def __init__(
        self,
        helper_config: HelperConfig,
        llm_client: LLMClientInterface,
        retriever: ScopedRetriever,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._llm_client = llm_client
        self._retriever = retriever

    ##########################################
    ################ STAGES ##################
    ##########################################

    async def do_contextualize(self, question: str, history: ChatHistory) -> QueryStage:
        """Rewrite a follow-up question into a standalone one.

        Without history the question is used as is and no model call is made.
        """
        if history.is_empty():
            return QueryStage(question=question, query=question)
        messages = [
            {"role": "system", "content": CONTEXTUALIZE_SYSTEM_PROMPT},
            *history.to_messages(),
            {"role": "user", "content": question},
        ]
        rewritten = (await self._llm_client.do_chat(messages)).strip()
        if not rewritten:
            self.logging.warning("Contextualization returned an empty question, using the original one.")
            return QueryStage(question=question, query=question)
        self.logging.debug("Contextualized '%s' as '%s'.", question, rewritten)
        return QueryStage(question=question, query=rewritten, rewritten=True)

    async def do_retrieve(self, stage: QueryStage, scope: list[str]) -> RetrievalStage:
        fragments = await self._retriever.do_retrieve(stage.query, scope)
        return RetrievalStage(
            question=stage.question,
            query=stage.query,
            fragments=fragments,
            context=assemble_context(fragments),
        )

    def _answer_messages(self, stage: RetrievalStage, history: ChatHistory) -> list[dict]:
        return [
            {"role": "system", "content": ANSWER_SYSTEM_PROMPT.format(context=stage.context)},
            *history.to_messages(),
            {"role": "user", "content": stage.question},
        ]

    async def do_answer(self, stage: RetrievalStage, history: ChatHistory) -> CitedAnswer:
        """Generate the cited answer. Nothing retrieved means no model call."""
        if not stage.fragments:
            return CitedAnswer(answer=NO_CONTEXT_TEXT)
        raw = await self._llm_client.do_chat_with_tool(self._answer_messages(stage, history), CITED_ANSWER_TOOL)
        return validate_cited_answer(raw, len(stage.fragments))

    ##########################################
    ################# RUN ####################
    ##########################################

    async def run(self, question: str, scope: list[str], history: ChatHistory) -> ChainResult:
        """Answer one question against the scope.

        The history is only read. Recording the exchange is up to the caller.

        Raises:
            ServiceError: If the embedding service, vector store or chat model fails.
        """
        query_stage = await self.do_contextualize(question, history)
        retrieval_stage = await self.do_retrieve(query_stage, scope)
        answer = await self.do_answer(retrieval_stage, history)
        self.logging.info(
            "Answered question with %d fragment(s) retrieved and %d cited.",
            len(retrieval_stage.fragments), len(answer.citations),
        )
        return ChainResult(
            question=question,
            query=retrieval_stage.query,
            fragments=retrieval_stage.fragments,
            answer=answer,
        )

    async def run_stream(self, question: str, scope: list[str], history: ChatHistory) -> AsyncIterator[ChainEvent]:
        """Same pipeline as run(), yielding the raw answer output as it arrives.

        Yields "token" events carrying structured-output deltas, then exactly one
        "result" event with the validated ChainResult.
        """
        query_stage = await self.do_contextualize(question, history)
        retrieval_stage = await self.do_retrieve(query_stage, scope)

        if not retrieval_stage.fragments:
            answer = CitedAnswer(answer=NO_CONTEXT_TEXT)
        else:
            deltas: list[str] = []
            stream = self._llm_client.do_chat_stream(
                self._answer_messages(retrieval_stage, history), tool=CITED_ANSWER_TOOL
            )
            async for delta in stream:
                deltas.append(delta)
                yield ChainEvent(kind="token", token=delta)
            answer = validate_cited_answer("".join(deltas), len(retrieval_stage.fragments))

        yield ChainEvent(
            kind="result",
            result=ChainResult(
                question=question,
                query=retrieval_stage.query,
                fragments=retrieval_stage.fragments,
                answer=answer,
            ),
        )
