"""In-memory fakes of the backend clients.

They duck-type the client interfaces and record every call, so tests can
assert on how often a backend was hit.
"""

import json

import httpx

from shared.clients.dms.models.Block import BlockDetails
from shared.clients.dms.models.Document import DocumentDetails
from shared.clients.rag.models.Watermark import IndexWatermark
from shared.models.errors import InputError, TransientServiceError
from shared.models.fragment import Fragment, RetrievedFragment


def make_document(document_id: str, updated_at: int = 1, title: str | None = None, journal: bool = False) -> DocumentDetails:
    return DocumentDetails(
        engine="logseq",
        id=document_id,
        name=document_id.lower(),
        title=title or document_id,
        updated_at=updated_at,
        journal=journal,
    )


class FakeDMSClient:
    def __init__(self) -> None:
        self.documents: dict[str, DocumentDetails] = {}
        self.trees: dict[str, list[BlockDetails]] = {}
        self.blocks: dict[str, BlockDetails] = {}
        self.links: dict[str, list[DocumentDetails]] = {}
        self.block_lookups: list[str] = []

    def add(self, document: DocumentDetails, tree: list[BlockDetails] | None = None) -> DocumentDetails:
        self.documents[document.id] = document
        self.trees[document.id] = tree or []
        return document

    def get_engine_name(self) -> str:
        return "logseq"

    async def do_fetch_document(self, document_id: str) -> DocumentDetails | None:
        for document in self.documents.values():
            if document_id in (document.id, document.name):
                return document
        return None

    async def do_fetch_document_or_raise(self, document_id: str) -> DocumentDetails:
        document = await self.do_fetch_document(document_id)
        if document is None:
            raise InputError(f"Page '{document_id}' not found.")
        return document

    async def do_fetch_document_tree(self, document: DocumentDetails) -> list[BlockDetails]:
        return self.trees.get(document.id, [])

    async def do_fetch_block(self, block_id: str, include_children: bool = True) -> BlockDetails | None:
        self.block_lookups.append(block_id)
        return self.blocks.get(block_id)

    async def do_fetch_linked_documents(self, document: DocumentDetails) -> list[DocumentDetails]:
        return self.links.get(document.id, [])

    async def do_fetch_all_documents(self) -> list[DocumentDetails]:
        return list(self.documents.values())


class FakeEmbedClient:
    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail = False

    def get_engine_name(self) -> str:
        return "fake"

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        texts = [texts] if isinstance(texts, str) else texts
        if self.fail:
            raise TransientServiceError("embedding backend down", status_code=503)
        self.calls.append(list(texts))
        return [[float(len(text)), 1.0] for text in texts]

    async def do_embed_batched(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await self.do_embed(texts)

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        return 2, "Cosine"

    @property
    def embedded_texts(self) -> list[str]:
        return [text for call in self.calls for text in call]


class FakeRAGClient:
    def __init__(self) -> None:
        self.fragments: dict[str, list[Fragment]] = {}
        self.watermarks: dict[str, IndexWatermark] = {}
        self.delete_calls: list[list[str]] = []
        self.upsert_calls: list[list[Fragment]] = []
        self.watermark_upserts: list[list[IndexWatermark]] = []
        self.search_calls: list[dict] = []
        self.extra_hits: list[RetrievedFragment] = []
        self.ensured: tuple[int, str] | None = None

    def get_engine_name(self) -> str:
        return "fake"

    async def do_ensure_collections(self, vector_size: int, distance: str = "Cosine") -> None:
        self.ensured = (vector_size, distance)

    async def do_fetch_watermarks(self, document_ids: list[str]) -> dict[str, IndexWatermark]:
        return {document_id: self.watermarks[document_id] for document_id in document_ids if document_id in self.watermarks}

    async def do_upsert_watermarks(self, watermarks: list[IndexWatermark]) -> None:
        self.watermark_upserts.append(list(watermarks))
        for mark in watermarks:
            self.watermarks[mark.document_id] = mark

    async def do_delete_by_documents(self, document_ids: list[str]) -> None:
        self.delete_calls.append(list(document_ids))
        for document_id in document_ids:
            self.fragments.pop(document_id, None)

    async def do_upsert_fragments(self, fragments: list[Fragment]) -> int:
        self.upsert_calls.append(list(fragments))
        for fragment in fragments:
            self.fragments.setdefault(fragment.document_id, []).append(fragment)
        return len(fragments)

    async def do_search(self, vector: list[float], limit: int, document_ids: list[str]) -> list[RetrievedFragment]:
        self.search_calls.append({"vector": vector, "limit": limit, "document_ids": list(document_ids)})
        hits = []
        for document_id in document_ids:
            for rank, fragment in enumerate(self.fragments.get(document_id, [])):
                hits.append(RetrievedFragment(**fragment.model_dump(exclude={"vector"}), score=1.0 / (rank + 1)))
        hits.extend(self.extra_hits)
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]


class FakeLLMClient:
    def __init__(self) -> None:
        self.chat_replies: list[str] = []
        self.tool_replies: list = []
        self.stream_deltas: list[str] = []
        self.chat_calls: list[list[dict]] = []
        self.tool_calls: list[list[dict]] = []
        self.stream_calls: list[list[dict]] = []

    async def do_chat(self, messages: list[dict]) -> str:
        self.chat_calls.append(messages)
        return self.chat_replies.pop(0)

    async def do_chat_with_tool(self, messages: list[dict], tool) -> object:
        self.tool_calls.append(messages)
        return self.tool_replies.pop(0)

    async def do_chat_stream(self, messages: list[dict], tool=None):
        self.stream_calls.append(messages)
        for delta in self.stream_deltas:
            yield delta


class BrokenStream(httpx.AsyncByteStream):
    """Response body that yields its chunks, then fails like a dropped connection."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        raise httpx.ReadError("connection reset")


def broken_stream_response(*chunks: bytes) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=BrokenStream(*chunks))


class Backend:
    """httpx.MockTransport handler replaying queued responses.

    The last queued response (or exception) is repeated once the queue runs dry.
    A callable entry is called with the request to build the response.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        # a fresh copy, since the same canned response may be served several times
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    def bodies(self) -> list:
        return [json.loads(request.content) if request.content else None for request in self.requests]


def attach_backend(client, backend: Backend):
    """Route a real client's HTTP traffic to the given fake backend instead of booting it."""
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    return client
