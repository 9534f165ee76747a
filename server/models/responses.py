from pydantic import BaseModel

from server.models.chat import ChatTurn, CitedAnswer
from shared.models.fragment import RetrievedFragment


class DocumentItem(BaseModel):
    id: str
    name: str
    title: str
    updated_at: int


class DocumentListResponse(BaseModel):
    documents: list[DocumentItem]
    total: int


class IndexResponse(BaseModel):
    session_id: str
    documents: list[DocumentItem]
    scope: list[str]
    reindexed: list[str]
    fragment_count: int


class FragmentItem(BaseModel):
    index: int
    text: str
    document_id: str
    document_title: str
    block_id: str
    score: float

    @classmethod
    def from_fragment(cls, index: int, fragment: RetrievedFragment) -> "FragmentItem":
        return cls(
            index=index,
            text=fragment.text,
            document_id=fragment.document_id,
            document_title=fragment.document_title,
            block_id=fragment.block_id,
            score=fragment.score,
        )


class ChatResponse(BaseModel):
    question: str
    query: str
    fragments: list[FragmentItem]
    answer: CitedAnswer
    history: list[ChatTurn]
    stale: bool = False
