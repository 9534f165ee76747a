from pydantic import BaseModel, Field


class IndexRequest(BaseModel):
    document_id: str = Field(min_length=1)
    include_linked: bool | None = None


class ChatRequest(BaseModel):
    session_id: str = Field(min_length=1)
    question: str = Field(min_length=1)
