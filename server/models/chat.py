"""Conversation models: chat history, cited answers and chain results."""

from typing import Literal

from pydantic import BaseModel, Field

from shared.models.fragment import RetrievedFragment

CHAT_HISTORY_MAX_TURNS = 6


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class ChatHistory(BaseModel):
    """Bounded list of turns.

    Turns are added as (user, assistant) pairs and evicted as pairs, oldest
    first, so the history never starts with a dangling answer.
    """

    # one exchange is two turns
    max_turns: int = Field(default=CHAT_HISTORY_MAX_TURNS, ge=2)
    turns: list[ChatTurn] = []

    def is_empty(self) -> bool:
        return not self.turns

    def add_exchange(self, question: str, answer: str) -> None:
        self.turns.append(ChatTurn(role="user", text=question))
        self.turns.append(ChatTurn(role="assistant", text=answer))
        while len(self.turns) > self.max_turns:
            del self.turns[:2]

    def clear(self) -> None:
        self.turns = []

    def to_messages(self) -> list[dict]:
        """Render the history as OpenAI-format chat messages."""
        return [{"role": turn.role, "content": turn.text} for turn in self.turns]


class CitedAnswer(BaseModel):
    """Validated answer of one query.

    citations are positions in the retrieved fragment list of the same query,
    unique, in the order the model first cited them.
    """

    answer: str
    citations: list[int] = []


class ChainResult(BaseModel):
    question: str
    query: str
    fragments: list[RetrievedFragment] = []
    answer: CitedAnswer


class ChainEvent(BaseModel):
    """One event of a streamed query: a raw output delta, or the final result."""

    kind: Literal["token", "result"]
    token: str | None = None
    result: ChainResult | None = None
