"""Per-user chat sessions bound to an indexed retrieval scope."""

import uuid

from server.models.chat import CHAT_HISTORY_MAX_TURNS, ChatHistory
from shared.clients.dms.models.Document import DocumentDetails
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import InputError


class ChatSession:
    """History and scope of one conversation.

    Every query takes a generation token when it starts. Only the query holding
    the latest token may record its exchange; the result of a query overtaken
    by a newer one (or by a reset) is discarded.
    """

    def __init__(self, session_id: str, documents: list[DocumentDetails], max_turns: int = CHAT_HISTORY_MAX_TURNS) -> None:
        self.session_id = session_id
        self.documents = documents
        self.scope = [document.id for document in documents]
        self.history = ChatHistory(max_turns=max_turns)
        self._generation = 0

    def begin_turn(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def commit_turn(self, token: int, question: str, answer: str) -> bool:
        """Record an exchange if the query is still the latest one.

        Returns:
            bool: False if the result was stale and has not been recorded.
        """
        if not self.is_current(token):
            return False
        self.history.add_exchange(question, answer)
        return True

    def snapshot_history(self) -> ChatHistory:
        return self.history.model_copy(deep=True)

    def reset(self) -> None:
        self._generation += 1
        self.history.clear()


class ChatSessionStore:
    """In-memory session registry. Sessions do not survive a restart."""

    def __init__(self, helper_config: HelperConfig) -> None:
        """
        Raises:
            ValueError: If CHAT_HISTORY_MAX_TURNS cannot hold one question and its answer.
        """
        self.logging = helper_config.get_logger()
        self.max_turns = helper_config.get_int_val("CHAT_HISTORY_MAX_TURNS", default=CHAT_HISTORY_MAX_TURNS)
        if self.max_turns < 2:
            raise ValueError(f"CHAT_HISTORY_MAX_TURNS must be at least 2, got {self.max_turns}.")
        self._sessions: dict[str, ChatSession] = {}

    def create(self, documents: list[DocumentDetails]) -> ChatSession:
        session = ChatSession(session_id=uuid.uuid4().hex, documents=documents, max_turns=self.max_turns)
        self._sessions[session.session_id] = session
        self.logging.info("Opened chat session %s over %d page(s).", session.session_id, len(documents))
        return session

    def get(self, session_id: str) -> ChatSession:
        """
        Raises:
            InputError: If no such session exists.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise InputError(f"Chat session '{session_id}' not found.")
        return session

    def delete(self, session_id: str) -> None:
        """
        Raises:
            InputError: If no such session exists.
        """
        if self._sessions.pop(session_id, None) is None:
            raise InputError(f"Chat session '{session_id}' not found.")
        self.logging.info("Closed chat session %s.", session_id)
