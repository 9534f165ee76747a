import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse

from server.core.ChatSession import ChatSession
from server.dependencies.auth import verify_api_key
from server.models.chat import ChainResult
from server.models.requests import ChatRequest
from server.models.responses import ChatResponse, FragmentItem
from shared.models.errors import BridgeError

router = APIRouter(prefix="/chat", tags=["chat"])


def _to_response(session: ChatSession, result: ChainResult, stale: bool) -> ChatResponse:
    return ChatResponse(
        question=result.question,
        query=result.query,
        fragments=[FragmentItem.from_fragment(index, fragment) for index, fragment in enumerate(result.fragments)],
        answer=result.answer,
        history=list(session.history.turns),
        stale=stale,
    )


@router.post("")
async def chat(
    request: Request,
    body: ChatRequest,
    _: None = Depends(verify_api_key),
) -> ChatResponse:
    """Answer a question against the session's pages and record the exchange.

    A result overtaken by a newer question of the same session is returned
    with stale=true and is not added to the history.
    """
    session = request.app.state.session_store.get(body.session_id)
    token = session.begin_turn()
    result = await request.app.state.chat_chain.run(body.question, session.scope, session.snapshot_history())
    committed = session.commit_turn(token, body.question, result.answer.answer)
    return _to_response(session, result, stale=not committed)


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@router.post("/stream")
async def chat_stream(
    request: Request,
    body: ChatRequest,
    _: None = Depends(verify_api_key),
) -> StreamingResponse:
    """Server-sent events variant of POST /chat.

    Emits "token" events with raw answer output, then one "result" event
    shaped like the POST /chat response, or an "error" event.
    """
    session = request.app.state.session_store.get(body.session_id)
    chat_chain = request.app.state.chat_chain
    logging = request.app.state.logging

    async def events() -> AsyncIterator[str]:
        token = session.begin_turn()
        try:
            async for event in chat_chain.run_stream(body.question, session.scope, session.snapshot_history()):
                if event.kind == "token":
                    yield _sse("token", {"token": event.token})
                else:
                    committed = session.commit_turn(token, body.question, event.result.answer.answer)
                    yield _sse("result", _to_response(session, event.result, stale=not committed).model_dump())
        except BridgeError as e:
            # headers are already sent, so the error travels as an event
            logging.error("Streamed chat in session %s failed: %s", session.session_id, e)
            yield _sse("error", {"detail": str(e)})

    return StreamingResponse(events(), media_type="text/event-stream")


@router.delete("/{session_id}", status_code=204)
async def close_session(
    request: Request,
    session_id: str,
    _: None = Depends(verify_api_key),
) -> Response:
    """Close a chat session and drop its history."""
    request.app.state.session_store.delete(session_id)
    return Response(status_code=204)
