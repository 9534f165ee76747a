from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import IndexRequest
from server.models.responses import DocumentItem, IndexResponse

router = APIRouter(prefix="/index", tags=["index"])


@router.post("")
async def index_document(
    request: Request,
    body: IndexRequest,
    _: None = Depends(verify_api_key),
) -> IndexResponse:
    """Sync the selected page (and its linked pages) and open a chat session over them.

    The scope is resolved first, so a page addressed by name or by uuid maps to
    the same lock. Syncs sharing any page of their scope run one after the
    other. The session is only opened once the sync succeeded.
    """
    state = request.app.state
    documents = await state.sync_service.do_resolve_scope(body.document_id, include_linked=body.include_linked)
    async with state.index_locks.hold([document.id for document in documents]):
        result = await state.sync_service.do_sync_documents(documents)
    session = state.session_store.create(result.documents)
    return IndexResponse(
        session_id=session.session_id,
        documents=[
            DocumentItem(id=d.id, name=d.name, title=d.title, updated_at=d.updated_at)
            for d in result.documents
        ],
        scope=result.scope,
        reindexed=result.reindexed,
        fragment_count=result.fragment_count,
    )
