from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.responses import DocumentItem, DocumentListResponse

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("")
async def list_documents(
    request: Request,
    _: None = Depends(verify_api_key),
) -> DocumentListResponse:
    """List the pages that can be selected for chatting.

    Journal pages are left out. Most recently updated pages come first.
    """
    dms_client = request.app.state.dms_client
    documents = [document for document in await dms_client.do_fetch_all_documents() if not document.journal]
    documents.sort(key=lambda document: document.updated_at, reverse=True)
    items = [
        DocumentItem(id=d.id, name=d.name, title=d.title, updated_at=d.updated_at)
        for d in documents
    ]
    return DocumentListResponse(documents=items, total=len(items))
