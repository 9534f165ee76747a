"""Generic document-store page model, backend-independent."""

from pydantic import BaseModel


class DocumentDetails(BaseModel):
    """
    A top-level page as returned by a document-store client.

    updated_at is the page's revision timestamp (milliseconds since epoch for
    Logseq); it only ever grows and drives stale detection during index sync.
    0 means the store reported none, and such a page counts as always stale.
    """
    engine: str
    id: str
    name: str = ""
    title: str = ""
    updated_at: int = 0
    journal: bool = False
