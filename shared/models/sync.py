from pydantic import BaseModel

from shared.clients.dms.models.Document import DocumentDetails


class SyncResult(BaseModel):
    """Outcome of one index sync run.

    Attributes:
        documents:       Every page in scope, selected page first.
        scope:           The retrieval scope, i.e. the ids of `documents`.
        reindexed:       Ids of the pages that were stale and got rebuilt.
        fragment_count:  Number of fragments written during this run.
    """

    documents: list[DocumentDetails] = []
    scope: list[str] = []
    reindexed: list[str] = []
    fragment_count: int = 0
