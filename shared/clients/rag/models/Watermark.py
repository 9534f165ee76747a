from pydantic import BaseModel


class IndexWatermark(BaseModel):
    """Last-modified time of a page as of its most recent successful indexing.

    A page whose current updated_at is greater than its watermark is stale.
    A page without a watermark has never been indexed.
    """

    document_id: str
    title: str = ""
    updated_at: int = 0
