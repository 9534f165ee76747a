from pydantic import BaseModel

from shared.models.fragment import Fragment, RetrievedFragment


class FragmentPayload(BaseModel):
    """Payload stored next to every fragment vector.

    Attributes:
        document_id:     Id of the owning page. Every search filters on it.
        document_title:  Page title, for display.
        block_id:        Id of the block the text was read from.
        chunk_index:     Zero-based position of the chunk within its page.
        chunk_text:      The fragment text.
        offset:          Character offset of the chunk within its source text.
    """

    document_id: str
    document_title: str = ""
    block_id: str
    chunk_index: int = 0
    chunk_text: str = ""
    offset: int = 0

    @classmethod
    def from_fragment(cls, fragment: Fragment) -> "FragmentPayload":
        return cls(
            document_id=fragment.document_id,
            document_title=fragment.document_title,
            block_id=fragment.block_id,
            chunk_index=fragment.chunk_index,
            chunk_text=fragment.text,
            offset=fragment.offset,
        )

    def to_retrieved(self, score: float) -> RetrievedFragment:
        return RetrievedFragment(
            text=self.chunk_text,
            document_id=self.document_id,
            block_id=self.block_id,
            document_title=self.document_title,
            chunk_index=self.chunk_index,
            offset=self.offset,
            score=score,
        )
