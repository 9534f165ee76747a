"""Pydantic models for the units flowing from a page tree into the vector store.

Hierarchy:
  Leaf               : one flattened, non-empty text unit of a page tree.
  Fragment           : a chunk of a leaf, optionally carrying its embedding.
  RetrievedFragment  : a fragment returned by similarity search, with its score.
"""

from pydantic import BaseModel


class Leaf(BaseModel):
    """A flattened text unit tagged with the block it was read from."""

    block_id: str
    text: str


class Fragment(BaseModel):
    """An independently retrievable chunk of text with its provenance.

    Attributes:
        text:            The chunk text, an exact substring of the source leaf.
        document_id:     Id of the owning page.
        block_id:        Id of the block (or top-level section) the text came from.
        document_title:  Human-readable page title, for display.
        chunk_index:     Zero-based position of the chunk within its page.
        offset:          Character offset of the chunk within the source leaf text.
        vector:          Embedding vector, set once the fragment has been embedded.
    """

    text: str
    document_id: str
    block_id: str
    document_title: str = ""
    chunk_index: int = 0
    offset: int = 0
    vector: list[float] | None = None


class RetrievedFragment(Fragment):
    """A fragment returned by a similarity search, ranked by score (higher is closer)."""

    score: float = 0.0
