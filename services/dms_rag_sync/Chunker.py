"""Splits flattened leaves into overlapping fragments."""

from langchain_text_splitters import RecursiveCharacterTextSplitter

from shared.clients.dms.models.Document import DocumentDetails
from shared.helper.HelperConfig import HelperConfig
from shared.models.fragment import Fragment, Leaf

CHUNK_SIZE = 1000       # characters per fragment
CHUNK_OVERLAP = 200     # character overlap between consecutive fragments of one leaf

# paragraph, line, sentence, word, character
SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


class Chunker:
    """Recursive boundary-seeking splitter.

    Separators stay attached to the end of the piece before them and whitespace
    is kept, so every fragment text is an exact substring of its leaf and
    `offset` points at it.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP) -> None:
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}.")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(f"Chunk overlap ({chunk_overlap}) must be between 0 and the chunk size ({chunk_size}).")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._splitter = RecursiveCharacterTextSplitter(
            separators=SEPARATORS,
            keep_separator="end",
            strip_whitespace=False,
            add_start_index=True,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )

    @classmethod
    def from_config(cls, helper_config: HelperConfig) -> "Chunker":
        return cls(
            chunk_size=helper_config.get_int_val("CHUNK_SIZE", default=CHUNK_SIZE),
            chunk_overlap=helper_config.get_int_val("CHUNK_OVERLAP", default=CHUNK_OVERLAP),
        )

    def do_chunk(self, document: DocumentDetails, leaves: list[Leaf]) -> list[Fragment]:
        """Split the leaves of one page into fragments.

        Leaves are split independently, so a fragment never spans two blocks
        (or two pages). Chunk indices run over the whole page in leaf order.

        Returns:
            list[Fragment]: Fragments without vectors, in document order.
        """
        fragments: list[Fragment] = []
        for leaf in leaves:
            for piece in self._splitter.create_documents([leaf.text]):
                if not piece.page_content.strip():
                    continue
                fragments.append(Fragment(
                    text=piece.page_content,
                    document_id=document.id,
                    block_id=leaf.block_id,
                    document_title=document.title,
                    chunk_index=len(fragments),
                    offset=piece.metadata.get("start_index", 0),
                ))
        return fragments
