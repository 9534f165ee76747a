"""Incremental index sync.

Compares each page's revision timestamp with the watermark stored at its last
successful indexing, and only flattens, chunks and embeds pages that changed.
Callers serialize runs over overlapping scopes; nothing here locks.
"""

import asyncio

from services.dms_rag_sync.Chunker import Chunker
from services.dms_rag_sync.TreeFlattener import TreeFlattener
from shared.clients.dms.DMSClientInterface import DMSClientInterface
from shared.clients.dms.models.Document import DocumentDetails
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.Watermark import IndexWatermark
from shared.helper.HelperConfig import HelperConfig
from shared.models.fragment import Fragment
from shared.models.sync import SyncResult

DOC_CONCURRENCY = 4     # max stale pages re-indexed in parallel


class SyncService:
    """Keeps the vector store's fragments current for a set of pages."""

    def __init__(
        self,
        helper_config: HelperConfig,
        dms_client: DMSClientInterface,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        flattener: TreeFlattener | None = None,
        chunker: Chunker | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._dms_client = dms_client
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._flattener = flattener or TreeFlattener(helper_config=helper_config, dms_client=dms_client)
        self._chunker = chunker or Chunker.from_config(helper_config)
        self.include_linked = helper_config.get_bool_val("INDEX_INCLUDE_LINKED", default=True)
        self.concurrency = max(1, helper_config.get_int_val("INDEX_CONCURRENCY", default=DOC_CONCURRENCY))

    ##########################################
    ################ SCOPE ###################
    ##########################################

    async def do_resolve_scope(self, document_id: str, include_linked: bool | None = None) -> list[DocumentDetails]:
        """Resolve the pages a query on the selected page is restricted to.

        Args:
            document_id (str): Id (or name) of the selected page.
            include_linked (bool | None): Add the pages linking to it (one hop).
                Defaults to INDEX_INCLUDE_LINKED.

        Returns:
            list[DocumentDetails]: The selected page first, then linked pages, without duplicates.

        Raises:
            InputError: If the selected page does not exist.
        """
        if include_linked is None:
            include_linked = self.include_linked
        selected = await self._dms_client.do_fetch_document_or_raise(document_id)
        documents = [selected]
        if not include_linked:
            return documents

        seen = {selected.id}
        for linked in await self._dms_client.do_fetch_linked_documents(selected):
            if linked.id in seen:
                continue
            # linked references may be partial entities without a revision timestamp
            document = await self._dms_client.do_fetch_document(linked.name or linked.id)
            if document is None:
                self.logging.warning("Linked page '%s' of '%s' no longer exists, skipping.", linked.id, selected.title)
                continue
            if document.id in seen:
                continue
            seen.add(document.id)
            documents.append(document)
        self.logging.debug("Scope of '%s': %d page(s).", selected.title, len(documents))
        return documents

    ##########################################
    ############### CORE SYNC ################
    ##########################################

    async def do_ensure_index(self) -> None:
        """Create the vector store collections sized for the configured embedding model."""
        vector_size, distance = await self._embed_client.do_fetch_embedding_vector_size()
        await self._rag_client.do_ensure_collections(vector_size=vector_size, distance=distance)

    async def do_sync(self, document_id: str, include_linked: bool | None = None) -> SyncResult:
        """Bring the selected page (and optionally its linked pages) up to date.

        Raises:
            InputError: If the selected page does not exist.
            ServiceError: If the document store, embedding service or vector store fails.
        """
        documents = await self.do_resolve_scope(document_id, include_linked=include_linked)
        return await self.do_sync_documents(documents)

    async def do_full_sync(self) -> SyncResult:
        """Bring every page of the document store up to date."""
        self.logging.info("Starting full sync of %s...", self._dms_client.get_engine_name())
        documents = await self._dms_client.do_fetch_all_documents()
        if not documents:
            self.logging.warning("No pages found in %s. Nothing to sync.", self._dms_client.get_engine_name())
        return await self.do_sync_documents(documents)

    async def do_sync_documents(self, documents: list[DocumentDetails]) -> SyncResult:
        """Re-index the stale pages among the given ones, then advance all watermarks.

        Watermarks are written only after every stale page was re-indexed, so a
        failure leaves the failed page (and all others of this run) stale.

        Raises:
            ServiceError: If any page failed to re-index. Nothing is marked current then.
        """
        if not documents:
            return SyncResult()
        document_ids = [document.id for document in documents]
        watermarks = await self._rag_client.do_fetch_watermarks(document_ids)

        for document in documents:
            if not document.updated_at:
                self.logging.warning(
                    "Page '%s' (%s) has no revision timestamp and is re-indexed on every sync.",
                    document.title, document.id,
                )
        stale = [document for document in documents if self._is_stale(document, watermarks.get(document.id))]
        self.logging.info(
            "Index sync: %d page(s) in scope, %d stale, %d current.",
            len(documents), len(stale), len(documents) - len(stale),
        )

        sem = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(
            *[self._reindex_document(document, sem) for document in stale],
            return_exceptions=True,
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            self.logging.error("Index sync aborted: %d of %d stale page(s) failed.", len(errors), len(stale))
            raise errors[0]

        await self._rag_client.do_upsert_watermarks([
            IndexWatermark(
                document_id=document.id,
                title=document.title,
                updated_at=max(document.updated_at, watermarks[document.id].updated_at if document.id in watermarks else 0),
            )
            for document in documents
        ])
        return SyncResult(
            documents=documents,
            scope=document_ids,
            reindexed=[document.id for document in stale],
            fragment_count=sum(results),
        )

    @staticmethod
    def _is_stale(document: DocumentDetails, watermark: IndexWatermark | None) -> bool:
        # without a revision timestamp a change cannot be detected
        if not document.updated_at:
            return True
        return watermark is None or document.updated_at > watermark.updated_at

    ##########################################
    ############ DOCUMENT SYNC ###############
    ##########################################

    async def do_build_fragments(self, document: DocumentDetails) -> list[Fragment]:
        """Flatten and chunk one page. The fragments carry no vectors yet."""
        tree = await self._dms_client.do_fetch_document_tree(document)
        leaves = await self._flattener.do_flatten(tree)
        return self._chunker.do_chunk(document, leaves)

    async def _reindex_document(self, document: DocumentDetails, sem: asyncio.Semaphore) -> int:
        """Replace the stored fragments of one page.

        Embeds first so an embedding failure leaves the old fragments in place.

        Returns:
            int: Number of fragments written.
        """
        async with sem:
            fragments = await self.do_build_fragments(document)
            try:
                vectors = await self._embed_client.do_embed_batched([fragment.text for fragment in fragments])
            except Exception as exc:
                self.logging.error("Embedding failed for page '%s' (%s): %s", document.title, document.id, exc)
                raise
            for fragment, vector in zip(fragments, vectors):
                fragment.vector = vector

            try:
                await self._rag_client.do_delete_by_documents([document.id])
                written = await self._rag_client.do_upsert_fragments(fragments)
            except Exception as exc:
                self.logging.error("Writing fragments failed for page '%s' (%s): %s", document.title, document.id, exc)
                raise

            self.logging.info("Indexed page '%s' (%s): %d fragment(s).", document.title, document.id, written)
            return written
