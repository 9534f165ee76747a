from abc import abstractmethod
from typing import Any

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.VectorPoint import FragmentPayload
from shared.clients.rag.models.Watermark import IndexWatermark
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import ServiceResponseError
from shared.models.fragment import Fragment, RetrievedFragment
from shared.models.request import BackendRequest


class RAGClientInterface(ClientInterface):
    """Vector store holding page fragments plus one watermark per indexed page.

    Engines describe each operation as a BackendRequest and parse the raw
    response; this class sends them and handles batching and logging.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.upsert_batch_size = max(1, helper_config.get_int_val("RAG_UPSERT_BATCH_SIZE", default=100))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ################ REQUEST BUILDER ##################
    @abstractmethod
    def _get_requests_ensure_collections(self, vector_size: int, distance: str, missing: list[str]) -> list[BackendRequest]:
        """
        Returns the requests that create the missing storage units, named as the
        keys of _get_requests_check_collections().

        Raises:
            BridgeError: If the backend cannot create its storage over the API.
        """
        pass

    @abstractmethod
    def _get_requests_check_collections(self) -> dict[str, BackendRequest]:
        """
        Returns one existence probe per storage unit (fragments and watermarks), keyed by its name.
        """
        pass

    @abstractmethod
    def _get_request_upsert_fragments(self, fragments: list[Fragment]) -> BackendRequest:
        """
        Returns the request writing one batch of embedded fragments.
        """
        pass

    @abstractmethod
    def _get_request_delete_by_documents(self, document_ids: list[str]) -> BackendRequest:
        """
        Returns the request removing every fragment owned by the given pages.
        """
        pass

    @abstractmethod
    def _get_request_search(self, vector: list[float], limit: int, document_ids: list[str]) -> BackendRequest:
        """
        Returns the similarity search request restricted to the given pages.
        """
        pass

    @abstractmethod
    def _get_request_fetch_watermarks(self, document_ids: list[str]) -> BackendRequest:
        pass

    @abstractmethod
    def _get_request_upsert_watermarks(self, watermarks: list[IndexWatermark]) -> BackendRequest:
        pass

    ################ PARSER ##################
    @abstractmethod
    def _parse_collections_exist(self, response: httpx.Response) -> bool:
        pass

    @abstractmethod
    def _parse_search(self, raw_response: Any) -> list[tuple[FragmentPayload, float]]:
        """
        Extracts (payload, score) pairs from a raw search response, best first.
        """
        pass

    @abstractmethod
    def _parse_watermarks(self, raw_response: Any) -> list[IndexWatermark]:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_send(self, request: BackendRequest) -> httpx.Response:
        return await self.do_backend_request(request, raise_on_error=True)

    async def do_fetch_missing_collections(self) -> list[str]:
        """Return the names of the storage units (fragments, watermarks) that do not exist yet."""
        missing = []
        for name, request in self._get_requests_check_collections().items():
            response = await self.do_backend_request(request)
            if not self._parse_collections_exist(response):
                missing.append(name)
        return missing

    async def do_check_collections(self) -> bool:
        """Check whether both the fragment and the watermark storage exist in the backend."""
        return not await self.do_fetch_missing_collections()

    async def do_ensure_collections(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the fragment and watermark storage if it does not exist yet.

        Args:
            vector_size (int): Dimension of the embedding vectors.
            distance (str): Distance metric, e.g. "Cosine".
        """
        missing = await self.do_fetch_missing_collections()
        if not missing:
            self.logging.debug("RAG storage on '%s' already exists.", self.get_engine_name())
            return
        self.logging.info(
            "Creating RAG storage %s on '%s' (vector size %d, distance %s).",
            ", ".join(missing), self.get_engine_name(), vector_size, distance,
        )
        for request in self._get_requests_ensure_collections(vector_size, distance, missing):
            await self._do_send(request)

    async def do_upsert_fragments(self, fragments: list[Fragment]) -> int:
        """Write embedded fragments in batches of RAG_UPSERT_BATCH_SIZE.

        Returns:
            int: Number of fragments written.

        Raises:
            ValueError: If a fragment carries no vector.
        """
        for fragment in fragments:
            if fragment.vector is None:
                raise ValueError(
                    f"Fragment {fragment.chunk_index} of document '{fragment.document_id}' has no embedding."
                )
        for start in range(0, len(fragments), self.upsert_batch_size):
            batch = fragments[start:start + self.upsert_batch_size]
            await self._do_send(self._get_request_upsert_fragments(batch))
        return len(fragments)

    async def do_delete_by_documents(self, document_ids: list[str]) -> None:
        """Delete every fragment owned by the given pages."""
        if not document_ids:
            return
        await self._do_send(self._get_request_delete_by_documents(document_ids))

    async def do_search(self, vector: list[float], limit: int, document_ids: list[str]) -> list[RetrievedFragment]:
        """Return the fragments of the given pages closest to the vector, best first.

        An empty document_ids list matches nothing and sends no request.
        """
        if not document_ids or limit <= 0:
            return []
        response = await self._do_send(self._get_request_search(vector, limit, document_ids))
        return [payload.to_retrieved(score) for payload, score in self._parse_search(response.json())]

    async def do_fetch_watermarks(self, document_ids: list[str]) -> dict[str, IndexWatermark]:
        """Return the stored watermarks of the given pages keyed by document id.

        Pages that were never indexed are absent from the result.
        """
        if not document_ids:
            return {}
        response = await self._do_send(self._get_request_fetch_watermarks(document_ids))
        try:
            raw_response = response.json()
        except ValueError as e:
            raise ServiceResponseError(f"Unparseable watermark response from {self.get_engine_name()}: {e}")
        return {mark.document_id: mark for mark in self._parse_watermarks(raw_response)}

    async def do_upsert_watermarks(self, watermarks: list[IndexWatermark]) -> None:
        """Insert or replace the watermarks of the given pages."""
        if not watermarks:
            return
        await self._do_send(self._get_request_upsert_watermarks(watermarks))
