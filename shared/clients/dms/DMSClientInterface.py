from abc import abstractmethod
from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.dms.models.Block import BlockDetails
from shared.clients.dms.models.Document import DocumentDetails
from shared.models.errors import InputError, ServiceResponseError
from shared.models.request import BackendRequest


class DMSClientInterface(ClientInterface):
    """Read-only access to a hierarchical document store (pages made of nested blocks).

    Subclasses describe each call through a request builder and turn the raw
    response into models through a parser. A parser returns None (or an empty
    list) for a not-found result; only do_fetch_document_or_raise() turns that
    into an error.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "dms"

    ################ REQUEST BUILDER ##################
    @abstractmethod
    def _get_request_document(self, document_id: str) -> BackendRequest:
        """
        Returns the request fetching a single page by id.
        """
        pass

    @abstractmethod
    def _get_request_document_tree(self, document: DocumentDetails) -> BackendRequest:
        """
        Returns the request fetching the root blocks of a page, children inline where the backend provides them.
        """
        pass

    @abstractmethod
    def _get_request_block(self, block_id: str, include_children: bool) -> BackendRequest:
        """
        Returns the request fetching a single block by id.
        """
        pass

    @abstractmethod
    def _get_request_linked_documents(self, document: DocumentDetails) -> BackendRequest:
        """
        Returns the request fetching the pages that link to the given page.
        """
        pass

    @abstractmethod
    def _get_request_all_documents(self) -> BackendRequest:
        """
        Returns the request listing every page of the store.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def _parse_document(self, response: Any) -> DocumentDetails | None:
        """
        Parses a single page. Returns None if the backend reported no such page.
        """
        pass

    @abstractmethod
    def _parse_document_tree(self, response: Any) -> list[BlockDetails]:
        """
        Parses the root blocks of a page in document order.
        """
        pass

    @abstractmethod
    def _parse_block(self, response: Any) -> BlockDetails | None:
        """
        Parses a single block. Returns None if the block does not exist (anymore).
        """
        pass

    @abstractmethod
    def _parse_linked_documents(self, response: Any) -> list[DocumentDetails]:
        """
        Parses the pages linking to a page.
        """
        pass

    @abstractmethod
    def _parse_all_documents(self, response: Any) -> list[DocumentDetails]:
        """
        Parses the full page listing.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_fetch(self, request: BackendRequest) -> Any:
        """Executes a request and returns the decoded JSON body. A 404 counts as an empty (None) result."""
        response = await self.do_request(
            method=request.method,
            json=request.body,
            params=request.params,
            endpoint=request.endpoint,
            additional_headers=request.headers,
        )
        if response.status_code == 404:
            return None
        if not response.is_success:
            self.logging.error(
                "DMS request %s %s failed with status %d: %s",
                request.method, request.endpoint, response.status_code, response.text[:500],
            )
            raise ServiceResponseError(
                f"DMS request {request.method} {request.endpoint} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        return response.json()

    async def do_fetch_document(self, document_id: str) -> DocumentDetails | None:
        """
        Fetches a page by id.

        Returns:
            DocumentDetails | None: The page, or None if it does not exist.
        """
        raw = await self._do_fetch(self._get_request_document(document_id))
        return self._parse_document(raw)

    async def do_fetch_document_or_raise(self, document_id: str) -> DocumentDetails:
        """
        Fetches a page that must exist, e.g. the page the user selected.

        Raises:
            InputError: If the page cannot be resolved.
        """
        document = await self.do_fetch_document(document_id)
        if document is None:
            self.logging.error("Page '%s' not found in %s.", document_id, self.get_engine_name())
            raise InputError(f"Page '{document_id}' not found.")
        return document

    async def do_fetch_document_tree(self, document: DocumentDetails) -> list[BlockDetails]:
        """
        Fetches the root blocks of a page. A missing page yields an empty tree.
        """
        raw = await self._do_fetch(self._get_request_document_tree(document))
        return self._parse_document_tree(raw)

    async def do_fetch_block(self, block_id: str, include_children: bool = True) -> BlockDetails | None:
        """
        Fetches a single block, used to resolve out-of-tree child references.

        Returns:
            BlockDetails | None: The block, or None if it was deleted or never existed.
        """
        raw = await self._do_fetch(self._get_request_block(block_id, include_children))
        return self._parse_block(raw)

    async def do_fetch_linked_documents(self, document: DocumentDetails) -> list[DocumentDetails]:
        """
        Fetches the pages that directly link to the given page (one hop).
        """
        raw = await self._do_fetch(self._get_request_linked_documents(document))
        return self._parse_linked_documents(raw)

    async def do_fetch_all_documents(self) -> list[DocumentDetails]:
        """
        Fetches every page of the store.
        """
        raw = await self._do_fetch(self._get_request_all_documents())
        return self._parse_all_documents(raw)
