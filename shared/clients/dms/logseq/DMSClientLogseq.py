"""Logseq implementation of DMSClientInterface.

Talks to the HTTP API server built into the Logseq desktop app. Every call is a
POST to /api with the plugin-API method name and its arguments, authorised by a
bearer token configured in Logseq ("API" panel). Results are the plain JSON
serialisation of the plugin-API return value, `null` when nothing was found.
"""

from typing import Any

from shared.clients.dms.DMSClientInterface import DMSClientInterface
from shared.clients.dms.models.Block import BlockDetails, BlockReference
from shared.clients.dms.models.Document import DocumentDetails
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.request import BackendRequest


class DMSClientLogseq(DMSClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://127.0.0.1:12315", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Logseq"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://127.0.0.1:12315"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _rpc(self, method: str, *args: Any) -> BackendRequest:
        return BackendRequest(method="POST", endpoint="/api", body={"method": method, "args": list(args)})

    def _get_healthcheck_request(self) -> BackendRequest:
        return self._rpc("logseq.App.getCurrentGraph")

    ################ REQUEST BUILDER ##################
    def _get_request_document(self, document_id: str) -> BackendRequest:
        return self._rpc("logseq.Editor.getPage", document_id)

    def _get_request_document_tree(self, document: DocumentDetails) -> BackendRequest:
        return self._rpc("logseq.Editor.getPageBlocksTree", document.name or document.id)

    def _get_request_block(self, block_id: str, include_children: bool) -> BackendRequest:
        return self._rpc("logseq.Editor.getBlock", block_id, {"includeChildren": include_children})

    def _get_request_linked_documents(self, document: DocumentDetails) -> BackendRequest:
        return self._rpc("logseq.Editor.getPageLinkedReferences", document.name or document.id)

    def _get_request_all_documents(self) -> BackendRequest:
        return self._rpc("logseq.Editor.getAllPages")

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def _parse_document(self, response: Any) -> DocumentDetails | None:
        if not isinstance(response, dict) or not (response.get("uuid") or response.get("name")):
            return None
        name = response.get("name") or ""
        return DocumentDetails(
            engine=self.get_engine_name(),
            id=str(response.get("uuid") or name),
            name=name,
            title=response.get("originalName") or response.get("original-name") or name,
            updated_at=int(response.get("updatedAt") or response.get("updated-at") or 0),
            journal=bool(response.get("journal?") or response.get("journal")),
        )

    def _parse_block_child(self, raw: Any) -> BlockDetails | BlockReference | None:
        # out-of-tree children come as ["uuid", "<id>"] tuples
        if isinstance(raw, list) and len(raw) == 2 and raw[0] == "uuid":
            return BlockReference(id=str(raw[1]))
        return self._parse_block(raw)

    def _parse_block(self, response: Any) -> BlockDetails | None:
        if not isinstance(response, dict) or not response.get("uuid"):
            return None
        children = []
        for raw_child in response.get("children") or []:
            child = self._parse_block_child(raw_child)
            if child is not None:
                children.append(child)
        return BlockDetails(id=str(response["uuid"]), content=response.get("content") or "", children=children)

    def _parse_document_tree(self, response: Any) -> list[BlockDetails]:
        if not isinstance(response, list):
            return []
        blocks = [self._parse_block(raw) for raw in response]
        return [block for block in blocks if block is not None]

    def _parse_linked_documents(self, response: Any) -> list[DocumentDetails]:
        # [[PageEntity, [BlockEntity, ...]], ...], the page entity may be partial
        if not isinstance(response, list):
            return []
        documents: list[DocumentDetails] = []
        for ref in response:
            if not isinstance(ref, list) or not ref:
                continue
            document = self._parse_document(ref[0])
            if document is not None:
                documents.append(document)
        return documents

    def _parse_all_documents(self, response: Any) -> list[DocumentDetails]:
        if not isinstance(response, list):
            return []
        documents = [self._parse_document(raw) for raw in response]
        return [document for document in documents if document is not None]
