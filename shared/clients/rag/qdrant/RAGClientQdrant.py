import uuid

import httpx

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import FragmentPayload
from shared.clients.rag.models.Watermark import IndexWatermark
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.fragment import Fragment
from shared.models.request import BackendRequest

# watermark points carry no meaningful vector
_WATERMARK_VECTOR = [1.0]


def fragment_point_id(document_id: str, chunk_index: int) -> str:
    """Deterministic point id, so re-indexing a page overwrites its old points."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{document_id}:{chunk_index}"))


def watermark_point_id(document_id: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, document_id))


class RAGClientQdrant(RAGClientInterface):
    """Qdrant REST backend.

    Fragments live in RAG_QDRANT_COLLECTION, watermarks in a second collection
    (RAG_QDRANT_WATERMARK_COLLECTION, default "<collection>_pages") of
    payload-only points keyed by a uuid5 of the document id.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="logseq_fragments", val_type="string")
        self._watermark_collection_name = self.get_config_val(
            "WATERMARK_COLLECTION", default=f"{self._collection_name}_pages", val_type="string"
        )

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="logseq_fragments"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_healthcheck_request(self) -> BackendRequest:
        return BackendRequest(method="GET", endpoint="/healthz")

    def _collection_endpoint(self, collection: str, suffix: str = "") -> str:
        return f"/collections/{collection}{suffix}"

    ################ REQUEST BUILDER ##################
    def _document_filter(self, document_ids: list[str]) -> dict:
        return {"must": [{"key": "document_id", "match": {"any": list(document_ids)}}]}

    def _get_requests_check_collections(self) -> dict[str, BackendRequest]:
        return {
            name: BackendRequest(method="GET", endpoint=self._collection_endpoint(name, "/exists"))
            for name in (self._collection_name, self._watermark_collection_name)
        }

    def _get_requests_ensure_collections(self, vector_size: int, distance: str, missing: list[str]) -> list[BackendRequest]:
        requests = []
        if self._collection_name in missing:
            requests.append(BackendRequest(
                method="PUT",
                endpoint=self._collection_endpoint(self._collection_name),
                body={"vectors": {"size": vector_size, "distance": distance}},
            ))
            requests.append(BackendRequest(
                method="PUT",
                endpoint=self._collection_endpoint(self._collection_name, "/index"),
                params={"wait": "true"},
                body={"field_name": "document_id", "field_schema": "keyword"},
            ))
        if self._watermark_collection_name in missing:
            requests.append(BackendRequest(
                method="PUT",
                endpoint=self._collection_endpoint(self._watermark_collection_name),
                body={"vectors": {"size": len(_WATERMARK_VECTOR), "distance": "Dot"}},
            ))
        return requests

    def _get_request_upsert_fragments(self, fragments: list[Fragment]) -> BackendRequest:
        points = [
            {
                "id": fragment_point_id(fragment.document_id, fragment.chunk_index),
                "vector": fragment.vector,
                "payload": FragmentPayload.from_fragment(fragment).model_dump(),
            }
            for fragment in fragments
        ]
        return BackendRequest(
            method="PUT",
            endpoint=self._collection_endpoint(self._collection_name, "/points"),
            params={"wait": "true"},
            body={"points": points},
        )

    def _get_request_delete_by_documents(self, document_ids: list[str]) -> BackendRequest:
        return BackendRequest(
            method="POST",
            endpoint=self._collection_endpoint(self._collection_name, "/points/delete"),
            params={"wait": "true"},
            body={"filter": self._document_filter(document_ids)},
        )

    def _get_request_search(self, vector: list[float], limit: int, document_ids: list[str]) -> BackendRequest:
        return BackendRequest(
            method="POST",
            endpoint=self._collection_endpoint(self._collection_name, "/points/search"),
            body={
                "vector": vector,
                "limit": limit,
                "filter": self._document_filter(document_ids),
                "with_payload": True,
            },
        )

    def _get_request_fetch_watermarks(self, document_ids: list[str]) -> BackendRequest:
        return BackendRequest(
            method="POST",
            endpoint=self._collection_endpoint(self._watermark_collection_name, "/points"),
            body={
                "ids": [watermark_point_id(document_id) for document_id in document_ids],
                "with_payload": True,
                "with_vector": False,
            },
        )

    def _get_request_upsert_watermarks(self, watermarks: list[IndexWatermark]) -> BackendRequest:
        points = [
            {"id": watermark_point_id(mark.document_id), "vector": _WATERMARK_VECTOR, "payload": mark.model_dump()}
            for mark in watermarks
        ]
        return BackendRequest(
            method="PUT",
            endpoint=self._collection_endpoint(self._watermark_collection_name, "/points"),
            params={"wait": "true"},
            body={"points": points},
        )

    ##########################################
    ################# PARSER #################
    ##########################################

    def _parse_collections_exist(self, response: httpx.Response) -> bool:
        if not response.is_success:
            return False
        return bool(response.json().get("result", {}).get("exists"))

    def _parse_search(self, raw_response: dict) -> list[tuple[FragmentPayload, float]]:
        hits = []
        for point in raw_response.get("result") or []:
            payload = point.get("payload") or {}
            if "document_id" not in payload or "block_id" not in payload:
                self.logging.warning("Skipping Qdrant point %s without fragment payload.", point.get("id"))
                continue
            hits.append((FragmentPayload(**payload), float(point.get("score", 0.0))))
        return hits

    def _parse_watermarks(self, raw_response: dict) -> list[IndexWatermark]:
        return [
            IndexWatermark(**point["payload"])
            for point in raw_response.get("result") or []
            if point.get("payload")
        ]
