"""Supabase (PostgREST) vector store backend.

The tables and the search function cannot be created over the REST API. Run
this once in the SQL editor (adjust the vector dimension to your model):

    create extension if not exists vector;

    create table documents (
        id bigserial primary key,
        content text,
        metadata jsonb,
        embedding vector(1536)
    );

    create table pages (
        document_id text primary key,
        title text,
        updated_at bigint
    );

    create function match_documents (
        query_embedding vector(1536),
        match_count int default null,
        document_ids text[] default null
    ) returns table (id bigint, content text, metadata jsonb, similarity float)
    language plpgsql as $$
    begin
        return query
        select d.id, d.content, d.metadata, 1 - (d.embedding <=> query_embedding) as similarity
        from documents d
        where document_ids is null or d.metadata->>'document_id' = any(document_ids)
        order by d.embedding <=> query_embedding
        limit match_count;
    end;
    $$;
"""

import httpx

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import FragmentPayload
from shared.clients.rag.models.Watermark import IndexWatermark
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import BridgeError
from shared.models.fragment import Fragment
from shared.models.request import BackendRequest


def _in_filter(values: list[str]) -> str:
    quoted = ",".join('"%s"' % value.replace('"', '\\"') for value in values)
    return f"in.({quoted})"


class RAGClientSupabase(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._table_name = self.get_config_val("TABLE", default="documents", val_type="string")
        self._watermark_table_name = self.get_config_val("WATERMARK_TABLE", default="pages", val_type="string")
        self._match_function = self.get_config_val("MATCH_FUNCTION", default="match_documents", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Supabase"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"apikey": self._api_key, "Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_healthcheck_request(self) -> BackendRequest:
        return BackendRequest(method="GET", endpoint="/rest/v1/")

    def _table_endpoint(self, table: str) -> str:
        return f"/rest/v1/{table}"

    ################ REQUEST BUILDER ##################
    def _get_requests_check_collections(self) -> dict[str, BackendRequest]:
        return {
            self._table_name: BackendRequest(
                method="GET",
                endpoint=self._table_endpoint(self._table_name),
                params={"select": "id", "limit": "1"},
            ),
            self._watermark_table_name: BackendRequest(
                method="GET",
                endpoint=self._table_endpoint(self._watermark_table_name),
                params={"select": "document_id", "limit": "1"},
            ),
        }

    def _get_requests_ensure_collections(self, vector_size: int, distance: str, missing: list[str]) -> list[BackendRequest]:
        raise BridgeError(
            f"Supabase table(s) {', '.join(missing)} do not exist. Create the tables and the "
            f"'{self._match_function}' function with the SQL from the RAGClientSupabase module "
            f"docstring, using vector({vector_size})."
        )

    def _get_request_upsert_fragments(self, fragments: list[Fragment]) -> BackendRequest:
        rows = []
        for fragment in fragments:
            metadata = FragmentPayload.from_fragment(fragment).model_dump(exclude={"chunk_text"})
            rows.append({"content": fragment.text, "metadata": metadata, "embedding": fragment.vector})
        return BackendRequest(
            method="POST",
            endpoint=self._table_endpoint(self._table_name),
            body=rows,
            headers={"Prefer": "return=minimal"},
        )

    def _get_request_delete_by_documents(self, document_ids: list[str]) -> BackendRequest:
        return BackendRequest(
            method="DELETE",
            endpoint=self._table_endpoint(self._table_name),
            params={"metadata->>document_id": _in_filter(document_ids)},
        )

    def _get_request_search(self, vector: list[float], limit: int, document_ids: list[str]) -> BackendRequest:
        return BackendRequest(
            method="POST",
            endpoint=f"/rest/v1/rpc/{self._match_function}",
            body={"query_embedding": vector, "match_count": limit, "document_ids": list(document_ids)},
        )

    def _get_request_fetch_watermarks(self, document_ids: list[str]) -> BackendRequest:
        return BackendRequest(
            method="GET",
            endpoint=self._table_endpoint(self._watermark_table_name),
            params={"select": "document_id,title,updated_at", "document_id": _in_filter(document_ids)},
        )

    def _get_request_upsert_watermarks(self, watermarks: list[IndexWatermark]) -> BackendRequest:
        return BackendRequest(
            method="POST",
            endpoint=self._table_endpoint(self._watermark_table_name),
            params={"on_conflict": "document_id"},
            body=[mark.model_dump() for mark in watermarks],
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    ##########################################
    ################# PARSER #################
    ##########################################

    def _parse_collections_exist(self, response: httpx.Response) -> bool:
        # PostgREST answers 404 (or 42P01 wrapped in a 4xx) for a missing table
        return response.is_success

    def _parse_search(self, raw_response: list) -> list[tuple[FragmentPayload, float]]:
        hits = []
        for row in raw_response or []:
            metadata = row.get("metadata") or {}
            if "document_id" not in metadata or "block_id" not in metadata:
                self.logging.warning("Skipping Supabase row %s without fragment metadata.", row.get("id"))
                continue
            payload = FragmentPayload(**{**metadata, "chunk_text": row.get("content") or ""})
            hits.append((payload, float(row.get("similarity", 0.0))))
        return hits

    def _parse_watermarks(self, raw_response: list) -> list[IndexWatermark]:
        return [
            IndexWatermark(
                document_id=row["document_id"],
                title=row.get("title") or "",
                updated_at=row.get("updated_at") or 0,
            )
            for row in raw_response or []
        ]
