from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.fragment import RetrievedFragment

RETRIEVAL_TOP_K = 6


class ScopedRetriever:
    """Similarity search restricted to an explicit set of pages.

    The scope is sent to the vector store as part of the query. Hits outside
    the scope that a backend returns anyway are dropped.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self._rag_client = rag_client
        self.top_k = helper_config.get_int_val("RETRIEVAL_TOP_K", default=RETRIEVAL_TOP_K)

    async def do_retrieve(self, query: str, scope: list[str], k: int | None = None) -> list[RetrievedFragment]:
        """Return the k fragments of the scope closest to the query, best first.

        Args:
            query (str): The retrieval query.
            scope (list[str]): Ids of the pages the result is restricted to.
            k (int | None): Number of fragments. Defaults to RETRIEVAL_TOP_K.

        Returns:
            list[RetrievedFragment]: Empty for an empty scope, without any backend call.
        """
        k = self.top_k if k is None else k
        if not scope or k <= 0:
            return []

        vectors = await self._embed_client.do_embed(query)
        hits = await self._rag_client.do_search(vectors[0], limit=k, document_ids=scope)

        allowed = set(scope)
        in_scope = [hit for hit in hits if hit.document_id in allowed]
        if len(in_scope) != len(hits):
            self.logging.warning(
                "Vector store '%s' returned %d fragment(s) outside the requested scope. Dropped.",
                self._rag_client.get_engine_name(), len(hits) - len(in_scope),
            )
        in_scope.sort(key=lambda hit: hit.score, reverse=True)
        self.logging.debug("Retrieved %d fragment(s) for query '%s'.", len(in_scope), query)
        return in_scope[:k]
