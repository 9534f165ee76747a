from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import ServiceResponseError


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        self.embed_distance = helper_config.get_string_val("EMBED_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val("EMBED_MODEL", default=self._get_default_model())
        self.embed_batch_size = helper_config.get_int_val("EMBED_BATCH_SIZE", default=64)
        # 0 means "probe the model once"
        self.embed_vector_size = helper_config.get_int_val("EMBED_VECTOR_SIZE", default=0)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    @abstractmethod
    def _get_default_model(self) -> str:
        """
        Returns the embedding model used when EMBED_MODEL is not set.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests (e.g. "/api/embed").
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Ollama /api/embed: {"embeddings": [[...], [...]]}, already ordered
        - OpenAI-compatible: {"data": [{"embedding": [...], "index": 0}]}, needs sorting

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response does not contain valid embeddings.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        """
        Returns the output dimension and distance metric of the configured model.

        Uses EMBED_VECTOR_SIZE when set, otherwise embeds a probe text once and
        remembers the resulting dimension.
        """
        if not self.embed_vector_size:
            vectors = await self.do_embed("dimension probe")
            self.embed_vector_size = len(vectors[0])
            self.logging.info("Embedding model '%s' produces %d-dimensional vectors.", self.embed_model, self.embed_vector_size)
        return self.embed_vector_size, self.embed_distance

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send one embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ServiceResponseError: If the backend answers with a non-2xx status.
            ValueError: If the response does not contain one vector per text.
        """
        texts = [texts] if isinstance(texts, str) else texts
        if not texts:
            return []
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=self.get_embed_payload(texts))
        if not response.is_success:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise ServiceResponseError(f"Embedding request failed with status {response.status_code}.", status_code=response.status_code)
        vectors = self.extract_embeddings_from_response(response.json())
        if len(vectors) != len(texts):
            raise ValueError(f"Embedding backend returned {len(vectors)} vectors for {len(texts)} texts.")
        return vectors

    async def do_embed_batched(self, texts: list[str]) -> list[list[float]]:
        """Embed any number of texts in requests of at most EMBED_BATCH_SIZE texts."""
        batch_size = max(1, self.embed_batch_size)
        vectors: list[list[float]] = []
        for batch_start in range(0, len(texts), batch_size):
            vectors.extend(await self.do_embed(texts[batch_start: batch_start + batch_size]))
        return vectors
