from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientLoader import instantiate_client
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager:
    """
    Instantiates the vector-store client selected by RAG_ENGINE (default "qdrant").
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> RAGClientInterface:
        """
        Raises:
            ValueError: If the configured engine is unsupported.
        """
        engine = self.helper_config.get_string_val("RAG_ENGINE", default="qdrant")
        return instantiate_client(self.helper_config, "rag", engine)

    def get_client(self) -> RAGClientInterface:
        """
        Returns the instantiated vector-store client.
        """
        return self.client
