from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientLoader import instantiate_client
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager:
    """
    Instantiates the embedding client selected by EMBED_ENGINE (default "openai").
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> EmbedClientInterface:
        """
        Raises:
            ValueError: If the configured engine is unsupported.
        """
        engine = self.helper_config.get_string_val("EMBED_ENGINE", default="openai")
        return instantiate_client(self.helper_config, "embed", engine)

    def get_client(self) -> EmbedClientInterface:
        """
        Returns the instantiated embedding client.
        """
        return self.client
