from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientLoader import instantiate_client
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager:
    """
    Instantiates the chat-completion client selected by LLM_ENGINE (default "openai").
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> LLMClientInterface:
        """
        Raises:
            ValueError: If the configured engine is unsupported.
        """
        engine = self.helper_config.get_string_val("LLM_ENGINE", default="openai")
        return instantiate_client(self.helper_config, "llm", engine)

    def get_client(self) -> LLMClientInterface:
        """
        Returns the instantiated chat-completion client.
        """
        return self.client
