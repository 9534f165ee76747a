from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientLoader import instantiate_client
from shared.clients.dms.DMSClientInterface import DMSClientInterface


class DMSClientManager:
    """
    Instantiates the document-store client selected by DMS_ENGINE (default "logseq").
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> DMSClientInterface:
        """
        Raises:
            ValueError: If the configured engine is unsupported.
        """
        engine = self.helper_config.get_string_val("DMS_ENGINE", default="logseq")
        return instantiate_client(self.helper_config, "dms", engine)

    def get_client(self) -> DMSClientInterface:
        """
        Returns the instantiated document-store client.
        """
        return self.client
