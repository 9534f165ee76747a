from abc import abstractmethod
from typing import Any, AsyncIterator

from shared.clients.ClientInterface import ClientInterface
from shared.clients.llm.models.Tool import ToolDefinition
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        self.chat_model = helper_config.get_string_val("LLM_CHAT_MODEL", default=self._get_default_model())
        self.temperature = helper_config.get_number_val("LLM_TEMPERATURE", default=0.2)
        self.max_tokens = helper_config.get_int_val("LLM_MAX_TOKENS", default=1000)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def _get_default_model(self) -> str:
        """Returns the chat model used when LLM_CHAT_MODEL is not set."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict], tool: ToolDefinition | None = None, stream: bool = False) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).
            tool (ToolDefinition | None): Structured output the model is forced to produce.
            stream (bool): Whether the backend should stream the reply.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Raises:
            ValueError: If the response does not contain a valid reply.
        """
        pass

    @abstractmethod
    def extract_tool_arguments(self, response_data: dict) -> Any:
        """Extract the arguments of the forced tool call from a raw chat API response.

        Returns:
            Any: The arguments as decoded dict or as raw JSON text, None if the
                model produced no call at all. Validation is up to the caller.
        """
        pass

    @abstractmethod
    def extract_stream_delta(self, line: str, tool: ToolDefinition | None = None) -> str | None:
        """Extract the text delta carried by one line of a streamed reply.

        With a tool, the delta is the next piece of the tool-call arguments JSON.

        Returns:
            str | None: The delta, or None for lines carrying no text.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Raises:
            ServiceError: If the HTTP request fails.
            ValueError: If the response does not contain a valid reply.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages),
            raise_on_error=True,
        )
        return self.extract_chat_response(response.json())

    async def do_chat_with_tool(self, messages: list[dict], tool: ToolDefinition) -> Any:
        """Send a chat request constrained to the given tool and return its raw arguments.

        Raises:
            ServiceError: If the HTTP request fails.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages, tool=tool),
            raise_on_error=True,
        )
        return self.extract_tool_arguments(response.json())

    async def do_chat_stream(self, messages: list[dict], tool: ToolDefinition | None = None) -> AsyncIterator[str]:
        """Stream a chat reply (or the forced tool-call arguments) as text deltas.

        Concatenating all yielded deltas gives the same text the non-streaming
        call would return.
        """
        lines = self.do_stream_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages, tool=tool, stream=True),
        )
        async for line in lines:
            delta = self.extract_stream_delta(line, tool=tool)
            if delta:
                yield delta
