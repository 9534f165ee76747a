import json
from typing import Any

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.models.Tool import ToolDefinition
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    """Ollama /api/chat backend.

    Ollama cannot force a specific tool call, so structured output is requested
    through the `format` field holding the tool's JSON schema instead; the reply
    content is then the arguments JSON.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:11434", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "llama3.1"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:11434"),
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

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict], tool: ToolDefinition | None = None, stream: bool = False) -> dict:
        payload = {
            "model": self.chat_model,
            "messages": messages,
            "stream": stream,
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }
        if tool is not None:
            payload["format"] = tool.parameters
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        content = (response_data.get("message") or {}).get("content")
        if content is None:
            raise ValueError(
                "Ollama chat response does not contain a valid message. "
                "Response keys: %s" % list(response_data.keys())
            )
        return content

    def extract_tool_arguments(self, response_data: dict) -> Any:
        message = response_data.get("message") or {}
        tool_calls = message.get("tool_calls") or []
        if tool_calls:
            return (tool_calls[0].get("function") or {}).get("arguments")
        return message.get("content")

    def extract_stream_delta(self, line: str, tool: ToolDefinition | None = None) -> str | None:
        try:
            chunk = json.loads(line)
        except ValueError:
            self.logging.warning("Skipping malformed Ollama stream line: %r", line[:200])
            return None
        return (chunk.get("message") or {}).get("content") or None
