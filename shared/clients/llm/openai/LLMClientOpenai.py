import json
from typing import Any

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.models.Tool import ToolDefinition
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.request import BackendRequest

_SSE_PREFIX = "data:"
_SSE_DONE = "[DONE]"


class LLMClientOpenai(LLMClientInterface):
    """OpenAI (or any OpenAI-compatible) /chat/completions backend.

    Structured output is enforced with a function tool and a `tool_choice`
    naming that function. Streams are server-sent events.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_model(self) -> str:
        return "gpt-4o-mini"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    def _get_healthcheck_request(self) -> BackendRequest:
        return BackendRequest(method="GET", endpoint="/models")

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict], tool: ToolDefinition | None = None, stream: bool = False) -> dict:
        payload: dict = {
            "model": self.chat_model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tool is not None:
            payload["tools"] = [{"type": "function", "function": tool.model_dump()}]
            payload["tool_choice"] = {"type": "function", "function": {"name": tool.name}}
        if stream:
            payload["stream"] = True
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def _first_choice(self, response_data: dict, key: str) -> dict:
        choices = response_data.get("choices") or []
        if not choices:
            return {}
        return choices[0].get(key) or {}

    def extract_chat_response(self, response_data: dict) -> str:
        content = self._first_choice(response_data, "message").get("content")
        if content is None:
            raise ValueError(
                "OpenAI chat response does not contain a valid message. "
                "Response keys: %s" % list(response_data.keys())
            )
        return content

    def extract_tool_arguments(self, response_data: dict) -> Any:
        message = self._first_choice(response_data, "message")
        tool_calls = message.get("tool_calls") or []
        if tool_calls:
            return (tool_calls[0].get("function") or {}).get("arguments")
        return message.get("content")

    def extract_stream_delta(self, line: str, tool: ToolDefinition | None = None) -> str | None:
        if not line.startswith(_SSE_PREFIX):
            return None
        data = line[len(_SSE_PREFIX):].strip()
        if data == _SSE_DONE:
            return None
        try:
            chunk = json.loads(data)
        except ValueError:
            self.logging.warning("Skipping malformed OpenAI stream event: %r", data[:200])
            return None
        delta = self._first_choice(chunk, "delta")
        if tool is None:
            return delta.get("content")
        tool_calls = delta.get("tool_calls") or []
        if not tool_calls:
            return None
        return (tool_calls[0].get("function") or {}).get("arguments")
