from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

import httpx
from httpx._types import QueryParamTypes, RequestContent
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import QuotaError, ServiceResponseError, TransientServiceError
from shared.models.request import BackendRequest

# error codes a 429 carries when retrying cannot help
QUOTA_ERROR_CODES = ("insufficient_quota",)


class ClientInterface(ABC):
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        type_prefix = self.get_client_type().upper()
        self.timeout = helper_config.get_number_val(f"{type_prefix}_TIMEOUT", default=30.0)
        self.retry_attempts = helper_config.get_int_val(f"{type_prefix}_RETRY_ATTEMPTS", default=7)
        self.retry_backoff = helper_config.get_number_val(f"{type_prefix}_RETRY_BACKOFF", default=1.0)
        self.retry_backoff_max = helper_config.get_number_val(f"{type_prefix}_RETRY_BACKOFF_MAX", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Validates that all required configuration values for the client are set and valid.

        Raises:
            ValueError: If any required configuration value is missing or invalid.
        """
        for config in self._get_required_config():
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the type of the client in lowercase. E.g. "rag"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client in lowercase. E.g. "qdrant"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all configuration keys the client reads.

        Returns:
            list[EnvConfig]: The details of each configuration key.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full configuration key name for the client. E.g. "RAG_QDRANT_API_KEY"
        """
        key_prefix = f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}"
        return f"{key_prefix}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of an engine-scoped configuration key.

        Args:
            raw_key (str): The raw configuration key name, e.g. "BASE_URL"
            default (Any): The value to return if the configuration key is not set
            val_type (str): The type of the configuration value ("string", "number", "bool", "list")
        """
        key = self._get_config_key_name(raw_key)
        if val_type == "string":
            return self._helper_config.get_string_val(key, default=default)
        elif val_type == "number":
            return self._helper_config.get_number_val(key, default=default)
        elif val_type == "bool":
            return self._helper_config.get_bool_val(key, default=default)
        elif val_type == "list":
            return self._helper_config.get_list_val(key, default=default)
        raise ValueError(f"Unsupported config value type '{val_type}' for env key '{raw_key}' in {self.get_client_type().upper()} client '{self.get_engine_name()}'.")

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the backend, empty if no key is configured.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the backend (e.g. "http://localhost:6333").
        """
        pass

    def _get_healthcheck_request(self) -> BackendRequest:
        """
        Returns the request used to probe the backend. Defaults to a GET on the base URL.
        """
        return BackendRequest(method="GET", endpoint="")

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Check if the backend is reachable.

        Returns:
            httpx.Response: The response from the healthcheck request.
        """
        return await self.do_backend_request(self._get_healthcheck_request())

    async def do_backend_request(self, request: BackendRequest, raise_on_error: bool = False) -> httpx.Response:
        """Execute a request described by a BackendRequest."""
        return await self.do_request(
            method=request.method,
            json=request.body,
            params=request.params,
            endpoint=request.endpoint,
            additional_headers=request.headers,
            raise_on_error=raise_on_error,
        )

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        """Initialise the HTTP client."""
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_request(
        self,
        method: str,
        endpoint: str,
        content: RequestContent | None,
        json: Any,
        params: QueryParamTypes | None,
        additional_headers: dict | None,
    ) -> httpx.Request:
        if self._client is None:
            raise Exception("HTTP client not initialised. Call boot() before making requests.")

        endpoint = "/" + endpoint.strip().lstrip("/") if endpoint.strip() else ""
        headers: dict = {}
        headers.update(self._get_auth_header())
        if additional_headers:
            headers.update(additional_headers)

        kwargs: dict = {"headers": headers, "params": params, "timeout": self.timeout}
        # httpx sets Content-Type for json bodies; raw content needs it in additional_headers
        if content is not None:
            kwargs["content"] = content
        elif json is not None:
            kwargs["json"] = json
        return self._client.build_request(method, f"{self._get_base_url().rstrip('/')}{endpoint}", **kwargs)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self.retry_attempts)),
            wait=wait_exponential(multiplier=self.retry_backoff, max=self.retry_backoff_max),
            retry=retry_if_exception_type(TransientServiceError),
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        self.logging.warning(
            "%s client '%s': attempt %d/%d failed (%s). Retrying...",
            self.get_client_type().upper(), self.get_engine_name(),
            retry_state.attempt_number, self.retry_attempts, exc,
        )

    def _raise_for_retryable_status(self, response: httpx.Response) -> None:
        """Raise QuotaError or TransientServiceError for 429/5xx responses."""
        status = response.status_code
        if status != 429 and status < 500:
            return
        url = str(response.request.url)
        if status == 429:
            error = _extract_error_body(response)
            if error.get("type") in QUOTA_ERROR_CODES or error.get("code") in QUOTA_ERROR_CODES:
                self.logging.error("Quota exhausted for %s: %s", url, error.get("message", ""))
                raise QuotaError(f"Quota exhausted for {url}.", status_code=status)
        raise TransientServiceError(f"Request to {url} failed with status {status}", status_code=status)

    async def _send(self, request: httpx.Request, stream: bool = False) -> httpx.Response:
        try:
            response = await self._client.send(request, stream=stream)
        except httpx.TransportError as exc:
            raise TransientServiceError(f"Request to {request.url} failed: {exc!r}") from exc
        if response.status_code == 429 or response.status_code >= 500:
            if stream:
                await response.aread()
                await response.aclose()
            self._raise_for_retryable_status(response)
        return response

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: Any = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the backend.

        Transport errors, 5xx and retryable 429 responses are retried with
        exponential backoff; a 429 carrying a quota error code is raised at once.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, …).
            content: Raw bytes / string body.
            json: JSON-serialisable body (sets Content-Type automatically).
            params: URL query parameters.
            endpoint: Path to append to the base URL (leading slash optional).
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise ServiceResponseError on any other non-2xx status.

        Returns:
            httpx.Response: The raw response.

        Raises:
            TransientServiceError: If all retry attempts failed.
            QuotaError: If the backend reports an exhausted quota.
            ServiceResponseError: On a non-2xx status when raise_on_error is True.
        """
        request = self._build_request(method, endpoint, content, json, params, additional_headers)
        async for attempt in self._retrying():
            with attempt:
                response = await self._send(request)

        if raise_on_error and not response.is_success:
            self.logging.error(
                "Request to %s failed with status %d: %s",
                request.url, response.status_code, response.text[:500],
            )
            raise ServiceResponseError(
                f"Request to {request.url} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def do_stream_request(
        self,
        method: str = "POST",
        json: Any = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
    ) -> AsyncIterator[str]:
        """Send a request and yield the non-empty lines of the streamed response body.

        Only opening the stream is retried. A transport failure after the first
        line has been yielded is raised as TransientServiceError without retry.

        Raises:
            TransientServiceError: If all retry attempts failed or the stream broke off.
            QuotaError: If the backend reports an exhausted quota.
            ServiceResponseError: On any other non-2xx status.
        """
        request = self._build_request(method, endpoint, None, json, None, additional_headers)
        async for attempt in self._retrying():
            with attempt:
                response = await self._send(request, stream=True)

        try:
            if not response.is_success:
                await response.aread()
                self.logging.error(
                    "Stream request to %s failed with status %d: %s",
                    request.url, response.status_code, response.text[:500],
                )
                raise ServiceResponseError(
                    f"Request to {request.url} failed with status {response.status_code}",
                    status_code=response.status_code,
                )
            try:
                async for line in response.aiter_lines():
                    if line.strip():
                        yield line
            except httpx.TransportError as exc:
                self.logging.error("Stream from %s broke off: %r", request.url, exc)
                raise TransientServiceError(f"Stream from {request.url} broke off: {exc!r}") from exc
        finally:
            await response.aclose()


def _extract_error_body(response: httpx.Response) -> dict:
    """Return the `error` object of a JSON error response, or an empty dict."""
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}
