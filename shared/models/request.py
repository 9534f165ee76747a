from typing import Any

from pydantic import BaseModel


class BackendRequest(BaseModel):
    """Engine-specific description of a single HTTP call.

    Interfaces build these through abstract request builders and execute them
    through ClientInterface.do_request(), so engines only describe *what* to
    send and never deal with the transport.

    Attributes:
        method:   HTTP method (GET, POST, PUT, DELETE, PATCH).
        endpoint: Path relative to the client's base URL.
        body:     JSON-serialisable body, if any.
        params:   URL query parameters, if any.
        headers:  Extra headers merged over the auth header.
    """

    method: str = "GET"
    endpoint: str = ""
    body: Any = None
    params: dict[str, str] | None = None
    headers: dict[str, str] = {}
