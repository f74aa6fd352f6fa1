"""
Core data models for requests and responses.
"""

import io
from dataclasses import dataclass, field
from enum import Enum
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, List, Optional, Union


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"


@dataclass
class Request:
    """Represents an HTTP request.

    `context` is a per-request scratch space; values cached there never
    outlive the request.
    """

    method: HTTPMethod
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    query_string: str = ""
    path_params: Optional[Dict[str, str]] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def get_header(self, name: str) -> Optional[str]:
        """Get a header value, matching the name case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def path_param(self, name: str) -> Optional[str]:
        """Get a path variable captured by the router."""
        if not self.path_params:
            return None
        return self.path_params.get(name)

    def cookies(self) -> Dict[str, str]:
        """Parse the Cookie header into a name to value mapping."""
        header = self.get_header("Cookie")
        if not header:
            return {}
        jar: SimpleCookie = SimpleCookie()
        try:
            jar.load(header)
        except CookieError:
            return {}
        return {name: morsel.value for name, morsel in jar.items()}

    def body_stream(self) -> io.BytesIO:
        """Return the request body as a byte stream."""
        if self.body is None:
            return io.BytesIO()
        if isinstance(self.body, str):
            return io.BytesIO(self.body.encode("utf-8"))
        return io.BytesIO(self.body)


@dataclass
class Response:
    """Represents an HTTP response."""

    status_code: int
    body: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    content_type: Optional[str] = None

    def __post_init__(self):
        if self.headers is None:
            self.headers = {}
        if self.content_type and "Content-Type" not in self.headers:
            self.headers["Content-Type"] = self.content_type


class ResponseWriter:
    """Collects status, headers and body written by a handler."""

    def __init__(self):
        self.status_code: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self._chunks: List[str] = []

    def write_header(self, status_code: int):
        if self.status_code is None:
            self.status_code = status_code

    def write(self, data: Union[str, bytes]):
        if self.status_code is None:
            self.status_code = 200
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        self._chunks.append(data)

    @property
    def written(self) -> bool:
        return self.status_code is not None

    def to_response(self) -> Response:
        """Build the final Response from everything written so far."""
        body = "".join(self._chunks) if self._chunks else None
        return Response(
            status_code=self.status_code or 200,
            body=body,
            headers=dict(self.headers),
        )
