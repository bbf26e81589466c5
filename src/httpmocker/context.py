"""
httpmocker Request Context

The request/response channel handed to custom and unknown-request handlers.

A handler reads the incoming request from the context and writes its reply
into it; the server turns whatever was written into the HTTP response.
Nothing written means 200 with an empty body.
"""

from __future__ import annotations

from typing import Optional, Union

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request
from starlette.responses import Response


class RequestContext:
    """
    Incoming request plus the response being built for it.

    Example:
        def not_found(ctx: RequestContext):
            ctx.set_header('Content-Type', 'application/json')
            ctx.write_header(404)
            ctx.write('{"error": "no such user"}')
    """

    def __init__(self, request: Request, body: bytes = b""):
        self.request = request
        self.body = body

        self.status_code: Optional[int] = None
        self.response_headers = MutableHeaders()
        self._chunks = []

    @classmethod
    async def from_request(cls, request: Request) -> RequestContext:
        """Build a context, reading the request body up front."""
        return cls(request, body=await request.body())

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        """Decoded request path, without the query string."""
        return self.request.scope["path"]

    @property
    def query(self) -> str:
        """Raw query string, without the leading '?'."""
        return self.request.scope["query_string"].decode("latin-1")

    @property
    def headers(self) -> Headers:
        return self.request.headers

    def set_header(self, name: str, value: str):
        """Set a response header, replacing any earlier value."""
        self.response_headers[name] = value

    def add_header(self, name: str, value: str):
        """Add a response header, keeping earlier values (e.g. Set-Cookie)."""
        self.response_headers.append(name, value)

    def write_header(self, status_code: int):
        """Set the response status. Only the first call has an effect."""
        if self.status_code is None:
            self.status_code = status_code

    def write(self, data: Union[str, bytes]):
        """Append to the response body (str is UTF-8 encoded)."""
        if self.status_code is None:
            self.status_code = 200
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._chunks.append(data)

    @property
    def written(self) -> bytes:
        """Response body written so far."""
        return b"".join(self._chunks)

    def to_response(self) -> Response:
        """Build the HTTP response from what was written."""
        return Response(
            content=self.written,
            status_code=self.status_code or 200,
            headers=self.response_headers,
        )
