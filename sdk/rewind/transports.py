"""httpx transports that record and replay through a cassette.

Usage:
    client = httpx.Client(transport=VcrTransport("tests/cassettes/api.rewind"))
    client.get("https://api.example.com/items")  # live the first run, replayed after
    client.close()  # saves the cassette
"""

import codecs
import email.message
from pathlib import Path

import httpx

from rewind.adapters import Adapter
from rewind.backend import AsyncVcrBackend, VcrBackend
from rewind.errors import UnsupportedBodyError
from rewind.fingerprint import build_request, build_response, flatten_headers
from rewind.models import RequestDescriptor, ResponseDescriptor

# Stored bodies are decoded text, so framing headers from the live response
# no longer describe them.
_FRAMING_HEADERS = {"content-encoding", "transfer-encoding", "content-length"}


class HttpxAdapter(Adapter):
    def describe_request(self, request: httpx.Request) -> RequestDescriptor:
        try:
            content = request.content
        except httpx.RequestNotRead as e:
            raise UnsupportedBodyError(
                "the body of this request is a stream or multipart upload, cannot convert to text"
            ) from e
        return build_request(request.method, str(request.url), content, request.headers.multi_items())

    def describe_response(self, response: httpx.Response) -> ResponseDescriptor:
        body = response.content
        charset = response.charset_encoding
        if charset:
            try:
                body = body.decode(charset)
            except (LookupError, UnicodeDecodeError) as e:
                raise UnsupportedBodyError(
                    f"response body does not decode as declared charset {charset!r}"
                ) from e
        return build_response(
            response.status_code,
            response.reason_phrase,
            body,
            response.headers.multi_items(),
        )

    def build_response(self, request: httpx.Request, descriptor: ResponseDescriptor) -> httpx.Response:
        headers = [
            (name, value)
            for name, value in flatten_headers(descriptor.headers)
            if name.lower() not in _FRAMING_HEADERS
        ]
        return httpx.Response(
            status_code=descriptor.status_code,
            headers=headers,
            content=descriptor.body.encode(_charset(headers), "replace"),
            extensions={"reason_phrase": descriptor.status_text.encode("ascii", "replace")},
            request=request,
        )

    def read_response(self, response: httpx.Response):
        response.read()

    async def aread_response(self, response: httpx.Response):
        await response.aread()


def _charset(headers: list[tuple[str, str]]) -> str:
    """Charset named by the Content-Type header, utf-8 when absent or unknown."""
    msg = email.message.Message()
    for name, value in headers:
        if name.lower() == "content-type":
            msg["content-type"] = value
            break
    charset = msg.get_content_charset() or "utf-8"
    try:
        return codecs.lookup(charset).name
    except LookupError:
        return "utf-8"


class _SyncSender:
    def __init__(self, inner: httpx.BaseTransport):
        self._inner = inner

    def send(self, request: httpx.Request) -> httpx.Response:
        return self._inner.handle_request(request)

    def close(self):
        self._inner.close()


class _AsyncSender:
    def __init__(self, inner: httpx.AsyncBaseTransport):
        self._inner = inner

    async def send(self, request: httpx.Request) -> httpx.Response:
        return await self._inner.handle_async_request(request)

    async def close(self):
        await self._inner.aclose()


class VcrTransport(httpx.BaseTransport):
    """Wrap an httpx transport with record/replay.

    Args:
        path: Cassette file. ``.json`` cassettes are human-readable.
        transport: Real transport; defaults to ``httpx.HTTPTransport()``.
        **options: Passed to VcrBackend (record_options, matcher, scrub,
            logger, codec).
    """

    def __init__(self, path: str | Path, transport: httpx.BaseTransport | None = None, **options):
        self.backend = VcrBackend(
            _SyncSender(transport or httpx.HTTPTransport()),
            path,
            adapter=HttpxAdapter(),
            **options,
        )

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self.backend.send(request)

    def close(self):
        self.backend.shutdown()


class AsyncVcrTransport(httpx.AsyncBaseTransport):
    """Async counterpart of VcrTransport."""

    def __init__(self, path: str | Path, transport: httpx.AsyncBaseTransport | None = None, **options):
        self.backend = AsyncVcrBackend(
            _AsyncSender(transport or httpx.AsyncHTTPTransport()),
            path,
            adapter=HttpxAdapter(),
            **options,
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.backend.send(request)

    async def aclose(self):
        await self.backend.shutdown()
