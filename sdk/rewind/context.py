"""Context managers for cassette sessions."""

from contextlib import asynccontextmanager, contextmanager
from pathlib import Path

from rewind.backend import AsyncTransport, AsyncVcrBackend, Transport, VcrBackend


@contextmanager
def use_cassette(path: str | Path, transport: Transport, **options):
    """Record and replay calls made through ``transport``.

    Args:
        path: Cassette file. Created on exit if anything was recorded.
        transport: Object with ``send(request)`` and ``close()``.
        **options: record_options, matcher, adapter, scrub, logger, codec.

    Usage:
        with rewind.use_cassette("api.rewind", transport) as vcr:
            response = vcr.send(HttpRequest("GET", "https://api.example.com"))
    """
    backend = VcrBackend(transport, path, **options)
    try:
        yield backend
    finally:
        backend.shutdown()


@asynccontextmanager
async def use_cassette_async(path: str | Path, transport: AsyncTransport, **options):
    """Async counterpart of use_cassette.

    Usage:
        async with rewind.use_cassette_async("api.rewind", transport) as vcr:
            response = await vcr.send(request)
    """
    backend = AsyncVcrBackend(transport, path, **options)
    try:
        yield backend
    finally:
        await backend.shutdown()
