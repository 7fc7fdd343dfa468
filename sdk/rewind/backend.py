"""Record/replay backends wrapping a real transport.

Every request is fingerprinted and matched against the cassette. Hits are
served from the cassette; misses go to the recording policy, which may
perform and capture the real call, refuse it, or pass it through.

Usage:
    backend = VcrBackend(transport, "tests/cassettes/api.rewind")
    response = backend.send(HttpRequest("GET", "https://api.example.com/items"))
    backend.shutdown()  # saves new exchanges, closes the transport
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from rewind.adapters import Adapter, PlainAdapter
from rewind.errors import PersistenceError, RecordingDisabledError, RewindError, UnsupportedBodyError
from rewind.format import BinaryCodec, JsonCodec
from rewind.matcher import Matcher
from rewind.models import Disposition, Exchange, RequestDescriptor
from rewind.policy import RecordOptions
from rewind.scrub import ScrubConfig, scrub_request, scrub_response
from rewind.store import RecordStore

VCR_CACHE_HEADER = "X-Vcr-Cache"


class Transport(Protocol):
    def send(self, request: Any) -> Any: ...

    def close(self) -> None: ...


class AsyncTransport(Protocol):
    async def send(self, request: Any) -> Any: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class Decision:
    """Outcome of fingerprinting, matching and policy for one request.

    ``error`` is set when the request must fail: an UnsupportedBodyError
    (``disposition`` is None) or a RecordingDisabledError (REFUSE).
    """

    disposition: Disposition | None
    descriptor: RequestDescriptor | None = None
    exchange: Exchange | None = None
    error: RewindError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SessionStats:
    replayed: int = 0
    recorded: int = 0
    passed_through: int = 0
    refused: int = 0
    capture_failures: int = 0


class _Session:
    def __init__(
        self,
        transport,
        recording_path: str | Path,
        record_options: RecordOptions | None = None,
        matcher: Matcher | None = None,
        *,
        adapter: Adapter | None = None,
        scrub: bool | ScrubConfig = False,
        logger: logging.Logger | None = None,
        codec: BinaryCodec | JsonCodec | None = None,
    ):
        self.transport = transport
        self.record_options = record_options or RecordOptions.default()
        self.matcher = matcher or Matcher()
        self.adapter = adapter or PlainAdapter()
        self.logger = logger or logging.getLogger(__name__)
        if isinstance(scrub, ScrubConfig):
            self.scrub = scrub
        elif scrub:
            self.scrub = ScrubConfig()
        else:
            self.scrub = None
        self.store = RecordStore.open(recording_path, codec, self.logger)
        self._stats = SessionStats()
        self._stats_lock = threading.Lock()
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def recording_path(self) -> Path:
        return self.store.location

    @property
    def stats(self) -> SessionStats:
        with self._stats_lock:
            return replace(self._stats)

    @property
    def all_played(self) -> bool:
        """True once every loaded exchange has been replayed."""
        return self.matcher.all_played(self.store.cassette)

    def reset(self):
        """Replay the cassette from the beginning again."""
        self.matcher.reset()

    def decide(self, request: Any) -> Decision:
        """Fingerprint, match and apply the policy without raising.

        A REPLAY decision consumes its exchange from the matcher queue.
        """
        try:
            descriptor = self.adapter.describe_request(request)
        except UnsupportedBodyError as e:
            return Decision(None, error=e)
        if self.scrub is not None:
            descriptor = scrub_request(descriptor, self.scrub)

        exchange = self.matcher.find(descriptor, self.store.cassette)
        if exchange is not None:
            return Decision(Disposition.REPLAY, descriptor, exchange=exchange)

        disposition = self.record_options.decide(descriptor)
        if disposition is Disposition.REFUSE:
            error = RecordingDisabledError(descriptor.method, descriptor.uri)
            return Decision(disposition, descriptor, error=error)
        return Decision(disposition, descriptor)

    def _check(self, decision: Decision):
        if decision.error is None:
            return
        if decision.disposition is Disposition.REFUSE:
            self._count("refused")
            self.logger.debug("Refused %s", decision.error)
        raise decision.error

    def _replay(self, request: Any, exchange: Exchange) -> Any:
        self._count("replayed")
        self.logger.debug("Replaying %s %s", exchange.request.method, exchange.request.uri)
        return self.adapter.build_response(
            request, exchange.response.with_header(VCR_CACHE_HEADER, "true")
        )

    def _before_real_call(self, decision: Decision):
        descriptor = decision.descriptor
        if decision.disposition is Disposition.PASS_THROUGH:
            self._count("passed_through")
            self.logger.debug("Passing through %s %s", descriptor.method, descriptor.uri)
        else:
            self.logger.info("Performing actual HTTP request: %s %s", descriptor.method, descriptor.uri)

    def _capture(self, descriptor: RequestDescriptor, response: Any):
        try:
            captured = self.adapter.describe_response(response)
        except UnsupportedBodyError as e:
            self._count("capture_failures")
            self.logger.warning(
                "Not recording response to %s %s: %s", descriptor.method, descriptor.uri, e
            )
            return
        if self.scrub is not None:
            captured = scrub_response(captured, self.scrub)
        self.store.append(Exchange(descriptor, captured, datetime.now(timezone.utc)))
        self._count("recorded")

    def _flush(self):
        try:
            self.store.flush()
        except PersistenceError:
            self.logger.exception("Failed to save cassette %s", self.store.location)

    def _claim_shutdown(self) -> bool:
        with self._close_lock:
            if self._closed:
                return False
            self._closed = True
            return True

    def _count(self, name: str):
        with self._stats_lock:
            setattr(self._stats, name, getattr(self._stats, name) + 1)


class VcrBackend(_Session):
    """Record/replay around a blocking transport (``send`` / ``close``).

    Safe to share between threads; real calls run concurrently.
    """

    transport: Transport

    def send(self, request: Any) -> Any:
        decision = self.decide(request)
        self._check(decision)

        if decision.disposition is Disposition.REPLAY:
            return self._replay(request, decision.exchange)

        self._before_real_call(decision)
        response = self.transport.send(request)
        if decision.disposition is Disposition.RECORD:
            self.adapter.read_response(response)
            self._capture(decision.descriptor, response)
        return response

    def shutdown(self):
        """Save the cassette, then close the transport whatever happened."""
        if not self._claim_shutdown():
            return
        try:
            self._flush()
        finally:
            self.transport.close()

    close = shutdown

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()


class AsyncVcrBackend(_Session):
    """Record/replay around a transport whose ``send`` and ``close`` are coroutines."""

    transport: AsyncTransport

    async def send(self, request: Any) -> Any:
        decision = self.decide(request)
        self._check(decision)

        if decision.disposition is Disposition.REPLAY:
            return self._replay(request, decision.exchange)

        self._before_real_call(decision)
        response = await self.transport.send(request)
        if decision.disposition is Disposition.RECORD:
            await self.adapter.aread_response(response)
            self._capture(decision.descriptor, response)
        return response

    async def shutdown(self):
        if not self._claim_shutdown():
            return
        try:
            await asyncio.to_thread(self._flush)
        finally:
            await self.transport.close()

    aclose = shutdown

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.shutdown()
