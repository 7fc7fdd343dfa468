"""Load, extend and persist a cassette."""

import logging
import os
import tempfile
import threading
import time
from pathlib import Path

from rewind.errors import PersistenceError
from rewind.format import BinaryCodec, JsonCodec, codec_for
from rewind.models import Cassette, Exchange


def load_cassette(location: str | Path, codec: BinaryCodec | JsonCodec | None = None) -> Cassette:
    """Read the cassette stored at ``location``.

    A missing or empty file yields an empty cassette.
    """
    location = Path(location)
    codec = codec or codec_for(location)
    if not location.exists() or location.stat().st_size == 0:
        return Cassette(location)
    with open(location, "rb") as f:
        created_at, exchanges = codec.read(f)
    return Cassette(location, tuple(exchanges), created_at)


class RecordStore:
    """Owns one cassette for the length of a session.

    Exchanges loaded from storage are immutable; new ones are appended under
    a lock and written out, after the loaded ones, by ``flush``.

    Usage:
        store = RecordStore.open("api.rewind")
        store.append(exchange)
        store.flush()
    """

    def __init__(
        self,
        cassette: Cassette,
        codec: BinaryCodec | JsonCodec | None = None,
        logger: logging.Logger | None = None,
    ):
        self.cassette = cassette
        self._codec = codec or codec_for(cassette.location)
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._recorded: list[Exchange] = []

    @classmethod
    def open(
        cls,
        location: str | Path,
        codec: BinaryCodec | JsonCodec | None = None,
        logger: logging.Logger | None = None,
    ) -> "RecordStore":
        codec = codec or codec_for(location)
        cassette = load_cassette(location, codec)
        store = cls(cassette, codec, logger)
        store._logger.info("Loaded %d exchanges from %s", len(cassette), cassette.location)
        return store

    @property
    def location(self) -> Path:
        return self.cassette.location

    @property
    def recorded(self) -> tuple[Exchange, ...]:
        """Exchanges appended during this session."""
        with self._lock:
            return tuple(self._recorded)

    def append(self, exchange: Exchange):
        with self._lock:
            self._recorded.append(exchange)

    def flush(self):
        """Write loaded plus recorded exchanges atomically.

        The new content goes to a temporary file beside the target and is
        moved into place with ``os.replace``; the old file survives any
        failure. Nothing is written when no exchange was recorded.
        """
        recorded = self.recorded
        if not recorded:
            self._logger.debug("No new exchanges, leaving %s untouched", self.location)
            return

        exchanges = self.cassette.exchanges + recorded
        created_at = self.cassette.created_at
        if created_at is None:
            created_at = int(time.time() * 1000)

        try:
            self.location.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(exchanges, created_at)
        except Exception as e:
            raise PersistenceError(f"failed to save cassette {self.location}: {e}") from e

        self._logger.info(
            "Saved %d exchanges (%d new) to %s", len(exchanges), len(recorded), self.location
        )

    def _write_atomic(self, exchanges: tuple[Exchange, ...], created_at: int):
        fd, temp_path = tempfile.mkstemp(
            dir=self.location.parent, prefix=f".{self.location.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                self._codec.write(f, exchanges, created_at)
                os.fsync(f.fileno())
            os.replace(temp_path, self.location)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
