"""Find the recorded exchange that answers a live request.

Stored exchanges are grouped by a key function. Within a group they are
served in recorded order, each at most once per session, so a cassette can
hold several sequential responses to the same request (retries, polling).
"""

import threading
from typing import Callable, Hashable

from rewind.fingerprint import normalize_uri
from rewind.models import Cassette, Exchange, RequestDescriptor

KeyFunction = Callable[[RequestDescriptor], Hashable]


def method_and_uri(descriptor: RequestDescriptor) -> Hashable:
    return (descriptor.method.upper(), normalize_uri(descriptor.uri))


_FIELDS: dict[str, KeyFunction] = {
    "method": lambda d: d.method.upper(),
    "uri": lambda d: normalize_uri(d.uri),
    "body": lambda d: d.body,
    "headers": lambda d: tuple(sorted((k.lower(), v) for k, v in d.headers.items())),
}


class Matcher:
    """Queue-ordered matcher over a configurable key function.

    Usage:
        matcher = Matcher()                      # (method, normalized uri)
        matcher = Matcher(key=lambda d: d.uri)   # custom grouping
        matcher = match_on("method", "uri", "body")

    Subclasses may override ``key`` instead of passing a function.
    """

    def __init__(self, key: KeyFunction | None = None):
        self._key_fn = key or method_and_uri
        self._lock = threading.Lock()
        self._cassette: Cassette | None = None
        self._groups: dict[Hashable, list[Exchange]] = {}
        self._cursors: dict[Hashable, int] = {}

    def key(self, descriptor: RequestDescriptor) -> Hashable:
        return self._key_fn(descriptor)

    def find(self, descriptor: RequestDescriptor, cassette: Cassette) -> Exchange | None:
        """Return the next unplayed exchange for the descriptor's key, or None."""
        key = self.key(descriptor)
        with self._lock:
            self._bind(cassette)
            queue = self._groups.get(key)
            if not queue:
                return None
            position = self._cursors.get(key, 0)
            if position >= len(queue):
                return None
            self._cursors[key] = position + 1
            return queue[position]

    def reset(self):
        """Rewind every group so the next session replays from the start."""
        with self._lock:
            self._cursors.clear()

    def remaining(self, cassette: Cassette) -> int:
        with self._lock:
            self._bind(cassette)
            return sum(
                len(queue) - self._cursors.get(key, 0)
                for key, queue in self._groups.items()
            )

    def all_played(self, cassette: Cassette) -> bool:
        return self.remaining(cassette) == 0

    def _bind(self, cassette: Cassette):
        # caller holds the lock
        if self._cassette is cassette:
            return
        groups: dict[Hashable, list[Exchange]] = {}
        for exchange in cassette.exchanges:
            groups.setdefault(self.key(exchange.request), []).append(exchange)
        self._cassette = cassette
        self._groups = groups
        self._cursors = {}


def group_by(key: KeyFunction) -> Matcher:
    return Matcher(key=key)


def match_on(*fields: str) -> Matcher:
    """Build a matcher keyed on named descriptor fields.

    Known fields: method, uri, body, headers.
    """
    unknown = [f for f in fields if f not in _FIELDS]
    if unknown:
        raise ValueError(f"unknown match fields: {', '.join(unknown)}")
    if not fields:
        raise ValueError("match_on needs at least one field")
    extractors = [_FIELDS[f] for f in fields]
    return Matcher(key=lambda d: tuple(extract(d) for extract in extractors))
