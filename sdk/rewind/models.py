"""Core data types: descriptors, exchanges, cassettes and live HTTP shapes."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

# name -> ordered values, as produced by fingerprint.group_headers
Headers = Mapping[str, tuple[str, ...]]


def _freeze(headers: Mapping[str, Iterable[str]]) -> Headers:
    return MappingProxyType({name: tuple(values) for name, values in headers.items()})


@dataclass(frozen=True)
class RequestDescriptor:
    """Canonical, comparable form of an outgoing request."""

    method: str
    uri: str
    body: str = ""
    headers: Headers = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "headers", _freeze(self.headers))


@dataclass(frozen=True)
class ResponseDescriptor:
    """Canonical form of a captured response."""

    status_code: int
    status_text: str = ""
    headers: Headers = field(default_factory=dict)
    body: str = ""

    def __post_init__(self):
        object.__setattr__(self, "headers", _freeze(self.headers))

    def with_header(self, name: str, value: str) -> "ResponseDescriptor":
        """Return a copy with ``value`` appended under ``name``.

        An existing header of the same name in any case keeps its spelling.
        """
        headers = dict(self.headers)
        existing = next((k for k in headers if k.lower() == name.lower()), name)
        headers[existing] = headers.get(existing, ()) + (value,)
        return ResponseDescriptor(self.status_code, self.status_text, headers, self.body)


@dataclass(frozen=True)
class Exchange:
    """A single captured request/response pair."""

    request: RequestDescriptor
    response: ResponseDescriptor
    recorded_at: datetime


@dataclass(frozen=True)
class Cassette:
    """Exchanges persisted at one storage location, in recorded order."""

    location: Path
    exchanges: tuple[Exchange, ...] = ()
    created_at: int | None = None

    def __len__(self) -> int:
        return len(self.exchanges)

    def __iter__(self):
        return iter(self.exchanges)


class Disposition(enum.Enum):
    """What happens to a request."""

    REPLAY = "replay"
    RECORD = "record"
    REFUSE = "refuse"
    PASS_THROUGH = "pass_through"


@dataclass
class HttpRequest:
    """A live request as seen by the plain adapter.

    ``headers`` is either a mapping or an iterable of ``(name, value)``
    pairs. ``body`` may be ``None``, text, bytes, a path to a file, or any
    other object (which fails fingerprinting).
    """

    method: str
    uri: str
    headers: Any = ()
    body: Any = None


@dataclass
class HttpResponse:
    """A live response as seen by the plain adapter."""

    status_code: int
    status_text: str = ""
    headers: Any = ()
    body: Any = b""

    def header_values(self, name: str) -> list[str]:
        from rewind.fingerprint import group_headers

        for key, values in group_headers(self.headers).items():
            if key.lower() == name.lower():
                return list(values)
        return []
