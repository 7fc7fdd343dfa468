"""Rewind: record and replay outbound HTTP calls."""

from rewind.backend import VCR_CACHE_HEADER, AsyncVcrBackend, Decision, SessionStats, VcrBackend
from rewind.context import use_cassette, use_cassette_async
from rewind.errors import (
    CassetteFormatError,
    PersistenceError,
    RecordingDisabledError,
    RewindError,
    UnsupportedBodyError,
)
from rewind.matcher import Matcher, group_by, match_on
from rewind.models import (
    Cassette,
    Disposition,
    Exchange,
    HttpRequest,
    HttpResponse,
    RequestDescriptor,
    ResponseDescriptor,
)
from rewind.policy import RecordOptions, allow_hosts
from rewind.scrub import ScrubConfig
from rewind.store import RecordStore, load_cassette

__version__ = "0.1.0"
__all__ = [
    "AsyncVcrBackend",
    "Cassette",
    "CassetteFormatError",
    "Decision",
    "Disposition",
    "Exchange",
    "HttpRequest",
    "HttpResponse",
    "Matcher",
    "PersistenceError",
    "RecordOptions",
    "RecordStore",
    "RecordingDisabledError",
    "RequestDescriptor",
    "ResponseDescriptor",
    "RewindError",
    "ScrubConfig",
    "SessionStats",
    "UnsupportedBodyError",
    "VCR_CACHE_HEADER",
    "VcrBackend",
    "allow_hosts",
    "group_by",
    "load_cassette",
    "match_on",
    "use_cassette",
    "use_cassette_async",
]
