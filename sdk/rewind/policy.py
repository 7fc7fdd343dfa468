"""Decide what to do with a request that has no recorded answer."""

import os
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit

from rewind.models import Disposition, RequestDescriptor

ShouldRecord = Callable[[RequestDescriptor], bool]

ENV_RECORD_MODE = "REWIND_RECORD_MODE"


def always(descriptor: RequestDescriptor) -> bool:
    return True


def never(descriptor: RequestDescriptor) -> bool:
    return False


def allow_hosts(*hosts: str) -> ShouldRecord:
    """Only record requests to the given hosts (case-insensitive)."""
    allowed = {h.lower() for h in hosts}

    def should_record(descriptor: RequestDescriptor) -> bool:
        return (urlsplit(descriptor.uri).hostname or "") in allowed

    return should_record


@dataclass(frozen=True)
class RecordOptions:
    """Recording policy consulted on a matcher miss.

    Attributes:
        should_record: Whether an unmatched request may hit the network and
            be captured.
        not_recorded_throws_errors: When ``should_record`` is false, refuse
            the request (True) or forward it without capture (False).
    """

    should_record: ShouldRecord = always
    not_recorded_throws_errors: bool = True

    def decide(self, descriptor: RequestDescriptor) -> Disposition:
        if self.should_record(descriptor):
            return Disposition.RECORD
        if self.not_recorded_throws_errors:
            return Disposition.REFUSE
        return Disposition.PASS_THROUGH

    @classmethod
    def default(cls) -> "RecordOptions":
        return cls()

    @classmethod
    def never(cls) -> "RecordOptions":
        """Replay only; every miss fails."""
        return cls(should_record=never, not_recorded_throws_errors=True)

    @classmethod
    def pass_through(cls) -> "RecordOptions":
        """Replay what exists, send everything else live without capture."""
        return cls(should_record=never, not_recorded_throws_errors=False)

    @classmethod
    def from_env(cls, environ=None) -> "RecordOptions":
        """Build options from REWIND_RECORD_MODE (all, none, passthrough)."""
        environ = os.environ if environ is None else environ
        mode = environ.get(ENV_RECORD_MODE, "all").strip().lower()
        if mode == "all":
            return cls.default()
        if mode == "none":
            return cls.never()
        if mode == "passthrough":
            return cls.pass_through()
        raise ValueError(
            f"invalid {ENV_RECORD_MODE}={mode!r}; expected all, none or passthrough"
        )
