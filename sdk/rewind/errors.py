"""Error kinds raised by the record/replay layer."""


class RewindError(Exception):
    """Base class for every error raised by rewind."""


class UnsupportedBodyError(RewindError, ValueError):
    """A request or response body cannot be rendered as comparable text.

    Raised for open streams, iterators, multipart payloads and bytes that
    are not valid UTF-8.
    """


class RecordingDisabledError(RewindError):
    """An unmatched request was refused by the recording policy."""

    def __init__(self, method: str, uri: str):
        self.method = method
        self.uri = uri
        super().__init__(
            f"Recording is disabled for `{method} {uri}`. "
            "The HTTP request was not executed."
        )


class PersistenceError(RewindError):
    """The cassette could not be written to storage."""


class CassetteFormatError(RewindError, ValueError):
    """A persisted cassette could not be decoded."""
