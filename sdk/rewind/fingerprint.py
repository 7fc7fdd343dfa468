"""Turn live requests and responses into comparable descriptors."""

import os
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit, urlunsplit

from rewind.errors import UnsupportedBodyError
from rewind.models import RequestDescriptor, ResponseDescriptor

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_body(body: Any) -> str:
    """Render a body as text, or raise UnsupportedBodyError.

    Accepted: None, str, bytes-like (UTF-8) and paths to files holding
    UTF-8 text. Streams, iterators and multipart payloads cannot be
    compared without consuming them and are rejected.
    """
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        try:
            return bytes(body).decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnsupportedBodyError(
                f"body of {len(body)} bytes is not valid UTF-8 text"
            ) from e
    if isinstance(body, os.PathLike):
        try:
            with open(body, "rb") as f:
                data = f.read()
        except OSError as e:
            raise UnsupportedBodyError(f"cannot read file body {body!s}: {e}") from e
        return normalize_body(data)
    if isinstance(body, Mapping):
        raise UnsupportedBodyError("the body is multipart, cannot convert to text")
    if hasattr(body, "read") or hasattr(body, "__iter__") or hasattr(body, "__aiter__"):
        raise UnsupportedBodyError(
            f"the body is a stream ({type(body).__name__}), cannot convert to text"
        )
    raise UnsupportedBodyError(f"unsupported body type: {type(body).__name__}")


def group_headers(headers: Any) -> dict[str, tuple[str, ...]]:
    """Group headers into name -> ordered values.

    ``headers`` may be a mapping (values are strings or sequences of
    strings) or an iterable of ``(name, value)`` pairs. Names compare
    case-insensitively and keep their first-seen spelling.
    """
    if headers is None:
        return {}
    if isinstance(headers, Mapping):
        pairs: list = []
        for name, value in headers.items():
            if isinstance(value, (str, bytes)):
                pairs.append((name, value))
            else:
                pairs.extend((name, v) for v in value)
    else:
        pairs = headers

    grouped: dict[str, list[str]] = {}
    spelling: dict[str, str] = {}
    for name, value in pairs:
        name = _as_text(name)
        lower = name.lower()
        if lower not in spelling:
            spelling[lower] = name
            grouped[name] = []
        grouped[spelling[lower]].append(_as_text(value))
    return {name: tuple(values) for name, values in grouped.items()}


def flatten_headers(headers: Mapping[str, Iterable[str]]) -> list[tuple[str, str]]:
    """Inverse of group_headers: one pair per value."""
    return [(name, value) for name, values in headers.items() for value in values]


def normalize_uri(uri: str) -> str:
    """Canonical URI used by the default match key.

    Lowercases scheme and host (userinfo keeps its case), drops default
    ports and fragments, and orders query parameters by name. Parameters
    are kept as written, so ``?flag`` and ``?flag=`` stay distinct.
    """
    parts = urlsplit(uri)
    scheme = parts.scheme.lower()
    netloc = _normalize_netloc(parts, scheme)
    path = parts.path or "/"
    params = [p for p in parts.query.split("&") if p]
    # stable sort: repeated names keep their value order
    query = "&".join(sorted(params, key=lambda p: p.split("=", 1)[0]))
    return urlunsplit((scheme, netloc, path, query, ""))


def _normalize_netloc(parts, scheme: str) -> str:
    userinfo, _, hostport = parts.netloc.rpartition("@")
    try:
        port = parts.port
    except ValueError:
        return parts.netloc.lower() if not userinfo else f"{userinfo}@{hostport.lower()}"
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return f"{userinfo}@{host}" if userinfo else host


def build_request(method: str, uri: str, body: Any = None, headers: Any = ()) -> RequestDescriptor:
    return RequestDescriptor(
        method=method.upper(),
        uri=str(uri),
        body=normalize_body(body),
        headers=group_headers(headers),
    )


def build_response(
    status_code: int, status_text: str = "", body: Any = None, headers: Any = ()
) -> ResponseDescriptor:
    return ResponseDescriptor(
        status_code=int(status_code),
        status_text=status_text or "",
        headers=group_headers(headers),
        body=normalize_body(body),
    )


def _as_text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)
