"""Redact secrets from descriptors before they reach a cassette.

Regex patterns run over URIs, bodies and header values; headers that only
ever carry credentials are replaced wholesale.
"""

import re
from dataclasses import dataclass, field

from rewind.models import RequestDescriptor, ResponseDescriptor

_DEFAULT_PATTERNS: list[tuple[str, str]] = [
    # provider-specific keys before the generic sk- form
    (r"sk-ant-[A-Za-z0-9_-]{20,}", "[REDACTED_ANTHROPIC_KEY]"),
    (r"sk-proj-[A-Za-z0-9_-]{20,}", "[REDACTED_OPENAI_KEY]"),
    (r"(?:sk|pk)_(?:live|test)_[A-Za-z0-9_-]{20,}", "[REDACTED_STRIPE_KEY]"),
    (r"sk-[A-Za-z0-9_-]{20,}", "[REDACTED_API_KEY]"),
    (r"AKIA[A-Z0-9]{16}", "[REDACTED_AWS_KEY]"),
    (r"gh[po]_[A-Za-z0-9]{36}", "[REDACTED_GITHUB_TOKEN]"),
    (r"github_pat_[A-Za-z0-9_]{22,}", "[REDACTED_GITHUB_TOKEN]"),
    (r"Bearer\s+[A-Za-z0-9_\-.]{20,}", "Bearer [REDACTED_TOKEN]"),
    (r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", "[REDACTED_EMAIL]"),
]

_SENSITIVE_HEADERS = [
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
]

REDACTED = "[REDACTED]"


@dataclass
class ScrubConfig:
    """What to redact.

    Attributes:
        patterns: (regex, replacement) pairs. Defaults cover common API key
            formats, bearer tokens and emails.
        extra_patterns: Appended to ``patterns``.
        redact_emails: Keep the default email pattern (default True).
        custom_strings: Exact (original, replacement) pairs.
        redact_headers: Header names whose values are replaced entirely.
    """

    patterns: list[tuple[str, str]] = field(default_factory=list)
    extra_patterns: list[tuple[str, str]] = field(default_factory=list)
    redact_emails: bool = True
    custom_strings: list[tuple[str, str]] = field(default_factory=list)
    redact_headers: list[str] = field(default_factory=lambda: list(_SENSITIVE_HEADERS))

    def __post_init__(self):
        if not self.patterns:
            self.patterns = [
                (p, r) for p, r in _DEFAULT_PATTERNS
                if self.redact_emails or r != "[REDACTED_EMAIL]"
            ]
        self._compiled = [(re.compile(p), r) for p, r in self.patterns + self.extra_patterns]
        self._header_names = {h.lower() for h in self.redact_headers}

    def text(self, value: str) -> str:
        for pattern, replacement in self._compiled:
            value = pattern.sub(replacement, value)
        for original, replacement in self.custom_strings:
            value = value.replace(original, replacement)
        return value

    def headers(self, headers) -> dict[str, tuple[str, ...]]:
        out = {}
        for name, values in headers.items():
            if name.lower() in self._header_names:
                out[name] = tuple(REDACTED for _ in values)
            else:
                out[name] = tuple(self.text(v) for v in values)
        return out


def scrub_text(text: str, config: ScrubConfig | None = None) -> str:
    return (config or ScrubConfig()).text(text)


def scrub_request(descriptor: RequestDescriptor, config: ScrubConfig) -> RequestDescriptor:
    return RequestDescriptor(
        method=descriptor.method,
        uri=config.text(descriptor.uri),
        body=config.text(descriptor.body),
        headers=config.headers(descriptor.headers),
    )


def scrub_response(descriptor: ResponseDescriptor, config: ScrubConfig) -> ResponseDescriptor:
    return ResponseDescriptor(
        status_code=descriptor.status_code,
        status_text=descriptor.status_text,
        headers=config.headers(descriptor.headers),
        body=config.text(descriptor.body),
    )
