"""Cassette file codecs.

Binary layout (default):
    [Header] [zstd(msgpack(record))...] [Index] [count: u32] [index_offset: u64]

where Header is [MAGIC] [version: u32] [created_at: u64 ms] and Index is one
u64 frame offset per record. Files ending in ``.json`` use a readable JSON
document with the same records instead.
"""

import json
import struct
from datetime import datetime
from pathlib import Path
from typing import Iterable

import msgpack
import zstandard as zstd

from rewind.errors import CassetteFormatError
from rewind.models import Exchange, RequestDescriptor, ResponseDescriptor

MAGIC = b"RWCASSET"
FORMAT_VERSION = 1


def exchange_to_record(exchange: Exchange) -> dict:
    req, resp = exchange.request, exchange.response
    return {
        "method": req.method,
        "uri": req.uri,
        "request_body": req.body,
        "request_headers": {k: list(v) for k, v in req.headers.items()},
        "status_code": resp.status_code,
        "status_text": resp.status_text,
        "response_headers": {k: list(v) for k, v in resp.headers.items()},
        "response_body": resp.body,
        "recorded_at": exchange.recorded_at.isoformat(),
    }


def record_to_exchange(record: dict) -> Exchange:
    try:
        return Exchange(
            request=RequestDescriptor(
                method=record["method"],
                uri=record["uri"],
                body=record["request_body"],
                headers=record["request_headers"],
            ),
            response=ResponseDescriptor(
                status_code=record["status_code"],
                status_text=record["status_text"],
                headers=record["response_headers"],
                body=record["response_body"],
            ),
            recorded_at=datetime.fromisoformat(record["recorded_at"]),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CassetteFormatError(f"malformed cassette record: {e}") from e


class CassetteWriter:
    """Write exchanges to a binary cassette."""

    def __init__(self, f, created_at: int):
        self._f = f
        self._offsets: list[int] = []
        self._compressor = zstd.ZstdCompressor(level=3)

        f.write(MAGIC)
        f.write(struct.pack("<I", FORMAT_VERSION))
        f.write(struct.pack("<Q", created_at))
        self._offset = f.tell()

    def append(self, exchange: Exchange):
        packed = msgpack.packb(exchange_to_record(exchange))
        compressed = self._compressor.compress(packed)

        self._offsets.append(self._offset)
        self._f.write(struct.pack("<I", len(compressed)))
        self._f.write(compressed)
        self._offset += 4 + len(compressed)

    def finish(self):
        index_offset = self._offset
        for offset in self._offsets:
            self._f.write(struct.pack("<Q", offset))
        self._f.write(struct.pack("<I", len(self._offsets)))
        self._f.write(struct.pack("<Q", index_offset))
        self._f.flush()


class CassetteReader:
    """Read exchanges from a binary cassette."""

    def __init__(self, f):
        self._f = f
        self._decompressor = zstd.ZstdDecompressor()

        magic = f.read(8)
        if magic != MAGIC:
            raise CassetteFormatError(f"not a cassette file (got {magic!r})")

        try:
            (self.version,) = struct.unpack("<I", f.read(4))
        except struct.error as e:
            raise CassetteFormatError(f"truncated cassette: {e}") from e
        if self.version != FORMAT_VERSION:
            raise CassetteFormatError(f"unsupported version: {self.version}")

        try:
            (self.created_at,) = struct.unpack("<Q", f.read(8))

            f.seek(-12, 2)
            (count,) = struct.unpack("<I", f.read(4))
            (index_offset,) = struct.unpack("<Q", f.read(8))

            f.seek(index_offset)
            self._offsets = [struct.unpack("<Q", f.read(8))[0] for _ in range(count)]
        except (struct.error, OSError, ValueError) as e:
            raise CassetteFormatError(f"truncated cassette: {e}") from e

    @property
    def exchange_count(self) -> int:
        return len(self._offsets)

    def get_exchange(self, idx: int) -> Exchange:
        if idx < 0 or idx >= len(self._offsets):
            raise IndexError(f"exchange index {idx} out of range")
        try:
            self._f.seek(self._offsets[idx])
            (compressed_len,) = struct.unpack("<I", self._f.read(4))
            compressed = self._f.read(compressed_len)
            record = msgpack.unpackb(self._decompressor.decompress(compressed), raw=False)
        except (struct.error, zstd.ZstdError, ValueError, OSError) as e:
            raise CassetteFormatError(f"corrupt frame {idx}: {e}") from e
        return record_to_exchange(record)

    def __iter__(self):
        for i in range(self.exchange_count):
            yield self.get_exchange(i)


class BinaryCodec:
    """msgpack frames compressed with zstd."""

    def read(self, f) -> tuple[int, list[Exchange]]:
        reader = CassetteReader(f)
        return reader.created_at, list(reader)

    def write(self, f, exchanges: Iterable[Exchange], created_at: int):
        writer = CassetteWriter(f, created_at)
        for exchange in exchanges:
            writer.append(exchange)
        writer.finish()


class JsonCodec:
    """Human-readable cassettes, for files that are reviewed in diffs."""

    def read(self, f) -> tuple[int, list[Exchange]]:
        try:
            doc = json.loads(f.read().decode("utf-8"))
            version = doc["version"]
            created_at = doc["created_at"]
            records = doc["exchanges"]
        except (UnicodeDecodeError, KeyError, TypeError, ValueError) as e:
            raise CassetteFormatError(f"not a JSON cassette: {e}") from e
        if version != FORMAT_VERSION:
            raise CassetteFormatError(f"unsupported version: {version}")
        if not isinstance(records, list):
            raise CassetteFormatError("cassette exchanges must be a list")
        return created_at, [record_to_exchange(r) for r in records]

    def write(self, f, exchanges: Iterable[Exchange], created_at: int):
        doc = {
            "version": FORMAT_VERSION,
            "created_at": created_at,
            "exchanges": [exchange_to_record(e) for e in exchanges],
        }
        f.write(json.dumps(doc, indent=2, ensure_ascii=False).encode("utf-8"))
        f.write(b"\n")
        f.flush()


def codec_for(path: str | Path) -> BinaryCodec | JsonCodec:
    """Pick the codec from the file suffix."""
    if Path(path).suffix.lower() == ".json":
        return JsonCodec()
    return BinaryCodec()
