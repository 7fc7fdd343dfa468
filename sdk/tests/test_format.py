"""Tests for the cassette codecs."""

import io
import struct
import tempfile
from datetime import datetime, timezone

import pytest

from rewind.errors import CassetteFormatError
from rewind.format import (
    MAGIC,
    BinaryCodec,
    CassetteReader,
    CassetteWriter,
    JsonCodec,
    codec_for,
    exchange_to_record,
    record_to_exchange,
)
from rewind.models import Exchange, RequestDescriptor, ResponseDescriptor

RECORDED_AT = datetime(2024, 3, 1, 12, 30, 0, 123456, tzinfo=timezone.utc)


def _exchange(path: str, body: str = "ok") -> Exchange:
    return Exchange(
        request=RequestDescriptor(
            "POST",
            f"https://api.example.com{path}",
            '{"q": 1}',
            {"Content-Type": ("application/json",), "Accept": ("a", "b")},
        ),
        response=ResponseDescriptor(
            201, "Created", {"Set-Cookie": ("x=1", "y=2")}, body
        ),
        recorded_at=RECORDED_AT,
    )


def test_record_fields():
    record = exchange_to_record(_exchange("/items"))
    assert record == {
        "method": "POST",
        "uri": "https://api.example.com/items",
        "request_body": '{"q": 1}',
        "request_headers": {"Content-Type": ["application/json"], "Accept": ["a", "b"]},
        "status_code": 201,
        "status_text": "Created",
        "response_headers": {"Set-Cookie": ["x=1", "y=2"]},
        "response_body": "ok",
        "recorded_at": "2024-03-01T12:30:00.123456+00:00",
    }
    assert record_to_exchange(record) == _exchange("/items")


def test_malformed_record():
    record = exchange_to_record(_exchange("/items"))
    del record["status_code"]
    with pytest.raises(CassetteFormatError):
        record_to_exchange(record)


def test_write_read_roundtrip():
    buf = io.BytesIO()
    writer = CassetteWriter(buf, created_at=1700000000000)
    writer.append(_exchange("/one", "first"))
    writer.append(_exchange("/two", "second"))
    writer.finish()

    buf.seek(0)
    reader = CassetteReader(buf)
    assert reader.exchange_count == 2
    assert reader.created_at == 1700000000000

    first = reader.get_exchange(0)
    assert first.request.uri == "https://api.example.com/one"
    assert first.response.body == "first"
    assert first.request.headers["Accept"] == ("a", "b")
    assert first.recorded_at == RECORDED_AT

    assert [e.response.body for e in reader] == ["first", "second"]

    with pytest.raises(IndexError):
        reader.get_exchange(2)


def test_empty_cassette():
    buf = io.BytesIO()
    CassetteWriter(buf, created_at=0).finish()
    buf.seek(0)
    assert list(CassetteReader(buf)) == []


def test_bad_magic():
    buf = io.BytesIO(b"NOTACASS" + b"\x00" * 32)
    with pytest.raises(CassetteFormatError):
        CassetteReader(buf)


def test_unsupported_version():
    buf = io.BytesIO(MAGIC + struct.pack("<I", 99) + b"\x00" * 32)
    with pytest.raises(CassetteFormatError, match="unsupported version"):
        CassetteReader(buf)


def test_truncated_file():
    buf = io.BytesIO(MAGIC + struct.pack("<I", 1))
    with pytest.raises(CassetteFormatError):
        CassetteReader(buf)


def test_binary_output_is_deterministic():
    exchanges = [_exchange("/one"), _exchange("/two")]
    first, second = io.BytesIO(), io.BytesIO()
    BinaryCodec().write(first, exchanges, 42)
    BinaryCodec().write(second, exchanges, 42)
    assert first.getvalue() == second.getvalue()


def test_json_codec_roundtrip():
    buf = io.BytesIO()
    JsonCodec().write(buf, [_exchange("/one")], 7)
    assert b'"response_body": "ok"' in buf.getvalue()

    buf.seek(0)
    created_at, exchanges = JsonCodec().read(buf)
    assert created_at == 7
    assert exchanges == [_exchange("/one")]


def test_json_codec_rejects_garbage():
    with pytest.raises(CassetteFormatError):
        JsonCodec().read(io.BytesIO(b"not json"))


def test_codec_for_suffix():
    assert isinstance(codec_for("cassettes/api.json"), JsonCodec)
    assert isinstance(codec_for("cassettes/api.rewind"), BinaryCodec)


def test_binary_codec_on_disk():
    with tempfile.NamedTemporaryFile(suffix=".rewind", delete=False) as f:
        path = f.name
        BinaryCodec().write(f, [_exchange("/disk")], 1700000000000)

    with open(path, "rb") as f:
        created_at, exchanges = BinaryCodec().read(f)
    assert created_at == 1700000000000
    assert exchanges[0].request.uri.endswith("/disk")


@pytest.mark.parametrize("exchanges", ["null", "3", '"abc"', "{}"])
def test_json_codec_rejects_non_list_exchanges(exchanges):
    doc = f'{{"version": 1, "created_at": 0, "exchanges": {exchanges}}}'
    with pytest.raises(CassetteFormatError):
        JsonCodec().read(io.BytesIO(doc.encode("utf-8")))
