"""Streaming parser for the Redis serialization protocol (RESP)."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from typing import BinaryIO, Iterator, List, Optional

from tinyredis.protocol import (
    BulkReply,
    EmptyMultiBulkReply,
    IntReply,
    MultiBulkReply,
    NullBulkReply,
    Reply,
    StandardErrReply,
    StatusReply,
)

_INTEGER = re.compile(rb"[+-]?[0-9]+")
_CRLF = b"\r\n"


class ProtocolError(Exception):
    """Raised for data that does not follow the protocol."""


@dataclass(frozen=True)
class Payload:
    """One parsed reply, or the error met while parsing."""

    data: Optional[Reply] = None
    err: Optional[BaseException] = None


class _StreamEnd(Exception):
    """The stream ended or failed; carries the error to report."""

    def __init__(self, error: BaseException) -> None:
        super().__init__(str(error))
        self.error = error


def _protocol_error(msg: str) -> Payload:
    return Payload(err=ProtocolError("protocol error: " + msg))


def _parse_int(text: bytes, bits: int) -> Optional[int]:
    """Parse a signed decimal that fits in ``bits`` bits, or return ``None``."""
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        return None
    return value


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _read_line(reader: BinaryIO) -> bytes:
    """Read up to and including ``\\n``; raise ``_StreamEnd`` when none comes."""
    try:
        line = reader.readline()
    except Exception as exc:
        raise _StreamEnd(exc) from exc
    if not line.endswith(b"\n"):
        raise _StreamEnd(EOFError("unexpected end of stream"))
    return line


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes; raise ``_StreamEnd`` when they do not come."""
    chunks: List[bytes] = []
    remaining = size
    while remaining > 0:
        try:
            chunk = reader.read(remaining)
        except Exception as exc:
            raise _StreamEnd(exc) from exc
        if not chunk:
            raise _StreamEnd(EOFError("unexpected end of stream"))
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _parse_bulk_string(header: bytes, reader: BinaryIO) -> Payload:
    size = _parse_int(header[1:], 64)
    if size is None or size < -1:
        return _protocol_error("illegal bulk string header: " + _decode(header))
    if size == -1:
        return Payload(data=NullBulkReply())
    body = _read_exact(reader, size + 2)
    return Payload(data=BulkReply(body[:size]))


def _parse_array(header: bytes, reader: BinaryIO) -> Payload:
    count = _parse_int(header[1:], 32)
    if count is None or count < 0:
        return _protocol_error("illegal array header " + _decode(header[1:]))
    if count == 0:
        return Payload(data=EmptyMultiBulkReply())
    items: List[bytes] = []
    for _ in range(count):
        line = _read_line(reader)
        if len(line) < 4 or line[-2:-1] != b"\r" or line[:1] != b"$":
            return _protocol_error("illegal bulk string header " + _decode(line))
        size = _parse_int(line[1:-2], 64)
        if size is None or size < -1:
            return _protocol_error("illegal bulk string header: " + _decode(line))
        if size == -1:
            items.append(b"")
        else:
            body = _read_exact(reader, size + 2)
            items.append(body[:size])
    return Payload(data=MultiBulkReply(items))


def _parse_rdb_bulk_string(reader: BinaryIO) -> Payload:
    """Read the RDB dump that follows FULLRESYNC; no CRLF ends its body."""
    try:
        header = reader.readline()
    except Exception as exc:
        raise _StreamEnd(ProtocolError("failed to read bytes")) from exc
    if not header.endswith(b"\n"):
        raise _StreamEnd(ProtocolError("failed to read bytes"))
    header = header[:-2] if header.endswith(_CRLF) else header
    if not header:
        raise _StreamEnd(ProtocolError("empty header"))
    size = _parse_int(header[1:], 64)
    if size is None or size <= 0:
        raise _StreamEnd(ProtocolError("illegal bulk header" + _decode(header)))
    return Payload(data=BulkReply(_read_exact(reader, size)))


def _payloads(reader: BinaryIO) -> Iterator[Payload]:
    while True:
        try:
            line = reader.readline()
        except Exception as exc:
            raise _StreamEnd(exc) from exc
        if not line:
            return
        if not line.endswith(b"\n"):
            raise _StreamEnd(EOFError("unexpected end of stream"))
        # blank lines occur in replication traffic and are skipped
        if len(line) <= 2 or line[-2:-1] != b"\r":
            continue
        line = line[:-2]
        kind, rest = line[:1], line[1:]
        if kind == b"+":
            content = _decode(rest)
            yield Payload(data=StatusReply(content))
            if content.startswith("FULLRESYNC"):
                yield _parse_rdb_bulk_string(reader)
        elif kind == b"-":
            yield Payload(data=StandardErrReply(_decode(rest)))
        elif kind == b":":
            value = _parse_int(rest, 64)
            if value is None:
                yield _protocol_error("illegal number " + _decode(rest))
            else:
                yield Payload(data=IntReply(value))
        elif kind == b"$":
            yield _parse_bulk_string(line, reader)
        elif kind == b"*":
            yield _parse_array(line, reader)
        else:
            # inline command: space separated arguments
            yield Payload(data=MultiBulkReply(line.split(b" ")))


def parse_stream(reader: BinaryIO) -> Iterator[Payload]:
    """Parse replies from a binary stream, yielding one payload at a time.

    Protocol errors that leave the stream usable are yielded as payloads and
    parsing goes on. A stream that ends inside a message, or fails to read,
    yields a final payload holding that error. A clean end stops the iteration.
    """
    try:
        yield from _payloads(reader)
    except _StreamEnd as end:
        yield Payload(err=end.error)


def parse_bytes(data: bytes) -> List[Payload]:
    """Parse every reply in ``data``."""
    return list(parse_stream(io.BytesIO(data)))