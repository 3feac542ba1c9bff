import io

import pytest

from tinyredis.parser import Payload, ProtocolError, parse_bytes, parse_stream
from tinyredis.protocol import (
    BulkReply,
    EmptyMultiBulkReply,
    IntReply,
    MultiBulkReply,
    NullBulkReply,
    StandardErrReply,
    StatusReply,
)


def test_status_reply():
    assert parse_bytes(b"+OK\r\n") == [Payload(data=StatusReply("OK"))]


def test_error_reply():
    payloads = parse_bytes(b"-ERR unknown command\r\n")
    assert len(payloads) == 1
    assert payloads[0].data == StandardErrReply("ERR unknown command")
    assert payloads[0].err is None


def test_int_reply():
    assert parse_bytes(b":1000\r\n") == [Payload(data=IntReply(1000))]


def test_illegal_number_reports_and_continues():
    payloads = parse_bytes(b":abc\r\n+OK\r\n")
    assert len(payloads) == 2
    assert isinstance(payloads[0].err, ProtocolError)
    assert "illegal number abc" in str(payloads[0].err)
    assert payloads[1].data == StatusReply("OK")


def test_bulk_string():
    assert parse_bytes(b"$5\r\nhello\r\n") == [Payload(data=BulkReply(b"hello"))]


def test_empty_bulk_string():
    assert parse_bytes(b"$0\r\n\r\n") == [Payload(data=BulkReply(b""))]


def test_null_bulk_string():
    assert parse_bytes(b"$-1\r\n") == [Payload(data=NullBulkReply())]


def test_binary_bulk_round_trip():
    body = bytes(range(256)) + b"\r\n\r\n"
    payloads = parse_bytes(BulkReply(body).to_bytes())
    assert [p.data for p in payloads] == [BulkReply(body)]


def test_illegal_bulk_header():
    payloads = parse_bytes(b"$-2\r\n+OK\r\n")
    assert isinstance(payloads[0].err, ProtocolError)
    assert payloads[1].data == StatusReply("OK")


def test_array():
    payloads = parse_bytes(b"*2\r\n$3\r\nfoo\r\n$3\r\nbar\r\n")
    assert len(payloads) == 1
    assert payloads[0].data.args == [b"foo", b"bar"]


def test_empty_array():
    assert parse_bytes(b"*0\r\n") == [Payload(data=EmptyMultiBulkReply())]


def test_negative_array_header():
    payloads = parse_bytes(b"*-1\r\n")
    assert len(payloads) == 1
    assert isinstance(payloads[0].err, ProtocolError)


def test_array_with_bad_element_header():
    payloads = parse_bytes(b"*1\r\n+foo\r\n+OK\r\n")
    assert isinstance(payloads[0].err, ProtocolError)
    assert payloads[-1].data == StatusReply("OK")


@pytest.mark.parametrize(
    "args",
    [[b"SET", b"key", b"value"], [b"GET", b"k"], [b"a\r\nb", b"", b"x" * 300]],
)
def test_multi_bulk_round_trip(args):
    payloads = parse_bytes(MultiBulkReply(args).to_bytes())
    assert len(payloads) == 1
    assert payloads[0].data.args == args
    assert payloads[0].data.to_bytes() == MultiBulkReply(args).to_bytes()


@pytest.mark.parametrize(
    "reply",
    [StatusReply("PONG"), IntReply(-42), StandardErrReply("ERR boom"), BulkReply(b"v")],
)
def test_single_reply_round_trip(reply):
    payloads = parse_bytes(reply.to_bytes())
    assert [p.data for p in payloads] == [reply]


def test_truncated_array_ends_with_eof():
    payloads = parse_bytes(b"*2\r\n$3\r\nfoo\r\n")
    assert len(payloads) == 1
    assert isinstance(payloads[0].err, EOFError)


def test_truncated_bulk_ends_with_eof():
    payloads = parse_bytes(b"$10\r\nabc")
    assert len(payloads) == 1
    assert isinstance(payloads[0].err, EOFError)


def test_partial_line_at_end_is_eof():
    payloads = parse_bytes(b"+OK\r\n+PON")
    assert payloads[0].data == StatusReply("OK")
    assert isinstance(payloads[1].err, EOFError)
    assert len(payloads) == 2


def test_clean_end_yields_nothing_more():
    assert parse_bytes(b"") == []
    assert len(parse_bytes(b"+OK\r\n+OK\r\n")) == 2


def test_inline_command():
    payloads = parse_bytes(b"PING hello\r\n")
    assert payloads[0].data.args == [b"PING", b"hello"]


def test_blank_lines_are_skipped():
    payloads = parse_bytes(b"\r\n\n+OK\r\n")
    assert payloads == [Payload(data=StatusReply("OK"))]


def test_line_without_carriage_return_is_skipped():
    payloads = parse_bytes(b"+BAD\n+OK\r\n")
    assert payloads == [Payload(data=StatusReply("OK"))]


def test_fullresync_reads_rdb_without_crlf():
    data = b"+FULLRESYNC abc 0\r\n$3\r\nRDB*1\r\n$4\r\nPING\r\n"
    payloads = parse_bytes(data)
    assert [p.data for p in payloads] == [
        StatusReply("FULLRESYNC abc 0"),
        BulkReply(b"RDB"),
        MultiBulkReply([b"PING"]),
    ]


def test_fullresync_with_bad_header_stops():
    payloads = parse_bytes(b"+FULLRESYNC abc 0\r\n$0\r\n+OK\r\n")
    assert payloads[0].data == StatusReply("FULLRESYNC abc 0")
    assert isinstance(payloads[1].err, ProtocolError)
    assert len(payloads) == 2


def test_fullresync_with_empty_header_stops():
    payloads = parse_bytes(b"+FULLRESYNC abc 0\r\n\r\n")
    assert str(payloads[1].err) == "empty header"


def test_parse_stream_is_lazy():
    stream = parse_stream(io.BytesIO(b"+OK\r\n:1\r\n"))
    first = next(stream)
    assert first.data == StatusReply("OK")
    assert next(stream).data == IntReply(1)
    with pytest.raises(StopIteration):
        next(stream)


class _FailingReader:
    def __init__(self):
        self.calls = 0

    def readline(self):
        self.calls += 1
        if self.calls == 1:
            return b"+OK\r\n"
        raise OSError("connection reset")

    def read(self, size):
        raise OSError("connection reset")


def test_read_failure_is_reported():
    payloads = list(parse_stream(_FailingReader()))
    assert payloads[0].data == StatusReply("OK")
    assert isinstance(payloads[1].err, OSError)
    assert str(payloads[1].err) == "connection reset"
    assert len(payloads) == 2


class _TrickleReader(io.RawIOBase):
    def __init__(self, data):
        self._data = data

    def readable(self):
        return True

    def readinto(self, buf):
        if not self._data:
            return 0
        buf[0] = self._data[0]
        self._data = self._data[1:]
        return 1


def test_short_reads_are_joined():
    data = MultiBulkReply([b"hello", b"world"]).to_bytes()
    reader = io.BufferedReader(_TrickleReader(data), buffer_size=1)
    payloads = list(parse_stream(reader))
    assert [p.data for p in payloads] == [MultiBulkReply([b"hello", b"world"])]