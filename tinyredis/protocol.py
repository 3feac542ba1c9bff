"""Replies of the Redis serialization protocol (RESP) and helpers around them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

CRLF = "\r\n"

PONG_BYTES = b"+PONG\r\n"
OK_BYTES = b"+OK\r\n"
NULL_BULK_BYTES = b"$-1\r\n"
EMPTY_MULTI_BULK_BYTES = b"*0\r\n"
NO_BYTES = b""
QUEUED_BYTES = b"+QUEUED\r\n"

_CRLF_BYTES = CRLF.encode()


class Reply(ABC):
    """A message of the Redis serialization protocol."""

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Serialize the reply to its wire form."""


class ReplyError(Exception):
    """An error carried by a protocol reply."""


# ---- constant replies ----


class PongReply(Reply):
    """The +PONG reply."""

    def to_bytes(self) -> bytes:
        return PONG_BYTES

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PongReply)

    def __hash__(self) -> int:
        return hash(PONG_BYTES)

    def __repr__(self) -> str:
        return "PongReply()"


class OKReply(Reply):
    """The +OK reply."""

    def to_bytes(self) -> bytes:
        return OK_BYTES

    def __eq__(self, other: object) -> bool:
        return isinstance(other, OKReply)

    def __hash__(self) -> int:
        return hash(OK_BYTES)

    def __repr__(self) -> str:
        return "OKReply()"


class NullBulkReply(Reply):
    """The null bulk string, $-1."""

    def to_bytes(self) -> bytes:
        return NULL_BULK_BYTES

    def __eq__(self, other: object) -> bool:
        return isinstance(other, NullBulkReply)

    def __hash__(self) -> int:
        return hash(NULL_BULK_BYTES)

    def __repr__(self) -> str:
        return "NullBulkReply()"


class EmptyMultiBulkReply(Reply):
    """An empty array, *0."""

    def to_bytes(self) -> bytes:
        return EMPTY_MULTI_BULK_BYTES

    def __eq__(self, other: object) -> bool:
        return isinstance(other, EmptyMultiBulkReply)

    def __hash__(self) -> int:
        return hash(EMPTY_MULTI_BULK_BYTES)

    def __repr__(self) -> str:
        return "EmptyMultiBulkReply()"


class NoReply(Reply):
    """A reply that sends nothing, for commands such as SUBSCRIBE."""

    def to_bytes(self) -> bytes:
        return NO_BYTES

    def __eq__(self, other: object) -> bool:
        return isinstance(other, NoReply)

    def __hash__(self) -> int:
        return hash(NO_BYTES)

    def __repr__(self) -> str:
        return "NoReply()"


class QueuedReply(Reply):
    """The +QUEUED reply sent for commands inside MULTI."""

    def to_bytes(self) -> bytes:
        return QUEUED_BYTES

    def __eq__(self, other: object) -> bool:
        return isinstance(other, QueuedReply)

    def __hash__(self) -> int:
        return hash(QUEUED_BYTES)

    def __repr__(self) -> str:
        return "QueuedReply()"


_OK_REPLY = OKReply()
_QUEUED_REPLY = QueuedReply()


def make_ok_reply() -> OKReply:
    """Return the shared +OK reply."""
    return _OK_REPLY


def make_queued_reply() -> QueuedReply:
    """Return the shared +QUEUED reply."""
    return _QUEUED_REPLY


# ---- data replies ----


@dataclass(frozen=True)
class BulkReply(Reply):
    """A binary-safe string; ``None`` serializes as the null bulk string."""

    arg: Optional[bytes]

    def to_bytes(self) -> bytes:
        if self.arg is None:
            return NULL_BULK_BYTES
        return b"$" + str(len(self.arg)).encode() + _CRLF_BYTES + bytes(self.arg) + _CRLF_BYTES


def _bulk_item(arg: Optional[bytes]) -> bytes:
    if arg is None:
        return NULL_BULK_BYTES
    return b"$" + str(len(arg)).encode() + _CRLF_BYTES + bytes(arg) + _CRLF_BYTES


@dataclass(frozen=True)
class MultiBulkReply(Reply):
    """An array of bulk strings; ``None`` items serialize as null bulk strings."""

    args: Sequence[Optional[bytes]] = field(default_factory=tuple)

    def to_bytes(self) -> bytes:
        parts = [b"*" + str(len(self.args)).encode() + _CRLF_BYTES]
        parts.extend(_bulk_item(arg) for arg in self.args)
        return b"".join(parts)


@dataclass(frozen=True)
class MultiRawReply(Reply):
    """An array of arbitrary replies, for nested results such as GEOPOS."""

    replies: Sequence[Reply] = field(default_factory=tuple)

    def to_bytes(self) -> bytes:
        parts = [b"*" + str(len(self.replies)).encode() + _CRLF_BYTES]
        parts.extend(reply.to_bytes() for reply in self.replies)
        return b"".join(parts)


@dataclass(frozen=True)
class StatusReply(Reply):
    """A simple status string."""

    status: str

    def to_bytes(self) -> bytes:
        return ("+" + self.status + CRLF).encode()


@dataclass(frozen=True)
class IntReply(Reply):
    """A 64-bit integer reply."""

    code: int

    def to_bytes(self) -> bytes:
        return (":" + str(self.code) + CRLF).encode()


class StandardErrReply(Reply, Exception):
    """A server error that is both a reply and an exception."""

    def __init__(self, status: str) -> None:
        super().__init__(status)
        self.status = status

    def to_bytes(self) -> bytes:
        return ("-" + self.status + CRLF).encode()

    def __str__(self) -> str:
        return self.status

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StandardErrReply) and other.status == self.status

    def __hash__(self) -> int:
        return hash(("err", self.status))

    def __repr__(self) -> str:
        return f"StandardErrReply({self.status!r})"


# ---- predicates ----


def is_empty_multi_bulk_reply(reply: Reply) -> bool:
    """Tell whether the reply serializes as an empty array."""
    return reply.to_bytes() == EMPTY_MULTI_BULK_BYTES


def is_ok_reply(reply: Reply) -> bool:
    """Tell whether the reply serializes as +OK."""
    return reply.to_bytes() == OK_BYTES


def is_error_reply(reply: Reply) -> bool:
    """Tell whether the reply serializes as an error."""
    return reply.to_bytes()[:1] == b"-"


def error_from_reply(reply: Reply) -> Optional[ReplyError]:
    """Return the error a reply carries, or ``None`` when it carries none.

    An empty reply is itself reported as an error.
    """
    text = reply.to_bytes().decode("utf-8", errors="replace")
    if not text:
        return ReplyError("empty reply")
    if text[0] != "-":
        return None
    return ReplyError(text[1:])