"""TCP server that hands each accepted connection to a handler."""

from __future__ import annotations

import signal
import socket
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Set

_ACCEPT_POLL = 0.1
_SHUTDOWN_SIGNALS = ("SIGINT", "SIGTERM", "SIGQUIT", "SIGHUP")


@dataclass
class Config:
    """Properties of the TCP server."""

    address: str
    max_connect: int = 0
    timeout: float = 0.0


class Handler(ABC):
    """Serves connections accepted by the server."""

    @abstractmethod
    def handle(self, conn: socket.socket) -> None:
        """Serve one client connection until it ends."""

    @abstractmethod
    def close(self) -> None:
        """Stop serving and close every open connection."""


class Connection(ABC):
    """The server's view of one client connection."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send ``data`` to the client and return how many bytes were written."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""

    @abstractmethod
    def remote_addr(self) -> str:
        """Return the client's address, such as ``127.0.0.1:6379``."""

    @property
    @abstractmethod
    def password(self) -> str:
        """The password the client authenticated with."""

    @password.setter
    @abstractmethod
    def password(self, value: str) -> None:
        """Set the password the client authenticated with."""

    @abstractmethod
    def subscribe(self, channel: str) -> None:
        """Add ``channel`` to the subscriptions."""

    @abstractmethod
    def unsubscribe(self, channel: str) -> None:
        """Remove ``channel`` from the subscriptions."""

    @abstractmethod
    def subs_count(self) -> int:
        """Return how many channels are subscribed."""

    @abstractmethod
    def channels(self) -> List[str]:
        """Return the subscribed channels."""

    @property
    @abstractmethod
    def multi_state(self) -> bool:
        """Whether a MULTI transaction is open."""

    @multi_state.setter
    @abstractmethod
    def multi_state(self, value: bool) -> None:
        """Open or end a MULTI transaction."""

    @abstractmethod
    def enqueue_cmd(self, cmd: List[bytes]) -> None:
        """Queue a command line for the open transaction."""

    @abstractmethod
    def queued_cmd_lines(self) -> List[List[bytes]]:
        """Return the command lines queued in the open transaction."""

    @abstractmethod
    def clear_queued_cmds(self) -> None:
        """Drop every queued command line."""

    @abstractmethod
    def watching(self) -> Dict[str, int]:
        """Return the watched keys mapped to their versions."""

    @abstractmethod
    def add_tx_error(self, err: Exception) -> None:
        """Record an error raised while queuing the transaction."""

    @abstractmethod
    def tx_errors(self) -> List[Exception]:
        """Return the errors recorded for the transaction."""

    @property
    @abstractmethod
    def db_index(self) -> int:
        """The index of the selected database."""

    @abstractmethod
    def select_db(self, index: int) -> None:
        """Select the database with the given index."""

    @property
    @abstractmethod
    def slave(self) -> bool:
        """Whether the peer is a replica."""

    @slave.setter
    @abstractmethod
    def slave(self, value: bool) -> None:
        """Mark the peer as a replica."""

    @property
    @abstractmethod
    def master(self) -> bool:
        """Whether the peer is a master."""

    @master.setter
    @abstractmethod
    def master(self, value: bool) -> None:
        """Mark the peer as a master."""

    @abstractmethod
    def name(self) -> str:
        """Return an identifier for the connection."""


_clients_lock = threading.Lock()
_clients = 0


def client_count() -> int:
    """Return the number of client connections being served."""
    with _clients_lock:
        return _clients


def _adjust_clients(delta: int) -> None:
    global _clients
    with _clients_lock:
        _clients += delta


def _close_listener(listener: socket.socket) -> None:
    try:
        listener.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    listener.close()


def listen_and_serve(listener: socket.socket, handler: Handler, close_event: threading.Event) -> None:
    """Accept connections until ``close_event`` is set or accepting fails.

    Each connection is served by ``handler`` on its own thread. On shutdown the
    listener and the handler are closed, and the call returns once every
    connection has been served.
    """
    failed = threading.Event()
    stopped = threading.Event()
    active: Set[threading.Thread] = set()
    active_lock = threading.Lock()

    def watch() -> None:
        while not (close_event.is_set() or failed.is_set()):
            close_event.wait(_ACCEPT_POLL)
        stopped.set()
        _close_listener(listener)
        handler.close()

    def serve(conn: socket.socket) -> None:
        try:
            handler.handle(conn)
        finally:
            _adjust_clients(-1)
            with active_lock:
                active.discard(threading.current_thread())

    watcher = threading.Thread(target=watch, name="tinyredis-watch", daemon=True)
    watcher.start()
    try:
        listener.settimeout(_ACCEPT_POLL)
    except OSError:
        pass

    while True:
        try:
            conn, _ = listener.accept()
        except TimeoutError:
            if stopped.is_set():
                break
            continue
        except OSError:
            failed.set()
            break
        _adjust_clients(1)
        worker = threading.Thread(target=serve, args=(conn,), daemon=True)
        with active_lock:
            active.add(worker)
        worker.start()

    failed.set()
    watcher.join()
    while True:
        with active_lock:
            remaining = list(active)
        if not remaining:
            break
        for worker in remaining:
            worker.join()


def _split_address(address: str) -> tuple:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    try:
        number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    return host.strip("[]"), number


def _install_signal_handlers(close_event: threading.Event) -> Dict[int, object]:
    if threading.current_thread() is not threading.main_thread():
        return {}

    def on_signal(signum: int, frame: object) -> None:
        close_event.set()

    previous: Dict[int, object] = {}
    for name in _SHUTDOWN_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        old = signal.signal(signum, on_signal)
        previous[signum] = signal.SIG_DFL if old is None else old
    return previous


def listen_and_serve_with_signal(cfg: Config, handler: Handler) -> None:
    """Listen on ``cfg.address`` and serve until a termination signal arrives."""
    close_event = threading.Event()
    previous = _install_signal_handlers(close_event)
    restore: Callable[[int, object], object] = signal.signal
    try:
        host, port = _split_address(cfg.address)
        listener = socket.create_server((host, port))
        with listener:
            listen_and_serve(listener, handler, close_event)
    finally:
        for signum, old in previous.items():
            restore(signum, old)