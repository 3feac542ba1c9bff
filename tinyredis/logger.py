"""Asynchronous logging to standard output and to time-rotated log files."""

from __future__ import annotations

import enum
import os
import queue
import sys
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import IO, Optional, TextIO

_QUEUE_SIZE = 100_000
_DEFAULT_CALLER_DEPTH = 2
_STAMP_FORMAT = "%Y/%m/%d %H:%M:%S "
_STOP = object()


class LogLevel(enum.IntEnum):
    """Severity of a log message."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


@dataclass
class Settings:
    """Where and under which name log files are written.

    ``time_format`` is a ``strftime`` pattern; a new file is opened whenever
    the formatted current time changes.
    """

    path: str
    name: str
    ext: str
    time_format: str


def _log_file_name(settings: Settings) -> str:
    stamp = datetime.now().strftime(settings.time_format)
    return f"{settings.name}-{stamp}.{settings.ext}"


def _permission_denied(path: str) -> bool:
    try:
        os.stat(path)
    except PermissionError:
        return True
    except OSError:
        return False
    return False


def must_open(file_name: str, directory: str) -> IO[str]:
    """Open ``file_name`` inside ``directory`` for appending, creating both as needed."""
    if _permission_denied(directory):
        raise PermissionError(f"permission denied dir: {directory}")
    if not os.path.lexists(directory):
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            raise OSError(f"error during make dir {directory}, err: {exc}") from exc
    full_path = os.path.join(directory, file_name)
    try:
        fd = os.open(full_path, os.O_APPEND | os.O_CREAT | os.O_RDWR, 0o644)
    except OSError as exc:
        raise OSError(f"error opening file: {file_name}, err: {exc}") from exc
    try:
        return os.fdopen(fd, "a", encoding="utf-8")
    except Exception:
        os.close(fd)
        raise


class Logger:
    """A logger that formats messages at once and writes them on a worker thread.

    Messages go to ``stream`` (standard output when ``None``) and, when
    ``settings`` are given, also to a log file that is rotated by time.
    """

    def __init__(self, stream: Optional[TextIO] = None, settings: Optional[Settings] = None) -> None:
        self._stream = stream
        self._settings = settings
        self._file: Optional[IO[str]] = None
        self._file_path: Optional[str] = None
        if settings is not None:
            name = _log_file_name(settings)
            self._file = must_open(name, settings.path)
            self._file_path = os.path.join(settings.path, name)
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=_QUEUE_SIZE)
        self._closed = False
        self._worker = threading.Thread(target=self._run, name="tinyredis-logger", daemon=True)
        self._worker.start()

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def output(self, level: LogLevel, caller_depth: int, msg: str) -> None:
        """Queue ``msg`` tagged with its level and the caller ``caller_depth`` frames up."""
        if self._closed:
            raise ValueError("logger is closed")
        level = LogLevel(level)
        try:
            frame = sys._getframe(caller_depth)
        except ValueError:
            text = f"[{level.name}] {msg}"
        else:
            base = os.path.basename(frame.f_code.co_filename)
            text = f"[{level.name}][{base}:{frame.f_lineno}] {msg}"
            del frame
        self._queue.put(text)

    def flush(self) -> None:
        """Block until every queued message has been written."""
        self._queue.join()

    def close(self) -> None:
        """Write the pending messages, stop the worker and close the log file."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._worker.join()
        if self._file is not None:
            self._file.close()
            self._file = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._write(str(item))
            except Exception as exc:  # keep the worker alive so flush never hangs
                print(f"logger failure: {exc}", file=sys.stderr)
            finally:
                self._queue.task_done()

    def _rotate(self) -> None:
        assert self._settings is not None
        name = _log_file_name(self._settings)
        target = os.path.join(self._settings.path, name)
        if target == self._file_path:
            return
        new_file = must_open(name, self._settings.path)
        old_file, self._file, self._file_path = self._file, new_file, target
        if old_file is not None:
            old_file.close()

    def _write(self, msg: str) -> None:
        if self._settings is not None:
            try:
                self._rotate()
            except OSError as exc:
                print(f"open log failed: {exc}", file=sys.stderr)
        line = datetime.now().strftime(_STAMP_FORMAT) + msg
        if not line.endswith("\n"):
            line += "\n"
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(line)
        stream.flush()
        if self._file is not None:
            self._file.write(line)
            self._file.flush()


def new_stdout_logger() -> Logger:
    """Create a logger that writes to standard output."""
    return Logger()


def new_file_logger(settings: Settings) -> Logger:
    """Create a logger that writes to standard output and to a rotated log file."""
    try:
        return Logger(settings=settings)
    except OSError as exc:
        raise OSError(f"logging.Join err: {exc}") from exc


default_logger: Logger = new_stdout_logger()


def setup(settings: Settings) -> None:
    """Replace the default logger with a file logger built from ``settings``."""
    global default_logger
    default_logger = new_file_logger(settings)


def _sprintln(args: tuple) -> str:
    return " ".join(str(arg) for arg in args) + "\n"


def _sprintf(fmt: str, args: tuple) -> str:
    return fmt % args if args else fmt


def debug(*args: object) -> None:
    """Log the arguments, space separated, at DEBUG level."""
    default_logger.output(LogLevel.DEBUG, _DEFAULT_CALLER_DEPTH, _sprintln(args))


def debugf(fmt: str, *args: object) -> None:
    """Log a %-formatted message at DEBUG level."""
    default_logger.output(LogLevel.DEBUG, _DEFAULT_CALLER_DEPTH, _sprintf(fmt, args))


def info(*args: object) -> None:
    """Log the arguments, space separated, at INFO level."""
    default_logger.output(LogLevel.INFO, _DEFAULT_CALLER_DEPTH, _sprintln(args))


def infof(fmt: str, *args: object) -> None:
    """Log a %-formatted message at INFO level."""
    default_logger.output(LogLevel.INFO, _DEFAULT_CALLER_DEPTH, _sprintf(fmt, args))


def warn(*args: object) -> None:
    """Log the arguments, space separated, at WARNING level."""
    default_logger.output(LogLevel.WARNING, _DEFAULT_CALLER_DEPTH, _sprintln(args))


def error(*args: object) -> None:
    """Log the arguments, space separated, at ERROR level."""
    default_logger.output(LogLevel.ERROR, _DEFAULT_CALLER_DEPTH, _sprintln(args))


def errorf(fmt: str, *args: object) -> None:
    """Log a %-formatted message at ERROR level."""
    default_logger.output(LogLevel.ERROR, _DEFAULT_CALLER_DEPTH, _sprintf(fmt, args))


def fatal(*args: object) -> None:
    """Log the arguments, space separated, at FATAL level."""
    default_logger.output(LogLevel.FATAL, _DEFAULT_CALLER_DEPTH, _sprintln(args))