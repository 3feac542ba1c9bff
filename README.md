# tinyredis

Building blocks for a Redis-compatible server, in plain Python with no
third-party dependencies.

## Modules

### `tinyredis.protocol`

RESP reply types. Each one serializes itself with `to_bytes()`.

- `StatusReply(status)` gives `+status\r\n`.
- `IntReply(code)` gives `:code\r\n`.
- `BulkReply(arg)` gives `$len\r\narg\r\n`. When `arg` is `None` it gives the
  null bulk string `$-1\r\n`.
- `MultiBulkReply(args)` is an array of bulk strings. `None` items are written
  as `$-1`.
- `MultiRawReply(replies)` is an array of any replies, for nested results.
- `StandardErrReply(status)` gives `-status\r\n`. It is also an exception, so
  it can be raised.
- Constant replies: `PongReply`, `OKReply`, `QueuedReply`, `NullBulkReply`,
  `EmptyMultiBulkReply` (`*0\r\n`) and `NoReply` (empty bytes).
  `make_ok_reply()` and `make_queued_reply()` return shared instances.

Helpers:

- `is_ok_reply(reply)`, `is_error_reply(reply)` and
  `is_empty_multi_bulk_reply(reply)` check what a reply serializes to.
- `error_from_reply(reply)` returns a `ReplyError` holding the text of an error
  reply. It returns `None` for any other reply. An empty reply gives
  `ReplyError("empty reply")`.

### `tinyredis.parser`

A streaming RESP parser.

- `parse_stream(reader)` reads a binary stream and yields one `Payload` per
  message. A `Payload` has two fields, `data` (a reply) and `err`.
- `parse_bytes(data)` parses a bytes buffer that is already in memory and
  returns the list of payloads.

How the parser treats its input:

- Statuses, errors, integers, bulk strings and arrays of bulk strings are
  parsed. A null bulk string inside an array becomes `b""`.
- A line that starts with any other character is read as an inline command.
  Its arguments are split on spaces into a `MultiBulkReply`.
- A `+FULLRESYNC ...` status is followed by an RDB bulk string. That body has
  no trailing CRLF.
- Blank lines, and lines that do not end in `\r\n`, are skipped.
- A malformed header or number is yielded as a payload whose `err` is a
  `ProtocolError`, and parsing goes on.
- If the stream ends in the middle of a message, or a read fails, a last
  payload with that error is yielded.
- A clean end of the stream simply stops the iteration.

### `tinyredis.server`

A threaded TCP server.

- `listen_and_serve(listener, handler, close_event)` accepts connections on a
  listening socket and passes each one to `handler.handle(conn)` on its own
  thread. It stops when the `threading.Event` `close_event` is set, or when
  accepting fails. It then closes the listener and calls `handler.close()`. It
  returns once every connection thread has finished.
- `listen_and_serve_with_signal(cfg, handler)` listens on `cfg.address`
  (`"host:port"`) and serves until SIGINT, SIGTERM, SIGQUIT or SIGHUP arrives.
  Signal handlers are installed only when it is called from the main thread.
  Only the signals that the platform has are used, and the previous handlers
  are restored afterwards.
- `client_count()` returns the number of connections being served.
- `Config(address, max_connect=0, timeout=0.0)` holds the server settings.
  `max_connect` and `timeout` are stored but the server does not use them.
- `Handler` is the abstract base for what serves connections. It has
  `handle(conn)` and `close()`.
- `Connection` is an abstract description of per-client state: writes,
  subscriptions, the MULTI queue, watched keys, the selected database and the
  replication role. The package does not implement it.

### `tinyredis.logger`

An asynchronous leveled logger. Messages are formatted at once and written by
a worker thread. Each line carries a timestamp, the level, and the caller's
file name and line number.

- `Logger(stream=None, settings=None)` writes to `stream`, or to standard
  output when `stream` is `None`. When `settings` is given, it also writes to a
  log file. It has these methods:
  - `output(level, caller_depth, msg)` queues a message.
  - `flush()` waits until the queued messages have been written.
  - `close()` writes what is pending and closes the file.
  - It can also be used as a context manager.
- `Settings(path, name, ext, time_format)` describes the log file. The file is
  named `{name}-{time}.{ext}` inside `path`, where `time` is the current time
  formatted with the `strftime` pattern `time_format`. A new file is opened
  whenever that name changes.
- `new_stdout_logger()` and `new_file_logger(settings)` build loggers.
  `setup(settings)` replaces the module's default logger with a file logger.
- `debug`, `info`, `warn`, `error` and `fatal` log their arguments, separated
  by spaces. `debugf`, `infof` and `errorf` take a `%`-style format. All of
  these go through the default logger. `fatal` only logs; it does not stop the
  program.
- `must_open(file_name, directory)` opens a file for appending. It creates the
  directory if it is missing.
- `LogLevel` lists the levels: DEBUG, INFO, WARNING, ERROR and FATAL.

## What it does not do

There is no command execution, no key-value store and no persistence.
Nothing turns a parsed request into a reply. The server moves connections to
your `Handler`, and the rest is up to you. There is no command-line program.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Serializing replies:

```python
from tinyredis.protocol import BulkReply, IntReply, MultiBulkReply

BulkReply(b"hello").to_bytes()               # b"$5\r\nhello\r\n"
MultiBulkReply([b"foo", b"bar"]).to_bytes()  # b"*2\r\n$3\r\nfoo\r\n$3\r\nbar\r\n"
IntReply(1000).to_bytes()                    # b":1000\r\n"
```

Parsing:

```python
from tinyredis.parser import parse_bytes

for payload in parse_bytes(b"+OK\r\n$5\r\nhello\r\n"):
    if payload.err is not None:
        break
    print(payload.data.to_bytes())
```

Serving connections:

```python
from tinyredis.server import Config, Handler, listen_and_serve_with_signal

class Echo(Handler):
    def handle(self, conn):
        with conn:
            while data := conn.recv(4096):
                conn.sendall(data)

    def close(self):
        pass

listen_and_serve_with_signal(Config(address="127.0.0.1:6399"), Echo())
```

Logging:

```python
from tinyredis import logger

logger.info("server started")
logger.errorf("failed to bind %s", "127.0.0.1:6399")
logger.default_logger.flush()
```