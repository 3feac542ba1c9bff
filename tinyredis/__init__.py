"""RESP reply types, a streaming RESP parser, a threaded TCP server and an asynchronous logger."""

__version__ = "0.1.0"
__all__ = ["protocol", "parser", "server", "logger"]