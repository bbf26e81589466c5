"""
httpmocker Logger

Pluggable diagnostics sink for the mock server.

The server writes one line per dispatched request to its ``logger`` slot.
The slot is empty by default, so a server without a logger is silent.
Anything with a printf-style ``log(msg, *args)`` method can be plugged in.
"""

import logging
from typing import Any, Optional, Protocol


class Logger(Protocol):
    """Anything that accepts ``log(msg, *args)`` with %-style arguments."""

    def log(self, msg: str, *args: Any) -> None:
        ...


class LoggingLogger:
    """
    Adapt a standard library logger to the ``Logger`` protocol.

    Example:
        server = launch(Rule('GET', '/hello', status_code=200, body='hi'))
        server.logger = LoggingLogger()  # logs to "httpmocker" at DEBUG
    """

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        self.logger = logger or logging.getLogger("httpmocker")
        self.level = level

    def log(self, msg: str, *args: Any) -> None:
        self.logger.log(self.level, msg, *args)
