"""
httpmocker

Mock HTTP server for exercising HTTP client code against canned responses.

This package provides:
- Declarative (method, path, query) -> response rules
- A FastAPI/uvicorn server on an ephemeral local port
- Custom and unknown-request handlers
- A pluggable diagnostics logger
"""

from .context import RequestContext
from .errors import MockServerError
from .logger import Logger, LoggingLogger
from .rules import Rule, RuleStore
from .server import MockConfig, MockServer, launch

__all__ = [
    # Server
    'MockServer',
    'MockConfig',
    'launch',

    # Rules
    'Rule',
    'RuleStore',

    # Handlers
    'RequestContext',

    # Logging
    'Logger',
    'LoggingLogger',

    # Errors
    'MockServerError',
]

__version__ = '1.0.0'
