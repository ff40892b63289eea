"""Read/write transports for qsync."""

from qsync.transports.base import RequestContext, Transport
from qsync.transports.http import HttpTransport
from qsync.transports.local import Handler, LocalTransport

__all__ = [
    "Handler",
    "HttpTransport",
    "LocalTransport",
    "RequestContext",
    "Transport",
]
