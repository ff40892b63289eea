"""qsync - query cache synchronization: prefetch, hydrate, dedup, invalidate."""

# Configuration
from qsync.config import QSyncSettings

# Error taxonomy
from qsync.errors import (
    ErrorCode,
    NotFoundError,
    QueryError,
    TransientError,
    UnauthorizedError,
    UnknownError,
    ValidationError,
)

# Hydration
from qsync.hydration import DehydratedState, dehydrate, hydrate

# Query signatures
from qsync.keys import QuerySignature, signature_of
from qsync.mutation import MutationEngine

# Pages
from qsync.pages import NOT_FOUND, StaticPages

# Procedures API
from qsync.procedures import Procedure, Router, mount, mutation, query

# Client API
from qsync.query_client import QueryClient, QueryObserver, create_client
from qsync.store import CacheStore

# Transports
from qsync.transports import HttpTransport, LocalTransport, RequestContext, Transport

# Core types
from qsync.types import (
    CacheEntry,
    ErrorInfo,
    Identity,
    InvalidationRule,
    MutationOutcome,
    QueryResult,
    QueryStatus,
)

__version__ = "0.1.0"

__all__ = [
    "NOT_FOUND",
    "CacheEntry",
    "CacheStore",
    "DehydratedState",
    "ErrorCode",
    "ErrorInfo",
    "HttpTransport",
    "Identity",
    "InvalidationRule",
    "LocalTransport",
    "MutationEngine",
    "MutationOutcome",
    "NotFoundError",
    "Procedure",
    "QSyncSettings",
    "QueryClient",
    "QueryError",
    "QueryObserver",
    "QueryResult",
    "QuerySignature",
    "QueryStatus",
    "RequestContext",
    "Router",
    "StaticPages",
    "TransientError",
    "Transport",
    "UnauthorizedError",
    "UnknownError",
    "ValidationError",
    "create_client",
    "dehydrate",
    "hydrate",
    "mount",
    "mutation",
    "query",
    "signature_of",
]
