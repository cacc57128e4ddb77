"""rostersync API layer: routes, schemas and middleware."""

from rostersync.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from rostersync.api.routes import router
from rostersync.api.schemas import (
    ErrorResponse,
    HealthResponse,
    SyncRequest,
    SyncStartedResponse,
    SyncStatusResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "RequestLoggingMiddleware",
    "SyncRequest",
    "SyncStartedResponse",
    "SyncStatusResponse",
    "configure_cors",
    "router",
]
