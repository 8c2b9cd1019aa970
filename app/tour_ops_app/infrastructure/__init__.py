"""Infrastructure adapters for storage, caching, and logging."""

from tour_ops_app.infrastructure.db import (
    DataConnectionError,
    DataExecutionError,
    DataQueryError,
    SQLClient,
)

__all__ = [
    "DataConnectionError",
    "DataExecutionError",
    "DataQueryError",
    "SQLClient",
]
