"""Defines common Value Objects used across the multiplexer and its collaborators.

These objects represent simple values like request identifiers, status codes
and transport options, ensuring consistency and type safety.
"""

from enum import Enum
from typing import Any, Dict, NewType, Optional, TypedDict, Union

# === Core Value Objects ===

RequestId = NewType("RequestId", int)          # Opaque per-engine request identifier
HttpCode = NewType("HttpCode", str)            # Status code as text, "0" for transport errors
Url = NewType("Url", str)

# Status code reported when no HTTP response was obtained (DNS, timeout, refused...)
TRANSPORT_ERROR_STATUS = 0
TRANSPORT_ERROR_CODE = HttpCode(str(TRANSPORT_ERROR_STATUS))


class RequestState(str, Enum):
    """Lifecycle phase of a submitted request."""
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    UNKNOWN = "unknown"       # Never submitted to this engine


class TransportHealth(Enum):
    """Result of driving the transport's progress step."""
    OK = "ok"
    CALL_AGAIN = "call_again"  # More immediate work is available
    FATAL = "fatal"            # Persistent internal failure, no further progress


# --- Structured Data ---

class RequestOptions(TypedDict, total=False):
    """Transport configuration for a single request.

    Every key is optional; the transport fills in defaults (GET, no body,
    its own timeouts).
    """
    method: str
    headers: Dict[str, str]
    params: Dict[str, Any]
    data: Union[Dict[str, Any], str]
    json: Any
    content: Union[str, bytes]
    timeout: Optional[float]          # Total seconds for the request
    connect_timeout: Optional[float]  # Seconds to establish the connection


class EngineSettingsDict(TypedDict):
    """Snapshot of the multiplexer's tunables."""
    max_concurrency: int
    launch_pacing_interval: float
    max_retries: int
    retry_delay: float
