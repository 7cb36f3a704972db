"""Domain models for requests moving through the multiplexer.

Includes the working node tracked while a request is queued or in flight,
the immutable record kept once it is finalized, and the structures exchanged
with the transport.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .common import HttpCode, RequestId, RequestOptions, RequestState, Url


@dataclass
class ResponseHandle:
    """Mutable holder passed to completion handlers.

    Whatever ``value`` holds when the handler returns is what gets stored in
    the result record.
    """
    value: Any


class CompletionHandler(Protocol):
    """Callable invoked exactly once when a request is finalized."""

    def __call__(
        self,
        response: ResponseHandle,
        metadata: Any,
        http_code: HttpCode,
        latency: float,
        url: Url,
        options: RequestOptions,
    ) -> Any:
        ...


# --- Entities ---

@dataclass
class RequestNode:
    """A submitted request and its tracking state."""
    id: RequestId
    url: Url
    options: RequestOptions
    submitted_at: float
    callback: Optional[CompletionHandler] = None
    metadata: Any = None
    retry_count: int = 0
    state: RequestState = RequestState.QUEUED


@dataclass(frozen=True)
class ResultRecord:
    """Finalized outcome of a request. One per submitted node."""
    id: RequestId
    response: Any
    http_code: HttpCode
    latency: float
    url: Url
    options: RequestOptions
    metadata: Any = None

    @property
    def succeeded(self) -> bool:
        """True for 2xx status codes."""
        return self.http_code.isdigit() and 200 <= int(self.http_code) < 300


# --- Transport Structures ---

@dataclass(frozen=True)
class TransportOperation:
    """A single send/receive attempt registered with the transport."""
    id: RequestId
    url: Url
    options: RequestOptions = field(default_factory=dict)  # type: ignore[assignment]


@dataclass(frozen=True)
class TransportCompletion:
    """A finished transport operation.

    ``status_code`` is 0 when the transport failed before an HTTP response
    arrived; ``error_detail`` then describes the failure.
    """
    operation_id: RequestId
    status_code: int
    error_detail: str = ""
    body: str = ""
