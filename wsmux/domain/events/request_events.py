"""Domain Events related to a request's path through the multiplexer.

Emitted when a request is submitted, admitted into flight, scheduled for a
retry or finalized, and when the transport fails fatally.
"""

from dataclasses import dataclass, field
import time
from typing import Optional

from wsmux.domain.models.common import HttpCode, RequestId


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class RequestSubmitted(DomainEvent):
    """Event triggered when a request enters the queue for the first time."""
    request_id: RequestId
    url: str
    queue_depth: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RequestAdmitted(DomainEvent):
    """Event triggered when a request is registered with the transport."""
    request_id: RequestId
    attempt_number: int
    active_count: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a recoverable failure sends a request back to the queue."""
    request_id: RequestId
    status_code: int
    attempt_number: int
    delay_seconds: float
    error_detail: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RequestFinalized(DomainEvent):
    """Event triggered when a request's result becomes immutable."""
    request_id: RequestId
    http_code: HttpCode
    latency: float
    retries: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class TransportFailed(DomainEvent):
    """Event triggered when the transport reports a persistent internal failure."""
    reason: str
    queued: int
    active: int
    timestamp: float = field(default_factory=time.time)
