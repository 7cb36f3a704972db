"""Retry classification for finished requests.

Decides whether a finished transport operation should be retried after a
fixed backoff delay or finalized. Transport failures (status 0) and the
transient server errors 500, 503 and 504 are recoverable until the retry
budget is spent; everything else is terminal.
"""

import logging
from enum import Enum
from typing import FrozenSet

from wsmux.domain.models.common import TRANSPORT_ERROR_STATUS

logger = logging.getLogger(__name__)

RECOVERABLE_SERVER_CODES: FrozenSet[int] = frozenset({500, 503, 504})
RECOVERABLE_CODES: FrozenSet[int] = RECOVERABLE_SERVER_CODES | {TRANSPORT_ERROR_STATUS}

DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_DELAY_SECONDS = 2.0


class FailureKind(str, Enum):
    """Classification of a finished operation."""
    SUCCESS = "success"
    TRANSPORT_ERROR = "transport_error"                    # status 0, recoverable
    RECOVERABLE_SERVER_ERROR = "recoverable_server_error"  # 500/503/504
    TERMINAL_ERROR = "terminal_error"                      # anything else non-2xx


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def classify(status_code: int) -> FailureKind:
    """Maps a status code to its failure kind, ignoring the retry budget."""
    if is_success(status_code):
        return FailureKind.SUCCESS
    if status_code == TRANSPORT_ERROR_STATUS:
        return FailureKind.TRANSPORT_ERROR
    if status_code in RECOVERABLE_SERVER_CODES:
        return FailureKind.RECOVERABLE_SERVER_ERROR
    return FailureKind.TERMINAL_ERROR


class RetryPolicy:
    """Fixed-delay retry policy with a per-request retry budget."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    ):
        """Initializes the RetryPolicy.

        Args:
            max_retries: How many recoverable failures a request may absorb.
            retry_delay: Seconds to wait before a failed request re-enters the queue.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {retry_delay}")
        self.max_retries = max_retries
        self.retry_delay = float(retry_delay)
        logger.debug(f"RetryPolicy initialized: max_retries={max_retries}, retry_delay={retry_delay}s")

    def should_retry(self, status_code: int, retry_count: int) -> bool:
        """True when the failure is recoverable and the budget is not spent.

        Args:
            status_code: Status of the finished attempt (0 for transport errors).
            retry_count: Recoverable failures already absorbed by this request.
        """
        return status_code in RECOVERABLE_CODES and retry_count < self.max_retries
