"""Interface for multi-request HTTP transports.

Defines the contract the multiplexer is written against: operations are
registered, progress is driven and waited on, and finished operations are
drained one at a time in the order the transport reports them.
"""

import abc
from typing import Optional

from wsmux.domain.models.common import RequestId, TransportHealth
from wsmux.domain.models.request import TransportCompletion, TransportOperation


class Transport(abc.ABC):
    """Abstract Base Class for an event-driven, multiplexing HTTP transport."""

    @abc.abstractmethod
    def register(self, operation: TransportOperation) -> None:
        """Starts an operation. Must not block on network I/O.

        Args:
            operation: The request attempt to start.
        """
        pass

    @abc.abstractmethod
    def deregister(self, operation_id: RequestId) -> None:
        """Releases whatever the transport holds for a finished operation.

        Args:
            operation_id: Identifier of a previously registered operation.
        """
        pass

    @abc.abstractmethod
    def drive_progress(self) -> TransportHealth:
        """Performs any immediately available work.

        Returns:
            CALL_AGAIN while more immediate work remains, OK when idle,
            FATAL if the transport can no longer make progress.
        """
        pass

    @abc.abstractmethod
    def wait(self, timeout: float) -> bool:
        """Blocks until an operation finishes or the timeout elapses.

        Args:
            timeout: Maximum seconds to block.

        Returns:
            True if a completion is ready to be drained.
        """
        pass

    @abc.abstractmethod
    def next_completed(self) -> Optional[TransportCompletion]:
        """Pops the next finished operation, or None when none remain."""
        pass

    @abc.abstractmethod
    def close(self) -> None:
        """Releases the multiplexing resource. The transport may reopen lazily."""
        pass

    @property
    def fatal_reason(self) -> Optional[str]:
        """Description of the fatal failure, if any."""
        return None
