"""Interface for presenting request progress and results to the user.

Allows different UI implementations (console, plain text, tests) behind a
single contract.
"""

import abc
from typing import Any, Sequence

from wsmux.domain.models.common import RequestId, RequestState
from wsmux.domain.models.request import ResultRecord


class UserInterface(abc.ABC):
    """Abstract Base Class for user-facing output."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_status(self, request_id: RequestId, state: RequestState) -> None:
        """Shows the lifecycle phase of one request."""
        pass

    @abc.abstractmethod
    def display_results(self, records: Sequence[ResultRecord], **kwargs: Any) -> None:
        """Shows finalized result records.

        Args:
            records: Records in completion order.
            **kwargs: Formatting options (e.g. ``title``).
        """
        pass

    @abc.abstractmethod
    def display_json(self, data: Any, **kwargs: Any) -> None:
        """Shows a decoded response or any JSON-serializable value."""
        pass
