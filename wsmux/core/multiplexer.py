"""Request Multiplexer: bounded-concurrency HTTP request engine.

Accepts any number of requests, keeps at most ``max_concurrency`` of them in
flight on a multiplexing transport, retries recoverable failures after a
fixed delay and hands each finalized result to the request's completion
handler, in completion order.

Typical use::

    engine = RequestMultiplexer(HttpxTransport(), max_concurrency=10)
    for url in urls:
        engine.submit(url, {"timeout": 60, "connect_timeout": 5}, callback=on_done)
    engine.finish()
    records = engine.all_results()

A single thread of control drives the engine. Public mutating operations
are serialized behind one re-entrant lock, so an instance shared between
threads stays consistent, but the blocking calls (pacing, backoff and the
transport wait) hold that lock while they block.
"""

import itertools
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from wsmux.domain.events.request_events import (
    DomainEvent, RequestAdmitted, RequestFinalized, RequestSubmitted,
    RetryScheduled, TransportFailed,
)
from wsmux.domain.interfaces.transport import Transport
from wsmux.domain.models.common import (
    EngineSettingsDict, HttpCode, RequestId, RequestOptions, RequestState,
    TransportHealth, Url,
)
from wsmux.domain.models.request import (
    CompletionHandler, RequestNode, ResponseHandle, ResultRecord,
    TransportCompletion, TransportOperation,
)
from wsmux.infrastructure.resilience.pacer import DEFAULT_LAUNCH_PACING_INTERVAL, LaunchPacer
from wsmux.infrastructure.resilience.retry_policy import (
    DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY_SECONDS, RetryPolicy, classify, is_success,
)
from wsmux.infrastructure.resilience.status_text import http_response_message

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 1
DEFAULT_POLL_TIMEOUT_SECONDS = 1.0


# --- Custom Exceptions ---
class MultiplexerError(Exception):
    """Base class for engine errors. Per-request failures are never raised."""


class InvalidSettingError(MultiplexerError, ValueError):
    """Raised when a tunable is given an out-of-range value."""


class UnknownOperationError(MultiplexerError):
    """Raised when the transport reports an operation the engine is not tracking."""
    def __init__(self, operation_id: RequestId):
        self.operation_id = operation_id
        super().__init__(f"Transport reported completion for untracked operation {operation_id}")


# --- Engine ---

class RequestMultiplexer:
    """Queues, admits, polls, retries and finalizes HTTP requests."""

    def __init__(
        self,
        transport: Transport,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        launch_pacing_interval: float = DEFAULT_LAUNCH_PACING_INTERVAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT_SECONDS,
        event_listener: Optional[Callable[[DomainEvent], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initializes the engine.

        Args:
            transport: The multiplexing transport requests are registered with.
            max_concurrency: Maximum requests in flight at once (0 holds everything queued).
            launch_pacing_interval: Seconds to wait after each admission.
            max_retries: Recoverable failures a request may absorb before it is finalized.
            retry_delay: Seconds to wait before a failed request re-enters the queue.
            poll_timeout: Upper bound on a single transport wait.
            event_listener: Optional receiver for lifecycle events.
            sleep: Blocking sleep used for pacing and backoff.
            clock: Monotonic clock used for latency measurement.
        """
        self._transport = transport
        self._event_listener = event_listener
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.RLock()

        self._max_concurrency = DEFAULT_MAX_CONCURRENCY
        self._poll_timeout = DEFAULT_POLL_TIMEOUT_SECONDS
        self._pacer = LaunchPacer(sleep=sleep)
        self._retry_policy = RetryPolicy()
        self.set_max_concurrency(max_concurrency)
        self.set_launch_pacing_interval(launch_pacing_interval)
        self.set_max_retries(max_retries)
        self.set_retry_delay(retry_delay)
        self.set_poll_timeout(poll_timeout)

        # Every node lives in exactly one of these three containers
        self._queue: "OrderedDict[RequestId, RequestNode]" = OrderedDict()
        self._active: Dict[RequestId, RequestNode] = {}
        self._results: Dict[RequestId, ResultRecord] = {}

        self._ids = itertools.count(1)
        self._submitted = 0
        self._health = TransportHealth.OK
        self._fatal_reason: Optional[str] = None
        # Completion handler exceptions held until the engine state is consistent
        self._callback_errors: List[Exception] = []

        logger.info(
            f"RequestMultiplexer initialized: transport={transport.__class__.__name__}, "
            f"max_concurrency={self._max_concurrency}, pacing={self.launch_pacing_interval}s, "
            f"max_retries={self.max_retries}, retry_delay={self.retry_delay}s"
        )

    # --- Configuration ---

    def set_max_concurrency(self, n: int) -> None:
        """Sets the in-flight bound. Applies to subsequent admissions."""
        if n < 0:
            raise InvalidSettingError(f"max_concurrency must be >= 0, got {n}")
        with self._lock:
            self._max_concurrency = int(n)

    def set_launch_pacing_interval(self, seconds: float) -> None:
        """Sets the delay after each admission. 0 disables pacing."""
        if seconds < 0:
            raise InvalidSettingError(f"launch_pacing_interval must be >= 0, got {seconds}")
        with self._lock:
            self._pacer.interval = seconds

    def set_max_retries(self, n: int) -> None:
        if n < 0:
            raise InvalidSettingError(f"max_retries must be >= 0, got {n}")
        with self._lock:
            self._retry_policy.max_retries = int(n)

    def set_retry_delay(self, seconds: float) -> None:
        if seconds < 0:
            raise InvalidSettingError(f"retry_delay must be >= 0, got {seconds}")
        with self._lock:
            self._retry_policy.retry_delay = float(seconds)

    def set_poll_timeout(self, seconds: float) -> None:
        if seconds <= 0:
            raise InvalidSettingError(f"poll_timeout must be > 0, got {seconds}")
        with self._lock:
            self._poll_timeout = float(seconds)

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def launch_pacing_interval(self) -> float:
        return self._pacer.interval

    @property
    def max_retries(self) -> int:
        return self._retry_policy.max_retries

    @property
    def retry_delay(self) -> float:
        return self._retry_policy.retry_delay

    def settings(self) -> EngineSettingsDict:
        """Snapshot of the current tunables."""
        return EngineSettingsDict(
            max_concurrency=self.max_concurrency,
            launch_pacing_interval=self.launch_pacing_interval,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )

    # --- Introspection ---

    @property
    def submitted_count(self) -> int:
        return self._submitted

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def is_fatal(self) -> bool:
        """True once the transport has reported a persistent failure."""
        return self._health is TransportHealth.FATAL

    @property
    def fatal_reason(self) -> Optional[str]:
        return self._fatal_reason

    # --- Submission & Admission ---

    def submit(
        self,
        url: str,
        options: Optional[RequestOptions] = None,
        callback: Optional[CompletionHandler] = None,
        metadata: Any = None,
    ) -> RequestId:
        """Queues a request and immediately tries to admit it.

        Never refuses work; the concurrency bound is enforced internally.
        Completions drained here run their handlers, but an exception from a
        handler is held and re-raised by the next evaluate() or finish().

        Args:
            url: Target URL.
            options: Transport options (method, headers, body, timeouts).
            callback: Handler invoked once when the request is finalized.
            metadata: Opaque payload handed to the callback untouched.

        Returns:
            The request's identifier.
        """
        with self._lock:
            node = RequestNode(
                id=RequestId(next(self._ids)),
                url=Url(url),
                options=RequestOptions(**(options or {})),
                submitted_at=self._clock(),
                callback=callback,
                metadata=metadata,
            )
            self._queue[node.id] = node
            self._submitted += 1
            self._dispatch(RequestSubmitted(request_id=node.id, url=node.url, queue_depth=len(self._queue)))

            self.admit()
            self._drain()
            return node.id

    def admit(self) -> int:
        """Moves queued requests into flight while capacity allows.

        Returns:
            Number of requests admitted.
        """
        admitted = 0
        with self._lock:
            while (
                len(self._active) < self._max_concurrency
                and self._queue
                and not self.is_fatal
            ):
                _, node = self._queue.popitem(last=False)
                node.state = RequestState.ACTIVE
                self._active[node.id] = node
                self._transport.register(TransportOperation(id=node.id, url=node.url, options=node.options))
                admitted += 1
                logger.debug(
                    f"Admitted request {node.id} (attempt {node.retry_count + 1}): "
                    f"{len(self._active)}/{self._max_concurrency} active, {len(self._queue)} queued"
                )
                self._dispatch(RequestAdmitted(
                    request_id=node.id,
                    attempt_number=node.retry_count + 1,
                    active_count=len(self._active),
                ))

                self._pacer.pace()
                self._drive_progress()
        return admitted

    # --- Polling ---

    def wait_for_progress(self) -> bool:
        """Blocks until the transport has news or its wait times out.

        Returns:
            True if the transport signalled a completion.
        """
        with self._lock:
            if self.is_fatal or not self._active:
                return False
            ready = self._transport.wait(self._poll_timeout)
            self._drive_progress()
            return ready

    def _drive_progress(self) -> None:
        health = self._transport.drive_progress()
        while health is TransportHealth.CALL_AGAIN:
            health = self._transport.drive_progress()
        if health is TransportHealth.FATAL:
            self._mark_fatal(self._transport.fatal_reason or "transport reported a fatal error")

    def _mark_fatal(self, reason: str) -> None:
        if self.is_fatal:
            return
        self._health = TransportHealth.FATAL
        self._fatal_reason = reason
        logger.error(
            f"Transport failed fatally: {reason}. "
            f"{len(self._queue)} queued and {len(self._active)} active requests will not complete."
        )
        self._dispatch(TransportFailed(reason=reason, queued=len(self._queue), active=len(self._active)))

    # --- Evaluation ---

    def evaluate(self) -> int:
        """Drains finished operations, retrying or finalizing each one.

        Completions are handled in the order the transport reports them.
        Capacity freed by drained operations is backfilled from the queue.

        Raises:
            The first exception raised by a completion handler, once every
            available completion has been drained.

        Returns:
            Number of completions drained.
        """
        with self._lock:
            drained = self._drain()
            self._raise_callback_error()
        return drained

    def _drain(self) -> int:
        drained = 0
        with self._lock:
            while True:
                completion = self._transport.next_completed()
                if completion is None:
                    break
                node = self._active.get(completion.operation_id)
                if node is None:
                    raise UnknownOperationError(completion.operation_id)
                drained += 1

                if self._retry_policy.should_retry(completion.status_code, node.retry_count):
                    self._schedule_retry(node, completion)
                else:
                    self._finalize(node, completion)

            if drained and self._queue and not self.is_fatal:
                self.admit()
        return drained

    def _schedule_retry(self, node: RequestNode, completion: TransportCompletion) -> None:
        delay = self._retry_policy.retry_delay
        kind = classify(completion.status_code)
        logger.warning(
            f"Recoverable {kind.value} (status {completion.status_code}) for request {node.id} "
            f"{node.url}: retry {node.retry_count + 1}/{self._retry_policy.max_retries} in {delay}s"
            + (f" [{completion.error_detail}]" if completion.error_detail else "")
        )
        self._transport.deregister(node.id)
        if delay > 0:
            self._sleep(delay)
        del self._active[node.id]
        node.retry_count += 1
        node.state = RequestState.QUEUED
        self._queue[node.id] = node
        self._dispatch(RetryScheduled(
            request_id=node.id,
            status_code=completion.status_code,
            attempt_number=node.retry_count,
            delay_seconds=delay,
            error_detail=completion.error_detail or None,
        ))

    def _finalize(self, node: RequestNode, completion: TransportCompletion) -> None:
        code = completion.status_code
        latency = self._clock() - node.submitted_at
        http_code = HttpCode(str(code))
        if is_success(code):
            response: Any = completion.body
        else:
            response = http_response_message(code, completion.error_detail)
            if node.retry_count:
                logger.warning(
                    f"Giving up on request {node.id} {node.url} after {node.retry_count} retries: "
                    f"status {code} ({classify(code).value})"
                )
        handle = ResponseHandle(response)

        callback = node.callback
        node.callback = None
        node.state = RequestState.COMPLETED
        try:
            if callback is not None:
                callback(handle, node.metadata, http_code, latency, node.url, node.options)
        except Exception as e:
            logger.error(f"Completion handler for request {node.id} raised: {e}", exc_info=True)
            self._callback_errors.append(e)
        finally:
            self._results[node.id] = ResultRecord(
                id=node.id,
                response=handle.value,
                http_code=http_code,
                latency=latency,
                url=node.url,
                options=node.options,
                metadata=node.metadata,
            )
            del self._active[node.id]
            self._transport.deregister(node.id)
            logger.debug(f"Finalized request {node.id} with status {http_code} in {latency:.6f}s after {node.retry_count} retries")
            self._dispatch(RequestFinalized(
                request_id=node.id, http_code=http_code, latency=latency, retries=node.retry_count,
            ))

    # --- Status & Results ---

    def status(self, request_id: RequestId) -> RequestState:
        """Derives a request's lifecycle phase from where it currently lives."""
        with self._lock:
            if request_id in self._results:
                return RequestState.COMPLETED
            if request_id in self._active:
                return RequestState.ACTIVE
            if request_id in self._queue:
                return RequestState.QUEUED
            return RequestState.UNKNOWN

    def result(self, request_id: RequestId) -> Optional[ResultRecord]:
        """The finalized record, or None if the request has not finished."""
        with self._lock:
            return self._results.get(request_id)

    def all_results(self) -> List[ResultRecord]:
        """All finalized records, in finalization order."""
        with self._lock:
            return list(self._results.values())

    # --- Drain ---

    def finish(self) -> bool:
        """Blocks until every queued and in-flight request is finalized.

        Returns early if the transport fails fatally; the remaining requests
        are then left unfinalized. The transport's multiplexing resource is
        released on exit. A completion handler that raises does not stop the
        drain; its exception is re-raised once every request is finalized.

        Raises:
            The first exception raised by a completion handler.

        Returns:
            True if everything drained. False if the transport failed, or if
            requests were left queued because max_concurrency is 0.
        """
        with self._lock:
            try:
                self.admit()
                self._drain()
                while not self.is_fatal and (self._active or self._queue):
                    if not self._active:
                        self.admit()
                        if not self._active:
                            logger.warning(
                                f"{len(self._queue)} requests remain queued with max_concurrency="
                                f"{self._max_concurrency}; nothing can be admitted."
                            )
                            break
                    self.wait_for_progress()
                    self._drain()
            finally:
                self._transport.close()

            if self.is_fatal:
                logger.error(
                    f"finish() ended early: {len(self._results)}/{self._submitted} requests finalized "
                    f"({self._fatal_reason})"
                )
                self._raise_callback_error()
                return False
            logger.info(f"finish() finalized {len(self._results)}/{self._submitted} requests")
            self._raise_callback_error()
            return not self._queue

    def _raise_callback_error(self) -> None:
        if not self._callback_errors:
            return
        error, *rest = self._callback_errors
        self._callback_errors.clear()
        if rest:
            logger.warning(f"{len(rest)} further completion handler errors were logged and dropped")
        raise error

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_listener is not None:
            self._event_listener(event)
