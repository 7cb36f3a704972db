"""Concrete implementation of the Transport interface using httpx.

Operations are staged on ``register`` and launched on a worker pool by
``drive_progress``; each worker performs one blocking ``httpx.Client``
request and pushes its completion onto a condition-guarded queue that
``wait`` and ``next_completed`` read from. The engine's thread therefore
never blocks on network I/O except inside ``wait``.
"""

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Deque, Dict, Optional

import httpx

from wsmux import __version__
from wsmux.domain.interfaces.transport import Transport
from wsmux.domain.models.common import RequestId, RequestOptions, TransportHealth, TRANSPORT_ERROR_STATUS
from wsmux.domain.models.request import TransportCompletion, TransportOperation

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 10
DEFAULT_USER_AGENT = f"wsmux/{__version__}"


def build_client(max_workers: int = DEFAULT_MAX_WORKERS) -> httpx.Client:
    """Creates the shared client used by all workers."""
    return httpx.Client(
        follow_redirects=True,
        headers={"User-Agent": DEFAULT_USER_AGENT},
        limits=httpx.Limits(max_connections=max_workers, max_keepalive_connections=max_workers),
    )


def _build_timeout(options: RequestOptions) -> Any:
    timeout = options.get("timeout")
    connect_timeout = options.get("connect_timeout")
    if timeout is None and connect_timeout is None:
        return httpx.USE_CLIENT_DEFAULT
    return httpx.Timeout(timeout, connect=connect_timeout)


class HttpxTransport(Transport):
    """Multiplexes httpx requests over a thread pool."""

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        client: Optional[httpx.Client] = None,
        client_factory: Optional[Callable[[], httpx.Client]] = None,
    ):
        """Initializes the transport.

        Args:
            max_workers: Worker threads (and pooled connections) available.
                Should be at least the engine's max_concurrency.
            client: A client to use instead of building one. The caller keeps
                ownership and must close it.
            client_factory: Builds a client when none is given; called again
                if the transport is reopened after ``close``.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self._client = client
        self._owns_client = client is None
        self._client_factory = client_factory or (lambda: build_client(max_workers))
        self._executor: Optional[ThreadPoolExecutor] = None

        self._staged: Deque[TransportOperation] = deque()
        self._running: Dict[RequestId, Future] = {}
        self._completed: Deque[TransportCompletion] = deque()
        self._cond = threading.Condition()
        self._fatal_reason: Optional[str] = None
        logger.info(f"HttpxTransport initialized: max_workers={max_workers}")

    @property
    def fatal_reason(self) -> Optional[str]:
        return self._fatal_reason

    def register(self, operation: TransportOperation) -> None:
        self._staged.append(operation)
        logger.debug(f"Staged operation {operation.id}: {operation.options.get('method', 'GET')} {operation.url}")

    def deregister(self, operation_id: RequestId) -> None:
        future = self._running.pop(operation_id, None)
        if future is not None and not future.done():
            future.cancel()

    def drive_progress(self) -> TransportHealth:
        """Launches one staged operation per call."""
        if self._fatal_reason is not None:
            return TransportHealth.FATAL
        if not self._staged:
            return TransportHealth.OK

        operation = self._staged.popleft()
        try:
            future = self._ensure_executor().submit(self._perform, operation)
        except RuntimeError as e:
            # Executor refused work (interpreter shutdown or broken pool)
            self._fail(f"Could not launch operation {operation.id}: {e}")
            return TransportHealth.FATAL
        self._running[operation.id] = future
        return TransportHealth.CALL_AGAIN if self._staged else TransportHealth.OK

    def wait(self, timeout: float) -> bool:
        with self._cond:
            return self._cond.wait_for(
                lambda: bool(self._completed) or self._fatal_reason is not None,
                timeout=timeout,
            ) and bool(self._completed)

    def next_completed(self) -> Optional[TransportCompletion]:
        with self._cond:
            if not self._completed:
                return None
            return self._completed.popleft()

    def close(self) -> None:
        """Shuts the worker pool down and closes an owned client.

        Both are rebuilt on the next launch.
        """
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
        self._staged.clear()
        self._running.clear()
        with self._cond:
            self._completed.clear()
        logger.debug("HttpxTransport closed.")

    # --- Internals ---

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._client is None:
            self._client = self._client_factory()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="wsmux")
        return self._executor

    def _perform(self, operation: TransportOperation) -> None:
        options = operation.options
        data = options.get("data")
        content = options.get("content")
        if isinstance(data, str):
            content, data = data, None

        try:
            response = self._client.request(  # type: ignore[union-attr]
                options.get("method", "GET").upper(),
                operation.url,
                headers=options.get("headers"),
                params=options.get("params"),
                data=data,
                json=options.get("json"),
                content=content,
                timeout=_build_timeout(options),
            )
            completion = TransportCompletion(
                operation_id=operation.id,
                status_code=response.status_code,
                body=response.text,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            detail = str(e) or type(e).__name__
            logger.debug(f"Operation {operation.id} transport error: {type(e).__name__}: {detail}")
            completion = TransportCompletion(
                operation_id=operation.id,
                status_code=TRANSPORT_ERROR_STATUS,
                error_detail=detail,
            )
        except Exception as e:
            logger.error(f"Unexpected error performing operation {operation.id}: {e}", exc_info=True)
            self._fail(f"{type(e).__name__}: {e}")
            return

        with self._cond:
            self._completed.append(completion)
            self._cond.notify_all()

    def _fail(self, reason: str) -> None:
        with self._cond:
            if self._fatal_reason is None:
                self._fatal_reason = reason
            self._cond.notify_all()
