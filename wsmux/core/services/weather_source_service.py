"""Weather Source API requests on top of the request multiplexer.

Builds resource URLs and form parameters, decodes JSON responses, backfills
error details for failed requests, writes error log entries, converts units
and finally hands each decoded response to the caller's own handler.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import urlencode

from wsmux.core.multiplexer import RequestMultiplexer
from wsmux.domain.models.common import HttpCode, RequestId, RequestOptions, RequestState, Url
from wsmux.domain.models.request import ResponseHandle
from wsmux.infrastructure.config.settings import ApiSettings
from wsmux.infrastructure.conversion.units import scale_response
from wsmux.infrastructure.monitoring.error_log import ErrorLogWriter
from wsmux.infrastructure.resilience.retry_policy import is_success
from wsmux.infrastructure.resilience.status_text import http_response_message

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE")
REQUEST_TIMEOUT_SECONDS = 60.0
CONNECT_TIMEOUT_SECONDS = 5.0
USER_CALLBACK_KEY = "callback"


class ApiResultHandler(Protocol):
    """Caller-side handler for a decoded API response."""

    def __call__(
        self,
        response: ResponseHandle,
        http_code: HttpCode,
        latency: float,
        url: Url,
        options: RequestOptions,
    ) -> Any:
        ...


class WeatherSourceRequests:
    """Issues Weather Source API requests through a shared multiplexer."""

    def __init__(
        self,
        engine: RequestMultiplexer,
        settings: ApiSettings,
        error_log: Optional[ErrorLogWriter] = None,
    ):
        """Initializes the request builder and applies SDK settings to the engine.

        Args:
            engine: The multiplexer requests are submitted to.
            settings: API endpoint, credentials and SDK tuning.
            error_log: Where failed requests are recorded when error logging
                is enabled. Built from settings when omitted.
        """
        self.engine = engine
        self.settings = settings
        if error_log is None and settings.log_errors:
            error_log = ErrorLogWriter(settings.error_log_directory)
        self.error_log = error_log

        engine.set_launch_pacing_interval(settings.thread_launch_interval_delay)
        engine.set_max_concurrency(settings.max_threads)
        engine.set_max_retries(settings.request_retry_count)
        engine.set_retry_delay(settings.request_retry_delay)
        logger.info(
            f"WeatherSourceRequests initialized: base_uri={settings.base_uri}, version={settings.version}, "
            f"units={settings.distance_unit}/{settings.temperature_unit}, log_errors={settings.log_errors}"
        )

    def build_url(self, resource_path: str) -> str:
        """``{base_uri}/{version}/{key}/{resource_path}.json``"""
        base = self.settings.base_uri.rstrip("/")
        return f"{base}/{self.settings.version}/{self.settings.key}/{resource_path.strip('/')}.json"

    def build_parameters(self, method: str, parameters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Adds the meta parameters the API understands to the caller's parameters."""
        params = dict(parameters or {})
        params["_method"] = method.lower()
        if self.settings.return_diagnostics:
            params["_diagnostics"] = "1"
        if self.settings.suppress_response_codes:
            params["_suppress_response_codes"] = "1"
        return params

    def request(
        self,
        method: str,
        resource_path: str,
        parameters: Optional[Dict[str, Any]] = None,
        callback: Optional[ApiResultHandler] = None,
    ) -> RequestId:
        """Submits one API request.

        The method is tunnelled through the ``_method`` parameter; the request
        itself is always a form-encoded POST.

        Args:
            method: One of GET, POST, PUT, DELETE.
            resource_path: Resource path, e.g. 'history_by_postal_code'.
            parameters: Resource parameters.
            callback: Optional handler called as soon as this request finishes.

        Returns:
            The request's identifier.

        Raises:
            ValueError: If the method is not supported.
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method '{method}'. Allowed: {', '.join(ALLOWED_METHODS)}")

        url = self.build_url(resource_path)
        options = RequestOptions(
            method="POST",
            data=self.build_parameters(method, parameters),
            timeout=REQUEST_TIMEOUT_SECONDS,
            connect_timeout=CONNECT_TIMEOUT_SECONDS,
        )
        request_id = self.engine.submit(
            url, options, callback=self.process_result, metadata={USER_CALLBACK_KEY: callback}
        )
        logger.debug(f"Submitted {method} {resource_path} as request {request_id}")
        return request_id

    def process_result(
        self,
        response: ResponseHandle,
        metadata: Any,
        http_code: HttpCode,
        latency: float,
        url: Url,
        options: RequestOptions,
    ) -> None:
        """Completion handler registered with the engine for every API request."""
        raw = response.value
        decoded = self._decode(raw)

        if not (http_code.isdigit() and is_success(int(http_code))):
            message = self._backfill_error(decoded, http_code, raw)
            if self.error_log is not None:
                self.error_log.write(self._request_uri(url, options), http_code, message)

        scale_response(decoded, self.settings.distance_unit, self.settings.temperature_unit)
        response.value = decoded

        user_callback = metadata.get(USER_CALLBACK_KEY) if isinstance(metadata, dict) else None
        if user_callback is not None:
            user_callback(response, http_code, latency, url, options)

    @staticmethod
    def _decode(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        try:
            decoded = json.loads(raw) if isinstance(raw, (str, bytes)) and raw else None
        except ValueError:
            decoded = None
        return decoded if isinstance(decoded, dict) else {}

    def _backfill_error(self, decoded: Dict[str, Any], http_code: HttpCode, raw: Any) -> str:
        """Fills in a response code and message the API did not send.

        Returns:
            The error message now present in the response.
        """
        if isinstance(raw, str) and raw and not self._looks_like_json(raw):
            fallback_message = raw
        else:
            fallback_message = http_response_message(int(http_code) if http_code.isdigit() else None)

        if self.settings.return_diagnostics:
            decoded.setdefault("diagnostics", {})
            target = decoded.setdefault("response", {})
            if not isinstance(target, dict):
                target = decoded["response"] = {}
        else:
            target = decoded
        target.setdefault("response_code", http_code)
        target.setdefault("message", fallback_message)
        return str(target["message"])

    @staticmethod
    def _looks_like_json(raw: str) -> bool:
        return raw.lstrip()[:1] in ("{", "[")

    @staticmethod
    def _request_uri(url: str, options: RequestOptions) -> str:
        data = options.get("data")
        if isinstance(data, dict) and data:
            return f"{url}?{urlencode(data)}"
        return url

    # --- Accessors ---

    def finish(self) -> bool:
        """Waits for every outstanding request to complete."""
        return self.engine.finish()

    def status(self, request_id: RequestId) -> RequestState:
        return self.engine.status(request_id)

    def result(self, request_id: RequestId) -> Optional[Any]:
        """The decoded response, or None if the request has not completed."""
        record = self.engine.result(request_id)
        return record.response if record is not None else None

    def results(self) -> List[Any]:
        """Decoded responses of all completed requests, in completion order."""
        return [record.response for record in self.engine.all_results()]

    def error_log_directory(self) -> Optional[str]:
        return str(self.error_log.directory) if self.error_log is not None else None
