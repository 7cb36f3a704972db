"""Human-readable messages for HTTP status codes.

Used to synthesize a response body when a request finishes without a
successful status, so every result carries a descriptive message.
"""

from typing import Dict, Optional

from wsmux.domain.models.common import TRANSPORT_ERROR_STATUS

UNKNOWN_STATUS_TEXT = "Unknown status"
CONNECTION_ERROR_TEXT = "Connection Error"

HTTP_STATUS_TEXT: Dict[int, str] = {
    100: "Continue",
    101: "Switching Protocols",
    200: "OK",
    201: "Created",
    202: "Accepted",
    203: "Non-Authoritative Information",
    204: "No Content",
    205: "Reset Content",
    206: "Partial Content",
    300: "Multiple Choices",
    301: "Moved Permanently",
    302: "Moved Temporarily",
    303: "See Other",
    304: "Not Modified",
    305: "Use Proxy",
    400: "Bad Request",
    401: "Unauthorized",
    402: "Payment Required",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    406: "Not Acceptable",
    407: "Proxy Authentication Required",
    408: "Request Time-out",
    409: "Conflict",
    410: "Gone",
    411: "Length Required",
    412: "Precondition Failed",
    413: "Request Entity Too Large",
    414: "Request-URI Too Large",
    415: "Unsupported Media Type",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Time-out",
    505: "HTTP Version not supported",
}


def http_response_message(status_code: Optional[int], error_detail: str = "") -> str:
    """Gets the message for a status code.

    Args:
        status_code: The HTTP status code, 0 for a transport failure.
        error_detail: Transport error text, appended for status 0.

    Returns:
        The status text, ``"Connection Error: <detail>"`` for transport
        failures, or ``"Unknown status"`` for codes not in the table.
    """
    if status_code is None:
        return UNKNOWN_STATUS_TEXT
    if status_code == TRANSPORT_ERROR_STATUS:
        return f"{CONNECTION_ERROR_TEXT}: {error_detail}" if error_detail else CONNECTION_ERROR_TEXT
    return HTTP_STATUS_TEXT.get(status_code, UNKNOWN_STATUS_TEXT)
