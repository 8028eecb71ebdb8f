# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Classification of provider and transport failures.

Maps raw httpx failures and non-2xx responses onto the ProviderError
taxonomy. The retry executor only ever sees classified errors, so the
retry decision is made on ``ErrorCategory`` rather than on message text.
"""

import logging
import math
import time
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from .exceptions import (
    ERROR_CLASSES,
    ErrorCategory,
    ProviderError,
    UnknownProviderError,
)

logger = logging.getLogger(__name__)

INSUFFICIENT_QUOTA_CODE = "insufficient_quota"


def parse_retry_after(value: str | None) -> float | None:
    """
    Parse a Retry-After header value into seconds.

    Accepts both delta-seconds ("10", "1.5") and HTTP-date forms. Returns
    None for missing, unparseable or non-finite values, and never a
    negative wait.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            logger.warning(f"Invalid Retry-After header: {value}")
            return None
        return max(0.0, seconds)

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid Retry-After header: {value}")
        return None
    return max(0.0, retry_at.timestamp() - time.time())


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    """Extract the ``error`` object from a provider error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return {}
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error: dict[str, Any] = body["error"]
        return error
    return {}


def category_for_status(status_code: int, error_code: str | None = None) -> ErrorCategory:
    """Map an HTTP status (and provider error code) to an ErrorCategory."""
    if status_code == 429:
        if error_code == INSUFFICIENT_QUOTA_CODE:
            return ErrorCategory.QUOTA_EXCEEDED
        return ErrorCategory.RATE_LIMIT
    if status_code == 401:
        return ErrorCategory.INVALID_CREDENTIALS
    if status_code == 400:
        return ErrorCategory.BAD_REQUEST
    if status_code >= 500:
        return ErrorCategory.SERVER_ERROR
    return ErrorCategory.UNKNOWN


def classify_response(response: httpx.Response) -> ProviderError:
    """Build the classified error for a non-2xx provider response."""
    payload = _error_payload(response)
    error_code = payload.get("code") or payload.get("type")
    detail = payload.get("message") or response.reason_phrase or None
    category = category_for_status(response.status_code, error_code)

    retry_after = None
    if response.status_code == 429:
        retry_after = parse_retry_after(response.headers.get("retry-after"))

    error_cls = ERROR_CLASSES[category]
    return error_cls(
        f"Provider returned HTTP {response.status_code}"
        + (f": {detail}" if detail else ""),
        status_code=response.status_code,
        retry_after=retry_after,
        detail=detail,
    )


def classify_error(error: BaseException) -> ProviderError:
    """
    Classify any exception raised by one transport attempt.

    Already-classified errors pass through unchanged.
    """
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        return classify_response(error.response)

    if isinstance(error, httpx.TimeoutException):
        return ERROR_CLASSES[ErrorCategory.TIMEOUT](
            "Request timeout", detail=str(error) or type(error).__name__
        )

    if isinstance(error, (httpx.NetworkError, httpx.ProxyError, httpx.UnsupportedProtocol)):
        return ERROR_CLASSES[ErrorCategory.NETWORK](
            "Network error: unable to reach provider",
            detail=str(error) or type(error).__name__,
        )

    if isinstance(error, httpx.TransportError):
        return ERROR_CLASSES[ErrorCategory.NETWORK](
            f"Network error: {error}", detail=str(error)
        )

    return UnknownProviderError(
        f"Unexpected error: {type(error).__name__}: {error}", detail=str(error)
    )


__all__ = [
    "INSUFFICIENT_QUOTA_CODE",
    "category_for_status",
    "classify_error",
    "classify_response",
    "parse_retry_after",
]
