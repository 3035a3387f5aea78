"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session and applying retry policies to network calls.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

import requests
import urllib3
from requests import Response
from tenacity import (RetryCallState, after_log, retry,
                      retry_if_exception_type, stop_after_attempt,
                      wait_exponential)

from .config import ACCEPT, USER_AGENT


logger = logging.getLogger(__name__)


def get_http_session() -> requests.Session:
    """Return a new HTTP session with browser-like defaults.

    One session is shared by every source and every tick.  Storefront
    pages are fetched with ``verify=False`` per request, so the matching
    urllib3 warning is silenced here once.
    """
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": USER_AGENT,
            "Accept": ACCEPT,
        }
    )
    return session


class HTTPError(Exception):
    """Raised when an HTTP request fails after retries."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class _ServerError(HTTPError):
    """5xx response; retried by `retryable_request`."""


class _RateLimited(HTTPError):
    """429 response; retried after the server-supplied delay."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


def _parse_retry_after(resp: Response) -> float | None:
    value = (getattr(resp, "headers", None) or {}).get("Retry-After")
    try:
        return max(0.0, float(value)) if value is not None else None
    except (TypeError, ValueError):
        return None


_backoff = wait_exponential(multiplier=1, min=1, max=10)


def _wait_retry_after(retry_state: RetryCallState) -> float:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, _RateLimited) and exc.retry_after is not None:
        return exc.retry_after
    return _backoff(retry_state)


def _raise_for_status(resp: Response) -> None:
    try:
        resp.raise_for_status()
    except requests.RequestException as e:
        raise HTTPError(str(e), status_code=resp.status_code) from e


def retryable_request(method: Callable[[requests.Session, str, Dict[str, Any]], Response]) -> Callable[..., Response]:
    """Decorator factory to apply retry logic to HTTP calls.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Retries are attempted for network errors or
    HTTP errors (status >= 500).  A maximum of 5 attempts are made with
    exponential back-off between 1 and 10 seconds.  A 429 is retried too,
    waiting for its ``Retry-After`` header when present.  Other 4xx
    responses are raised as `HTTPError` without retrying.
    """

    @retry(
        reraise=True,
        stop=stop_after_attempt(5),
        wait=_wait_retry_after,
        retry=(
            retry_if_exception_type(requests.RequestException)
            | retry_if_exception_type((_ServerError, _RateLimited))
        ),
        after=after_log(logger, logging.WARNING),
    )
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        response = method(session, url, **kwargs)
        # If server returned >= 500, raise to trigger retry
        if response.status_code >= 500:
            raise _ServerError(
                f"Server returned status {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code == 429:
            raise _RateLimited(
                "Rate limited (status 429)",
                retry_after=_parse_retry_after(response),
            )
        _raise_for_status(response)
        return response

    return wrapper


__all__ = ["get_http_session", "retryable_request", "HTTPError"]
