"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session and applying retry policies to network calls.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import requests
from requests import Response
from tenacity import (after_log, retry, retry_if_exception,
                      stop_after_attempt, wait_exponential)

from .config import HTTP_MAX_ATTEMPTS


logger = logging.getLogger(__name__)


def get_http_session() -> requests.Session:
    """Return a new HTTP session with sensible defaults.

    Caller is responsible for closing the session or letting it be
    garbage collected.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": "Mozilla/5.0 (compatible; BonusWatch/1.0)",
            "Accept": "application/json, text/javascript, */*; q=0.01",
        }
    )
    return session


class HTTPError(Exception):
    """Raised when an HTTP request fails after retries."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, requests.RequestException):
        return True
    # 4xx will not get better by asking again
    return isinstance(exc, HTTPError) and (exc.status_code is None or exc.status_code >= 500)


def _raise_for_status(resp: Response) -> None:
    try:
        resp.raise_for_status()
    except requests.RequestException as e:
        raise HTTPError(str(e), status_code=resp.status_code) from e


def retryable_request(method: Callable[..., Response]) -> Callable[..., Response]:
    """Decorator factory to apply retry logic to HTTP calls.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Network errors and HTTP 5xx are retried up to
    HTTP_MAX_ATTEMPTS times with exponential back-off between 1 and 10
    seconds; any other non-2xx status raises `HTTPError` immediately.
    """

    @retry(
        reraise=True,
        stop=stop_after_attempt(HTTP_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable),
        after=after_log(logger, logging.WARNING),
    )
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        response = method(session, url, **kwargs)
        # If server returned >= 500, raise to trigger retry
        if response.status_code >= 500:
            raise HTTPError(f"Server returned status {response.status_code}", status_code=response.status_code)
        _raise_for_status(response)
        return response

    return wrapper


__all__ = ["get_http_session", "retryable_request", "HTTPError"]
