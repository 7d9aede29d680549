"""Outbound HTTP for notification providers.

Pattern: requests.Session with connection pooling, urllib3 retries for
HTTP-level failures and tenacity for connection-level ones. Each provider
call goes through its own circuit breaker.
"""
import logging

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.util.retry import Retry

from consultation_booking import config
from consultation_booking.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


def create_http_session(
    max_retries: int = 2,
    backoff_factor: float = 0.5,
    timeout: float = config.HTTP_TIMEOUT_SECONDS,
) -> requests.Session:
    """
    Create HTTP session with retry and connection pooling.

    Args:
        max_retries: Retry attempts after the first call
        backoff_factor: urllib3 backoff multiplier
        timeout: Default per-request timeout in seconds

    Returns:
        Session whose ``post`` retries connection errors and raises on
        4xx/5xx responses
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["POST"],
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=4,
        pool_maxsize=4,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    original_post = session.post

    @retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def post_with_retry(*args, **kwargs):
        kwargs.setdefault("timeout", timeout)
        response = original_post(*args, **kwargs)
        response.raise_for_status()
        return response

    session.post = post_with_retry
    return session


def post_json_with_protection(
    session: requests.Session,
    breaker: CircuitBreaker,
    url: str,
    payload: dict,
    **kwargs,
) -> requests.Response:
    """
    POST a JSON body through a provider's circuit breaker.

    Raises:
        CircuitBreakerOpen: If the provider's circuit is open
        requests.exceptions.RequestException: If the request fails
    """
    return breaker.call(session.post, url, json=payload, **kwargs)
