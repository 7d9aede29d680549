"""Tests for HTTP client resilience."""
from unittest.mock import Mock, patch

import pytest
import requests

from consultation_booking.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from consultation_booking.http_client import create_http_session, post_json_with_protection


def test_post_applies_default_timeout():
    with patch("requests.Session.request") as mock_request:
        mock_request.return_value = Mock(status_code=200)

        session = create_http_session(timeout=7)
        session.post("https://api.example.com/send", json={})

        assert mock_request.call_args.kwargs["timeout"] == 7


def test_post_retries_connection_errors():
    with patch("requests.Session.request") as mock_request:
        mock_request.side_effect = [
            requests.exceptions.ConnectionError("reset"),
            Mock(status_code=200),
        ]

        session = create_http_session(max_retries=1)
        response = session.post("https://api.example.com/send", json={})

        assert response.status_code == 200
        assert mock_request.call_count == 2


def test_post_raises_for_error_status():
    with patch("requests.Session.request") as mock_request:
        response = Mock(status_code=400)
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("400 Bad Request")
        mock_request.return_value = response

        session = create_http_session()

        with pytest.raises(requests.exceptions.HTTPError):
            session.post("https://api.example.com/send", json={})

        # Client errors are not retried at this level
        assert mock_request.call_count == 1


def test_post_json_with_protection_goes_through_breaker():
    session = Mock()
    session.post.side_effect = requests.exceptions.ConnectionError("down")
    breaker = CircuitBreaker("provider", failure_threshold=2, timeout=60)

    for _ in range(2):
        with pytest.raises(requests.exceptions.ConnectionError):
            post_json_with_protection(session, breaker, "https://x", {"a": 1})

    with pytest.raises(CircuitBreakerOpen):
        post_json_with_protection(session, breaker, "https://x", {"a": 1})

    assert session.post.call_count == 2
    assert session.post.call_args.kwargs["json"] == {"a": 1}
