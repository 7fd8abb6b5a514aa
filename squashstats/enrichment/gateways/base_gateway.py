"""
Base HTTP gateway.

Shared session handling, timeouts and retry logic for the thin clients
that talk to third-party APIs. Concrete gateways turn transport errors
into typed failure results at their own boundary.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Raised for gateway misconfiguration (e.g. missing credentials)."""


@dataclass
class GatewayConfig:
    """
    Connection settings for one external service.
    """
    name: str
    api_key: Optional[str] = None
    request_timeout: int = 30
    max_retries: int = 1
    backoff_base: float = 1.0
    headers: Dict[str, str] = field(default_factory=dict)


class BaseGateway:
    """
    Base class for HTTP gateways.

    Connection errors, timeouts and 5xx responses are retried with
    exponential backoff. 4xx responses are returned to the caller as-is.
    """

    requires_api_key = True

    def __init__(self, config: GatewayConfig):
        self.config = config
        self._session: Optional[requests.Session] = None
        self.logger = logging.getLogger(f"{__name__}.{config.name}")
        self._validate_config()

    def _validate_config(self) -> None:
        if self.requires_api_key and not self.config.api_key:
            raise GatewayError(f"{self.config.name}: API key is not configured")

    @property
    def api_key(self) -> Optional[str]:
        return self.config.api_key

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "Accept": "application/json",
                **self.config.headers,
            })
        return self._session

    def _send(
        self,
        method: str,
        url: str,
        retry_count: int = 0,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP verb
            url: Absolute URL
            retry_count: Current retry attempt
            **kwargs: Passed through to ``requests.Session.request``

        Returns:
            The response (2xx or 4xx)

        Raises:
            requests.RequestException: when retries are exhausted
        """
        session = self._get_session()
        kwargs.setdefault("timeout", self.config.request_timeout)

        try:
            response = session.request(method, url, **kwargs)
            if response.status_code >= 500:
                response.raise_for_status()
            return response

        except requests.RequestException as e:
            if retry_count < self.config.max_retries:
                wait_time = self.config.backoff_base * (2 ** retry_count)
                self.logger.warning(f"Request failed, retrying in {wait_time}s: {e}")
                time.sleep(wait_time)
                return self._send(method, url, retry_count + 1, **kwargs)

            self.logger.error(f"Request failed after {retry_count} retries: {e}")
            raise

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Best-effort extraction of an API error message."""
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason or "Unknown error"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("message") or "Unknown error"
        if isinstance(error, str):
            return error
        return "Unknown error"

    def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
