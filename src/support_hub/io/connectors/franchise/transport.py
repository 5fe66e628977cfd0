"""
HTTP Transport layer for the merchant platform connector.
Handles session configuration, login and API token caching.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from support_hub.config.settings import get_settings

from .models import (
    FranchiseAuthenticationError,
    FranchiseClientError,
    FranchiseConfigurationError,
    FranchiseNotFoundError,
)
from .utils import sanitize_error_message, sanitize_url_for_logging

logger = logging.getLogger(__name__)


def _parse_expiry(value: Any) -> float:
    """Parse the ``expires_at`` field of a login response into a POSIX timestamp."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"missing token expiry: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    expires_at = datetime.fromisoformat(text)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at.timestamp()


class FranchiseTransport:
    """
    Base HTTP transport for the merchant platform API.

    Logs in with email/password, caches the API token until shortly before it
    expires, and retries a request once with a fresh token when the platform
    answers 401. There is no other retry: callers decide what a failed call
    means.
    """

    def __init__(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        refresh_buffer_seconds: Optional[int] = None,
    ):
        """
        Initialize transport with configuration.

        Args:
            email: Login email. If None, uses settings (SUPPORT_HUB_FRANCHISE_API_EMAIL)
            password: Login password. If None, uses settings
            base_url: API base URL. If None, uses settings default
            timeout: Request timeout in seconds. If None, uses settings default
            refresh_buffer_seconds: Refresh the token this long before expiry.
                If None, uses settings default
        """
        self.settings = get_settings()

        self.email = email or self.settings.franchise_api_email
        self.password = password or self.settings.franchise_api_password
        self.base_url = (base_url or self.settings.franchise_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else self.settings.franchise_api_timeout
        self.refresh_buffer_seconds = (
            refresh_buffer_seconds
            if refresh_buffer_seconds is not None
            else self.settings.franchise_token_refresh_buffer_seconds
        )

        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": "SupportHub Franchise Client",
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

        self._token: Optional[str] = None
        self._token_expires_at: Optional[float] = None
        # Lookups run concurrently in worker threads; only one may log in
        self._token_lock = threading.Lock()

        logger.info(
            "Franchise transport initialized",
            extra={
                "base_url": self.base_url,
                "timeout": self.timeout,
                "has_credentials": bool(self.email and self.password),
            },
        )

    def has_valid_token(self) -> bool:
        if not self._token or self._token_expires_at is None:
            return False
        return self._token_expires_at - self.refresh_buffer_seconds > time.time()

    def invalidate_token(self, rejected: Optional[str] = None) -> None:
        """
        Drop the cached token.

        Args:
            rejected: The token the platform refused. When given, the cache is
                only cleared if it still holds that token, so a token another
                thread just fetched survives a stale 401.
        """
        with self._token_lock:
            if rejected is not None and self._token != rejected:
                return
            self._token = None
            self._token_expires_at = None

    def get_token(self) -> str:
        """
        Return a valid API token, logging in when none is cached.

        Raises:
            FranchiseConfigurationError: If credentials are not configured
            FranchiseAuthenticationError: If login is rejected or malformed
            FranchiseClientError: If the login request fails
        """
        with self._token_lock:
            if self.has_valid_token():
                return self._token  # type: ignore[return-value]
            self._login()
            return self._token  # type: ignore[return-value]

    def _login(self) -> None:
        if not self.email or not self.password:
            raise FranchiseConfigurationError(
                "Merchant platform credentials missing: set "
                "SUPPORT_HUB_FRANCHISE_API_EMAIL and SUPPORT_HUB_FRANCHISE_API_PASSWORD"
            )

        url = f"{self.base_url}/api/login"
        try:
            response = self.session.post(
                url,
                json={"email": self.email, "password": self.password},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise FranchiseClientError(f"Login request failed: {e}") from e

        if not response.ok:
            logger.error(
                "Franchise API login failed",
                extra={"status_code": response.status_code},
            )
            raise FranchiseAuthenticationError(
                f"Login failed with status {response.status_code}"
            )

        try:
            payload: Dict[str, Any] = response.json()
            token = payload.get("api_token")
            expires_at = _parse_expiry(payload.get("expires_at"))
        except (ValueError, AttributeError) as e:
            raise FranchiseAuthenticationError(
                f"Login response could not be parsed: {e}"
            ) from e

        if not token:
            raise FranchiseAuthenticationError("Login response missing api_token")

        self._token = token
        self._token_expires_at = expires_at
        logger.debug("Franchise API token refreshed")

    def _authorized_get(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        """
        GET an API path with the cached token.

        The token is sent both as a bearer header and as the ``api_token``
        query parameter; some platform endpoints only read the latter.

        Raises:
            FranchiseAuthenticationError: If a freshly issued token is rejected
            FranchiseNotFoundError: For 404 responses
            FranchiseClientError: For other HTTP errors or request failures
        """
        url = f"{self.base_url}{path}"

        for attempt in range(2):
            token = self.get_token()
            query = dict(params or {})
            query["api_token"] = token
            try:
                response = self.session.get(
                    url,
                    params=query,
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                # The exception text carries the full URL, token included
                error = sanitize_error_message(str(e), token)
                logger.warning(
                    "Franchise API request failed",
                    extra={"url": sanitize_url_for_logging(url), "error": error},
                )
                raise FranchiseClientError(
                    f"Request failed ({type(e).__name__}): {error}"
                ) from None

            if response.status_code == 401:
                self.invalidate_token(token)
                if attempt == 0:
                    logger.info(
                        "Franchise API token rejected; logging in again",
                        extra={"url": sanitize_url_for_logging(url)},
                    )
                    continue
                raise FranchiseAuthenticationError("Fresh API token rejected (401)")

            if response.status_code == 404:
                raise FranchiseNotFoundError("Resource not found")

            if not response.ok:
                logger.warning(
                    "Franchise API error response",
                    extra={
                        "url": sanitize_url_for_logging(url),
                        "status_code": response.status_code,
                    },
                )
                raise FranchiseClientError(
                    f"Unexpected status code: {response.status_code}"
                )

            return response

        # Should not reach here, but for completeness
        raise FranchiseClientError("Request failed for unknown reason")
