# services/shiprocket/client.py

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    RateLimitError,
    ShiprocketError,
    TransientNetworkError,
    ValidationError,
)

DEFAULT_API_URL = "https://apiv2.shiprocket.in/v1/external"

# Tokens are issued for 10 days; refresh one day early.
TOKEN_LIFETIME = timedelta(days=9)


class AuthToken:
    def __init__(self, value: str, expires_at: datetime):
        self.value = value
        self.expires_at = expires_at

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class ShiprocketClient:
    """
    Authenticated HTTP client for the Shiprocket external API.

    Keeps one bearer token in memory, refreshes it when it expires or when
    the API answers 401, and retries transient failures with exponential
    backoff. A failed login disables the client for the rest of its life.
    """

    def __init__(
        self,
        email: Optional[str],
        password: Optional[str],
        api_url: str = DEFAULT_API_URL,
        *,
        timeout: float = 10.0,
        enabled: bool = True,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.email = email
        self.password = password
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep or asyncio.sleep

        self._token: Optional[AuthToken] = None
        self._token_lock = asyncio.Lock()

        self.enabled = enabled and self._validate_configuration()
        if self.enabled:
            logging.info("Shiprocket client initialized.")
        else:
            logging.warning("Shiprocket credentials not configured or integration switched off. Shipping integration disabled.")

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ShiprocketClient":
        return cls(
            settings.SHIPROCKET_EMAIL,
            settings.SHIPROCKET_PASSWORD,
            settings.SHIPROCKET_API_URL,
            timeout=settings.SHIPROCKET_TIMEOUT_SECONDS,
            enabled=settings.SHIPROCKET_ENABLED,
            **kwargs,
        )

    def _validate_configuration(self) -> bool:
        return bool(self.email and self.password)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # --- Token management ---

    async def authenticate(self) -> Optional[str]:
        """Log in and cache a fresh token. Returns None (and disables the client) on failure."""
        if not self.enabled:
            logging.warning("Shiprocket authentication skipped - service disabled.")
            return None

        logging.info("Authenticating with Shiprocket API...")
        token = None
        try:
            response = await self._client.post(
                f"{self.api_url}/auth/login",
                json={"email": self.email, "password": self.password},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
            token = data.get("token") if isinstance(data, dict) else None
            if not token:
                logging.error("Shiprocket authentication failed: no token in response.")
        except httpx.HTTPStatusError as e:
            # The login response never echoes the password back, the body is safe to log.
            logging.error(f"Shiprocket authentication failed: HTTP {e.response.status_code} - {e.response.text}")
        except (httpx.HTTPError, ValueError) as e:
            logging.error(f"Shiprocket authentication error: {type(e).__name__}: {e}")

        if not token:
            self._token = None
            self.enabled = False
            logging.error("Shiprocket integration disabled after failed authentication.")
            return None

        self._token = AuthToken(token, self._clock() + TOKEN_LIFETIME)
        logging.info("Shiprocket authentication successful.")
        return token

    async def get_token(self) -> Optional[str]:
        if not self.enabled:
            return None
        async with self._token_lock:
            if self._token and self._token.is_valid(self._clock()):
                return self._token.value
            logging.info("Shiprocket token expired or missing, re-authenticating...")
            return await self.authenticate()

    def invalidate_token(self):
        self._token = None

    # --- Requests ---

    async def request(
        self,
        path: str,
        payload: Any = None,
        *,
        retries: int = 3,
        requires_auth: bool = True,
        method: str = "POST",
        order_id: Any = "unknown",
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Calls the API and returns the decoded JSON body.

        401 triggers a single re-authentication and an immediate replay that
        does not use up an attempt. 429, 400/422 and other 4xx answers fail
        at once. Timeouts, connection errors and 5xx answers are retried
        with a 1s, 2s, 4s... backoff; the last error is raised once the
        attempts are used up.
        """
        if not self.enabled:
            raise ConfigurationError("Shiprocket service is disabled")

        method = method.upper()
        url = path if path.startswith("http") else f"{self.api_url}{path}"
        attempts = max(1, retries)
        attempt = 0
        reauthenticated = False
        last_error: Optional[ShiprocketError] = None

        while attempt < attempts:
            attempt += 1
            logging.info(f"Shiprocket {method} {path} attempt {attempt}/{attempts} for order {order_id}")
            try:
                data = await self._send(method, url, payload, params, requires_auth, order_id)
                logging.info(f"Shiprocket request successful for order {order_id}")
                return data
            except AuthenticationError as e:
                if e.status_code != 401:
                    raise
                if reauthenticated:
                    logging.error(f"Shiprocket rejected the refreshed token for order {order_id}")
                    raise AuthenticationError("Authentication failed after retry", status_code=401, details=e.details) from e

                logging.warning(f"Authentication error for order {order_id}, attempting re-authentication...")
                reauthenticated = True
                self.invalidate_token()
                if not await self.authenticate():
                    logging.error(f"Re-authentication failed for order {order_id}")
                    raise AuthenticationError("Authentication failed after retry", status_code=401, details=e.details) from e
                attempt -= 1
                continue
            except ShiprocketError as e:
                last_error = e
                logging.error(
                    f"Shiprocket request error (attempt {attempt}/{attempts}) for order {order_id}: "
                    f"status={e.status_code} kind={e.kind.value} message={e.message}"
                )
                if not e.retryable:
                    raise
                if attempt < attempts:
                    backoff = 2 ** (attempt - 1)
                    logging.info(f"Waiting {backoff}s before retrying order {order_id}...")
                    await self._sleep(backoff)

        logging.error(f"All retry attempts exhausted for order {order_id}")
        raise last_error

    async def _send(self, method: str, url: str, payload: Any, params, requires_auth: bool, order_id) -> Any:
        headers = {"Content-Type": "application/json"}
        if requires_auth:
            token = await self.get_token()
            if not token:
                raise AuthenticationError("Failed to obtain authentication token")
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=payload if method != "GET" else None,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransientNetworkError(f"Network timeout: {type(e).__name__}") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Network error: {type(e).__name__}: {e}") from e

        status = response.status_code
        if status < 400:
            return _decode_body(response)

        details = _decode_error_body(response)
        if status == 401:
            raise AuthenticationError("Unauthorized", status_code=401, details=details)
        if status == 429:
            logging.error(f"Shiprocket API rate limit reached for order {order_id}")
            raise RateLimitError("Rate limit exceeded - order marked for retry", status_code=429, details=details)
        if status in (400, 422):
            logging.error(f"Invalid data sent to Shiprocket for order {order_id}: {details}")
            raise ValidationError("Validation error - check order data", status_code=status, details=details)
        raise ApiError(f"Shiprocket API returned HTTP {status}", status_code=status, details=details)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise ApiError("Invalid JSON in Shiprocket response", status_code=response.status_code, details=response.text) from e


def _decode_error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
