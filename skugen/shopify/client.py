"""
Shopify GraphQL Admin API client.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

import httpx

logger = logging.getLogger(__name__)


class ShopifyClientError(Exception):
    """Base exception for Shopify client errors."""
    pass


class ShopifyAuthError(ShopifyClientError):
    """Token rejected (never retried)."""
    pass


class ShopifyRateLimitError(ShopifyClientError):
    """Request throttled by HTTP 429 or a THROTTLED GraphQL error."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ShopifyUserError(ShopifyClientError):
    """A mutation returned userErrors."""

    def __init__(self, message: str, user_errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.user_errors = user_errors


@dataclass
class ThrottleStatus:
    """Query cost bucket as reported in ``extensions.cost.throttleStatus``."""
    maximum_available: float
    currently_available: float
    restore_rate: float

    def wait_for(self, points: float) -> float:
        """Seconds until the bucket holds ``points`` again."""
        missing = points - self.currently_available
        if missing <= 0 or self.restore_rate <= 0:
            return 0.0
        return missing / self.restore_rate


def normalize_domain(shop_domain: str) -> str:
    """'https://shop.myshopify.com/' -> 'shop.myshopify.com'"""
    domain = shop_domain.strip()
    for scheme in ("https://", "http://"):
        if domain.startswith(scheme):
            domain = domain[len(scheme):]
            break
    return domain.rstrip("/")


def format_user_errors(user_errors: List[Dict[str, Any]]) -> str:
    """Join userErrors into one readable line."""
    messages = []
    for error in user_errors:
        message = error.get("message", str(error))
        field = error.get("field")
        if field:
            path = ".".join(str(part) for part in field) if isinstance(field, list) else str(field)
            message = f"{path}: {message}"
        messages.append(message)
    return "; ".join(messages)


def raise_for_user_errors(
    payload: Dict[str, Any],
    operation: str,
    error_cls: Type[ShopifyUserError] = ShopifyUserError,
) -> None:
    """Raise if a mutation payload carries userErrors."""
    user_errors = payload.get("userErrors") or []
    if user_errors:
        raise error_cls(
            f"{operation} failed: {format_user_errors(user_errors)}",
            user_errors,
        )


class ShopifyClient:
    """
    Async client for one shop's GraphQL Admin API.

    Rate-limit and network errors are retried with exponential backoff.
    The cost bucket reported with each response is remembered, and the
    next request waits for it to refill when it runs low.
    """

    MAX_RETRIES = 5
    BASE_RETRY_DELAY = 1.0  # seconds
    LOW_POINTS = 100  # wait for the bucket to refill below this

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = "2025-01",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            shop_domain: Store domain (e.g., "mystore.myshopify.com")
            access_token: Admin API access token
            api_version: Admin API version used in the endpoint path
            transport: Optional httpx transport (used by tests)
        """
        self.shop_domain = normalize_domain(shop_domain)
        self.access_token = access_token
        self.api_version = api_version
        self.graphql_url = (
            f"https://{self.shop_domain}/admin/api/{api_version}/graphql.json"
        )
        self.throttle: Optional[ThrottleStatus] = None

        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    def _session(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(60.0, connect=10.0),
                headers={"X-Shopify-Access-Token": self.access_token},
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a query or mutation and return its ``data``.

        Raises:
            ShopifyAuthError: On 401/403
            ShopifyRateLimitError: If still throttled after MAX_RETRIES
            ShopifyClientError: On GraphQL errors, other HTTP errors, bad JSON,
                or repeated network failures
        """
        body: Dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables

        last_error: Optional[ShopifyClientError] = None

        for attempt in range(1, self.MAX_RETRIES + 1):
            await self._wait_for_points()
            try:
                response = await self._session().post(self.graphql_url, json=body)
                return self._read(response)
            except ShopifyRateLimitError as e:
                last_error = e
                delay = e.retry_after or self._backoff(attempt)
                logger.warning(f"Throttled by {self.shop_domain}, retry {attempt}/{self.MAX_RETRIES} in {delay:.1f}s")
            except httpx.RequestError as e:
                last_error = ShopifyClientError(f"Request error: {e}")
                delay = self._backoff(attempt)
                logger.warning(f"Request to {self.shop_domain} failed ({e}), retry {attempt}/{self.MAX_RETRIES} in {delay:.1f}s")
            await asyncio.sleep(delay)

        raise last_error or ShopifyClientError("Max retries exceeded")

    def _backoff(self, attempt: int) -> float:
        return self.BASE_RETRY_DELAY * (2 ** (attempt - 1))

    def _read(self, response: httpx.Response) -> Dict[str, Any]:
        """Map one HTTP response to data or a client error."""
        status = response.status_code
        if status in (401, 403):
            raise ShopifyAuthError(f"Access token rejected by {self.shop_domain} (HTTP {status})")
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise ShopifyRateLimitError(
                "HTTP 429 Too Many Requests",
                retry_after=float(retry_after) if retry_after else None,
            )
        if status >= 400:
            raise ShopifyClientError(f"HTTP {status} from {self.shop_domain}")

        try:
            result = response.json()
        except ValueError as e:
            raise ShopifyClientError(f"Invalid response from {self.shop_domain}: {e}") from e

        self._record_cost(result.get("extensions") or {})

        errors = result.get("errors")
        if errors:
            messages = [e.get("message", str(e)) for e in errors] if isinstance(errors, list) else [str(errors)]
            if any("throttl" in m.lower() for m in messages):
                raise ShopifyRateLimitError(f"GraphQL throttled: {messages}")
            raise ShopifyClientError(f"GraphQL errors: {messages}")

        return result.get("data") or {}

    def _record_cost(self, extensions: Dict[str, Any]) -> None:
        status = (extensions.get("cost") or {}).get("throttleStatus")
        if not status:
            return
        self.throttle = ThrottleStatus(
            maximum_available=float(status.get("maximumAvailable", 0)),
            currently_available=float(status.get("currentlyAvailable", 0)),
            restore_rate=float(status.get("restoreRate", 0)),
        )

    async def _wait_for_points(self) -> None:
        if self.throttle is None:
            return
        delay = self.throttle.wait_for(self.LOW_POINTS)
        if delay > 0:
            logger.info(
                f"Only {self.throttle.currently_available:.0f} cost points left, "
                f"waiting {delay:.1f}s"
            )
            await asyncio.sleep(delay)
            self.throttle = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
