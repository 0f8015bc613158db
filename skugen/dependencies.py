"""
FastAPI dependency injection.
One Shopify client and one sync runner per process.
"""

from typing import Optional

from .config import settings
from .processor import SyncRunner
from .shopify import ShopifyClient


# Global instances (initialized on startup)
_client: Optional[ShopifyClient] = None
_runner: Optional[SyncRunner] = None


async def init_dependencies():
    """Initialize global dependencies. Called on app startup."""
    global _client, _runner

    _client = ShopifyClient(
        settings.shop_domain,
        settings.access_token,
        api_version=settings.api_version,
    )
    _runner = SyncRunner(
        _client,
        bulk_threshold=settings.bulk_threshold,
        delay_seconds=settings.sync_delay_seconds,
        poll_interval=settings.bulk_poll_interval,
        max_poll_time=settings.bulk_max_poll_time,
    )


async def close_dependencies():
    """Close global dependencies. Called on app shutdown."""
    global _client, _runner
    if _runner:
        await _runner.shutdown()
        _runner = None
    if _client:
        await _client.close()
        _client = None


def get_client() -> ShopifyClient:
    """Get the Shopify client instance."""
    if _client is None:
        raise RuntimeError("Shopify client not initialized")
    return _client


def get_runner() -> SyncRunner:
    """Get the sync runner instance."""
    if _runner is None:
        raise RuntimeError("Sync runner not initialized")
    return _runner
