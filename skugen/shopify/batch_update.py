"""
Inline product updates for small selections.
"""

import asyncio
import logging
from typing import Any, Dict, Protocol, Sequence

from skugen.shopify.client import ShopifyClient, ShopifyClientError
from skugen.shopify.mutations import product_set_template
from skugen.shopify.results import SyncMode, SyncSummary, extract_user_errors

logger = logging.getLogger(__name__)


class ProductUpdate(Protocol):
    product_id: str

    @property
    def variant_count(self) -> int: ...

    def to_input(self) -> Dict[str, Any]: ...


async def batch_update_products(
    client: ShopifyClient,
    updates: Sequence[ProductUpdate],
    delay_seconds: float = 0.5
) -> SyncSummary:
    """
    Apply product updates one at a time with rate limiting.

    A failure on one product never stops the remaining ones.

    Args:
        client: ShopifyClient instance
        updates: One update per product (see UpdateDescriptor)
        delay_seconds: Delay between API calls to respect rate limits

    Returns:
        SyncSummary counting products
    """
    summary = SyncSummary(mode=SyncMode.SYNCHRONOUS)

    total = len(updates)
    processed = 0

    for update in updates:
        product_id = update.product_id
        try:
            data = await client.execute(
                product_set_template(update.variant_count),
                variables={"input": update.to_input()}
            )

            user_errors = extract_user_errors({"data": data})

            if user_errors:
                error_msgs = [e.get("message", str(e)) for e in user_errors]
                summary.record_failure(f"{product_id}: {'; '.join(error_msgs)}")
                logger.warning(f"Failed to update {product_id}: {error_msgs}")
            else:
                summary.record_success()
                logger.debug(f"Updated {update.variant_count} variants for {product_id}")

        except ShopifyClientError as e:
            summary.record_failure(f"{product_id}: {e}")
            logger.error(f"Error updating {product_id}: {e}")

        processed += 1
        if processed % 100 == 0 or processed == total:
            logger.info(f"Progress: {processed}/{total} products ({int(processed/total*100)}%)")

        if delay_seconds > 0 and processed < total:
            await asyncio.sleep(delay_seconds)

    logger.info(f"Batch update complete: {summary.successful} succeeded, {summary.failed} failed")

    return summary
