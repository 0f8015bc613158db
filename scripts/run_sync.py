#!/usr/bin/env python3
"""
Apply SKU rules to a store from the command line.

    python scripts/run_sync.py --rules rules.json                 # every product
    python scripts/run_sync.py --rules rules.json --ids gid://shopify/Product/1
    python scripts/run_sync.py --rules rules.json --dry-run       # preview only

This runs the sync as a standalone script, not through the web server.
"""

import argparse
import asyncio
import json
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from skugen.config import settings
from skugen.processor import (
    BodyStrategy,
    RuleValidationError,
    apply_rules,
    build_update_descriptors,
    parse_rules,
)
from skugen.processor.sync import resolve_last_number
from skugen.shopify import (
    BulkOperationsManager,
    CatalogClient,
    CatalogScope,
    ShopifyClient,
    SyncOutcome,
)

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate and apply SKUs")
    parser.add_argument("--rules", required=True, help="Path to a rules JSON file")
    parser.add_argument("--ids", nargs="+", help="Product GIDs (default: all products)")
    parser.add_argument("--dry-run", action="store_true", help="Print new SKUs without writing")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)

    with open(args.rules, encoding="utf-8") as f:
        try:
            rules = parse_rules(json.load(f))
        except RuleValidationError as e:
            logger.error(f"Invalid rules: {e}")
            return 2

    async with ShopifyClient(
        settings.shop_domain, settings.access_token, api_version=settings.api_version
    ) as client:
        scope = CatalogScope.IDS if args.ids else CatalogScope.ALL
        records = await CatalogClient(client).fetch_records(scope, args.ids)

        if not records:
            logger.info("No variants found")
            return 0

        if args.dry_run:
            last_number = None
            if rules.body_strategy == BodyStrategy.CONTINUE_FROM_LAST:
                last_number = await resolve_last_number(client, rules)
            for descriptor in build_update_descriptors(rules, records, last_number=last_number):
                for variant in descriptor.variants:
                    print(f"{variant.variant_id}\t{variant.new_sku}")
            return 0

        logger.info(f"Applying SKUs to {len(records)} variants...")
        summary = await apply_rules(
            client,
            rules,
            records,
            bulk_threshold=settings.bulk_threshold,
            delay_seconds=settings.sync_delay_seconds,
            bulk_ops=BulkOperationsManager(
                client,
                poll_interval=settings.bulk_poll_interval,
                max_poll_time=settings.bulk_max_poll_time,
            ),
        )

    print(json.dumps(summary.to_dict(), indent=2))

    if summary.outcome != SyncOutcome.APPLIED:
        for error in summary.errors:
            logger.error(f"  {error}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
