"""
Apply generated SKUs to a store.

Small selections are written inline, one productSet call per product.
Larger ones go through a bulk mutation: serialize, upload, submit, poll,
reconcile. Every outcome comes back as a SyncSummary; errors that stop the
attempt are reported through ``error_kind`` rather than raised.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Sequence

from ..shopify import (
    BulkOperation,
    BulkOperationConflict,
    BulkOperationError,
    BulkOperationStatus,
    BulkOperationTimeout,
    BulkOperationsManager,
    CatalogClient,
    CatalogRecord,
    ErrorKind,
    ResultReconciler,
    ShopifyClient,
    ShopifyClientError,
    StagedUploader,
    SyncMode,
    SyncSummary,
    batch_update_products,
    choose_mutation_template,
    dump_bulk_input,
)
from ..shopify.mutations import SYNC_TEMPLATE_MAX_VARIANTS
from .payload import UpdateDescriptor, build_update_descriptors, group_by_product, largest_product_size
from .renderer import highest_existing_number
from .rules import BodyStrategy, RuleSet, RuleValidationError

logger = logging.getLogger(__name__)

DEFAULT_BULK_THRESHOLD = 100  # variants

OnSubmitted = Callable[[BulkOperation], Awaitable[None]]


def use_bulk(records: Sequence[CatalogRecord], bulk_threshold: int = DEFAULT_BULK_THRESHOLD) -> bool:
    """Whether a selection is large enough for a bulk mutation."""
    return len(records) > bulk_threshold


async def resolve_last_number(client: ShopifyClient, rules: RuleSet) -> Optional[int]:
    """Highest body number already used in the store, for CONTINUE_FROM_LAST."""
    codes = await CatalogClient(client).existing_codes()
    last = highest_existing_number(rules, codes)
    logger.info(f"Continuing numbering after {last}" if last is not None else
                "No existing codes match the rules, numbering from the start")
    return last


async def apply_rules(
    client: ShopifyClient,
    rules: RuleSet,
    records: Sequence[CatalogRecord],
    bulk_threshold: int = DEFAULT_BULK_THRESHOLD,
    delay_seconds: float = 0.3,
    bulk_ops: Optional[BulkOperationsManager] = None,
    uploader: Optional[StagedUploader] = None,
    stop_event: Optional[asyncio.Event] = None,
    on_submitted: Optional[OnSubmitted] = None,
    rng: Optional[random.Random] = None,
) -> SyncSummary:
    """
    Render SKUs for the selection and write them to the store.

    Args:
        client: Shopify client for the target store
        rules: Validated generator rules
        records: Selected variants, in selection order
        bulk_threshold: Selections with more variants than this use a bulk mutation
        delay_seconds: Pause between inline product updates
        bulk_ops: Bulk operations manager (built from client if omitted)
        uploader: Staged uploader (built from client if omitted)
        stop_event: Set to stop observing a running bulk operation
        on_submitted: Awaited once a bulk operation has been accepted
        rng: Random source for the RANDOM body strategy
    """
    bulk = use_bulk(records, bulk_threshold)
    summary = SyncSummary(mode=SyncMode.BULK if bulk else SyncMode.SYNCHRONOUS)

    if not records:
        return summary.fail(ErrorKind.VALIDATION, "No variants selected")

    try:
        group_by_product(records)
    except RuleValidationError as e:
        return summary.fail(ErrorKind.VALIDATION, str(e))

    last_number = None
    if rules.body_strategy == BodyStrategy.CONTINUE_FROM_LAST:
        try:
            last_number = await resolve_last_number(client, rules)
        except ShopifyClientError as e:
            return summary.fail(ErrorKind.TRANSPORT, f"Could not read existing SKUs: {e}")

    try:
        descriptors = build_update_descriptors(rules, records, last_number=last_number, rng=rng)
    except RuleValidationError as e:
        return summary.fail(ErrorKind.VALIDATION, str(e))

    logger.info(
        f"Applying SKUs to {len(records)} variants in {len(descriptors)} products "
        f"({summary.mode.value})"
    )

    if not bulk:
        return await batch_update_products(client, descriptors, delay_seconds=delay_seconds)

    return await run_bulk_update(
        descriptors,
        bulk_ops or BulkOperationsManager(client),
        uploader or StagedUploader(client),
        stop_event=stop_event,
        on_submitted=on_submitted,
    )


async def run_bulk_update(
    descriptors: Sequence[UpdateDescriptor],
    bulk_ops: BulkOperationsManager,
    uploader: StagedUploader,
    stop_event: Optional[asyncio.Event] = None,
    on_submitted: Optional[OnSubmitted] = None,
) -> SyncSummary:
    """Submit descriptors as one bulk mutation and observe it to the end."""
    summary = SyncSummary(mode=SyncMode.BULK)

    # Step 1: Only one bulk mutation per shop
    try:
        await bulk_ops.ensure_idle()
    except BulkOperationConflict as e:
        logger.warning(str(e))
        return summary.fail(ErrorKind.CONFLICT, str(e))
    except ShopifyClientError as e:
        return summary.fail(ErrorKind.TRANSPORT, str(e))

    # Step 2: Serialize and upload
    content = dump_bulk_input(descriptors)
    try:
        staged_upload_path = await uploader.upload(content)
    except ShopifyClientError as e:
        logger.error(f"Upload failed: {e}")
        return summary.fail(ErrorKind.TRANSPORT, str(e))

    # Step 3: Submit with a template chosen from the largest product
    largest = largest_product_size(descriptors)
    mutation = choose_mutation_template(largest)
    logger.info(
        f"Using {'synchronous' if largest <= SYNC_TEMPLATE_MAX_VARIANTS else 'asynchronous'} productSet "
        f"(largest product has {largest} variants)"
    )
    try:
        operation = await bulk_ops.submit(staged_upload_path, mutation)
    except BulkOperationConflict as e:
        logger.warning(str(e))
        return summary.fail(ErrorKind.CONFLICT, str(e))
    except ShopifyClientError as e:
        return summary.fail(ErrorKind.TRANSPORT, str(e))

    if on_submitted is not None:
        await on_submitted(operation)

    # Step 4: Observe
    return await observe_bulk_update(bulk_ops, operation.id, stop_event=stop_event)


async def observe_bulk_update(
    bulk_ops: BulkOperationsManager,
    operation_id: str,
    stop_event: Optional[asyncio.Event] = None,
) -> SyncSummary:
    """
    Poll a submitted bulk mutation and reconcile its results.

    Also used to resume watching an operation submitted by an earlier run.
    """
    summary = SyncSummary(mode=SyncMode.BULK)

    try:
        operation = await bulk_ops.wait_for_completion(operation_id, stop_event=stop_event)
    except BulkOperationTimeout as e:
        summary.pending = True
        return summary.fail(ErrorKind.TIMEOUT, str(e))
    except ShopifyClientError as e:
        # The operation may still be running; it can be observed again later
        summary.pending = True
        return summary.fail(ErrorKind.TRANSPORT, str(e))

    summary.job = operation.model_dump(by_alias=True, mode="json")

    if operation.is_active:
        summary.pending = True
        return summary

    if operation.status == BulkOperationStatus.COMPLETED:
        if operation.url:
            try:
                await bulk_ops.download_results(operation.url, ResultReconciler(summary))
            except BulkOperationError as e:
                return summary.fail(ErrorKind.TRANSPORT, f"Results unavailable: {e}")
        logger.info(
            f"Bulk update finished: {summary.successful} succeeded, "
            f"{summary.failed} failed, {summary.unparsable} unparsable"
        )
        return summary

    if operation.status == BulkOperationStatus.CANCELED:
        return summary.fail(ErrorKind.JOB_CANCELED, "Bulk operation was canceled")

    # FAILED or EXPIRED
    summary.fail(
        ErrorKind.JOB_FAILED,
        f"Bulk operation failed with error: {operation.error_code or 'UNKNOWN'}",
    )
    if operation.partial_data_url:
        try:
            summary.partial_results = await bulk_ops.download_results(operation.partial_data_url)
        except BulkOperationError as e:
            logger.error(f"Failed to fetch partial results: {e}")
    return summary
