"""
Shopify Bulk Operations handler.

Manages submitting bulk mutations, polling them, and downloading results.
Shopify runs at most one bulk mutation per shop at a time; the state of that
operation lives on Shopify's side and is only ever observed here.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from skugen.shopify.client import ShopifyClient, ShopifyClientError, format_user_errors
from skugen.shopify.mutations import BULK_OPERATION_RUN_MUTATION, product_set_template
from skugen.shopify.queries import BULK_OPERATION_STATUS_QUERY, CURRENT_BULK_OPERATION_QUERY
from skugen.shopify.results import ResultReconciler, SyncSummary

logger = logging.getLogger(__name__)


class BulkOperationError(ShopifyClientError):
    """Error during bulk operation."""
    pass


class BulkOperationConflict(BulkOperationError):
    """Another bulk mutation is already outstanding for this shop."""

    def __init__(self, message: str, operation_id: Optional[str] = None):
        super().__init__(message)
        self.operation_id = operation_id


class BulkOperationTimeout(BulkOperationError):
    """Bulk operation timed out."""
    pass


class BulkOperationStatus(str, Enum):
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    # Also reported by Shopify, outside the basic lifecycle
    CANCELING = "CANCELING"
    EXPIRED = "EXPIRED"


ACTIVE_STATUSES = (
    BulkOperationStatus.CREATED,
    BulkOperationStatus.RUNNING,
    BulkOperationStatus.CANCELING,
)


class BulkOperation(BaseModel):
    """A bulk operation as reported by Shopify."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    status: BulkOperationStatus
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    object_count: Optional[int] = None
    file_size: Optional[int] = None
    url: Optional[str] = None
    partial_data_url: Optional[str] = None
    error_code: Optional[str] = None
    type: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


def choose_mutation_template(largest_product_size: int) -> str:
    """
    Pick the productSet template for a whole bulk file.

    The template applies to every line, so it is chosen from the largest
    product in the batch.
    """
    return product_set_template(largest_product_size)


class BulkOperationsManager:
    """
    Runs bulk mutations against one shop.
    """

    # Polling configuration
    POLL_INTERVAL = 3.0  # seconds
    MAX_POLL_TIME = 3600 * 2  # 2 hours max

    def __init__(
        self,
        client: ShopifyClient,
        poll_interval: Optional[float] = None,
        max_poll_time: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize bulk operations manager.

        Args:
            client: Shopify GraphQL client
            poll_interval: Seconds between status checks
            max_poll_time: Give up observing after this many seconds
            http_client: Client used to download result files
        """
        self.client = client
        self.poll_interval = self.POLL_INTERVAL if poll_interval is None else poll_interval
        self.max_poll_time = self.MAX_POLL_TIME if max_poll_time is None else max_poll_time
        self.http_client = http_client

    async def get_current(self) -> Optional[BulkOperation]:
        """The shop's most recent bulk mutation, if there is one."""
        data = await self.client.execute(CURRENT_BULK_OPERATION_QUERY)
        operation = data.get("currentBulkOperation")
        if not operation:
            return None
        return BulkOperation.model_validate(operation)

    async def get(self, operation_id: str) -> Optional[BulkOperation]:
        data = await self.client.execute(
            BULK_OPERATION_STATUS_QUERY, variables={"id": operation_id}
        )
        operation = data.get("node")
        if not operation or not operation.get("id"):
            return None
        return BulkOperation.model_validate(operation)

    async def ensure_idle(self) -> None:
        """
        Refuse to continue while another bulk mutation is outstanding.

        Raises:
            BulkOperationConflict: If the current operation is CREATED or RUNNING
        """
        current = await self.get_current()
        if current and current.is_active:
            raise BulkOperationConflict(
                f"Bulk operation already running: {current.id} (status: {current.status.value})",
                operation_id=current.id,
            )

    async def submit(self, staged_upload_path: str, mutation: str) -> BulkOperation:
        """
        Start a bulk mutation over an uploaded JSONL file.

        Raises:
            BulkOperationConflict: If Shopify reports one already in progress
            BulkOperationError: For other user errors
        """
        data = await self.client.execute(
            BULK_OPERATION_RUN_MUTATION,
            variables={"mutation": mutation, "stagedUploadPath": staged_upload_path},
        )

        payload = data.get("bulkOperationRunMutation") or {}
        user_errors = payload.get("userErrors") or []

        if user_errors:
            message = format_user_errors(user_errors)
            if "already in progress" in message.lower() or "already running" in message.lower():
                # Lost the race against another submission; never retried
                raise BulkOperationConflict(f"Bulk operation already running: {message}")
            raise BulkOperationError(f"Bulk operation failed to start: {message}")

        operation = payload.get("bulkOperation")
        if not operation or not operation.get("id"):
            raise BulkOperationError("No operation ID returned")

        result = BulkOperation.model_validate(operation)
        logger.info(f"Bulk operation started: {result.id}")
        return result

    async def wait_for_completion(
        self,
        operation_id: str,
        stop_event: Optional[asyncio.Event] = None,
    ) -> BulkOperation:
        """
        Poll a bulk operation until Shopify reports a terminal status.

        Setting ``stop_event`` ends the wait early; the last observed
        (still active) operation is returned and keeps running remotely.

        Raises:
            BulkOperationError: If the operation disappears
            BulkOperationTimeout: After max_poll_time without a terminal status
        """
        elapsed = 0.0

        while True:
            operation = await self.get(operation_id)
            if operation is None:
                raise BulkOperationError(f"Bulk operation not found: {operation_id}")

            logger.debug(
                f"Bulk operation {operation_id}: {operation.status.value}, "
                f"objects: {operation.object_count or 0}"
            )

            if not operation.is_active:
                logger.info(f"Bulk operation {operation_id} finished: {operation.status.value}")
                return operation

            if elapsed >= self.max_poll_time:
                raise BulkOperationTimeout(
                    f"Bulk operation did not complete within {self.max_poll_time}s"
                )

            if await self._wait(stop_event):
                logger.info(f"Stopped observing bulk operation {operation_id}")
                return operation
            elapsed += self.poll_interval

    async def _wait(self, stop_event: Optional[asyncio.Event]) -> bool:
        """Sleep one poll interval. Returns True if asked to stop."""
        if stop_event is None:
            await asyncio.sleep(self.poll_interval)
            return False
        if stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            return True
        except asyncio.TimeoutError:
            return False

    async def download_results(
        self,
        url: str,
        reconciler: Optional[ResultReconciler] = None,
    ) -> SyncSummary:
        """
        Stream a JSONL result file into a reconciler.

        Raises:
            BulkOperationError: If the download fails
        """
        reconciler = reconciler or ResultReconciler()
        try:
            if self.http_client is not None:
                await self._stream_lines(self.http_client, url, reconciler)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0)) as client:
                    await self._stream_lines(client, url, reconciler)
        except httpx.HTTPError as e:
            raise BulkOperationError(f"Failed to fetch results: {e}") from e

        return reconciler.summary

    @staticmethod
    async def _stream_lines(
        client: httpx.AsyncClient,
        url: str,
        reconciler: ResultReconciler,
    ) -> None:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                reconciler.add_line(line)
