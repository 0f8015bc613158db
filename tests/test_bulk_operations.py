"""
Tests for bulk operation submission, polling and result download.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from skugen.shopify.bulk_operations import (
    BulkOperationConflict,
    BulkOperationError,
    BulkOperationStatus,
    BulkOperationsManager,
    BulkOperationTimeout,
    choose_mutation_template,
)
from skugen.shopify.mutations import PRODUCT_SET_ASYNC, PRODUCT_SET_SYNC
from tests.factories import bulk_operation


def make_manager(*responses, handler=None, **kwargs):
    client = AsyncMock()
    client.execute.side_effect = list(responses)
    http_client = None
    if handler is not None:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("poll_interval", 0)
    return BulkOperationsManager(client, http_client=http_client, **kwargs), client


class TestTemplate:
    """Tests for choose_mutation_template."""

    def test_small_products_use_synchronous(self):
        assert choose_mutation_template(1) == PRODUCT_SET_SYNC
        assert choose_mutation_template(100) == PRODUCT_SET_SYNC

    def test_large_product_uses_asynchronous(self):
        assert choose_mutation_template(101) == PRODUCT_SET_ASYNC


class TestEnsureIdle:
    """Tests for the one-job-per-shop precondition."""

    @pytest.mark.parametrize("status", ["CREATED", "RUNNING", "CANCELING"])
    def test_active_operation_conflicts(self, status):
        manager, client = make_manager({"currentBulkOperation": bulk_operation(status)})

        with pytest.raises(BulkOperationConflict) as exc_info:
            asyncio.run(manager.ensure_idle())

        assert exc_info.value.operation_id == "gid://shopify/BulkOperation/1"
        assert client.execute.call_count == 1

    @pytest.mark.parametrize("status", ["COMPLETED", "FAILED", "CANCELED", "EXPIRED"])
    def test_finished_operation_is_idle(self, status):
        manager, _ = make_manager({"currentBulkOperation": bulk_operation(status)})

        asyncio.run(manager.ensure_idle())

    def test_no_operation_is_idle(self):
        manager, _ = make_manager({"currentBulkOperation": None})

        asyncio.run(manager.ensure_idle())


class TestSubmit:
    """Tests for BulkOperationsManager.submit."""

    def test_returns_operation(self):
        manager, client = make_manager({
            "bulkOperationRunMutation": {
                "bulkOperation": bulk_operation("CREATED"),
                "userErrors": [],
            }
        })

        operation = asyncio.run(manager.submit("tmp/x", PRODUCT_SET_SYNC))

        assert operation.status == BulkOperationStatus.CREATED
        assert client.execute.call_args.kwargs["variables"] == {
            "mutation": PRODUCT_SET_SYNC,
            "stagedUploadPath": "tmp/x",
        }

    def test_already_in_progress_is_conflict(self):
        manager, _ = make_manager({
            "bulkOperationRunMutation": {
                "bulkOperation": None,
                "userErrors": [{
                    "field": None,
                    "message": "A bulk mutation operation for this app and shop is already in progress.",
                }],
            }
        })

        with pytest.raises(BulkOperationConflict):
            asyncio.run(manager.submit("tmp/x", PRODUCT_SET_SYNC))

    def test_other_user_error(self):
        manager, _ = make_manager({
            "bulkOperationRunMutation": {
                "bulkOperation": None,
                "userErrors": [{"field": ["mutation"], "message": "Invalid mutation"}],
            }
        })

        with pytest.raises(BulkOperationError, match="Invalid mutation") as exc_info:
            asyncio.run(manager.submit("tmp/x", PRODUCT_SET_SYNC))

        assert not isinstance(exc_info.value, BulkOperationConflict)


class TestWaitForCompletion:
    """Tests for polling."""

    def test_polls_until_terminal(self):
        manager, client = make_manager(
            {"node": bulk_operation("CREATED")},
            {"node": bulk_operation("RUNNING")},
            {"node": bulk_operation("COMPLETED", url="https://results.example.com/r.jsonl")},
        )

        operation = asyncio.run(manager.wait_for_completion("gid://shopify/BulkOperation/1"))

        assert operation.status == BulkOperationStatus.COMPLETED
        assert operation.url == "https://results.example.com/r.jsonl"
        assert client.execute.call_count == 3

    def test_stop_event_ends_wait(self):
        manager, client = make_manager(
            {"node": bulk_operation("RUNNING")},
            poll_interval=30,
        )
        stop_event = asyncio.Event()
        stop_event.set()

        operation = asyncio.run(
            manager.wait_for_completion("gid://shopify/BulkOperation/1", stop_event=stop_event)
        )

        assert operation.is_active
        assert client.execute.call_count == 1

    def test_timeout(self):
        manager, _ = make_manager({"node": bulk_operation("RUNNING")}, max_poll_time=0)

        with pytest.raises(BulkOperationTimeout):
            asyncio.run(manager.wait_for_completion("gid://shopify/BulkOperation/1"))

    def test_missing_operation(self):
        manager, _ = make_manager({"node": None})

        with pytest.raises(BulkOperationError, match="not found"):
            asyncio.run(manager.wait_for_completion("gid://shopify/BulkOperation/404"))


class TestDownloadResults:
    """Tests for streaming result files."""

    def test_reconciles_lines(self):
        lines = [
            {"data": {"productSet": {"product": {"id": "p1"}, "userErrors": []}}, "__lineNumber": 0},
            {"data": {"productSet": {"product": None, "userErrors": [{"message": "bad"}]}}, "__lineNumber": 1},
        ]
        content = "\n".join(json.dumps(line) for line in lines) + "\n"

        def handler(request):
            assert str(request.url) == "https://results.example.com/r.jsonl"
            return httpx.Response(200, text=content)

        manager, _ = make_manager(handler=handler)

        summary = asyncio.run(manager.download_results("https://results.example.com/r.jsonl"))

        assert (summary.total, summary.successful, summary.failed) == (2, 1, 1)
        assert summary.errors == ["line 1: bad"]

    def test_http_error(self):
        manager, _ = make_manager(handler=lambda request: httpx.Response(500))

        with pytest.raises(BulkOperationError, match="Failed to fetch results"):
            asyncio.run(manager.download_results("https://results.example.com/r.jsonl"))
