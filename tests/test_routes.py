"""
Tests for the HTTP API.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from skugen.dependencies import get_client, get_runner
from skugen.main import app
from skugen.processor import RuleSet, build_update_descriptors
from skugen.processor.runner import SyncTask
from skugen.shopify import (
    BulkOperation,
    BulkOperationConflict,
    ShopifyClientError,
    SyncMode,
    SyncSummary,
)
from tests.factories import RecordFactory, bulk_operation

PRODUCT = "gid://shopify/Product/1"


def as_json(records):
    return [r.model_dump(by_alias=True) for r in records]


@pytest.fixture
def shopify():
    client = AsyncMock()
    app.dependency_overrides[get_client] = lambda: client
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def runner():
    runner = MagicMock()
    runner.client = AsyncMock()
    runner.bulk_threshold = 2
    runner.delay_seconds = 0
    runner.bulk_ops.ensure_idle = AsyncMock()
    runner.bulk_ops.get = AsyncMock()
    runner.bulk_ops.get_current = AsyncMock()
    runner.bulk_ops.download_results = AsyncMock()
    runner.stop = AsyncMock()
    app.dependency_overrides[get_runner] = lambda: runner
    yield runner
    app.dependency_overrides.clear()


@pytest.fixture
def http():
    # No context manager: the lifespan (and its Shopify calls) is not run
    return TestClient(app)


class TestHealth:
    def test_health(self, http):
        assert http.get("/health").json() == {"status": "ok"}


class TestPreview:
    """Tests for POST /api/preview."""

    def test_renders_codes(self, http, shopify):
        records = RecordFactory.create_batch(2, product_id=PRODUCT, sku="OLD")
        records[1] = RecordFactory.create(product_id=PRODUCT, options=[("Size", "M")])

        response = http.post("/api/preview", json={
            "rules": {"prefix": "AB", "zeroPadded": True, "paddingWidth": 3},
            "records": as_json(records),
        })

        assert response.status_code == 200
        items = response.json()["items"]
        assert [i["sku"] for i in items] == ["AB-001", "AB-002"]
        assert items[0]["currentSku"] == "OLD"
        assert items[0]["productId"] == PRODUCT
        shopify.execute.assert_not_called()

    def test_codes_match_written_descriptors(self, http, shopify):
        other = "gid://shopify/Product/2"
        records = [
            RecordFactory.create(product_id=PRODUCT, options=[("Size", "S")]),
            RecordFactory.create(product_id=PRODUCT, options=[("Size", "M")]),
            RecordFactory.create(product_id=other, options=[("Size", "S")]),
            RecordFactory.create(product_id=other, options=[("Size", "M")]),
        ]
        written = [
            variant.new_sku
            for descriptor in build_update_descriptors(RuleSet(), records)
            for variant in descriptor.variants
        ]

        response = http.post("/api/preview", json={"rules": {}, "records": as_json(records)})

        previewed = [item["sku"] for item in response.json()["items"]]
        assert previewed == written == ["SKU-1", "SKU-2", "SKU-1", "SKU-2"]

    def test_invalid_rules(self, http, shopify):
        response = http.post("/api/preview", json={
            "rules": {"layout": ["prefix", "body"]},
            "records": [],
        })

        assert response.status_code == 400

    def test_continue_from_last_unreachable(self, http, shopify):
        shopify.execute.side_effect = ShopifyClientError("down")

        response = http.post("/api/preview", json={
            "rules": {"bodyStrategy": "continue_from_last"},
            "records": as_json([RecordFactory.create()]),
        })

        assert response.status_code == 502

    def test_orphan_variant_rejected_before_catalog_read(self, http, shopify):
        response = http.post("/api/preview", json={
            "rules": {"bodyStrategy": "continue_from_last"},
            "records": [{"id": "gid://shopify/ProductVariant/1"}],
        })

        assert response.status_code == 400
        assert "no parent product" in response.json()["detail"]
        shopify.execute.assert_not_called()


class TestVariants:
    """Tests for POST /api/variants."""

    def test_ids_scope_requires_ids(self, http, shopify):
        response = http.post("/api/variants", json={"scope": "ids", "ids": []})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid product IDs"

    def test_returns_records(self, http, shopify):
        shopify.execute.return_value = {"nodes": [{
            "id": PRODUCT,
            "title": "Board",
            "variants": {"nodes": [{"id": "gid://shopify/ProductVariant/1", "sku": "A-1", "title": "Default Title"}]},
        }]}

        response = http.post("/api/variants", json={"scope": "ids", "ids": [PRODUCT]})

        assert response.status_code == 200
        [record] = response.json()
        assert record["sku"] == "A-1"
        assert record["product"]["id"] == PRODUCT
        assert "selectedOptions" in record


class TestSync:
    """Tests for /api/sync."""

    def test_small_selection_runs_inline(self, http, runner):
        runner.client.execute.return_value = {"productSet": {"product": {"id": PRODUCT}, "userErrors": []}}

        response = http.post("/api/sync", json={
            "rules": {},
            "records": as_json([RecordFactory.create(product_id=PRODUCT)]),
        })

        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["outcome"] == "applied"
        assert summary["successRate"] == "100.0"
        runner.start_apply.assert_not_called()

    def test_empty_selection(self, http, runner):
        response = http.post("/api/sync", json={"rules": {}, "records": []})

        assert response.status_code == 400

    def test_invalid_rules(self, http, runner):
        response = http.post("/api/sync", json={
            "rules": {"randomMin": 9, "randomMax": 1},
            "records": as_json([RecordFactory.create()]),
        })

        assert response.status_code == 400

    def test_large_selection_starts_task(self, http, runner):
        runner.start_apply.return_value = SyncTask(id="task-1")

        response = http.post("/api/sync", json={
            "rules": {},
            "records": as_json(RecordFactory.create_batch(3)),
        })

        assert response.status_code == 202
        assert response.json()["task"]["id"] == "task-1"
        runner.bulk_ops.ensure_idle.assert_awaited_once()
        runner.start_apply.assert_called_once()

    def test_large_selection_conflict(self, http, runner):
        runner.bulk_ops.ensure_idle.side_effect = BulkOperationConflict(
            "Bulk operation already running", operation_id="gid://shopify/BulkOperation/7"
        )

        response = http.post("/api/sync", json={
            "rules": {},
            "records": as_json(RecordFactory.create_batch(3)),
        })

        assert response.status_code == 409
        assert response.json()["bulkOperationId"] == "gid://shopify/BulkOperation/7"
        runner.start_apply.assert_not_called()

    def test_task_status(self, http, runner):
        runner.get.return_value = SyncTask(id="task-1")

        response = http.get("/api/sync/task-1")

        assert response.status_code == 200
        assert response.json()["state"] == "running"

    def test_unknown_task(self, http, runner):
        runner.get.return_value = None
        runner.stop.return_value = None

        assert http.get("/api/sync/nope").status_code == 404
        assert http.delete("/api/sync/nope").status_code == 404

    def test_stop_task(self, http, runner):
        runner.stop.return_value = SyncTask(id="task-1")

        response = http.delete("/api/sync/task-1")

        assert response.status_code == 200
        runner.stop.assert_awaited_once_with("task-1")


class TestBulkStatus:
    """Tests for GET /api/bulk-status."""

    def test_current_operation_with_results(self, http, runner):
        runner.bulk_ops.get_current.return_value = BulkOperation.model_validate(
            bulk_operation("COMPLETED", url="https://results.example.com/r.jsonl")
        )
        summary = SyncSummary(mode=SyncMode.BULK)
        summary.record_success()
        runner.bulk_ops.download_results.return_value = summary

        response = http.get("/api/bulk-status", params={"includeResults": "true"})

        assert response.status_code == 200
        data = response.json()
        assert data["bulkOperation"]["status"] == "COMPLETED"
        assert data["summary"]["successful"] == 1

    def test_by_id_without_results(self, http, runner):
        runner.bulk_ops.get.return_value = BulkOperation.model_validate(bulk_operation("RUNNING"))

        response = http.get("/api/bulk-status", params={"id": "gid://shopify/BulkOperation/1"})

        assert response.status_code == 200
        assert "summary" not in response.json()
        runner.bulk_ops.get.assert_awaited_once_with("gid://shopify/BulkOperation/1")

    def test_nothing_found(self, http, runner):
        runner.bulk_ops.get_current.return_value = None

        assert http.get("/api/bulk-status").status_code == 404
