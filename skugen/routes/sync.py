"""
Sync trigger and bulk status API routes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..dependencies import get_runner
from ..processor import RuleValidationError, SyncRunner, apply_rules, parse_rules, use_bulk
from ..shopify import (
    BulkOperationConflict,
    BulkOperationError,
    BulkOperationStatus,
    CatalogRecord,
    ErrorKind,
    ShopifyClientError,
)

router = APIRouter(prefix="/api")


class SyncRequest(BaseModel):
    rules: Dict[str, Any]
    records: List[CatalogRecord]


_STATUS_BY_ERROR = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.TRANSPORT: 502,
}


@router.post("/sync")
async def start_sync(request: SyncRequest, runner: SyncRunner = Depends(get_runner)):
    """
    Apply rules to the selected variants.

    Small selections are written before responding. Large ones start a
    bulk operation in the background and return a task id to poll.
    """
    try:
        rules = parse_rules(request.rules)
    except RuleValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not request.records:
        raise HTTPException(status_code=400, detail="Invalid request: no variants selected")

    if not use_bulk(request.records, runner.bulk_threshold):
        summary = await apply_rules(
            runner.client,
            rules,
            request.records,
            bulk_threshold=runner.bulk_threshold,
            delay_seconds=runner.delay_seconds,
        )
        status_code = _STATUS_BY_ERROR.get(summary.error_kind, 200)
        return JSONResponse(status_code=status_code, content={"summary": summary.to_dict()})

    # Reject early instead of starting a task that can only fail
    try:
        await runner.bulk_ops.ensure_idle()
    except BulkOperationConflict as e:
        return JSONResponse(status_code=409, content={
            "error": "Bulk operation already in progress",
            "details": str(e),
            "bulkOperationId": e.operation_id,
        })
    except ShopifyClientError as e:
        raise HTTPException(status_code=502, detail=str(e))

    sync_task = runner.start_apply(rules, request.records)
    return JSONResponse(status_code=202, content={
        "message": f"Bulk SKU update started for {len(request.records)} variants",
        "task": sync_task.to_dict(),
    })


@router.get("/sync/{task_id}")
async def get_sync_task(task_id: str, runner: SyncRunner = Depends(get_runner)):
    """State of a background sync task."""
    sync_task = runner.get(task_id)
    if sync_task is None:
        raise HTTPException(status_code=404, detail="Sync task not found")
    return sync_task.to_dict()


@router.delete("/sync/{task_id}")
async def stop_sync_task(task_id: str, runner: SyncRunner = Depends(get_runner)):
    """Stop watching a task. A submitted bulk operation keeps running on Shopify."""
    sync_task = await runner.stop(task_id)
    if sync_task is None:
        raise HTTPException(status_code=404, detail="Sync task not found")
    return sync_task.to_dict()


@router.get("/bulk-status")
async def get_bulk_status(
    id: Optional[str] = Query(None),
    include_results: bool = Query(False, alias="includeResults"),
    runner: SyncRunner = Depends(get_runner),
):
    """Status of a specific bulk operation, or of the current one."""
    bulk_ops = runner.bulk_ops

    try:
        operation = await bulk_ops.get(id) if id else await bulk_ops.get_current()
    except ShopifyClientError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if operation is None:
        raise HTTPException(status_code=404, detail="No bulk operation found")

    response: Dict[str, Any] = {
        "bulkOperation": operation.model_dump(by_alias=True, mode="json"),
    }

    if include_results and operation.status == BulkOperationStatus.COMPLETED and operation.url:
        try:
            summary = await bulk_ops.download_results(operation.url)
            response["summary"] = summary.to_dict()
        except BulkOperationError as e:
            response["resultsError"] = str(e)

    if operation.status == BulkOperationStatus.FAILED and operation.partial_data_url:
        try:
            partial = await bulk_ops.download_results(operation.partial_data_url)
            response["partialResults"] = partial.to_dict()
        except BulkOperationError as e:
            response["partialResultsError"] = str(e)

    return response
