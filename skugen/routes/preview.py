"""
SKU preview API routes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..dependencies import get_client
from ..processor import BodyStrategy, RuleValidationError, build_update_descriptors, parse_rules
from ..processor.payload import group_by_product
from ..processor.sync import resolve_last_number
from ..shopify import CatalogRecord, ShopifyClient, ShopifyClientError

router = APIRouter(prefix="/api/preview")


class PreviewRequest(BaseModel):
    rules: Dict[str, Any]
    records: List[CatalogRecord]


class PreviewItem(BaseModel):
    variantId: str
    productId: str
    currentSku: Optional[str] = None
    sku: str


class PreviewResponse(BaseModel):
    items: List[PreviewItem]


@router.post("", response_model=PreviewResponse)
async def preview(request: PreviewRequest, client: ShopifyClient = Depends(get_client)):
    """
    Render the SKUs a sync would write, without writing them.

    Codes come from the same descriptors the write path uses, so the
    preview matches what gets applied (RANDOM bodies excepted).
    """
    try:
        rules = parse_rules(request.rules)
    except RuleValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        group_by_product(request.records)
    except RuleValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    last_number = None
    if rules.body_strategy == BodyStrategy.CONTINUE_FROM_LAST:
        try:
            last_number = await resolve_last_number(client, rules)
        except ShopifyClientError as e:
            raise HTTPException(status_code=502, detail=f"Could not read existing SKUs: {e}")

    try:
        descriptors = build_update_descriptors(rules, request.records, last_number=last_number)
    except RuleValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    current = {r.id: r.sku for r in request.records}
    items = [
        PreviewItem(
            variantId=variant.variant_id,
            productId=descriptor.product_id,
            currentSku=current.get(variant.variant_id),
            sku=variant.new_sku,
        )
        for descriptor in descriptors
        for variant in descriptor.variants
    ]
    return PreviewResponse(items=items)
