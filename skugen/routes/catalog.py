"""
Catalog read API routes.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..dependencies import get_client
from ..shopify import CatalogClient, CatalogRecord, CatalogScope, ShopifyClient, ShopifyClientError

router = APIRouter(prefix="/api/variants")


class VariantsRequest(BaseModel):
    scope: CatalogScope = CatalogScope.ALL
    ids: Optional[List[str]] = None


@router.post("", response_model=List[CatalogRecord], response_model_by_alias=True)
async def get_variants(request: VariantsRequest, client: ShopifyClient = Depends(get_client)):
    """Variants for every product, or for an explicit list of product ids."""
    if request.scope == CatalogScope.IDS and not request.ids:
        raise HTTPException(status_code=400, detail="Invalid product IDs")

    try:
        return await CatalogClient(client).fetch_records(request.scope, request.ids)
    except ShopifyClientError as e:
        raise HTTPException(status_code=502, detail=str(e))
