"""
Read-only catalog access.

Products come back with their variants nested; the rest of the app works
with a flat list of variant records that each carry a reference to their
parent product.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from skugen.shopify.client import ShopifyClient
from skugen.shopify.queries import PRODUCTS_BY_IDS_QUERY, PRODUCTS_PAGE_QUERY

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class SelectedOption(_CamelModel):
    """One option name/value pair chosen by a variant."""
    name: str
    value: str


class ProductImage(_CamelModel):
    id: Optional[str] = None
    url: str
    alt_text: Optional[str] = None


class ParentProduct(_CamelModel):
    """The product a variant belongs to."""
    id: str
    title: str = ""
    vendor: str = ""
    product_type: str = ""
    images: List[ProductImage] = []


class CatalogRecord(_CamelModel):
    """A product variant as read from the store."""
    id: str
    title: str = ""
    sku: Optional[str] = None  # current code, if any
    selected_options: List[SelectedOption] = []
    product: Optional[ParentProduct] = None


class CatalogScope(str, Enum):
    """Which products to read."""
    ALL = "all"
    IDS = "ids"


def flatten_product(node: Dict[str, Any]) -> List[CatalogRecord]:
    """
    Turn one GraphQL product node into variant records.

    Args:
        node: Product node with nested ``variants.nodes``

    Returns:
        One CatalogRecord per variant, in the order Shopify returned them
    """
    images = [
        ProductImage.model_validate(image)
        for image in (node.get("images") or {}).get("nodes", [])
        if image and image.get("url")
    ]
    parent = ParentProduct(
        id=node["id"],
        title=node.get("title") or "",
        vendor=node.get("vendor") or "",
        product_type=node.get("productType") or "",
        images=images,
    )

    records = []
    for variant in (node.get("variants") or {}).get("nodes", []):
        records.append(CatalogRecord(
            id=variant["id"],
            title=variant.get("title") or "",
            sku=variant.get("sku"),
            selected_options=[
                SelectedOption.model_validate(option)
                for option in variant.get("selectedOptions") or []
            ],
            product=parent,
        ))
    return records


class CatalogClient:
    """Fetches catalog records for a scope."""

    PAGE_SIZE = 50

    def __init__(self, client: ShopifyClient):
        self.client = client

    async def fetch_records(
        self,
        scope: CatalogScope = CatalogScope.ALL,
        ids: Optional[Sequence[str]] = None,
    ) -> List[CatalogRecord]:
        """
        Fetch variant records for all products or an explicit id list.

        Raises:
            ValueError: If scope is IDS and no ids were given
        """
        if scope == CatalogScope.IDS:
            if not ids:
                raise ValueError("Scope 'ids' requires at least one product id")
            products = await self._fetch_by_ids(list(ids))
        else:
            products = await self._fetch_all()

        records: List[CatalogRecord] = []
        for product in products:
            records.extend(flatten_product(product))

        logger.info(f"Fetched {len(records)} variants from {len(products)} products")
        return records

    async def existing_codes(self) -> List[str]:
        """All non-empty SKUs currently in the store."""
        records = await self.fetch_records(CatalogScope.ALL)
        return [r.sku for r in records if r.sku]

    async def _fetch_all(self) -> List[Dict[str, Any]]:
        products: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            variables: Dict[str, Any] = {"first": self.PAGE_SIZE}
            if cursor:
                variables["after"] = cursor

            data = await self.client.execute(PRODUCTS_PAGE_QUERY, variables=variables)
            connection = data.get("products") or {}
            products.extend(connection.get("nodes") or [])

            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")
            logger.debug(f"Fetched {len(products)} products so far, continuing")

        return products

    async def _fetch_by_ids(self, ids: List[str]) -> List[Dict[str, Any]]:
        data = await self.client.execute(PRODUCTS_BY_IDS_QUERY, variables={"ids": ids})
        # Unknown or non-product ids come back as null or empty nodes
        return [node for node in data.get("nodes") or [] if node and node.get("id")]
