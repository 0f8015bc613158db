"""
Shopify API module.
"""

from skugen.shopify.client import (
    ShopifyClient,
    ShopifyClientError,
    ShopifyAuthError,
    ShopifyRateLimitError,
    ShopifyUserError,
)
from skugen.shopify.catalog import (
    CatalogClient,
    CatalogRecord,
    CatalogScope,
    ParentProduct,
    SelectedOption,
)
from skugen.shopify.results import (
    ErrorKind,
    ResultReconciler,
    SyncMode,
    SyncOutcome,
    SyncSummary,
)
from skugen.shopify.staged_upload import StagedUploader, StagedUploadError
from skugen.shopify.bulk_operations import (
    BulkOperation,
    BulkOperationConflict,
    BulkOperationError,
    BulkOperationStatus,
    BulkOperationTimeout,
    BulkOperationsManager,
    choose_mutation_template,
)
from skugen.shopify.jsonl import dump_bulk_input
from skugen.shopify.batch_update import batch_update_products

__all__ = [
    "ShopifyClient",
    "ShopifyClientError",
    "ShopifyAuthError",
    "ShopifyRateLimitError",
    "ShopifyUserError",
    "CatalogClient",
    "CatalogRecord",
    "CatalogScope",
    "ParentProduct",
    "SelectedOption",
    "ErrorKind",
    "ResultReconciler",
    "SyncMode",
    "SyncOutcome",
    "SyncSummary",
    "StagedUploader",
    "StagedUploadError",
    "BulkOperation",
    "BulkOperationConflict",
    "BulkOperationError",
    "BulkOperationStatus",
    "BulkOperationTimeout",
    "BulkOperationsManager",
    "choose_mutation_template",
    "dump_bulk_input",
    "batch_update_products",
]
