"""
Staged uploads.

Bulk mutations read their input from a file that has to be uploaded first:
ask Shopify for a pre-signed target, then POST the file straight to it.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from skugen.shopify.client import (
    ShopifyClient,
    ShopifyClientError,
    ShopifyUserError,
    raise_for_user_errors,
)
from skugen.shopify.mutations import STAGED_UPLOADS_CREATE

logger = logging.getLogger(__name__)

JSONL_MIME_TYPE = "text/jsonl"
BULK_MUTATION_RESOURCE = "BULK_MUTATION_VARIABLES"


class StagedUploadError(ShopifyClientError):
    """Upload target could not be created or the file transfer failed."""
    pass


class StagedUploadUserError(StagedUploadError, ShopifyUserError):
    """stagedUploadsCreate returned userErrors."""
    pass


@dataclass
class StagedTarget:
    """Pre-signed upload destination returned by stagedUploadsCreate."""

    url: str
    resource_url: Optional[str]
    parameters: List[Dict[str, str]]

    @property
    def staged_upload_path(self) -> str:
        """The handle bulkOperationRunMutation expects (the form's 'key')."""
        for param in self.parameters:
            if param.get("name") == "key":
                return param["value"]
        if self.resource_url:
            return self.resource_url
        raise StagedUploadError("Staged target has neither a key nor a resource URL")


class StagedUploader:
    """Two-step upload of bulk mutation input."""

    UPLOAD_TIMEOUT = 120.0  # seconds

    def __init__(
        self,
        client: ShopifyClient,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            client: Shopify GraphQL client
            http_client: Client for the upload itself. The target is not a
                Shopify Admin endpoint, so no auth headers are sent. A fresh
                client is used per upload when omitted.
        """
        self.client = client
        self.http_client = http_client

    async def create_target(self, filename: str) -> StagedTarget:
        """
        Ask Shopify for an upload target.

        Raises:
            StagedUploadError: On user errors or a missing target
        """
        data = await self.client.execute(
            STAGED_UPLOADS_CREATE,
            variables={
                "input": [{
                    "filename": filename,
                    "mimeType": JSONL_MIME_TYPE,
                    "httpMethod": "POST",
                    "resource": BULK_MUTATION_RESOURCE,
                }]
            },
        )

        payload = data.get("stagedUploadsCreate") or {}
        raise_for_user_errors(payload, "Staged upload creation", StagedUploadUserError)

        targets = payload.get("stagedTargets") or []
        if not targets or not targets[0].get("url"):
            raise StagedUploadError("No staged upload target received")

        target = targets[0]
        return StagedTarget(
            url=target["url"],
            resource_url=target.get("resourceUrl"),
            parameters=list(target.get("parameters") or []),
        )

    async def upload(self, content: str, filename: str = "bulk-sku-update.jsonl") -> str:
        """
        Upload JSONL content and return its staged upload path.

        Raises:
            StagedUploadError: If any step fails; nothing has been mutated yet
        """
        target = await self.create_target(filename)

        # Shopify's parameters go first, verbatim and in order; the file goes last
        form = {param["name"]: param["value"] for param in target.parameters}
        body = content.encode("utf-8")
        files = {"file": (filename, body, JSONL_MIME_TYPE)}

        try:
            if self.http_client is not None:
                response = await self.http_client.post(target.url, data=form, files=files)
            else:
                async with httpx.AsyncClient(timeout=self.UPLOAD_TIMEOUT) as http_client:
                    response = await http_client.post(target.url, data=form, files=files)
        except httpx.HTTPError as e:
            raise StagedUploadError(f"File upload failed: {e}") from e

        if not response.is_success:
            raise StagedUploadError(
                f"File upload failed: {response.status_code} {response.reason_phrase}"
            )

        path = target.staged_upload_path
        logger.info(f"Uploaded {len(body)} bytes of bulk input to {path}")
        return path
