"""
SKU Generator - Main Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .dependencies import close_dependencies, get_runner, init_dependencies
from .routes import catalog_router, preview_router, sync_router
from .shopify import ShopifyClientError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting SKU Generator...")
    await init_dependencies()

    # A bulk operation from a previous run is observed, not resubmitted
    try:
        await get_runner().resume_outstanding()
    except ShopifyClientError as e:
        logger.warning(f"Could not check for an outstanding bulk operation: {e}")

    logger.info("Application ready")
    yield
    logger.info("Shutting down...")
    await close_dependencies()


# Create app
app = FastAPI(
    title="SKU Generator",
    description="Generate SKUs from rules and apply them to a Shopify store",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(catalog_router)
app.include_router(preview_router)
app.include_router(sync_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "skugen.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
