import logging
import sys
from fastapi import FastAPI
from contextlib import asynccontextmanager

from storefront.database import create_tables
from storefront.presentation.api import router as orders_router
from storefront.presentation.payments_api import router as payments_router
from storefront.presentation.catalog_api import router as catalog_router
from storefront.presentation.errors import register_exception_handlers

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    await create_tables()
    logger.info("Tables ready")

    yield

    logger.info("Application shutting down...")

app = FastAPI(
    title="Storefront Order Service",
    description="Orders, stock reservation and Stripe payment reconciliation",
    version="1.0.0",
    lifespan=lifespan
)

register_exception_handlers(app)
app.include_router(orders_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")


@app.get("/")
async def root():
    return {"success": True, "message": "Femty Grocery Store API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
