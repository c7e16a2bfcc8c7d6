import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stockledger.api import auth, ledger, products, suppliers
from stockledger.config import settings
from stockledger.database import SessionLocal, init_db
from stockledger.exceptions import InventoryError
from stockledger.logging_config import setup_logging
from stockledger.seed import seed_demo_data
from stockledger.services.auth_service import ensure_default_admin

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
        if settings.SEED_DEMO_DATA:
            seed_demo_data(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Stock Ledger API",
    description="Products, suppliers and the purchase/sale ledger that keeps stock consistent",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so clients can parse the error."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(suppliers.router, prefix="/api/v1")
app.include_router(ledger.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}
