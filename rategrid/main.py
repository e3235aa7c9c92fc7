import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from . import __version__
from .config import settings
from .errors import EditValidationError, InventoryServiceError
from .routers import calendar
from .services.inventory_client import InventoryClient
from .services.supplier_loader import CalendarWorkspace
from .services.sync_status_poller import SyncStatusPoller
from .utils.logging_config import clear_request_context, set_request_context, setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(settings.log_level, settings.log_json)
    logger.info(f"Starting rategrid (environment: {settings.environment})")
    logger.info(f"Inventory service: {settings.inventory_base_url}")

    client = InventoryClient()
    workspace = CalendarWorkspace(client)
    app.state.workspace = workspace

    # ==========================================
    # SYNC STATUS POLLER
    # ==========================================
    poller = None
    groups = settings.sync_group_id_list
    if settings.sync_poll_enabled and groups:
        poller = SyncStatusPoller(client, groups, workspace.refresh)
        poller.start()
    else:
        logger.info("Sync status polling disabled")

    yield

    logger.info("Shutting down rategrid")
    if poller:
        await poller.stop()
    workspace.loader.cancel_all()
    await client.aclose()


# Create FastAPI app
app = FastAPI(
    title="RateGrid API",
    description="Per-day price, minimum stay and arrival rules for rental units",
    version=__version__,
    lifespan=lifespan
)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)


@app.exception_handler(EditValidationError)
async def edit_validation_handler(request: Request, exc: EditValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(InventoryServiceError)
async def inventory_error_handler(request: Request, exc: InventoryServiceError):
    return JSONResponse(status_code=502, content={"detail": exc.message, "code": exc.error_code})


app.include_router(calendar.router)


@app.get("/")
async def root():
    return {
        "message": "RateGrid API",
        "version": __version__,
        "docs": "/docs",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
