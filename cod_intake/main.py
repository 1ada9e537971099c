# cod_intake/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cod_intake.core.config import get_settings
from cod_intake.core.errors import CodIntakeError, status_code_for
from cod_intake.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from cod_intake.models import shop as _shop_models  # noqa: F401
from cod_intake.models import order as _order_models  # noqa: F401
from cod_intake.models import customer as _customer_models  # noqa: F401

# Routers
from cod_intake.routers.orders import router as orders_router
from cod_intake.routers.customers import router as customers_router
from cod_intake.routers.partial_cod import router as partial_cod_router
from cod_intake.routers.proxy import router as proxy_router
from cod_intake.routers.pricing import router as pricing_router
from cod_intake.routers.stats import router as stats_router
from cod_intake.routers.webhooks import router as webhooks_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
    """
    logger.info("Startup: connecting to the order store...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
# The form widget is served from every merchant's storefront domain,
# so any origin may call the storefront endpoints (no cookies involved).
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(CodIntakeError)
async def cod_intake_error_handler(request: Request, exc: CodIntakeError) -> JSONResponse:
    """Map domain errors to the storefront's {success, error} envelope."""
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same envelope as rule violations."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"{field}: {message}" if field else message},
    )


# Versioned API prefix, e.g. /api
app.include_router(orders_router, prefix=settings.API_PREFIX)
app.include_router(customers_router, prefix=settings.API_PREFIX)
app.include_router(partial_cod_router, prefix=settings.API_PREFIX)
app.include_router(proxy_router, prefix=settings.API_PREFIX)
app.include_router(pricing_router, prefix=settings.API_PREFIX)
app.include_router(stats_router, prefix=settings.API_PREFIX)

# Platform webhooks are registered at fixed paths, outside the API prefix
app.include_router(webhooks_router)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "cod-intake"}
