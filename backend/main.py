"""
Tattoo studio storefront — FastAPI Application

Canvas shop checkout through the Hyp hosted payment page, payment
confirmation, and order notification mail.
"""
import logging
import os
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from domain.errors import DomainError, GatewayError
from domain.responses import error_response
from routes import checkout, dev, health, orders

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: validate settings, create DB tables. Shutdown: stop the mail worker pool."""
    # Ensure data/ directory exists for SQLite
    os.makedirs("data", exist_ok=True)

    settings.validate_production_settings()

    from database import init_db
    await init_db()
    logger.info("Database initialized")

    if settings.dev_routes_enabled:
        logger.warning("Dev routes enabled: POST /dev/mark-paid/{order_id}")

    yield  # app runs here

    from services.async_executor import shutdown_executor
    shutdown_executor()

    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title="Studio Storefront API",
    description="Canvas shop checkout with Hyp hosted payments and order mail",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(checkout.router)
app.include_router(orders.router)
app.include_router(dev.router)


# ── Exception Handlers ──────────────────────────────────────────────


def _error_code(exc: Exception) -> str:
    """``NotFoundError`` → ``not_found``."""
    name = exc.__class__.__name__.removesuffix("Error") or "domain"
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@app.exception_handler(DomainError)
async def domain_exception_handler(request, exc: DomainError):
    details = dict(exc.details)
    if isinstance(exc, GatewayError):
        details["fatal"] = exc.fatal
        logger.error(f"Gateway failure on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, _error_code(exc), details or None),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc: RequestValidationError):
    """Malformed bodies and query params are plain 400s for the storefront."""
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    first = errors[0] if errors else {"loc": [], "msg": "Invalid request"}
    field = ".".join(str(p) for p in first["loc"] if p != "body")
    message = f"Invalid {field}: {first['msg']}" if field else first["msg"]
    return JSONResponse(
        status_code=400,
        content=error_response(message, "validation", {"errors": errors}),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Keep the original status code, but wrap the payload."""
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            message, "http_error", detail if not isinstance(detail, str) else None
        ),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Catch-all for unhandled exceptions.

    Never return raw exception details to clients; the traceback is logged
    server-side.
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_response("Internal server error", "internal_server_error"),
    )


# ── Entrypoint ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
