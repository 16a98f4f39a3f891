# Application entrypoint: configures middleware, error rendering, startup routines, and API routers.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from .db import DATABASE_URL, Base, engine
from .errors import HarborError
from .payments import processor_status
from .routes.bookings import router as bookings_router
from .routes.checkout import router as checkout_router
from .routes.listings import router as listings_router
from .routes.transactions import router as transactions_router

logger = logging.getLogger("harbor.api")


# Parse CORS origins from a comma-separated env var.
# Note: '*' cannot be used with allow_credentials=True; we fall back to explicit localhost origins for dev.
def _parse_cors_origins(env_value: str | None) -> list[str]:
    default_dev_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if not env_value:
        return default_dev_origins

    origins = [o.strip() for o in env_value.split(",") if o.strip()]
    if "*" in origins:
        return default_dev_origins

    return origins


app = FastAPI(title="Harbor Checkout API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_cors_origins(os.getenv("CORS_ORIGINS")),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HarborError)
def harbor_error_handler(request: Request, exc: HarborError) -> JSONResponse:
    # Validation errors are the caller's to fix and are not logged as failures.
    # Post-capture persistence failures were already logged at critical by the orchestrator.
    if exc.category in ("capture", "configuration"):
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    elif exc.category == "busy":
        logger.info("%s %s busy: %s", request.method, request.url.path, exc.message)

    headers = None
    if "retry_after" in exc.context:
        headers = {"Retry-After": str(exc.context["retry_after"])}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()}, headers=headers)


@app.on_event("startup")
def on_startup() -> None:
    # For local SQLite, auto-create tables; production DBs rely on Alembic migrations.
    if DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


# Liveness plus whether the payment processor is configured (never the secrets themselves)
@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok", "processor": processor_status()}


app.include_router(checkout_router, prefix="/api/v1", tags=["checkout"])
app.include_router(bookings_router, prefix="/api/v1", tags=["bookings"])
app.include_router(listings_router, prefix="/api/v1", tags=["listings"])
app.include_router(transactions_router, prefix="/api/v1", tags=["transactions"])
