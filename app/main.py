"""
Main FastAPI application for the story unlock API.
Serves health, stories (with per-user `paid`), payments and metrics.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AppError, GatewayError, StorageError
from app.core.logging import configure_logging
from app.core.middleware import RequestLogMiddleware
from app.api.routes import health, payments, stories
from app.utils.metrics import router as metrics_router


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Story Unlock API",
    description="Payment-gated access to unwatermarked stories",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, (GatewayError, StorageError)):
        # Opaque to the client; detail stays in the log
        logger.warning(
            "request_failed",
            extra={
                "path": request.url.path,
                "status_code": exc.status_code,
                "error": f"{type(exc).__name__}: {exc.detail or exc.message}",
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": True, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    return JSONResponse(
        status_code=400,
        content={"error": True, "message": "Invalid request.", "fields": [f for f in fields if f]},
    )


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(stories.router)
app.include_router(payments.router)
app.include_router(metrics_router)
