"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from delivery_auth.api.auth import router as auth_router
from delivery_auth.config import settings
from delivery_auth.database.engine import init_db
from delivery_auth.services.otp_engine import ConcurrentUpdateError

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Database initialised")
    yield
    logger.info("Shutting down %s …", settings.app_name)


app = FastAPI(
    title=f"{settings.app_name} Auth",
    description="Signup, email verification and password reset for the delivery platform",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(auth_router)


@app.exception_handler(SQLAlchemyError)
@app.exception_handler(ConcurrentUpdateError)
async def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Datastore trouble is never a client error; report it as unavailable."""
    logger.error(
        "Storage failure while handling %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": "Service temporarily unavailable"},
    )


@app.get("/health")
async def health_check():
    """Simple liveness probe."""
    return {"status": "healthy", "app": settings.app_name}


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="debug" if settings.debug else "info")
