"""
FastAPI application for the crypto analysis pipeline.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crypto_advisor.api.routes.analysis import router as analysis_router
from crypto_advisor.api.routes.status import router as status_router
from crypto_advisor.communication.services import Services, build_services
from crypto_advisor.config.settings import settings
from crypto_advisor.utils.logging import configure_logging, get_logger

# Configure logging
configure_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)

API_VERSION = "1.0.0"


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the application around a set of services.

    Args:
        services: Pre-built services; built from settings when omitted.
    """
    services = services or build_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Crypto Advisor API")
        yield
        await app.state.services.close()
        logger.info("Crypto Advisor API stopped")

    app = FastAPI(
        title="Crypto Advisor API",
        description="Technical, sentiment and language-model analysis of crypto assets",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.services = services

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_request_handler(request: Request, exc: RequestValidationError):
        logger.info("Invalid request format", path=request.url.path)
        return JSONResponse(status_code=400, content={"error": "Invalid request format"})

    # Include routers
    app.include_router(analysis_router, tags=["analysis"])
    app.include_router(status_router, tags=["status"])

    @app.get("/")
    async def root():
        return {"message": "Crypto Advisor API", "version": API_VERSION}

    return app


app = create_app()
