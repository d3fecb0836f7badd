"""
Lab Test API - Main FastAPI Application
Read-only HTTP API over the practice management lab-test store
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from labtest_api.config import Settings
from labtest_api.routes import external as external_routes, labtest as labtest_routes
from labtest_api.services.database import Database
from labtest_api.services.external_api import ExternalApiService
from labtest_api.services.labtest_service import LabTestService

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings: Settings = app.state.settings
    logger.info("Starting Lab Test API...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.get_masked_database_url()}")
    if settings.sample_data_fallback:
        logger.info("Sample lab data is served when the store returns no rows")

    yield

    logger.info("Shutting down Lab Test API...")
    await app.state.external_api_service.aclose()
    app.state.database.dispose()


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    external_api: Optional[ExternalApiService] = None,
) -> FastAPI:
    """
    Build the application with its settings and services on app.state

    Args:
        settings: Settings instance; read from the environment when omitted
        database: Database access object; built from settings when omitted
        external_api: External API client service; built from settings when omitted
    """
    settings = settings or Settings()
    configure_logging(settings)

    app = FastAPI(
        title="Lab Test API",
        description="Lab results, patient records, medications and documents from the practice store",
        version=VERSION,
        debug=settings.debug,
        lifespan=lifespan
    )

    database = database or Database(settings)
    app.state.settings = settings
    app.state.database = database
    app.state.lab_test_service = LabTestService(settings, database)
    app.state.external_api_service = external_api or ExternalApiService(settings)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(labtest_routes.router)
    app.include_router(external_routes.router)

    register_service_routes(app)
    register_exception_handlers(app)
    return app


# =============================================================================
# Service Endpoints
# =============================================================================

def register_service_routes(app: FastAPI) -> None:

    @app.get("/health", tags=["health"])
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "version": VERSION,
            "environment": app.state.settings.environment
        }

    @app.get("/api-docs", tags=["health"])
    async def api_docs():
        """List every API endpoint with its summary"""
        # The OpenAPI schema sees routes inside included routers
        endpoints = []
        for path, operations in app.openapi().get("paths", {}).items():
            if not path.startswith("/api/"):
                continue
            for method, operation in operations.items():
                description = (operation.get("description") or "").strip()
                endpoints.append({
                    "path": path,
                    "method": method.upper(),
                    "name": operation.get("operationId"),
                    "summary": description.split("\n")[0] if description else operation.get("summary", ""),
                })
        return {
            "title": app.title,
            "version": app.version,
            "openapi": app.openapi_url,
            "endpoints": endpoints
        }


# =============================================================================
# Error Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        """Handle HTTP exceptions"""
        content = {"error": exc.detail}
        if isinstance(exc.detail, dict):
            content = dict(exc.detail)
        content["timestamp"] = datetime.now().isoformat()
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        """Report malformed path and query parameters as 400"""
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("path", "query"))
            messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "; ".join(messages) or "Invalid request",
                "timestamp": datetime.now().isoformat()
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        """Handle general exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "details": str(exc) if app.state.settings.expose_error_details else "An error occurred",
                "timestamp": datetime.now().isoformat()
            }
        )


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    settings = app.state.settings
    uvicorn.run(
        "labtest_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )
