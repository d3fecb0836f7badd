"""
Lab Test API - Request Dependencies
Settings and services are built once by create_app and read from app.state
"""

from fastapi import HTTPException, Request, status

from labtest_api.config import Settings
from labtest_api.services.external_api import ExternalApiService
from labtest_api.services.labtest_service import LabTestService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_lab_test_service(request: Request) -> LabTestService:
    return request.app.state.lab_test_service


def get_external_api_service(request: Request) -> ExternalApiService:
    return request.app.state.external_api_service


def bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def not_found(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)


def server_error(settings: Settings, message: str, error: Exception) -> HTTPException:
    """500 carrying the endpoint message and, unless disabled, the raw error text"""
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": message,
            "details": str(error) if settings.expose_error_details else "An error occurred",
        },
    )
