"""
Lab Test API - External Reference Data Routes
ICD-10-CM diagnosis search and RxNav medication search
"""

import logging

from fastapi import APIRouter, Depends, Query

from labtest_api.config import Settings
from labtest_api.dependencies import (
    bad_request,
    get_external_api_service,
    get_settings,
    server_error,
)
from labtest_api.schemas import DiagnosisSearchResponse, MedicationSearchResponse
from labtest_api.services.external_api import ExternalApiService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/externalapi", tags=["External APIs"])


@router.get("/diagnosis/search", response_model=DiagnosisSearchResponse)
async def search_diagnosis(
    query: str = Query("", description="Diagnosis code or name fragment"),
    service: ExternalApiService = Depends(get_external_api_service),
    settings: Settings = Depends(get_settings),
):
    """Search ICD-10-CM diagnosis codes"""
    if not query.strip():
        raise bad_request("Query parameter is required")

    try:
        return await service.search_diagnosis(query)
    except Exception as e:
        logger.error(f"Error in diagnosis search: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while searching diagnoses", e)


@router.get("/medication/search", response_model=MedicationSearchResponse)
async def search_medication(
    search: str = Query("", description="Drug name fragment"),
    service: ExternalApiService = Depends(get_external_api_service),
    settings: Settings = Depends(get_settings),
):
    """Search RxNorm drugs by name"""
    if not search.strip():
        raise bad_request("Search parameter is required")

    try:
        return await service.search_medication(search)
    except Exception as e:
        logger.error(f"Error in medication search: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while searching medications", e)


@router.get("/info")
async def get_api_info(settings: Settings = Depends(get_settings)):
    """Describe the external APIs this service proxies"""
    return {
        "service": "External API Integration",
        "endpoints": {
            "diagnosis_search": {
                "path": "/api/externalapi/diagnosis/search?query={term}",
                "source": "NLM Clinical Tables ICD-10-CM",
                "upstream_url": settings.icd10_search_url,
            },
            "medication_search": {
                "path": "/api/externalapi/medication/search?search={term}",
                "source": "NLM RxNav",
                "upstream_url": settings.rxnav_drugs_url,
            },
        },
        "timeout_seconds": settings.external_api_timeout,
    }
