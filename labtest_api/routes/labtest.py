"""
Lab Test API - Lab Test Routes
Lab results, patient records, observations, medications, referrals and documents
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from labtest_api.config import Settings
from labtest_api.dependencies import (
    bad_request,
    get_lab_test_service,
    get_settings,
    not_found,
    server_error,
)
from labtest_api.schemas import (
    DocumentResult,
    LabTestData,
    PatientAllergy,
    PatientDiagnosis,
    PatientInfo,
    PatientLabObservation,
    PatientLabObservationHistory,
    PatientLabTestResponse,
    PatientMedication,
    ReferralTestData,
)
from labtest_api.services.labtest_service import LabTestService, naive_datetime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/labtest", tags=["Lab Tests"])


def _dates_reversed(start_date: Optional[datetime], end_date: Optional[datetime]) -> bool:
    # Bounds may mix offset-aware and naive values
    start_date, end_date = naive_datetime(start_date), naive_datetime(end_date)
    return start_date is not None and end_date is not None and start_date > end_date


# =============================================================================
# Lab Test Data
# =============================================================================

@router.get("", response_model=List[LabTestData])
async def get_all_lab_test_data(
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get all lab test data (sample data when the store returns none)"""
    try:
        logger.info("Getting all lab test data")
        return await service.get_lab_test_data()
    except Exception as e:
        logger.error(f"Error getting all lab test data: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving lab test data", e)


@router.get("/patient/{patient_id}", response_model=List[LabTestData])
async def get_lab_test_data_by_patient(
    patient_id: str,
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get lab test data for one patient identifier"""
    if not patient_id.strip():
        raise bad_request("Patient ID is required")

    try:
        logger.info(f"Getting lab test data for patient: {patient_id}")
        return await service.get_lab_test_data_by_patient(patient_id)
    except Exception as e:
        logger.error(f"Error getting lab test data for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient lab test data", e)


@router.get("/patient-sp/{patient_id}", response_model=List[LabTestData])
async def get_patient_lab_test_data(
    patient_id: int,
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """
    Get lab test data for a patient through the patient procedure

    Rows carry the patient's demographics; procedure columns win where both
    supply a value.
    """
    try:
        logger.info(f"Getting lab test data via stored procedure for patient: {patient_id}")
        return await service.get_patient_lab_test_data(patient_id)
    except Exception as e:
        logger.error(f"Error getting lab test data via procedure for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient lab test data", e)


@router.get("/daterange", response_model=List[LabTestData])
async def get_lab_test_data_by_date_range(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get lab test data whose message datetime falls in [startDate, endDate]"""
    if _dates_reversed(start_date, end_date):
        raise bad_request("Start date must be before or equal to end date")

    try:
        logger.info(f"Getting lab test data from {start_date} to {end_date}")
        return await service.get_lab_test_data_by_date_range(start_date, end_date)
    except Exception as e:
        logger.error(f"Error getting lab test data by date range: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving lab test data by date range", e)


@router.get("/filter", response_model=List[LabTestData])
async def get_lab_test_data_with_filters(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    practice_id: Optional[str] = Query(None, alias="practiceId"),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get lab test data matching every supplied filter"""
    if _dates_reversed(start_date, end_date):
        raise bad_request("Start date must be before or equal to end date")

    try:
        logger.info(
            f"Getting lab test data with filters - PatientId: {patient_id}, "
            f"StartDate: {start_date}, EndDate: {end_date}, PracticeId: {practice_id}"
        )
        return await service.get_lab_test_data_with_filters(patient_id, start_date, end_date, practice_id)
    except Exception as e:
        logger.error(f"Error getting filtered lab test data: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving filtered lab test data", e)


# =============================================================================
# Patient Record
# =============================================================================

@router.get("/patient-info/{patient_id}", response_model=PatientInfo)
async def get_patient_info(
    patient_id: int,
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get demographics for a patient"""
    try:
        logger.info(f"Getting patient info for patient: {patient_id}")
        patient_info = await service.get_patient_info(patient_id)
    except Exception as e:
        logger.error(f"Error getting patient info for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient information", e)

    if patient_info is None:
        raise not_found(f"Patient information not found for patient ID: {patient_id}")
    return patient_info


async def _patient_record(service: LabTestService, settings: Settings, patient_id: int,
                          lab_test_msh_id: Optional[int]) -> PatientLabTestResponse:
    try:
        logger.info(f"Getting patient record for patient: {patient_id}, LabTestMshID: {lab_test_msh_id}")
        record = await service.get_patient_record(patient_id, lab_test_msh_id)
    except Exception as e:
        logger.error(f"Error getting patient record for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient lab test data", e)

    if record is None:
        raise not_found(f"Lab test data not found for patient ID: {patient_id}")
    return record


@router.get("/patient-labtest-updated/{patient_id}", response_model=PatientLabTestResponse)
async def get_patient_lab_test_record(
    patient_id: int,
    lab_test_msh_id: Optional[int] = Query(None, alias="labTestMshID"),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """
    Get the full patient record: header, lab test details, allergies, diagnoses

    Args:
        patient_id: Patient ID
        labTestMshID: Optional message to narrow the header and details to
    """
    return await _patient_record(service, settings, patient_id, lab_test_msh_id)


@router.get("/patientinboxdetail/{patient_id}", response_model=PatientLabTestResponse)
async def get_patient_inbox_detail(
    patient_id: int,
    lab_test_msh_id: Optional[int] = Query(None, alias="labTestMshID"),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Inbox detail view of the patient record"""
    return await _patient_record(service, settings, patient_id, lab_test_msh_id)


@router.get("/patient-allergies/{patient_id}", response_model=List[PatientAllergy])
async def get_patient_allergies(
    patient_id: int,
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get allergies for a patient"""
    try:
        logger.info(f"Getting allergies for patient: {patient_id}")
        return await service.get_patient_allergies(patient_id)
    except Exception as e:
        logger.error(f"Error getting allergies for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient allergies", e)


@router.get("/patient-diagnoses/{patient_id}", response_model=List[PatientDiagnosis])
async def get_patient_diagnoses(
    patient_id: int,
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get diagnoses for a patient"""
    try:
        logger.info(f"Getting diagnoses for patient: {patient_id}")
        return await service.get_patient_diagnoses(patient_id)
    except Exception as e:
        logger.error(f"Error getting diagnoses for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient diagnoses", e)


# =============================================================================
# Observations and Medications
# =============================================================================

@router.get("/patient-observations/{patient_id}", response_model=List[PatientLabObservation])
async def get_patient_observations(
    patient_id: int,
    observation_text: Optional[str] = Query(None, alias="observationText"),
    practice_id: Optional[int] = Query(None, alias="practiceId"),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Search a patient's grouped lab observations"""
    try:
        logger.info(f"Getting observations for patient: {patient_id}, text: '{observation_text}'")
        return await service.get_patient_observations(patient_id, observation_text, practice_id)
    except Exception as e:
        logger.error(f"Error getting observations for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient lab observations", e)


@router.get("/patient-observation-history/{patient_id}", response_model=List[PatientLabObservationHistory])
async def get_patient_observation_history(
    patient_id: int,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    panel_type_filter: Optional[str] = Query(None, alias="panelTypeFilter"),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get a patient's observation history, optionally bounded and filtered by panel type"""
    if _dates_reversed(start_date, end_date):
        raise bad_request("Start date must be before or equal to end date")

    try:
        logger.info(f"Getting observation history for patient: {patient_id}")
        return await service.get_observation_history(patient_id, start_date, end_date, panel_type_filter)
    except Exception as e:
        logger.error(f"Error getting observation history for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient observation history", e)


@router.get("/patient-medications/{patient_id}", response_model=List[PatientMedication])
async def get_patient_medications(
    patient_id: int,
    practice_id: int = Query(127, alias="practiceId"),
    practice_location_id: int = Query(4, alias="practiceLocationId"),
    page_no: int = Query(1, alias="pageNo", ge=1),
    page_size: int = Query(20, alias="pageSize", ge=1),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get one page of a patient's medication list"""
    try:
        logger.info(f"Getting medications for patient: {patient_id} (page {page_no}, size {page_size})")
        return await service.get_patient_medications(
            patient_id, practice_id, practice_location_id, page_no, page_size
        )
    except Exception as e:
        logger.error(f"Error getting medications for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving patient medications", e)


# =============================================================================
# Inbox Lists
# =============================================================================

@router.get("/patient-individual/{patient_id}", response_model=List[LabTestData])
async def get_individual_lab_test_data(
    patient_id: int,
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get a single patient's inbox lab rows"""
    if patient_id <= 0:
        raise bad_request("Valid Patient ID is required")

    try:
        logger.info(f"Getting individual lab test data for patient: {patient_id}")
        return await service.get_individual_lab_test_data(patient_id)
    except Exception as e:
        logger.error(f"Error getting individual lab test data for patient {patient_id}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving individual lab test data", e)


@router.get("/referrals", response_model=List[ReferralTestData])
async def get_referrals(
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Get referral messages"""
    try:
        logger.info("Getting referral data")
        return await service.get_referrals()
    except Exception as e:
        logger.error(f"Error getting referral data: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving referral data", e)


async def _priority_bucket(service: LabTestService, settings: Settings, bucket: str) -> List[LabTestData]:
    try:
        logger.info(f"Getting {bucket} lab test data")
        return await service.get_priority_bucket(bucket)
    except Exception as e:
        logger.error(f"Error getting {bucket} lab test data: {e}", exc_info=True)
        raise server_error(settings, f"An error occurred while retrieving {bucket} lab test data", e)


@router.get("/incomplete-high-priority", response_model=List[LabTestData])
async def get_incomplete_high_priority(
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """Incomplete results flagged high priority"""
    return await _priority_bucket(service, settings, "incomplete-high-priority")


@router.get("/incomplete-low-priority", response_model=List[LabTestData])
async def get_incomplete_low_priority(
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    return await _priority_bucket(service, settings, "incomplete-low-priority")


@router.get("/complete-high-priority", response_model=List[LabTestData])
async def get_complete_high_priority(
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    return await _priority_bucket(service, settings, "complete-high-priority")


@router.get("/complete-low-priority", response_model=List[LabTestData])
async def get_complete_low_priority(
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    return await _priority_bucket(service, settings, "complete-low-priority")


# =============================================================================
# Documents
# =============================================================================

@router.get("/document/{document_key}", response_model=List[DocumentResult])
async def get_documents(
    document_key: str = Path(...),
    practice_id: int = Query(0, alias="practiceID"),
    service: LabTestService = Depends(get_lab_test_service),
    settings: Settings = Depends(get_settings),
):
    """
    Get documents for a document key

    Each document carries its content as base64 and, for text, RTF, PDF and
    DOCX documents, the extracted text.
    """
    if not document_key.strip():
        raise bad_request("Document key is required")
    if practice_id <= 0:
        raise bad_request("Valid Practice ID is required")

    try:
        logger.info(f"Getting documents for key: {document_key}, practice: {practice_id}")
        return await service.get_documents(document_key, practice_id)
    except Exception as e:
        logger.error(f"Error getting documents for key {document_key}: {e}", exc_info=True)
        raise server_error(settings, "An error occurred while retrieving document data", e)
