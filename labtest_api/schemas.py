"""
Lab Test API - Response Schemas
Pydantic models for the read-only projections returned by the API
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


# ============================================================================
# Lab Result Rows
# ============================================================================

class LabTestData(BaseModel):
    """One observation instance: message -> order (OBR) -> observation (OBX) -> note (NTE)"""
    lab_test_msh_id: int = 0
    sending_application: Optional[str] = None
    sending_facility: Optional[str] = None
    receiving_facility: Optional[str] = None
    message_datetime: Optional[datetime] = None
    nhi_number: Optional[str] = Field(None, description="National health identifier")
    full_name: Optional[str] = None
    dob: Optional[datetime] = None
    gender_name: Optional[str] = None
    patient_id: Optional[str] = None
    practice_id: Optional[str] = None
    msh_inserted_at: Optional[datetime] = None
    mark_as_read: bool = False
    ifi_inbox_update: Optional[datetime] = None
    inbox_received_date: Optional[datetime] = None
    lab_test_obr_id: int = 0
    snomed_code: Optional[str] = None
    panel_type: Optional[str] = None
    message_subject: Optional[str] = None
    observation_datetime: Optional[datetime] = None
    status_change_datetime: Optional[datetime] = None
    appointment_id: Optional[str] = None
    lab_test_obx_id: int = 0
    snomed_code_2: Optional[str] = None
    result_name: Optional[str] = None
    observation_coding_system: Optional[str] = None
    observation_value: Optional[str] = None
    units: Optional[str] = None
    reference_ranges: Optional[str] = None
    abnormal_flag_id: int = 0
    abnormal_flag_description: Optional[str] = None
    lab_test_nte_id: int = 0
    source: Optional[str] = None
    comments: Optional[str] = None
    ethnicity: Optional[str] = None
    priority_id: int = 0
    provider_full_name: Optional[str] = None
    org_name: Optional[str] = None
    folder_name: Optional[str] = None
    prev_date: Optional[datetime] = None
    ob_result_status: Optional[str] = None
    result_category: Optional[str] = None


class ReferralTestData(BaseModel):
    """Referral message header with inbox state"""
    lab_test_msh_id: int = 0
    sending_application: Optional[str] = None
    sending_facility: Optional[str] = None
    receiving_facility: Optional[str] = None
    message_datetime: Optional[datetime] = None
    nhi_number: Optional[str] = None
    version_id: Optional[str] = None
    full_name: Optional[str] = None
    dms_id: Optional[str] = None
    dms_id_key: Optional[str] = None
    dob: Optional[datetime] = None
    gender_name: Optional[str] = None
    patient_id: Optional[str] = None
    practice_id: Optional[str] = None
    msh_inserted_at: Optional[datetime] = None
    mark_as_read: bool = False
    ifi_inbox_update: Optional[datetime] = None
    inbox_received_date: Optional[datetime] = None
    org_name: Optional[str] = None
    folder_name: Optional[str] = None


# ============================================================================
# Patient Demographics
# ============================================================================

class PatientInfo(BaseModel):
    """Latest known demographic snapshot for a patient"""
    full_name: Optional[str] = None
    dob: Optional[datetime] = None
    gender_name: Optional[str] = None
    profile_id: Optional[str] = None
    practice_id: Optional[str] = None
    ethnicity: Optional[str] = None
    patient_name: Optional[str] = None
    nhi_number: Optional[str] = None
    age: Optional[int] = None


# ============================================================================
# Patient Record Bundle
# ============================================================================

class PatientLabTestHeader(BaseModel):
    """First result set of the patient record procedure"""
    lab_test_msh_id: int = 0
    sending_application: Optional[str] = None
    sending_facility: Optional[str] = None
    receiving_facility: Optional[str] = None
    message_datetime: Optional[datetime] = None
    nhi_number: Optional[str] = None
    full_name: Optional[str] = None
    dob: Optional[datetime] = None
    gender_name: Optional[str] = None
    patient_id: Optional[str] = None
    practice_id: Optional[str] = None
    msh_inserted_at: Optional[datetime] = None
    mark_as_read: bool = False
    inbox_updated_at: Optional[datetime] = None
    inbox_received_date: Optional[datetime] = None
    ethnicity: Optional[str] = None
    age: Optional[int] = None


class PatientLabTestDetail(BaseModel):
    """Second result set: one observation line"""
    lab_test_obr_id: int = 0
    snomed_code: Optional[str] = None
    message_subject: Optional[str] = None
    observation_datetime: Optional[datetime] = None
    status_change_datetime: Optional[datetime] = None
    appointment_id: Optional[str] = None
    lab_test_obx_id: int = 0
    snomed_code_2: Optional[str] = None
    result_name: Optional[str] = None
    observation_coding_system: Optional[str] = None
    observation_value: Optional[str] = None
    units: Optional[str] = None
    reference_ranges: Optional[str] = None
    abnormal_flag_id: int = 0
    abnormal_flag_desc: Optional[str] = None
    lab_test_nte_id: int = 0
    source: Optional[str] = None
    comments: Optional[str] = None
    priority_id: int = 0


class PatientAllergy(BaseModel):
    """Third result set: allergy / reaction record"""
    allergy_id: int = 0
    allergy_uuid: Optional[str] = None
    is_reviewed: bool = False
    medtech_id: Optional[int] = None
    onset_date: Optional[datetime] = None
    allergy_type_id: Optional[int] = None
    medicine_type_id: Optional[int] = None
    medicine_short_name: Optional[str] = None
    medicine_classification: Optional[str] = None
    favourite_substance: Optional[str] = None
    disease_name: Optional[str] = None
    substance_type_id: Optional[int] = None
    other: Optional[str] = None
    reaction: Optional[str] = None
    is_active: bool = False
    full_name: Optional[str] = None
    comment: Optional[str] = None
    is_highlight: bool = False
    inserted_at: Optional[datetime] = None
    allergy_type: Optional[str] = None
    name: Optional[str] = None
    is_nka: bool = Field(False, description="No known allergies marker")
    sequence_no: Optional[int] = None
    severity: Optional[str] = None


class PatientDiagnosis(BaseModel):
    """Fourth result set: condition record"""
    diagnosis_id: int = 0
    appointment_id: Optional[int] = None
    disease_name: Optional[str] = None
    diagnosis_date: Optional[datetime] = None
    diagnosis_by: Optional[str] = None
    summary: Optional[str] = None
    is_long_term: bool = False
    add_to_problem: bool = False
    is_highlighted: bool = False
    sequence_no: Optional[int] = Field(None, ge=0, le=255)
    is_active: bool = False
    is_confidential: bool = False
    diagnosis_type: Optional[str] = None
    is_mapped: bool = False
    practice_id: Optional[int] = None
    onset_date: Optional[datetime] = None
    mapped_by: Optional[str] = None
    mapped_date: Optional[datetime] = None
    is_stopped: bool = False
    snomed_disease_name: Optional[str] = None
    patient_id: Optional[int] = None
    practice_location_id: Optional[int] = None
    is_primary_diagnosis: bool = False
    diagnose_status_name: Optional[str] = None


class PatientLabTestResponse(BaseModel):
    """Everything about one patient from a single procedure call"""
    header: Optional[PatientLabTestHeader] = None
    lab_test_details: List[PatientLabTestDetail] = Field(default_factory=list)
    allergies: List[PatientAllergy] = Field(default_factory=list)
    diagnoses: List[PatientDiagnosis] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when no result set produced a record"""
        return (
            self.header is None
            and not self.lab_test_details
            and not self.allergies
            and not self.diagnoses
        )


# ============================================================================
# Observations and Medications
# ============================================================================

class PatientLabObservation(BaseModel):
    """Grouped lab observation returned by the observation search"""
    patient_id: int = 0
    message_subject: Optional[str] = None
    result_name: Optional[str] = None
    observation_coding_system: Optional[str] = None
    observation_datetime: Optional[datetime] = None
    observation_value: Optional[str] = None
    units: Optional[str] = None
    reference_ranges: Optional[str] = None
    abnormal_flag_id: Optional[int] = None
    abnormal_flag_desc: Optional[str] = None
    lab_test_nte_id: Optional[int] = None
    source: Optional[str] = None
    comments: Optional[str] = None


class PatientLabObservationHistory(BaseModel):
    """Observation history row for one result name / panel"""
    lab_test_obr_id: int = 0
    snomed_code: Optional[str] = None
    message_subject: Optional[str] = None
    panel_type: Optional[str] = None
    observation_datetime: Optional[datetime] = None
    status_change_datetime: Optional[datetime] = None
    appointment_id: Optional[int] = None
    lab_test_obx_id: int = 0
    snomed_code_2: Optional[str] = None
    result_name: Optional[str] = None
    observation_coding_system: Optional[str] = None
    observation_value: Optional[str] = None
    units: Optional[str] = None
    reference_ranges: Optional[str] = None
    abnormal_flag_id: int = 0
    abnormal_flag_desc: Optional[str] = None
    lab_test_nte_id: Optional[int] = None
    source: Optional[str] = None
    comments: Optional[str] = None
    priority_id: int = 0
    provider_full_name: Optional[str] = None
    patient_full_address: Optional[str] = None


class PatientMedication(BaseModel):
    """One page entry of a patient's medication list"""
    patient_id: int = 0
    medication_id: int = 0
    last_rx_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    provider_name: Optional[str] = None
    medicine_name: Optional[str] = None
    take: Optional[str] = None
    frequency_id: Optional[int] = None
    route_id: Optional[int] = None
    quantity: Optional[int] = None
    duration: Optional[int] = None
    duration_type: Optional[str] = None
    directions: Optional[str] = None
    medication_category: Optional[str] = None


# ============================================================================
# Documents
# ============================================================================

class DocumentData(BaseModel):
    """Stored document row including the binary payload"""
    document_id: int = 0
    document_type_id: int = 0
    document_name: Optional[str] = None
    description: Optional[str] = None
    is_deleted: bool = False
    document_type: Optional[str] = Field(None, description="PDF, RTF, TXT, PNG, ...")
    document_bytes: Optional[bytes] = None
    inbox_folder_item_id: Optional[int] = None


class DocumentResult(BaseModel):
    """Document metadata with base64 content and extracted text"""
    document_id: int = 0
    document_type_id: int = 0
    document_name: Optional[str] = None
    description: Optional[str] = None
    is_deleted: bool = False
    document_type: Optional[str] = None
    inbox_folder_item_id: Optional[int] = None
    document_base64: Optional[str] = None
    document_text: Optional[str] = Field(None, description="Null when extraction is unsupported or fails")


# ============================================================================
# External Reference Data
# ============================================================================

class DiagnosisData(BaseModel):
    """ICD-10-CM code and name"""
    code: str = ""
    name: str = ""
    description: str = ""


class DiagnosisSearchResponse(BaseModel):
    """Diagnosis search results tagged with the search term"""
    results: List[DiagnosisData] = Field(default_factory=list)
    total_count: int = 0
    query: str = ""


class MedicationData(BaseModel):
    """RxNorm concept"""
    name: str = ""
    concept_id: str = ""
    vocabulary: str = ""
    category: str = ""


class MedicationSearchResponse(BaseModel):
    """Medication search results tagged with the search term"""
    results: List[MedicationData] = Field(default_factory=list)
    total_count: int = 0
    query: str = ""
