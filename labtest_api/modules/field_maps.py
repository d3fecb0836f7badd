"""
Lab Test API - Column Maps
Declarative column -> attribute lists for every result-row shape
"""

from labtest_api.modules.row_mapping import ColumnKind as K, FieldMap as F, RowMapper
from labtest_api.schemas import (
    DocumentData,
    LabTestData,
    PatientAllergy,
    PatientDiagnosis,
    PatientInfo,
    PatientLabObservation,
    PatientLabObservationHistory,
    PatientLabTestDetail,
    PatientLabTestHeader,
    PatientMedication,
    ReferralTestData,
)


# =============================================================================
# Lab Result Rows
# =============================================================================

LAB_TEST_DATA = RowMapper(LabTestData, [
    F("LabTestMshID", "lab_test_msh_id", K.INT32),
    F("SendingApplication", "sending_application"),
    F("SendingFacility", "sending_facility"),
    F("ReceivingFacility", "receiving_facility"),
    F("MessageDatetime", "message_datetime", K.DATETIME),
    F("NHINumber", "nhi_number"),
    F("FullName", "full_name"),
    F("DOB", "dob", K.DATETIME),
    F("GenderName", "gender_name"),
    F("PatientID", "patient_id"),
    F("PracticeID", "practice_id"),
    F("MshInsertedAt", "msh_inserted_at", K.DATETIME),
    F("MarkasRead", "mark_as_read", K.BOOL),
    F("IFIInboxUpdate", "ifi_inbox_update", K.DATETIME),
    # Older procedure versions spell this column "inboxrecevieddate"
    F("InboxReceviedDate", "inbox_received_date", K.DATETIME),
    F("InboxReceivedDate", "inbox_received_date", K.DATETIME),
    F("LabTestOBRID", "lab_test_obr_id", K.INT32),
    F("SnomedCode", "snomed_code"),
    F("PanelType", "panel_type"),
    F("MesageSubject", "message_subject"),
    F("MessageSubject", "message_subject"),
    F("ObservationDateTime", "observation_datetime", K.DATETIME),
    F("StatusChangeDateTime", "status_change_datetime", K.DATETIME),
    F("AppointmentID", "appointment_id"),
    F("LabTestOBXID", "lab_test_obx_id", K.INT64),
    F("SnomedCode_2", "snomed_code_2"),
    F("ResultName", "result_name"),
    F("ObservationCodingSystem", "observation_coding_system"),
    F("ObservationValue", "observation_value"),
    F("Units", "units"),
    F("ReferenceRanges", "reference_ranges"),
    F("AbnormalFlagID", "abnormal_flag_id", K.INT32),
    F("AbnormalFlagDesc", "abnormal_flag_description"),
    F("AbnormalFlagDescription", "abnormal_flag_description"),
    F("LabTestNTEID", "lab_test_nte_id", K.INT32),
    F("Source", "source"),
    F("Comments", "comments"),
    F("Ethnicity", "ethnicity"),
    F("PriorityID", "priority_id", K.INT32),
    F("ProviderFullName", "provider_full_name"),
    F("OrgName", "org_name"),
    F("FolderName", "folder_name"),
    F("PrevDate", "prev_date", K.DATETIME),
    F("OBResultStatus", "ob_result_status"),
    F("ResultCategory", "result_category"),
])

# Demographics query used to decorate per-patient procedure rows
LAB_TEST_DEMOGRAPHICS = RowMapper(LabTestData, [
    F("NHINumber", "nhi_number"),
    F("FullName", "full_name"),
    F("DOB", "dob", K.DATETIME),
    F("GenderName", "gender_name"),
    F("PatientID", "patient_id", K.INT_STRING),
    F("PracticeID", "practice_id", K.INT_STRING),
    F("Ethnicity", "ethnicity"),
])

REFERRAL_TEST_DATA = RowMapper(ReferralTestData, [
    F("LabTestMshID", "lab_test_msh_id", K.INT32),
    F("SendingApplication", "sending_application"),
    F("SendingFacility", "sending_facility"),
    F("ReceivingFacility", "receiving_facility"),
    F("MessageDatetime", "message_datetime", K.DATETIME),
    F("NHINumber", "nhi_number"),
    F("VersionId", "version_id"),
    F("FullName", "full_name"),
    F("DMSID", "dms_id"),
    F("DMSIDKey", "dms_id_key"),
    F("DOB", "dob", K.DATETIME),
    F("GenderName", "gender_name"),
    F("PatientID", "patient_id"),
    F("PracticeID", "practice_id"),
    F("MshInsertedAt", "msh_inserted_at", K.DATETIME),
    F("MarkasRead", "mark_as_read", K.BOOL),
    F("IFIInboxUpdate", "ifi_inbox_update", K.DATETIME),
    F("InboxReceivedDate", "inbox_received_date", K.DATETIME),
    F("OrgName", "org_name"),
    F("FolderName", "folder_name"),
])


# =============================================================================
# Patient Demographics
# =============================================================================

PATIENT_INFO = RowMapper(PatientInfo, [
    F("FullName", "full_name"),
    F("DOB", "dob", K.DATETIME),
    F("GenderName", "gender_name"),
    F("ProfileID", "profile_id", K.INT_STRING),
    F("PracticeID", "practice_id", K.INT_STRING),
    F("Ethnicity", "ethnicity"),
    F("PatientName", "patient_name"),
    F("NhiNumber", "nhi_number"),
    F("Age", "age", K.INT32),
])


# =============================================================================
# Patient Record Bundle (GetPatientLabTestData result sets 1-4)
# =============================================================================

PATIENT_HEADER = RowMapper(PatientLabTestHeader, [
    F("LabTestMshID", "lab_test_msh_id", K.INT32),
    F("SendingApplication", "sending_application"),
    F("SendingFacility", "sending_facility"),
    F("ReceivingFacility", "receiving_facility"),
    F("MessageDatetime", "message_datetime", K.DATETIME),
    F("NHINumber", "nhi_number"),
    F("FullName", "full_name"),
    F("DOB", "dob", K.DATETIME),
    F("GenderName", "gender_name"),
    F("PatientID", "patient_id", K.INT_STRING),
    F("PracticeID", "practice_id", K.INT_STRING),
    F("MshInsertedAt", "msh_inserted_at", K.DATETIME),
    F("MarkasRead", "mark_as_read", K.BOOL),
    F("InboxUpdatedAt", "inbox_updated_at", K.DATETIME),
    F("InboxReceivedDate", "inbox_received_date", K.DATETIME),
    F("Ethnicity", "ethnicity"),
    F("Age", "age", K.INT32),
])

PATIENT_DETAIL = RowMapper(PatientLabTestDetail, [
    F("LabTestOBRID", "lab_test_obr_id", K.INT32),
    F("SnomedCode", "snomed_code"),
    F("MessageSubject", "message_subject"),
    F("ObservationDateTime", "observation_datetime", K.DATETIME),
    F("StatusChangeDateTime", "status_change_datetime", K.DATETIME),
    F("AppointmentID", "appointment_id", K.INT_STRING),
    F("LabTestOBXID", "lab_test_obx_id", K.INT64),
    F("SnomedCode_2", "snomed_code_2"),
    F("ResultName", "result_name"),
    F("ObservationCodingSystem", "observation_coding_system"),
    F("ObservationValue", "observation_value"),
    F("Units", "units"),
    F("ReferenceRanges", "reference_ranges"),
    F("AbnormalFlagID", "abnormal_flag_id", K.INT32),
    F("AbnormalFlagDesc", "abnormal_flag_desc"),
    F("LabTestNTEID", "lab_test_nte_id", K.INT32),
    F("Source", "source"),
    F("Comments", "comments"),
    F("PriorityID", "priority_id", K.INT32),
])

PATIENT_ALLERGY = RowMapper(PatientAllergy, [
    F("AllergyID", "allergy_id", K.INT32),
    F("AllergyUUID", "allergy_uuid"),
    F("IsReviewed", "is_reviewed", K.BOOL),
    F("MedTechID", "medtech_id", K.INT32),
    F("OnsetDate", "onset_date", K.DATETIME),
    F("AllergyTypeID", "allergy_type_id", K.INT32),
    F("MedicineTypeID", "medicine_type_id", K.INT32),
    F("MedicineShortName", "medicine_short_name"),
    F("MedicineClassification", "medicine_classification"),
    F("FavouriteSubstance", "favourite_substance"),
    F("DiseaseName", "disease_name"),
    F("SubstanceTypeId", "substance_type_id", K.INT32),
    F("Other", "other"),
    F("Reaction", "reaction"),
    F("IsActive", "is_active", K.BOOL),
    F("FullName", "full_name"),
    F("Comment", "comment"),
    F("IsHighlight", "is_highlight", K.BOOL),
    F("InsertedAt", "inserted_at", K.DATETIME),
    F("AllergyType", "allergy_type"),
    F("Name", "name"),
    F("IsNKA", "is_nka", K.BOOL),
    F("SequenceNo", "sequence_no", K.INT32),
    F("Severity", "severity"),
])

PATIENT_DIAGNOSIS = RowMapper(PatientDiagnosis, [
    F("DiagnosisID", "diagnosis_id", K.INT32),
    F("AppointmentID", "appointment_id", K.INT32),
    F("DiseaseName", "disease_name"),
    F("DiagnosisDate", "diagnosis_date", K.DATETIME),
    F("DiagnosisBy", "diagnosis_by", K.INT_STRING),
    F("Summary", "summary"),
    F("IsLongTerm", "is_long_term", K.BOOL),
    F("AddtoProblem", "add_to_problem", K.BOOL),
    F("IsHighlighted", "is_highlighted", K.BOOL),
    F("SequenceNo", "sequence_no", K.BYTE),
    F("IsActive", "is_active", K.BOOL),
    F("IsConfidential", "is_confidential", K.BOOL),
    F("DiagnosisType", "diagnosis_type"),
    F("IsMapped", "is_mapped", K.BOOL),
    F("PracticeID", "practice_id", K.INT32),
    F("OnSetDate", "onset_date", K.DATETIME),
    F("MappedBy", "mapped_by", K.INT_STRING),
    F("MappedDate", "mapped_date", K.DATETIME),
    F("IsStopped", "is_stopped", K.BOOL),
    F("SnomedDiseaseName", "snomed_disease_name"),
    F("PatientID", "patient_id", K.INT32),
    F("PracticeLocationID", "practice_location_id", K.INT32),
    F("IsPrimaryDiagnosis", "is_primary_diagnosis", K.BOOL),
    F("DiagnoseStatusName", "diagnose_status_name"),
])


# =============================================================================
# Observations, Medications and Documents
# =============================================================================

PATIENT_OBSERVATION = RowMapper(PatientLabObservation, [
    F("PatientID", "patient_id", K.INT32),
    F("MessageSubject", "message_subject"),
    F("ResultName", "result_name"),
    F("ObservationCodingSystem", "observation_coding_system"),
    F("ObservationDateTime", "observation_datetime", K.DATETIME),
    F("ObservationValue", "observation_value"),
    F("Units", "units"),
    F("ReferenceRanges", "reference_ranges"),
    F("AbnormalFlagID", "abnormal_flag_id", K.INT32),
    F("AbnormalFlagDesc", "abnormal_flag_desc"),
    F("LabTestNTEID", "lab_test_nte_id", K.INT64),
    F("Source", "source"),
    F("Comments", "comments"),
])

PATIENT_OBSERVATION_HISTORY = RowMapper(PatientLabObservationHistory, [
    F("LabTestOBRID", "lab_test_obr_id", K.INT32),
    F("SnomedCode", "snomed_code"),
    F("MessageSubject", "message_subject"),
    F("PanelType", "panel_type"),
    F("ObservationDateTime", "observation_datetime", K.DATETIME),
    F("StatusChangeDateTime", "status_change_datetime", K.DATETIME),
    F("AppointmentID", "appointment_id", K.INT32),
    F("LabTestOBXID", "lab_test_obx_id", K.INT32),
    F("SnomedCode_2", "snomed_code_2"),
    F("ResultName", "result_name"),
    F("ObservationCodingSystem", "observation_coding_system"),
    F("ObservationValue", "observation_value"),
    F("Units", "units"),
    F("ReferenceRanges", "reference_ranges"),
    F("AbnormalFlagID", "abnormal_flag_id", K.INT32),
    F("AbnormalFlagDesc", "abnormal_flag_desc"),
    F("LabTestNTEID", "lab_test_nte_id", K.INT32),
    F("Source", "source"),
    F("Comments", "comments"),
    F("PriorityID", "priority_id", K.INT32),
    F("ProviderFullName", "provider_full_name"),
    F("PatientFullAddress", "patient_full_address"),
])

PATIENT_MEDICATION = RowMapper(PatientMedication, [
    F("PatientID", "patient_id", K.INT32),
    F("MedicationID", "medication_id", K.INT32),
    F("LastRXDate", "last_rx_date", K.DATETIME),
    F("StartDate", "start_date", K.DATETIME),
    F("ProviderName", "provider_name"),
    F("MedicineName", "medicine_name"),
    F("Take", "take"),
    F("FrequencyID", "frequency_id", K.INT32),
    F("RouteID", "route_id", K.INT32),
    F("Quantity", "quantity", K.INT32),
    F("Duration", "duration", K.INT32),
    F("DurationType", "duration_type"),
    F("Directions", "directions"),
    F("MedicationCategory", "medication_category"),
])

DOCUMENT_DATA = RowMapper(DocumentData, [
    F("DocumentID", "document_id", K.INT32),
    F("DocumentTypeID", "document_type_id", K.INT32),
    F("DocumentName", "document_name"),
    F("Description", "description"),
    F("IsDeleted", "is_deleted", K.BOOL),
    F("DocumentType", "document_type"),
    F("DocumentBytes", "document_bytes", K.BINARY),
    F("InboxFolderItemID", "inbox_folder_item_id", K.INT32),
])
