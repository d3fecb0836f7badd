"""
Lab Test API - Lab Test Service
Builds procedure calls and queries, executes them and maps the results
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from labtest_api.config import Settings
from labtest_api.modules.field_maps import (
    DOCUMENT_DATA,
    LAB_TEST_DATA,
    LAB_TEST_DEMOGRAPHICS,
    PATIENT_INFO,
    PATIENT_MEDICATION,
    PATIENT_OBSERVATION,
    PATIENT_OBSERVATION_HISTORY,
    REFERRAL_TEST_DATA,
)
from labtest_api.modules.record_bundle import read_patient_record
from labtest_api.modules.row_mapping import RowMapper
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
from labtest_api.services.database import Database, ProcedureCall
from labtest_api.services.document_parser import DocumentParserService

logger = logging.getLogger(__name__)


# =============================================================================
# Stored Procedures
# =============================================================================

LAB_TEST_DATA_PROCEDURE = "[dbo].[GetLabTestDataWithJoins]"
PATIENT_RECORD_PROCEDURE = "[dbo].[GetPatientLabTestData]"
PATIENT_INFO_PROCEDURE = "[dbo].[GetPatientnameforLAB]"
OBSERVATIONS_PROCEDURE = "[dbo].[Usp_GetPatientGroupLabData_Priority]"
OBSERVATION_HISTORY_PROCEDURE = "[dbo].[Usp_GetPatientLabObservationHistory]"
MEDICATIONS_PROCEDURE = "[dbo].[Usp_GetPatientMedicationList]"
INDIVIDUAL_PROCEDURE = "[dbo].[GetLabTestDataWithindividuals]"
REFERRALS_PROCEDURE = "[dbo].[GetReferralsTestDataWithJoins]"
DOCUMENT_PROCEDURE = "[dbo].[uspDocumentGetByDocumentKey]"

PRIORITY_BUCKETS = {
    "incomplete-high-priority": "[dbo].[Usp_GetIncompleteHighPriorityLabData]",
    "incomplete-low-priority": "[dbo].[Usp_GetIncompleteLowPriorityLabData]",
    "complete-high-priority": "[dbo].[Usp_GetCompleteHighPriorityLabData]",
    "complete-low-priority": "[dbo].[Usp_GetCompleteLowPriorityLabData]",
}

# Base demographics for the per-patient procedure rows
PATIENT_DEMOGRAPHICS_SQL = """
SELECT DISTINCT
    msh.InternalPatientID AS NHINumber,
    CASE WHEN tp.FullName IS NULL
        THEN CONCAT(msh.PatientFamilyName, ' ', msh.PatientGivenName, ' ', msh.PatientMiddelName)
        ELSE tp.FullName
    END AS FullName,
    msh.DOB,
    tg.GenderName,
    msh.PatientID,
    msh.PracticeID
FROM appointment.tbllabtest_msh AS msh
LEFT JOIN [Lookup].[tblGender] tg ON tg.GenderCode = msh.Gender
LEFT JOIN profile.tblprofile tp ON tp.Profileid = msh.PatientID
WHERE msh.PatientID = ?
"""


# =============================================================================
# Sample Data
# =============================================================================

def sample_lab_test_data() -> List[LabTestData]:
    """Fixed two-patient dataset served when the store returns nothing"""
    now = datetime.now()
    shared = dict(
        sending_application="LAB_SYSTEM",
        sending_facility="MAIN_LAB",
        receiving_facility="HOSPITAL_A",
        practice_id="PRACTICE001",
        source="LAB",
        abnormal_flag_id=0,
    )
    return [
        LabTestData(
            lab_test_msh_id=1,
            message_datetime=now - timedelta(days=1),
            nhi_number="NHI123456789",
            full_name="John Doe",
            dob=datetime(1980, 1, 1),
            gender_name="Male",
            patient_id="P001",
            msh_inserted_at=now,
            mark_as_read=False,
            lab_test_obr_id=1,
            snomed_code="TEST001",
            message_subject="Blood Test Results",
            observation_datetime=now,
            lab_test_obx_id=1,
            result_name="Hemoglobin",
            observation_value="14.2",
            units="g/dL",
            reference_ranges="12.0-16.0",
            comments="Normal result",
            priority_id=3,
            **shared,
        ),
        LabTestData(
            lab_test_msh_id=2,
            message_datetime=now - timedelta(days=2),
            nhi_number="NHI987654321",
            full_name="Jane Smith",
            dob=datetime(1985, 5, 15),
            gender_name="Female",
            patient_id="P002",
            msh_inserted_at=now - timedelta(days=1),
            mark_as_read=True,
            lab_test_obr_id=2,
            snomed_code="TEST002",
            message_subject="Cholesterol Test",
            observation_datetime=now - timedelta(days=1),
            lab_test_obx_id=2,
            result_name="Total Cholesterol",
            observation_value="180",
            units="mg/dL",
            reference_ranges="<200",
            comments="Good cholesterol level",
            priority_id=2,
            **shared,
        ),
    ]


# =============================================================================
# In-Memory Filters
# =============================================================================

def naive_datetime(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps carry no offset
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None)


def filter_lab_test_data(
    records: Iterable[LabTestData],
    patient_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    practice_id: Optional[str] = None,
) -> List[LabTestData]:
    """
    Conjunctive filter over lab rows; absent criteria are skipped

    Date bounds are inclusive and compare against message_datetime. A row
    without a message datetime never satisfies a date bound.
    """
    start_date, end_date = naive_datetime(start_date), naive_datetime(end_date)
    results = []
    for record in records:
        if patient_id is not None and record.patient_id != patient_id:
            continue
        if practice_id is not None and record.practice_id != practice_id:
            continue
        if start_date is not None or end_date is not None:
            message_datetime = naive_datetime(record.message_datetime)
            if message_datetime is None:
                continue
            if start_date is not None and message_datetime < start_date:
                continue
            if end_date is not None and message_datetime > end_date:
                continue
        results.append(record)
    return results


# =============================================================================
# Lab Test Service
# =============================================================================

class LabTestService:
    """
    Read operations over the lab-test store

    Public methods are coroutines; the blocking DBAPI work for each one runs
    in the threadpool on its own pooled connection. Database failures are
    logged and surface as an empty list or None.
    """

    def __init__(self, settings: Settings, database: Database,
                 document_parser: Optional[DocumentParserService] = None):
        self.settings = settings
        self.database = database
        self.document_parser = document_parser or DocumentParserService()

    # =========================================================================
    # Blocking Helpers
    # =========================================================================

    def _read_list(self, procedure: ProcedureCall, mapper: RowMapper, label: str) -> list:
        try:
            rows = self.database.call_rows(procedure)
        except Exception as e:
            logger.error(f"Error executing {procedure.name} for {label} records: {e}", exc_info=True)
            return []
        records = mapper.map_all(rows, label)
        logger.info(f"✓ Retrieved {len(records)} {label} records from {procedure.name}")
        return records

    def _read_patient_info(self, patient_id: int) -> Optional[PatientInfo]:
        procedure = ProcedureCall(PATIENT_INFO_PROCEDURE, [("@pPatientID", patient_id)])
        try:
            rows = self.database.call_rows(procedure)
        except Exception as e:
            logger.error(f"Error getting patient info for patient {patient_id}: {e}", exc_info=True)
            return None
        if not rows:
            logger.info(f"No patient info found for patient {patient_id}")
            return None
        try:
            return PATIENT_INFO.map(rows[0])
        except ValueError as e:
            logger.error(f"Error reading patient info for patient {patient_id}: {e}")
            return None

    def _read_patient_record(self, patient_id: int,
                             lab_test_msh_id: Optional[int]) -> Optional[PatientLabTestResponse]:
        procedure = ProcedureCall(PATIENT_RECORD_PROCEDURE, [
            ("@pPatientID", patient_id),
            ("@pLabTestMshID", lab_test_msh_id),
        ])
        try:
            with self.database.call(procedure, timeout=self.settings.patient_bundle_timeout) as stream:
                return read_patient_record(stream, patient_id)
        except Exception as e:
            logger.error(f"Error getting patient record for patient {patient_id}: {e}", exc_info=True)
            return None

    def _read_patient_lab_rows(self, patient_id: int) -> List[LabTestData]:
        procedure = ProcedureCall(PATIENT_RECORD_PROCEDURE, [
            ("@pPatientID", patient_id),
            ("@pLabTestMshID", None),
        ])
        try:
            with self.database.cursor(self.settings.patient_bundle_timeout) as cursor:
                demographics = self._read_demographics(cursor, patient_id)
                stream = self.database.execute_on(cursor, procedure.sql, procedure.values)
                # Observation lines follow the header result set
                if stream.next_result():
                    rows = stream.rows()
                else:
                    rows = []
        except Exception as e:
            logger.error(f"Error getting lab rows for patient {patient_id}: {e}", exc_info=True)
            return []
        records = LAB_TEST_DATA.map_all(rows, "patient lab test", **demographics)
        logger.info(f"✓ Retrieved {len(records)} lab test records for patient {patient_id}")
        return records

    def _read_demographics(self, cursor, patient_id: int) -> dict:
        try:
            rows = self.database.execute_on(cursor, PATIENT_DEMOGRAPHICS_SQL, (str(patient_id),)).rows()
        except Exception as e:
            logger.warning(f"Demographics lookup failed for patient {patient_id}: {e}")
            return {}
        if not rows:
            return {}
        return LAB_TEST_DEMOGRAPHICS.values(rows[0])

    def _read_documents(self, document_key: str, practice_id: int) -> List[DocumentResult]:
        procedure = ProcedureCall(
            DOCUMENT_PROCEDURE,
            [("@DocumentKey", document_key), ("@PracticeID", practice_id)],
            named=True,
        )
        documents = self._read_list(procedure, DOCUMENT_DATA, "document")
        return [self.document_parser.to_result(document) for document in documents]

    # =========================================================================
    # Lab Test Data
    # =========================================================================

    async def get_lab_test_data(self) -> List[LabTestData]:
        """All lab rows, or the sample dataset when the store returns none"""
        records = await self.database.run(
            self._read_list, ProcedureCall(LAB_TEST_DATA_PROCEDURE), LAB_TEST_DATA, "lab test"
        )
        if records or not self.settings.sample_data_fallback:
            return records
        logger.warning("No lab test data returned from the database, serving sample data")
        return sample_lab_test_data()

    async def get_lab_test_data_by_patient(self, patient_id: str) -> List[LabTestData]:
        return filter_lab_test_data(await self.get_lab_test_data(), patient_id=patient_id)

    async def get_lab_test_data_by_date_range(self, start_date: datetime,
                                              end_date: datetime) -> List[LabTestData]:
        records = await self.get_lab_test_data()
        return filter_lab_test_data(records, start_date=start_date, end_date=end_date)

    async def get_lab_test_data_with_filters(
        self,
        patient_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        practice_id: Optional[str] = None,
    ) -> List[LabTestData]:
        records = await self.get_lab_test_data()
        return filter_lab_test_data(records, patient_id, start_date, end_date, practice_id)

    async def get_patient_lab_test_data(self, patient_id: int) -> List[LabTestData]:
        """Per-patient procedure rows decorated with the patient's demographics"""
        return await self.database.run(self._read_patient_lab_rows, patient_id)

    # =========================================================================
    # Patient Record
    # =========================================================================

    async def get_patient_info(self, patient_id: int) -> Optional[PatientInfo]:
        return await self.database.run(self._read_patient_info, patient_id)

    async def get_patient_record(self, patient_id: int,
                                 lab_test_msh_id: Optional[int] = None) -> Optional[PatientLabTestResponse]:
        """
        Header, lab test details, allergies and diagnoses from one procedure call

        Returns None when the call fails or produces no records at all.
        """
        record = await self.database.run(self._read_patient_record, patient_id, lab_test_msh_id)
        if record is None or record.is_empty:
            return None
        return record

    async def get_patient_allergies(self, patient_id: int) -> List[PatientAllergy]:
        record = await self.get_patient_record(patient_id)
        return record.allergies if record else []

    async def get_patient_diagnoses(self, patient_id: int) -> List[PatientDiagnosis]:
        record = await self.get_patient_record(patient_id)
        return record.diagnoses if record else []

    # =========================================================================
    # Observations and Medications
    # =========================================================================

    async def get_patient_observations(self, patient_id: int, observation_text: Optional[str] = None,
                                       practice_id: Optional[int] = None) -> List[PatientLabObservation]:
        procedure = ProcedureCall(
            OBSERVATIONS_PROCEDURE,
            [
                ("@PatientID", patient_id),
                ("@ObservationText", observation_text),
                ("@PracticeID", practice_id),
            ],
            named=True,
        )
        return await self.database.run(self._read_list, procedure, PATIENT_OBSERVATION, "observation")

    async def get_observation_history(
        self,
        patient_id: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        panel_type_filter: Optional[str] = None,
    ) -> List[PatientLabObservationHistory]:
        procedure = ProcedureCall(
            OBSERVATION_HISTORY_PROCEDURE,
            [
                ("@PatientID", patient_id),
                ("@StartDate", naive_datetime(start_date)),
                ("@EndDate", naive_datetime(end_date)),
                ("@PanelTypeFilter", panel_type_filter),
            ],
            named=True,
        )
        return await self.database.run(
            self._read_list, procedure, PATIENT_OBSERVATION_HISTORY, "observation history"
        )

    async def get_patient_medications(self, patient_id: int, practice_id: int, practice_location_id: int,
                                      page_no: int = 1, page_size: int = 20) -> List[PatientMedication]:
        procedure = ProcedureCall(
            MEDICATIONS_PROCEDURE,
            [
                ("@PatientID", patient_id),
                ("@PracticeID", practice_id),
                ("@PracticeLocationID", practice_location_id),
                ("@PageNo", page_no),
                ("@PageSize", page_size),
            ],
            named=True,
        )
        return await self.database.run(self._read_list, procedure, PATIENT_MEDICATION, "medication")

    # =========================================================================
    # Inbox Lists and Documents
    # =========================================================================

    async def get_individual_lab_test_data(self, patient_id: int) -> List[LabTestData]:
        procedure = ProcedureCall(INDIVIDUAL_PROCEDURE, [("@PatientID", patient_id)], named=True)
        return await self.database.run(self._read_list, procedure, LAB_TEST_DATA, "individual lab test")

    async def get_referrals(self) -> List[ReferralTestData]:
        return await self.database.run(
            self._read_list, ProcedureCall(REFERRALS_PROCEDURE), REFERRAL_TEST_DATA, "referral"
        )

    async def get_documents(self, document_key: str, practice_id: int) -> List[DocumentResult]:
        """Documents for a key, with base64 payload and extracted text"""
        return await self.database.run(self._read_documents, document_key, practice_id)

    async def get_priority_bucket(self, bucket: str) -> List[LabTestData]:
        """Lab rows for one of the fixed completion/priority buckets"""
        procedure = ProcedureCall(PRIORITY_BUCKETS[bucket])
        return await self.database.run(self._read_list, procedure, LAB_TEST_DATA, bucket)
