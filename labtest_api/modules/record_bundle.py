"""
Lab Test API - Patient Record Assembly
Builds the composite patient record from the ordered result sets of
GetPatientLabTestData: header, lab test details, allergies, diagnoses
"""

import logging
from typing import Any, Optional

from labtest_api.modules.field_maps import (
    PATIENT_ALLERGY,
    PATIENT_DETAIL,
    PATIENT_DIAGNOSIS,
    PATIENT_HEADER,
)
from labtest_api.schemas import PatientLabTestResponse

logger = logging.getLogger(__name__)


# Result sets 2-4, in procedure order
RECORD_SECTIONS = (
    ("lab_test_details", PATIENT_DETAIL, "lab test detail"),
    ("allergies", PATIENT_ALLERGY, "allergy"),
    ("diagnoses", PATIENT_DIAGNOSIS, "diagnosis"),
)


def read_patient_record(stream: Any, patient_id: Optional[int] = None) -> PatientLabTestResponse:
    """
    Assemble a patient record from a positional result stream

    Args:
        stream: ResultStream positioned on the first result set
        patient_id: Patient ID, for logging

    Returns:
        PatientLabTestResponse. The header is absent when the first result
        set has no usable row; a stream that ends early leaves the remaining
        lists empty; a row that fails to map is skipped.
    """
    response = PatientLabTestResponse()

    header_rows = stream.rows()
    if header_rows:
        if len(header_rows) > 1:
            logger.debug(f"Header result set has {len(header_rows)} rows, using the first")
        try:
            response.header = PATIENT_HEADER.map(header_rows[0])
        except ValueError as e:
            # Details, allergies and diagnoses are still read
            logger.error(f"Error reading header data for patient {patient_id}: {e}")
    else:
        logger.warning(f"No header information found for patient {patient_id}")

    for attribute, mapper, label in RECORD_SECTIONS:
        if not stream.next_result():
            logger.warning(f"Result stream ended before {label} records for patient {patient_id}")
            break
        setattr(response, attribute, mapper.map_all(stream.rows(), label))

    logger.info(
        f"Patient {patient_id} record: header={'yes' if response.header else 'no'}, "
        f"details={len(response.lab_test_details)}, allergies={len(response.allergies)}, "
        f"diagnoses={len(response.diagnoses)}"
    )
    return response
