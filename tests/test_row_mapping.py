"""
Unit tests for result row mapping
"""

from datetime import datetime
from decimal import Decimal

import pytest

from labtest_api.modules.field_maps import LAB_TEST_DATA, PATIENT_DIAGNOSIS, PATIENT_INFO
from labtest_api.modules.row_mapping import (
    ColumnKind,
    FieldMap,
    ResultRow,
    RowMapper,
    RowMappingError,
    sql_type_name,
)
from labtest_api.schemas import LabTestData, PatientInfo


class TestResultRow:
    """Test column lookup and typed getters"""

    def test_ordinal_is_case_insensitive(self):
        """Test column lookup ignores case"""
        row = ResultRow.from_values({"PatientID": 5, "FullName": "Ana"})

        assert row.ordinal("patientid") == 0
        assert row.ordinal("FULLNAME") == 1
        assert row.ordinal("Missing") is None

    def test_first_duplicate_column_wins(self):
        """Test duplicate column names resolve to the first occurrence"""
        row = ResultRow([("Name", "nvarchar"), ("name", "nvarchar")], ["first", "second"])

        assert row.get_string(row.ordinal("NAME")) == "first"

    def test_integer_from_integer_column(self):
        """Test integer columns read directly"""
        row = ResultRow([("Id", "int")], [42])

        assert row.get_int32(0) == 42

    def test_integer_from_decimal_column_truncates(self):
        """Test decimal columns are truncated toward zero"""
        row = ResultRow([("Id", "decimal"), ("Neg", "numeric")], [Decimal("7.9"), Decimal("-7.9")])

        assert row.get_int32(0) == 7
        assert row.get_int32(1) == -7

    def test_integer_from_text_column(self):
        """Test numeric text is parsed; other text yields None"""
        row = ResultRow(
            [("A", "nvarchar"), ("B", "varchar"), ("C", "nvarchar")],
            [" 123 ", "12a", "99999999999"],
        )

        assert row.get_int32(0) == 123
        assert row.get_int32(1) is None
        assert row.get_int32(2) is None
        assert row.get_int64(2) == 99999999999

    def test_integer_from_bigint_wraps_to_width(self):
        """Test oversized numeric values keep the low bits of the target width"""
        row = ResultRow([("Big", "bigint")], [(1 << 32) + 5])

        assert row.get_int32(0) == 5
        assert row.get_int64(0) == (1 << 32) + 5

    def test_byte_reads_unsigned(self):
        """Test byte reads of tinyint and text"""
        row = ResultRow([("Seq", "tinyint"), ("Text", "nvarchar")], [200, "300"])

        assert row.get_byte(0) == 200
        assert row.get_byte(1) is None

    def test_null_values_read_as_none(self):
        """Test every getter returns None for SQL NULL"""
        row = ResultRow([("X", "int")], [None])

        assert row.is_null(0)
        assert row.get_int32(0) is None
        assert row.get_string(0) is None
        assert row.get_bool(0) is None
        assert row.get_datetime(0) is None

    def test_bool_from_bit_and_text(self):
        """Test boolean reads of bit and textual flags"""
        row = ResultRow([("A", "bit"), ("B", "nvarchar"), ("C", "nvarchar")], [True, "Y", "0"])

        assert row.get_bool(0) is True
        assert row.get_bool(1) is True
        assert row.get_bool(2) is False

    def test_bool_rejects_unknown_text(self):
        """Test unrecognised boolean text raises"""
        row = ResultRow([("A", "nvarchar")], ["maybe"])

        with pytest.raises(RowMappingError):
            row.get_bool(0)

    def test_datetime_from_text(self):
        """Test date text is parsed"""
        row = ResultRow([("D", "nvarchar"), ("Bad", "nvarchar")], ["2024-03-01 10:15", "not a date"])

        assert row.get_datetime(0) == datetime(2024, 3, 1, 10, 15)
        with pytest.raises(RowMappingError):
            row.get_datetime(1)

    def test_string_rejects_binary(self):
        """Test binary values are not read as text"""
        row = ResultRow([("Blob", "varbinary")], [b"\x00\x01"])

        assert row.get_bytes(0) == b"\x00\x01"
        with pytest.raises(RowMappingError):
            row.get_string(0)

    def test_type_names_from_python_types(self):
        """Test DBAPI type codes translate to SQL type names"""
        assert sql_type_name(int) == "int"
        assert sql_type_name(str) == "nvarchar"
        assert sql_type_name(bytearray) == "varbinary"
        assert sql_type_name("BigInt") == "bigint"
        assert sql_type_name(object) == "sql_variant"


class TestRowMapper:
    """Test declarative row to model mapping"""

    def test_missing_and_null_columns_keep_defaults(self):
        """Test absent or NULL columns leave model defaults"""
        row = ResultRow.from_values({"LabTestMshID": 3, "FullName": None})

        record = LAB_TEST_DATA.map(row)

        assert record.lab_test_msh_id == 3
        assert record.full_name is None
        assert record.mark_as_read is False
        assert record.priority_id == 0

    def test_misspelled_column_aliases(self):
        """Test legacy misspelled column names still populate their attributes"""
        row = ResultRow.from_values({
            "MesageSubject": "Lipids",
            "InboxReceviedDate": datetime(2024, 2, 2),
            "AbnormalFlagDesc": "High",
        })

        record = LAB_TEST_DATA.map(row)

        assert record.message_subject == "Lipids"
        assert record.inbox_received_date == datetime(2024, 2, 2)
        assert record.abnormal_flag_description == "High"

    def test_integer_ids_become_strings(self):
        """Test integer identifiers map onto string attributes"""
        row = ResultRow.from_values({"ProfileID": 501, "PracticeID": Decimal("127"), "Age": "44"})

        info = PATIENT_INFO.map(row)

        assert info.profile_id == "501"
        assert info.practice_id == "127"
        assert info.age == 44

    def test_row_values_override_defaults(self):
        """Test row values win over supplied defaults"""
        row = ResultRow.from_values({"FullName": "From Row"})

        record = LAB_TEST_DATA.map(row, full_name="Default", nhi_number="ABC1234")

        assert record.full_name == "From Row"
        assert record.nhi_number == "ABC1234"

    def test_sequence_number_out_of_byte_range_is_dropped(self):
        """Test a sequence number that does not fit a byte is left unset"""
        row = ResultRow([("DiagnosisID", "int"), ("SequenceNo", "nvarchar")], [1, "999"])

        diagnosis = PATIENT_DIAGNOSIS.map(row)

        assert diagnosis.diagnosis_id == 1
        assert diagnosis.sequence_no is None

    def test_map_all_skips_malformed_rows(self):
        """Test one bad row does not discard the others"""
        rows = [
            ResultRow.from_values({"LabTestMshID": 1, "MarkasRead": True}),
            ResultRow.from_values({"LabTestMshID": 2, "MarkasRead": "maybe"}),
            ResultRow.from_values({"LabTestMshID": 3, "MarkasRead": False}),
        ]

        records = LAB_TEST_DATA.map_all(rows, "lab test")

        assert [r.lab_test_msh_id for r in records] == [1, 3]

    def test_unknown_attribute_rejected(self):
        """Test mappers refuse attributes the model does not declare"""
        with pytest.raises(ValueError):
            RowMapper(PatientInfo, [FieldMap("X", "not_a_field", ColumnKind.STRING)])

    def test_custom_mapper(self):
        """Test a mapper built from field maps"""
        mapper = RowMapper(LabTestData, [
            FieldMap("Id", "lab_test_msh_id", ColumnKind.INT32),
            FieldMap("When", "message_datetime", ColumnKind.DATETIME),
        ])
        row = ResultRow.from_values({"Id": "15", "When": "2024-05-06"}, {"Id": "varchar"})

        record = mapper.map(row)

        assert record.lab_test_msh_id == 15
        assert record.message_datetime == datetime(2024, 5, 6)
