"""
Lab Test API - Result Row Mapping
Column-name driven projection of database rows into typed records
"""

import logging
import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Generic, List, NamedTuple, Optional, Sequence, Tuple, Type, TypeVar
from uuid import UUID

from dateutil import parser as date_parser
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class RowMappingError(ValueError):
    """A column value could not be converted to its target kind"""


# =============================================================================
# Declared Type Names
# =============================================================================

INTEGER_TYPES = {"tinyint", "smallint", "int", "bigint", "bit"}
DECIMAL_TYPES = {"decimal", "numeric", "money", "smallmoney", "float", "real"}
TEXT_TYPES = {"nvarchar", "varchar", "char", "nchar", "text", "ntext", "sysname"}

# pyodbc reports the Python type of each column rather than its SQL type name
PYTHON_TYPE_NAMES = {
    bool: "bit",
    int: "int",
    Decimal: "decimal",
    float: "float",
    str: "nvarchar",
    datetime: "datetime",
    date: "date",
    time: "time",
    bytes: "varbinary",
    bytearray: "varbinary",
    UUID: "uniqueidentifier",
}

INT32_RANGE = (-(1 << 31), (1 << 31) - 1)
INT64_RANGE = (-(1 << 63), (1 << 63) - 1)
BYTE_RANGE = (0, 255)

_INTEGER_TEXT = re.compile(r"^\s*[+-]?\d+\s*$")
_TRUE_TEXT = {"1", "true", "t", "y", "yes"}
_FALSE_TEXT = {"0", "false", "f", "n", "no"}


def sql_type_name(type_code: Any) -> str:
    """Translate a DBAPI description type code into a lower-case SQL type name"""
    if isinstance(type_code, str):
        return type_code.lower()
    return PYTHON_TYPE_NAMES.get(type_code, "sql_variant")


def columns_from_description(description: Sequence[Sequence[Any]]) -> List[Tuple[str, str]]:
    """(name, type name) pairs from a cursor description"""
    return [(column[0], sql_type_name(column[1])) for column in description]


# =============================================================================
# Result Row
# =============================================================================

class ResultRow:
    """One tabular row with column names and declared type names"""

    def __init__(self, columns: Sequence[Tuple[str, str]], values: Sequence[Any]):
        if len(columns) != len(values):
            raise ValueError(f"Row has {len(values)} values for {len(columns)} columns")
        self._names = [name for name, _ in columns]
        self._types = [type_name.lower() for _, type_name in columns]
        self._values = list(values)
        self._ordinals: Dict[str, int] = {}
        for position, name in enumerate(self._names):
            # First column wins when a procedure returns duplicate names
            self._ordinals.setdefault(name.lower(), position)

    @classmethod
    def from_values(cls, values: Dict[str, Any], type_names: Optional[Dict[str, str]] = None) -> "ResultRow":
        """Build a row from a column -> value dict, inferring type names from values"""
        type_names = type_names or {}
        columns = []
        for name, value in values.items():
            if name in type_names:
                columns.append((name, type_names[name]))
            elif value is None:
                columns.append((name, "nvarchar"))
            else:
                columns.append((name, sql_type_name(type(value))))
        return cls(columns, list(values.values()))

    @property
    def field_count(self) -> int:
        return len(self._values)

    def column_name(self, position: int) -> str:
        return self._names[position]

    def type_name(self, position: int) -> str:
        return self._types[position]

    def is_null(self, position: int) -> bool:
        return self._values[position] is None

    def ordinal(self, column: str) -> Optional[int]:
        """Case-insensitive column lookup; None when the column is absent"""
        return self._ordinals.get(column.lower())

    def get_value(self, position: int) -> Any:
        return self._values[position]

    # =========================================================================
    # Typed Getters
    # =========================================================================

    def get_string(self, position: int) -> Optional[str]:
        value = self._values[position]
        if value is None:
            return None
        if isinstance(value, str):
            return value
        if isinstance(value, (bytes, bytearray)):
            raise RowMappingError(f"Column {self._names[position]} holds binary data, not text")
        return str(value)

    def get_int32(self, position: int) -> Optional[int]:
        return self._get_integer(position, 32, INT32_RANGE, signed=True)

    def get_int64(self, position: int) -> Optional[int]:
        return self._get_integer(position, 64, INT64_RANGE, signed=True)

    def get_byte(self, position: int) -> Optional[int]:
        return self._get_integer(position, 8, BYTE_RANGE, signed=False)

    def get_bool(self, position: int) -> Optional[bool]:
        value = self._values[position]
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, Decimal)):
            return value != 0
        if isinstance(value, str):
            text = value.strip().lower()
            if text in _TRUE_TEXT:
                return True
            if text in _FALSE_TEXT:
                return False
        raise RowMappingError(f"Column {self._names[position]} value {value!r} is not a boolean")

    def get_datetime(self, position: int) -> Optional[datetime]:
        value = self._values[position]
        if value is None:
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time.min)
        if isinstance(value, str):
            try:
                return date_parser.parse(value)
            except (ValueError, OverflowError) as e:
                raise RowMappingError(f"Column {self._names[position]} value {value!r} is not a date") from e
        raise RowMappingError(f"Column {self._names[position]} value {value!r} is not a date")

    def get_bytes(self, position: int) -> Optional[bytes]:
        value = self._values[position]
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise RowMappingError(f"Column {self._names[position]} is not binary")

    def _get_integer(self, position: int, bits: int, bounds: Tuple[int, int], signed: bool) -> Optional[int]:
        """
        Read an integer of the given width, tolerating column type drift

        Numeric columns are truncated to the target width. Textual columns
        are parsed and yield None when the text is not an in-range integer.
        """
        value = self._values[position]
        if value is None:
            return None

        type_name = self._types[position]
        if type_name in INTEGER_TYPES or type_name in DECIMAL_TYPES:
            number = _to_integer(value)
            if number is not None:
                return _wrap(number, bits, signed)
            return _parse_integer(value, bounds)

        if type_name in TEXT_TYPES:
            return _parse_integer(value, bounds)

        number = _to_integer(value)
        if number is not None:
            return _wrap(number, bits, signed)
        return _parse_integer(value, bounds)


def _to_integer(value: Any) -> Optional[int]:
    """Truncate a numeric value toward zero; None for non-numeric values"""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        try:
            return int(value)
        except (ValueError, InvalidOperation):
            return None
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    return None


def _wrap(number: int, bits: int, signed: bool) -> int:
    """Keep the low ``bits`` bits of ``number``"""
    number &= (1 << bits) - 1
    if signed and number >= 1 << (bits - 1):
        number -= 1 << bits
    return number


def _parse_integer(value: Any, bounds: Tuple[int, int]) -> Optional[int]:
    text = value if isinstance(value, str) else str(value)
    if not _INTEGER_TEXT.match(text):
        return None
    number = int(text)
    low, high = bounds
    if number < low or number > high:
        return None
    return number


# =============================================================================
# Declarative Field Mapping
# =============================================================================

class ColumnKind(str, Enum):
    """How a column value is read into its target attribute"""
    STRING = "string"
    INT32 = "int32"
    INT64 = "int64"
    BYTE = "byte"
    BOOL = "bool"
    DATETIME = "datetime"
    INT_STRING = "int_string"
    BINARY = "binary"


def _read_int_string(row: ResultRow, position: int) -> Optional[str]:
    number = row.get_int32(position)
    return None if number is None else str(number)


_READERS = {
    ColumnKind.STRING: ResultRow.get_string,
    ColumnKind.INT32: ResultRow.get_int32,
    ColumnKind.INT64: ResultRow.get_int64,
    ColumnKind.BYTE: ResultRow.get_byte,
    ColumnKind.BOOL: ResultRow.get_bool,
    ColumnKind.DATETIME: ResultRow.get_datetime,
    ColumnKind.INT_STRING: _read_int_string,
    ColumnKind.BINARY: ResultRow.get_bytes,
}


class FieldMap(NamedTuple):
    """Source column -> model attribute -> value kind"""
    column: str
    attribute: str
    kind: ColumnKind = ColumnKind.STRING


class RowMapper(Generic[T]):
    """
    Project result rows onto a pydantic model using a declarative field list

    Columns are looked up by case-insensitive name. Missing columns and SQL
    NULLs leave the attribute at the model default. Conversion failures
    raise RowMappingError (or pydantic's ValidationError, a ValueError).
    """

    def __init__(self, model: Type[T], fields: Sequence[FieldMap]):
        self.model = model
        self.fields = tuple(fields)
        unknown = [f.attribute for f in self.fields if f.attribute not in model.model_fields]
        if unknown:
            raise ValueError(f"{model.__name__} has no attributes {unknown}")

    def values(self, row: ResultRow) -> Dict[str, Any]:
        """Attribute values present in the row, without building the model"""
        values: Dict[str, Any] = {}
        for field in self.fields:
            position = row.ordinal(field.column)
            if position is None or row.is_null(position):
                continue
            value = _READERS[field.kind](row, position)
            if value is not None:
                values[field.attribute] = value
        return values

    def map(self, row: ResultRow, **defaults: Any) -> T:
        """Build the model; row values take precedence over ``defaults``"""
        return self.model(**{**defaults, **self.values(row)})

    def map_all(self, rows: Sequence[ResultRow], label: str = "row", **defaults: Any) -> List[T]:
        """Map every row, skipping (and logging) rows that fail to convert"""
        records: List[T] = []
        for index, row in enumerate(rows, start=1):
            try:
                records.append(self.map(row, **defaults))
            except ValueError as e:
                logger.warning(f"Skipping {label} #{index}: {e}")
        return records
