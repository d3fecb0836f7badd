"""
Shared fixtures: in-memory DBAPI fakes standing in for pyodbc
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx
import pytest
from fastapi.testclient import TestClient

from labtest_api.config import Settings
from labtest_api.main import create_app
from labtest_api.services.database import Database
from labtest_api.services.external_api import ExternalApiService


class Table:
    """One row-bearing result set: (column name, python type) pairs plus rows"""

    def __init__(self, columns: Sequence[tuple], rows: Sequence[Sequence[Any]] = ()):
        self.description = [(name, type_code, None, None, None, None, True) for name, type_code in columns]
        self.rows = [tuple(row) for row in rows]

    @classmethod
    def from_dicts(cls, *records: Dict[str, Any]) -> "Table":
        """Column types are taken from the first non-null value in each column"""
        names = list(records[0].keys())
        columns = []
        for name in names:
            value = next((r[name] for r in records if r.get(name) is not None), None)
            columns.append((name, str if value is None else type(value)))
        return cls(columns, [[record.get(name) for name in names] for record in records])


# None in a script stands for a row-count-only result
Script = List[Optional[Table]]


class FakeCursor:
    def __init__(self, connection: "FakeConnection"):
        self.connection = connection
        self.description = None
        self.closed = False
        self._pending: Script = []
        self._rows: List[tuple] = []

    def execute(self, sql: str, params: Sequence[Any] = ()):
        self.connection.executed.append((sql, tuple(params)))
        self._pending = list(self.connection.respond(sql))
        self._load_next()
        return self

    def _load_next(self) -> bool:
        if not self._pending:
            self.description = None
            self._rows = []
            return False
        table = self._pending.pop(0)
        self.description = None if table is None else table.description
        self._rows = [] if table is None else list(table.rows)
        return True

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def nextset(self):
        return self._load_next()

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, responses: Dict[str, Script]):
        self.responses = responses
        self.executed: List[tuple] = []
        self.cursors: List[FakeCursor] = []
        self.timeouts: List[int] = []
        self.closed = False
        self._timeout = 0

    @property
    def timeout(self) -> int:
        return self._timeout

    @timeout.setter
    def timeout(self, seconds: int) -> None:
        self.timeouts.append(seconds)
        self._timeout = seconds

    def respond(self, sql: str) -> Script:
        for fragment, script in self.responses.items():
            if fragment in sql:
                if isinstance(script, Exception):
                    raise script
                return script
        return []

    def cursor(self) -> FakeCursor:
        cursor = FakeCursor(self)
        self.cursors.append(cursor)
        return cursor

    def close(self):
        self.closed = True


class FakeDatabase(Database):
    """Database whose connections are FakeConnections scripted by SQL fragment"""

    def __init__(self, settings: Settings, responses: Optional[Dict[str, Any]] = None,
                 connect_error: Optional[Exception] = None):
        super().__init__(settings)
        self.responses = responses or {}
        self.connect_error = connect_error
        self.connections: List[FakeConnection] = []

    def _connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        connection = FakeConnection(self.responses)
        self.connections.append(connection)
        return connection

    @property
    def executed(self) -> List[tuple]:
        return [statement for connection in self.connections for statement in connection.executed]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    return Settings(environment="test", log_level="DEBUG", _env_file=None)


@pytest.fixture
def unreachable_database(settings):
    return FakeDatabase(settings, connect_error=ConnectionError("Login timeout expired"))


def lab_row(**overrides) -> Dict[str, Any]:
    """A GetLabTestDataWithJoins row"""
    row = {
        "LabTestMshID": 10,
        "SendingApplication": "LAB_SYSTEM",
        "MessageDatetime": datetime(2024, 1, 15, 9, 30),
        "NHINumber": "ZZZ0016",
        "FullName": "Ana Ruiz",
        "PatientID": "501",
        "PracticeID": "127",
        "MarkasRead": False,
        "LabTestOBRID": 20,
        "MessageSubject": "Renal Function",
        "LabTestOBXID": 30,
        "ResultName": "Creatinine",
        "ObservationValue": "88",
        "Units": "umol/L",
        "AbnormalFlagID": 0,
        "PriorityID": 1,
    }
    row.update(overrides)
    return row


def make_client(settings: Settings, database: Database,
                handler=None) -> TestClient:
    transport = httpx.MockTransport(handler or (lambda request: httpx.Response(200, json=[])))
    external_api = ExternalApiService(settings, client=httpx.AsyncClient(transport=transport))
    app = create_app(settings, database=database, external_api=external_api)
    return TestClient(app)
