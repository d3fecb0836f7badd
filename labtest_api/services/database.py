"""
Lab Test API - SQL Server Access
Scoped DBAPI connections, procedure calls and multi-result-set streams
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, NamedTuple, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from labtest_api.config import Settings
from labtest_api.modules.row_mapping import ResultRow, columns_from_description

logger = logging.getLogger(__name__)

R = TypeVar("R")


# =============================================================================
# Procedure Calls
# =============================================================================

class ProcedureCall(NamedTuple):
    """A stored procedure invocation with positional or named parameters"""
    name: str
    params: Sequence[Tuple[str, Any]] = ()
    named: bool = False

    @property
    def sql(self) -> str:
        if not self.params:
            return f"EXEC {self.name}"
        if self.named:
            placeholders = ", ".join(f"{param} = ?" for param, _ in self.params)
        else:
            placeholders = ", ".join("?" for _ in self.params)
        return f"EXEC {self.name} {placeholders}"

    @property
    def values(self) -> Tuple[Any, ...]:
        # None is sent as SQL NULL so positional slots are never omitted
        return tuple(value for _, value in self.params)


# =============================================================================
# Result Stream
# =============================================================================

class ResultStream:
    """
    Positional walk over the result sets produced by one execute call

    Row-count-only results (cursor description is None), which SQL Server
    emits for procedures without SET NOCOUNT ON, are skipped so that
    positions count row-bearing result sets only.
    """

    def __init__(self, cursor: Any):
        self.cursor = cursor
        self.exhausted = False
        self.position = 1
        self._skip_rowcount_results()

    def _advance(self) -> bool:
        nextset = getattr(self.cursor, "nextset", None)
        if nextset is None:
            return False
        return bool(nextset())

    def _skip_rowcount_results(self) -> None:
        while self.cursor.description is None:
            if not self._advance():
                self.exhausted = True
                return

    @property
    def columns(self) -> List[Tuple[str, str]]:
        if self.exhausted:
            return []
        return columns_from_description(self.cursor.description)

    def rows(self) -> List[ResultRow]:
        """All remaining rows of the current result set"""
        if self.exhausted:
            return []
        columns = self.columns
        logger.debug(f"Result set {self.position}: {len(columns)} columns {columns}")
        return [ResultRow(columns, list(values)) for values in self.cursor.fetchall()]

    def next_result(self) -> bool:
        """Move to the next row-bearing result set; False once the stream has ended"""
        if self.exhausted:
            return False
        if not self._advance():
            self.exhausted = True
            return False
        self._skip_rowcount_results()
        if self.exhausted:
            return False
        self.position += 1
        return True


# =============================================================================
# Database
# =============================================================================

class Database:
    """SQL Server access through SQLAlchemy's connection pool and the raw pyodbc cursor"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._engine: Optional[Engine] = None
        self._engine_lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        # First use happens on threadpool workers
        with self._engine_lock:
            if self._engine is None:
                self._engine = self._create_engine()
                logger.info(f"✓ Database engine created: {self.settings.get_masked_database_url()}")
        return self._engine

    def _create_engine(self) -> Engine:
        return create_engine(
            self.settings.database_url,
            pool_pre_ping=True,
            pool_size=self.settings.database_pool_size,
            pool_timeout=self.settings.database_pool_timeout,
            echo=self.settings.database_echo,
        )

    def _connect(self) -> Any:
        return self.engine.raw_connection()

    @contextmanager
    def cursor(self, timeout: Optional[int] = None) -> Iterator[Any]:
        """One connection and cursor, released on every exit path"""
        connection = self._connect()
        try:
            if timeout is not None:
                _set_query_timeout(connection, timeout)
            cursor = connection.cursor()
            try:
                yield cursor
            finally:
                cursor.close()
        finally:
            try:
                if timeout is not None:
                    _set_query_timeout(connection, 0)
            finally:
                connection.close()

    @staticmethod
    def execute_on(cursor: Any, sql: str, params: Sequence[Any] = ()) -> ResultStream:
        """Execute on an already open cursor, discarding any pending results"""
        logger.debug(f"Executing: {sql}")
        if params:
            cursor.execute(sql, tuple(params))
        else:
            cursor.execute(sql)
        return ResultStream(cursor)

    @contextmanager
    def execute(self, sql: str, params: Sequence[Any] = (), timeout: Optional[int] = None) -> Iterator[ResultStream]:
        """Execute a statement and yield its result stream"""
        with self.cursor(timeout) as cursor:
            yield self.execute_on(cursor, sql, params)

    @contextmanager
    def call(self, procedure: ProcedureCall, timeout: Optional[int] = None) -> Iterator[ResultStream]:
        with self.execute(procedure.sql, procedure.values, timeout) as stream:
            yield stream

    def fetch_rows(self, sql: str, params: Sequence[Any] = (), timeout: Optional[int] = None) -> List[ResultRow]:
        """Rows of the first result set"""
        with self.execute(sql, params, timeout) as stream:
            return stream.rows()

    def call_rows(self, procedure: ProcedureCall, timeout: Optional[int] = None) -> List[ResultRow]:
        """Rows of the first result set of a procedure call"""
        with self.call(procedure, timeout) as stream:
            return stream.rows()

    def server_version(self) -> Optional[str]:
        rows = self.fetch_rows("SELECT @@VERSION AS Version")
        if not rows:
            return None
        return rows[0].get_string(0)

    async def run(self, func: Callable[..., R], *args: Any) -> R:
        """Run blocking database work without holding up the event loop"""
        return await run_in_threadpool(func, *args)

    def dispose(self) -> None:
        with self._engine_lock:
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None


def _set_query_timeout(connection: Any, seconds: int) -> None:
    # pyodbc applies Connection.timeout to every statement on that connection
    dbapi_connection = getattr(connection, "dbapi_connection", connection)
    dbapi_connection.timeout = seconds
