"""Thin session wrapper around the pyadomd client library.

pyadomd loads the ADOMD.NET assembly through pythonnet, so it only imports
on a machine with the client libraries installed.  The import is deferred
until a session is actually opened.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from loguru import logger

from daxbridge.errors import ConnectionOpenFailed, QueryExecutionFailed


@dataclass
class TabularBuffer:
    """Rows and column names filled from a single query execution."""

    columns: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)


class AdomdSession:
    """One engine connection, opened and closed explicitly."""

    def __init__(self, connection_string: str, adomd_path: str | None = None):
        self._connection_string = connection_string
        self._adomd_path = adomd_path
        self._conn: Any = None

    @property
    def connection_string(self) -> str:
        return self._connection_string

    def open(self) -> None:
        if self._adomd_path and self._adomd_path not in sys.path:
            # pythonnet resolves the ADOMD.NET assembly from sys.path
            sys.path.append(self._adomd_path)
        try:
            from pyadomd import Pyadomd
        except ImportError as e:
            raise ConnectionOpenFailed(
                f"ADOMD client not available: {e}. Install pyadomd and the ADOMD.NET client libraries."
            ) from e

        conn = Pyadomd(self._connection_string)
        try:
            conn.open()
        except Exception as e:
            raise ConnectionOpenFailed(f"Could not connect to '{self._connection_string}': {e}") from e
        self._conn = conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def fill(self, query: str) -> TabularBuffer:
        """Execute *query* and read the whole result set into a buffer."""
        try:
            with self._conn.cursor().execute(query) as cur:
                columns = [desc[0] for desc in cur.description]
                rows = [list(r) for r in cur.fetchall()]
        except Exception as e:
            raise QueryExecutionFailed(f"Query failed: {e}") from e
        return TabularBuffer(columns=columns, rows=rows)

    def execute_scalar(self, query: str) -> Any:
        """Run *query* through ADOMD's single-value execution mode.

        Power BI's engine answers this mode with "Specified method is not
        supported", so in practice this raises ``QueryExecutionFailed``.
        """
        try:
            from Microsoft.AnalysisServices.AdomdClient import AdomdCommand

            return AdomdCommand(query, self._conn.conn).ExecuteScalar()
        except Exception as e:
            raise QueryExecutionFailed(f"Scalar execution failed: {e}") from e


SessionFactory = Callable[[str], AdomdSession]


@contextmanager
def open_session(connection_string: str, session_factory: SessionFactory = AdomdSession) -> Iterator[AdomdSession]:
    """Open a session for the duration of a ``with`` block.

    The session is closed on every exit path, including failures inside the
    block.
    """
    session = session_factory(connection_string)
    try:
        session.open()
    except ConnectionOpenFailed:
        raise
    except Exception as e:
        raise ConnectionOpenFailed(f"Could not connect to '{connection_string}': {e}") from e

    logger.debug(f"Opened session to {connection_string}")
    try:
        yield session
    finally:
        session.close()
        logger.debug(f"Closed session to {connection_string}")
