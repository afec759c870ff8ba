"""DAX connector for the Analysis Services instance behind Power BI Desktop.

On construction the connector finds the engine process, resolves the port
it listens on and fixes the connection string for its lifetime.  Every
query then opens its own session, runs, and closes it again; there is no
pooling and no retrying.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger

from daxbridge.connectors.adomd import AdomdSession, SessionFactory, open_session
from daxbridge.connectors.base import BaseConnector, ConnectorStatus, MeasureDefinition
from daxbridge.connectors.connection import ConnectionDescriptor
from daxbridge.connectors.results import QueryResult, normalize, to_text
from daxbridge.discovery.ports import PortResolver, create_port_resolver
from daxbridge.discovery.process import DEFAULT_ENGINE_PROCESS, ProcessHandle, find_process
from daxbridge.errors import DaxBridgeError, QueryExecutionFailed

if TYPE_CHECKING:
    from daxbridge.config.schema import DaxBridgeConfig

DEFAULT_BASE_CONNECTION = "DataSource=localhost"

# Schema rowsets describing the tabular model.
_TABLES_QUERY = "SELECT [ID], [Name] FROM $SYSTEM.TMSCHEMA_TABLES"
_MEASURES_QUERY = "SELECT [TableID], [Name], [Expression] FROM $SYSTEM.TMSCHEMA_MEASURES"

_HEALTH_QUERY = 'EVALUATE ROW("ok", 1)'


def measure_query(expression: str, column: str = "measure_result") -> str:
    """Wrap a measure expression in a one-row table query."""
    return f'EVALUATE ROW("{column}", {expression})'


class DaxConnector(BaseConnector):
    """Connector for the engine process started by Power BI Desktop."""

    def __init__(
        self,
        base_connection_string: str = DEFAULT_BASE_CONNECTION,
        *,
        process_name: str = DEFAULT_ENGINE_PROCESS,
        port_resolver: PortResolver | None = None,
        session_factory: SessionFactory = AdomdSession,
        process_finder: Callable[[str], ProcessHandle] = find_process,
        name: str = "powerbi",
        config: dict[str, Any] | None = None,
    ):
        super().__init__(name, config)
        self._session_factory = session_factory
        self._process = process_finder(process_name)
        resolver = port_resolver or create_port_resolver()
        binding = resolver.resolve(self._process.pid)
        self._descriptor = ConnectionDescriptor(base_connection_string, binding.port)
        logger.info(
            f"Engine '{self._process.name}' (pid {self._process.pid}) "
            f"listening on {binding.address}"
        )

    @classmethod
    def from_config(cls, config: DaxBridgeConfig, **kwargs: Any) -> DaxConnector:
        """Build a connector from a loaded :class:`DaxBridgeConfig`."""
        discovery = config.discovery
        resolver = create_port_resolver(
            discovery.strategy,
            netstat_command=discovery.netstat_command,
            loopback_prefixes=discovery.loopback_prefixes,
            address_field=discovery.address_field,
        )
        session_factory: SessionFactory = AdomdSession
        if config.connection.adomd_path:
            session_factory = partial(AdomdSession, adomd_path=config.connection.adomd_path)
        kwargs.setdefault("port_resolver", resolver)
        kwargs.setdefault("session_factory", session_factory)
        return cls(
            config.connection.data_source,
            process_name=config.engine.process_name,
            config=config.model_dump(),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Endpoint
    # ------------------------------------------------------------------

    @property
    def process(self) -> ProcessHandle:
        return self._process

    @property
    def port(self) -> int:
        return self._descriptor.port

    @property
    def connection_string(self) -> str:
        return self._descriptor.connection_string

    def capabilities(self) -> list[str]:
        return ["query", "query_scalar", "measures", "evaluate_measure"]

    async def health_check(self) -> ConnectorStatus:
        try:
            await self.run_query(_HEALTH_QUERY)
        except DaxBridgeError as e:
            logger.warning(f"Health check failed for {self.connection_string}: {e}")
            return ConnectorStatus.UNREACHABLE
        return ConnectorStatus.HEALTHY

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def run_query(self, query: str) -> QueryResult:
        """Execute a DAX (or DMV) query and return its normalized rows."""
        return await asyncio.to_thread(self._run_query_sync, query)

    async def run_query_scalar(self, query: str) -> str:
        """Execute *query* in single-value mode.

        The Power BI engine rejects this execution mode, so expect
        ``QueryExecutionFailed``.  Use :meth:`evaluate_measure` to get a
        single measure value instead.
        """
        return await asyncio.to_thread(self._run_scalar_sync, query)

    async def evaluate_measure(self, expression: str) -> str:
        """Evaluate a measure expression and return its value as text."""
        result = await self.run_query(measure_query(expression))
        try:
            return result.first_value()
        except IndexError as e:
            raise QueryExecutionFailed(f"Measure expression returned no rows: {expression}") from e

    async def get_measures(self) -> dict[str, list[MeasureDefinition]]:
        """Read every table of the model together with its measures.

        Tables without measures map to an empty list.  Measures sharing a
        name in different tables are kept apart under their own table.
        """
        return await asyncio.to_thread(self._get_measures_sync)

    # ------------------------------------------------------------------
    # Operations (dispatched by BaseConnector.execute)
    # ------------------------------------------------------------------

    async def _op_query(self, query: str, **kwargs: Any) -> QueryResult:
        return await self.run_query(query)

    async def _op_query_scalar(self, query: str, **kwargs: Any) -> str:
        return await self.run_query_scalar(query)

    async def _op_measures(self, **kwargs: Any) -> dict[str, list[MeasureDefinition]]:
        return await self.get_measures()

    async def _op_evaluate_measure(self, expression: str, **kwargs: Any) -> str:
        return await self.evaluate_measure(expression)

    # ------------------------------------------------------------------
    # Internal: blocking work, run in a worker thread
    # ------------------------------------------------------------------

    def _run_query_sync(self, query: str) -> QueryResult:
        logger.debug(f"Running query on {self.connection_string}: {query}")
        try:
            with open_session(self.connection_string, self._session_factory) as session:
                buffer = session.fill(query)
        except DaxBridgeError as e:
            logger.error(f"Query failed on connector '{self._name}': {e}")
            raise
        return normalize(buffer)

    def _run_scalar_sync(self, query: str) -> str:
        try:
            with open_session(self.connection_string, self._session_factory) as session:
                value = session.execute_scalar(query)
        except DaxBridgeError as e:
            logger.error(f"Scalar query failed on connector '{self._name}': {e}")
            raise
        if value is None:
            raise QueryExecutionFailed(f"Scalar query returned no value: {query}")
        return to_text(value)

    def _get_measures_sync(self) -> dict[str, list[MeasureDefinition]]:
        try:
            with open_session(self.connection_string, self._session_factory) as session:
                tables = session.fill(_TABLES_QUERY)
                measures = session.fill(_MEASURES_QUERY)
        except DaxBridgeError as e:
            logger.error(f"Reading measures failed on connector '{self._name}': {e}")
            raise

        names_by_id: dict[Any, str] = {}
        result: dict[str, list[MeasureDefinition]] = {}
        for table_id, table_name in tables.rows:
            names_by_id[table_id] = table_name
            result.setdefault(table_name, [])

        for table_id, measure_name, expression in measures.rows:
            table_name = names_by_id.get(table_id)
            if table_name is None:
                raise QueryExecutionFailed(
                    f"Measure '{measure_name}' refers to unknown table id {table_id}"
                )
            result[table_name].append(
                MeasureDefinition(table=table_name, name=measure_name, expression=to_text(expression))
            )

        logger.debug(
            f"Read {sum(len(m) for m in result.values())} measures from {len(result)} tables"
        )
        return result
