"""Shared fakes standing in for the engine process and its connection."""

from __future__ import annotations

from typing import Any

import pytest

from daxbridge.connectors.adomd import TabularBuffer
from daxbridge.connectors.dax_connector import DaxConnector
from daxbridge.discovery.ports import PortBinding, PortResolver
from daxbridge.discovery.process import ProcessHandle
from daxbridge.errors import QueryExecutionFailed

ENGINE_PID = 4242
ENGINE_PORT = 50484


class StaticPortResolver(PortResolver):
    name = "static"

    def __init__(self, port: int = ENGINE_PORT):
        self._port = port
        self.calls: list[int] = []

    def resolve(self, pid: int) -> PortBinding:
        self.calls.append(pid)
        return PortBinding(pid=pid, port=self._port, address=f"127.0.0.1:{self._port}")


class FakeEngine:
    """In-memory engine answering queries from a lookup table."""

    def __init__(self, results: dict[str, Any] | None = None, scalar: Any = None, fail_open: bool = False):
        self.results = results or {}
        self.scalar = scalar
        self.fail_open = fail_open
        self.opened = 0
        self.closed = 0
        self.queries: list[str] = []
        self.connection_strings: list[str] = []

    def session_factory(self, connection_string: str) -> "FakeSession":
        self.connection_strings.append(connection_string)
        return FakeSession(self)


class FakeSession:
    def __init__(self, engine: FakeEngine):
        self._engine = engine

    def open(self) -> None:
        if self._engine.fail_open:
            raise RuntimeError("No connection could be made because the target machine actively refused it")
        self._engine.opened += 1

    def close(self) -> None:
        self._engine.closed += 1

    def fill(self, query: str) -> TabularBuffer:
        self._engine.queries.append(query)
        result = self._engine.results.get(query)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise QueryExecutionFailed(f"Query failed: unknown table in '{query}'")
        return result

    def execute_scalar(self, query: str) -> Any:
        self._engine.queries.append(query)
        if self._engine.scalar is None:
            raise QueryExecutionFailed("Scalar execution failed: Specified method is not supported.")
        return self._engine.scalar


@pytest.fixture
def engine_pid() -> int:
    return ENGINE_PID


@pytest.fixture
def engine_port() -> int:
    return ENGINE_PORT


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def make_resolver():
    """Build a resolver that always answers with a fixed loopback port."""
    return StaticPortResolver


@pytest.fixture
def make_connector(engine, engine_pid, make_resolver):
    def _make(**kwargs: Any) -> DaxConnector:
        kwargs.setdefault("process_finder", lambda name: ProcessHandle(pid=engine_pid, name=name))
        kwargs.setdefault("port_resolver", make_resolver())
        kwargs.setdefault("session_factory", engine.session_factory)
        return DaxConnector("DataSource=localhost", **kwargs)

    return _make
