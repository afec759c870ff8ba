"""Exception hierarchy for engine discovery and query execution."""

from __future__ import annotations


class DaxBridgeError(Exception):
    """Base class for every failure raised by daxbridge."""


class ProcessNotFound(DaxBridgeError):
    """No running process matches the engine process name."""

    def __init__(self, process_name: str):
        super().__init__(f"No running process named '{process_name}'. Is Power BI Desktop open?")
        self.process_name = process_name


class PortResolutionFailed(DaxBridgeError):
    """The connection table could not be read or yielded no usable output."""


class PortNotFound(PortResolutionFailed):
    """The connection table was read but no loopback port belongs to the process."""

    def __init__(self, pid: int):
        super().__init__(f"No loopback TCP port found for process {pid}")
        self.pid = pid


class ConnectionOpenFailed(DaxBridgeError):
    """The engine connection could not be established."""


class QueryExecutionFailed(DaxBridgeError):
    """The engine rejected the query text or execution mode."""
