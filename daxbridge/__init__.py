"""Discover Power BI Desktop's local engine and run DAX queries against it."""

from __future__ import annotations

from daxbridge.connectors import DaxConnector, MeasureDefinition, QueryResult
from daxbridge.errors import (
    ConnectionOpenFailed,
    DaxBridgeError,
    PortNotFound,
    PortResolutionFailed,
    ProcessNotFound,
    QueryExecutionFailed,
)

__version__ = "0.1.0"

__all__ = [
    "ConnectionOpenFailed",
    "DaxBridgeError",
    "DaxConnector",
    "MeasureDefinition",
    "PortNotFound",
    "PortResolutionFailed",
    "ProcessNotFound",
    "QueryExecutionFailed",
    "QueryResult",
]
