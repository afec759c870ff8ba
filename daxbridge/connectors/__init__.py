"""Connector for the tabular engine hosted by Power BI Desktop."""

from __future__ import annotations

from daxbridge.connectors.base import (
    BaseConnector,
    ConnectorStatus,
    MeasureDefinition,
)
from daxbridge.connectors.connection import ConnectionDescriptor, build_connection_string
from daxbridge.connectors.dax_connector import DaxConnector, measure_query
from daxbridge.connectors.results import QueryResult, normalize

__all__ = [
    "BaseConnector",
    "ConnectionDescriptor",
    "ConnectorStatus",
    "DaxConnector",
    "MeasureDefinition",
    "QueryResult",
    "build_connection_string",
    "measure_query",
    "normalize",
]
