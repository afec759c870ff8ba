"""Locate the local Analysis Services engine and its ephemeral port."""

from __future__ import annotations

from daxbridge.discovery.ports import (
    FallbackPortResolver,
    NetstatPortResolver,
    PortBinding,
    PortResolver,
    PsutilPortResolver,
    create_port_resolver,
    parse_netstat_output,
)
from daxbridge.discovery.process import DEFAULT_ENGINE_PROCESS, ProcessHandle, find_process

__all__ = [
    "DEFAULT_ENGINE_PROCESS",
    "FallbackPortResolver",
    "NetstatPortResolver",
    "PortBinding",
    "PortResolver",
    "ProcessHandle",
    "PsutilPortResolver",
    "create_port_resolver",
    "find_process",
    "parse_netstat_output",
]
