"""Map an engine process id to the loopback TCP port it listens on.

Power BI Desktop starts its Analysis Services instance on a random port
every time a report is opened, so the port has to be looked up from the
live connection table.  Two strategies are available:

* :class:`PsutilPortResolver` reads the OS connection table through psutil.
* :class:`NetstatPortResolver` runs ``netstat -ano`` and parses its text.
  The output format depends on OS version and locale, so it is kept as the
  fallback of the ``auto`` strategy.
"""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import psutil
from loguru import logger

from daxbridge.errors import PortNotFound, PortResolutionFailed

DEFAULT_NETSTAT_COMMAND: tuple[str, ...] = ("netstat", "-ano")
DEFAULT_LOOPBACK_PREFIXES: tuple[str, ...] = ("127.0.0.1",)

# Whitespace-split netstat line: proto, local address, foreign address, [state,] pid
DEFAULT_ADDRESS_FIELD = 1


@dataclass(frozen=True)
class PortBinding:
    """A loopback port owned by a process at the time it was read."""

    pid: int
    port: int
    address: str


def parse_netstat_output(
    text: str,
    pid: int,
    loopback_prefixes: Sequence[str] = DEFAULT_LOOPBACK_PREFIXES,
    address_field: int = DEFAULT_ADDRESS_FIELD,
) -> PortBinding | None:
    """Find the first line owned by *pid* whose local address is on loopback.

    The last field of a line is the owning pid and *address_field* holds the
    local socket address.  The port is whatever follows the last colon of
    that address.  Returns ``None`` if no line matches.
    """
    target = str(pid)
    for line in text.splitlines():
        fields = line.split()
        if len(fields) <= address_field or fields[-1] != target:
            continue
        address = fields[address_field]
        if not address.startswith(tuple(loopback_prefixes)):
            continue
        try:
            port = int(address.rsplit(":", 1)[-1])
        except ValueError:
            continue
        return PortBinding(pid=pid, port=port, address=address)
    return None


class PortResolver(ABC):
    """Resolves the loopback port a process is listening on."""

    name: str = "base"

    @abstractmethod
    def resolve(self, pid: int) -> PortBinding:
        """Return the binding for *pid*.

        Raises ``PortNotFound`` when the table has no matching entry and
        ``PortResolutionFailed`` when the table cannot be read.
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class NetstatPortResolver(PortResolver):
    """Parse the text table printed by the netstat utility."""

    name = "netstat"

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_NETSTAT_COMMAND,
        loopback_prefixes: Sequence[str] = DEFAULT_LOOPBACK_PREFIXES,
        address_field: int = DEFAULT_ADDRESS_FIELD,
    ):
        self._command = list(command)
        self._loopback_prefixes = tuple(loopback_prefixes)
        self._address_field = address_field

    def resolve(self, pid: int) -> PortBinding:
        logger.debug(f"Running {' '.join(self._command)} to find port of pid {pid}")
        try:
            proc = subprocess.run(
                self._command,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise PortResolutionFailed(f"Could not run '{self._command[0]}': {e}") from e

        if proc.returncode != 0:
            raise PortResolutionFailed(
                f"'{' '.join(self._command)}' exited with status {proc.returncode}: "
                f"{proc.stderr.strip()}"
            )

        binding = parse_netstat_output(
            proc.stdout, pid, self._loopback_prefixes, self._address_field
        )
        if binding is None:
            raise PortNotFound(pid)
        return binding


class PsutilPortResolver(PortResolver):
    """Read the OS connection table directly through psutil."""

    name = "psutil"

    def __init__(self, loopback_prefixes: Sequence[str] = DEFAULT_LOOPBACK_PREFIXES):
        self._loopback_prefixes = tuple(loopback_prefixes)

    def resolve(self, pid: int) -> PortBinding:
        try:
            connections = psutil.net_connections(kind="tcp")
        except psutil.AccessDenied as e:
            raise PortResolutionFailed(f"Access denied reading the TCP connection table: {e}") from e

        for conn in connections:
            if conn.pid != pid or conn.status != psutil.CONN_LISTEN or not conn.laddr:
                continue
            ip, port = conn.laddr[0], conn.laddr[1]
            # Same shape as netstat so one prefix list serves both resolvers
            address = f"[{ip}]:{port}" if ":" in ip else f"{ip}:{port}"
            if address.startswith(self._loopback_prefixes):
                return PortBinding(pid=pid, port=port, address=address)

        raise PortNotFound(pid)


class FallbackPortResolver(PortResolver):
    """Try *primary*, then *fallback* if the primary cannot read the table.

    A ``PortNotFound`` from the primary is final: the table was read and the
    process simply has no loopback port.
    """

    name = "auto"

    def __init__(self, primary: PortResolver, fallback: PortResolver):
        self._primary = primary
        self._fallback = fallback

    def resolve(self, pid: int) -> PortBinding:
        try:
            return self._primary.resolve(pid)
        except PortNotFound:
            raise
        except PortResolutionFailed as e:
            logger.warning(f"{self._primary.name} port lookup failed ({e}), trying {self._fallback.name}")
            return self._fallback.resolve(pid)


def create_port_resolver(
    strategy: str = "auto",
    netstat_command: Sequence[str] = DEFAULT_NETSTAT_COMMAND,
    loopback_prefixes: Sequence[str] = DEFAULT_LOOPBACK_PREFIXES,
    address_field: int = DEFAULT_ADDRESS_FIELD,
) -> PortResolver:
    """Create a port resolver by strategy name.

    * ``psutil`` → :class:`PsutilPortResolver`
    * ``netstat`` → :class:`NetstatPortResolver`
    * ``auto`` → psutil, falling back to netstat

    Raises ``ValueError`` for unknown strategies.
    """
    if strategy == "psutil":
        return PsutilPortResolver(loopback_prefixes)
    elif strategy == "netstat":
        return NetstatPortResolver(netstat_command, loopback_prefixes, address_field)
    elif strategy == "auto":
        return FallbackPortResolver(
            PsutilPortResolver(loopback_prefixes),
            NetstatPortResolver(netstat_command, loopback_prefixes, address_field),
        )
    else:
        raise ValueError(
            f"Unknown port discovery strategy '{strategy}'. Supported: auto, psutil, netstat"
        )
