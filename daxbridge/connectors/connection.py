"""Connection string assembly for the discovered engine endpoint."""

from __future__ import annotations

from dataclasses import dataclass


def build_connection_string(base: str, port: int) -> str:
    """Append *port* to a base connection string, e.g. ``DataSource=localhost:50484``.

    The base string is not validated; a malformed one only fails when the
    connection is opened.
    """
    return f"{base}:{port}"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Base connection string plus the port resolved for it."""

    base: str
    port: int

    @property
    def connection_string(self) -> str:
        return build_connection_string(self.base, self.port)

    def __str__(self) -> str:
        return self.connection_string
