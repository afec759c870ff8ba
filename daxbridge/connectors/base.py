"""Base connector abstraction for the local tabular engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConnectorStatus(str, Enum):
    """Health status of a connector."""

    HEALTHY = "healthy"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class MeasureDefinition:
    """A measure as stored in the model: owning table, name and DAX expression."""

    table: str
    name: str
    expression: str


class BaseConnector(ABC):
    """Abstract base class for connectors.

    Exposes health-checking, capability discovery and generic operation
    dispatch so that callers such as the CLI can drive a connector by
    operation name.
    """

    def __init__(self, name: str, config: dict[str, Any] | None = None):
        self._name = name
        self._config = config or {}

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        """Identifier for this connector instance."""
        return self._name

    @property
    def config(self) -> dict[str, Any]:
        """Raw configuration dict."""
        return self._config

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    @abstractmethod
    def capabilities(self) -> list[str]:
        """Declare the operations this connector supports.

        Examples: ``["query", "measures"]``
        """
        ...

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @abstractmethod
    async def health_check(self) -> ConnectorStatus:
        """Probe the external system with a trivial request."""
        ...

    # ------------------------------------------------------------------
    # Generic dispatch
    # ------------------------------------------------------------------

    async def execute(self, operation: str, **params: Any) -> Any:
        """Dispatch a named operation to the matching ``_op_{operation}`` method.

        Raises ``ValueError`` for operations the connector does not support.
        """
        method = getattr(self, f"_op_{operation}", None)
        if method is None:
            raise ValueError(
                f"Connector '{self._name}' does not support operation '{operation}'. "
                f"Supported: {', '.join(self.capabilities())}"
            )
        return await method(**params)

    # ------------------------------------------------------------------
    # Representation
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self._name!r}>"
