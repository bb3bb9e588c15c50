"""Chain adapter base interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import ClassVar

from .config import ChainConfig, Settings
from .types import ChainId, OperationId, RawOperationResult


class Applicability(Enum):
    """Marker for operations a chain has no equivalent for."""

    NOT_APPLICABLE = "not_applicable"


NOT_APPLICABLE = Applicability.NOT_APPLICABLE

OperationHandler = Callable[[], Awaitable[RawOperationResult]]
OperationTable = Mapping[OperationId, str | Applicability]


class ChainAdapter(ABC):
    """Uniform operation vocabulary implemented against one ledger family.

    ``OPERATIONS`` maps every supported :class:`OperationId` to the name of a
    coroutine method or to :data:`NOT_APPLICABLE`. Identifiers missing from
    the table are unmapped for the adapter.
    """

    OPERATIONS: ClassVar[OperationTable] = {}

    def __init__(self, config: ChainConfig, settings: Settings) -> None:
        self._config = config
        self._settings = settings

    @property
    def config(self) -> ChainConfig:
        return self._config

    @property
    def chain(self) -> ChainId:
        return self._config.chain

    def operation_table(self) -> OperationTable:
        return self.OPERATIONS

    def resolve(self, operation: OperationId) -> OperationHandler | Applicability | None:
        """Return the handler for ``operation``, the N/A marker, or ``None``."""

        entry = self.operation_table().get(operation)
        if entry is None or entry is NOT_APPLICABLE:
            return entry
        return getattr(self, entry)

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Cheap read-only check; must return ``False`` instead of raising."""

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    def __repr__(self) -> str:
        network = self._config.network.value
        return f"<{self.__class__.__name__}(chain={self.chain.value}, network={network})>"
