"""Repository interface for menu catalog lookups."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    price: Decimal


class MenuRepo(ABC):
    """Contract for read-only menu lookups used while pricing bills."""

    @abstractmethod
    async def lookup_item(self, item_ref: str | None) -> CatalogEntry | None:
        """Return the catalog entry for ``item_ref`` or ``None`` if unknown."""
        raise NotImplementedError
