"""Generic keyed-record repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that domain-specific
repository interfaces extend.  Service-layer code depends on this
abstraction, never on Django ORM directly.

The contract is deliberately that of a plain keyed-record store: create,
lookup by key or by a single field, and partial update.  No multi-field
atomic compare-and-swap is assumed; implementations that can offer one
advertise it through ``supports_conditional_update``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` represents the record type managed by the
    repository (e.g. ``Order``).
    """

    supports_conditional_update: bool = False

    @abstractmethod
    def create(self, fields: Dict[str, Any]) -> T:
        """Persist a new record and return it with its key assigned."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve a record by its primary key, ``None`` if absent."""

    @abstractmethod
    def get_by_field(self, field_name: str, value: Any) -> Optional[T]:
        """Retrieve the first record whose ``field_name`` equals ``value``."""

    @abstractmethod
    def update(self, id: str, fields: Dict[str, Any]) -> T:
        """Merge ``fields`` into the stored record (partial, not a full overwrite)."""
