"""Base repository contracts shared by every bounded context.

Services and the order state machine receive repositories through their
constructors and only see these abstract types; the Django implementations
live next to each context in ``repositories/django_repository.py``.

Contexts the engine only reads from (catalog, addresses, payment methods,
vouchers) extend ``IReadRepository``; the order aggregate, which the engine
owns, extends the full ``IRepository``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, TypeVar

from django.db import models

T = TypeVar("T")


class IReadRepository(ABC, Generic[T]):
    """``T`` is the model the repository hands out (``Order``, ``Address``...)."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """``None`` when the row is missing or ``id`` is not a valid key."""


class IRepository(IReadRepository[T]):
    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> models.QuerySet:
        """Lazy queryset so views can filter, order and paginate it further."""

    @abstractmethod
    def save(self, entity: T) -> T: ...

    @abstractmethod
    def delete(self, id: str) -> bool: ...
