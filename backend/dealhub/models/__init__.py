"""SQLAlchemy models for DealHub.

All models are imported here so ``Base.metadata`` sees every table.
"""

from dealhub.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from dealhub.models.deal import DEAL_CATEGORIES, Deal

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Deal",
    "DEAL_CATEGORIES",
]
