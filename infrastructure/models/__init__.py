"""Infrastructure models package exports."""
from .base import Base, TimestampMixin
from .order import ChargeRecordModel, OrderModel, OrderNoteModel

__all__ = [
    "Base",
    "TimestampMixin",
    "OrderModel",
    "OrderNoteModel",
    "ChargeRecordModel",
]
