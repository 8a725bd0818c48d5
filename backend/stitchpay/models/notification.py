"""
In-app notification model.

Rows are read by the storefront's notification dropdown.
"""

import enum
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Enum, String, Text, Uuid

from stitchpay.models.base import Base, PrimaryKeyMixin, enum_values


class NotificationType(str, enum.Enum):
    ORDER = "order"
    USER = "user"
    STOCK_DESIGN = "stock_design"
    INVOICE_GENERATED = "invoice_generated"


class Notification(Base, PrimaryKeyMixin):
    __tablename__ = "notifications"

    user_id = Column(Uuid, nullable=False, index=True)
    type = Column(
        Enum(
            NotificationType,
            name="notificationtype",
            native_enum=False,
            length=30,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(Uuid, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, user_id={self.user_id})>"
