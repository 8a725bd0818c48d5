"""
Audit Log Model.

WHAT: SQLAlchemy model for billing audit events.

WHY: Invoice generation, cancellation and webhook-driven payments move
money-relevant state. Each of them leaves an append-only record with the
actor (NULL for the payment provider), the change set and the request
context it came from.

HOW: Append-only table; JSON columns for the change set and extra data
(JSONB on PostgreSQL, JSON on SQLite for tests).
"""

import enum
from datetime import datetime
from sqlalchemy import Column, String, Enum, ForeignKey, Text, JSON, DateTime, Uuid

from stitchpay.models.base import Base, PrimaryKeyMixin, enum_values


class AuditAction(str, enum.Enum):
    """Auditable actions."""

    CREATE = "create"
    UPDATE = "update"
    PAYMENT_RECEIVED = "payment_received"
    WEBHOOK_REJECTED = "webhook_rejected"


class AuditLog(Base, PrimaryKeyMixin):
    """
    Immutable audit log entry.

    Fields:
    - actor_user_id: Who performed the action (NULL for system / provider)
    - action: AuditAction
    - resource_type: e.g. "invoice"
    - resource_id: Affected resource id as text
    - changes: {"field": {"before": x, "after": y}}
    - extra_data: Additional context
    - ip_address / user_agent / request_id: Request context
    """

    __tablename__ = "audit_logs"

    actor_user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(
        Enum(
            AuditAction,
            name="auditaction",
            native_enum=False,
            length=30,
            values_callable=enum_values,
        ),
        nullable=False,
        index=True,
    )
    resource_type = Column(String(100), nullable=False, index=True)
    resource_id = Column(String(64), nullable=True, index=True)

    changes = Column(JSON, nullable=True)
    # 'metadata' is reserved by SQLAlchemy
    extra_data = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    request_id = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"resource={self.resource_type}:{self.resource_id})>"
        )
