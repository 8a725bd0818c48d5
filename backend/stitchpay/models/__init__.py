"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from stitchpay.models.base import Base, TimestampMixin, PrimaryKeyMixin
from stitchpay.models.user import User, UserRole, Customer
from stitchpay.models.order import Order, PaymentStatus, StockDesign, OrderAttachment
from stitchpay.models.invoice import Invoice, InvoiceStatus
from stitchpay.models.notification import Notification, NotificationType
from stitchpay.models.audit_log import AuditLog, AuditAction

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "User",
    "UserRole",
    "Customer",
    "Order",
    "PaymentStatus",
    "StockDesign",
    "OrderAttachment",
    "Invoice",
    "InvoiceStatus",
    "Notification",
    "NotificationType",
    "AuditLog",
    "AuditAction",
]
