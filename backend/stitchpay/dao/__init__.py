"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from stitchpay.dao.base import BaseDAO
from stitchpay.dao.user import UserDAO
from stitchpay.dao.audit_log import AuditLogDAO
from stitchpay.dao.invoice import InvoiceDAO
from stitchpay.dao.order import OrderDAO
from stitchpay.dao.order_attachment import OrderAttachmentDAO
from stitchpay.dao.notification import NotificationDAO

__all__ = [
    "BaseDAO",
    "UserDAO",
    "AuditLogDAO",
    "InvoiceDAO",
    "OrderDAO",
    "OrderAttachmentDAO",
    "NotificationDAO",
]
