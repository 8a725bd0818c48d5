"""
Audit logging service.

WHAT: Service layer for creating audit log entries with request context.

WHY: Invoice generation, cancellation and webhook payments are the
money-moving actions of this service; each leaves an AuditLog row. A
failing audit write must not undo a payment, so this service never
raises into business code.

HOW: Uses the AuditLogDAO for persistence and the RequestContext
middleware for IP / user agent / request id. Each write runs inside a
SAVEPOINT so a failed insert does not poison the caller's transaction.
"""

import logging
import uuid
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.dao.audit_log import AuditLogDAO
from stitchpay.models.audit_log import AuditLog, AuditAction
from stitchpay.models.invoice import Invoice
from stitchpay.middleware.request_context import get_request_context


# Logger for audit service errors (not audit events themselves)
logger = logging.getLogger(__name__)

INVOICE_RESOURCE = "invoice"


class AuditService:
    """
    Service for creating audit log entries.

    Example:
        audit = AuditService(db)
        await audit.log_invoice_generated(invoice, actor_user_id=admin.id)
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize audit service with database session.

        Args:
            session: Async database session for audit log persistence
        """
        self.dao = AuditLogDAO(session)
        self._session = session

    async def log_event(
        self,
        action: AuditAction,
        resource_type: str,
        actor_user_id: Optional[uuid.UUID] = None,
        resource_id: Optional[Any] = None,
        changes: Optional[Dict[str, Any]] = None,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """
        Log a generic audit event.

        Args:
            action: Type of event (from AuditAction enum)
            resource_type: Category of affected resource
            actor_user_id: User who performed the action (None for the provider)
            resource_id: Specific resource ID (stored as text)
            changes: Before/after values for mutations
            extra_data: Additional context

        Returns:
            Created AuditLog or None if logging failed

        Note:
            This method never raises. Errors go to the application logger.
        """
        ctx = get_request_context()
        try:
            async with self._session.begin_nested():
                return await self.dao.create(
                    actor_user_id=actor_user_id,
                    action=action,
                    resource_type=resource_type,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    changes=changes,
                    extra_data=extra_data,
                    ip_address=ctx.ip_address if ctx else None,
                    user_agent=ctx.user_agent if ctx else None,
                    request_id=ctx.request_id if ctx else None,
                )
        except Exception as e:
            logger.error(f"Failed to create audit log: {e}", exc_info=True)
            return None

    async def log_invoice_generated(
        self,
        invoice: Invoice,
        actor_user_id: uuid.UUID,
    ) -> Optional[AuditLog]:
        """Record a newly generated invoice and the orders it covers."""
        return await self.log_event(
            action=AuditAction.CREATE,
            resource_type=INVOICE_RESOURCE,
            actor_user_id=actor_user_id,
            resource_id=invoice.id,
            extra_data={
                "customer_id": str(invoice.customer_id),
                "order_ids": list(invoice.order_ids or []),
                "total_amount": f"{invoice.total_amount:.2f}",
            },
        )

    async def log_invoice_cancelled(
        self,
        invoice: Invoice,
        actor_user_id: uuid.UUID,
        released_orders: int,
    ) -> Optional[AuditLog]:
        """Record an admin cancelling a pending invoice."""
        return await self.log_event(
            action=AuditAction.UPDATE,
            resource_type=INVOICE_RESOURCE,
            actor_user_id=actor_user_id,
            resource_id=invoice.id,
            changes={"status": {"before": "pending", "after": "cancelled"}},
            extra_data={"released_orders": released_orders},
        )

    async def log_payment_received(
        self,
        invoice: Invoice,
        reference_number: Optional[str],
        payment_method: Optional[str],
        amount: Optional[Any],
        previous_status: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Record a webhook-driven paid transition."""
        return await self.log_event(
            action=AuditAction.PAYMENT_RECEIVED,
            resource_type=INVOICE_RESOURCE,
            resource_id=invoice.id,
            changes={"status": {"before": previous_status, "after": "paid"}},
            extra_data={
                "reference_number": reference_number,
                "payment_method": payment_method,
                "amount": str(amount) if amount is not None else None,
            },
        )

    async def log_webhook_rejected(
        self,
        reason: str,
        reference_number: Optional[str] = None,
        invoice_id: Optional[Any] = None,
    ) -> Optional[AuditLog]:
        """Record a notification that failed verification or amount checks."""
        return await self.log_event(
            action=AuditAction.WEBHOOK_REJECTED,
            resource_type=INVOICE_RESOURCE,
            resource_id=invoice_id,
            extra_data={"reason": reason, "reference_number": reference_number},
        )
