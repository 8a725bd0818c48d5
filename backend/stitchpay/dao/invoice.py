"""
Invoice Data Access Object (DAO).

WHAT: Database operations for the Invoice model.

WHY: The DAO pattern:
1. Separates data access from business logic
2. Keeps the paid transition a single conditional UPDATE
3. Encapsulates the provider-reference lookups the webhook relies on

HOW: Extends BaseDAO with invoice-specific queries:
- 2Checkout reference lookups (idempotency)
- Customer-scoped listing
- Compare-and-swap payment transition
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.dao.base import BaseDAO
from stitchpay.models.invoice import Invoice, InvoiceStatus


class InvoiceDAO(BaseDAO[Invoice]):
    """
    Data Access Object for Invoice model.

    WHAT: Provides CRUD and query operations for invoices.

    WHY: Centralizes all invoice database operations:
    - Provider reference lookups for redelivered notifications
    - Payment workflow transitions that are safe under concurrency

    HOW: Extends BaseDAO with invoice-specific methods.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize InvoiceDAO.

        Args:
            session: Async database session
        """
        super().__init__(Invoice, session)

    async def get_by_reference_number(self, reference_number: str) -> Optional[Invoice]:
        """
        Get an invoice by 2Checkout REFNO.

        WHY: Used by the webhook receiver to recognise a notification it
        has already applied. No customer filtering because webhooks don't
        have a user context.

        Args:
            reference_number: 2Checkout REFNO

        Returns:
            Invoice if found, None otherwise
        """
        result = await self.session.execute(
            select(Invoice).where(Invoice.tco_reference_number == reference_number)
        )
        return result.scalar_one_or_none()

    async def list_for_customer(
        self,
        customer_id: Optional[uuid.UUID] = None,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Invoice]:
        """
        List invoices, newest first.

        Args:
            customer_id: Restrict to one customer (None for all)
            status: Restrict to one status (None for all)
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            List of invoices
        """
        query = select(Invoice)
        if customer_id is not None:
            query = query.where(Invoice.customer_id == customer_id)
        if status is not None:
            query = query.where(Invoice.status == status)

        result = await self.session.execute(
            query.order_by(Invoice.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def mark_paid_if_unpaid(
        self,
        invoice_id: uuid.UUID,
        reference_number: Optional[str],
        provider_order_id: Optional[str],
        payment_method: Optional[str],
    ) -> bool:
        """
        Transition an invoice to PAID unless it is already paid.

        WHAT: Single conditional UPDATE guarded on the current status.

        WHY: Two deliveries of the same notification can race. Only the
        one whose UPDATE matches a row wins; the other sees rowcount 0
        and treats the notification as already processed.

        Args:
            invoice_id: Invoice to settle
            reference_number: 2Checkout REFNO
            provider_order_id: 2Checkout ORDERNO
            payment_method: Payment method label

        Returns:
            True if this call performed the transition
        """
        now = datetime.utcnow()
        result = await self.session.execute(
            update(Invoice)
            .where(
                Invoice.id == invoice_id,
                Invoice.status != InvoiceStatus.PAID,
            )
            .values(
                status=InvoiceStatus.PAID,
                tco_reference_number=reference_number,
                tco_order_id=provider_order_id,
                tco_payment_method=payment_method,
                paid_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def cancel_if_pending(self, invoice_id: uuid.UUID) -> bool:
        """
        Transition a PENDING invoice to CANCELLED.

        Returns:
            True if the invoice was pending and is now cancelled
        """
        result = await self.session.execute(
            update(Invoice)
            .where(
                Invoice.id == invoice_id,
                Invoice.status == InvoiceStatus.PENDING,
            )
            .values(status=InvoiceStatus.CANCELLED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
