"""
Invoice service.

WHAT: Business logic for bundling a customer's orders into a payable
invoice with a signed 2Checkout checkout link, plus cancellation and
lookups.

WHY: The admin UI bills several orders at once. The invoice freezes the
total, carries the signed link the customer pays through, and is the
record the INS webhook later settles.

HOW:
- The invoice id is allocated before signing so the link can carry it
- The link is signed before anything is written, so a signing failure
  leaves no rows behind
- Invoice insert, order updates, notification and audit entry share the
  request transaction (committed by get_db, rolled back on any error)
"""

import logging
import uuid
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.core.exceptions import (
    InvoiceConflictError,
    InvoiceNotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from stitchpay.dao.invoice import InvoiceDAO
from stitchpay.dao.notification import NotificationDAO
from stitchpay.dao.order import OrderDAO
from stitchpay.models.invoice import Invoice, InvoiceStatus
from stitchpay.models.notification import NotificationType
from stitchpay.models.order import Order, PaymentStatus
from stitchpay.models.user import User, UserRole
from stitchpay.services.audit import AuditService
from stitchpay.services.payment_link import LineItem, PaymentLinkSigner

logger = logging.getLogger(__name__)

SUCCESS_PATH = "/payment/success"
CANCEL_PATH = "/payment/cancelled"
NOTIFICATION_TITLE = "Payment Invoice Generated"
OPEN_INVOICE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.PAID)


def default_return_urls(origin: str) -> tuple:
    """Success and cancel pages relative to the caller's origin."""
    base = origin.rstrip("/")
    return f"{base}{SUCCESS_PATH}", f"{base}{CANCEL_PATH}"


def unique_ids(ids: Sequence[uuid.UUID]) -> List[uuid.UUID]:
    """Drop repeated ids, keeping first-seen order."""
    seen = set()
    result = []
    for value in ids:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def order_total(orders: Sequence[Order]) -> Decimal:
    """Sum of final prices; orders without a price count as zero."""
    return sum((Decimal(order.final_price or 0) for order in orders), Decimal("0.00"))


class InvoiceService:
    """
    Service for invoice generation and management.

    Example:
        service = InvoiceService(db, PaymentLinkSigner(config))
        invoice = await service.generate(admin, customer_id, order_ids, origin=origin)
    """

    def __init__(self, session: AsyncSession, signer: PaymentLinkSigner):
        """
        Initialize InvoiceService.

        Args:
            session: Async database session
            signer: Configured buy-link signer
        """
        self.session = session
        self.signer = signer
        self.invoice_dao = InvoiceDAO(session)
        self.order_dao = OrderDAO(session)
        self.notification_dao = NotificationDAO(session)
        self.audit = AuditService(session)

    async def _ensure_billable(self, orders: Sequence[Order]) -> None:
        """
        Reject orders that are already paid or on an open invoice.

        Raises:
            InvoiceConflictError: With the offending order numbers
        """
        paid = [order.order_number for order in orders if order.payment_status == PaymentStatus.PAID]
        if paid:
            raise InvoiceConflictError("Orders are already paid", order_numbers=paid)

        linked = {order.invoice_id for order in orders if order.invoice_id is not None}
        if not linked:
            return

        result = await self.session.execute(
            select(Invoice.id).where(
                Invoice.id.in_(linked),
                Invoice.status.in_(OPEN_INVOICE_STATUSES),
            )
        )
        open_ids = set(result.scalars().all())
        if open_ids:
            conflicting = [order.order_number for order in orders if order.invoice_id in open_ids]
            raise InvoiceConflictError(order_numbers=conflicting)

    async def generate(
        self,
        actor: User,
        customer_id: uuid.UUID,
        order_ids: Sequence[uuid.UUID],
        origin: str,
        return_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        invoice_title: Optional[str] = None,
        month_year: Optional[str] = None,
    ) -> Invoice:
        """
        Generate an invoice with a signed checkout link.

        Args:
            actor: Admin generating the invoice
            customer_id: Customer the orders must belong to
            order_ids: Orders to bill (duplicates ignored)
            origin: Base URL for the default success / cancel pages
            return_url: Overrides the default success page
            cancel_url: Overrides the default cancel page
            invoice_title: Optional label
            month_year: Optional billing period label

        Returns:
            The pending invoice

        Raises:
            ValidationError: If no order ids were given or a price is unusable
            OrderNotFoundError: If any order is missing or belongs to another customer
            InvoiceConflictError: If any order is paid or on an open invoice
            ConfigurationError: If 2Checkout credentials are missing
        """
        requested = unique_ids(order_ids)
        if not requested:
            raise ValidationError("At least one order ID is required")

        orders = await self.order_dao.get_many_for_customer(requested, customer_id)
        if len(orders) != len(requested):
            found = {order.id for order in orders}
            raise OrderNotFoundError(
                missing_order_ids=[str(order_id) for order_id in requested if order_id not in found],
                customer_id=str(customer_id),
            )

        await self._ensure_billable(orders)

        total = order_total(orders)
        invoice_id = uuid.uuid4()
        default_return, default_cancel = default_return_urls(origin)
        items = [
            LineItem(name=order.line_item_name, unit_price=order.final_price or 0, quantity=1)
            for order in orders
        ]
        payment_link = self.signer.create_link(
            invoice_id,
            items,
            return_url or default_return,
            cancel_url or default_cancel,
        )

        invoice = await self.invoice_dao.create(
            id=invoice_id,
            customer_id=customer_id,
            order_ids=[str(order.id) for order in orders],
            total_amount=total,
            status=InvoiceStatus.PENDING,
            payment_link=payment_link,
            invoice_title=invoice_title,
            month_year=month_year,
            created_by=actor.id,
        )
        await self.order_dao.attach_invoice([order.id for order in orders], invoice.id)

        await self.notification_dao.notify(
            user_id=customer_id,
            type=NotificationType.INVOICE_GENERATED,
            title=NOTIFICATION_TITLE,
            message=(
                f"An invoice has been generated for {len(orders)} order(s). "
                f"Total: ${total:.2f}"
            ),
            related_id=invoice.id,
        )
        await self.audit.log_invoice_generated(invoice, actor_user_id=actor.id)

        logger.info(
            "Invoice generated",
            extra={
                "invoice_id": str(invoice.id),
                "customer_id": str(customer_id),
                "order_count": len(orders),
                "total_amount": str(total),
            },
        )
        return invoice

    async def cancel(self, invoice_id: uuid.UUID, actor: User) -> Invoice:
        """
        Cancel a pending invoice and release its orders.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist
            InvoiceConflictError: If the invoice is paid or already cancelled
        """
        invoice = await self.invoice_dao.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id=str(invoice_id))
        if invoice.status != InvoiceStatus.PENDING:
            raise InvoiceConflictError(
                f"Invoice is {invoice.status.value} and cannot be cancelled",
                invoice_id=str(invoice_id),
            )

        # A payment notification may have settled the invoice since the read
        if not await self.invoice_dao.cancel_if_pending(invoice_id):
            raise InvoiceConflictError(
                "Invoice is no longer pending and cannot be cancelled",
                invoice_id=str(invoice_id),
            )

        released = await self.order_dao.release_from_invoice(invoice_id)
        invoice = await self.invoice_dao.get_by_id(invoice_id, fresh=True)
        await self.audit.log_invoice_cancelled(invoice, actor_user_id=actor.id, released_orders=released)

        logger.info(
            "Invoice cancelled",
            extra={"invoice_id": str(invoice_id), "released_orders": released},
        )
        return invoice

    async def get_invoice(self, invoice_id: uuid.UUID, user: User) -> Invoice:
        """
        Get an invoice visible to the user.

        Customers only see their own invoices; anything else is reported
        as not found.
        """
        invoice = await self.invoice_dao.get_by_id(invoice_id)
        if invoice is None or not self._can_view(invoice, user):
            raise InvoiceNotFoundError(invoice_id=str(invoice_id))
        return invoice

    async def list_invoices(
        self,
        user: User,
        customer_id: Optional[uuid.UUID] = None,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Invoice]:
        """List invoices; non-admins are restricted to their own."""
        if user.role != UserRole.ADMIN:
            customer_id = user.id
        return await self.invoice_dao.list_for_customer(
            customer_id=customer_id,
            status=status,
            skip=skip,
            limit=limit,
        )

    @staticmethod
    def _can_view(invoice: Invoice, user: User) -> bool:
        return user.role == UserRole.ADMIN or invoice.customer_id == user.id
