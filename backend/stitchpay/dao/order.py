"""
Order Data Access Object (DAO).

WHAT: Database operations on the billing subset of orders.

HOW: Bulk status moves are plain UPDATE statements keyed on the invoice,
so a redelivered payment notification never touches orders twice.
"""

import uuid
from typing import Iterable, List, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stitchpay.dao.base import BaseDAO
from stitchpay.models.order import Order, PaymentStatus


class OrderDAO(BaseDAO[Order]):
    """Data Access Object for Order model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Order, session)

    async def get_many_for_customer(
        self,
        order_ids: Sequence[uuid.UUID],
        customer_id: uuid.UUID,
    ) -> List[Order]:
        """
        Fetch the given orders that belong to the customer.

        Missing ids and other customers' orders are simply absent from
        the result; callers compare counts.

        Args:
            order_ids: Requested order ids
            customer_id: Owning customer

        Returns:
            Matching orders in the requested order
        """
        if not order_ids:
            return []
        result = await self.session.execute(
            select(Order).where(
                Order.id.in_(list(order_ids)),
                Order.customer_id == customer_id,
            )
        )
        by_id = {order.id: order for order in result.scalars().all()}
        return [by_id[order_id] for order_id in order_ids if order_id in by_id]

    async def get_with_stock_design(self, order_ids: Iterable[uuid.UUID]) -> List[Order]:
        """
        Fetch orders with their stock design eagerly loaded.

        WHY: Async sessions cannot lazy-load; the artifact copy reads
        order.stock_design for every paid order.

        Returns:
            Orders found, in the order of order_ids
        """
        ids = list(order_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Order)
            .where(Order.id.in_(ids))
            .options(selectinload(Order.stock_design))
            .execution_options(populate_existing=True)
        )
        by_id = {order.id: order for order in result.scalars().all()}
        return [by_id[order_id] for order_id in ids if order_id in by_id]

    async def attach_invoice(
        self,
        order_ids: Sequence[uuid.UUID],
        invoice_id: uuid.UUID,
    ) -> int:
        """Link orders to a freshly generated invoice and mark them pending payment."""
        result = await self.session.execute(
            update(Order)
            .where(Order.id.in_(list(order_ids)))
            .values(invoice_id=invoice_id, payment_status=PaymentStatus.PENDING_PAYMENT)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def ids_on_invoice(
        self,
        invoice_id: uuid.UUID,
        order_ids: Sequence[uuid.UUID],
    ) -> List[uuid.UUID]:
        """
        Subset of order_ids still linked to the invoice, in the given order.

        Orders released by a cancellation (and possibly billed again on
        another invoice) are left out.
        """
        if not order_ids:
            return []
        result = await self.session.execute(
            select(Order.id).where(
                Order.id.in_(list(order_ids)),
                Order.invoice_id == invoice_id,
            )
        )
        linked = set(result.scalars().all())
        return [order_id for order_id in order_ids if order_id in linked]

    async def mark_paid(self, order_ids: Sequence[uuid.UUID]) -> int:
        """Set payment_status to paid on the given orders."""
        if not order_ids:
            return 0
        result = await self.session.execute(
            update(Order)
            .where(Order.id.in_(list(order_ids)))
            .values(payment_status=PaymentStatus.PAID)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def release_from_invoice(self, invoice_id: uuid.UUID) -> int:
        """
        Detach every order from a cancelled invoice.

        Orders go back to unpaid so they can be billed again.
        """
        result = await self.session.execute(
            update(Order)
            .where(Order.invoice_id == invoice_id)
            .values(invoice_id=None, payment_status=PaymentStatus.UNPAID)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
