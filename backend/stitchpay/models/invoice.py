"""
Invoice model for order billing and 2Checkout payment tracking.

WHAT: SQLAlchemy model representing one payable bundle of a customer's orders.

WHY: Invoices are the unit the payment provider knows about:
1. The invoice id travels as merchant-order-id in the checkout link
2. The frozen total is what the INS notification amount is checked against
3. Provider references (REFNO, ORDERNO) make redelivered notifications idempotent

HOW: Uses SQLAlchemy 2.0 with:
- Customer relationship
- Ordered JSON list of covered order ids
- Status enum for the pending -> paid workflow
- 2Checkout integration fields
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, TYPE_CHECKING
from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship, Mapped

from stitchpay.models.base import Base, enum_values

if TYPE_CHECKING:
    from stitchpay.models.user import Customer


class InvoiceStatus(str, Enum):
    """
    Invoice payment workflow status.

    - PENDING: Checkout link issued, waiting for the provider
    - PAID: A verified INS notification confirmed payment (terminal)
    - CANCELLED: Voided by an admin before payment
    """

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class Invoice(Base):
    """
    Invoice covering one or more orders of a single customer.

    Attributes:
        id: Primary key, also sent to 2Checkout as merchant-order-id
        customer_id: Billed customer
        order_ids: Ordered list of covered order ids (as strings)
        total_amount: Sum of the orders' final prices at generation time
        status: pending / paid / cancelled
        tco_reference_number: 2Checkout REFNO, set when paid
        tco_order_id: 2Checkout ORDERNO, set when paid
        tco_payment_method: Payment method label reported by 2Checkout
        payment_link: Signed checkout URL
        invoice_title / month_year: Optional labels shown to the customer
        created_by: Admin user that generated the invoice
        paid_at: When the paid transition happened
    """

    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)

    customer_id: Mapped[uuid.UUID] = Column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    order_ids: Mapped[List[str]] = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered list of covered order ids",
    )

    # Frozen at creation; never recomputed from the orders
    total_amount: Mapped[Decimal] = Column(
        Numeric(10, 2),
        nullable=False,
        default=0,
    )

    status: Mapped[InvoiceStatus] = Column(
        SQLEnum(
            InvoiceStatus,
            name="invoicestatus",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=InvoiceStatus.PENDING,
        index=True,
    )

    # 2Checkout integration
    tco_reference_number: Mapped[Optional[str]] = Column(
        String(64),
        nullable=True,
        unique=True,
        index=True,
        comment="2Checkout REFNO",
    )
    tco_order_id: Mapped[Optional[str]] = Column(
        String(64),
        nullable=True,
        comment="2Checkout ORDERNO",
    )
    tco_payment_method: Mapped[Optional[str]] = Column(
        String(64),
        nullable=True,
    )
    payment_link: Mapped[Optional[str]] = Column(Text, nullable=True)

    invoice_title: Mapped[Optional[str]] = Column(String(255), nullable=True)
    month_year: Mapped[Optional[str]] = Column(String(20), nullable=True)

    created_by: Mapped[Optional[uuid.UUID]] = Column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    paid_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)

    created_at: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    customer: Mapped["Customer"] = relationship(
        "Customer",
        back_populates="invoices",
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Invoice(id={self.id}, status={self.status}, total={self.total_amount})>"

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    @property
    def order_count(self) -> int:
        return len(self.order_ids or [])

    def covered_order_ids(self) -> List[uuid.UUID]:
        """Covered order ids as UUIDs, in invoice order."""
        return [uuid.UUID(str(order_id)) for order_id in (self.order_ids or [])]
