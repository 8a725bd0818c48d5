"""
Order, stock design and order attachment models.

Only the order fields the billing flow reads or writes are mapped here:
the storefront owns the rest of the order record.
"""

import enum
from datetime import datetime
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from stitchpay.models.base import Base, TimestampMixin, PrimaryKeyMixin, enum_values


class PaymentStatus(str, enum.Enum):
    """
    Order payment status.

    UNPAID is the initial ("unset") state. The invoice generator moves
    orders to PENDING_PAYMENT, the webhook receiver to PAID.
    """

    UNPAID = "unpaid"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    CANCELLED = "cancelled"


class StockDesign(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Pre-made design template sold as-is.

    attachment_url is the object key of the design archive inside the
    stock design bucket.
    """

    __tablename__ = "stock_designs"

    name = Column(String(255), nullable=False)
    attachment_url = Column(Text, nullable=True)
    attachment_filename = Column(String(255), nullable=True)
    attachment_size = Column(BigInteger, nullable=True)

    orders = relationship("Order", back_populates="stock_design")

    def __repr__(self) -> str:
        return f"<StockDesign(id={self.id}, name={self.name})>"


class Order(Base, PrimaryKeyMixin, TimestampMixin):
    """Customer order (billing subset)."""

    __tablename__ = "orders"

    order_number = Column(String(50), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=True)

    customer_id = Column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    final_price = Column(Numeric(10, 2), nullable=True)

    payment_status = Column(
        Enum(
            PaymentStatus,
            name="paymentstatus",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=PaymentStatus.UNPAID,
        index=True,
    )

    invoice_id = Column(
        Uuid,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    stock_design_id = Column(
        Uuid,
        ForeignKey("stock_designs.id", ondelete="SET NULL"),
        nullable=True,
    )

    customer = relationship("Customer", back_populates="orders")
    stock_design = relationship("StockDesign", back_populates="orders")
    attachments = relationship(
        "OrderAttachment",
        back_populates="order",
        cascade="all, delete-orphan",
    )

    @property
    def line_item_name(self) -> str:
        """Name shown on the checkout page: title, else order number."""
        return (self.title or "").strip() or self.order_number

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.order_number}, payment={self.payment_status})>"


class OrderAttachment(Base, PrimaryKeyMixin):
    """
    File registered against an order.

    uploaded_by is NULL for files the system placed there (purchased
    stock design archives).
    """

    __tablename__ = "order_attachments"

    order_id = Column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    filename = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="attachments")

    def __repr__(self) -> str:
        return f"<OrderAttachment(id={self.id}, path={self.file_path})>"
