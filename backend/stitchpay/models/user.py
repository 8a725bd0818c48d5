"""
User and customer models.

WHY: Users are the identities behind bearer tokens; their role decides
who may generate invoices. Customers are the billable parties orders and
invoices belong to. A customer row shares its id with the customer's
user account, which is also where in-app notifications are delivered.
"""

import enum
from sqlalchemy import Column, String, Enum, Boolean
from sqlalchemy.orm import relationship

from stitchpay.models.base import Base, TimestampMixin, PrimaryKeyMixin, enum_values


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Only ADMIN may generate or cancel invoices.
    """

    ADMIN = "admin"
    SALES_REP = "sales_rep"
    DESIGNER = "designer"
    CUSTOMER = "customer"


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """Back-office or storefront user."""

    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)

    role = Column(
        Enum(
            UserRole,
            name="userrole",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=UserRole.CUSTOMER,
    )

    # Inactive users keep their history but can no longer call the API
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Customer(Base, PrimaryKeyMixin, TimestampMixin):
    """Billable customer."""

    __tablename__ = "customers"

    name = Column(String(255), nullable=False)
    email = Column(String(255), index=True, nullable=False)

    orders = relationship("Order", back_populates="customer")
    invoices = relationship("Invoice", back_populates="customer")

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, email={self.email})>"
