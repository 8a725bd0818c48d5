"""
Invoice and payment schemas for API request/response validation.

WHAT: Pydantic schemas for invoice generation, invoice lookups,
standalone checkout URLs and webhook acknowledgements.

WHY: The admin UI posts camelCase JSON (orderIds, customerId); responses
keep the snake_case field names the UI already reads. Money is kept as
Decimal internally and written as a JSON number.

HOW: Uses Pydantic v2 with Field aliases and model_config.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from stitchpay.models.invoice import InvoiceStatus

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ============================================================================
# Request Schemas
# ============================================================================


class GenerateInvoiceRequest(BaseModel):
    """
    Schema for generating an invoice from orders.

    An empty orderIds list is accepted here and rejected by the service,
    after the caller's role has been checked.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    order_ids: List[uuid.UUID] = Field(..., alias="orderIds")
    customer_id: uuid.UUID = Field(..., alias="customerId")
    return_url: Optional[str] = Field(default=None, alias="returnUrl", max_length=2048)
    cancel_url: Optional[str] = Field(default=None, alias="cancelUrl", max_length=2048)
    invoice_title: Optional[str] = Field(default=None, alias="invoiceTitle", max_length=255)
    month_year: Optional[str] = Field(default=None, alias="monthYear", max_length=20)


class CheckoutProduct(BaseModel):
    """One line item of a standalone checkout URL."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(default=1, ge=1)


class CheckoutUrlRequest(BaseModel):
    """Schema for signing a checkout URL for an existing invoice id."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    invoice_id: str = Field(..., alias="invoiceId", min_length=1, max_length=64)
    products: List[CheckoutProduct] = Field(..., min_length=1)
    return_url: str = Field(..., alias="returnUrl", min_length=1, max_length=2048)
    cancel_url: str = Field(..., alias="cancelUrl", min_length=1, max_length=2048)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


# ============================================================================
# Response Schemas
# ============================================================================


class InvoiceSummary(BaseModel):
    """Invoice fields returned right after generation."""

    id: uuid.UUID
    total_amount: Money
    payment_link: Optional[str]
    order_count: int


class GenerateInvoiceResponse(BaseModel):
    success: bool = True
    invoice: InvoiceSummary


class InvoiceResponse(BaseModel):
    """Schema for invoice detail and list responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    customer_id: uuid.UUID
    order_ids: List[str]
    total_amount: Money
    status: InvoiceStatus
    payment_link: Optional[str] = None
    invoice_title: Optional[str] = None
    month_year: Optional[str] = None
    tco_reference_number: Optional[str] = None
    tco_order_id: Optional[str] = None
    tco_payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CheckoutUrlResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    checkout_url: str = Field(..., serialization_alias="checkoutUrl")


class EndpointStatus(BaseModel):
    """Readiness payload of the webhook endpoint."""

    message: str
    status: str
