"""
API schemas package.
"""

from stitchpay.schemas.invoice import (
    GenerateInvoiceRequest,
    GenerateInvoiceResponse,
    InvoiceSummary,
    InvoiceResponse,
    CheckoutProduct,
    CheckoutUrlRequest,
    CheckoutUrlResponse,
    EndpointStatus,
)

__all__ = [
    "GenerateInvoiceRequest",
    "GenerateInvoiceResponse",
    "InvoiceSummary",
    "InvoiceResponse",
    "CheckoutProduct",
    "CheckoutUrlRequest",
    "CheckoutUrlResponse",
    "EndpointStatus",
]
