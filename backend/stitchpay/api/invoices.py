"""
Invoice, payment and 2Checkout webhook API endpoints.

WHAT: HTTP surface of the billing flow.

WHY:
1. Admins bundle orders into invoices with a signed checkout link
2. Customers look up their invoices and pay through the link
3. 2Checkout reports payments through the INS webhook

HOW: FastAPI routers with:
- RBAC (ADMIN generates, cancels and signs; customers read their own)
- Services built by dependencies from settings
- A webhook route that accepts any method and answers the provider with
  short JSON messages
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from stitchpay.core.config import settings
from stitchpay.core.deps import (
    get_current_user,
    get_invoice_service,
    get_payment_link_signer,
    get_reconciliation_service,
    require_admin,
)
from stitchpay.core.exceptions import PayloadParseError
from stitchpay.models.invoice import InvoiceStatus
from stitchpay.models.user import User
from stitchpay.schemas.invoice import (
    CheckoutUrlRequest,
    CheckoutUrlResponse,
    EndpointStatus,
    GenerateInvoiceRequest,
    GenerateInvoiceResponse,
    InvoiceResponse,
    InvoiceSummary,
)
from stitchpay.services.invoice_service import InvoiceService
from stitchpay.services.payload_parser import parse_payload
from stitchpay.services.payment_link import LineItem, PaymentLinkSigner
from stitchpay.services.reconciliation_service import UNPARSEABLE, ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])
payments_router = APIRouter(prefix="/payments", tags=["payments"])
webhooks_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _request_origin(request: Request) -> str:
    """Origin of the admin UI, used for the default return pages."""
    return request.headers.get("origin") or settings.FRONTEND_URL


# ============================================================================
# Invoice Endpoints
# ============================================================================


@router.post(
    "/generate",
    response_model=GenerateInvoiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Generate invoice",
    description="Bundle a customer's orders into an invoice with a signed checkout link (ADMIN only)",
)
async def generate_invoice(
    data: GenerateInvoiceRequest,
    request: Request,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
) -> GenerateInvoiceResponse:
    """
    Generate an invoice for one or more orders.

    Raises:
        ValidationError (400): If orderIds is empty
        OrderNotFoundError (404): If any order is missing or not the customer's
        InvoiceConflictError (409): If any order is paid or on an open invoice
        ConfigurationError (500): If 2Checkout credentials are missing
    """
    invoice = await service.generate(
        actor=current_user,
        customer_id=data.customer_id,
        order_ids=data.order_ids,
        origin=_request_origin(request),
        return_url=data.return_url,
        cancel_url=data.cancel_url,
        invoice_title=data.invoice_title,
        month_year=data.month_year,
    )
    return GenerateInvoiceResponse(
        invoice=InvoiceSummary(
            id=invoice.id,
            total_amount=invoice.total_amount,
            payment_link=invoice.payment_link,
            order_count=invoice.order_count,
        )
    )


@router.get(
    "",
    response_model=List[InvoiceResponse],
    summary="List invoices",
    description="Admins see all invoices; customers see their own",
)
async def list_invoices(
    customer_id: Optional[uuid.UUID] = Query(default=None),
    status_filter: Optional[InvoiceStatus] = Query(default=None, alias="status"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> List[InvoiceResponse]:
    invoices = await service.list_invoices(
        current_user,
        customer_id=customer_id,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    return [InvoiceResponse.model_validate(invoice) for invoice in invoices]


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Get invoice",
)
async def get_invoice(
    invoice_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    """
    Get one invoice.

    Raises:
        InvoiceNotFoundError (404): If missing or owned by another customer
    """
    invoice = await service.get_invoice(invoice_id, current_user)
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceResponse,
    summary="Cancel invoice",
    description="Cancel a pending invoice and release its orders (ADMIN only)",
)
async def cancel_invoice(
    invoice_id: uuid.UUID,
    current_user: User = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    """
    Cancel a pending invoice.

    Raises:
        InvoiceNotFoundError (404): If the invoice doesn't exist
        InvoiceConflictError (409): If the invoice is paid or already cancelled
    """
    invoice = await service.cancel(invoice_id, current_user)
    return InvoiceResponse.model_validate(invoice)


# ============================================================================
# Payment Endpoints
# ============================================================================


@payments_router.post(
    "/checkout-url",
    response_model=CheckoutUrlResponse,
    summary="Sign checkout URL",
    description="Sign a 2Checkout buy-link for arbitrary line items (ADMIN only)",
)
async def create_checkout_url(
    data: CheckoutUrlRequest,
    current_user: User = Depends(require_admin),
    signer: PaymentLinkSigner = Depends(get_payment_link_signer),
) -> CheckoutUrlResponse:
    items = [
        LineItem(name=product.name, unit_price=product.price, quantity=product.quantity)
        for product in data.products
    ]
    url = signer.create_link(
        data.invoice_id,
        items,
        data.return_url,
        data.cancel_url,
        currency=data.currency.upper() if data.currency else None,
    )
    return CheckoutUrlResponse(checkout_url=url)


# ============================================================================
# Webhook Endpoints
# ============================================================================


@webhooks_router.api_route(
    "/2checkout",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    summary="2Checkout INS webhook",
    description="Receive 2Checkout Instant Notifications (no auth; HASH verified)",
    responses={200: {"model": EndpointStatus}},
)
async def handle_2checkout_webhook(
    request: Request,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> Response:
    """
    Handle 2Checkout INS notifications.

    Note: No authentication required. Trust comes from the HASH field,
    verified with the INS secret word.

    Returns:
        200 for everything the provider should not retry; 400 / 404 when
        the notification names no usable invoice; 500 on store failures
    """
    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_200_OK)

    if request.method == "GET":
        return JSONResponse(
            EndpointStatus(message="2Checkout IPN endpoint is active", status="ready").model_dump()
        )

    raw_body = await request.body()
    try:
        payload = await parse_payload(request.headers.get("content-type"), raw_body)
    except PayloadParseError as e:
        logger.warning(
            "Unparseable INS payload",
            extra={"content_type": request.headers.get("content-type"), "error": e.message},
        )
        return JSONResponse(UNPARSEABLE.body(), status_code=UNPARSEABLE.status_code)

    outcome = await service.handle(payload)
    return JSONResponse(outcome.body(), status_code=outcome.status_code)
