"""
2Checkout INS reconciliation service.

WHAT: Applies a verified payment notification to its invoice: invoice and
orders become paid, then purchased stock design files are copied.

WHY: The provider retries any non-2xx response and may deliver the same
notification more than once, concurrently. The endpoint therefore answers
200 for everything the provider cannot fix by retrying, and the paid
transition is a compare-and-swap so only one delivery applies it.

HOW (in order):
1. Empty payload -> connectivity probe
2. HASH present and valid (nothing is trusted before this)
3. REFNO already on a paid invoice -> already processed
4. Resolve the invoice from merchant-order-id, else the REFNO match
5. Amount within tolerance of the frozen invoice total
6. Status in the success allow-list
7. Conditional UPDATE to paid, orders still linked to the invoice to
   paid, audit entry, commit
8. Best-effort artifact copy for those orders
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.dao.invoice import InvoiceDAO
from stitchpay.dao.order import OrderDAO
from stitchpay.models.invoice import Invoice
from stitchpay.services.artifact_service import StockDesignFileCopier
from stitchpay.services.audit import AuditService
from stitchpay.services.ins_verifier import HASH_FIELD, INSConfig, INSSignatureVerifier
from stitchpay.services.payload_parser import NotificationFields, redact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookOutcome:
    """HTTP status and short message returned to the provider."""

    status_code: int
    message: str
    is_error: bool = False

    def body(self) -> Dict[str, str]:
        return {"error" if self.is_error else "message": self.message}


PROBE = WebhookOutcome(200, "Endpoint is active and ready")
MISSING_SIGNATURE = WebhookOutcome(200, "Received but missing signature")
BAD_SIGNATURE = WebhookOutcome(200, "Signature verification failed")
ALREADY_PROCESSED = WebhookOutcome(200, "Already processed")
AMOUNT_MISMATCH = WebhookOutcome(200, "Amount mismatch")
NOT_SUCCESSFUL = WebhookOutcome(200, "Notification acknowledged")
PROCESSED = WebhookOutcome(200, "Webhook processed successfully")
UNPARSEABLE = WebhookOutcome(200, "Received but payload could not be parsed")
INVOICE_ID_MISSING = WebhookOutcome(400, "Invoice ID not found", is_error=True)
INVOICE_ID_INVALID = WebhookOutcome(400, "Invalid invoice ID", is_error=True)
INVOICE_NOT_FOUND = WebhookOutcome(404, "Invoice not found", is_error=True)


class ReconciliationService:
    """
    Reconciles INS notifications into paid invoices.

    Example:
        service = ReconciliationService(db, INSConfig.from_settings(settings), copier)
        outcome = await service.handle(payload)
    """

    def __init__(
        self,
        session: AsyncSession,
        config: INSConfig,
        copier: StockDesignFileCopier,
    ):
        self.session = session
        self.config = config
        self.verifier = INSSignatureVerifier(config)
        self.copier = copier
        self.invoice_dao = InvoiceDAO(session)
        self.order_dao = OrderDAO(session)
        self.audit = AuditService(session)

    async def handle(self, payload: Mapping[str, str]) -> WebhookOutcome:
        """
        Process one parsed notification.

        Returns:
            Outcome to send back to the provider

        Raises:
            ConfigurationError: If the INS secret word is not configured
            SQLAlchemyError: On unexpected store failures (provider retries)
        """
        if not payload:
            logger.info("Empty INS payload, treating as connectivity probe")
            return PROBE

        logger.info("Received INS notification", extra={"payload": redact(payload)})

        if not payload.get(HASH_FIELD):
            logger.warning("INS notification without HASH", extra={"refno": payload.get("REFNO")})
            return MISSING_SIGNATURE

        if not self.verifier.verify(payload):
            logger.warning("INS signature verification failed", extra={"refno": payload.get("REFNO")})
            await self.audit.log_webhook_rejected("invalid_signature", reference_number=payload.get("REFNO"))
            return BAD_SIGNATURE

        fields = NotificationFields.from_payload(payload)

        existing: Optional[Invoice] = None
        if fields.reference_number:
            existing = await self.invoice_dao.get_by_reference_number(fields.reference_number)
            if existing is not None and existing.is_paid:
                logger.info("INS notification already processed", extra={"refno": fields.reference_number})
                return ALREADY_PROCESSED

        if fields.merchant_order_id:
            try:
                invoice_id = uuid.UUID(fields.merchant_order_id)
            except ValueError:
                logger.error("Malformed merchant-order-id", extra={"merchant_order_id": fields.merchant_order_id})
                return INVOICE_ID_INVALID
        elif existing is not None:
            invoice_id = existing.id
        else:
            logger.error("INS notification has no resolvable invoice", extra={"refno": fields.reference_number})
            return INVOICE_ID_MISSING

        invoice = await self.invoice_dao.get_by_id(invoice_id, fresh=True)
        if invoice is None:
            logger.error("INS notification for unknown invoice", extra={"invoice_id": str(invoice_id)})
            return INVOICE_NOT_FOUND
        if invoice.is_paid:
            return ALREADY_PROCESSED

        if not self.config.amount_matches(fields.amount, invoice.total_amount):
            logger.error(
                "INS payment amount mismatch",
                extra={
                    "invoice_id": str(invoice.id),
                    "expected": str(invoice.total_amount),
                    "received": str(fields.amount),
                },
            )
            await self.audit.log_webhook_rejected(
                "amount_mismatch",
                reference_number=fields.reference_number,
                invoice_id=invoice.id,
            )
            return AMOUNT_MISMATCH

        if not self.config.is_success_status(fields.status):
            logger.info(
                "INS status is not a completed payment",
                extra={"invoice_id": str(invoice.id), "order_status": fields.status},
            )
            return NOT_SUCCESSFUL

        return await self._settle(invoice, fields)

    async def _settle(self, invoice: Invoice, fields: NotificationFields) -> WebhookOutcome:
        previous_status = invoice.status.value
        transitioned = await self.invoice_dao.mark_paid_if_unpaid(
            invoice.id,
            reference_number=fields.reference_number,
            provider_order_id=fields.order_number,
            payment_method=fields.method,
        )
        if not transitioned:
            logger.info("Concurrent INS delivery already settled invoice", extra={"invoice_id": str(invoice.id)})
            return ALREADY_PROCESSED

        if previous_status != "pending":
            logger.warning(
                "Payment received for non-pending invoice",
                extra={"invoice_id": str(invoice.id), "previous_status": previous_status},
            )

        covered = invoice.covered_order_ids()
        order_ids = await self.order_dao.ids_on_invoice(invoice.id, covered)
        if len(order_ids) != len(covered):
            logger.warning(
                "Paid invoice no longer holds all of its orders",
                extra={
                    "invoice_id": str(invoice.id),
                    "released_order_ids": [str(i) for i in covered if i not in order_ids],
                },
            )
        await self.order_dao.mark_paid(order_ids)
        await self.audit.log_payment_received(
            invoice,
            reference_number=fields.reference_number,
            payment_method=fields.method,
            amount=fields.amount,
            previous_status=previous_status,
        )
        await self.session.commit()

        logger.info(
            "Invoice paid",
            extra={
                "invoice_id": str(invoice.id),
                "refno": fields.reference_number,
                "order_count": len(order_ids),
            },
        )

        copied = await self.copier.copy_for_orders(order_ids)
        if copied:
            logger.info("Copied stock design files", extra={"invoice_id": str(invoice.id), "copied": copied})
        return PROCESSED
