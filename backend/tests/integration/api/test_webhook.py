"""
Integration tests for the 2Checkout INS webhook.

WHAT: Tests /api/webhooks/2checkout from probe to settled invoice.

WHY: The provider retries anything that is not a 2xx and may deliver the
same notification twice. Only a verified notification for the right
amount may mark an invoice paid, and only once.
"""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import (
    CustomerFactory,
    InvoiceFactory,
    OrderFactory,
    StockDesignFactory,
    UserFactory,
    auth_headers,
    signed_ins_payload,
)
from stitchpay.core.exceptions import StorageError
from stitchpay.models.audit_log import AuditAction, AuditLog
from stitchpay.models.invoice import Invoice, InvoiceStatus
from stitchpay.models.order import OrderAttachment, PaymentStatus

WEBHOOK_URL = "/api/webhooks/2checkout"


def _notification(invoice_id, amount="120.00", status="COMPLETE", refno="900001") -> dict:
    return {
        "REFNO": refno,
        "ORDERNO": "7001",
        "ORDERSTATUS": status,
        "PAYMENTAMOUNT": amount,
        "PAYMENTMETHOD": "CCVISAMC",
        "merchant-order-id": str(invoice_id),
    }


class TestWebhookEndpoint:
    """Readiness and unsigned traffic."""

    @pytest.mark.asyncio
    async def test_get_reports_ready(self, client: AsyncClient):
        response = await client.get(WEBHOOK_URL)

        assert response.status_code == 200
        assert response.json() == {"message": "2Checkout IPN endpoint is active", "status": "ready"}

    @pytest.mark.asyncio
    async def test_options(self, client: AsyncClient):
        response = await client.options(WEBHOOK_URL)

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_empty_post_is_probe(self, client: AsyncClient):
        response = await client.post(WEBHOOK_URL)

        assert response.status_code == 200
        assert response.json() == {"message": "Endpoint is active and ready"}

    @pytest.mark.asyncio
    async def test_missing_hash(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [order])

        response = await client.post(WEBHOOK_URL, data=_notification(invoice.id, amount="60.00"))

        assert response.status_code == 200
        assert response.json() == {"message": "Received but missing signature"}
        await db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PENDING

    @pytest.mark.asyncio
    async def test_bad_signature(self, client: AsyncClient, db_session: AsyncSession, storage):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [order])
        payload = signed_ins_payload(_notification(invoice.id, amount="60.00"), secret_word="wrong-word")

        response = await client.post(WEBHOOK_URL, data=payload)

        assert response.status_code == 200
        assert response.json() == {"message": "Signature verification failed"}
        await db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PENDING
        storage.upload.assert_not_called()

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.WEBHOOK_REJECTED)
        )
        assert result.scalar_one().extra_data["reason"] == "invalid_signature"

    @pytest.mark.asyncio
    async def test_tampered_amount_fails_signature(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [order])
        payload = signed_ins_payload(_notification(invoice.id, amount="60.00"))
        payload["PAYMENTAMOUNT"] = "1.00"

        response = await client.post(WEBHOOK_URL, data=payload)

        assert response.json() == {"message": "Signature verification failed"}

    @pytest.mark.asyncio
    async def test_unparseable_json(self, client: AsyncClient):
        response = await client.post(
            WEBHOOK_URL,
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert "message" in response.json()


class TestWebhookResolution:
    """Notifications that cannot be tied to an invoice."""

    @pytest.mark.asyncio
    async def test_no_invoice_reference(self, client: AsyncClient):
        fields = _notification(uuid.uuid4())
        del fields["merchant-order-id"]

        response = await client.post(WEBHOOK_URL, data=signed_ins_payload(fields))

        assert response.status_code == 400
        assert response.json() == {"error": "Invoice ID not found"}

    @pytest.mark.asyncio
    async def test_malformed_invoice_reference(self, client: AsyncClient):
        fields = _notification("not-a-uuid")

        response = await client.post(WEBHOOK_URL, data=signed_ins_payload(fields))

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid invoice ID"}

    @pytest.mark.asyncio
    async def test_unknown_invoice(self, client: AsyncClient):
        response = await client.post(WEBHOOK_URL, data=signed_ins_payload(_notification(uuid.uuid4())))

        assert response.status_code == 404
        assert response.json() == {"error": "Invoice not found"}


class TestWebhookSettlement:

    @pytest.mark.asyncio
    async def test_marks_invoice_and_orders_paid(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        first = await OrderFactory.create(db_session, customer)
        second = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [first, second])

        response = await client.post(WEBHOOK_URL, data=signed_ins_payload(_notification(invoice.id)))

        assert response.status_code == 200
        assert response.json() == {"message": "Webhook processed successfully"}

        await db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.tco_reference_number == "900001"
        assert invoice.tco_order_id == "7001"
        assert invoice.tco_payment_method == "CCVISAMC"
        assert invoice.paid_at is not None

        for order in (first, second):
            await db_session.refresh(order)
            assert order.payment_status == PaymentStatus.PAID

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.PAYMENT_RECEIVED)
        )
        audit = result.scalar_one()
        assert audit.resource_id == str(invoice.id)
        assert audit.actor_user_id is None

    @pytest.mark.asyncio
    async def test_json_payload_accepted(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [order])

        response = await client.post(
            WEBHOOK_URL,
            json=signed_ins_payload(_notification(invoice.id, amount="60.00")),
        )

        assert response.json() == {"message": "Webhook processed successfully"}
        await db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PAID

    @pytest.mark.asyncio
    async def test_redelivery_is_idempotent(self, client: AsyncClient, db_session: AsyncSession, storage):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [order])
        payload = signed_ins_payload(_notification(invoice.id, amount="60.00"))

        first = await client.post(WEBHOOK_URL, data=payload)
        await db_session.refresh(invoice)
        paid_at = invoice.paid_at

        second = await client.post(WEBHOOK_URL, data=payload)

        assert first.json() == {"message": "Webhook processed successfully"}
        assert second.status_code == 200
        assert second.json() == {"message": "Already processed"}
        await db_session.refresh(invoice)
        assert invoice.paid_at == paid_at

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.PAYMENT_RECEIVED)
        )
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_redelivery_by_reference_number_only(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        await InvoiceFactory.create(
            db_session, customer, [order], status=InvoiceStatus.PAID, tco_reference_number="900001"
        )
        fields = _notification(uuid.uuid4(), amount="60.00")
        del fields["merchant-order-id"]

        response = await client.post(WEBHOOK_URL, data=signed_ins_payload(fields))

        assert response.json() == {"message": "Already processed"}

    @pytest.mark.asyncio
    async def test_amount_mismatch_leaves_invoice_pending(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer, final_price=Decimal("48.00"))
        invoice = await InvoiceFactory.create(db_session, customer, [order])

        response = await client.post(
            WEBHOOK_URL,
            data=signed_ins_payload(_notification(invoice.id, amount="47.50")),
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Amount mismatch"}
        await db_session.refresh(invoice)
        await db_session.refresh(order)
        assert invoice.status == InvoiceStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING_PAYMENT

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.WEBHOOK_REJECTED)
        )
        assert result.scalar_one().extra_data["reason"] == "amount_mismatch"

    @pytest.mark.asyncio
    async def test_amount_within_tolerance(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer, final_price=Decimal("48.00"))
        invoice = await InvoiceFactory.create(db_session, customer, [order])

        response = await client.post(
            WEBHOOK_URL,
            data=signed_ins_payload(_notification(invoice.id, amount="47.99")),
        )

        assert response.json() == {"message": "Webhook processed successfully"}

    @pytest.mark.asyncio
    async def test_pending_status_acknowledged_without_changes(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [order])

        response = await client.post(
            WEBHOOK_URL,
            data=signed_ins_payload(_notification(invoice.id, amount="60.00", status="PENDING")),
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Notification acknowledged"}
        await db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.tco_reference_number is None

    @pytest.mark.asyncio
    async def test_lowercase_success_status(self, client: AsyncClient, db_session: AsyncSession):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)
        invoice = await InvoiceFactory.create(db_session, customer, [order])

        response = await client.put(
            WEBHOOK_URL,
            data=signed_ins_payload(_notification(invoice.id, amount="60.00", status="authreceived")),
        )

        assert response.json() == {"message": "Webhook processed successfully"}


class TestInvoiceToPayment:
    """Generate an invoice through the API, then pay it through the webhook."""

    @pytest.mark.asyncio
    async def test_full_flow_copies_stock_design(
        self, client: AsyncClient, db_session: AsyncSession, storage
    ):
        admin = await UserFactory.create_admin(db_session)
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session)
        custom = await OrderFactory.create(db_session, customer, final_price=Decimal("60.00"))
        stock = await OrderFactory.create(
            db_session, customer, final_price=Decimal("60.00"), stock_design=design
        )

        generated = await client.post(
            "/api/invoices/generate",
            json={"orderIds": [str(custom.id), str(stock.id)], "customerId": str(customer.id)},
            headers=auth_headers(admin),
        )
        assert generated.status_code == 200
        invoice_id = uuid.UUID(generated.json()["invoice"]["id"])

        response = await client.post(
            WEBHOOK_URL,
            data=signed_ins_payload(_notification(invoice_id, amount="120.00")),
        )

        assert response.json() == {"message": "Webhook processed successfully"}

        invoice = await db_session.get(Invoice, invoice_id)
        await db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PAID

        storage.download.assert_called_once_with("stock-design-files", "designs/rose-monogram.zip")
        result = await db_session.execute(select(OrderAttachment))
        attachments = result.scalars().all()
        assert len(attachments) == 1
        attachment = attachments[0]
        assert attachment.order_id == stock.id
        assert attachment.file_path == f"orders/{stock.order_number}/rose-monogram.zip"
        assert attachment.filename == "rose-monogram.zip"
        assert attachment.mime_type == "application/zip"
        assert attachment.uploaded_by is None

    @pytest.mark.asyncio
    async def test_copy_failure_does_not_undo_payment(
        self, client: AsyncClient, db_session: AsyncSession, storage
    ):
        storage.download.side_effect = StorageError("bucket unavailable")
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer, stock_design=design)
        invoice = await InvoiceFactory.create(db_session, customer, [order])

        response = await client.post(
            WEBHOOK_URL,
            data=signed_ins_payload(_notification(invoice.id, amount="60.00")),
        )

        assert response.json() == {"message": "Webhook processed successfully"}
        await db_session.refresh(invoice)
        await db_session.refresh(order)
        assert invoice.status == InvoiceStatus.PAID
        assert order.payment_status == PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_paying_cancelled_invoice_leaves_rebilled_orders_alone(
        self, client: AsyncClient, db_session: AsyncSession, storage
    ):
        """
        WHY: A cancelled invoice releases its orders, which may then be
        billed on a new invoice. A late payment for the old link must not
        mark those orders paid while the new invoice is still payable.
        """
        admin = await UserFactory.create_admin(db_session)
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer, stock_design=design)
        body = {"orderIds": [str(order.id)], "customerId": str(customer.id)}

        first = await client.post("/api/invoices/generate", json=body, headers=auth_headers(admin))
        old_id = uuid.UUID(first.json()["invoice"]["id"])
        cancelled = await client.post(f"/api/invoices/{old_id}/cancel", headers=auth_headers(admin))
        assert cancelled.status_code == 200
        second = await client.post("/api/invoices/generate", json=body, headers=auth_headers(admin))
        assert second.status_code == 200
        new_id = uuid.UUID(second.json()["invoice"]["id"])

        response = await client.post(
            WEBHOOK_URL,
            data=signed_ins_payload(_notification(old_id, amount="60.00")),
        )

        assert response.status_code == 200
        old_invoice = await db_session.get(Invoice, old_id)
        new_invoice = await db_session.get(Invoice, new_id)
        await db_session.refresh(old_invoice)
        await db_session.refresh(new_invoice)
        await db_session.refresh(order)
        assert old_invoice.status == InvoiceStatus.PAID
        assert new_invoice.status == InvoiceStatus.PENDING
        assert order.invoice_id == new_id
        assert order.payment_status == PaymentStatus.PENDING_PAYMENT
        storage.upload.assert_not_called()
