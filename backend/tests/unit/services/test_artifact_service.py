"""
Tests for the post-payment stock design file copy.

WHY: Copy failures must never affect payment state or other orders, and
redelivered notifications must not create duplicate attachment rows.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import CustomerFactory, OrderFactory, StockDesignFactory, attachments_for
from stitchpay.core.exceptions import StorageError
from stitchpay.services.artifact_service import (
    StockDesignFileCopier,
    attachment_path,
    guess_content_type,
)
from stitchpay.services.storage_service import StoredObject


def _copier(session: AsyncSession, storage) -> StockDesignFileCopier:
    return StockDesignFileCopier(
        session,
        storage,
        source_bucket="stock-design-files",
        target_bucket="order-attachments",
    )


class TestHelpers:

    def test_attachment_path(self):
        assert attachment_path("ORD-1001", "rose.zip") == "orders/ORD-1001/rose.zip"

    def test_guess_content_type(self):
        assert guess_content_type("rose.zip") == "application/zip"
        assert guess_content_type("rose.unknownext", None) == "application/octet-stream"
        assert guess_content_type("rose.unknownext", "application/x-dst") == "application/x-dst"


class TestStockDesignFileCopier:

    @pytest.mark.asyncio
    async def test_copies_file_and_registers_attachment(self, db_session: AsyncSession, storage):
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer, order_number="ORD-2001", stock_design=design)

        created = await _copier(db_session, storage).copy_for_orders([order.id])

        assert created == 1
        storage.download.assert_called_once_with("stock-design-files", "designs/rose-monogram.zip")
        storage.upload.assert_called_once_with(
            "order-attachments",
            "orders/ORD-2001/rose-monogram.zip",
            b"PK\x03\x04design-archive",
            "application/zip",
        )
        attachments = await attachments_for(db_session, order.id)
        assert len(attachments) == 1
        assert attachments[0].filename == "rose-monogram.zip"
        assert attachments[0].file_path == "orders/ORD-2001/rose-monogram.zip"
        assert attachments[0].file_size == len(b"PK\x03\x04design-archive")
        assert attachments[0].uploaded_by is None

    @pytest.mark.asyncio
    async def test_order_without_stock_design_is_noop(self, db_session: AsyncSession, storage):
        customer = await CustomerFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer)

        created = await _copier(db_session, storage).copy_for_orders([order.id])

        assert created == 0
        storage.download.assert_not_called()
        storage.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_design_without_file_is_noop(self, db_session: AsyncSession, storage):
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session, attachment_url=None, attachment_filename=None)
        order = await OrderFactory.create(db_session, customer, stock_design=design)

        assert await _copier(db_session, storage).copy_for_orders([order.id]) == 0
        storage.download.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_does_not_block_other_orders(self, db_session: AsyncSession, storage):
        """
        WHY: One missing source file must not stop the other purchased
        designs from being delivered.
        """
        customer = await CustomerFactory.create(db_session)
        broken = await StockDesignFactory.create(
            db_session, name="Broken", attachment_url="designs/broken.zip", attachment_filename="broken.zip"
        )
        working = await StockDesignFactory.create(db_session)
        failing_order = await OrderFactory.create(db_session, customer, stock_design=broken)
        good_order = await OrderFactory.create(db_session, customer, stock_design=working)

        def download(bucket, key):
            if key == "designs/broken.zip":
                raise StorageError("Failed to download object")
            return StoredObject(key=key, body=b"zip", content_type="application/zip")

        storage.download.side_effect = download

        created = await _copier(db_session, storage).copy_for_orders([failing_order.id, good_order.id])

        assert created == 1
        assert await attachments_for(db_session, failing_order.id) == []
        assert len(await attachments_for(db_session, good_order.id)) == 1

    @pytest.mark.asyncio
    async def test_repeated_copy_keeps_single_attachment(self, db_session: AsyncSession, storage):
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer, stock_design=design)
        copier = _copier(db_session, storage)

        assert await copier.copy_for_orders([order.id]) == 1
        assert await copier.copy_for_orders([order.id]) == 0

        assert storage.upload.call_count == 2
        assert len(await attachments_for(db_session, order.id)) == 1

    @pytest.mark.asyncio
    async def test_order_load_failure_returns_zero(self, db_session: AsyncSession, storage):
        """
        WHY: The copy runs after the payment is committed; a failing order
        query must not turn the webhook response into an error.
        """
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session)
        order = await OrderFactory.create(db_session, customer, stock_design=design)
        copier = _copier(db_session, storage)

        failure = OperationalError("SELECT", {}, Exception("connection lost"))
        with patch.object(copier.order_dao, "get_with_stock_design", AsyncMock(side_effect=failure)):
            assert await copier.copy_for_orders([order.id]) == 0

        storage.download.assert_not_called()

    @pytest.mark.asyncio
    async def test_copies_in_invoice_order(self, db_session: AsyncSession, storage):
        customer = await CustomerFactory.create(db_session)
        design = await StockDesignFactory.create(db_session)
        first = await OrderFactory.create(db_session, customer, order_number="ORD-3001", stock_design=design)
        second = await OrderFactory.create(db_session, customer, order_number="ORD-3002", stock_design=design)

        await _copier(db_session, storage).copy_for_orders([second.id, first.id])

        uploaded_keys = [call.args[1] for call in storage.upload.call_args_list]
        assert uploaded_keys == [
            "orders/ORD-3002/rose-monogram.zip",
            "orders/ORD-3001/rose-monogram.zip",
        ]
