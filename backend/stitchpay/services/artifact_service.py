"""
Post-payment artifact copy for stock design orders.

WHAT: After an invoice is paid, copies each purchased stock design archive
into the order's attachment folder and registers it as an attachment.

WHY: Customers download purchases from their order page, which only lists
order attachments. Stock designs live in a separate read-only bucket, so
the file has to be placed under orders/<order_number>/ once paid.

HOW:
- Runs after the paid transition is committed
- Each order runs inside its own SAVEPOINT; a failure is logged and
  rolled back without touching the payment or the other orders
- Overwrites the object if it already exists; the attachment row is only
  inserted once per path
"""

import logging
import mimetypes
import posixpath
import uuid
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.core.config import settings
from stitchpay.dao.order import OrderDAO
from stitchpay.dao.order_attachment import OrderAttachmentDAO
from stitchpay.models.order import Order, OrderAttachment
from stitchpay.services.storage_service import StorageService

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def attachment_path(order_number: str, filename: str) -> str:
    """Object key of an order attachment."""
    return f"orders/{order_number}/{filename}"


def guess_content_type(filename: str, reported: Optional[str] = None) -> str:
    return mimetypes.guess_type(filename)[0] or reported or DEFAULT_CONTENT_TYPE


class StockDesignFileCopier:
    """
    Copies purchased stock design files into order attachments.

    Example:
        copier = StockDesignFileCopier(session, storage)
        await copier.copy_for_orders(invoice.covered_order_ids())
    """

    def __init__(
        self,
        session: AsyncSession,
        storage: StorageService,
        source_bucket: Optional[str] = None,
        target_bucket: Optional[str] = None,
    ):
        self.session = session
        self.storage = storage
        self.source_bucket = source_bucket or settings.S3_STOCK_DESIGN_BUCKET
        self.target_bucket = target_bucket or settings.S3_ORDER_ATTACHMENTS_BUCKET
        self.order_dao = OrderDAO(session)
        self.attachment_dao = OrderAttachmentDAO(session)

    async def copy_for_orders(self, order_ids: Iterable[uuid.UUID]) -> int:
        """
        Copy design files for every stock design order among order_ids.

        Never raises: a failure skips the affected order (or the whole copy
        when the orders cannot be loaded).

        Returns:
            Number of attachments created
        """
        try:
            orders = await self.order_dao.get_with_stock_design(order_ids)
        except Exception:
            logger.exception("Could not load orders for stock design copy")
            return 0

        created = 0
        for order in orders:
            try:
                async with self.session.begin_nested():
                    if await self.copy_for_order(order) is not None:
                        created += 1
            except Exception:
                logger.exception(
                    "Stock design file copy failed",
                    extra={"order_id": str(order.id), "order_number": order.order_number},
                )
        return created

    async def copy_for_order(self, order: Order) -> Optional[OrderAttachment]:
        """
        Copy the design file of one order.

        Returns:
            The new attachment, or None when there was nothing to do

        Raises:
            StorageError: If the download or upload fails
        """
        design = order.stock_design
        if design is None or not design.attachment_url:
            logger.debug("Order has no stock design file", extra={"order_id": str(order.id)})
            return None

        filename = posixpath.basename(design.attachment_filename or design.attachment_url)
        target_key = attachment_path(order.order_number, filename)

        source = self.storage.download(self.source_bucket, design.attachment_url)
        content_type = guess_content_type(filename, source.content_type)
        self.storage.upload(self.target_bucket, target_key, source.body, content_type)

        if await self.attachment_dao.exists_for_path(order.id, target_key):
            logger.info(
                "Attachment already registered",
                extra={"order_id": str(order.id), "file_path": target_key},
            )
            return None

        attachment = await self.attachment_dao.create(
            order_id=order.id,
            filename=filename,
            file_path=target_key,
            file_size=source.size,
            mime_type=content_type,
            uploaded_by=None,
        )
        logger.info(
            "Copied stock design file to order",
            extra={"order_id": str(order.id), "file_path": target_key, "size": source.size},
        )
        return attachment
