"""
Order attachment Data Access Object (DAO).
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.dao.base import BaseDAO
from stitchpay.models.order import OrderAttachment


class OrderAttachmentDAO(BaseDAO[OrderAttachment]):
    """Data Access Object for OrderAttachment model."""

    def __init__(self, session: AsyncSession):
        super().__init__(OrderAttachment, session)

    async def exists_for_path(self, order_id: uuid.UUID, file_path: str) -> bool:
        """True if the order already has an attachment stored at file_path."""
        return await self.exists(order_id=order_id, file_path=file_path)

