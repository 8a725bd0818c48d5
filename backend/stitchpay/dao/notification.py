"""
Notification Data Access Object (DAO).
"""

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.dao.base import BaseDAO
from stitchpay.models.notification import Notification, NotificationType


class NotificationDAO(BaseDAO[Notification]):
    """Data Access Object for Notification model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Notification, session)

    async def notify(
        self,
        user_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create an unread notification for a user."""
        return await self.create(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            read=False,
        )
