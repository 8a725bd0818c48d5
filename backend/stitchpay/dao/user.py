"""
User Data Access Object (DAO).
"""

from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.dao.base import BaseDAO
from stitchpay.models.user import User


class UserDAO(BaseDAO[User]):
    """Data Access Object for User model."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)
