"""Database package"""

from stitchpay.db.session import AsyncSessionLocal, engine, get_db
from stitchpay.models.base import Base

__all__ = ["Base", "AsyncSessionLocal", "engine", "get_db"]
