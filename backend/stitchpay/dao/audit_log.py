"""
Audit Log Data Access Object (DAO).

WHAT: Data access layer for audit log operations.

WHY: Billing actions need an append-only trail. This DAO only inserts
entries; it exposes no update or delete.

HOW: Plain session operations on the AuditLog model.
"""

import uuid
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.models.audit_log import AuditLog, AuditAction


class AuditLogDAO:
    """
    Data Access Object for audit log operations.

    HOW: Uses SQLAlchemy async session for all operations.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize AuditLogDAO with database session.

        Args:
            session: Async database session
        """
        self.session = session

    async def create(
        self,
        action: AuditAction,
        resource_type: str,
        actor_user_id: Optional[uuid.UUID] = None,
        resource_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        extra_data: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> AuditLog:
        """
        Create a new audit log entry.

        Args:
            action: Type of event (from AuditAction enum)
            resource_type: Category of affected resource
            actor_user_id: User who performed the action (None for the provider)
            resource_id: Specific resource ID as text
            changes: Before/after values for mutations
            extra_data: Additional context
            ip_address: Client IP address
            user_agent: Client browser/application info
            request_id: Correlation id from the request middleware

        Returns:
            The created AuditLog entry

        Raises:
            IntegrityError: If database constraints are violated
        """
        log = AuditLog(
            actor_user_id=actor_user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            changes=changes,
            extra_data=extra_data,
            ip_address=ip_address,
            user_agent=user_agent,
            request_id=request_id,
        )
        self.session.add(log)
        await self.session.flush()
        await self.session.refresh(log)
        return log

