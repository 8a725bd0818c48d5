"""
FastAPI dependencies for authentication, authorization and service wiring.

WHY: Dependencies provide reusable authentication and authorization logic
that can be injected into route handlers, ensuring consistent security
across the API. Services are built here from settings so route handlers
and services never read the environment themselves.
"""

import uuid
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from stitchpay.core.auth import verify_token
from stitchpay.core.config import settings
from stitchpay.core.exceptions import AuthenticationError, AuthorizationError
from stitchpay.db.session import get_db
from stitchpay.dao.user import UserDAO
from stitchpay.models.user import User, UserRole
from stitchpay.services.artifact_service import StockDesignFileCopier
from stitchpay.services.ins_verifier import INSConfig
from stitchpay.services.invoice_service import InvoiceService
from stitchpay.services.payment_link import PaymentLinkSigner, TwoCheckoutConfig
from stitchpay.services.reconciliation_service import ReconciliationService
from stitchpay.services.storage_service import StorageService, get_storage_service


# auto_error=False: a missing header must be a 401, not HTTPBearer's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from the bearer token.

    WHY: This dependency:
    1. Extracts token from Authorization header
    2. Verifies token signature, audience and expiration
    3. Fetches the user named by the "sub" claim
    4. Ensures user still exists and is active

    Raises:
        AuthenticationError: If token is missing, invalid, expired, or user not found
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    # TokenExpiredError / TokenInvalidError are AuthenticationErrors (401)
    payload = verify_token(credentials.credentials)

    subject = payload.get("sub")
    try:
        user_id = uuid.UUID(str(subject))
    except (TypeError, ValueError):
        raise AuthenticationError(message="Invalid token: missing subject")

    # User data in token might be stale; always fetch current data
    user = await UserDAO(db).get_by_id(user_id)

    if not user:
        raise AuthenticationError(message="User not found", user_id=str(user_id))

    if not user.is_active:
        raise AuthenticationError(message="User account is inactive", user_id=str(user_id))

    return user


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require user to have ADMIN role.

    Usage:
        @router.post("/generate")
        async def generate(admin: User = Depends(require_admin)):
            ...

    Raises:
        AuthorizationError: If user is not ADMIN
    """
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationError(
            user_id=str(current_user.id),
            user_role=current_user.role.value,
        )
    return current_user


def get_payment_link_signer() -> PaymentLinkSigner:
    """Buy-link signer configured from settings."""
    return PaymentLinkSigner(TwoCheckoutConfig.from_settings(settings))


def get_ins_config() -> INSConfig:
    """INS verification rules configured from settings."""
    return INSConfig.from_settings(settings)


def get_invoice_service(
    db: AsyncSession = Depends(get_db),
    signer: PaymentLinkSigner = Depends(get_payment_link_signer),
) -> InvoiceService:
    return InvoiceService(db, signer)


def get_reconciliation_service(
    db: AsyncSession = Depends(get_db),
    config: INSConfig = Depends(get_ins_config),
    storage: StorageService = Depends(get_storage_service),
) -> ReconciliationService:
    return ReconciliationService(db, config, StockDesignFileCopier(db, storage))
