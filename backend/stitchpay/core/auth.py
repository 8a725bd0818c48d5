"""
Bearer token utilities.

WHY: Users sign in through the hosted auth platform, which issues HS256
JWTs signed with the project's JWT secret. This module verifies those
tokens and exposes the subject (user id) to the dependency layer.
"""

from typing import Dict, Any
from jose import jwt, JWTError

from stitchpay.core.config import settings
from stitchpay.core.exceptions import (
    ConfigurationError,
    TokenExpiredError,
    TokenInvalidError,
)


def _jwt_secret() -> str:
    if not settings.JWT_SECRET:
        raise ConfigurationError(message="JWT secret not configured")
    return settings.JWT_SECRET


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is malformed, has a bad signature or
            the wrong audience
    """
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            _jwt_secret(),
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )

    except jwt.ExpiredSignatureError:
        raise TokenExpiredError(message="Token has expired")

    except JWTError as e:
        raise TokenInvalidError(
            message="Invalid token",
            error=str(e),
        )
