"""
2Checkout INS (Instant Notification Service) verification.

WHAT: Authenticates inbound payment notifications and classifies them.

WHY: The webhook endpoint is unauthenticated; the HASH field is the only
proof a notification came from 2Checkout. The provider defines the digest
as MD5 over the length-prefixed field values followed by the INS secret
word. That is weaker than the HMAC-SHA256 used for buy-links, but it is
what the provider sends, so it is kept as-is.

HOW:
- Drop HASH, serialize the remaining fields in key order, append the secret
- Compare digests with hmac.compare_digest
- Success statuses and the amount tolerance come from INSConfig
"""

import hashlib
import hmac
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Tuple

from stitchpay.core.exceptions import ConfigurationError
from stitchpay.services.signing import serialize_sorted

HASH_FIELD = "HASH"
DEFAULT_SUCCESS_STATUSES: Tuple[str, ...] = ("COMPLETE", "AUTHRECEIVED", "PAYMENT_AUTHORIZED")
DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class INSConfig:
    """Inbound notification secret and classification rules."""

    secret_word: str
    success_statuses: Tuple[str, ...] = DEFAULT_SUCCESS_STATUSES
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE

    @classmethod
    def from_settings(cls, settings) -> "INSConfig":
        return cls(
            secret_word=settings.TCO_INS_SECRET_WORD,
            success_statuses=normalize_statuses(settings.TCO_SUCCESS_STATUSES),
            amount_tolerance=Decimal(str(settings.TCO_AMOUNT_TOLERANCE)),
        )

    def is_success_status(self, status: Optional[str]) -> bool:
        """Case-insensitive membership in the success allow-list."""
        if not status:
            return False
        return status.strip().upper() in normalize_statuses(self.success_statuses)

    def amount_matches(self, paid: Optional[Decimal], expected: Decimal) -> bool:
        """True if the paid amount is within tolerance of the expected total."""
        if paid is None:
            return False
        return abs(paid - Decimal(expected)) <= self.amount_tolerance


def normalize_statuses(statuses: Iterable[str]) -> Tuple[str, ...]:
    return tuple(status.strip().upper() for status in statuses if status and status.strip())


class INSSignatureVerifier:
    """
    Computes and checks the HASH of an INS notification.

    Example:
        verifier = INSSignatureVerifier(INSConfig(secret_word="word"))
        if not verifier.verify(payload):
            ...
    """

    def __init__(self, config: INSConfig):
        self.config = config

    def compute_hash(self, payload: Mapping[str, Optional[str]]) -> str:
        """
        MD5 hex digest the provider would send for this payload.

        Raises:
            ConfigurationError: If no INS secret word is configured
        """
        if not self.config.secret_word:
            raise ConfigurationError("INS secret word not configured")
        material = serialize_sorted(payload, exclude=(HASH_FIELD,)) + self.config.secret_word
        return hashlib.md5(material.encode("utf-8")).hexdigest()

    def verify(self, payload: Mapping[str, Optional[str]]) -> bool:
        """
        Check the payload's HASH field.

        The received value is compared byte for byte: the provider sends
        lowercase hex with no padding.

        Returns:
            False when HASH is absent or does not match

        Raises:
            ConfigurationError: If no INS secret word is configured
        """
        expected = self.compute_hash(payload)
        received = payload.get(HASH_FIELD) or ""
        if not received:
            return False
        return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
