"""
2Checkout buy-link signing.

WHAT: Builds signed dynamic checkout URLs for an invoice and verifies
links produced earlier.

WHY: The hosted checkout page trusts the line items, prices and
merchant-order-id only because the link carries an HMAC-SHA256 signature
made with the merchant's buy-link secret. The merchant-order-id is the
invoice id, which is how the later INS notification finds its invoice.

HOW:
- Parameters: merchant, dynamic, return/cancel URLs, currency,
  merchant-order-id, tangible, src and one prod/price/qty/type group per
  line item (first item unsuffixed, then _1, _2, ...)
- Signature: HMAC-SHA256 over the length-prefixed values in key order
- Credentials come from an injected TwoCheckoutConfig, never the environment
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Optional, Sequence, Union
from urllib.parse import parse_qsl, urlencode, urlsplit

from stitchpay.core.exceptions import ConfigurationError, ValidationError
from stitchpay.services.signing import serialize_sorted

logger = logging.getLogger(__name__)

DEFAULT_CHECKOUT_URL = "https://secure.2checkout.com/order/checkout.php"
SIGNATURE_PARAM = "signature"
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class TwoCheckoutConfig:
    """
    Outbound 2Checkout credentials and defaults.

    WHY: Keeping the secret in an explicit object lets tests sign with a
    known key and keeps the signer free of settings lookups.
    """

    merchant_code: str
    buy_link_secret: str
    checkout_url: str = DEFAULT_CHECKOUT_URL
    currency: str = "USD"

    @classmethod
    def from_settings(cls, settings) -> "TwoCheckoutConfig":
        return cls(
            merchant_code=settings.TCO_MERCHANT_CODE,
            buy_link_secret=settings.TCO_BUY_LINK_SECRET,
            checkout_url=settings.TCO_CHECKOUT_URL,
            currency=settings.TCO_CURRENCY,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.merchant_code and self.buy_link_secret)


@dataclass(frozen=True)
class LineItem:
    """One product row on the checkout page."""

    name: str
    unit_price: Union[Decimal, int, float, str]
    quantity: int = 1

    def formatted_price(self) -> str:
        """Unit price with exactly two decimals."""
        return f"{_to_decimal(self.unit_price).quantize(CENTS, rounding=ROUND_HALF_UP):.2f}"


def _to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid price: {value!r}")


def _suffix(index: int) -> str:
    return "" if index == 0 else f"_{index}"


class PaymentLinkSigner:
    """
    Signs and verifies 2Checkout dynamic buy-links.

    Example:
        signer = PaymentLinkSigner(TwoCheckoutConfig("MERCH", "secret"))
        url = signer.create_link(invoice.id, [LineItem("Logo hoodie", "48.00")],
                                 return_url, cancel_url)
    """

    def __init__(self, config: TwoCheckoutConfig):
        self.config = config

    def _require_credentials(self) -> None:
        if not self.config.is_complete:
            raise ConfigurationError()

    def _validate_items(self, items: Sequence[LineItem]) -> None:
        if not items:
            raise ValidationError("At least one line item is required")
        for item in items:
            if not item.name or not item.name.strip():
                raise ValidationError("Line item name is required")
            if _to_decimal(item.unit_price) < 0:
                raise ValidationError("Line item price cannot be negative", name=item.name)
            if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 1:
                raise ValidationError("Line item quantity must be at least 1", name=item.name)

    def build_params(
        self,
        invoice_id,
        items: Sequence[LineItem],
        return_url: str,
        cancel_url: str,
        currency: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Build the unsigned checkout parameters.

        Args:
            invoice_id: Invoice id sent as merchant-order-id
            items: Ordered line items (order is part of the signature)
            return_url: Where the buyer lands after paying
            cancel_url: Where the buyer lands after abandoning checkout
            currency: ISO currency code (defaults to the configured one)

        Returns:
            Parameter map in insertion order

        Raises:
            ConfigurationError: If merchant code or secret is missing
            ValidationError: If the line items are unusable
        """
        self._require_credentials()
        self._validate_items(items)

        params: Dict[str, str] = {
            "merchant": self.config.merchant_code,
            "dynamic": "1",
            "return-url": return_url,
            "return-type": "redirect",
            "cancel-url": cancel_url,
            "currency": currency or self.config.currency,
            "merchant-order-id": str(invoice_id),
            "tangible": "0",
            "src": "DYNAMIC",
        }
        for index, item in enumerate(items):
            suffix = _suffix(index)
            params[f"prod{suffix}"] = item.name.strip()
            params[f"price{suffix}"] = item.formatted_price()
            params[f"qty{suffix}"] = str(item.quantity)
            params[f"type{suffix}"] = "PRODUCT"
        return params

    def canonical_string(self, params: Dict[str, str]) -> str:
        """Length-prefixed values in key order, signature excluded."""
        return serialize_sorted(params, exclude=(SIGNATURE_PARAM,))

    def sign(self, params: Dict[str, str]) -> str:
        """HMAC-SHA256 hex digest of the canonical string."""
        self._require_credentials()
        return hmac.new(
            self.config.buy_link_secret.encode("utf-8"),
            self.canonical_string(params).encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def create_link(
        self,
        invoice_id,
        items: Sequence[LineItem],
        return_url: str,
        cancel_url: str,
        currency: Optional[str] = None,
    ) -> str:
        """
        Build a signed checkout URL.

        Returns:
            Checkout base URL with the urlencoded, signed parameters
        """
        params = self.build_params(invoice_id, items, return_url, cancel_url, currency)
        params[SIGNATURE_PARAM] = self.sign(params)

        logger.info(
            "Signed checkout link",
            extra={"invoice_id": str(invoice_id), "line_items": len(items)},
        )
        return f"{self.config.checkout_url}?{urlencode(params)}"

    def verify_url(self, url: str) -> bool:
        """
        Check that a checkout URL still carries a valid signature.

        Any edit to a signed parameter (price, quantity, item order,
        merchant-order-id) makes this return False.
        """
        params: Dict[str, str] = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
        received = params.pop(SIGNATURE_PARAM, None)
        if not received:
            return False
        return hmac.compare_digest(self.sign(params).encode("utf-8"), received.encode("utf-8"))

