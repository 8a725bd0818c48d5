"""
Tests for the 2Checkout buy-link signer.

WHY: The checkout page trusts prices only because of the signature. These
tests pin the parameter layout and the signature, and check that any
tampering is detected.
"""

from decimal import Decimal
from urllib.parse import parse_qsl, urlencode, urlsplit

import pytest

from stitchpay.core.exceptions import ConfigurationError, ValidationError
from stitchpay.services.payment_link import (
    DEFAULT_CHECKOUT_URL,
    LineItem,
    PaymentLinkSigner,
    TwoCheckoutConfig,
)
from stitchpay.services.signing import length_prefixed, serialize_sorted

RETURN_URL = "https://shop.example/payment/success"
CANCEL_URL = "https://shop.example/payment/cancelled"


@pytest.fixture
def signer() -> PaymentLinkSigner:
    return PaymentLinkSigner(TwoCheckoutConfig(merchant_code="TESTMERCH", buy_link_secret="buylinksecret"))


def _query(url: str) -> dict:
    return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))


class TestLengthPrefix:
    """Tests for the shared serialization."""

    def test_ascii_value(self):
        assert length_prefixed("COMPLETE") == "8COMPLETE"

    def test_utf8_byte_length(self):
        """Length counts UTF-8 bytes, not characters."""
        assert length_prefixed("café") == "5café"

    def test_none_is_empty(self):
        assert length_prefixed(None) == "0"

    def test_sorted_with_exclusion(self):
        params = {"b": "22", "a": "1", "signature": "x"}
        assert serialize_sorted(params, exclude=("signature",)) == "11222"


class TestBuildParams:
    """Tests for the checkout parameter layout."""

    def test_single_item_layout(self, signer):
        params = signer.build_params("INV-1", [LineItem("Logo hoodie", "48")], RETURN_URL, CANCEL_URL)

        assert params == {
            "merchant": "TESTMERCH",
            "dynamic": "1",
            "return-url": RETURN_URL,
            "return-type": "redirect",
            "cancel-url": CANCEL_URL,
            "currency": "USD",
            "merchant-order-id": "INV-1",
            "tangible": "0",
            "src": "DYNAMIC",
            "prod": "Logo hoodie",
            "price": "48.00",
            "qty": "1",
            "type": "PRODUCT",
        }

    def test_later_items_are_suffixed(self, signer):
        items = [LineItem("Polo", Decimal("60")), LineItem("Cap", 12.5, 3), LineItem("Patch", "0")]
        params = signer.build_params("INV-2", items, RETURN_URL, CANCEL_URL, currency="EUR")

        assert params["currency"] == "EUR"
        assert params["prod_1"] == "Cap"
        assert params["price_1"] == "12.50"
        assert params["qty_1"] == "3"
        assert params["type_1"] == "PRODUCT"
        assert params["prod_2"] == "Patch"
        assert params["price_2"] == "0.00"
        assert "prod_3" not in params

    def test_empty_items_rejected(self, signer):
        with pytest.raises(ValidationError):
            signer.build_params("INV-1", [], RETURN_URL, CANCEL_URL)

    @pytest.mark.parametrize(
        "item",
        [
            LineItem("  ", "10"),
            LineItem("Polo", "-0.01"),
            LineItem("Polo", "10", 0),
            LineItem("Polo", "not-a-number"),
        ],
    )
    def test_invalid_items_rejected(self, signer, item):
        with pytest.raises(ValidationError):
            signer.build_params("INV-1", [item], RETURN_URL, CANCEL_URL)

    @pytest.mark.parametrize(
        "config",
        [
            TwoCheckoutConfig(merchant_code="", buy_link_secret="secret"),
            TwoCheckoutConfig(merchant_code="TESTMERCH", buy_link_secret=""),
        ],
    )
    def test_missing_credentials_fail_closed(self, config):
        with pytest.raises(ConfigurationError):
            PaymentLinkSigner(config).create_link("INV-1", [LineItem("Polo", "10")], RETURN_URL, CANCEL_URL)


class TestSignature:
    """Tests for HMAC-SHA256 signing."""

    def test_known_signature(self, signer):
        """
        The signature matches an independently computed HMAC-SHA256 of the
        length-prefixed, key-sorted values.
        """
        url = signer.create_link("INV-1", [LineItem("Logo hoodie", "48")], RETURN_URL, CANCEL_URL)

        assert url.startswith(DEFAULT_CHECKOUT_URL + "?")
        assert _query(url)["signature"] == (
            "5c8ba1fb6400a2cf078c50329e7145cc4821fbcc1629b50bb2fc1330712a7586"
        )

    def test_canonical_string(self, signer):
        params = signer.build_params("INV-1", [LineItem("Logo hoodie", "48")], RETURN_URL, CANCEL_URL)
        assert signer.canonical_string(params) == (
            "38https://shop.example/payment/cancelled3USD119TESTMERCH5INV-1548.00"
            "11Logo hoodie118redirect36https://shop.example/payment/success7DYNAMIC107PRODUCT"
        )

    def test_deterministic(self, signer):
        items = [LineItem("Polo", "60"), LineItem("Cap", "12")]
        first = signer.create_link("INV-1", items, RETURN_URL, CANCEL_URL)
        second = signer.create_link("INV-1", items, RETURN_URL, CANCEL_URL)
        assert first == second

    def test_reordering_items_changes_signature(self, signer):
        polo, cap = LineItem("Polo", "60"), LineItem("Cap", "12")
        first = _query(signer.create_link("INV-1", [polo, cap], RETURN_URL, CANCEL_URL))
        second = _query(signer.create_link("INV-1", [cap, polo], RETURN_URL, CANCEL_URL))
        assert first["signature"] != second["signature"]

    def test_price_change_changes_signature(self, signer):
        first = _query(signer.create_link("INV-1", [LineItem("Polo", "60")], RETURN_URL, CANCEL_URL))
        second = _query(signer.create_link("INV-1", [LineItem("Polo", "60.01")], RETURN_URL, CANCEL_URL))
        assert first["signature"] != second["signature"]

    def test_different_secret_changes_signature(self, signer):
        other = PaymentLinkSigner(TwoCheckoutConfig(merchant_code="TESTMERCH", buy_link_secret="other"))
        items = [LineItem("Polo", "60")]
        first = _query(signer.create_link("INV-1", items, RETURN_URL, CANCEL_URL))
        second = _query(other.create_link("INV-1", items, RETURN_URL, CANCEL_URL))
        assert first["signature"] != second["signature"]


class TestVerifyUrl:
    """Tests for round-trip verification and tamper detection."""

    def test_generated_link_verifies(self, signer):
        url = signer.create_link("INV-1", [LineItem("Café crème tee", "25")], RETURN_URL, CANCEL_URL)
        assert signer.verify_url(url) is True

    def test_tampered_price_detected(self, signer):
        url = signer.create_link("INV-1", [LineItem("Polo", "60")], RETURN_URL, CANCEL_URL)
        params = _query(url)
        params["price"] = "1.00"
        assert signer.verify_url(f"{DEFAULT_CHECKOUT_URL}?{urlencode(params)}") is False

    def test_tampered_invoice_id_detected(self, signer):
        url = signer.create_link("INV-1", [LineItem("Polo", "60")], RETURN_URL, CANCEL_URL)
        params = _query(url)
        params["merchant-order-id"] = "INV-2"
        assert signer.verify_url(f"{DEFAULT_CHECKOUT_URL}?{urlencode(params)}") is False

    def test_missing_signature_rejected(self, signer):
        params = signer.build_params("INV-1", [LineItem("Polo", "60")], RETURN_URL, CANCEL_URL)
        assert signer.verify_url(f"{DEFAULT_CHECKOUT_URL}?{urlencode(params)}") is False
