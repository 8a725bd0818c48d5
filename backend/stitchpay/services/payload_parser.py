"""
INS notification payload parsing.

WHAT: Decodes a webhook body into a flat str -> str map and extracts the
fields reconciliation needs.

WHY: 2Checkout posts form-urlencoded bodies, but test tools and proxies
have been seen sending multipart, JSON or a bare query string. The HASH
is computed over whatever fields arrive, so every transport must yield
the same flat map.

HOW: One decoder per content type, chosen from the Content-Type header.
A field repeated in the body keeps its last value.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl

from starlette.datastructures import Headers
from starlette.formparsers import MultiPartException, MultiPartParser

from stitchpay.core.exceptions import PayloadParseError

logger = logging.getLogger(__name__)


def _decode_text(raw_body: bytes) -> str:
    try:
        return raw_body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise PayloadParseError("Payload is not valid UTF-8", error=str(e))


def _parse_query_string(raw_body: bytes) -> Dict[str, str]:
    text = _decode_text(raw_body).strip()
    if not text:
        return {}
    return dict(parse_qsl(text, keep_blank_values=True))


def _json_text(key: str, value) -> str:
    """Field text as the provider wrote it. Numbers arrive as text already."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise PayloadParseError("Nested JSON values are not supported", field=key)
    return value


def _parse_json(raw_body: bytes) -> Dict[str, str]:
    text = _decode_text(raw_body).strip()
    if not text:
        return {}
    try:
        # Numbers keep their source text ("120.00" stays "120.00")
        data = json.loads(text, parse_float=str, parse_int=str, parse_constant=str)
    except json.JSONDecodeError as e:
        raise PayloadParseError("Payload is not valid JSON", error=str(e))
    if not isinstance(data, dict):
        raise PayloadParseError("JSON payload must be an object")
    return {str(key): _json_text(str(key), value) for key, value in data.items()}


async def _parse_multipart(content_type: str, raw_body: bytes) -> Dict[str, str]:
    async def body_stream():
        yield raw_body

    parser = MultiPartParser(Headers({"content-type": content_type}), body_stream())
    try:
        form = await parser.parse()
    except MultiPartException as e:
        raise PayloadParseError("Malformed multipart payload", error=str(e))

    payload: Dict[str, str] = {}
    try:
        for key, value in form.multi_items():
            if isinstance(value, str):
                payload[key] = value
    finally:
        await form.close()
    return payload


async def parse_payload(content_type: Optional[str], raw_body: bytes) -> Dict[str, str]:
    """
    Decode a notification body according to its content type.

    Args:
        content_type: Raw Content-Type header (may be None)
        raw_body: Request body bytes

    Returns:
        Flat field map (empty for an empty body)

    Raises:
        PayloadParseError: If the body cannot be decoded
    """
    media_type = (content_type or "").split(";")[0].strip().lower()

    if media_type == "multipart/form-data":
        return await _parse_multipart(content_type, raw_body)
    if media_type == "application/json" or media_type.endswith("+json"):
        return _parse_json(raw_body)
    # application/x-www-form-urlencoded and anything else: raw query string
    return _parse_query_string(raw_body)


def _parse_amount(value: Optional[str]) -> Optional[Decimal]:
    if value is None or not value.strip():
        return None
    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        logger.warning("Unparseable PAYMENTAMOUNT in notification", extra={"value": value})
        return None
    return amount if amount.is_finite() else None


@dataclass(frozen=True)
class NotificationFields:
    """Typed view of the INS fields used for reconciliation."""

    reference_number: Optional[str]
    order_number: Optional[str]
    status: Optional[str]
    amount: Optional[Decimal]
    method: Optional[str]
    merchant_order_id: Optional[str]

    @classmethod
    def from_payload(cls, payload: Mapping[str, str]) -> "NotificationFields":
        def field(name: str) -> Optional[str]:
            value = payload.get(name)
            if value is None:
                return None
            return value.strip() or None

        return cls(
            reference_number=field("REFNO"),
            order_number=field("ORDERNO"),
            status=field("ORDERSTATUS"),
            amount=_parse_amount(payload.get("PAYMENTAMOUNT")),
            method=field("PAYMENTMETHOD"),
            merchant_order_id=field("merchant-order-id") or field("MERCHANT_ORDER_ID"),
        )


def redact(payload: Mapping[str, str]) -> Dict[str, str]:
    """Payload copy safe for logging (HASH removed)."""
    return {key: value for key, value in payload.items() if key != "HASH"}
