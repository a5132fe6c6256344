"""Pipe-delimited NFC tag payloads.

    register:        ID|Name|BatchNo|ExpiryDate|Origin[|Category|Quantity]
    update location: ID|Location|Price[|Status]
    log sale:        ID|SaleDate|Price
    check:           ID

Each parser returns the same request model the JSON endpoints use, so
both ingress paths reach the service in one shape. Everything here runs
before any ledger call.
"""

from chainstock.schemas.requests import (
    LogSaleRequest,
    RegisterRequest,
    UpdateLocationRequest,
    parse_body,
)
from chainstock.services.exceptions import ValidationError
from chainstock.services.status_codec import LABELS, ProductStatus

REGISTER_FORMAT = "ID|Name|BN|ExpDate|Origin[|Category|Quantity]"
LOCATION_FORMAT = "ID|Location|Price|Status"
SALE_FORMAT = "ID|SaleDate|Price"

DEFAULT_CATEGORY = "Others"
DEFAULT_QUANTITY = 1
DEFAULT_ICON = "BookReader"
NO_TAG = "none"


def _split(text: str | None, minimum: int, expected: str) -> list[str]:
    if not text or not text.strip():
        raise ValidationError("No text data found. Please ensure the NFC tag contains valid data.")
    parts = [p.strip() for p in text.split("|")]
    if len(parts) < minimum:
        raise ValidationError(f"Invalid text format. Expected: {expected}")
    return parts


def _non_negative_int(value: str, what: str) -> int:
    try:
        n = int(value)
    except ValueError:
        n = -1
    if n < 0:
        raise ValidationError(f"Invalid {what}. Must be a non-negative integer.")
    return n


def parse_register(text: str | None, tag_id: str | None = None) -> RegisterRequest:
    parts = _split(text, 5, REGISTER_FORMAT)
    product_id, name, batch_no, expiry_date, origin = parts[:5]
    category = parts[5] if len(parts) > 5 and parts[5] else DEFAULT_CATEGORY
    quantity = (
        _non_negative_int(parts[6], "quantity")
        if len(parts) > 6 and parts[6]
        else DEFAULT_QUANTITY
    )

    has_tag = tag_id and tag_id != NO_TAG
    return parse_body(RegisterRequest, {
        "id": product_id,
        "name": name,
        "sku": f"SKU-{product_id}",
        "batch_no": batch_no,
        "expiry_date": expiry_date,
        "origin": origin,
        "location": origin,
        "uid": tag_id if has_tag else f"UID-{product_id}",
        "category": category,
        "quantity_in_stock": quantity,
        "status": LABELS[ProductStatus.EN_ROUTE],
        "icon": DEFAULT_ICON,
    })


def parse_location(text: str | None) -> UpdateLocationRequest:
    parts = _split(text, 3, LOCATION_FORMAT)
    product_id, location, price = parts[:3]
    status = parts[3] if len(parts) > 3 and parts[3] else LABELS[ProductStatus.ARRIVED]
    return parse_body(UpdateLocationRequest, {
        "product_id": product_id,
        "location": location,
        "price": _non_negative_int(price, "price"),
        "status": status,
    })


def parse_sale(text: str | None) -> LogSaleRequest:
    product_id, sale_date, price = _split(text, 3, SALE_FORMAT)[:3]
    return parse_body(LogSaleRequest, {
        "product_id": product_id,
        "sale_date": sale_date,
        "price": _non_negative_int(price, "price"),
    })


def parse_product_id(text: str | None) -> str:
    if text is None:
        raise ValidationError(
            "Missing text parameter. Please ensure the NFC tag contains a valid product ID."
        )
    product_id = text.strip()
    if not product_id:
        raise ValidationError("Invalid product ID in text.")
    return product_id
