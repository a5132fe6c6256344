from enum import IntEnum

from chainstock.services.exceptions import InvalidStatus


class ProductStatus(IntEnum):
    EN_ROUTE = 0
    ARRIVED = 1
    SOLD = 2


LABELS = {
    ProductStatus.EN_ROUTE: "en route",
    ProductStatus.ARRIVED: "arrived",
    ProductStatus.SOLD: "sold",
}

UNKNOWN = "unknown"

_BY_LABEL = {label: status for status, label in LABELS.items()}


def normalize(status: str) -> str:
    """'En-Route ' -> 'en route'"""
    return " ".join((status or "").strip().lower().replace("-", " ").replace("_", " ").split())


def encode(status: str) -> int:
    try:
        return int(_BY_LABEL[normalize(status)])
    except KeyError:
        raise InvalidStatus(f"Invalid status: {status}") from None


def decode(value: int) -> str:
    # whatever the ledger returns is shown, never rejected
    try:
        return LABELS[ProductStatus(int(value))]
    except (TypeError, ValueError):
        return UNKNOWN
