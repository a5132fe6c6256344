from typing import Any, NamedTuple, Sequence

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chainstock.services.exceptions import LedgerExecutionError
from chainstock.services.status_codec import decode

CATEGORIES = [
    "Electronics",
    "Medical",
    "Clothing",
    "Books",
    "Toys",
    "Beauty",
    "Sports",
    "Home Decor",
    "Home Appliances",
    "Others",
]


class RawProduct(NamedTuple):
    """getProduct(id) result, in contract order."""

    id: str
    name: str
    sku: str
    batch_no: str
    expiry_date: str
    origin: str
    location: str
    sold: bool
    sale_date: str
    uid: str
    price: int
    category: str
    quantity_in_stock: int
    status: int
    icon: str

    @classmethod
    def from_call(cls, values: Sequence[Any]) -> "RawProduct":
        values = tuple(values)
        if len(values) != len(cls._fields):
            raise LedgerExecutionError(
                f"getProduct returned {len(values)} values, expected {len(cls._fields)}"
            )
        return cls(*values)


class Product(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    sku: str
    batch_no: str
    expiry_date: str
    origin: str
    location: str
    sold: bool = False
    sale_date: str = ""
    uid: str
    price: int = 0
    category: str
    quantity_in_stock: int
    status: str
    icon: str
    exists: bool = True

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


def decode_product(raw: RawProduct) -> Product:
    return Product(
        id=raw.id,
        name=raw.name,
        sku=raw.sku,
        batch_no=raw.batch_no,
        expiry_date=raw.expiry_date,
        origin=raw.origin,
        location=raw.location,
        sold=bool(raw.sold),
        sale_date=raw.sale_date,
        uid=raw.uid,
        price=int(raw.price),
        category=raw.category,
        quantity_in_stock=int(raw.quantity_in_stock),
        status=decode(raw.status),
        icon=raw.icon,
    )
