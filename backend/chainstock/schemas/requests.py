from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from chainstock.models.product import CATEGORIES
from chainstock.services.exceptions import ValidationError

NonEmpty = Annotated[str, Field(min_length=1)]

M = TypeVar("M", bound=BaseModel)

_MISSING_TYPES = {"missing", "string_too_short"}


class _Body(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class RegisterRequest(_Body):
    id: NonEmpty
    name: NonEmpty
    sku: NonEmpty
    batch_no: NonEmpty
    expiry_date: NonEmpty
    origin: NonEmpty
    location: NonEmpty
    uid: NonEmpty
    category: NonEmpty
    quantity_in_stock: int = Field(ge=0)
    status: NonEmpty
    icon: NonEmpty

    @field_validator("category")
    @classmethod
    def known_category(cls, v: str) -> str:
        for c in CATEGORIES:
            if c.lower() == v.lower():
                return c
        raise ValueError(f"unknown category {v!r}")


class UpdateLocationRequest(_Body):
    product_id: NonEmpty
    location: NonEmpty
    price: int = Field(ge=0)
    status: NonEmpty


class LogSaleRequest(_Body):
    product_id: NonEmpty
    sale_date: NonEmpty
    price: int = Field(ge=0)


class DeleteRequest(_Body):
    id: NonEmpty


def parse_body(model: type[M], payload: Any) -> M:
    """Validate a JSON body, raising the API's ValidationError instead of a 422."""
    if not isinstance(payload, dict):
        raise ValidationError("Missing required fields")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        errors = exc.errors()
        if any(e["type"] in _MISSING_TYPES for e in errors):
            raise ValidationError("Missing required fields") from None
        first = errors[0]
        field = ".".join(str(p) for p in first["loc"])
        raise ValidationError(f"Invalid {field}: {first['msg']}") from None
