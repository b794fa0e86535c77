from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from pydantic import BaseModel, Field, field_validator

CATEGORIES = ("Starters", "Mains", "Desserts", "Drinks")

_CENTS = Decimal("0.01")
MAX_PRICE = 1_000_000


def format_price(value: Decimal | float | str) -> Decimal:
    """Quantize a price to exactly two fraction digits. Raises ValueError for non-finite or oversized prices."""
    try:
        price = Decimal(str(value))
        if not price.is_finite():
            raise ValueError(f"Price must be a finite number, got {value!r}")
        return price.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Cannot represent price {value!r}") from exc


class RawMenuItem(BaseModel):
    """One entry of the remote menu document."""

    name: str = Field(min_length=1)
    description: str = ""
    price: float = Field(ge=0, lt=MAX_PRICE, allow_inf_nan=False)
    category: str

    model_config = {"extra": "ignore"}


class MenuDocument(BaseModel):
    menu: list[RawMenuItem]

    model_config = {"extra": "ignore"}


class MenuItemCreate(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    category: str
    image: str | None = None  # remote URL used as the image cache key

    @field_validator("price", mode="before")
    @classmethod
    def two_decimals(cls, value):
        return format_price(value)


class ImageRef(BaseModel):
    uri: str


class MenuItemResponse(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    category: str
    image: ImageRef | None

    @field_validator("price", mode="before")
    @classmethod
    def two_decimals(cls, value):
        return format_price(value)
