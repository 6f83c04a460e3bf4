from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Customer(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True, frozen=True
    )

    name: str = ""
    address: str = ""
    phone: str = ""
    email: Optional[str] = ""


class ItemInput(CamelModel):
    """Raw line item as typed into the item form.

    Fields stay loose so that partial or malformed input reaches the
    validator and is reported as issues instead of a schema error.
    """

    location: str = ""
    other_location: Optional[str] = None
    product: str = ""
    category: str = ""
    group: Optional[Union[int, str]] = None
    width: Any = None
    drop: Any = None
    quantity: Any = 1
    recess: Optional[str] = None


class LineItem(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    location: str
    product: str
    category: str
    group: int
    width: float
    drop: float
    width_band: int
    drop_band: int
    quantity: int
    recess: str
    unit_price: float
    total_price: float


class Totals(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    subtotal: float = 0.0
    gst: float = 0.0
    total: float = 0.0
    deposit: float = 0.0
    balance: float = 0.0


class QuoteRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    quote_number: str = Field(index=True, unique=True)
    # serialized QuoteState
    state: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
