from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class OrderItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_id: str | None = None
    product_name: str = ""
    quantity: int = 1
    unit_price: float = 0.0
    subtotal: float = 0.0


class Order(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    order_number: str | None = None
    total: float = 0.0
    status: str = "pending"
    payment_method: str | None = None
    created_at: datetime
    items: list[OrderItem] = Field(default_factory=list, validation_alias=AliasChoices("items", "order_items"))

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("items", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class Product(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    price: float = 0.0
    stock_quantity: int | None = None
    is_available: bool = True
    category: str | None = None

    @field_validator("category", mode="before")
    @classmethod
    def _flatten_category(cls, value: Any) -> Any:
        # PostgREST embeds the joined row as {"name": ...}
        if isinstance(value, dict):
            return value.get("name")
        return value
