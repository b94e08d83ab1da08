"""Takeoff line item models.

Pydantic models for the materials, labor and installation notes that make
up a takeoff. Field aliases accept the camelCase keys the reasoning
service emits (``unitPrice``, ``totalPrice``, ``cost``).
"""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


DEFAULT_CATEGORY = "Miscellaneous"
DEFAULT_UNIT = "each"

_NUMBER_RE = re.compile(r"-?\d[\d,]*\.?\d*|-?\.\d+")


def coerce_number(value: Any) -> Any:
    """Coerce strings such as "1,250 ft" or "$3.25" to floats.

    Non-string values are returned unchanged so pydantic can report them.
    """
    if isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if match:
            return float(match.group(0).replace(",", ""))
        return None
    return value


class NotePriority(str, Enum):
    """Priority of an installation note."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_text(cls, value: Any) -> "NotePriority":
        """Normalize free-form priority text ("High priority", "med")."""
        text = str(value or "").lower()
        if "high" in text or "critical" in text:
            return cls.HIGH
        if "low" in text:
            return cls.LOW
        return cls.MEDIUM


class MaterialItem(BaseModel):
    """A single material line in a takeoff."""

    category: str = Field(default=DEFAULT_CATEGORY, description="Component category (e.g., 'Receptacles')")
    name: str = Field(..., min_length=1, description="Component name")
    quantity: float = Field(..., ge=0, description="Quantity")
    unit: str = Field(default=DEFAULT_UNIT, description="Unit of measure")
    unit_price: Optional[float] = Field(default=None, alias="unitPrice", ge=0, description="Unit price ($)")
    total_price: Optional[float] = Field(default=None, alias="totalPrice", ge=0, description="Extended price ($)")

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def accept_upstream_cost(cls, data: Any) -> Any:
        """Read ``cost`` as the extended price when no total is given."""
        if isinstance(data, dict) and "cost" in data:
            data = dict(data)
            cost = data.pop("cost")
            if data.get("totalPrice") is None and data.get("total_price") is None:
                data["totalPrice"] = cost
        return data

    @field_validator("quantity", "unit_price", "total_price", mode="before")
    @classmethod
    def parse_numbers(cls, v):
        return coerce_number(v)

    @field_validator("category", "unit", mode="before")
    @classmethod
    def blank_to_default(cls, v, info):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_CATEGORY if info.field_name == "category" else DEFAULT_UNIT
        return v.strip() if isinstance(v, str) else v

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    def with_unit_price(self, unit_price: float) -> "MaterialItem":
        """Return a copy priced at ``unit_price`` with a consistent total."""
        return self.model_copy(update={
            "unit_price": unit_price,
            "total_price": round(self.quantity * unit_price, 2),
        })

    @property
    def key(self) -> tuple:
        """Identity used when comparing two takeoffs."""
        return (self.category, self.name)


class LaborItem(BaseModel):
    """A labor task with hours and optional rate."""

    task: str = Field(..., min_length=1, description="Task or trade description")
    hours: float = Field(..., ge=0, description="Labor hours")
    rate: Optional[float] = Field(default=None, ge=0, description="Hourly rate ($)")
    cost: Optional[float] = Field(default=None, ge=0, description="Labor cost ($)")

    @field_validator("hours", "rate", "cost", mode="before")
    @classmethod
    def parse_numbers(cls, v):
        return coerce_number(v)

    @field_validator("task", mode="before")
    @classmethod
    def strip_task(cls, v):
        return v.strip() if isinstance(v, str) else v


class InstallationNote(BaseModel):
    """A prioritized installation note."""

    text: str = Field(..., min_length=1, description="Note text")
    priority: NotePriority = Field(default=NotePriority.MEDIUM, description="Note priority")

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        if isinstance(v, NotePriority):
            return v
        return NotePriority.from_text(v)
