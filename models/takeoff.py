"""Derived takeoff models.

Circuit load groups, cost rollups, validation findings and takeoff diffs.
None of these are persisted on their own; they are recomputed from
materials whenever needed.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field, computed_field

from models.materials import MaterialItem


# 80% of a 15A/120V branch circuit (1800W)
CIRCUIT_OVERLOAD_WATTS = 1440.0


class Severity(str, Enum):
    """Severity of a validation finding."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ValidationIssue(BaseModel):
    """Advisory finding attached to a takeoff."""

    severity: Severity = Field(..., description="Finding severity")
    message: str = Field(..., description="Human-readable description")


class CircuitLoadGroup(BaseModel):
    """Components sharing a branch circuit, with aggregate load."""

    circuit_id: str = Field(..., alias="circuitId", description="Circuit number or 'Unassigned'")
    members: List[MaterialItem] = Field(default_factory=list, description="Components on this circuit")
    total_load_watts: float = Field(default=0.0, alias="totalLoadWatts", ge=0, description="Aggregate load (W)")

    class Config:
        populate_by_name = True

    @computed_field(alias="isOverloaded")
    @property
    def is_overloaded(self) -> bool:
        return self.total_load_watts > CIRCUIT_OVERLOAD_WATTS


class CostRollup(BaseModel):
    """Material, labor, tax, overhead and profit rollup."""

    material_cost: float = Field(default=0.0, alias="materialCost", ge=0)
    labor_hours: float = Field(default=0.0, alias="laborHours", ge=0)
    labor_cost: float = Field(default=0.0, alias="laborCost", ge=0)
    tax: float = Field(default=0.0, ge=0)
    subtotal: float = Field(default=0.0, ge=0)
    overhead: float = Field(default=0.0, ge=0)
    profit: float = Field(default=0.0, ge=0)
    total_cost: float = Field(default=0.0, alias="totalCost", ge=0)

    class Config:
        populate_by_name = True


class MaterialChange(BaseModel):
    """A material present in both takeoffs with a different quantity."""

    item: MaterialItem
    previous_quantity: float = Field(..., alias="previousQuantity")
    delta: float

    class Config:
        populate_by_name = True


class TakeoffDiff(BaseModel):
    """Differences between a baseline takeoff and a revision."""

    added: List[MaterialItem] = Field(default_factory=list)
    removed: List[MaterialItem] = Field(default_factory=list)
    modified: List[MaterialChange] = Field(default_factory=list)
    cost_delta: float = Field(default=0.0, alias="costDelta")
    percentage_cost_delta: float = Field(default=0.0, alias="percentageCostDelta")

    class Config:
        populate_by_name = True

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified) and self.cost_delta == 0
