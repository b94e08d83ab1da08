"""Derived estimation engine.

Fills the gaps a reasoning-service response leaves behind:
- default unit prices for unpriced materials
- labor hours from category productivity rates
- per-circuit electrical loads
- a material/labor/tax/overhead/profit cost rollup

Everything here is synchronous and pure; ``enrich`` returns a new result.
"""

import math
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

import structlog

from config.settings import Settings, settings
from models.analysis import AnalysisLevel, AnalysisResult, Trade
from models.materials import LaborItem, MaterialItem
from models.takeoff import CircuitLoadGroup, CostRollup
from services import pricing_tables

logger = structlog.get_logger(__name__)

CIRCUIT_RE = re.compile(r"(?:circuit|ckt)\.?\s*#?\s*(\d+)", re.IGNORECASE)
UNASSIGNED_CIRCUIT = "Unassigned"
ESTIMATED_LABOR_TASK = "Estimated installation labor"


@dataclass(frozen=True)
class EstimationRates:
    """Rates used by the cost rollup and labor estimate."""
    labor_rate_per_hour: float
    sales_tax_rate: float
    overhead_rate: float
    profit_rate: float
    coordination_factor: float = pricing_tables.COORDINATION_FACTOR
    material_dollars_per_labor_hour: float = pricing_tables.MATERIAL_DOLLARS_PER_LABOR_HOUR

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "EstimationRates":
        source = source or settings
        return cls(
            labor_rate_per_hour=source.labor_rate_per_hour,
            sales_tax_rate=source.sales_tax_rate,
            overhead_rate=source.overhead_rate,
            profit_rate=source.profit_rate,
        )

    def with_overrides(self, **overrides) -> "EstimationRates":
        """Return a copy with some rates replaced."""
        return replace(self, **overrides)


# =============================================================================
# DEFAULT PRICING
# =============================================================================


def _pricing_name(name: str) -> str:
    """Lowercased name with circuit annotations removed."""
    stripped = CIRCUIT_RE.sub("", name)
    return re.sub(r"[\s\-,]+$", "", stripped).strip().lower()


def lookup_unit_price(
    name: str,
    category: str,
    prices: Optional[Dict[str, float]] = None,
) -> float:
    """Resolve a unit price for a component. Always returns a price.

    Order: exact name, the pipe size table for pipe runs, case-insensitive
    substring in either direction, category default, global fallback.
    """
    prices = prices if prices is not None else pricing_tables.DEFAULT_PRICES

    if name in prices:
        return prices[name]

    if category == pricing_tables.PIPE:
        pipe_price = pricing_tables.pipe_unit_price(name)
        if pipe_price is not None:
            return pipe_price

    lowered = _pricing_name(name)
    if lowered:
        for key, price in prices.items():
            key_lower = key.lower()
            singular = key_lower[:-1] if key_lower.endswith("s") else key_lower
            if key_lower in lowered or singular in lowered or lowered in key_lower:
                return price

    return pricing_tables.CATEGORY_DEFAULT_PRICES.get(category, pricing_tables.FALLBACK_UNIT_PRICE)


def assign_default_prices(
    materials: List[MaterialItem],
    prices: Optional[Dict[str, float]] = None,
) -> List[MaterialItem]:
    """Price every material and make each total equal quantity x unit price.

    Upstream unit prices are kept. Items with only a total keep it and get a
    unit price derived from it.
    """
    priced: List[MaterialItem] = []
    for item in materials:
        if item.unit_price is not None:
            priced.append(item.with_unit_price(item.unit_price))
        elif item.total_price is not None and item.quantity > 0:
            priced.append(item.model_copy(update={
                "unit_price": round(item.total_price / item.quantity, 4),
            }))
        else:
            priced.append(item.with_unit_price(lookup_unit_price(item.name, item.category, prices)))
    return priced


# =============================================================================
# LABOR HOURS
# =============================================================================


def round_to_quarter_hour(hours: float) -> float:
    return math.floor(hours * 4 + 0.5) / 4


def estimate_labor_hours(
    materials: List[MaterialItem],
    coordination_factor: float = pricing_tables.COORDINATION_FACTOR,
    labor_rates: Optional[Dict[str, float]] = None,
) -> Optional[float]:
    """Estimate installed hours from category productivity rates.

    Pipe, fixtures and valves use the plumbing tables. Returns None when
    no material falls in a category the rate table knows.
    """
    labor_rates = labor_rates if labor_rates is not None else pricing_tables.CATEGORY_LABOR_RATES
    if not any(item.category in labor_rates for item in materials):
        return None

    hours = sum(
        item.quantity * pricing_tables.unit_labor_hours(item.category, item.name, labor_rates)
        for item in materials
    )
    return round_to_quarter_hour(hours * coordination_factor)


def fallback_labor_hours(
    material_cost: float,
    dollars_per_hour: float = pricing_tables.MATERIAL_DOLLARS_PER_LABOR_HOUR,
) -> float:
    """One labor hour per $100 of material, to the nearest quarter hour."""
    if dollars_per_hour <= 0:
        return 0.0
    return round_to_quarter_hour(material_cost / dollars_per_hour)


# =============================================================================
# CIRCUIT LOADS
# =============================================================================


def circuit_id_for(name: str) -> str:
    match = CIRCUIT_RE.search(name)
    return match.group(1) if match else UNASSIGNED_CIRCUIT


def calculate_circuit_loads(materials: List[MaterialItem]) -> List[CircuitLoadGroup]:
    """Group components by circuit and total their watts.

    Every item lands in a group. Numbered circuits come first in numeric
    order, then ``Unassigned`` for items with no circuit reference.
    """
    groups: Dict[str, List[MaterialItem]] = {}
    loads: Dict[str, float] = {}

    for item in materials:
        circuit_id = circuit_id_for(item.name)
        watts = pricing_tables.unit_load_watts(item.category, item.name)
        groups.setdefault(circuit_id, []).append(item)
        loads[circuit_id] = loads.get(circuit_id, 0.0) + item.quantity * watts

    ordered = sorted(
        groups,
        key=lambda cid: (cid == UNASSIGNED_CIRCUIT, int(cid) if cid.isdigit() else 0),
    )
    return [
        CircuitLoadGroup(circuit_id=cid, members=groups[cid], total_load_watts=round(loads[cid], 2))
        for cid in ordered
    ]


# =============================================================================
# COST ROLLUP
# =============================================================================


def calculate_rollup(
    materials: List[MaterialItem],
    labor_hours: float,
    rates: EstimationRates,
) -> CostRollup:
    """Roll material and labor cost up to a bid total.

    tax is on materials; overhead and profit are each a share of the
    subtotal; total = subtotal + overhead + profit.
    """
    material_cost = round(sum(item.total_price or 0.0 for item in materials), 2)
    labor_cost = round(labor_hours * rates.labor_rate_per_hour, 2)
    tax = round(material_cost * rates.sales_tax_rate, 2)
    subtotal = round(material_cost + labor_cost + tax, 2)
    overhead = round(subtotal * rates.overhead_rate, 2)
    profit = round(subtotal * rates.profit_rate, 2)

    return CostRollup(
        material_cost=material_cost,
        labor_hours=labor_hours,
        labor_cost=labor_cost,
        tax=tax,
        subtotal=subtotal,
        overhead=overhead,
        profit=profit,
        total_cost=round(subtotal + overhead + profit, 2),
    )


# =============================================================================
# ENGINE
# =============================================================================


def _price_labor(item: LaborItem, default_rate: float) -> LaborItem:
    if item.cost is not None:
        return item
    rate = item.rate if item.rate is not None else default_rate
    return item.model_copy(update={"rate": rate, "cost": round(item.hours * rate, 2)})


class EstimationEngine:
    """Applies default pricing, labor, circuit loads and rollup to a result.

    Totals the upstream response stated (``result.explicit_totals``) are
    preserved. Every other total is recomputed after pricing.
    """

    def __init__(
        self,
        rates: Optional[EstimationRates] = None,
        prices: Optional[Dict[str, float]] = None,
    ):
        self.rates = rates or EstimationRates.from_settings()
        self.prices = prices

    def _labor_hours(self, result: AnalysisResult, materials: List[MaterialItem]) -> float:
        if result.labor_hours is not None:
            return result.labor_hours
        if result.labor:
            return round(sum(item.hours for item in result.labor), 2)

        hours = estimate_labor_hours(materials, self.rates.coordination_factor)
        if hours is None:
            material_cost = sum(item.total_price or 0.0 for item in materials)
            hours = fallback_labor_hours(material_cost, self.rates.material_dollars_per_labor_hour)
            logger.debug("labor_hours_fallback", material_cost=round(material_cost, 2), hours=hours)
        return hours

    def enrich(
        self,
        result: AnalysisResult,
        analysis_level: AnalysisLevel,
        trade: Trade = Trade.OTHER,
        rates: Optional[EstimationRates] = None,
    ) -> AnalysisResult:
        """Return a copy of ``result`` with derived estimates filled in."""
        rates = rates or self.rates
        update: Dict[str, object] = {}
        materials = result.materials

        if trade is Trade.ELECTRICAL:
            update["circuit_loads"] = calculate_circuit_loads(materials)

        if not analysis_level.includes_costs:
            return result.model_copy(update=update)

        materials = assign_default_prices(materials, self.prices)
        update["materials"] = materials
        if trade is Trade.ELECTRICAL:
            update["circuit_loads"] = calculate_circuit_loads(materials)

        labor = result.labor
        labor_hours = 0.0
        if analysis_level.includes_labor:
            labor_hours = self._labor_hours(result, materials)
            update["labor_hours"] = labor_hours
            if not labor:
                labor = [LaborItem(
                    task=ESTIMATED_LABOR_TASK,
                    hours=labor_hours,
                    rate=rates.labor_rate_per_hour,
                    cost=round(labor_hours * rates.labor_rate_per_hour, 2),
                )]
                update["labor"] = labor
            else:
                labor = [_price_labor(item, rates.labor_rate_per_hour) for item in labor]
                update["labor"] = labor

        rollup = calculate_rollup(materials, labor_hours, rates)
        update["cost_rollup"] = rollup

        explicit = set(result.explicit_totals)

        total_material_cost = result.total_material_cost
        if "total_material_cost" not in explicit:
            total_material_cost = rollup.material_cost

        total_labor_cost = result.total_labor_cost
        if analysis_level.includes_labor and "total_labor_cost" not in explicit:
            total_labor_cost = round(sum(item.cost or 0.0 for item in labor or []), 2)

        # total_cost is material plus labor; tax, overhead and profit live in the rollup
        total_cost = result.total_cost
        if "total_cost" not in explicit:
            total_cost = round((total_material_cost or 0.0) + (total_labor_cost or 0.0), 2)

        update.update(
            total_material_cost=total_material_cost,
            total_labor_cost=total_labor_cost,
            total_cost=total_cost,
        )

        logger.info(
            "estimation_enriched",
            analysis_level=analysis_level.value,
            trade=trade.value,
            materials=len(materials),
            labor_hours=labor_hours,
            total_cost=rollup.total_cost,
        )
        return result.model_copy(update=update)

