"""Takeoff sanity checks and revision diffs.

Validation is advisory: findings are attached to a result and never block
it. Diffs compare two takeoffs keyed by (category, name).
"""

from typing import Dict, List, Tuple

import structlog

from models.materials import MaterialItem
from models.takeoff import MaterialChange, Severity, TakeoffDiff, ValidationIssue
from services import pricing_tables

logger = structlog.get_logger(__name__)

# Wire runs should exceed conduit runs by at least this factor
WIRE_TO_CONDUIT_RATIO = 1.1

ESSENTIAL_CATEGORIES = (
    pricing_tables.RECEPTACLES,
    pricing_tables.WIRE,
    pricing_tables.BOXES_ENCLOSURES,
    pricing_tables.CONDUIT_RACEWAY,
)


def _category_quantity(materials: List[MaterialItem], category: str) -> float:
    return sum(item.quantity for item in materials if item.category == category)


def validate_materials(materials: List[MaterialItem]) -> List[ValidationIssue]:
    """Run the fixed electrical rule set over a takeoff.

    Args:
        materials: Takeoff line items

    Returns:
        Findings, highest severity rules first. Empty when nothing is off.
    """
    issues: List[ValidationIssue] = []

    receptacles = _category_quantity(materials, pricing_tables.RECEPTACLES)
    boxes = _category_quantity(materials, pricing_tables.BOXES_ENCLOSURES)
    wire = _category_quantity(materials, pricing_tables.WIRE)
    conduit = _category_quantity(materials, pricing_tables.CONDUIT_RACEWAY)
    has_panel = any(item.category == pricing_tables.PANELS for item in materials)

    if boxes < receptacles:
        issues.append(ValidationIssue(
            severity=Severity.HIGH,
            message=(
                f"Box count ({boxes:g}) is less than receptacle count ({receptacles:g}); "
                "every receptacle needs a box."
            ),
        ))

    if receptacles > 0 and not has_panel:
        issues.append(ValidationIssue(
            severity=Severity.HIGH,
            message="Receptacles are listed but no panel was found.",
        ))

    if wire < WIRE_TO_CONDUIT_RATIO * conduit:
        issues.append(ValidationIssue(
            severity=Severity.MEDIUM,
            message=(
                f"Wire length ({wire:g}) is less than {WIRE_TO_CONDUIT_RATIO:g}x "
                f"conduit length ({conduit:g})."
            ),
        ))

    present = {item.category for item in materials}
    for category in ESSENTIAL_CATEGORIES:
        if category not in present:
            issues.append(ValidationIssue(
                severity=Severity.MEDIUM,
                message=f"No {category} found in the takeoff.",
            ))

    if issues:
        logger.info(
            "takeoff_validation_issues",
            count=len(issues),
            high=sum(1 for issue in issues if issue.severity is Severity.HIGH),
        )
    return issues


def _index(materials: List[MaterialItem]) -> Dict[Tuple[str, str], MaterialItem]:
    """Key materials by (category, name); duplicate keys are summed."""
    indexed: Dict[Tuple[str, str], MaterialItem] = {}
    for item in materials:
        existing = indexed.get(item.key)
        if existing is None:
            indexed[item.key] = item
        else:
            indexed[item.key] = existing.model_copy(update={
                "quantity": existing.quantity + item.quantity,
                "total_price": (
                    None if existing.total_price is None and item.total_price is None
                    else (existing.total_price or 0.0) + (item.total_price or 0.0)
                ),
            })
    return indexed


def _total_price(materials: List[MaterialItem]) -> float:
    return sum(item.total_price or 0.0 for item in materials)


def diff_takeoffs(baseline: List[MaterialItem], updated: List[MaterialItem]) -> TakeoffDiff:
    """Compare a baseline takeoff with a revision.

    ``diff_takeoffs(a, a)`` is always empty.
    """
    before = _index(baseline)
    after = _index(updated)

    added = [item for key, item in after.items() if key not in before]
    removed = [item for key, item in before.items() if key not in after]
    modified = [
        MaterialChange(
            item=item,
            previous_quantity=before[key].quantity,
            delta=item.quantity - before[key].quantity,
        )
        for key, item in after.items()
        if key in before and item.quantity != before[key].quantity
    ]

    baseline_total = _total_price(baseline)
    cost_delta = round(_total_price(updated) - baseline_total, 2)
    percentage = round(cost_delta / baseline_total * 100, 2) if baseline_total else 0.0

    return TakeoffDiff(
        added=added,
        removed=removed,
        modified=modified,
        cost_delta=cost_delta,
        percentage_cost_delta=percentage,
    )
