"""Regex extraction of takeoff data from free-form LLM text.

Used when a response carries no parseable JSON. Every function here is
total: it returns whatever it could find (possibly nothing) and never
raises on odd input.

Extraction order for materials:
1. Markdown tables (``| Category | Component | Qty | Unit | ... |``)
2. A materials section located by heading, scanned line by line
3. The whole text, scanned line by line, when no heading exists
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern

import structlog

from models.analysis import AnalysisLevel
from models.materials import NotePriority
from services import pricing_tables

logger = structlog.get_logger(__name__)

NUMBER = r"\d[\d,]*(?:\.\d+)?"

DEFAULT_TEXT_NOTES = "Extracted from text format. Results may not be complete."


def parse_number(text: Optional[str]) -> Optional[float]:
    """Parse "1,250.5" style numbers; None when absent."""
    if text is None:
        return None
    try:
        return float(text.replace(",", ""))
    except ValueError:
        return None


# =============================================================================
# SECTION LOCATION
# =============================================================================

MATERIALS_HEADING_RE = re.compile(
    r"materials:|material list:|required materials:|material takeoff:", re.IGNORECASE
)
MATERIALS_END_RE = re.compile(
    r"notes:|labor:|total cost:|conclusion:|summary:", re.IGNORECASE
)
LABOR_HEADING_RE = re.compile(
    r"labor estimate:|labor requirements:|labor:", re.IGNORECASE
)
LABOR_END_RE = re.compile(
    r"total cost:|conclusion:|summary:|notes:", re.IGNORECASE
)
NOTES_HEADING_RE = re.compile(
    r"^[\s#*]*(?:installation notes|important considerations|notes)\s*\**\s*:?\s*\**",
    re.IGNORECASE | re.MULTILINE,
)
NOTES_END_RE = re.compile(
    r"^\s*#|labor:|total cost:|conclusion:|summary:", re.IGNORECASE | re.MULTILINE
)


def section_after(text: str, heading: Pattern[str], end: Pattern[str]) -> Optional[str]:
    """Return the text between the first heading match and the next end marker."""
    match = heading.search(text)
    if not match:
        return None
    remainder = text[match.end():]
    end_match = end.search(remainder)
    return remainder[:end_match.start()] if end_match else remainder


# =============================================================================
# LINE MATCHERS
# =============================================================================

BULLET_RE = re.compile(r"^\s*(?:[-*•]+|\d+[.)])\s+")
SKIP_NAME_RE = re.compile(
    r"^(?:total|subtotal|grand total|labor|tax|overhead|profit|notes?)\b", re.IGNORECASE
)
UNIT_PRICE_RE = re.compile(rf"@\s*\$\s*({NUMBER})")
PRICE_RE = re.compile(rf"\$\s*({NUMBER})")


@dataclass(frozen=True)
class LineMatcher:
    """A named line pattern. Groups: name, quantity, optional unit/category."""
    name: str
    pattern: Pattern[str]


LINE_MATCHERS: List[LineMatcher] = [
    # "Receptacles: GFCI Receptacle - 12 ea"
    LineMatcher(
        "category_name_quantity",
        re.compile(
            rf"^(?P<category>[A-Za-z][A-Za-z &/]*?):\s*(?P<name>[^:]+?)\s+-\s+"
            rf"(?P<quantity>{NUMBER})\s*(?P<unit>[A-Za-z][\w./]*)?"
        ),
    ),
    # "Wire Nuts: 1000 ea", "Copper pipe, 3/4\": 120 ft"
    LineMatcher(
        "name_quantity_unit",
        re.compile(
            rf"^(?P<name>[^:]+?):\s*(?P<quantity>{NUMBER})\s*(?P<unit>[A-Za-z][\w./]*)?"
        ),
    ),
    # "10 sheets of 1/2\" drywall"
    LineMatcher(
        "quantity_unit_of_name",
        re.compile(
            rf"^(?P<quantity>{NUMBER})\s*(?P<unit>[A-Za-z][\w./]*)\s+of\s+(?P<name>.+?)\s*$",
            re.IGNORECASE,
        ),
    ),
    # "12 GFCI receptacles"
    LineMatcher(
        "quantity_name",
        re.compile(rf"^(?P<quantity>{NUMBER})\s*(?:x\s+)?(?P<name>[A-Za-z].*?)\s*$"),
    ),
]


def clean_line(line: str) -> str:
    """Strip bullets, numbering and markdown emphasis from a line."""
    line = BULLET_RE.sub("", line)
    return line.replace("**", "").replace("__", "").strip()


def match_material_line(line: str, include_costs: bool = False) -> Optional[Dict[str, Any]]:
    """Apply the ordered line matchers; the first match wins."""
    cleaned = clean_line(line)
    if not cleaned:
        return None

    for matcher in LINE_MATCHERS:
        match = matcher.pattern.match(cleaned)
        if not match:
            continue

        groups = match.groupdict()
        name = (groups.get("name") or "").strip(" \t-:,")
        # Strip trailing price annotations from the name
        name = re.sub(r"\s*[@(]?\s*\$.*$", "", name).strip()
        if not name or SKIP_NAME_RE.match(name):
            return None

        item: Dict[str, Any] = {
            "name": name,
            "quantity": parse_number(groups["quantity"]),
            "unit": (groups.get("unit") or "each").strip(),
        }
        if groups.get("category"):
            item["category"] = pricing_tables.canonical_category(groups["category"])

        if include_costs:
            unit_price = UNIT_PRICE_RE.search(cleaned)
            if unit_price:
                item["unitPrice"] = parse_number(unit_price.group(1))
            else:
                price = PRICE_RE.search(cleaned)
                if price:
                    item["totalPrice"] = parse_number(price.group(1))
        return item

    return None


def extract_material_lines(text: str, include_costs: bool = False) -> List[Dict[str, Any]]:
    """Scan text line by line for material entries."""
    materials = []
    for line in text.splitlines():
        if line.lstrip().startswith("|"):
            continue
        item = match_material_line(line, include_costs)
        if item is not None:
            materials.append(item)
    return materials


# =============================================================================
# MARKDOWN TABLES
# =============================================================================

CATEGORY_HEADING_RE = re.compile(r"^#+\s*(?P<label>.*?)\s*(?:Components)?\s*:?\s*$", re.IGNORECASE)
CATEGORY_LABEL_RE = re.compile(r"^(?P<label>[A-Z][A-Za-z &]+):\s*$")
TABLE_SEPARATOR_RE = re.compile(r"^:?-{2,}:?$")

_HEADER_ALIASES = {
    "category": "category",
    "component": "name",
    "item": "name",
    "material": "name",
    "description": "name",
    "name": "name",
    "quantity": "quantity",
    "qty": "quantity",
    "unit": "unit",
    "units": "unit",
    "uom": "unit",
    "unit price": "unitPrice",
    "unit cost": "unitPrice",
    "price": "unitPrice",
    "total": "totalPrice",
    "total price": "totalPrice",
    "total cost": "totalPrice",
    "extended": "totalPrice",
    "extended cost": "totalPrice",
}


def _split_row(line: str) -> List[str]:
    return [cell.strip() for cell in line.strip().strip("|").split("|")]


def _header_columns(cells: List[str]) -> Optional[Dict[str, int]]:
    columns: Dict[str, int] = {}
    for index, cell in enumerate(cells):
        key = _HEADER_ALIASES.get(cell.lower().replace("*", "").strip())
        if key and key not in columns:
            columns[key] = index
    if "name" in columns and "quantity" in columns:
        return columns
    return None


def _positional_columns(cells: List[str]) -> Optional[Dict[str, int]]:
    """Guess columns for a header-less row from where the quantity sits."""
    if len(cells) >= 4 and parse_number(cells[2].replace("$", "")) is not None:
        return {"category": 0, "name": 1, "quantity": 2, "unit": 3, "unitPrice": 4, "totalPrice": 5}
    if len(cells) >= 3 and parse_number(cells[1].replace("$", "")) is not None:
        return {"name": 0, "quantity": 1, "unit": 2, "unitPrice": 3, "totalPrice": 4}
    return None


def _cell_number(cells: List[str], columns: Dict[str, int], key: str) -> Optional[float]:
    index = columns.get(key)
    if index is None or index >= len(cells):
        return None
    match = re.search(NUMBER, cells[index])
    return parse_number(match.group(0)) if match else None


def extract_table_materials(text: str, include_costs: bool = False) -> List[Dict[str, Any]]:
    """Extract materials from markdown tables, tracking category headings."""
    materials: List[Dict[str, Any]] = []
    current_category: Optional[str] = None
    columns: Optional[Dict[str, int]] = None

    for line in text.splitlines():
        stripped = line.strip()

        if not stripped.startswith("|"):
            columns = None
            heading = CATEGORY_HEADING_RE.match(stripped) or CATEGORY_LABEL_RE.match(stripped)
            if heading:
                label = pricing_tables.canonical_category(heading.group("label"))
                if label in pricing_tables.CATEGORY_DEFAULT_PRICES:
                    current_category = label
            continue

        cells = _split_row(stripped)
        if all(TABLE_SEPARATOR_RE.match(cell) or not cell for cell in cells):
            continue

        header = _header_columns(cells)
        if header:
            columns = header
            continue

        row_columns = columns or _positional_columns(cells)
        if not row_columns:
            continue

        name_index = row_columns["name"]
        name = cells[name_index].replace("*", "").strip() if name_index < len(cells) else ""
        quantity = _cell_number(cells, row_columns, "quantity")
        if not name or quantity is None or SKIP_NAME_RE.match(name):
            continue

        item: Dict[str, Any] = {"name": name, "quantity": quantity}
        unit_index = row_columns.get("unit")
        if unit_index is not None and unit_index < len(cells) and cells[unit_index]:
            item["unit"] = cells[unit_index]

        category_index = row_columns.get("category")
        if category_index is not None and category_index < len(cells) and cells[category_index]:
            item["category"] = pricing_tables.canonical_category(cells[category_index])
        elif current_category:
            item["category"] = current_category

        if include_costs:
            unit_price = _cell_number(cells, row_columns, "unitPrice")
            total_price = _cell_number(cells, row_columns, "totalPrice")
            if unit_price is not None:
                item["unitPrice"] = unit_price
            if total_price is not None:
                item["totalPrice"] = total_price

        materials.append(item)

    return materials


# =============================================================================
# LABOR
# =============================================================================

_RATE = rf"(?:\s*@\s*\$?\s*(?P<rate>{NUMBER})(?:\s*/\s*(?:hr|hour))?)?"

LABOR_LINE_PATTERNS: List[Pattern[str]] = [
    # "Rough-in wiring: 24 hours @ $85/hr"
    re.compile(
        rf"^(?P<task>[^:\d][^:]*?):\s*(?P<hours>{NUMBER})\s*(?:hours?|hrs?)\b{_RATE}",
        re.IGNORECASE,
    ),
    # "24 hours - Rough-in wiring @ $85/hr"
    re.compile(
        rf"^(?P<hours>{NUMBER})\s*(?:hours?|hrs?)\s*[-:]\s*(?P<task>[^@]+?){_RATE}\s*$",
        re.IGNORECASE,
    ),
]


def extract_labor(text: str) -> Optional[List[Dict[str, Any]]]:
    """Extract labor lines from a labor section, None when there is none."""
    section = section_after(text, LABOR_HEADING_RE, LABOR_END_RE)
    if section is None:
        return None

    labor: List[Dict[str, Any]] = []
    for line in section.splitlines():
        cleaned = clean_line(line)
        for pattern in LABOR_LINE_PATTERNS:
            match = pattern.match(cleaned)
            if not match:
                continue
            entry: Dict[str, Any] = {
                "task": match.group("task").strip(),
                "hours": parse_number(match.group("hours")),
            }
            rate = parse_number(match.group("rate"))
            if rate is not None:
                entry["rate"] = rate
                entry["cost"] = round(entry["hours"] * rate, 2)
            labor.append(entry)
            break
    return labor


# =============================================================================
# NOTES
# =============================================================================

PRIORITY_SUFFIX_RE = re.compile(r"^(?P<text>[^(]+?)\s*\((?P<priority>[^)]+)\)\s*\.?$")
HIGH_PRIORITY_RE = re.compile(
    r"critical|essential|must|required|safety|fire|hazard|danger|warning", re.IGNORECASE
)
LOW_PRIORITY_RE = re.compile(r"recommend|suggestion|consider|optional|might|may\b", re.IGNORECASE)


def infer_note_priority(text: str) -> NotePriority:
    """Guess a note's priority from its wording."""
    if HIGH_PRIORITY_RE.search(text):
        return NotePriority.HIGH
    if LOW_PRIORITY_RE.search(text):
        return NotePriority.LOW
    return NotePriority.MEDIUM


def extract_notes(text: str) -> Optional[Any]:
    """Extract notes as a list of prioritized notes, or a plain string.

    Bulleted notes become ``{"text", "priority"}`` dicts; a bare paragraph is
    returned as a string. None when the text has no notes heading.
    """
    section = section_after(text, NOTES_HEADING_RE, NOTES_END_RE)
    if section is None:
        return None

    notes: List[Dict[str, str]] = []
    for line in section.splitlines():
        if not BULLET_RE.match(line):
            continue
        body = clean_line(line)
        if not body:
            continue
        suffix = PRIORITY_SUFFIX_RE.match(body)
        if suffix:
            notes.append({
                "text": suffix.group("text").strip(),
                "priority": NotePriority.from_text(suffix.group("priority")).value,
            })
        else:
            notes.append({"text": body, "priority": infer_note_priority(body).value})

    if notes:
        return notes
    paragraph = section.strip()
    return paragraph or None


# =============================================================================
# EXPLICIT TOTALS
# =============================================================================

TOTAL_PATTERNS: Dict[str, Pattern[str]] = {
    "totalMaterialCost": re.compile(rf"total material cost\**:?\**\s*\$?\s*({NUMBER})", re.IGNORECASE),
    "totalLaborCost": re.compile(rf"total labor cost\**:?\**\s*\$?\s*({NUMBER})", re.IGNORECASE),
    "totalCost": re.compile(
        rf"(?<!material )(?<!labor )(?:grand )?total cost\**:?\**\s*\$?\s*({NUMBER})", re.IGNORECASE
    ),
    "laborHours": re.compile(rf"(?:total\s+)?labor\s+hours\**:?\**\s*({NUMBER})", re.IGNORECASE),
}


def extract_explicit_totals(text: str) -> Dict[str, float]:
    """Find explicitly stated totals in the text."""
    totals: Dict[str, float] = {}
    for key, pattern in TOTAL_PATTERNS.items():
        match = pattern.search(text)
        if match:
            value = parse_number(match.group(1))
            if value is not None:
                totals[key] = value
    return totals


@dataclass(frozen=True)
class SummaryTotalField:
    """A named category total: explicit regex first, summation second."""
    key: str
    pattern: Pattern[str]
    includes: Callable[[Any], bool]


def _is_mc_cable(item) -> bool:
    name = item.name.lower()
    return "mc cable" in name or (item.category == pricing_tables.CONDUIT_RACEWAY and "mc" in name.split())


def _is_conduit(item) -> bool:
    name = item.name.lower()
    return "conduit" in name or (
        item.category == pricing_tables.CONDUIT_RACEWAY and "mc" not in name and "cable" not in name
    )


def _is_box(item) -> bool:
    name = item.name.lower()
    return item.category == pricing_tables.BOXES_ENCLOSURES or "box" in name or "enclosure" in name


SUMMARY_TOTAL_FIELDS: List[SummaryTotalField] = [
    SummaryTotalField(
        "totalMCCable",
        re.compile(rf"total\s+MC\s+Cable\**:?\**\s*({NUMBER})\s*(?:feet|ft)", re.IGNORECASE),
        _is_mc_cable,
    ),
    SummaryTotalField(
        "totalConduit",
        re.compile(rf"total\s+Conduit\**:?\**\s*({NUMBER})\s*(?:feet|ft)", re.IGNORECASE),
        _is_conduit,
    ),
    SummaryTotalField(
        "totalBoxes",
        re.compile(rf"total\s+Boxes\**:?\**\s*({NUMBER})", re.IGNORECASE),
        _is_box,
    ),
]


def extract_summary_totals(text: str, materials: List[Any]) -> Dict[str, float]:
    """Resolve category totals; an explicit total in the text always wins."""
    totals: Dict[str, float] = {}
    for field in SUMMARY_TOTAL_FIELDS:
        match = field.pattern.search(text or "")
        explicit = parse_number(match.group(1)) if match else None
        if explicit is not None:
            totals[field.key] = explicit
        else:
            totals[field.key] = sum(item.quantity for item in materials if field.includes(item))
    return totals


# =============================================================================
# ENTRY POINT
# =============================================================================


def extract_from_text(text: str, analysis_level: AnalysisLevel) -> Dict[str, Any]:
    """Build a response payload from free-form text.

    Returns a dict shaped like the JSON the reasoning service was asked
    for. ``materials`` is always present, possibly empty.
    """
    text = text or ""
    include_costs = analysis_level.includes_costs

    materials = extract_table_materials(text, include_costs)
    source = "table"
    if not materials:
        section = section_after(text, MATERIALS_HEADING_RE, MATERIALS_END_RE)
        source = "materials_section" if section is not None else "full_text"
        materials = extract_material_lines(section if section is not None else text, include_costs)

    payload: Dict[str, Any] = {"materials": materials, "notes": DEFAULT_TEXT_NOTES}

    notes = extract_notes(text)
    if notes:
        payload["notes"] = notes

    totals = extract_explicit_totals(text)
    if include_costs and "totalMaterialCost" in totals:
        payload["totalMaterialCost"] = totals["totalMaterialCost"]
    if analysis_level.includes_labor:
        for key in ("totalLaborCost", "totalCost", "laborHours"):
            if key in totals:
                payload[key] = totals[key]
        labor = extract_labor(text)
        if labor is not None:
            payload["labor"] = labor

    logger.info(
        "text_fallback_extracted",
        source=source,
        materials=len(materials),
        labor=len(payload.get("labor") or []),
        has_notes=notes is not None,
    )
    return payload
