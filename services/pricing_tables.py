"""Static pricing, labor and load tables for takeoff estimation.

Unit prices are national-average material costs; pipe is priced per foot.
Labor rates are installed hours per unit for a journeyman with helper.
Per-unit loads are nominal branch-circuit demand at 120V.

Data sources: Industry standards, distributor price sheets, NEC load
conventions.
"""

import re
from typing import Dict, List, Optional, Pattern, Tuple

from models.materials import DEFAULT_CATEGORY


# =============================================================================
# CATEGORY NAMES
# =============================================================================

RECEPTACLES = "Receptacles"
SWITCHES = "Switches"
LIGHTING = "Lighting"
PANELS = "Panels"
CONDUIT_RACEWAY = "Conduit & Raceway"
WIRE = "Wire"
BOXES_ENCLOSURES = "Boxes & Enclosures"
SPECIAL_SYSTEMS = "Special Systems"
FIXTURES = "Fixtures"
PIPE = "Pipe"
VALVES_SPECIALTIES = "Valves & Specialties"
MISCELLANEOUS = DEFAULT_CATEGORY

# Heading aliases that should collapse into a canonical category
CATEGORY_ALIASES: Dict[str, str] = {
    "receptacle": RECEPTACLES,
    "receptacles": RECEPTACLES,
    "outlets": RECEPTACLES,
    "switch": SWITCHES,
    "switches": SWITCHES,
    "lighting": LIGHTING,
    "light fixtures": LIGHTING,
    "panel": PANELS,
    "panels": PANELS,
    "conduit": CONDUIT_RACEWAY,
    "raceway": CONDUIT_RACEWAY,
    "conduit & raceway": CONDUIT_RACEWAY,
    "conduit and raceway": CONDUIT_RACEWAY,
    "wire": WIRE,
    "wiring": WIRE,
    "boxes": BOXES_ENCLOSURES,
    "enclosures": BOXES_ENCLOSURES,
    "boxes & enclosures": BOXES_ENCLOSURES,
    "boxes and enclosures": BOXES_ENCLOSURES,
    "special systems": SPECIAL_SYSTEMS,
    "fixtures": FIXTURES,
    "plumbing fixtures": FIXTURES,
    "pipe": PIPE,
    "piping": PIPE,
    "valves": VALVES_SPECIALTIES,
    "valves & specialties": VALVES_SPECIALTIES,
    "miscellaneous": MISCELLANEOUS,
    "misc": MISCELLANEOUS,
}


# =============================================================================
# CATEGORY INFERENCE HEURISTICS
# =============================================================================
# First match wins. Order matters: "MC cable" must classify as raceway
# before the generic "cable" rule sends it to Wire.

CATEGORY_KEYWORDS: List[Tuple[str, Pattern[str]]] = [
    (RECEPTACLES, re.compile(r"receptacle|outlet|plug", re.IGNORECASE)),
    (SWITCHES, re.compile(r"switch|dimmer", re.IGNORECASE)),
    (LIGHTING, re.compile(r"light|fixture|lamp|luminaire|exit sign", re.IGNORECASE)),
    (PANELS, re.compile(r"panel|board|disconnect|load center", re.IGNORECASE)),
    (CONDUIT_RACEWAY, re.compile(r"conduit|raceway|mc cable|emt|cable tray", re.IGNORECASE)),
    (WIRE, re.compile(r"wire|conductor|thhn|cable", re.IGNORECASE)),
    (BOXES_ENCLOSURES, re.compile(r"box|enclosure|cabinet", re.IGNORECASE)),
    (SPECIAL_SYSTEMS, re.compile(r"smoke|detector|alarm|strobe|camera|card reader", re.IGNORECASE)),
    (FIXTURES, re.compile(r"toilet|water closet|lavatory|sink|urinal|shower|tub|drain|fountain", re.IGNORECASE)),
    (PIPE, re.compile(r"pipe|pex|copper|cpvc|pvc|cast iron", re.IGNORECASE)),
    (VALVES_SPECIALTIES, re.compile(r"valve|backflow|regulator|water heater", re.IGNORECASE)),
]


def canonical_category(label: str) -> str:
    """Map a heading label to a canonical category, or return it unchanged."""
    cleaned = (label or "").strip().rstrip(":").strip()
    if not cleaned:
        return MISCELLANEOUS
    return CATEGORY_ALIASES.get(cleaned.lower(), cleaned)


def infer_category(name: str) -> str:
    """Infer a category from a component name using keyword heuristics."""
    for category, pattern in CATEGORY_KEYWORDS:
        if pattern.search(name or ""):
            return category
    return MISCELLANEOUS


# =============================================================================
# DEFAULT UNIT PRICES ($)
# =============================================================================

DEFAULT_PRICES: Dict[str, float] = {
    # Receptacles
    "Standard Duplex Receptacles": 3.25,
    "GFCI Receptacles": 15.75,
    "Weather Resistant Receptacles": 18.50,
    "Floor Receptacles": 35.00,
    "Hospital Grade Receptacles": 22.50,
    "USB Receptacles": 25.00,

    # Switches
    "Toggle Switches": 2.95,
    "3-Way Toggle Switches": 5.45,
    "Dimmer Switches": 18.25,
    "Occupancy Sensor Switches": 35.75,

    # Lighting
    "Recessed Downlights": 24.50,
    "Track Lighting": 32.75,
    "Fluorescent Fixtures": 45.00,
    "LED Fixtures": 85.00,
    "Exit Signs": 75.00,
    "Emergency Lighting": 95.00,

    # Panels
    "Main Panel": 750.00,
    "Branch Panel": 425.00,
    "Subpanel": 350.00,
    "Load Center": 225.00,

    # Conduit & Raceway (per ft)
    "EMT Conduit": 1.75,
    "Rigid Conduit": 3.25,
    "PVC Conduit": 1.50,
    "Flexible Conduit": 2.25,
    "MC Cable": 1.85,
    "Cable Tray": 45.00,

    # Wire (per ft)
    "#12 THHN": 0.18,
    "#10 THHN": 0.28,
    "#8 THHN": 0.45,
    "#6 THHN": 0.65,
    "#4 THHN": 0.95,
    "#2 THHN": 1.25,
    "CAT6 Cable": 0.65,

    # Boxes & Enclosures
    "Standard Device Box": 3.15,
    "Deep Device Box": 4.50,
    "Ceiling Box": 5.25,
    "Junction Box": 7.85,
    "Pull Box": 35.00,
    "NEMA 1 Enclosure": 45.00,
    "NEMA 3R Enclosure": 65.00,
    "NEMA 4X Enclosure": 125.00,

    # Special Systems
    "Fire Alarm Pull Station": 95.00,
    "Smoke Detector": 45.00,
    "Horn/Strobe": 85.00,
    "Security Camera": 135.00,
    "Card Reader": 225.00,
    "Access Control Panel": 450.00,
    "Data Outlet": 12.50,

    # Plumbing fixtures
    "Water Closet": 550.00,
    "Lavatory": 325.00,
    "Kitchen Sink": 450.00,
    "Service Sink": 575.00,
    "Floor Drain": 185.00,
    "Urinal": 675.00,
    "Shower": 625.00,
    "Bath Tub": 775.00,
    "Drinking Fountain": 950.00,

    # Valves & Specialties
    "Gate Valve": 125.00,
    "Ball Valve": 115.00,
    "Backflow Preventer": 950.00,
    "Mixing Valve": 750.00,

    # Miscellaneous
    "Concrete Anchor": 0.85,
    "Mounting Hardware Kit": 12.50,
    "Wire Connector": 0.35,
    "Cable Tie": 0.15,
    "Tape": 4.25,
    "Label": 0.25,
}

CATEGORY_DEFAULT_PRICES: Dict[str, float] = {
    RECEPTACLES: 5.00,
    SWITCHES: 4.50,
    LIGHTING: 55.00,
    PANELS: 350.00,
    CONDUIT_RACEWAY: 2.50,
    WIRE: 0.35,
    BOXES_ENCLOSURES: 8.50,
    SPECIAL_SYSTEMS: 75.00,
    FIXTURES: 350.00,
    PIPE: 10.00,
    VALVES_SPECIALTIES: 115.00,
    MISCELLANEOUS: 5.00,
}

# Used when a category has no entry above
FALLBACK_UNIT_PRICE = 5.00


# =============================================================================
# LABOR RATES (hours per unit)
# =============================================================================

CATEGORY_LABOR_RATES: Dict[str, float] = {
    RECEPTACLES: 0.5,
    SWITCHES: 0.5,
    LIGHTING: 1.0,
    PANELS: 6.0,
    CONDUIT_RACEWAY: 0.1,
    WIRE: 0.02,
    BOXES_ENCLOSURES: 0.75,
    SPECIAL_SYSTEMS: 2.0,
    FIXTURES: 2.0,
    PIPE: 0.3,
    VALVES_SPECIALTIES: 0.5,
    MISCELLANEOUS: 0.1,
}

DEFAULT_LABOR_RATE = 0.1  # hours per unit when the category is unknown
COORDINATION_FACTOR = 1.15  # coordination, cleanup and testing
MATERIAL_DOLLARS_PER_LABOR_HOUR = 100.0


# =============================================================================
# PLUMBING PIPE, FIXTURE AND VALVE TABLES
# =============================================================================

PVC = "PVC"
COPPER = "Copper"
CARBON_STEEL = "Carbon Steel"
CAST_IRON = "Cast Iron"

# Checked in order; "cast iron" and "carbon steel" before the bare "steel"
PIPE_MATERIAL_KEYWORDS: List[Tuple[str, Pattern[str]]] = [
    (CAST_IRON, re.compile(r"cast iron|no-hub", re.IGNORECASE)),
    (PVC, re.compile(r"pvc", re.IGNORECASE)),
    (COPPER, re.compile(r"copper", re.IGNORECASE)),
    (CARBON_STEEL, re.compile(r"carbon steel|black steel|steel", re.IGNORECASE)),
]

# $ per foot by material and nominal size in inches
PIPE_PRICES: Dict[str, Dict[float, float]] = {
    PVC: {
        0.5: 2.95, 0.75: 3.25, 1.0: 3.75, 1.25: 4.25, 1.5: 4.75,
        2.0: 5.25, 3.0: 6.50, 4.0: 8.25, 6.0: 15.50,
    },
    COPPER: {
        0.5: 7.65, 0.75: 9.85, 1.0: 12.35, 1.25: 14.85, 1.5: 17.35,
        2.0: 23.50, 3.0: 42.75, 4.0: 68.50,
    },
    CARBON_STEEL: {
        0.5: 8.75, 0.75: 10.25, 1.0: 12.50, 1.25: 14.75, 1.5: 16.95,
        2.0: 21.75, 3.0: 36.25, 4.0: 54.50,
    },
}

# $ per foot by service when material or size is unknown. First match wins.
PIPE_SERVICE_PRICES: List[Tuple[Pattern[str], float]] = [
    (re.compile(r"\bhwc\b|hot water (?:circ|return)", re.IGNORECASE), 14.85),
    (re.compile(r"\bhw\b|hot water", re.IGNORECASE), 12.35),
    (re.compile(r"\bcw\b|cold water|domestic water", re.IGNORECASE), 9.85),
    (re.compile(r"\bsp\b|\bsoil\b|\bwaste\b|sanitary", re.IGNORECASE), 6.50),
    (re.compile(r"\bgw\b|grease", re.IGNORECASE), 6.50),
    (re.compile(r"\bst\b|storm", re.IGNORECASE), 8.25),
    (re.compile(r"\bvp\b|\bvent\b", re.IGNORECASE), 4.75),
    (re.compile(r"\bg\b|\bgas\b", re.IGNORECASE), 12.50),
    (re.compile(r"\bfp\b|fire protection|sprinkler", re.IGNORECASE), 36.25),
]

# Labor hours per foot by material, before the size multiplier
PIPE_LABOR_RATES: Dict[str, float] = {
    PVC: 0.25,
    COPPER: 0.35,
    CARBON_STEEL: 0.45,
    CAST_IRON: 0.50,
}

# (largest size in inches, multiplier); anything larger gets the last value
PIPE_SIZE_LABOR_MULTIPLIERS = [(1.0, 0.8), (2.0, 1.0), (4.0, 1.2)]
LARGE_PIPE_LABOR_MULTIPLIER = 1.5

# Hours per fixture, matched by substring of the name. First match wins.
FIXTURE_LABOR_HOURS: List[Tuple[str, float]] = [
    ("water closet", 3.0),
    ("urinal", 3.0),
    ("lavatory", 2.5),
    ("sink", 2.0),
    ("floor drain", 1.5),
    ("roof drain", 2.5),
    ("shower", 4.0),
    ("tub", 4.5),
    ("drinking fountain", 3.0),
    ("grease interceptor", 8.0),
]

COMPLEX_VALVE_RE = re.compile(r"backflow|tempering|mixing|pressure|regulat|control", re.IGNORECASE)
COMPLEX_VALVE_LABOR_HOURS = 1.5

# 1-1/2", 1 1/2 in, 3/4", 2", 1.5 inch
PIPE_SIZE_RE = re.compile(
    r"(?:(\d+)[-\s](?=\d+/\d))?(\d+(?:\.\d+)?)(?:/(\d+))?\s*(?:\"|”|''|in(?:ch(?:es)?)?\b)",
    re.IGNORECASE,
)


def pipe_material(name: str) -> Optional[str]:
    for material, pattern in PIPE_MATERIAL_KEYWORDS:
        if pattern.search(name or ""):
            return material
    return None


def parse_pipe_size(name: str) -> Optional[float]:
    """Nominal size in inches from a name such as '1-1/2" Copper Pipe'."""
    match = PIPE_SIZE_RE.search(name or "")
    if not match:
        return None
    whole, numerator, denominator = match.groups()
    if denominator:
        if float(denominator) == 0:
            return None
        size = float(numerator) / float(denominator)
    else:
        size = float(numerator)
    if whole:
        size += float(whole)
    return size if size > 0 else None


def pipe_unit_price(name: str) -> Optional[float]:
    """Per-foot price for a pipe run, or None when nothing in the name matches.

    Exact size for the material first, then the closest listed size (the
    smaller one on a tie), then a price for the service the pipe carries.
    """
    material = pipe_material(name)
    size = parse_pipe_size(name)
    sizes = PIPE_PRICES.get(material or "")
    if sizes and size is not None:
        if size in sizes:
            return sizes[size]
        closest = min(sorted(sizes), key=lambda listed: abs(listed - size))
        return sizes[closest]

    for pattern, price in PIPE_SERVICE_PRICES:
        if pattern.search(name or ""):
            return price
    return None


def pipe_size_multiplier(size: Optional[float]) -> float:
    if size is None:
        return 1.0
    for limit, multiplier in PIPE_SIZE_LABOR_MULTIPLIERS:
        if size <= limit:
            return multiplier
    return LARGE_PIPE_LABOR_MULTIPLIER


def unit_labor_hours(category: str, name: str, labor_rates: Optional[Dict[str, float]] = None) -> float:
    """Hours to install one unit (one foot for pipe) of a component.

    Plumbing categories read the pipe, fixture and valve tables; everything
    else uses the flat category rate.
    """
    labor_rates = labor_rates if labor_rates is not None else CATEGORY_LABOR_RATES
    base = labor_rates.get(category, DEFAULT_LABOR_RATE)
    lowered = (name or "").lower()

    if category == PIPE:
        rate = PIPE_LABOR_RATES.get(pipe_material(name) or "", base)
        return rate * pipe_size_multiplier(parse_pipe_size(name))
    if category == FIXTURES:
        for keyword, hours in FIXTURE_LABOR_HOURS:
            if keyword in lowered:
                return hours
        return base
    if category == VALVES_SPECIALTIES:
        return COMPLEX_VALVE_LABOR_HOURS if COMPLEX_VALVE_RE.search(lowered) else base
    return base


# =============================================================================
# ELECTRICAL LOADS (watts per unit)
# =============================================================================

GFCI_RECEPTACLE_WATTS = 180.0  # 1.5A at 120V
STANDARD_RECEPTACLE_WATTS = 120.0  # 1A at 120V
LED_FIXTURE_WATTS = 60.0
FLUORESCENT_FIXTURE_WATTS = 72.0
OTHER_LIGHTING_WATTS = 100.0
SPECIAL_SYSTEM_WATTS = 50.0  # low voltage


def unit_load_watts(category: str, name: str) -> float:
    """Nominal per-unit load for a component, 0 for non-load items."""
    lowered = (name or "").lower()
    if category == RECEPTACLES:
        return GFCI_RECEPTACLE_WATTS if "gfci" in lowered else STANDARD_RECEPTACLE_WATTS
    if category == LIGHTING:
        if "led" in lowered:
            return LED_FIXTURE_WATTS
        if "fluorescent" in lowered:
            return FLUORESCENT_FIXTURE_WATTS
        return OTHER_LIGHTING_WATTS
    if category == SPECIAL_SYSTEMS:
        return SPECIAL_SYSTEM_WATTS
    return 0.0
