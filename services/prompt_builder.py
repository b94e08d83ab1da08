"""Prompt and output-schema builder for blueprint analysis.

Pure functions that compose the instruction text and JSON output schema
sent to the reasoning service. No I/O.
"""

import copy
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.analysis import AnalysisLevel, Trade


PERSONA_PROMPT = (
    "You are Uncle Jerry, a friendly and experienced contractor who has been in the "
    "construction business for over 40 years. You're analyzing blueprint sections to "
    "provide material takeoffs and cost estimates. Be helpful, practical, and use "
    "conversational language with occasional construction lingo. Focus on accuracy in "
    "your material counts and cost estimates. Always format your response as structured "
    "JSON for easy processing. Use the JSON schema provided."
)

SCALE_INSTRUCTIONS = (
    "\n\nLook for scale information in the blueprint (e.g., \"1/4\" = 1'-0\"\" or "
    "\"Scale: 1:100\") to ensure accurate measurements. If no scale is visible, use "
    "standard dimensions for a typical construction project."
)

NOTES_INSTRUCTIONS = (
    "\n\nAlso include a 'notes' field with any special considerations, assumptions, "
    "or limitations of your analysis."
)


# =============================================================================
# TRADE INSTRUCTIONS
# =============================================================================

TRADE_INSTRUCTIONS: Dict[Trade, str] = {
    Trade.ELECTRICAL: """

For electrical work, please:
- Identify panel types, ratings, and locations
- List circuit counts and types (15A, 20A, etc.)
- Count outlet types (standard, GFCI, weatherproof) and locations
- Identify lighting fixtures by type, wattage, and mounting style
- Locate switches, dimmers, and control systems
- Identify special equipment (motors, HVAC connections, etc.)
- Calculate approximate wire lengths by type and gauge
- Note voltage requirements (120V, 240V, 277V, etc.)
- Identify conduit types and sizes where shown
- Group components by category (Receptacles, Switches, Lighting, Panels, Conduit & Raceway, Wire, Boxes & Enclosures, Special Systems, Miscellaneous)
- Include the circuit number in the component name when it is shown (e.g., "GFCI Receptacle - Circuit #3")""",

    Trade.PLUMBING: """

For plumbing work, please:
- Identify all plumbing fixtures (sinks, toilets, tubs, etc.)
- List pipe types (PVC, copper, PEX, etc.) and sizes
- Calculate approximate pipe lengths for supply and drainage
- Count and specify fittings (elbows, tees, couplings)
- Identify valves by type and size
- Note special components (backflow preventers, pressure regulators)
- Identify water heater specifications if shown
- Note venting requirements
- List any specialty items (water filters, softeners, pumps)""",

    Trade.CARPENTRY: """

For carpentry work, please:
- Identify stud sizes (2x4, 2x6, etc.) and material (wood, metal)
- Note stud spacing (16" O.C., 24" O.C., etc.)
- Calculate linear feet for top and bottom plates
- Identify header requirements above openings
- List sheathing types and quantities
- Calculate board feet for framing lumber
- Note special framing details or blocking requirements
- Identify insulation types and R-values
- Calculate square footage for wall, floor, and/or roof framing""",

    Trade.HVAC: """

For HVAC/mechanical work, please:
- Identify duct sizes and types (rectangular, round, flexible)
- Calculate linear feet of ductwork by size
- Count registers, grilles, and diffusers by type and size
- Identify equipment specifications (furnaces, AC units, fans)
- List control components (thermostats, dampers, etc.)
- Note insulation requirements for ductwork
- Identify ventilation components
- Calculate CFM requirements based on room sizes
- List specialty items (humidifiers, air purifiers, etc.)""",

    Trade.DRYWALL: """

For drywall work, please:
- Calculate square footage of drywall needed by type/thickness
- Identify board thickness (1/2", 5/8") and types (standard, fire-rated, water-resistant)
- Estimate joint compound requirements
- Calculate linear feet of corner bead, J-bead, and trim
- List fastener quantities (screws, nails)
- Note special details (curved walls, soffits, etc.)
- Identify acoustic treatments or special installations
- Estimate taping materials needed
- Calculate primer and finish requirements""",

    Trade.FLOORING: """

For flooring work, please:
- Calculate square footage by flooring type and room
- Identify flooring materials (hardwood, tile, carpet, etc.)
- List underlayment requirements
- Identify transition strips and locations
- Note special details (borders, patterns, inlays)
- Calculate materials for floor preparation
- Identify moisture barriers or vapor retarders
- List adhesives, grouts, or fasteners needed
- Calculate molding and trim requirements""",

    Trade.ROOFING: """

For roofing work, please:
- Calculate roof area by slope and section
- Identify roofing materials (asphalt shingles, metal, tile, etc.)
- List underlayment and ice/water shield requirements
- Calculate flashing needs for valleys, chimneys, and projections
- Identify ventilation components (ridge vents, soffit vents)
- Note drainage details (gutters, downspouts)
- List fasteners and adhesives
- Calculate ridge, hip, and valley linear footage
- Identify special details (skylights, penetrations, etc.)""",

    Trade.SHEATHING: """

For sheathing work, please:
- Calculate wall and roof sheathing square footage by type
- Identify sheathing materials (plywood, OSB, gypsum, etc.)
- List thickness and grade requirements
- Calculate linear feet of bracing or blocking
- Identify fastener patterns and quantities
- Note special details for corners and openings
- List weather barrier requirements (house wrap, felt)
- Identify flashing needs around openings
- Note structural considerations and areas requiring reinforcement""",

    Trade.ACOUSTICS: """

For acoustical work, please:
- Calculate ceiling grid system by square footage and type
- Identify acoustic panel types and quantities
- List suspension system components
- Calculate wall panel square footage
- Identify acoustic treatment materials and locations
- Note special isolation or sound barrier details
- List specialty hardware and mounting systems
- Identify lighting integration requirements
- Note NRC (Noise Reduction Coefficient) values where applicable""",

    Trade.OTHER: """

Please provide a comprehensive analysis that includes:
- All key components visible in the blueprint
- Quantities with appropriate units of measure
- Material specifications and types
- Dimensions and measurements using the provided scale
- Any special requirements or considerations""",
}


LEVEL_INSTRUCTIONS: Dict[AnalysisLevel, str] = {
    AnalysisLevel.TAKEOFF: (
        "\n\nProvide a detailed material takeoff only, listing all required materials with "
        "quantities and units. Include specific details like sizes, types, and specifications "
        "for each item. Group similar items together and provide subtotals where appropriate."
    ),
    AnalysisLevel.COST_ESTIMATE: (
        "\n\nProvide a detailed material takeoff with cost estimates. Include all required "
        "materials with quantities, units, and approximate costs based on current national "
        "averages. Provide both unit costs and extended costs (quantity x unit cost). Include "
        "a totalMaterialCost value that sums all material costs."
    ),
    AnalysisLevel.FULL_ESTIMATE: """

Provide a complete project estimate including:
1. Materials: All required materials with quantities, units, and current cost estimates
2. Labor: Detailed labor estimates with hours and hourly rates by task or trade
3. Equipment: Any special equipment required with rental rates
4. Permit fees and inspection costs if applicable
5. Overhead and profit calculations for a complete bid package

Include totalMaterialCost, totalLaborCost, and totalCost values that accurately sum all components.""",
}


# =============================================================================
# OUTPUT SCHEMA
# =============================================================================

_BASE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "materials": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "category": {"type": "string"},
                    "name": {"type": "string"},
                    "quantity": {"type": "number"},
                    "unit": {"type": "string"},
                },
                "required": ["name", "quantity", "unit"],
            },
        },
        "notes": {"type": "string"},
    },
    "required": ["materials"],
}


@dataclass(frozen=True)
class PromptBundle:
    """Everything needed to issue one analysis request."""
    system_prompt: str
    schema: Dict[str, Any]
    persona: str = PERSONA_PROMPT


def build_response_schema(analysis_level: AnalysisLevel) -> Dict[str, Any]:
    """Build the output schema for an analysis level.

    ``materials`` is always required; cost fields are added for cost and
    full estimates; labor fields only for full estimates.
    """
    schema = copy.deepcopy(_BASE_SCHEMA)
    properties = schema["properties"]

    if analysis_level.includes_costs:
        item_properties = properties["materials"]["items"]["properties"]
        item_properties["unitPrice"] = {"type": "number"}
        item_properties["totalPrice"] = {"type": "number"}
        properties["totalMaterialCost"] = {"type": "number"}
        schema["required"].append("totalMaterialCost")

    if analysis_level.includes_labor:
        properties["labor"] = {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "task": {"type": "string"},
                    "hours": {"type": "number"},
                    "rate": {"type": "number"},
                    "cost": {"type": "number"},
                },
                "required": ["task", "hours"],
            },
        }
        properties["totalLaborCost"] = {"type": "number"}
        properties["totalCost"] = {"type": "number"}
        schema["required"].extend(["labor", "totalLaborCost", "totalCost"])

    return schema


def build_system_prompt(
    trade: Trade,
    analysis_level: AnalysisLevel,
    project_type: Optional[str],
    schema: Dict[str, Any],
) -> str:
    """Compose the trade and level specific instruction text."""
    prompt = f"Analyze these {trade.value} blueprint sections"
    if project_type:
        prompt += f" for a {project_type} project"

    prompt += TRADE_INSTRUCTIONS.get(trade, TRADE_INSTRUCTIONS[Trade.OTHER])
    prompt += LEVEL_INSTRUCTIONS[analysis_level]
    prompt += f"\n\nYour response MUST follow this JSON schema: {json.dumps(schema, indent=2)}"
    prompt += SCALE_INSTRUCTIONS
    prompt += NOTES_INSTRUCTIONS
    return prompt


def build_prompt(
    trade: Trade,
    analysis_level: AnalysisLevel,
    project_type: Optional[str] = None,
) -> PromptBundle:
    """Build the system prompt and output schema for a request."""
    schema = build_response_schema(analysis_level)
    return PromptBundle(
        system_prompt=build_system_prompt(trade, analysis_level, project_type, schema),
        schema=schema,
    )
