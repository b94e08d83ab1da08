"""Unit tests for free-text takeoff extraction."""

import pytest

from models.analysis import AnalysisLevel
from models.materials import MaterialItem
from services.text_extraction import (
    DEFAULT_TEXT_NOTES,
    extract_explicit_totals,
    extract_from_text,
    extract_labor,
    extract_notes,
    extract_summary_totals,
    extract_table_materials,
    infer_note_priority,
    match_material_line,
)
from tests.fixtures.mock_llm_responses import (
    LABOR_TEXT_RESPONSE,
    MARKDOWN_TABLE_RESPONSE,
    PROSE_RESPONSE,
)


class TestLineMatchers:
    """Tests for the ordered line matchers."""

    def test_name_quantity_unit(self):
        assert match_material_line("Wire Nuts: 1000 ea") == {
            "name": "Wire Nuts", "quantity": 1000.0, "unit": "ea",
        }

    def test_category_name_quantity_wins_over_name_quantity(self):
        item = match_material_line("- Receptacles: Duplex Receptacle - 12 ea")

        assert item["category"] == "Receptacles"
        assert item["name"] == "Duplex Receptacle"
        assert item["quantity"] == 12
        assert item["unit"] == "ea"

    def test_quantity_unit_of_name(self):
        item = match_material_line("10 sheets of 5/8\" Type X drywall")

        assert item == {"name": "5/8\" Type X drywall", "quantity": 10.0, "unit": "sheets"}

    def test_quantity_name_defaults_unit(self):
        item = match_material_line("* 4 LED Fixtures")

        assert item == {"name": "LED Fixtures", "quantity": 4.0, "unit": "each"}

    def test_commas_in_quantity(self):
        assert match_material_line("#12 THHN: 1,250 ft")["quantity"] == 1250.0

    def test_bold_markers_and_numbering_stripped(self):
        item = match_material_line("1. **Junction Box**: 6 ea")

        assert item["name"] == "Junction Box"
        assert item["quantity"] == 6

    @pytest.mark.parametrize("line", [
        "Total MC Cable: 9200 ft",
        "Labor Hours: 40",
        "Total Material Cost: $1,200",
        "Just a sentence with no numbers.",
        "",
    ])
    def test_non_material_lines_ignored(self, line):
        assert match_material_line(line) is None

    def test_unit_price_attached_for_cost_levels(self):
        item = match_material_line("EMT Conduit: 200 ft @ $1.75/ft", include_costs=True)

        assert item["name"] == "EMT Conduit"
        assert item["unitPrice"] == 1.75
        assert "totalPrice" not in item

    def test_total_price_attached_for_cost_levels(self):
        item = match_material_line("Subpanel: 1 each ($350.00)", include_costs=True)

        assert item["totalPrice"] == 350.0

    def test_prices_ignored_for_takeoff(self):
        item = match_material_line("EMT Conduit: 200 ft @ $1.75/ft")

        assert "unitPrice" not in item


class TestTableExtraction:
    """Tests for markdown table parsing."""

    def test_rows_take_category_from_heading(self):
        materials = extract_table_materials(MARKDOWN_TABLE_RESPONSE, include_costs=True)

        assert [(m["category"], m["name"], m["quantity"]) for m in materials] == [
            ("Receptacles", "GFCI Receptacle", 4.0),
            ("Receptacles", "Duplex Receptacle", 12.0),
            ("Lighting", "LED Fixtures", 8.0),
        ]
        assert materials[0]["unitPrice"] == 15.75
        assert materials[0]["totalPrice"] == 63.0

    def test_category_column(self):
        text = (
            "| Category | Component | Qty | Unit |\n"
            "|---|---|---|---|\n"
            "| Wire | #12 THHN | 500 | ft |\n"
        )
        materials = extract_table_materials(text)

        assert materials == [{"name": "#12 THHN", "quantity": 500.0, "unit": "ft", "category": "Wire"}]

    def test_headerless_six_column_rows(self):
        text = "| Switches | Dimmer Switch | 3 | each | $18.25 | $54.75 |"
        materials = extract_table_materials(text, include_costs=True)

        assert materials[0]["category"] == "Switches"
        assert materials[0]["totalPrice"] == 54.75

    def test_rows_without_quantity_skipped(self):
        text = (
            "| Component | Quantity | Unit |\n"
            "|---|---|---|\n"
            "| Ground rod | TBD | each |\n"
        )
        assert extract_table_materials(text) == []


class TestSections:
    """Tests for notes, labor and totals."""

    def test_notes_with_priorities(self):
        notes = extract_notes(PROSE_RESPONSE)

        assert notes == [
            {"text": "Verify GFCI protection in wet locations", "priority": "high"},
            {"text": "Consider adding USB receptacles in the kitchen", "priority": "low"},
        ]

    def test_notes_paragraph(self):
        assert extract_notes("Notes: Plans were blurry near the kitchen.") == "Plans were blurry near the kitchen."

    def test_no_notes(self):
        assert extract_notes("Materials:\n- Box: 2") is None

    @pytest.mark.parametrize("text,expected", [
        ("Fire-rated boxes are required", "high"),
        ("You might consider tamper-resistant devices", "low"),
        ("Coordinate with the framer", "medium"),
    ])
    def test_infer_note_priority(self, text, expected):
        assert infer_note_priority(text).value == expected

    def test_labor_lines(self):
        labor = extract_labor(LABOR_TEXT_RESPONSE)

        assert labor == [
            {"task": "Rough-in wiring", "hours": 24.0, "rate": 85.0, "cost": 2040.0},
            {"task": "Panel installation", "hours": 8.0},
        ]

    def test_no_labor_section(self):
        assert extract_labor(PROSE_RESPONSE) is None

    def test_explicit_totals(self):
        totals = extract_explicit_totals(LABOR_TEXT_RESPONSE + "\nTotal Labor Hours: 32")

        assert totals == {"totalLaborCost": 2720.0, "totalCost": 3500.0, "laborHours": 32.0}

    def test_total_cost_not_confused_with_material_cost(self):
        totals = extract_explicit_totals("Total Material Cost: $100")

        assert totals == {"totalMaterialCost": 100.0}


class TestSummaryTotals:
    """Tests for electrical summary totals."""

    def test_explicit_total_wins(self):
        materials = [MaterialItem(category="Conduit & Raceway", name="MC Cable", quantity=100, unit="ft")]
        totals = extract_summary_totals("Total MC Cable: 9,200 ft", materials)

        assert totals["totalMCCable"] == 9200.0

    def test_summation_fallback(self):
        materials = [
            MaterialItem(category="Conduit & Raceway", name="EMT Conduit", quantity=150, unit="ft"),
            MaterialItem(category="Conduit & Raceway", name="PVC Conduit", quantity=50, unit="ft"),
            MaterialItem(category="Conduit & Raceway", name="MC Cable", quantity=300, unit="ft"),
            MaterialItem(category="Boxes & Enclosures", name="Device Box", quantity=12),
            MaterialItem(category="Boxes & Enclosures", name="Junction Box", quantity=3),
        ]
        totals = extract_summary_totals("", materials)

        assert totals == {"totalMCCable": 300, "totalConduit": 200, "totalBoxes": 15}


class TestExtractFromText:
    """Tests for the text fallback entry point."""

    def test_prose_materials_section(self):
        payload = extract_from_text(PROSE_RESPONSE, AnalysisLevel.TAKEOFF)

        names = [m["name"] for m in payload["materials"]]
        assert names == ["Duplex Receptacle", "Wire Nuts", "Drywall Screws", "LED Fixtures"]

    def test_wire_nuts_without_heading(self):
        payload = extract_from_text("Wire Nuts: 1000 ea", AnalysisLevel.TAKEOFF)

        assert payload["materials"] == [{"name": "Wire Nuts", "quantity": 1000.0, "unit": "ea"}]
        assert payload["notes"] == DEFAULT_TEXT_NOTES

    def test_table_preferred_over_lines(self):
        payload = extract_from_text(MARKDOWN_TABLE_RESPONSE, AnalysisLevel.COST_ESTIMATE)

        assert len(payload["materials"]) == 3
        assert payload["totalMaterialCost"] == 782.0

    def test_full_estimate_labor_and_totals(self):
        payload = extract_from_text(LABOR_TEXT_RESPONSE, AnalysisLevel.FULL_ESTIMATE)

        assert [m["name"] for m in payload["materials"]] == ["EMT Conduit", "Junction Box"]
        assert payload["materials"][0]["unitPrice"] == 1.75
        assert len(payload["labor"]) == 2
        assert payload["totalLaborCost"] == 2720.0
        assert payload["totalCost"] == 3500.0

    def test_takeoff_omits_cost_totals(self):
        payload = extract_from_text(LABOR_TEXT_RESPONSE, AnalysisLevel.TAKEOFF)

        assert "totalCost" not in payload
        assert "labor" not in payload

    def test_empty_text(self):
        assert extract_from_text("", AnalysisLevel.TAKEOFF)["materials"] == []
