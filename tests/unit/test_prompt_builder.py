"""Unit tests for prompt and schema construction."""

import json

import pytest

from models.analysis import AnalysisLevel, Trade
from services.prompt_builder import (
    PERSONA_PROMPT,
    TRADE_INSTRUCTIONS,
    build_prompt,
    build_response_schema,
)


class TestResponseSchema:
    """Tests for the per-level output schema."""

    @pytest.mark.parametrize("level,required", [
        (AnalysisLevel.TAKEOFF, ["materials"]),
        (AnalysisLevel.COST_ESTIMATE, ["materials", "totalMaterialCost"]),
        (AnalysisLevel.FULL_ESTIMATE, ["materials", "totalMaterialCost", "labor", "totalLaborCost", "totalCost"]),
    ])
    def test_required_fields(self, level, required):
        assert build_response_schema(level)["required"] == required

    def test_item_fields_always_required(self):
        for level in AnalysisLevel:
            items = build_response_schema(level)["properties"]["materials"]["items"]
            assert items["required"] == ["name", "quantity", "unit"]

    def test_prices_only_for_cost_levels(self):
        takeoff = build_response_schema(AnalysisLevel.TAKEOFF)["properties"]["materials"]["items"]["properties"]
        cost = build_response_schema(AnalysisLevel.COST_ESTIMATE)["properties"]["materials"]["items"]["properties"]

        assert "unitPrice" not in takeoff
        assert {"unitPrice", "totalPrice"} <= set(cost)

    def test_labor_only_for_full_estimate(self):
        assert "labor" not in build_response_schema(AnalysisLevel.COST_ESTIMATE)["properties"]
        labor = build_response_schema(AnalysisLevel.FULL_ESTIMATE)["properties"]["labor"]
        assert labor["items"]["required"] == ["task", "hours"]

    def test_schemas_are_independent_copies(self):
        build_response_schema(AnalysisLevel.FULL_ESTIMATE)["required"].append("mutated")

        assert "mutated" not in build_response_schema(AnalysisLevel.FULL_ESTIMATE)["required"]


class TestBuildPrompt:
    """Tests for build_prompt across trades and levels."""

    @pytest.mark.parametrize("trade", list(Trade))
    @pytest.mark.parametrize("level", list(AnalysisLevel))
    def test_every_combination(self, trade, level):
        bundle = build_prompt(trade, level)

        assert bundle.persona == PERSONA_PROMPT
        assert bundle.system_prompt.startswith(f"Analyze these {trade.value} blueprint sections")
        assert TRADE_INSTRUCTIONS[trade] in bundle.system_prompt
        assert json.dumps(bundle.schema, indent=2) in bundle.system_prompt
        assert "scale" in bundle.system_prompt.lower()
        assert "'notes' field" in bundle.system_prompt

    def test_project_type_included(self):
        bundle = build_prompt(Trade.ELECTRICAL, AnalysisLevel.TAKEOFF, "residential remodel")

        assert bundle.system_prompt.startswith(
            "Analyze these electrical blueprint sections for a residential remodel project"
        )

    def test_level_instructions(self):
        takeoff = build_prompt(Trade.PLUMBING, AnalysisLevel.TAKEOFF).system_prompt
        full = build_prompt(Trade.PLUMBING, AnalysisLevel.FULL_ESTIMATE).system_prompt

        assert "material takeoff only" in takeoff
        assert "Overhead and profit" in full

    def test_deterministic(self):
        assert build_prompt(Trade.HVAC, AnalysisLevel.COST_ESTIMATE, "office") == build_prompt(
            Trade.HVAC, AnalysisLevel.COST_ESTIMATE, "office"
        )
