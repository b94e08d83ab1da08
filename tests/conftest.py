"""Pytest configuration and shared fixtures for blueprint takeoff tests."""

import io
import os
import sys
from contextlib import ExitStack
from unittest.mock import AsyncMock, MagicMock, patch

import pytest


# ============================================================================
# Ensure local imports work (config/, models/, services/, validators/, utils/)
# ============================================================================
#
# The codebase uses absolute imports like `from models...` / `from services...`.
# This guarantees the repository root is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# Settings Mocks
# ============================================================================

@pytest.fixture
def mock_settings():
    """Mock settings wherever modules hold a reference to them."""
    targets = [
        "config.settings.settings",
        "services.llm_service.settings",
        "services.blueprint_analyzer.settings",
        "services.analysis_cache.settings",
        "services.image_preprocessor.settings",
    ]
    with ExitStack() as stack:
        mock = MagicMock()
        mock.openai_api_key = "test-api-key"
        mock.llm_model = "gpt-4o"
        mock.llm_temperature = 0.1
        mock.llm_max_tokens = 8000
        mock.analysis_timeout_seconds = 5
        mock.analysis_max_retries = 2
        mock.analysis_retry_backoff_seconds = 0
        mock.analysis_cache_ttl_seconds = 3600
        mock.image_max_dimension = 1500
        mock.labor_rate_per_hour = 85.0
        mock.sales_tax_rate = 0.08
        mock.overhead_rate = 0.15
        mock.profit_rate = 0.10
        mock.log_level = "INFO"
        for target in targets:
            stack.enter_context(patch(target, mock))
        yield mock


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content="Mock response content",
        response_metadata={"token_usage": {"total_tokens": 100}}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """LLMService backed by a mocked ChatOpenAI client."""
    from services.llm_service import LLMService

    with patch('services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key")
        service._client = mock_chat_openai
        return service


@pytest.fixture
def mock_vision_service():
    """Stand-in LLM service whose generate_vision returns a JSON takeoff."""
    from tests.fixtures.mock_llm_responses import ELECTRICAL_JSON_RESPONSE

    service = MagicMock()
    service.generate_vision = AsyncMock(return_value={
        "content": ELECTRICAL_JSON_RESPONSE,
        "tokens_used": 1200
    })
    return service


# ============================================================================
# Pipeline Fixtures
# ============================================================================

@pytest.fixture
def fresh_cache():
    """Private cache so tests never share results."""
    from services.analysis_cache import AnalysisCache

    return AnalysisCache(ttl_seconds=3600)


@pytest.fixture
def estimation_rates():
    """Rollup rates matching the documented defaults."""
    from services.estimation_engine import EstimationRates

    return EstimationRates(
        labor_rate_per_hour=85.0,
        sales_tax_rate=0.08,
        overhead_rate=0.15,
        profit_rate=0.10,
    )


@pytest.fixture
def analyzer(mock_vision_service, fresh_cache, estimation_rates):
    """BlueprintAnalyzer wired to mocks."""
    from services.blueprint_analyzer import BlueprintAnalyzer
    from services.estimation_engine import EstimationEngine

    return BlueprintAnalyzer(
        llm_service=mock_vision_service,
        cache=fresh_cache,
        engine=EstimationEngine(rates=estimation_rates),
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================

def _png_bytes(width: int, height: int, color=(200, 200, 200)) -> bytes:
    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_png_bytes():
    """Small PNG image bytes."""
    return _png_bytes(120, 80)


@pytest.fixture
def large_png_bytes():
    """PNG larger than the preprocessing bound."""
    return _png_bytes(3000, 2000)


@pytest.fixture
def sample_image(sample_png_bytes):
    """A blueprint image model."""
    from models.analysis import BlueprintImage

    return BlueprintImage(filename="floor-plan.png", data=sample_png_bytes)


@pytest.fixture
def sample_request(sample_image):
    """Electrical full-estimate request with one image."""
    from models.analysis import AnalysisLevel, AnalysisRequest, Trade

    return AnalysisRequest(
        images=(sample_image,),
        trade=Trade.ELECTRICAL,
        analysis_level=AnalysisLevel.FULL_ESTIMATE,
        project_type="residential remodel",
    )
