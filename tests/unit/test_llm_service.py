"""Unit tests for LLM service."""

import base64

import pytest
from unittest.mock import MagicMock, patch

from config.errors import ErrorCode, TakeoffError
from models.analysis import BlueprintImage


class TestLLMService:
    """Tests for LLMService."""

    def test_initialization(self):
        """Test LLMService initialization."""
        with patch('services.llm_service.ChatOpenAI'):
            from services.llm_service import LLMService

            service = LLMService(
                model="gpt-4-turbo",
                temperature=0.2,
                api_key="test-key"
            )

            assert service.model == "gpt-4-turbo"
            assert service.temperature == 0.2
            assert service.api_key == "test-key"

    def test_default_initialization(self, mock_settings):
        """Test LLMService uses settings defaults."""
        with patch('services.llm_service.ChatOpenAI'):
            from services.llm_service import LLMService

            service = LLMService()

            assert service.model == "gpt-4o"
            assert service.api_key == "test-api-key"
            assert service.max_tokens == 8000

    @pytest.mark.asyncio
    async def test_generate(self, mock_llm_service):
        """Test generate method."""
        from langchain_core.messages import HumanMessage

        result = await mock_llm_service.generate([HumanMessage(content="Hello")])

        assert result["content"] == "Mock response content"
        assert result["tokens_used"] == 100

    @pytest.mark.asyncio
    async def test_generate_joins_content_blocks(self, mock_llm_service):
        """Test list content is flattened to text."""
        from langchain_core.messages import HumanMessage

        mock_llm_service._client.ainvoke.return_value = MagicMock(
            content=[{"type": "text", "text": "{\"materials\": "}, {"type": "text", "text": "[]}"}],
            response_metadata={"token_usage": {"total_tokens": 10}}
        )

        result = await mock_llm_service.generate([HumanMessage(content="Hello")])

        assert result["content"] == '{"materials": []}'

    @pytest.mark.asyncio
    async def test_token_tracking(self, mock_llm_service):
        """Test token usage is tracked."""
        from langchain_core.messages import HumanMessage

        messages = [HumanMessage(content="Hello")]

        await mock_llm_service.generate(messages)
        await mock_llm_service.generate(messages)

        assert mock_llm_service.total_tokens_used == 200


class TestGenerateVision:
    """Tests for multimodal requests."""

    @pytest.mark.asyncio
    async def test_message_layout(self, mock_llm_service, sample_image):
        """Test system message, then instructions and image blocks."""
        await mock_llm_service.generate_vision("You are Uncle Jerry.", "Count the outlets.", [sample_image])

        messages = mock_llm_service._client.ainvoke.await_args.args[0]
        assert messages[0].content == "You are Uncle Jerry."
        blocks = messages[1].content
        assert blocks[0] == {"type": "text", "text": "Count the outlets."}
        assert blocks[1]["type"] == "image_url"

        expected = base64.b64encode(sample_image.data).decode("ascii")
        assert blocks[1]["image_url"]["url"] == f"data:image/png;base64,{expected}"

    @pytest.mark.asyncio
    async def test_images_in_upload_order(self, mock_llm_service, sample_png_bytes):
        """Test one image block per image, in order."""
        images = [
            BlueprintImage(filename="sheet-1.png", data=sample_png_bytes),
            BlueprintImage(filename="sheet-2.jpg", data=b"\xff\xd8jpeg"),
        ]

        await mock_llm_service.generate_vision("persona", "instructions", images)

        blocks = mock_llm_service._client.ainvoke.await_args.args[0][1].content
        urls = [block["image_url"]["url"] for block in blocks[1:]]
        assert urls[0].startswith("data:image/png;base64,")
        assert urls[1].startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_pdf_attachments_skipped(self, mock_llm_service, sample_image):
        """Test non-image files are not sent as image blocks."""
        pdf = BlueprintImage(filename="specs.pdf", data=b"%PDF-1.7")

        await mock_llm_service.generate_vision("persona", "instructions", [pdf, sample_image])

        blocks = mock_llm_service._client.ainvoke.await_args.args[0][1].content
        assert len(blocks) == 2
        assert "image/png" in blocks[1]["image_url"]["url"]


class TestErrorClassification:
    """Tests for mapping client exceptions to error codes."""

    @pytest.mark.parametrize("error,expected_code", [
        (Exception("Error code: 429 - rate_limit_exceeded"), ErrorCode.LLM_RATE_LIMIT),
        (Exception("This model's maximum context length is 128000 tokens"), ErrorCode.LLM_CONTEXT_TOO_LONG),
        (TimeoutError("Request timed out"), ErrorCode.LLM_TIMEOUT),
        (ConnectionError("Connection refused"), ErrorCode.LLM_CONNECTION_ERROR),
        (ValueError("something else"), ErrorCode.LLM_ERROR),
    ])
    def test_classify(self, error, expected_code):
        """Test each failure maps to its code."""
        from services.llm_service import LLMService

        classified = LLMService._classify_error(error)

        assert classified.code == expected_code
        assert classified.details["original_error"] == str(error)

    @pytest.mark.asyncio
    async def test_generate_raises_takeoff_error(self, mock_llm_service):
        """Test generate wraps client failures."""
        from langchain_core.messages import HumanMessage

        mock_llm_service._client.ainvoke.side_effect = Exception("rate_limit_exceeded")

        with pytest.raises(TakeoffError) as exc_info:
            await mock_llm_service.generate([HumanMessage(content="Hello")])

        assert exc_info.value.code == ErrorCode.LLM_RATE_LIMIT
        assert exc_info.value.is_transient

    def test_context_too_long_is_not_transient(self):
        """Test oversized requests are terminal."""
        from services.llm_service import LLMService

        classified = LLMService._classify_error(Exception("context_length_exceeded"))

        assert classified.code == ErrorCode.LLM_CONTEXT_TOO_LONG
        assert not classified.is_transient
