"""LLM service for blueprint analysis.

Provides LangChain/OpenAI integration for the vision-capable reasoning
service that reads blueprint images.
"""

import base64
from typing import Dict, Any, Optional, List, Sequence

import structlog
from langchain_openai import ChatOpenAI
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from config.settings import settings
from config.errors import TakeoffError, ErrorCode
from models.analysis import BlueprintImage

logger = structlog.get_logger(__name__)


def image_content_block(image: BlueprintImage) -> Dict[str, Any]:
    """Build a multimodal content block carrying base64 image data."""
    encoded = base64.b64encode(image.data).decode("ascii")
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{image.content_type};base64,{encoded}"},
    }


class LLMService:
    """Service for LLM operations using LangChain.

    Provides a wrapper around ChatOpenAI with token tracking
    and error classification.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        max_tokens: Optional[int] = None
    ):
        """Initialize LLMService.

        Args:
            model: Model name (default from settings).
            temperature: Temperature (default from settings).
            api_key: OpenAI API key (default from settings).
            max_tokens: Response token cap (default from settings).
        """
        self.model = model or settings.llm_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.api_key = api_key or settings.openai_api_key
        self.max_tokens = max_tokens or settings.llm_max_tokens

        self._client: Optional[ChatOpenAI] = None
        self._total_tokens_used = 0

    @property
    def client(self) -> ChatOpenAI:
        """Get LangChain ChatOpenAI client (lazy initialization)."""
        if self._client is None:
            self._client = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key,
                max_tokens=self.max_tokens
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    async def generate(self, messages: List[BaseMessage]) -> Dict[str, Any]:
        """Generate a response from the LLM.

        Args:
            messages: List of LangChain messages.

        Returns:
            Dict with content and token usage.

        Raises:
            TakeoffError: If LLM call fails.
        """
        try:
            response = await self.client.ainvoke(messages)
        except Exception as e:
            raise self._classify_error(e) from e

        tokens_used = 0
        if hasattr(response, "response_metadata"):
            usage = response.response_metadata.get("token_usage", {})
            tokens_used = usage.get("total_tokens", 0)
            self._total_tokens_used += tokens_used

        content = response.content
        if isinstance(content, list):
            # Multimodal responses arrive as content blocks
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )

        logger.info(
            "llm_generated",
            model=self.model,
            tokens_used=tokens_used,
            content_length=len(content)
        )

        return {
            "content": content,
            "tokens_used": tokens_used
        }

    async def generate_vision(
        self,
        system_prompt: str,
        instructions: str,
        images: Sequence[BlueprintImage]
    ) -> Dict[str, Any]:
        """Generate a response for instruction text plus blueprint images.

        Args:
            system_prompt: Persona/system message.
            instructions: Trade and schema instructions.
            images: Preprocessed blueprint images.

        Returns:
            Dict with content and token usage.
        """
        content: List[Dict[str, Any]] = [{"type": "text", "text": instructions}]
        for image in images:
            if not image.content_type.startswith("image/"):
                logger.warning(
                    "llm_attachment_skipped",
                    filename=image.filename,
                    content_type=image.content_type
                )
                continue
            content.append(image_content_block(image))

        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=content)
        ]
        return await self.generate(messages)

    @staticmethod
    def _classify_error(error: Exception) -> TakeoffError:
        """Map a client exception to a TakeoffError with a specific code."""
        error_msg = str(error)
        lowered = error_msg.lower()
        type_name = type(error).__name__.lower()

        if "rate_limit" in lowered or "ratelimit" in type_name:
            code, message = ErrorCode.LLM_RATE_LIMIT, "OpenAI rate limit exceeded"
        elif "context_length" in lowered or "maximum context" in lowered:
            code, message = ErrorCode.LLM_CONTEXT_TOO_LONG, "Input too long for model context"
        elif "timeout" in lowered or "timeout" in type_name:
            code, message = ErrorCode.LLM_TIMEOUT, "LLM request timed out"
        elif "connection" in lowered or "connection" in type_name:
            code, message = ErrorCode.LLM_CONNECTION_ERROR, "Could not reach the LLM service"
        else:
            code, message = ErrorCode.LLM_ERROR, f"LLM generation failed: {error_msg}"

        return TakeoffError(
            code=code,
            message=message,
            details={"original_error": error_msg}
        )
