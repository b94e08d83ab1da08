"""Blueprint analyzer.

Runs one analysis end to end:

    cache lookup -> image preprocessing -> reasoning service call (bounded
    retries, timeout, cancellation) -> normalize -> enrich -> validate ->
    cache store

Only completed results are cached. Cancelled and failed analyses leave
the cache untouched.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Tuple

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config.errors import (
    AnalysisCancelledError,
    AnalysisFailedError,
    ErrorCode,
    TakeoffError,
    ValidationError,
)
from config.settings import settings
from models.analysis import AnalysisRequest, AnalysisResult, AnalysisStatus, BlueprintImage, Trade
from services.analysis_cache import AnalysisCache, get_default_cache, make_cache_key
from services.estimation_engine import EstimationEngine, EstimationRates
from services.image_preprocessor import preprocess_images
from services.llm_service import LLMService
from services.prompt_builder import PromptBundle, build_prompt
from services.response_normalizer import normalize_response
from utils.analysis_logger import (
    log_analysis_complete,
    log_analysis_failed,
    log_analysis_retry,
    log_analysis_start,
)
from validators.takeoff_validator import validate_materials

logger = structlog.get_logger(__name__)

# Upper bound for a single backoff sleep
MAX_BACKOFF_SECONDS = 30.0


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, TakeoffError) and error.is_transient


class BlueprintAnalyzer:
    """Orchestrates blueprint analysis against the reasoning service.

    Collaborators are injectable so tests can supply a mock LLM service and
    a private cache.
    """

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        cache: Optional[AnalysisCache] = None,
        engine: Optional[EstimationEngine] = None,
        image_max_dimension: Optional[int] = None,
    ):
        """Initialize BlueprintAnalyzer.

        Args:
            llm_service: Reasoning service client (created on first use).
            cache: Result cache (default: process-wide cache).
            engine: Estimation engine (default: rates from settings).
            image_max_dimension: Preprocessing bound (default from settings).
        """
        self._llm_service = llm_service
        self.cache = cache if cache is not None else get_default_cache()
        self.engine = engine or EstimationEngine()
        self.image_max_dimension = image_max_dimension

    @property
    def llm_service(self) -> LLMService:
        """Get the LLM service (lazy initialization)."""
        if self._llm_service is None:
            self._llm_service = LLMService()
        return self._llm_service

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def analyze(
        self,
        request: AnalysisRequest,
        *,
        use_cache: bool = True,
        max_retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        retry_backoff_seconds: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        rates: Optional[EstimationRates] = None,
    ) -> AnalysisResult:
        """Analyze blueprint images and return a completed result.

        Args:
            request: Images, trade, analysis level and project type.
            use_cache: Consult and populate the result cache.
            max_retries: Retries after the first attempt (default from settings).
            timeout_seconds: Per-attempt upstream timeout (default from settings).
            retry_backoff_seconds: Base of the exponential backoff.
            cancel_event: Setting this event aborts the in-flight call.
            rates: Cost rollup rate overrides for this call.

        Returns:
            AnalysisResult with status completed.

        Raises:
            ValidationError: If the request has no images.
            AnalysisFailedError: If the upstream call failed on every attempt.
            AnalysisCancelledError: If ``cancel_event`` was set.
        """
        if not request.images:
            raise ValidationError("At least one blueprint image is required", field="images")

        max_retries = settings.analysis_max_retries if max_retries is None else max_retries
        timeout_seconds = settings.analysis_timeout_seconds if timeout_seconds is None else timeout_seconds
        if retry_backoff_seconds is None:
            retry_backoff_seconds = settings.analysis_retry_backoff_seconds

        cache_key = make_cache_key(request) if use_cache else None
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info(
                    "analysis_cache_hit",
                    trade=request.trade.value,
                    analysis_level=request.analysis_level.value,
                )
                return cached

        log_analysis_start(
            trade=request.trade.value,
            analysis_level=request.analysis_level.value,
            image_count=len(request.images),
            cache_key=cache_key,
        )
        started = time.monotonic()

        bundle = build_prompt(request.trade, request.analysis_level, request.project_type)
        images = await preprocess_images(request.images, self.image_max_dimension)

        response, attempts = await self._call_with_retries(
            request, bundle, images,
            max_retries=max_retries,
            timeout_seconds=timeout_seconds,
            retry_backoff_seconds=retry_backoff_seconds,
            cancel_event=cancel_event,
        )

        result = normalize_response(response.get("content", ""), request.analysis_level, request.trade)
        result = self.engine.enrich(result, request.analysis_level, request.trade, rates)

        issues = validate_materials(result.materials) if request.trade is Trade.ELECTRICAL else []
        result = result.model_copy(update={
            "validation_issues": issues,
            "status": AnalysisStatus.COMPLETED,
        })

        if cache_key is not None:
            self.cache.put(cache_key, result)

        log_analysis_complete(
            trade=request.trade.value,
            material_count=len(result.materials),
            duration_ms=int((time.monotonic() - started) * 1000),
            attempts=attempts,
            tokens_used=response.get("tokens_used", 0),
            issue_count=len(issues),
        )
        return result

    async def analyze_safe(self, request: AnalysisRequest, **kwargs: Any) -> AnalysisResult:
        """Analyze, mapping a terminal upstream failure to a failed result.

        Validation errors and cancellation still propagate.
        """
        try:
            return await self.analyze(request, **kwargs)
        except AnalysisFailedError as e:
            logger.warning(
                "analysis_failed_result",
                attempts=e.attempts,
                last_error_code=e.last_error_code,
            )
            return AnalysisResult.failed(e.user_message)

    # =========================================================================
    # UPSTREAM CALL
    # =========================================================================

    async def _call_with_retries(
        self,
        request: AnalysisRequest,
        bundle: PromptBundle,
        images: List[BlueprintImage],
        *,
        max_retries: int,
        timeout_seconds: float,
        retry_backoff_seconds: float,
        cancel_event: Optional[asyncio.Event],
    ) -> Tuple[Dict[str, Any], int]:
        """Call the reasoning service, retrying transient failures.

        Returns the response and the number of attempts made.
        """
        max_attempts = max_retries + 1
        attempts = 0

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            log_analysis_retry(
                attempt=retry_state.attempt_number,
                max_attempts=max_attempts,
                error_code=getattr(error, "code", None),
                wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0.0,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=retry_backoff_seconds, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    response = await self._call_upstream(bundle, images, timeout_seconds, cancel_event)
        except AnalysisCancelledError:
            logger.info("analysis_cancelled", trade=request.trade.value, attempts=attempts)
            raise AnalysisCancelledError(attempts=attempts) from None
        except TakeoffError as e:
            log_analysis_failed(
                trade=request.trade.value,
                error_code=e.code,
                error=e.message,
                attempts=attempts,
            )
            raise AnalysisFailedError(
                f"Blueprint analysis failed: {e.message}",
                attempts=attempts,
                last_error_code=e.code,
            ) from e

        return response, attempts

    async def _call_upstream(
        self,
        bundle: PromptBundle,
        images: List[BlueprintImage],
        timeout_seconds: float,
        cancel_event: Optional[asyncio.Event],
    ) -> Dict[str, Any]:
        """One upstream call raced against the timeout and cancel signal.

        The losing call is cancelled and its result discarded.
        """
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError()

        call = asyncio.ensure_future(
            self.llm_service.generate_vision(bundle.persona, bundle.system_prompt, images)
        )
        waiters = {call}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout_seconds, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if cancel_waiter is not None and cancel_waiter in done:
            call.cancel()
            raise AnalysisCancelledError()

        if call in done:
            return call.result()

        call.cancel()
        raise TakeoffError(
            code=ErrorCode.LLM_TIMEOUT,
            message=f"Reasoning service did not respond within {timeout_seconds:g}s",
            details={"timeout_seconds": timeout_seconds},
        )
