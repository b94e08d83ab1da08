"""Analysis Logger for the blueprint takeoff pipeline.

Provides highly visible, formatted logging for analysis runs with
distinctive visual markers that stand out in log streams, plus the
structlog configuration used by scripts.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import structlog

logger = structlog.get_logger()

# Visual markers for different log types
BANNER_WIDTH = 80
ANALYSIS_BANNER_CHAR = "═"
FAILURE_BANNER_CHAR = "!"


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog for console (default) or JSON output."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_analysis_start(
    trade: str,
    analysis_level: str,
    image_count: int,
    cache_key: Optional[str] = None
) -> None:
    """Log analysis start with prominent banner."""
    print("\n")
    print(ANALYSIS_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(ANALYSIS_BANNER_CHAR, "▶ BLUEPRINT ANALYSIS STARTED"))
    print(ANALYSIS_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Trade        : {trade}")
    print(f"║ Level        : {analysis_level}")
    print(f"║ Images       : {image_count}")
    print(f"║ Timestamp    : {_timestamp()}")
    print(ANALYSIS_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "analysis_start_logged",
        trade=trade,
        analysis_level=analysis_level,
        image_count=image_count,
        cache_key_length=len(cache_key) if cache_key else 0
    )


def log_analysis_complete(
    trade: str,
    material_count: int,
    duration_ms: int,
    attempts: int,
    tokens_used: int = 0,
    issue_count: int = 0
) -> None:
    """Log analysis completion with summary."""
    print("\n")
    print(ANALYSIS_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(ANALYSIS_BANNER_CHAR, "✓ ANALYSIS COMPLETED"))
    print(ANALYSIS_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Trade        : {trade}")
    print(f"║ Materials    : {material_count}")
    print(f"║ Issues       : {issue_count}")
    print(f"║ Attempts     : {attempts}")
    print(f"║ Duration     : {duration_ms:,} ms ({duration_ms / 1000:.2f}s)")
    print(f"║ Tokens Used  : {tokens_used:,}")
    print(ANALYSIS_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "analysis_complete_logged",
        trade=trade,
        material_count=material_count,
        duration_ms=duration_ms,
        attempts=attempts,
        tokens_used=tokens_used,
        issue_count=issue_count
    )


def log_analysis_failed(
    trade: str,
    error_code: Optional[str],
    error: str,
    attempts: int
) -> None:
    """Log analysis failure with details."""
    print("\n")
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(FAILURE_BANNER_CHAR, "✗ ANALYSIS FAILED"))
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Trade        : {trade}")
    print(f"║ Timestamp    : {_timestamp()}")
    print(f"║ Error Code   : {error_code or 'UNKNOWN'}")
    print(f"║ Error        : {error}")
    print(f"║ Attempts     : {attempts}")
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.error(
        "analysis_failed_logged",
        trade=trade,
        error_code=error_code,
        error=error,
        attempts=attempts
    )


def log_analysis_retry(
    attempt: int,
    max_attempts: int,
    error_code: Optional[str],
    wait_seconds: float
) -> None:
    """Log a retry after a transient failure."""
    logger.warning(
        "analysis_retry_logged",
        attempt=attempt,
        max_attempts=max_attempts,
        error_code=error_code,
        wait_seconds=round(wait_seconds, 3)
    )


def log_normalizer_stage(stage: str, succeeded: bool, reason: Optional[str] = None) -> None:
    """Log the outcome of one normalizer stage."""
    logger.debug(
        "normalizer_stage_logged",
        stage=stage,
        succeeded=succeeded,
        reason=reason
    )
