"""Utility modules for the blueprint takeoff pipeline."""

from utils.analysis_logger import (
    configure_logging,
    log_analysis_start,
    log_analysis_complete,
    log_analysis_failed,
    log_analysis_retry,
    log_normalizer_stage,
)

__all__ = [
    "configure_logging",
    "log_analysis_start",
    "log_analysis_complete",
    "log_analysis_failed",
    "log_analysis_retry",
    "log_normalizer_stage",
]
