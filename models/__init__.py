"""Domain models for the blueprint takeoff pipeline."""

from models.analysis import (
    AnalysisLevel,
    AnalysisRequest,
    AnalysisResult,
    AnalysisStatus,
    BlueprintImage,
    Trade,
)
from models.materials import InstallationNote, LaborItem, MaterialItem, NotePriority
from models.takeoff import (
    CircuitLoadGroup,
    CostRollup,
    MaterialChange,
    Severity,
    TakeoffDiff,
    ValidationIssue,
)

__all__ = [
    "AnalysisLevel",
    "AnalysisRequest",
    "AnalysisResult",
    "AnalysisStatus",
    "BlueprintImage",
    "Trade",
    "InstallationNote",
    "LaborItem",
    "MaterialItem",
    "NotePriority",
    "CircuitLoadGroup",
    "CostRollup",
    "MaterialChange",
    "Severity",
    "TakeoffDiff",
    "ValidationIssue",
]
