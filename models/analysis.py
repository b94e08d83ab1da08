"""Analysis request and result models.

An ``AnalysisRequest`` is what the calling layer hands the pipeline; an
``AnalysisResult`` is what it gets back. Results move through
pending -> processing -> completed | failed and are terminal once completed
or failed.
"""

import os
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from models.materials import InstallationNote, LaborItem, MaterialItem
from models.takeoff import CircuitLoadGroup, CostRollup, ValidationIssue


# =============================================================================
# ENUMS
# =============================================================================


class Trade(str, Enum):
    """Construction discipline used to select prompts and tables."""

    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    CARPENTRY = "carpentry"
    HVAC = "hvac"
    DRYWALL = "drywall"
    FLOORING = "flooring"
    ROOFING = "roofing"
    SHEATHING = "sheathing"
    ACOUSTICS = "acoustics"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Any) -> "Trade":
        """Coerce a string to a Trade, falling back to OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class AnalysisLevel(str, Enum):
    """Depth of output requested."""

    TAKEOFF = "takeoff"
    COST_ESTIMATE = "costEstimate"
    FULL_ESTIMATE = "fullEstimate"

    @property
    def includes_costs(self) -> bool:
        return self is not AnalysisLevel.TAKEOFF

    @property
    def includes_labor(self) -> bool:
        return self is AnalysisLevel.FULL_ESTIMATE


class AnalysisStatus(str, Enum):
    """Lifecycle status of an analysis."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# REQUEST MODELS
# =============================================================================

MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".bmp": "image/bmp",
}
DEFAULT_MEDIA_TYPE = "image/jpeg"


def determine_media_type(filename: str) -> str:
    """Get the media type for a blueprint file from its extension."""
    ext = os.path.splitext(filename or "")[1].lower()
    return MEDIA_TYPES.get(ext, DEFAULT_MEDIA_TYPE)


class BlueprintImage(BaseModel):
    """An uploaded blueprint file."""

    filename: str = Field(..., description="Original filename")
    data: bytes = Field(..., description="Raw file bytes")
    content_type: Optional[str] = Field(default=None, alias="contentType", description="MIME type")

    class Config:
        frozen = True
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def default_content_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and not (data.get("content_type") or data.get("contentType")):
            data = {**data, "content_type": determine_media_type(data.get("filename", ""))}
        return data

    @property
    def byte_length(self) -> int:
        return len(self.data)

    @property
    def is_raster(self) -> bool:
        """Whether the file is an image we can resize locally."""
        return self.content_type in ("image/jpeg", "image/png")


class AnalysisRequest(BaseModel):
    """Immutable description of one analysis."""

    images: Tuple[BlueprintImage, ...] = Field(default_factory=tuple, description="Blueprint images in upload order")
    trade: Trade = Field(default=Trade.OTHER, description="Trade discipline")
    analysis_level: AnalysisLevel = Field(default=AnalysisLevel.TAKEOFF, alias="analysisLevel")
    project_type: Optional[str] = Field(default=None, alias="projectType")

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("trade", mode="before")
    @classmethod
    def coerce_trade(cls, v):
        return Trade.from_value(v)


# =============================================================================
# RESULT MODEL
# =============================================================================


class AnalysisResult(BaseModel):
    """Structured takeoff produced by the pipeline."""

    materials: List[MaterialItem] = Field(default_factory=list)
    labor: Optional[List[LaborItem]] = Field(default=None)
    notes: Union[str, List[InstallationNote]] = Field(default="")

    total_material_cost: Optional[float] = Field(default=None, alias="totalMaterialCost", ge=0)
    total_labor_cost: Optional[float] = Field(default=None, alias="totalLaborCost", ge=0)
    total_cost: Optional[float] = Field(default=None, alias="totalCost", ge=0)
    labor_hours: Optional[float] = Field(default=None, alias="laborHours", ge=0)
    explicit_totals: List[str] = Field(
        default_factory=list, alias="explicitTotals", exclude=True,
        description="Total fields stated by the upstream response rather than summed"
    )

    # Derived data from the estimation engine and validator
    summary_totals: Dict[str, float] = Field(
        default_factory=dict, alias="summaryTotals",
        description="Named category totals (e.g., totalMCCable, totalConduit, totalBoxes)"
    )
    circuit_loads: List[CircuitLoadGroup] = Field(default_factory=list, alias="circuitLoads")
    cost_rollup: Optional[CostRollup] = Field(default=None, alias="costRollup")
    validation_issues: List[ValidationIssue] = Field(default_factory=list, alias="validationIssues")

    # Project info the upstream service sometimes volunteers
    extras: Dict[str, Any] = Field(default_factory=dict)

    raw_response: str = Field(default="", alias="rawResponse", description="Upstream text kept for diagnostics")
    status: AnalysisStatus = Field(default=AnalysisStatus.PENDING)
    error_message: Optional[str] = Field(default=None, alias="errorMessage")

    class Config:
        populate_by_name = True

    @property
    def is_terminal(self) -> bool:
        return self.status in (AnalysisStatus.COMPLETED, AnalysisStatus.FAILED)

    @classmethod
    def failed(cls, message: str, raw_response: str = "") -> "AnalysisResult":
        """Build the terminal record for an analysis that could not run."""
        return cls(
            materials=[],
            notes=message,
            raw_response=raw_response,
            status=AnalysisStatus.FAILED,
            error_message=message,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase dict the calling layer stores."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
