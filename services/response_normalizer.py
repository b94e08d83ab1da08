"""Response normalizer for blueprint analysis.

Turns arbitrary text from the reasoning service into an ``AnalysisResult``.
Parsing runs as a small state machine; each stage returns a value instead
of raising so the transitions are explicit:

    StructuredParse --fail--> Cleanup --fail--> TextFallback
          |                      |                   |
          +--------ok------------+-------------------+--> Reconcile

TextFallback always succeeds (possibly with nothing), so normalization is
total: any input, including the empty string, yields a result.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from models.analysis import AnalysisLevel, AnalysisResult, AnalysisStatus, Trade
from models.materials import DEFAULT_CATEGORY, InstallationNote, LaborItem, MaterialItem, coerce_number
from services import pricing_tables
from services.text_extraction import extract_from_text, extract_summary_totals
from utils.analysis_logger import log_normalizer_stage

logger = structlog.get_logger(__name__)

EMPTY_RESULT_NOTE = (
    "No materials could be identified in the response. "
    "Try uploading clearer blueprint images or a smaller section of the drawing."
)
DEFAULT_NOTES = "Analysis completed."

# Keys the reasoning service sometimes volunteers alongside the takeoff
EXTRA_KEYS = ("projectName", "projectAddress", "permitCost", "equipmentCost")


class NormalizerState(str, Enum):
    """Stages of the normalizer state machine."""

    STRUCTURED_PARSE = "structured_parse"
    CLEANUP = "cleanup"
    TEXT_FALLBACK = "text_fallback"
    RECONCILE = "reconcile"


@dataclass(frozen=True)
class ParseSuccess:
    """A stage produced a payload dict."""
    payload: Dict[str, Any]
    state: NormalizerState


@dataclass(frozen=True)
class ParseFailure:
    """A stage could not produce a payload."""
    reason: str
    state: NormalizerState
    candidate: Optional[str] = field(default=None, repr=False)


ParseOutcome = Union[ParseSuccess, ParseFailure]


# =============================================================================
# STRUCTURED PARSE
# =============================================================================

JSON_FENCE_RE = re.compile(r"```json\s*(.*?)```", re.IGNORECASE | re.DOTALL)
ANY_FENCE_RE = re.compile(r"```[a-zA-Z]*\s*(.*?)```", re.DOTALL)


def extract_json_candidate(text: str) -> Optional[str]:
    """Locate the most likely JSON object in a response.

    Prefers a ```json fence, then any fence holding braces, then the span
    from the first ``{`` to the last ``}``.
    """
    if not text:
        return None

    match = JSON_FENCE_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    for match in ANY_FENCE_RE.finditer(text):
        body = match.group(1).strip()
        if body.startswith(("{", "[")):
            return body

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return None


def _as_payload(parsed: Any) -> Optional[Dict[str, Any]]:
    if isinstance(parsed, dict):
        return parsed
    # A bare array of line items
    if isinstance(parsed, list) and parsed and all(isinstance(item, dict) for item in parsed):
        return {"materials": parsed}
    return None


def _parse_strict(candidate: str, state: NormalizerState) -> ParseOutcome:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        return ParseFailure(reason=f"invalid JSON: {e.msg}", state=state, candidate=candidate)

    payload = _as_payload(parsed)
    if payload is None:
        return ParseFailure(
            reason=f"expected an object, got {type(parsed).__name__}",
            state=state,
            candidate=candidate,
        )
    return ParseSuccess(payload=payload, state=state)


def structured_parse(text: str) -> ParseOutcome:
    """Strictly parse the JSON candidate in ``text``."""
    candidate = extract_json_candidate(text)
    if candidate is None:
        return ParseFailure(reason="no JSON found", state=NormalizerState.STRUCTURED_PARSE)
    return _parse_strict(candidate, NormalizerState.STRUCTURED_PARSE)


# =============================================================================
# CLEANUP
# =============================================================================

SMART_QUOTES = {
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
}
BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
LINE_COMMENT_RE = re.compile(r"(^|[\s,{\[])//[^\n]*", re.MULTILINE)
SINGLE_QUOTED_RE = re.compile(r"([{\[,:]\s*)'([^'\"]*)'(?=\s*[:,}\]])")
UNQUOTED_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][\w\-]*)(\s*:)")
TRAILING_COMMA_RE = re.compile(r",(\s*[\]}])")


def clean_json_string(candidate: str) -> str:
    """Repair common near-JSON mistakes.

    Removes comments, normalizes smart quotes, converts single-quoted
    strings, quotes bare keys and drops trailing commas.
    """
    cleaned = BLOCK_COMMENT_RE.sub("", candidate)
    cleaned = LINE_COMMENT_RE.sub(r"\1", cleaned)
    for smart, plain in SMART_QUOTES.items():
        cleaned = cleaned.replace(smart, plain)
    cleaned = SINGLE_QUOTED_RE.sub(r'\1"\2"', cleaned)
    cleaned = UNQUOTED_KEY_RE.sub(r'\1"\2"\3', cleaned)
    cleaned = TRAILING_COMMA_RE.sub(r"\1", cleaned)
    return cleaned.strip()


def cleanup_parse(failure: ParseFailure) -> ParseOutcome:
    """Retry a failed strict parse after repairing the candidate."""
    if not failure.candidate:
        return ParseFailure(reason="nothing to clean", state=NormalizerState.CLEANUP)
    return _parse_strict(clean_json_string(failure.candidate), NormalizerState.CLEANUP)


# =============================================================================
# TEXT FALLBACK
# =============================================================================


def text_fallback(text: str, analysis_level: AnalysisLevel) -> ParseSuccess:
    """Extract a payload from free-form text. Never fails."""
    return ParseSuccess(
        payload=extract_from_text(text, analysis_level),
        state=NormalizerState.TEXT_FALLBACK,
    )


def run_parse_stages(text: str, analysis_level: AnalysisLevel) -> ParseSuccess:
    """Drive StructuredParse -> Cleanup -> TextFallback until one succeeds."""
    outcome = structured_parse(text)
    log_normalizer_stage(outcome.state.value, isinstance(outcome, ParseSuccess),
                         getattr(outcome, "reason", None))
    if isinstance(outcome, ParseSuccess):
        return outcome

    outcome = cleanup_parse(outcome)
    log_normalizer_stage(outcome.state.value, isinstance(outcome, ParseSuccess),
                         getattr(outcome, "reason", None))
    if isinstance(outcome, ParseSuccess):
        return outcome

    success = text_fallback(text, analysis_level)
    log_normalizer_stage(success.state.value, True)
    return success


# =============================================================================
# RECONCILE
# =============================================================================


def _build_materials(raw_items: Any) -> List[MaterialItem]:
    materials: List[MaterialItem] = []
    if not isinstance(raw_items, list):
        return materials

    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            logger.warning("material_item_dropped", index=index, reason="not an object")
            continue

        data = dict(raw)
        if not data.get("name"):
            # Some responses label the name "component", "item" or "description"
            for key in ("component", "item", "description"):
                if data.get(key):
                    data["name"] = data[key]
                    break

        try:
            item = MaterialItem.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(
                "material_item_dropped",
                index=index,
                name=data.get("name"),
                reason=e.errors()[0]["msg"] if e.errors() else str(e),
            )
            continue

        if item.category == DEFAULT_CATEGORY and not str(raw.get("category") or "").strip():
            item = item.model_copy(update={"category": pricing_tables.infer_category(item.name)})
        else:
            item = item.model_copy(update={"category": pricing_tables.canonical_category(item.category)})

        if item.unit_price is not None:
            item = item.with_unit_price(item.unit_price)
        materials.append(item)

    return materials


def _build_labor(raw_items: Any) -> List[LaborItem]:
    labor: List[LaborItem] = []
    if not isinstance(raw_items, list):
        return labor

    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            continue
        try:
            item = LaborItem.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning("labor_item_dropped", index=index, reason=str(e.errors()[0]["msg"]))
            continue
        if item.rate is not None and item.cost is None:
            item = item.model_copy(update={"cost": round(item.hours * item.rate, 2)})
        labor.append(item)
    return labor


def _build_notes(raw_notes: Any) -> Union[str, List[InstallationNote]]:
    if isinstance(raw_notes, str):
        return raw_notes.strip() or DEFAULT_NOTES

    if isinstance(raw_notes, list):
        notes: List[InstallationNote] = []
        for index, raw in enumerate(raw_notes):
            if isinstance(raw, str):
                data: Dict[str, Any] = {"text": raw}
            elif isinstance(raw, dict):
                data = {"text": raw.get("text") or raw.get("note"), "priority": raw.get("priority")}
            else:
                logger.warning("note_dropped", index=index, reason="not a string or object")
                continue
            try:
                notes.append(InstallationNote.model_validate(data))
            except PydanticValidationError as e:
                logger.warning(
                    "note_dropped",
                    index=index,
                    reason=e.errors()[0]["msg"] if e.errors() else str(e),
                )
        if notes:
            return notes

    return DEFAULT_NOTES


def _explicit_total(payload: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = coerce_number(payload.get(key))
        if isinstance(value, (int, float)) and value >= 0:
            return float(value)
    return None


def _append_note(notes: Union[str, List[InstallationNote]], text: str) -> Union[str, List[InstallationNote]]:
    if isinstance(notes, list):
        return notes + [InstallationNote(text=text)]
    if not notes or notes == DEFAULT_NOTES:
        return text
    return f"{notes}\n\n{text}"


def reconcile(
    payload: Dict[str, Any],
    raw_text: str,
    analysis_level: AnalysisLevel,
    trade: Trade = Trade.OTHER,
) -> AnalysisResult:
    """Build a result from a parsed payload.

    Guarantees ``materials`` exists and fills missing totals by summation.
    Explicit totals in the payload always win over computed ones and are
    recorded in ``explicit_totals`` so enrichment leaves them alone.
    """
    materials = _build_materials(payload.get("materials", payload.get("components")))
    notes = _build_notes(payload.get("notes"))

    labor: Optional[List[LaborItem]] = None
    if analysis_level.includes_labor or payload.get("labor"):
        labor = _build_labor(payload.get("labor"))

    explicit_totals: List[str] = []

    total_material_cost = _explicit_total(payload, "totalMaterialCost", "materialCost")
    if total_material_cost is not None:
        explicit_totals.append("total_material_cost")
    elif analysis_level.includes_costs:
        total_material_cost = round(sum(item.total_price or 0.0 for item in materials), 2)

    total_labor_cost = _explicit_total(payload, "totalLaborCost", "laborCost")
    if total_labor_cost is not None:
        explicit_totals.append("total_labor_cost")
    elif analysis_level.includes_labor:
        total_labor_cost = round(sum(
            item.cost if item.cost is not None else item.hours * (item.rate or 0.0)
            for item in labor or []
        ), 2)

    total_cost = _explicit_total(payload, "totalCost")
    if total_cost is not None:
        explicit_totals.append("total_cost")
    elif analysis_level.includes_labor:
        total_cost = round((total_material_cost or 0.0) + (total_labor_cost or 0.0), 2)

    labor_hours = _explicit_total(payload, "laborHours", "totalLaborHours")

    if not materials:
        notes = _append_note(notes, EMPTY_RESULT_NOTE)

    summary_totals: Dict[str, float] = {}
    if trade is Trade.ELECTRICAL:
        summary_totals = extract_summary_totals(raw_text, materials)

    extras = {key: payload[key] for key in EXTRA_KEYS if payload.get(key) is not None}

    return AnalysisResult(
        materials=materials,
        labor=labor,
        notes=notes,
        total_material_cost=total_material_cost,
        total_labor_cost=total_labor_cost,
        total_cost=total_cost,
        labor_hours=labor_hours,
        explicit_totals=explicit_totals,
        summary_totals=summary_totals,
        extras=extras,
        raw_response=raw_text or "",
        status=AnalysisStatus.PROCESSING,
    )


# =============================================================================
# ENTRY POINT
# =============================================================================


def normalize_response(
    raw_text: Optional[str],
    analysis_level: AnalysisLevel,
    trade: Trade = Trade.OTHER,
) -> AnalysisResult:
    """Normalize reasoning-service output into an ``AnalysisResult``.

    Total over all inputs. The returned result keeps the raw text for
    diagnostics and has status ``processing``; the analyzer marks it
    completed after enrichment.
    """
    text = raw_text or ""
    success = run_parse_stages(text, analysis_level)
    result = reconcile(success.payload, text, analysis_level, trade)

    logger.info(
        "response_normalized",
        parsed_by=success.state.value,
        materials=len(result.materials),
        labor=len(result.labor or []),
        analysis_level=analysis_level.value,
    )
    return result
