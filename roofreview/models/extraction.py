"""Value objects produced by the extraction v2 pipeline.

Every model serialises with camelCase keys (``rcv``, ``netClaim``,
``lineItems``, ``eaveLength``, ``dripEdgeTotal``...) so the persisted
payload keeps the shape downstream consumers read.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from roofreview.models.base import CamelModel


class PhaseStatus(str, Enum):
    """Outcome of a model-backed phase.

    COMPLETED: the phase ran; an empty result is legitimate.
    SKIPPED: the phase was not attempted (no model credential, nothing to do).
    FAILED: the phase was attempted and failed; the result is the empty or
        deterministic fallback.
    """
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


def _clamp_unit_interval(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(0.0, min(1.0, float(value)))
    return value


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

TOTALS_FIELDS = ("rcv", "acv", "net_claim", "price_list", "estimate_completed_at")


class TotalsSource(CamelModel):
    """Where a deterministic totals match was found."""
    field: str
    page_number: int
    matched_text: str


class NormalizedTotals(CamelModel):
    rcv: Optional[float] = None
    acv: Optional[float] = None
    net_claim: Optional[float] = None
    price_list: Optional[str] = None
    estimate_completed_at: Optional[str] = None
    confidence: float = 0.0
    sources: List[TotalsSource] = Field(default_factory=list)
    used_llm: bool = Field(default=False, alias="usedLLM")
    llm_status: PhaseStatus = PhaseStatus.SKIPPED
    llm_error: Optional[str] = None

    def found_count(self) -> int:
        return sum(1 for name in TOTALS_FIELDS if getattr(self, name) is not None)

    def missing_fields(self) -> List[str]:
        return [name for name in TOTALS_FIELDS if getattr(self, name) is None]

    def recompute_confidence(self) -> None:
        self.confidence = self.found_count() / len(TOTALS_FIELDS)

    def extracted_subset(self) -> Dict[str, Any]:
        """The five totals keyed by their payload names, missing ones as None."""
        return {
            "rcv": self.rcv,
            "acv": self.acv,
            "netClaim": self.net_claim,
            "priceList": self.price_list,
            "estimateCompletedAt": self.estimate_completed_at,
        }


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------

class LineItemCategory(str, Enum):
    RIDGE_CAP = "ridge_cap"
    STARTER = "starter"
    DRIP_EDGE = "drip_edge"
    GUTTER_APRON = "gutter_apron"
    ICE_WATER = "ice_water"


class Quantity(CamelModel):
    value: float
    unit: str = ""


class LineItem(CamelModel):
    """One billed estimate line as reported by a category extractor."""

    category: LineItemCategory
    code: Optional[str] = None
    description: str
    quantity: Optional[Quantity] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None
    source_pages: Optional[List[int]] = None
    confidence: Optional[float] = None
    ridge_cap_quality: Optional[Literal["purpose-built", "high-profile", "cut-from-3tab"]] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> Any:
        return _clamp_unit_interval(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_bare_quantity(cls, value: Any) -> Any:
        # Models sometimes return "quantity": 120 instead of {"value": 120, "unit": "LF"}
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return {"value": value, "unit": ""}
        return value


class ExtractorResult(CamelModel):
    category: LineItemCategory
    items: List[LineItem] = Field(default_factory=list)
    status: PhaseStatus = PhaseStatus.COMPLETED
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Measurements, material and requirements
# ---------------------------------------------------------------------------

class RoofMeasurements(CamelModel):
    """Roof geometry in linear feet (lengths) and roofing squares.

    ``total_ridge_hip`` and ``drip_edge_total`` are derived and only present
    when both of their operands are.
    """

    ridge_length: Optional[float] = None
    hip_length: Optional[float] = None
    eave_length: Optional[float] = None
    rake_length: Optional[float] = None
    valley_length: Optional[float] = None
    squares: Optional[float] = None
    pitch: Optional[str] = None
    stories: Optional[int] = None
    total_ridge_hip: Optional[float] = None
    drip_edge_total: Optional[float] = None


class RoofMaterialDetection(CamelModel):
    material: Optional[str] = None
    confidence: float = 0.0
    source_pages: Optional[List[int]] = None


class RequiredQuantities(CamelModel):
    required_starter_lf: Optional[float] = None
    required_drip_edge_lf: Optional[float] = None
    required_ice_water_sf: Optional[float] = None


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

class VerificationItem(CamelModel):
    field: str
    extracted_value: Any = None
    observed_value: Any = None
    confidence: float = 0.0
    pages: List[int] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> Any:
        if value is None:
            return 0.0
        return _clamp_unit_interval(value)


class VerificationResult(CamelModel):
    verifications: List[VerificationItem] = Field(default_factory=list)
    corrections: Dict[str, Any] = Field(default_factory=dict)
    status: PhaseStatus = PhaseStatus.SKIPPED
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Merged payload
# ---------------------------------------------------------------------------

class V2Extraction(CamelModel):
    """Everything one pipeline run produced for a job."""

    totals: NormalizedTotals
    line_items: List[LineItem] = Field(default_factory=list)
    measurements: RoofMeasurements = Field(default_factory=RoofMeasurements)
    verification: VerificationResult = Field(default_factory=VerificationResult)
    roof_material: RoofMaterialDetection = Field(default_factory=RoofMaterialDetection)
    requirements: RequiredQuantities = Field(default_factory=RequiredQuantities)
    phase_status: Dict[str, PhaseStatus] = Field(default_factory=dict)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ExtractionRecordData(CamelModel):
    """The per-job extraction JSON.

    Only ``v2`` is typed; every other key written by earlier pipelines is
    kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    v2: Optional[V2Extraction] = None

    @staticmethod
    def has_v2(data: Optional[Dict[str, Any]]) -> bool:
        return bool(data) and isinstance(data.get("v2"), dict)


def merge_v2(existing: Optional[Dict[str, Any]], v2: V2Extraction) -> Dict[str, Any]:
    """Return a new extraction blob with ``v2`` replaced and siblings intact."""
    merged = dict(existing or {})
    merged["v2"] = v2.to_payload()
    return merged
