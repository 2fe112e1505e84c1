"""Pipeline value objects shared by services, persistence and the API."""

from roofreview.models.extraction import (
    ExtractorResult,
    LineItem,
    LineItemCategory,
    NormalizedTotals,
    PhaseStatus,
    RequiredQuantities,
    RoofMaterialDetection,
    RoofMeasurements,
    V2Extraction,
    VerificationResult,
)
from roofreview.models.pages import PageText
from roofreview.models.progress import JobProgressEvent

__all__ = [
    "ExtractorResult",
    "JobProgressEvent",
    "LineItem",
    "LineItemCategory",
    "NormalizedTotals",
    "PageText",
    "PhaseStatus",
    "RequiredQuantities",
    "RoofMaterialDetection",
    "RoofMeasurements",
    "V2Extraction",
    "VerificationResult",
]
