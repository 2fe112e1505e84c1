"""Extraction phases of the v2 pipeline.

- estimate_normalizer: five estimate totals, regex first with a model fallback
- line item extractors: one per roofing category, built by ExtractorFactory
- measurement_parser, roof_material, requirements: deterministic geometry
- verification: model cross-check of the totals against the source pages
"""

from roofreview.services.extraction.estimate_normalizer import EstimateNormalizer
from roofreview.services.extraction.extractor_factory import ExtractorFactory
from roofreview.services.extraction.line_item_extractor import BaseLineItemExtractor

__all__ = [
    "BaseLineItemExtractor",
    "EstimateNormalizer",
    "ExtractorFactory",
]
