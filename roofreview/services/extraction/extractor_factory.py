"""Extractor factory for the category line-item extractors.

Keeps a registry mapping each line-item category to its extractor class
and builds instances that share one injected model client.
"""

from typing import Dict, List, Optional, Type

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import LineItemCategory
from roofreview.services.extraction.line_item_extractor import BaseLineItemExtractor
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ExtractorFactory:
    """Factory for creating line-item extractors.

    Attributes:
        llm_client: Client injected into every extractor (None disables them)
        _registry: Mapping of category to extractor class
    """

    def __init__(self, llm_client: Optional[UnifiedLLMClient] = None):
        self.llm_client = llm_client
        self._registry: Dict[LineItemCategory, Type[BaseLineItemExtractor]] = {}
        self._register_default_extractors()

        LOGGER.info(
            "Initialized ExtractorFactory",
            extra={
                "registered_types": len(self._registry),
                "llm_enabled": llm_client is not None,
            }
        )

    def _register_default_extractors(self):
        # Imported here to keep the subclasses free to import this module
        from roofreview.services.extraction.drip_edge_extractor import DripEdgeExtractor
        from roofreview.services.extraction.gutter_apron_extractor import GutterApronExtractor
        from roofreview.services.extraction.ice_water_extractor import IceWaterExtractor
        from roofreview.services.extraction.ridge_cap_extractor import RidgeCapExtractor
        from roofreview.services.extraction.starter_extractor import StarterExtractor

        for extractor_class in (
            RidgeCapExtractor,
            StarterExtractor,
            DripEdgeExtractor,
            GutterApronExtractor,
            IceWaterExtractor,
        ):
            self.register_extractor(extractor_class)

    def register_extractor(self, extractor_class: Type[BaseLineItemExtractor]) -> None:
        """Register (or replace) the extractor for its category."""
        self._registry[extractor_class.CATEGORY] = extractor_class

    def get_extractor(self, category: LineItemCategory | str) -> BaseLineItemExtractor:
        """Build the extractor for ``category``.

        Raises:
            ValueError: If no extractor is registered for the category
        """
        key = LineItemCategory(category)
        extractor_class = self._registry.get(key)
        if extractor_class is None:
            raise ValueError(f"No extractor registered for category: {key.value}")
        return extractor_class(self.llm_client)

    def get_all_extractors(self) -> List[BaseLineItemExtractor]:
        """One extractor per registered category, in registration order."""
        return [extractor_class(self.llm_client) for extractor_class in self._registry.values()]

    def get_supported_categories(self) -> List[LineItemCategory]:
        return list(self._registry.keys())
