"""Tests for the category line-item extractors and their factory."""

import json

import pytest

from roofreview.models.extraction import LineItemCategory, PhaseStatus
from roofreview.models.pages import PageText
from roofreview.services.extraction.drip_edge_extractor import DripEdgeExtractor
from roofreview.services.extraction.extractor_factory import ExtractorFactory
from roofreview.services.extraction.gutter_apron_extractor import extract_gutter_apron_items
from roofreview.services.extraction.ice_water_extractor import IceWaterExtractor
from roofreview.services.extraction.ridge_cap_extractor import (
    RidgeCapExtractor,
    extract_ridge_cap_items,
)
from roofreview.services.extraction.starter_extractor import StarterExtractor


@pytest.fixture
def neutral_pages():
    texts = [
        "Homeowner information",
        "Claim summary",
        "Photo log",
        "Appendix",
        "Signature page",
    ]
    return [PageText(page_number=i + 1, raw_text=text) for i, text in enumerate(texts)]


class TestPageSelection:

    @pytest.mark.asyncio
    async def test_falls_back_to_first_three_pages(self, neutral_pages, fake_llm):
        llm = fake_llm(default="[]")

        result = await RidgeCapExtractor(llm).extract(neutral_pages)

        assert result.status == PhaseStatus.COMPLETED
        assert result.items == []
        prompt = llm.calls[0]["contents"]
        for number in (1, 2, 3):
            assert f"--- Page {number} ---" in prompt
        assert "--- Page 4 ---" not in prompt

    def test_keyword_pages_preferred(self, neutral_pages):
        pages = neutral_pages + [PageText(page_number=6, raw_text="RFG RIDGC Ridge cap - composition")]

        selected = RidgeCapExtractor().select_pages(pages)

        assert [p.page_number for p in selected] == [6]

    def test_secondary_pattern_used_when_primary_misses(self):
        pages = [
            PageText(page_number=1, raw_text="Intro"),
            PageText(page_number=2, raw_text="Ridge vent with end cap"),
        ]

        selected = RidgeCapExtractor().select_pages(pages)

        assert [p.page_number for p in selected] == [2]

    def test_selection_capped_at_five_pages(self):
        pages = [PageText(page_number=i, raw_text="Starter strip") for i in range(1, 9)]

        selected = StarterExtractor().select_pages(pages)

        assert [p.page_number for p in selected] == [1, 2, 3, 4, 5]


class TestExtraction:

    @pytest.mark.asyncio
    async def test_no_client_returns_empty_skipped(self, neutral_pages):
        result = await extract_ridge_cap_items(neutral_pages)

        assert result.items == []
        assert result.status == PhaseStatus.SKIPPED
        assert result.error is None

    @pytest.mark.asyncio
    async def test_items_object_parsed_and_category_forced(self, fake_llm):
        response = json.dumps(
            {
                "items": [
                    {
                        "category": "starter",
                        "code": "RFG RIDGC",
                        "description": "Ridge cap - Standard profile",
                        "quantity": {"value": 45, "unit": "LF"},
                        "unitPrice": 8.5,
                        "totalPrice": 382.5,
                        "sourcePages": [4],
                        "confidence": 1.4,
                        "ridgeCapQuality": "high-profile",
                    },
                    {"code": "BROKEN"},
                ]
            }
        )
        llm = fake_llm(responses=[f"```json\n{response}\n```"])
        pages = [PageText(page_number=4, raw_text="Ridge cap line items")]

        result = await RidgeCapExtractor(llm).extract(pages)

        assert result.status == PhaseStatus.COMPLETED
        assert len(result.items) == 1
        item = result.items[0]
        assert item.category == LineItemCategory.RIDGE_CAP
        assert item.quantity.value == 45
        assert item.quantity.unit == "LF"
        assert item.confidence == 1.0
        assert item.ridge_cap_quality == "high-profile"

    @pytest.mark.asyncio
    async def test_bare_array_and_numeric_quantity(self, fake_llm):
        llm = fake_llm(
            responses=['[{"description": "Ice & water barrier", "quantity": 300, "sourcePages": [2]}]']
        )
        pages = [PageText(page_number=2, raw_text="Ice & water barrier 300 SF")]

        result = await IceWaterExtractor(llm).extract(pages)

        assert len(result.items) == 1
        assert result.items[0].quantity.value == 300
        assert result.items[0].quantity.unit == ""

    @pytest.mark.asyncio
    async def test_model_error_reported_not_raised(self, fake_llm, neutral_pages):
        llm = fake_llm(responses=[RuntimeError("model unavailable")])

        result = await StarterExtractor(llm).extract(neutral_pages)

        assert result.items == []
        assert result.status == PhaseStatus.FAILED
        assert "model unavailable" in result.error

    @pytest.mark.asyncio
    async def test_unparseable_response_is_failure(self, fake_llm, neutral_pages):
        llm = fake_llm(responses=["Sorry, no items here."])

        result = await StarterExtractor(llm).extract(neutral_pages)

        assert result.status == PhaseStatus.FAILED

    def test_prompt_mentions_category(self):
        assert "ridge_cap" in RidgeCapExtractor().get_extraction_prompt()
        assert "ridgeCapQuality" in RidgeCapExtractor().get_extraction_prompt()
        assert "ridgeCapQuality" not in StarterExtractor().get_extraction_prompt()
        assert "EDGE PROTECTION" in DripEdgeExtractor().get_extraction_prompt()


class TestEdgeProtection:

    @pytest.mark.asyncio
    async def test_only_priced_estimate_lines_kept(self, fake_llm):
        pages = [
            PageText(
                page_number=2,
                raw_text="DESCRIPTION QUANTITY UNIT PRICE RCV\nRFG DRIP Drip edge 120.00 LF 3.10 372.00",
            ),
            PageText(page_number=5, raw_text="Roof report: drip edge perimeter 240 ft"),
        ]
        items = [
            {
                "code": "RFG DRIP",
                "description": "Drip edge",
                "quantity": {"value": 120, "unit": "LF"},
                "unitPrice": 3.1,
                "sourcePages": [2],
            },
            {
                "description": "Drip edge (no price)",
                "quantity": {"value": 120, "unit": "LF"},
                "sourcePages": [2],
            },
            {
                "description": "Drip edge perimeter",
                "quantity": {"value": 240, "unit": "LF"},
                "totalPrice": 10,
                "sourcePages": [5],
            },
            {
                "description": "Drip edge without pages",
                "quantity": {"value": 10, "unit": "LF"},
                "totalPrice": 31,
            },
        ]
        llm = fake_llm(responses=[json.dumps(items)])

        result = await DripEdgeExtractor(llm).extract(pages)

        assert [item.description for item in result.items] == ["Drip edge"]
        assert result.items[0].category == LineItemCategory.DRIP_EDGE

    @pytest.mark.asyncio
    async def test_gutter_apron_function_entrypoint(self, fake_llm):
        llm = fake_llm(responses=["[]"])
        pages = [PageText(page_number=1, raw_text="Gutter apron 80 LF")]

        result = await extract_gutter_apron_items(pages, llm_client=llm)

        assert result.category == LineItemCategory.GUTTER_APRON
        assert result.items == []
        assert result.status == PhaseStatus.COMPLETED


class TestExtractorFactory:

    def test_supported_categories_in_order(self):
        factory = ExtractorFactory()
        assert factory.get_supported_categories() == [
            LineItemCategory.RIDGE_CAP,
            LineItemCategory.STARTER,
            LineItemCategory.DRIP_EDGE,
            LineItemCategory.GUTTER_APRON,
            LineItemCategory.ICE_WATER,
        ]

    def test_extractors_share_client(self, fake_llm):
        llm = fake_llm()
        extractors = ExtractorFactory(llm).get_all_extractors()

        assert len(extractors) == 5
        assert all(extractor.llm_client is llm for extractor in extractors)

    def test_get_extractor_by_name(self):
        assert isinstance(ExtractorFactory().get_extractor("starter"), StarterExtractor)

    def test_unknown_category_raises(self):
        with pytest.raises(ValueError):
            ExtractorFactory().get_extractor("chimney_flashing")

    @pytest.mark.asyncio
    async def test_all_extractors_empty_without_client(self, neutral_pages):
        for extractor in ExtractorFactory().get_all_extractors():
            result = await extractor.extract(neutral_pages)
            assert result.items == []
            assert result.status == PhaseStatus.SKIPPED
