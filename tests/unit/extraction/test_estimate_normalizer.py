"""Tests for the estimate totals normalizer."""

import json

import pytest

from roofreview.models.extraction import PhaseStatus
from roofreview.models.pages import PageText
from roofreview.services.extraction.estimate_normalizer import (
    EstimateNormalizer,
    normalize_estimate_totals,
)


@pytest.fixture
def complete_estimate_pages():
    return [
        PageText(
            page_number=1,
            raw_text=(
                "Insured: Jane Doe\n"
                "Price List: NYNY8X_JAN24\n"
                "Date Est. Completed: 01/15/24\n"
            ),
        ),
        PageText(
            page_number=2,
            raw_text=(
                "Summary for Dwelling\n"
                "Replacement Cost Value: $12,345.67\n"
                "ACV 10,000.00\n"
                "Net Claim Amount: $9,500.00\n"
            ),
        ),
    ]


class TestDeterministicPass:

    @pytest.mark.asyncio
    async def test_all_fields_found_without_model(self, complete_estimate_pages, fake_llm):
        llm = fake_llm()
        totals = await EstimateNormalizer(llm_client=llm).normalize(complete_estimate_pages)

        assert totals.rcv == 12345.67
        assert totals.acv == 10000.0
        assert totals.net_claim == 9500.0
        assert totals.price_list == "NYNY8X_JAN24"
        assert totals.estimate_completed_at == "2024-01-15"
        assert totals.confidence == 1.0
        assert totals.used_llm is False
        assert totals.llm_status == PhaseStatus.SKIPPED
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_rcv_with_dollar_and_separator(self):
        pages = [PageText(page_number=1, raw_text="RCV $5,000")]
        totals = await normalize_estimate_totals(pages)

        assert totals.rcv == 5000.0
        assert totals.confidence == pytest.approx(0.2)
        assert totals.sources[0].field == "rcv"
        assert totals.sources[0].page_number == 1
        assert "5,000" in totals.sources[0].matched_text

    @pytest.mark.asyncio
    async def test_net_claim_parsed_with_source(self):
        pages = [
            PageText(page_number=1, raw_text="Cover sheet"),
            PageText(page_number=4, raw_text="Net Claim: $7,250.50"),
        ]
        totals = await normalize_estimate_totals(pages)

        assert totals.net_claim == 7250.5
        assert [(s.field, s.page_number) for s in totals.sources] == [("netClaim", 4)]

    @pytest.mark.asyncio
    async def test_plain_number_keeps_all_digits(self):
        totals = await normalize_estimate_totals([PageText(page_number=1, raw_text="RCV 1000")])
        assert totals.rcv == 1000.0

    @pytest.mark.asyncio
    async def test_first_match_wins_by_page_number(self):
        pages = [
            PageText(page_number=2, raw_text="RCV $2,000.00"),
            PageText(page_number=1, raw_text="RCV $1,000.00"),
        ]
        totals = await normalize_estimate_totals(pages)

        assert totals.rcv == 1000.0
        assert totals.sources[0].page_number == 1

    @pytest.mark.asyncio
    async def test_invalid_calendar_date_is_ignored(self):
        pages = [PageText(page_number=1, raw_text="Date Completed: 13/45/2024")]
        totals = await normalize_estimate_totals(pages)
        assert totals.estimate_completed_at is None

    @pytest.mark.asyncio
    async def test_idempotent(self, complete_estimate_pages):
        normalizer = EstimateNormalizer()
        first = await normalizer.normalize(complete_estimate_pages)
        second = await normalizer.normalize(complete_estimate_pages)
        assert first == second

    @pytest.mark.asyncio
    async def test_column_header_does_not_read_next_row(self):
        pages = [
            PageText(
                page_number=1,
                raw_text=(
                    "DESCRIPTION QUANTITY UNIT PRICE TAX RCV DEPREC. ACV\n"
                    "1. Remove 3 tab - 25 yr. - comp. shingle roofing 24.67 SQ 52.11\n"
                ),
            )
        ]
        totals = await normalize_estimate_totals(pages)

        assert totals.rcv is None
        assert totals.acv is None
        assert totals.sources == []

    @pytest.mark.parametrize(
        "lines,expected",
        [
            (["RCV $5,000"], 0.2),
            (["RCV $5,000", "ACV $4,000"], 0.4),
            (["RCV $5,000", "ACV $4,000", "Net Claim: $3,500"], 0.6),
            (["RCV $5,000", "Price List: NYNY8X_JAN24", "Date Completed: 01/15/2024"], 0.6),
            (["ACV $4,000", "Net Claim: $3,500", "Price List: NYNY8X_JAN24", "Date Completed: 01/15/2024"], 0.8),
        ],
    )
    @pytest.mark.asyncio
    async def test_confidence_is_found_over_five(self, lines, expected):
        pages = [PageText(page_number=1, raw_text="\n".join(lines))]
        totals = await normalize_estimate_totals(pages)

        assert totals.found_count() == len(lines)
        assert totals.confidence == expected

    @pytest.mark.asyncio
    async def test_no_pages(self):
        totals = await normalize_estimate_totals([])
        assert totals.found_count() == 0
        assert totals.confidence == 0.0


class TestModelFallback:

    @pytest.mark.asyncio
    async def test_fills_only_missing_fields(self, fake_llm):
        llm = fake_llm(
            responses=[
                json.dumps(
                    {
                        "rcv": 999,
                        "acv": "1,234.50",
                        "netClaim": None,
                        "priceList": "XYZ_2024",
                        "estimateCompletedAt": "2024-02-03",
                    }
                )
            ]
        )
        pages = [PageText(page_number=1, raw_text="RCV $5,000")]

        totals = await EstimateNormalizer(llm_client=llm).normalize(pages)

        assert totals.rcv == 5000.0
        assert totals.acv == 1234.5
        assert totals.net_claim is None
        assert totals.price_list == "XYZ_2024"
        assert totals.estimate_completed_at == "2024-02-03"
        assert totals.confidence == pytest.approx(0.8)
        assert totals.used_llm is True
        assert totals.llm_status == PhaseStatus.COMPLETED

        assert len(llm.calls) == 1
        config = llm.calls[0]["generation_config"]
        assert config["max_output_tokens"] == 300
        assert config["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_prompt_uses_keyword_pages(self, fake_llm):
        llm = fake_llm(responses=["{}"])
        pages = [
            PageText(page_number=1, raw_text="Photo sheet"),
            PageText(page_number=2, raw_text="Line item totals RCV"),
        ]

        await EstimateNormalizer(llm_client=llm).normalize(pages)

        prompt = llm.calls[0]["contents"]
        assert "--- Page 2 ---" in prompt
        assert "--- Page 1 ---" not in prompt

    @pytest.mark.asyncio
    async def test_model_error_keeps_deterministic_values(self, fake_llm):
        llm = fake_llm(responses=[RuntimeError("quota exceeded")])
        pages = [PageText(page_number=1, raw_text="RCV $5,000")]

        totals = await EstimateNormalizer(llm_client=llm).normalize(pages)

        assert totals.rcv == 5000.0
        assert totals.confidence == pytest.approx(0.2)
        assert totals.llm_status == PhaseStatus.FAILED
        assert "quota exceeded" in totals.llm_error

    @pytest.mark.asyncio
    async def test_unparseable_response_is_failure(self, fake_llm):
        llm = fake_llm(responses=["I could not find the totals."])
        pages = [PageText(page_number=1, raw_text="RCV $5,000")]

        totals = await EstimateNormalizer(llm_client=llm).normalize(pages)

        assert totals.llm_status == PhaseStatus.FAILED
        assert totals.used_llm is False

    @pytest.mark.asyncio
    async def test_no_client_skips(self):
        totals = await normalize_estimate_totals([PageText(page_number=1, raw_text="RCV $5,000")])

        assert totals.llm_status == PhaseStatus.SKIPPED
        assert totals.used_llm is False


def test_payload_uses_camel_case_keys():
    normalizer = EstimateNormalizer()
    totals = normalizer.extract_deterministic(
        [PageText(page_number=1, raw_text="Net Claim $100.00")]
    )

    payload = totals.to_payload()

    assert payload["netClaim"] == 100.0
    assert payload["usedLLM"] is False
    assert payload["llmStatus"] == "skipped"
    assert "rcv" not in payload
