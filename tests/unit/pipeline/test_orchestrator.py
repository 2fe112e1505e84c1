"""Tests for the extraction v2 orchestrator."""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from roofreview.core.exceptions import OCRExtractionError
from roofreview.database.models import JobStatus
from roofreview.models.extraction import LineItemCategory, PhaseStatus
from roofreview.models.pages import PageText
from roofreview.pipeline.orchestrator import CHECKPOINTS, ExtractionV2Orchestrator

EXPECTED_STAGES = [
    "v2_start",
    "ocr_start",
    "ocr_complete",
    "normalize_start",
    "normalize_complete",
    "line_items_start",
    "line_items_complete",
    "measurements_start",
    "measurements_complete",
    "verify_start",
    "verify_complete",
    "v2_complete",
]


def _ocr_service(pages=None, error=None) -> Mock:
    service = Mock()
    service.extract_pages = AsyncMock(return_value=pages or [], side_effect=error)
    return service


def _orchestrator(job, job_store, notifier, ocr_service, **kwargs) -> ExtractionV2Orchestrator:
    return ExtractionV2Orchestrator(
        str(job.id),
        job_store=job_store,
        ocr_service=ocr_service,
        notifier=notifier,
        **kwargs,
    )


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_three_page_job_without_model(self, job_store, notifier, estimate_pages):
        job = job_store.add_job(["estimate.pdf"])
        ocr = _ocr_service(estimate_pages)

        v2 = await _orchestrator(job, job_store, notifier, ocr).run(["estimate.pdf"])

        record = job_store.extractions[str(job.id)][-1]["v2"]
        assert record["totals"]["rcv"] == 5000
        assert record["measurements"]["eaveLength"] == 100
        assert record["measurements"]["rakeLength"] == 50
        assert record["measurements"]["dripEdgeTotal"] == 150
        assert record["lineItems"] == []
        assert record["phaseStatus"]["verification"] == "skipped"

        assert v2.totals.rcv == 5000
        assert v2.requirements.required_starter_lf == 100
        assert v2.requirements.required_ice_water_sf == pytest.approx(500.0)

    @pytest.mark.asyncio
    async def test_progress_and_status_sequence(self, job_store, notifier, estimate_pages):
        job = job_store.add_job(["estimate.pdf"])

        await _orchestrator(job, job_store, notifier, _ocr_service(estimate_pages)).run(["estimate.pdf"])

        assert notifier.stages == EXPECTED_STAGES
        assert [e.progress for e in notifier.events] == [CHECKPOINTS[s][0] for s in EXPECTED_STAGES]
        assert notifier.events[-1].status == JobStatus.ANALYSIS_READY.value
        assert all(e.status == "PROCESSING" for e in notifier.events[:-1])
        assert job_store.status_history[str(job.id)] == [
            JobStatus.PROCESSING,
            JobStatus.ANALYSIS_READY,
        ]
        assert job.status == JobStatus.ANALYSIS_READY.value

    @pytest.mark.asyncio
    async def test_mirrors_present_values_only(self, job_store, notifier, estimate_pages):
        job = job_store.add_job(["estimate.pdf"], roof_squares=30.0, roof_slope="8/12")

        await _orchestrator(job, job_store, notifier, _ocr_service(estimate_pages)).run(["estimate.pdf"])

        assert job.eave_length == 100
        assert job.rake_length == 50
        assert job.original_estimate == 5000
        assert job.roof_squares == 30.0
        assert job.roof_slope == "8/12"
        assert job.ridge_hip_length is None


class TestPages:

    @pytest.mark.asyncio
    async def test_ocr_pages_are_stored_sorted(self, job_store, notifier, estimate_pages):
        job = job_store.add_job(["estimate.pdf"])
        ocr = _ocr_service(list(reversed(estimate_pages)))

        await _orchestrator(job, job_store, notifier, ocr).run(["estimate.pdf"])

        ocr.extract_pages.assert_awaited_once_with(["estimate.pdf"])
        assert [p.page_number for p in job_store.pages[str(job.id)]] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_stored_pages_are_reused(self, job_store, notifier, estimate_pages):
        job = job_store.add_job(["estimate.pdf"])
        job_store.pages[str(job.id)] = estimate_pages
        ocr = _ocr_service()

        v2 = await _orchestrator(job, job_store, notifier, ocr).run(["estimate.pdf"])

        ocr.extract_pages.assert_not_awaited()
        assert v2.totals.rcv == 5000

    @pytest.mark.asyncio
    async def test_ocr_failure_propagates(self, job_store, notifier):
        job = job_store.add_job(["estimate.pdf"])
        ocr = _ocr_service(error=OCRExtractionError("OCR API down"))

        with pytest.raises(OCRExtractionError):
            await _orchestrator(job, job_store, notifier, ocr).run(["estimate.pdf"])

        assert str(job.id) not in job_store.extractions
        assert job_store.status_history[str(job.id)] == [JobStatus.PROCESSING]
        assert "v2_complete" not in notifier.stages

    @pytest.mark.asyncio
    async def test_no_pages_and_no_files(self, job_store, notifier):
        job = job_store.add_job()

        with pytest.raises(OCRExtractionError):
            await _orchestrator(job, job_store, notifier, _ocr_service()).run([])


class TestPersistence:

    @pytest.mark.asyncio
    async def test_sibling_keys_preserved(self, job_store, notifier, estimate_pages):
        job = job_store.add_job(["estimate.pdf"])
        job_store.add_extraction(job.id, {"legacy": {"summary": "kept"}, "v2": {"stale": True}})

        await _orchestrator(job, job_store, notifier, _ocr_service(estimate_pages)).run(["estimate.pdf"])

        records = job_store.extractions[str(job.id)]
        assert len(records) == 1
        assert records[0]["legacy"] == {"summary": "kept"}
        assert "stale" not in records[0]["v2"]
        assert records[0]["v2"]["totals"]["rcv"] == 5000


class TestModelBackedPhases:

    @pytest.fixture
    def pages(self):
        return [
            PageText(page_number=1, raw_text="Summary for Dwelling\nRCV $5,000"),
            PageText(
                page_number=2,
                raw_text="DESCRIPTION QUANTITY UNIT PRICE\nRFG DRIP Drip edge 50.00 LF 3.00 150.00",
            ),
            PageText(page_number=3, raw_text="Eaves = 100 ft\nRakes = 50 ft"),
        ]

    @staticmethod
    def _handler(contents: str):
        if contents.startswith("Extract ONLY the following fields"):
            return json.dumps({"acv": 4500, "netClaim": 4000})
        if "verify each field" in contents:
            return json.dumps({"verifications": [{"field": "rcv", "confidence": 0.9}], "corrections": {}})
        if "Extract only drip_edge line items" in contents:
            return json.dumps(
                [
                    {
                        "code": "RFG DRIP",
                        "description": "Drip edge",
                        "quantity": {"value": 50, "unit": "LF"},
                        "unitPrice": 3.0,
                        "totalPrice": 150.0,
                        "sourcePages": [2],
                    }
                ]
            )
        if "Extract only ridge_cap line items" in contents:
            raise RuntimeError("ridge cap model error")
        return "[]"

    @pytest.mark.asyncio
    async def test_phase_status_and_line_items(self, job_store, notifier, pages, fake_llm):
        job = job_store.add_job(["estimate.pdf"])
        llm = fake_llm(handler=self._handler)

        v2 = await _orchestrator(job, job_store, notifier, _ocr_service(pages), llm_client=llm).run(
            ["estimate.pdf"]
        )

        assert v2.totals.acv == 4500
        assert v2.totals.net_claim == 4000
        assert v2.totals.used_llm is True
        assert [item.category for item in v2.line_items] == [LineItemCategory.DRIP_EDGE]
        assert v2.verification.verifications[0].field == "rcv"

        assert v2.phase_status["totals_llm"] == PhaseStatus.COMPLETED
        assert v2.phase_status["drip_edge"] == PhaseStatus.COMPLETED
        assert v2.phase_status["ridge_cap"] == PhaseStatus.FAILED
        assert v2.phase_status["verification"] == PhaseStatus.COMPLETED
        assert job.status == JobStatus.ANALYSIS_READY.value

    @pytest.mark.asyncio
    async def test_separate_extractor_client(self, job_store, notifier, pages, fake_llm):
        job = job_store.add_job(["estimate.pdf"])
        llm = fake_llm(handler=self._handler)
        extractor_llm = fake_llm(default="[]")

        v2 = await _orchestrator(
            job,
            job_store,
            notifier,
            _ocr_service(pages),
            llm_client=llm,
            extractor_llm_client=extractor_llm,
        ).run(["estimate.pdf"])

        assert len(extractor_llm.calls) == 5
        assert len(llm.calls) == 2
        assert v2.line_items == []
