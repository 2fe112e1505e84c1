"""Extraction v2 orchestrator.

Runs one job through OCR, totals normalization, the category line-item
extractors, measurement parsing and verification, then persists the merged
payload and mirrors the headline values onto the job.

Model-backed phases report failures on their results. Infrastructure
failures (OCR, database) propagate to the caller.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from roofreview.core.exceptions import OCRExtractionError
from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.database.models import JobStatus
from roofreview.models.extraction import (
    ExtractorResult,
    LineItem,
    PhaseStatus,
    V2Extraction,
)
from roofreview.models.pages import PageText, sort_pages
from roofreview.services.extraction.estimate_normalizer import EstimateNormalizer
from roofreview.services.extraction.extractor_factory import ExtractorFactory
from roofreview.services.extraction.measurement_parser import (
    parse_roof_measurements,
    with_derived_totals,
)
from roofreview.services.extraction.requirements import compute_requirements
from roofreview.services.extraction.roof_material import detect_roof_material
from roofreview.services.extraction.verification import verify_extraction
from roofreview.services.job_store import JobStore
from roofreview.services.ocr.ocr_service import OCRService
from roofreview.services.progress import ProgressNotifier
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

# (stage, progress, message)
CHECKPOINTS = {
    "v2_start": (5, "Starting Extraction v2"),
    "ocr_start": (10, "Running OCR on all pages"),
    "ocr_complete": (40, "OCR complete"),
    "normalize_start": (45, "Normalizing totals and headers"),
    "normalize_complete": (55, "Normalization complete"),
    "line_items_start": (60, "Extracting targeted line item categories"),
    "line_items_complete": (75, "Line item extraction complete"),
    "measurements_start": (78, "Parsing roof measurements"),
    "measurements_complete": (85, "Measurements parsed"),
    "verify_start": (88, "Verifying extracted fields against source"),
    "verify_complete": (92, "Verification complete"),
    "v2_complete": (95, "Extraction v2 pipeline complete"),
}


def job_summary_fields(v2: V2Extraction) -> Dict[str, Any]:
    """Job columns mirrored from a v2 payload. Absent values stay None."""
    measurements = v2.measurements
    return {
        "roof_squares": measurements.squares,
        "eave_length": measurements.eave_length,
        "rake_length": measurements.rake_length,
        "valley_length": measurements.valley_length,
        "ridge_hip_length": measurements.total_ridge_hip,
        "roof_slope": measurements.pitch,
        "roof_stories": measurements.stories,
        "original_estimate": v2.totals.rcv,
        "roof_material": v2.roof_material.material,
    }


class ExtractionV2Orchestrator:
    """Runs the v2 pipeline for a single job.

    Attributes:
        job_id: Job being processed
        job_store: Persistence for pages, extraction records and job fields
        ocr_service: Produces page text for the job's files
        notifier: Receives progress checkpoints
        llm_client: Client for the totals fallback and verification (None skips them)
        extractor_llm_client: Client for the line-item extractors; defaults to llm_client
    """

    def __init__(
        self,
        job_id: str,
        *,
        job_store: JobStore,
        ocr_service: OCRService,
        notifier: ProgressNotifier,
        llm_client: Optional[UnifiedLLMClient] = None,
        extractor_llm_client: Optional[UnifiedLLMClient] = None,
    ):
        self.job_id = str(job_id)
        self.job_store = job_store
        self.ocr_service = ocr_service
        self.notifier = notifier
        self.llm_client = llm_client
        self.extractor_llm_client = extractor_llm_client if extractor_llm_client is not None else llm_client

    async def run(self, file_paths: Sequence[str]) -> V2Extraction:
        """Execute every phase and persist the result.

        Returns:
            V2Extraction: The payload stored under ``v2``
        """
        log_extra = {"job_id": self.job_id, "files": len(file_paths)}
        LOGGER.info("Starting extraction v2 run", extra=log_extra)

        await self.job_store.update_status(self.job_id, JobStatus.PROCESSING)
        self._emit("v2_start")

        self._emit("ocr_start")
        pages = await self._load_pages(file_paths)
        self._emit("ocr_complete")

        self._emit("normalize_start")
        totals = await EstimateNormalizer(llm_client=self.llm_client).normalize(pages)
        self._emit("normalize_complete")

        self._emit("line_items_start")
        extractor_results = await self._extract_line_items(pages)
        self._emit("line_items_complete")

        self._emit("measurements_start")
        measurements = with_derived_totals(parse_roof_measurements(pages))
        roof_material = detect_roof_material(pages)
        requirements = compute_requirements(measurements)
        self._emit("measurements_complete")

        self._emit("verify_start")
        verification = await verify_extraction(totals, pages, llm_client=self.llm_client)
        self._emit("verify_complete")

        line_items: List[LineItem] = []
        for result in extractor_results:
            line_items.extend(result.items)

        phase_status: Dict[str, PhaseStatus] = {"totals_llm": totals.llm_status}
        phase_status.update({result.category.value: result.status for result in extractor_results})
        phase_status["verification"] = verification.status

        v2 = V2Extraction(
            totals=totals,
            line_items=line_items,
            measurements=measurements,
            verification=verification,
            roof_material=roof_material,
            requirements=requirements,
            phase_status=phase_status,
        )

        await self.job_store.save_v2_extraction(self.job_id, v2)
        mirrored = await self.job_store.mirror_job_fields(self.job_id, job_summary_fields(v2))

        await self.job_store.update_status(self.job_id, JobStatus.ANALYSIS_READY)
        self._emit("v2_complete", status=JobStatus.ANALYSIS_READY.value)

        LOGGER.info(
            "Extraction v2 run complete",
            extra={
                **log_extra,
                "pages": len(pages),
                "line_items": len(line_items),
                "mirrored_fields": sorted(mirrored),
                "totals_confidence": totals.confidence,
            },
        )
        return v2

    async def _load_pages(self, file_paths: Sequence[str]) -> List[PageText]:
        """Reuse stored page text when present, otherwise OCR and store it."""
        stored = await self.job_store.get_pages(self.job_id)
        if stored:
            LOGGER.info(
                "Reusing stored page text",
                extra={"job_id": self.job_id, "pages": len(stored)},
            )
            return sort_pages(stored)

        if not file_paths:
            raise OCRExtractionError(f"No stored pages and no files to OCR for job {self.job_id}")

        pages = sort_pages(await self.ocr_service.extract_pages(file_paths))
        await self.job_store.store_pages(self.job_id, pages)
        return pages

    async def _extract_line_items(self, pages: Sequence[PageText]) -> List[ExtractorResult]:
        extractors = ExtractorFactory(self.extractor_llm_client).get_all_extractors()
        results = await asyncio.gather(*(extractor.extract(pages) for extractor in extractors))

        for result in results:
            if result.status == PhaseStatus.FAILED:
                LOGGER.warning(
                    f"{result.category.value} extractor failed: {result.error}",
                    extra={"job_id": self.job_id, "category": result.category.value},
                )
        return list(results)

    def _emit(self, stage: str, status: str = JobStatus.PROCESSING.value) -> None:
        progress, message = CHECKPOINTS[stage]
        self.notifier.emit(self.job_id, stage, progress, message, status=status)
