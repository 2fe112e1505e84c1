"""Extraction v2 orchestration and the background run queue."""

from roofreview.pipeline.orchestrator import ExtractionV2Orchestrator
from roofreview.pipeline.runner import PipelineRunner, RunHandle, RunState

__all__ = ["ExtractionV2Orchestrator", "PipelineRunner", "RunHandle", "RunState"]
