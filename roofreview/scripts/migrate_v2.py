"""
Backfill extraction v2 for existing jobs.

Finds jobs whose latest extraction record has no ``v2`` payload and runs the
v2 pipeline against their documents with bounded concurrency.

Usage:
    python -m roofreview.scripts.migrate_v2 [--run] [--concurrency N]

Options:
    --run: Execute the runs (default is a dry run that only lists the jobs)
    --concurrency: Runs in flight at once, clamped to 1..8 (default: 2)
"""

import argparse
import asyncio
import sys
from typing import Callable, Dict, List, Optional, Sequence

from roofreview.core.database import close_database
from roofreview.dependencies import build_orchestrator, get_job_store
from roofreview.pipeline.orchestrator import ExtractionV2Orchestrator
from roofreview.services.job_store import JobStore
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 8


def clamp_concurrency(value: int) -> int:
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, value))


async def migrate(
    job_store: JobStore,
    orchestrator_factory: Callable[[str], ExtractionV2Orchestrator],
    run: bool = False,
    concurrency: int = 2,
) -> Dict[str, List[str]]:
    """Backfill v2 for every job that lacks it.

    Args:
        job_store: Source of jobs, file paths and extraction records
        orchestrator_factory: Builds an orchestrator for a job id
        run: Execute the runs; otherwise only report what would run
        concurrency: Maximum runs in flight, clamped to 1..8

    Returns:
        Dict with the job ids that were ``pending``, ``succeeded``,
        ``failed`` and ``skipped`` (no file paths)
    """
    pending = await job_store.find_jobs_without_v2()
    summary: Dict[str, List[str]] = {"pending": pending, "succeeded": [], "failed": [], "skipped": []}

    LOGGER.info(f"Found {len(pending)} jobs without v2")
    if not run:
        LOGGER.info("Dry run. Pass --run to execute.")
        return summary

    semaphore = asyncio.Semaphore(clamp_concurrency(concurrency))

    async def process(job_id: str) -> None:
        async with semaphore:
            file_paths = await job_store.list_file_paths(job_id)
            if not file_paths:
                summary["skipped"].append(job_id)
                return

            LOGGER.info(f"Running v2 for job {job_id} with {len(file_paths)} files")
            try:
                await orchestrator_factory(job_id).run(file_paths)
            except Exception as e:
                LOGGER.error(f"v2 failed for job {job_id}: {e}", exc_info=True)
                summary["failed"].append(job_id)
                return

            LOGGER.info(f"v2 complete for job {job_id}")
            summary["succeeded"].append(job_id)

    await asyncio.gather(*(process(job_id) for job_id in pending))

    LOGGER.info(
        "Migration complete",
        extra={key: len(value) for key, value in summary.items()},
    )
    return summary


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill extraction v2 for existing jobs")
    parser.add_argument("--run", action="store_true",
                        help="Execute the runs instead of listing the jobs")
    parser.add_argument("--concurrency", type=int, default=2,
                        help="Runs in flight at once, clamped to 1..8 (default: 2)")
    return parser.parse_args(argv)


async def _main(args: argparse.Namespace) -> int:
    try:
        summary = await migrate(
            get_job_store(),
            build_orchestrator,
            run=args.run,
            concurrency=args.concurrency,
        )
    finally:
        await close_database()
    return 1 if summary["failed"] else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    return asyncio.run(_main(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
