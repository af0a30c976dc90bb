"""
Batch Preload Scheduler

Drives the resolution pipeline over a URL list in sequential batches.
URLs inside a batch resolve concurrently; batch N+1 never starts before
batch N has settled.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

import structlog

from ...constants import DEFAULT_BATCH_DELAY_SECONDS, DEFAULT_BATCH_SIZE
from .collector import unique_urls
from .pipeline import ImageResolutionPipeline

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int], Union[None, Awaitable[Any]]]


@dataclass
class PreloadReport:
    """Summary of one preload run."""

    total: int = 0
    batches: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 100.0
        return len(self.succeeded) / self.total * 100


class BatchPreloader:
    """Bounded-concurrency preloading on top of the resolution pipeline."""

    def __init__(
        self,
        pipeline: ImageResolutionPipeline,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay: float = DEFAULT_BATCH_DELAY_SECONDS,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.pipeline = pipeline
        self.batch_size = batch_size
        self.delay = delay
        self.last_report = PreloadReport()

    async def preload(
        self,
        urls: Iterable[Optional[str]],
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        delay: Optional[float] = None,
    ) -> Dict[str, str]:
        """
        Resolve every URL, ``batch_size`` at a time.

        Returns:
            Mapping of URL to payload for successfully resolved URLs only
        """
        results, _ = await self.preload_with_report(
            urls, batch_size=batch_size, on_progress=on_progress, delay=delay
        )
        return results

    async def preload_with_report(
        self,
        urls: Iterable[Optional[str]],
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        delay: Optional[float] = None,
    ) -> Tuple[Dict[str, str], PreloadReport]:
        """
        Resolve every URL and report the outcome of this run.

        Args:
            urls: Image URLs (duplicates and blanks are ignored)
            batch_size: URLs resolved concurrently per batch
            on_progress: ``(loaded, total)`` callback after each batch,
                sync or async
            delay: Pause between batches in seconds

        Returns:
            Successful URL to payload mapping and the run's own report
        """
        batch_size = self.batch_size if batch_size is None else batch_size
        delay = self.delay if delay is None else delay
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        pending = unique_urls(urls)
        total = len(pending)
        report = PreloadReport(total=total)
        results: Dict[str, str] = {}

        if total == 0:
            self.last_report = report
            return results, report

        logger.info("Starting image preload", total=total, batch_size=batch_size)
        start_time = time.time()

        for offset in range(0, total, batch_size):
            batch = pending[offset:offset + batch_size]
            outcomes = await asyncio.gather(
                *(self.pipeline.resolve(url) for url in batch),
                return_exceptions=True,
            )
            report.batches += 1

            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning(
                        "Image preload task failed",
                        url=url,
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
                    report.failed.append(url)
                elif outcome:
                    results[url] = outcome
                    report.succeeded.append(url)
                else:
                    report.failed.append(url)

            loaded = min(offset + batch_size, total)
            if on_progress is not None:
                progress = on_progress(loaded, total)
                if inspect.isawaitable(progress):
                    await progress

            if loaded < total and delay > 0:
                await asyncio.sleep(delay)

        report.elapsed_seconds = time.time() - start_time
        # most recently finished run, informational only
        self.last_report = report

        logger.info(
            "Image preload completed",
            loaded=len(results),
            total=total,
            batches=report.batches,
            elapsed_ms=round(report.elapsed_seconds * 1000, 2),
        )
        if report.failed:
            logger.warning(
                "Some images failed to preload",
                failed_count=len(report.failed),
                failed_urls=report.failed,
            )

        return results, report
