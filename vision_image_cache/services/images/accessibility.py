"""
Image accessibility pre-check.

Probes image URLs before a generation run so unreachable images can be
reported up front, grouped by the kind of image they are.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from ...infrastructure.exceptions import ImageFetchException, ImageFetchTimeoutException
from ...infrastructure.http import ImageFetcher
from .collector import normalize_image_sources
from .payload import is_inline_payload
from .strategies import to_absolute_url

logger = structlog.get_logger()

PROBE_TIMEOUT_SECONDS = 3.0


class ImageKind(str, Enum):
    """Image groups used in accessibility reports."""

    THREE_VIEW = "three_view"
    SCHEMATIC = "schematic"
    HARDWARE = "hardware"
    PRODUCT = "product"
    ANNOTATION = "annotation"


KIND_LABELS = {
    ImageKind.THREE_VIEW: "Layout views",
    ImageKind.SCHEMATIC: "Vision system schematics",
    ImageKind.HARDWARE: "Hardware images",
    ImageKind.PRODUCT: "Product images",
    ImageKind.ANNOTATION: "Annotation snapshots",
}


class ImageCheckItem(BaseModel):
    url: str
    kind: ImageKind
    label: str


class ImageCheckResult(BaseModel):
    url: str
    accessible: bool
    kind: ImageKind
    label: str
    error: Optional[str] = None


class AccessibilityReport(BaseModel):
    total_checked: int = 0
    accessible: int = 0
    failed: int = 0
    results: List[ImageCheckResult] = Field(default_factory=list)
    failed_by_kind: Dict[ImageKind, int] = Field(default_factory=dict)


class AccessibilityChecker:
    """HEAD-first reachability probe with a short GET fallback."""

    def __init__(
        self,
        fetcher: ImageFetcher,
        document_origin: str,
        timeout: float = 5.0,
        concurrency: int = 5,
        probe_timeout: float = PROBE_TIMEOUT_SECONDS,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fetcher = fetcher
        self.document_origin = document_origin
        self.timeout = timeout
        self.concurrency = concurrency
        self.probe_timeout = probe_timeout

    async def check_image_accessibility(
        self,
        url: str,
        kind: ImageKind,
        label: str,
        timeout: Optional[float] = None,
    ) -> ImageCheckResult:
        """
        Check whether a single image URL can be loaded.

        A HEAD request decides when it answers; servers that refuse HEAD
        or drop the connection get a short GET probe instead.
        """
        kind = ImageKind(kind)
        if not url or not url.strip():
            return ImageCheckResult(
                url=url or "", accessible=False, kind=kind, label=label, error="Empty URL"
            )

        if is_inline_payload(url):
            return ImageCheckResult(url=url, accessible=True, kind=kind, label=label)

        absolute_url = to_absolute_url(url, self.document_origin)

        try:
            status = await self.fetcher.head(absolute_url, timeout=timeout or self.timeout)
        except ImageFetchException as head_error:
            return await self._probe(url, absolute_url, kind, label, head_error)

        if status == 405:
            return await self._probe(url, absolute_url, kind, label, None)

        if 200 <= status < 300:
            return ImageCheckResult(url=url, accessible=True, kind=kind, label=label)

        return ImageCheckResult(
            url=url, accessible=False, kind=kind, label=label, error=f"HTTP {status}"
        )

    async def _probe(
        self,
        url: str,
        absolute_url: str,
        kind: ImageKind,
        label: str,
        head_error: Optional[ImageFetchException],
    ) -> ImageCheckResult:
        try:
            status = await self.fetcher.probe(absolute_url, timeout=self.probe_timeout)
        except ImageFetchException as probe_error:
            error = head_error or probe_error
            message = (
                "Timeout"
                if isinstance(error, ImageFetchTimeoutException)
                else error.details.get("reason", error.message)
            )
            return ImageCheckResult(
                url=url, accessible=False, kind=kind, label=label, error=message
            )

        if 200 <= status < 300:
            return ImageCheckResult(url=url, accessible=True, kind=kind, label=label)

        return ImageCheckResult(
            url=url, accessible=False, kind=kind, label=label, error=f"HTTP {status}"
        )

    async def check_multiple_images(
        self, items: List[ImageCheckItem], concurrency: Optional[int] = None
    ) -> AccessibilityReport:
        """Check images ``concurrency`` at a time and aggregate a report."""
        concurrency = concurrency or self.concurrency
        report = AccessibilityReport()

        for offset in range(0, len(items), concurrency):
            batch = items[offset:offset + concurrency]
            report.results.extend(
                await asyncio.gather(
                    *(
                        self.check_image_accessibility(item.url, item.kind, item.label)
                        for item in batch
                    )
                )
            )

        for result in report.results:
            if result.accessible:
                report.accessible += 1
            else:
                report.failed += 1
                report.failed_by_kind[result.kind] = (
                    report.failed_by_kind.get(result.kind, 0) + 1
                )
        report.total_checked = len(report.results)

        if report.failed:
            logger.warning(
                "Inaccessible images detected",
                failed=report.failed,
                total=report.total_checked,
                failed_by_kind={kind.value: count for kind, count in report.failed_by_kind.items()},
            )
        return report


def collect_workstation_checks(
    layouts: Any,
    modules: Any,
    annotations: Any = None,
    product_assets: Any = None,
) -> List[ImageCheckItem]:
    """Labelled check items for layout views, schematics, annotations and products."""
    sources = normalize_image_sources(layouts, modules, annotations, product_assets)
    items: List[ImageCheckItem] = []

    for index, layout in enumerate(sources.layouts):
        name = layout.name or f"Layout {index + 1}"
        for view, url in (
            ("front view", layout.front_view_image_url),
            ("side view", layout.side_view_image_url),
            ("top view", layout.top_view_image_url),
        ):
            if url:
                items.append(
                    ImageCheckItem(url=url, kind=ImageKind.THREE_VIEW, label=f"{name} - {view}")
                )

    for index, module in enumerate(sources.modules):
        if module.schematic_image_url:
            name = module.name or f"Module {index + 1}"
            items.append(
                ImageCheckItem(
                    url=module.schematic_image_url,
                    kind=ImageKind.SCHEMATIC,
                    label=f"{name} - vision system schematic",
                )
            )

    for index, annotation in enumerate(sources.annotations):
        if annotation.snapshot_url:
            items.append(
                ImageCheckItem(
                    url=annotation.snapshot_url,
                    kind=ImageKind.ANNOTATION,
                    label=f"Annotation snapshot {index + 1}",
                )
            )

    for index, asset in enumerate(sources.product_assets):
        for image_index, image in enumerate(asset.preview_images):
            if image.url:
                items.append(
                    ImageCheckItem(
                        url=image.url,
                        kind=ImageKind.PRODUCT,
                        label=image.name or f"Product image {index + 1}-{image_index + 1}",
                    )
                )

    return items


def format_accessibility_report(report: AccessibilityReport) -> str:
    """Human-readable summary of an accessibility report."""
    if report.failed == 0:
        return f"All {report.total_checked} images are accessible"

    lines = [f"{report.failed}/{report.total_checked} images are not accessible:"]
    for kind in ImageKind:
        count = report.failed_by_kind.get(kind)
        if count:
            lines.append(f"  - {KIND_LABELS[kind]}: {count}")
    return "\n".join(lines)
