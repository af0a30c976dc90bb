"""
Tests for the image accessibility pre-check.
"""

import httpx
import pytest

from vision_image_cache.infrastructure.http import ImageFetcher
from vision_image_cache.services.images.accessibility import (
    AccessibilityChecker,
    AccessibilityReport,
    ImageCheckItem,
    ImageKind,
    collect_workstation_checks,
    format_accessibility_report,
)

ORIGIN = "https://app.example.com"
OK_URL = "https://cdn.example.com/ok.png"


@pytest.fixture
def checker(fetcher):
    return AccessibilityChecker(fetcher, ORIGIN, timeout=1.0, concurrency=2)


class TestCheckImageAccessibility:
    """Test single URL probes."""

    @pytest.mark.asyncio
    async def test_head_success(self, checker, image_server, png_bytes):
        image_server.add_image(OK_URL, png_bytes)

        result = await checker.check_image_accessibility(OK_URL, ImageKind.PRODUCT, "Part")

        assert result.accessible
        assert result.error is None
        assert [request.method for request in image_server.requests] == ["HEAD"]

    @pytest.mark.asyncio
    async def test_http_error(self, checker):
        result = await checker.check_image_accessibility(
            "https://cdn.example.com/missing.png", ImageKind.SCHEMATIC, "M1"
        )

        assert not result.accessible
        assert result.error == "HTTP 404"

    @pytest.mark.asyncio
    async def test_empty_url(self, checker, image_server):
        result = await checker.check_image_accessibility("  ", "three_view", "Line A - front view")

        assert result.error == "Empty URL"
        assert image_server.requests == []

    @pytest.mark.asyncio
    async def test_inline_payload_is_accessible(self, checker, image_server):
        result = await checker.check_image_accessibility(
            "data:image/png;base64,AAAA", ImageKind.ANNOTATION, "Annotation snapshot 1"
        )

        assert result.accessible
        assert image_server.requests == []

    @pytest.mark.asyncio
    async def test_relative_url_is_absolutised(self, checker, image_server, png_bytes):
        image_server.add_image(f"{ORIGIN}/uploads/a.png", png_bytes)

        result = await checker.check_image_accessibility("/uploads/a.png", ImageKind.PRODUCT, "A")

        assert result.accessible
        assert result.url == "/uploads/a.png"

    @pytest.mark.asyncio
    async def test_head_not_allowed_falls_back_to_get(self, png_bytes):
        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(405)
            return httpx.Response(200, content=png_bytes)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            checker = AccessibilityChecker(ImageFetcher(client=client), ORIGIN)
            result = await checker.check_image_accessibility(OK_URL, ImageKind.PRODUCT, "A")

        assert result.accessible

    @pytest.mark.asyncio
    async def test_timeout(self, checker, image_server):
        image_server.add_error(OK_URL, httpx.ReadTimeout("slow"))

        result = await checker.check_image_accessibility(OK_URL, ImageKind.HARDWARE, "Cam")

        assert not result.accessible
        assert result.error == "Timeout"

    @pytest.mark.asyncio
    async def test_connection_error(self, checker, image_server):
        image_server.add_error(OK_URL, httpx.ConnectError("refused"))

        result = await checker.check_image_accessibility(OK_URL, ImageKind.HARDWARE, "Cam")

        assert not result.accessible
        assert "transport error" in result.error


class TestCheckMultipleImages:
    @pytest.mark.asyncio
    async def test_report(self, checker, image_server, png_bytes):
        image_server.add_image(OK_URL, png_bytes)
        items = [
            ImageCheckItem(url=OK_URL, kind=ImageKind.PRODUCT, label="Part"),
            ImageCheckItem(url="https://cdn.example.com/a.png", kind=ImageKind.THREE_VIEW, label="A"),
            ImageCheckItem(url="https://cdn.example.com/b.png", kind=ImageKind.THREE_VIEW, label="B"),
            ImageCheckItem(url="", kind=ImageKind.SCHEMATIC, label="M"),
        ]

        report = await checker.check_multiple_images(items)

        assert report.total_checked == 4
        assert report.accessible == 1
        assert report.failed == 3
        assert report.failed_by_kind == {ImageKind.THREE_VIEW: 2, ImageKind.SCHEMATIC: 1}
        assert [result.label for result in report.results] == ["Part", "A", "B", "M"]

    @pytest.mark.asyncio
    async def test_empty(self, checker):
        report = await checker.check_multiple_images([])

        assert report.total_checked == 0
        assert format_accessibility_report(report) == "All 0 images are accessible"


def test_collect_workstation_checks():
    items = collect_workstation_checks(
        layouts=[
            {
                "name": "Line A",
                "front_view_image_url": "https://cdn.example.com/front.png",
                "top_view_image_url": "https://cdn.example.com/top.png",
            },
            {"side_view_image_url": "https://cdn.example.com/side.png"},
        ],
        modules=[{"name": "Inspection", "schematic_image_url": "https://cdn.example.com/s.png"}],
        annotations=[{"snapshot_url": None}, {"snapshot_url": "https://cdn.example.com/n.png"}],
        product_assets=[{"preview_images": [{"url": "https://cdn.example.com/p.png"}]}],
    )

    assert [(item.kind, item.label) for item in items] == [
        (ImageKind.THREE_VIEW, "Line A - front view"),
        (ImageKind.THREE_VIEW, "Line A - top view"),
        (ImageKind.THREE_VIEW, "Layout 2 - side view"),
        (ImageKind.SCHEMATIC, "Inspection - vision system schematic"),
        (ImageKind.ANNOTATION, "Annotation snapshot 2"),
        (ImageKind.PRODUCT, "Product image 1-1"),
    ]


def test_format_accessibility_report():
    report = AccessibilityReport(
        total_checked=5,
        accessible=2,
        failed=3,
        failed_by_kind={ImageKind.HARDWARE: 1, ImageKind.THREE_VIEW: 2},
    )

    assert format_accessibility_report(report) == (
        "3/5 images are not accessible:\n"
        "  - Layout views: 2\n"
        "  - Hardware images: 1"
    )
