"""
Image resolution services: pipeline, batch preloading, URL collection,
bundled assets and accessibility checks.
"""

from .accessibility import (
    AccessibilityChecker,
    AccessibilityReport,
    ImageCheckItem,
    ImageCheckResult,
    ImageKind,
    collect_workstation_checks,
    format_accessibility_report,
)
from .bundled_assets import BundledAssetResolver, HardwareKind, is_relative_hardware_path
from .collector import collect_all_image_urls, normalize_image_sources
from .context import ImageCacheContext
from .payload import fit_payload
from .pipeline import ImageResolutionPipeline
from .preloader import BatchPreloader, PreloadReport

__all__ = [
    "AccessibilityChecker",
    "AccessibilityReport",
    "BatchPreloader",
    "BundledAssetResolver",
    "HardwareKind",
    "ImageCacheContext",
    "ImageCheckItem",
    "ImageCheckResult",
    "ImageKind",
    "ImageResolutionPipeline",
    "PreloadReport",
    "collect_all_image_urls",
    "collect_workstation_checks",
    "fit_payload",
    "format_accessibility_report",
    "is_relative_hardware_path",
    "normalize_image_sources",
]
