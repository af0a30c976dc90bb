"""
Image URL collection.

Generation inputs arrive as loosely shaped records (API JSON, ORM rows,
partially filled drafts). ``normalize_image_sources`` is the only place
that copes with that looseness; the collector walks the strict result.
"""

from typing import Annotated, Any, Iterable, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

_SCALARS = (str, bytes, int, float, bool)


def _as_url(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _as_records(value: Any) -> List[Any]:
    if not isinstance(value, (list, tuple)):
        return []
    return [
        item
        for item in value
        if item is not None and not isinstance(item, _SCALARS + (list, tuple))
    ]


def _as_record(value: Any) -> Any:
    if value is None or isinstance(value, _SCALARS + (list, tuple)):
        return None
    return value


def unique_urls(urls: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen = {}
    for url in urls:
        if isinstance(url, str) and url.strip() and url not in seen:
            seen[url] = None
    return list(seen)


class SourceModel(BaseModel):
    model_config = ConfigDict(extra="ignore", from_attributes=True)


Url = Annotated[Optional[str], BeforeValidator(_as_url)]


class ImageRef(SourceModel):
    image_url: Url = None


ImageRefs = Annotated[List[ImageRef], BeforeValidator(_as_records)]


class LayoutImageSources(SourceModel):
    name: Url = None
    front_view_image_url: Url = None
    side_view_image_url: Url = None
    top_view_image_url: Url = None
    selected_cameras: ImageRefs = Field(default_factory=list)
    selected_lenses: ImageRefs = Field(default_factory=list)
    selected_lights: ImageRefs = Field(default_factory=list)
    selected_controller: Annotated[Optional[ImageRef], BeforeValidator(_as_record)] = None


class ModuleImageSources(SourceModel):
    name: Url = None
    schematic_image_url: Url = None


class AnnotationImageSources(SourceModel):
    snapshot_url: Url = None


class PreviewImage(SourceModel):
    name: Url = None
    url: Url = None


class ProductAssetImageSources(SourceModel):
    preview_images: Annotated[List[PreviewImage], BeforeValidator(_as_records)] = Field(
        default_factory=list
    )


class HardwareImageSources(SourceModel):
    cameras: ImageRefs = Field(default_factory=list)
    lenses: ImageRefs = Field(default_factory=list)
    lights: ImageRefs = Field(default_factory=list)
    controllers: ImageRefs = Field(default_factory=list)


class ImageSources(SourceModel):
    """Every image-bearing record of one generation run."""

    layouts: Annotated[List[LayoutImageSources], BeforeValidator(_as_records)] = Field(
        default_factory=list
    )
    modules: Annotated[List[ModuleImageSources], BeforeValidator(_as_records)] = Field(
        default_factory=list
    )
    annotations: Annotated[
        List[AnnotationImageSources], BeforeValidator(_as_records)
    ] = Field(default_factory=list)
    product_assets: Annotated[
        List[ProductAssetImageSources], BeforeValidator(_as_records)
    ] = Field(default_factory=list)
    hardware: Annotated[
        Optional[HardwareImageSources], BeforeValidator(_as_record)
    ] = None


def normalize_image_sources(
    layouts: Any = None,
    modules: Any = None,
    annotations: Any = None,
    product_assets: Any = None,
    hardware: Any = None,
) -> ImageSources:
    """Coerce loosely shaped generation inputs into ``ImageSources``."""
    return ImageSources.model_validate(
        {
            "layouts": layouts,
            "modules": modules,
            "annotations": annotations,
            "product_assets": product_assets,
            "hardware": hardware,
        }
    )


def collect_all_image_urls(
    layouts: Any,
    modules: Any,
    annotations: Any = None,
    product_assets: Any = None,
    hardware: Any = None,
) -> List[str]:
    """
    Flat, de-duplicated list of every image URL a generation run needs.

    Order: layout three-views and selected hardware, module schematics,
    annotation snapshots, product previews, then the hardware catalog.
    """
    sources = normalize_image_sources(
        layouts, modules, annotations, product_assets, hardware
    )
    urls: List[Optional[str]] = []

    for layout in sources.layouts:
        urls.extend(
            [
                layout.front_view_image_url,
                layout.side_view_image_url,
                layout.top_view_image_url,
            ]
        )
        for ref in layout.selected_cameras + layout.selected_lenses + layout.selected_lights:
            urls.append(ref.image_url)
        if layout.selected_controller is not None:
            urls.append(layout.selected_controller.image_url)

    urls.extend(module.schematic_image_url for module in sources.modules)
    urls.extend(annotation.snapshot_url for annotation in sources.annotations)

    for asset in sources.product_assets:
        urls.extend(image.url for image in asset.preview_images)

    if sources.hardware is not None:
        catalog = sources.hardware
        for ref in catalog.cameras + catalog.lenses + catalog.lights + catalog.controllers:
            urls.append(ref.image_url)

    return unique_urls(urls)
