"""
Proportional Layout Calculator

Pure geometry used by document builders to place images without distortion.
All coordinates are in the caller's unit (slides use inches).
"""

import math
from dataclasses import dataclass
from typing import List, Tuple


class DegenerateImageError(ValueError):
    """Raised when an image or container has no usable aspect ratio."""

    def __init__(self, width: float, height: float, subject: str = "image"):
        self.width = width
        self.height = height
        self.subject = subject
        super().__init__(
            f"Cannot compute aspect ratio of {subject} with size {width}x{height}"
        )


@dataclass(frozen=True)
class LayoutRect:
    """Axis-aligned rectangle; a container or a computed placement."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
            if value < 0:
                raise ValueError(f"{name} cannot be negative, got {value}")

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def aspect_ratio(self) -> float:
        if self.width <= 0 or self.height <= 0:
            raise DegenerateImageError(self.width, self.height, subject="container")
        return self.width / self.height


def _valid_dimension(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0


def fit(image_width: float, image_height: float, container: LayoutRect) -> LayoutRect:
    """
    Contain-fit an image inside ``container``.

    The result keeps the image's width:height ratio, touches the container on
    the constraining axis and is centered on the other one.

    Raises:
        DegenerateImageError: image or container has a zero/invalid dimension
    """
    if not (_valid_dimension(image_width) and _valid_dimension(image_height)):
        raise DegenerateImageError(image_width, image_height)

    image_ratio = image_width / image_height
    container_ratio = container.aspect_ratio

    if image_ratio > container_ratio:
        # Wider than the container: width-constrained
        fit_width = container.width
        fit_height = fit_width / image_ratio
    else:
        fit_height = container.height
        fit_width = fit_height * image_ratio

    return LayoutRect(
        x=container.x + (container.width - fit_width) / 2,
        y=container.y + (container.height - fit_height) / 2,
        width=fit_width,
        height=fit_height,
    )


def split_columns(container: LayoutRect, count: int, gap: float) -> List[LayoutRect]:
    """
    Partition ``container`` horizontally into ``count`` equal slots.

    Slots are separated by exactly ``gap``; slot widths plus gaps add up to
    the container width (the last slot absorbs floating point drift).
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    if not math.isfinite(gap) or gap < 0:
        raise ValueError("gap must be a non-negative number")

    slot_width = (container.width - gap * (count - 1)) / count
    if slot_width <= 0:
        raise ValueError(
            f"Container width {container.width} too small for {count} slots "
            f"with gap {gap}"
        )

    slots = []
    for index in range(count):
        x = container.x + index * (slot_width + gap)
        width = slot_width if index < count - 1 else container.right - x
        slots.append(LayoutRect(x=x, y=container.y, width=width, height=container.height))
    return slots


def three_view_layout(
    y: float,
    height: float,
    left: float = 0.5,
    width: float = 9.0,
    gap: float = 0.15,
) -> List[LayoutRect]:
    """Front, side and top view slots in one row."""
    return split_columns(LayoutRect(x=left, y=y, width=width, height=height), 3, gap)


def two_column_layout(
    start_y: float,
    content_height: float,
    left_ratio: float = 0.5,
    left: float = 0.5,
    width: float = 9.0,
    gap: float = 0.2,
) -> Tuple[LayoutRect, LayoutRect]:
    """Left content column and right image column separated by ``gap``."""
    if not 0 < left_ratio < 1:
        raise ValueError("left_ratio must be between 0 and 1 (exclusive)")
    if width - gap <= 0:
        raise ValueError(f"Width {width} too small for gap {gap}")

    left_width = (width - gap) * left_ratio
    right_x = left + left_width + gap
    return (
        LayoutRect(x=left, y=start_y, width=left_width, height=content_height),
        LayoutRect(
            x=right_x,
            y=start_y,
            width=(left + width) - right_x,
            height=content_height,
        ),
    )
