"""
Layout Domain Module

Aspect-ratio preserving placement math for document builders.
"""

from .geometry import (
    DegenerateImageError,
    LayoutRect,
    fit,
    split_columns,
    three_view_layout,
    two_column_layout,
)

__all__ = [
    "DegenerateImageError",
    "LayoutRect",
    "fit",
    "split_columns",
    "three_view_layout",
    "two_column_layout",
]
