"""
Utility functions for waynet.
"""

from waynet.utils.diagnostics import ConversionReport
from waynet.utils.geometry import (
    as_polyline,
    find_vertex_index,
    polyline_length,
    polylines_equal,
)

__all__ = [
    "ConversionReport",
    "as_polyline",
    "find_vertex_index",
    "polyline_length",
    "polylines_equal",
]
