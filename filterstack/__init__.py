"""
FilterStack - An ordered, composable pixel-transformation pipeline for RGBA images
"""

from .raster import RasterBuffer
from .exceptions import FilterStackError, InvalidParamsError, PipelineError
from .filters import (
    FilterKind,
    FilterInstance,
    FilterStack,
    PipelineOptions,
    PipelineExecutor,
    apply_pipeline,
    trace_pixel,
)

__version__ = "0.1.0"

__all__ = [
    "RasterBuffer",
    "FilterStackError",
    "InvalidParamsError",
    "PipelineError",
    "FilterKind",
    "FilterInstance",
    "FilterStack",
    "PipelineOptions",
    "PipelineExecutor",
    "apply_pipeline",
    "trace_pixel",
]
