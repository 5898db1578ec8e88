"""Rasterization, character conversion and host output."""

from .canvas import Cell, ConvertedFrame
from .converter import ColorMapping, ConversionSettings, convert
from .output import FrameOutput
from .raster import GeneratorFrame, PixelBuffer, rasterize

__all__ = [
    "Cell",
    "ConvertedFrame",
    "ColorMapping",
    "ConversionSettings",
    "convert",
    "FrameOutput",
    "GeneratorFrame",
    "PixelBuffer",
    "rasterize",
]
