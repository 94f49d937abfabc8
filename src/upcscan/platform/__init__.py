"""Decode capability implementations."""

from .opencv import DecodedRegion, OpenCVDecodeCapability, decode_frame, draw_overlay, zbar_symbols

__all__ = [
    "DecodedRegion",
    "OpenCVDecodeCapability",
    "decode_frame",
    "draw_overlay",
    "zbar_symbols",
]
