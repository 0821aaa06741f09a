"""Multi-placement document codec."""

from .colors import FALLBACK_COLOR, parse_color, resolve_color
from .placements import PlacementDecoder, PlacementEncoder, decode, encode

__all__ = [
    "FALLBACK_COLOR",
    "parse_color",
    "resolve_color",
    "PlacementDecoder",
    "PlacementEncoder",
    "decode",
    "encode",
]
