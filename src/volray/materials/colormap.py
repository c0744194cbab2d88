"""Density to color lookup for CT volumes.

A ColorMap is a list of inclusive density bands, each with a color.
Densities outside every band, and density 0, map to COLOR_NONE (fully
transparent). The map is uploaded to Taichi as a 256-entry RGBA table so
the marcher can look colors up by density byte.

Example:
    >>> from src.volray.core.types import Color
    >>> from src.volray.materials.colormap import ColorMap
    >>> cmap = ColorMap.from_bands([(30, 80, Color(0.8, 0.6, 0.5, 0.05)),
    ...                             (81, 255, Color(0.95, 0.95, 0.9, 1.0))])
    >>> cmap.get_color(100)
    Color(r=0.95, g=0.95, b=0.9, a=1.0)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from src.volray.core.types import COLOR_NONE, Color

# Densities are single bytes
NUM_DENSITIES = 256


@dataclass(frozen=True)
class DensityBand:
    """Densities in [low, high] map to color."""

    low: int
    high: int
    color: Color


class ColorMap:
    """Pure function from a density byte to a Color.

    Bands are checked in order; the first band containing the density wins.
    """

    def __init__(self, bands: Iterable[DensityBand] = ()) -> None:
        self.bands: list[DensityBand] = []
        for band in bands:
            if not 0 <= band.low <= band.high < NUM_DENSITIES:
                raise ValueError(
                    f"Invalid density band [{band.low}, {band.high}]; "
                    f"bounds must satisfy 0 <= low <= high < {NUM_DENSITIES}"
                )
            self.bands.append(band)

    @classmethod
    def from_bands(cls, bands: Iterable[tuple[int, int, Color]]) -> ColorMap:
        return cls(DensityBand(low, high, Color(*color)) for low, high, color in bands)

    @classmethod
    def grayscale(cls, threshold: int = 1, alpha: float = 1.0) -> ColorMap:
        """Map densities >= threshold to gray levels proportional to density."""
        bands = [
            DensityBand(d, d, Color(d / 255.0, d / 255.0, d / 255.0, alpha))
            for d in range(max(threshold, 1), NUM_DENSITIES)
        ]
        return cls(bands)

    def get_color(self, density: int) -> Color:
        if density <= 0:
            return COLOR_NONE
        for band in self.bands:
            if band.low <= density <= band.high:
                return band.color
        return COLOR_NONE

    def to_table(self) -> npt.NDArray[np.float32]:
        """Return a (256, 4) float32 RGBA table indexed by density."""
        table = np.zeros((NUM_DENSITIES, 4), dtype=np.float32)
        for density in range(NUM_DENSITIES):
            table[density] = self.get_color(density)
        return table
