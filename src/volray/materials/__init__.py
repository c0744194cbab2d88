"""Materials module: density color maps for volume rendering."""

from .colormap import NUM_DENSITIES, ColorMap, DensityBand

__all__ = ["ColorMap", "DensityBand", "NUM_DENSITIES"]
