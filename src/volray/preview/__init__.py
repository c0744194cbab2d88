"""Preview module: export of rendered images."""

from .export import image_to_uint8, save_png

__all__ = ["image_to_uint8", "save_png"]
