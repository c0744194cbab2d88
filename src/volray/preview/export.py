"""Image export for rendered images.

Supported formats:
    - PNG (8-bit via Pillow)

Example:
    >>> from src.volray.preview.export import save_png
    >>> image = tracer.render(camera, 640, 480)
    >>> save_png(image, "output.png")
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage


def image_to_uint8(image: npt.NDArray[np.floating], *, gamma: float = 1.0) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to uint8.

    Values are clamped to [0, 1], optionally gamma encoded, then scaled to
    [0, 255] with rounding.

    Args:
        image: Image array of shape (H, W, 3).
        gamma: Gamma exponent; 1.0 leaves values linear.

    Returns:
        Array of shape (H, W, 3) with dtype uint8.

    Raises:
        ValueError: If image is not (H, W, 3) or gamma is not positive.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")
    if gamma <= 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")

    clamped = np.clip(np.nan_to_num(image.astype(np.float64), nan=0.0), 0.0, 1.0)
    if gamma != 1.0:
        clamped = np.power(clamped, 1.0 / gamma)
    return np.rint(clamped * 255.0).astype(np.uint8)


def save_png(image: npt.NDArray[np.floating], filepath: str | Path, *, gamma: float = 1.0) -> None:
    """Save a linear float image as an 8-bit RGB PNG.

    Args:
        image: Image array of shape (H, W, 3), row 0 at the top.
        filepath: Output file path.
        gamma: Gamma exponent passed to image_to_uint8.
    """
    pil_image = PILImage.fromarray(image_to_uint8(image, gamma=gamma))
    pil_image.save(filepath)
