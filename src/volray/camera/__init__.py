"""Camera module: view-plane camera and primary rays."""

from .camera import (
    Camera,
    CameraBasis,
    CameraData,
    camera_basis,
    image_to_view_plane,
    primary_ray,
    write_camera,
)

__all__ = [
    "Camera",
    "CameraBasis",
    "CameraData",
    "camera_basis",
    "image_to_view_plane",
    "primary_ray",
    "write_camera",
]
