"""View-plane camera and primary ray generation.

The camera sits at position and looks along direction. A view plane of
size view_plane_width x view_plane_height is placed view_plane_distance
along direction. Pixel (i, j) of a width x height image maps to plane
coordinates

    x = -i * view_plane_width / width + view_plane_width / 2
    y = -j * view_plane_height / height + view_plane_height / 2

so pixel 0 lands on the +width/2 (+height/2) edge. With
right = normalize(direction x up) the pixel's world position is

    position + direction * view_plane_distance + right * x + up * y

and the primary ray runs from position through that point.

Example:
    >>> camera = Camera(
    ...     position=(0.0, 0.0, 10.0),
    ...     direction=(0.0, 0.0, -1.0),
    ...     up=(0.0, 1.0, 0.0),
    ...     view_plane_distance=1.0,
    ...     view_plane_width=1.0,
    ...     view_plane_height=1.0,
    ... )
    >>> basis = camera_basis(camera)
"""

from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from src.volray.core.ray import Ray, ray_through
from src.volray.core.types import Vector3

vec3 = tm.vec3

# Cross products shorter than this mean direction and up are parallel
PARALLEL_TOLERANCE = 1e-8


@dataclass
class Camera:
    """Camera configuration.

    Attributes:
        position: Eye position in world space.
        direction: Viewing direction.
        up: Up direction; spans the view plane's vertical axis.
        view_plane_distance: Distance from the eye to the view plane,
            measured in units of direction.
        view_plane_width: Horizontal extent of the view plane.
        view_plane_height: Vertical extent of the view plane.
    """

    position: Vector3
    direction: Vector3
    up: Vector3
    view_plane_distance: float = 1.0
    view_plane_width: float = 1.0
    view_plane_height: float = 1.0

    def __post_init__(self) -> None:
        if self.view_plane_width <= 0.0 or self.view_plane_height <= 0.0:
            raise ValueError(
                f"View plane size must be positive, got "
                f"{self.view_plane_width}x{self.view_plane_height}"
            )
        if self.view_plane_distance <= 0.0:
            raise ValueError(f"View plane distance must be positive, got {self.view_plane_distance}")


def image_to_view_plane(n: int, img_size: int, view_plane_size: float) -> float:
    """Map pixel index n to a centered, flipped view-plane coordinate."""
    return -n * view_plane_size / img_size + view_plane_size / 2


@dataclass(frozen=True)
class CameraBasis:
    """Derived vectors used to build primary rays."""

    position: Vector3
    direction: Vector3
    up: Vector3
    right: Vector3


def camera_basis(camera: Camera) -> CameraBasis:
    """Compute right = normalize(direction x up).

    Raises:
        ValueError: If direction and up are parallel.
    """
    direction = np.array(camera.direction, dtype=np.float64)
    up = np.array(camera.up, dtype=np.float64)

    right = np.cross(direction, up)
    norm = np.linalg.norm(right)
    if norm < PARALLEL_TOLERANCE:
        raise ValueError(f"Camera direction {camera.direction} is parallel to up {camera.up}")
    right = right / norm

    return CameraBasis(
        position=tuple(float(c) for c in camera.position),
        direction=tuple(float(c) for c in direction),
        up=tuple(float(c) for c in up),
        right=tuple(float(c) for c in right),
    )


@ti.dataclass
class CameraData:
    """Kernel-side camera state.

    Attributes:
        position: Eye position.
        forward: Viewing direction scaled by the view plane distance.
        right: Unit right vector.
        up: Up vector.
        plane_width: View plane width.
        plane_height: View plane height.
    """

    position: vec3
    forward: vec3
    right: vec3
    up: vec3
    plane_width: ti.f32
    plane_height: ti.f32


def write_camera(target: "ti.StructField", camera: Camera) -> None:
    """Store camera into a 0-d CameraData field."""
    basis = camera_basis(camera)
    distance = camera.view_plane_distance
    target.position[None] = basis.position
    target.forward[None] = tuple(c * distance for c in basis.direction)
    target.right[None] = basis.right
    target.up[None] = basis.up
    target.plane_width[None] = camera.view_plane_width
    target.plane_height[None] = camera.view_plane_height


@ti.func
def view_plane_coordinate(n: ti.i32, img_size: ti.i32, plane_size: ti.f32) -> ti.f32:
    return -ti.cast(n, ti.f32) * plane_size / ti.cast(img_size, ti.f32) + plane_size / 2.0


@ti.func
def primary_ray(cam: CameraData, i: ti.i32, j: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Ray from the eye through pixel (i, j)."""
    x = view_plane_coordinate(i, width, cam.plane_width)
    y = view_plane_coordinate(j, height, cam.plane_height)
    pixel = cam.position + cam.forward + cam.right * x + cam.up * y
    return ray_through(cam.position, pixel)
