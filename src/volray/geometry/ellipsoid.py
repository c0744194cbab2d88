"""Axis-aligned ellipsoid solved in closed form.

The surface is the set of points p with

    ((p - center) / semi_axes) . ((p - center) / semi_axes) = radius^2

where the division is component-wise. A ray is moved into the ellipsoid's
local frame by subtracting the center and dividing origin and direction by
the semi-axes, which turns the test into a ray-sphere quadratic:

    a t^2 + b t + c = 0
    a = d'.d'
    b = 2 (o'.d')
    c = o'.o' - radius^2

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.volray.geometry.ellipsoid import Ellipsoid
    >>> ball = Ellipsoid(center=(0, 0, 0), semi_axes=(1, 1, 1), radius=1.0)
"""

import taichi as ti
import taichi.math as tm

from src.volray.core.intersection import GeometryKind, Intersection, SurfaceMaterial, no_intersection
from src.volray.core.ray import Ray, ray_at, safe_normalize
from src.volray.core.types import DEFAULT_MATERIAL, Color, Material, Vector3
from src.volray.geometry.base import Geometry

vec3 = tm.vec3
vec4 = tm.vec4

# Quadratic coefficient below which the ray direction is considered degenerate
QUADRATIC_EPSILON = 1e-12


class Ellipsoid(Geometry):
    """Host-side description of an ellipsoid.

    Attributes:
        center: World-space center.
        semi_axes: Per-axis semi-axis lengths (all positive).
        radius: Implicit radius; the surface scales with it.
    """

    kind = GeometryKind.ELLIPSOID

    def __init__(
        self,
        center: Vector3,
        semi_axes: Vector3,
        radius: float,
        color: Color = Color(1.0, 1.0, 1.0),
        material: Material = DEFAULT_MATERIAL,
    ) -> None:
        super().__init__(material=material, color=color)
        if any(axis <= 0.0 for axis in semi_axes):
            raise ValueError(f"Semi-axis lengths must be positive, got {tuple(semi_axes)}")
        if radius <= 0.0:
            raise ValueError(f"Radius must be positive, got {radius}")
        self.center = (float(center[0]), float(center[1]), float(center[2]))
        self.semi_axes = (float(semi_axes[0]), float(semi_axes[1]), float(semi_axes[2]))
        self.radius = float(radius)

    def bounds(self) -> tuple[Vector3, Vector3]:
        extent = [axis * self.radius for axis in self.semi_axes]
        low = (self.center[0] - extent[0], self.center[1] - extent[1], self.center[2] - extent[2])
        high = (self.center[0] + extent[0], self.center[1] + extent[1], self.center[2] + extent[2])
        return low, high

    def __repr__(self) -> str:
        return f"Ellipsoid(center={self.center}, semi_axes={self.semi_axes}, radius={self.radius})"


@ti.dataclass
class EllipsoidShape:
    """Kernel-side ellipsoid parameters.

    Attributes:
        center: World-space center.
        semi_axes: Per-axis semi-axis lengths.
        radius: Implicit radius.
    """

    center: vec3
    semi_axes: vec3
    radius: ti.f32


@ti.func
def ellipsoid_normal(shape: EllipsoidShape, point: vec3) -> vec3:
    """Unit gradient of the implicit function, 2 (p - center) / semi_axes^2."""
    local = point - shape.center
    gradient = 2.0 * local / (shape.semi_axes * shape.semi_axes)
    return safe_normalize(gradient, vec3(0.0, 1.0, 0.0))


@ti.func
def hit_ellipsoid(
    ray: Ray,
    shape: EllipsoidShape,
    material: SurfaceMaterial,
    color: vec4,
    t_min: ti.f32,
    t_max: ti.f32,
) -> Intersection:
    """Intersect a ray with an ellipsoid.

    Of the two roots the nearer one is preferred when it lies in
    [t_min, t_max]; otherwise the farther one is used, so a ray starting
    inside the ellipsoid reports its exit point.

    Args:
        ray: The ray to test.
        shape: The ellipsoid.
        material: Shading coefficients to report with the hit.
        color: Surface color to report with the hit.
        t_min: Smallest accepted ray parameter.
        t_max: Largest accepted ray parameter.

    Returns:
        An Intersection with geometry = -1 (the scene fills it in), or the
        NONE sentinel on a miss.
    """
    result = no_intersection()

    scaled_origin = (ray.origin - shape.center) / shape.semi_axes
    scaled_direction = ray.direction / shape.semi_axes

    a = tm.dot(scaled_direction, scaled_direction)
    b = 2.0 * tm.dot(scaled_origin, scaled_direction)
    c = tm.dot(scaled_origin, scaled_origin) - shape.radius * shape.radius

    discriminant = b * b - 4.0 * a * c

    # a == 0 only for a zero direction; treat it as a miss
    if a > QUADRATIC_EPSILON and discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t1 = (-b - sqrt_d) / (2.0 * a)
        t2 = (-b + sqrt_d) / (2.0 * a)

        t = 0.0
        found = 0
        if t_min <= t1 <= t_max:
            t = t1
            found = 1
        elif t_min <= t2 <= t_max:
            t = t2
            found = 1

        if found == 1:
            point = ray_at(ray, t)
            result = Intersection(
                valid=1,
                visible=1,
                kind=int(GeometryKind.ELLIPSOID),
                geometry=-1,
                ray=ray,
                t=t,
                position=point,
                normal=ellipsoid_normal(shape, point),
                material=material,
                color=color,
            )

    return result
