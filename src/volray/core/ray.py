"""Ray data structure and vector helpers used inside Taichi kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Below this length a vector is treated as zero
NORMALIZE_EPSILON = 1e-12


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Rays built with
            make_ray() or ray_through() carry a normalized direction.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def safe_normalize(v: vec3, fallback: vec3) -> vec3:
    """Normalize v, returning fallback when v has (near) zero length."""
    result = fallback
    len_sq = tm.dot(v, v)
    if len_sq > NORMALIZE_EPSILON:
        result = v / ti.sqrt(len_sq)
    return result


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction, normalizing the direction.

    Args:
        origin: The starting point of the ray.
        direction: Any non-zero direction vector.

    Returns:
        A new Ray instance. A zero direction stays zero so that every
        intersection test reports a miss for it.
    """
    return Ray(origin=origin, direction=safe_normalize(direction, vec3(0.0, 0.0, 0.0)))


@ti.func
def ray_through(origin: vec3, target: vec3) -> Ray:
    """Create a ray starting at origin and heading toward target."""
    return make_ray(origin, target - origin)


@ti.func
def reflect_about(normal: vec3, light_dir: vec3) -> vec3:
    """Mirror light_dir about normal: normal * (2 * (normal . l)) - l.

    Both vectors point away from the surface, so the result also points
    away from it.
    """
    return normal * (2.0 * tm.dot(normal, light_dir)) - light_dir
