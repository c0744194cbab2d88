"""Core rendering module.

Components:
    ray: Ray data structure and vector helpers for Taichi kernels
    types: Host-side colors, materials and lights
    intersection: Intersection records shared by all geometry kinds
    renderer: Per-pixel ray casting and Phong shading with hard shadows
"""

from .intersection import (
    GeometryKind,
    HitResult,
    Intersection,
    SurfaceMaterial,
    is_visible_hit,
    no_intersection,
)
from .ray import Ray, make_ray, ray_at, ray_through, reflect_about, safe_normalize, vec3
from .types import COLOR_NONE, DEFAULT_MATERIAL, Color, Light, Material

# Note: renderer is NOT imported here to avoid circular imports.
# Import it directly:
#   from src.volray.core.renderer import RayTracer

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "ray_through",
    "reflect_about",
    "safe_normalize",
    "vec3",
    "Color",
    "COLOR_NONE",
    "Material",
    "DEFAULT_MATERIAL",
    "Light",
    "GeometryKind",
    "HitResult",
    "Intersection",
    "SurfaceMaterial",
    "is_visible_hit",
    "no_intersection",
]
