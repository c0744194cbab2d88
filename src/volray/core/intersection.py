"""Intersection records shared by every geometry kind.

A geometry's hit test returns an Intersection. Two flags matter:

    valid: the ray met the surface inside [t_min, t_max]. When 0, every
        other field is meaningless.
    visible: the hit should be used for shading and shadowing. A geometry
        may compute a hit and still mark it invisible (for instance a
        volume that accumulated too little opacity).

Both the nearest-hit search and the shadow test only count hits with
valid and visible both set (see is_visible_hit).
"""

from dataclasses import dataclass
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from src.volray.core.ray import Ray

vec3 = tm.vec3
vec4 = tm.vec4


class GeometryKind(IntEnum):
    """Geometry variants known to the scene dispatcher."""

    NONE = -1
    ELLIPSOID = 0
    CT_SCAN = 1


@ti.dataclass
class SurfaceMaterial:
    """Phong coefficients carried by an Intersection.

    Attributes:
        ambient: RGB ambient reflectance.
        diffuse: RGB diffuse reflectance.
        specular: RGB specular reflectance.
        shininess: Phong exponent.
    """

    ambient: vec3
    diffuse: vec3
    specular: vec3
    shininess: ti.f32


@ti.dataclass
class Intersection:
    """Outcome of testing one ray against one geometry.

    Attributes:
        valid: 1 if a surface point was found in the parameter interval.
        visible: 1 if the hit takes part in shading and shadowing.
        kind: GeometryKind of the geometry that produced the hit.
        geometry: Scene index of that geometry (-1 for the sentinel).
        ray: The ray that was tested.
        t: Ray parameter of the hit.
        position: World-space hit point, ray.origin + t * ray.direction.
        normal: Unit outward surface normal at the hit point.
        material: Shading coefficients at the hit point.
        color: RGBA surface color at the hit point.
    """

    valid: ti.i32
    visible: ti.i32
    kind: ti.i32
    geometry: ti.i32
    ray: Ray
    t: ti.f32
    position: vec3
    normal: vec3
    material: SurfaceMaterial
    color: vec4


@ti.func
def no_intersection() -> Intersection:
    """Return the NONE sentinel (valid = 0)."""
    return Intersection(
        valid=0,
        visible=0,
        kind=int(GeometryKind.NONE),
        geometry=-1,
        ray=Ray(origin=vec3(0.0, 0.0, 0.0), direction=vec3(0.0, 0.0, 0.0)),
        t=0.0,
        position=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        material=SurfaceMaterial(
            ambient=vec3(0.0, 0.0, 0.0),
            diffuse=vec3(0.0, 0.0, 0.0),
            specular=vec3(0.0, 0.0, 0.0),
            shininess=0.0,
        ),
        color=vec4(0.0, 0.0, 0.0, 0.0),
    )


@ti.func
def is_visible_hit(rec: Intersection) -> ti.i32:
    """1 if rec counts as a hit for shading and shadow queries."""
    result = 0
    if rec.valid == 1 and rec.visible == 1:
        result = 1
    return result


@dataclass(frozen=True)
class HitResult:
    """Host-side copy of an Intersection, returned by the scene probes.

    Attributes:
        valid: Whether the ray met the surface.
        visible: Whether the hit counts for shading.
        kind: The geometry variant that produced the hit.
        geometry: Scene index of that geometry, -1 on a miss.
        t: Ray parameter of the hit.
        position: World-space hit point.
        normal: Unit outward normal.
        color: RGBA surface color.
    """

    valid: bool
    visible: bool
    kind: GeometryKind
    geometry: int
    t: float
    position: tuple[float, float, float]
    normal: tuple[float, float, float]
    color: tuple[float, float, float, float]

    @property
    def is_hit(self) -> bool:
        return self.valid and self.visible
