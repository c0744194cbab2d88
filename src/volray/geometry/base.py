"""Common interface of scene geometries.

Every geometry offers the same capability: given a ray and a parameter
interval [min_dist, max_dist], report the Intersection nearest to the ray
origin inside that interval, or the NONE sentinel. Inside kernels the
capability is a @ti.func per variant (hit_ellipsoid, hit_ct_scan) and the
Scene dispatches on GeometryKind; on the host a Geometry describes what to
upload and exposes its bounding box.

Hit tests never mutate the ray or the geometry data.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from src.volray.core.intersection import GeometryKind
from src.volray.core.types import DEFAULT_MATERIAL, Color, Material, Vector3


class Geometry(ABC):
    """Base class for geometry descriptions held by a Scene.

    Attributes:
        kind: Variant tag used by the scene dispatcher.
        material: Phong coefficients reported with every hit.
        color: Surface color reported with every hit. Volumes take their
            color from a color map instead.
    """

    kind: ClassVar[GeometryKind] = GeometryKind.NONE

    def __init__(self, material: Material = DEFAULT_MATERIAL, color: Color = Color(1.0, 1.0, 1.0)) -> None:
        self.material = material
        self.color = Color(*color)

    @property
    def shadow_offset(self) -> float:
        """Distance a shadow ray starts above a hit point on this surface."""
        return 0.0

    @abstractmethod
    def bounds(self) -> tuple[Vector3, Vector3]:
        """Return the (min corner, max corner) of the world-space bounding box."""
