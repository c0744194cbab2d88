"""Geometry module: ellipsoids and CT volumes.

Components:
    base: Geometry base class shared by all variants
    ellipsoid: Axis-aligned ellipsoid with a closed-form hit test
    ct_scan: Voxel density grid with slab clipping and ray marching

Every variant provides a @ti.func with the same contract:

    rec = hit_<variant>(ray, <shape data>, ..., t_min, t_max)

returning an Intersection inside [t_min, t_max] or the NONE sentinel.
"""

from .base import Geometry
from .ct_scan import (
    CtScan,
    CtScanMetadata,
    VolumeDataError,
    VolumeRenderMode,
    VolumeShape,
    hit_ct_scan,
    parse_metadata,
    read_metadata,
    read_voxels,
)
from .ellipsoid import Ellipsoid, EllipsoidShape, hit_ellipsoid

__all__ = [
    "Geometry",
    "Ellipsoid",
    "EllipsoidShape",
    "hit_ellipsoid",
    "CtScan",
    "CtScanMetadata",
    "VolumeDataError",
    "VolumeRenderMode",
    "VolumeShape",
    "hit_ct_scan",
    "parse_metadata",
    "read_metadata",
    "read_voxels",
]
