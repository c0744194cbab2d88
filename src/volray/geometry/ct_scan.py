"""CT volume geometry: a voxel density grid rendered by ray marching.

A volume is read from two files:

    <name>.dat  Text metadata. Lines are "Key<sep>v1<sep>v2<sep>v3" where
                <sep> is any run of colons, tabs and spaces. The keys
                Resolution (three positive integers) and SliceThickness
                (three positive reals) are required; others are ignored.
    <name>.raw  resolution.x * resolution.y * resolution.z unsigned bytes,
                x varying fastest, then y, then z.

The grid occupies the world-space box [v0, v1] with v0 = position and
v1 = position + resolution * thickness * scale. A ray is first clipped
against that box (slab test), then sampled every step_size along the
clipped interval. Two hit policies exist (VolumeRenderMode):

    ISOSURFACE  The first sample whose density is non-zero and whose color
                map entry is not transparent is an opaque hit.
    COMPOSITE   Samples are blended front to back; the march stops once the
                accumulated opacity passes OPACITY_STOP, otherwise the far
                end of the interval is reported with the partial color.

Normals come from central differences of the density grid, negated so they
point from dense toward empty voxels. The plain difference
value(i + 1) - value(i - 1) points inward; shading and shadow offsets need
the outward direction.

Example:
    >>> from src.volray.geometry.ct_scan import CtScan, VolumeRenderMode
    >>> from src.volray.materials.colormap import ColorMap
    >>> head = CtScan.from_files("head.dat", "head.raw", position=(-50, -50, 0),
    ...                          scale=0.5, color_map=ColorMap.grayscale(40))
"""

import math
import re
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.volray.core.intersection import GeometryKind, Intersection, SurfaceMaterial, no_intersection
from src.volray.core.ray import Ray, ray_at, safe_normalize
from src.volray.core.types import DEFAULT_MATERIAL, Color, Material, Vector3
from src.volray.geometry.base import Geometry
from src.volray.materials.colormap import ColorMap

vec3 = tm.vec3
vec4 = tm.vec4
ivec3 = tm.ivec3

# Fraction of the finest slice spacing used as the marching step
STEP_FRACTION = 0.5

# Direction components below this are treated as parallel to a slab
PARALLEL_EPSILON = 1e-8

# Stand-in for an unbounded slab interval
UNBOUNDED = 1e30

# Compositing: stop once opacity exceeds OPACITY_STOP; a march that ends
# with opacity at or below OPACITY_MIN is reported but not visible
OPACITY_STOP = 0.95
OPACITY_MIN = 0.05

_SEPARATOR = re.compile(r"[:\t ]+")


class VolumeRenderMode(IntEnum):
    """Hit policy used when marching through a volume."""

    ISOSURFACE = 0
    COMPOSITE = 1


class VolumeDataError(ValueError):
    """Raised when CT metadata or voxel data is malformed or incomplete."""


@dataclass(frozen=True)
class CtScanMetadata:
    """Grid layout of a CT volume.

    Attributes:
        resolution: Voxel counts along x, y and z.
        thickness: Physical spacing between slices along x, y and z.
    """

    resolution: tuple[int, int, int]
    thickness: tuple[float, float, float]

    def __post_init__(self) -> None:
        if len(self.resolution) != 3 or any(r <= 0 for r in self.resolution):
            raise VolumeDataError(f"Resolution must be three positive integers, got {self.resolution}")
        if len(self.thickness) != 3 or any(t <= 0.0 for t in self.thickness):
            raise VolumeDataError(f"SliceThickness must be three positive numbers, got {self.thickness}")

    @property
    def num_voxels(self) -> int:
        return self.resolution[0] * self.resolution[1] * self.resolution[2]


def parse_metadata(text: str) -> CtScanMetadata:
    """Parse the contents of a .dat metadata file.

    Raises:
        VolumeDataError: If a required record is missing or malformed.
    """
    resolution: tuple[int, int, int] | None = None
    thickness: tuple[float, float, float] | None = None

    for line in text.splitlines():
        fields = [f for f in _SEPARATOR.split(line.strip()) if f]
        if not fields:
            continue
        key, values = fields[0], fields[1:]
        try:
            if key == "Resolution":
                resolution = (int(values[0]), int(values[1]), int(values[2]))
            elif key == "SliceThickness":
                thickness = (float(values[0]), float(values[1]), float(values[2]))
        except (IndexError, ValueError) as e:
            raise VolumeDataError(f"Malformed {key} record: {line!r}") from e

    if resolution is None:
        raise VolumeDataError("Metadata has no Resolution record")
    if thickness is None:
        raise VolumeDataError("Metadata has no SliceThickness record")
    return CtScanMetadata(resolution=resolution, thickness=thickness)


def read_metadata(path: str | Path) -> CtScanMetadata:
    """Read and parse a .dat metadata file."""
    return parse_metadata(Path(path).read_text())


def read_voxels(path: str | Path, metadata: CtScanMetadata) -> npt.NDArray[np.uint8]:
    """Read the first metadata.num_voxels bytes of a .raw file.

    Raises:
        VolumeDataError: If the file holds fewer bytes than the grid needs.
    """
    expected = metadata.num_voxels
    with open(path, "rb") as f:
        data = f.read(expected)
    if len(data) != expected:
        raise VolumeDataError(f"Failed to read the {expected}-byte raw data (got {len(data)} bytes)")
    return np.frombuffer(data, dtype=np.uint8).copy()


class CtScan(Geometry):
    """Host-side description of a CT volume.

    Attributes:
        metadata: Resolution and slice thickness.
        position: World-space corner of the grid (v0).
        scale: Uniform scale from physical units to world units.
        color_map: Density to color lookup.
        mode: Hit policy used by the marcher.
        voxels: Flat uint8 density buffer, read-only.
    """

    kind = GeometryKind.CT_SCAN

    def __init__(
        self,
        voxels: npt.ArrayLike,
        metadata: CtScanMetadata,
        position: Vector3 = (0.0, 0.0, 0.0),
        scale: float = 1.0,
        color_map: ColorMap | None = None,
        mode: VolumeRenderMode = VolumeRenderMode.ISOSURFACE,
        material: Material = DEFAULT_MATERIAL,
    ) -> None:
        super().__init__(material=material, color=Color(1.0, 1.0, 1.0))
        if scale <= 0.0:
            raise ValueError(f"Scale must be positive, got {scale}")

        data = np.asarray(voxels, dtype=np.uint8)
        if data.ndim == 3 and data.shape != metadata.resolution[::-1]:
            raise VolumeDataError(
                f"Voxel array shape {data.shape} does not match (z, y, x) = {metadata.resolution[::-1]}"
            )
        data = np.ascontiguousarray(data).reshape(-1)
        if data.size != metadata.num_voxels:
            raise VolumeDataError(f"Expected {metadata.num_voxels} voxels, got {data.size}")
        data.setflags(write=False)

        self.voxels = data
        self.metadata = metadata
        self.position = (float(position[0]), float(position[1]), float(position[2]))
        self.scale = float(scale)
        self.color_map = color_map if color_map is not None else ColorMap.grayscale()
        self.mode = VolumeRenderMode(mode)

    @classmethod
    def from_files(
        cls,
        dat_path: str | Path,
        raw_path: str | Path,
        position: Vector3 = (0.0, 0.0, 0.0),
        scale: float = 1.0,
        color_map: ColorMap | None = None,
        mode: VolumeRenderMode = VolumeRenderMode.ISOSURFACE,
        material: Material = DEFAULT_MATERIAL,
    ) -> "CtScan":
        """Build a volume from a .dat/.raw pair.

        Raises:
            VolumeDataError: If either file is malformed or the raw data is short.
            OSError: If a file cannot be opened.
        """
        metadata = read_metadata(dat_path)
        voxels = read_voxels(raw_path, metadata)
        return cls(voxels, metadata, position=position, scale=scale, color_map=color_map, mode=mode, material=material)

    @property
    def resolution(self) -> tuple[int, int, int]:
        return self.metadata.resolution

    @property
    def thickness(self) -> tuple[float, float, float]:
        return self.metadata.thickness

    @property
    def v0(self) -> Vector3:
        return self.position

    @property
    def v1(self) -> Vector3:
        return (
            self.position[0] + self.resolution[0] * self.thickness[0] * self.scale,
            self.position[1] + self.resolution[1] * self.thickness[1] * self.scale,
            self.position[2] + self.resolution[2] * self.thickness[2] * self.scale,
        )

    @property
    def step_size(self) -> float:
        return min(self.thickness) * self.scale * STEP_FRACTION

    @property
    def shadow_offset(self) -> float:
        # Hits lie inside the first dense cell; one cell along the normal clears it
        return max(self.thickness) * self.scale

    def bounds(self) -> tuple[Vector3, Vector3]:
        return self.v0, self.v1

    def voxel_index(self, x: int, y: int, z: int) -> int:
        res_x, res_y, _ = self.resolution
        return z * res_y * res_x + y * res_x + x

    def value(self, x: int, y: int, z: int) -> int:
        """Density at grid cell (x, y, z); 0 outside the grid."""
        res_x, res_y, res_z = self.resolution
        if x < 0 or y < 0 or z < 0 or x >= res_x or y >= res_y or z >= res_z:
            return 0
        return int(self.voxels[self.voxel_index(x, y, z)])

    def grid_coordinates(self, point: Vector3) -> tuple[int, int, int]:
        """Grid cell containing a world-space point (may lie outside the grid)."""
        return (
            math.floor((point[0] - self.position[0]) / self.thickness[0] / self.scale),
            math.floor((point[1] - self.position[1]) / self.thickness[1] / self.scale),
            math.floor((point[2] - self.position[2]) / self.thickness[2] / self.scale),
        )

    def color_at(self, point: Vector3) -> Color:
        return self.color_map.get_color(self.value(*self.grid_coordinates(point)))

    def __repr__(self) -> str:
        return (
            f"CtScan(resolution={self.resolution}, thickness={self.thickness}, "
            f"position={self.position}, scale={self.scale}, mode={self.mode.name})"
        )


# =============================================================================
# Kernel-side marching
# =============================================================================


@ti.dataclass
class VolumeShape:
    """Kernel-side volume parameters.

    Attributes:
        v0: Minimum corner of the world-space box (grid origin).
        v1: Maximum corner of the world-space box.
        thickness: Slice spacing per axis.
        scale: Uniform world scale.
        resolution: Voxel counts per axis.
        offset: Start of this volume's bytes in the shared voxel field.
        step: Marching step along the ray.
        mode: VolumeRenderMode value.
    """

    v0: vec3
    v1: vec3
    thickness: vec3
    scale: ti.f32
    resolution: ivec3
    offset: ti.i32
    step: ti.f32
    mode: ti.i32


@ti.func
def grid_cell(vol: VolumeShape, point: vec3) -> ivec3:
    """Grid cell containing point: floor((p - v0) / thickness / scale)."""
    return ti.cast(ti.floor((point - vol.v0) / vol.thickness / vol.scale), ti.i32)


@ti.func
def voxel_value(voxels: ti.template(), vol: VolumeShape, cell: ivec3) -> ti.i32:
    """Density at cell, or 0 when the cell is outside the grid."""
    value = 0
    res = vol.resolution
    if 0 <= cell[0] < res[0] and 0 <= cell[1] < res[1] and 0 <= cell[2] < res[2]:
        flat = (cell[2] * res[1] + cell[1]) * res[0] + cell[0]
        value = ti.cast(voxels[vol.offset + flat], ti.i32)
    return value


@ti.func
def slab_interval(ray: Ray, vol: VolumeShape, t_min: ti.f32, t_max: ti.f32):
    """Clip a ray against the volume box and [t_min, t_max].

    Returns:
        A tuple (inside, near, far). inside is 0 when the clipped interval
        is empty, in which case near and far are meaningless.
    """
    inside = 1
    near = -UNBOUNDED
    far = UNBOUNDED
    crossing_axes = 0

    for axis in ti.static(range(3)):
        d = ray.direction[axis]
        o = ray.origin[axis]
        lo = vol.v0[axis]
        hi = vol.v1[axis]
        if ti.abs(d) < PARALLEL_EPSILON:
            # Parallel to this slab: the origin must already lie within it
            if o < lo or o > hi:
                inside = 0
        else:
            ta = (lo - o) / d
            tb = (hi - o) / d
            near = ti.max(near, ti.min(ta, tb))
            far = ti.min(far, ti.max(ta, tb))
            crossing_axes += 1

    # A zero direction never leaves its starting point
    if crossing_axes == 0:
        inside = 0

    near = ti.max(near, t_min)
    far = ti.min(far, t_max)
    if near > far:
        inside = 0

    return inside, near, far


@ti.func
def gradient_normal(voxels: ti.template(), vol: VolumeShape, cell: ivec3, fallback: vec3) -> vec3:
    """Outward normal from central differences of the density grid.

    Returns fallback where the gradient vanishes (uniform neighbourhood).
    """
    dx = ivec3(1, 0, 0)
    dy = ivec3(0, 1, 0)
    dz = ivec3(0, 0, 1)
    gradient = vec3(
        ti.cast(voxel_value(voxels, vol, cell + dx) - voxel_value(voxels, vol, cell - dx), ti.f32),
        ti.cast(voxel_value(voxels, vol, cell + dy) - voxel_value(voxels, vol, cell - dy), ti.f32),
        ti.cast(voxel_value(voxels, vol, cell + dz) - voxel_value(voxels, vol, cell - dz), ti.f32),
    )
    # Density grows inward, so the outward normal is the negated gradient
    return safe_normalize(-gradient, fallback)


@ti.func
def _volume_hit(
    ray: Ray,
    t: ti.f32,
    normal: vec3,
    material: SurfaceMaterial,
    color: vec4,
    visible: ti.i32,
) -> Intersection:
    return Intersection(
        valid=1,
        visible=visible,
        kind=int(GeometryKind.CT_SCAN),
        geometry=-1,
        ray=ray,
        t=t,
        position=ray_at(ray, t),
        normal=normal,
        material=material,
        color=color,
    )


@ti.func
def _march_isosurface(
    ray: Ray,
    vol: VolumeShape,
    voxels: ti.template(),
    colors: ti.template(),
    slot: ti.i32,
    material: SurfaceMaterial,
    near: ti.f32,
    far: ti.f32,
) -> Intersection:
    result = no_intersection()
    t = near
    while t <= far:
        cell = grid_cell(vol, ray_at(ray, t))
        density = voxel_value(voxels, vol, cell)
        if density > 0:
            color = colors[slot, density]
            if color[3] > 0.0:
                normal = gradient_normal(voxels, vol, cell, -ray.direction)
                result = _volume_hit(ray, t, normal, material, color, 1)
                break
        t += vol.step
    return result


@ti.func
def _march_composite(
    ray: Ray,
    vol: VolumeShape,
    voxels: ti.template(),
    colors: ti.template(),
    slot: ti.i32,
    material: SurfaceMaterial,
    near: ti.f32,
    far: ti.f32,
) -> Intersection:
    result = no_intersection()
    acc_color = vec3(0.0, 0.0, 0.0)
    acc_alpha = 0.0
    last_cell = ivec3(0, 0, 0)
    sampled = 0
    stopped = 0

    t = near
    while t <= far:
        cell = grid_cell(vol, ray_at(ray, t))
        density = voxel_value(voxels, vol, cell)
        if density > 0:
            sample = colors[slot, density]
            if sample[3] > 0.0:
                sample_rgb = vec3(sample[0], sample[1], sample[2])
                acc_color = acc_alpha * acc_color + (1.0 - acc_alpha) * sample_rgb
                acc_alpha += (1.0 - acc_alpha) * sample[3]
                last_cell = cell
                sampled = 1
                if acc_alpha > OPACITY_STOP:
                    normal = gradient_normal(voxels, vol, cell, -ray.direction)
                    color = vec4(acc_color[0], acc_color[1], acc_color[2], acc_alpha)
                    result = _volume_hit(ray, t, normal, material, color, 1)
                    stopped = 1
                    break
        t += vol.step

    if stopped == 0 and sampled == 1:
        normal = gradient_normal(voxels, vol, last_cell, -ray.direction)
        color = vec4(acc_color[0], acc_color[1], acc_color[2], acc_alpha)
        visible = 0
        if acc_alpha > OPACITY_MIN:
            visible = 1
        result = _volume_hit(ray, far, normal, material, color, visible)

    return result


@ti.func
def hit_ct_scan(
    ray: Ray,
    vol: VolumeShape,
    voxels: ti.template(),
    colors: ti.template(),
    slot: ti.i32,
    material: SurfaceMaterial,
    t_min: ti.f32,
    t_max: ti.f32,
) -> Intersection:
    """Intersect a ray with a CT volume.

    Args:
        ray: The ray to test.
        vol: The volume parameters.
        voxels: Shared u8 field holding every volume's densities.
        colors: (num_volumes, 256) RGBA color tables.
        slot: Row of colors belonging to this volume.
        material: Shading coefficients to report with the hit.
        t_min: Smallest accepted ray parameter.
        t_max: Largest accepted ray parameter.

    Returns:
        An Intersection with geometry = -1 (the scene fills it in), or the
        NONE sentinel when the ray misses the box or finds no material.
    """
    result = no_intersection()
    inside, near, far = slab_interval(ray, vol, t_min, t_max)
    if inside == 1:
        if vol.mode == int(VolumeRenderMode.ISOSURFACE):
            result = _march_isosurface(ray, vol, voxels, colors, slot, material, near, far)
        else:
            result = _march_composite(ray, vol, voxels, colors, slot, material, near, far)
    return result
