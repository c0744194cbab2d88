"""Scene container with nearest-hit and shadow queries.

A Scene is built once from a list of geometries and a list of lights and
is read-only afterwards. Its data lives in Taichi fields using a
Structure-of-Arrays layout:

    - ellipsoid centers, semi-axes and radii
    - volume boxes, grid layout and marching parameters
    - one shared u8 field with every volume's voxels back to back
    - one 256-entry RGBA color table per volume
    - per-geometry material coefficients, surface colors and shadow offsets
    - light positions and intensities

Scenes are independent objects, so several can coexist and be rendered
in the same process.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.volray.core.types import Color, Light
    >>> from src.volray.geometry.ellipsoid import Ellipsoid
    >>> from src.volray.scene.scene import Scene
    >>> scene = Scene(
    ...     geometries=[Ellipsoid((0, 0, 0), (1, 1, 1), 1.0, Color(1, 0, 0))],
    ...     lights=[Light(position=(5, 5, 5))],
    ... )
    >>> hit = scene.first_intersection((0, 0, 5), (0, 0, -1))
    >>> hit.t
    4.0
"""

from collections.abc import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from src.volray.core.intersection import (
    GeometryKind,
    HitResult,
    Intersection,
    SurfaceMaterial,
    is_visible_hit,
    no_intersection,
)
from src.volray.core.ray import Ray, make_ray
from src.volray.core.types import Light, Vector3
from src.volray.geometry.base import Geometry
from src.volray.geometry.ct_scan import CtScan, VolumeShape, hit_ct_scan
from src.volray.geometry.ellipsoid import Ellipsoid, EllipsoidShape, hit_ellipsoid
from src.volray.materials.colormap import NUM_DENSITIES

vec3 = tm.vec3

# Default parameter interval for camera and probe rays
T_MIN = 1e-3
T_MAX = 1e10

# Shadow rays skip this much at both ends to avoid self-intersection
SHADOW_EPSILON = 1e-3


@ti.data_oriented
class Scene:
    """Immutable collection of geometries and point lights.

    Attributes:
        geometries: The geometries, in insertion order. Scene indices
            reported in intersections refer to this list.
        lights: The point lights.
    """

    def __init__(self, geometries: Sequence[Geometry], lights: Sequence[Light]) -> None:
        self.geometries: tuple[Geometry, ...] = tuple(geometries)
        self.lights: tuple[Light, ...] = tuple(lights)

        for geometry in self.geometries:
            if not isinstance(geometry, (Ellipsoid, CtScan)):
                raise TypeError(f"Unsupported geometry type: {type(geometry).__name__}")

        ellipsoids = [(g, i) for i, g in enumerate(self.geometries) if isinstance(g, Ellipsoid)]
        volumes = [(g, i) for i, g in enumerate(self.geometries) if isinstance(g, CtScan)]

        # Compile-time loop bounds for the kernels
        self.num_geometries = len(self.geometries)
        self.num_ellipsoids = len(ellipsoids)
        self.num_volumes = len(volumes)
        self.num_lights = len(self.lights)

        # Taichi fields cannot have zero length
        n_geo = max(self.num_geometries, 1)
        n_ell = max(self.num_ellipsoids, 1)
        n_vol = max(self.num_volumes, 1)
        n_light = max(self.num_lights, 1)

        # Geometry index -> (kind, index within kind)
        self.geometry_kinds = ti.field(dtype=ti.i32, shape=n_geo)
        self.geometry_slots = ti.field(dtype=ti.i32, shape=n_geo)

        # Per-geometry shading inputs
        self.material_ambient = ti.Vector.field(3, dtype=ti.f32, shape=n_geo)
        self.material_diffuse = ti.Vector.field(3, dtype=ti.f32, shape=n_geo)
        self.material_specular = ti.Vector.field(3, dtype=ti.f32, shape=n_geo)
        self.material_shininess = ti.field(dtype=ti.f32, shape=n_geo)
        self.surface_colors = ti.Vector.field(4, dtype=ti.f32, shape=n_geo)
        self.shadow_offsets = ti.field(dtype=ti.f32, shape=n_geo)

        # Ellipsoid storage
        self.ellipsoid_centers = ti.Vector.field(3, dtype=ti.f32, shape=n_ell)
        self.ellipsoid_semi_axes = ti.Vector.field(3, dtype=ti.f32, shape=n_ell)
        self.ellipsoid_radii = ti.field(dtype=ti.f32, shape=n_ell)
        self.ellipsoid_geometry = ti.field(dtype=ti.i32, shape=n_ell)

        # Volume storage
        self.volume_v0 = ti.Vector.field(3, dtype=ti.f32, shape=n_vol)
        self.volume_v1 = ti.Vector.field(3, dtype=ti.f32, shape=n_vol)
        self.volume_thickness = ti.Vector.field(3, dtype=ti.f32, shape=n_vol)
        self.volume_scale = ti.field(dtype=ti.f32, shape=n_vol)
        self.volume_resolution = ti.Vector.field(3, dtype=ti.i32, shape=n_vol)
        self.volume_offset = ti.field(dtype=ti.i32, shape=n_vol)
        self.volume_step = ti.field(dtype=ti.f32, shape=n_vol)
        self.volume_mode = ti.field(dtype=ti.i32, shape=n_vol)
        self.volume_geometry = ti.field(dtype=ti.i32, shape=n_vol)
        self.color_tables = ti.Vector.field(4, dtype=ti.f32, shape=(n_vol, NUM_DENSITIES))

        total_voxels = sum(g.metadata.num_voxels for g, _ in volumes)
        self.voxels = ti.field(dtype=ti.u8, shape=max(total_voxels, 1))

        # Light storage
        self.light_positions = ti.Vector.field(3, dtype=ti.f32, shape=n_light)
        self.light_ambient = ti.Vector.field(3, dtype=ti.f32, shape=n_light)
        self.light_diffuse = ti.Vector.field(3, dtype=ti.f32, shape=n_light)
        self.light_specular = ti.Vector.field(3, dtype=ti.f32, shape=n_light)

        # Single-cell outputs for the host probes
        self._probe = Intersection.field(shape=())
        self._probe_lit = ti.field(dtype=ti.i32, shape=())

        self._upload_geometries()
        self._upload_ellipsoids(ellipsoids)
        self._upload_volumes(volumes, total_voxels)
        self._upload_lights()

    # =========================================================================
    # Upload (host side, once)
    # =========================================================================

    def _upload_geometries(self) -> None:
        slot_counters = {GeometryKind.ELLIPSOID: 0, GeometryKind.CT_SCAN: 0}
        for i, geometry in enumerate(self.geometries):
            self.geometry_kinds[i] = int(geometry.kind)
            self.geometry_slots[i] = slot_counters[geometry.kind]
            slot_counters[geometry.kind] += 1

            material = geometry.material
            self.material_ambient[i] = material.ambient
            self.material_diffuse[i] = material.diffuse
            self.material_specular[i] = material.specular
            self.material_shininess[i] = material.shininess
            self.surface_colors[i] = tuple(geometry.color)
            self.shadow_offsets[i] = geometry.shadow_offset

    def _upload_ellipsoids(self, ellipsoids: list[tuple[Ellipsoid, int]]) -> None:
        for slot, (ellipsoid, index) in enumerate(ellipsoids):
            self.ellipsoid_centers[slot] = ellipsoid.center
            self.ellipsoid_semi_axes[slot] = ellipsoid.semi_axes
            self.ellipsoid_radii[slot] = ellipsoid.radius
            self.ellipsoid_geometry[slot] = index

    def _upload_volumes(self, volumes: list[tuple[CtScan, int]], total_voxels: int) -> None:
        if not volumes:
            return

        tables = np.zeros((self.num_volumes, NUM_DENSITIES, 4), dtype=np.float32)
        packed = np.zeros(total_voxels, dtype=np.uint8)
        offset = 0
        for slot, (volume, index) in enumerate(volumes):
            self.volume_v0[slot] = volume.v0
            self.volume_v1[slot] = volume.v1
            self.volume_thickness[slot] = volume.thickness
            self.volume_scale[slot] = volume.scale
            self.volume_resolution[slot] = volume.resolution
            self.volume_offset[slot] = offset
            self.volume_step[slot] = volume.step_size
            self.volume_mode[slot] = int(volume.mode)
            self.volume_geometry[slot] = index
            tables[slot] = volume.color_map.to_table()

            count = volume.metadata.num_voxels
            packed[offset : offset + count] = volume.voxels
            offset += count

        self.color_tables.from_numpy(tables)
        self.voxels.from_numpy(packed)

    def _upload_lights(self) -> None:
        for i, light in enumerate(self.lights):
            self.light_positions[i] = light.position
            self.light_ambient[i] = light.ambient
            self.light_diffuse[i] = light.diffuse
            self.light_specular[i] = light.specular

    # =========================================================================
    # Kernel-side queries
    # =========================================================================

    @ti.func
    def surface_material(self, g: ti.i32) -> SurfaceMaterial:
        return SurfaceMaterial(
            ambient=self.material_ambient[g],
            diffuse=self.material_diffuse[g],
            specular=self.material_specular[g],
            shininess=self.material_shininess[g],
        )

    @ti.func
    def _hit_ellipsoid_slot(self, slot: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> Intersection:
        g = self.ellipsoid_geometry[slot]
        shape = EllipsoidShape(
            center=self.ellipsoid_centers[slot],
            semi_axes=self.ellipsoid_semi_axes[slot],
            radius=self.ellipsoid_radii[slot],
        )
        rec = hit_ellipsoid(ray, shape, self.surface_material(g), self.surface_colors[g], t_min, t_max)
        rec.geometry = g
        return rec

    @ti.func
    def _hit_volume_slot(self, slot: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> Intersection:
        g = self.volume_geometry[slot]
        vol = VolumeShape(
            v0=self.volume_v0[slot],
            v1=self.volume_v1[slot],
            thickness=self.volume_thickness[slot],
            scale=self.volume_scale[slot],
            resolution=self.volume_resolution[slot],
            offset=self.volume_offset[slot],
            step=self.volume_step[slot],
            mode=self.volume_mode[slot],
        )
        rec = hit_ct_scan(ray, vol, self.voxels, self.color_tables, slot, self.surface_material(g), t_min, t_max)
        rec.geometry = g
        return rec

    @ti.func
    def intersect_geometry(self, g: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> Intersection:
        """Dispatch the hit test of geometry g on its kind."""
        result = no_intersection()
        kind = self.geometry_kinds[g]
        slot = self.geometry_slots[g]
        if kind == int(GeometryKind.ELLIPSOID):
            result = self._hit_ellipsoid_slot(slot, ray, t_min, t_max)
        elif kind == int(GeometryKind.CT_SCAN):
            result = self._hit_volume_slot(slot, ray, t_min, t_max)
        if result.valid == 0:
            result = no_intersection()
        return result

    @ti.func
    def find_first_intersection(self, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> Intersection:
        """Nearest valid and visible hit over all geometries, or NONE."""
        best = no_intersection()
        for g in range(self.num_geometries):
            rec = self.intersect_geometry(g, ray, t_min, t_max)
            if is_visible_hit(rec) == 1:
                if is_visible_hit(best) == 0 or rec.t < best.t:
                    best = rec
        return best

    @ti.func
    def shadow_origin(self, hit: Intersection) -> vec3:
        """Start of shadow rays leaving hit, lifted off the surface along the normal."""
        return hit.position + hit.normal * self.shadow_offsets[hit.geometry]

    @ti.func
    def is_lit(self, point: vec3, light: ti.i32) -> ti.i32:
        """1 if nothing visible lies between point and the light."""
        to_light = self.light_positions[light] - point
        distance = tm.length(to_light)
        shadow_ray = make_ray(point, to_light)
        lit = 1
        for g in range(self.num_geometries):
            if lit == 1:
                rec = self.intersect_geometry(g, shadow_ray, SHADOW_EPSILON, distance - SHADOW_EPSILON)
                if is_visible_hit(rec) == 1:
                    lit = 0
        return lit

    # =========================================================================
    # Host probes (one ray per call)
    # =========================================================================

    @ti.kernel
    def _probe_geometry_kernel(self, g: ti.i32, origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32):
        # Wrapping loop keeps the scene loops below it serial
        for _ in range(1):
            self._probe[None] = self.intersect_geometry(g, make_ray(origin, direction), t_min, t_max)

    @ti.kernel
    def _probe_scene_kernel(self, origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32):
        for _ in range(1):
            self._probe[None] = self.find_first_intersection(make_ray(origin, direction), t_min, t_max)

    @ti.kernel
    def _probe_lit_kernel(self, point: vec3, light: ti.i32):
        for _ in range(1):
            self._probe_lit[None] = self.is_lit(point, light)

    @ti.kernel
    def _probe_surface_lit_kernel(self, g: ti.i32, position: vec3, normal: vec3, light: ti.i32):
        for _ in range(1):
            hit = no_intersection()
            hit.geometry = g
            hit.position = position
            hit.normal = normal
            self._probe_lit[None] = self.is_lit(self.shadow_origin(hit), light)

    def _read_probe(self) -> HitResult:
        probe = self._probe
        valid = bool(probe.valid[None])
        position = probe.position[None]
        normal = probe.normal[None]
        color = probe.color[None]
        return HitResult(
            valid=valid,
            visible=bool(probe.visible[None]),
            kind=GeometryKind(int(probe.kind[None])) if valid else GeometryKind.NONE,
            geometry=int(probe.geometry[None]),
            t=float(probe.t[None]),
            position=(float(position[0]), float(position[1]), float(position[2])),
            normal=(float(normal[0]), float(normal[1]), float(normal[2])),
            color=(float(color[0]), float(color[1]), float(color[2]), float(color[3])),
        )

    def intersect(
        self,
        index: int,
        origin: Vector3,
        direction: Vector3,
        min_dist: float = T_MIN,
        max_dist: float = T_MAX,
    ) -> HitResult:
        """Test one ray against geometry number index.

        The direction is normalized before testing, so t is a distance.

        Raises:
            IndexError: If index does not name a geometry of this scene.
        """
        if not 0 <= index < self.num_geometries:
            raise IndexError(f"Geometry index {index} out of range [0, {self.num_geometries})")
        self._probe_geometry_kernel(index, vec3(*origin), vec3(*direction), min_dist, max_dist)
        return self._read_probe()

    def first_intersection(
        self,
        origin: Vector3,
        direction: Vector3,
        min_dist: float = T_MIN,
        max_dist: float = T_MAX,
    ) -> HitResult:
        """Nearest visible hit of one ray against the whole scene."""
        self._probe_scene_kernel(vec3(*origin), vec3(*direction), min_dist, max_dist)
        return self._read_probe()

    def is_point_lit(self, point: Vector3, light_index: int) -> bool:
        """Whether light number light_index reaches point unobstructed.

        Raises:
            IndexError: If light_index does not name a light of this scene.
        """
        if not 0 <= light_index < self.num_lights:
            raise IndexError(f"Light index {light_index} out of range [0, {self.num_lights})")
        self._probe_lit_kernel(vec3(*point), light_index)
        return bool(self._probe_lit[None])

    def is_surface_lit(self, hit: HitResult, light_index: int) -> bool:
        """Whether light number light_index reaches a surface hit.

        The shadow ray starts at hit.position lifted along hit.normal by the
        geometry's shadow offset, as the renderer does.

        Raises:
            ValueError: If hit is not a valid intersection.
            IndexError: If light_index does not name a light of this scene.
        """
        if not hit.valid:
            raise ValueError("Cannot test lighting at a missed intersection")
        if not 0 <= light_index < self.num_lights:
            raise IndexError(f"Light index {light_index} out of range [0, {self.num_lights})")
        self._probe_surface_lit_kernel(hit.geometry, vec3(*hit.position), vec3(*hit.normal), light_index)
        return bool(self._probe_lit[None])

    def __len__(self) -> int:
        return self.num_geometries

    def __repr__(self) -> str:
        return (
            f"Scene(ellipsoids={self.num_ellipsoids}, volumes={self.num_volumes}, "
            f"lights={self.num_lights})"
        )
