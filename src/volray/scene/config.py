"""Scene descriptions: JSON-compatible configuration and a demo scene.

A scene description is a dictionary with these keys (all optional except
camera):

    camera:     {"position", "direction", "up", "view_plane_distance",
                 "view_plane_width", "view_plane_height"}
    lights:     [{"position", "ambient", "diffuse", "specular"}, ...]
    ellipsoids: [{"center", "semi_axes", "radius", "color", "material"}, ...]
    ct_scans:   [{"dat", "raw", "position", "scale", "mode",
                  "color_map", "material"}, ...]

Materials are {"ambient", "diffuse", "specular", "shininess"}. A CT color
map is either a list of [low, high, [r, g, b, a]] bands or
{"grayscale": threshold}. CT file paths are resolved relative to the
directory of the scene file.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.volray.scene.config import load_scene_file
    >>> scene, camera = load_scene_file("examples/scenes/ellipsoids.json")
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from src.volray.camera.camera import Camera
from src.volray.core.types import Color, Light, Material, Vector3
from src.volray.geometry.base import Geometry
from src.volray.geometry.ct_scan import CtScan, CtScanMetadata, VolumeRenderMode
from src.volray.geometry.ellipsoid import Ellipsoid
from src.volray.materials.colormap import ColorMap
from src.volray.scene.scene import Scene


@dataclass
class SceneConfig:
    """Configuration for scene loading.

    Attributes:
        camera: Camera parameters.
        lights: List of light configurations.
        ellipsoids: List of ellipsoid configurations.
        ct_scans: List of CT volume configurations.
    """

    camera: dict[str, Any] = field(default_factory=dict)
    lights: list[dict[str, Any]] = field(default_factory=list)
    ellipsoids: list[dict[str, Any]] = field(default_factory=list)
    ct_scans: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SceneConfig:
        if "camera" not in data:
            raise ValueError("Scene description has no camera")
        return cls(
            camera=data["camera"],
            lights=data.get("lights", []),
            ellipsoids=data.get("ellipsoids", []),
            ct_scans=data.get("ct_scans", []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "camera": self.camera,
            "lights": self.lights,
            "ellipsoids": self.ellipsoids,
            "ct_scans": self.ct_scans,
        }


def _vec3(value: Any, name: str) -> Vector3:
    if len(value) != 3:
        raise ValueError(f"{name} must have 3 components, got {value!r}")
    return (float(value[0]), float(value[1]), float(value[2]))


def _color(value: Any) -> Color:
    if len(value) not in (3, 4):
        raise ValueError(f"Color must have 3 or 4 components, got {value!r}")
    return Color(*(float(c) for c in value))


def _material(data: dict[str, Any] | None) -> Material:
    if not data:
        return Material()
    defaults = Material()
    return Material(
        ambient=_vec3(data.get("ambient", defaults.ambient), "ambient"),
        diffuse=_vec3(data.get("diffuse", defaults.diffuse), "diffuse"),
        specular=_vec3(data.get("specular", defaults.specular), "specular"),
        shininess=float(data.get("shininess", defaults.shininess)),
    )


def _color_map(data: Any) -> ColorMap:
    if data is None:
        return ColorMap.grayscale()
    if isinstance(data, dict):
        if "grayscale" in data:
            return ColorMap.grayscale(int(data["grayscale"]))
        raise ValueError(f"Unknown color map description: {data!r}")
    return ColorMap.from_bands((int(low), int(high), _color(color)) for low, high, color in data)


def _camera(data: dict[str, Any]) -> Camera:
    return Camera(
        position=_vec3(data["position"], "camera position"),
        direction=_vec3(data["direction"], "camera direction"),
        up=_vec3(data["up"], "camera up"),
        view_plane_distance=float(data.get("view_plane_distance", 1.0)),
        view_plane_width=float(data.get("view_plane_width", 1.0)),
        view_plane_height=float(data.get("view_plane_height", 1.0)),
    )


def scene_from_config(config: SceneConfig, base_dir: str | Path = ".") -> tuple[Scene, Camera]:
    """Build a Scene and Camera from a SceneConfig.

    Raises:
        ValueError: If the configuration contains invalid data.
        VolumeDataError: If a CT volume cannot be loaded.
    """
    base = Path(base_dir)
    geometries: list[Geometry] = []

    for ell in config.ellipsoids:
        geometries.append(
            Ellipsoid(
                center=_vec3(ell.get("center", [0, 0, 0]), "center"),
                semi_axes=_vec3(ell.get("semi_axes", [1, 1, 1]), "semi_axes"),
                radius=float(ell.get("radius", 1.0)),
                color=_color(ell.get("color", [1, 1, 1, 1])),
                material=_material(ell.get("material")),
            )
        )

    for ct in config.ct_scans:
        mode_name = str(ct.get("mode", "isosurface")).upper()
        if mode_name not in VolumeRenderMode.__members__:
            raise ValueError(f"Unknown volume render mode: {ct.get('mode')}")
        geometries.append(
            CtScan.from_files(
                base / ct["dat"],
                base / ct["raw"],
                position=_vec3(ct.get("position", [0, 0, 0]), "position"),
                scale=float(ct.get("scale", 1.0)),
                color_map=_color_map(ct.get("color_map")),
                mode=VolumeRenderMode[mode_name],
                material=_material(ct.get("material")),
            )
        )

    lights = [
        Light(
            position=_vec3(light["position"], "light position"),
            ambient=_vec3(light.get("ambient", [0.2, 0.2, 0.2]), "ambient"),
            diffuse=_vec3(light.get("diffuse", [0.8, 0.8, 0.8]), "diffuse"),
            specular=_vec3(light.get("specular", [1.0, 1.0, 1.0]), "specular"),
        )
        for light in config.lights
    ]

    return Scene(geometries, lights), _camera(config.camera)


def load_scene_file(path: str | Path) -> tuple[Scene, Camera]:
    """Load a JSON scene description from disk."""
    path = Path(path)
    with open(path) as f:
        data = json.load(f)
    return scene_from_config(SceneConfig.from_dict(data), base_dir=path.parent)


# =============================================================================
# Demo scene
# =============================================================================


def sphere_phantom(size: int = 32, density: int = 200) -> CtScan:
    """A cubic CT volume holding a solid ball of constant density.

    The ball is centered in a size^3 grid with radius size / 3; all other
    voxels are 0. Slice thickness is 1 along every axis.
    """
    coords = np.arange(size) - (size - 1) / 2.0
    z, y, x = np.meshgrid(coords, coords, coords, indexing="ij")
    inside = x * x + y * y + z * z <= (size / 3.0) ** 2
    voxels = np.where(inside, density, 0).astype(np.uint8)
    metadata = CtScanMetadata(resolution=(size, size, size), thickness=(1.0, 1.0, 1.0))
    return CtScan(voxels, metadata)


def create_demo_scene(
    include_volume: bool = True,
    mode: VolumeRenderMode = VolumeRenderMode.ISOSURFACE,
) -> tuple[Scene, Camera]:
    """Create a small scene with three ellipsoids, a phantom volume and two lights.

    Args:
        include_volume: Whether to add the CT phantom.
        mode: Hit policy of the phantom.

    Returns:
        A tuple of (Scene, Camera).
    """
    shiny = Material(ambient=(0.1, 0.1, 0.1), diffuse=(0.6, 0.6, 0.6), specular=(0.6, 0.6, 0.6), shininess=64.0)
    matte = Material(ambient=(0.1, 0.1, 0.1), diffuse=(0.8, 0.8, 0.8), specular=(0.1, 0.1, 0.1), shininess=8.0)

    geometries: list[Geometry] = [
        Ellipsoid((-25.0, 0.0, 0.0), (1.0, 1.0, 1.0), 10.0, Color(0.9, 0.2, 0.2), shiny),
        Ellipsoid((25.0, 0.0, 0.0), (1.0, 2.0, 1.0), 7.0, Color(0.2, 0.8, 0.3), shiny),
        Ellipsoid((0.0, -60.0, 0.0), (8.0, 1.0, 8.0), 6.0, Color(0.8, 0.8, 0.8), matte),
    ]
    if include_volume:
        phantom = sphere_phantom()
        volume = CtScan(
            phantom.voxels,
            phantom.metadata,
            position=(-8.0, -8.0, -8.0),
            scale=0.5,
            color_map=ColorMap.from_bands([(1, 255, Color(0.95, 0.85, 0.6, 1.0))]),
            mode=mode,
        )
        geometries.append(volume)

    lights = [
        Light(position=(60.0, 80.0, 100.0), ambient=(0.2, 0.2, 0.2), diffuse=(0.8, 0.8, 0.8), specular=(0.8, 0.8, 0.8)),
        Light(position=(-80.0, 40.0, 60.0), ambient=(0.1, 0.1, 0.1), diffuse=(0.4, 0.4, 0.5), specular=(0.2, 0.2, 0.2)),
    ]

    camera = Camera(
        position=(0.0, 0.0, 150.0),
        direction=(0.0, 0.0, -1.0),
        up=(0.0, 1.0, 0.0),
        view_plane_distance=1.0,
        view_plane_width=1.0,
        view_plane_height=1.0,
    )
    return Scene(geometries, lights), camera
