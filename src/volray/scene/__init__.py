"""Scene module: geometry container, queries and scene descriptions.

Components:
    scene: Scene holding geometries and lights in Taichi fields, with
        nearest-hit and shadow queries
    config: JSON scene descriptions and a demo scene
"""

from .config import SceneConfig, create_demo_scene, load_scene_file, scene_from_config, sphere_phantom
from .scene import SHADOW_EPSILON, T_MAX, T_MIN, Scene

__all__ = [
    "Scene",
    "T_MIN",
    "T_MAX",
    "SHADOW_EPSILON",
    "SceneConfig",
    "scene_from_config",
    "load_scene_file",
    "create_demo_scene",
    "sphere_phantom",
]
