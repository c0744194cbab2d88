"""Taichi ray tracer for CT volumes and analytic ellipsoids.

This package renders scenes made of voxel density grids (CT scans) and
axis-aligned ellipsoids with a local Phong illumination model and hard
shadows. Per-ray work runs inside Taichi kernels, one thread per pixel.

Subpackages:
    core: Ray structures, value types, intersection records and the renderer
    geometry: Ellipsoid and CT volume primitives with their hit tests
    materials: Density to color lookup tables
    scene: Scene container, nearest-hit and shadow queries, scene loading
    camera: View-plane camera and primary ray generation
    preview: PNG export
"""

__version__ = "0.1.0"
