"""Pytest configuration for volray tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import numpy as np
import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture
def ct_files(tmp_path):
    """Write a 4x3x2 .dat/.raw pair whose voxel values equal their flat index.

    Returns:
        Tuple of (dat_path, raw_path, voxels).
    """
    dat_path = tmp_path / "phantom.dat"
    raw_path = tmp_path / "phantom.raw"
    dat_path.write_text("ObjectFileName: phantom.raw\nResolution:\t4 3 2\nSliceThickness: 0.5\t1.0 2.0\nFormat: UCHAR\n")
    voxels = np.arange(24, dtype=np.uint8)
    raw_path.write_bytes(voxels.tobytes())
    return dat_path, raw_path, voxels


@pytest.fixture
def solid_cube():
    """Factory for a cubic volume of constant density at the origin.

    The box spans [0, size]^3 with unit slice thickness and scale.
    """

    def _make(size=4, density=200, color_map=None, mode=None):
        from src.volray.geometry.ct_scan import CtScan, CtScanMetadata, VolumeRenderMode

        voxels = np.full(size**3, density, dtype=np.uint8)
        metadata = CtScanMetadata(resolution=(size, size, size), thickness=(1.0, 1.0, 1.0))
        return CtScan(
            voxels,
            metadata,
            color_map=color_map,
            mode=mode if mode is not None else VolumeRenderMode.ISOSURFACE,
        )

    return _make


@pytest.fixture(scope="session")
def cube_scene(init_taichi_session):
    """Scene holding one 4^3 cube of density 200 at the origin.

    Shared across tests so the scene's kernels compile once. It has a
    light above the +z face and one below the -z face.
    """
    from src.volray.core.types import Light
    from src.volray.geometry.ct_scan import CtScan, CtScanMetadata
    from src.volray.scene.scene import Scene

    voxels = np.full(4**3, 200, dtype=np.uint8)
    metadata = CtScanMetadata(resolution=(4, 4, 4), thickness=(1.0, 1.0, 1.0))
    lights = [Light(position=(2.0, 2.0, 10.0)), Light(position=(2.0, 2.0, -10.0))]
    return Scene([CtScan(voxels, metadata)], lights)
