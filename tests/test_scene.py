"""Unit tests for the Scene container.

Tests cover:
- Nearest-hit selection across geometries and insertion orders
- Mixed ellipsoid and volume scenes
- Empty scenes
- Shadow queries with and without occluders
- Argument validation
"""

import pytest


def _sphere(center, radius=1.0, color=(1.0, 1.0, 1.0)):
    from src.volray.core.types import Color
    from src.volray.geometry.ellipsoid import Ellipsoid

    return Ellipsoid(center=center, semi_axes=(1.0, 1.0, 1.0), radius=radius, color=Color(*color))


@pytest.fixture(scope="module")
def sphere_scene(init_taichi_session):
    """Unit sphere at the origin lit from +z (light 0) and -z (light 1)."""
    from src.volray.core.types import Light
    from src.volray.scene.scene import Scene

    lights = [Light(position=(0.0, 0.0, 10.0)), Light(position=(0.0, 0.0, -10.0))]
    return Scene([_sphere((0.0, 0.0, 0.0))], lights)


class TestFirstIntersection:
    """Tests for the nearest visible hit over the whole scene."""

    @pytest.mark.parametrize("near_first", [True, False])
    def test_nearest_geometry_wins(self, near_first):
        from src.volray.scene.scene import Scene

        near = _sphere((0.0, 0.0, 0.0), color=(1.0, 0.0, 0.0))
        far = _sphere((0.0, 0.0, -5.0), color=(0.0, 0.0, 1.0))
        geometries = [near, far] if near_first else [far, near]
        scene = Scene(geometries, [])

        hit = scene.first_intersection((0.0, 0.0, 10.0), (0.0, 0.0, -1.0))
        assert hit.is_hit
        assert hit.t == pytest.approx(9.0, abs=1e-5)
        assert hit.geometry == (0 if near_first else 1)
        assert hit.color == pytest.approx((1.0, 0.0, 0.0, 1.0))

    def test_equal_distance_keeps_first_geometry(self):
        from src.volray.scene.scene import Scene

        scene = Scene([_sphere((0.0, 0.0, 0.0), color=(1.0, 0.0, 0.0)), _sphere((0.0, 0.0, 0.0), color=(0.0, 1.0, 0.0))], [])
        hit = scene.first_intersection((0.0, 0.0, 10.0), (0.0, 0.0, -1.0))
        assert hit.geometry == 0

    def test_ellipsoid_behind_volume(self, solid_cube):
        from src.volray.core.intersection import GeometryKind
        from src.volray.scene.scene import Scene

        scene = Scene([_sphere((2.0, 2.0, -5.0)), solid_cube()], [])
        hit = scene.first_intersection((2.0, 2.0, 10.0), (0.0, 0.0, -1.0))
        assert hit.kind == GeometryKind.CT_SCAN
        assert hit.geometry == 1
        assert hit.t == pytest.approx(6.5, abs=1e-5)

        # From the other side the ellipsoid is nearer
        hit = scene.first_intersection((2.0, 2.0, -20.0), (0.0, 0.0, 1.0))
        assert hit.kind == GeometryKind.ELLIPSOID
        assert hit.geometry == 0
        assert hit.t == pytest.approx(14.0, abs=1e-4)

    def test_empty_scene(self):
        from src.volray.core.intersection import GeometryKind
        from src.volray.scene.scene import Scene

        scene = Scene([], [])
        hit = scene.first_intersection((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert not hit.valid
        assert hit.kind == GeometryKind.NONE
        assert hit.geometry == -1
        assert len(scene) == 0

    def test_miss_everything(self, sphere_scene):
        assert not sphere_scene.first_intersection((5.0, 5.0, 10.0), (0.0, 0.0, -1.0)).is_hit

    def test_distance_limits(self, sphere_scene):
        assert not sphere_scene.first_intersection((0.0, 0.0, 10.0), (0.0, 0.0, -1.0), 0.001, 8.0).valid

    def test_scenes_are_independent(self, sphere_scene):
        from src.volray.scene.scene import Scene

        larger = Scene([_sphere((0.0, 0.0, 0.0), radius=3.0)], [])
        assert sphere_scene.first_intersection((0.0, 0.0, 10.0), (0.0, 0.0, -1.0)).t == pytest.approx(9.0, abs=1e-5)
        assert larger.first_intersection((0.0, 0.0, 10.0), (0.0, 0.0, -1.0)).t == pytest.approx(7.0, abs=1e-5)


class TestShadows:
    """Tests for is_point_lit and is_surface_lit."""

    def test_unobstructed(self, sphere_scene):
        assert sphere_scene.is_point_lit((0.0, 0.0, 2.0), 0)

    def test_point_on_surface_is_not_self_shadowed(self, sphere_scene):
        hit = sphere_scene.first_intersection((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert sphere_scene.is_point_lit(hit.position, 0)
        assert sphere_scene.is_surface_lit(hit, 0)

    def test_occluded(self, sphere_scene):
        assert not sphere_scene.is_point_lit((0.0, 0.0, -2.0), 0)

    def test_each_light_checked_separately(self, sphere_scene):
        assert sphere_scene.is_point_lit((0.0, 0.0, 2.0), 0)
        assert not sphere_scene.is_point_lit((0.0, 0.0, 2.0), 1)

    def test_geometry_beyond_light_does_not_shadow(self):
        from src.volray.core.types import Light
        from src.volray.scene.scene import Scene

        scene = Scene([_sphere((0.0, 0.0, 20.0))], [Light(position=(0.0, 0.0, 10.0))])
        assert scene.is_point_lit((0.0, 0.0, 5.0), 0)

    def test_opaque_volume_shadows(self, cube_scene):
        assert not cube_scene.is_point_lit((2.0, 2.0, -5.0), 0)

    def test_volume_surface_lit_from_open_side(self, cube_scene):
        """Test a hit on the +z face sees the light above it."""
        hit = cube_scene.first_intersection((2.0, 2.0, 10.0), (0.0, 0.0, -1.0))
        assert hit.is_hit
        assert hit.position == pytest.approx((2.0, 2.0, 3.5), abs=1e-5)
        assert cube_scene.is_surface_lit(hit, 0)
        # The hit sample itself lies inside a dense cell
        assert not cube_scene.is_point_lit(hit.position, 0)

    def test_volume_surface_shadowed_by_its_own_body(self, cube_scene):
        """Test a hit on the +z face is dark for a light below the cube."""
        hit = cube_scene.first_intersection((2.0, 2.0, 10.0), (0.0, 0.0, -1.0))
        assert not cube_scene.is_surface_lit(hit, 1)

    def test_curved_volume_surface_lit_from_open_side(self):
        """Test gradient normals lift phantom hits on the lit side clear of the ball."""
        from src.volray.core.types import Light
        from src.volray.scene.config import sphere_phantom
        from src.volray.scene.scene import Scene

        scene = Scene([sphere_phantom(size=16)], [Light(position=(8.0, 30.0, 30.0))])
        for origin in [(8.0, 8.0, 30.0), (8.0, 30.0, 8.0)]:
            direction = tuple(8.0 - o for o in origin)
            hit = scene.first_intersection(origin, direction)
            assert hit.is_hit
            assert scene.is_surface_lit(hit, 0)

    def test_invisible_volume_does_not_shadow(self, solid_cube):
        from src.volray.core.types import Color, Light
        from src.volray.geometry.ct_scan import VolumeRenderMode
        from src.volray.materials.colormap import ColorMap
        from src.volray.scene.scene import Scene

        cmap = ColorMap.from_bands([(1, 255, Color(1.0, 1.0, 1.0, 0.005))])
        faint = solid_cube(color_map=cmap, mode=VolumeRenderMode.COMPOSITE)
        scene = Scene([faint], [Light(position=(2.0, 2.0, 10.0))])
        assert scene.is_point_lit((2.0, 2.0, -5.0), 0)


class TestValidation:
    """Tests for argument checking."""

    def test_bad_geometry_index(self, sphere_scene):
        with pytest.raises(IndexError):
            sphere_scene.intersect(1, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        with pytest.raises(IndexError):
            sphere_scene.intersect(-1, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

    def test_bad_light_index(self, sphere_scene):
        with pytest.raises(IndexError):
            sphere_scene.is_point_lit((0.0, 0.0, 5.0), 2)

    def test_surface_lit_needs_a_hit(self, sphere_scene):
        miss = sphere_scene.first_intersection((5.0, 5.0, 10.0), (0.0, 0.0, -1.0))
        with pytest.raises(ValueError, match="missed"):
            sphere_scene.is_surface_lit(miss, 0)

    def test_unsupported_geometry(self):
        from src.volray.geometry.base import Geometry
        from src.volray.scene.scene import Scene

        class Plane(Geometry):
            def bounds(self):
                return (0.0, 0.0, 0.0), (0.0, 0.0, 0.0)

        with pytest.raises(TypeError, match="Plane"):
            Scene([Plane()], [])

    def test_repr(self, solid_cube):
        from src.volray.core.types import Light
        from src.volray.scene.scene import Scene

        scene = Scene([_sphere((0.0, 0.0, 0.0)), solid_cube()], [Light(position=(1.0, 1.0, 1.0))])
        assert repr(scene) == "Scene(ellipsoids=1, volumes=1, lights=1)"
        assert len(scene) == 2
