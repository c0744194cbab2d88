"""Unit tests for the renderer.

Tests cover:
- Background fill for empty scenes and missed pixels
- Exact Phong shading values at a known pixel
- Shadowed lights contributing only their ambient term
- Deterministic output and PNG export
"""

import math

import numpy as np
import pytest


def _camera():
    from src.volray.camera.camera import Camera

    return Camera(
        position=(0.0, 0.0, 5.0),
        direction=(0.0, 0.0, -1.0),
        up=(0.0, 1.0, 0.0),
        view_plane_distance=1.0,
        view_plane_width=1.0,
        view_plane_height=1.0,
    )


def _lit_sphere_scene(light_position, occluders=()):
    """Unit sphere at the origin with a diffuse-only material and one light."""
    from src.volray.core.types import Color, Light, Material
    from src.volray.geometry.ellipsoid import Ellipsoid
    from src.volray.scene.scene import Scene

    material = Material(ambient=(0.1, 0.1, 0.1), diffuse=(0.5, 0.5, 0.5), specular=(0.0, 0.0, 0.0), shininess=8.0)
    sphere = Ellipsoid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 1.0, Color(1.0, 0.5, 0.25), material)
    light = Light(position=light_position, ambient=(0.2, 0.2, 0.2), diffuse=(1.0, 1.0, 1.0), specular=(1.0, 1.0, 1.0))
    return Scene([sphere, *occluders], [light])


@pytest.fixture(scope="module")
def head_on_tracer(init_taichi_session):
    """Renderer for the lit sphere with its light straight above the view axis."""
    from src.volray.core.renderer import RayTracer

    return RayTracer(_lit_sphere_scene((0.0, 0.0, 10.0)))


@pytest.fixture(scope="module")
def demo_tracer(init_taichi_session):
    """Renderer and camera for the built-in demo scene."""
    from src.volray.core.renderer import RayTracer
    from src.volray.scene.config import create_demo_scene

    scene, camera = create_demo_scene()
    return RayTracer(scene), camera


class TestBackground:
    """Tests for pixels without a hit."""

    def test_empty_scene_is_background(self):
        from src.volray.core.renderer import BACKGROUND_COLOR, RayTracer
        from src.volray.scene.scene import Scene

        image = RayTracer(Scene([], [])).render(_camera(), 8, 6)
        assert image.shape == (6, 8, 3)
        np.testing.assert_allclose(image, np.broadcast_to(BACKGROUND_COLOR, (6, 8, 3)), atol=1e-6)

    def test_custom_background(self):
        from src.volray.core.renderer import RayTracer
        from src.volray.scene.scene import Scene

        image = RayTracer(Scene([], []), background=(0.0, 0.5, 1.0)).render(_camera(), 2, 2)
        np.testing.assert_allclose(image[1, 1], (0.0, 0.5, 1.0), atol=1e-6)

    def test_corner_misses_sphere(self, head_on_tracer):
        from src.volray.core.renderer import BACKGROUND_COLOR

        image = head_on_tracer.render(_camera(), 4, 4)
        np.testing.assert_allclose(image[0, 0], BACKGROUND_COLOR, atol=1e-6)


class TestShading:
    """Tests for the local illumination model."""

    def test_head_on_light(self, head_on_tracer):
        """Test ambient 0.1 * 0.2 plus diffuse 0.5 * 1 * cos(0)."""
        image = head_on_tracer.render(_camera(), 4, 4)
        np.testing.assert_allclose(image[2, 2], 0.52 * np.array([1.0, 0.5, 0.25]), atol=1e-5)

    def test_oblique_light(self):
        from src.volray.core.renderer import RayTracer

        image = RayTracer(_lit_sphere_scene((0.0, 5.0, 6.0))).render(_camera(), 4, 4)
        expected = (0.02 + 0.5 * math.cos(math.pi / 4)) * np.array([1.0, 0.5, 0.25])
        np.testing.assert_allclose(image[2, 2], expected, atol=1e-5)

    def test_shadowed_light_gives_ambient_only(self):
        from src.volray.core.renderer import RayTracer
        from src.volray.geometry.ellipsoid import Ellipsoid

        occluder = Ellipsoid((0.0, 2.0, 3.0), (1.0, 1.0, 1.0), 0.5)
        scene = _lit_sphere_scene((0.0, 5.0, 6.0), occluders=[occluder])
        image = RayTracer(scene).render(_camera(), 4, 4)
        np.testing.assert_allclose(image[2, 2], 0.02 * np.array([1.0, 0.5, 0.25]), atol=1e-5)

    def test_light_behind_surface(self):
        """Test a light on the far side leaves only the ambient term."""
        from src.volray.core.renderer import RayTracer

        image = RayTracer(_lit_sphere_scene((0.0, 0.0, -10.0))).render(_camera(), 4, 4)
        np.testing.assert_allclose(image[2, 2], 0.02 * np.array([1.0, 0.5, 0.25]), atol=1e-5)

    def test_no_lights_is_black(self):
        from src.volray.core.renderer import RayTracer
        from src.volray.core.types import Color
        from src.volray.geometry.ellipsoid import Ellipsoid
        from src.volray.scene.scene import Scene

        scene = Scene([Ellipsoid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 1.0, Color(1.0, 1.0, 1.0))], [])
        image = RayTracer(scene).render(_camera(), 4, 4)
        np.testing.assert_allclose(image[2, 2], (0.0, 0.0, 0.0), atol=1e-6)

    def test_volume_surface_receives_diffuse_light(self, cube_scene):
        """Test a CT face lit from above and shadowed from below.

        Default material and lights: ambient 0.1 * 0.2 from each light,
        diffuse 0.7 * 0.8 * cos(0) from the light above; the light below is
        blocked by the cube itself.
        """
        from src.volray.camera.camera import Camera
        from src.volray.core.renderer import RayTracer

        camera = Camera(position=(2.0, 2.0, 10.0), direction=(0.0, 0.0, -1.0), up=(0.0, 1.0, 0.0))
        image = RayTracer(cube_scene).render(camera, 2, 2)
        expected = (0.02 + 0.02 + 0.56) * 200 / 255.0
        np.testing.assert_allclose(image[1, 1], (expected, expected, expected), atol=1e-5)


class TestRenderOutput:
    """Tests for render() and render_to_file()."""

    def test_deterministic(self, demo_tracer):
        tracer, camera = demo_tracer
        first = tracer.render(camera, 32, 24)
        second = tracer.render(camera, 32, 24)
        np.testing.assert_array_equal(first, second)

    def test_demo_scene_has_content(self, demo_tracer):
        from src.volray.core.renderer import BACKGROUND_COLOR

        tracer, camera = demo_tracer
        image = tracer.render(camera, 48, 36)
        assert image.shape == (36, 48, 3)
        assert np.all(np.isfinite(image))
        background = np.all(np.abs(image - np.array(BACKGROUND_COLOR)) < 1e-6, axis=2)
        assert not background.all()
        assert background.any()

    def test_resizing_between_renders(self, head_on_tracer):
        assert head_on_tracer.render(_camera(), 4, 4).shape == (4, 4, 3)
        assert head_on_tracer.render(_camera(), 6, 3).shape == (3, 6, 3)

    @pytest.mark.parametrize("width,height", [(0, 4), (4, 0), (-1, 3)])
    def test_invalid_dimensions(self, head_on_tracer, width, height):
        with pytest.raises(ValueError, match="dimensions"):
            head_on_tracer.render(_camera(), width, height)

    def test_render_to_file(self, head_on_tracer, tmp_path):
        from PIL import Image

        path = head_on_tracer.render_to_file(_camera(), 10, 7, tmp_path / "sphere.png")
        assert path.exists()
        with Image.open(path) as img:
            assert img.size == (10, 7)
            assert img.mode == "RGB"
