"""Whitted-style local illumination renderer.

For each pixel a primary ray is traced into the scene. The nearest visible
hit is shaded with ambient, diffuse and specular terms summed over all
point lights:

    ambient  += material.ambient  * light.ambient                  (always)
    diffuse  += material.diffuse  * light.diffuse  * max(0, n.l)   (if lit)
    specular += material.specular * light.specular
                * max(0, v.r)^shininess                             (if lit)

    pixel = (ambient + diffuse + specular) * surface color

where l points to the light, r = n (2 n.l) - l, and v points from the
surface toward the world origin. A light is blocked when a shadow ray to it
meets any visible hit. Shadow rays start at the hit point lifted along the
normal by the geometry's shadow offset (one cell for volumes, zero for
ellipsoids), since volume hits lie inside the first dense cell. Pixels
whose ray hits nothing get the background color.

Pixels are independent: the render kernel runs one thread per pixel and
each thread writes only its own cell, so the kernel launch itself is the
barrier before the image is read back.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.volray.core.renderer import RayTracer
    >>> from src.volray.scene.config import create_demo_scene
    >>> scene, camera = create_demo_scene()
    >>> image = RayTracer(scene).render(camera, 320, 240)
    >>> image.shape
    (240, 320, 3)
"""

from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.volray.camera.camera import Camera, CameraData, primary_ray, write_camera
from src.volray.core.intersection import Intersection, is_visible_hit
from src.volray.core.ray import reflect_about, safe_normalize
from src.volray.preview.export import save_png
from src.volray.scene.scene import T_MAX, T_MIN, Scene

vec3 = tm.vec3

# Color of pixels whose ray hits nothing
BACKGROUND_COLOR = (0.2, 0.2, 0.2)


@ti.data_oriented
class RayTracer:
    """Renders a Scene through a Camera.

    Attributes:
        scene: The scene to render. It is only read.
        background: RGB color for pixels without a hit.
    """

    def __init__(self, scene: Scene, background: tuple[float, float, float] = BACKGROUND_COLOR) -> None:
        self.scene = scene
        self.background = (float(background[0]), float(background[1]), float(background[2]))

        self._camera = CameraData.field(shape=())
        self._background = ti.Vector.field(3, dtype=ti.f32, shape=())
        self._background[None] = self.background

        # Allocated on first render, reallocated when the size changes
        self._image: ti.MatrixField | None = None
        self._image_size: tuple[int, int] = (0, 0)

    # =========================================================================
    # Shading
    # =========================================================================

    @ti.func
    def shade(self, hit: Intersection) -> vec3:
        """Local illumination at a visible hit."""
        ambient = vec3(0.0, 0.0, 0.0)
        diffuse = vec3(0.0, 0.0, 0.0)
        specular = vec3(0.0, 0.0, 0.0)

        for light in range(self.scene.num_lights):
            ambient += hit.material.ambient * self.scene.light_ambient[light]

            if self.scene.is_lit(self.scene.shadow_origin(hit), light) == 1:
                light_dir = safe_normalize(self.scene.light_positions[light] - hit.position, hit.normal)

                diffuse_factor = ti.max(0.0, tm.dot(hit.normal, light_dir))
                diffuse += hit.material.diffuse * self.scene.light_diffuse[light] * diffuse_factor

                # The viewer is taken to sit at the world origin
                view_dir = safe_normalize(-hit.position, hit.normal)
                reflect_dir = reflect_about(hit.normal, light_dir)
                specular_factor = ti.pow(ti.max(0.0, tm.dot(view_dir, reflect_dir)), hit.material.shininess)
                specular += hit.material.specular * self.scene.light_specular[light] * specular_factor

        surface = vec3(hit.color[0], hit.color[1], hit.color[2])
        return (ambient + diffuse + specular) * surface

    # =========================================================================
    # Rendering
    # =========================================================================

    @ti.kernel
    def _render_kernel(self, image: ti.template(), width: ti.i32, height: ti.i32):
        for i, j in ti.ndrange(width, height):
            ray = primary_ray(self._camera[None], i, j, width, height)
            hit = self.scene.find_first_intersection(ray, T_MIN, T_MAX)
            color = self._background[None]
            if is_visible_hit(hit) == 1:
                color = self.shade(hit)
            image[i, j] = color

    def _ensure_image(self, width: int, height: int) -> ti.MatrixField:
        if self._image is None or self._image_size != (width, height):
            self._image = ti.Vector.field(3, dtype=ti.f32, shape=(width, height))
            self._image_size = (width, height)
        return self._image

    def render(self, camera: Camera, width: int, height: int) -> npt.NDArray[np.float32]:
        """Render one image.

        Args:
            camera: Camera configuration.
            width: Image width in pixels.
            height: Image height in pixels.

        Returns:
            Linear RGB image of shape (height, width, 3). Row 0 is the top
            of the image (pixel row j = 0).

        Raises:
            ValueError: If the size is not positive or the camera is degenerate.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

        write_camera(self._camera, camera)
        image = self._ensure_image(width, height)
        self._render_kernel(image, width, height)

        # Field is indexed [i, j]; images are stored row-major [j, i]
        return np.ascontiguousarray(np.transpose(image.to_numpy(), (1, 0, 2)))

    def render_to_file(self, camera: Camera, width: int, height: int, filepath: str | Path) -> Path:
        """Render one image and write it as a PNG.

        Returns:
            The path written.
        """
        image = self.render(camera, width, height)
        save_png(image, filepath)
        return Path(filepath)
