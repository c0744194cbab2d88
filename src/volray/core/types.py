"""Host-side value types: colors, materials and point lights.

These are plain immutable Python objects used to describe a scene. The
scene uploads them into Taichi fields; nothing here runs inside a kernel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

Vector3 = tuple[float, float, float]
RGB = tuple[float, float, float]


class Color(NamedTuple):
    """An RGBA color with linear arithmetic.

    Attributes:
        r, g, b: Color channels, nominally in [0, 1].
        a: Opacity in [0, 1]. 0 means fully transparent.
    """

    r: float
    g: float
    b: float
    a: float = 1.0

    @property
    def rgb(self) -> RGB:
        return (self.r, self.g, self.b)

    @property
    def is_none(self) -> bool:
        """True for a fully transparent color (the "no color" sentinel)."""
        return self.a <= 0.0

    def with_alpha(self, alpha: float) -> Color:
        return Color(self.r, self.g, self.b, alpha)

    def __add__(self, other: object) -> Color:  # type: ignore[override]
        if not isinstance(other, Color):
            return NotImplemented
        return Color(self.r + other.r, self.g + other.g, self.b + other.b, self.a + other.a)

    def __mul__(self, other: object) -> Color:  # type: ignore[override]
        if isinstance(other, Color):
            return Color(self.r * other.r, self.g * other.g, self.b * other.b, self.a * other.a)
        if isinstance(other, (int, float)):
            return Color(self.r * other, self.g * other, self.b * other, self.a * other)
        return NotImplemented

    __rmul__ = __mul__


# Sentinel for "no material here": fully transparent black
COLOR_NONE = Color(0.0, 0.0, 0.0, 0.0)


def _check_rgb(name: str, value: RGB) -> RGB:
    if len(value) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(value)}")
    for i, component in enumerate(value):
        if component < 0.0:
            raise ValueError(f"{name} component {i} = {component} is negative.")
    return (float(value[0]), float(value[1]), float(value[2]))


@dataclass(frozen=True)
class Material:
    """Phong material coefficients.

    Attributes:
        ambient: RGB ambient reflectance.
        diffuse: RGB diffuse reflectance.
        specular: RGB specular reflectance.
        shininess: Phong exponent applied to the specular lobe.
    """

    ambient: RGB = (0.1, 0.1, 0.1)
    diffuse: RGB = (0.7, 0.7, 0.7)
    specular: RGB = (0.3, 0.3, 0.3)
    shininess: float = 32.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "ambient", _check_rgb("ambient", self.ambient))
        object.__setattr__(self, "diffuse", _check_rgb("diffuse", self.diffuse))
        object.__setattr__(self, "specular", _check_rgb("specular", self.specular))
        if self.shininess < 0.0:
            raise ValueError(f"Shininess = {self.shininess} is negative.")


DEFAULT_MATERIAL = Material()


@dataclass(frozen=True)
class Light:
    """A point light with separate ambient, diffuse and specular intensities."""

    position: Vector3
    ambient: RGB = (0.2, 0.2, 0.2)
    diffuse: RGB = (0.8, 0.8, 0.8)
    specular: RGB = (1.0, 1.0, 1.0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ambient", _check_rgb("ambient", self.ambient))
        object.__setattr__(self, "diffuse", _check_rgb("diffuse", self.diffuse))
        object.__setattr__(self, "specular", _check_rgb("specular", self.specular))
