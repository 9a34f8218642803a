"""
Scalar fields over 3D space.

A scalar field maps a position to a signed value; the tessellated surface is
its zero level-set. Fields are pure: the same point always yields the same
value, so the sampler is free to evaluate each lattice corner only once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence
import numpy as np

from implicitmesh.core.errors import ConfigurationError, FieldEvaluationError


@dataclass(frozen=True)
class ScalarField:
    """
    Implicit function R^3 -> R.

    Attributes:
        func: Callable evaluating the field. With ``vectorized=True`` it takes an
            (N, 3) array and returns (N,) values; otherwise it is called once per
            point with a length-3 array and returns a float.
        name: Field identifier used in logs and reports
        vectorized: Whether ``func`` accepts whole point arrays
    """
    func: Callable
    name: str = "field"
    vectorized: bool = False

    def __call__(self, point: Sequence[float]) -> float:
        p = np.asarray(point, dtype=np.float64).reshape(1, 3)
        return float(self.evaluate(p)[0])

    def evaluate(self, points: np.ndarray) -> np.ndarray:
        """Evaluate the field at an (N, 3) array of points."""
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError(f"Points must be Nx3, got shape {pts.shape}")

        try:
            if self.vectorized:
                values = np.asarray(self.func(pts), dtype=np.float64).reshape(-1)
            else:
                values = np.fromiter(
                    (float(self.func(p)) for p in pts), dtype=np.float64, count=len(pts)
                )
        except FieldEvaluationError:
            raise
        except Exception as e:
            raise FieldEvaluationError(f"Field '{self.name}' failed: {e}") from e

        if values.shape != (len(pts),):
            raise FieldEvaluationError(
                f"Field '{self.name}' returned {values.shape[0]} values for {len(pts)} points"
            )
        if not np.all(np.isfinite(values)):
            bad = int(np.sum(~np.isfinite(values)))
            raise FieldEvaluationError(f"Field '{self.name}' produced {bad} non-finite values")
        return values

    def union(self, other: ScalarField) -> ScalarField:
        """Union of two solids (pointwise minimum)."""
        return ScalarField(
            lambda p: np.minimum(self.evaluate(p), other.evaluate(p)),
            name=f"{self.name}_union_{other.name}",
            vectorized=True,
        )

    def intersection(self, other: ScalarField) -> ScalarField:
        """Intersection of two solids (pointwise maximum)."""
        return ScalarField(
            lambda p: np.maximum(self.evaluate(p), other.evaluate(p)),
            name=f"{self.name}_intersect_{other.name}",
            vectorized=True,
        )

    def difference(self, other: ScalarField) -> ScalarField:
        """This solid with ``other`` carved out."""
        return ScalarField(
            lambda p: np.maximum(self.evaluate(p), -other.evaluate(p)),
            name=f"{self.name}_minus_{other.name}",
            vectorized=True,
        )

    def translate(self, offset: Sequence[float]) -> ScalarField:
        """Shift the field so its surface moves by ``offset``."""
        off = np.asarray(offset, dtype=np.float64).reshape(1, 3)
        return ScalarField(
            lambda p: self.evaluate(p - off),
            name=f"{self.name}_translated",
            vectorized=True,
        )


def sphere_field(radius: float = 0.5, center: Sequence[float] = (0.0, 0.0, 0.0)) -> ScalarField:
    """Signed distance to a sphere: |p - c| - radius."""
    c = np.asarray(center, dtype=np.float64).reshape(1, 3)
    return ScalarField(
        lambda p: np.linalg.norm(p - c, axis=1) - radius,
        name="sphere",
        vectorized=True,
    )


def torus_field(major_radius: float = 0.5, minor_radius: float = 0.2) -> ScalarField:
    """
    Signed distance to a torus whose ring lies in the XZ plane.

    The ring is the circle of radius ``major_radius`` around the Y axis; the
    tube has radius ``minor_radius``.
    """
    def func(p: np.ndarray) -> np.ndarray:
        ring = np.hypot(p[:, 0], p[:, 2]) - major_radius
        return np.hypot(ring, p[:, 1]) - minor_radius

    return ScalarField(func, name="torus", vectorized=True)


def box_field(half_extents: Sequence[float] = (0.4, 0.4, 0.4)) -> ScalarField:
    """Signed distance to an axis-aligned box centred at the origin."""
    b = np.asarray(half_extents, dtype=np.float64).reshape(1, 3)

    def func(p: np.ndarray) -> np.ndarray:
        q = np.abs(p) - b
        outside = np.linalg.norm(np.maximum(q, 0.0), axis=1)
        inside = np.minimum(np.max(q, axis=1), 0.0)
        return outside + inside

    return ScalarField(func, name="box", vectorized=True)


def plane_field(normal: Sequence[float] = (1.0, 0.0, 0.0), offset: float = 0.0) -> ScalarField:
    """Signed distance to the plane n.p = offset (normal is normalized)."""
    n = np.asarray(normal, dtype=np.float64)
    length = np.linalg.norm(n)
    if length < 1e-12:
        raise ConfigurationError("Plane normal must be non-zero")
    n = n / length
    return ScalarField(lambda p: p @ n - offset, name="plane", vectorized=True)


def gyroid_field(scale: float = 6.0, thickness: float = 0.3, radius: Optional[float] = 0.8) -> ScalarField:
    """
    Thickened gyroid sheet, optionally clipped to a ball so the surface is closed.
    """
    def func(p: np.ndarray) -> np.ndarray:
        q = p * scale
        g = (
            np.sin(q[:, 0]) * np.cos(q[:, 1])
            + np.sin(q[:, 1]) * np.cos(q[:, 2])
            + np.sin(q[:, 2]) * np.cos(q[:, 0])
        )
        return np.abs(g) - thickness

    field = ScalarField(func, name="gyroid", vectorized=True)
    if radius is not None:
        clipped = field.intersection(sphere_field(radius))
        return ScalarField(clipped.func, name="gyroid", vectorized=True)
    return field


def constant_field(value: float = 1.0) -> ScalarField:
    """Field with the same value everywhere; tessellates to an empty mesh."""
    return ScalarField(lambda p: np.full(len(p), float(value)), name="constant", vectorized=True)


FIELDS: dict[str, Callable[..., ScalarField]] = {
    "sphere": sphere_field,
    "torus": torus_field,
    "box": box_field,
    "plane": plane_field,
    "gyroid": gyroid_field,
    "constant": constant_field,
}


def get_field(name: str, **params) -> ScalarField:
    """Factory function to get a built-in field by name."""
    if name not in FIELDS:
        available = ", ".join(FIELDS.keys())
        raise ConfigurationError(f"Unknown field: {name}. Available: {available}")
    try:
        return FIELDS[name](**params)
    except TypeError as e:
        raise ConfigurationError(f"Invalid parameters for field '{name}': {e}") from e
