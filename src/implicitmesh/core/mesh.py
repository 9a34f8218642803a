"""
Triangle soup container.

The cell tessellator emits a flat list of vertex positions plus triangle
index triples; this is the exchange format between tessellation, file I/O
and the half-edge builder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union
import logging
import numpy as np

logger = logging.getLogger("implicitmesh.core.mesh")


@dataclass
class Mesh:
    """
    Triangle mesh as plain arrays.

    Attributes:
        vertices: Nx3 array of vertex positions
        faces: Mx3 array of triangle vertex indices
        name: Optional mesh identifier
        metadata: Additional mesh properties
    """
    vertices: np.ndarray
    faces: np.ndarray
    name: str = "unnamed"
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate and normalize mesh data."""
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(self.faces, dtype=np.int64)
        if self.faces.size == 0:
            self.faces = self.faces.reshape(0, 3)

        if self.faces.ndim != 2 or self.faces.shape[1] != 3:
            raise ValueError(f"Faces must be Mx3, got shape {self.faces.shape}")

        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= len(self.vertices)):
            raise ValueError(
                f"Face indices out of range for {len(self.vertices)} vertices"
            )

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def num_faces(self) -> int:
        return len(self.faces)

    @property
    def is_empty(self) -> bool:
        return self.num_faces == 0

    def face_normals(self) -> np.ndarray:
        """Unit normals of each triangle (zero for degenerate triangles)."""
        v0 = self.vertices[self.faces[:, 0]]
        v1 = self.vertices[self.faces[:, 1]]
        v2 = self.vertices[self.faces[:, 2]]

        normals = np.cross(v1 - v0, v2 - v0)
        norms = np.linalg.norm(normals, axis=1, keepdims=True)
        norms = np.where(norms > 1e-12, norms, 1.0)
        return normals / norms

    def signed_volume(self) -> float:
        """Enclosed volume by the divergence theorem; positive for outward winding."""
        if self.is_empty:
            return 0.0
        v0 = self.vertices[self.faces[:, 0]]
        v1 = self.vertices[self.faces[:, 1]]
        v2 = self.vertices[self.faces[:, 2]]
        return float(np.sum(np.einsum("ij,ij->i", v0, np.cross(v1, v2))) / 6.0)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> Mesh:
        """Load a triangle mesh from any format trimesh understands."""
        import trimesh

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Mesh file not found: {path}")

        tm = trimesh.load(str(path), force="mesh", process=False)
        return cls(
            vertices=np.asarray(tm.vertices),
            faces=np.asarray(tm.faces),
            name=path.stem,
            metadata={"source_file": str(path)},
        )

    def to_file(self, path: Union[str, Path]) -> None:
        """Save mesh to file (OBJ written directly, other formats via trimesh)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix.lower() == ".obj":
            self._export_obj(path)
        else:
            self.to_trimesh().export(path)
        logger.debug(f"Saved {self.num_vertices} vertices, {self.num_faces} faces to {path}")

    def _export_obj(self, path: Path) -> None:
        """Export to OBJ format."""
        with open(path, "w") as f:
            f.write(f"# implicitmesh export: {self.name}\n")
            f.write(f"# Vertices: {self.num_vertices}, Faces: {self.num_faces}\n\n")

            for v in self.vertices:
                f.write(f"v {v[0]:.6f} {v[1]:.6f} {v[2]:.6f}\n")

            f.write("\n")

            for face in self.faces:
                indices = " ".join(str(i + 1) for i in face)
                f.write(f"f {indices}\n")

    def to_trimesh(self):
        """Convert to trimesh object."""
        import trimesh
        return trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False)

    def __repr__(self) -> str:
        return f"Mesh('{self.name}', {self.num_vertices} verts, {self.num_faces} triangles)"
