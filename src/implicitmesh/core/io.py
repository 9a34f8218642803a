"""
Mesh I/O utilities.

Supports loading triangle files into half-edge meshes and saving results.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

from implicitmesh.core.halfedge import HalfEdgeMesh
from implicitmesh.core.mesh import Mesh


def load_mesh(filepath: Union[str, Path]) -> Mesh:
    """
    Load a triangle mesh from file.

    Supports: OBJ, PLY, STL, OFF, GLB, GLTF (anything trimesh reads)

    Args:
        filepath: Path to mesh file

    Returns:
        Loaded Mesh object
    """
    return Mesh.from_file(filepath)


def load_halfedge_mesh(filepath: Union[str, Path]) -> HalfEdgeMesh:
    """Load a triangle file straight into half-edge form."""
    return HalfEdgeMesh.from_mesh(load_mesh(filepath))


def save_mesh(mesh: Union[Mesh, HalfEdgeMesh], filepath: Union[str, Path]) -> None:
    """
    Save mesh to file.

    Args:
        mesh: Mesh or HalfEdgeMesh to save
        filepath: Output path (format determined by extension)
    """
    if isinstance(mesh, HalfEdgeMesh):
        mesh = mesh.to_mesh()
    mesh.to_file(filepath)
