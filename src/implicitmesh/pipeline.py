"""
Main pipeline orchestration.

Provides the high-level API for turning a scalar field into a half-edge mesh.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from implicitmesh.core.fields import ScalarField
from implicitmesh.core.halfedge import HalfEdgeMesh
from implicitmesh.evaluation.metrics import TessellationReport, evaluate_tessellation
from implicitmesh.tessellate.cells import CellTessellator, LoopPolicy, TessellationStats
from implicitmesh.tessellate.sampler import GridSampler, Lattice
from implicitmesh.utils.timing import timed_stage, reset_run_timings

logger = logging.getLogger("implicitmesh.pipeline")


class TessellationPipeline:
    """
    High-level tessellation pipeline.

    Combines all stages (sampling, cell tessellation, half-edge build,
    evaluation) into a simple interface. Every call builds a fresh mesh;
    nothing is shared between calls.
    """

    def __init__(
        self,
        loop_policy: Union[str, LoopPolicy] = LoopPolicy.REJECT,
        orient: bool = True,
    ):
        """
        Initialize pipeline.

        Args:
            loop_policy: Handling of loops other than closed triangles and quads
            orient: Wind triangles towards positive field values
        """
        self.loop_policy = LoopPolicy.parse(loop_policy)
        self.orient = orient
        self.tessellator = CellTessellator(policy=self.loop_policy, orient=orient)
        self.last_stats: Optional[TessellationStats] = None

    @classmethod
    def from_config(cls, config) -> TessellationPipeline:
        """Create a pipeline from a TessellationConfig."""
        return cls(loop_policy=config.loop_policy, orient=config.orient)

    def process(
        self,
        field: ScalarField,
        half_extent: float,
        split: int,
        evaluate: bool = True,
        enable_timing: bool = True,
    ) -> tuple[HalfEdgeMesh, Optional[TessellationReport]]:
        """
        Run the full tessellation pipeline.

        Args:
            field: Scalar field whose zero level-set is extracted
            half_extent: Sampled cube is [-half_extent, half_extent]^3
            split: Number of cells per axis
            evaluate: Whether to run evaluation
            enable_timing: Record stage timings for the CLI timing table

        Returns:
            Tuple of (half-edge mesh, report)

        Raises:
            ConfigurationError: If half_extent or split are invalid
        """
        if enable_timing:
            reset_run_timings()

        # Validated before anything is sampled
        lattice = Lattice(half_extent=half_extent, split=split)

        logger.info(
            f"Tessellating field '{field.name}': range {half_extent}, "
            f"split {split} ({lattice.num_cells} cells)"
        )

        with timed_stage("sampling", record=enable_timing):
            crossings = GridSampler(field, lattice).sample()

        with timed_stage("tessellation", record=enable_timing):
            result = self.tessellator.tessellate(crossings, name=field.name)
        self.last_stats = result.stats

        with timed_stage("halfedge_build", record=enable_timing):
            mesh = HalfEdgeMesh.from_mesh(result.mesh)

        logger.info(
            f"Output: {mesh.num_vertices} vertices, {mesh.num_edges} edges, "
            f"{mesh.num_faces} faces ({mesh.num_boundary_half_edges} unpaired half-edges)"
        )

        report = None
        if evaluate:
            with timed_stage("evaluation", record=enable_timing):
                report = evaluate_tessellation(mesh, field)

        return mesh, report

    def run_config(self, config, enable_timing: bool = True) -> tuple[HalfEdgeMesh, Optional[TessellationReport]]:
        """
        Run a TessellationConfig and save the output if it names a path.
        """
        config.validate()
        field = config.field.build()
        mesh, report = self.process(
            field,
            half_extent=config.grid.half_extent,
            split=config.grid.split,
            evaluate=config.evaluate,
            enable_timing=enable_timing,
        )
        if config.output_path:
            mesh.to_mesh().to_file(config.output_path)
            logger.info(f"Saved {config.name} to {config.output_path}")
        return mesh, report


def tessellate(
    field: ScalarField,
    half_extent: float = 1.0,
    split: int = 16,
    output_path: Optional[Union[str, Path]] = None,
    loop_policy: Union[str, LoopPolicy] = LoopPolicy.REJECT,
    orient: bool = True,
) -> HalfEdgeMesh:
    """
    Simple tessellation function.

    Args:
        field: Scalar field to tessellate
        half_extent: Sampled cube half-size
        split: Number of cells per axis
        output_path: Optional output path (saves if provided)
        loop_policy: Handling of irregular loops
        orient: Wind triangles towards positive field values

    Returns:
        Half-edge mesh of the zero level-set
    """
    pipeline = TessellationPipeline(loop_policy=loop_policy, orient=orient)
    mesh, _ = pipeline.process(field, half_extent, split, evaluate=False, enable_timing=False)

    if output_path:
        mesh.to_mesh().to_file(output_path)

    return mesh
