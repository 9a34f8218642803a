"""
Background tessellation with atomic mesh hand-over.

Builds run on worker threads; finished meshes are published to a MeshSlot in
a single swap, so a reader sees either the previous mesh or the new one and
never a partially built one. Requests are numbered and a result only replaces
the current mesh when it belongs to a newer request than the one already
published.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Union

from implicitmesh.core.fields import ScalarField
from implicitmesh.core.halfedge import HalfEdgeMesh
from implicitmesh.pipeline import TessellationPipeline
from implicitmesh.tessellate.cells import LoopPolicy
from implicitmesh.tessellate.sampler import Lattice

logger = logging.getLogger("implicitmesh.worker")


class MeshSlot:
    """Holds the current mesh; replaced wholesale, never mutated."""

    def __init__(self, mesh: Optional[HalfEdgeMesh] = None):
        self._lock = threading.Lock()
        self._mesh = mesh if mesh is not None else HalfEdgeMesh.empty()
        self._generation = 0

    @property
    def current(self) -> HalfEdgeMesh:
        with self._lock:
            return self._mesh

    @property
    def generation(self) -> int:
        """Request number of the published mesh (0 for the initial one)."""
        with self._lock:
            return self._generation

    def replace(self, mesh: HalfEdgeMesh, generation: Optional[int] = None) -> bool:
        """
        Publish ``mesh``.

        Args:
            mesh: New mesh
            generation: Request number that produced it; when given, the swap
                only happens if it is newer than the published one

        Returns:
            True if the mesh was published
        """
        with self._lock:
            if generation is not None:
                if generation <= self._generation:
                    return False
                self._generation = generation
            self._mesh = mesh
            return True


class BackgroundTessellator:
    """
    Run tessellation requests on worker threads, newest request wins.

    There is no cancellation: superseded builds run to completion and their
    result is discarded.
    """

    def __init__(
        self,
        slot: Optional[MeshSlot] = None,
        loop_policy: Union[str, LoopPolicy] = LoopPolicy.REJECT,
        orient: bool = True,
    ):
        self.slot = slot if slot is not None else MeshSlot()
        self.loop_policy = LoopPolicy.parse(loop_policy)
        self.orient = orient
        self._lock = threading.Lock()
        self._requested = 0
        self._threads: list[threading.Thread] = []
        self.errors: dict[int, Exception] = {}

    @property
    def latest_request(self) -> int:
        with self._lock:
            return self._requested

    def submit(self, field: ScalarField, half_extent: float, split: int) -> int:
        """
        Queue a build and return its request number.

        Raises:
            ConfigurationError: If half_extent or split are invalid
        """
        Lattice(half_extent=half_extent, split=split)

        with self._lock:
            self._requested += 1
            generation = self._requested
            thread = threading.Thread(
                target=self._build,
                args=(generation, field, half_extent, split),
                name=f"tessellate-{generation}",
                daemon=True,
            )
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)

        logger.debug(f"Request {generation}: field '{field.name}', range {half_extent}, split {split}")
        thread.start()
        return generation

    def _build(self, generation: int, field: ScalarField, half_extent: float, split: int) -> None:
        pipeline = TessellationPipeline(loop_policy=self.loop_policy, orient=self.orient)
        try:
            mesh, _ = pipeline.process(field, half_extent, split, evaluate=False, enable_timing=False)
        except Exception as e:
            logger.error(f"Request {generation} failed: {e}")
            with self._lock:
                self.errors[generation] = e
            return

        if self.slot.replace(mesh, generation):
            logger.debug(f"Request {generation} published: {mesh}")
        else:
            logger.debug(f"Request {generation} superseded, result discarded")

    def wait(self, timeout: Optional[float] = None) -> HalfEdgeMesh:
        """
        Block until all submitted builds have finished.

        Returns:
            The published mesh

        Raises:
            Exception: The error of the latest request, if it failed
        """
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)

        with self._lock:
            error = self.errors.get(self._requested)
        if error is not None:
            raise error
        return self.slot.current
