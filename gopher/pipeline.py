"""Geometry pipeline

This module wires the stages together: a capped cylinder is generated and
scaled, a frozen copy becomes the projection target, sharp edges are
classified into constraints, the live mesh is remeshed for a fixed number of
passes and finally deformed with a constrained Laplacian solve.

Every run owns its mesh, constraint set and projection target; nothing is
shared between runs, so several pipelines can be executed independently.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple
import time
import numpy as np

from . import get_logger
from .config import ConstraintConfig, DeformConfig, GopherConfig, RemeshConfig
from .data_types import InvalidParameterError, as_point
from .deform.laplacian import LaplacianMeshDeformer
from .mesh.dmesh import DynamicMesh
from .mesh.generators import make_capped_cylinder
from .mesh.utils import scale_mesh
from .remesh.constraints import MeshConstraints, classify_sharp_edges, plane_group_fn
from .remesh.remesher import Remesher
from .spatial.distance import find_nearest_triangle_linear
from .spatial.target import MeshProjectionTarget

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass
class DeformSummary:
    """Pins used by :func:`deform_cylinder` and the resulting motion."""

    bottom_vertices: List[int]
    handle_vertex: int
    handle_target: np.ndarray
    max_displacement: float = 0.0

    @property
    def pinned_vertices(self) -> List[int]:
        return sorted(set(self.bottom_vertices) | {self.handle_vertex})


@dataclass
class PipelineStats:
    generate_ms: float = 0.0
    classify_ms: float = 0.0
    remesh_ms: float = 0.0
    deform_ms: float = 0.0
    remesh_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total_ms(self) -> float:
        return self.generate_ms + self.classify_ms + self.remesh_ms + self.deform_ms


@dataclass
class PipelineResult:
    """Return type for :meth:`GopherPipeline.run`.

    Attributes
    ----------
    mesh : DynamicMesh
        Compacted, deformed mesh (ids dense from 0).
    constraints : MeshConstraints
        Remesh constraints expressed in the ids of ``mesh``.
    deform : DeformSummary
        Pinned vertices of the deformation step.
    stats : PipelineStats
        Per-stage timings and remesh edit counters.
    """

    mesh: DynamicMesh
    constraints: MeshConstraints
    deform: DeformSummary
    stats: PipelineStats


# ---------------------------------------------------------------------------
# Stage helpers
# ---------------------------------------------------------------------------


def build_projection_target(mesh: DynamicMesh) -> MeshProjectionTarget:
    """Freeze a copy of *mesh* and build its BVH."""
    return MeshProjectionTarget.from_mesh(mesh)


def classify_constraints(mesh: DynamicMesh, config: Optional[ConstraintConfig] = None) -> MeshConstraints:
    """Sharp-edge classification with the plane-based vertex groups of *config*."""
    config = config or ConstraintConfig()
    group_fn = plane_group_fn(config.group_axis, config.group_plane,
                              config.upper_group_id, config.lower_group_id)
    return classify_sharp_edges(mesh, config.sharp_angle_deg, group_fn)


def configure_remesher(mesh: DynamicMesh, constraints: MeshConstraints,
                       target: Optional[MeshProjectionTarget],
                       config: Optional[RemeshConfig] = None) -> Remesher:
    config = config or RemeshConfig()
    remesher = Remesher(mesh)
    remesher.set_external_constraints(constraints)
    remesher.set_projection_target(target)
    remesher.precompute()
    remesher.enable_flips = config.enable_flips
    remesher.enable_splits = config.enable_splits
    remesher.enable_collapses = config.enable_collapses
    remesher.enable_smoothing = config.enable_smoothing
    remesher.enable_projection = config.enable_projection
    remesher.set_edge_length_range(config.min_edge_length, config.max_edge_length)
    remesher.smooth_speed = config.smooth_speed
    return remesher


def compact_mesh(mesh: DynamicMesh) -> Tuple[DynamicMesh, Dict[int, int]]:
    """Copy *mesh* with dense ids; returns the copy and the old→new vertex map."""
    packed = mesh.to_triangle_mesh()
    compact = DynamicMesh.from_arrays(packed.vertices, packed.triangles)
    vertex_map = {int(old): new for new, old in enumerate(packed.vertex_ids)}
    return compact, vertex_map


def _remesh_cylinder(config: GopherConfig) -> Tuple[DynamicMesh, MeshConstraints, Remesher, PipelineStats]:
    stats = PipelineStats()

    start = time.perf_counter()
    gen = config.generator
    mesh = make_capped_cylinder(gen.no_shared_vertices, gen.slices, gen.hole)
    scale_mesh(mesh, gen.scale)
    target = build_projection_target(mesh)
    stats.generate_ms = (time.perf_counter() - start) * 1000

    start = time.perf_counter()
    constraints = classify_constraints(mesh, config.constraints)
    stats.classify_ms = (time.perf_counter() - start) * 1000

    start = time.perf_counter()
    remesher = configure_remesher(mesh, constraints, target, config.remesh)
    remesher.remesh(config.remesh.passes)
    stats.remesh_ms = (time.perf_counter() - start) * 1000
    stats.remesh_counts = {k: v for k, v in remesher.get_performance_stats().items() if isinstance(v, int)}
    return mesh, constraints, remesher, stats


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def make_remeshed_capped_cylinder(res_factor: float = 1.0,
                                  config: Optional[GopherConfig] = None) -> DynamicMesh:
    """Build the scaled cylinder and remesh it toward edge lengths scaled by *res_factor*.

    Parameters
    ----------
    res_factor
        Positive multiplier applied to the base edge-length range.
    config
        Stage settings; the defaults give the standard run
        (128 slices, scale (1, 2, 1), lengths 0.1/0.2, 20 passes).
    """
    if isinstance(res_factor, bool) or not res_factor > 0.0:
        raise InvalidParameterError("res_factor", res_factor, "must be positive")
    config = config or GopherConfig()
    config = replace(config, remesh=replace(config.remesh, resolution_factor=float(res_factor)))
    config.validate()

    mesh, _, _, stats = _remesh_cylinder(config)
    logger.info(
        f"Remeshed cylinder: V={mesh.vertex_count}, T={mesh.triangle_count}, "
        f"{stats.generate_ms + stats.classify_ms + stats.remesh_ms:.1f}ms"
    )
    return mesh


def deform_cylinder(mesh: DynamicMesh, config: Optional[DeformConfig] = None) -> DeformSummary:
    """Pin the bottom ring in place, drag one handle vertex and solve in place.

    The handle is the first vertex of the triangle nearest to
    ``config.handle_query_point``; it is pinned to its position plus
    ``config.handle_offset``.
    """
    config = config or DeformConfig()
    start = time.perf_counter()
    min_y = mesh.get_bounds()[0][1]
    deformer = LaplacianMeshDeformer(mesh)

    bottom: List[int] = []
    for vid, position in mesh.iter_vertices():
        if position[1] - min_y < config.bottom_tolerance:
            deformer.set_constraint(vid, position, config.pin_weight)
            bottom.append(vid)

    tid = find_nearest_triangle_linear(mesh, config.handle_query_point)
    handle = mesh.get_triangle(tid)[0]
    handle_target = mesh.get_vertex(handle) + as_point(config.handle_offset)
    deformer.set_constraint(handle, handle_target, config.handle_weight)

    before = mesh.positions()
    deformer.initialize()
    after = deformer.solve_and_update_mesh()
    ids = mesh.vertex_indices()
    max_displacement = float(np.max(np.linalg.norm(after[ids] - before[ids], axis=1))) if ids else 0.0

    logger.info(
        f"Deformed mesh: {len(bottom)} bottom pins, handle {handle}, "
        f"max displacement {max_displacement:.4f}, {(time.perf_counter() - start) * 1000:.1f}ms"
    )
    return DeformSummary(
        bottom_vertices=bottom,
        handle_vertex=handle,
        handle_target=handle_target,
        max_displacement=max_displacement,
    )


class GopherPipeline:
    """Facade running generate → classify → remesh → compact → deform.

    Usage
    -----
    >>> result = GopherPipeline(GopherConfig()).run()
    >>> result.mesh.vertex_count
    """

    def __init__(self, config: Optional[GopherConfig] = None) -> None:
        self.config = config or GopherConfig()

    def run(self) -> PipelineResult:
        self.config.validate()
        mesh, constraints, _, stats = _remesh_cylinder(self.config)

        compact, vertex_map = compact_mesh(mesh)
        constraints = constraints.remapped(vertex_map)

        start = time.perf_counter()
        summary = deform_cylinder(compact, self.config.deform)
        stats.deform_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Pipeline finished: V={compact.vertex_count}, T={compact.triangle_count}, "
            f"{stats.total_ms:.1f}ms"
        )
        return PipelineResult(mesh=compact, constraints=constraints, deform=summary, stats=stats)
