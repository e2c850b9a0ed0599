"""
Mesh generators module.

This module contains gmsh-based generators for fluid domains:
- ChannelCylinderMesh: rectangular channel around a circular obstacle,
  meshed with second-order triangles and labelled boundary groups.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Tuple

import gmsh
import numpy as np

from ale_fsi.core.mesh.io.readers import build_mesh_model

if TYPE_CHECKING:
    from ale_fsi.core.mesh.model import MeshModel

logger = logging.getLogger(__name__)

# gmsh element type codes
GMSH_LINE3 = 8
GMSH_TRIANGLE6 = 9

DEFAULT_LABELS = {"inlet": 1, "outlet": 2, "bottom": 3, "top": 4, "obstacle": 5}


class ChannelCylinderMesh:
    """
    Generates a channel with a circular obstacle using Gmsh.

    The channel spans ``[x_min, x_max] x [y_min, y_max]``; the obstacle is a
    circle of given ``radius`` centred at ``center``. Flow enters through the
    left side (inlet) and leaves through the right side (outlet).

    Attributes
    ----------
    x_min, x_max, y_min, y_max : float
        Channel extents.
    center : tuple of float
        Obstacle centre.
    radius : float
        Obstacle radius.
    element_size : float
        Target element size on the channel boundary.
    obstacle_element_size : float
        Target element size on the obstacle.
    labels : dict
        Integer labels of the inlet, outlet, bottom, top and obstacle groups.
    """

    def __init__(
        self,
        x_min: float = -10.0,
        x_max: float = 30.0,
        y_min: float = -10.0,
        y_max: float = 10.0,
        center: Tuple[float, float] = (0.0, 0.0),
        radius: float = 0.5,
        element_size: float = 1.0,
        obstacle_element_size: float = 0.1,
        labels: Dict[str, int] | None = None,
    ):
        if not (x_min < center[0] - radius and center[0] + radius < x_max):
            raise ValueError("Obstacle must lie strictly inside the channel in x.")
        if not (y_min < center[1] - radius and center[1] + radius < y_max):
            raise ValueError("Obstacle must lie strictly inside the channel in y.")
        if element_size <= 0 or obstacle_element_size <= 0:
            raise ValueError("Element sizes must be positive.")

        self.x_min = x_min
        self.x_max = x_max
        self.y_min = y_min
        self.y_max = y_max
        self.center = tuple(center)
        self.radius = radius
        self.element_size = element_size
        self.obstacle_element_size = obstacle_element_size
        self.labels = {**DEFAULT_LABELS, **(labels or {})}

    def generate(self) -> "MeshModel":
        """Generates and returns a MeshModel with the labelled channel mesh"""
        gmsh.initialize()
        try:
            gmsh.option.setNumber("General.Terminal", 0)
            gmsh.model.add("channel_cylinder")

            self._create_geometry()
            gmsh.model.geo.synchronize()
            self._add_physical_groups()
            self._configure_mesh()

            gmsh.model.mesh.generate(2)
            gmsh.model.mesh.setOrder(2)

            mesh = self._create_mesh_model()
        finally:
            gmsh.finalize()

        logger.info(
            "Generated channel mesh: %d nodes, %d cells", mesh.node_count, mesh.elements_count
        )
        return mesh

    def _create_geometry(self):
        """Create the channel rectangle and the circular hole"""
        geo = gmsh.model.geo
        h, hc = self.element_size, self.obstacle_element_size

        p1 = geo.addPoint(self.x_min, self.y_min, 0, h)
        p2 = geo.addPoint(self.x_max, self.y_min, 0, h)
        p3 = geo.addPoint(self.x_max, self.y_max, 0, h)
        p4 = geo.addPoint(self.x_min, self.y_max, 0, h)

        self.bottom = geo.addLine(p1, p2)
        self.outlet = geo.addLine(p2, p3)
        self.top = geo.addLine(p3, p4)
        self.inlet = geo.addLine(p4, p1)
        outer = geo.addCurveLoop([self.bottom, self.outlet, self.top, self.inlet])

        cx, cy = self.center
        r = self.radius
        c = geo.addPoint(cx, cy, 0, hc)
        arc_points = [
            geo.addPoint(cx + r, cy, 0, hc),
            geo.addPoint(cx, cy + r, 0, hc),
            geo.addPoint(cx - r, cy, 0, hc),
            geo.addPoint(cx, cy - r, 0, hc),
        ]
        self.obstacle = [
            geo.addCircleArc(arc_points[i], c, arc_points[(i + 1) % 4]) for i in range(4)
        ]
        inner = geo.addCurveLoop(self.obstacle)

        self.surface = geo.addPlaneSurface([outer, inner])

    def _add_physical_groups(self):
        """Add labelled boundary groups and the fluid surface"""
        groups = {
            "inlet": [self.inlet],
            "outlet": [self.outlet],
            "bottom": [self.bottom],
            "top": [self.top],
            "obstacle": self.obstacle,
        }
        for name, curves in groups.items():
            gmsh.model.addPhysicalGroup(1, curves, tag=self.labels[name], name=name)
        gmsh.model.addPhysicalGroup(2, [self.surface], name="fluid")

    def _configure_mesh(self):
        """Configure meshing parameters"""
        gmsh.option.setNumber("Mesh.Algorithm", 6)
        gmsh.option.setNumber("Mesh.ElementOrder", 2)
        gmsh.option.setNumber("Mesh.SecondOrderLinear", 0)

    def _create_mesh_model(self) -> "MeshModel":
        """Converts the Gmsh mesh to a MeshModel instance"""
        node_tags, coords, _ = gmsh.model.mesh.getNodes()
        coords = np.asarray(coords).reshape(-1, 3)
        tag_to_index = {int(tag): i for i, tag in enumerate(node_tags)}

        def to_index(tags, nodes_per_element):
            return np.array([tag_to_index[int(t)] for t in tags], dtype=np.int64).reshape(
                -1, nodes_per_element
            )

        _, tri_nodes = gmsh.model.mesh.getElementsByType(GMSH_TRIANGLE6)
        triangles = to_index(tri_nodes, 6)

        facet_groups = {}
        for dim, tag in gmsh.model.getPhysicalGroups(dim=1):
            name = gmsh.model.getPhysicalName(dim, tag)
            facets = []
            for entity in gmsh.model.getEntitiesForPhysicalGroup(dim, tag):
                _, line_nodes = gmsh.model.mesh.getElementsByType(GMSH_LINE3, tag=entity)
                facets.append(to_index(line_nodes, 3))
            facet_groups[name] = (tag, np.vstack(facets))

        return build_mesh_model(coords, triangles, facet_groups)
