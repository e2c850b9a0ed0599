"""
Lagrange shape functions on the reference triangle.

Node ordering follows gmsh/meshio: vertices (0, 0), (1, 0), (0, 1), then for
the quadratic element the mid-side nodes of edges (0, 1), (1, 2), (2, 0).
"""

from typing import Tuple

import numpy as np


class LagrangeTriangle:
    """Base class for reference Lagrange triangles."""

    order: int = 0
    node_count: int = 0
    # Reference coordinates of the element nodes
    nodes: np.ndarray = np.empty((0, 2))
    # Local vertex pairs of the edges and the mid-side node on each
    edges: Tuple[Tuple[int, int, int], ...] = ((0, 1, 3), (1, 2, 4), (2, 0, 5))

    @staticmethod
    def _barycentric(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        points = np.atleast_2d(points)
        xi, eta = points[:, 0], points[:, 1]
        return 1.0 - xi - eta, xi, eta

    @classmethod
    def shape_functions(cls, points: np.ndarray) -> np.ndarray:
        """Shape function values at ``points``, shape (n_points, node_count)."""
        raise NotImplementedError

    @classmethod
    def shape_gradients(cls, points: np.ndarray) -> np.ndarray:
        """Reference gradients at ``points``, shape (n_points, node_count, 2)."""
        raise NotImplementedError


class TRI3(LagrangeTriangle):
    """Linear (P1) triangle."""

    order = 1
    node_count = 3
    nodes = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])

    @classmethod
    def shape_functions(cls, points: np.ndarray) -> np.ndarray:
        return np.column_stack(cls._barycentric(points))

    @classmethod
    def shape_gradients(cls, points: np.ndarray) -> np.ndarray:
        n = np.atleast_2d(points).shape[0]
        grads = np.array([[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]])
        return np.broadcast_to(grads, (n, 3, 2)).copy()


class TRI6(LagrangeTriangle):
    """Quadratic (P2) triangle."""

    order = 2
    node_count = 6
    nodes = np.array([
        [0.0, 0.0],
        [1.0, 0.0],
        [0.0, 1.0],
        [0.5, 0.0],
        [0.5, 0.5],
        [0.0, 0.5],
    ])

    @classmethod
    def shape_functions(cls, points: np.ndarray) -> np.ndarray:
        l0, l1, l2 = cls._barycentric(points)
        return np.column_stack([
            l0 * (2.0 * l0 - 1.0),
            l1 * (2.0 * l1 - 1.0),
            l2 * (2.0 * l2 - 1.0),
            4.0 * l0 * l1,
            4.0 * l1 * l2,
            4.0 * l2 * l0,
        ])

    @classmethod
    def shape_gradients(cls, points: np.ndarray) -> np.ndarray:
        l0, l1, l2 = cls._barycentric(points)
        # d(l0, l1, l2)/d(xi, eta)
        d0 = np.array([-1.0, -1.0])
        d1 = np.array([1.0, 0.0])
        d2 = np.array([0.0, 1.0])

        def outer(coef, d):
            return coef[:, None] * d[None, :]

        return np.stack(
            [
                outer(4.0 * l0 - 1.0, d0),
                outer(4.0 * l1 - 1.0, d1),
                outer(4.0 * l2 - 1.0, d2),
                4.0 * (outer(l1, d0) + outer(l0, d1)),
                4.0 * (outer(l2, d1) + outer(l1, d2)),
                4.0 * (outer(l0, d2) + outer(l2, d0)),
            ],
            axis=1,
        )
