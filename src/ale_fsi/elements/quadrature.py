"""
Quadrature rules on the reference triangle and the unit interval.

The reference triangle has vertices (0, 0), (1, 0) and (0, 1); its weights
sum to the reference area 1/2.
"""

from typing import Tuple

import numpy as np


def _symmetric_orbit(a: float) -> np.ndarray:
    """Three points with barycentric coordinates (a, a, 1-2a) and permutations."""
    b = 1.0 - 2.0 * a
    return np.array([[a, a], [b, a], [a, b]])


def triangle_rule(degree: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss points and weights exact for polynomials of the given degree.

    Parameters
    ----------
    degree : int
        Polynomial degree to integrate exactly (1, 2, 4 or 5 supported;
        3 is promoted to 4).

    Returns
    -------
    points : np.ndarray
        Reference coordinates, shape (n, 2).
    weights : np.ndarray
        Weights, shape (n,).
    """
    if degree <= 1:
        return np.array([[1.0 / 3.0, 1.0 / 3.0]]), np.array([0.5])
    if degree == 2:
        return _symmetric_orbit(1.0 / 6.0), np.full(3, 1.0 / 6.0)
    if degree <= 4:
        # Strang-Fix / Dunavant six-point rule
        points = np.vstack([
            _symmetric_orbit(0.445948490915965),
            _symmetric_orbit(0.091576213509771),
        ])
        weights = 0.5 * np.array([0.223381589678011] * 3 + [0.109951743655322] * 3)
        return points, weights
    if degree == 5:
        points = np.vstack([
            [[1.0 / 3.0, 1.0 / 3.0]],
            _symmetric_orbit(0.470142064105115),
            _symmetric_orbit(0.101286507323456),
        ])
        weights = 0.5 * np.array([0.225] + [0.132394152788506] * 3 + [0.125939180544827] * 3)
        return points, weights
    raise ValueError(f"Unsupported triangle quadrature degree: {degree}. Must be at most 5.")


def interval_rule(n_points: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre points and weights on [0, 1].

    Parameters
    ----------
    n_points : int
        Number of integration points (1 to 4).
    """
    if not 1 <= n_points <= 4:
        raise ValueError(f"Unsupported number of Gauss points: {n_points}. Must be 1 to 4.")
    x, w = np.polynomial.legendre.leggauss(n_points)
    return 0.5 * (x + 1.0), 0.5 * w
