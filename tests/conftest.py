import numpy as np
import pytest

from ale_fsi.core.mesh import build_mesh_model
from ale_fsi.solvers.time_integration import GeneralizedAlphaParameters

LABELS = {"inlet": 1, "outlet": 2, "bottom": 3, "top": 4, "obstacle": 5}


def make_channel_mesh(nx=6, ny=4, length=6.0, height=4.0, hole=((2, 4), (1, 3))):
    """
    Structured ``triangle6`` mesh of ``[0, length] x [0, height]`` with a
    rectangular hole.

    ``hole`` gives the ranges of quad columns and rows left out; their
    boundary is the ``obstacle`` group. With the defaults the hole is the
    square ``[2, 4] x [1, 3]`` and the fluid area is 20.
    """
    ni, nj = 2 * nx + 1, 2 * ny + 1
    xs = np.linspace(0.0, length, ni)
    ys = np.linspace(0.0, height, nj)
    points = np.array([[x, y, 0.0] for y in ys for x in xs])

    def idx(i, j):
        return j * ni + i

    (a0, a1), (b0, b1) = hole
    triangles = []
    for b in range(ny):
        for a in range(nx):
            if a0 <= a < a1 and b0 <= b < b1:
                continue
            i, j = 2 * a, 2 * b
            p00, p10, p11, p01 = idx(i, j), idx(i + 2, j), idx(i + 2, j + 2), idx(i, j + 2)
            triangles.append([p00, p10, p11, idx(i + 1, j), idx(i + 2, j + 1), idx(i + 1, j + 1)])
            triangles.append([p00, p11, p01, idx(i + 1, j + 1), idx(i + 1, j + 2), idx(i, j + 1)])

    def horizontal(j, columns):
        return [[idx(2 * a, j), idx(2 * a + 2, j), idx(2 * a + 1, j)] for a in columns]

    def vertical(i, rows):
        return [[idx(i, 2 * b), idx(i, 2 * b + 2), idx(i, 2 * b + 1)] for b in rows]

    obstacle = (
        horizontal(2 * b0, range(a0, a1))
        + horizontal(2 * b1, range(a0, a1))
        + vertical(2 * a0, range(b0, b1))
        + vertical(2 * a1, range(b0, b1))
    )
    facet_groups = {
        "inlet": (LABELS["inlet"], vertical(0, range(ny))),
        "outlet": (LABELS["outlet"], vertical(2 * nx, range(ny))),
        "bottom": (LABELS["bottom"], horizontal(0, range(nx))),
        "top": (LABELS["top"], horizontal(2 * ny, range(nx))),
        "obstacle": (LABELS["obstacle"], obstacle),
    }
    return build_mesh_model(points, np.array(triangles), facet_groups)


@pytest.fixture
def channel_mesh():
    return make_channel_mesh()


@pytest.fixture
def mesh_factory():
    return make_channel_mesh


@pytest.fixture
def params():
    return GeneralizedAlphaParameters(rho_inf=0.5, dt=0.1)
