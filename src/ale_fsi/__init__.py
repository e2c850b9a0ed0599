"""
ale_fsi: ALE fluid / rigid-body interaction in two dimensions.

A partitioned, staggered integrator for incompressible flow past a
spring-mounted obstacle. The fluid (Taylor-Hood P2/P1 on a moving mesh),
the pseudo-elastic mesh motion and the single-degree-of-freedom body are
advanced with the generalized-alpha method and coupled once per step
through a predicted and relaxed interface load.
"""

__version__ = "0.1.0"
