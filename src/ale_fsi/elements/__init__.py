from .lagrange import TRI3, TRI6, LagrangeTriangle
from .quadrature import interval_rule, triangle_rule

__all__ = [
    "LagrangeTriangle",
    "TRI3",
    "TRI6",
    "interval_rule",
    "triangle_rule",
]
