"""
Data-parallel image kernels.

Components:
    TeamPolicy: Tiling of an image into teams for hierarchical launches
    launch: Runs a per-pixel formula in FLAT or HIERARCHICAL mode
    GradientKernel: Finite-difference image gradients
    GaussFilterKernel: Clamp-to-edge Gauss convolution

Each kernel defines its per-pixel formula once; both execution modes
evaluate that same formula, so they produce identical results.
"""

from .gauss import GaussFilterKernel, gaussian_coefficients
from .gradient import GRAD_C1, GRAD_C2, GradientKernel, stencil_derivative
from .launch import TeamPolicy, Tile, flat_ranges, launch

__all__ = [
    "TeamPolicy",
    "Tile",
    "flat_ranges",
    "launch",
    "GradientKernel",
    "stencil_derivative",
    "GRAD_C1",
    "GRAD_C2",
    "GaussFilterKernel",
    "gaussian_coefficients",
]
