"""Absorbing boundary conditions for 2-D propagation."""

from strata_fwi.boundaries._boundaries import Sponge

__all__ = [
    "Sponge",
]
