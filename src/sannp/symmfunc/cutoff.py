"""
Smooth cutoff function of the Behler symmetry functions.

References
----------
    J. Behler, J. Chem. Phys. 134 (2011) 074106
"""

from typing import Tuple

import torch
import torch.nn as nn


class CutoffFunction(nn.Module):
    """
    Hyperbolic-tangent cutoff function and its radial derivative.

    Implements:
        fc(r)   = tanh^3(1 - r/Rc)
        dfc/dr  = -3/Rc * tanh^2(1 - r/Rc) * (1 - tanh^2(1 - r/Rc))

    Both the value and the derivative vanish exactly at r = Rc. Distances
    outside (0, Rc] are not masked; neighbor lists are expected to be
    filtered by the caller.

    Parameters
    ----------
    cutoff_radius : float
        Cutoff radius Rc in Angstroms

    Examples
    --------
    >>> fc = CutoffFunction(cutoff_radius=5.0)
    >>> value, deriv = fc.forward_with_derivatives(torch.tensor([2.0]))
    """

    def __init__(self, cutoff_radius: float):
        super().__init__()
        self.cutoff_radius = cutoff_radius

    def forward(self, r: torch.Tensor) -> torch.Tensor:
        t = torch.tanh(1.0 - r / self.cutoff_radius)
        return t * t * t

    def forward_with_derivatives(
        self, r: torch.Tensor
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Evaluate the cutoff function and dfc/dr.

        Parameters
        ----------
        r : torch.Tensor
            Distances in Angstroms, any shape

        Returns
        -------
        fc : torch.Tensor
            Cutoff function values, same shape as r
        dfc_dr : torch.Tensor
            Radial derivative, same shape as r
        """
        t1 = torch.tanh(1.0 - r / self.cutoff_radius)
        t2 = t1 * t1
        fc = t1 * t2
        dfc_dr = -3.0 * t2 * (1.0 - t2) / self.cutoff_radius
        return fc, dfc_dr
