"""
Cut Coulomb interaction with a short-range switching function.

Short-range electrostatics are already described by the neural network
potential inside its cutoff radius Rc, so the bare Coulomb energy is
switched on smoothly over [0, Rc]:

    E(r) = qqrd2e * q_i * q_j * fc(r) / r,   0 < r < cutoff_coul
    fc(r) = 0.5 * (1 - cos(pi * r / Rc))      for r < Rc
    fc(r) = 1                                 otherwise
"""

import math
from typing import Tuple

import numpy as np
import torch

from .exceptions import ConfigurationError, InputError
from .log import logger

__author__ = "The sannp developers"
__date__ = "2026-10-17"

__all__ = ['CoulombCut']


class CoulombCut(object):
    """
    Pairwise cut Coulomb kernel with a cosine switching function.

    Parameters
    ----------
    cutoff_coul : float
        Coulomb cutoff; pairs with r >= cutoff_coul do not interact
    rc : float
        Radius over which the interaction is switched on (usually the
        cutoff radius of the symmetry functions)
    qqrd2e : float, optional
        Unit conversion factor q*q/r -> energy (default: 1.0)
    dtype : torch.dtype, optional
        Data type for computations (default: torch.float64)
    """

    def __init__(self, cutoff_coul: float, rc: float, qqrd2e: float = 1.0,
                 dtype: torch.dtype = torch.float64):
        if not cutoff_coul > 0.0:
            raise ConfigurationError("Coulomb cutoff is not positive.")
        if not rc > 0.0:
            raise ConfigurationError("switching radius is not positive.")
        self.cutoff_coul = float(cutoff_coul)
        self.rc = float(rc)
        self.qqrd2e = float(qqrd2e)
        self.dtype = dtype

    def pair(
        self,
        r: torch.Tensor,
        qi: torch.Tensor,
        qj: torch.Tensor,
        factor=1.0,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Energy and force factor of atom pairs.

        The force on atom i is fpair * (x_i - x_j) and the force on atom j
        is its negative.

        Args:
            r: (P,) pair distances
            qi, qj: (P,) charges of the two atoms
            factor: special-bond scaling of the pair (scalar or (P,))

        Returns
        -------
            ecoul: (P,) pair energies (zero outside (0, cutoff_coul))
            fpair: (P,) force factors (zero outside (0, cutoff_coul))
        """
        r = torch.as_tensor(r, dtype=self.dtype)
        qi = torch.as_tensor(qi, dtype=self.dtype, device=r.device)
        qj = torch.as_tensor(qj, dtype=self.dtype, device=r.device)
        factor = torch.as_tensor(factor, dtype=self.dtype, device=r.device)

        active = (r > 0.0) & (r < self.cutoff_coul)
        # placeholder distance keeps inactive pairs finite
        r_safe = torch.where(active, r, torch.ones_like(r))
        rinv = 1.0 / r_safe
        forcecoul = self.qqrd2e * qi * qj * rinv

        inner = r_safe < self.rc
        arg = math.pi * r_safe / self.rc
        fc = torch.where(inner, 0.5 * (1.0 - torch.cos(arg)),
                         torch.ones_like(r_safe))
        dfc_dr = torch.where(inner, 0.5 * math.pi / self.rc * torch.sin(arg),
                             torch.zeros_like(r_safe))

        fpair = factor * forcecoul * (rinv * fc - dfc_dr) * rinv
        ecoul = factor * forcecoul * fc

        zero = torch.zeros_like(r_safe)
        return (torch.where(active, ecoul, zero),
                torch.where(active, fpair, zero))

    def compute(self, positions, charges) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Total Coulomb energy and forces of an isolated structure.

        Every unordered pair of atoms is counted once.

        Args:
            positions: (N, 3) Cartesian coordinates
            charges: (N,) atomic charges

        Returns
        -------
            energy: scalar tensor
            forces: (N, 3) tensor; the forces sum to zero
        """
        if positions is None or charges is None:
            raise InputError("positions or charges are not set.")
        if not torch.is_tensor(positions):
            positions = np.asarray(positions, dtype=np.float64)
        positions = torch.as_tensor(positions, dtype=self.dtype)
        charges = torch.as_tensor(
            charges, dtype=self.dtype, device=positions.device).reshape(-1)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise InputError(
                f"positions must be (N, 3), got {tuple(positions.shape)}")
        if charges.shape[0] != positions.shape[0]:
            raise InputError(
                f"charges length ({charges.shape[0]}) must match "
                f"positions length ({positions.shape[0]})")

        n_atoms = positions.shape[0]
        i, j = torch.triu_indices(n_atoms, n_atoms, offset=1,
                                  device=positions.device)
        delta = positions[i] - positions[j]
        r = torch.linalg.norm(delta, dim=-1)

        ecoul, fpair = self.pair(r, charges[i], charges[j])
        fij = fpair.unsqueeze(-1) * delta

        forces = torch.zeros_like(positions)
        forces.index_add_(0, i, fij)
        forces.index_add_(0, j, -fij)

        logger.debug("Coulomb: %d pairs within %g", int(
            ((r > 0.0) & (r < self.cutoff_coul)).sum()), self.cutoff_coul)
        return ecoul.sum(), forces
