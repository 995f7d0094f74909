"""
Radial and angular Behler symmetry functions with analytical gradients.

The descriptor of a central atom is packed as

    [ radial (element, mode) | angular (element pair, branch, mode) ]

with unordered element pairs stored in lower-triangular order. Each basis
writes its values and Cartesian derivatives directly into the caller's
descriptor vector and Jacobian; the Jacobian is addressed through a
(num_basis, 1 + num_neighbors, 3) view whose block 0 is the central atom.

References
----------
    J. Behler, J. Chem. Phys. 134 (2011) 074106
"""

from typing import Sequence, Tuple, Union

import torch
import torch.nn as nn

from .cutoff import CutoffFunction
from .neighbors import NeighborSnapshot

__all__ = [
    'CHI0_THRESHOLD',
    'pair_index',
    'radial_slot',
    'angular_slot',
    'canonical_pairs',
    'RadialBasis',
    'AngularBasis',
]

# angular terms with 1 + lambda*cos(theta) below this value are skipped
CHI0_THRESHOLD = 1.0e-6

# branch 0 is lambda = +1, branch 1 is lambda = -1
LAMBDAS = (1.0, -1.0)

Index = Union[int, torch.Tensor]


def pair_index(elem1: Index, elem2: Index) -> Index:
    """
    Packed lower-triangular index of an unordered element pair.

    For e1 <= e2 the index is e1 + e2*(e2 + 1)/2, so that with three
    elements the pairs (0,0), (0,1), (1,1), (0,2), (1,2), (2,2) map to
    0..5. The arguments may be given in either order.

    Args:
        elem1, elem2: element indices (ints or long tensors)

    Returns
    -------
        Pair index of the same kind as the input
    """
    if torch.is_tensor(elem1) or torch.is_tensor(elem2):
        elem1 = torch.as_tensor(elem1)
        elem2 = torch.as_tensor(elem2, device=elem1.device)
        lo = torch.minimum(elem1, elem2)
        hi = torch.maximum(elem1, elem2)
    else:
        lo, hi = min(elem1, elem2), max(elem1, elem2)
    return lo + hi * (hi + 1) // 2


def radial_slot(mode: Index, element: Index, size_rad: int) -> Index:
    """Descriptor slot of radial `mode` for a neighbor of `element`."""
    return mode + element * size_rad


def angular_slot(mode: Index, branch: Index, pair: Index,
                 size_ang: int, num_rad_basis: int) -> Index:
    """
    Descriptor slot of an angular term.

    Args:
        mode: angular mode index in [0, size_ang)
        branch: 0 for lambda = +1, 1 for lambda = -1
        pair: packed element pair index (see `pair_index`)
        size_ang: number of angular modes
        num_rad_basis: length of the radial segment preceding the
          angular one
    """
    return num_rad_basis + mode + branch * size_ang + pair * 2 * size_ang


def canonical_pairs(
    elements: torch.Tensor
) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Select every unordered pair of distinct neighbors exactly once.

    A pair (i, j) is kept unless element(i) > element(j), or the elements
    are equal and i >= j. The first returned neighbor therefore always
    has the smaller (or equal) element index.

    Args:
        elements: (N,) element indices of the neighbors

    Returns
    -------
        first, second: (P,) local neighbor indices of the selected pairs
    """
    n = elements.shape[0]
    idx = torch.arange(n, device=elements.device)
    first, second = torch.meshgrid(idx, idx, indexing='ij')
    e1 = elements[first]
    e2 = elements[second]
    keep = (e1 < e2) | ((e1 == e2) & (first < second))
    return first[keep], second[keep]


class RadialBasis(nn.Module):
    """
    Radial symmetry functions G = exp(-eta*(r - rs)^2) * fc(r).

    Parameters
    ----------
    eta : sequence of float
        Gaussian widths, one per radial mode
    shift : sequence of float
        Gaussian centers rs, one per radial mode
    cutoff : CutoffFunction
        Shared cutoff function
    dtype : torch.dtype, optional
        Data type for computations (default: torch.float64)
    """

    def __init__(
        self,
        eta: Sequence[float],
        shift: Sequence[float],
        cutoff: CutoffFunction,
        dtype: torch.dtype = torch.float64,
    ):
        super().__init__()
        self.cutoff = cutoff
        self.size = len(eta)
        self.register_buffer("eta", torch.tensor(eta, dtype=dtype))
        self.register_buffer("shift", torch.tensor(shift, dtype=dtype))

    def forward(self, distances: torch.Tensor) -> torch.Tensor:
        """
        Evaluate radial symmetry functions.

        Returns
        -------
        torch.Tensor
            Radial terms, shape (num_neighbors, size)
        """
        fc = self.cutoff(distances)
        dr = distances.unsqueeze(-1) - self.shift
        return torch.exp(-self.eta * dr * dr) * fc.unsqueeze(-1)

    def forward_with_derivatives(
        self, distances: torch.Tensor, vectors: torch.Tensor
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Evaluate radial terms and their derivatives w.r.t. the neighbor.

        Uses the product rule d(gau*fc)/dx = dgau/dx * fc + gau * dfc/dx
        with dgau/dx = -2*eta*(r - rs)*(x/r)*gau and dfc/dx = (x/r)*dfc/dr.

        Parameters
        ----------
        distances : torch.Tensor
            (N,) neighbor distances
        vectors : torch.Tensor
            (N, 3) displacement vectors

        Returns
        -------
        g : torch.Tensor
            (N, size) radial terms
        dg : torch.Tensor
            (N, size, 3) derivatives w.r.t. the neighbor coordinates; the
            derivative w.r.t. the central atom is -dg
        """
        fc, dfc_dr = self.cutoff.forward_with_derivatives(distances)
        unit = vectors / distances.unsqueeze(-1)             # (N, 3)

        dr = distances.unsqueeze(-1) - self.shift            # (N, K)
        gau = torch.exp(-self.eta * dr * dr)                 # (N, K)
        dgau_dr = -2.0 * self.eta * dr * gau                 # (N, K)

        g = gau * fc.unsqueeze(-1)
        dg_dr = dgau_dr * fc.unsqueeze(-1) + gau * dfc_dr.unsqueeze(-1)
        dg = dg_dr.unsqueeze(-1) * unit.unsqueeze(1)         # (N, K, 3)
        return g, dg

    def calculate(
        self,
        neighbors: NeighborSnapshot,
        descriptor: torch.Tensor,
        jacobian: torch.Tensor,
    ) -> None:
        """
        Accumulate the radial segment into descriptor and Jacobian.

        Args:
            neighbors: snapshot with at least one neighbor
            descriptor: (num_basis,) output vector
            jacobian: (num_basis, 1 + N, 3) view of the output Jacobian
        """
        n = len(neighbors)
        g, dg = self.forward_with_derivatives(
            neighbors.distances, neighbors.vectors)

        modes = torch.arange(self.size, device=descriptor.device)
        slots = radial_slot(modes.unsqueeze(0),
                            neighbors.elements.unsqueeze(-1),
                            self.size)                       # (N, K)
        blocks = torch.arange(1, n + 1, device=descriptor.device
                              ).unsqueeze(-1).expand_as(slots)
        center = torch.zeros_like(slots)

        descriptor.index_put_((slots,), g, accumulate=True)
        jacobian.index_put_((slots, blocks), dg, accumulate=True)
        jacobian.index_put_((slots, center), -dg, accumulate=True)


class AngularBasis(nn.Module):
    """
    Angular symmetry functions of neighbor pairs (j, k) of atom i.

    Implements, for each branch lambda = +1/-1 and mode (eta, zeta):
        G = 2^(1-zeta) * (1 + lambda*cos(theta_jik))^zeta
            * exp(-eta*(r_ij^2 + r_ik^2)) * fc(r_ij) * fc(r_ik)

    Terms with 1 + lambda*cos(theta) < CHI0_THRESHOLD are skipped, which
    avoids a fractional power of a non-positive base for (nearly)
    collinear triples.

    Parameters
    ----------
    eta : sequence of float
        Gaussian widths, one per angular mode
    zeta : sequence of float
        Angular exponents, one per angular mode
    cutoff : CutoffFunction
        Shared cutoff function
    offset : int
        Length of the radial segment preceding the angular one
    dtype : torch.dtype, optional
        Data type for computations (default: torch.float64)
    """

    def __init__(
        self,
        eta: Sequence[float],
        zeta: Sequence[float],
        cutoff: CutoffFunction,
        offset: int,
        dtype: torch.dtype = torch.float64,
    ):
        super().__init__()
        self.cutoff = cutoff
        self.offset = offset
        self.size = len(eta)
        self.register_buffer("eta", torch.tensor(eta, dtype=dtype))
        self.register_buffer("zeta", torch.tensor(zeta, dtype=dtype))
        # read-only prefactors 2^(1 - zeta)
        self.register_buffer(
            "prefactor", torch.pow(2.0, 1.0 - self.zeta))
        self.register_buffer(
            "lambdas", torch.tensor(LAMBDAS, dtype=dtype))

    def forward_with_derivatives(
        self,
        r1: torch.Tensor,
        v1: torch.Tensor,
        r2: torch.Tensor,
        v2: torch.Tensor,
    ):
        """
        Evaluate angular terms of neighbor pairs and their gradients.

        Parameters
        ----------
        r1, r2 : torch.Tensor
            (P,) distances of the first and second neighbor of each pair
        v1, v2 : torch.Tensor
            (P, 3) displacement vectors of the two neighbors

        Returns
        -------
        pair : torch.Tensor
            (M,) pair index (into the P pairs) of every retained term
        branch : torch.Tensor
            (M,) branch of every retained term (0: lambda=+1, 1: -1)
        g : torch.Tensor
            (M, size) angular terms
        dg1, dg2 : torch.Tensor
            (M, size, 3) derivatives w.r.t. the first and second neighbor

        Notes
        -----
        Only (pair, branch) combinations with 1 + lambda*cos(theta) >=
        CHI0_THRESHOLD are returned; all others contribute nothing.
        """
        fc1, dfc1_dr = self.cutoff.forward_with_derivatives(r1)
        fc2, dfc2_dr = self.cutoff.forward_with_derivatives(r2)
        dfc1 = (dfc1_dr / r1).unsqueeze(-1) * v1             # (P, 3)
        dfc2 = (dfc2_dr / r2).unsqueeze(-1) * v2             # (P, 3)

        fc12 = fc1 * fc2
        dfc12_1 = dfc1 * fc2.unsqueeze(-1)
        dfc12_2 = fc1.unsqueeze(-1) * dfc2

        # cos(theta) and its gradient w.r.t. both neighbors
        psi = (v1 * v2).sum(dim=-1) / r1 / r2
        coef0 = (1.0 / r1 / r2).unsqueeze(-1)
        coef1 = (psi / r1 / r1).unsqueeze(-1)
        coef2 = (psi / r2 / r2).unsqueeze(-1)
        dpsi1 = coef0 * v2 - coef1 * v1                      # (P, 3)
        dpsi2 = coef0 * v1 - coef2 * v2                      # (P, 3)

        chi0 = 1.0 + self.lambdas * psi.unsqueeze(-1)        # (P, 2)
        pair, branch = torch.nonzero(
            chi0 >= CHI0_THRESHOLD, as_tuple=True)

        chi0 = chi0[pair, branch].unsqueeze(-1)              # (M, 1)
        lam = self.lambdas[branch].unsqueeze(-1)             # (M, 1)
        chi = self.prefactor * torch.pow(chi0, self.zeta)    # (M, K)
        dchi_dpsi = self.zeta * lam * chi / chi0             # (M, K)

        rr = (r1 * r1 + r2 * r2)[pair].unsqueeze(-1)         # (M, 1)
        gau = torch.exp(-self.eta * rr)                      # (M, K)
        coefg = (-2.0 * self.eta * gau).unsqueeze(-1)        # (M, K, 1)

        fc12 = fc12[pair].unsqueeze(-1)                      # (M, 1)
        g = chi * gau * fc12

        # product rule over angular, Gaussian and cutoff factors
        a = (dchi_dpsi * gau * fc12).unsqueeze(-1)
        b = (chi * fc12).unsqueeze(-1)
        c = (chi * gau).unsqueeze(-1)
        dg1 = (a * dpsi1[pair].unsqueeze(1)
               + b * coefg * v1[pair].unsqueeze(1)
               + c * dfc12_1[pair].unsqueeze(1))
        dg2 = (a * dpsi2[pair].unsqueeze(1)
               + b * coefg * v2[pair].unsqueeze(1)
               + c * dfc12_2[pair].unsqueeze(1))
        return pair, branch, g, dg1, dg2

    def calculate(
        self,
        neighbors: NeighborSnapshot,
        descriptor: torch.Tensor,
        jacobian: torch.Tensor,
    ) -> None:
        """
        Accumulate the angular segment into descriptor and Jacobian.

        Args:
            neighbors: snapshot with at least two neighbors
            descriptor: (num_basis,) output vector
            jacobian: (num_basis, 1 + N, 3) view of the output Jacobian
        """
        first, second = canonical_pairs(neighbors.elements)
        if first.numel() == 0:
            return

        r, v = neighbors.distances, neighbors.vectors
        pair, branch, g, dg1, dg2 = self.forward_with_derivatives(
            r[first], v[first], r[second], v[second])
        if pair.numel() == 0:
            return

        elements = neighbors.elements
        packed = pair_index(elements[first], elements[second])[pair]
        modes = torch.arange(self.size, device=descriptor.device)
        slots = angular_slot(modes.unsqueeze(0),
                             branch.unsqueeze(-1),
                             packed.unsqueeze(-1),
                             self.size, self.offset)         # (M, K)
        block1 = (first[pair] + 1).unsqueeze(-1).expand_as(slots)
        block2 = (second[pair] + 1).unsqueeze(-1).expand_as(slots)
        center = torch.zeros_like(slots)

        descriptor.index_put_((slots,), g, accumulate=True)
        jacobian.index_put_((slots, block1), dg1, accumulate=True)
        jacobian.index_put_((slots, block2), dg2, accumulate=True)
        jacobian.index_put_((slots, center), -(dg1 + dg2), accumulate=True)
