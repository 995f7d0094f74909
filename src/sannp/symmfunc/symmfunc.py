"""
Symmetry-function descriptor engines.

An engine maps the neighbor snapshot of one central atom to a descriptor
vector and to the Jacobian of that vector with respect to the Cartesian
coordinates of the central atom and of every neighbor.
"""

import abc
import warnings
from typing import Optional, Sequence, Tuple, Union

import torch
import torch.nn as nn

from ..config import BasisConfig
from ..exceptions import InputError
from ..log import logger
from .basis import AngularBasis, RadialBasis
from .cutoff import CutoffFunction
from .neighbors import Neighbor, NeighborSnapshot

__author__ = "The sannp developers"
__date__ = "2026-10-17"

__all__ = ['SymmFunc', 'SymmFuncBehler']


class SymmFunc(nn.Module, metaclass=abc.ABCMeta):
    """
    Common interface of symmetry-function families.

    Output buffers are owned by the caller: `calculate` zero-fills and
    writes into them but never reallocates or keeps them. Engines hold
    only read-only configuration, so one instance can serve concurrent
    calls as long as each call gets its own buffers.

    Parameters
    ----------
    num_elements : int
        Number of chemical elements
    cutoff_radius : float
        Radius beyond which neighbors do not contribute
    device : str, optional
        'cpu' or 'cuda' (default: 'cpu')
    dtype : torch.dtype, optional
        Data type of the outputs (default: torch.float64)
    """

    def __init__(self, num_elements: int, cutoff_radius: float,
                 device: str = "cpu", dtype: torch.dtype = torch.float64):
        super().__init__()
        self.num_elements = num_elements
        self.cutoff_radius = cutoff_radius
        self.device = device
        self.dtype = dtype

    @property
    @abc.abstractmethod
    def num_basis(self) -> int:
        """Length of the descriptor vector."""

    @abc.abstractmethod
    def calculate(
        self,
        neighbors: NeighborSnapshot,
        descriptor: torch.Tensor,
        jacobian: torch.Tensor,
    ) -> None:
        """Fill caller-owned descriptor and Jacobian buffers."""

    def jacobian_shape(self, num_neighbors: int) -> Tuple[int, int]:
        """Shape (num_basis, 3*(1 + num_neighbors)) of the Jacobian."""
        return (self.num_basis, 3 * (1 + num_neighbors))

    def allocate(
        self, num_neighbors: int
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Allocate zeroed output buffers for `num_neighbors` neighbors.

        Returns
        -------
            descriptor: (num_basis,) tensor
            jacobian: (num_basis, 3*(1 + num_neighbors)) tensor
        """
        descriptor = torch.zeros(self.num_basis, dtype=self.dtype,
                                 device=self.device)
        jacobian = torch.zeros(self.jacobian_shape(num_neighbors),
                               dtype=self.dtype, device=self.device)
        return descriptor, jacobian

    def as_snapshot(self, neighbors) -> NeighborSnapshot:
        """
        Return `neighbors` as a NeighborSnapshot.

        Sequences of Neighbor records are converted to the engine dtype
        and device; snapshots are returned unchanged.
        """
        if neighbors is None:
            raise InputError("neighbor is null.")
        if isinstance(neighbors, NeighborSnapshot):
            return neighbors
        return NeighborSnapshot.from_neighbors(
            neighbors, dtype=self.dtype, device=self.device)

    def forward(
        self, neighbors: Union[NeighborSnapshot, Sequence[Neighbor]]
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Compute descriptor and Jacobian into freshly allocated buffers.

        Returns
        -------
            descriptor: (num_basis,) tensor
            jacobian: (num_basis, 3*(1 + N)) tensor where
                      jacobian[b, 3*k + a] = dG[b]/dx_a of atom k, with
                      k = 0 the central atom and k >= 1 neighbor k-1
        """
        neighbors = self.as_snapshot(neighbors)
        descriptor, jacobian = self.allocate(len(neighbors))
        self.calculate(neighbors, descriptor, jacobian)
        return descriptor, jacobian

    def _check_buffers(
        self,
        neighbors: Optional[NeighborSnapshot],
        descriptor: Optional[torch.Tensor],
        jacobian: Optional[torch.Tensor],
    ) -> None:
        if neighbors is None:
            raise InputError("neighbor is null.")

        if descriptor is None:
            raise InputError("descriptor buffer is null.")

        if jacobian is None:
            raise InputError("jacobian buffer is null.")

        if descriptor.shape != (self.num_basis,):
            raise InputError(
                f"descriptor buffer must be ({self.num_basis},), "
                f"got {tuple(descriptor.shape)}")

        expected = self.jacobian_shape(len(neighbors))
        if tuple(jacobian.shape) != expected:
            raise InputError(
                f"jacobian buffer must be {expected}, "
                f"got {tuple(jacobian.shape)}")

        if not jacobian.is_contiguous():
            raise InputError("jacobian buffer is not contiguous.")

        if descriptor.dtype != self.dtype or jacobian.dtype != self.dtype:
            raise InputError(
                f"output buffers must have dtype {self.dtype}, got "
                f"{descriptor.dtype} and {jacobian.dtype}")

        if len(neighbors) > 0:
            elements = neighbors.elements
            if (elements.min() < 0
                    or elements.max() >= self.num_elements):
                raise InputError(
                    "element index out of range [0, {}).".format(
                        self.num_elements))


class SymmFuncBehler(SymmFunc):
    """
    Behler radial and angular symmetry functions.

    The descriptor has num_elements*size_rad radial components followed
    by size_ang*2*num_elements*(num_elements + 1)/2 angular components.

    Parameters
    ----------
    config : BasisConfig
        Validated basis parameters
    device : str, optional
        'cpu' or 'cuda' (default: 'cpu')
    dtype : torch.dtype, optional
        Data type of the outputs (default: torch.float64)

    Examples
    --------
    >>> from sannp import BasisConfig
    >>> from sannp.symmfunc import Neighbor, NeighborSnapshot, SymmFuncBehler
    >>> config = BasisConfig(num_elements=1, size_rad=1, size_ang=0,
    ...                      cutoff_radius=5.0, radial_eta=[1.0],
    ...                      radial_shift=[0.0])
    >>> sf = SymmFuncBehler(config)
    >>> nbs = NeighborSnapshot.from_neighbors(
    ...     [Neighbor(2.0, 2.0, 0.0, 0.0, 0)])
    >>> descriptor, jacobian = sf(nbs)
    """

    def __init__(
        self,
        config: BasisConfig,
        device: str = "cpu",
        dtype: torch.dtype = torch.float64,
    ):
        super().__init__(config.num_elements, config.cutoff_radius,
                         device=device, dtype=dtype)
        self.config = config

        self.size_rad = config.size_rad
        self.size_ang = config.size_ang
        self.num_rad_basis = config.num_rad_basis
        self.num_ang_basis = config.num_ang_basis
        self._num_basis = config.num_basis

        self.cutoff = CutoffFunction(config.cutoff_radius)

        self.rad_basis = RadialBasis(
            eta=config.radial_eta,
            shift=config.radial_shift,
            cutoff=self.cutoff,
            dtype=dtype,
        )

        if self.size_ang > 0:
            self.ang_basis = AngularBasis(
                eta=config.angular_eta,
                zeta=config.angular_zeta,
                cutoff=self.cutoff,
                offset=self.num_rad_basis,
                dtype=dtype,
            )
        else:
            self.ang_basis = None

        self.to(device)

        logger.debug(
            "Behler symmetry functions: %d elements, %d basis functions "
            "(%d radial, %d angular), Rc = %g",
            self.num_elements, self._num_basis, self.num_rad_basis,
            self.num_ang_basis, self.cutoff_radius)

    @property
    def num_basis(self) -> int:
        return self._num_basis

    def calculate(
        self,
        neighbors: Union[NeighborSnapshot, Sequence[Neighbor]],
        descriptor: torch.Tensor,
        jacobian: torch.Tensor,
    ) -> None:
        """
        Compute the descriptor and its Jacobian for one central atom.

        Args:
            neighbors: neighbors of the central atom inside the cutoff,
              as a snapshot or a sequence of Neighbor records
            descriptor: (num_basis,) caller-owned output vector
            jacobian: (num_basis, 3*(1 + N)) caller-owned output matrix

        Raises
        ------
        InputError
            If neighbors or an output buffer is missing or mis-sized. The
            buffers are left untouched in that case.
        """
        neighbors = self.as_snapshot(neighbors)
        self._check_buffers(neighbors, descriptor, jacobian)

        descriptor.zero_()
        jacobian.zero_()

        n = len(neighbors)
        if n < 1:
            return

        if bool((neighbors.distances > self.cutoff_radius).any()):
            warnings.warn(
                "Neighbor distance beyond the cutoff radius "
                f"{self.cutoff_radius}; descriptor values are not "
                "meaningful for such neighbors.")

        neighbors = NeighborSnapshot(
            distances=neighbors.distances.to(
                device=descriptor.device, dtype=self.dtype),
            vectors=neighbors.vectors.to(
                device=descriptor.device, dtype=self.dtype),
            elements=neighbors.elements.to(device=descriptor.device),
        )
        blocks = jacobian.view(self._num_basis, 1 + n, 3)

        self.rad_basis.calculate(neighbors, descriptor, blocks)

        if n < 2 or self.ang_basis is None:
            return

        self.ang_basis.calculate(neighbors, descriptor, blocks)
