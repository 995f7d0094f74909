"""
Featurization of complete (isolated) atomic structures.

Builds per-atom neighbor snapshots with a brute-force distance search,
evaluates a symmetry-function engine for every atom and chains per-atom
energy derivatives through the descriptor Jacobians into atomic forces.
Periodic structures and large systems are expected to be handled by the
host simulation engine, which supplies the neighbor snapshots directly.
"""

import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import torch
from tqdm import tqdm

from ..exceptions import InputError
from ..log import logger
from .neighbors import NeighborSnapshot, as_element_indices
from .symmfunc import SymmFunc

__all__ = [
    'AtomicFeatures',
    'StructureFeaturizer',
    'descriptor_matrix',
    'backpropagate_forces',
]


@dataclass
class AtomicFeatures:
    """
    Descriptor of one atom together with its Jacobian.

    Parameters
    ----------
    descriptor : torch.Tensor
        (num_basis,) descriptor vector
    jacobian : torch.Tensor
        (num_basis, 3*(1 + N)) Jacobian; block 0 is the atom itself and
        block k >= 1 the atom neighbor_indices[k-1]
    neighbor_indices : torch.Tensor
        (N,) global indices of the neighbors in the structure
    """
    descriptor: torch.Tensor
    jacobian: torch.Tensor
    neighbor_indices: torch.Tensor

    @property
    def num_neighbors(self) -> int:
        return self.neighbor_indices.shape[0]


class StructureFeaturizer(object):
    """
    Evaluate a symmetry-function engine for every atom of a structure.

    Parameters
    ----------
    symmfunc : SymmFunc
        Descriptor engine; shared read-only by all workers
    num_workers : int, optional
        Number of worker threads. The default of 0 evaluates atoms
        sequentially in the calling thread.
    progress : bool, optional
        Show a tqdm progress bar over atoms (default: False)

    Examples
    --------
    >>> featurizer = StructureFeaturizer(SymmFuncBehler(config))
    >>> features = featurizer.featurize(positions, elements)
    >>> G = descriptor_matrix(features)
    """

    def __init__(self, symmfunc: SymmFunc, num_workers: int = 0,
                 progress: bool = False, **kwargs):
        for arg in kwargs:
            warnings.warn("unknown keyword `{}` ignored".format(arg))
        if num_workers < 0:
            raise ValueError(
                f"num_workers must be >= 0, got {num_workers}")
        self.symmfunc = symmfunc
        self.num_workers = num_workers
        self.progress = progress

    def _as_structure(
        self, positions, elements
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        if positions is None or elements is None:
            raise InputError("positions or elements are not set.")
        if not torch.is_tensor(positions):
            positions = np.asarray(positions, dtype=np.float64)
        positions = torch.as_tensor(
            positions, dtype=self.symmfunc.dtype, device=self.symmfunc.device)
        elements = as_element_indices(elements, device=positions.device)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise InputError(
                f"positions must be (N, 3), got {tuple(positions.shape)}")
        if elements.shape[0] != positions.shape[0]:
            raise InputError(
                f"elements length ({elements.shape[0]}) must match "
                f"positions length ({positions.shape[0]})")
        return positions, elements

    def build_neighbors(
        self, positions, elements
    ) -> Tuple[List[NeighborSnapshot], List[torch.Tensor]]:
        """
        Neighbor snapshots of every atom of an isolated structure.

        Neighbors of atom i are all atoms j != i with 0 < r_ij <= Rc, in
        ascending order of j. Displacements point from i to j.

        Args:
            positions: (N, 3) Cartesian coordinates
            elements: (N,) element indices

        Returns
        -------
            snapshots: list of N NeighborSnapshot objects
            neighbor_indices: list of N (nnb_i,) long tensors
        """
        positions, elements = self._as_structure(positions, elements)
        rc = self.symmfunc.cutoff_radius

        # vectors[i, j] = positions[j] - positions[i]
        vectors = positions.unsqueeze(0) - positions.unsqueeze(1)
        distances = torch.linalg.norm(vectors, dim=-1)
        within = (distances > 0.0) & (distances <= rc)

        snapshots = []
        neighbor_indices = []
        for i in range(positions.shape[0]):
            idx = torch.nonzero(within[i], as_tuple=True)[0]
            snapshots.append(NeighborSnapshot(
                distances=distances[i, idx],
                vectors=vectors[i, idx],
                elements=elements[idx],
            ))
            neighbor_indices.append(idx)
        return snapshots, neighbor_indices

    def featurize(self, positions, elements) -> List[AtomicFeatures]:
        """
        Descriptors and Jacobians of all atoms of a structure.

        Args:
            positions: (N, 3) Cartesian coordinates
            elements: (N,) element indices

        Returns
        -------
            List of N AtomicFeatures, in atom order
        """
        snapshots, neighbor_indices = self.build_neighbors(
            positions, elements)
        n_atoms = len(snapshots)

        def evaluate(i: int) -> AtomicFeatures:
            # every call owns its output buffers
            descriptor, jacobian = self.symmfunc(snapshots[i])
            return AtomicFeatures(descriptor, jacobian, neighbor_indices[i])

        if self.num_workers > 0:
            with ThreadPoolExecutor(max_workers=self.num_workers) as pool:
                results = list(tqdm(pool.map(evaluate, range(n_atoms)),
                                    total=n_atoms, desc="Featurizing",
                                    ncols=80, disable=not self.progress))
        else:
            results = [evaluate(i) for i in tqdm(
                range(n_atoms), desc="Featurizing", ncols=80,
                disable=not self.progress)]

        logger.debug(
            "Featurized %d atoms (%d neighbors in total, %d workers)",
            n_atoms, sum(r.num_neighbors for r in results), self.num_workers)
        return results


def descriptor_matrix(features: Sequence[AtomicFeatures]) -> torch.Tensor:
    """Stack per-atom descriptors into an (n_atoms, num_basis) matrix."""
    if len(features) == 0:
        raise InputError("no atomic features given.")
    return torch.stack([f.descriptor for f in features])


def backpropagate_forces(
    features: Sequence[AtomicFeatures],
    dE_dG,
    n_atoms: Optional[int] = None,
) -> torch.Tensor:
    """
    Chain descriptor derivatives of the energy into atomic forces.

    For every atom i the derivative dE/dG_i (e.g. from a neural network)
    is contracted with the Jacobian of G_i, and the resulting coordinate
    gradients are scattered onto atom i and its neighbors:

        F_k = - sum_i  dE/dG_i . dG_i/dr_k

    Args:
        features: per-atom features as returned by
          StructureFeaturizer.featurize
        dE_dG: (n_features_atoms, num_basis) energy derivatives
        n_atoms: number of atoms of the structure (default:
          len(features))

    Returns
    -------
        forces: (n_atoms, 3) tensor; the forces sum to zero
    """
    if n_atoms is None:
        n_atoms = len(features)
    if len(features) == 0:
        raise InputError("no atomic features given.")

    ref = features[0].jacobian
    dE_dG = torch.as_tensor(dE_dG, dtype=ref.dtype, device=ref.device)
    if dE_dG.shape != (len(features), ref.shape[0]):
        raise InputError(
            f"dE_dG must be ({len(features)}, {ref.shape[0]}), "
            f"got {tuple(dE_dG.shape)}")

    forces = torch.zeros(n_atoms, 3, dtype=ref.dtype, device=ref.device)
    for i, feat in enumerate(features):
        grad = (dE_dG[i] @ feat.jacobian).view(-1, 3)        # (1 + N, 3)
        forces[i] -= grad[0]
        forces.index_add_(0, feat.neighbor_indices, -grad[1:])
    return forces
