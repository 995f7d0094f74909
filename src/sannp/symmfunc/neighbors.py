"""
Neighbor snapshots of a single central atom.

A snapshot holds, for every neighbor inside the cutoff, the distance to the
central atom, the displacement vector (neighbor minus center) and the
element index. Neighbor order is defined by the caller and determines the
column blocks of the descriptor Jacobian.
"""

import operator
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

import numpy as np
import torch

from ..exceptions import InputError

__all__ = ['Neighbor', 'NeighborSnapshot', 'as_element_indices']


def _is_integer_dtype(dtype: torch.dtype) -> bool:
    return not (dtype.is_floating_point or dtype.is_complex
                or dtype == torch.bool)


def as_element_indices(elements, device=None) -> torch.Tensor:
    """
    Convert element indices to a flat long tensor.

    Raises
    ------
    InputError
        If the indices are not of an integer type.
    """
    if not torch.is_tensor(elements):
        elements = np.asarray(elements)
        if elements.size == 0:
            elements = elements.astype(np.int64)
        elif elements.dtype.kind not in 'iu':
            raise InputError(
                f"elements must be integer indices, got {elements.dtype}")
    elif not _is_integer_dtype(elements.dtype):
        raise InputError(
            f"elements must be integer indices, got {elements.dtype}")
    return torch.as_tensor(elements, device=device).to(torch.long).reshape(-1)


class Neighbor(NamedTuple):
    """Single neighbor record: distance, displacement and element index."""
    distance: float
    dx: float
    dy: float
    dz: float
    element: int


@dataclass
class NeighborSnapshot:
    """
    Neighbors of one central atom in tensor form.

    Parameters
    ----------
    distances : torch.Tensor
        (N,) distances to the central atom, all > 0
    vectors : torch.Tensor
        (N, 3) displacement vectors with |vectors[i]| == distances[i]
    elements : torch.Tensor
        (N,) long tensor of element indices
    """

    distances: torch.Tensor
    vectors: torch.Tensor
    elements: torch.Tensor

    def __post_init__(self):
        if (self.distances is None or self.vectors is None
                or self.elements is None):
            raise InputError("neighbor data is not set.")

        if self.distances.ndim != 1:
            raise InputError(
                f"distances must be (N,), got {tuple(self.distances.shape)}")

        n = self.distances.shape[0]
        if self.vectors.shape != (n, 3):
            raise InputError(
                f"vectors must be ({n}, 3), got {tuple(self.vectors.shape)}")

        if self.elements.shape != (n,):
            raise InputError(
                f"elements must be ({n},), got {tuple(self.elements.shape)}")

        if not _is_integer_dtype(self.elements.dtype):
            raise InputError(
                f"elements must be integer indices, got {self.elements.dtype}")
        if self.elements.dtype != torch.long:
            self.elements = self.elements.to(torch.long)

    def __len__(self) -> int:
        return self.distances.shape[0]

    @property
    def num_neighbors(self) -> int:
        return len(self)

    @classmethod
    def from_neighbors(
        cls,
        neighbors: Sequence[Neighbor],
        dtype: torch.dtype = torch.float64,
        device: str = "cpu",
    ) -> 'NeighborSnapshot':
        """
        Build a snapshot from a sequence of Neighbor records.

        Examples
        --------
        >>> snap = NeighborSnapshot.from_neighbors(
        ...     [Neighbor(2.0, 2.0, 0.0, 0.0, 0)])
        """
        if neighbors is None:
            raise InputError("neighbor is null.")
        try:
            rows = [tuple(nb) for nb in neighbors]
        except TypeError as exc:
            raise InputError(
                "neighbors must be a sequence of records.") from exc
        if any(len(r) != 5 for r in rows):
            raise InputError(
                "neighbor records must be (distance, dx, dy, dz, element).")
        try:
            indices = [operator.index(r[4]) for r in rows]
        except TypeError as exc:
            raise InputError("element index must be an integer.") from exc
        data = torch.tensor(
            [r[:4] for r in rows], dtype=dtype, device=device
        ).reshape(-1, 4)
        elements = torch.tensor(
            indices, dtype=torch.long, device=device)
        return cls(distances=data[:, 0].contiguous(),
                   vectors=data[:, 1:].contiguous(),
                   elements=elements)

    @classmethod
    def from_positions(
        cls,
        center,
        positions,
        elements,
        dtype: torch.dtype = torch.float64,
        device: Optional[str] = None,
    ) -> 'NeighborSnapshot':
        """
        Build a snapshot from Cartesian coordinates.

        Displacements are computed as positions - center, and distances
        as their norms. No cutoff filtering is applied.

        Args:
            center: (3,) position of the central atom
            positions: (N, 3) positions of the neighbors
            elements: (N,) element indices of the neighbors
            dtype: floating point type of the snapshot
            device: torch device (default: device of `positions`)
        """
        if not torch.is_tensor(positions):
            positions = np.asarray(positions, dtype=np.float64)
        positions = torch.as_tensor(positions, dtype=dtype)
        if device is not None:
            positions = positions.to(device)
        positions = positions.reshape(-1, 3)
        center = torch.as_tensor(center, dtype=dtype,
                                 device=positions.device).reshape(3)
        vectors = positions - center
        distances = torch.linalg.norm(vectors, dim=-1)
        elements = as_element_indices(elements, device=positions.device)
        return cls(distances=distances, vectors=vectors, elements=elements)
