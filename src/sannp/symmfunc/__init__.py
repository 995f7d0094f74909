"""
Behler symmetry-function descriptors with analytical Jacobians.

The engine evaluates, for one central atom at a time, the descriptor
vector and its derivatives w.r.t. the coordinates of the central atom and
of all neighbors inside the cutoff radius.
"""

from .basis import (
    CHI0_THRESHOLD,
    AngularBasis,
    RadialBasis,
    angular_slot,
    canonical_pairs,
    pair_index,
    radial_slot,
)
from .cutoff import CutoffFunction
from .featurize import (
    AtomicFeatures,
    StructureFeaturizer,
    backpropagate_forces,
    descriptor_matrix,
)
from .neighbors import Neighbor, NeighborSnapshot
from .symmfunc import SymmFunc, SymmFuncBehler

__all__ = [
    "CHI0_THRESHOLD",
    "CutoffFunction",
    "RadialBasis",
    "AngularBasis",
    "pair_index",
    "radial_slot",
    "angular_slot",
    "canonical_pairs",
    "Neighbor",
    "NeighborSnapshot",
    "SymmFunc",
    "SymmFuncBehler",
    "AtomicFeatures",
    "StructureFeaturizer",
    "descriptor_matrix",
    "backpropagate_forces",
]
