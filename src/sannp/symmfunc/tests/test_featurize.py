"""
Tests for structure featurization and force back-propagation.
"""

import numpy as np
import pytest
import torch

from sannp.config import BasisConfig
from sannp.exceptions import InputError
from sannp.symmfunc import (
    NeighborSnapshot,
    StructureFeaturizer,
    SymmFuncBehler,
    backpropagate_forces,
    descriptor_matrix,
)


@pytest.fixture
def symmfunc():
    config = BasisConfig(
        num_elements=2,
        size_rad=3,
        size_ang=2,
        cutoff_radius=3.0,
        radial_eta=[0.5, 1.0, 2.0],
        radial_shift=[0.0, 1.0, 2.0],
        angular_eta=[0.05, 0.3],
        angular_zeta=[1.0, 3.0],
    )
    return SymmFuncBehler(config)


@pytest.fixture
def water_dimer():
    """Two water molecules about 2.9 Angstrom apart (O=0, H=1)."""
    positions = torch.tensor(
        [
            [0.00, 0.00, 0.00],   # O
            [0.96, 0.00, 0.00],   # H
            [-0.24, 0.93, 0.00],  # H
            [2.90, 0.15, 0.30],   # O
            [3.40, 0.90, 0.05],   # H
            [3.30, -0.55, 0.85],  # H
        ],
        dtype=torch.float64,
    )
    elements = [0, 1, 1, 0, 1, 1]
    return positions, elements


def total_energy(featurizer, weights, positions, elements):
    """Linear model E = sum_i w . G_i used for force checks."""
    G = descriptor_matrix(featurizer.featurize(positions, elements))
    return (G * weights).sum()


class TestBuildNeighbors:

    def test_neighbors_within_cutoff(self, symmfunc, water_dimer):
        positions, elements = water_dimer
        featurizer = StructureFeaturizer(symmfunc)
        snapshots, indices = featurizer.build_neighbors(positions, elements)

        assert len(snapshots) == len(indices) == 6
        distances = torch.cdist(positions, positions)
        for i, (snap, idx) in enumerate(zip(snapshots, indices)):
            expected = [j for j in range(6)
                        if j != i and distances[i, j] <= 3.0]
            assert idx.tolist() == expected
            assert len(snap) == len(expected)
            assert torch.allclose(snap.distances, distances[i, idx])
            assert torch.allclose(snap.vectors,
                                  positions[idx] - positions[i])
            assert snap.elements.tolist() == [elements[j] for j in expected]

    def test_isolated_atom(self, symmfunc):
        featurizer = StructureFeaturizer(symmfunc)
        snapshots, indices = featurizer.build_neighbors(
            [[0.0, 0.0, 0.0], [10.0, 0.0, 0.0]], [0, 1])
        assert all(len(s) == 0 for s in snapshots)
        assert all(idx.numel() == 0 for idx in indices)

    def test_accepts_numpy_input(self, symmfunc, water_dimer):
        positions, elements = water_dimer
        featurizer = StructureFeaturizer(symmfunc)
        s1, _ = featurizer.build_neighbors(positions, elements)
        s2, _ = featurizer.build_neighbors(positions.numpy(),
                                           np.array(elements))
        for a, b in zip(s1, s2):
            assert torch.equal(a.vectors, b.vectors)

    @pytest.mark.parametrize("positions, elements", [
        (None, [0]),
        ([[0.0, 0.0, 0.0]], None),
        ([[0.0, 0.0]], [0]),
        ([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]], [0]),
        ([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]], [0.0, 1.5]),
    ])
    def test_invalid_structure(self, symmfunc, positions, elements):
        featurizer = StructureFeaturizer(symmfunc)
        with pytest.raises(InputError):
            featurizer.build_neighbors(positions, elements)


class TestFeaturize:

    def test_matches_single_atom_engine(self, symmfunc, water_dimer):
        positions, elements = water_dimer
        features = StructureFeaturizer(symmfunc).featurize(
            positions, elements)
        assert len(features) == 6

        i = 3
        idx = features[i].neighbor_indices
        snapshot = NeighborSnapshot.from_positions(
            positions[i], positions[idx],
            [elements[j] for j in idx.tolist()])
        descriptor, jacobian = symmfunc(snapshot)
        assert torch.allclose(features[i].descriptor, descriptor,
                              rtol=1e-13, atol=1e-15)
        assert torch.allclose(features[i].jacobian, jacobian,
                              rtol=1e-12, atol=1e-14)

    def test_thread_pool_gives_identical_results(self, symmfunc,
                                                 water_dimer):
        positions, elements = water_dimer
        serial = StructureFeaturizer(symmfunc).featurize(
            positions, elements)
        threaded = StructureFeaturizer(symmfunc, num_workers=3).featurize(
            positions, elements)
        for a, b in zip(serial, threaded):
            assert torch.equal(a.descriptor, b.descriptor)
            assert torch.equal(a.jacobian, b.jacobian)
            assert torch.equal(a.neighbor_indices, b.neighbor_indices)

    def test_descriptor_matrix(self, symmfunc, water_dimer):
        positions, elements = water_dimer
        features = StructureFeaturizer(symmfunc, progress=True).featurize(
            positions, elements)
        G = descriptor_matrix(features)
        assert G.shape == (6, symmfunc.num_basis)
        assert torch.equal(G[2], features[2].descriptor)

    def test_descriptor_matrix_empty(self):
        with pytest.raises(InputError):
            descriptor_matrix([])

    def test_negative_workers(self, symmfunc):
        with pytest.raises(ValueError):
            StructureFeaturizer(symmfunc, num_workers=-1)

    def test_unknown_keyword_warns(self, symmfunc):
        with pytest.warns(UserWarning, match="unknown keyword"):
            StructureFeaturizer(symmfunc, batch_size=16)


class TestBackpropagateForces:

    @pytest.fixture
    def weights(self, symmfunc):
        generator = torch.Generator().manual_seed(7)
        return torch.randn(symmfunc.num_basis, generator=generator,
                           dtype=torch.float64)

    def test_forces_sum_to_zero(self, symmfunc, water_dimer, weights):
        positions, elements = water_dimer
        features = StructureFeaturizer(symmfunc).featurize(
            positions, elements)
        dE_dG = weights.expand(len(features), -1)
        forces = backpropagate_forces(features, dE_dG)

        assert forces.shape == (6, 3)
        assert torch.any(forces != 0.0)
        assert torch.allclose(forces.sum(dim=0),
                              torch.zeros(3, dtype=torch.float64),
                              atol=1e-10)

    def test_forces_match_finite_differences(self, symmfunc, water_dimer,
                                             weights):
        positions, elements = water_dimer
        featurizer = StructureFeaturizer(symmfunc)
        features = featurizer.featurize(positions, elements)
        forces = backpropagate_forces(
            features, weights.expand(len(features), -1))

        epsilon = 1e-5
        for atom in range(6):
            for coord in range(3):
                pos_forward = positions.clone()
                pos_forward[atom, coord] += epsilon
                pos_backward = positions.clone()
                pos_backward[atom, coord] -= epsilon
                e_forward = total_energy(
                    featurizer, weights, pos_forward, elements)
                e_backward = total_energy(
                    featurizer, weights, pos_backward, elements)
                numerical = -(e_forward - e_backward) / (2.0 * epsilon)
                assert forces[atom, coord].item() == pytest.approx(
                    numerical.item(), rel=1e-6, abs=1e-8)

    def test_wrong_derivative_shape(self, symmfunc, water_dimer):
        positions, elements = water_dimer
        features = StructureFeaturizer(symmfunc).featurize(
            positions, elements)
        with pytest.raises(InputError):
            backpropagate_forces(
                features, torch.zeros(5, symmfunc.num_basis))

    def test_no_features(self):
        with pytest.raises(InputError):
            backpropagate_forces([], torch.zeros(0, 3))
