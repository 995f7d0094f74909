"""
Tests for the symmetry-function basis configuration.
"""

import dataclasses

import numpy as np
import pytest

from sannp.config import BasisConfig
from sannp.exceptions import ConfigurationError


def make_params(**overrides):
    params = dict(
        num_elements=2,
        size_rad=3,
        size_ang=2,
        cutoff_radius=6.0,
        radial_eta=[0.5, 1.0, 2.0],
        radial_shift=[0.0, 1.0, 2.0],
        angular_eta=[0.01, 0.1],
        angular_zeta=[1.0, 4.0],
    )
    params.update(overrides)
    return params


class TestBasisConfig:

    def test_basis_sizes(self):
        config = BasisConfig(**make_params())
        assert config.num_pairs == 3
        assert config.num_rad_basis == 6
        # 2 modes * 2 branches * 3 element pairs
        assert config.num_ang_basis == 12
        assert config.num_basis == 18

    def test_basis_sizes_three_elements(self):
        config = BasisConfig(**make_params(num_elements=3))
        assert config.num_pairs == 6
        assert config.num_basis == 3 * 3 + 2 * 2 * 6

    def test_radial_only(self):
        config = BasisConfig(**make_params(
            size_ang=0, angular_eta=None, angular_zeta=None))
        assert config.num_ang_basis == 0
        assert config.num_basis == config.num_rad_basis
        assert config.angular_eta == ()
        assert config.angular_zeta == ()

    def test_arrays_are_coerced_to_tuples(self):
        config = BasisConfig(**make_params(
            radial_eta=np.array([0.5, 1.0, 2.0])))
        assert config.radial_eta == (0.5, 1.0, 2.0)
        assert isinstance(config.radial_shift, tuple)

    def test_immutable(self):
        config = BasisConfig(**make_params())
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.cutoff_radius = 3.0

    @pytest.mark.parametrize("overrides", [
        {"size_rad": 0},
        {"size_ang": -1},
        {"cutoff_radius": 0.0},
        {"cutoff_radius": -1.0},
        {"num_elements": 0},
        {"radial_eta": None},
        {"radial_shift": None},
        {"angular_eta": None},
        {"angular_zeta": None},
        {"radial_eta": [0.5, 1.0]},
        {"angular_zeta": [1.0, 2.0, 4.0]},
        {"radial_shift": [[0.0, 1.0, 2.0]]},
        {"angular_eta": [0.01, float("nan")]},
        {"num_elements": None},
        {"size_rad": None},
        {"size_ang": None},
        {"cutoff_radius": None},
        {"size_rad": 1.5},
        {"size_ang": 2.0},
        {"num_elements": True},
        {"cutoff_radius": float("inf")},
        {"cutoff_radius": "6.0"},
        {"radial_eta": ["a", "b", "c"]},
    ])
    def test_invalid_configuration(self, overrides):
        with pytest.raises(ConfigurationError):
            BasisConfig(**make_params(**overrides))

    def test_numpy_scalars_accepted(self):
        config = BasisConfig(**make_params(
            num_elements=np.int64(2), size_rad=np.int32(3),
            cutoff_radius=np.float64(6.0)))
        assert config.num_elements == 2
        assert type(config.size_rad) is int
        assert type(config.cutoff_radius) is float

    def test_missing_cutoff_message(self):
        with pytest.raises(ConfigurationError, match="cutoff radius"):
            BasisConfig(**make_params(cutoff_radius=None))

    def test_error_message(self):
        with pytest.raises(ConfigurationError) as excinfo:
            BasisConfig(**make_params(cutoff_radius=0.0))
        assert "cutoff radius" in excinfo.value.msg
        assert "cutoff radius" in str(excinfo.value)

    def test_from_dict(self):
        config = BasisConfig.from_dict(make_params())
        assert config == BasisConfig(**make_params())

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError, match="Unknown"):
            BasisConfig.from_dict(make_params(radial_cutoff=4.0))

    def test_from_dict_missing_key(self):
        params = make_params()
        del params["cutoff_radius"]
        with pytest.raises(ConfigurationError, match="Missing"):
            BasisConfig.from_dict(params)
