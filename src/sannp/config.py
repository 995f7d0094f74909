"""
Configuration of the Behler symmetry-function basis.

The basis configuration is validated eagerly and is immutable once
constructed, so a single instance can be shared by every worker that
evaluates descriptors.
"""

import math
import numbers
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np

from .exceptions import ConfigurationError

__author__ = "The sannp developers"
__date__ = "2026-10-17"

__all__ = ['BasisConfig']


def _as_modes(name: str, values, size: int) -> Tuple[float, ...]:
    """Coerce per-mode parameters to a tuple of floats of length `size`."""
    try:
        arr = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} is not numeric.") from exc
    if arr.ndim != 1 or arr.shape[0] != size:
        raise ConfigurationError(
            f"{name} must have {size} entries, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} contains non-finite values")
    return tuple(float(v) for v in arr)


def _check_size(name: str, value) -> None:
    if value is None:
        raise ConfigurationError(f"{name} is missing.")
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigurationError(
            f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class BasisConfig:
    """
    Parameters of Behler-type radial and angular symmetry functions.

    Parameters
    ----------
    num_elements : int
        Number of chemical elements; neighbor element indices must lie in
        [0, num_elements).
    size_rad : int
        Number of radial modes per element (>= 1).
    size_ang : int
        Number of angular modes per element pair and branch (>= 0).
    cutoff_radius : float
        Cutoff radius Rc of the tanh^3 cutoff function (> 0).
    radial_eta, radial_shift : sequence of float
        Gaussian width and shift of each radial mode (length size_rad).
    angular_eta, angular_zeta : sequence of float, optional
        Gaussian width and angular exponent of each angular mode (length
        size_ang). Required when size_ang > 0.

    Raises
    ------
    ConfigurationError
        If sizes are not integers, non-positive or inconsistent, the
        cutoff is missing, non-finite or not positive, or a required
        parameter array is missing.
    """

    num_elements: int
    size_rad: int
    size_ang: int
    cutoff_radius: float
    radial_eta: Sequence[float]
    radial_shift: Sequence[float]
    angular_eta: Optional[Sequence[float]] = None
    angular_zeta: Optional[Sequence[float]] = None

    def __post_init__(self):
        _check_size("number of elements", self.num_elements)
        _check_size("size of radius basis", self.size_rad)
        _check_size("size of angle basis", self.size_ang)

        if self.cutoff_radius is None:
            raise ConfigurationError("cutoff radius is missing.")
        if (isinstance(self.cutoff_radius, bool)
                or not isinstance(self.cutoff_radius, numbers.Real)
                or not math.isfinite(self.cutoff_radius)):
            raise ConfigurationError(
                f"cutoff radius must be a finite number, "
                f"got {self.cutoff_radius!r}")

        if self.num_elements < 1:
            raise ConfigurationError("number of elements is not positive.")

        if self.size_rad < 1:
            raise ConfigurationError(
                "size of radius basis is not positive.")

        if self.size_ang < 0:
            raise ConfigurationError("size of angle basis is negative.")

        if not self.cutoff_radius > 0.0:
            raise ConfigurationError("cutoff radius is not positive.")

        if self.radial_eta is None:
            raise ConfigurationError("radial_eta is missing.")

        if self.radial_shift is None:
            raise ConfigurationError("radial_shift is missing.")

        if self.size_ang > 0 and self.angular_eta is None:
            raise ConfigurationError("angular_eta is missing.")

        if self.size_ang > 0 and self.angular_zeta is None:
            raise ConfigurationError("angular_zeta is missing.")

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, 'num_elements', int(self.num_elements))
        object.__setattr__(self, 'size_rad', int(self.size_rad))
        object.__setattr__(self, 'size_ang', int(self.size_ang))
        object.__setattr__(self, 'cutoff_radius', float(self.cutoff_radius))
        object.__setattr__(self, 'radial_eta', _as_modes(
            'radial_eta', self.radial_eta, self.size_rad))
        object.__setattr__(self, 'radial_shift', _as_modes(
            'radial_shift', self.radial_shift, self.size_rad))

        if self.size_ang > 0:
            object.__setattr__(self, 'angular_eta', _as_modes(
                'angular_eta', self.angular_eta, self.size_ang))
            object.__setattr__(self, 'angular_zeta', _as_modes(
                'angular_zeta', self.angular_zeta, self.size_ang))
        else:
            object.__setattr__(self, 'angular_eta', ())
            object.__setattr__(self, 'angular_zeta', ())

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> 'BasisConfig':
        """
        Create a configuration from a plain mapping of field names.

        Raises
        ------
        ConfigurationError
            If the mapping contains unknown keys or lacks required ones.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigurationError(
                "Unknown basis parameter(s): {}".format(", ".join(unknown)))
        required = {f.name for f in fields(cls)
                    if f.name not in ('angular_eta', 'angular_zeta')}
        missing = sorted(required - set(params))
        if missing:
            raise ConfigurationError(
                "Missing basis parameter(s): {}".format(", ".join(missing)))
        return cls(**params)

    @property
    def num_pairs(self) -> int:
        """Number of unordered element pairs, including identical ones."""
        return self.num_elements * (self.num_elements + 1) // 2

    @property
    def num_rad_basis(self) -> int:
        return self.size_rad * self.num_elements

    @property
    def num_ang_basis(self) -> int:
        return self.size_ang * 2 * self.num_pairs

    @property
    def num_basis(self) -> int:
        return self.num_rad_basis + self.num_ang_basis
