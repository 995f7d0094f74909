"""
Symmetry-adapted neural network potential descriptors.

"""

from .config import BasisConfig
from .exceptions import ConfigurationError, InputError

__all__ = ["BasisConfig", "ConfigurationError", "InputError"]
