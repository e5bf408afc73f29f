"""
torchnfsft: spherical Fourier transforms at nonequispaced nodes for PyTorch

Evaluates truncated spherical-harmonic expansions at arbitrary points on the
sphere (NFSFT) and computes the adjoint, either exactly or with a fast
algorithm built on a stabilized polynomial transform and finufft.
"""

from .cache import CacheEntry, PrecomputationCache
from .config import (
    DEFAULT_NFFT_EPSILON,
    DEFAULT_THRESHOLD,
    BufferPolicy,
    Flags,
    FourierAlgorithm,
    Mutation,
    Normalization,
    PlanConfig,
    PolynomialAlgorithm,
)
from .direct import DirectEvaluator
from .errors import (
    DirectAlgorithmDisabledError,
    FastAlgorithmDisabledError,
    InvalidParameterError,
    MissingPrecomputationError,
    NFSFTError,
)
from .fast import FastEvaluator
from .index import (
    coefficient_buffer_size,
    coefficient_index,
    column_slice,
    next_power_of_two,
    normalization_weights,
    pack_coefficients,
    unpack_coefficients,
    valid_mask,
)
from .logging import set_log_level
from .metrics import max_abs_error, relative_error
from .plan import Plan
from .quadrature import equiangular_grid, gauss_legendre_grid, random_nodes
from .solver import solve_lsq

__version__ = "0.1.0"
__all__ = [
    # Plans and configuration
    "Plan", "PlanConfig", "BufferPolicy", "Flags",
    "Normalization", "FourierAlgorithm", "PolynomialAlgorithm", "Mutation",
    "DEFAULT_THRESHOLD", "DEFAULT_NFFT_EPSILON",
    # Evaluators and cache
    "DirectEvaluator", "FastEvaluator", "PrecomputationCache", "CacheEntry",
    # Index mapping
    "coefficient_index", "coefficient_buffer_size", "column_slice", "valid_mask",
    "next_power_of_two", "normalization_weights", "pack_coefficients", "unpack_coefficients",
    # Node sets, accuracy and inversion
    "gauss_legendre_grid", "equiangular_grid", "random_nodes",
    "relative_error", "max_abs_error", "solve_lsq",
    # Errors
    "NFSFTError", "InvalidParameterError", "DirectAlgorithmDisabledError",
    "FastAlgorithmDisabledError", "MissingPrecomputationError",
    "set_log_level",
]
