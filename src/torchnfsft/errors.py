"""Exceptions raised by plans, evaluators and the precomputation cache."""

from __future__ import annotations


class NFSFTError(Exception):
    """Base class for all torchnfsft errors."""


class InvalidParameterError(NFSFTError, ValueError):
    """Bad bandwidth, node count, configuration or caller-supplied buffer."""


class DirectAlgorithmDisabledError(NFSFTError, RuntimeError):
    """A direct transform was requested on a plan that disables direct algorithms."""


class FastAlgorithmDisabledError(NFSFTError, RuntimeError):
    """A fast transform was requested on a plan that disables fast algorithms."""


class MissingPrecomputationError(NFSFTError, LookupError):
    """No cache entry covers the plan's bandwidth for the fast polynomial stage."""

    def __init__(self, bandwidth: int, threshold: float | None = None):
        self.bandwidth = int(bandwidth)
        self.threshold = threshold
        msg = f"no precomputed data for bandwidth {self.bandwidth}"
        if threshold is not None:
            msg += f" at threshold {threshold:g}"
        super().__init__(msg + "; call PrecomputationCache.precompute first")
