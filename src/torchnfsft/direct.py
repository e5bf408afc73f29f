"""Direct (NDSFT) evaluation of spherical-harmonic expansions at arbitrary nodes."""

from __future__ import annotations

import math

import torch
from torch import Tensor

from .cache import CacheEntry, PrecomputationCache
from .config import PlanConfig
from .errors import DirectAlgorithmDisabledError
from .index import apply_normalization, column_slice, coefficient_buffer_size, normalization_weights
from .legendre import recurrence_coefficients, seed_log_constant


def node_coordinates(nodes: Tensor) -> tuple[Tensor, Tensor]:
    """Return (φ, θ) for an interleaved node buffer of length 2M."""
    x = nodes.to(dtype=torch.float64)
    return 2.0 * math.pi * x[0::2], 2.0 * math.pi * x[1::2]


def _seed(order: int, theta: Tensor) -> Tensor:
    if order == 0:
        return torch.ones_like(theta)
    # P_m^m = sqrt((2m)!)/(2^m m!) (sin θ)^m, in log space so large m cannot overflow
    sin2 = torch.clamp(torch.sin(theta) ** 2, min=torch.finfo(torch.float64).tiny)
    return torch.exp(seed_log_constant(order) + 0.5 * order * torch.log(sin2))


def legendre_sequence(order: int, bandwidth: int, theta: Tensor, recurrence=None) -> Tensor:
    """
    Values of P_k^m(cos θ) for k = m..N, shape (N-m+1, M).

    ``recurrence`` optionally supplies the ``(alpha, gamma)`` tables.
    """
    m = abs(order)
    alpha, gamma = recurrence if recurrence is not None else recurrence_coefficients(m, bandwidth)
    t = torch.cos(theta)
    pmm = _seed(m, theta)
    seq = [pmm]
    prev2 = torch.zeros_like(pmm)
    prev1 = pmm
    for j in range(bandwidth - m):
        cur = float(alpha[j]) * t * prev1 + float(gamma[j]) * prev2
        seq.append(cur)
        prev2 = prev1
        prev1 = cur
    return torch.stack(seq, dim=0)


class DirectEvaluator:
    """
    Exact forward and adjoint transforms in O(N²M).

    Uses the recurrence tables of a bound cache entry when one covers the
    bandwidth; otherwise computes them on demand.
    """

    def __init__(self, config: PlanConfig, cache: PrecomputationCache | None = None):
        self.config = config
        self.cache = cache

    def _check_enabled(self) -> None:
        if not self.config.direct_enabled:
            raise DirectAlgorithmDisabledError("direct algorithms are disabled for this plan")

    def _entry(self, bandwidth: int) -> CacheEntry | None:
        if self.cache is None:
            return None
        return self.cache.lookup(bandwidth, self.config.threshold, direct=True)

    def _sequences(self, bandwidth: int, theta: Tensor) -> list[Tensor]:
        entry = self._entry(bandwidth)
        out = []
        for m in range(bandwidth + 1):
            rec = entry.recurrence_for(m, bandwidth) if entry is not None else None
            out.append(legendre_sequence(m, bandwidth, theta, rec))
        return out

    def forward(self, coefficients: Tensor, nodes: Tensor, bandwidth: int, *, scratch: bool = False) -> Tensor:
        """f(m) = Σ_k Σ_n f̂(k,n) c_k P_k^|n|(cos θ_m) e^{inφ_m}."""
        self._check_enabled()
        phi, theta = node_coordinates(nodes)
        fh = apply_normalization(coefficients, bandwidth, self.config.normalization, in_place=scratch)
        legendre = self._sequences(bandwidth, theta)
        samples = torch.zeros(phi.shape[0], dtype=torch.complex128)
        for n in range(-bandwidth, bandwidth + 1):
            p = legendre[abs(n)].to(torch.complex128)
            samples += (fh[column_slice(n, bandwidth)] @ p) * torch.exp(1j * n * phi)
        return samples

    def adjoint(self, samples: Tensor, nodes: Tensor, bandwidth: int) -> Tensor:
        """f̂(k,n) = Σ_m f(m) c_k P_k^|n|(cos θ_m) e^{-inφ_m}; unused slots are zero."""
        self._check_enabled()
        phi, theta = node_coordinates(nodes)
        weights = normalization_weights(bandwidth, self.config.normalization)
        f = samples.to(torch.complex128)
        legendre = self._sequences(bandwidth, theta)
        coefficients = torch.zeros(coefficient_buffer_size(bandwidth), dtype=torch.complex128)
        for n in range(-bandwidth, bandwidth + 1):
            p = legendre[abs(n)].to(torch.complex128)
            coefficients[column_slice(n, bandwidth)] = p @ (f * torch.exp(-1j * n * phi))
        return coefficients * weights
