"""
Fast spherical Fourier transforms (NFSFT).

The forward transform runs in two stages. The polynomial stage turns every
order column ``c_k f̂(k, n)`` into the Fourier coefficients ``D^n_p`` (|p| <= N)
of ``Σ_k c_k f̂(k,n) P_k^|n|(cos θ)``. The azimuthal stage evaluates
``Σ_n Σ_p D^n_p e^{i(nφ + pθ)}`` at the nodes with a 2-D nonequispaced FFT.
The adjoint runs the transposed stages in reverse order.
"""

from __future__ import annotations

import numpy as np
import torch
from torch import Tensor

from .cache import CacheEntry, PrecomputationCache
from .config import FourierAlgorithm, PlanConfig, PolynomialAlgorithm
from .errors import FastAlgorithmDisabledError, MissingPrecomputationError
from .fourier import NonequispacedFourier
from .index import apply_normalization, column_slice, coefficient_buffer_size, normalization_weights
from .legendre import dpt, dpt_adjoint, fpt, fpt_adjoint


class FastEvaluator:
    """Fast forward/adjoint transforms backed by a :class:`PrecomputationCache`."""

    def __init__(self, config: PlanConfig, cache: PrecomputationCache | None = None):
        self.config = config
        self.cache = cache
        self._nfft: NonequispacedFourier | None = None

    @property
    def uses_cache(self) -> bool:
        return self.config.polynomial is PolynomialAlgorithm.FAST

    def _check_enabled(self) -> None:
        if not self.config.fast_enabled:
            raise FastAlgorithmDisabledError("fast algorithms are disabled for this plan")

    def _entry(self, bandwidth: int) -> CacheEntry | None:
        if not self.uses_cache:
            return None
        if self.cache is None:
            raise MissingPrecomputationError(bandwidth, self.config.threshold)
        return self.cache.require(bandwidth, self.config.threshold)

    def fourier(self, nodes: Tensor, bandwidth: int) -> NonequispacedFourier:
        """The nonequispaced Fourier stage for ``nodes``, rebuilt when they change."""
        direct = self.config.fourier is FourierAlgorithm.DIRECT
        eps = self.config.nfft_epsilon
        if self._nfft is None or not self._nfft.matches(nodes, bandwidth, eps, direct):
            self._nfft = NonequispacedFourier(nodes, bandwidth, epsilon=eps, direct=direct)
        return self._nfft

    def precompute_nodes(self, nodes: Tensor, bandwidth: int) -> None:
        self.fourier(nodes, bandwidth).precompute()

    def release(self) -> None:
        self._nfft = None

    def forward(self, coefficients: Tensor, nodes: Tensor, bandwidth: int, *, scratch: bool = False) -> Tensor:
        """Evaluate at the nodes; with ``scratch=True`` the coefficients are normalized in place."""
        self._check_enabled()
        entry = self._entry(bandwidth)
        nfft = self.fourier(nodes, bandwidth)
        fh = apply_normalization(coefficients, bandwidth, self.config.normalization, in_place=scratch)
        fh = fh.detach().cpu().numpy()

        grid = np.zeros((2 * bandwidth + 1, 2 * bandwidth + 1), dtype=np.complex128)
        for n in range(-bandwidth, bandwidth + 1):
            column = fh[column_slice(n, bandwidth)]
            if entry is not None:
                grid[n + bandwidth] = fpt(entry.factorization(n), column, bandwidth)
            else:
                grid[n + bandwidth] = dpt(column, n, bandwidth)

        samples = nfft.trafo(grid)
        return torch.from_numpy(np.ascontiguousarray(samples))

    def adjoint(self, samples: Tensor, nodes: Tensor, bandwidth: int) -> Tensor:
        self._check_enabled()
        entry = self._entry(bandwidth)
        f = samples.to(torch.complex128).detach().cpu().numpy()
        grid = self.fourier(nodes, bandwidth).adjoint(f)

        out = np.zeros(coefficient_buffer_size(bandwidth), dtype=np.complex128)
        for n in range(-bandwidth, bandwidth + 1):
            if entry is not None:
                out[column_slice(n, bandwidth)] = fpt_adjoint(entry.factorization(n), grid[n + bandwidth], bandwidth)
            else:
                out[column_slice(n, bandwidth)] = dpt_adjoint(grid[n + bandwidth], n, bandwidth)
        weights = normalization_weights(bandwidth, self.config.normalization)
        return torch.from_numpy(out) * weights
