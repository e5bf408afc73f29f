"""2-D trigonometric synthesis and analysis at nonequispaced nodes on the sphere."""

from __future__ import annotations

import math

import finufft
import numpy as np
import torch
from torch import Tensor

from .errors import InvalidParameterError


def node_angles(nodes: Tensor) -> tuple[np.ndarray, np.ndarray]:
    """Split the interleaved node buffer into (φ, θ) in radians."""
    x = nodes.detach().to(device="cpu", dtype=torch.float64).numpy()
    phi = np.ascontiguousarray(2.0 * math.pi * x[0::2])
    theta = np.ascontiguousarray(2.0 * math.pi * x[1::2])
    return phi, theta


class NonequispacedFourier:
    """
    Evaluate ``Σ_n Σ_p grid[n+N, p+N] exp(i(nφ + pθ))`` at fixed nodes and its adjoint.

    The fast path uses finufft type-2/type-1 plans; ``direct=True`` uses the exact
    O(N²M) sum instead.
    """

    def __init__(self, nodes: Tensor, bandwidth: int, *, epsilon: float = 1e-12, direct: bool = False):
        self.bandwidth = int(bandwidth)
        self.epsilon = float(epsilon)
        self.direct = bool(direct)
        self._nodes = nodes.detach().to(device="cpu", dtype=torch.float64).clone()
        # finufft does not guard against non-finite points
        if not bool(torch.isfinite(self._nodes).all()):
            raise InvalidParameterError("nodes must be finite")
        self.phi, self.theta = node_angles(self._nodes)
        self._synthesis = None
        self._analysis = None
        self._phases = None

    @property
    def modes(self) -> tuple[int, int]:
        return (2 * self.bandwidth + 1, 2 * self.bandwidth + 1)

    def matches(self, nodes: Tensor, bandwidth: int, epsilon: float, direct: bool) -> bool:
        """Whether this instance was built for the same nodes and settings."""
        if (int(bandwidth), float(epsilon), bool(direct)) != (self.bandwidth, self.epsilon, self.direct):
            return False
        current = nodes.detach().to(device="cpu", dtype=torch.float64)
        return current.shape == self._nodes.shape and bool(torch.equal(current, self._nodes))

    def _plans(self):
        if self._synthesis is None:
            self._synthesis = finufft.Plan(2, self.modes, n_trans=1, eps=self.epsilon, isign=1, dtype="complex128")
            self._synthesis.setpts(self.phi, self.theta)
            self._analysis = finufft.Plan(1, self.modes, n_trans=1, eps=self.epsilon, isign=-1, dtype="complex128")
            self._analysis.setpts(self.phi, self.theta)
        return self._synthesis, self._analysis

    def _direct_phases(self) -> tuple[np.ndarray, np.ndarray]:
        if self._phases is None:
            freqs = np.arange(-self.bandwidth, self.bandwidth + 1, dtype=np.float64)
            self._phases = (
                np.exp(1j * np.outer(self.phi, freqs)),
                np.exp(1j * np.outer(self.theta, freqs)),
            )
        return self._phases

    def precompute(self) -> None:
        if self.direct:
            self._direct_phases()
        else:
            self._plans()

    def trafo(self, grid: np.ndarray) -> np.ndarray:
        grid = np.ascontiguousarray(grid, dtype=np.complex128)
        if grid.shape != self.modes:
            raise ValueError(f"grid must have shape {self.modes}")
        if self.direct:
            e_phi, e_theta = self._direct_phases()
            return np.sum((e_phi @ grid) * e_theta, axis=1)
        synthesis, _ = self._plans()
        return synthesis.execute(grid)

    def adjoint(self, samples: np.ndarray) -> np.ndarray:
        samples = np.ascontiguousarray(samples, dtype=np.complex128)
        if samples.shape != self.phi.shape:
            raise ValueError("samples must have one value per node")
        if self.direct:
            e_phi, e_theta = self._direct_phases()
            return e_phi.conj().T @ (samples[:, None] * e_theta.conj())
        _, analysis = self._plans()
        return analysis.execute(samples)
