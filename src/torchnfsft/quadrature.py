"""Node sets on the sphere in the scaled (azimuth, colatitude) layout used by plans."""

from __future__ import annotations

import math

import numpy as np
import torch
from torch import Tensor

from .errors import InvalidParameterError
from .index import _check_bandwidth


def _interleave(x1: np.ndarray, x2: np.ndarray) -> Tensor:
    out = np.empty(2 * x1.shape[0], dtype=np.float64)
    out[0::2] = x1
    out[1::2] = x2
    return torch.from_numpy(out)


def gauss_legendre_grid(bandwidth: int) -> tuple[Tensor, Tensor]:
    """
    Gauss-Legendre product grid for bandwidth ``N``.

    Returns ``(nodes, weights)`` with (N+1) Gauss-Legendre colatitudes times
    2N+2 equispaced azimuths. For an L2-normalized plan,
    ``adjoint(weights * forward(f_hat))`` reproduces ``f_hat`` exactly, since
    the rule integrates every product of two degree-N harmonics.
    """
    nn = _check_bandwidth(bandwidth)
    t, w_t = np.polynomial.legendre.leggauss(nn + 1)
    theta = np.arccos(t)
    n_phi = 2 * nn + 2
    x1 = (np.arange(n_phi, dtype=np.float64) - (nn + 1)) / n_phi

    # colatitude-major ordering
    x2 = np.repeat(theta / (2.0 * math.pi), n_phi)
    x1 = np.tile(x1, nn + 1)
    weights = np.repeat(w_t, n_phi) * (2.0 * math.pi / n_phi)
    return _interleave(x1, x2), torch.from_numpy(weights)


def equiangular_grid(n_theta: int, n_phi: int) -> Tensor:
    """Clenshaw-Curtis style grid including both poles."""
    if n_theta < 2 or n_phi < 1:
        raise InvalidParameterError("need n_theta >= 2 and n_phi >= 1")
    theta = np.linspace(0.0, 0.5, n_theta)
    x1 = np.arange(n_phi, dtype=np.float64) / n_phi - 0.5
    return _interleave(np.tile(x1, n_theta), np.repeat(theta, n_phi))


def random_nodes(node_count: int, seed: int | None = None) -> Tensor:
    """``node_count`` nodes uniformly distributed on the sphere."""
    if isinstance(node_count, bool) or not isinstance(node_count, (int, np.integer)) or node_count < 1:
        raise InvalidParameterError("node_count must be a positive integer")
    node_count = int(node_count)
    rng = np.random.default_rng(seed)
    x1 = rng.uniform(-0.5, 0.5, node_count)
    x2 = np.arccos(rng.uniform(-1.0, 1.0, node_count)) / (2.0 * math.pi)
    return _interleave(x1, x2)
