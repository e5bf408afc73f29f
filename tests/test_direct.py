import math

import numpy as np
import pytest
import torch
from scipy.special import lpmv

from torchnfsft import (
    DirectAlgorithmDisabledError,
    DirectEvaluator,
    Normalization,
    PlanConfig,
    PrecomputationCache,
    coefficient_buffer_size,
    coefficient_index,
    random_nodes,
    valid_mask,
)


def _random_coefficients(bandwidth: int, seed: int = 0) -> torch.Tensor:
    rng = np.random.default_rng(seed)
    size = coefficient_buffer_size(bandwidth)
    values = torch.from_numpy(rng.normal(size=size) + 1j * rng.normal(size=size))
    return torch.where(valid_mask(bandwidth), values, torch.zeros((), dtype=torch.complex128))


def _random_samples(count: int, seed: int = 0) -> torch.Tensor:
    rng = np.random.default_rng(seed)
    return torch.from_numpy(rng.normal(size=count) + 1j * rng.normal(size=count))


def test_single_harmonic_matches_closed_form() -> None:
    bandwidth, k, n = 5, 4, -3
    nodes = random_nodes(20, seed=1)
    coeffs = torch.zeros(coefficient_buffer_size(bandwidth), dtype=torch.complex128)
    coeffs[coefficient_index(k, n, bandwidth)] = 1.0

    for normalization in (Normalization.UNNORMALIZED, Normalization.L2):
        evaluator = DirectEvaluator(PlanConfig(normalization=normalization))
        got = evaluator.forward(coeffs, nodes, bandwidth)

        phi = 2.0 * math.pi * nodes[0::2].numpy()
        theta = 2.0 * math.pi * nodes[1::2].numpy()
        m = abs(n)
        scale = math.exp(0.5 * (math.lgamma(k - m + 1) - math.lgamma(k + m + 1)))
        p = (-1.0) ** m * scale * lpmv(m, k, np.cos(theta))
        c = math.sqrt((2 * k + 1) / (4.0 * math.pi)) if normalization is Normalization.L2 else 1.0
        exp = torch.from_numpy(c * p * np.exp(1j * n * phi))
        torch.testing.assert_close(got, exp, atol=1e-12, rtol=1e-12)


def test_direct_adjointness() -> None:
    bandwidth = 6
    nodes = random_nodes(40, seed=2)
    evaluator = DirectEvaluator(PlanConfig(normalization=Normalization.L2))
    x = _random_coefficients(bandwidth, seed=3)
    y = _random_samples(40, seed=4)
    lhs = torch.vdot(evaluator.forward(x, nodes, bandwidth), y)
    rhs = torch.vdot(x, evaluator.adjoint(y, nodes, bandwidth))
    assert complex(lhs) == pytest.approx(complex(rhs), rel=1e-12)


def test_adjoint_leaves_unused_slots_zero() -> None:
    bandwidth = 3
    nodes = random_nodes(10, seed=5)
    out = DirectEvaluator(PlanConfig()).adjoint(_random_samples(10), nodes, bandwidth)
    assert torch.all(out[~valid_mask(bandwidth)] == 0)


def test_pole_evaluation_is_finite_at_large_bandwidth() -> None:
    bandwidth = 128
    # north pole, south pole
    nodes = torch.tensor([0.1, 0.0, -0.3, 0.5], dtype=torch.float64)
    coeffs = torch.zeros(coefficient_buffer_size(bandwidth), dtype=torch.complex128)
    for k in range(bandwidth + 1):
        coeffs[coefficient_index(k, 0, bandwidth)] = 1.0
        if k > 0:
            coeffs[coefficient_index(k, k, bandwidth)] = 1.0
    got = DirectEvaluator(PlanConfig()).forward(coeffs, nodes, bandwidth)
    assert torch.isfinite(got.real).all() and torch.isfinite(got.imag).all()
    # P_k(1) = 1 and P_k(-1) = (-1)^k; orders n != 0 vanish at the poles
    torch.testing.assert_close(got[0], torch.tensor(bandwidth + 1.0, dtype=torch.complex128), atol=1e-9, rtol=0.0)
    torch.testing.assert_close(got[1], torch.tensor(1.0, dtype=torch.complex128), atol=1e-9, rtol=0.0)


def test_cached_recurrence_tables_give_same_result() -> None:
    bandwidth = 5
    nodes = random_nodes(15, seed=6)
    x = _random_coefficients(bandwidth, seed=7)
    cache = PrecomputationCache()
    cache.precompute(bandwidth, fast=False)
    with_cache = DirectEvaluator(PlanConfig(), cache).forward(x, nodes, bandwidth)
    without = DirectEvaluator(PlanConfig()).forward(x, nodes, bandwidth)
    torch.testing.assert_close(with_cache, without, atol=1e-13, rtol=0.0)


def test_disabled_direct_algorithm_raises() -> None:
    evaluator = DirectEvaluator(PlanConfig(direct_enabled=False))
    with pytest.raises(DirectAlgorithmDisabledError):
        evaluator.forward(_random_coefficients(2), random_nodes(3), 2)
    with pytest.raises(DirectAlgorithmDisabledError):
        evaluator.adjoint(_random_samples(3), random_nodes(3), 2)
