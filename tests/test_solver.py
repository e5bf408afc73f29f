import numpy as np
import pytest
import torch

from torchnfsft import (
    InvalidParameterError,
    Normalization,
    Plan,
    PlanConfig,
    PrecomputationCache,
    coefficient_buffer_size,
    random_nodes,
    relative_error,
    solve_lsq,
    valid_mask,
)


def _random_coefficients(bandwidth: int, seed: int = 0) -> torch.Tensor:
    rng = np.random.default_rng(seed)
    size = coefficient_buffer_size(bandwidth)
    values = torch.from_numpy(rng.normal(size=size) + 1j * rng.normal(size=size))
    return torch.where(valid_mask(bandwidth), values, torch.zeros((), dtype=torch.complex128))


def _sampled_plan(bandwidth: int, count: int, cache=None) -> tuple[Plan, torch.Tensor, torch.Tensor]:
    plan = Plan(bandwidth, count, PlanConfig(normalization=Normalization.L2), cache=cache)
    plan.set_nodes(random_nodes(count, seed=21))
    f_hat = _random_coefficients(bandwidth, seed=22)
    plan.set_coefficients(f_hat)
    samples = plan.forward_direct().clone()
    return plan, f_hat, samples


def test_cgnr_recovers_coefficients_direct() -> None:
    bandwidth = 4
    plan, f_hat, samples = _sampled_plan(bandwidth, 120)
    x, residual, iterations = solve_lsq(plan, samples, maxiter=200, tol=1e-13, fast=False)
    assert residual < 1e-10
    assert 0 < iterations <= 200
    assert relative_error(f_hat, x, bandwidth) < 1e-8
    torch.testing.assert_close(plan.coefficients, x, atol=0.0, rtol=0.0)


def test_cgnr_recovers_coefficients_fast() -> None:
    bandwidth = 6
    cache = PrecomputationCache()
    cache.precompute(bandwidth)
    plan, f_hat, samples = _sampled_plan(bandwidth, 200, cache)
    weights = torch.full((200,), 4.0 * np.pi / 200, dtype=torch.float64)
    x, residual, _ = solve_lsq(plan, samples, weights, maxiter=300, tol=1e-11)
    assert residual < 1e-8
    assert relative_error(f_hat, x, bandwidth) < 1e-6


def test_cgnr_zero_iterations_and_zero_data() -> None:
    plan, _, samples = _sampled_plan(3, 40)
    x, residual, iterations = solve_lsq(plan, samples, maxiter=0, fast=False)
    assert iterations == 0 and residual == 1.0
    assert torch.all(x == 0)

    x, residual, iterations = solve_lsq(plan, torch.zeros(40, dtype=torch.complex128), fast=False)
    assert iterations == 0 and residual == 0.0
    assert torch.all(x == 0)


def test_cgnr_validation() -> None:
    plan, _, samples = _sampled_plan(2, 20)
    with pytest.raises(InvalidParameterError):
        solve_lsq(plan, samples[:-1], fast=False)
    with pytest.raises(InvalidParameterError):
        solve_lsq(plan, samples, -torch.ones(20), fast=False)
    with pytest.raises(InvalidParameterError):
        solve_lsq(plan, samples, maxiter=-1, fast=False)
