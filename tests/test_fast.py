import numpy as np
import pytest
import torch

from torchnfsft import (
    DirectEvaluator,
    FastAlgorithmDisabledError,
    FastEvaluator,
    FourierAlgorithm,
    InvalidParameterError,
    MissingPrecomputationError,
    Normalization,
    PlanConfig,
    PolynomialAlgorithm,
    PrecomputationCache,
    coefficient_buffer_size,
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


@pytest.fixture(scope="module")
def cache() -> PrecomputationCache:
    c = PrecomputationCache()
    c.precompute(16)
    return c


@pytest.mark.parametrize("bandwidth", [0, 1, 4, 11, 16])
@pytest.mark.parametrize("normalization", [Normalization.UNNORMALIZED, Normalization.L2])
def test_fast_forward_matches_direct(cache, bandwidth: int, normalization: Normalization) -> None:
    config = PlanConfig(normalization=normalization)
    nodes = random_nodes(50, seed=bandwidth)
    x = _random_coefficients(bandwidth, seed=1)
    fast = FastEvaluator(config, cache).forward(x, nodes, bandwidth)
    direct = DirectEvaluator(config).forward(x, nodes, bandwidth)
    scale = max(1.0, float(direct.abs().max()))
    torch.testing.assert_close(fast, direct, atol=1e-9 * scale, rtol=0.0)


@pytest.mark.parametrize("bandwidth", [4, 11])
def test_fast_adjoint_matches_direct(cache, bandwidth: int) -> None:
    config = PlanConfig(normalization=Normalization.L2)
    nodes = random_nodes(60, seed=3)
    y = _random_samples(60, seed=4)
    fast = FastEvaluator(config, cache).adjoint(y, nodes, bandwidth)
    direct = DirectEvaluator(config).adjoint(y, nodes, bandwidth)
    scale = max(1.0, float(direct.abs().max()))
    torch.testing.assert_close(fast, direct, atol=1e-9 * scale, rtol=0.0)


@pytest.mark.parametrize(
    "fourier, polynomial",
    [
        (FourierAlgorithm.DIRECT, PolynomialAlgorithm.FAST),
        (FourierAlgorithm.FAST, PolynomialAlgorithm.DIRECT),
        (FourierAlgorithm.DIRECT, PolynomialAlgorithm.DIRECT),
    ],
)
def test_direct_internal_stages_match(cache, fourier, polynomial) -> None:
    bandwidth = 6
    config = PlanConfig(fourier=fourier, polynomial=polynomial)
    nodes = random_nodes(30, seed=5)
    x = _random_coefficients(bandwidth, seed=6)
    fast = FastEvaluator(config, cache).forward(x, nodes, bandwidth)
    direct = DirectEvaluator(config).forward(x, nodes, bandwidth)
    torch.testing.assert_close(fast, direct, atol=1e-9 * float(direct.abs().max()), rtol=0.0)


def test_fast_adjointness(cache) -> None:
    bandwidth = 9
    nodes = random_nodes(80, seed=7)
    evaluator = FastEvaluator(PlanConfig(), cache)
    x = _random_coefficients(bandwidth, seed=8)
    y = _random_samples(80, seed=9)
    lhs = torch.vdot(evaluator.forward(x, nodes, bandwidth), y)
    rhs = torch.vdot(x, evaluator.adjoint(y, nodes, bandwidth))
    assert complex(lhs) == pytest.approx(complex(rhs), rel=1e-9)


def test_strict_threshold_stays_accurate() -> None:
    bandwidth = 16
    c = PrecomputationCache()
    c.precompute(bandwidth, threshold=1e-300)
    config = PlanConfig(threshold=1e-300)
    nodes = random_nodes(40, seed=10)
    x = _random_coefficients(bandwidth, seed=11)
    fast = FastEvaluator(config, c).forward(x, nodes, bandwidth)
    direct = DirectEvaluator(config).forward(x, nodes, bandwidth)
    torch.testing.assert_close(fast, direct, atol=1e-9 * float(direct.abs().max()), rtol=0.0)


def test_missing_precomputation() -> None:
    nodes = random_nodes(5)
    x = _random_coefficients(4)
    with pytest.raises(MissingPrecomputationError):
        FastEvaluator(PlanConfig()).forward(x, nodes, 4)

    small = PrecomputationCache()
    small.precompute(2)
    with pytest.raises(MissingPrecomputationError):
        FastEvaluator(PlanConfig(), small).forward(x, nodes, 4)

    pinned = PrecomputationCache()
    pinned.precompute(4, threshold=10.0)
    with pytest.raises(MissingPrecomputationError):
        FastEvaluator(PlanConfig(threshold=20.0), pinned).adjoint(_random_samples(5), nodes, 4)


def test_direct_polynomial_stage_needs_no_cache() -> None:
    config = PlanConfig(polynomial=PolynomialAlgorithm.DIRECT)
    nodes = random_nodes(12, seed=12)
    x = _random_coefficients(3, seed=13)
    fast = FastEvaluator(config).forward(x, nodes, 3)
    direct = DirectEvaluator(config).forward(x, nodes, 3)
    torch.testing.assert_close(fast, direct, atol=1e-9 * float(direct.abs().max()), rtol=0.0)


def test_disabled_fast_algorithm_raises(cache) -> None:
    evaluator = FastEvaluator(PlanConfig(fast_enabled=False), cache)
    with pytest.raises(FastAlgorithmDisabledError):
        evaluator.forward(_random_coefficients(2), random_nodes(3), 2)


def test_fourier_stage_is_rebuilt_when_nodes_change(cache) -> None:
    evaluator = FastEvaluator(PlanConfig(), cache)
    nodes = random_nodes(10, seed=14)
    first = evaluator.fourier(nodes, 4)
    assert evaluator.fourier(nodes.clone(), 4) is first
    nodes[0] = 0.25
    assert evaluator.fourier(nodes, 4) is not first


def test_non_finite_nodes_are_rejected_before_the_fourier_stage(cache) -> None:
    evaluator = FastEvaluator(PlanConfig(), cache)
    nodes = random_nodes(3, seed=15)
    nodes[2] = float("nan")
    f_hat = _random_coefficients(4, seed=16)
    with pytest.raises(InvalidParameterError):
        evaluator.forward(f_hat.clone(), nodes, 4)
    with pytest.raises(InvalidParameterError):
        evaluator.adjoint(torch.ones(3, dtype=torch.complex128), nodes, 4)
