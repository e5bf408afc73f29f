"""Iterative inverse transform: weighted least squares by conjugate gradients (CGNR)."""

from __future__ import annotations

import math

import torch
from torch import Tensor

from .errors import InvalidParameterError
from .index import valid_mask
from .logging import log_performance, logger
from .plan import Plan


def _dot(a: Tensor, b: Tensor) -> float:
    return float(torch.vdot(a, b).real)


@log_performance
def solve_lsq(
    plan: Plan,
    samples: Tensor,
    weights: Tensor | None = None,
    *,
    maxiter: int = 50,
    tol: float = 1e-10,
    fast: bool = True,
) -> tuple[Tensor, float, int]:
    """
    Fit coefficients to ``samples`` at the plan's nodes.

    Minimizes ``Σ_m w_m |f(m) - (F f̂)(m)|²`` with CGNR, applying the plan's
    forward and adjoint transforms (fast or direct). On return the plan's
    coefficient buffer holds the solution.

    Returns
    -------
    tuple
        ``(f_hat, relative_residual, iterations)``.
    """
    m = plan.node_count
    y = torch.as_tensor(samples, dtype=torch.complex128).reshape(-1)
    if y.shape[0] != m:
        raise InvalidParameterError(f"expected {m} samples")
    if weights is None:
        w = torch.ones(m, dtype=torch.float64)
    else:
        w = torch.as_tensor(weights, dtype=torch.float64).reshape(-1)
        if w.shape[0] != m or bool((w < 0).any()):
            raise InvalidParameterError("weights must be non-negative, one per node")
    if maxiter < 0:
        raise InvalidParameterError("maxiter must be non-negative")

    forward = plan.forward if fast else plan.forward_direct
    adjoint = plan.adjoint if fast else plan.adjoint_direct
    mask = valid_mask(plan.bandwidth)

    def apply(x: Tensor) -> Tensor:
        plan.set_coefficients(x)
        return forward().clone()

    def apply_adjoint(r: Tensor) -> Tensor:
        plan.set_samples(w * r)
        return torch.where(mask, adjoint(), torch.zeros((), dtype=torch.complex128))

    y_norm = math.sqrt(_dot(y, w * y))
    x = torch.zeros(mask.shape[0], dtype=torch.complex128)
    r = y.clone()
    z = apply_adjoint(r)
    p = z.clone()
    z_norm2 = _dot(z, z)
    residual = 1.0 if y_norm > 0.0 else 0.0
    iterations = 0

    while iterations < maxiter and residual > tol and z_norm2 > 0.0:
        q = apply(p)
        qq = _dot(q, w * q)
        if qq <= 0.0:
            break
        alpha = z_norm2 / qq
        x = x + alpha * p
        r = r - alpha * q
        z = apply_adjoint(r)
        z_new2 = _dot(z, z)
        p = z + (z_new2 / z_norm2) * p
        z_norm2 = z_new2
        iterations += 1
        residual = math.sqrt(max(_dot(r, w * r), 0.0)) / y_norm
        logger.debug(f"CGNR iteration {iterations}: relative residual {residual:.3e}")

    plan.set_coefficients(x)
    return x, residual, iterations
