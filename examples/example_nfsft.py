#!/usr/bin/env python3
"""Example of spherical Fourier transforms at nonequispaced nodes using torchnfsft.

This example demonstrates:
1. Precomputing the fast-transform cache for a bandwidth.
2. Evaluating a random expansion at random nodes (fast and direct).
3. Recovering the coefficients on a Gauss-Legendre grid with the adjoint.
4. Fitting coefficients to scattered samples with the iterative solver.
"""

import torch
import torchnfsft as nfsft


def main():
    bandwidth = 32
    node_count = 2000
    print(f"NFSFT Example with N={bandwidth}, M={node_count}")

    # 1. Precompute the cascade factorizations once
    cache = nfsft.PrecomputationCache()
    entry = cache.precompute(bandwidth, threshold=1000.0)
    print(f"\nCache entry for bandwidth {entry.bandwidth}: {entry.stabilized_blocks} stabilized blocks")

    # 2. Evaluate a random expansion at random nodes
    config = nfsft.PlanConfig(
        normalization=nfsft.Normalization.L2,
        coefficients=nfsft.BufferPolicy(forward=nfsft.Mutation.PRESERVE),
    )
    gen = torch.Generator().manual_seed(0)
    size = nfsft.coefficient_buffer_size(bandwidth)
    f_hat = torch.randn(size, dtype=torch.complex128, generator=gen) * nfsft.valid_mask(bandwidth)

    with nfsft.Plan(bandwidth, node_count, config, cache=cache) as plan:
        plan.set_nodes(nfsft.random_nodes(node_count, seed=0))
        plan.set_coefficients(f_hat)
        fast = plan.forward().clone()
        direct = plan.forward_direct().clone()
        print(f"  Fast vs direct max error: {nfsft.max_abs_error(direct, fast):.2e}")

    # 3. Round trip on a quadrature grid
    nodes, weights = nfsft.gauss_legendre_grid(bandwidth)
    with nfsft.Plan(bandwidth, weights.shape[0], config, cache=cache) as plan:
        plan.set_nodes(nodes)
        plan.set_coefficients(f_hat)
        plan.set_samples(plan.forward() * weights)
        plan.adjoint()
        err = nfsft.relative_error(f_hat, plan.coefficients, bandwidth)
        print(f"\nGauss-Legendre round trip relative error: {err:.2e}")

    # 4. Least-squares fit to scattered samples
    with nfsft.Plan(bandwidth, 2 * (bandwidth + 1) ** 2, config, cache=cache) as plan:
        plan.set_nodes(nfsft.random_nodes(plan.node_count, seed=1))
        plan.set_coefficients(f_hat)
        samples = plan.forward().clone()
        x, residual, iterations = nfsft.solve_lsq(plan, samples, maxiter=100, tol=1e-10)
        err = nfsft.relative_error(f_hat, x, bandwidth)
        print(f"\nCGNR: {iterations} iterations, residual {residual:.2e}, coefficient error {err:.2e}")


if __name__ == "__main__":
    main()
