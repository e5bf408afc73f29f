"""
Polynomial transforms for columns of associated Legendre functions.

For a fixed order ``m`` the column ``g(θ) = Σ_k a_k P_k^m(cos θ)`` (k = m..N) is a
trigonometric polynomial of degree N in θ. These routines convert the column
``a`` into the Fourier coefficients of ``g`` (and back, transposed).

With ``P_k^m(t) = (1-t²)^{(m mod 2)/2} r_k(t)`` the ``r_k`` are polynomials
obeying the same three-term recurrence as ``P_k^m``. The fast transform is a
cascade summation: a block of coefficients ``[s, e)`` is folded into a pair of
polynomials ``(U, V)`` with ``Σ a_k r_k = U r_s + V r_{s-1}``, and neighbouring
blocks are merged with the 2x2 transfer matrix mapping ``(r_s, r_{s-1})`` to
``(r_c, r_{c-1})``. Polynomials are held as orthonormal DCT-II coefficients over
first-kind Chebyshev points. Transfer matrices whose entries exceed the
stabilization threshold are not used; those blocks are summed directly against
exact values of ``r_c`` and ``r_{c-1}`` instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from scipy.fft import dct, idct

from .index import next_power_of_two


@lru_cache(maxsize=512)
def recurrence_coefficients(order: int, kmax: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Return ``(alpha, gamma)`` with ``P_{k+1} = alpha[k-m] t P_k + gamma[k-m] P_{k-1}``
    for k = m..kmax-1, m = |order|.
    """
    m = abs(int(order))
    k = np.arange(m, max(int(kmax), m), dtype=np.float64)
    den = np.sqrt((k - m + 1.0) * (k + m + 1.0))
    alpha = (2.0 * k + 1.0) / den
    gamma = -np.sqrt((k - m) * (k + m)) / den
    alpha.setflags(write=False)
    gamma.setflags(write=False)
    return alpha, gamma


def seed_log_constant(order: int) -> float:
    """log of sqrt((2m)!) / (2^m m!)."""
    m = abs(int(order))
    return 0.5 * math.lgamma(2 * m + 1) - m * math.log(2.0) - math.lgamma(m + 1)


def chebyshev_angles(size: int) -> np.ndarray:
    return np.pi * (np.arange(size, dtype=np.float64) + 0.5) / size


def chebyshev_nodes(size: int) -> np.ndarray:
    """First-kind Chebyshev points cos(π(i + 1/2)/size)."""
    return np.cos(chebyshev_angles(size))


def column_values(order: int, kmax: int, size: int) -> np.ndarray:
    """Values of r_k (k = m..kmax) on ``size`` Chebyshev points, shape (kmax-m+1, size)."""
    m = abs(int(order))
    theta = chebyshev_angles(size)
    t = np.cos(theta)
    alpha, gamma = recurrence_coefficients(m, kmax)
    out = np.empty((kmax - m + 1, size), dtype=np.float64)
    # (1-t²)^{floor(m/2)} on interior points only, so the logarithm is finite.
    out[0] = np.exp(seed_log_constant(m) + (m // 2) * np.log(np.sin(theta) ** 2))
    prev = np.zeros(size, dtype=np.float64)
    for j in range(kmax - m):
        out[j + 1] = alpha[j] * t * out[j] + gamma[j] * prev
        prev = out[j]
    return out


def _dct(x: np.ndarray) -> np.ndarray:
    if np.iscomplexobj(x):
        return _dct(x.real) + 1j * _dct(x.imag)
    return dct(x, type=2, norm="ortho", axis=-1)


def _idct(x: np.ndarray) -> np.ndarray:
    if np.iscomplexobj(x):
        return _idct(x.real) + 1j * _idct(x.imag)
    return idct(x, type=2, norm="ortho", axis=-1)


def _to_values(coeffs: np.ndarray, size: int) -> np.ndarray:
    """Evaluate DCT coefficients of length n on a grid of ``size`` >= n points."""
    n = coeffs.shape[-1]
    padded = np.zeros(coeffs.shape[:-1] + (size,), dtype=coeffs.dtype)
    padded[..., :n] = coeffs * math.sqrt(size / n)
    return _idct(padded)


def _to_coeffs(values: np.ndarray, n: int) -> np.ndarray:
    """Transpose of :func:`_to_values`; the inverse when ``n`` equals the grid size."""
    size = values.shape[-1]
    return _dct(values)[..., :n] * math.sqrt(size / n)


def _pad(coeffs: np.ndarray) -> np.ndarray:
    half = coeffs.shape[-1]
    out = np.zeros(coeffs.shape[:-1] + (2 * half,), dtype=coeffs.dtype)
    out[..., :half] = coeffs * math.sqrt(2.0)
    return out


def _unpad(coeffs: np.ndarray) -> np.ndarray:
    half = coeffs.shape[-1] // 2
    return coeffs[..., :half] * math.sqrt(2.0)


def _values_to_fourier(values: np.ndarray, order: int, bandwidth: int) -> np.ndarray:
    """Chebyshev-grid values of h to Fourier coefficients of h(cos θ) (times sin θ for odd m)."""
    size = values.shape[-1]
    odd = abs(order) % 2 == 1
    deg = bandwidth - 1 if odd else bandwidth
    a = _dct(values)[: deg + 1] * math.sqrt(2.0 / size)
    a[0] /= math.sqrt(2.0)
    series = np.zeros(2 * deg + 1, dtype=np.complex128)
    series[deg] = a[0]
    series[deg + 1 :] = a[1:] / 2.0
    series[:deg] = a[1:][::-1] / 2.0
    if not odd:
        return series
    out = np.zeros(2 * bandwidth + 1, dtype=np.complex128)
    out[2:] += series
    out[:-2] -= series
    return out / 2j


def _values_to_fourier_adjoint(fourier: np.ndarray, order: int, size: int) -> np.ndarray:
    bandwidth = (fourier.shape[-1] - 1) // 2
    odd = abs(order) % 2 == 1
    deg = bandwidth - 1 if odd else bandwidth
    if odd:
        series = (fourier[:-2] - fourier[2:]) / 2j
    else:
        series = np.asarray(fourier, dtype=np.complex128)
    a = np.zeros(size, dtype=np.complex128)
    a[0] = series[deg] / math.sqrt(2.0)
    a[1 : deg + 1] = (series[deg + 1 :] + series[:deg][::-1]) / 2.0
    return _idct(a * math.sqrt(2.0 / size))


@dataclass(frozen=True)
class CascadeLevel:
    """Merge step joining neighbouring blocks of ``size // 2`` coefficients."""

    size: int
    starts: np.ndarray
    active: np.ndarray
    stabilized: np.ndarray
    transfer: np.ndarray

    @property
    def folded(self) -> np.ndarray:
        return self.active & ~self.stabilized


@dataclass(frozen=True)
class OrderFactorization:
    """Precomputed cascade data for one order up to ``bandwidth`` (a power of two)."""

    order: int
    bandwidth: int
    threshold: float
    levels: tuple[CascadeLevel, ...]
    anchors: dict[int, np.ndarray]

    @property
    def grid_size(self) -> int:
        return 2 * self.bandwidth

    @property
    def stabilized_blocks(self) -> int:
        return int(sum(int(level.stabilized.sum()) for level in self.levels))

    @property
    def nbytes(self) -> int:
        total = sum(level.transfer.nbytes for level in self.levels)
        return int(total + sum(a.nbytes for a in self.anchors.values()))


def _transfer_matrices(order: int, starts: np.ndarray, half: int, size: int, bandwidth: int) -> np.ndarray:
    """Values of [[A_h, B_h], [A_{h-1}, B_{h-1}]] for blocks starting at ``starts``."""
    alpha, gamma = recurrence_coefficients(order, order + bandwidth)
    t = chebyshev_nodes(size)
    nb = starts.shape[0]
    a_prev = np.zeros((nb, size))
    a_cur = np.ones((nb, size))
    b_prev = np.ones((nb, size))
    b_cur = np.zeros((nb, size))
    for step in range(half):
        al = alpha[starts + step][:, None]
        ga = gamma[starts + step][:, None]
        a_prev, a_cur = a_cur, al * t * a_cur + ga * a_prev
        b_prev, b_cur = b_cur, al * t * b_cur + ga * b_prev
    return np.stack([a_cur, b_cur, a_prev, b_prev], axis=1)


def factorize(order: int, bandwidth: int, threshold: float) -> OrderFactorization:
    """Build the cascade for order ``m`` and cached bandwidth ``bandwidth``."""
    m = abs(int(order))
    nc = int(bandwidth)
    if nc != next_power_of_two(nc):
        raise ValueError("bandwidth must be a power of two")
    if m > nc:
        raise ValueError("order exceeds bandwidth")
    last = nc - m
    levels = []
    needed = {0}
    size = 2
    while size <= nc:
        half = size // 2
        starts = np.arange(0, nc, size, dtype=np.int64)
        active = starts + half <= last
        transfer = np.zeros((starts.shape[0], 4, size))
        stabilized = np.zeros(starts.shape[0], dtype=bool)
        if active.any():
            values = _transfer_matrices(m, starts[active], half, size, nc)
            norms = np.abs(values).reshape(values.shape[0], -1).max(axis=1)
            unstable = norms > threshold
            stable_values = values.copy()
            stable_values[unstable] = 0.0
            transfer[active] = stable_values
            stabilized[np.flatnonzero(active)[unstable]] = True
        for s in starts[stabilized]:
            needed.update((int(s) + half, int(s) + half - 1))
        levels.append(CascadeLevel(size, starts, active, stabilized, transfer))
        size *= 2
    if last == nc:
        needed.add(nc)
    columns = column_values(m, m + max(needed), 2 * nc)
    anchors = {j: columns[j].copy() for j in sorted(needed)}
    return OrderFactorization(m, nc, float(threshold), tuple(levels), anchors)


def fpt(factorization: OrderFactorization, column: np.ndarray, bandwidth: int) -> np.ndarray:
    """
    Fast polynomial transform of one column.

    ``column[j]`` is the coefficient of degree ``m + j`` (j = 0..N-m). Returns the
    2N+1 Fourier coefficients of the column function in θ, frequencies -N..N.
    """
    fac = factorization
    m = fac.order
    nc = fac.bandwidth
    grid = fac.grid_size
    column = np.asarray(column, dtype=np.complex128)
    if bandwidth > nc or column.shape[0] != bandwidth - m + 1:
        raise ValueError("column does not match the factorization bandwidth")

    values = np.zeros(grid, dtype=np.complex128)
    b = np.zeros(nc, dtype=np.complex128)
    b[: min(column.shape[0], nc)] = column[:nc]
    if column.shape[0] > nc:
        values += column[nc] * fac.anchors[nc]

    u = b.reshape(nc, 1)
    v = np.zeros_like(u)
    for level in fac.levels:
        half = level.size // 2
        u_pairs = u.reshape(-1, 2, half)
        v_pairs = v.reshape(-1, 2, half)
        u_right, v_right = u_pairs[:, 1], v_pairs[:, 1]
        u_new = _pad(u_pairs[:, 0])
        v_new = _pad(v_pairs[:, 0])
        folded = level.folded
        if folded.any():
            ur = _to_values(u_right[folded], level.size)
            vr = _to_values(v_right[folded], level.size)
            t = level.transfer[folded]
            u_new[folded] += _dct(ur * t[:, 0] + vr * t[:, 2])
            v_new[folded] += _dct(ur * t[:, 1] + vr * t[:, 3])
        for i in np.flatnonzero(level.stabilized):
            c = int(level.starts[i]) + half
            values += _to_values(u_right[i], grid) * fac.anchors[c]
            values += _to_values(v_right[i], grid) * fac.anchors[c - 1]
        u, v = u_new, v_new

    values += _to_values(u[0], grid) * fac.anchors[0]
    return _values_to_fourier(values, m, bandwidth)


def fpt_adjoint(factorization: OrderFactorization, fourier: np.ndarray, bandwidth: int) -> np.ndarray:
    """Conjugate transpose of :func:`fpt`."""
    fac = factorization
    m = fac.order
    nc = fac.bandwidth
    fourier = np.asarray(fourier, dtype=np.complex128)
    if bandwidth > nc or fourier.shape[0] != 2 * bandwidth + 1:
        raise ValueError("Fourier coefficients do not match the factorization bandwidth")

    values = _values_to_fourier_adjoint(fourier, m, fac.grid_size)
    u = _to_coeffs(values * fac.anchors[0], nc)[None, :]
    v = np.zeros_like(u)
    for level in reversed(fac.levels):
        half = level.size // 2
        nb = u.shape[0]
        u_right = np.zeros((nb, half), dtype=np.complex128)
        v_right = np.zeros((nb, half), dtype=np.complex128)
        folded = level.folded
        if folded.any():
            wu = _idct(u[folded])
            wv = _idct(v[folded])
            t = level.transfer[folded]
            u_right[folded] = _to_coeffs(wu * t[:, 0] + wv * t[:, 1], half)
            v_right[folded] = _to_coeffs(wu * t[:, 2] + wv * t[:, 3], half)
        for i in np.flatnonzero(level.stabilized):
            c = int(level.starts[i]) + half
            u_right[i] = _to_coeffs(values * fac.anchors[c], half)
            v_right[i] = _to_coeffs(values * fac.anchors[c - 1], half)
        u = np.stack([_unpad(u), u_right], axis=1).reshape(-1, half)
        v = np.stack([_unpad(v), v_right], axis=1).reshape(-1, half)

    b = u.reshape(nc)
    out = np.zeros(bandwidth - m + 1, dtype=np.complex128)
    count = min(out.shape[0], nc)
    out[:count] = b[:count]
    if out.shape[0] > nc:
        out[nc] = np.sum(values * fac.anchors[nc])
    return out


def dpt(column: np.ndarray, order: int, bandwidth: int) -> np.ndarray:
    """Direct counterpart of :func:`fpt`, summing the recurrence on a Chebyshev grid."""
    m = abs(int(order))
    column = np.asarray(column, dtype=np.complex128)
    if column.shape[0] != bandwidth - m + 1:
        raise ValueError("column length must be N - |order| + 1")
    cols = column_values(m, bandwidth, 2 * next_power_of_two(bandwidth))
    return _values_to_fourier(column @ cols, m, bandwidth)


def dpt_adjoint(fourier: np.ndarray, order: int, bandwidth: int) -> np.ndarray:
    """Conjugate transpose of :func:`dpt`."""
    m = abs(int(order))
    fourier = np.asarray(fourier, dtype=np.complex128)
    size = 2 * next_power_of_two(bandwidth)
    cols = column_values(m, bandwidth, size)
    return cols @ _values_to_fourier_adjoint(fourier, m, size)
