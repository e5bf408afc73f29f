"""Flat coefficient layout for spherical-harmonic expansions of bandwidth N."""

from __future__ import annotations

import math
from functools import lru_cache

import numpy as np
import torch
from torch import Tensor

from .config import Normalization
from .errors import InvalidParameterError


def _check_bandwidth(bandwidth: int) -> int:
    if isinstance(bandwidth, bool) or not isinstance(bandwidth, (int, np.integer)):
        raise InvalidParameterError("bandwidth must be an integer")
    if bandwidth < 0:
        raise InvalidParameterError("bandwidth must be non-negative")
    return int(bandwidth)


def coefficient_buffer_size(bandwidth: int) -> int:
    """Return the flat buffer length (2N+2)^2."""
    nn = _check_bandwidth(bandwidth)
    return (2 * nn + 2) ** 2


def coefficient_index(k: int, n: int, bandwidth: int) -> int:
    """Return the flat slot of degree ``k`` and order ``n``."""
    nn = _check_bandwidth(bandwidth)
    if k < 0 or k > nn:
        raise InvalidParameterError("degree k must satisfy 0 <= k <= N")
    if abs(n) > k:
        raise InvalidParameterError("order n must satisfy -k <= n <= k")
    return (nn + 2) * (nn - n + 1) + nn + k + 1


def column_slice(n: int, bandwidth: int) -> slice:
    """Slots of degrees k = |n|..N for order ``n``, contiguous in k."""
    nn = _check_bandwidth(bandwidth)
    m = abs(int(n))
    if m > nn:
        raise InvalidParameterError("order n must satisfy |n| <= N")
    return slice(coefficient_index(m, n, nn), coefficient_index(nn, n, nn) + 1)


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n, with next_power_of_two(0) == 1."""
    if n < 0:
        raise InvalidParameterError("n must be non-negative")
    return 1 if n <= 1 else 1 << (int(n) - 1).bit_length()


@lru_cache(maxsize=64)
def _valid_mask(bandwidth: int) -> Tensor:
    mask = torch.zeros(coefficient_buffer_size(bandwidth), dtype=torch.bool)
    for n in range(-bandwidth, bandwidth + 1):
        mask[column_slice(n, bandwidth)] = True
    return mask


def valid_mask(bandwidth: int) -> Tensor:
    """Boolean tensor marking the meaningful slots of the flat buffer."""
    return _valid_mask(_check_bandwidth(bandwidth)).clone()


@lru_cache(maxsize=64)
def _normalization_weights(bandwidth: int, normalized: bool) -> Tensor:
    out = torch.zeros(coefficient_buffer_size(bandwidth), dtype=torch.float64)
    k = torch.arange(bandwidth + 1, dtype=torch.float64)
    ck = torch.sqrt((2.0 * k + 1.0) / (4.0 * math.pi)) if normalized else torch.ones_like(k)
    for n in range(-bandwidth, bandwidth + 1):
        out[column_slice(n, bandwidth)] = ck[abs(n):]
    return out


def normalization_weights(bandwidth: int, normalization: Normalization) -> Tensor:
    """Per-slot basis constants c_k (zero at unused slots)."""
    nn = _check_bandwidth(bandwidth)
    return _normalization_weights(nn, normalization is Normalization.L2).clone()


def pack_coefficients(dense: Tensor | np.ndarray, bandwidth: int | None = None) -> Tensor:
    """
    Convert a dense array ``a[k, n + N]`` of shape (N+1, 2N+1) to the flat buffer.

    Entries with |n| > k are ignored.
    """
    a = torch.as_tensor(dense)
    if a.ndim != 2 or a.shape[1] != 2 * a.shape[0] - 1:
        raise InvalidParameterError("dense coefficients must have shape (N+1, 2N+1)")
    nn = a.shape[0] - 1 if bandwidth is None else _check_bandwidth(bandwidth)
    if a.shape[0] != nn + 1:
        raise InvalidParameterError("dense shape does not match bandwidth")
    a = a.to(dtype=torch.complex128)
    out = torch.zeros(coefficient_buffer_size(nn), dtype=torch.complex128)
    for n in range(-nn, nn + 1):
        out[column_slice(n, nn)] = a[abs(n):, n + nn]
    return out


def unpack_coefficients(flat: Tensor, bandwidth: int) -> Tensor:
    """Inverse of :func:`pack_coefficients`; unused positions are zero."""
    nn = _check_bandwidth(bandwidth)
    if flat.ndim != 1 or flat.shape[0] != coefficient_buffer_size(nn):
        raise InvalidParameterError("flat buffer length does not match bandwidth")
    out = torch.zeros((nn + 1, 2 * nn + 1), dtype=torch.complex128)
    for n in range(-nn, nn + 1):
        out[abs(n):, n + nn] = flat[column_slice(n, nn)].to(torch.complex128)
    return out


def apply_normalization(
    coefficients: Tensor, bandwidth: int, normalization: Normalization, *, in_place: bool = False
) -> Tensor:
    """Multiply by c_k, zeroing unused slots; ``in_place`` reuses a complex128 buffer."""
    weights = normalization_weights(bandwidth, normalization)
    if in_place and coefficients.dtype == torch.complex128:
        return coefficients.mul_(weights)
    return coefficients.to(torch.complex128) * weights
