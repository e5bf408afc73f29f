"""Relative errors between coefficient buffers, restricted to valid slots."""

from __future__ import annotations

import torch
from torch import Tensor

from .errors import InvalidParameterError
from .index import coefficient_buffer_size, valid_mask


def relative_error(reference: Tensor, approx: Tensor, bandwidth: int, norm: str | int = "inf") -> float:
    """
    ``‖approx - reference‖ / ‖reference‖`` over the valid slots.

    ``norm`` is ``"inf"``, ``1`` or ``2``. Returns the absolute error when the
    reference is zero.
    """
    size = coefficient_buffer_size(bandwidth)
    ref = torch.as_tensor(reference).reshape(-1)
    out = torch.as_tensor(approx).reshape(-1)
    if ref.shape[0] != size or out.shape[0] != size:
        raise InvalidParameterError(f"coefficient buffers must have length {size}")

    mask = valid_mask(bandwidth)
    ref = ref[mask].to(torch.complex128)
    diff = out[mask].to(torch.complex128) - ref

    if norm in ("inf", float("inf")):
        ord_ = float("inf")
    elif norm in (1, "1"):
        ord_ = 1
    elif norm in (2, "2"):
        ord_ = 2
    else:
        raise InvalidParameterError(f"unsupported norm {norm!r}")

    num = float(torch.linalg.vector_norm(diff, ord=ord_))
    den = float(torch.linalg.vector_norm(ref, ord=ord_))
    return num / den if den > 0.0 else num


def max_abs_error(reference: Tensor, approx: Tensor) -> float:
    """Largest absolute difference between two sample buffers."""
    ref = torch.as_tensor(reference).to(torch.complex128)
    out = torch.as_tensor(approx).to(torch.complex128)
    if ref.shape != out.shape:
        raise InvalidParameterError("sample buffers must have the same shape")
    if ref.numel() == 0:
        return 0.0
    return float((out - ref).abs().max())
