"""
Transform plans.

A :class:`Plan` binds a bandwidth, a node count, a validated
:class:`~torchnfsft.config.PlanConfig` and three buffers:

- ``coefficients``: complex128, length (2N+2)², addressed via
  :func:`~torchnfsft.index.coefficient_index`;
- ``nodes``: float64, length 2M, node m at ``[2m, 2m+1]`` as
  (scaled azimuth in [-1/2, 1/2), scaled colatitude in [0, 1/2]);
- ``samples``: complex128, length M.

Forward transforms read coefficients and nodes and write samples; adjoint
transforms read samples and nodes and write coefficients.
"""

from __future__ import annotations

import numpy as np
import torch
from torch import Tensor

from .cache import PrecomputationCache
from .config import PlanConfig
from .direct import DirectEvaluator
from .errors import InvalidParameterError
from .fast import FastEvaluator
from .index import _check_bandwidth, coefficient_buffer_size, coefficient_index, valid_mask
from .logging import log_performance, logger

_DTYPES = {
    "nodes": torch.float64,
    "coefficients": torch.complex128,
    "samples": torch.complex128,
}


class Plan:
    """
    Spherical Fourier transform plan for bandwidth ``N`` and ``M`` nodes.

    Example
    -------
    >>> cache = PrecomputationCache()
    >>> cache.precompute(8)
    >>> with Plan(8, 100, cache=cache) as plan:
    ...     plan.set_nodes(random_nodes(100, seed=0))
    ...     plan[2, -1] = 1.0
    ...     samples = plan.forward()
    """

    def __init__(
        self,
        bandwidth: int,
        node_count: int,
        config: PlanConfig | None = None,
        *,
        cache: PrecomputationCache | None = None,
        nodes: Tensor | None = None,
        coefficients: Tensor | None = None,
        samples: Tensor | None = None,
    ):
        nn = _check_bandwidth(bandwidth)
        if isinstance(node_count, bool) or not isinstance(node_count, (int, np.integer)) or node_count < 1:
            raise InvalidParameterError("node_count must be a positive integer")
        node_count = int(node_count)
        if config is None:
            config = PlanConfig()
        elif not isinstance(config, PlanConfig):
            raise InvalidParameterError("config must be a PlanConfig")

        sizes = {
            "nodes": 2 * node_count,
            "coefficients": coefficient_buffer_size(nn),
            "samples": node_count,
        }
        supplied = {"nodes": nodes, "coefficients": coefficients, "samples": samples}
        buffers = {}
        for name, size in sizes.items():
            buffers[name] = self._bind_buffer(name, size, config.policy(name).owned, supplied[name])

        self._bandwidth = nn
        self._node_count = node_count
        self._config = config
        self._cache = cache
        self._buffers = buffers
        self._mask = valid_mask(nn)
        self._direct = DirectEvaluator(config, cache)
        self._fast = FastEvaluator(config, cache)
        self._finalized = False
        logger.debug(f"Created plan N={nn} M={node_count}")

    @staticmethod
    def _bind_buffer(name: str, size: int, owned: bool, supplied: Tensor | None) -> Tensor:
        if owned:
            if supplied is not None:
                raise InvalidParameterError(f"{name} is plan-owned; do not pass a buffer")
            return torch.zeros(size, dtype=_DTYPES[name])
        if supplied is None:
            raise InvalidParameterError(f"{name} is caller-owned; a buffer must be supplied")
        if not isinstance(supplied, Tensor):
            raise InvalidParameterError(f"{name} must be a torch.Tensor")
        if supplied.ndim != 1 or supplied.shape[0] != size:
            raise InvalidParameterError(f"{name} must be a 1-D tensor of length {size}")
        if supplied.dtype != _DTYPES[name] or supplied.device.type != "cpu":
            raise InvalidParameterError(f"{name} must be a CPU tensor of dtype {_DTYPES[name]}")
        return supplied

    def _check_open(self) -> None:
        if self._finalized:
            raise InvalidParameterError("plan has been finalized")

    # Properties

    @property
    def bandwidth(self) -> int:
        return self._bandwidth

    @property
    def node_count(self) -> int:
        return self._node_count

    @property
    def config(self) -> PlanConfig:
        return self._config

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def cache(self) -> PrecomputationCache | None:
        return self._cache

    @cache.setter
    def cache(self, cache: PrecomputationCache | None) -> None:
        self._cache = cache
        self._direct.cache = cache
        self._fast.cache = cache

    @property
    def nodes(self) -> Tensor:
        self._check_open()
        return self._buffers["nodes"]

    @property
    def coefficients(self) -> Tensor:
        self._check_open()
        return self._buffers["coefficients"]

    @property
    def samples(self) -> Tensor:
        self._check_open()
        return self._buffers["samples"]

    # Buffer access

    def __getitem__(self, key: tuple[int, int]) -> complex:
        k, n = key
        return complex(self.coefficients[coefficient_index(k, n, self._bandwidth)])

    def __setitem__(self, key: tuple[int, int], value: complex) -> None:
        k, n = key
        self.coefficients[coefficient_index(k, n, self._bandwidth)] = value

    def set_nodes(self, values: Tensor) -> None:
        """Copy nodes given as a (M, 2) array or a flat 2M buffer."""
        x = torch.as_tensor(values, dtype=torch.float64).reshape(-1)
        if x.shape[0] != 2 * self._node_count:
            raise InvalidParameterError(f"expected {self._node_count} nodes")
        if not bool(torch.isfinite(x).all()):
            raise InvalidParameterError("nodes must be finite")
        self.nodes.copy_(x)

    def set_coefficients(self, values: Tensor) -> None:
        x = torch.as_tensor(values, dtype=torch.complex128).reshape(-1)
        if x.shape[0] != coefficient_buffer_size(self._bandwidth):
            raise InvalidParameterError("coefficient buffer length does not match bandwidth")
        self.coefficients.copy_(x)

    def set_samples(self, values: Tensor) -> None:
        x = torch.as_tensor(values, dtype=torch.complex128).reshape(-1)
        if x.shape[0] != self._node_count:
            raise InvalidParameterError(f"expected {self._node_count} samples")
        self.samples.copy_(x)

    # Transforms

    def _check_nodes(self) -> None:
        # caller-owned and directly written node buffers bypass set_nodes
        if not bool(torch.isfinite(self.nodes).all()):
            raise InvalidParameterError("nodes must be finite")

    def _forward(self, evaluator) -> Tensor:
        self._check_open()
        self._check_nodes()
        scratch = self._config.may_destroy("forward", "coefficients")
        result = evaluator.forward(self.coefficients, self.nodes, self._bandwidth, scratch=scratch)
        self.samples.copy_(result)
        return self.samples

    def _adjoint(self, evaluator) -> Tensor:
        self._check_open()
        self._check_nodes()
        result = evaluator.adjoint(self.samples, self.nodes, self._bandwidth)
        if self._config.zero_unused:
            self.coefficients.copy_(result)
        else:
            self.coefficients[self._mask] = result[self._mask]
        return self.coefficients

    @log_performance
    def forward_direct(self) -> Tensor:
        """Exact forward transform (NDSFT): coefficients -> samples."""
        return self._forward(self._direct)

    @log_performance
    def adjoint_direct(self) -> Tensor:
        """Exact adjoint transform (adjoint NDSFT): samples -> coefficients."""
        return self._adjoint(self._direct)

    @log_performance
    def forward(self) -> Tensor:
        """Fast forward transform (NFSFT): coefficients -> samples."""
        return self._forward(self._fast)

    @log_performance
    def adjoint(self) -> Tensor:
        """Fast adjoint transform (adjoint NFSFT): samples -> coefficients."""
        return self._adjoint(self._fast)

    @log_performance
    def precompute_nodes(self) -> None:
        """Build the nonequispaced Fourier plans for the current nodes."""
        self._check_open()
        self._check_nodes()
        self._fast.precompute_nodes(self.nodes, self._bandwidth)

    # Lifecycle

    def finalize(self) -> None:
        """Release plan-owned buffers; caller-owned buffers are left untouched."""
        if self._finalized:
            return
        for name in list(self._buffers):
            if self._config.policy(name).owned:
                del self._buffers[name]
        self._fast.release()
        self._finalized = True
        logger.debug(f"Finalized plan N={self._bandwidth} M={self._node_count}")

    def __enter__(self) -> "Plan":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.finalize()

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "open"
        return f"Plan(bandwidth={self._bandwidth}, node_count={self._node_count}, {state})"
