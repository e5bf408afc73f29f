"""
Precomputation cache for the fast spherical Fourier transforms.

Entries are keyed by ``(next_power_of_two(N), threshold)`` and hold the cascade
factorization of every order plus the three-term recurrence tables used by the
direct algorithms. A cache is an ordinary object: create one, ``precompute`` the
bandwidths you need, hand it to any number of plans and ``forget`` it when done.

There is no internal locking. Reading built entries from several threads is
safe because entries are immutable; ``precompute`` and ``forget`` must be
serialized by the caller against all readers.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .config import DEFAULT_THRESHOLD
from .errors import InvalidParameterError, MissingPrecomputationError
from .index import _check_bandwidth, next_power_of_two
from .legendre import OrderFactorization, factorize, recurrence_coefficients
from .logging import log_cache_build, log_errors, logger


@dataclass(frozen=True)
class CacheEntry:
    """Read-only precomputed data for one cached bandwidth and threshold."""

    bandwidth: int
    threshold: float
    factorizations: tuple[OrderFactorization, ...] | None
    recurrence: tuple[tuple[np.ndarray, np.ndarray], ...] | None
    build_seconds: float = 0.0

    @property
    def key(self) -> tuple[int, float]:
        return (self.bandwidth, self.threshold)

    @property
    def has_fast(self) -> bool:
        return self.factorizations is not None

    @property
    def has_direct(self) -> bool:
        return self.recurrence is not None

    @property
    def stabilized_blocks(self) -> int:
        if self.factorizations is None:
            return 0
        return sum(f.stabilized_blocks for f in self.factorizations)

    @property
    def nbytes(self) -> int:
        total = 0
        if self.factorizations is not None:
            total += sum(f.nbytes for f in self.factorizations)
        if self.recurrence is not None:
            total += sum(a.nbytes + g.nbytes for a, g in self.recurrence)
        return total

    def covers(self, bandwidth: int) -> bool:
        return bandwidth <= self.bandwidth

    def factorization(self, order: int) -> OrderFactorization:
        if self.factorizations is None:
            raise MissingPrecomputationError(self.bandwidth, self.threshold)
        return self.factorizations[abs(order)]

    def recurrence_for(self, order: int, bandwidth: int) -> tuple[np.ndarray, np.ndarray]:
        """Recurrence coefficients of ``order`` truncated to ``bandwidth``."""
        m = abs(order)
        if self.recurrence is None or not self.covers(bandwidth):
            return recurrence_coefficients(m, bandwidth)
        alpha, gamma = self.recurrence[m]
        return alpha[: bandwidth - m], gamma[: bandwidth - m]


def _check_threshold(threshold: float | None) -> float:
    kappa = DEFAULT_THRESHOLD if threshold is None else float(threshold)
    if not (math.isfinite(kappa) and kappa > 0.0):
        raise InvalidParameterError("threshold must be a positive finite number")
    return kappa


class PrecomputationCache:
    """Owned store of :class:`CacheEntry` objects."""

    def __init__(self):
        self._entries: dict[tuple[int, float], CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(sorted(self._entries.values(), key=lambda e: e.key))

    def __contains__(self, bandwidth: int) -> bool:
        return self.lookup(bandwidth) is not None

    @log_errors
    def precompute(
        self,
        bandwidth: int,
        threshold: float | None = None,
        *,
        fast: bool = True,
        direct: bool = True,
    ) -> CacheEntry:
        """
        Build (or rebuild) the entry for ``next_power_of_two(bandwidth)``.

        Parameters
        ----------
        bandwidth : int
            Largest bandwidth the entry must serve.
        threshold : float, optional
            Stabilization threshold κ. A cascade block whose transfer matrix
            exceeds κ in magnitude is evaluated directly instead of folded.
            Defaults to ``TORCHNFSFT_THRESHOLD``.
        fast, direct : bool
            Which tables to build. Skipping one saves memory.
        """
        nn = _check_bandwidth(bandwidth)
        kappa = _check_threshold(threshold)
        if not fast and not direct:
            raise InvalidParameterError("at least one of fast and direct tables must be built")

        nc = next_power_of_two(nn)
        start = time.perf_counter()
        factorizations = None
        recurrence = None
        if fast:
            factorizations = tuple(factorize(m, nc, kappa) for m in range(nc + 1))
        if direct:
            recurrence = tuple(recurrence_coefficients(m, nc) for m in range(nc + 1))
        elapsed = time.perf_counter() - start

        entry = CacheEntry(nc, kappa, factorizations, recurrence, elapsed)
        self._entries[entry.key] = entry
        log_cache_build(nc, kappa, entry.stabilized_blocks, elapsed, entry.nbytes)
        return entry

    def lookup(
        self,
        bandwidth: int,
        threshold: float | None = None,
        *,
        fast: bool = False,
        direct: bool = False,
    ) -> CacheEntry | None:
        """Smallest entry covering ``bandwidth``, or None.

        ``threshold=None`` accepts any κ; ties on bandwidth prefer the smaller κ.
        ``fast``/``direct`` require the corresponding tables.
        """
        nn = _check_bandwidth(bandwidth)
        best = None
        for entry in self._entries.values():
            if not entry.covers(nn):
                continue
            if threshold is not None and entry.threshold != float(threshold):
                continue
            if (fast and not entry.has_fast) or (direct and not entry.has_direct):
                continue
            if best is None or entry.key < best.key:
                best = entry
        return best

    def require(self, bandwidth: int, threshold: float | None = None) -> CacheEntry:
        """Entry with factorizations covering ``bandwidth``; raises if absent."""
        entry = self.lookup(bandwidth, threshold, fast=True)
        if entry is None:
            raise MissingPrecomputationError(bandwidth, threshold)
        return entry

    def forget(self) -> None:
        """Drop every entry."""
        if self._entries:
            logger.debug(f"Forgetting {len(self._entries)} cache entries")
        self._entries.clear()

    def stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "bandwidths": sorted({e.bandwidth for e in self._entries.values()}),
            "stabilized_blocks": sum(e.stabilized_blocks for e in self._entries.values()),
            "memory_mb": sum(e.nbytes for e in self._entries.values()) / (1024 * 1024),
        }
