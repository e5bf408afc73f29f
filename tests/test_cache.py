import logging

import pytest

from torchnfsft import (
    DEFAULT_THRESHOLD,
    InvalidParameterError,
    MissingPrecomputationError,
    PrecomputationCache,
)


def test_precompute_rounds_to_power_of_two() -> None:
    cache = PrecomputationCache()
    entry = cache.precompute(5, threshold=100.0)
    assert entry.bandwidth == 8
    assert entry.threshold == 100.0
    assert entry.has_fast and entry.has_direct
    assert len(entry.factorizations) == 9
    assert len(entry.recurrence) == 9
    assert entry.nbytes > 0
    assert len(cache) == 1


def test_default_threshold() -> None:
    cache = PrecomputationCache()
    assert cache.precompute(0).threshold == DEFAULT_THRESHOLD
    assert cache.precompute(0).bandwidth == 1


def test_lookup_prefers_smallest_sufficient_entry() -> None:
    cache = PrecomputationCache()
    cache.precompute(16)
    cache.precompute(4)
    assert cache.lookup(3).bandwidth == 4
    assert cache.lookup(9).bandwidth == 16
    assert cache.lookup(17) is None
    assert 16 in cache and 17 not in cache


def test_lookup_with_threshold_and_tables() -> None:
    cache = PrecomputationCache()
    cache.precompute(4, threshold=10.0, direct=False)
    cache.precompute(4, threshold=1e6, fast=False)
    assert cache.lookup(4, 10.0).threshold == 10.0
    assert cache.lookup(4, 1e6).threshold == 1e6
    assert cache.lookup(4, 5.0) is None
    assert cache.lookup(4, fast=True).threshold == 10.0
    assert cache.lookup(4, direct=True).threshold == 1e6
    with pytest.raises(MissingPrecomputationError):
        cache.require(4, 1e6)


def test_rebuild_replaces_entry() -> None:
    cache = PrecomputationCache()
    first = cache.precompute(4)
    second = cache.precompute(3)
    assert len(cache) == 1
    assert cache.lookup(4) is second and second is not first


def test_forget_drops_everything() -> None:
    cache = PrecomputationCache()
    cache.precompute(8)
    cache.forget()
    assert len(cache) == 0
    with pytest.raises(MissingPrecomputationError):
        cache.require(8)
    cache.precompute(8)
    assert cache.require(8).bandwidth == 8


def test_precompute_validation() -> None:
    cache = PrecomputationCache()
    with pytest.raises(InvalidParameterError):
        cache.precompute(-1)
    with pytest.raises(InvalidParameterError):
        cache.precompute(4, threshold=-1.0)
    with pytest.raises(InvalidParameterError):
        cache.precompute(4, fast=False, direct=False)


def test_stricter_threshold_stabilizes_more_blocks() -> None:
    cache = PrecomputationCache()
    loose = cache.precompute(32, threshold=1e300)
    strict = cache.precompute(32, threshold=1.0)
    assert loose.stabilized_blocks <= strict.stabilized_blocks
    stats = cache.stats()
    assert stats["entries"] == 2
    assert stats["bandwidths"] == [32]


def test_precompute_logs_summary(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="torchnfsft"):
        PrecomputationCache().precompute(4, threshold=50.0)
    assert any("Precomputed bandwidth 4" in r.getMessage() for r in caplog.records)
