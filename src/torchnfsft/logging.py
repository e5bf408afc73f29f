"""
Logging utilities for torchnfsft.

All messages go through the ``torchnfsft`` logger. Transform calls are timed at
debug level, cache builds are summarized at info level and failures are logged
at error level before they propagate.
"""

import logging
import os
import sys
import time
from functools import wraps

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Calls slower than this are reported at warning level.
SLOW_CALL_MS = float(os.environ.get("TORCHNFSFT_SLOW_CALL_MS", "10000"))

logger = logging.getLogger("torchnfsft")
logger.setLevel(_LEVELS.get(os.environ.get("TORCHNFSFT_LOG_LEVEL", "INFO").upper(), logging.INFO))

if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)


def log_errors(func):
    """Decorator to log exceptions before re-raising."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {func.__qualname__}: {e}")
            raise

    return wrapper


def log_performance(func):
    """Decorator timing a transform call; failures are logged with their duration."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error(f"{func.__qualname__} failed after {elapsed_ms:.2f}ms: {e}")
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms > SLOW_CALL_MS:
            logger.warning(f"Slow call: {func.__qualname__} took {elapsed_ms:.2f}ms")
        else:
            logger.debug(f"{func.__qualname__} completed in {elapsed_ms:.2f}ms")
        return result

    return wrapper


def set_log_level(level):
    """Set the torchnfsft logging level by name ("DEBUG", "INFO", ...) or number."""
    if isinstance(level, int):
        logger.setLevel(level)
    else:
        logger.setLevel(_LEVELS.get(str(level).upper(), logging.INFO))


def log_memory_usage(context: str, size_mb: float):
    logger.debug(f"Memory usage in {context}: {size_mb:.2f} MB")


def log_cache_build(bandwidth: int, threshold: float, stabilized: int, seconds: float, nbytes: int):
    """Summarize a precomputation cache build."""
    logger.info(
        f"Precomputed bandwidth {bandwidth} (threshold {threshold:g}): "
        f"{stabilized} stabilized blocks in {seconds * 1000:.2f}ms"
    )
    log_memory_usage(f"cache entry {bandwidth}", nbytes / (1024 * 1024))
