"""Helper functions shared by the valuation engines."""

from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Iterator
import logging
import time

__all__ = [
    "log_timing",
    "warn_if_high_std_error",
]


@contextmanager
def log_timing(logger, label: str, enabled: bool) -> Iterator[None]:
    """Log timing for a code block when enabled is True."""
    if not enabled:
        yield
        return
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("Timing %s: %.6fs", label, elapsed)


def warn_if_high_std_error(
    logger: logging.Logger,
    *,
    value: float,
    std_error: float,
    n_paths: int,
    warn_ratio: float | None,
    label: str,
) -> None:
    """Emit a warning log if MC standard error is high relative to the estimate."""
    if warn_ratio is None or n_paths < 2:
        return
    scale = max(abs(value), 1.0e-12)
    ratio = std_error / scale
    logger.debug(
        "MC %s std_error=%.6g ratio=%.6g paths=%d",
        label,
        std_error,
        ratio,
        n_paths,
    )
    if ratio > warn_ratio:
        logger.warning(
            "MC %s standard error high: std_error=%.6g ratio=%.6g (>%.3g) paths=%d",
            label,
            std_error,
            ratio,
            warn_ratio,
            n_paths,
        )
