# Author      : Tyson Limato
# Date        : 2025-7-02
# File Name   : estimators.py
import time

import numpy as np


class Estimator:
    """
    Abstract base class for the local unit of work.

    An estimator never talks to other processes: it turns a share of the work
    into a partial count, and turns the group-wide sum of partial counts back
    into the final value.

    Methods:
    --------
    compute_local(share: int, seed: int) -> int
        Partial result for `share` work units. Deterministic for a fixed seed.

    combine(sum_hits: int, total: int) -> float
        Final value from the summed partial results.
    """

    def compute_local(self, share: int, seed: int) -> int:
        raise NotImplementedError

    def combine(self, sum_hits: int, total: int) -> float:
        raise NotImplementedError


# ------------------ Dart Board (CPU) ------------------
class DartEstimator(Estimator):
    """
    Monte-Carlo PI: throw darts at the square [-1, 1] x [-1, 1] and count the
    ones landing inside the unit circle.

    Parameters:
    -----------
    chunk_size : int
        Maximum number of darts generated per numpy call (bounds memory use).
    """

    def __init__(self, chunk_size: int = 1_000_000):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def compute_local(self, share: int, seed: int) -> int:
        if share < 0:
            raise ValueError(f"Cannot throw a negative number of darts: {share}")
        rng = np.random.default_rng(seed)
        hits = 0
        remaining = share
        while remaining > 0:
            n = min(remaining, self.chunk_size)
            x = rng.uniform(-1.0, 1.0, n)
            y = rng.uniform(-1.0, 1.0, n)
            # Is (x^2 + y^2) <= 1.0^2 ?
            hits += int(np.count_nonzero(x * x + y * y <= 1.0))
            remaining -= n
        return hits

    def combine(self, sum_hits: int, total: int) -> float:
        return (4.0 * sum_hits) / total


# ------------------ Dart Board (GPU) ------------------
class DartEstimatorGPU(DartEstimator):
    """
    GPU variant of `DartEstimator` using CuPy. Each rank is pinned to device
    `rank % device_count`.
    """

    def __init__(self, rank: int = 0, chunk_size: int = 10_000_000):
        super().__init__(chunk_size)
        import cupy as cp
        self.cp = cp
        cp.cuda.Device(rank % cp.cuda.runtime.getDeviceCount()).use()

    def compute_local(self, share: int, seed: int) -> int:
        if share < 0:
            raise ValueError(f"Cannot throw a negative number of darts: {share}")
        cp = self.cp
        rng = cp.random.default_rng(seed)
        hits = 0
        remaining = share
        while remaining > 0:
            n = min(remaining, self.chunk_size)
            x = rng.random(n) * 2.0 - 1.0
            y = rng.random(n) * 2.0 - 1.0
            hits += int(cp.count_nonzero(x * x + y * y <= 1.0))
            remaining -= n
        return hits


# ------------------ Seed Sources ------------------
def time_seed(rank: int) -> int:
    """Seed mixing wall-clock time with the rank, different per process and per run."""
    seq = np.random.SeedSequence([rank, time.time_ns()])
    return int(seq.generate_state(1, dtype=np.uint64)[0])


def fixed_seed(base: int = 0):
    """Seed source giving `base + rank`, for reproducible runs."""
    def source(rank: int) -> int:
        return base + rank
    return source
