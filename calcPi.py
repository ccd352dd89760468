# Author      : Tyson Limato
# Date        : 2025-7-02
# File Name   : calcPi.py
import argparse
from dataclasses import dataclass

import numpy as np

from estimators import DartEstimator, DartEstimatorGPU, time_seed
from mpiProcess import ErrorCode, ProcessBehavior, get_version_string

ACTUAL_PI = 3.1415926535897

# Wire layout of RunConfig. Sent as raw bytes, no versioning and no
# endianness negotiation: every rank must run the same build on the same
# architecture.
RUN_CONFIG_DTYPE = np.dtype([("total_throws", "<u8"), ("use_gpu", "u1")])
MAX_THROWS = int(np.iinfo(np.uint64).max)


class ArgumentsError(ValueError):
    """A recognised command line flag was malformed."""


@dataclass(frozen=True)
class RunConfig:
    total_throws: int = 5_000_000    # TOTAL throws at dartboard
    use_gpu: bool = False

    def to_buffer(self) -> np.ndarray:
        """Pack into a fixed-size uint8 array suitable for a byte broadcast."""
        rec = np.zeros(1, dtype=RUN_CONFIG_DTYPE)
        rec["total_throws"] = self.total_throws
        rec["use_gpu"] = 1 if self.use_gpu else 0
        return rec.view(np.uint8).copy()

    @classmethod
    def from_buffer(cls, buf: np.ndarray) -> "RunConfig":
        if buf.nbytes != RUN_CONFIG_DTYPE.itemsize:
            raise ValueError(
                f"RunConfig blob must be {RUN_CONFIG_DTYPE.itemsize} bytes, got {buf.nbytes}"
            )
        rec = np.ascontiguousarray(buf).view(np.uint8).view(RUN_CONFIG_DTYPE)[0]
        return cls(total_throws=int(rec["total_throws"]), use_gpu=bool(rec["use_gpu"]))

    @classmethod
    def empty_buffer(cls) -> np.ndarray:
        """Receive buffer for a broadcast RunConfig."""
        return np.zeros(RUN_CONFIG_DTYPE.itemsize, dtype=np.uint8)


@dataclass(frozen=True)
class PiResult:
    total_throws: int
    sum_hits: int
    computed_pi: float
    actual_pi: float = ACTUAL_PI

    @property
    def error(self) -> float:
        return self.actual_pi - self.computed_pi


class _ArgumentParser(argparse.ArgumentParser):
    # argparse exits the interpreter on errors; a rank must return a status instead
    def error(self, message):
        raise ArgumentsError(message)


def parse_args(args: list, defaults: RunConfig = None, verbose: bool = True) -> RunConfig:
    """
    Build a RunConfig from command line tokens (program name already removed).

    Parameters:
    -----------
    args : list of str
        `-t N` / `--throws N` sets the total number of throws, `--gpu` selects
        the CuPy estimator. Anything else is ignored.
    defaults : RunConfig
        Values used for flags that are not given.
    verbose : bool
        Echo an overridden throw count (the manager does, workers stay quiet).

    Returns:
    --------
    RunConfig

    Raises:
    -------
    ArgumentsError
        A recognised flag is missing its value, the value is not an integer,
        or the total is not positive or does not fit the uint64 wire field.
    """
    defaults = defaults if defaults is not None else RunConfig()

    parser = _ArgumentParser(prog="mpi-calc-pi", add_help=False, allow_abbrev=False)
    parser.add_argument("-t", "--throws", dest="total_throws", type=int, default=None)
    parser.add_argument("--gpu", dest="use_gpu", action="store_true", default=defaults.use_gpu)
    opts, _ = parser.parse_known_args(args)

    total = defaults.total_throws
    if opts.total_throws is not None:
        total = opts.total_throws
    if total < 1:
        raise ArgumentsError(f"number of throws must be positive, got {total}")
    if total > MAX_THROWS:
        raise ArgumentsError(f"number of throws must not exceed {MAX_THROWS}, got {total}")
    if opts.total_throws is not None and verbose:
        print(f">> set totalNumThrows={total}", flush=True)

    return RunConfig(total_throws=total, use_gpu=opts.use_gpu)


def local_share(total: int, num_tasks: int, is_manager: bool) -> int:
    """
    Number of throws for one task.

    Every worker gets `total // num_tasks`; the manager also picks up the
    throws lost to integer truncation, so the shares always add up to `total`.
    """
    per_task = total // num_tasks
    if is_manager:
        return total - per_task * (num_tasks - 1)
    return per_task


def make_estimator(config: RunConfig, rank: int):
    if config.use_gpu:
        return DartEstimatorGPU(rank)
    return DartEstimator()


class CalcPi(ProcessBehavior):
    """
    Manager/worker behaviour estimating PI from dart throws spread over the group.

    Parameters:
    -----------
    defaults : RunConfig
        Values used when the command line does not override them.
    seed_source : callable
        `seed_source(rank) -> int`, the RNG seed for this rank's darts.
    estimator_factory : callable
        `estimator_factory(config, rank) -> Estimator`.

    Attributes:
    -----------
    result : PiResult
        Set on the manager once the reduction has completed, None elsewhere.
    """

    def __init__(self, defaults: RunConfig = None, seed_source=time_seed,
                 estimator_factory=make_estimator):
        self.defaults = defaults if defaults is not None else RunConfig()
        self.seed_source = seed_source
        self.estimator_factory = estimator_factory
        self.result = None

    def _check_args(self, proc, args):
        # Every rank validates the command line it was started with, so a bad
        # flag stops the whole group before anyone enters the broadcast.
        try:
            return parse_args(args, self.defaults, verbose=proc.is_manager)
        except ArgumentsError as exc:
            print(f"MPI task {proc.task_name}: bad arguments: {exc}", flush=True)
            return None

    def _throw_darts(self, proc, config: RunConfig):
        share = local_share(config.total_throws, proc.num_tasks, proc.is_manager)
        estimator = self.estimator_factory(config, proc.task_id)
        hits = estimator.compute_local(share, self.seed_source(proc.task_id))

        # This output will likely be interlaced with the other tasks' output.
        print(f"Task {proc.task_id} had {hits} hits out of {share} throws", flush=True)
        return estimator, hits

    def _sum_hits(self, proc, hits: int):
        sendbuf = np.array([hits], dtype=np.uint64)
        recvbuf = np.zeros(1, dtype=np.uint64)
        if not proc.mpi_barrier():
            return ErrorCode.BARRIER, None
        if not proc.mpi_reduce_sum(sendbuf, recvbuf):
            return ErrorCode.REDUCE, None
        return ErrorCode.NONE, int(recvbuf[0])

    def run_as_manager(self, proc, args):
        print(get_version_string(proc.transport), flush=True)

        config = self._check_args(proc, args)
        if config is None:
            return ErrorCode.ARGS

        blob = config.to_buffer()
        if not proc.mpi_bcast(blob):
            return ErrorCode.BCAST
        config = RunConfig.from_buffer(blob)

        estimator, hits = self._throw_darts(proc, config)
        ret, sum_hits = self._sum_hits(proc, hits)
        if ret != ErrorCode.NONE:
            return ret

        # The reduction has summed the hits of the manager and every worker.
        computed_pi = estimator.combine(sum_hits, config.total_throws)
        self.result = PiResult(config.total_throws, sum_hits, computed_pi)
        print(f"After {config.total_throws} throws...", flush=True)
        print(f"  Computed PI : {self.result.computed_pi:.8f}", flush=True)
        print(f"  Actual   PI : {self.result.actual_pi:.8f}", flush=True)
        print(f"  Error       : {self.result.error:g}", flush=True)
        return ErrorCode.NONE

    def run_as_worker(self, proc, args):
        if self._check_args(proc, args) is None:
            return ErrorCode.ARGS

        blob = RunConfig.empty_buffer()
        if not proc.mpi_bcast(blob):
            return ErrorCode.BCAST
        config = RunConfig.from_buffer(blob)

        _, hits = self._throw_darts(proc, config)
        ret, _ = self._sum_hits(proc, hits)
        return ret
