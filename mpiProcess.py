# Author      : Tyson Limato
# Date        : 2025-7-02
# File Name   : mpiProcess.py
from dataclasses import dataclass
from enum import IntEnum

import numpy as np


class ErrorCode(IntEnum):
    """Process exit status. The first error recorded during a run wins."""
    NONE = 0
    VERSION = 1
    INIT = 2
    COMM_SIZE = 3
    COMM_RANK = 4
    REDUCE = 5
    FINALIZE = 6
    BARRIER = 7
    BCAST = 8
    ARGS = 9


class TransportError(RuntimeError):
    """Raised by a transport when a collective runtime call fails."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        msg = f"{operation} failed"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class Transport:
    """
    Abstract base class for the collective communication runtime.

    Every method raises `TransportError` when the underlying runtime reports a
    failure. Collective methods block until every member of the group has made
    the matching call.

    Methods:
    --------
    init() / finalize()
        Bring the runtime up and tear it down.

    size() -> int, rank() -> int
        Group size and this process's rank within the group.

    bcast(buf: np.ndarray, root: int)
        In-place broadcast of `buf` from `root` to every rank.

    reduce_sum(sendbuf: np.ndarray, recvbuf: np.ndarray, root: int)
        Element-wise sum of every rank's `sendbuf`, written into `recvbuf`
        on `root` only.

    barrier()
        Group rendezvous.
    """

    def init(self):
        raise NotImplementedError

    def finalize(self):
        raise NotImplementedError

    def size(self) -> int:
        raise NotImplementedError

    def rank(self) -> int:
        raise NotImplementedError

    def bcast(self, buf: np.ndarray, root: int):
        raise NotImplementedError

    def reduce_sum(self, sendbuf: np.ndarray, recvbuf: np.ndarray, root: int):
        raise NotImplementedError

    def barrier(self):
        raise NotImplementedError

    def comm_name(self) -> str:
        raise NotImplementedError

    def processor_name(self) -> str:
        raise NotImplementedError

    def library_version(self) -> str:
        raise NotImplementedError

    def api_version(self) -> tuple:
        raise NotImplementedError


class ProcessBehavior:
    """
    What a process does once its role is known.

    Both methods receive the running `MPIProcess` (for rank/size and the
    collective wrappers) and the command line arguments without the program
    name, and return an `ErrorCode`. Any other int is passed through as the
    exit status unchanged.
    """

    def run_as_manager(self, proc: "MPIProcess", args: list) -> int:
        raise NotImplementedError

    def run_as_worker(self, proc: "MPIProcess", args: list) -> int:
        raise NotImplementedError


@dataclass
class CoordinatorConfig:
    manager_rank: int = 0
    sync_starts: bool = True   # barrier before dispatch
    sync_ends: bool = False    # barrier after a successful dispatch


def get_task_name(transport: Transport, rank: int) -> str:
    """Build the `<comm>.<rank>@<host>` name used in progress lines."""
    try:
        comm_name = transport.comm_name()
    except TransportError:
        comm_name = "NULL_COMMNAME"
    try:
        proc_name = transport.processor_name()
    except TransportError:
        proc_name = "NULL_PROCNAME"
    return f"{comm_name}.{rank}@{proc_name}"


def get_version_string(transport: Transport) -> str:
    """Runtime library version followed by the supported API level."""
    try:
        lib_version = transport.library_version().strip()
    except TransportError:
        lib_version = "NULL_LIB_VERSION"
    try:
        major, minor = transport.api_version()
        api = f"{major}.{minor}"
    except TransportError:
        api = "NULL"
    return f"{lib_version} API({api})"


class MPIProcess:
    """
    Runs one process's share of a distributed computation.

    The coordinator owns the transport lifecycle and the role dispatch: rank
    `config.manager_rank` runs `behavior.run_as_manager`, every other rank runs
    `behavior.run_as_worker`. It knows nothing about what the behaviour
    computes.

    Parameters:
    -----------
    transport : Transport
        The collective communication runtime.
    behavior : ProcessBehavior
        Manager and worker routines.
    config : CoordinatorConfig
        Manager rank and start/end synchronisation switches.

    Methods:
    --------
    run(argv)                       -- Execute the full lifecycle, return status.
    mpi_bcast(buf, root)            -- Broadcast wrapper, True on success.
    mpi_reduce_sum(send, recv, root) -- Sum-reduce wrapper, True on success.
    mpi_barrier()                   -- Barrier wrapper, True on success.
    """

    def __init__(self, transport: Transport, behavior: ProcessBehavior,
                 config: CoordinatorConfig = None):
        self.transport = transport
        self.behavior = behavior
        self.config = config if config is not None else CoordinatorConfig()
        self.num_tasks = 0     # tasks including the manager
        self.task_id = -1
        self.task_name = "NULL_TASK"

    @property
    def manager_task_id(self) -> int:
        return self.config.manager_rank

    @property
    def is_manager(self) -> bool:
        return self.task_id == self.config.manager_rank

    def run(self, argv: list) -> int:
        """
        Initialise the transport, dispatch on role and always finalise.

        Parameters:
        -----------
        argv : list of str
            Raw command line, program name first.

        Returns:
        --------
        int
            `ErrorCode.NONE` on success, otherwise the first error recorded.
        """
        ret = ErrorCode.NONE
        try:
            ret = self._start_and_dispatch(argv)
        finally:
            # Always finalize. An earlier error is never overwritten.
            try:
                self.transport.finalize()
            except TransportError as exc:
                self._report(exc)
                if ret == ErrorCode.NONE:
                    ret = ErrorCode.FINALIZE
            print(f"MPI task {self.task_name} ending", flush=True)
        return int(ret)

    def _start_and_dispatch(self, argv: list) -> int:
        try:
            self.transport.init()
        except TransportError as exc:
            self._report(exc)
            return ErrorCode.INIT

        try:
            self.num_tasks = self.transport.size()
        except TransportError as exc:
            self._report(exc)
            return ErrorCode.COMM_SIZE

        try:
            self.task_id = self.transport.rank()
        except TransportError as exc:
            self._report(exc)
            return ErrorCode.COMM_RANK

        self.task_name = get_task_name(self.transport, self.task_id)
        print(f"MPI task {self.task_name} started", flush=True)

        if self.config.sync_starts and not self.mpi_barrier():
            return ErrorCode.BARRIER

        args = list(argv[1:])
        if self.is_manager:
            ret = self.behavior.run_as_manager(self, args)
        else:
            ret = self.behavior.run_as_worker(self, args)

        # a failed behaviour must not enter the end barrier
        if ret == ErrorCode.NONE and self.config.sync_ends and not self.mpi_barrier():
            return ErrorCode.BARRIER
        return ret

    def _root(self, root):
        return self.manager_task_id if root is None else root

    def _report(self, exc: TransportError):
        print(f"MPI task {self.task_name}: {exc}", flush=True)

    def mpi_bcast(self, buf: np.ndarray, root: int = None) -> bool:
        """Broadcast `buf` in place from `root` (manager by default)."""
        try:
            self.transport.bcast(buf, self._root(root))
        except TransportError as exc:
            self._report(exc)
            return False
        return True

    def mpi_reduce_sum(self, sendbuf: np.ndarray, recvbuf: np.ndarray,
                       root: int = None) -> bool:
        """Sum `sendbuf` over the group into `recvbuf` on `root`."""
        try:
            self.transport.reduce_sum(sendbuf, recvbuf, self._root(root))
        except TransportError as exc:
            self._report(exc)
            return False
        return True

    def mpi_barrier(self) -> bool:
        try:
            self.transport.barrier()
        except TransportError as exc:
            self._report(exc)
            return False
        return True
